# community_gate/models/user.py
"""
Database model for users.
Represents an administrator or resident-manager account.
"""
from tortoise import fields, models


class User(models.Model):
    """
    User database model.

    Security:
    - Password is stored as a hash (never store plain text passwords)
    - Username is stored lower-cased and must be unique
    - Role determines access level (user, admin or superuser)
    """
    id = fields.CharField(pk=True, max_length=36)  # UUID4 string generated by the application
    username = fields.CharField(max_length=64, unique=True, index=True)
    password_hash = fields.CharField(max_length=255)  # Argon2 hash
    role = fields.CharField(max_length=16, default="user")  # "user", "admin" or "superuser"
    created_at = fields.DatetimeField()

    class Meta:
        """Tortoise ORM metadata configuration."""
        table = "users"
