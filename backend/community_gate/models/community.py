# community_gate/models/community.py
"""
Database model for communities.
Each row is one document: the address tree (addresses -> people / codes) and
the allow-list are stored as JSON columns.
"""
from tortoise import fields, models


class Community(models.Model):
    id = fields.CharField(pk=True, max_length=36)
    name = fields.CharField(max_length=64, unique=True, index=True)  # Access logs refer to communities by name
    addresses = fields.JSONField(default=list)
    allowed_users = fields.JSONField(default=list)  # Usernames, not user ids
    created_at = fields.DatetimeField()
    updated_at = fields.DatetimeField(null=True)

    class Meta:
        table = "communities"
