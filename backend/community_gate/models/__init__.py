# community_gate/models/__init__.py
"""
Database models module initialization.
Exports the Tortoise ORM models used by the "database" storage backend.

Models exported:
- User: User account and authentication model
- Community: Community document (address tree and allow-list as JSON)
- AccessLog: Access attempts posted by game servers
"""
from .user import User
from .community import Community
from .access_log import AccessLog
