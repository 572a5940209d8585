# community_gate/schemas/base.py
"""
Shared building blocks for persisted records and API payloads.
"""
import uuid
from typing import Literal

Role = Literal["user", "admin", "superuser"]
ADMIN_ROLES = ("admin", "superuser")


def new_id() -> str:
    """Generate a record identifier (UUID4 string)."""
    return str(uuid.uuid4())


def is_admin_role(role: str) -> bool:
    return role in ADMIN_ROLES
