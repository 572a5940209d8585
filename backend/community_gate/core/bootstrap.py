# community_gate/core/bootstrap.py
"""
Bootstrap module for application initialization.
Handles initial setup tasks such as creating the superuser on first startup.
"""
import os
import logging
from community_gate.core.security import hash_password
from community_gate.schemas.user import UserRecord
from community_gate.storage.base import Store

logger = logging.getLogger("uvicorn.error")


async def ensure_superuser(store: Store) -> None:
    """
    If no superuser exists, create one based on environment variables.
    Only takes effect under the following conditions:
      - Currently no user with role="superuser"
      - And SUPERUSER_PASSWORD is set (to avoid using default weak password)
    Environment variables:
      SUPERUSER_USERNAME (default: "admin")
      SUPERUSER_PASSWORD (required, otherwise won't create)
    """
    users = await store.list_users()
    if any(u.role == "superuser" for u in users):
        return

    password = os.getenv("SUPERUSER_PASSWORD")
    if not password:
        logger.warning("[bootstrap] No superuser present, but SUPERUSER_PASSWORD not set -> skip creating one.")
        return

    base_username = os.getenv("SUPERUSER_USERNAME", "admin").strip().lower() or "admin"

    # If the name is already taken by a regular account, create a non-conflicting name
    username = base_username
    suffix = 1
    taken = {u.username.casefold() for u in users}
    while username in taken:
        suffix += 1
        username = f"{base_username}{suffix}"

    u = await store.add_user(UserRecord(
        username=username,
        passwordHash=hash_password(password),
        role="superuser",
    ))
    logger.warning("[bootstrap] Created superuser -> username=%s id=%s", u.username, u.id)
