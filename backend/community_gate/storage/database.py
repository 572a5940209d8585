# community_gate/storage/database.py
"""
Document-database backend built on Tortoise ORM.

Communities are single rows whose address tree lives in a JSON column, so
every address / person / code mutation is a read-modify-write of one row.
Each write, including the two cascades (user removal or promotion stripping
allow-lists, community removal deleting its logs) and the sweep, runs in one
transaction.
"""
from __future__ import annotations

import asyncio
import datetime as dt
import logging
from functools import wraps
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import ValidationError
from tortoise.exceptions import BaseORMException, IntegrityError
from tortoise.transactions import in_transaction

from community_gate.core.db import close_db, init_db
from community_gate.models.access_log import AccessLog as AccessLogRow
from community_gate.models.community import Community as CommunityRow
from community_gate.models.user import User as UserRow
from community_gate.schemas.access_log import AccessLogEntry
from community_gate.schemas.community import Community
from community_gate.schemas.user import UserRecord
from community_gate.storage.base import (
    CommunityMutation,
    CommunityNameTaken,
    StorageError,
    Store,
    UserMutation,
    UsernameTaken,
    ensure_can_add,
    split_allowed_users,
)

logger = logging.getLogger("uvicorn.error")


def _db_errors(func):
    """Translate ORM / decoding failures into StorageError."""

    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except (BaseORMException, ValidationError) as exc:
            raise StorageError(f"database: {func.__name__} failed") from exc

    return wrapper


def _user_from_row(row: UserRow) -> UserRecord:
    return UserRecord(
        id=row.id,
        username=row.username,
        passwordHash=row.password_hash,
        role=row.role,
        createdAt=row.created_at,
    )


def _community_from_row(row: CommunityRow) -> Community:
    return Community.model_validate({
        "id": row.id,
        "name": row.name,
        "addresses": row.addresses,
        "allowedUsers": row.allowed_users,
        "createdAt": row.created_at,
        "updatedAt": row.updated_at,
    })


def _community_fields(c: Community) -> dict:
    return {
        "name": c.name,
        "addresses": [a.model_dump(mode="json") for a in c.addresses],
        "allowed_users": list(c.allowedUsers),
        "created_at": c.createdAt,
        "updated_at": c.updatedAt,
    }


def _log_from_row(row: AccessLogRow) -> AccessLogEntry:
    return AccessLogEntry(
        id=row.id,
        community=row.community,
        player=row.player,
        action=row.action,
        timestamp=row.timestamp,
    )


class DatabaseStore(Store):
    """
    Writes are serialized by a per-store asyncio.Lock and run inside a
    transaction; rows being rewritten are read with SELECT ... FOR UPDATE
    where the database supports it.
    """

    name = "database"

    def __init__(self, db_url: str, generate_schemas: bool = False):
        self.db_url = db_url
        self.generate_schemas = generate_schemas
        self._lock = asyncio.Lock()

    @_db_errors
    async def init(self) -> None:
        if self.db_url.startswith("sqlite://") and ":memory:" not in self.db_url:
            # SQLite does not create missing parent directories
            Path(self.db_url[len("sqlite://"):].split("?", 1)[0]).parent.mkdir(parents=True, exist_ok=True)
        await init_db(self.db_url, generate_schemas=self.generate_schemas)
        logger.info("[storage] database store connected (generate_schemas=%s)", self.generate_schemas)

    async def close(self) -> None:
        await close_db()

    # ---------------- users ----------------
    @_db_errors
    async def list_users(self) -> List[UserRecord]:
        return [_user_from_row(r) for r in await UserRow.all().order_by("created_at")]

    @_db_errors
    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        row = await UserRow.get_or_none(id=user_id)
        return _user_from_row(row) if row else None

    @_db_errors
    async def find_user(self, username: str) -> Optional[UserRecord]:
        row = await UserRow.filter(username__iexact=username).first()
        return _user_from_row(row) if row else None

    @_db_errors
    async def add_user(self, user: UserRecord) -> UserRecord:
        async with self._lock, in_transaction() as conn:
            if await UserRow.filter(username__iexact=user.username).using_db(conn).exists():
                raise UsernameTaken(user.username)
            try:
                await UserRow.create(
                    using_db=conn,
                    id=user.id,
                    username=user.username,
                    password_hash=user.passwordHash,
                    role=user.role,
                    created_at=user.createdAt,
                )
            except IntegrityError as exc:
                raise UsernameTaken(user.username) from exc
        return user

    @_db_errors
    async def update_user(self, user_id: str, mutate: UserMutation) -> Optional[UserRecord]:
        async with self._lock, in_transaction() as conn:
            row = await UserRow.filter(id=user_id).select_for_update().using_db(conn).first()
            if row is None:
                return None
            user = _user_from_row(row)
            mutate(user)
            row.username = user.username
            row.password_hash = user.passwordHash
            row.role = user.role
            await row.save(using_db=conn, update_fields=["username", "password_hash", "role"])
        return user

    async def _strip_allowed(self, username: str, conn) -> List[str]:
        changed = []
        for row in await CommunityRow.all().select_for_update().using_db(conn):
            community = _community_from_row(row)
            if community.remove_allowed_user(username):
                community.touch()
                row.allowed_users = community.allowedUsers
                row.updated_at = community.updatedAt
                await row.save(using_db=conn, update_fields=["allowed_users", "updated_at"])
                changed.append(row.id)
        return changed

    @_db_errors
    async def delete_user(self, user_id: str) -> Optional[List[str]]:
        async with self._lock, in_transaction() as conn:
            row = await UserRow.filter(id=user_id).select_for_update().using_db(conn).first()
            if row is None:
                return None
            changed = await self._strip_allowed(row.username, conn)
            await row.delete(using_db=conn)
        return changed

    @_db_errors
    async def set_user_role(self, user_id: str, role: str) -> Optional[List[str]]:
        async with self._lock, in_transaction() as conn:
            row = await UserRow.filter(id=user_id).select_for_update().using_db(conn).first()
            if row is None:
                return None
            row.role = role
            await row.save(using_db=conn, update_fields=["role"])
            changed = await self._strip_allowed(row.username, conn) if role != "user" else []
        return changed

    # ---------------- communities ----------------
    @_db_errors
    async def list_communities(self) -> List[Community]:
        return [_community_from_row(r) for r in await CommunityRow.all().order_by("created_at")]

    @_db_errors
    async def get_community(self, community_id: str) -> Optional[Community]:
        row = await CommunityRow.get_or_none(id=community_id)
        return _community_from_row(row) if row else None

    @_db_errors
    async def find_community(self, name: str) -> Optional[Community]:
        row = await CommunityRow.get_or_none(name=name)
        return _community_from_row(row) if row else None

    @_db_errors
    async def add_community(self, community: Community, limit: Optional[int] = None) -> Community:
        async with self._lock, in_transaction() as conn:
            existing = await CommunityRow.all().using_db(conn).count()
            name_taken = await CommunityRow.filter(name=community.name).using_db(conn).exists()
            ensure_can_add(community.name, existing, name_taken, limit)
            users = [_user_from_row(r) for r in await UserRow.all().using_db(conn)]
            community.allowedUsers, _ = split_allowed_users(users, community.allowedUsers)
            try:
                await CommunityRow.create(using_db=conn, id=community.id, **_community_fields(community))
            except IntegrityError as exc:
                raise CommunityNameTaken(community.name) from exc
        return community

    @_db_errors
    async def update_community(self, community_id: str, mutate: CommunityMutation) -> Optional[Community]:
        async with self._lock, in_transaction() as conn:
            row = await CommunityRow.filter(id=community_id).select_for_update().using_db(conn).first()
            if row is None:
                return None
            community = _community_from_row(row)
            mutate(community)
            community.touch()
            row.update_from_dict(_community_fields(community))
            await row.save(using_db=conn)
        return community

    @_db_errors
    async def set_allowed_users(self, community_id: str, requested: List[str]) -> Optional[Tuple[List[str], List[str]]]:
        async with self._lock, in_transaction() as conn:
            row = await CommunityRow.filter(id=community_id).select_for_update().using_db(conn).first()
            if row is None:
                return None
            users = [_user_from_row(r) for r in await UserRow.all().using_db(conn)]
            valid, invalid = split_allowed_users(users, requested)
            community = _community_from_row(row)
            community.allowedUsers = valid
            community.touch()
            row.allowed_users = valid
            row.updated_at = community.updatedAt
            await row.save(using_db=conn, update_fields=["allowed_users", "updated_at"])
        return valid, invalid

    @_db_errors
    async def delete_community(self, community_id: str) -> Optional[int]:
        async with self._lock, in_transaction() as conn:
            row = await CommunityRow.filter(id=community_id).select_for_update().using_db(conn).first()
            if row is None:
                return None
            removed = await AccessLogRow.filter(community=row.name).using_db(conn).delete()
            await row.delete(using_db=conn)
        return removed

    # ---------------- access logs ----------------
    @_db_errors
    async def append_log(self, entry: AccessLogEntry) -> AccessLogEntry:
        await AccessLogRow.create(
            id=entry.id,
            community=entry.community,
            player=entry.player,
            action=entry.action,
            timestamp=entry.timestamp,
        )
        return entry

    @_db_errors
    async def list_logs(self, community: str, limit: int = 100) -> List[AccessLogEntry]:
        rows = await AccessLogRow.filter(community=community).order_by("-timestamp").limit(limit)
        return [_log_from_row(r) for r in rows]

    # ---------------- sweep ----------------
    @_db_errors
    async def purge_expired_codes(self, now: dt.datetime) -> int:
        removed_total = 0
        async with self._lock, in_transaction() as conn:
            for row in await CommunityRow.all().select_for_update().using_db(conn):
                community = _community_from_row(row)
                removed = community.strip_expired_codes(now)
                if removed:
                    row.addresses = [a.model_dump(mode="json") for a in community.addresses]
                    await row.save(using_db=conn, update_fields=["addresses"])
                    removed_total += removed
        return removed_total
