# community_gate/storage/json_store.py
"""
File-based persistence backends.

- JsonFileStore: a single flat JSON file {users, communities, accessLogs}
- JsonCollectionStore: one JSON file per collection

Each mutation is a read-modify-write of whole collections, serialized by a
per-store asyncio.Lock. Files are replaced atomically (temp file + rename) so
readers never see a half-written file.
"""
from __future__ import annotations

import abc
import asyncio
import datetime as dt
import json
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from community_gate.schemas.access_log import AccessLogEntry
from community_gate.schemas.community import Community
from community_gate.schemas.user import UserRecord
from community_gate.storage.base import (
    CommunityMutation,
    StorageError,
    Store,
    UserMutation,
    UsernameTaken,
    ensure_can_add,
    newest_first,
    split_allowed_users,
)

logger = logging.getLogger("uvicorn.error")

USERS = "users"
COMMUNITIES = "communities"
LOGS = "accessLogs"
ALL_COLLECTIONS = (USERS, COMMUNITIES, LOGS)

RecordType = TypeVar("RecordType", bound=BaseModel)


def _atomic_write_json(path: Path, payload) -> None:
    tmp = path.with_name(path.name + ".tmp")
    with tmp.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, ensure_ascii=False)
    os.replace(tmp, path)


def _read_json(path: Path, default):
    if not path.exists():
        return default
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def _decode(model: Type[RecordType], items: Iterable[dict]) -> List[RecordType]:
    return [model.model_validate(item) for item in items]


def _encode(records: Iterable[BaseModel]) -> List[dict]:
    return [r.model_dump(mode="json") for r in records]


class _JsonStore(Store):
    """Shared collection logic; subclasses decide how collections map to files."""

    def __init__(self):
        self._lock = asyncio.Lock()

    # ---- file access (run in a worker thread) ----
    @abc.abstractmethod
    def _load(self, names: Iterable[str]) -> Dict[str, list]: ...

    @abc.abstractmethod
    def _dump(self, data: Dict[str, list]) -> None: ...

    async def _read(self, *names: str) -> Dict[str, list]:
        try:
            return await asyncio.to_thread(self._load, names)
        except (OSError, ValueError) as exc:
            raise StorageError(f"{self.name}: cannot read {', '.join(names)}") from exc

    async def _write(self, data: Dict[str, list]) -> None:
        try:
            await asyncio.to_thread(self._dump, data)
        except (OSError, TypeError, ValueError) as exc:
            raise StorageError(f"{self.name}: cannot write {', '.join(data)}") from exc

    async def _users(self, data: Optional[dict] = None) -> List[UserRecord]:
        data = data if data is not None else await self._read(USERS)
        try:
            return _decode(UserRecord, data[USERS])
        except ValidationError as exc:
            raise StorageError(f"{self.name}: malformed user record") from exc

    async def _communities(self, data: Optional[dict] = None) -> List[Community]:
        data = data if data is not None else await self._read(COMMUNITIES)
        try:
            return _decode(Community, data[COMMUNITIES])
        except ValidationError as exc:
            raise StorageError(f"{self.name}: malformed community record") from exc

    async def _logs(self, data: Optional[dict] = None) -> List[AccessLogEntry]:
        data = data if data is not None else await self._read(LOGS)
        try:
            return _decode(AccessLogEntry, data[LOGS])
        except ValidationError as exc:
            raise StorageError(f"{self.name}: malformed access log entry") from exc

    # ---------------- users ----------------
    async def list_users(self) -> List[UserRecord]:
        return await self._users()

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        return next((u for u in await self._users() if u.id == user_id), None)

    async def find_user(self, username: str) -> Optional[UserRecord]:
        name = username.casefold()
        return next((u for u in await self._users() if u.username.casefold() == name), None)

    async def add_user(self, user: UserRecord) -> UserRecord:
        async with self._lock:
            users = await self._users()
            name = user.username.casefold()
            if any(u.username.casefold() == name for u in users):
                raise UsernameTaken(user.username)
            users.append(user)
            await self._write({USERS: _encode(users)})
        return user

    async def update_user(self, user_id: str, mutate: UserMutation) -> Optional[UserRecord]:
        async with self._lock:
            users = await self._users()
            target = next((u for u in users if u.id == user_id), None)
            if target is None:
                return None
            mutate(target)
            await self._write({USERS: _encode(users)})
        return target

    def _strip_allowed(self, communities: List[Community], username: str) -> List[str]:
        changed = []
        for c in communities:
            if c.remove_allowed_user(username):
                c.touch()
                changed.append(c.id)
        return changed

    async def delete_user(self, user_id: str) -> Optional[List[str]]:
        async with self._lock:
            data = await self._read(USERS, COMMUNITIES)
            users = await self._users(data)
            target = next((u for u in users if u.id == user_id), None)
            if target is None:
                return None
            communities = await self._communities(data)
            changed = self._strip_allowed(communities, target.username)
            remaining = [u for u in users if u.id != user_id]
            await self._write({USERS: _encode(remaining), COMMUNITIES: _encode(communities)})
        return changed

    async def set_user_role(self, user_id: str, role: str) -> Optional[List[str]]:
        async with self._lock:
            data = await self._read(USERS, COMMUNITIES)
            users = await self._users(data)
            target = next((u for u in users if u.id == user_id), None)
            if target is None:
                return None
            target.role = role
            changes = {USERS: _encode(users)}
            changed: List[str] = []
            if role != "user":
                communities = await self._communities(data)
                changed = self._strip_allowed(communities, target.username)
                if changed:
                    changes[COMMUNITIES] = _encode(communities)
            await self._write(changes)
        return changed

    # ---------------- communities ----------------
    async def list_communities(self) -> List[Community]:
        return await self._communities()

    async def get_community(self, community_id: str) -> Optional[Community]:
        return next((c for c in await self._communities() if c.id == community_id), None)

    async def find_community(self, name: str) -> Optional[Community]:
        return next((c for c in await self._communities() if c.name == name), None)

    async def add_community(self, community: Community, limit: Optional[int] = None) -> Community:
        async with self._lock:
            data = await self._read(USERS, COMMUNITIES)
            communities = await self._communities(data)
            ensure_can_add(community.name, len(communities),
                           any(c.name == community.name for c in communities), limit)
            community.allowedUsers, _ = split_allowed_users(await self._users(data), community.allowedUsers)
            communities.append(community)
            await self._write({COMMUNITIES: _encode(communities)})
        return community

    async def update_community(self, community_id: str, mutate: CommunityMutation) -> Optional[Community]:
        async with self._lock:
            communities = await self._communities()
            target = next((c for c in communities if c.id == community_id), None)
            if target is None:
                return None
            mutate(target)
            target.touch()
            await self._write({COMMUNITIES: _encode(communities)})
        return target

    async def set_allowed_users(self, community_id: str, requested: List[str]) -> Optional[Tuple[List[str], List[str]]]:
        async with self._lock:
            data = await self._read(USERS, COMMUNITIES)
            communities = await self._communities(data)
            target = next((c for c in communities if c.id == community_id), None)
            if target is None:
                return None
            valid, invalid = split_allowed_users(await self._users(data), requested)
            target.allowedUsers = valid
            target.touch()
            await self._write({COMMUNITIES: _encode(communities)})
        return valid, invalid

    async def delete_community(self, community_id: str) -> Optional[int]:
        async with self._lock:
            data = await self._read(COMMUNITIES, LOGS)
            communities = await self._communities(data)
            target = next((c for c in communities if c.id == community_id), None)
            if target is None:
                return None
            logs = await self._logs(data)
            kept_logs = [e for e in logs if e.community != target.name]
            await self._write({
                COMMUNITIES: _encode(c for c in communities if c.id != community_id),
                LOGS: _encode(kept_logs),
            })
        return len(logs) - len(kept_logs)

    # ---------------- access logs ----------------
    async def append_log(self, entry: AccessLogEntry) -> AccessLogEntry:
        async with self._lock:
            logs = await self._logs()
            logs.append(entry)
            await self._write({LOGS: _encode(logs)})
        return entry

    async def list_logs(self, community: str, limit: int = 100) -> List[AccessLogEntry]:
        return newest_first([e for e in await self._logs() if e.community == community], limit)

    # ---------------- sweep ----------------
    async def purge_expired_codes(self, now: dt.datetime) -> int:
        async with self._lock:
            communities = await self._communities()
            removed = sum(c.strip_expired_codes(now) for c in communities)
            if removed:
                await self._write({COMMUNITIES: _encode(communities)})
        return removed


class JsonFileStore(_JsonStore):
    """All collections in one flat JSON document."""

    name = "json"

    def __init__(self, path: str | os.PathLike):
        super().__init__()
        self.path = Path(path)

    async def init(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if not self.path.exists():
                _atomic_write_json(self.path, {n: [] for n in ALL_COLLECTIONS})
        except OSError as exc:
            raise StorageError(f"{self.name}: cannot initialise {self.path}") from exc
        logger.info("[storage] JSON file store at %s", self.path)

    def _load(self, names: Iterable[str]) -> Dict[str, list]:
        doc = _read_json(self.path, {})
        return {n: doc.get(n) or [] for n in names}

    def _dump(self, data: Dict[str, list]) -> None:
        doc = _read_json(self.path, {})
        doc.update(data)
        _atomic_write_json(self.path, doc)


class JsonCollectionStore(_JsonStore):
    """One JSON file per collection inside `directory`."""

    name = "json-collections"
    FILES = {USERS: "users.json", COMMUNITIES: "communities.json", LOGS: "access_logs.json"}

    def __init__(self, directory: str | os.PathLike):
        super().__init__()
        self.directory = Path(directory)

    def _path(self, collection: str) -> Path:
        return self.directory / self.FILES[collection]

    async def init(self) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            for collection in ALL_COLLECTIONS:
                path = self._path(collection)
                if not path.exists():
                    _atomic_write_json(path, [])
        except OSError as exc:
            raise StorageError(f"{self.name}: cannot initialise {self.directory}") from exc
        logger.info("[storage] JSON collection store in %s", self.directory)

    def _load(self, names: Iterable[str]) -> Dict[str, list]:
        return {n: _read_json(self._path(n), []) for n in names}

    def _dump(self, data: Dict[str, list]) -> None:
        for collection, items in data.items():
            _atomic_write_json(self._path(collection), items)
