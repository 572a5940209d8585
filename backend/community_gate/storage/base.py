# community_gate/storage/base.py
"""
Persistence adapter contract.

Every backend stores three collections: users, communities (each community
is one document holding its whole address tree) and access logs. Route
handlers only talk to this interface, so the backends are interchangeable.

Every read-modify-write happens inside the store (update_user,
update_community, set_allowed_users, the cascades and the sweep), so
overlapping requests never write back stale copies.
"""
from __future__ import annotations

import abc
import datetime as dt
from typing import Callable, Iterable, List, Optional, Tuple

from community_gate.schemas.access_log import AccessLogEntry
from community_gate.schemas.community import Community
from community_gate.schemas.user import UserRecord

UserMutation = Callable[[UserRecord], None]
CommunityMutation = Callable[[Community], None]


class StorageError(Exception):
    """Raised by backends for any I/O, decoding or database failure."""


class ConflictError(Exception):
    """A write rejected because it would break a uniqueness or capacity rule."""


class UsernameTaken(ConflictError):
    pass


class CommunityNameTaken(ConflictError):
    pass


class CommunityLimitReached(ConflictError):
    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Maximum number of communities ({limit}) reached")


class Store(abc.ABC):
    name: str = "abstract"

    async def init(self) -> None:
        """Prepare the backend (create files / connect)."""

    async def close(self) -> None:
        """Release backend resources."""

    # ---------------- users ----------------
    @abc.abstractmethod
    async def list_users(self) -> List[UserRecord]: ...

    @abc.abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserRecord]: ...

    @abc.abstractmethod
    async def find_user(self, username: str) -> Optional[UserRecord]:
        """Case-insensitive lookup by username."""

    @abc.abstractmethod
    async def add_user(self, user: UserRecord) -> UserRecord:
        """
        Raises:
            UsernameTaken: If the username exists (case-insensitively)
        """

    @abc.abstractmethod
    async def update_user(self, user_id: str, mutate: UserMutation) -> Optional[UserRecord]:
        """
        Apply `mutate` to the stored user and write it back atomically.
        If `mutate` raises, nothing is written.

        Returns:
            The updated user, or None when the user does not exist.
        """

    @abc.abstractmethod
    async def delete_user(self, user_id: str) -> Optional[List[str]]:
        """
        Delete a user and strip its username from every allow-list.

        Returns:
            Ids of the communities whose allow-list changed, or None when the
            user does not exist.
        """

    @abc.abstractmethod
    async def set_user_role(self, user_id: str, role: str) -> Optional[List[str]]:
        """
        Change a user's role. Any role other than "user" also strips the
        username from every allow-list.

        Returns:
            Ids of the communities whose allow-list changed, or None when the
            user does not exist.
        """

    # ---------------- communities ----------------
    @abc.abstractmethod
    async def list_communities(self) -> List[Community]: ...

    @abc.abstractmethod
    async def get_community(self, community_id: str) -> Optional[Community]: ...

    @abc.abstractmethod
    async def find_community(self, name: str) -> Optional[Community]:
        """Exact lookup by community name."""

    @abc.abstractmethod
    async def add_community(self, community: Community, limit: Optional[int] = None) -> Community:
        """
        Insert a community. Names in allowedUsers that are not existing
        regular accounts are dropped.

        Raises:
            CommunityLimitReached: If `limit` communities already exist
            CommunityNameTaken: If the name is in use
        """

    @abc.abstractmethod
    async def update_community(self, community_id: str, mutate: CommunityMutation) -> Optional[Community]:
        """
        Apply `mutate` to the stored community, stamp updatedAt and write it
        back atomically. If `mutate` raises, nothing is written.

        Returns:
            The updated community, or None when it does not exist.
        """

    @abc.abstractmethod
    async def set_allowed_users(self, community_id: str, requested: List[str]) -> Optional[Tuple[List[str], List[str]]]:
        """
        Replace a community's allow-list with the requested names that are
        existing regular accounts.

        Returns:
            (valid, invalid) as computed by split_allowed_users, or None when
            the community does not exist.
        """

    @abc.abstractmethod
    async def delete_community(self, community_id: str) -> Optional[int]:
        """
        Delete a community together with all of its access-log entries.

        Returns:
            Number of log entries removed, or None when the community does
            not exist.
        """

    # ---------------- access logs ----------------
    @abc.abstractmethod
    async def append_log(self, entry: AccessLogEntry) -> AccessLogEntry: ...

    @abc.abstractmethod
    async def list_logs(self, community: str, limit: int = 100) -> List[AccessLogEntry]:
        """Most recent entries for a community name, newest first."""

    # ---------------- sweep ----------------
    @abc.abstractmethod
    async def purge_expired_codes(self, now: dt.datetime) -> int:
        """
        Remove every code whose expiresAt is not after `now`.
        Only communities that actually changed are written back.

        Returns:
            Number of codes removed.
        """


def newest_first(entries: List[AccessLogEntry], limit: int) -> List[AccessLogEntry]:
    return sorted(entries, key=lambda e: e.timestamp, reverse=True)[:limit]


def ensure_can_add(name: str, existing: int, name_taken: bool, limit: Optional[int]) -> None:
    if limit is not None and existing >= limit:
        raise CommunityLimitReached(limit)
    if name_taken:
        raise CommunityNameTaken(name)


def split_allowed_users(users: Iterable[UserRecord], requested: Iterable[str]) -> Tuple[List[str], List[str]]:
    """
    Split requested usernames into existing regular accounts and everything else.

    Matching is case-insensitive; valid names are returned as stored.
    Admins, the superuser and unknown names are reported as invalid.
    """
    by_name = {u.username.casefold(): u for u in users}
    valid: List[str] = []
    invalid: List[str] = []
    for raw in requested:
        name = raw.strip().lower()
        if not name:
            continue
        user = by_name.get(name.casefold())
        if user and user.role == "user":
            if user.username not in valid:
                valid.append(user.username)
        else:
            invalid.append(name)
    return valid, invalid
