# community_gate/schemas/community.py
"""
Pydantic schemas for the community tree.

Ownership is strictly hierarchical: Community -> Address -> {Person, Code}.
The whole tree of one community is persisted as a single document.
"""
import datetime as dt
from typing import Annotated, List, Optional

from pydantic import BaseModel, BeforeValidator, Field, StringConstraints, constr, field_validator

from community_gate.core.clock import as_utc, utc_now
from community_gate.schemas.base import is_admin_role, new_id


def _player_id_to_str(v):
    # Game servers send numeric player ids
    if isinstance(v, int) and not isinstance(v, bool):
        return str(v)
    return v


PlayerId = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=64),
    BeforeValidator(_player_id_to_str),
]


class Person(BaseModel):
    """A resident registered at an address."""
    id: str = Field(default_factory=new_id)
    username: str
    playerId: PlayerId


class Code(BaseModel):
    """A time-limited access code; removed by the sweeper once expiresAt has passed."""
    id: str = Field(default_factory=new_id)
    description: str
    code: str
    expiresAt: dt.datetime
    createdAt: dt.datetime = Field(default_factory=utc_now)

    @field_validator("expiresAt", "createdAt")
    @classmethod
    def _utc(cls, v: dt.datetime) -> dt.datetime:
        return as_utc(v)

    def is_expired(self, now: dt.datetime) -> bool:
        return self.expiresAt <= now


class Address(BaseModel):
    id: str = Field(default_factory=new_id)
    street: str
    people: List[Person] = Field(default_factory=list)
    codes: List[Code] = Field(default_factory=list)
    createdAt: dt.datetime = Field(default_factory=utc_now)

    @field_validator("createdAt")
    @classmethod
    def _utc(cls, v: dt.datetime) -> dt.datetime:
        return as_utc(v)

    @field_validator("people", "codes", mode="before")
    @classmethod
    def _none_is_empty(cls, v):
        return [] if v is None else v


class Community(BaseModel):
    """
    A tenant / residential group.

    allowedUsers holds usernames (not ids) of non-admin accounts allowed to
    view and manage this community.
    """
    id: str = Field(default_factory=new_id)
    name: str
    addresses: List[Address] = Field(default_factory=list)
    allowedUsers: List[str] = Field(default_factory=list)
    createdAt: dt.datetime = Field(default_factory=utc_now)
    updatedAt: Optional[dt.datetime] = None

    @field_validator("createdAt", "updatedAt")
    @classmethod
    def _utc(cls, v: Optional[dt.datetime]) -> Optional[dt.datetime]:
        return as_utc(v) if v is not None else None

    @field_validator("addresses", "allowedUsers", mode="before")
    @classmethod
    def _none_is_empty(cls, v):
        return [] if v is None else v

    def touch(self) -> None:
        self.updatedAt = utc_now()

    def find_address(self, address_id: str) -> Optional[Address]:
        return next((a for a in self.addresses if a.id == address_id), None)

    def is_visible_to(self, username: str, role: str) -> bool:
        if is_admin_role(role):
            return True
        name = username.casefold()
        return any(u.casefold() == name for u in self.allowedUsers)

    def remove_allowed_user(self, username: str) -> bool:
        """Drop `username` from the allow-list; returns True if it was present."""
        name = username.casefold()
        kept = [u for u in self.allowedUsers if u.casefold() != name]
        changed = len(kept) != len(self.allowedUsers)
        self.allowedUsers = kept
        return changed

    def strip_expired_codes(self, now: dt.datetime) -> int:
        """Keep only codes with expiresAt > now; returns how many were removed."""
        removed = 0
        for address in self.addresses:
            kept = [c for c in address.codes if not c.is_expired(now)]
            removed += len(address.codes) - len(kept)
            address.codes = kept
        return removed


# ========== Input models ==========
class CommunityCreateIn(BaseModel):
    name: str
    allowedUsers: List[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _valid_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name is required")
        if any(ch.isspace() for ch in v):
            raise ValueError("name must not contain spaces")
        if len(v) > 64:
            raise ValueError("name must be at most 64 characters")
        return v


class AllowedUsersIn(BaseModel):
    allowedUsers: List[str]


class AllowedUsersOut(BaseModel):
    message: Optional[str] = None
    warning: Optional[str] = None
    validUsers: List[str]
    invalidUsers: List[str] = Field(default_factory=list)


class AddressCreateIn(BaseModel):
    street: constr(strip_whitespace=True, min_length=1, max_length=200)


class PersonCreateIn(BaseModel):
    username: constr(strip_whitespace=True, min_length=1, max_length=64)
    playerId: PlayerId


class CodeCreateIn(BaseModel):
    description: constr(strip_whitespace=True, min_length=1, max_length=200)
    code: constr(strip_whitespace=True, min_length=1, max_length=64)
    expiresAt: dt.datetime  # Naive values are taken as UTC

    @field_validator("expiresAt")
    @classmethod
    def _utc(cls, v: dt.datetime) -> dt.datetime:
        return as_utc(v)


class MessageOut(BaseModel):
    message: str


class CommunityFeedOut(BaseModel):
    communities: List[Community]
