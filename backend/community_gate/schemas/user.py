# community_gate/schemas/user.py
"""
Pydantic schemas for user accounts.
Defines the persisted user record and request/response models for
account management endpoints.
"""
import datetime as dt
from typing import Optional

from pydantic import BaseModel, Field, constr, field_validator

from community_gate.core.clock import as_utc, utc_now
from community_gate.schemas.base import Role, new_id


class UserRecord(BaseModel):
    """
    Persisted user account.
    Username is stored lower-cased; passwordHash is never returned by the API.
    """
    id: str = Field(default_factory=new_id)
    username: str
    passwordHash: str
    role: Role = "user"
    createdAt: dt.datetime = Field(default_factory=utc_now)

    @field_validator("createdAt")
    @classmethod
    def _utc(cls, v: dt.datetime) -> dt.datetime:
        return as_utc(v)


class UserOut(BaseModel):
    """
    User information returned by admin endpoints (no password hash).
    """
    id: str
    username: str
    role: Role
    createdAt: Optional[dt.datetime] = None

    @classmethod
    def from_record(cls, u: UserRecord) -> "UserOut":
        return cls(id=u.id, username=u.username, role=u.role, createdAt=u.createdAt)


class UserCreateIn(BaseModel):
    """
    Request model for admin-created accounts. New accounts always get role "user".
    """
    username: constr(strip_whitespace=True, min_length=1, max_length=64)
    password: str = Field(min_length=6)

    @field_validator("username")
    @classmethod
    def _no_spaces(cls, v: str) -> str:
        if any(ch.isspace() for ch in v):
            raise ValueError("username must not contain whitespace")
        return v.lower()


class ChangePasswordIn(BaseModel):
    """
    Request model for changing the logged-in user's own password.
    """
    currentPassword: str
    newPassword: str = Field(min_length=6)
