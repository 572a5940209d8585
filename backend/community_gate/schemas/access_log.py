# community_gate/schemas/access_log.py
"""
Pydantic schemas for access-log ingestion and retrieval.
"""
import datetime as dt

from pydantic import BaseModel, Field, constr, field_validator

from community_gate.core.clock import as_utc, utc_now
from community_gate.schemas.base import new_id
from community_gate.schemas.community import PlayerId


class AccessLogEntry(BaseModel):
    """
    One access attempt reported by a game server.
    Append-only; removed together with its community.
    """
    id: str = Field(default_factory=new_id)
    community: str  # Community name (not id)
    player: str
    action: str
    timestamp: dt.datetime = Field(default_factory=utc_now)

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, v: dt.datetime) -> dt.datetime:
        return as_utc(v)


class LogAccessIn(BaseModel):
    """
    Request model for POST /api/log-access (posted without a session).
    """
    community: constr(strip_whitespace=True, min_length=1, max_length=64)
    player: PlayerId
    action: constr(strip_whitespace=True, min_length=1, max_length=200)
