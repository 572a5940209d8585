# community_gate/api/routers/access_logs.py
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from community_gate.api.deps import get_current_user, get_debouncer, get_store
from community_gate.config import settings
from community_gate.core.debounce import AccessDebouncer
from community_gate.schemas.access_log import AccessLogEntry, LogAccessIn
from community_gate.schemas.community import MessageOut
from community_gate.schemas.user import UserRecord
from community_gate.storage.base import Store

logger = logging.getLogger("uvicorn.error")

# Posted by game servers: no session and no CSRF token
ingest_router = APIRouter(prefix="/api", tags=["access-logs"])

router = APIRouter(prefix="/api/communities", tags=["access-logs"])


@ingest_router.post("/log-access", response_model=MessageOut)
async def log_access(
    body: LogAccessIn,
    store: Store = Depends(get_store),
    debouncer: AccessDebouncer = Depends(get_debouncer),
):
    """
    Record an access attempt for a community.

    Attempts by the same player at the same community are debounced: a second
    attempt inside the window is rejected and not logged.

    Raises:
        HTTPException (404): If the community name is unknown (COMMUNITY_NOT_FOUND)
        HTTPException (429): If the attempt falls inside the debounce window (ACCESS_TOO_SOON)
    """
    if not await store.find_community(body.community):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="COMMUNITY_NOT_FOUND")

    allowed, retry_after = await debouncer.hit(body.community, body.player)
    if not allowed:
        logger.info("[access] Debounced attempt community=%s player=%s", body.community, body.player)
        seconds = int(debouncer.window_seconds)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={"code": "ACCESS_TOO_SOON",
                    "message": f"Access attempt too soon. Please wait {seconds} seconds between attempts."},
            headers={"Retry-After": str(int(retry_after) + 1)},
        )

    await store.append_log(AccessLogEntry(community=body.community, player=body.player, action=body.action))
    return {"message": "Access logged successfully"}


@router.get("/{community_name}/logs", response_model=List[AccessLogEntry])
async def get_logs(
    community_name: str,
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    """
    Get the most recent access-log entries for a community, newest first.

    Raises:
        HTTPException (404): If the community name is unknown
        HTTPException (403): If a regular user is not on the allow-list
    """
    community = await store.find_community(community_name)
    if not community:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="COMMUNITY_NOT_FOUND")
    if not community.is_visible_to(user.username, user.role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="FORBIDDEN_COMMUNITY")
    return await store.list_logs(community_name, limit=settings.access_log_limit)
