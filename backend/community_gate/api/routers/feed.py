# community_gate/api/routers/feed.py
"""
Read-only snapshot of every community for game servers.

Game servers read addresses, residents and active codes from here. The feed
is rate-limited like the pages and needs the shared key from GAME_API_KEY;
while no key is configured the route answers 404.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from community_gate.api.deps import get_store, page_rate_limit
from community_gate.config import settings
from community_gate.core.security import API_KEY_HEADER, tokens_match
from community_gate.schemas.community import CommunityFeedOut
from community_gate.storage.base import Store

logger = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/api", tags=["game-feed"])


async def require_game_key(request: Request) -> None:
    """
    Raises:
        HTTPException (404): If no key is configured (FEED_DISABLED)
        HTTPException (401): If the X-API-Key header is missing or wrong (API_KEY_INVALID)
    """
    if not settings.game_api_key:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="FEED_DISABLED")
    if not tokens_match(request.headers.get(API_KEY_HEADER), settings.game_api_key):
        logger.info("[feed] Rejected key from %s", request.client.host if request.client else "unknown")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="API_KEY_INVALID")


@router.get("", response_model=CommunityFeedOut,
            dependencies=[Depends(page_rate_limit), Depends(require_game_key)])
async def game_feed(store: Store = Depends(get_store)):
    return {"communities": await store.list_communities()}
