# community_gate/api/deps.py
from fastapi import Depends, HTTPException, Request, status

from community_gate.core.debounce import AccessDebouncer
from community_gate.core.security import CSRF_HEADER, CSRF_SESSION_KEY, tokens_match
from community_gate.schemas.base import is_admin_role
from community_gate.schemas.community import Community
from community_gate.schemas.user import UserRecord
from community_gate.storage.base import Store

UNSAFE_METHODS = ("POST", "PUT", "PATCH", "DELETE")


def get_store(request: Request) -> Store:
    """The storage backend selected at startup (kept on app.state)."""
    return request.app.state.store


def get_debouncer(request: Request) -> AccessDebouncer:
    return request.app.state.debouncer


def clear_session_user(request: Request) -> None:
    """Drop the identity keys of a stale session (the CSRF token is kept)."""
    for key in ("userId", "username", "userRole"):
        request.session.pop(key, None)


async def get_current_user(request: Request, store: Store = Depends(get_store)) -> UserRecord:
    """
    FastAPI dependency to get the current authenticated user.

    The session cookie carries userId; the account is re-read from storage on
    every request so role changes and deletions take effect immediately.

    Raises:
        HTTPException (401): If the session has no user (AUTH_REQUIRED)
        HTTPException (401): If the session's user no longer exists (AUTH_REQUIRED)
    """
    user_id = request.session.get("userId")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="AUTH_REQUIRED")

    user = await store.get_user(user_id)
    if not user:
        clear_session_user(request)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="AUTH_REQUIRED")
    return user


async def require_admin(current: UserRecord = Depends(get_current_user)) -> UserRecord:
    """
    FastAPI dependency to ensure the current user is an admin or the superuser.

    Raises:
        HTTPException (403): If user is a regular user (FORBIDDEN_ADMIN_ONLY)
        HTTPException (401): If user is not authenticated (from get_current_user)
    """
    if not is_admin_role(current.role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="FORBIDDEN_ADMIN_ONLY")
    return current


async def verify_csrf(request: Request) -> None:
    """
    Reject mutating requests whose X-CSRF-Token header does not match the
    token stored in the session (issued by GET /csrf-token).
    """
    if request.method not in UNSAFE_METHODS:
        return
    provided = request.headers.get(CSRF_HEADER)
    if not tokens_match(provided, request.session.get(CSRF_SESSION_KEY)):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="CSRF_TOKEN_INVALID")


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def page_rate_limit(request: Request) -> None:
    """Fixed-window limit on page-serving routes, keyed by client address."""
    allowed, retry_after = request.app.state.page_limiter.hit(client_key(request))
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={"code": "RATE_LIMITED", "message": "Too many requests, please try again later."},
            headers={"Retry-After": str(int(retry_after) + 1)},
        )


async def get_visible_community(
    community_id: str,
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
) -> Community:
    """
    Resolve the {community_id} path parameter to a community the caller may manage.

    Raises:
        HTTPException (404): If the community does not exist (COMMUNITY_NOT_FOUND)
        HTTPException (403): If a regular user is not on the allow-list (FORBIDDEN_COMMUNITY)
    """
    community = await store.get_community(community_id)
    if not community:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="COMMUNITY_NOT_FOUND")
    if not community.is_visible_to(user.username, user.role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="FORBIDDEN_COMMUNITY")
    return community
