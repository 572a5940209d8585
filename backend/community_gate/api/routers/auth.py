# community_gate/api/routers/auth.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from community_gate.api.deps import clear_session_user, get_current_user, get_store
from community_gate.core.security import CSRF_SESSION_KEY, hash_password, new_csrf_token, verify_password
from community_gate.schemas.auth import LoginRequest, LoginResponse
from community_gate.schemas.community import MessageOut
from community_gate.schemas.user import ChangePasswordIn, UserRecord
from community_gate.storage.base import Store

logger = logging.getLogger("uvicorn.error")

router = APIRouter(tags=["auth"])


@router.get("/csrf-token")
async def csrf_token(request: Request):
    """
    Issue the CSRF token for the current session.

    The token is minted on first use and then reused for the lifetime of the
    session. Clients send it back in the X-CSRF-Token header on every
    POST/PUT/DELETE request.

    Returns:
        dict: {"csrfToken": str}
    """
    token = request.session.get(CSRF_SESSION_KEY)
    if not token:
        token = new_csrf_token()
        request.session[CSRF_SESSION_KEY] = token
    return {"csrfToken": token}


@router.post("/api/login", response_model=LoginResponse)
async def login(payload: LoginRequest, request: Request, store: Store = Depends(get_store)):
    """
    Authenticate user and populate the session.

    The username is compared case-insensitively. On success the session
    carries userId, username and userRole.

    Raises:
        HTTPException (401): If credentials are invalid (AUTH_INVALID_CREDENTIALS)
    """
    user = await store.find_user(payload.username.strip())
    if not user or not verify_password(payload.password, user.passwordHash):
        logger.info("[auth] Failed login for username=%s", payload.username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail={"code": "AUTH_INVALID_CREDENTIALS", "message": "Invalid credentials"})

    request.session["userId"] = user.id
    request.session["username"] = user.username
    request.session["userRole"] = user.role
    return {"message": "Logged in successfully",
            "user": {"id": user.id, "username": user.username, "role": user.role}}


@router.post("/api/logout", response_model=MessageOut)
async def logout(request: Request, user: UserRecord = Depends(get_current_user)):
    """
    Destroy the current session (including its CSRF token).
    """
    request.session.clear()
    return {"message": "Logged out successfully"}


@router.get("/api/check-auth")
async def check_auth(request: Request, store: Store = Depends(get_store)):
    """
    Report the identity of the session user.

    The account is re-read from storage, so the reported role matches the
    one the route guards apply.

    Returns:
        200 {"authenticated": true, userId, username, role} when logged in,
        401 {"authenticated": false} otherwise.
    """
    user_id = request.session.get("userId")
    user = await store.get_user(user_id) if user_id else None
    if user:
        request.session["userRole"] = user.role
        return {
            "authenticated": True,
            "userId": user.id,
            "username": user.username,
            "role": user.role,
        }
    if user_id:
        clear_session_user(request)
    return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"authenticated": False})


@router.post("/api/change-password", response_model=MessageOut)
async def change_password(
    body: ChangePasswordIn,
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    """
    Change the logged-in user's own password.

    Raises:
        HTTPException (401): If currentPassword is wrong (AUTH_INVALID_CREDENTIALS)
    """
    if not verify_password(body.currentPassword, user.passwordHash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail={"code": "AUTH_INVALID_CREDENTIALS", "message": "Current password is incorrect"})
    new_hash = hash_password(body.newPassword)

    def set_hash(u: UserRecord) -> None:
        u.passwordHash = new_hash

    if await store.update_user(user.id, set_hash) is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="AUTH_REQUIRED")
    return {"message": "Password changed successfully"}
