# community_gate/api/routers/users.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from community_gate.api.deps import get_store, require_admin
from community_gate.core.security import hash_password
from community_gate.schemas.user import UserCreateIn, UserOut, UserRecord
from community_gate.storage.base import Store, UsernameTaken

router = APIRouter(prefix="/api/users", tags=["users"])


async def _get_user_or_404(store: Store, user_id: str) -> UserRecord:
    u = await store.get_user(user_id)
    if not u:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="USER_NOT_FOUND")
    return u


@router.get("", response_model=List[UserOut])
async def list_users(admin: UserRecord = Depends(require_admin), store: Store = Depends(get_store)):
    """
    List every account without password hashes (admin only).
    """
    return [UserOut.from_record(u) for u in await store.list_users()]


@router.get("/{user_id}", response_model=UserOut)
async def get_user(user_id: str, admin: UserRecord = Depends(require_admin), store: Store = Depends(get_store)):
    return UserOut.from_record(await _get_user_or_404(store, user_id))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreateIn,
    admin: UserRecord = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """
    Create a regular account (admin only).

    The username is lower-cased before storage and must be unique
    case-insensitively.

    Raises:
        HTTPException (400): If the username is taken (USERNAME_EXISTS)
    """
    try:
        user = await store.add_user(UserRecord(
            username=body.username,
            passwordHash=hash_password(body.password),
            role="user",
        ))
    except UsernameTaken:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "USERNAME_EXISTS", "message": "Username already exists"},
        )
    return {"message": "User added successfully", "id": user.id, "user": UserOut.from_record(user)}


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    current_admin: UserRecord = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """
    Delete an account and remove its username from every allow-list (admin only).

    Raises:
        HTTPException (404): If user not found
        HTTPException (403): If the target is the superuser or the caller (CANNOT_DELETE_*)
    """
    u = await _get_user_or_404(store, user_id)
    if u.role == "superuser":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "CANNOT_DELETE_SUPERUSER", "message": "Cannot remove superuser account"},
        )
    if u.id == current_admin.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "CANNOT_DELETE_SELF", "message": "Cannot remove your own account"},
        )

    updated = await store.delete_user(user_id)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="USER_NOT_FOUND")
    return {"message": "User removed successfully", "updatedCommunities": updated}


@router.put("/{user_id}/role")
async def toggle_role(
    user_id: str,
    current_admin: UserRecord = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """
    Toggle a user between "user" and "admin" (admin only).

    Promotion to admin removes the username from every community's
    allow-list; demotion does not restore it.

    Raises:
        HTTPException (403): If the caller targets themselves (CANNOT_MODIFY_SELF)
        HTTPException (404): If user not found
        HTTPException (403): If the target is the superuser (CANNOT_MODIFY_SUPERUSER)
    """
    if user_id == current_admin.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "CANNOT_MODIFY_SELF", "message": "Cannot modify your own role"},
        )
    u = await _get_user_or_404(store, user_id)
    if u.role == "superuser":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "CANNOT_MODIFY_SUPERUSER", "message": "Cannot modify superuser role"},
        )

    new_role = "user" if u.role == "admin" else "admin"
    updated = await store.set_user_role(user_id, new_role)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="USER_NOT_FOUND")
    return {
        "message": "User role updated successfully",
        "newRole": new_role,
        "username": u.username,
        "updatedCommunities": updated,
    }
