# community_gate/api/routers/communities.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from community_gate.api.deps import get_current_user, get_store, get_visible_community, require_admin
from community_gate.config import settings
from community_gate.schemas.community import (
    AllowedUsersIn,
    AllowedUsersOut,
    Community,
    CommunityCreateIn,
)
from community_gate.schemas.user import UserRecord
from community_gate.storage.base import CommunityLimitReached, CommunityNameTaken, Store

router = APIRouter(prefix="/api/communities", tags=["communities"])


@router.get("", response_model=List[Community])
async def list_communities(
    user: UserRecord = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    """
    Get the communities visible to the authenticated user.

    Admins and the superuser see every community; regular users only see
    communities whose allow-list contains their username.
    """
    communities = await store.list_communities()
    return [c for c in communities if c.is_visible_to(user.username, user.role)]


@router.post("", response_model=Community, status_code=status.HTTP_201_CREATED)
async def create_community(
    body: CommunityCreateIn,
    admin: UserRecord = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """
    Create a community (admin only).

    Args:
        body: Request body containing:
            - name: str (no whitespace, unique)
            - allowedUsers: list[str] (optional; invalid names are dropped)

    Returns:
        Community: The created community with generated id, empty address list

    Raises:
        HTTPException (400): If the community cap is reached (COMMUNITY_LIMIT_REACHED)
        HTTPException (400): If the name is taken (COMMUNITY_EXISTS)
    """
    try:
        return await store.add_community(
            Community(name=body.name, allowedUsers=body.allowedUsers),
            limit=settings.max_communities,
        )
    except CommunityLimitReached as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "COMMUNITY_LIMIT_REACHED", "message": str(exc)},
        )
    except CommunityNameTaken:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "COMMUNITY_EXISTS", "message": "A community with this name already exists"},
        )


@router.get("/{community_id}", response_model=Community)
async def get_community(community: Community = Depends(get_visible_community)):
    return community


@router.delete("/{community_id}")
async def delete_community(
    community_id: str,
    admin: UserRecord = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """
    Delete a community and every access-log entry recorded for it (admin only).

    Raises:
        HTTPException (404): If the community does not exist
    """
    removed_logs = await store.delete_community(community_id)
    if removed_logs is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="COMMUNITY_NOT_FOUND")
    return {"message": "Community and associated logs deleted successfully", "deletedLogs": removed_logs}


@router.put("/{community_id}/allowed-users", response_model=AllowedUsersOut, response_model_exclude_none=True)
async def update_allowed_users(
    community_id: str,
    body: AllowedUsersIn,
    admin: UserRecord = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """
    Replace a community's allow-list (admin only).

    Only existing regular accounts are kept. Admin / superuser / unknown
    usernames are excluded and listed in invalidUsers together with a warning.

    Raises:
        HTTPException (404): If the community does not exist
    """
    result = await store.set_allowed_users(community_id, body.allowedUsers)
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="COMMUNITY_NOT_FOUND")

    valid, invalid = result
    if invalid:
        return {"warning": f"The following users were not added: {', '.join(invalid)}",
                "validUsers": valid, "invalidUsers": invalid}
    return {"message": "Allowed users updated successfully", "validUsers": valid, "invalidUsers": []}
