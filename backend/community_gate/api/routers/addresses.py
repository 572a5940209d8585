# community_gate/api/routers/addresses.py
"""
Address, resident and access-code management inside one community.

Every route resolves {community_id} through get_visible_community, so regular
users can only touch communities they are allow-listed for. Changes are
applied with Store.update_community, which re-reads the community and writes
it back as one atomic step.
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from community_gate.api.deps import get_store, get_visible_community
from community_gate.schemas.community import (
    Address,
    AddressCreateIn,
    Code,
    CodeCreateIn,
    Community,
    MessageOut,
    Person,
    PersonCreateIn,
)
from community_gate.storage.base import CommunityMutation, Store

router = APIRouter(prefix="/api/communities/{community_id}/addresses", tags=["addresses"])


def _get_address(community: Community, address_id: str) -> Address:
    address = community.find_address(address_id)
    if not address:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="ADDRESS_NOT_FOUND")
    return address


async def _update(store: Store, community: Community, mutate: CommunityMutation) -> None:
    # The community may have been deleted since get_visible_community read it
    if await store.update_community(community.id, mutate) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="COMMUNITY_NOT_FOUND")


@router.get("", response_model=List[Address])
async def list_addresses(community: Community = Depends(get_visible_community)):
    return community.addresses


@router.post("", response_model=Address, status_code=status.HTTP_201_CREATED)
async def add_address(
    body: AddressCreateIn,
    community: Community = Depends(get_visible_community),
    store: Store = Depends(get_store),
):
    address = Address(street=body.street)
    await _update(store, community, lambda c: c.addresses.append(address))
    return address


@router.delete("/{address_id}", response_model=MessageOut)
async def delete_address(
    address_id: str,
    community: Community = Depends(get_visible_community),
    store: Store = Depends(get_store),
):
    """
    Remove an address together with its residents and codes.

    Raises:
        HTTPException (404): If the address does not exist in this community
    """
    def remove(c: Community) -> None:
        _get_address(c, address_id)
        c.addresses = [a for a in c.addresses if a.id != address_id]

    await _update(store, community, remove)
    return {"message": "Address deleted successfully"}


# ===== Residents =====
@router.post("/{address_id}/people", response_model=Person, status_code=status.HTTP_201_CREATED)
async def add_person(
    address_id: str,
    body: PersonCreateIn,
    community: Community = Depends(get_visible_community),
    store: Store = Depends(get_store),
):
    person = Person(username=body.username, playerId=body.playerId)
    await _update(store, community, lambda c: _get_address(c, address_id).people.append(person))
    return person


@router.delete("/{address_id}/people/{person_id}", response_model=MessageOut)
async def delete_person(
    address_id: str,
    person_id: str,
    community: Community = Depends(get_visible_community),
    store: Store = Depends(get_store),
):
    def remove(c: Community) -> None:
        address = _get_address(c, address_id)
        kept = [p for p in address.people if p.id != person_id]
        if len(kept) == len(address.people):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="PERSON_NOT_FOUND")
        address.people = kept

    await _update(store, community, remove)
    return {"message": "Person removed successfully"}


# ===== Access codes =====
@router.post("/{address_id}/codes", response_model=Code, status_code=status.HTTP_201_CREATED)
async def add_code(
    address_id: str,
    body: CodeCreateIn,
    community: Community = Depends(get_visible_community),
    store: Store = Depends(get_store),
):
    """
    Add a time-limited access code.

    Codes whose expiresAt has already passed are accepted; the sweeper
    removes them on its next run.
    """
    code = Code(description=body.description, code=body.code, expiresAt=body.expiresAt)
    await _update(store, community, lambda c: _get_address(c, address_id).codes.append(code))
    return code


@router.delete("/{address_id}/codes/{code_id}", response_model=MessageOut)
async def delete_code(
    address_id: str,
    code_id: str,
    community: Community = Depends(get_visible_community),
    store: Store = Depends(get_store),
):
    def remove(c: Community) -> None:
        address = _get_address(c, address_id)
        kept = [code for code in address.codes if code.id != code_id]
        if len(kept) == len(address.codes):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="CODE_NOT_FOUND")
        address.codes = kept

    await _update(store, community, remove)
    return {"message": "Code removed successfully"}
