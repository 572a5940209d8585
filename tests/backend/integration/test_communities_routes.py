import asyncio

import pytest

from community_gate.config import settings


pytestmark = pytest.mark.asyncio


async def test_admin_creates_and_lists_community(client, admin_headers, create_user):
    await create_user("alice")

    resp = await client.post("/api/communities", headers=admin_headers,
                             json={"name": "Elm", "allowedUsers": ["Alice", "ghost"]})
    assert resp.status_code == 201, resp.text
    created = resp.json()
    assert created["name"] == "Elm"
    assert created["addresses"] == []
    # Unknown names are dropped on creation
    assert created["allowedUsers"] == ["alice"]

    resp = await client.get("/api/communities")
    assert [c["name"] for c in resp.json()] == ["Elm"]

    resp = await client.get(f"/api/communities/{created['id']}")
    assert resp.status_code == 200
    assert resp.json()["id"] == created["id"]


async def test_community_name_validation(client, admin_headers):
    resp = await client.post("/api/communities", headers=admin_headers, json={"name": "Elm Street"})
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "BAD_REQUEST"

    assert (await client.post("/api/communities", headers=admin_headers, json={"name": "Elm"})).status_code == 201
    resp = await client.post("/api/communities", headers=admin_headers, json={"name": "Elm"})
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "COMMUNITY_EXISTS"


async def test_community_cap(client, admin_headers, monkeypatch):
    monkeypatch.setattr(settings, "max_communities", 2)
    for name in ("Elm", "Oak"):
        assert (await client.post("/api/communities", headers=admin_headers, json={"name": name})).status_code == 201

    resp = await client.post("/api/communities", headers=admin_headers, json={"name": "Pine"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == {
        "code": "COMMUNITY_LIMIT_REACHED",
        "message": "Maximum number of communities (2) reached",
    }


async def test_regular_user_only_sees_allowed_communities(client, store, admin_headers, create_user, login):
    _, password = await create_user("alice")
    elm = (await client.post("/api/communities", headers=admin_headers,
                             json={"name": "Elm", "allowedUsers": ["alice"]})).json()
    oak = (await client.post("/api/communities", headers=admin_headers, json={"name": "Oak"})).json()
    await client.post("/api/logout", headers=admin_headers)

    headers = await login("alice", password)
    resp = await client.get("/api/communities")
    assert [c["name"] for c in resp.json()] == ["Elm"]

    assert (await client.get(f"/api/communities/{elm['id']}")).status_code == 200
    resp = await client.get(f"/api/communities/{oak['id']}")
    assert resp.status_code == 403
    assert resp.json()["detail"] == "FORBIDDEN_COMMUNITY"
    assert (await client.get("/api/communities/missing")).status_code == 404

    # Admin-only mutations
    resp = await client.post("/api/communities", headers=headers, json={"name": "Pine"})
    assert resp.status_code == 403
    assert resp.json()["detail"] == "FORBIDDEN_ADMIN_ONLY"
    assert (await client.delete(f"/api/communities/{elm['id']}", headers=headers)).status_code == 403


async def test_delete_community_cascades_logs(client, store, admin_headers):
    elm = (await client.post("/api/communities", headers=admin_headers, json={"name": "Elm"})).json()
    for player in ("1", "2"):
        resp = await client.post("/api/log-access", json={"community": "Elm", "player": player, "action": "door"})
        assert resp.status_code == 200

    resp = await client.delete(f"/api/communities/{elm['id']}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json() == {"message": "Community and associated logs deleted successfully", "deletedLogs": 2}
    assert await store.list_logs("Elm") == []

    resp = await client.delete(f"/api/communities/{elm['id']}", headers=admin_headers)
    assert resp.status_code == 404


async def test_update_allowed_users(client, admin_headers, create_user, create_admin):
    await create_user("alice")
    await create_user("bob")
    await create_admin("carol")
    elm = (await client.post("/api/communities", headers=admin_headers, json={"name": "Elm"})).json()
    url = f"/api/communities/{elm['id']}/allowed-users"

    resp = await client.put(url, headers=admin_headers, json={"allowedUsers": ["alice", "BOB"]})
    assert resp.status_code == 200
    assert resp.json() == {
        "message": "Allowed users updated successfully",
        "validUsers": ["alice", "bob"],
        "invalidUsers": [],
    }

    resp = await client.put(url, headers=admin_headers, json={"allowedUsers": ["alice", "carol", "ghost"]})
    assert resp.status_code == 200
    body = resp.json()
    assert body["validUsers"] == ["alice"]
    assert body["invalidUsers"] == ["carol", "ghost"]
    assert "carol" in body["warning"]
    assert "message" not in body

    community = (await client.get(f"/api/communities/{elm['id']}")).json()
    assert community["allowedUsers"] == ["alice"]
    assert community["updatedAt"] is not None

    resp = await client.put("/api/communities/missing/allowed-users", headers=admin_headers,
                            json={"allowedUsers": []})
    assert resp.status_code == 404


async def test_concurrent_creates_respect_cap(client, store, admin_headers, monkeypatch):
    monkeypatch.setattr(settings, "max_communities", 2)

    responses = await asyncio.gather(*(
        client.post("/api/communities", headers=admin_headers, json={"name": f"C{i}"}) for i in range(5)
    ))

    assert sorted(r.status_code for r in responses) == [201, 201, 400, 400, 400]
    assert len(await store.list_communities()) == 2


async def test_concurrent_duplicate_names(client, store, admin_headers):
    responses = await asyncio.gather(*(
        client.post("/api/communities", headers=admin_headers, json={"name": "Elm"}) for _ in range(3)
    ))

    assert sorted(r.status_code for r in responses) == [201, 400, 400]
    assert [r.json()["detail"]["code"] for r in responses if r.status_code == 400] == ["COMMUNITY_EXISTS"] * 2
    assert len(await store.list_communities()) == 1
