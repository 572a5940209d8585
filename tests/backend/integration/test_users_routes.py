import pytest


pytestmark = pytest.mark.asyncio


async def test_admin_user_management_flow(client, admin_headers):
    resp = await client.post("/api/users", headers=admin_headers, json={"username": "Member1", "password": "Member#123"})
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["message"] == "User added successfully"
    assert body["user"]["username"] == "member1"
    assert body["user"]["role"] == "user"
    assert "passwordHash" not in body["user"]
    user_id = body["id"]

    resp = await client.post("/api/users", headers=admin_headers, json={"username": "MEMBER1", "password": "Member#123"})
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "USERNAME_EXISTS"

    listed = (await client.get("/api/users", headers=admin_headers)).json()
    assert any(u["username"] == "member1" for u in listed)
    assert all("passwordHash" not in u for u in listed)

    resp = await client.get(f"/api/users/{user_id}")
    assert resp.status_code == 200
    assert resp.json()["username"] == "member1"
    assert (await client.get("/api/users/missing")).status_code == 404


async def test_new_user_can_log_in(client, admin_headers, login):
    await client.post("/api/users", headers=admin_headers, json={"username": "member1", "password": "Member#123"})
    await client.post("/api/logout", headers=admin_headers)
    await login("member1", "Member#123")


async def test_delete_user_updates_allow_lists(client, admin_headers, create_user):
    alice, _ = await create_user("alice")
    elm = (await client.post("/api/communities", headers=admin_headers,
                             json={"name": "Elm", "allowedUsers": ["alice"]})).json()

    resp = await client.delete(f"/api/users/{alice.id}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json() == {"message": "User removed successfully", "updatedCommunities": [elm["id"]]}

    community = (await client.get(f"/api/communities/{elm['id']}")).json()
    assert community["allowedUsers"] == []
    assert (await client.delete(f"/api/users/{alice.id}", headers=admin_headers)).status_code == 404


async def test_superuser_and_self_are_protected(client, create_admin, create_superuser, login):
    admin, password = await create_admin("boss")
    root, _ = await create_superuser("root")
    headers = await login("boss", password)

    resp = await client.delete(f"/api/users/{root.id}", headers=headers)
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "CANNOT_DELETE_SUPERUSER"

    resp = await client.delete(f"/api/users/{admin.id}", headers=headers)
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "CANNOT_DELETE_SELF"

    resp = await client.put(f"/api/users/{root.id}/role", headers=headers)
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "CANNOT_MODIFY_SUPERUSER"

    resp = await client.put(f"/api/users/{admin.id}/role", headers=headers)
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "CANNOT_MODIFY_SELF"

    assert (await client.put("/api/users/missing/role", headers=headers)).status_code == 404


async def test_role_toggle_strips_allow_lists(client, admin_headers, create_user):
    alice, _ = await create_user("alice")
    elm = (await client.post("/api/communities", headers=admin_headers,
                             json={"name": "Elm", "allowedUsers": ["alice"]})).json()

    resp = await client.put(f"/api/users/{alice.id}/role", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json() == {
        "message": "User role updated successfully",
        "newRole": "admin",
        "username": "alice",
        "updatedCommunities": [elm["id"]],
    }
    assert (await client.get(f"/api/communities/{elm['id']}")).json()["allowedUsers"] == []

    # Demotion does not restore earlier allow-list entries
    resp = await client.put(f"/api/users/{alice.id}/role", headers=admin_headers)
    assert resp.json()["newRole"] == "user"
    assert resp.json()["updatedCommunities"] == []
    assert (await client.get(f"/api/communities/{elm['id']}")).json()["allowedUsers"] == []


async def test_promoted_user_role_applies_to_live_session(client, store, admin_headers, create_user, login):
    alice, password = await create_user("alice")
    await client.post("/api/logout", headers=admin_headers)
    await login("alice", password)
    assert (await client.get("/api/users")).status_code == 403

    await store.set_user_role(alice.id, "admin")
    assert (await client.get("/api/users")).status_code == 200


async def test_non_admin_cannot_access_user_routes(client, create_user, login):
    user, password = await create_user()
    headers = await login(user.username, password)

    resp = await client.get("/api/users")
    assert resp.status_code == 403
    assert resp.json()["detail"] == "FORBIDDEN_ADMIN_ONLY"
    resp = await client.post("/api/users", headers=headers, json={"username": "x", "password": "123456"})
    assert resp.status_code == 403
