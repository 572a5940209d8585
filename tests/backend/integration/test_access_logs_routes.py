import datetime as dt

import pytest

from community_gate.schemas.access_log import AccessLogEntry
from community_gate.schemas.community import Community


pytestmark = pytest.mark.asyncio

T0 = dt.datetime(2024, 6, 1, 12, 0, tzinfo=dt.timezone.utc)


async def _create_community(client, headers, name="Elm", allowed=None):
    resp = await client.post("/api/communities", headers=headers, json={"name": name, "allowedUsers": allowed or []})
    assert resp.status_code == 201
    return resp.json()


async def test_log_access_needs_no_session_or_csrf(client, store):
    await store.add_community(Community(name="Elm"))

    resp = await client.post("/api/log-access", json={"community": "Elm", "player": 42, "action": "front door"})
    assert resp.status_code == 200
    assert resp.json() == {"message": "Access logged successfully"}

    logs = await store.list_logs("Elm")
    assert [(e.player, e.action) for e in logs] == [("42", "front door")]


async def test_log_access_unknown_community(client):
    resp = await client.post("/api/log-access", json={"community": "Nowhere", "player": "1", "action": "door"})
    assert resp.status_code == 404
    assert resp.json()["detail"] == "COMMUNITY_NOT_FOUND"


async def test_log_access_validation(client):
    resp = await client.post("/api/log-access", json={"community": "Elm", "action": "door"})
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "BAD_REQUEST"


async def test_repeated_attempts_are_debounced(client, store, clock, admin_headers):
    await _create_community(client, admin_headers)
    payload = {"community": "Elm", "player": "7", "action": "door"}

    assert (await client.post("/api/log-access", json=payload)).status_code == 200

    clock.advance(2)
    resp = await client.post("/api/log-access", json=payload)
    assert resp.status_code == 429
    assert resp.json()["detail"] == {
        "code": "ACCESS_TOO_SOON",
        "message": "Access attempt too soon. Please wait 5 seconds between attempts.",
    }
    assert int(resp.headers["Retry-After"]) >= 3

    # Other players are not affected
    assert (await client.post("/api/log-access", json={**payload, "player": "8"})).status_code == 200

    clock.advance(3)
    assert (await client.post("/api/log-access", json=payload)).status_code == 200
    assert len(await store.list_logs("Elm")) == 3


async def test_get_logs_newest_first_and_limited(client, store, admin_headers):
    await _create_community(client, admin_headers)
    for i in range(105):
        await store.append_log(AccessLogEntry(community="Elm", player=str(i), action="door",
                                              timestamp=T0 + dt.timedelta(seconds=i)))

    resp = await client.get("/api/communities/Elm/logs")
    assert resp.status_code == 200
    logs = resp.json()
    assert len(logs) == 100
    assert logs[0]["player"] == "104"
    assert logs[-1]["player"] == "5"


async def test_get_logs_visibility(client, admin_headers, create_user, login):
    _, password = await create_user("alice")
    await _create_community(client, admin_headers, "Elm", ["alice"])
    await _create_community(client, admin_headers, "Oak")
    assert (await client.get("/api/communities/Nowhere/logs")).status_code == 404
    await client.post("/api/logout", headers=admin_headers)

    assert (await client.get("/api/communities/Elm/logs")).status_code == 401
    await login("alice", password)
    assert (await client.get("/api/communities/Elm/logs")).status_code == 200
    resp = await client.get("/api/communities/Oak/logs")
    assert resp.status_code == 403
