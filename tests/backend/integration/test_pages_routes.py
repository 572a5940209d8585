import pytest


pytestmark = pytest.mark.asyncio


async def test_index_redirects_to_login_without_session(client):
    for path in ("/", "/index.html"):
        resp = await client.get(path)
        assert resp.status_code == 302
        assert resp.headers["location"] == "/login.html"


async def test_login_page_and_index_with_session(client, create_user, login):
    resp = await client.get("/login.html")
    assert resp.status_code == 200
    assert "loginForm" in resp.text

    _, password = await create_user("alice")
    await login("alice", password)
    resp = await client.get("/")
    assert resp.status_code == 200
    assert "communityList" in resp.text


async def test_static_assets_are_served(client):
    resp = await client.get("/static/js/api.js")
    assert resp.status_code == 200
    assert "X-CSRF-Token" in resp.text


async def test_pages_are_rate_limited(client, clock):
    for _ in range(100):
        assert (await client.get("/login.html")).status_code == 200

    resp = await client.get("/login.html")
    assert resp.status_code == 429
    assert resp.json()["detail"]["code"] == "RATE_LIMITED"
    assert "Retry-After" in resp.headers

    # API routes are not counted
    assert (await client.get("/healthz")).status_code == 200

    clock.advance(900)
    assert (await client.get("/login.html")).status_code == 200
