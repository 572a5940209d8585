import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from community_gate.core.debounce import AccessDebouncer
from community_gate.core.ratelimit import FixedWindowRateLimiter
from community_gate.core.security import hash_password
from community_gate.main import app
from community_gate.schemas.user import UserRecord
from community_gate.storage import DatabaseStore, JsonCollectionStore, JsonFileStore


class FakeClock:
    """Manually advanced monotonic clock for debounce / rate-limit tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _make_store(kind: str, tmp_path):
    if kind == "json":
        return JsonFileStore(tmp_path / "data.json")
    if kind == "json-collections":
        return JsonCollectionStore(tmp_path / "collections")
    return DatabaseStore("sqlite://:memory:", generate_schemas=True)


@pytest_asyncio.fixture(params=["json", "json-collections", "database"])
async def store(request, tmp_path):
    """
    A freshly initialised store, once per backend.
    """
    s = _make_store(request.param, tmp_path)
    await s.init()
    yield s
    await s.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def client(store, clock):
    """
    Provide an HTTPX AsyncClient bound to the FastAPI app with a fresh store.
    Lifespan events are not run; state is installed directly on app.state.
    """
    app.state.store = store
    app.state.debouncer = AccessDebouncer(window_seconds=5, clock=clock)
    app.state.page_limiter = FixedWindowRateLimiter(100, 900, clock=clock)
    # https: the session cookie is marked Secure
    async with AsyncClient(transport=ASGITransport(app=app), base_url="https://testserver") as async_client:
        yield async_client


def _user_factory(store, role: str, prefix: str):
    async def _create(username: str | None = None, password: str = "Secret#123") -> tuple[UserRecord, str]:
        user = await store.add_user(UserRecord(
            username=username or f"{prefix}_{uuid.uuid4().hex[:6]}",
            passwordHash=hash_password(password),
            role=role,
        ))
        return user, password

    return _create


@pytest_asyncio.fixture
async def create_user(store):
    """
    Factory fixture to create regular users directly in the store.
    """
    return _user_factory(store, "user", "user")


@pytest_asyncio.fixture
async def create_admin(store):
    return _user_factory(store, "admin", "admin")


@pytest_asyncio.fixture
async def create_superuser(store):
    return _user_factory(store, "superuser", "root")


@pytest_asyncio.fixture
async def login(client):
    """
    Helper fixture: fetch a CSRF token, log in, and return the headers needed
    for mutating requests.
    """

    async def _login(username: str, password: str) -> dict[str, str]:
        token_resp = await client.get("/csrf-token")
        assert token_resp.status_code == 200, token_resp.text
        token = token_resp.json()["csrfToken"]
        headers = {"X-CSRF-Token": token}
        resp = await client.post("/api/login", json={"username": username, "password": password}, headers=headers)
        assert resp.status_code == 200, resp.text
        return headers

    return _login


@pytest_asyncio.fixture
async def admin_headers(create_admin, login):
    admin, password = await create_admin()
    return await login(admin.username, password)
