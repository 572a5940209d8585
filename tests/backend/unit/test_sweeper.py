import asyncio
import datetime as dt

import pytest

from community_gate.schemas.community import Address, Code, Community
from community_gate.services.sweeper import ExpiredCodeSweeper

pytestmark = pytest.mark.asyncio

NOW = dt.datetime(2024, 6, 1, 12, 0, tzinfo=dt.timezone.utc)


async def test_run_once_removes_only_expired_codes(store):
    address = Address(street="1 Elm", codes=[
        Code(description="past", code="111", expiresAt=NOW - dt.timedelta(minutes=1)),
        Code(description="future", code="222", expiresAt=NOW + dt.timedelta(days=1)),
    ])
    untouched = Community(name="Oak", addresses=[Address(street="2 Oak")])
    await store.add_community(Community(name="Elm", addresses=[address]))
    await store.add_community(untouched)

    sweeper = ExpiredCodeSweeper(store, interval_seconds=60)
    assert await sweeper.run_once(NOW) == 1
    assert await sweeper.run_once(NOW) == 0

    elm = await store.find_community("Elm")
    assert [c.description for c in elm.addresses[0].codes] == ["future"]
    # Sweeping does not count as an edit
    assert elm.updatedAt is None


async def test_start_and_stop(store):
    sweeper = ExpiredCodeSweeper(store, interval_seconds=0.01)
    sweeper.start()
    assert sweeper.running
    await asyncio.sleep(0.05)
    await sweeper.stop()
    assert not sweeper.running


class FlakyStore:
    """Fails the first sweep with an unexpected error, then succeeds."""

    def __init__(self):
        self.calls = 0

    async def purge_expired_codes(self, now):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("boom")
        return 0


async def test_loop_survives_unexpected_errors():
    store = FlakyStore()
    sweeper = ExpiredCodeSweeper(store, interval_seconds=0.01)
    sweeper.start()
    for _ in range(100):
        if store.calls >= 2:
            break
        await asyncio.sleep(0.01)
    assert sweeper.running
    await sweeper.stop()
    assert store.calls >= 2
