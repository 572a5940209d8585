# community_gate/core/debounce.py
"""
Debounce for access attempts posted by game servers.

Repeated attempts by the same player at the same community inside the window
are rejected. The last-attempt times live in an injected store so the
in-memory map can be swapped for an external cache with native key expiry.
"""
import time
from typing import Callable, Dict, Optional, Protocol, Tuple


class DebounceStore(Protocol):
    """Minimal key/value interface used by AccessDebouncer."""

    async def get(self, key: str) -> Optional[float]: ...

    async def set(self, key: str, value: float, ttl: float) -> None:
        """Store `value`; the key may be forgotten once `ttl` seconds have passed."""


class InMemoryDebounceStore:
    """
    Process-local store; contents are lost on restart.

    Values are clock readings, so a write at time `value` also drops every
    entry that expired before it (at most once per ttl).
    """

    def __init__(self):
        self._entries: Dict[str, Tuple[float, float]] = {}  # key -> (value, expires_at)
        self._next_prune = float("-inf")

    async def get(self, key: str) -> Optional[float]:
        entry = self._entries.get(key)
        return entry[0] if entry else None

    async def set(self, key: str, value: float, ttl: float) -> None:
        if value >= self._next_prune:
            self._entries = {k: e for k, e in self._entries.items() if e[1] > value}
            self._next_prune = value + ttl
        self._entries[key] = (value, value + ttl)

    def __len__(self) -> int:
        return len(self._entries)


class AccessDebouncer:
    def __init__(
        self,
        window_seconds: float = 5.0,
        store: Optional[DebounceStore] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self.store = store if store is not None else InMemoryDebounceStore()
        self._clock = clock

    @staticmethod
    def key_for(community: str, player: str) -> str:
        return f"{community}\x1f{player}"

    async def hit(self, community: str, player: str) -> Tuple[bool, float]:
        """
        Record an attempt for (community, player).

        Returns:
            (allowed, retry_after). A rejected attempt does not move the
            window forward.
        """
        key = self.key_for(community, player)
        now = self._clock()
        last = await self.store.get(key)
        if last is not None and now - last < self.window_seconds:
            return False, self.window_seconds - (now - last)
        await self.store.set(key, now, self.window_seconds)
        return True, 0.0
