# community_gate/core/ratelimit.py
"""
Fixed-window request rate limiting for the page-serving routes.
"""
import time
from typing import Callable, Dict, Tuple


class FixedWindowRateLimiter:
    """
    Count hits per key inside fixed windows of `window_seconds`.

    The first hit for a key opens a window; up to `limit` hits are allowed
    until the window closes, after which the counter starts again. Closed
    windows are dropped at most once per window length, so the map only holds
    keys seen during the last two windows.

    Data structure:
    - _windows: Dict[key, (window_start, hit_count)]
    """

    def __init__(self, limit: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._last_prune = float("-inf")

    def hit(self, key: str) -> Tuple[bool, float]:
        """
        Register one request for `key`.

        Returns:
            (allowed, retry_after): retry_after is the number of seconds until
            the current window closes, 0 when the request is allowed.
        """
        now = self._clock()
        self._prune(now)
        start, count = self._windows.get(key, (now, 0))
        if now - start >= self.window_seconds:
            start, count = now, 0

        if count >= self.limit:
            return False, self.window_seconds - (now - start)

        self._windows[key] = (start, count + 1)
        return True, 0.0

    def _prune(self, now: float) -> None:
        if now - self._last_prune < self.window_seconds:
            return
        self._last_prune = now
        self._windows = {
            key: (start, count)
            for key, (start, count) in self._windows.items()
            if now - start < self.window_seconds
        }

    def reset(self) -> None:
        self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)
