# community_gate/services/sweeper.py
"""
Background removal of expired access codes.
"""
import asyncio
import datetime as dt
import logging
from typing import Optional

from community_gate.core.clock import utc_now
from community_gate.storage.base import StorageError, Store

logger = logging.getLogger("uvicorn.error")


class ExpiredCodeSweeper:
    """
    Periodically deletes codes whose expiresAt has passed.

    The loop runs on a fixed interval inside the application's event loop;
    a failed sweep is logged and retried on the next tick.
    """

    def __init__(self, store: Store, interval_seconds: float = 60.0):
        self.store = store
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    async def run_once(self, now: Optional[dt.datetime] = None) -> int:
        """
        Sweep all communities once.

        Args:
            now: Reference time (defaults to the current UTC time)

        Returns:
            Number of codes removed
        """
        removed = await self.store.purge_expired_codes(now or utc_now())
        if removed:
            logger.info("[sweeper] Expired codes removed: %d", removed)
        return removed

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except StorageError:
                logger.exception("[sweeper] Error removing expired codes")
            except Exception:
                logger.exception("[sweeper] Unexpected error during sweep")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="expired-code-sweeper")
        logger.info("[sweeper] started (interval=%ss)", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("[sweeper] stopped")
