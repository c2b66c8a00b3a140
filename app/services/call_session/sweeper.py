"""Periodic eviction of idle call sessions."""
import asyncio
import logging
from typing import Optional

from app.services.call_session.store import CallStore

logger = logging.getLogger(__name__)


class SessionSweeper:
    """Runs CallStore.sweep on a fixed interval until stopped."""

    def __init__(self, call_store: CallStore, interval_seconds: float = 5 * 60):
        self.call_store = call_store
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())
            logger.info(f"[SWEEPER] Started - interval: {self.interval_seconds}s")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("[SWEEPER] Stopped")

    async def sweep_once(self) -> int:
        """Run a single sweep. Returns the number of evicted sessions."""
        evicted = await self.call_store.sweep()
        if evicted:
            logger.info(f"[SWEEPER] Evicted {len(evicted)} idle session(s): {evicted}")
        return len(evicted)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.sweep_once()
            except Exception as e:
                logger.error(
                    f"[SWEEPER] Sweep failed - Error: {type(e).__name__}: {str(e)}",
                    exc_info=True,
                )
