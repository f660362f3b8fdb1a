"""Background retention sweep.

Runs ``StorageManager.sweep`` on a fixed interval for the lifetime of the
process. There is no lock against in-flight conversions; the retention
window is far longer than any request.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .service import StorageManager

logger = logging.getLogger(__name__)


class RetentionSweeper:
    """Periodic asyncio task that reaps expired files."""

    def __init__(self, storage: StorageManager, interval_seconds: float) -> None:
        self._storage = storage
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task] = None  # type: ignore[type-arg]

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the background sweep task."""
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info(
            "Retention sweeper started (interval=%ss, max_age=%ss)",
            self._interval,
            self._storage.retention_seconds,
        )

    async def stop(self) -> None:
        """Cancel the sweep task and wait for it to exit."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Retention sweeper stopped")

    # ------------------------------------------------------------------
    # Background sweep
    # ------------------------------------------------------------------

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.sweep_once()

    async def sweep_once(self) -> int:
        """Run one sweep off the event loop. Never raises."""
        try:
            return await asyncio.to_thread(self._storage.sweep)
        except Exception as exc:
            logger.error("Cleanup error: %s", exc)
            return 0
