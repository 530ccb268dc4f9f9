"""
src/audit/scheduler.py
=======================
Idle-Gated Cache Refresh — Audit Agent

Responsibility:
    - Fire every ``period`` seconds (default 24 h)
    - If the job queue is busy or non-empty: defer, retry after
      ``backoff`` seconds (default 5 min)
    - Once idle: rebuild the Drive index, then wait a full period again

The idle check is advisory: a job enqueued while the rebuild is running
may read a partially rebuilt index.

This module does NOT:
    - Block or delay job processing
    - Retry a failed rebuild early (the next firing is a full period away)
"""

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger("auditagent.audit.scheduler")

DEFAULT_PERIOD_SECONDS = 24 * 60 * 60
DEFAULT_BACKOFF_SECONDS = 5 * 60


class IdleScheduler:
    """Periodic refresh that only runs while the worker is idle."""

    def __init__(
        self,
        is_idle: Callable[[], bool],
        refresh: Callable[[], Awaitable[object]],
        period: float = DEFAULT_PERIOD_SECONDS,
        backoff: float = DEFAULT_BACKOFF_SECONDS,
    ) -> None:
        self._is_idle = is_idle
        self._refresh = refresh
        self.period = period
        self.backoff = backoff
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> float:
        """
        Run one firing.

        Returns:
            Seconds until the next firing.
        """
        if not self._is_idle():
            logger.debug("Cache refresh deferred — audits in progress")
            return self.backoff

        logger.info("Rebuilding Drive cache...")
        try:
            await self._refresh()
        except Exception:
            logger.exception("Drive cache rebuild failed")
        else:
            logger.info("Drive cache rebuilt")
        return self.period

    async def _loop(self) -> None:
        delay = self.period
        while True:
            await asyncio.sleep(delay)
            delay = await self.tick()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info("Cache refresh scheduled every %.0f s", self.period)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
