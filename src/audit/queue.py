"""
src/audit/queue.py
===================
Audit Job Queue — Audit Agent

Responsibility:
    - Accept jobs in FIFO order (append at tail, take from head)
    - Run exactly one job at a time on a single worker task
    - Reject a second sweep while one is queued or running
    - Isolate failures: a failing job is logged, the next job starts

Scheduling:
    Everything runs on one asyncio loop. enqueue() is synchronous and only
    schedules the worker task; the worker drains the queue job by job and
    re-checks for work before it exits, so there is never a dispatch gap
    and never an overlap. ``QueueState.working`` is the only mutual
    exclusion needed because nothing preempts the loop between awaits.

This module does NOT:
    - Know how a job is audited (handlers are injected)
    - Persist queued jobs across restarts
    - Retry failed jobs
"""

import asyncio
import logging
from typing import Awaitable, Callable, Mapping

from src.audit.models import Job, JobKind, QueueState

logger = logging.getLogger("auditagent.audit.queue")

JobHandler = Callable[[Job], Awaitable[object]]


class JobQueue:
    """Single-worker FIFO over a QueueState."""

    def __init__(self, handlers: Mapping[JobKind, JobHandler]) -> None:
        self._handlers = dict(handlers)
        self._state = QueueState()
        self._worker_task: asyncio.Task | None = None
        self._idle = asyncio.Event()
        self._idle.set()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def is_idle(self) -> bool:
        return self._state.is_idle()

    def snapshot(self) -> dict[str, object]:
        return {
            "queued": [job.describe() for job in self._state.pending],
            "working": self._state.working,
            "sweep_active": self._state.sweep_active,
        }

    async def wait_idle(self) -> None:
        """Wait until nothing is queued or processing."""
        while not self._state.is_idle():
            await self._idle.wait()

    # ------------------------------------------------------------------
    # Enqueue
    # ------------------------------------------------------------------

    def enqueue(self, job: Job) -> bool:
        """
        Append ``job`` and wake the worker if it is idle.

        Returns:
            False if ``job`` is a sweep and one is already queued or
            running (nothing is added), True otherwise.
        """
        if job.kind not in self._handlers:
            raise ValueError(f"No handler registered for {job.kind.value} jobs")
        if job.kind is JobKind.SWEEP and self._state.sweep_pending():
            logger.info("Sheet sweep already in progress — request ignored.")
            return False
        self._state.pending.append(job)
        self._idle.clear()
        logger.debug("Queued %s — queue len %d", job.describe(), len(self._state.pending))
        self._kick()
        return True

    def enqueue_sweep(self, job: Job | None = None) -> bool:
        """
        Queue a sweep unless one is already queued or running.

        Returns:
            True if queued, False if rejected as a duplicate.
        """
        return self.enqueue(job or Job.sweep())

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _kick(self) -> None:
        if self._state.working:
            return
        if self._worker_task is not None and not self._worker_task.done():
            return
        self._worker_task = asyncio.get_running_loop().create_task(self._worker())

    async def _run_job(self, job: Job) -> None:
        handler = self._handlers[job.kind]
        if job.kind is JobKind.SWEEP:
            self._state.sweep_active = True
        try:
            await handler(job)
            logger.info("Job finished (%s)", job.describe())
        except Exception:
            logger.exception("Job failed (%s)", job.describe())
        finally:
            if job.kind is JobKind.SWEEP:
                self._state.sweep_active = False

    async def _worker(self) -> None:
        try:
            while self._state.pending and not self._state.working:
                job = self._state.pending.popleft()
                self._state.working = True
                logger.debug(
                    "Job start (%s) — queue len %d", job.describe(), len(self._state.pending)
                )
                try:
                    await self._run_job(job)
                finally:
                    self._state.working = False
        finally:
            if self._state.is_idle():
                self._idle.set()
