# src/audit/__init__.py
# =======================
# Audit Jobs — Audit Agent
#
#   models.py     Job / QueueState / AuditResult
#   queue.py      single-worker FIFO job queue
#   scheduler.py  idle-gated Drive cache refresh
#   service.py    per-call audit orchestration + ledger writes
#   batch.py      one-shot sweep CLI (python -m src.audit.batch)

from src.audit.models import AuditResult, Job, JobKind, QueueState  # noqa: F401
from src.audit.queue import JobQueue  # noqa: F401
from src.audit.scheduler import IdleScheduler  # noqa: F401

__all__ = [
    "AuditResult",
    "Job",
    "JobKind",
    "QueueState",
    "JobQueue",
    "IdleScheduler",
]
