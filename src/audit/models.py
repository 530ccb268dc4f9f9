"""
src/audit/models.py
====================
Audit Data Model — Audit Agent

Defines:
    - JobKind / Job       — one unit of queued audit work
    - QueueState          — FIFO of pending jobs + worker flags
    - AuditResult         — structured findings of one audited call

This module does NOT:
    - Process jobs (handled by src.audit.queue)
    - Talk to any external service
"""

import json
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


class JobKind(str, Enum):
    SINGLE = "single"
    SWEEP = "sweep"


@dataclass(frozen=True)
class Job:
    """An immutable unit of queued work."""

    kind: JobKind
    call_id: str | None = None
    prompt_file: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.kind is JobKind.SINGLE and not (self.call_id and self.prompt_file):
            raise ValueError("A single-call job needs both call_id and prompt_file")
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @classmethod
    def single(
        cls,
        call_id: str,
        prompt_file: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> "Job":
        return cls(JobKind.SINGLE, call_id, prompt_file, metadata or {})

    @classmethod
    def sweep(cls) -> "Job":
        return cls(JobKind.SWEEP)

    def describe(self) -> str:
        if self.kind is JobKind.SINGLE:
            return f"single call {self.call_id}"
        return "sheet sweep"


@dataclass
class QueueState:
    """
    Process-wide queue state.

    Invariants:
        - at most one job is being processed (``working``)
        - at most one sweep is queued or active
    """

    pending: deque = field(default_factory=deque)
    working: bool = False
    sweep_active: bool = False

    def sweep_pending(self) -> bool:
        return self.sweep_active or any(job.kind is JobKind.SWEEP for job in self.pending)

    def is_idle(self) -> bool:
        return not self.working and not self.pending


# ---------------------------------------------------------------------------
# Audit result
# ---------------------------------------------------------------------------

# Payload key → AuditResult attribute, in ledger column order.
FINDING_KEYS: tuple[tuple[str, str], ...] = (
    ("hallucinations", "hallucinations"),
    ("prompt_gaps", "prompt_gaps"),
    ("knowledge_base_gaps", "knowledge_base_gaps"),
    ("shape_policy_violations", "policy_violations"),
    ("action_items", "action_items"),
)


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


@dataclass(frozen=True)
class AuditResult:
    """Structured audit findings plus the full raw model payload."""

    hallucinations: tuple = ()
    prompt_gaps: tuple = ()
    knowledge_base_gaps: tuple = ()
    policy_violations: tuple = ()
    action_items: tuple = ()
    raw: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "AuditResult":
        findings = {
            attr: tuple(_as_list(payload.get(key))) for key, attr in FINDING_KEYS
        }
        return cls(**findings, raw=MappingProxyType(dict(payload)))

    def ledger_columns(self) -> list[str]:
        """
        Six JSON-encoded cells: five finding categories + the raw payload.

        Category cells carry the model's value as returned; a null
        category becomes ``[]``.
        """
        cells = []
        for key, attr in FINDING_KEYS:
            value = self.raw.get(key) if key in self.raw else list(getattr(self, attr))
            cells.append(json.dumps(value if value is not None else []))
        cells.append(json.dumps(dict(self.raw)))
        return cells

    def summary(self) -> dict[str, int]:
        return {attr: len(getattr(self, attr)) for _, attr in FINDING_KEYS}
