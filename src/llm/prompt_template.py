"""
src/llm/prompt_template.py
===========================
Audit Prompt Template — Audit Agent

Responsibility:
    - Load the base audit instructions (JSON) once
    - Hand out fresh, per-request copies with the current timestamp
      injected at ``instructions.context.date``

The loaded template is never mutated; every materialize() call parses
the canonical JSON text again, so two requests never share a dict.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("auditagent.llm.prompt_template")


class PromptTemplate:
    """Read-only base template held as canonical JSON text."""

    def __init__(self, document: dict[str, Any]) -> None:
        if not isinstance(document, dict):
            raise ValueError("Prompt template must be a JSON object")
        self._canonical = json.dumps(document, sort_keys=True)

    def materialize(self, now: datetime | None = None) -> dict[str, Any]:
        """Return a fresh copy with ``instructions.context.date`` set."""
        prompt = json.loads(self._canonical)
        stamp = (now or datetime.now(timezone.utc)).isoformat()
        instructions = prompt.setdefault("instructions", {})
        instructions.setdefault("context", {})["date"] = stamp
        return prompt


def load_template(path: str) -> PromptTemplate:
    """Read and parse the template file at ``path``."""
    with open(path, encoding="utf-8") as fh:
        document = json.load(fh)
    logger.debug("Loaded audit prompt template from %s", path)
    return PromptTemplate(document)
