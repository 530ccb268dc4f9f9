"""
src/audit/service.py
=====================
Per-Call Audit Orchestration — Audit Agent

Responsibility:
    audit_call(call_id, prompt_file):
        1. Resolve the prompt path under PROMPT_PARENT_DIR (must be indexed)
        2. Read the policy text from the Drive cache
        3. Fetch the call transcript
        4. List Knowledge-Base paths (fresh on every call)
        5. Run the ConversationLoop → AuditResult

    handle_single(job): audit_call + ledger upsert
    handle_sweep(job):  every pending ledger row, one by one; a failing
                        row is logged and skipped

Blocking collaborators (transcript fetch, ledger) run via asyncio.to_thread.

This module does NOT:
    - Queue or schedule jobs (handled by src.audit.queue)
    - Retry failed rows
"""

import asyncio
import logging
from typing import Any, Callable

from src.audit.models import AuditResult, Job
from src.config import Settings

logger = logging.getLogger("auditagent.audit.service")


class NotFoundError(LookupError):
    """Raised when the requested prompt file is not in the Drive index."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Prompt file '{path}' not found in Drive")


class AuditService:
    """Binds the cache, conversation loop, ledger and transcript source."""

    def __init__(
        self,
        cache: Any,
        conversation: Any,
        ledger: Any,
        transcript_fetcher: Callable[[str], list[dict[str, Any]]],
        settings: Settings,
    ) -> None:
        self._cache = cache
        self._conversation = conversation
        self._ledger = ledger
        self._fetch_transcript = transcript_fetcher
        self._settings = settings

    def prompt_path(self, prompt_file: str) -> str:
        return f"{self._settings.prompt_parent_dir}/{prompt_file}"

    async def audit_call(self, call_id: str, prompt_file: str) -> AuditResult:
        """
        Audit one call against one prompt file.

        Raises:
            NotFoundError: If the prompt path is not indexed.
        """
        prompt_path = self.prompt_path(prompt_file)
        if prompt_path not in self._cache.list_paths():
            raise NotFoundError(prompt_path)

        policy_text = await self._cache.get_text(self._settings.policy_file_path)
        transcript = await asyncio.to_thread(self._fetch_transcript, call_id)
        kb_paths = self._cache.list_paths(self._settings.knowledge_base_root)

        logger.info("Auditing call %s with %s (%d KB files)", call_id, prompt_path, len(kb_paths))
        return await self._conversation.run(
            transcript=transcript,
            prompt_file_path=prompt_path,
            policy_text=policy_text,
            reference_paths=kb_paths,
        )

    async def handle_single(self, job: Job) -> AuditResult:
        result = await self.audit_call(job.call_id, job.prompt_file)
        await asyncio.to_thread(
            self._ledger.upsert_row,
            job.call_id,
            dict(job.metadata),
            job.prompt_file,
            result.ledger_columns(),
        )
        logger.info("Call %s audited and recorded", job.call_id)
        return result

    async def handle_sweep(self, job: Job | None = None) -> tuple[int, int]:
        """
        Audit every ledger row not yet marked successful.

        Returns:
            (succeeded, failed) row counts.
        """
        rows = await asyncio.to_thread(self._ledger.pending_rows)
        logger.info("Sheet sweep: %d pending rows", len(rows))

        succeeded = failed = 0
        for row in rows:
            if not row.call_id or not row.prompt_file:
                logger.warning("Row %d skipped — missing call id or prompt file", row.index)
                failed += 1
                continue
            try:
                result = await self.audit_call(row.call_id, row.prompt_file)
                await asyncio.to_thread(
                    self._ledger.mark_success, row.index, result.ledger_columns()
                )
            except Exception as exc:
                logger.error("Row %d (call %s) failed: %s", row.index, row.call_id, exc)
                failed += 1
                continue
            logger.info("Row %d marked Successful", row.index)
            succeeded += 1

        logger.info("Sheet sweep finished — %d succeeded, %d failed", succeeded, failed)
        return succeeded, failed
