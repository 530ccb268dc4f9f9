"""
src/runtime.py
===============
Process Wiring — Audit Agent

Builds every long-lived component in dependency order:
    settings → Google services → Drive cache (init) → ledger →
    Gemini client + conversation loop → audit service → job queue →
    idle scheduler
"""

import functools
import logging
from dataclasses import dataclass

from src.audit.models import JobKind
from src.audit.queue import JobQueue
from src.audit.scheduler import IdleScheduler
from src.audit.service import AuditService
from src.cache.drive_index import FileIndexCache
from src.config import Settings
from src.llm.conversation import ConversationLoop
from src.llm.gemini_client import GeminiClient
from src.llm.prompt_template import load_template
from src.transcripts.bland_client import fetch_transcript
from src.workspace.auth import build_services
from src.workspace.drive import DriveClient
from src.workspace.sheets import Ledger

logger = logging.getLogger("auditagent.runtime")


@dataclass
class Runtime:
    settings: Settings
    cache: FileIndexCache
    service: AuditService
    queue: JobQueue
    scheduler: IdleScheduler


async def build_runtime(settings: Settings | None = None) -> Runtime:
    """Build and initialise the process runtime (Drive index included)."""
    settings = settings or Settings.from_env()

    drive_service, sheets_service = build_services(settings.service_key_path)

    cache = FileIndexCache(DriveClient(drive_service), cache_dir=settings.cache_dir)
    await cache.init(settings.drive_root_folder_id)
    logger.info(
        "Drive cache ready — %d KB files indexed.",
        len(cache.list_paths(settings.knowledge_base_root)),
    )

    ledger = Ledger(sheets_service, settings.sheets_id, settings.sheet_name)
    conversation = ConversationLoop(
        GeminiClient(settings.gemini_api_key, settings.gemini_model),
        cache,
        load_template(settings.prompt_template_path),
        max_tool_iterations=settings.max_tool_iterations,
    )
    service = AuditService(
        cache=cache,
        conversation=conversation,
        ledger=ledger,
        transcript_fetcher=functools.partial(fetch_transcript, api_key=settings.bland_api_key),
        settings=settings,
    )
    queue = JobQueue({
        JobKind.SINGLE: service.handle_single,
        JobKind.SWEEP: service.handle_sweep,
    })
    scheduler = IdleScheduler(
        is_idle=queue.is_idle,
        refresh=cache.rebuild,
        period=settings.refresh_period_seconds,
        backoff=settings.refresh_backoff_seconds,
    )
    return Runtime(settings, cache, service, queue, scheduler)
