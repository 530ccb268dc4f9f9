"""
src/api/routes.py
==================
Audit REST API — Audit Agent

Endpoints:
    POST /api/audit/call/{id}  — queue an audit of one call      (202)
    POST /api/audit/sheet      — queue a sweep of pending rows   (202 / 200)
    GET  /api/health           — liveness probe                  (200 "OK")

The API answers immediately. Audits run in the background job queue and
their outcome is only visible in the ledger and the logs.

Hardening:
    - optional shared API key (x-api-key) when AUDIT_API_KEY is set
    - per-process token-bucket rate limit (429)
    - request bodies capped at 2 MB (413)

This module does NOT:
    - Run audits or touch the ledger
    - Report job outcomes
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from src.api.rate_limit import TokenBucket
from src.audit.models import Job

logger = logging.getLogger("auditagent.api")

MAX_BODY_BYTES = 2 * 1024 * 1024


class AuditCallRequest(BaseModel):
    """Call metadata is stored on the job exactly as posted."""

    promptFile: Any = None
    callDate: Any = None
    leadEmail: Any = None
    callDuration: Any = None
    bookingStatus: Any = None


def _default_runtime_factory() -> Callable[[], Awaitable[object]]:
    from src.runtime import build_runtime

    return build_runtime


def create_app(runtime_factory: Callable[[], Awaitable[object]] | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        runtime_factory: Coroutine function returning an object with
            ``settings``, ``queue`` and ``scheduler`` attributes.
            Defaults to src.runtime.build_runtime.
    """
    factory = runtime_factory or _default_runtime_factory()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        runtime = await factory()
        settings = runtime.settings
        app.state.queue = runtime.queue
        app.state.api_key = settings.audit_api_key
        app.state.rate_limiter = TokenBucket(
            settings.rate_limit_per_minute, burst=settings.rate_limit_per_minute
        )
        runtime.scheduler.start()
        logger.info("Audit API ready")
        try:
            yield
        finally:
            await runtime.scheduler.stop()

    app = FastAPI(
        title="Audit Agent",
        description="Queue-backed call-transcript audits.",
        version="1.0.0",
        lifespan=lifespan,
    )

    # -----------------------------------------------------------------------
    # Middleware
    # -----------------------------------------------------------------------

    @app.middleware("http")
    async def guard(request: Request, call_next):
        api_key = getattr(request.app.state, "api_key", None)
        if api_key and request.headers.get("x-api-key") != api_key:
            return JSONResponse(status_code=401, content={"error": "Unauthorized"})

        limiter = getattr(request.app.state, "rate_limiter", None)
        if limiter is not None and not limiter.try_acquire():
            return JSONResponse(status_code=429, content={"error": "Too many requests"})

        length = request.headers.get("content-length")
        if length and length.isdigit() and int(length) > MAX_BODY_BYTES:
            return JSONResponse(status_code=413, content={"error": "Request body too large"})

        return await call_next(request)

    # -----------------------------------------------------------------------
    # Endpoints
    # -----------------------------------------------------------------------

    @app.post("/api/audit/call/{call_id}")
    async def audit_call(call_id: str, request: Request, body: AuditCallRequest | None = None):
        prompt_file = body.promptFile if body is not None else None
        if not isinstance(prompt_file, str) or not prompt_file.strip():
            return JSONResponse(status_code=400, content={"error": "promptFile required"})

        job = Job.single(
            call_id,
            prompt_file.strip(),
            metadata={
                "callDate": body.callDate,
                "leadEmail": body.leadEmail,
                "callDuration": body.callDuration,
                "bookingStatus": body.bookingStatus,
            },
        )
        request.app.state.queue.enqueue(job)
        logger.info("Queued audit for call %s", call_id)
        return JSONResponse(status_code=202, content={"queued": True, "callId": call_id})

    @app.post("/api/audit/sheet")
    async def audit_sheet(request: Request):
        if not request.app.state.queue.enqueue_sweep():
            return JSONResponse(
                status_code=200,
                content={"queued": False, "message": "Sheet sweep already in progress"},
            )
        logger.info("Queued sheet sweep")
        return JSONResponse(status_code=202, content={"queued": True})

    @app.get("/api/health")
    async def health():
        return PlainTextResponse("OK")

    return app
