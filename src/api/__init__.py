# src/api/__init__.py
# =====================
# API Layer — Audit Agent
#
#   POST /api/audit/call/{id}  → queue one call audit
#   POST /api/audit/sheet      → queue a sweep of pending ledger rows
#   GET  /api/health           → liveness probe
#
# Public API:
#   create_app(runtime_factory) → FastAPI

from src.api.routes import create_app  # noqa: F401

__all__ = ["create_app"]
