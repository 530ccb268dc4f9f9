"""
src/transcripts/bland_client.py
================================
Bland AI Transcript Client — Audit Agent

Responsibility:
    - Fetch a recorded call by id and return its ``transcripts`` array
      (ordered {user, text} turns)

This module does NOT:
    - Flatten or truncate the transcript (handled by src.llm.conversation)
    - Retry failed requests
"""

import logging
from typing import Any

import requests

logger = logging.getLogger("auditagent.transcripts.bland_client")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

BLAND_API_BASE = "https://api.bland.ai/v1"
REQUEST_TIMEOUT_SECONDS = 30


class TranscriptUnavailableError(RuntimeError):
    """Raised when a call payload carries no transcript turns."""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def fetch_transcript(call_id: str, api_key: str) -> list[dict[str, Any]]:
    """
    Fetch the full call payload and return its ``transcripts`` array.

    Args:
        call_id: Bland call identifier.
        api_key: Bland API key (sent as a Bearer token).

    Returns:
        List of turn dicts, each with at least ``user`` and ``text``.

    Raises:
        TranscriptUnavailableError: If the payload has no transcripts list.
        requests.RequestException:  On transport or HTTP failure.
    """
    resp = requests.get(
        f"{BLAND_API_BASE}/calls/{call_id}",
        headers={"Authorization": f"Bearer {api_key}"},
        timeout=REQUEST_TIMEOUT_SECONDS,
    )
    resp.raise_for_status()
    payload = resp.json()

    transcripts = payload.get("transcripts") if isinstance(payload, dict) else None
    if not isinstance(transcripts, list):
        raise TranscriptUnavailableError(f"No 'transcripts' array for call {call_id}")

    logger.debug("Bland transcript items for call %s: %d", call_id, len(transcripts))
    return transcripts
