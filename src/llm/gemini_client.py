"""
src/llm/gemini_client.py
=========================
Gemini generateContent Client — Audit Agent

Responsibility:
    - POST one generateContent request and return the decoded JSON body
    - Bound every request with an explicit total timeout (180 s)
    - Log the service's error body before the HTTP error propagates

This module does NOT:
    - Build conversation turns or dispatch tool calls
      (handled by src.llm.conversation)
    - Retry failed requests
"""

import json
import logging
from typing import Any

import aiohttp

logger = logging.getLogger("auditagent.llm.gemini_client")

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"
REQUEST_TIMEOUT_SECONDS = 180


class GeminiClient:
    """Async client for a single Gemini model."""

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout_seconds: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self._api_key = api_key
        self.model = model
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    @property
    def endpoint(self) -> str:
        return f"{GEMINI_API_BASE}/{self.model}:generateContent"

    async def generate(self, body: dict[str, Any]) -> dict[str, Any]:
        """
        Send ``body`` to generateContent.

        Raises:
            aiohttp.ClientResponseError: On a non-2xx response.
            aiohttp.ClientError / asyncio.TimeoutError: On transport failure.
        """
        payload = json.dumps(body)
        logger.debug("Gemini request size: %.1f KB", len(payload) / 1024)

        async with aiohttp.ClientSession(timeout=self._timeout) as session:
            async with session.post(
                self.endpoint,
                params={"key": self._api_key},
                data=payload,
                headers={"Content-Type": "application/json"},
            ) as resp:
                if resp.status >= 400:
                    error_body = await resp.text()
                    logger.error("Gemini error (status %d):\n%s", resp.status, error_body)
                resp.raise_for_status()
                return await resp.json(content_type=None)
