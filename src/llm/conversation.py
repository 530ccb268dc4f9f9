"""
src/llm/conversation.py
========================
Agentic Audit Conversation — Audit Agent

Responsibility:
    - Flatten + truncate the call transcript (15,000 chars, silent prefix cut)
    - Build the single structured user turn (transcript, reference paths,
      prompt path, policy text, materialized audit instructions)
    - Alternate between Gemini and local tool dispatch until Gemini
      returns a final answer
    - Parse the final answer into an AuditResult

Tool protocol:
    One declared function, ``get_drive_txt(path)``. Its result goes back
    as a "tool" turn carrying ``{"text": ...}``. Any other function name
    is fatal to the conversation.

Final answer parsing:
    1. Strip surrounding code fences (```json ... ```)
    2. Strict JSON parse
    3. Fallback: first balanced {...} block in the text
    4. Otherwise → ParseError

This module does NOT:
    - Fetch transcripts or touch the ledger (handled by src.audit.service)
    - Retry failed Gemini requests
"""

import json
import logging
import re
from typing import Any, Protocol

from src.audit.models import AuditResult
from src.llm.prompt_template import PromptTemplate

logger = logging.getLogger("auditagent.llm.conversation")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ToolDispatchError(RuntimeError):
    """Raised when Gemini requests a function this loop does not provide."""


class ParseError(ValueError):
    """Raised when the final answer holds no recoverable JSON object."""


class CapabilityLoopExceededError(RuntimeError):
    """Raised when Gemini keeps calling tools past the iteration cap."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

MAX_TRANSCRIPT_CHARS = 15_000
DEFAULT_MAX_TOOL_ITERATIONS = 25

TOOL_NAME = "get_drive_txt"

TOOLS: list[dict[str, Any]] = [
    {
        "function_declarations": [
            {
                "name": TOOL_NAME,
                "description": "Return the raw text of a .txt file stored in Google Drive",
                "parameters": {
                    "type": "object",
                    "properties": {
                        "path": {
                            "type": "string",
                            "description": "Drive path, e.g. Knowledge_Base/.../file.txt",
                        }
                    },
                    "required": ["path"],
                },
            }
        ]
    }
]

SYSTEM_INSTRUCTION: dict[str, Any] = {
    "role": "system",
    "parts": [
        {
            "text": (
                "Return ONLY valid JSON matching output_format. "
                "No markdown fences or extra commentary. "
                f"Call {TOOL_NAME}() whenever you need a file."
            )
        }
    ],
}

_FENCE_OPEN = re.compile(r"^```[A-Za-z]*[ \t]*\r?\n?")
_FENCE_CLOSE = re.compile(r"\r?\n?```$")


class TextSource(Protocol):
    async def get_text(self, path: str) -> str: ...


class ReasoningService(Protocol):
    async def generate(self, body: dict[str, Any]) -> dict[str, Any]: ...


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def flatten_transcript(transcript: Any, limit: int = MAX_TRANSCRIPT_CHARS) -> str:
    """
    Flatten a transcript to ``"[speaker] text"`` lines, cut to ``limit`` chars.

    Accepts a list of turn dicts (``user``/``speaker`` + ``text``) or any
    value that is converted with str().
    """
    if isinstance(transcript, list):
        lines = []
        for turn in transcript:
            speaker = turn.get("user", turn.get("speaker", ""))
            lines.append(f"[{speaker}] {turn.get('text', '')}")
        flat = "\n".join(lines)
    else:
        flat = str(transcript)
    return flat[:limit]


def strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = _FENCE_OPEN.sub("", stripped, count=1)
        stripped = _FENCE_CLOSE.sub("", stripped, count=1)
    return stripped.strip()


def find_balanced_object(text: str) -> str | None:
    """
    Return the first balanced ``{...}`` substring, or None.

    Braces inside JSON string literals are ignored.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for pos in range(start, len(text)):
            ch = text[pos]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:pos + 1]
        start = text.find("{", start + 1)
    return None


def parse_final_answer(text: str) -> dict[str, Any]:
    """
    Parse Gemini's terminal text into a JSON object.

    Raises:
        ParseError: If neither strict parsing nor brace extraction works.
    """
    cleaned = strip_code_fence(text)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        block = find_balanced_object(cleaned)
        if block is None:
            raise ParseError("Gemini returned no JSON") from None
        try:
            parsed = json.loads(block)
        except json.JSONDecodeError as exc:
            raise ParseError(f"Gemini returned malformed JSON: {exc}") from exc

    if not isinstance(parsed, dict):
        raise ParseError(f"Expected JSON object, got {type(parsed).__name__}")
    return parsed


def _first_part(response: dict[str, Any]) -> dict[str, Any]:
    try:
        return response["candidates"][0]["content"]["parts"][0]
    except (KeyError, IndexError, TypeError):
        raise ParseError("Gemini response carried no candidate parts") from None


def _call_arguments(call: dict[str, Any]) -> dict[str, Any]:
    if isinstance(call.get("args"), dict):
        return call["args"]
    raw = call.get("arguments") or "{}"
    try:
        args = json.loads(raw) if isinstance(raw, str) else raw
    except json.JSONDecodeError as exc:
        raise ToolDispatchError(f"Unreadable arguments for {call.get('name')}: {raw!r}") from exc
    if not isinstance(args, dict):
        raise ToolDispatchError(f"Arguments for {call.get('name')} must be an object")
    return args


# ---------------------------------------------------------------------------
# Conversation loop
# ---------------------------------------------------------------------------


class ConversationLoop:
    """Drives one audit conversation per run() call; holds no per-run state."""

    def __init__(
        self,
        service: ReasoningService,
        files: TextSource,
        template: PromptTemplate,
        max_tool_iterations: int = DEFAULT_MAX_TOOL_ITERATIONS,
        transcript_limit: int = MAX_TRANSCRIPT_CHARS,
    ) -> None:
        self._service = service
        self._files = files
        self._template = template
        self._max_tool_iterations = max_tool_iterations
        self._transcript_limit = transcript_limit

    async def _dispatch(self, name: str, args: dict[str, Any]) -> dict[str, str]:
        if name != TOOL_NAME:
            raise ToolDispatchError(f"Unknown tool requested: {name}")
        path = args.get("path")
        if not isinstance(path, str) or not path:
            raise ToolDispatchError(f"{TOOL_NAME} requires a string 'path' argument")
        text = await self._files.get_text(path)
        logger.debug("Tool fetched %s (%d chars)", path, len(text))
        return {"text": text}

    def _initial_turn(
        self,
        transcript: Any,
        prompt_file_path: str,
        policy_text: str,
        reference_paths: list[str],
    ) -> dict[str, Any]:
        transcript_str = flatten_transcript(transcript, self._transcript_limit)
        logger.debug("Transcript length: %d chars", len(transcript_str))
        logger.debug("Reference paths: %d | prompt path: %s", len(reference_paths), prompt_file_path)

        payload = {
            "transcript": transcript_str,
            "knowledge_base_files": list(reference_paths),
            "prompt_file_path": prompt_file_path,
            "shape_policy": policy_text,
            "audit_prompt": self._template.materialize(),
        }
        return {"role": "user", "parts": [{"text": json.dumps(payload)}]}

    async def run(
        self,
        transcript: Any,
        prompt_file_path: str,
        policy_text: str,
        reference_paths: list[str],
    ) -> AuditResult:
        """
        Run the conversation to a final answer.

        Raises:
            ToolDispatchError:           Unknown function or bad arguments.
            CapabilityLoopExceededError: More tool calls than allowed.
            ParseError:                  Final answer is not a JSON object.
        """
        turns: list[dict[str, Any]] = [
            self._initial_turn(transcript, prompt_file_path, policy_text, reference_paths)
        ]
        tool_calls = 0

        while True:
            body = {
                "system_instruction": SYSTEM_INSTRUCTION,
                "contents": turns,
                "tools": TOOLS,
            }
            response = await self._service.generate(body)
            part = _first_part(response)

            call = part.get("functionCall")
            if call:
                name = call.get("name", "")
                tool_calls += 1
                if tool_calls > self._max_tool_iterations:
                    raise CapabilityLoopExceededError(
                        f"Gemini requested more than {self._max_tool_iterations} tool calls"
                    )
                logger.debug("Gemini requested %s (call %d)", name, tool_calls)
                result = await self._dispatch(name, _call_arguments(call))
                turns.append({"role": "model", "parts": [part]})
                turns.append({
                    "role": "tool",
                    "toolName": name,
                    "parts": [{"text": json.dumps(result)}],
                })
                continue

            raw = part.get("text", "")
            logger.debug("Raw response preview:\n%s…", raw[:300])
            result = AuditResult.from_payload(parse_final_answer(raw))
            logger.debug("Audit summary: %s", result.summary())
            return result
