"""
tests/test_conversation.py
===========================
Audit Conversation Tests — Gemini tool loop

Test categories:
    1. OFFLINE UNIT TESTS
       - Transcript flattening + truncation
       - Final-answer parsing (fences, brace fallback, ParseError)
       - Prompt template materialization
    2. MOCK LOOP TESTS — Gemini mocked
       - Direct final answer
       - get_drive_txt round trip through the file cache
       - Unknown tool → ToolDispatchError (no retry)
       - Iteration cap → CapabilityLoopExceededError

All tests are offline — no LLM or API calls.
"""

import asyncio
import json
import os
import sys
import tempfile
import unittest
from datetime import datetime, timezone
from unittest.mock import AsyncMock

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from src.audit.models import AuditResult
from src.llm.conversation import (
    MAX_TRANSCRIPT_CHARS,
    TOOL_NAME,
    CapabilityLoopExceededError,
    ConversationLoop,
    ParseError,
    ToolDispatchError,
    find_balanced_object,
    flatten_transcript,
    parse_final_answer,
    strip_code_fence,
)
from src.llm.prompt_template import PromptTemplate, load_template


# ===================================================================
# Test fixtures
# ===================================================================

TRANSCRIPT = [
    {"user": "assistant", "text": "Hi, this is Ava from Crio."},
    {"user": "user", "text": "Hi, what does the course cost?"},
]

FINAL_PAYLOAD = {
    "hallucinations": [{"quote": "It is free"}],
    "prompt_gaps": [],
    "knowledge_base_gaps": [],
    "shape_policy_violations": [{"quote": "Buy now"}],
    "action_items": ["Fix pricing answer"],
}


def _text_response(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _call_response(name: str, args: dict | None = None, as_string: bool = True) -> dict:
    call: dict = {"name": name}
    if as_string:
        call["arguments"] = json.dumps(args or {})
    else:
        call["args"] = args or {}
    return {"candidates": [{"content": {"parts": [{"functionCall": call}]}}]}


class FakeFiles:
    def __init__(self, texts: dict[str, str]):
        self.texts = texts
        self.requested: list[str] = []

    async def get_text(self, path: str) -> str:
        self.requested.append(path)
        return self.texts.get(path, "")


def _template() -> PromptTemplate:
    return PromptTemplate({"instructions": {"context": {"date": ""}}, "output_format": {}})


def _loop(responses: list[dict], files: FakeFiles | None = None, **kwargs) -> tuple:
    service = AsyncMock()
    service.generate.side_effect = responses
    files = files or FakeFiles({})
    loop = ConversationLoop(service, files, _template(), **kwargs)
    return loop, service, files


def _run(loop: ConversationLoop, transcript=TRANSCRIPT) -> AuditResult:
    return asyncio.run(loop.run(
        transcript=transcript,
        prompt_file_path="Prompt/General/sales.txt",
        policy_text="Never pressure the lead.",
        reference_paths=["Knowledge_Base/pricing.txt"],
    ))


# ===================================================================
# 1. TRANSCRIPT FLATTENING
# ===================================================================


class TestFlattenTranscript(unittest.TestCase):

    def test_turns_become_bracketed_lines(self):
        self.assertEqual(
            flatten_transcript(TRANSCRIPT),
            "[assistant] Hi, this is Ava from Crio.\n[user] Hi, what does the course cost?",
        )

    def test_plain_string_passes_through(self):
        self.assertEqual(flatten_transcript("raw text"), "raw text")

    def test_speaker_key_is_accepted(self):
        self.assertEqual(flatten_transcript([{"speaker": "AGENT", "text": "hi"}]), "[AGENT] hi")

    def test_truncated_to_exact_budget_without_marker(self):
        long_text = "x" * (MAX_TRANSCRIPT_CHARS + 500)
        flat = flatten_transcript(long_text)
        self.assertEqual(len(flat), MAX_TRANSCRIPT_CHARS)
        self.assertEqual(flat, long_text[:MAX_TRANSCRIPT_CHARS])

    def test_truncation_applies_to_turn_lists(self):
        turns = [{"user": "user", "text": "y" * 1000} for _ in range(20)]
        flat = flatten_transcript(turns)
        self.assertEqual(len(flat), MAX_TRANSCRIPT_CHARS)
        self.assertTrue(flat.startswith("[user] yyy"))

    def test_short_transcript_untouched(self):
        self.assertEqual(flatten_transcript("short", limit=100), "short")


# ===================================================================
# 2. FINAL ANSWER PARSING
# ===================================================================


class TestParseFinalAnswer(unittest.TestCase):

    def test_plain_json(self):
        self.assertEqual(parse_final_answer('{"hallucinations": []}'), {"hallucinations": []})

    def test_fenced_json_matches_unwrapped(self):
        fenced = '```json\n{"hallucinations":[]}\n```'
        self.assertEqual(parse_final_answer(fenced), parse_final_answer('{"hallucinations":[]}'))

    def test_bare_fence_without_language(self):
        self.assertEqual(parse_final_answer('```\n{"a": 1}\n```'), {"a": 1})

    def test_strip_code_fence_leaves_plain_text(self):
        self.assertEqual(strip_code_fence('  {"a": 1}  '), '{"a": 1}')

    def test_leading_prose_uses_brace_fallback(self):
        text = 'Here is the audit you asked for:\n{"prompt_gaps": ["x"]}\nThanks!'
        self.assertEqual(parse_final_answer(text), {"prompt_gaps": ["x"]})

    def test_fallback_picks_first_balanced_block(self):
        text = 'A {"a": {"b": 1}} then {"c": 2}'
        self.assertEqual(parse_final_answer(text), {"a": {"b": 1}})

    def test_braces_inside_strings_are_ignored(self):
        self.assertEqual(
            find_balanced_object('note: {"quote": "use } carefully"} end'),
            '{"quote": "use } carefully"}',
        )

    def test_no_block_raises_parse_error(self):
        with self.assertRaises(ParseError):
            parse_final_answer("I could not complete the audit.")

    def test_unbalanced_block_raises_parse_error(self):
        with self.assertRaises(ParseError):
            parse_final_answer('Result: {"a": [1, 2')

    def test_non_object_json_raises_parse_error(self):
        with self.assertRaises(ParseError):
            parse_final_answer("[1, 2, 3]")


# ===================================================================
# 3. PROMPT TEMPLATE
# ===================================================================


class TestPromptTemplate(unittest.TestCase):

    def test_materialize_injects_date(self):
        now = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
        prompt = _template().materialize(now)
        self.assertEqual(prompt["instructions"]["context"]["date"], now.isoformat())

    def test_materialized_copies_do_not_alias(self):
        template = _template()
        first = template.materialize()
        first["instructions"]["context"]["date"] = "mutated"
        first["output_format"]["extra"] = True
        second = template.materialize()
        self.assertNotEqual(second["instructions"]["context"]["date"], "mutated")
        self.assertNotIn("extra", second["output_format"])

    def test_missing_context_is_created(self):
        prompt = PromptTemplate({"output_format": {}}).materialize()
        self.assertIn("date", prompt["instructions"]["context"])

    def test_non_object_template_rejected(self):
        with self.assertRaises(ValueError):
            PromptTemplate(["not", "an", "object"])

    def test_load_template_from_file(self):
        with tempfile.NamedTemporaryFile("w", suffix=".json", delete=False) as fh:
            json.dump({"instructions": {"context": {}}}, fh)
        try:
            prompt = load_template(fh.name).materialize()
        finally:
            os.unlink(fh.name)
        self.assertIn("date", prompt["instructions"]["context"])

    def test_shipped_template_names_output_categories(self):
        path = os.path.join(os.path.dirname(__file__), "..", "config", "audit_agent_prompt.json")
        prompt = load_template(path).materialize()
        self.assertEqual(
            set(prompt["output_format"]),
            {"hallucinations", "prompt_gaps", "knowledge_base_gaps",
             "shape_policy_violations", "action_items"},
        )


# ===================================================================
# 4. CONVERSATION LOOP (Gemini mocked)
# ===================================================================


class TestConversationLoop(unittest.TestCase):

    def test_direct_final_answer(self):
        loop, service, _ = _loop([_text_response(json.dumps(FINAL_PAYLOAD))])
        result = _run(loop)

        self.assertEqual(service.generate.await_count, 1)
        self.assertEqual(result.hallucinations, ({"quote": "It is free"},))
        self.assertEqual(result.policy_violations, ({"quote": "Buy now"},))
        self.assertEqual(dict(result.raw), FINAL_PAYLOAD)

    def test_initial_turn_carries_structured_payload(self):
        loop, service, _ = _loop([_text_response("{}")])
        _run(loop)

        body = service.generate.await_args.args[0]
        self.assertEqual(body["tools"][0]["function_declarations"][0]["name"], TOOL_NAME)
        self.assertIn("system_instruction", body)
        self.assertEqual(len(body["contents"]), 1)
        payload = json.loads(body["contents"][0]["parts"][0]["text"])
        self.assertEqual(payload["prompt_file_path"], "Prompt/General/sales.txt")
        self.assertEqual(payload["knowledge_base_files"], ["Knowledge_Base/pricing.txt"])
        self.assertEqual(payload["shape_policy"], "Never pressure the lead.")
        self.assertTrue(payload["transcript"].startswith("[assistant] Hi"))
        self.assertTrue(payload["audit_prompt"]["instructions"]["context"]["date"])

    def test_tool_call_round_trip(self):
        files = FakeFiles({"Knowledge_Base/pricing.txt": "Course costs 100."})
        loop, service, files = _loop(
            [
                _call_response(TOOL_NAME, {"path": "Knowledge_Base/pricing.txt"}),
                _text_response('```json\n{"hallucinations": []}\n```'),
            ],
            files,
        )
        result = _run(loop)

        self.assertEqual(files.requested, ["Knowledge_Base/pricing.txt"])
        self.assertEqual(result.hallucinations, ())
        second_body = service.generate.await_args_list[1].args[0]
        roles = [turn["role"] for turn in second_body["contents"]]
        self.assertEqual(roles, ["user", "model", "tool"])
        tool_turn = second_body["contents"][-1]
        self.assertEqual(json.loads(tool_turn["parts"][0]["text"]), {"text": "Course costs 100."})

    def test_object_args_are_accepted(self):
        files = FakeFiles({"a.txt": "A"})
        loop, _, files = _loop(
            [_call_response(TOOL_NAME, {"path": "a.txt"}, as_string=False), _text_response("{}")],
            files,
        )
        _run(loop)
        self.assertEqual(files.requested, ["a.txt"])

    def test_unknown_tool_raises_without_retry(self):
        loop, service, files = _loop([
            _call_response("delete_file", {"path": "Knowledge_Base/pricing.txt"}),
            _text_response("{}"),
        ])
        with self.assertRaises(ToolDispatchError):
            _run(loop)
        self.assertEqual(service.generate.await_count, 1)
        self.assertEqual(files.requested, [])

    def test_missing_path_argument_raises(self):
        loop, _, _ = _loop([_call_response(TOOL_NAME, {})])
        with self.assertRaises(ToolDispatchError):
            _run(loop)

    def test_iteration_cap_raises(self):
        responses = [_call_response(TOOL_NAME, {"path": "a.txt"}) for _ in range(4)]
        loop, service, _ = _loop(responses, max_tool_iterations=3)
        with self.assertRaises(CapabilityLoopExceededError):
            _run(loop)
        self.assertEqual(service.generate.await_count, 4)

    def test_unparseable_final_answer_raises(self):
        loop, _, _ = _loop([_text_response("Sorry, no audit today.")])
        with self.assertRaises(ParseError):
            _run(loop)

    def test_empty_candidates_raise_parse_error(self):
        loop, _, _ = _loop([{"candidates": []}])
        with self.assertRaises(ParseError):
            _run(loop)

    def test_transport_error_propagates_unchanged(self):
        loop, _, _ = _loop([asyncio.TimeoutError()])
        with self.assertRaises(asyncio.TimeoutError):
            _run(loop)


if __name__ == "__main__":
    unittest.main()
