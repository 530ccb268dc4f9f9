# src/llm/__init__.py
# =====================
# Gemini Audit Conversation — Audit Agent
#
# The conversation loop lets Gemini pull Drive files on demand through the
# get_drive_txt tool until it returns the final JSON audit.

from src.llm.conversation import (  # noqa: F401
    CapabilityLoopExceededError,
    ConversationLoop,
    ParseError,
    ToolDispatchError,
)

__all__ = [
    "ConversationLoop",
    "CapabilityLoopExceededError",
    "ParseError",
    "ToolDispatchError",
]
