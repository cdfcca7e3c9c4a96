"""State definition for the conversation LangGraph."""

from __future__ import annotations

from typing import TypedDict


class ConversationState(TypedDict, total=False):
    """State shared across LangGraph nodes.

    The conversation itself lives on the orchestrator; the graph only
    carries loop bookkeeping.
    """

    rounds: int
    pending_calls: bool
