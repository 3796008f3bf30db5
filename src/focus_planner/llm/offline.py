# src/focus_planner/llm/offline.py

from __future__ import annotations

from ..core.ports import SuggestionReply, SuggestionRequest


class OfflineSuggestionBackend:
    """
    Suggestion backend used when no external LLM is configured.

    Every request gets an `error` reply, so the suggestion service reports
    "unavailable" instead of inventing subtasks.
    """

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason or (
            "Offline mode: no LLM is configured. "
            "Set FOCUS_OPENROUTER_API_KEY (and FOCUS_LLM_MODELS) to enable suggestions."
        )

    async def generate_subtasks(self, request: SuggestionRequest) -> SuggestionReply:
        return {"error": self.reason}

    async def aclose(self) -> None:
        return None
