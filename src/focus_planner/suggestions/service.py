# src/focus_planner/suggestions/service.py

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from ..core.ports import SuggestionBackend, SuggestionRequest
from ..errors import SuggestionFailed

logger = logging.getLogger(__name__)


def _normalize(title: str) -> str:
    return title.strip().lower()


def filter_suggestions(suggestions: Iterable[str], existing: Iterable[str] = ()) -> list[str]:
    """
    Drop suggestions that are blank or already present.

    Comparison ignores case and surrounding whitespace. A title repeated
    within the batch is kept once, at its first position. Order is preserved.
    """
    seen = {_normalize(t) for t in existing}
    out: list[str] = []
    for s in suggestions:
        key = _normalize(s)
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(s)
    return out


class SuggestionService:
    """AI subtask suggestions for a task, filtered against what it already has."""

    def __init__(self, backend: SuggestionBackend) -> None:
        self._backend = backend

    async def suggest_subtasks(
            self,
            title: str,
            description: str | None = None,
            existing: Sequence[str] | None = None,
    ) -> list[str]:
        request: SuggestionRequest = {"title": title}
        if description:
            request["description"] = description
        if existing:
            request["existingSubtasks"] = list(existing)

        reply = await self._backend.generate_subtasks(request)

        error = reply.get("error")
        if error:
            logger.warning("Suggestion backend error for %r: %s", title, error)
            raise SuggestionFailed(str(error))
        subtasks = reply.get("subtasks")
        if subtasks is None:
            raise SuggestionFailed("No subtasks returned")

        filtered = filter_suggestions(subtasks, existing or ())
        logger.info(
            "Suggestions for %r: %d returned, %d kept", title, len(subtasks), len(filtered)
        )
        return filtered
