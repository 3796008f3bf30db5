# src/focus_planner/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the services.

Services depend on Protocols instead of concrete implementations.
This keeps storage/identity/LLM providers swappable and makes testing easier.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol, TypedDict

from ..records.query import Filter, Order

Row = dict[str, Any]


class RecordBackend(Protocol):
    """
    Row-oriented table store ("tasks", "categories", "commitments").

    Every call is scoped to `owner_id`: rows owned by someone else are
    invisible and untouchable. Foreign-key cascades and uniqueness are the
    backend's job. Errors surface as focus_planner.errors types.
    """

    async def insert(self, table: str, row: Row, *, owner_id: str) -> Row: ...

    async def select(
            self,
            table: str,
            *,
            owner_id: str,
            filters: Sequence[Filter] = (),
            order: Sequence[Order] = (),
    ) -> list[Row]: ...

    async def update(
            self,
            table: str,
            values: Row,
            *,
            owner_id: str,
            filters: Sequence[Filter],
    ) -> list[Row]: ...

    async def delete(self, table: str, *, owner_id: str, filters: Sequence[Filter]) -> int: ...

    async def aclose(self) -> None: ...


@dataclass(frozen=True, slots=True)
class AuthSession:
    """What the identity boundary hands back after a successful sign-in."""

    user_id: str
    email: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None


class IdentityProvider(Protocol):
    async def sign_up(self, email: str, password: str) -> AuthSession: ...

    async def sign_in(self, email: str, password: str) -> AuthSession: ...

    async def sign_in_with_id_token(
            self,
            provider: str,
            id_token: str,
            *,
            nonce: str | None = None,
            access_token: str | None = None,
    ) -> AuthSession: ...

    async def reset_password(self, email: str) -> None: ...

    async def sign_out(self, session: AuthSession) -> None: ...

    async def aclose(self) -> None: ...


class SuggestionRequest(TypedDict, total=False):
    title: str
    description: str
    existingSubtasks: list[str]


class SuggestionReply(TypedDict, total=False):
    subtasks: list[str]
    error: str


class SuggestionBackend(Protocol):
    """Generative backend proposing subtask titles for a task."""

    async def generate_subtasks(self, request: SuggestionRequest) -> SuggestionReply: ...
