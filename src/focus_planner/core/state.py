# src/focus_planner/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..auth.session import Session
from ..config import Settings
from ..records.categories import CategoryRepository
from ..records.commitments import CommitmentRepository
from ..records.tasks import TaskRepository
from ..suggestions.service import SuggestionService
from .ports import IdentityProvider, RecordBackend, SuggestionBackend


@dataclass
class AppState:
    """Everything a connector needs, wired once by cli.bootstrap."""

    settings: Settings

    backend: RecordBackend
    identity: IdentityProvider
    session: Session

    tasks: TaskRepository
    categories: CategoryRepository
    commitments: CommitmentRepository

    suggestion_backend: SuggestionBackend
    suggestions: SuggestionService
