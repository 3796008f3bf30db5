# tests/conftest.py

from __future__ import annotations

from datetime import timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

from focus_planner.auth.session import Session
from focus_planner.core.ports import AuthSession
from focus_planner.core.state import AppState
from focus_planner.records.categories import CategoryRepository
from focus_planner.records.commitments import CommitmentRepository
from focus_planner.records.sqlite_store import SQLiteRecordStore
from focus_planner.records.tasks import TaskRepository
from focus_planner.suggestions.service import SuggestionService

from .fakes import CountingBackend, FakeIdentityProvider, FakeSuggestionBackend


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="focus-test",
        log_level="DEBUG",
        timezone="",
        backend="sqlite",
        supabase_url="",
        supabase_anon_key=None,
        http_timeout_seconds=5.0,
        openrouter_api_key=None,
        openrouter_base_url="https://llm.invalid/api/v1",
        llm_models=["model-a", "model-b"],
        extra_headers={"X-Title": "focus-test"},
        llm_connect_timeout_seconds=1.0,
        llm_read_timeout_seconds=2.0,
        # Paths (tmp per test run)
        data_dir=tmp_path,
        db_path=tmp_path / "focus.sqlite3",
        log_dir=tmp_path / "logs",
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> SQLiteRecordStore:
    """Real SQLite store: cascades and constraints are part of what we test."""
    return SQLiteRecordStore(settings.db_path)


@pytest.fixture()
def backend(store: SQLiteRecordStore) -> CountingBackend:
    return CountingBackend(store)


@pytest.fixture()
def identity() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture()
def session(identity: FakeIdentityProvider) -> Session:
    s = Session(identity)
    s.restore(AuthSession(user_id="user-a", email="a@example.com"))
    return s


@pytest.fixture()
def other_session(identity: FakeIdentityProvider) -> Session:
    s = Session(identity)
    s.restore(AuthSession(user_id="user-b", email="b@example.com"))
    return s


@pytest.fixture()
def tasks(backend: CountingBackend, session: Session) -> TaskRepository:
    return TaskRepository(backend, session)


@pytest.fixture()
def categories(backend: CountingBackend, session: Session) -> CategoryRepository:
    return CategoryRepository(backend, session)


@pytest.fixture()
def commitments(backend: CountingBackend, session: Session) -> CommitmentRepository:
    # Period math in UTC so dates in tests do not depend on the host zone.
    return CommitmentRepository(backend, session, timezone.utc)


@pytest.fixture()
def suggestion_backend() -> FakeSuggestionBackend:
    return FakeSuggestionBackend()


@pytest.fixture()
def state(
    settings: SimpleNamespace,
    backend: CountingBackend,
    identity: FakeIdentityProvider,
    session: Session,
    tasks: TaskRepository,
    categories: CategoryRepository,
    commitments: CommitmentRepository,
    suggestion_backend: FakeSuggestionBackend,
) -> AppState:
    """AppState wired with the real SQLite store and deterministic fakes."""
    return AppState(
        settings=settings,  # type: ignore[arg-type]
        backend=backend,
        identity=identity,
        session=session,
        tasks=tasks,
        categories=categories,
        commitments=commitments,
        suggestion_backend=suggestion_backend,
        suggestions=SuggestionService(suggestion_backend),
    )
