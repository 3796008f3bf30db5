# tests/test_bootstrap.py

from __future__ import annotations

import pytest

from focus_planner.auth.local_identity import LocalIdentityProvider
from focus_planner.auth.supabase_identity import SupabaseIdentityProvider
from focus_planner.cli.bootstrap import create_initial_state, shutdown
from focus_planner.core.ports import AuthSession
from focus_planner.llm.client import OpenRouterSuggestionBackend
from focus_planner.llm.offline import OfflineSuggestionBackend
from focus_planner.records.rest_store import RestRecordStore
from focus_planner.records.sqlite_store import SQLiteRecordStore


@pytest.mark.asyncio
async def test_local_state_without_llm_key(settings) -> None:
    state = create_initial_state(settings=settings)

    assert isinstance(state.backend, SQLiteRecordStore)
    assert isinstance(state.identity, LocalIdentityProvider)
    assert isinstance(state.suggestion_backend, OfflineSuggestionBackend)
    assert settings.db_path.exists()
    assert settings.log_dir.is_dir()

    await state.session.sign_up("ada@example.com", "secret1")
    task = await state.tasks.create_task("First")
    assert task.user_id == state.session.user_id

    await shutdown(state)


@pytest.mark.asyncio
async def test_llm_key_enables_openrouter_backend(settings) -> None:
    settings.openrouter_api_key = "sk-test"
    state = create_initial_state(settings=settings)
    assert isinstance(state.suggestion_backend, OpenRouterSuggestionBackend)
    await shutdown(state)


@pytest.mark.asyncio
async def test_misconfigured_llm_falls_back_offline(settings) -> None:
    settings.openrouter_api_key = "sk-test"
    settings.openrouter_base_url = "  "
    state = create_initial_state(settings=settings)

    assert isinstance(state.suggestion_backend, OfflineSuggestionBackend)
    assert "missing base URL" in state.suggestion_backend.reason
    await shutdown(state)


@pytest.mark.asyncio
async def test_supabase_state_uses_session_token(settings) -> None:
    settings.backend = "supabase"
    settings.supabase_url = "https://project.supabase.test"
    settings.supabase_anon_key = "anon-key"
    state = create_initial_state(settings=settings)

    assert isinstance(state.backend, RestRecordStore)
    assert isinstance(state.identity, SupabaseIdentityProvider)

    state.session.restore(AuthSession(user_id="u1", access_token="jwt"))
    assert state.backend._headers()["Authorization"] == "Bearer jwt"

    await shutdown(state)


@pytest.mark.asyncio
async def test_unknown_timezone_falls_back_to_local_zone(settings) -> None:
    settings.timezone = "Not/AZone"
    state = create_initial_state(settings=settings)
    assert state.commitments.tz is None
    await shutdown(state)
