# src/focus_planner/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (records/identity/suggestions),
- closes them again on shutdown.
"""

from __future__ import annotations

import logging
from datetime import tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..auth.local_identity import LocalIdentityProvider
from ..auth.session import Session
from ..auth.supabase_identity import SupabaseIdentityProvider
from ..config import BACKEND_SUPABASE, Settings, get_settings
from ..core.ports import IdentityProvider, RecordBackend, SuggestionBackend
from ..core.state import AppState
from ..llm.client import OpenRouterSuggestionBackend, friendly_llm_error_message
from ..llm.offline import OfflineSuggestionBackend
from ..records.categories import CategoryRepository
from ..records.commitments import CommitmentRepository
from ..records.rest_store import RestRecordStore
from ..records.sqlite_store import SQLiteRecordStore
from ..records.tasks import TaskRepository
from ..suggestions.service import SuggestionService

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.log_dir.mkdir(parents=True, exist_ok=True)


def _make_suggestion_backend(settings: Settings) -> SuggestionBackend:
    if not settings.openrouter_api_key:
        logger.info("No OpenRouter API key configured; suggestions run offline.")
        return OfflineSuggestionBackend()
    try:
        return OpenRouterSuggestionBackend(settings)
    except RuntimeError as e:
        msg = friendly_llm_error_message(e)
        logger.warning("Suggestion backend unavailable: %s", msg)
        return OfflineSuggestionBackend(msg)


def _planning_zone(settings: Settings) -> tzinfo | None:
    name = (settings.timezone or "").strip()
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r; planning in the system local zone.", name)
        return None


def create_initial_state(*, settings: Settings | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    identity: IdentityProvider
    backend: RecordBackend
    if settings.backend == BACKEND_SUPABASE:
        identity = SupabaseIdentityProvider(
            settings.supabase_url,
            settings.supabase_anon_key or "",
            timeout_seconds=settings.http_timeout_seconds,
        )
        session = Session(identity)
        backend = RestRecordStore(
            settings.supabase_url,
            settings.supabase_anon_key or "",
            token_provider=lambda: session.access_token,
            timeout_seconds=settings.http_timeout_seconds,
        )
    else:
        identity = LocalIdentityProvider(settings.db_path)
        session = Session(identity)
        backend = SQLiteRecordStore(settings.db_path)

    suggestion_backend = _make_suggestion_backend(settings)
    logger.info(
        "State ready (backend=%s, suggestions=%s)",
        settings.backend,
        suggestion_backend.__class__.__name__,
    )

    return AppState(
        settings=settings,
        backend=backend,
        identity=identity,
        session=session,
        tasks=TaskRepository(backend, session),
        categories=CategoryRepository(backend, session),
        commitments=CommitmentRepository(backend, session, _planning_zone(settings)),
        suggestion_backend=suggestion_backend,
        suggestions=SuggestionService(suggestion_backend),
    )


async def shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    for name in ("suggestion_backend", "backend", "identity"):
        resource = getattr(state, name, None)
        close = getattr(resource, "aclose", None)
        if close is None:
            continue
        try:
            await close()
        except Exception:
            logger.debug("Closing %s failed.", name, exc_info=True)
