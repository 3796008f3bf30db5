# src/focus_planner/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Settings are passed explicitly into the composition root (cli/bootstrap.py).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "FOCUS"

BACKEND_SQLITE = "sqlite"
BACKEND_SUPABASE = "supabase"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    # IANA zone for planning periods ("" = system local zone).
    timezone: str

    # ---- Persistence / identity backend ----
    backend: str
    supabase_url: str
    supabase_anon_key: str | None
    http_timeout_seconds: float

    # ---- Suggestions (OpenRouter / OpenAI-compatible) ----
    openrouter_api_key: str | None
    openrouter_base_url: str
    llm_models: list[str]
    extra_headers: dict[str, str]
    llm_connect_timeout_seconds: float
    llm_read_timeout_seconds: float

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path
    log_dir: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _first_env(_k("APP_NAME"), default="focus") or "focus"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        timezone = _env(_k("TIMEZONE"), "").strip()

        supabase_url = (_first_env(_k("SUPABASE_URL"), "SUPABASE_URL", default="") or "").strip()
        supabase_anon_key = _first_env(_k("SUPABASE_ANON_KEY"), "SUPABASE_ANON_KEY", default=None)

        # Explicit backend wins; otherwise use Supabase only when it is configured.
        default_backend = BACKEND_SUPABASE if supabase_url and supabase_anon_key else BACKEND_SQLITE
        backend = _env(_k("BACKEND"), default_backend).strip().lower() or default_backend
        if backend not in (BACKEND_SQLITE, BACKEND_SUPABASE):
            backend = default_backend

        http_timeout_seconds = _env_float(_k("HTTP_TIMEOUT_SECONDS"), 15.0)

        openrouter_api_key = _first_env(_k("OPENROUTER_API_KEY"), "OPENROUTER_API_KEY", default=None)
        openrouter_base_url = _env(_k("OPENROUTER_BASE_URL"), "https://openrouter.ai/api/v1")

        http_referer = _env(_k("HTTP_REFERER"), "https://example.com")
        title = _env(_k("APP_TITLE"), app_name)
        extra_headers = {
            "HTTP-Referer": http_referer,
            "X-Title": title,
        }

        llm_models = _env_list(
            _k("LLM_MODELS"),
            [
                "qwen/qwen-2.5-72b-instruct:free",
                "deepseek/deepseek-chat-v3-0324:free",
            ],
        )

        llm_connect_timeout_seconds = _env_float(_k("LLM_CONNECT_TIMEOUT_SECONDS"), 5.0)
        llm_read_timeout_seconds = _env_float(_k("LLM_READ_TIMEOUT_SECONDS"), 30.0)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/focus"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "focus.sqlite3")
        log_dir = _env_path(_k("LOG_DIR"), data_dir)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            timezone=timezone,
            backend=backend,
            supabase_url=supabase_url,
            supabase_anon_key=supabase_anon_key,
            http_timeout_seconds=http_timeout_seconds,
            openrouter_api_key=openrouter_api_key,
            openrouter_base_url=openrouter_base_url,
            llm_models=llm_models,
            extra_headers=extra_headers,
            llm_connect_timeout_seconds=llm_connect_timeout_seconds,
            llm_read_timeout_seconds=max(llm_read_timeout_seconds, llm_connect_timeout_seconds),
            data_dir=data_dir,
            db_path=db_path,
            log_dir=log_dir,
        )


def get_settings() -> Settings:
    """Read settings from the current environment."""
    return Settings.from_env()
