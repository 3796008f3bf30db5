# src/focus_planner/llm/client.py

from __future__ import annotations

import json
import logging
import time
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from ..config import Settings
from ..core.ports import SuggestionReply, SuggestionRequest

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a task planning assistant for a productivity app. Your job is to break "
    "tasks into specific, actionable subtasks. Each subtask must start with a verb, "
    "be concise (under 60 characters), and be logically ordered. Return ONLY a valid "
    "JSON array of strings, no markdown, no explanation."
)

# A model that 404s is skipped for this long.
BAD_MODEL_COOLDOWN_SECONDS = 3600.0


def _is_auth_error(exc: Exception) -> bool:
    return exc.__class__.__name__ in {
        "AuthenticationError",
        "PermissionDeniedError",
        "UnauthorizedError",
    }


def _is_rate_limit_error(exc: Exception) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    return exc.__class__.__name__ in {"RateLimitError", "TooManyRequestsError"}


def _is_connection_error(exc: Exception) -> bool:
    return exc.__class__.__name__ in {
        "APIConnectionError",
        "APITimeoutError",
        "Timeout",
        "ConnectTimeout",
        "ReadTimeout",
        "WriteTimeout",
    }


def _is_not_found_error(exc: Exception) -> bool:
    # OpenAI-compatible SDK uses NotFoundError for HTTP 404
    return exc.__class__.__name__ in {"NotFoundError"}


def build_user_prompt(request: SuggestionRequest) -> str:
    title = request.get("title", "")
    description = request.get("description")
    context = f'Task: "{title}"'
    if description:
        context += f'\nDescription: "{description}"'

    prompt = f"Break down the following task into 4-6 specific, actionable subtasks.\n\n{context}"

    existing = request.get("existingSubtasks") or []
    if existing:
        listed = "\n".join(f"- {s}" for s in existing)
        prompt += (
            "\n\nThe following subtasks already exist for this task. Do NOT repeat or "
            "rephrase these. Generate ONLY new, different subtasks that complement the "
            f"existing ones:\n{listed}"
        )

    prompt += (
        '\n\nReturn ONLY a JSON array of strings. '
        'Example: ["Research options", "Draft outline", "Write first draft"]'
    )
    return prompt


def parse_subtasks(content: str) -> list[str] | None:
    """
    Extract a JSON array of strings from a model reply.

    Models sometimes wrap the array in a code fence or a sentence, so the
    outermost [...] is used. Returns None when no valid array is found.
    """
    text = (content or "").strip()
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end <= start:
        return None
    try:
        data = json.loads(text[start: end + 1])
    except json.JSONDecodeError:
        return None
    if not isinstance(data, list) or not all(isinstance(s, str) for s in data):
        return None
    return data


class OpenRouterSuggestionBackend:
    """
    Subtask suggestions from an OpenAI-compatible API (OpenRouter by default).

    Models are tried in the configured order:
    - 404 (model not available) -> cooled down, try next.
    - Rate limit / network issues / unusable reply -> try next.
    - Auth issues -> fail fast (no retries across models).

    Failures are reported in the reply's `error` field, never raised.
    """

    def __init__(self, settings: Settings, client: Any | None = None) -> None:
        self._settings = settings
        self._models = [m.strip() for m in settings.llm_models if m and m.strip()]
        self._headers = dict(settings.extra_headers or {})
        self._bad_models: dict[str, float] = {}  # model -> retry_at (monotonic)
        self._client = client if client is not None else self._make_client(settings)

    @staticmethod
    def _make_client(settings: Settings) -> AsyncOpenAI:
        api_key = settings.openrouter_api_key
        if not api_key or not api_key.strip():
            raise RuntimeError("LLM API key is not set. Set FOCUS_OPENROUTER_API_KEY in your .env.")
        if not settings.openrouter_base_url.strip():
            raise RuntimeError("LLM base URL is not set. Set FOCUS_OPENROUTER_BASE_URL in your .env.")

        timeout = httpx.Timeout(
            connect=settings.llm_connect_timeout_seconds,
            read=settings.llm_read_timeout_seconds,
            write=10.0,
            pool=settings.llm_connect_timeout_seconds,
        )
        # No automatic retries: fallback across models is quicker.
        return AsyncOpenAI(
            base_url=settings.openrouter_base_url,
            api_key=api_key,
            timeout=timeout,
            max_retries=0,
        )

    async def generate_subtasks(self, request: SuggestionRequest) -> SuggestionReply:
        title = (request.get("title") or "").strip()
        if not title:
            return {"error": "Task title is required"}
        if not self._models:
            return {"error": "LLM model list is empty. Set FOCUS_LLM_MODELS in your .env."}

        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_user_prompt(request)},
        ]

        last_error: str | None = None
        now = time.monotonic()

        for model in self._models:
            retry_at = self._bad_models.get(model)
            if retry_at is not None and retry_at > now:
                continue

            logger.info("LLM: trying model=%s", model)
            t0 = time.monotonic()
            try:
                response = await self._client.chat.completions.create(
                    model=model,
                    messages=messages,
                    max_tokens=1024,
                    extra_headers=self._headers or None,
                )
            except Exception as e:
                if _is_auth_error(e):
                    logger.warning("LLM: authentication failed on model=%s", model)
                    return {
                        "error": "LLM authentication failed. Check your API key (FOCUS_OPENROUTER_API_KEY)."
                    }
                if _is_not_found_error(e):
                    self._bad_models[model] = time.monotonic() + BAD_MODEL_COOLDOWN_SECONDS
                    logger.info("LLM: model not available (404): %s", model)
                    last_error = f"Model not available: {model}"
                elif _is_rate_limit_error(e):
                    logger.info("LLM: rate-limited on model=%s, trying next", model)
                    last_error = "LLM is rate-limited. Try again later."
                elif _is_connection_error(e):
                    logger.info("LLM: network/timeout error on model=%s, trying next", model)
                    last_error = "LLM network/timeout error. Try again later or change models."
                else:
                    logger.info("LLM: error on model=%s (%s), trying next", model, e.__class__.__name__)
                    last_error = f"LLM error: {e}"
                continue

            try:
                content = response.choices[0].message.content or ""
            except (AttributeError, IndexError):
                content = ""

            subtasks = parse_subtasks(content)
            if subtasks is None:
                logger.info("LLM: unusable reply from model=%s, trying next", model)
                last_error = "Invalid AI response format"
                continue

            logger.info(
                "LLM: %d subtasks from model=%s (%.2fs)", len(subtasks), model, time.monotonic() - t0
            )
            return {"subtasks": subtasks}

        return {"error": last_error or "All LLM models failed."}

    async def aclose(self) -> None:
        close = getattr(self._client, "close", None)
        if close is not None:
            await close()


def friendly_llm_error_message(err: Exception) -> str:
    msg = str(err).strip() or "LLM error."
    if "LLM API key is not set" in msg:
        return "LLM is not configured (missing API key). Set FOCUS_OPENROUTER_API_KEY in .env."
    if "LLM base URL is not set" in msg:
        return "LLM is not configured (missing base URL). Set FOCUS_OPENROUTER_BASE_URL in .env."
    return msg
