# src/focus_planner/auth/supabase_identity.py

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.ports import AuthSession
from ..errors import AuthFailure, TransportFailure

logger = logging.getLogger(__name__)


class SupabaseIdentityProvider:
    """Hosted identity (GoTrue `/auth/v1`) over httpx."""

    def __init__(
            self,
            base_url: str,
            api_key: str,
            *,
            timeout_seconds: float = 15.0,
            client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url.strip():
            raise ValueError("Auth base URL is not set. Set FOCUS_SUPABASE_URL in your .env.")
        if not api_key or not api_key.strip():
            raise ValueError("Auth API key is not set. Set FOCUS_SUPABASE_ANON_KEY in your .env.")
        self._api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/auth/v1",
            timeout=httpx.Timeout(timeout_seconds, connect=min(5.0, timeout_seconds)),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(
            self,
            path: str,
            body: dict[str, Any],
            *,
            params: dict[str, str] | None = None,
            bearer: str | None = None,
    ) -> dict[str, Any]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {bearer or self._api_key}",
        }
        try:
            resp = await self._client.post(path, json=body, params=params, headers=headers)
        except httpx.TransportError as e:
            raise TransportFailure(f"Auth request failed: {e.__class__.__name__}") from e

        data: Any = None
        if resp.content:
            try:
                data = resp.json()
            except ValueError:
                data = None

        if resp.status_code >= 500:
            raise TransportFailure(f"Auth service error: HTTP {resp.status_code}")
        if resp.status_code >= 400:
            msg = ""
            if isinstance(data, dict):
                msg = str(
                    data.get("msg")
                    or data.get("error_description")
                    or data.get("message")
                    or data.get("error")
                    or ""
                )
            raise AuthFailure(msg or f"HTTP {resp.status_code}")

        return data if isinstance(data, dict) else {}

    @staticmethod
    def _to_session(data: dict[str, Any]) -> AuthSession:
        user = data.get("user") if isinstance(data.get("user"), dict) else data
        user_id = user.get("id") if isinstance(user, dict) else None
        if not user_id:
            raise AuthFailure("Identity provider returned no user")
        return AuthSession(
            user_id=str(user_id),
            email=user.get("email"),
            access_token=data.get("access_token"),
            refresh_token=data.get("refresh_token"),
        )

    async def sign_up(self, email: str, password: str) -> AuthSession:
        data = await self._post("/signup", {"email": email, "password": password})
        return self._to_session(data)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        data = await self._post(
            "/token",
            {"email": email, "password": password},
            params={"grant_type": "password"},
        )
        return self._to_session(data)

    async def sign_in_with_id_token(
            self,
            provider: str,
            id_token: str,
            *,
            nonce: str | None = None,
            access_token: str | None = None,
    ) -> AuthSession:
        body: dict[str, Any] = {"provider": provider, "id_token": id_token}
        if nonce:
            body["nonce"] = nonce
        if access_token:
            body["access_token"] = access_token
        data = await self._post("/token", body, params={"grant_type": "id_token"})
        return self._to_session(data)

    async def reset_password(self, email: str) -> None:
        await self._post("/recover", {"email": email})
        logger.info("Password reset email requested")

    async def sign_out(self, session: AuthSession) -> None:
        if not session.access_token:
            return
        await self._post("/logout", {}, bearer=session.access_token)
