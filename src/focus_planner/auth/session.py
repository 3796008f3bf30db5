# src/focus_planner/auth/session.py

from __future__ import annotations

import logging

from ..core.ports import AuthSession, IdentityProvider
from ..errors import AuthFailure

logger = logging.getLogger(__name__)

PROVIDER_APPLE = "apple"
PROVIDER_GOOGLE = "google"


class Session:
    """
    The signed-in user for one AppState.

    Repositories ask the session for `user_id` on every call; it is the only
    scoping key they know about.
    """

    def __init__(self, provider: IdentityProvider) -> None:
        self._provider = provider
        self._current: AuthSession | None = None

    @property
    def current(self) -> AuthSession | None:
        return self._current

    @property
    def is_authenticated(self) -> bool:
        return self._current is not None

    @property
    def user_id(self) -> str:
        if self._current is None:
            raise AuthFailure("No authenticated user")
        return self._current.user_id

    @property
    def access_token(self) -> str | None:
        return self._current.access_token if self._current else None

    def restore(self, auth: AuthSession) -> None:
        """Adopt a session obtained elsewhere (stored token, tests)."""
        self._current = auth

    async def sign_up(self, email: str, password: str) -> AuthSession:
        self._current = await self._provider.sign_up(email.strip(), password)
        logger.info("Signed up user_id=%s", self._current.user_id)
        return self._current

    async def sign_in(self, email: str, password: str) -> AuthSession:
        self._current = await self._provider.sign_in(email.strip(), password)
        logger.info("Signed in user_id=%s", self._current.user_id)
        return self._current

    async def sign_in_with_apple(self, id_token: str, nonce: str) -> AuthSession:
        self._current = await self._provider.sign_in_with_id_token(
            PROVIDER_APPLE, id_token, nonce=nonce
        )
        logger.info("Signed in with Apple user_id=%s", self._current.user_id)
        return self._current

    async def sign_in_with_google(self, id_token: str, access_token: str) -> AuthSession:
        self._current = await self._provider.sign_in_with_id_token(
            PROVIDER_GOOGLE, id_token, access_token=access_token
        )
        logger.info("Signed in with Google user_id=%s", self._current.user_id)
        return self._current

    async def reset_password(self, email: str) -> None:
        await self._provider.reset_password(email.strip())

    async def sign_out(self) -> None:
        if self._current is None:
            return
        current = self._current
        # Local state is cleared even if the provider call fails.
        self._current = None
        await self._provider.sign_out(current)
        logger.info("Signed out user_id=%s", current.user_id)
