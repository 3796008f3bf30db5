# src/focus_planner/auth/local_identity.py

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import hmac
import logging
import secrets
import sqlite3
import uuid
from pathlib import Path

from ..core.ports import AuthSession
from ..errors import AuthFailure, TransportFailure

logger = logging.getLogger(__name__)

_SCRYPT_N = 2**14
_SCRYPT_R = 8
_SCRYPT_P = 1


def _hash_password(password: str, salt: bytes) -> bytes:
    return hashlib.scrypt(password.encode("utf-8"), salt=salt, n=_SCRYPT_N, r=_SCRYPT_R, p=_SCRYPT_P)


class LocalIdentityProvider:
    """
    Email/password identity for local (SQLite) mode.

    Users live in their own table next to the record tables. OAuth identity
    tokens need a hosted provider and are rejected here.
    """

    def __init__(self, db_path: str | Path = "focus.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("LocalIdentityProvider ready db=%s", self._db_path)

    async def aclose(self) -> None:
        return

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    password_hash BLOB NOT NULL,
                    salt BLOB NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _normalize_email(email: str) -> str:
        e = (email or "").strip().lower()
        if "@" not in e:
            raise AuthFailure("A valid email address is required")
        return e

    def _sign_up_sync(self, email: str, password: str) -> AuthSession:
        email = self._normalize_email(email)
        if len(password or "") < 6:
            raise AuthFailure("Password should be at least 6 characters")

        salt = secrets.token_bytes(16)
        user_id = str(uuid.uuid4())
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO users(id, email, password_hash, salt) VALUES (?, ?, ?, ?)",
                (user_id, email, _hash_password(password, salt), salt),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise AuthFailure("User already registered") from e
        except sqlite3.DatabaseError as e:
            raise TransportFailure(f"SQLite error: {e}") from e
        finally:
            conn.close()
        return AuthSession(user_id=user_id, email=email)

    def _sign_in_sync(self, email: str, password: str) -> AuthSession:
        email = self._normalize_email(email)
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT id, password_hash, salt FROM users WHERE email = ?", (email,)
            ).fetchone()
        except sqlite3.DatabaseError as e:
            raise TransportFailure(f"SQLite error: {e}") from e
        finally:
            conn.close()

        if row is None:
            raise AuthFailure("Invalid login credentials")
        expected = bytes(row["password_hash"])
        if not hmac.compare_digest(expected, _hash_password(password or "", bytes(row["salt"]))):
            raise AuthFailure("Invalid login credentials")
        return AuthSession(user_id=str(row["id"]), email=email)

    async def sign_up(self, email: str, password: str) -> AuthSession:
        return await asyncio.to_thread(self._sign_up_sync, email, password)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        return await asyncio.to_thread(self._sign_in_sync, email, password)

    async def sign_in_with_id_token(
            self,
            provider: str,
            id_token: str,
            *,
            nonce: str | None = None,
            access_token: str | None = None,
    ) -> AuthSession:
        raise AuthFailure(f"Sign-in with {provider} requires the hosted identity provider")

    async def reset_password(self, email: str) -> None:
        # Nothing to send in local mode; never reveal whether the email exists.
        logger.info("Password reset requested for %s (local mode, no mail sent)", email)

    async def sign_out(self, session: AuthSession) -> None:
        return
