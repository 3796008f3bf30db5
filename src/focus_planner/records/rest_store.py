# src/focus_planner/records/rest_store.py

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

import httpx

from ..errors import AuthFailure, ConstraintViolation, FocusError, NotFound, TransportFailure
from .query import Filter, Order

logger = logging.getLogger(__name__)

Row = dict[str, Any]

# Postgres SQLSTATE codes surfaced by PostgREST in the error body.
_CONSTRAINT_CODES = {
    "23505",  # unique_violation
    "23503",  # foreign_key_violation
    "23514",  # check_violation
    "23502",  # not_null_violation
    "42501",  # insufficient_privilege (row-level security)
}


def _format_value(value: Any) -> str:
    if value is True:
        return "true"
    if value is False:
        return "false"
    return str(value)


def _quote(value: Any) -> str:
    s = _format_value(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{s}"'


def filter_params(filters: Sequence[Filter]) -> list[tuple[str, str]]:
    """Translate filters into PostgREST query parameters."""
    params: list[tuple[str, str]] = []
    for f in filters:
        if f.op == "is" or (f.op == "eq" and f.value is None):
            params.append((f.column, "is.null"))
        elif f.op == "neq" and f.value is None:
            params.append((f.column, "not.is.null"))
        elif f.op == "in":
            inner = ",".join(_quote(v) for v in f.value)
            params.append((f.column, f"in.({inner})"))
        else:
            params.append((f.column, f"{f.op}.{_format_value(f.value)}"))
    return params


def order_param(order: Sequence[Order]) -> list[tuple[str, str]]:
    if not order:
        return []
    value = ",".join(f"{o.column}.{'asc' if o.ascending else 'desc'}" for o in order)
    return [("order", value)]


class RestRecordStore:
    """
    Record backend for a hosted PostgREST endpoint (Supabase `/rest/v1`).

    Ownership is enforced server-side by row-level security keyed on the
    caller's access token; the explicit user_id filter keeps the query shape
    identical to the local store.
    """

    def __init__(
            self,
            base_url: str,
            api_key: str,
            *,
            token_provider: Callable[[], str | None] | None = None,
            timeout_seconds: float = 15.0,
            client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url.strip():
            raise ValueError("REST base URL is not set. Set FOCUS_SUPABASE_URL in your .env.")
        if not api_key or not api_key.strip():
            raise ValueError("REST API key is not set. Set FOCUS_SUPABASE_ANON_KEY in your .env.")

        self._api_key = api_key
        self._token_provider = token_provider
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/rest/v1",
            timeout=httpx.Timeout(timeout_seconds, connect=min(5.0, timeout_seconds)),
        )
        logger.info("RestRecordStore ready base_url=%s", base_url)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self, *, prefer: str | None = None) -> dict[str, str]:
        token = (self._token_provider() if self._token_provider else None) or self._api_key
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(
            self,
            method: str,
            table: str,
            *,
            params: list[tuple[str, str]] | None = None,
            json_body: Any = None,
            prefer: str | None = None,
    ) -> Any:
        try:
            resp = await self._client.request(
                method,
                f"/{table}",
                params=params,
                json=json_body,
                headers=self._headers(prefer=prefer),
            )
        except httpx.TransportError as e:
            raise TransportFailure(f"{method} {table} failed: {e.__class__.__name__}") from e

        if resp.status_code >= 400:
            raise _translate_error(resp, method, table)

        if not resp.content:
            return None
        return resp.json()

    # ---- public API (RecordBackend) ----

    async def insert(self, table: str, row: Row, *, owner_id: str) -> Row:
        if row.get("user_id") != owner_id:
            raise ConstraintViolation(f"new row violates ownership policy for table {table}")
        data = await self._request(
            "POST",
            table,
            params=[("select", "*")],
            json_body=row,
            prefer="return=representation",
        )
        rows = data if isinstance(data, list) else [data]
        if not rows or not isinstance(rows[0], dict):
            raise TransportFailure(f"Insert into {table} returned no row")
        logger.debug("Inserted %s id=%s", table, rows[0].get("id"))
        return rows[0]

    async def select(
            self,
            table: str,
            *,
            owner_id: str,
            filters: Sequence[Filter] = (),
            order: Sequence[Order] = (),
    ) -> list[Row]:
        params = [("select", "*"), ("user_id", f"eq.{owner_id}")]
        params += filter_params(filters)
        params += order_param(order)
        data = await self._request("GET", table, params=params)
        return list(data or [])

    async def update(
            self,
            table: str,
            values: Row,
            *,
            owner_id: str,
            filters: Sequence[Filter],
    ) -> list[Row]:
        if "user_id" in values or "id" in values:
            raise ConstraintViolation("id/user_id cannot be changed")
        params = [("user_id", f"eq.{owner_id}"), *filter_params(filters)]
        data = await self._request(
            "PATCH",
            table,
            params=params,
            json_body=values,
            prefer="return=representation",
        )
        rows = list(data or [])
        logger.debug("Updated %s rows=%d fields=%s", table, len(rows), sorted(values))
        return rows

    async def delete(self, table: str, *, owner_id: str, filters: Sequence[Filter]) -> int:
        params = [("user_id", f"eq.{owner_id}"), *filter_params(filters)]
        data = await self._request("DELETE", table, params=params, prefer="return=representation")
        n = len(data or [])
        logger.debug("Deleted %s rows=%d", table, n)
        return n


def _translate_error(resp: httpx.Response, method: str, table: str) -> FocusError:
    code = ""
    message = resp.text.strip()
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = str(body.get("code") or "")
        message = str(body.get("message") or body.get("msg") or message)

    detail = f"{method} {table}: {message}" if message else f"{method} {table}: HTTP {resp.status_code}"

    if code in _CONSTRAINT_CODES:
        return ConstraintViolation(detail)
    if resp.status_code == 401:
        return AuthFailure(detail)
    if resp.status_code in (403, 409):
        return ConstraintViolation(detail)
    if resp.status_code == 404:
        return NotFound(detail)
    return TransportFailure(detail)
