# tests/test_rest_store.py

from __future__ import annotations

import json

import httpx
import pytest

from focus_planner.auth.session import Session
from focus_planner.core.ports import AuthSession
from focus_planner.errors import AuthFailure, ConstraintViolation, NotFound, TransportFailure
from focus_planner.records.categories import CategoryRepository
from focus_planner.records.query import DEFAULT_ORDER, eq, gte, in_, is_null, neq
from focus_planner.records.rest_store import RestRecordStore, filter_params, order_param

from .fakes import FakeIdentityProvider

BASE = "https://project.supabase.test"


def _store(handler, token: str | None = "user-token") -> RestRecordStore:
    client = httpx.AsyncClient(base_url=f"{BASE}/rest/v1", transport=httpx.MockTransport(handler))
    return RestRecordStore(BASE, "anon-key", token_provider=lambda: token, client=client)


def test_filter_params() -> None:
    params = filter_params(
        [
            eq("type", "task"),
            eq("is_in_library", True),
            is_null("parent_task_id"),
            neq("category_id", None),
            in_("id", ["a", "b"]),
            gte("commitment_date", "2026-10-18T00:00:00.000000+00:00"),
        ]
    )
    assert params == [
        ("type", "eq.task"),
        ("is_in_library", "eq.true"),
        ("parent_task_id", "is.null"),
        ("category_id", "not.is.null"),
        ("id", 'in.("a","b")'),
        ("commitment_date", "gte.2026-10-18T00:00:00.000000+00:00"),
    ]
    assert order_param(DEFAULT_ORDER) == [("order", "sort_order.asc,created_date.desc")]
    assert order_param([]) == []


@pytest.mark.asyncio
async def test_select_scopes_to_owner_and_sends_tokens() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"id": "t1"}])

    store = _store(handler)
    rows = await store.select("tasks", owner_id="u1", filters=[eq("type", "task")], order=DEFAULT_ORDER)

    assert rows == [{"id": "t1"}]
    req = seen[0]
    assert req.method == "GET"
    assert req.url.path == "/rest/v1/tasks"
    assert req.url.params["user_id"] == "eq.u1"
    assert req.url.params["type"] == "eq.task"
    assert req.url.params["order"] == "sort_order.asc,created_date.desc"
    assert req.headers["apikey"] == "anon-key"
    assert req.headers["authorization"] == "Bearer user-token"


@pytest.mark.asyncio
async def test_anon_key_used_without_session_token() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[])

    await _store(handler, token=None).select("tasks", owner_id="u1")
    assert seen[0].headers["authorization"] == "Bearer anon-key"


@pytest.mark.asyncio
async def test_insert_update_delete_round_trip() -> None:
    calls: list[tuple[str, dict | None, str | None]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        calls.append((request.method, body, request.headers.get("prefer")))
        if request.method == "POST":
            return httpx.Response(201, json=[body])
        if request.method == "PATCH":
            return httpx.Response(200, json=[{"id": "t1", **body}])
        return httpx.Response(200, json=[{"id": "t1"}, {"id": "t2"}])

    store = _store(handler)
    row = await store.insert("tasks", {"id": "t1", "user_id": "u1"}, owner_id="u1")
    updated = await store.update("tasks", {"title": "x"}, owner_id="u1", filters=[eq("id", "t1")])
    deleted = await store.delete("tasks", owner_id="u1", filters=[eq("project_id", "p")])

    assert row == {"id": "t1", "user_id": "u1"}
    assert updated == [{"id": "t1", "title": "x"}]
    assert deleted == 2
    assert [c[0] for c in calls] == ["POST", "PATCH", "DELETE"]
    assert all(c[2] == "return=representation" for c in calls)


@pytest.mark.asyncio
async def test_insert_for_another_owner_rejected_locally() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with pytest.raises(ConstraintViolation):
        await _store(handler).insert("tasks", {"id": "t1", "user_id": "u2"}, owner_id="u1")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "body", "expected"),
    [
        (409, {"code": "23505", "message": "duplicate key value"}, ConstraintViolation),
        (400, {"code": "23503", "message": "violates foreign key constraint"}, ConstraintViolation),
        (403, {"code": "42501", "message": "row-level security"}, ConstraintViolation),
        (401, {"message": "JWT expired"}, AuthFailure),
        (404, {"message": "relation does not exist"}, NotFound),
        (503, {"message": "unavailable"}, TransportFailure),
    ],
)
async def test_http_errors_are_translated(status: int, body: dict, expected: type) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json=body)

    with pytest.raises(expected):
        await _store(handler).select("tasks", owner_id="u1")


@pytest.mark.asyncio
async def test_network_error_is_transport_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportFailure):
        await _store(handler).select("tasks", owner_id="u1")


@pytest.mark.asyncio
async def test_duplicate_category_over_rest() -> None:
    names: set[str] = set()

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json=[])
        row = json.loads(request.content)
        if row["name"] in names:
            return httpx.Response(
                409, json={"code": "23505", "message": "duplicate key value violates unique constraint"}
            )
        names.add(row["name"])
        return httpx.Response(201, json=[row])

    session = Session(FakeIdentityProvider())
    session.restore(AuthSession(user_id="u1", access_token="user-token"))
    repo = CategoryRepository(_store(handler), session)

    created = await repo.create_category("Health")
    assert created.name == "Health"
    assert created.user_id == "u1"
    with pytest.raises(ConstraintViolation):
        await repo.create_category("Health")
