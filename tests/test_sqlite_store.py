# tests/test_sqlite_store.py

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from focus_planner.errors import ConstraintViolation
from focus_planner.records.query import eq, in_, is_null
from focus_planner.records.sqlite_store import SQLiteRecordStore


def _task_row(task_id: str, user_id: str = "u1", **extra) -> dict:
    row = {
        "id": task_id,
        "user_id": user_id,
        "title": task_id,
        "type": "task",
        "created_date": "2026-10-19T08:00:00.000000+00:00",
        "modified_date": "2026-10-19T08:00:00.000000+00:00",
    }
    row.update(extra)
    return row


@pytest.mark.asyncio
async def test_insert_returns_stored_row_with_defaults(store: SQLiteRecordStore) -> None:
    row = await store.insert("tasks", _task_row("t1"), owner_id="u1")

    assert row["is_completed"] is False
    assert row["is_in_library"] is True
    assert row["priority"] == "medium"
    assert row["previous_completion_state"] is None


@pytest.mark.asyncio
async def test_insert_for_another_owner_rejected(store: SQLiteRecordStore) -> None:
    with pytest.raises(ConstraintViolation):
        await store.insert("tasks", _task_row("t1", user_id="u2"), owner_id="u1")


@pytest.mark.asyncio
async def test_foreign_key_violation_maps_to_constraint(store: SQLiteRecordStore) -> None:
    with pytest.raises(ConstraintViolation):
        await store.insert("tasks", _task_row("t1", parent_task_id="missing"), owner_id="u1")


@pytest.mark.asyncio
async def test_filters_and_json_round_trip(store: SQLiteRecordStore) -> None:
    await store.insert("tasks", _task_row("p"), owner_id="u1")
    await store.insert(
        "tasks",
        _task_row("c", parent_task_id="p", previous_completion_state=[True, False]),
        owner_id="u1",
    )

    top = await store.select("tasks", owner_id="u1", filters=[is_null("parent_task_id")])
    assert [r["id"] for r in top] == ["p"]

    child = await store.select("tasks", owner_id="u1", filters=[eq("parent_task_id", "p")])
    assert child[0]["previous_completion_state"] == [True, False]

    assert await store.select("tasks", owner_id="u1", filters=[in_("id", [])]) == []
    assert len(await store.select("tasks", owner_id="u1", filters=[in_("id", ["p", "c"])])) == 2


@pytest.mark.asyncio
async def test_unknown_column_rejected(store: SQLiteRecordStore) -> None:
    with pytest.raises(ValueError):
        await store.select("tasks", owner_id="u1", filters=[eq("title; DROP TABLE tasks", "x")])


@pytest.mark.asyncio
async def test_update_and_delete_scoped_to_owner(store: SQLiteRecordStore) -> None:
    await store.insert("tasks", _task_row("t1"), owner_id="u1")

    assert await store.update("tasks", {"title": "x"}, owner_id="u2", filters=[eq("id", "t1")]) == []
    assert await store.delete("tasks", owner_id="u2", filters=[eq("id", "t1")]) == 0

    rows = await store.update("tasks", {"is_completed": True}, owner_id="u1", filters=[eq("id", "t1")])
    assert rows[0]["is_completed"] is True
    assert await store.delete("tasks", owner_id="u1", filters=[eq("id", "t1")]) == 1
    assert await store.select("tasks", owner_id="u1", filters=[eq("id", "t1")]) == []


def test_schema_migration_adds_columns_and_renames_sections(tmp_path: Path) -> None:
    db = tmp_path / "old.sqlite3"
    conn = sqlite3.connect(db)
    conn.executescript(
        """
        CREATE TABLE tasks (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            title TEXT NOT NULL,
            description TEXT,
            type TEXT NOT NULL,
            is_completed INTEGER NOT NULL DEFAULT 0,
            completed_date TEXT,
            created_date TEXT NOT NULL,
            modified_date TEXT NOT NULL,
            sort_order INTEGER NOT NULL DEFAULT 0,
            is_in_library INTEGER NOT NULL DEFAULT 1,
            previous_completion_state TEXT,
            category_id TEXT,
            project_id TEXT,
            parent_task_id TEXT
        );
        CREATE TABLE commitments (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            task_id TEXT NOT NULL,
            timeframe TEXT NOT NULL,
            section TEXT NOT NULL,
            commitment_date TEXT NOT NULL,
            sort_order INTEGER NOT NULL DEFAULT 0,
            created_date TEXT NOT NULL
        );
        INSERT INTO tasks(id, user_id, title, type, created_date, modified_date)
            VALUES ('t1', 'u1', 'Old', 'task', '2025-01-01', '2025-01-01');
        INSERT INTO commitments(id, user_id, task_id, timeframe, section, commitment_date, created_date)
            VALUES ('c1', 'u1', 't1', 'daily', 'focus', '2025-01-01', '2025-01-01'),
                   ('c2', 'u1', 't1', 'daily', 'extra', '2025-01-01', '2025-01-01');
        """
    )
    conn.commit()
    conn.close()

    SQLiteRecordStore(db)

    conn = sqlite3.connect(db)
    try:
        sections = dict(conn.execute("SELECT id, section FROM commitments").fetchall())
        task_cols = {r[1] for r in conn.execute("PRAGMA table_info(tasks)")}
        commitment_cols = {r[1] for r in conn.execute("PRAGMA table_info(commitments)")}
        priority = conn.execute("SELECT priority FROM tasks WHERE id = 't1'").fetchone()[0]
    finally:
        conn.close()

    assert sections == {"c1": "target", "c2": "todo"}
    assert "priority" in task_cols
    assert priority == "medium"
    assert {"parent_commitment_id", "scheduled_time", "duration_minutes"} <= commitment_cols
