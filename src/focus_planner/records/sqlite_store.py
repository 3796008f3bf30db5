# src/focus_planner/records/sqlite_store.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sqlite3
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any, TypeVar

from ..errors import ConstraintViolation, TransportFailure
from .query import Filter, Order

logger = logging.getLogger(__name__)

T = TypeVar("T")

Row = dict[str, Any]

TABLES = ("categories", "tasks", "commitments")

# Columns whose SQLite storage differs from the row representation.
_BOOL_COLUMNS = {
    "tasks": frozenset({"is_completed", "is_in_library"}),
}
_JSON_COLUMNS = {
    "tasks": frozenset({"previous_completion_state"}),
}


class SQLiteRecordStore:
    """
    SQLite record backend (local mode).

    Mirrors the hosted schema: per-row ownership (every statement is scoped to
    user_id), UNIQUE(user_id, name) on categories, and ON DELETE CASCADE /
    SET NULL along parent references.

    The schema is migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each call opens its own SQLite connection; async methods run the
      blocking work in a worker thread.
    """

    def __init__(self, db_path: str | Path = "focus.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._columns: dict[str, frozenset[str]] = {}
        self._ensure_schema()
        logger.info("SQLiteRecordStore ready db=%s", self._db_path)

    async def aclose(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        # Referential actions are off by default in SQLite.
        conn.execute("PRAGMA foreign_keys=ON")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS categories (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    sort_order INTEGER NOT NULL DEFAULT 0,
                    created_date TEXT NOT NULL,
                    UNIQUE(user_id, name)
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT,
                    type TEXT NOT NULL CHECK (type IN ('task', 'project', 'list')),
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    completed_date TEXT,
                    created_date TEXT NOT NULL,
                    modified_date TEXT NOT NULL,
                    sort_order INTEGER NOT NULL DEFAULT 0,
                    is_in_library INTEGER NOT NULL DEFAULT 1,
                    previous_completion_state TEXT,
                    category_id TEXT REFERENCES categories(id) ON DELETE SET NULL,
                    project_id TEXT REFERENCES tasks(id) ON DELETE CASCADE,
                    parent_task_id TEXT REFERENCES tasks(id) ON DELETE CASCADE
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS commitments (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    task_id TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                    timeframe TEXT NOT NULL
                        CHECK (timeframe IN ('daily', 'weekly', 'monthly', 'yearly')),
                    section TEXT NOT NULL,
                    commitment_date TEXT NOT NULL,
                    sort_order INTEGER NOT NULL DEFAULT 0,
                    created_date TEXT NOT NULL
                )
                """
            )

            def add_col(table: str, name: str, decl: str) -> None:
                cur.execute(f"PRAGMA table_info({table})")
                cols = {row["name"] for row in cur.fetchall()}
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
                logger.info("SQLiteRecordStore migration: added column %s.%s", table, name)

            # Columns that arrived after the first schema.
            add_col("categories", "type", "TEXT DEFAULT 'task'")
            add_col("tasks", "priority", "TEXT NOT NULL DEFAULT 'medium'")
            add_col(
                "commitments",
                "parent_commitment_id",
                "TEXT REFERENCES commitments(id) ON DELETE CASCADE",
            )
            add_col("commitments", "scheduled_time", "TEXT")
            add_col("commitments", "duration_minutes", "INTEGER")

            # Section rename: focus -> target, extra -> todo.
            cur.execute("UPDATE commitments SET section = 'target' WHERE section = 'focus'")
            renamed = cur.rowcount
            cur.execute("UPDATE commitments SET section = 'todo' WHERE section = 'extra'")
            renamed += cur.rowcount
            if renamed > 0:
                logger.info("SQLiteRecordStore migration: renamed %s legacy sections", renamed)

            cur.execute("CREATE INDEX IF NOT EXISTS idx_categories_user_id ON categories(user_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_user_id ON tasks(user_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_parent_task_id ON tasks(parent_task_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_project_id ON tasks(project_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_type ON tasks(type)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_commitments_task_id ON commitments(task_id)")
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_commitments_lookup "
                "ON commitments(user_id, timeframe, commitment_date, section, sort_order)"
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_commitments_parent_id ON commitments(parent_commitment_id)"
            )

            for table in TABLES:
                cur.execute(f"PRAGMA table_info({table})")
                self._columns[table] = frozenset(row["name"] for row in cur.fetchall())

            conn.commit()
        finally:
            conn.close()

    def _check_table(self, table: str) -> frozenset[str]:
        cols = self._columns.get(table)
        if cols is None:
            raise ValueError(f"Unknown table: {table}")
        return cols

    def _check_column(self, table: str, column: str) -> str:
        if column not in self._check_table(table):
            raise ValueError(f"Unknown column {table}.{column}")
        return column

    def _to_db(self, table: str, column: str, value: Any) -> Any:
        if value is None:
            return None
        if column in _JSON_COLUMNS.get(table, ()):
            return json.dumps(value)
        if column in _BOOL_COLUMNS.get(table, ()):
            return 1 if value else 0
        return value

    def _from_db(self, table: str, row: sqlite3.Row) -> Row:
        out: Row = dict(row)
        for col in _JSON_COLUMNS.get(table, ()):
            raw = out.get(col)
            out[col] = json.loads(raw) if raw else None
        for col in _BOOL_COLUMNS.get(table, ()):
            if out.get(col) is not None:
                out[col] = bool(out[col])
        return out

    def _where(
            self, table: str, owner_id: str, filters: Sequence[Filter]
    ) -> tuple[str, list[Any]]:
        clauses = ["user_id = ?"]
        params: list[Any] = [owner_id]
        for f in filters:
            col = self._check_column(table, f.column)
            if f.op == "is" or (f.op == "eq" and f.value is None):
                clauses.append(f"{col} IS NULL")
            elif f.op == "neq" and f.value is None:
                clauses.append(f"{col} IS NOT NULL")
            elif f.op == "in":
                values = list(f.value)
                if not values:
                    # Empty IN matches nothing.
                    clauses.append("0")
                    continue
                placeholders = ",".join("?" for _ in values)
                clauses.append(f"{col} IN ({placeholders})")
                params.extend(self._to_db(table, col, v) for v in values)
            else:
                sql_op = {"eq": "=", "neq": "!=", "gte": ">=", "lt": "<"}[f.op]
                clauses.append(f"{col} {sql_op} ?")
                params.append(self._to_db(table, col, f.value))
        return " AND ".join(clauses), params

    def _order_by(self, table: str, order: Sequence[Order]) -> str:
        if not order:
            return ""
        parts = [
            f"{self._check_column(table, o.column)} {'ASC' if o.ascending else 'DESC'}"
            for o in order
        ]
        return " ORDER BY " + ", ".join(parts)

    def _run(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        conn = self._get_conn()
        try:
            result = fn(conn)
            conn.commit()
            return result
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise ConstraintViolation(str(e)) from e
        except sqlite3.DatabaseError as e:
            conn.rollback()
            raise TransportFailure(f"SQLite error: {e}") from e
        finally:
            conn.close()

    # ---- sync implementations ----

    def _insert_sync(self, table: str, row: Row, owner_id: str) -> Row:
        if row.get("user_id") != owner_id:
            raise ConstraintViolation(f"new row violates ownership policy for table {table}")

        cols = [self._check_column(table, c) for c in row]
        values = [self._to_db(table, c, row[c]) for c in cols]
        placeholders = ",".join("?" for _ in cols)
        sql = f"INSERT INTO {table}({', '.join(cols)}) VALUES ({placeholders}) RETURNING *"

        def op(conn: sqlite3.Connection) -> Row:
            cur = conn.execute(sql, values)
            stored = cur.fetchone()
            return self._from_db(table, stored)

        stored = self._run(op)
        logger.debug("Inserted %s id=%s", table, stored.get("id"))
        return stored

    def _select_sync(
            self, table: str, owner_id: str, filters: Sequence[Filter], order: Sequence[Order]
    ) -> list[Row]:
        where, params = self._where(table, owner_id, filters)
        sql = f"SELECT * FROM {table} WHERE {where}{self._order_by(table, order)}"

        def op(conn: sqlite3.Connection) -> list[Row]:
            cur = conn.execute(sql, params)
            return [self._from_db(table, r) for r in cur.fetchall()]

        return self._run(op)

    def _update_sync(
            self, table: str, values: Row, owner_id: str, filters: Sequence[Filter]
    ) -> list[Row]:
        if not values:
            return self._select_sync(table, owner_id, filters, ())
        if "user_id" in values or "id" in values:
            raise ConstraintViolation("id/user_id cannot be changed")

        sets = [f"{self._check_column(table, c)} = ?" for c in values]
        set_params = [self._to_db(table, c, v) for c, v in values.items()]
        where, where_params = self._where(table, owner_id, filters)
        sql = f"UPDATE {table} SET {', '.join(sets)} WHERE {where} RETURNING *"

        def op(conn: sqlite3.Connection) -> list[Row]:
            cur = conn.execute(sql, [*set_params, *where_params])
            return [self._from_db(table, r) for r in cur.fetchall()]

        rows = self._run(op)
        logger.debug("Updated %s rows=%d fields=%s", table, len(rows), sorted(values))
        return rows

    def _delete_sync(self, table: str, owner_id: str, filters: Sequence[Filter]) -> int:
        where, params = self._where(table, owner_id, filters)
        sql = f"DELETE FROM {table} WHERE {where}"

        def op(conn: sqlite3.Connection) -> int:
            cur = conn.execute(sql, params)
            return int(cur.rowcount)

        n = self._run(op)
        logger.debug("Deleted %s rows=%d", table, n)
        return n

    # ---- public API (RecordBackend) ----

    async def insert(self, table: str, row: Row, *, owner_id: str) -> Row:
        return await asyncio.to_thread(self._insert_sync, table, dict(row), owner_id)

    async def select(
            self,
            table: str,
            *,
            owner_id: str,
            filters: Sequence[Filter] = (),
            order: Sequence[Order] = (),
    ) -> list[Row]:
        return await asyncio.to_thread(self._select_sync, table, owner_id, list(filters), list(order))

    async def update(
            self,
            table: str,
            values: Row,
            *,
            owner_id: str,
            filters: Sequence[Filter],
    ) -> list[Row]:
        return await asyncio.to_thread(self._update_sync, table, dict(values), owner_id, list(filters))

    async def delete(self, table: str, *, owner_id: str, filters: Sequence[Filter]) -> int:
        return await asyncio.to_thread(self._delete_sync, table, owner_id, list(filters))
