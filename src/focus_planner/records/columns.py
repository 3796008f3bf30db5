# src/focus_planner/records/columns.py

"""
Explicit record <-> row mapping.

Each table has a static list of columns (attribute name, column name, kind).
Rows are plain dicts with JSON-compatible values, which is what both the
SQLite store and the REST store exchange:

- datetime -> ISO-8601 UTC string (fixed microsecond precision so it sorts)
- enum     -> its string value
- json     -> list (stored as JSON text by SQLite, JSONB by Postgres)
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from .models import Category, Commitment, Priority, Section, Task, TaskType, Timeframe

R = TypeVar("R")

Row = dict[str, Any]

TEXT = "text"
INT = "int"
BOOL = "bool"
DATETIME = "datetime"
JSON = "json"
ENUM = "enum"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def encode_datetime(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def decode_datetime(raw: Any) -> datetime | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        dt = raw
    else:
        # Postgres may return "Z" suffixes and fewer fraction digits.
        dt = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True, slots=True)
class Column:
    attr: str
    name: str
    kind: str
    enum: Callable[[Any], Any] | None = None

    def encode(self, value: Any) -> Any:
        if value is None:
            return None
        if self.kind == DATETIME:
            return encode_datetime(value)
        if self.kind == ENUM:
            return str(getattr(value, "value", value))
        if self.kind == BOOL:
            return bool(value)
        if self.kind == INT:
            return int(value)
        if self.kind == JSON:
            return list(value)
        return str(value)

    def decode(self, raw: Any) -> Any:
        if self.kind == ENUM and self.enum is not None:
            return self.enum(raw)
        if raw is None:
            return None
        if self.kind == DATETIME:
            return decode_datetime(raw)
        if self.kind == BOOL:
            return bool(raw)
        if self.kind == INT:
            return int(raw)
        if self.kind == JSON:
            return [bool(x) for x in raw]
        return str(raw)


@dataclass(frozen=True)
class TableSpec(Generic[R]):
    name: str
    factory: Callable[..., R]
    columns: tuple[Column, ...]
    # Column refreshed on every update (None = table has no last-modified column).
    touch_column: str | None = None
    # Attributes that are fixed at creation time.
    immutable: frozenset[str] = frozenset({"id", "user_id", "created_date"})

    def column(self, attr: str) -> Column:
        for c in self.columns:
            if c.attr == attr:
                return c
        raise KeyError(f"{self.name} has no field {attr!r}")

    def to_row(self, record: R) -> Row:
        return {c.name: c.encode(getattr(record, c.attr)) for c in self.columns}

    def from_row(self, row: Mapping[str, Any]) -> R:
        kwargs = {c.attr: c.decode(row.get(c.name)) for c in self.columns}
        return self.factory(**kwargs)

    def encode_fields(self, fields: Mapping[str, Any]) -> Row:
        """Encode a partial update; rejects unknown and immutable fields."""
        out: Row = {}
        for attr, value in fields.items():
            if attr in self.immutable:
                raise ValueError(f"{self.name}.{attr} cannot be updated")
            col = self.column(attr)
            out[col.name] = col.encode(value)
        return out


TASKS: TableSpec[Task] = TableSpec(
    name="tasks",
    factory=Task,
    columns=(
        Column("id", "id", TEXT),
        Column("user_id", "user_id", TEXT),
        Column("title", "title", TEXT),
        Column("description", "description", TEXT),
        Column("type", "type", ENUM, TaskType.from_db),
        Column("is_completed", "is_completed", BOOL),
        Column("completed_date", "completed_date", DATETIME),
        Column("created_date", "created_date", DATETIME),
        Column("modified_date", "modified_date", DATETIME),
        Column("sort_order", "sort_order", INT),
        Column("is_in_library", "is_in_library", BOOL),
        Column("previous_completion_state", "previous_completion_state", JSON),
        Column("priority", "priority", ENUM, Priority.from_db),
        Column("category_id", "category_id", TEXT),
        Column("project_id", "project_id", TEXT),
        Column("parent_task_id", "parent_task_id", TEXT),
    ),
    touch_column="modified_date",
)

CATEGORIES: TableSpec[Category] = TableSpec(
    name="categories",
    factory=Category,
    columns=(
        Column("id", "id", TEXT),
        Column("user_id", "user_id", TEXT),
        Column("name", "name", TEXT),
        Column("sort_order", "sort_order", INT),
        Column("type", "type", TEXT),
        Column("created_date", "created_date", DATETIME),
    ),
)

COMMITMENTS: TableSpec[Commitment] = TableSpec(
    name="commitments",
    factory=Commitment,
    columns=(
        Column("id", "id", TEXT),
        Column("user_id", "user_id", TEXT),
        Column("task_id", "task_id", TEXT),
        Column("timeframe", "timeframe", ENUM, Timeframe),
        Column("section", "section", ENUM, Section.from_db),
        Column("commitment_date", "commitment_date", DATETIME),
        Column("sort_order", "sort_order", INT),
        Column("created_date", "created_date", DATETIME),
        Column("parent_commitment_id", "parent_commitment_id", TEXT),
        Column("scheduled_time", "scheduled_time", DATETIME),
        Column("duration_minutes", "duration_minutes", INT),
    ),
    immutable=frozenset({"id", "user_id", "created_date", "task_id"}),
)
