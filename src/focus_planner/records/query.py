# src/focus_planner/records/query.py

"""
Backend-neutral query vocabulary.

Filters and orderings are plain values so the same repository code can run
against the local SQLite store and the REST (PostgREST) store.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

# Supported filter operators. "is" only accepts None (IS NULL).
OPS = ("eq", "neq", "in", "gte", "lt", "is")


@dataclass(frozen=True, slots=True)
class Filter:
    column: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in OPS:
            raise ValueError(f"Unsupported filter op: {self.op}")
        if self.op == "is" and self.value is not None:
            raise ValueError("'is' filter only supports None")


@dataclass(frozen=True, slots=True)
class Order:
    column: str
    ascending: bool = True


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def neq(column: str, value: Any) -> Filter:
    return Filter(column, "neq", value)


def in_(column: str, values: Iterable[Any]) -> Filter:
    return Filter(column, "in", tuple(values))


def gte(column: str, value: Any) -> Filter:
    return Filter(column, "gte", value)


def lt(column: str, value: Any) -> Filter:
    return Filter(column, "lt", value)


def is_null(column: str) -> Filter:
    return Filter(column, "is", None)


# Sibling ordering used by every list view: sort order, then newest first.
DEFAULT_ORDER: tuple[Order, ...] = (Order("sort_order"), Order("created_date", ascending=False))
