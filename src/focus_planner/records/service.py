# src/focus_planner/records/service.py

from __future__ import annotations

import dataclasses
import logging
import uuid
from collections.abc import Iterable, Sequence
from typing import Any, Generic, TypeVar

from ..auth.session import Session
from ..core.ports import RecordBackend
from ..errors import NotFound
from .columns import TableSpec, utc_now
from .query import DEFAULT_ORDER, Filter, Order, eq, in_

logger = logging.getLogger(__name__)

R = TypeVar("R")


class RecordService(Generic[R]):
    """
    CRUD for one table, scoped to the signed-in user.

    No local recovery or retry: backend errors reach the caller unchanged.
    """

    def __init__(self, backend: RecordBackend, session: Session, table: TableSpec[R]) -> None:
        self._backend = backend
        self._session = session
        self._table = table

    @property
    def table(self) -> TableSpec[R]:
        return self._table

    async def create(self, record: R) -> R:
        """Assign id/owner/timestamps where absent, insert, return the stored row."""
        now = utc_now()
        changes: dict[str, Any] = {"user_id": self._session.user_id}
        if not getattr(record, "id", ""):
            changes["id"] = str(uuid.uuid4())
        if getattr(record, "created_date", None) is None:
            changes["created_date"] = now
        touch = self._table.touch_column
        if touch is not None and getattr(record, touch, None) is None:
            changes[touch] = now
        record = dataclasses.replace(record, **changes)  # type: ignore[type-var]

        row = await self._backend.insert(
            self._table.name, self._table.to_row(record), owner_id=self._session.user_id
        )
        stored = self._table.from_row(row)
        logger.info("Created %s id=%s", self._table.name, getattr(stored, "id", None))
        return stored

    async def get(self, record_id: str) -> R:
        rows = await self._backend.select(
            self._table.name,
            owner_id=self._session.user_id,
            filters=[eq("id", record_id)],
        )
        if not rows:
            raise NotFound(f"{self._table.name} id={record_id}")
        return self._table.from_row(rows[0])

    async def get_many(self, record_ids: Iterable[str]) -> list[R]:
        ids = list(record_ids)
        if not ids:
            return []
        rows = await self._backend.select(
            self._table.name,
            owner_id=self._session.user_id,
            filters=[in_("id", ids)],
        )
        return [self._table.from_row(r) for r in rows]

    async def update(self, record_id: str, **fields: Any) -> R:
        """Write only `fields` (plus the last-modified column, if the table has one)."""
        rows = await self._write(self._encode_update(fields), [eq("id", record_id)])
        if not rows:
            raise NotFound(f"{self._table.name} id={record_id}")
        return self._table.from_row(rows[0])

    async def update_where(self, filters: Sequence[Filter], **fields: Any) -> list[R]:
        """Bulk partial update of every owned row matching `filters`."""
        rows = await self._write(self._encode_update(fields), filters)
        return [self._table.from_row(r) for r in rows]

    async def delete(self, record_id: str) -> None:
        n = await self._backend.delete(
            self._table.name,
            owner_id=self._session.user_id,
            filters=[eq("id", record_id)],
        )
        if n == 0:
            logger.debug("Delete %s id=%s matched nothing", self._table.name, record_id)
        else:
            logger.info("Deleted %s id=%s", self._table.name, record_id)

    async def delete_where(self, filters: Sequence[Filter]) -> int:
        return await self._backend.delete(
            self._table.name, owner_id=self._session.user_id, filters=filters
        )

    async def list_by_owner(
            self,
            filters: Sequence[Filter] = (),
            order: Sequence[Order] = DEFAULT_ORDER,
    ) -> list[R]:
        rows = await self._backend.select(
            self._table.name,
            owner_id=self._session.user_id,
            filters=filters,
            order=order,
        )
        return [self._table.from_row(r) for r in rows]

    async def next_sort_order(self, filters: Sequence[Filter] = ()) -> int:
        """
        max(sort_order) + 1 among the rows matching `filters`, or 0 if none.

        Read-then-write without a lock: concurrent appends may get the same
        value, and ties are then ordered by creation date.
        """
        siblings = await self._backend.select(
            self._table.name,
            owner_id=self._session.user_id,
            filters=filters,
        )
        orders = [int(r.get("sort_order") or 0) for r in siblings]
        return max(orders) + 1 if orders else 0

    def _encode_update(self, fields: dict[str, Any]) -> dict[str, Any]:
        values = self._table.encode_fields(fields)
        touch = self._table.touch_column
        if touch is not None:
            values[self._table.column(touch).name] = self._table.column(touch).encode(utc_now())
        return values

    async def _write(self, values: dict[str, Any], filters: Sequence[Filter]) -> list[dict[str, Any]]:
        return await self._backend.update(
            self._table.name,
            values,
            owner_id=self._session.user_id,
            filters=filters,
        )
