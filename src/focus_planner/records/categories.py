# src/focus_planner/records/categories.py

from __future__ import annotations

from typing import Any

from ..auth.session import Session
from ..core.ports import RecordBackend
from .columns import CATEGORIES
from .models import Category
from .query import Order
from .service import RecordService


class CategoryRepository:
    """User-defined categories. Names are unique per owner (enforced by the backend)."""

    def __init__(self, backend: RecordBackend, session: Session) -> None:
        self.records: RecordService[Category] = RecordService(backend, session, CATEGORIES)

    async def fetch_categories(self) -> list[Category]:
        return await self.records.list_by_owner(
            order=(Order("sort_order"), Order("created_date", ascending=False))
        )

    async def create_category(self, name: str, *, type: str = "task") -> Category:
        name = (name or "").strip()
        if not name:
            raise ValueError("name is required")
        sort_order = await self.records.next_sort_order()
        return await self.records.create(Category(name=name, sort_order=sort_order, type=type))

    async def update_category(self, category_id: str, **fields: Any) -> Category:
        if "name" in fields:
            fields["name"] = str(fields["name"]).strip()
        return await self.records.update(category_id, **fields)

    async def delete_category(self, category_id: str) -> None:
        """Delete a category; tasks keep existing with category_id cleared."""
        await self.records.delete(category_id)
