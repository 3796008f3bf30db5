# src/focus_planner/records/commitments.py

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Any

from ..auth.session import Session
from ..core.ports import RecordBackend
from ..errors import SectionFull
from .columns import COMMITMENTS, encode_datetime
from .models import Commitment, Section, Timeframe
from .periods import breakdown_slots, in_period, period_bounds, period_end
from .query import Filter, eq, gte, lt
from .service import RecordService

logger = logging.getLogger(__name__)


class CommitmentRepository:
    """
    Commitments of tasks to planning periods, including trickle-down breakdown.

    Period boundaries (days, weeks, months, years) are calendar boundaries in
    the planning zone `tz`; None means the system's local zone. Dates read
    back from storage are UTC and are converted before any period math.
    """

    def __init__(
            self, backend: RecordBackend, session: Session, tz: tzinfo | None = None
    ) -> None:
        self.records: RecordService[Commitment] = RecordService(backend, session, COMMITMENTS)
        self._tz = tz

    @property
    def tz(self) -> tzinfo | None:
        return self._tz

    def localize(self, value: datetime) -> datetime:
        """`value` in the planning zone; naive values are taken as already local."""
        if value.tzinfo is None:
            return value.replace(tzinfo=self._tz) if self._tz is not None else value.astimezone()
        return value.astimezone(self._tz)

    def _period_filters(self, timeframe: Timeframe, date: datetime, section: Section) -> list[Filter]:
        start, end = period_bounds(timeframe, self.localize(date))
        return [
            eq("timeframe", timeframe.value),
            eq("section", section.value),
            gte("commitment_date", encode_datetime(start)),
            lt("commitment_date", encode_datetime(end)),
        ]

    # ---- queries ----

    async def fetch_commitment(self, commitment_id: str) -> Commitment:
        return await self.records.get(commitment_id)

    async def fetch_commitments(
            self, timeframe: Timeframe, date: datetime, section: Section
    ) -> list[Commitment]:
        """Commitments in `section` whose date falls in the `timeframe` period of `date`."""
        return await self.records.list_by_owner(self._period_filters(timeframe, date, section))

    async def fetch_commitments_for_task(self, task_id: str) -> list[Commitment]:
        return await self.records.list_by_owner([eq("task_id", task_id)])

    async def fetch_child_commitments(self, parent_id: str) -> list[Commitment]:
        return await self.records.list_by_owner([eq("parent_commitment_id", parent_id)])

    async def count_in_section(self, timeframe: Timeframe, date: datetime, section: Section) -> int:
        return len(await self.fetch_commitments(timeframe, date, section))

    async def can_add(self, timeframe: Timeframe, date: datetime, section: Section) -> bool:
        limit = section.max_tasks(timeframe)
        if limit is None:
            return True
        return await self.count_in_section(timeframe, date, section) < limit

    async def _ensure_capacity(self, timeframe: Timeframe, date: datetime, section: Section) -> None:
        if not await self.can_add(timeframe, date, section):
            raise SectionFull(
                f"{section.value} section is full "
                f"({section.max_tasks(timeframe)} max for {timeframe.value})"
            )

    # ---- creation ----

    async def create_commitment(
            self,
            task_id: str,
            timeframe: Timeframe,
            section: Section,
            commitment_date: datetime,
            *,
            parent_commitment_id: str | None = None,
            scheduled_time: datetime | None = None,
            duration_minutes: int | None = None,
            sort_order: int | None = None,
    ) -> Commitment:
        """Commit a task, appended after the commitments already in that period/section."""
        commitment_date = self.localize(commitment_date)
        await self._ensure_capacity(timeframe, commitment_date, section)
        if sort_order is None:
            sort_order = await self.records.next_sort_order(
                self._period_filters(timeframe, commitment_date, section)
            )
        commitment = Commitment(
            task_id=task_id,
            timeframe=timeframe,
            section=section,
            commitment_date=commitment_date,
            sort_order=sort_order,
            parent_commitment_id=parent_commitment_id,
            scheduled_time=scheduled_time,
            duration_minutes=duration_minutes,
        )
        return await self.records.create(commitment)

    async def create_child_commitment(
            self,
            parent: Commitment,
            child_date: datetime,
            target_timeframe: Timeframe,
            *,
            task_id: str | None = None,
    ) -> Commitment:
        """
        Break `parent` down into a finer timeframe (yearly -> monthly -> ...).

        The child commits the same task (or `task_id`, e.g. a subtask) in the
        parent's section, dated inside the parent's period.
        """
        if target_timeframe not in parent.timeframe.breakdown_timeframes:
            raise ValueError(
                f"cannot break a {parent.timeframe.value} commitment down to {target_timeframe.value}"
            )
        if not in_period(
                parent.timeframe, self.localize(parent.commitment_date), self.localize(child_date)
        ):
            raise ValueError("child date falls outside the parent commitment's period")

        child = await self.create_commitment(
            task_id or parent.task_id,
            target_timeframe,
            parent.section,
            child_date,
            parent_commitment_id=parent.id,
        )
        logger.info(
            "Broke down commitment id=%s (%s) into id=%s (%s)",
            parent.id,
            parent.timeframe.value,
            child.id,
            target_timeframe.value,
        )
        return child

    # ---- mutation ----

    async def update_commitment(self, commitment_id: str, **fields: Any) -> Commitment:
        return await self.records.update(commitment_id, **fields)

    async def move_to_section(self, commitment_id: str, section: Section) -> Commitment:
        """Move between target/todo; the target section's limit still applies."""
        commitment = await self.records.get(commitment_id)
        if commitment.section == section:
            return commitment
        await self._ensure_capacity(commitment.timeframe, commitment.commitment_date, section)
        return await self.records.update(commitment_id, section=section)

    async def reschedule(self, commitment_id: str, commitment_date: datetime) -> Commitment:
        return await self.records.update(commitment_id, commitment_date=self.localize(commitment_date))

    async def push_to_next_period(self, commitment_id: str) -> Commitment:
        """Move to the start of the following period (tomorrow, next week, ...)."""
        commitment = await self.records.get(commitment_id)
        next_date = period_end(commitment.timeframe, self.localize(commitment.commitment_date))
        return await self.records.update(commitment_id, commitment_date=next_date)

    async def schedule(
            self,
            commitment_id: str,
            scheduled_time: datetime | None,
            duration_minutes: int | None = None,
    ) -> Commitment:
        """Place on (or, with scheduled_time=None, remove from) the timeline."""
        if duration_minutes is not None and duration_minutes <= 0:
            raise ValueError("duration_minutes must be positive")
        return await self.records.update(
            commitment_id, scheduled_time=scheduled_time, duration_minutes=duration_minutes
        )

    async def delete_commitment(self, commitment_id: str) -> None:
        """Delete a commitment; its trickle-down children go with it."""
        await self.records.delete(commitment_id)

    async def delete_commitments_for_task(self, task_id: str) -> int:
        return await self.records.delete_where([eq("task_id", task_id)])

    def breakdown_slots(self, commitment: Commitment, target_timeframe: Timeframe) -> list[datetime]:
        """Candidate child dates, as starts of planning-zone periods."""
        return breakdown_slots(
            commitment.timeframe, self.localize(commitment.commitment_date), target_timeframe
        )
