# src/focus_planner/records/models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

DEFAULT_DURATION_MINUTES = 30


class TaskType(StrEnum):
    """A row in the tasks table is a task, a project or a list."""

    TASK = "task"
    PROJECT = "project"
    LIST = "list"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskType:
        if not raw:
            return cls.TASK
        try:
            return cls(raw)
        except ValueError:
            return cls.TASK


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def sort_index(self) -> int:
        return {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}[self]

    @classmethod
    def from_db(cls, raw: str | None) -> Priority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(raw)
        except ValueError:
            return cls.MEDIUM


class Timeframe(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @property
    def urgency_index(self) -> int:
        """Lower = more urgent (daily=0 .. yearly=3)."""
        return _TIMEFRAME_ORDER.index(self)

    @property
    def child_timeframe(self) -> Timeframe | None:
        """Next finer timeframe for trickle-down breakdown (None for daily)."""
        idx = _TIMEFRAME_ORDER.index(self)
        return _TIMEFRAME_ORDER[idx - 1] if idx > 0 else None

    @property
    def breakdown_timeframes(self) -> list[Timeframe]:
        """Every finer timeframe this one can be broken down into, nearest first."""
        idx = _TIMEFRAME_ORDER.index(self)
        return list(reversed(_TIMEFRAME_ORDER[:idx]))


_TIMEFRAME_ORDER: tuple[Timeframe, ...] = (
    Timeframe.DAILY,
    Timeframe.WEEKLY,
    Timeframe.MONTHLY,
    Timeframe.YEARLY,
)


class Section(StrEnum):
    """
    Planning bucket within a timeframe.

    Rows written before the rename still carry "focus"/"extra"; from_db maps them.
    """

    TARGET = "target"
    TODO = "todo"

    def max_tasks(self, timeframe: Timeframe) -> int | None:
        """Capacity of this section for a timeframe (None = unlimited)."""
        if self is Section.TODO:
            return None
        if timeframe == Timeframe.DAILY:
            return 3
        if timeframe == Timeframe.YEARLY:
            return 10
        return 5

    @classmethod
    def from_db(cls, raw: str | None) -> Section:
        if not raw:
            return cls.TODO
        legacy = _LEGACY_SECTIONS.get(raw)
        if legacy is not None:
            return legacy
        try:
            return cls(raw)
        except ValueError:
            return cls.TODO


_LEGACY_SECTIONS = {"focus": Section.TARGET, "extra": Section.TODO}


@dataclass(slots=True)
class Task:
    """A task, project or list (see `type`)."""

    title: str
    id: str = ""
    user_id: str = ""
    description: str | None = None
    type: TaskType = TaskType.TASK
    is_completed: bool = False
    completed_date: datetime | None = None
    created_date: datetime | None = None
    modified_date: datetime | None = None
    sort_order: int = 0
    is_in_library: bool = True
    # Subtask completion states captured before a bulk complete (for undo).
    previous_completion_state: list[bool] | None = None
    priority: Priority = Priority.MEDIUM

    category_id: str | None = None
    project_id: str | None = None
    parent_task_id: str | None = None

    @property
    def is_subtask(self) -> bool:
        return self.parent_task_id is not None


@dataclass(slots=True)
class Category:
    name: str
    id: str = ""
    user_id: str = ""
    sort_order: int = 0
    # Legacy column, kept for compatibility; nothing filters on it.
    type: str = "task"
    created_date: datetime | None = None


@dataclass(slots=True)
class Commitment:
    """Binds a task to a timeframe + section on a given date."""

    task_id: str
    timeframe: Timeframe
    section: Section
    commitment_date: datetime
    id: str = ""
    user_id: str = ""
    sort_order: int = 0
    created_date: datetime | None = None

    parent_commitment_id: str | None = None

    # Timeline view; None = unscheduled.
    scheduled_time: datetime | None = None
    duration_minutes: int | None = None

    @property
    def is_child(self) -> bool:
        return self.parent_commitment_id is not None

    @property
    def can_breakdown(self) -> bool:
        return self.timeframe != Timeframe.DAILY

    @property
    def child_timeframe(self) -> Timeframe | None:
        return self.timeframe.child_timeframe

    @property
    def effective_duration_minutes(self) -> int:
        return self.duration_minutes if self.duration_minutes is not None else DEFAULT_DURATION_MINUTES
