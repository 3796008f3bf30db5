# tests/test_models.py

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from focus_planner.records.columns import COMMITMENTS, TASKS, encode_datetime
from focus_planner.records.models import Priority, Section, Task, TaskType, Timeframe


def test_section_limits() -> None:
    assert Section.TARGET.max_tasks(Timeframe.DAILY) == 3
    assert Section.TARGET.max_tasks(Timeframe.WEEKLY) == 5
    assert Section.TARGET.max_tasks(Timeframe.MONTHLY) == 5
    assert Section.TARGET.max_tasks(Timeframe.YEARLY) == 10
    assert Section.TODO.max_tasks(Timeframe.DAILY) is None


def test_legacy_section_names() -> None:
    assert Section.from_db("focus") is Section.TARGET
    assert Section.from_db("extra") is Section.TODO
    assert Section.from_db("target") is Section.TARGET
    assert Section.from_db(None) is Section.TODO


def test_unknown_enum_values_fall_back() -> None:
    assert TaskType.from_db("goal") is TaskType.TASK
    assert Priority.from_db(None) is Priority.MEDIUM
    assert [p.sort_index for p in (Priority.HIGH, Priority.MEDIUM, Priority.LOW)] == [0, 1, 2]


def test_timeframe_hierarchy() -> None:
    assert Timeframe.YEARLY.child_timeframe is Timeframe.MONTHLY
    assert Timeframe.DAILY.child_timeframe is None
    assert Timeframe.YEARLY.breakdown_timeframes == [
        Timeframe.MONTHLY,
        Timeframe.WEEKLY,
        Timeframe.DAILY,
    ]
    assert Timeframe.DAILY.urgency_index < Timeframe.YEARLY.urgency_index


def test_task_row_mapping() -> None:
    created = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)
    task = Task(
        title="Pack",
        id="t1",
        user_id="u1",
        type=TaskType.LIST,
        created_date=created,
        modified_date=created,
        previous_completion_state=[True, False],
        priority=Priority.LOW,
        parent_task_id="p1",
    )
    row = TASKS.to_row(task)

    assert row["type"] == "list"
    assert row["priority"] == "low"
    assert row["created_date"] == "2026-10-19T08:00:00.000000+00:00"
    assert row["previous_completion_state"] == [True, False]
    assert TASKS.from_row(row) == task
    assert task.is_subtask


def test_partial_update_encoding_rejects_fixed_fields() -> None:
    assert COMMITMENTS.encode_fields({"section": Section.TODO}) == {"section": "todo"}
    with pytest.raises(ValueError):
        COMMITMENTS.encode_fields({"task_id": "other"})
    with pytest.raises(KeyError):
        TASKS.encode_fields({"nope": 1})


def test_datetime_encoding_is_utc_and_sortable() -> None:
    naive = datetime(2026, 1, 2, 3, 4, 5)
    assert encode_datetime(naive) == "2026-01-02T03:04:05.000000+00:00"
    assert encode_datetime(datetime(2026, 1, 1, 23, 0, tzinfo=timezone.utc)) < encode_datetime(naive)
