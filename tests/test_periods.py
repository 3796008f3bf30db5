# tests/test_periods.py

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from focus_planner.records.models import Timeframe
from focus_planner.records.periods import breakdown_slots, in_period, period_bounds


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def test_period_bounds() -> None:
    # 2026-10-21 is a Wednesday.
    anchor = _utc(2026, 10, 21, 15, 30)
    assert period_bounds(Timeframe.DAILY, anchor) == (_utc(2026, 10, 21), _utc(2026, 10, 22))
    assert period_bounds(Timeframe.WEEKLY, anchor) == (_utc(2026, 10, 18), _utc(2026, 10, 25))
    assert period_bounds(Timeframe.MONTHLY, anchor) == (_utc(2026, 10, 1), _utc(2026, 11, 1))
    assert period_bounds(Timeframe.YEARLY, anchor) == (_utc(2026, 1, 1), _utc(2027, 1, 1))


def test_week_starts_on_sunday_and_december_rolls_over() -> None:
    sunday = _utc(2026, 10, 18, 9)
    assert period_bounds(Timeframe.WEEKLY, sunday)[0] == _utc(2026, 10, 18)
    assert period_bounds(Timeframe.MONTHLY, _utc(2026, 12, 31))[1] == _utc(2027, 1, 1)


def test_in_period_end_is_exclusive() -> None:
    anchor = _utc(2026, 10, 21)
    assert in_period(Timeframe.MONTHLY, anchor, _utc(2026, 10, 31, 23, 59))
    assert not in_period(Timeframe.MONTHLY, anchor, _utc(2026, 11, 1))
    # Naive values count as UTC.
    assert in_period(Timeframe.DAILY, anchor, datetime(2026, 10, 21, 12))


def test_breakdown_slots() -> None:
    months = breakdown_slots(Timeframe.YEARLY, _utc(2026, 5, 5), Timeframe.MONTHLY)
    assert len(months) == 12
    assert months[0] == _utc(2026, 1, 1)
    assert months[-1] == _utc(2026, 12, 1)

    days = breakdown_slots(Timeframe.WEEKLY, _utc(2026, 10, 21), Timeframe.DAILY)
    assert days == [_utc(2026, 10, d) for d in range(18, 25)]

    # October 2026 starts on a Thursday: the first week is cut to October 1.
    weeks = breakdown_slots(Timeframe.MONTHLY, _utc(2026, 10, 21), Timeframe.WEEKLY)
    assert weeks[0] == _utc(2026, 10, 1)
    assert weeks[1] == _utc(2026, 10, 4)
    assert weeks[-1] == _utc(2026, 10, 25)
    assert len(weeks) == 5


def test_breakdown_slots_requires_finer_timeframe() -> None:
    assert breakdown_slots(Timeframe.DAILY, _utc(2026, 10, 21), Timeframe.WEEKLY) == []
    assert breakdown_slots(Timeframe.MONTHLY, _utc(2026, 10, 21), Timeframe.MONTHLY) == []


def test_periods_follow_the_offset_of_the_value() -> None:
    plus2 = timezone(timedelta(hours=2))
    local_midnight = datetime(2026, 3, 1, tzinfo=plus2)

    start, end = period_bounds(Timeframe.DAILY, local_midnight)
    assert start == local_midnight
    assert end == datetime(2026, 3, 2, tzinfo=plus2)
    # 22:00 UTC on Feb 28 is already March 1 at +02:00.
    assert in_period(Timeframe.MONTHLY, local_midnight, _utc(2026, 2, 28, 22))
