# src/focus_planner/records/periods.py

"""
Planning periods.

A commitment date belongs to the period of its timeframe: the calendar day,
the Sunday-started week, the month or the year. Calculations happen in the
timezone of the datetime passed in (naive values are treated as UTC).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from .models import Timeframe


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def period_start(timeframe: Timeframe, value: datetime) -> datetime:
    day = _aware(value).replace(hour=0, minute=0, second=0, microsecond=0)
    if timeframe == Timeframe.DAILY:
        return day
    if timeframe == Timeframe.WEEKLY:
        # weekday(): Monday=0 .. Sunday=6
        return day - timedelta(days=(day.weekday() + 1) % 7)
    if timeframe == Timeframe.MONTHLY:
        return day.replace(day=1)
    return day.replace(month=1, day=1)


def period_end(timeframe: Timeframe, value: datetime) -> datetime:
    """Exclusive end of the period containing `value`."""
    start = period_start(timeframe, value)
    if timeframe == Timeframe.DAILY:
        return start + timedelta(days=1)
    if timeframe == Timeframe.WEEKLY:
        return start + timedelta(days=7)
    if timeframe == Timeframe.MONTHLY:
        if start.month == 12:
            return start.replace(year=start.year + 1, month=1)
        return start.replace(month=start.month + 1)
    return start.replace(year=start.year + 1)


def period_bounds(timeframe: Timeframe, value: datetime) -> tuple[datetime, datetime]:
    return period_start(timeframe, value), period_end(timeframe, value)


def in_period(timeframe: Timeframe, anchor: datetime, value: datetime) -> bool:
    start, end = period_bounds(timeframe, anchor)
    return start <= _aware(value) < end


def breakdown_slots(
        timeframe: Timeframe, anchor: datetime, target: Timeframe
) -> list[datetime]:
    """
    Starts of every `target` period overlapping the `timeframe` period of
    `anchor`. Empty when `target` is not finer than `timeframe`.

    A week that starts before the parent period is clamped to the parent's
    start, so every slot is itself inside the parent period.
    """
    if target not in timeframe.breakdown_timeframes:
        return []
    start, end = period_bounds(timeframe, anchor)
    slots: list[datetime] = []
    cursor = start
    while cursor < end:
        slot = max(period_start(target, cursor), start)
        if not slots or slots[-1] != slot:
            slots.append(slot)
        cursor = period_end(target, cursor)
    return slots
