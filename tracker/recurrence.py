"""Recurrence evaluation: how often a habit was scheduled over a date range."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable
from zoneinfo import ZoneInfo

from tracker.constants import WEEKDAY_CODES
from tracker.models import Habit


def local_date(value: datetime | date, tz_name: str | None = None) -> date:
    if isinstance(value, datetime):
        if tz_name and value.tzinfo is not None:
            return value.astimezone(ZoneInfo(tz_name)).date()
        return value.date()
    return value


def iter_days(start: date, end: date):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def is_scheduled(habit: Habit, day: date) -> bool:
    # An empty pattern means every day.
    if not habit.frequency:
        return True
    return WEEKDAY_CODES[day.weekday()] in habit.frequency


def effective_start(habit: Habit, range_start: date, tz_name: str | None = None) -> date:
    return max(local_date(habit.created_at, tz_name), range_start)


def habit_potential(habit: Habit, range_start: date, range_end: date, tz_name: str | None = None) -> int:
    start = effective_start(habit, range_start, tz_name)
    if start > range_end:
        return 0
    return sum(1 for day in iter_days(start, range_end) if is_scheduled(habit, day))


def potential_occurrences(
    habits: Iterable[Habit],
    range_start: date,
    range_end: date,
    category_ids: Iterable[int] | None = None,
    tz_name: str | None = None,
) -> dict[int, int]:
    """Scheduled occurrences per category over ``[range_start, range_end]``.

    Only active habits count, and never before their own creation date. When
    ``category_ids`` is given every category is present in the result (zero
    when nothing was scheduled) and habits outside those categories are
    ignored.
    """
    potentials: dict[int, int] = {}
    known = None
    if category_ids is not None:
        known = set(category_ids)
        potentials = {category_id: 0 for category_id in known}
    for habit in habits:
        if not habit.active or habit.category_id is None:
            continue
        if known is not None and habit.category_id not in known:
            continue
        potentials[habit.category_id] = potentials.get(habit.category_id, 0) + habit_potential(
            habit, range_start, range_end, tz_name
        )
    return potentials
