from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable

WEEKDAY_CODES = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]


def _scheduled(frequency: list[str], day: date) -> bool:
    return not frequency or WEEKDAY_CODES[day.weekday()] in frequency


def compute_streaks(
    frequency: list[str] | None,
    created_on: date,
    completed_dates: Iterable[date],
    today: date,
    stored_longest: int = 0,
) -> dict:
    """Current run of completed scheduled days, walking back from ``today``.

    Unscheduled days are skipped. An unfinished today does not break the run
    until the day is over.
    """
    frequency = list(frequency or [])
    done = set(completed_dates)
    current = 0
    day = today
    if _scheduled(frequency, day) and day not in done:
        day -= timedelta(days=1)
    while day >= created_on:
        if not _scheduled(frequency, day):
            day -= timedelta(days=1)
            continue
        if day not in done:
            break
        current += 1
        day -= timedelta(days=1)
    last_completed = max((d for d in done if d <= today), default=None)
    return {
        "current_streak": current,
        "longest_streak": max(int(stored_longest or 0), current),
        "last_completed_date": last_completed.isoformat() if last_completed else None,
    }
