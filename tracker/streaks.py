"""Client half of streak tracking.

The local counters are a display estimate only; after every successful write
the authoritative values computed by the store overwrite them.
"""

from __future__ import annotations

from dataclasses import replace

from tracker.models import Habit, parse_date


def optimistic_streak(habit: Habit, was_completed: bool) -> Habit:
    if was_completed:
        current = max(0, habit.current_streak - 1)
    else:
        current = habit.current_streak + 1
    return replace(
        habit,
        current_streak=current,
        longest_streak=max(habit.longest_streak, current),
    )


def reconcile_streak(habit: Habit, row: dict) -> Habit:
    return replace(
        habit,
        current_streak=int(row.get("current_streak") or 0),
        longest_streak=int(row.get("longest_streak") or 0),
        last_completed_date=parse_date(row.get("last_completed_date")),
    )
