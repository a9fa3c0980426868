"""Owned state for one signed-in subject.

Collections are stored as tuples and replaced wholesale on every change, so
readers can hold on to what they got without seeing later mutations. Every
replacement bumps a per-field generation counter; the analytics cache keys
its memoized results on those counters.
"""

from __future__ import annotations

from collections import Counter
from datetime import date
from typing import Any, Iterable

from tracker.models import DailyLog, GenericCompletion, Habit, HabitCategory, HabitCompletion

TRACKED_FIELDS = (
    "owner_id",
    "selected_date",
    "analysis_range_days",
    "categories",
    "habits",
    "daily_log",
    "today_completions",
    "range_completions",
    "historical_completions",
    "historical_logs",
    "generic_completions",
)

ANALYTICS_DEPENDENCIES = (
    "habits",
    "today_completions",
    "historical_completions",
    "historical_logs",
    "analysis_range_days",
)

_COLLECTIONS = {
    "categories",
    "habits",
    "today_completions",
    "range_completions",
    "historical_completions",
    "historical_logs",
    "generic_completions",
}


class TrackerState:
    def __init__(self, selected_date: date, analysis_range_days: int):
        self._values: dict[str, Any] = {name: () for name in _COLLECTIONS}
        self._values.update(
            {
                "owner_id": None,
                "selected_date": selected_date,
                "analysis_range_days": analysis_range_days,
                "daily_log": None,
            }
        )
        self._generations: Counter = Counter()
        self.is_loading = False
        self.is_range_loading = False
        self.is_history_loading = False
        self.error: str | None = None

    @property
    def owner_id(self) -> str | None:
        return self._values["owner_id"]

    @property
    def selected_date(self) -> date:
        return self._values["selected_date"]

    @property
    def analysis_range_days(self) -> int:
        return self._values["analysis_range_days"]

    @property
    def categories(self) -> tuple[HabitCategory, ...]:
        return self._values["categories"]

    @property
    def habits(self) -> tuple[Habit, ...]:
        return self._values["habits"]

    @property
    def daily_log(self) -> DailyLog | None:
        return self._values["daily_log"]

    @property
    def today_completions(self) -> tuple[HabitCompletion, ...]:
        return self._values["today_completions"]

    @property
    def range_completions(self) -> tuple[HabitCompletion, ...]:
        return self._values["range_completions"]

    @property
    def historical_completions(self) -> tuple[HabitCompletion, ...]:
        return self._values["historical_completions"]

    @property
    def historical_logs(self) -> tuple[DailyLog, ...]:
        return self._values["historical_logs"]

    @property
    def generic_completions(self) -> tuple[GenericCompletion, ...]:
        return self._values["generic_completions"]

    def habit(self, habit_id: str) -> Habit | None:
        for habit in self.habits:
            if habit.id == habit_id:
                return habit
        return None

    def update(self, **changes) -> None:
        """Replace fields and bump their generations. Core operations only."""
        for name, value in changes.items():
            if name not in TRACKED_FIELDS:
                raise KeyError(f"Unknown state field: {name}")
            if name in _COLLECTIONS:
                value = tuple(value)
            self._values[name] = value
            self._generations[name] += 1

    def generation(self, name: str) -> int:
        return self._generations[name]

    def dependency_key(self, names: Iterable[str] = ANALYTICS_DEPENDENCIES) -> tuple[int, ...]:
        return tuple(self._generations[name] for name in names)

    def snapshot(self, *names: str) -> dict[str, Any]:
        return {name: self._values[name] for name in names}

    def restore(self, snapshot: dict[str, Any]) -> None:
        self.update(**snapshot)
