from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable

from tracker import insights
from tracker.state import ANALYTICS_DEPENDENCIES, TrackerState

logger = logging.getLogger(__name__)

# Categories only change on load, but mastery reads them.
CACHE_DEPENDENCIES = (*ANALYTICS_DEPENDENCIES, "categories")


class AnalyticsCache:
    """Memoized analytics over the tracker state.

    Any change to a dependency (or a new calendar day) drops every memoized
    result, including the per-habit history map.
    """

    def __init__(self, state: TrackerState, today: Callable[[], date], tz_name: str | None = None):
        self._state = state
        self._today = today
        self._tz_name = tz_name
        self._key: tuple | None = None
        self._results: dict[str, Any] = {}
        self._histories: dict[str, insights.HabitYearHistory] = {}

    def _fresh(self) -> date:
        today = self._today()
        key = (*self._state.dependency_key(CACHE_DEPENDENCIES), today)
        if key != self._key:
            if self._key is not None:
                logger.debug("Analytics cache invalidated")
            self._key = key
            self._results = {}
            self._histories = {}
        return today

    def _memo(self, name: str, compute: Callable[[date], Any]) -> Any:
        today = self._fresh()
        if name not in self._results:
            self._results[name] = compute(today)
        return self._results[name]

    def category_mastery(self) -> list[insights.CategoryMastery]:
        state = self._state
        return self._memo(
            "category_mastery",
            lambda today: insights.category_mastery(
                state.habits,
                state.categories,
                state.historical_completions,
                today,
                state.analysis_range_days,
                self._tz_name,
            ),
        )

    def performance_metrics(self) -> insights.PerformanceMetrics:
        state = self._state
        return self._memo(
            "performance_metrics",
            lambda today: insights.performance_metrics(
                state.habits,
                state.categories,
                state.historical_completions,
                state.historical_logs,
                today,
                state.analysis_range_days,
                self._tz_name,
            ),
        )

    def qualitative_insights(self) -> insights.QualitativeInsights:
        state = self._state
        return self._memo(
            "qualitative_insights",
            lambda today: insights.qualitative_insights(
                state.habits, state.historical_completions, state.historical_logs, self._tz_name
            ),
        )

    def analysis_sufficiency(self) -> insights.Sufficiency:
        return self.qualitative_insights().sufficiency

    def year_in_pixels(self) -> list[insights.PixelDay]:
        state = self._state
        return self._memo(
            "year_in_pixels",
            lambda today: insights.year_in_pixels(state.habits, state.historical_completions, state.historical_logs),
        )

    def correlation_data(self) -> list[insights.CorrelationPoint]:
        state = self._state
        return self._memo(
            "correlation_data",
            lambda today: insights.correlation_data(state.habits, state.historical_completions, state.historical_logs),
        )

    def habit_year_history(self, habit_id: str) -> insights.HabitYearHistory | None:
        today = self._fresh()
        if habit_id in self._histories:
            return self._histories[habit_id]
        habit = self._state.habit(habit_id)
        if habit is None:
            return None
        history = insights.habit_year_history(habit, self._state.historical_completions, today, self._tz_name)
        self._histories[habit_id] = history
        return history
