"""Entry point for UI code: one engine per signed-in subject.

Readers get immutable snapshots through ``engine.state``; every mutation goes
through the methods below.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, Iterable
from zoneinfo import ZoneInfo

from tracker.analytics_cache import AnalyticsCache
from tracker.catalog import CalendarService, HabitCatalog
from tracker.constants import ANALYSIS_RANGES
from tracker.data.store import ApiStore, DurableStore
from tracker.event_ledger import EventLedger
from tracker.ledger import CompletionLedger
from tracker.logging_config import configure_logging
from tracker.matcher import match_event_to_habit
from tracker.models import category_from_row, habit_from_row
from tracker.notifications import Notifier
from tracker.settings import TrackerSettings, get_settings
from tracker.state import TrackerState

logger = logging.getLogger(__name__)


class HabitEngine:
    def __init__(
        self,
        store: DurableStore,
        today: Callable[[], date],
        tz_name: str | None = None,
        calendar: CalendarService | None = None,
        analysis_range_days: int = 30,
        history_days: int = 365,
        notification_ttl_seconds: float = 3,
    ):
        self.store = store
        self.today = today
        self.tz_name = tz_name
        self.state = TrackerState(selected_date=today(), analysis_range_days=analysis_range_days)
        self.notifier = Notifier(ttl_seconds=notification_ttl_seconds)
        self.events = EventLedger(self.state, store, self.notifier)
        self.ledger = CompletionLedger(
            self.state,
            store,
            self.notifier,
            today,
            event_ledger=self.events,
            history_days=history_days,
        )
        self.analytics = AnalyticsCache(self.state, today, tz_name)
        self.catalog = HabitCatalog(self.state, store, self.notifier, calendar)

    @classmethod
    def from_settings(
        cls,
        settings: TrackerSettings | None = None,
        store: DurableStore | None = None,
        calendar: CalendarService | None = None,
    ) -> "HabitEngine":
        settings = settings or get_settings()
        configure_logging()
        tz = ZoneInfo(settings.timezone)
        return cls(
            store or ApiStore.from_settings(settings),
            today=lambda: datetime.now(tz).date(),
            tz_name=settings.timezone,
            calendar=calendar,
            analysis_range_days=settings.effective_analysis_range,
            history_days=settings.history_days,
            notification_ttl_seconds=settings.notification_ttl_seconds,
        )

    # -- session ---------------------------------------------------------

    async def load(self, owner_id: str) -> bool:
        state = self.state
        if not owner_id:
            return False
        if owner_id != state.owner_id:
            state.update(
                owner_id=owner_id,
                habits=(),
                daily_log=None,
                today_completions=(),
                range_completions=(),
                historical_completions=(),
                historical_logs=(),
                generic_completions=(),
            )
        state.is_loading = True
        state.error = None
        try:
            category_rows = await self.store.select_categories(owner_id)
            habit_rows = await self.store.select_habits(owner_id, active_only=True)
            state.update(
                categories=[category_from_row(row) for row in category_rows],
                habits=[habit_from_row(row) for row in habit_rows],
            )
            await self.ledger.load_day(state.selected_date)
        except Exception as exc:
            logger.exception("Error loading habits for %s", owner_id)
            state.error = str(exc)
            self.notifier.notify("Could not load habits", "error")
            return False
        finally:
            state.is_loading = False
        await self.ledger.fetch_history()
        return True

    async def set_selected_date(self, day: date) -> None:
        if day == self.state.selected_date:
            return
        self.state.update(selected_date=day, daily_log=None, today_completions=())
        try:
            await self.ledger.load_day(day)
        except Exception as exc:
            logger.exception("Error loading %s", day)
            self.state.error = str(exc)

    def set_analysis_range(self, days: int) -> None:
        if days not in ANALYSIS_RANGES:
            raise ValueError(f"analysis range must be one of {ANALYSIS_RANGES}")
        if days != self.state.analysis_range_days:
            self.state.update(analysis_range_days=days)

    # -- facts -----------------------------------------------------------

    async def fetch_range(self, min_date: date, max_date: date) -> None:
        await self.ledger.fetch_range(self.state.owner_id, min_date, max_date)

    async def toggle_habit(self, habit_id: str, target_date: date | None = None) -> bool | None:
        return await self.ledger.toggle(habit_id, target_date)

    async def toggle_event(self, event_id: str, target_date: date) -> bool | None:
        return await self.events.toggle(event_id, target_date)

    async def toggle_calendar_entry(self, event_id: str, title: str, target_date: date) -> bool | None:
        """Route a calendar entry to the habit ledger when its title names a habit."""
        habit = match_event_to_habit(title, self.state.habits)
        if habit is not None:
            return await self.ledger.toggle(habit.id, target_date)
        return await self.events.toggle(event_id, target_date)

    def is_calendar_entry_done(self, event_id: str, title: str, target_date: date) -> bool:
        habit = match_event_to_habit(title, self.state.habits)
        if habit is not None:
            return self.ledger.is_completed(habit.id, target_date)
        return self.events.is_done(event_id, target_date)

    async def save_pulse(self, **fields):
        return await self.ledger.save_pulse(**fields)

    def completions_between(self, start: date, end: date):
        return self.ledger.completions_between(start, end)

    def current_notification(self):
        return self.notifier.current_notification()

    def dismiss_notification(self) -> None:
        self.notifier.clear_notification()

    # -- habits ----------------------------------------------------------

    async def add_habit(self, fields: dict):
        return await self.catalog.add_habit(fields)

    async def update_habit(self, habit_id: str, changes: dict):
        return await self.catalog.update_habit(habit_id, changes)

    async def delete_habit(self, habit_id: str, calendar_events: Iterable[dict] = ()) -> bool:
        return await self.catalog.delete_habit(habit_id, calendar_events)

    async def cleanup_orphan_events(self) -> int:
        return await self.catalog.cleanup_orphan_events()

    async def cleanup_ghost_events(self, calendar_events: Iterable[dict]) -> list[str]:
        return await self.catalog.cleanup_ghost_events(calendar_events)

    # -- analytics -------------------------------------------------------

    def category_mastery(self):
        return self.analytics.category_mastery()

    def performance_metrics(self):
        return self.analytics.performance_metrics()

    def qualitative_insights(self):
        return self.analytics.qualitative_insights()

    def habit_year_history(self, habit_id: str):
        return self.analytics.habit_year_history(habit_id)

    def analysis_sufficiency(self):
        return self.analytics.analysis_sufficiency()

    def year_in_pixels(self):
        return self.analytics.year_in_pixels()

    def correlation_data(self):
        return self.analytics.correlation_data()
