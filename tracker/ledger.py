"""Completion ledger: the (habit, date) completion facts of one subject.

Toggles follow capture snapshot -> optimistic mutation -> durable write ->
reconcile, and restore the snapshot when the write fails.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import Callable
from uuid import uuid4

from tracker.constants import (
    ENERGY_RANGE,
    HABIT_TOGGLED_SIGNAL,
    HISTORY_DAYS,
    MOOD_RANGE,
    PROVISIONAL_ID_PREFIX,
)
from tracker.data.store import DurableStore
from tracker.event_ledger import EventLedger
from tracker.models import (
    DailyLog,
    HabitCompletion,
    completion_from_row,
    daily_log_from_row,
)
from tracker.notifications import Notifier
from tracker.state import TrackerState
from tracker.streaks import optimistic_streak, reconcile_streak

logger = logging.getLogger(__name__)

TOGGLE_SNAPSHOT_FIELDS = ("habits", "today_completions", "range_completions", "historical_completions")


def _provisional_id() -> str:
    return f"{PROVISIONAL_ID_PREFIX}{uuid4().hex}"


def _without_key(completions, key) -> list[HabitCompletion]:
    return [c for c in completions if c.key != key]


def _replace_by_id(completions, provisional_id: str, record: HabitCompletion) -> list[HabitCompletion]:
    return [record if c.id == provisional_id else c for c in completions]


def _upsert_log(logs, log: DailyLog) -> list[DailyLog]:
    merged = [item for item in logs if item.date != log.date]
    merged.append(log)
    return sorted(merged, key=lambda item: item.date)


def _in_range(value, bounds) -> bool:
    low, high = bounds
    return value is None or low <= int(value) <= high


class CompletionLedger:
    def __init__(
        self,
        state: TrackerState,
        store: DurableStore,
        notifier: Notifier,
        today: Callable[[], date],
        event_ledger: EventLedger | None = None,
        history_days: int = HISTORY_DAYS,
    ):
        self._state = state
        self._store = store
        self._notifier = notifier
        self._today = today
        self._event_ledger = event_ledger
        self._history_days = history_days

    # -- lookups ---------------------------------------------------------

    def is_completed(self, habit_id: str, day: date) -> bool:
        if day == self._state.selected_date:
            return any(c.habit_id == habit_id for c in self._state.today_completions)
        return any(c.key == (day, habit_id) for c in self._state.range_completions)

    def completions_between(self, start: date, end: date) -> list[HabitCompletion]:
        return [c for c in self._state.range_completions if start <= c.target_date <= end]

    # -- loading ---------------------------------------------------------

    async def load_day(self, day: date) -> None:
        owner_id = self._state.owner_id
        if not owner_id:
            return
        log_row = await self._store.select_daily_log(owner_id, day)
        if not log_row:
            self._state.update(daily_log=None, today_completions=())
            return
        log = daily_log_from_row(log_row)
        rows = await self._store.select_completions(owner_id, daily_log_id=log.id)
        self._state.update(
            daily_log=log,
            today_completions=[completion_from_row(row) for row in rows],
        )

    async def fetch_history(self) -> None:
        owner_id = self._state.owner_id
        if not owner_id:
            return
        self._state.is_history_loading = True
        end = self._today()
        start = end - timedelta(days=self._history_days)
        try:
            completion_rows = await self._store.select_completions(owner_id, start=start, with_habit=True)
            log_rows = await self._store.select_daily_logs(owner_id, start, end)
            self._state.update(
                historical_completions=[completion_from_row(row) for row in completion_rows],
                historical_logs=sorted((daily_log_from_row(row) for row in log_rows), key=lambda log: log.date),
            )
        except Exception:
            logger.exception("Error fetching historical data for %s", owner_id)
        finally:
            self._state.is_history_loading = False

    async def fetch_range(self, owner_id: str, min_date: date, max_date: date) -> None:
        """Merge facts for ``[min_date, max_date]`` into the range cache.

        A call made while another is in flight returns immediately.
        """
        if self._state.is_range_loading:
            return
        if not owner_id or owner_id != self._state.owner_id:
            logger.warning("Ignoring range fetch for owner %s (selected: %s)", owner_id, self._state.owner_id)
            return
        self._state.is_range_loading = True
        logger.debug("fetch_range start: %s to %s", min_date, max_date)
        try:
            habit_ids = [habit.id for habit in self._state.habits]
            if habit_ids:
                rows = await self._store.select_completions(
                    owner_id, habit_ids=habit_ids, start=min_date, end=max_date
                )
                merged = {c.key: c for c in self._state.range_completions}
                for row in rows:
                    record = completion_from_row(row)
                    merged[record.key] = record
                self._state.update(range_completions=merged.values())
            if self._event_ledger is not None:
                await self._event_ledger.merge_range(owner_id, min_date, max_date)
        except Exception:
            logger.exception("Error fetching completions range %s to %s", min_date, max_date)
        finally:
            self._state.is_range_loading = False
            logger.debug("fetch_range finished: %s to %s", min_date, max_date)

    # -- daily logs ------------------------------------------------------

    async def resolve_daily_log(self, day: date) -> DailyLog:
        """Return the log for ``day``, creating it when absent."""
        state = self._state
        if day == state.selected_date and state.daily_log is not None:
            return state.daily_log
        row = await self._store.select_daily_log(state.owner_id, day)
        if not row:
            row = await self._store.upsert_daily_log(state.owner_id, day, {})
        log = daily_log_from_row(row)
        if day == state.selected_date:
            state.update(daily_log=log)
        if not any(item.date == day for item in state.historical_logs):
            state.update(historical_logs=_upsert_log(state.historical_logs, log))
        return log

    async def save_pulse(
        self,
        day: date | None = None,
        mood_score: int | None = None,
        energy_score: int | None = None,
        notes: str | None = None,
        tags=None,
    ) -> DailyLog | None:
        state = self._state
        if not state.owner_id:
            return None
        if not _in_range(mood_score, MOOD_RANGE) or not _in_range(energy_score, ENERGY_RANGE):
            logger.warning("Rejected pulse with mood=%s energy=%s", mood_score, energy_score)
            return None
        day = day or state.selected_date
        fields = {
            "mood_score": mood_score,
            "energy_score": energy_score,
            "notes": notes,
            "tags": list(tags) if tags is not None else None,
        }
        fields = {key: value for key, value in fields.items() if value is not None}
        try:
            row = await self._store.upsert_daily_log(state.owner_id, day, fields)
        except Exception:
            logger.exception("Error upserting daily log for %s", day)
            self._notifier.notify("Could not save the daily pulse", "error")
            return None
        log = daily_log_from_row(row)
        if day == state.selected_date:
            state.update(daily_log=log)
        state.update(historical_logs=_upsert_log(state.historical_logs, log))
        return log

    # -- toggling --------------------------------------------------------

    async def toggle(self, habit_id: str, target_date: date | None = None) -> bool | None:
        """Flip the completion of ``habit_id`` on ``target_date``.

        Returns the new completion state, or ``None`` when nothing was
        committed (validation gap or failed write, which is rolled back).
        """
        state = self._state
        owner_id = state.owner_id
        if not owner_id:
            return None
        habit = state.habit(habit_id)
        if habit is None:
            logger.warning("Toggle requested for unknown habit %s", habit_id)
            return None

        target_date = target_date or state.selected_date
        is_selected_date = target_date == state.selected_date
        key = (target_date, habit_id)
        was_completed = self.is_completed(habit_id, target_date)

        snapshot = state.snapshot(*TOGGLE_SNAPSHOT_FIELDS)

        provisional_id = None
        if was_completed:
            if is_selected_date:
                state.update(today_completions=[c for c in state.today_completions if c.habit_id != habit_id])
            state.update(
                range_completions=_without_key(state.range_completions, key),
                historical_completions=_without_key(state.historical_completions, key),
            )
        else:
            provisional_id = _provisional_id()
            provisional = HabitCompletion(
                id=provisional_id,
                habit_id=habit_id,
                target_date=target_date,
                daily_log_id=state.daily_log.id if is_selected_date and state.daily_log else None,
                completed_at=datetime.now(timezone.utc),
                habit=habit.ref(),
            )
            if is_selected_date:
                state.update(today_completions=[*state.today_completions, provisional])
            state.update(
                range_completions=[*_without_key(state.range_completions, key), provisional],
                historical_completions=[*_without_key(state.historical_completions, key), provisional],
            )

        state.update(
            habits=[optimistic_streak(h, was_completed) if h.id == habit_id else h for h in state.habits]
        )

        try:
            log = await self.resolve_daily_log(target_date)
            if was_completed:
                await self._store.delete_completion(owner_id, log.id, habit_id)
            else:
                row = await self._store.insert_completion(
                    owner_id,
                    {
                        "habit_id": habit_id,
                        "daily_log_id": log.id,
                        "target_date": target_date,
                        "completed_at": datetime.now(timezone.utc).isoformat(),
                    },
                )
                if row:
                    self._settle_provisional(provisional_id, completion_from_row(row), habit.ref())
        except Exception:
            logger.exception("Error toggling habit %s on %s", habit_id, target_date)
            # Restores whole collections: an overlapping toggle on another habit is reverted too.
            state.restore(snapshot)
            self._notifier.notify("Sync failed. The change was reverted.", "error")
            return None

        await self._refresh_streak(habit_id)
        self._notifier.emit(
            HABIT_TOGGLED_SIGNAL,
            habit_id=habit_id,
            completed=not was_completed,
            date=target_date,
        )
        return not was_completed

    def _settle_provisional(self, provisional_id: str, record: HabitCompletion, ref) -> None:
        if record.habit is None:
            record = replace(record, habit=ref)
        state = self._state
        state.update(
            today_completions=_replace_by_id(state.today_completions, provisional_id, record),
            range_completions=_replace_by_id(state.range_completions, provisional_id, record),
            historical_completions=_replace_by_id(state.historical_completions, provisional_id, record),
        )

    async def _refresh_streak(self, habit_id: str) -> None:
        state = self._state
        try:
            row = await self._store.select_habit(state.owner_id, habit_id)
        except Exception:
            logger.warning("Could not refresh streak counters for habit %s", habit_id, exc_info=True)
            return
        if not row:
            return
        state.update(habits=[reconcile_streak(h, row) if h.id == habit_id else h for h in state.habits])
