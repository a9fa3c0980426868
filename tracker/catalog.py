"""Habit definitions: create, edit, soft delete, and calendar event upkeep.

Store writes happen before local state changes, so a failed write leaves
nothing to undo. Calendar failures never fail the habit operation.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Optional, Protocol

from tracker.data.store import DurableStore
from tracker.models import Habit, habit_fields_to_row, habit_from_row
from tracker.notifications import Notifier
from tracker.services.google_calendar import event_habit_id, is_habit_event
from tracker.state import TrackerState

logger = logging.getLogger(__name__)


class CalendarService(Protocol):
    async def create_recurring_event(self, habit: Habit) -> str: ...

    async def update_event(self, event_id: str, habit: Habit) -> dict: ...

    async def delete_event(self, event_id: str) -> None: ...


class HabitCatalog:
    def __init__(
        self,
        state: TrackerState,
        store: DurableStore,
        notifier: Notifier,
        calendar: Optional[CalendarService] = None,
    ):
        self._state = state
        self._store = store
        self._notifier = notifier
        self.calendar = calendar

    def _replace_habit(self, habit: Habit) -> None:
        self._state.update(habits=[habit if h.id == habit.id else h for h in self._state.habits])

    async def _link_event(self, habit: Habit, event_id: str | None) -> Habit:
        await self._store.update_habit(self._state.owner_id, habit.id, {"google_event_id": event_id})
        linked = replace(habit, google_event_id=event_id)
        self._replace_habit(linked)
        return linked

    async def add_habit(self, fields: dict) -> Habit | None:
        state = self._state
        owner_id = state.owner_id
        name = str(fields.get("name") or "").strip()
        if not owner_id or not name or fields.get("category_id") is None:
            logger.warning("Rejected habit creation (owner=%s, name=%r)", owner_id, name)
            return None

        row = habit_fields_to_row({**fields, "name": name})
        row["active"] = True
        try:
            created = habit_from_row(await self._store.insert_habit(owner_id, row))
        except Exception as exc:
            logger.exception("Error creating habit %r", name)
            state.error = str(exc)
            self._notifier.notify("Could not create the habit", "error")
            return None

        state.update(habits=[created, *state.habits])

        if self.calendar is not None and created.frequency:
            try:
                event_id = await self.calendar.create_recurring_event(created)
                created = await self._link_event(created, event_id)
            except Exception:
                logger.exception("Error creating calendar event for habit %s", created.id)
        return created

    async def update_habit(self, habit_id: str, changes: dict) -> Habit | None:
        state = self._state
        if not state.owner_id or state.habit(habit_id) is None:
            return None
        try:
            row = await self._store.update_habit(state.owner_id, habit_id, habit_fields_to_row(changes))
        except Exception as exc:
            logger.exception("Error updating habit %s", habit_id)
            state.error = str(exc)
            self._notifier.notify("Could not update the habit", "error")
            return None

        updated = habit_from_row(row)
        self._replace_habit(updated)

        if self.calendar is not None:
            try:
                if not updated.frequency:
                    if updated.google_event_id:
                        await self.calendar.delete_event(updated.google_event_id)
                        updated = await self._link_event(updated, None)
                elif updated.google_event_id:
                    await self.calendar.update_event(updated.google_event_id, updated)
                else:
                    event_id = await self.calendar.create_recurring_event(updated)
                    updated = await self._link_event(updated, event_id)
            except Exception:
                logger.exception("Error syncing calendar event for habit %s", habit_id)
        return updated

    async def delete_habit(self, habit_id: str, calendar_events: Iterable[dict] = ()) -> bool:
        """Soft delete ``habit_id`` and sweep every calendar event tagged with it."""
        state = self._state
        habit = state.habit(habit_id)
        if not state.owner_id or habit is None:
            return False
        try:
            await self._store.update_habit(state.owner_id, habit_id, {"active": False})
        except Exception:
            logger.exception("Error deleting habit %s", habit_id)
            self._notifier.notify("Could not delete the habit", "error")
            return False

        if self.calendar is not None:
            targets = [habit.google_event_id] if habit.google_event_id else []
            targets += [
                event["id"]
                for event in calendar_events
                if event_habit_id(event) == habit_id and event.get("id") and event["id"] != habit.google_event_id
            ]
            for event_id in targets:
                try:
                    await self.calendar.delete_event(event_id)
                except Exception:
                    logger.warning("Could not delete calendar event %s for habit %s", event_id, habit_id, exc_info=True)

        state.update(habits=[h for h in state.habits if h.id != habit_id])
        self._notifier.notify("Habit deleted", "success")
        return True

    async def cleanup_orphan_events(self) -> int:
        """Delete calendar events still linked to inactive habits. Returns how many were cleared."""
        owner_id = self._state.owner_id
        if not owner_id or self.calendar is None:
            return 0
        try:
            rows = await self._store.select_habits(owner_id, active_only=False)
        except Exception:
            logger.exception("Orphan event cleanup failed")
            return 0

        orphans = [habit_from_row(row) for row in rows]
        orphans = [h for h in orphans if not h.active and h.google_event_id]
        if orphans:
            logger.info("Found %s orphan habit events to clean up", len(orphans))
        cleared = 0
        for orphan in orphans:
            try:
                await self.calendar.delete_event(orphan.google_event_id)
                await self._store.update_habit(owner_id, orphan.id, {"google_event_id": None})
                cleared += 1
            except Exception:
                logger.warning("Failed to clean up orphan event %s", orphan.google_event_id, exc_info=True)
        return cleared

    async def cleanup_ghost_events(self, calendar_events: Iterable[dict]) -> list[str]:
        """Delete habit-tagged events whose habit is no longer active."""
        if self.calendar is None:
            return []
        active_ids = {h.id for h in self._state.habits if h.active}
        ghosts = [
            event
            for event in calendar_events
            if is_habit_event(event) and event_habit_id(event) and event_habit_id(event) not in active_ids
        ]
        deleted = []
        for ghost in ghosts:
            try:
                await self.calendar.delete_event(ghost["id"])
                deleted.append(ghost["id"])
                logger.info("Deleted ghost event %s (%s)", ghost.get("summary"), ghost["id"])
            except Exception:
                logger.warning("Failed to delete ghost event %s", ghost.get("id"), exc_info=True)
        return deleted
