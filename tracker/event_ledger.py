from __future__ import annotations

import logging
from datetime import date

from tracker.constants import EVENT_TOGGLED_SIGNAL
from tracker.data.store import DurableStore
from tracker.models import GenericCompletion, generic_completion_from_row
from tracker.notifications import Notifier
from tracker.state import TrackerState

logger = logging.getLogger(__name__)


class EventLedger:
    """Done/undone marks for calendar events that match no habit."""

    def __init__(self, state: TrackerState, store: DurableStore, notifier: Notifier):
        self._state = state
        self._store = store
        self._notifier = notifier

    def is_done(self, event_id: str, target_date: date) -> bool:
        key = (target_date, event_id)
        return any(c.key == key for c in self._state.generic_completions)

    async def merge_range(self, owner_id: str, min_date: date, max_date: date) -> None:
        rows = await self._store.select_event_completions(owner_id, min_date, max_date)
        merged = {c.key: c for c in self._state.generic_completions}
        for row in rows:
            record = generic_completion_from_row(row)
            merged[record.key] = record
        self._state.update(generic_completions=merged.values())

    async def toggle(self, event_id: str, target_date: date) -> bool | None:
        state = self._state
        owner_id = state.owner_id
        if not owner_id or not event_id:
            return None

        key = (target_date, event_id)
        was_done = self.is_done(event_id, target_date)
        snapshot = state.snapshot("generic_completions")

        remaining = [c for c in state.generic_completions if c.key != key]
        if was_done:
            state.update(generic_completions=remaining)
        else:
            state.update(generic_completions=[*remaining, GenericCompletion(event_id, target_date)])

        try:
            if was_done:
                await self._store.delete_event_completion(owner_id, event_id, target_date)
            else:
                await self._store.insert_event_completion(owner_id, event_id, target_date)
        except Exception:
            logger.exception("Error toggling generic event %s on %s", event_id, target_date)
            state.restore(snapshot)
            self._notifier.notify("Could not sync the event. The change was reverted.", "error")
            return None

        self._notifier.emit(
            EVENT_TOGGLED_SIGNAL,
            event_id=event_id,
            completed=not was_done,
            date=target_date,
        )
        return not was_done
