"""Shared fixtures: an in-memory durable store, a fake calendar, and engines."""

from __future__ import annotations

import asyncio
from datetime import date, datetime, time, timezone
from uuid import uuid4

import pytest

from backend.streaks import compute_streaks
from tracker.data.api_client import StoreError
from tracker.engine import HabitEngine

TODAY = date(2024, 5, 15)  # a Wednesday
OWNER = "owner-1"


def _iso(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def at(day: date, hour: int = 9) -> str:
    return datetime.combine(day, time(hour), tzinfo=timezone.utc).isoformat()


class FakeStore:
    """Dict-backed store with the same row shapes as the backend service."""

    def __init__(self, today: date = TODAY):
        self.today = today
        self.categories: list[dict] = [
            {"id": 1, "name": "Health", "color": "#22c55e", "emoji": "💪"},
            {"id": 2, "name": "Mind", "color": "#6366f1", "emoji": "🧠"},
        ]
        self.habits: dict[str, dict] = {}
        self.logs: dict[tuple[str, str], dict] = {}
        self.completions: dict[tuple[str, str], dict] = {}
        self.event_completions: dict[tuple[str, str, str], dict] = {}
        self.fail_writes = False
        self.fail_reads = False
        self.writes: list[str] = []

    def _write(self, op: str) -> None:
        self.writes.append(op)
        if self.fail_writes:
            raise StoreError(503, "Service Unavailable", "store offline")

    def _read(self) -> None:
        if self.fail_reads:
            raise StoreError(503, "Service Unavailable", "store offline")

    # -- seeding helpers -------------------------------------------------

    def seed_habit(self, name="Meditate", owner_id=OWNER, created=TODAY, **fields) -> dict:
        row = {
            "id": fields.pop("id", uuid4().hex),
            "owner_id": owner_id,
            "name": name,
            "category_id": fields.pop("category_id", 1),
            "frequency": fields.pop("frequency", ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]),
            "schedule_type": "flexible",
            "preferred_block": "anytime",
            "fixed_time": None,
            "estimated_duration": 15,
            "cognitive_load": "medium",
            "icon": "🧘",
            "active": True,
            "current_streak": 0,
            "longest_streak": 0,
            "last_completed_date": None,
            "end_date": None,
            "google_event_id": None,
            "created_at": at(created, 8),
        }
        row.update(fields)
        self.habits[row["id"]] = row
        return row

    def seed_log(self, day: date, owner_id=OWNER, **fields) -> dict:
        row = {
            "id": uuid4().hex,
            "owner_id": owner_id,
            "date": day.isoformat(),
            "mood_score": None,
            "energy_score": None,
            "notes": None,
            "tags": [],
            "created_at": at(day, 7),
        }
        row.update(fields)
        self.logs[(owner_id, day.isoformat())] = row
        return row

    def seed_completion(self, habit_id: str, day: date, hour: int = 9, owner_id=OWNER) -> dict:
        log = self.logs.get((owner_id, day.isoformat())) or self.seed_log(day, owner_id)
        row = {
            "id": uuid4().hex,
            "owner_id": owner_id,
            "habit_id": habit_id,
            "daily_log_id": log["id"],
            "target_date": day.isoformat(),
            "completed_at": at(day, hour),
            "value": None,
        }
        self.completions[(habit_id, day.isoformat())] = row
        return row

    def _recompute(self, habit_id: str) -> None:
        habit = self.habits[habit_id]
        done = [date.fromisoformat(key[1]) for key in self.completions if key[0] == habit_id]
        created = datetime.fromisoformat(habit["created_at"]).date()
        habit.update(
            compute_streaks(habit["frequency"], created, done, self.today, stored_longest=habit["longest_streak"])
        )

    # -- DurableStore ----------------------------------------------------

    async def select_categories(self, owner_id):
        self._read()
        return [dict(row) for row in self.categories]

    async def select_habits(self, owner_id, active_only=True):
        self._read()
        return [
            dict(row)
            for row in self.habits.values()
            if row["owner_id"] == owner_id and (row["active"] or not active_only)
        ]

    async def select_habit(self, owner_id, habit_id):
        self._read()
        row = self.habits.get(habit_id)
        return dict(row) if row and row["owner_id"] == owner_id else None

    async def insert_habit(self, owner_id, fields):
        self._write("insert_habit")
        row = self.seed_habit(owner_id=owner_id, **fields)
        return dict(row)

    async def update_habit(self, owner_id, habit_id, fields):
        self._write("update_habit")
        row = self.habits[habit_id]
        row.update(fields)
        return dict(row)

    async def select_daily_log(self, owner_id, day):
        self._read()
        row = self.logs.get((owner_id, _iso(day)))
        return dict(row) if row else None

    async def select_daily_logs(self, owner_id, start, end):
        self._read()
        return [
            dict(row)
            for (owner, day), row in sorted(self.logs.items())
            if owner == owner_id and _iso(start) <= day <= _iso(end)
        ]

    async def upsert_daily_log(self, owner_id, day, fields):
        self._write("upsert_daily_log")
        key = (owner_id, _iso(day))
        row = self.logs.get(key) or self.seed_log(date.fromisoformat(_iso(day)), owner_id)
        row.update(fields)
        return dict(row)

    async def select_completions(
        self, owner_id, daily_log_id=None, habit_ids=None, start=None, end=None, with_habit=False
    ):
        self._read()
        habit_ids = set(habit_ids) if habit_ids is not None else None
        items = []
        for row in self.completions.values():
            if row["owner_id"] != owner_id:
                continue
            if daily_log_id and row["daily_log_id"] != daily_log_id:
                continue
            if habit_ids is not None and row["habit_id"] not in habit_ids:
                continue
            if start and row["target_date"] < _iso(start):
                continue
            if end and row["target_date"] > _iso(end):
                continue
            item = dict(row)
            if with_habit:
                habit = self.habits.get(row["habit_id"])
                item["habit"] = dict(habit) if habit else None
            items.append(item)
        return sorted(items, key=lambda item: item["target_date"])

    async def insert_completion(self, owner_id, row):
        self._write("insert_completion")
        key = (row["habit_id"], _iso(row["target_date"]))
        record = self.completions.get(key) or {"id": uuid4().hex, "owner_id": owner_id}
        record.update(
            habit_id=row["habit_id"],
            daily_log_id=row["daily_log_id"],
            target_date=_iso(row["target_date"]),
            completed_at=row.get("completed_at"),
            value=row.get("value"),
        )
        self.completions[key] = record
        self._recompute(row["habit_id"])
        return dict(record)

    async def delete_completion(self, owner_id, daily_log_id, habit_id):
        self._write("delete_completion")
        for key, row in list(self.completions.items()):
            if row["daily_log_id"] == daily_log_id and row["habit_id"] == habit_id:
                del self.completions[key]
        self._recompute(habit_id)

    async def select_event_completions(self, owner_id, start, end):
        self._read()
        return [
            dict(row)
            for (owner, _, day), row in self.event_completions.items()
            if owner == owner_id and _iso(start) <= day <= _iso(end)
        ]

    async def insert_event_completion(self, owner_id, event_id, target_date):
        self._write("insert_event_completion")
        row = {"event_id": event_id, "target_date": _iso(target_date)}
        self.event_completions[(owner_id, event_id, _iso(target_date))] = row
        return dict(row)

    async def delete_event_completion(self, owner_id, event_id, target_date):
        self._write("delete_event_completion")
        self.event_completions.pop((owner_id, event_id, _iso(target_date)), None)


class FakeCalendar:
    def __init__(self):
        self.created: list[str] = []
        self.updated: list[str] = []
        self.deleted: list[str] = []
        self.fail = False
        self._ids = 0

    async def create_recurring_event(self, habit):
        if self.fail:
            raise RuntimeError("calendar offline")
        self._ids += 1
        event_id = f"evt-{self._ids}"
        self.created.append(habit.id)
        return event_id

    async def update_event(self, event_id, habit):
        if self.fail:
            raise RuntimeError("calendar offline")
        self.updated.append(event_id)
        return {"id": event_id}

    async def delete_event(self, event_id):
        if self.fail:
            raise RuntimeError("calendar offline")
        self.deleted.append(event_id)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def calendar() -> FakeCalendar:
    return FakeCalendar()


@pytest.fixture
def make_engine(store, calendar):
    def _make(load: bool = True, with_calendar: bool = False) -> HabitEngine:
        engine = HabitEngine(
            store,
            today=lambda: TODAY,
            tz_name="UTC",
            calendar=calendar if with_calendar else None,
        )
        if load:
            assert run(engine.load(OWNER))
        return engine

    return _make
