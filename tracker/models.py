from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Optional, Tuple

from tracker.constants import (
    DEFAULT_COGNITIVE_LOAD,
    DEFAULT_ESTIMATED_DURATION,
    DEFAULT_HABIT_ICON,
    PROVISIONAL_ID_PREFIX,
    WEEKDAY_CODES,
)

HABIT_WRITABLE_FIELDS = {
    "name",
    "category_id",
    "frequency",
    "schedule_type",
    "preferred_block",
    "fixed_time",
    "estimated_duration",
    "cognitive_load",
    "icon",
    "active",
    "end_date",
    "google_event_id",
}


def parse_date(value) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def parse_datetime(value) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, datetime.min.time())
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _frequency(value) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(code for code in WEEKDAY_CODES if code in set(value))


@dataclass(frozen=True)
class HabitCategory:
    id: int
    name: str
    color: str | None = None
    emoji: str | None = None


@dataclass(frozen=True)
class HabitRef:
    """The slice of a habit that travels with a historical completion."""

    id: str
    name: str
    category_id: int | None = None
    cognitive_load: str = DEFAULT_COGNITIVE_LOAD
    estimated_duration: int = DEFAULT_ESTIMATED_DURATION


@dataclass(frozen=True)
class Habit:
    id: str
    owner_id: str
    name: str
    category_id: int | None
    created_at: datetime
    frequency: Tuple[str, ...] = ()
    schedule_type: str = "flexible"
    preferred_block: str = "anytime"
    fixed_time: str | None = None
    estimated_duration: int = DEFAULT_ESTIMATED_DURATION
    cognitive_load: str = DEFAULT_COGNITIVE_LOAD
    icon: str = DEFAULT_HABIT_ICON
    active: bool = True
    current_streak: int = 0
    longest_streak: int = 0
    last_completed_date: date | None = None
    end_date: date | None = None
    google_event_id: str | None = None

    def ref(self) -> HabitRef:
        return HabitRef(
            id=self.id,
            name=self.name,
            category_id=self.category_id,
            cognitive_load=self.cognitive_load,
            estimated_duration=self.estimated_duration,
        )


@dataclass(frozen=True)
class DailyLog:
    id: str
    owner_id: str
    date: date
    mood_score: int | None = None
    energy_score: int | None = None
    notes: str | None = None
    tags: Tuple[str, ...] = ()
    created_at: datetime | None = None


@dataclass(frozen=True)
class HabitCompletion:
    id: str
    habit_id: str
    target_date: date
    daily_log_id: str | None = None
    completed_at: datetime | None = None
    value: float | None = None
    habit: Optional[HabitRef] = field(default=None, compare=False)

    @property
    def key(self) -> tuple[date, str]:
        return (self.target_date, self.habit_id)

    @property
    def is_provisional(self) -> bool:
        return self.id.startswith(PROVISIONAL_ID_PREFIX)


@dataclass(frozen=True)
class GenericCompletion:
    event_id: str
    target_date: date

    @property
    def key(self) -> tuple[date, str]:
        return (self.target_date, self.event_id)


def category_from_row(row: dict) -> HabitCategory:
    return HabitCategory(
        id=int(row["id"]),
        name=str(row.get("name") or ""),
        color=row.get("color"),
        emoji=row.get("emoji"),
    )


def habit_from_row(row: dict) -> Habit:
    category_id = row.get("category_id")
    return Habit(
        id=str(row["id"]),
        owner_id=str(row.get("owner_id") or ""),
        name=str(row.get("name") or ""),
        category_id=int(category_id) if category_id is not None else None,
        created_at=parse_datetime(row.get("created_at")) or datetime.now(timezone.utc),
        frequency=_frequency(row.get("frequency")),
        schedule_type=row.get("schedule_type") or "flexible",
        preferred_block=row.get("preferred_block") or "anytime",
        fixed_time=row.get("fixed_time"),
        estimated_duration=int(row.get("estimated_duration") or DEFAULT_ESTIMATED_DURATION),
        cognitive_load=row.get("cognitive_load") or DEFAULT_COGNITIVE_LOAD,
        icon=row.get("icon") or DEFAULT_HABIT_ICON,
        active=row.get("active") is not False and row.get("active") != 0,
        current_streak=int(row.get("current_streak") or 0),
        longest_streak=int(row.get("longest_streak") or 0),
        last_completed_date=parse_date(row.get("last_completed_date")),
        end_date=parse_date(row.get("end_date")),
        google_event_id=row.get("google_event_id"),
    )


def habit_ref_from_row(row: dict | None, habit_id: str) -> HabitRef | None:
    if not row:
        return None
    category_id = row.get("category_id")
    return HabitRef(
        id=str(row.get("id") or habit_id),
        name=str(row.get("name") or "Habit"),
        category_id=int(category_id) if category_id is not None else None,
        cognitive_load=row.get("cognitive_load") or DEFAULT_COGNITIVE_LOAD,
        estimated_duration=int(row.get("estimated_duration") or DEFAULT_ESTIMATED_DURATION),
    )


def completion_from_row(row: dict) -> HabitCompletion:
    value = row.get("value")
    habit_id = str(row["habit_id"])
    return HabitCompletion(
        id=str(row["id"]),
        habit_id=habit_id,
        target_date=parse_date(row["target_date"]),
        daily_log_id=row.get("daily_log_id"),
        completed_at=parse_datetime(row.get("completed_at")),
        value=float(value) if value is not None else None,
        habit=habit_ref_from_row(row.get("habit"), habit_id),
    )


def daily_log_from_row(row: dict) -> DailyLog:
    mood = row.get("mood_score")
    energy = row.get("energy_score")
    return DailyLog(
        id=str(row["id"]),
        owner_id=str(row.get("owner_id") or ""),
        date=parse_date(row["date"]),
        mood_score=int(mood) if mood is not None else None,
        energy_score=int(energy) if energy is not None else None,
        notes=row.get("notes"),
        tags=tuple(row.get("tags") or ()),
        created_at=parse_datetime(row.get("created_at")),
    )


def generic_completion_from_row(row: dict) -> GenericCompletion:
    return GenericCompletion(
        event_id=str(row["event_id"]),
        target_date=parse_date(row["target_date"]),
    )


def habit_fields_to_row(fields: dict[str, Any]) -> dict[str, Any]:
    """Keep only writable habit fields, serialized for the store."""
    row = {}
    for key, value in fields.items():
        if key not in HABIT_WRITABLE_FIELDS:
            continue
        if key == "frequency":
            row[key] = list(_frequency(value))
        elif key == "end_date" and isinstance(value, date):
            row[key] = value.isoformat()
        else:
            row[key] = value
    return row
