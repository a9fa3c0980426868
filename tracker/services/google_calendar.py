from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from urllib.parse import quote
from zoneinfo import ZoneInfo

import httpx

from tracker.constants import (
    BLOCK_DEFAULT_HOURS,
    DEFAULT_EVENT_DURATION,
    HABIT_EVENT_COLOR_ID,
    HABIT_EVENT_SOURCE,
    WEEKDAY_CODES,
)
from tracker.models import Habit
from tracker.settings import TrackerSettings

logger = logging.getLogger(__name__)

CALENDAR_API = "https://www.googleapis.com/calendar/v3"


class CalendarError(RuntimeError):
    pass


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
        return payload.get("error", {}).get("message") or payload.get("message") or response.text
    except Exception:
        return response.text


def recurrence_rule(frequency) -> str | None:
    codes = [code for code in WEEKDAY_CODES if code in set(frequency or ())]
    if not codes:
        return None
    return "RRULE:FREQ=WEEKLY;BYDAY=" + ",".join(code[:2].upper() for code in codes)


def next_valid_date(from_date: date, frequency) -> date:
    if not frequency:
        return from_date
    for offset in range(7):
        candidate = from_date + timedelta(days=offset)
        if WEEKDAY_CODES[candidate.weekday()] in frequency:
            return candidate
    return from_date


def _start_time(habit: Habit) -> tuple[int, int]:
    if habit.schedule_type == "fixed" and habit.fixed_time:
        try:
            hour, minute = (int(part) for part in habit.fixed_time.split(":")[:2])
            return hour, minute
        except ValueError:
            logger.warning("Ignoring malformed fixed time %r for habit %s", habit.fixed_time, habit.id)
    return BLOCK_DEFAULT_HOURS.get(habit.preferred_block, 9), 0


def build_habit_event_payload(habit: Habit, today: date, timezone_name: str) -> dict | None:
    """Recurring event body for ``habit``, starting on its next scheduled day.

    Habits without recurrence days get no event.
    """
    rule = recurrence_rule(habit.frequency)
    if rule is None:
        return None
    duration = habit.estimated_duration or DEFAULT_EVENT_DURATION
    start_day = next_valid_date(today, habit.frequency)
    payload = {
        "summary": f"{habit.icon} {habit.name}",
        "colorId": HABIT_EVENT_COLOR_ID,
        "recurrence": [rule],
        "extendedProperties": {"shared": {"habitId": habit.id, "source": HABIT_EVENT_SOURCE}},
    }
    if habit.schedule_type == "flexible" and habit.preferred_block == "anytime":
        payload.update(
            {
                "start": {"date": start_day.isoformat()},
                "end": {"date": (start_day + timedelta(days=1)).isoformat()},
                "description": f"📋 Scheduled habit\n⏱️ Estimated duration: {duration} min",
                "transparency": "transparent",
            }
        )
        return payload
    hour, minute = _start_time(habit)
    start_dt = datetime(start_day.year, start_day.month, start_day.day, hour, minute)
    end_dt = start_dt + timedelta(minutes=duration)
    payload.update(
        {
            "start": {"dateTime": start_dt.isoformat(), "timeZone": timezone_name},
            "end": {"dateTime": end_dt.isoformat(), "timeZone": timezone_name},
            "description": f"📋 Scheduled habit\n⏱️ Duration: {duration} min",
        }
    )
    return payload


def is_habit_event(event: dict) -> bool:
    shared = (event.get("extendedProperties") or {}).get("shared") or {}
    return shared.get("source") == HABIT_EVENT_SOURCE


def event_habit_id(event: dict) -> str | None:
    shared = (event.get("extendedProperties") or {}).get("shared") or {}
    return shared.get("habitId")


class GoogleCalendarClient:
    """Recurring habit events on one Google calendar."""

    def __init__(
        self,
        access_token: str,
        calendar_id: str = "primary",
        timezone_name: str = "America/Argentina/Buenos_Aires",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._access_token = access_token
        self._calendar_id = calendar_id
        self._timezone_name = timezone_name
        self._transport = transport

    @classmethod
    def from_settings(cls, access_token: str, settings: TrackerSettings, transport=None) -> "GoogleCalendarClient":
        return cls(
            access_token,
            calendar_id=settings.calendar_id,
            timezone_name=settings.timezone,
            transport=transport,
        )

    def _headers(self) -> dict:
        if not self._access_token:
            raise CalendarError("Google Calendar token unavailable")
        return {"Authorization": f"Bearer {self._access_token}", "Content-Type": "application/json"}

    def _events_endpoint(self, event_id: str | None = None) -> str:
        endpoint = f"{CALENDAR_API}/calendars/{quote(self._calendar_id, safe='')}/events"
        if event_id:
            endpoint += f"/{quote(event_id, safe='')}"
        return endpoint

    def _today(self) -> date:
        return datetime.now(ZoneInfo(self._timezone_name)).date()

    async def create_recurring_event(self, habit: Habit) -> str:
        payload = build_habit_event_payload(habit, self._today(), self._timezone_name)
        if payload is None:
            raise CalendarError(f"Habit {habit.id} has no recurrence days")
        async with httpx.AsyncClient(timeout=20, transport=self._transport) as client:
            response = await client.post(self._events_endpoint(), headers=self._headers(), json=payload)
        if response.status_code >= 400:
            raise CalendarError(f"Google create_event failed ({response.status_code}): {_error_message(response)}")
        event_id = response.json().get("id")
        if not event_id:
            raise CalendarError("Google create_event returned no event id")
        logger.info("Recurring habit event created: %s", event_id)
        return event_id

    async def update_event(self, event_id: str, habit: Habit) -> dict:
        payload = build_habit_event_payload(habit, self._today(), self._timezone_name)
        if payload is None:
            raise CalendarError(f"Habit {habit.id} has no recurrence days")
        async with httpx.AsyncClient(timeout=20, transport=self._transport) as client:
            response = await client.put(self._events_endpoint(event_id), headers=self._headers(), json=payload)
        if response.status_code >= 400:
            raise CalendarError(f"Google update_event failed ({response.status_code}): {_error_message(response)}")
        return response.json()

    async def delete_event(self, event_id: str) -> None:
        async with httpx.AsyncClient(timeout=20, transport=self._transport) as client:
            response = await client.delete(self._events_endpoint(event_id), headers=self._headers())
        if response.status_code not in {200, 204, 410}:
            raise CalendarError(f"Google delete_event failed ({response.status_code}): {_error_message(response)}")
