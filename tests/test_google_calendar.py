"""Tests for tracker/services/google_calendar.py: habit event bodies and API calls."""

import json
from datetime import date, datetime, timezone

import httpx
import pytest

from conftest import run
from tracker.models import Habit
from tracker.services.google_calendar import (
    CalendarError,
    GoogleCalendarClient,
    build_habit_event_payload,
    is_habit_event,
    next_valid_date,
    recurrence_rule,
)
from tracker.settings import TrackerSettings

TODAY = date(2024, 5, 15)  # Wednesday
TZ = "America/Argentina/Buenos_Aires"


def make_habit(**fields):
    base = dict(
        id="h1",
        owner_id="owner-1",
        name="Gym",
        category_id=1,
        created_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
        frequency=("mon", "fri"),
        icon="🏋️",
    )
    base.update(fields)
    return Habit(**base)


def test_recurrence_rule_and_next_date():
    assert recurrence_rule(("mon", "fri")) == "RRULE:FREQ=WEEKLY;BYDAY=MO,FR"
    assert recurrence_rule(()) is None
    assert next_valid_date(TODAY, ("mon", "fri")) == date(2024, 5, 17)
    assert next_valid_date(TODAY, ("wed",)) == TODAY


def test_flexible_anytime_habit_is_an_all_day_event():
    payload = build_habit_event_payload(make_habit(), TODAY, TZ)
    assert payload["summary"] == "🏋️ Gym"
    assert payload["start"] == {"date": "2024-05-17"}
    assert payload["end"] == {"date": "2024-05-18"}
    assert payload["transparency"] == "transparent"
    assert payload["colorId"] == "6"
    assert payload["extendedProperties"]["shared"] == {"habitId": "h1", "source": "app-habit-tracker"}
    assert is_habit_event(payload)


def test_fixed_time_habit_uses_its_time_and_duration():
    habit = make_habit(schedule_type="fixed", fixed_time="06:30", estimated_duration=45)
    payload = build_habit_event_payload(habit, TODAY, TZ)
    assert payload["start"] == {"dateTime": "2024-05-17T06:30:00", "timeZone": TZ}
    assert payload["end"] == {"dateTime": "2024-05-17T07:15:00", "timeZone": TZ}
    assert "transparency" not in payload


def test_block_habit_uses_block_default_hour():
    habit = make_habit(preferred_block="evening")
    payload = build_habit_event_payload(habit, TODAY, TZ)
    assert payload["start"]["dateTime"] == "2024-05-17T20:00:00"


def test_create_recurring_event_returns_id():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "evt-123"})

    client = GoogleCalendarClient("token", transport=httpx.MockTransport(handler))
    assert run(client.create_recurring_event(make_habit())) == "evt-123"
    assert seen[0].headers["Authorization"] == "Bearer token"
    assert seen[0].url.path == "/calendar/v3/calendars/primary/events"
    assert json.loads(seen[0].content)["recurrence"] == ["RRULE:FREQ=WEEKLY;BYDAY=MO,FR"]


def test_api_errors_raise_calendar_error():
    def handler(request):
        return httpx.Response(403, json={"error": {"message": "Forbidden"}})

    client = GoogleCalendarClient("token", transport=httpx.MockTransport(handler))
    with pytest.raises(CalendarError, match="Forbidden"):
        run(client.update_event("evt-1", make_habit()))


def test_delete_accepts_gone_events():
    def handler(request):
        assert request.method == "DELETE"
        return httpx.Response(410)

    client = GoogleCalendarClient("token", transport=httpx.MockTransport(handler))
    run(client.delete_event("evt-1"))


def test_missing_token_is_rejected():
    client = GoogleCalendarClient("")
    with pytest.raises(CalendarError):
        run(client.delete_event("evt-1"))


def test_habit_without_recurrence_days_gets_no_event():
    calls = []
    habit = make_habit(frequency=())
    assert build_habit_event_payload(habit, TODAY, TZ) is None

    client = GoogleCalendarClient("token", transport=httpx.MockTransport(lambda request: calls.append(request)))
    with pytest.raises(CalendarError):
        run(client.create_recurring_event(habit))
    with pytest.raises(CalendarError):
        run(client.update_event("evt-1", habit))
    assert calls == []


def test_client_from_settings_uses_calendar_and_timezone(monkeypatch):
    monkeypatch.setenv("CALENDAR_ID", "team")
    monkeypatch.setenv("TRACKER_TIMEZONE", "Europe/Madrid")
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "evt-9"})

    client = GoogleCalendarClient.from_settings(
        "token", TrackerSettings(), transport=httpx.MockTransport(handler)
    )
    habit = make_habit(schedule_type="fixed", fixed_time="07:30")
    assert run(client.create_recurring_event(habit)) == "evt-9"
    assert seen[0].url.path == "/calendar/v3/calendars/team/events"
    assert json.loads(seen[0].content)["start"]["timeZone"] == "Europe/Madrid"
