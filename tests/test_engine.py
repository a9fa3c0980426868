"""Tests for tracker/engine.py: loading, date selection and settings wiring."""

import logging
from datetime import timedelta

import pytest

from conftest import OWNER, TODAY, FakeStore, run
from tracker.engine import HabitEngine
from tracker.settings import TrackerSettings


def test_load_populates_state(store, make_engine):
    habit = store.seed_habit(created=TODAY - timedelta(days=5))
    store.seed_habit("Retired", active=False)
    store.seed_completion(habit["id"], TODAY)
    store.seed_completion(habit["id"], TODAY - timedelta(days=1))
    store.seed_log(TODAY - timedelta(days=3), energy_score=6)

    engine = make_engine()
    state = engine.state
    assert state.owner_id == OWNER
    assert [c.name for c in state.categories] == ["Health", "Mind"]
    assert [h.name for h in state.habits] == ["Meditate"]
    assert state.daily_log.date == TODAY
    assert [c.habit_id for c in state.today_completions] == [habit["id"]]
    assert len(state.historical_completions) == 2
    assert state.historical_completions[0].habit.name == "Meditate"
    assert [log.date for log in state.historical_logs] == sorted(log.date for log in state.historical_logs)
    assert state.is_loading is False


def test_load_failure_sets_error(store, make_engine):
    store.fail_reads = True
    engine = make_engine(load=False)
    assert run(engine.load(OWNER)) is False
    assert engine.state.error
    assert engine.notifier.current_notification().severity == "error"


def test_switching_owner_clears_previous_facts(store, make_engine):
    habit = store.seed_habit()
    store.seed_completion(habit["id"], TODAY)
    engine = make_engine()
    assert run(engine.load("owner-2"))
    assert engine.state.habits == ()
    assert engine.state.today_completions == ()
    assert engine.state.historical_completions == ()


def test_set_selected_date_loads_that_day(store, make_engine):
    habit = store.seed_habit(created=TODAY - timedelta(days=5))
    yesterday = TODAY - timedelta(days=1)
    store.seed_completion(habit["id"], yesterday)
    engine = make_engine()
    assert engine.state.today_completions == ()

    run(engine.set_selected_date(yesterday))
    assert engine.state.selected_date == yesterday
    assert [c.habit_id for c in engine.state.today_completions] == [habit["id"]]
    assert engine.ledger.is_completed(habit["id"], yesterday)

    assert run(engine.toggle_habit(habit["id"])) is False
    assert (habit["id"], yesterday.isoformat()) not in store.completions


def test_set_analysis_range_rejects_unknown_values(make_engine):
    engine = make_engine()
    with pytest.raises(ValueError):
        engine.set_analysis_range(45)
    engine.set_analysis_range(180)
    assert engine.state.analysis_range_days == 180


def test_from_settings_uses_configured_values():
    settings = TrackerSettings(
        API_BASE_URL="http://store.test",
        BACKEND_SESSION_SECRET="s3cret",
        TRACKER_TIMEZONE="UTC",
        ANALYSIS_RANGE_DAYS=45,
        NOTIFICATION_TTL_SECONDS=5,
    )
    engine = HabitEngine.from_settings(settings, store=FakeStore())
    assert engine.tz_name == "UTC"
    assert engine.state.analysis_range_days == 30
    assert engine.notifier.notify("hi").expires_at > 0
    assert logging.getLogger("httpx").level == logging.WARNING


def test_completions_between_reads_fetched_range(store, make_engine):
    habit = store.seed_habit(created=TODAY - timedelta(days=10))
    store.seed_completion(habit["id"], TODAY - timedelta(days=2))
    store.seed_completion(habit["id"], TODAY - timedelta(days=6))
    engine = make_engine()

    run(engine.fetch_range(TODAY - timedelta(days=7), TODAY))
    recent = engine.completions_between(TODAY - timedelta(days=3), TODAY)

    assert [c.target_date for c in recent] == [TODAY - timedelta(days=2)]


def test_dismiss_notification(store, make_engine):
    engine = make_engine()
    store.fail_writes = True
    habit = store.seed_habit()
    run(engine.load(OWNER))
    assert run(engine.toggle_habit(habit["id"])) is None
    assert engine.current_notification().severity == "error"

    engine.dismiss_notification()
    assert engine.current_notification() is None
