"""Tests for tracker/ledger.py: toggling, rollback, range merges and daily logs."""

from datetime import timedelta

from conftest import OWNER, TODAY, run
from tracker.constants import HABIT_TOGGLED_SIGNAL

TOGGLE_FIELDS = ("habits", "today_completions", "range_completions", "historical_completions")


def completion_keys(engine):
    state = engine.state
    return {
        "today": sorted(c.habit_id for c in state.today_completions),
        "range": sorted(c.key for c in state.range_completions),
        "history": sorted(c.key for c in state.historical_completions),
    }


def test_simple_toggle_updates_streak_and_rows(store, make_engine):
    habit = store.seed_habit("Meditate")
    engine = make_engine()

    assert run(engine.toggle_habit(habit["id"])) is True
    assert engine.state.habit(habit["id"]).current_streak == 1
    assert len(store.completions) == 1
    assert len(engine.state.today_completions) == 1

    assert run(engine.toggle_habit(habit["id"])) is False
    assert engine.state.habit(habit["id"]).current_streak == 0
    assert engine.state.habit(habit["id"]).longest_streak == 1
    assert store.completions == {}
    assert engine.state.today_completions == ()


def test_double_toggle_restores_original_state(store, make_engine):
    habit = store.seed_habit("Read", created=TODAY - timedelta(days=10))
    store.seed_completion(habit["id"], TODAY - timedelta(days=1))
    store._recompute(habit["id"])
    engine = make_engine()
    before_streak = engine.state.habit(habit["id"]).current_streak
    before_keys = completion_keys(engine)

    run(engine.toggle_habit(habit["id"]))
    run(engine.toggle_habit(habit["id"]))

    assert completion_keys(engine) == before_keys
    assert engine.state.habit(habit["id"]).current_streak == before_streak


def test_toggle_settles_provisional_record(store, make_engine):
    habit = store.seed_habit()
    engine = make_engine()
    run(engine.toggle_habit(habit["id"]))
    (record,) = engine.state.today_completions
    assert not record.is_provisional
    assert record.id == next(iter(store.completions.values()))["id"]
    assert record.habit.name == "Meditate"
    assert engine.state.historical_completions[0].id == record.id


def test_failed_write_rolls_back_everything(store, make_engine):
    habit = store.seed_habit(created=TODAY - timedelta(days=5))
    store.seed_completion(habit["id"], TODAY - timedelta(days=2))
    engine = make_engine()
    run(engine.fetch_range(TODAY - timedelta(days=7), TODAY))
    before = engine.state.snapshot(*TOGGLE_FIELDS)

    store.fail_writes = True
    assert run(engine.toggle_habit(habit["id"])) is None
    assert run(engine.toggle_habit(habit["id"], TODAY - timedelta(days=2))) is None

    assert engine.state.snapshot(*TOGGLE_FIELDS) == before
    notification = engine.notifier.current_notification()
    assert notification.severity == "error"
    assert "reverted" in notification.message


def test_failed_write_emits_no_change_signal(store, make_engine):
    habit = store.seed_habit()
    engine = make_engine()
    seen = []
    engine.notifier.subscribe(HABIT_TOGGLED_SIGNAL, lambda **payload: seen.append(payload))

    store.fail_writes = True
    run(engine.toggle_habit(habit["id"]))
    assert seen == []

    store.fail_writes = False
    run(engine.toggle_habit(habit["id"]))
    assert seen == [{"habit_id": habit["id"], "completed": True, "date": TODAY}]


def test_at_most_one_completion_per_habit_and_day(store, make_engine):
    habit = store.seed_habit(created=TODAY - timedelta(days=3))
    engine = make_engine()
    earlier = TODAY - timedelta(days=1)
    for target in [TODAY, earlier, TODAY, earlier, earlier, TODAY, TODAY]:
        run(engine.toggle_habit(habit["id"], target))
        for collection in (engine.state.range_completions, engine.state.historical_completions):
            keys = [c.key for c in collection]
            assert len(keys) == len(set(keys))
    assert len(store.completions) == 1
    assert engine.ledger.is_completed(habit["id"], TODAY) is False
    assert engine.ledger.is_completed(habit["id"], earlier) is True


def test_toggle_unknown_habit_or_without_owner_is_a_noop(store, make_engine):
    engine = make_engine(load=False)
    assert run(engine.toggle_habit("missing")) is None
    engine = make_engine()
    assert run(engine.toggle_habit("missing")) is None
    assert store.writes == []


def test_toggle_creates_daily_log_lazily(store, make_engine):
    habit = store.seed_habit(created=TODAY - timedelta(days=3))
    engine = make_engine()
    past = TODAY - timedelta(days=2)
    assert (OWNER, past.isoformat()) not in store.logs

    run(engine.toggle_habit(habit["id"], past))

    log = store.logs[(OWNER, past.isoformat())]
    assert store.completions[(habit["id"], past.isoformat())]["daily_log_id"] == log["id"]
    assert any(item.date == past for item in engine.state.historical_logs)


def test_fetch_range_merges_and_keeps_outside_facts(store, make_engine):
    habit = store.seed_habit(created=TODAY - timedelta(days=30))
    old = TODAY - timedelta(days=20)
    recent = TODAY - timedelta(days=3)
    store.seed_completion(habit["id"], old)
    store.seed_completion(habit["id"], recent)
    engine = make_engine()

    run(engine.fetch_range(old - timedelta(days=1), old + timedelta(days=1)))
    run(engine.fetch_range(recent - timedelta(days=1), recent + timedelta(days=1)))
    run(engine.fetch_range(old, TODAY))

    keys = [c.key for c in engine.state.range_completions]
    assert sorted(keys) == [(old, habit["id"]), (recent, habit["id"])]


def test_fetch_range_is_skipped_while_in_flight(store, make_engine):
    habit = store.seed_habit()
    store.seed_completion(habit["id"], TODAY)
    engine = make_engine()
    engine.state.is_range_loading = True
    run(engine.fetch_range(TODAY, TODAY))
    assert engine.state.range_completions == ()


def test_fetch_range_ignores_other_owners(store, make_engine):
    habit = store.seed_habit()
    store.seed_completion(habit["id"], TODAY)
    engine = make_engine()
    run(engine.ledger.fetch_range("someone-else", TODAY, TODAY))
    assert engine.state.range_completions == ()
    assert engine.state.is_range_loading is False


def test_fetch_range_failure_clears_busy_flag(store, make_engine):
    store.seed_habit()
    engine = make_engine()
    store.fail_reads = True
    run(engine.fetch_range(TODAY - timedelta(days=7), TODAY))
    assert engine.state.is_range_loading is False


def test_save_pulse_validates_and_upserts(store, make_engine):
    engine = make_engine()
    assert run(engine.save_pulse(mood_score=9)) is None
    assert run(engine.save_pulse(energy_score=0)) is None
    assert store.writes == []

    log = run(engine.save_pulse(mood_score=4, energy_score=8, tags=["gym"]))
    assert log.mood_score == 4
    assert log.energy_score == 8
    assert log.tags == ("gym",)
    assert engine.state.daily_log == log
    assert engine.state.historical_logs[-1] == log


def test_save_pulse_failure_notifies(store, make_engine):
    engine = make_engine()
    store.fail_writes = True
    assert run(engine.save_pulse(mood_score=3)) is None
    assert engine.notifier.current_notification().severity == "error"
