"""Tests for tracker/notifications.py: signals and expiring toasts."""

from tracker.notifications import NOTIFICATION_SIGNAL, Notifier


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_toast_expires_after_ttl():
    clock = FakeClock()
    notifier = Notifier(ttl_seconds=3, clock=clock)
    notifier.notify("Habit deleted", "success")
    assert notifier.current_notification().message == "Habit deleted"
    clock.now += 2.9
    assert notifier.current_notification() is not None
    clock.now += 0.2
    assert notifier.current_notification() is None


def test_unknown_severity_falls_back_to_info():
    notifier = Notifier()
    assert notifier.notify("hello", "shout").severity == "info"


def test_subscribe_emit_and_unsubscribe():
    notifier = Notifier()
    seen = []
    unsubscribe = notifier.subscribe("changed", lambda **payload: seen.append(payload))
    notifier.emit("changed", habit_id="h1")
    unsubscribe()
    notifier.emit("changed", habit_id="h2")
    assert seen == [{"habit_id": "h1"}]


def test_listener_errors_do_not_propagate():
    notifier = Notifier()
    seen = []

    def broken(**payload):
        raise RuntimeError("boom")

    notifier.subscribe(NOTIFICATION_SIGNAL, broken)
    notifier.subscribe(NOTIFICATION_SIGNAL, lambda **payload: seen.append(payload))
    notifier.notify("Sync failed", "error")
    assert seen == [{"message": "Sync failed", "severity": "error"}]
