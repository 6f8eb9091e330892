"""Tests for transient notifications."""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from careease.core.notifications import Notifier


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_notifications_expire_after_ttl():
    clock = FakeClock()
    notifier = Notifier(ttl=4.0, timer=clock)

    notifier.success("Saved")
    clock.now = 2.0
    notifier.error("Failed to send message")

    assert [n.message for n in notifier.active()] == ["Saved", "Failed to send message"]

    clock.now = 4.5
    assert [n.message for n in notifier.active()] == ["Failed to send message"]

    clock.now = 10.0
    assert notifier.active() == []
    assert len(notifier.history) == 2


def test_listeners_receive_each_notification():
    notifier = Notifier()
    seen = []
    unsubscribe = notifier.subscribe(seen.append)

    notifier.info("one")
    unsubscribe()
    notifier.info("two")

    assert [(n.level, n.message) for n in seen] == [("info", "one")]


def test_failing_listener_does_not_block_others():
    notifier = Notifier()
    seen = []

    def broken(note):
        raise RuntimeError("listener bug")

    notifier.subscribe(broken)
    notifier.subscribe(seen.append)

    notifier.warning("careful")

    assert [n.message for n in seen] == ["careful"]


def test_dismiss_removes_active_notification():
    notifier = Notifier()
    note = notifier.error("boom")

    assert notifier.dismiss(note.id) is note
    assert notifier.active() == []
    assert notifier.dismiss(note.id) is None


def test_maxsize_bounds_active_notifications():
    notifier = Notifier(maxsize=3)
    for i in range(5):
        notifier.info(str(i))

    assert len(notifier.active()) == 3
