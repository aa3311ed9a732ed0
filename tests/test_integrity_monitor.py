"""Tests for the integrity monitor's counting, escalation and fullscreen handling."""

import asyncio

import pytest

from examroom.client.integrity import (
    EventKind,
    IntegrityEvent,
    IntegrityMonitor,
    KeyPress,
    classify_key,
)


class RecordingView:
    def __init__(self):
        self.notices = []
        self.fullscreen_requests = 0
        self.overlay = []

    def notify(self, level, message):
        self.notices.append((level, message))

    def request_fullscreen(self):
        self.fullscreen_requests += 1

    def set_overlay(self, visible):
        self.overlay.append(visible)


class FakeSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def view():
    return RecordingView()


@pytest.fixture
def escalations():
    return []


@pytest.fixture
def monitor(view, escalations):
    m = IntegrityMonitor(view, lambda: escalations.append(True), limit=3, return_countdown=5, sleep=FakeSleep())
    m.subscribe()
    return m


class TestThreshold:
    def test_warnings_count_down_then_third_escalates(self, monitor, view, escalations):
        monitor.handle(IntegrityEvent(EventKind.COPY))
        monitor.handle(IntegrityEvent(EventKind.PASTE))
        assert view.notices == [
            ("warning", "Warning: Copy/Paste is not allowed. 2 warnings remaining."),
            ("warning", "Warning: Copy/Paste is not allowed. 1 warning remaining."),
        ]
        assert escalations == []

        monitor.handle(IntegrityEvent(EventKind.CONTEXT_MENU))
        assert escalations == [True]
        assert monitor.violation_count == 3
        assert all(level != "warning" for level, _ in view.notices[2:])

    def test_escalation_fires_once(self, monitor, escalations):
        for _ in range(5):
            monitor.handle(IntegrityEvent(EventKind.CUT))
        assert escalations == [True]
        assert monitor.violation_count == 3

    def test_same_event_delivered_twice_counts_once(self, monitor):
        event = IntegrityEvent(EventKind.COPY)
        assert monitor.handle(event) is True
        assert monitor.handle(event) is False
        assert monitor.violation_count == 1

    def test_returning_events_do_not_count(self, monitor):
        monitor.handle(IntegrityEvent(EventKind.VISIBILITY_VISIBLE))
        monitor.handle(IntegrityEvent(EventKind.FULLSCREEN_ENTERED))
        assert monitor.violation_count == 0

    def test_nothing_counts_until_subscribed(self, view, escalations):
        m = IntegrityMonitor(view, lambda: escalations.append(True))
        assert m.handle(IntegrityEvent(EventKind.COPY)) is False
        assert m.violation_count == 0

    def test_nothing_counts_after_unsubscribe(self, monitor):
        monitor.unsubscribe()
        monitor.handle(IntegrityEvent(EventKind.COPY))
        assert monitor.violation_count == 0


class TestTabSwitchAtLimit:
    def test_escalation_waits_for_return_then_counts_down(self, monitor, view, escalations):
        async def scenario():
            monitor.handle(IntegrityEvent(EventKind.COPY))
            monitor.handle(IntegrityEvent(EventKind.COPY))
            monitor.handle(IntegrityEvent(EventKind.VISIBILITY_HIDDEN))
            assert escalations == []
            assert monitor.awaiting_return

            monitor.handle(IntegrityEvent(EventKind.VISIBILITY_VISIBLE))
            await monitor.countdown_task

        asyncio.run(scenario())
        assert escalations == [True]
        countdown = [m for _, m in view.notices if "Submitting in" in m]
        assert countdown[0].endswith("5 seconds.")
        assert len(countdown) == 5
        assert monitor._sleep.calls == [1] * 5

    def test_countdown_goes_quiet_once_disarmed(self, monitor, view, escalations):
        async def scenario():
            for _ in range(3):
                monitor.handle(IntegrityEvent(EventKind.VISIBILITY_HIDDEN))
            monitor.handle(IntegrityEvent(EventKind.VISIBILITY_VISIBLE))
            # The session was submitted another way before the countdown ran
            monitor.unsubscribe()
            await monitor.countdown_task

        asyncio.run(scenario())
        assert escalations == []
        assert not monitor.escalated
        assert not any("Submitting in" in m or "submitted automatically" in m for _, m in view.notices)


class TestFullscreen:
    def test_exit_requests_fullscreen_and_blocks(self, monitor, view):
        monitor.handle(IntegrityEvent(EventKind.FULLSCREEN_EXITED))
        assert view.fullscreen_requests == 1
        assert monitor.overlay_visible
        assert monitor.violation_count == 1

        monitor.handle(IntegrityEvent(EventKind.FULLSCREEN_ENTERED))
        assert not monitor.overlay_visible
        assert view.overlay == [True, False]

    def test_unsubscribe_hides_overlay(self, monitor, view):
        monitor.handle(IntegrityEvent(EventKind.FULLSCREEN_EXITED))
        monitor.unsubscribe()
        assert view.overlay == [True, False]


class TestBlockedKeys:
    @pytest.mark.parametrize(
        "press,reason",
        [
            (KeyPress("Tab", alt=True), "window_switch"),
            (KeyPress("F12"), "developer_tools"),
            (KeyPress("i", ctrl=True, shift=True), "developer_tools"),
            (KeyPress("J", meta=True, alt=True), "developer_tools"),
            (KeyPress("u", ctrl=True), "view_source"),
            (KeyPress("PrintScreen"), "print_screen"),
            (KeyPress("p", meta=True), "print"),
            (KeyPress("Escape"), "escape"),
        ],
    )
    def test_blocked(self, press, reason):
        assert classify_key(press) == reason

    @pytest.mark.parametrize("press", [KeyPress("a"), KeyPress("Tab"), KeyPress("c", ctrl=True), KeyPress("Enter")])
    def test_allowed(self, press):
        assert classify_key(press) is None

    def test_blocked_key_counts_as_violation(self, monitor):
        assert monitor.handle_key(KeyPress("F12")) is True
        assert monitor.handle_key(KeyPress("a")) is False
        assert monitor.violation_count == 1

    def test_key_event_id_is_deduplicated(self, monitor):
        monitor.handle_key(KeyPress("F12"), event_id="k1")
        monitor.handle_key(KeyPress("F12"), event_id="k1")
        assert monitor.violation_count == 1
