"""Tests for time window classification and schedule parsing."""

from datetime import datetime, timedelta

from examroom.timing import WindowState, classify_window, parse_schedule

T = datetime(2026, 3, 10, 4, 30)


def _classify(now):
    return classify_window(T, 60, 10, now)


class TestWindowBoundaries:
    """start=T, duration=60 minutes, grace=10 minutes."""

    def test_before_start_is_not_started(self):
        window = _classify(T - timedelta(seconds=1))
        assert window.classification == WindowState.NOT_STARTED
        assert not window.accepts_submissions

    def test_exact_start_is_active(self):
        assert _classify(T).classification == WindowState.ACTIVE

    def test_fifty_nine_minutes_in_is_active(self):
        assert _classify(T + timedelta(minutes=59)).classification == WindowState.ACTIVE

    def test_exact_end_is_still_active(self):
        assert _classify(T + timedelta(minutes=60)).classification == WindowState.ACTIVE

    def test_sixty_one_minutes_in_is_grace(self):
        window = _classify(T + timedelta(minutes=61))
        assert window.classification == WindowState.IN_GRACE
        assert window.grace_minutes_left == 9
        assert window.accepts_submissions

    def test_exact_grace_end_is_grace(self):
        window = _classify(T + timedelta(minutes=70))
        assert window.classification == WindowState.IN_GRACE
        assert window.grace_minutes_left == 0

    def test_seventy_one_minutes_and_a_second_is_ended(self):
        window = _classify(T + timedelta(minutes=71, seconds=1))
        assert window.classification == WindowState.ENDED
        assert not window.accepts_submissions

    def test_just_after_grace_end_is_ended(self):
        assert _classify(T + timedelta(minutes=70, seconds=1)).classification == WindowState.ENDED


class TestNotStartedBreakdown:
    def test_days_hours_minutes(self):
        window = _classify(T - timedelta(days=2, hours=3, minutes=4))
        assert (window.days, window.hours, window.minutes) == (2, 3, 4)

    def test_partial_minute_is_floored(self):
        window = _classify(T - timedelta(minutes=1, seconds=59))
        assert (window.days, window.hours, window.minutes) == (0, 0, 1)


class TestWireFormat:
    def test_not_started_carries_breakdown(self):
        data = _classify(T - timedelta(hours=1)).to_dict()
        assert data["classification"] == "notStarted"
        assert data["hours"] == 1
        assert "graceMinutesLeft" not in data

    def test_grace_message_mentions_end_and_minutes_left(self):
        data = _classify(T + timedelta(minutes=65)).to_dict("UTC")
        assert data["classification"] == "inGrace"
        assert data["graceMinutesLeft"] == 5
        assert "ended at 05:30" in data["message"]
        assert "5 minutes left" in data["message"]

    def test_ended_exposes_end_and_grace_end(self):
        data = _classify(T + timedelta(hours=3)).to_dict()
        assert data["endsAt"] == (T + timedelta(minutes=60)).isoformat()
        assert data["graceEndsAt"] == (T + timedelta(minutes=70)).isoformat()

    def test_message_uses_local_zone(self):
        message = _classify(T + timedelta(minutes=65)).message("Asia/Kolkata")
        # 05:30 UTC is 11:00 in India
        assert "ended at 11:00" in message


class TestParseSchedule:
    def test_local_time_is_converted_to_naive_utc(self):
        assert parse_schedule("2026-03-10", "10:00", "Asia/Kolkata") == datetime(2026, 3, 10, 4, 30)

    def test_utc_zone_is_identity(self):
        assert parse_schedule("2026-03-10", "10:00", "UTC") == datetime(2026, 3, 10, 10, 0)
