"""Time window classification for exam rooms.

Every decision about whether a room is open is made here, on the server.
Datetimes are naive UTC throughout; authored local date/time strings are
converted once, on the way in, by :func:`parse_schedule`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional
from zoneinfo import ZoneInfo


class WindowState(str, Enum):
    NOT_STARTED = "notStarted"
    ACTIVE = "active"
    IN_GRACE = "inGrace"
    ENDED = "ended"


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, matching what the database stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_schedule(date_str: str, time_str: str, tz_name: str) -> datetime:
    """Turn an authored ``YYYY-MM-DD`` / ``HH:MM`` pair in ``tz_name`` into naive UTC."""
    local = datetime.strptime(f"{date_str} {time_str}", "%Y-%m-%d %H:%M")
    aware = local.replace(tzinfo=ZoneInfo(tz_name))
    return aware.astimezone(timezone.utc).replace(tzinfo=None)


def to_local(value: datetime, tz_name: str) -> datetime:
    return value.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz_name))


@dataclass(frozen=True)
class TimeWindow:
    """Where "now" falls relative to a room's schedule."""

    classification: WindowState
    starts_at: datetime
    ends_at: datetime
    grace_ends_at: datetime
    # Only for NOT_STARTED
    days: Optional[int] = None
    hours: Optional[int] = None
    minutes: Optional[int] = None
    # Only for IN_GRACE
    grace_minutes_left: Optional[int] = None

    @property
    def accepts_submissions(self) -> bool:
        return self.classification in (WindowState.ACTIVE, WindowState.IN_GRACE)

    def message(self, tz_name: str = "UTC") -> str:
        end_local = to_local(self.ends_at, tz_name).strftime("%H:%M")
        if self.classification == WindowState.NOT_STARTED:
            start_local = to_local(self.starts_at, tz_name).strftime("%Y-%m-%d %H:%M")
            return (
                f"Test has not started yet. It starts at {start_local} "
                f"(in {self.days}d {self.hours}h {self.minutes}m)."
            )
        if self.classification == WindowState.IN_GRACE:
            return (
                f"You are in grace period. The test officially ended at {end_local}. "
                f"You have {self.grace_minutes_left} minutes left to submit."
            )
        if self.classification == WindowState.ENDED:
            grace_local = to_local(self.grace_ends_at, tz_name).strftime("%H:%M")
            return f"Test has ended at {end_local}; submissions closed at {grace_local}."
        return f"Test is in progress until {end_local}."

    def to_dict(self, tz_name: str = "UTC") -> dict[str, Any]:
        """Wire representation used by the verify-room and submit-test endpoints."""
        data: dict[str, Any] = {
            "classification": self.classification.value,
            "startsAt": self.starts_at.isoformat(),
            "endsAt": self.ends_at.isoformat(),
            "graceEndsAt": self.grace_ends_at.isoformat(),
            "message": self.message(tz_name),
        }
        if self.classification == WindowState.NOT_STARTED:
            data.update(days=self.days, hours=self.hours, minutes=self.minutes)
        elif self.classification == WindowState.IN_GRACE:
            data["graceMinutesLeft"] = self.grace_minutes_left
        return data


def classify_window(
    starts_at: datetime,
    duration_minutes: int,
    grace_minutes: int,
    now: datetime,
) -> TimeWindow:
    """Classify ``now`` against ``[start, end]`` and ``(end, end + grace]``.

    Both bounds of the active window are inclusive; the grace window excludes
    its start (which belongs to the active window) and includes its end.
    """
    ends_at = starts_at + timedelta(minutes=duration_minutes)
    grace_ends_at = ends_at + timedelta(minutes=grace_minutes)
    bounds = {"starts_at": starts_at, "ends_at": ends_at, "grace_ends_at": grace_ends_at}

    if now < starts_at:
        total_minutes = int((starts_at - now).total_seconds() // 60)
        return TimeWindow(
            WindowState.NOT_STARTED,
            days=total_minutes // (24 * 60),
            hours=(total_minutes % (24 * 60)) // 60,
            minutes=total_minutes % 60,
            **bounds,
        )
    if now <= ends_at:
        return TimeWindow(WindowState.ACTIVE, **bounds)
    if now <= grace_ends_at:
        left = int((grace_ends_at - now).total_seconds() // 60)
        return TimeWindow(WindowState.IN_GRACE, grace_minutes_left=left, **bounds)
    return TimeWindow(WindowState.ENDED, **bounds)
