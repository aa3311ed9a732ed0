"""Integrity monitoring for the active stage of an exam session.

The embedding front end forwards raw browser signals (visibility, fullscreen,
clipboard, context menu, key presses) as :class:`IntegrityEvent` objects.
The monitor owns the only violation counter and the escalation policy:

* violations below the limit produce a warning stating how many remain;
* the violation that reaches the limit forces submission, once;
* a tab switch that reaches the limit defers escalation until the candidate
  comes back, then runs a fixed countdown before forcing submission;
* leaving fullscreen re-requests it and blocks the test content until the
  candidate is back in fullscreen.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Protocol
from uuid import uuid4

from examroom.config import settings

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    VISIBILITY_HIDDEN = "visibility_hidden"
    VISIBILITY_VISIBLE = "visibility_visible"
    FULLSCREEN_EXITED = "fullscreen_exited"
    FULLSCREEN_ENTERED = "fullscreen_entered"
    COPY = "copy"
    CUT = "cut"
    PASTE = "paste"
    CONTEXT_MENU = "context_menu"
    BLOCKED_KEY = "blocked_key"


# How much each kind of event adds to the violation counter
VIOLATION_WEIGHTS: dict[EventKind, int] = {
    EventKind.VISIBILITY_HIDDEN: 1,
    EventKind.VISIBILITY_VISIBLE: 0,
    EventKind.FULLSCREEN_EXITED: 1,
    EventKind.FULLSCREEN_ENTERED: 0,
    EventKind.COPY: 1,
    EventKind.CUT: 1,
    EventKind.PASTE: 1,
    EventKind.CONTEXT_MENU: 1,
    EventKind.BLOCKED_KEY: 1,
}

WARNING_TEXT: dict[EventKind, str] = {
    EventKind.VISIBILITY_HIDDEN: "Switching tabs/windows is not allowed",
    EventKind.FULLSCREEN_EXITED: "Leaving fullscreen is not allowed",
    EventKind.COPY: "Copy/Paste is not allowed",
    EventKind.CUT: "Copy/Paste is not allowed",
    EventKind.PASTE: "Copy/Paste is not allowed",
    EventKind.CONTEXT_MENU: "Right-click is disabled during the test",
    EventKind.BLOCKED_KEY: "Keyboard shortcuts are not allowed",
}


@dataclass(frozen=True)
class KeyPress:
    key: str
    ctrl: bool = False
    alt: bool = False
    shift: bool = False
    meta: bool = False


def classify_key(press: KeyPress) -> Optional[str]:
    """Name the blocked shortcut ``press`` belongs to, or None if it is allowed."""
    key = press.key
    upper = key.upper() if len(key) == 1 else key
    if key == "Tab" and (press.alt or press.meta):
        return "window_switch"
    if key == "F12":
        return "developer_tools"
    if press.ctrl and press.shift and upper in ("I", "J", "C"):
        return "developer_tools"
    if press.meta and press.alt and upper in ("I", "J", "C"):
        return "developer_tools"
    if press.ctrl and not press.shift and upper == "U":
        return "view_source"
    if key == "PrintScreen":
        return "print_screen"
    if (press.ctrl or press.meta) and upper == "P":
        return "print"
    if key == "Escape":
        return "escape"
    return None


@dataclass(frozen=True)
class IntegrityEvent:
    """One physical signal. Re-delivery with the same event_id is ignored."""

    kind: EventKind
    detail: Optional[str] = None
    event_id: str = field(default_factory=lambda: uuid4().hex)

    @classmethod
    def from_key(cls, press: KeyPress, event_id: Optional[str] = None) -> Optional["IntegrityEvent"]:
        reason = classify_key(press)
        if reason is None:
            return None
        if event_id is None:
            return cls(EventKind.BLOCKED_KEY, detail=reason)
        return cls(EventKind.BLOCKED_KEY, detail=reason, event_id=event_id)


class IntegrityView(Protocol):
    def notify(self, level: str, message: str) -> None: ...

    def request_fullscreen(self) -> None: ...

    def set_overlay(self, visible: bool) -> None: ...


class IntegrityMonitor:
    SEEN_EVENT_MEMORY = 512

    def __init__(
        self,
        view: IntegrityView,
        on_escalate: Callable[[], Any],
        *,
        limit: int = settings.VIOLATION_LIMIT,
        return_countdown: int = settings.RETURN_COUNTDOWN_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._view = view
        self._on_escalate = on_escalate
        self._sleep = sleep
        self.limit = limit
        self.return_countdown = return_countdown

        self.armed = False
        self.violation_count = 0
        self.escalated = False
        self.overlay_visible = False
        self.awaiting_return = False
        self.countdown_task: Optional[asyncio.Task] = None

        self._seen_order: deque = deque()
        self._seen: set[str] = set()

    # -- subscription -------------------------------------------------------

    def subscribe(self) -> None:
        """Start counting violations. Called when the session becomes active."""
        self.armed = True
        logger.debug("Integrity monitor armed")

    def unsubscribe(self) -> None:
        """Stop counting. A running return countdown is not cancelled."""
        self.armed = False
        if self.overlay_visible:
            self.overlay_visible = False
            self._view.set_overlay(False)
        logger.debug("Integrity monitor disarmed")

    @property
    def warnings_remaining(self) -> int:
        return max(self.limit - self.violation_count, 0)

    @property
    def limit_reached(self) -> bool:
        return self.violation_count >= self.limit

    # -- dispatch -----------------------------------------------------------

    def handle(self, event: IntegrityEvent) -> bool:
        """Process one signal. Returns True if it was counted as a violation."""
        if not self.armed or self._already_seen(event.event_id):
            return False

        if event.kind == EventKind.FULLSCREEN_EXITED:
            self._show_overlay()
        elif event.kind == EventKind.FULLSCREEN_ENTERED:
            self._hide_overlay()
        elif event.kind == EventKind.VISIBILITY_VISIBLE:
            self._candidate_returned()

        weight = VIOLATION_WEIGHTS[event.kind]
        if not weight:
            return False
        self._record(event, weight)
        return True

    def handle_key(self, press: KeyPress, event_id: Optional[str] = None) -> bool:
        event = IntegrityEvent.from_key(press, event_id)
        if event is None:
            return False
        return self.handle(event)

    def _already_seen(self, event_id: str) -> bool:
        if event_id in self._seen:
            return True
        self._seen.add(event_id)
        self._seen_order.append(event_id)
        if len(self._seen_order) > self.SEEN_EVENT_MEMORY:
            self._seen.discard(self._seen_order.popleft())
        return False

    # -- policy -------------------------------------------------------------

    def _record(self, event: IntegrityEvent, weight: int) -> None:
        if self.escalated:
            return
        self.violation_count += weight
        logger.info(
            "Violation %d/%d: %s%s",
            self.violation_count, self.limit, event.kind.value,
            f" ({event.detail})" if event.detail else "",
        )

        remaining = self.limit - self.violation_count
        if remaining > 0:
            noun = "warning" if remaining == 1 else "warnings"
            self._view.notify("warning", f"Warning: {WARNING_TEXT[event.kind]}. {remaining} {noun} remaining.")
        elif event.kind == EventKind.VISIBILITY_HIDDEN and not self.awaiting_return:
            self.awaiting_return = True
            self._view.notify(
                "error",
                "Inappropriate behavior detected! Your test will be submitted when you return.",
            )
        else:
            self._escalate()

    def _candidate_returned(self) -> None:
        if not self.awaiting_return or self.countdown_task is not None or self.escalated:
            return
        self.countdown_task = asyncio.get_running_loop().create_task(self._return_countdown())

    async def _return_countdown(self) -> None:
        for seconds_left in range(self.return_countdown, 0, -1):
            if not self.armed:
                logger.debug("Return countdown abandoned; monitor disarmed")
                return
            self._view.notify("error", f"Test rules violated. Submitting in {seconds_left} seconds.")
            await self._sleep(1)
        self._escalate()

    def _escalate(self) -> None:
        if self.escalated:
            return
        self.escalated = True
        logger.warning("Violation limit reached (%d); forcing submission", self.violation_count)
        self._view.notify("error", "Test rules violated! Your responses are being submitted automatically.")
        self._on_escalate()

    # -- fullscreen ---------------------------------------------------------

    def _show_overlay(self) -> None:
        self._view.request_fullscreen()
        if not self.overlay_visible:
            self.overlay_visible = True
            self._view.set_overlay(True)

    def _hide_overlay(self) -> None:
        if self.overlay_visible:
            self.overlay_visible = False
            self._view.set_overlay(False)
