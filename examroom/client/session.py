"""Candidate session state machine.

Registration -> Instructions -> Active -> Submitting -> Completed, with
Rejected reachable from any non-terminal stage. The stage is a single enum
value; the violation counter and remaining seconds live in the integrity
monitor and countdown timer and only feed the transitions.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Protocol

from examroom.client.integrity import IntegrityEvent, IntegrityMonitor, KeyPress
from examroom.client.submission import SubmissionCoordinator, SubmissionReceipt, build_payload
from examroom.client.timer import CountdownTimer
from examroom.config import settings
from examroom.errors import (
    ConflictError,
    ExamError,
    ExamUnavailableError,
    SubmissionFailedError,
    TimingError,
    TransitionError,
    ValidationError,
)
from examroom.identity import CandidateIdentity

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    REGISTRATION = "registration"
    INSTRUCTIONS = "instructions"
    ACTIVE = "active"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    REJECTED = "rejected"


TERMINAL_STAGES = frozenset({Stage.COMPLETED, Stage.REJECTED})

# verify-room classifications that keep the room open for entry
OPEN_CLASSIFICATIONS = frozenset({"active", "inGrace"})


class SubmitReason(str, Enum):
    CANDIDATE = "candidate"
    TIMEOUT = "timeout"
    VIOLATION = "violation"
    PAGE_EXIT = "page_exit"


FORCED_BY_MISCONDUCT = frozenset({SubmitReason.VIOLATION, SubmitReason.PAGE_EXIT})


class SessionView(Protocol):
    """UI side effects the session needs from whatever renders it."""

    def notify(self, level: str, message: str) -> None: ...

    def request_fullscreen(self) -> None: ...

    def exit_fullscreen(self) -> None: ...

    def set_overlay(self, visible: bool) -> None: ...

    def leave(self, message: str) -> None: ...


class SessionController:
    def __init__(
        self,
        room: str,
        api,
        view: SessionView,
        *,
        coordinator: Optional[SubmissionCoordinator] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        violation_limit: int = settings.VIOLATION_LIMIT,
        return_countdown: int = settings.RETURN_COUNTDOWN_SECONDS,
    ):
        self.room = room
        self._api = api
        self._view = view

        self.stage = Stage.REGISTRATION
        self.exam: Optional[dict[str, Any]] = None
        self.candidate: Optional[CandidateIdentity] = None
        self.answers: dict[int, str] = {}
        self.review: dict[int, bool] = {}

        self.timer = CountdownTimer(lambda: self.request_submit(SubmitReason.TIMEOUT), sleep=sleep)
        self.monitor = IntegrityMonitor(
            view,
            lambda: self.request_submit(SubmitReason.VIOLATION),
            limit=violation_limit,
            return_countdown=return_countdown,
            sleep=sleep,
        )
        self.coordinator = coordinator or SubmissionCoordinator(api, sleep=sleep)

        self.submit_reason: Optional[SubmitReason] = None
        self.receipt: Optional[SubmissionReceipt] = None
        self.rejection: Optional[str] = None
        self.last_error: Optional[ExamError] = None

        self._submit_in_flight = False
        self._submission_task: Optional[asyncio.Task] = None
        self._payload: Optional[dict[str, Any]] = None
        self._registration_attempt = 0

    # -- read-only views ----------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.stage in TERMINAL_STAGES

    @property
    def violation_count(self) -> int:
        return self.monitor.violation_count

    @property
    def remaining_seconds(self) -> Optional[int]:
        return self.timer.remaining

    @property
    def questions(self) -> list[dict[str, Any]]:
        return self.exam["questions"] if self.exam else []

    @property
    def submission_task(self) -> Optional[asyncio.Task]:
        return self._submission_task

    def _require(self, *stages: Stage) -> None:
        if self.stage not in stages:
            allowed = ", ".join(s.value for s in stages)
            raise TransitionError(f"Not allowed while {self.stage.value} (needs {allowed})")

    def _move(self, stage: Stage) -> None:
        logger.info("Room %s: %s -> %s", self.room, self.stage.value, stage.value)
        self.stage = stage

    def _reject(self, message: str) -> None:
        if self.is_terminal:
            return
        self.timer.stop()
        self.monitor.unsubscribe()
        self.rejection = message
        self._move(Stage.REJECTED)
        self._view.notify("error", message)

    # -- entry --------------------------------------------------------------

    async def load(self) -> None:
        """Verify the room window, then fetch the exam definition."""
        self._require(Stage.REGISTRATION)
        try:
            window = await self._api.verify_room(self.room)
        except TimingError as e:
            self._reject(e.message)
            return

        if window.get("classification") not in OPEN_CLASSIFICATIONS:
            self._reject(window.get("message") or "The test room is closed.")
            return
        if window.get("classification") == "inGrace":
            self._view.notify("warning", window.get("message", "You are in the grace period."))

        try:
            self.exam = await self._api.get_test(self.room)
        except ExamError as e:
            logger.error("Could not fetch exam for room %s: %s", self.room, e.message)
            self._view.leave("Unable to load the test.")
            raise ExamUnavailableError("Unable to load the test.") from e

    async def register(self, name: str, branch: str, reg_no: str) -> bool:
        """Check identity and registration; returns True on moving to Instructions.

        A check that completes after the session moved on, or after a newer
        registration attempt started, is discarded without touching state.
        """
        self._require(Stage.REGISTRATION)
        if self.exam is None:
            raise TransitionError("The test has not been loaded yet")
        candidate = CandidateIdentity(name, branch, reg_no).cleaned()

        self._registration_attempt += 1
        attempt = self._registration_attempt
        error: Optional[ExamError] = None
        exists = False
        try:
            exists = await self._api.check_registration(self.room, candidate.reg_no)
        except ExamError as e:
            error = e

        if attempt != self._registration_attempt or self.stage != Stage.REGISTRATION:
            logger.info("Discarding stale registration check for %s", candidate.reg_no)
            return False
        if isinstance(error, (TimingError, ConflictError)):
            self._reject(error.message)
            return False
        if error is not None:
            raise error
        if exists:
            self._reject("This registration number has already submitted the test.")
            return False

        self.candidate = candidate
        self._move(Stage.INSTRUCTIONS)
        return True

    def start(self, *, autorun: bool = True) -> None:
        """Begin the test: fullscreen, countdown from the full duration, monitoring.

        With ``autorun`` the countdown ticks on the running event loop;
        otherwise the caller drives ``timer.tick()``.
        """
        self._require(Stage.INSTRUCTIONS)
        self._move(Stage.ACTIVE)
        self._view.request_fullscreen()
        # Armed first: a zero-length countdown submits at once and disarms it
        self.monitor.subscribe()
        self.timer.start(int(self.exam["durationMinutes"]) * 60)
        if autorun and self.stage == Stage.ACTIVE:
            self.timer.launch()

    # -- answering ----------------------------------------------------------

    def _check_index(self, index: int) -> dict[str, Any]:
        if not 0 <= index < len(self.questions):
            raise ValidationError(f"Question {index + 1} does not exist")
        return self.questions[index]

    def answer(self, index: int, value: Optional[str]) -> None:
        self._require(Stage.ACTIVE)
        question = self._check_index(index)
        if value is None:
            self.answers.pop(index, None)
            return
        if question["type"] == "objective" and value not in question.get("options", []):
            raise ValidationError(f"{value!r} is not an option of question {index + 1}")
        self.answers[index] = value

    def clear_answer(self, index: int) -> None:
        self.answer(index, None)

    def toggle_review(self, index: int) -> bool:
        self._require(Stage.ACTIVE)
        self._check_index(index)
        self.review[index] = not self.review.get(index, False)
        return self.review[index]

    # -- integrity signals --------------------------------------------------

    def handle_event(self, event: IntegrityEvent) -> bool:
        return self.monitor.handle(event)

    def handle_key(self, press: KeyPress, event_id: Optional[str] = None) -> bool:
        return self.monitor.handle_key(press, event_id)

    # -- submission ---------------------------------------------------------

    def confirm_submit(self) -> Optional[asyncio.Task]:
        return self.request_submit(SubmitReason.CANDIDATE)

    def page_exit(self) -> Optional[asyncio.Task]:
        return self.request_submit(SubmitReason.PAGE_EXIT)

    def request_submit(self, reason: SubmitReason) -> Optional[asyncio.Task]:
        """Enter Submitting once; every later trigger is a no-op returning None.

        The in-flight flag is set before anything is awaited, so triggers
        arriving in the same loop iteration cannot start a second submission.
        """
        if self._submit_in_flight or self.stage != Stage.ACTIVE:
            logger.debug("Ignoring %s submit trigger in stage %s", reason.value, self.stage.value)
            return None
        self._submit_in_flight = True
        self.submit_reason = reason
        self._move(Stage.SUBMITTING)
        self.timer.stop()
        self.monitor.unsubscribe()

        # Answers are frozen here; retries resend exactly this payload
        self._payload = build_payload(
            self.room,
            self.candidate,
            len(self.questions),
            self.answers,
            violation_flag=reason in FORCED_BY_MISCONDUCT or self.monitor.limit_reached,
            violation_count=self.monitor.violation_count,
        )
        self._submission_task = asyncio.get_running_loop().create_task(self._deliver())
        return self._submission_task

    async def _deliver(self) -> Optional[SubmissionReceipt]:
        try:
            receipt = await self.coordinator.submit(self._payload)
        except (ConflictError, TimingError) as e:
            self._reject(e.message)
            return None
        except SubmissionFailedError as e:
            self.last_error = e
            self._view.notify("error", e.message)
            return None
        except ExamError as e:
            logger.error("Submission for room %s failed: %s", self.room, e.message)
            self.last_error = e
            self._view.notify("error", e.message)
            return None

        if self.stage != Stage.SUBMITTING:
            return receipt
        self.receipt = receipt
        self.last_error = None
        self._move(Stage.COMPLETED)
        self._view.exit_fullscreen()
        self._view.notify("success", "Your test has been submitted successfully!")
        return receipt

    def retry_submission(self) -> Optional[asyncio.Task]:
        """Manual retry after automatic attempts ran out; stays in Submitting."""
        if self.stage != Stage.SUBMITTING or self.last_error is None:
            return None
        if self._submission_task is not None and not self._submission_task.done():
            return None
        self.last_error = None
        self._submission_task = asyncio.get_running_loop().create_task(self._deliver())
        return self._submission_task
