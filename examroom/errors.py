"""Error taxonomy shared by the server and the candidate client."""

from typing import Any, Optional


class ExamError(Exception):
    """Base class for every domain error raised by examroom."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(ExamError):
    """Missing or malformed identity or answer fields. Never retried."""


class NetworkError(ExamError):
    """Transport failure, timeout or server fault. Retryable."""


class SubmissionFailedError(NetworkError):
    """All automatic submission attempts failed; the candidate may retry manually."""

    def __init__(self, message: str, attempts: int, details: Optional[dict[str, Any]] = None):
        super().__init__(message, details)
        self.attempts = attempts


class ConflictError(ExamError):
    """The registration number already has a submission for this room."""


class TimingError(ExamError):
    """The room is unknown, not yet open, or past its grace period."""

    @property
    def classification(self) -> Optional[str]:
        return self.details.get("classification")


class ExamUnavailableError(ExamError):
    """The exam definition could not be fetched; no session can exist."""


class TransitionError(ExamError):
    """An operation was attempted in a stage that does not allow it."""
