import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional

from examroom.config import settings
from examroom.errors import ConflictError, NetworkError, SubmissionFailedError
from examroom.identity import CandidateIdentity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionReceipt:
    """Server acknowledgement of a submission."""

    attempts: int
    score_breakdown: Optional[dict] = None
    # True when a retry hit the uniqueness constraint because an earlier,
    # unacknowledged attempt had already been stored
    already_recorded: bool = False


def build_payload(
    room: str,
    candidate: CandidateIdentity,
    question_count: int,
    answers: Mapping[int, Optional[str]],
    violation_flag: bool = False,
    violation_count: int = 0,
) -> dict[str, Any]:
    """Assemble the submit-test body with an explicit null for every unanswered index."""
    full = {str(i): answers.get(i) for i in range(question_count)}
    return {
        "room": room,
        "candidateIdentity": candidate.to_payload(),
        "answers": full,
        "violationFlag": violation_flag,
        "violationCount": violation_count,
    }


class SubmissionCoordinator:
    """Deliver one payload with a bounded number of fixed-delay retries.

    Only network-class failures are retried. Conflicts and timing rejections
    are final, except that a conflict seen after a failed attempt means the
    earlier attempt reached the database and is reported as success.
    """

    def __init__(
        self,
        api,
        *,
        max_attempts: int = settings.SUBMIT_MAX_ATTEMPTS,
        retry_delay: float = settings.SUBMIT_RETRY_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._api = api
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self._sleep = sleep
        # Survives across manual retries of the same session's payload
        self.had_failed_attempt = False

    async def submit(self, payload: dict[str, Any]) -> SubmissionReceipt:
        last_error: Optional[NetworkError] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                body = await self._api.submit_test(payload)
            except ConflictError:
                if self.had_failed_attempt:
                    logger.info("Attempt %d conflicted after a failed attempt; treating as stored", attempt)
                    return SubmissionReceipt(attempts=attempt, already_recorded=True)
                raise
            except NetworkError as e:
                last_error = e
                self.had_failed_attempt = True
                logger.warning("Submission attempt %d/%d failed: %s", attempt, self.max_attempts, e.message)
                if attempt < self.max_attempts:
                    await self._sleep(self.retry_delay)
                continue
            logger.info("Submission accepted on attempt %d", attempt)
            return SubmissionReceipt(attempts=attempt, score_breakdown=body.get("scoreBreakdown"))

        raise SubmissionFailedError(
            "Your test could not be submitted. Check your connection and try again.",
            attempts=self.max_attempts,
        ) from last_error
