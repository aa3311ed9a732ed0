"""Async HTTP client for the exam room API.

Every response is translated into the shared error taxonomy here so the
session controller and submission coordinator never look at status codes.
"""

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from examroom.config import settings
from examroom.errors import (
    ConflictError,
    ExamError,
    NetworkError,
    TimingError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _detail(body: Any, default: str) -> str:
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message")
        if isinstance(detail, str):
            return detail
    return default


class ExamApiClient:
    """Candidate-side calls: verify-room, check-registration, get-test, submit-test."""

    def __init__(
        self,
        base_url: str = settings.API_BASE_URL,
        *,
        timeout: float = settings.REQUEST_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "ExamApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out", method, url)
            raise NetworkError("The server did not respond in time.") from e
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise NetworkError("Unable to connect to server.") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        code = response.status_code
        if code >= 500:
            raise NetworkError(_detail(body, f"Server error ({code})"), {"status": code})
        if code == 409:
            raise ConflictError(_detail(body, "Already submitted."), body or {})
        if code == 403 and isinstance(body, dict) and "classification" in body:
            raise TimingError(_detail(body, "The room is closed."), body)
        if code == 404:
            raise TimingError(_detail(body, "Room does not exist."), {"classification": None})
        if code in (400, 422):
            raise ValidationError(_detail(body, "Invalid request."), {"status": code})
        if code >= 400:
            raise ExamError(_detail(body, f"Request failed ({code})"), {"status": code})
        if body is None:
            raise NetworkError("Malformed response from server.", {"status": code})
        return body

    async def verify_room(self, room: str) -> dict[str, Any]:
        return await self._request("GET", f"verify-room/{quote(room, safe='')}")

    async def check_registration(self, room: str, reg_no: str) -> bool:
        body = await self._request("POST", "check-registration", json={"room": room, "regNo": reg_no})
        return bool(body.get("alreadyExists"))

    async def get_test(self, room: str) -> dict[str, Any]:
        return await self._request("GET", f"get-test/{quote(room, safe='')}")

    async def submit_test(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "submit-test", json=payload)
