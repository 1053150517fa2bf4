"""Client side of the enrollment progress endpoints.

The playback and assessment engines only depend on `ProgressGateway`;
`HttpEnrollmentGateway` implements it over the REST API with httpx.
"""

from dataclasses import dataclass
from typing import Any, Protocol
from uuid import UUID

import httpx
import structlog

from learnmate.config.settings import Settings


logger = structlog.get_logger(__name__)


class GatewayError(Exception):
    """Raised when a progress API call fails."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


@dataclass(frozen=True)
class ProgressReport:
    """Watch progress sent to the server."""

    watched_seconds: int
    duration_seconds: int
    mark_if_threshold: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "watchedSeconds": self.watched_seconds,
            "durationSeconds": self.duration_seconds,
            "markIfThreshold": self.mark_if_threshold,
        }


@dataclass(frozen=True)
class WatchRecord:
    """Stored watch position of a lesson, used to resume playback."""

    watched_seconds: int = 0
    duration_seconds: int = 0

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "WatchRecord":
        return cls(
            watched_seconds=int(data.get("watchedSeconds") or 0),
            duration_seconds=int(data.get("durationSeconds") or 0),
        )


class ProgressGateway(Protocol):
    """Backend calls the engines make."""

    async def report_progress(
        self, course_id: UUID, lesson_id: UUID, report: ProgressReport
    ) -> None: ...

    async def mark_lesson_complete(self, course_id: UUID, lesson_id: UUID) -> None: ...


class HttpEnrollmentGateway:
    """`ProgressGateway` over the enrollment REST API.

    Authenticates with the learner's bearer access token.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._headers = {"Authorization": f"Bearer {access_token}"}

    @classmethod
    def from_settings(cls, settings: Settings, access_token: str) -> "HttpEnrollmentGateway":
        return cls(
            base_url=settings.api_base_url,
            access_token=access_token,
            timeout=settings.api_request_timeout,
        )

    async def __aenter__(self) -> "HttpEnrollmentGateway":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def report_progress(
        self, course_id: UUID, lesson_id: UUID, report: ProgressReport
    ) -> None:
        """PUT the watch position of a lesson."""
        await self._request(
            "PUT",
            f"/v1/enrollments/{course_id}/lessons/{lesson_id}/progress",
            json=report.to_payload(),
        )

    async def mark_lesson_complete(self, course_id: UUID, lesson_id: UUID) -> None:
        """PUT the completion of a lesson (idempotent server-side)."""
        await self._request(
            "PUT",
            f"/v1/enrollments/{course_id}/lessons/{lesson_id}/complete",
        )

    async def get_watch_records(self, course_id: UUID) -> dict[UUID, WatchRecord]:
        """Fetch the stored watch records of a course, keyed by lesson."""
        data = await self._request("GET", f"/v1/enrollments/{course_id}")
        return {
            UUID(item["lessonId"]): WatchRecord.from_payload(item)
            for item in data.get("lessonWatch", [])
        }

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(
                method, path, headers=self._headers, **kwargs
            )
        except httpx.TimeoutException as e:
            logger.warning("progress_api_timeout", method=method, path=path)
            raise GatewayError("Progress API timeout") from e
        except httpx.RequestError as e:
            logger.warning("progress_api_request_error", method=method, path=path, error=str(e))
            raise GatewayError(f"Progress API request error: {e}") from e

        if response.is_error:
            logger.warning(
                "progress_api_request_failed",
                method=method,
                path=path,
                status_code=response.status_code,
                response_text=response.text[:500],
            )
            raise GatewayError(
                f"Progress API error: {response.status_code}",
                status_code=response.status_code,
            )

        return response.json() if response.content else {}
