"""Shared test fixtures.

Engine tests run against `FakeTimers`, a manually advanced clock, and fake
players / fullscreen controllers. API tests use FastAPI's TestClient with
the services replaced through dependency overrides.
"""

import inspect
import os
from collections.abc import Iterator
from typing import Any
from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest
from cassandra.cluster import Session


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from fastapi.testclient import TestClient  # noqa: E402

from learnmate.auth.security import create_access_token  # noqa: E402
from learnmate.courses.dependencies import get_catalog_service  # noqa: E402
from learnmate.courses.service import CatalogService  # noqa: E402
from learnmate.enrollments.dependencies import get_enrollment_service  # noqa: E402
from learnmate.enrollments.service import EnrollmentService  # noqa: E402


# ==============================================================================
# Timers and Clocks
# ==============================================================================


class FakeHandle:
    def __init__(self, when: float, callback: Any, interval: float | None, seq: int) -> None:
        self.when = when
        self.callback = callback
        self.interval = interval
        self.seq = seq
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class FakeTimers:
    """`Timers` driven by `advance()` instead of the event loop."""

    def __init__(self) -> None:
        self.now = 0.0
        self._handles: list[FakeHandle] = []
        self._seq = 0

    def _add(self, delay: float, callback: Any, interval: float | None) -> FakeHandle:
        self._seq += 1
        handle = FakeHandle(self.now + delay, callback, interval, self._seq)
        self._handles.append(handle)
        return handle

    def call_later(self, delay: float, callback: Any) -> FakeHandle:
        return self._add(delay, callback, None)

    def call_every(self, interval: float, callback: Any) -> FakeHandle:
        return self._add(interval, callback, interval)

    @property
    def active(self) -> list[FakeHandle]:
        return [h for h in self._handles if not h.cancelled]

    async def advance(self, seconds: float) -> None:
        """Move the clock forward, running due callbacks in time order."""
        target = round(self.now + seconds, 6)
        while True:
            due = [h for h in self.active if round(h.when, 6) <= target]
            if not due:
                break
            handle = min(due, key=lambda h: (h.when, h.seq))
            self.now = handle.when
            if handle.interval is None:
                handle.cancel()
            else:
                handle.when += handle.interval
            result = handle.callback()
            if inspect.isawaitable(result):
                await result
        self.now = target


class ManualClock:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def timers() -> FakeTimers:
    return FakeTimers()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


# ==============================================================================
# Players and Fullscreen
# ==============================================================================


class FakePlayer:
    """Media player recording seeks."""

    def __init__(self, duration: float = 0.0, state: int = -1) -> None:
        self.current_time = 0.0
        self.duration = duration
        self.state = state
        self.seeks: list[float] = []
        self.destroyed = False

    def get_current_time(self) -> float:
        return self.current_time

    def get_duration(self) -> float:
        return self.duration

    def get_player_state(self) -> int:
        return self.state

    def seek_to(self, seconds: float) -> None:
        self.seeks.append(seconds)
        self.current_time = seconds

    def destroy(self) -> None:
        self.destroyed = True


class FakeFullscreen:
    """Fullscreen controller answering requests from a script.

    Requests succeed unless `results` holds queued answers.
    """

    def __init__(self, results: list[bool] | None = None) -> None:
        self.results = list(results or [])
        self.requests = 0
        self.exits = 0

    async def request(self) -> bool:
        self.requests += 1
        if self.results:
            return self.results.pop(0)
        return True

    async def exit(self) -> None:
        self.exits += 1


@pytest.fixture
def player() -> FakePlayer:
    return FakePlayer()


@pytest.fixture
def player_factory():
    return FakePlayer


@pytest.fixture
def fullscreen() -> FakeFullscreen:
    return FakeFullscreen()


@pytest.fixture
def gateway() -> AsyncMock:
    """Progress gateway with recorded calls."""
    mock = AsyncMock()
    mock.report_progress = AsyncMock(return_value=None)
    mock.mark_lesson_complete = AsyncMock(return_value=None)
    return mock


# ==============================================================================
# Cassandra / Services
# ==============================================================================


@pytest.fixture
def mock_session() -> Mock:
    """Mock Cassandra session (cassandra-asyncio-driver)."""
    session = Mock(spec=Session)
    session.prepare = Mock(return_value=Mock())
    session.aexecute = AsyncMock(return_value=Mock())
    return session


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


@pytest.fixture
def course_id() -> UUID:
    return uuid4()


# ==============================================================================
# API
# ==============================================================================


@pytest.fixture
def mock_enrollment_service() -> AsyncMock:
    return AsyncMock(spec=EnrollmentService)


@pytest.fixture
def mock_catalog_service() -> AsyncMock:
    return AsyncMock(spec=CatalogService)


@pytest.fixture
def client(
    mock_enrollment_service: AsyncMock, mock_catalog_service: AsyncMock
) -> Iterator[TestClient]:
    """TestClient with services replaced (lifespan is not run)."""
    from learnmate.main import app

    app.dependency_overrides[get_enrollment_service] = lambda: mock_enrollment_service
    app.dependency_overrides[get_catalog_service] = lambda: mock_catalog_service
    app.state.enrollment_service = mock_enrollment_service
    app.state.catalog_service = mock_catalog_service

    yield TestClient(app)

    app.dependency_overrides.clear()
    app.state.enrollment_service = None
    app.state.catalog_service = None


@pytest.fixture
def make_token():
    def _make(user_id: UUID, role: str = "user") -> str:
        return create_access_token(
            {"sub": str(user_id), "email": "learner@example.com", "role": role}
        )

    return _make


@pytest.fixture
def auth_headers(user_id: UUID, make_token) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}
