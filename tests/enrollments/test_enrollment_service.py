"""Tests for the enrollment service.

Cassandra is replaced by a fake that answers SELECTs from in-memory rows and
records every write.
"""

from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest

from learnmate.courses.models import ContentStatus, Course, LessonOutline
from learnmate.courses.service import CatalogService
from learnmate.enrollments.models import EnrollmentStatus
from learnmate.enrollments.service import (
    AlreadyEnrolledError,
    CourseNotCompletedError,
    CourseNotFoundError,
    EnrollmentService,
    LessonNotFoundError,
    NotEnrolledError,
    calculate_progress_percentage,
)


class Rows(list):
    def one(self):
        return self[0] if self else None


class FakeCassandra:
    """Routes statements by table name."""

    def __init__(self) -> None:
        self.enrollment = None
        self.by_user: list = []
        self.completed: list = []
        self.watch = None
        self.writes: list[tuple[str, list]] = []

    def prepare(self, cql: str) -> Mock:
        return Mock(cql=" ".join(cql.split()))

    async def aexecute(self, statement, params):
        cql = statement.cql
        if not cql.startswith("SELECT"):
            self.writes.append((cql, list(params)))
            return Rows()
        if ".enrollments_by_user" in cql:
            return Rows(self.by_user)
        if ".enrollments" in cql:
            return Rows([self.enrollment] if self.enrollment else [])
        if ".completed_lessons" in cql:
            return Rows(self.completed)
        if ".lesson_watch" in cql:
            return Rows([self.watch] if self.watch else [])
        raise AssertionError(f"unexpected statement: {cql}")

    def written(self, prefix: str) -> list[list]:
        return [params for cql, params in self.writes if cql.startswith(prefix)]


def enrollment_row(user_id: UUID, course_id: UUID, **overrides) -> SimpleNamespace:
    row = {
        "course_id": course_id,
        "user_id": user_id,
        "status": EnrollmentStatus.ENROLLED.value,
        "enrolled_at": None,
        "completed_at": None,
        "progress_percentage": 0,
        "is_completed": False,
        "current_lesson_id": None,
        "last_accessed_at": None,
    }
    row.update(overrides)
    return SimpleNamespace(**row)


def completed_row(user_id: UUID, course_id: UUID, lesson_id: UUID) -> SimpleNamespace:
    return SimpleNamespace(
        user_id=user_id, course_id=course_id, lesson_id=lesson_id, completed_at=None
    )


def watch_row(user_id, course_id, lesson_id, watched, duration) -> SimpleNamespace:
    return SimpleNamespace(
        user_id=user_id,
        course_id=course_id,
        lesson_id=lesson_id,
        watched_seconds=watched,
        duration_seconds=duration,
        updated_at=None,
    )


@pytest.fixture
def db() -> FakeCassandra:
    return FakeCassandra()


@pytest.fixture
def lessons(course_id) -> list[LessonOutline]:
    return [
        LessonOutline(course_id, uuid4(), position, f"Lesson {position}", minutes, "video")
        for position, minutes in [(1, 10), (2, 20), (3, 10)]
    ]


@pytest.fixture
def catalog(course_id, lessons) -> AsyncMock:
    mock = AsyncMock(spec=CatalogService)
    mock.get_course.return_value = Course(
        id=course_id, title="Pharmacology", status=ContentStatus.PUBLISHED.value
    )
    mock.list_course_lessons.return_value = lessons
    mock.first_lesson.return_value = lessons[0]
    return mock


@pytest.fixture
def service(db, catalog) -> EnrollmentService:
    return EnrollmentService(db, "learnmate", catalog)


@pytest.fixture
def enrolled(db, user_id, course_id, lessons):
    db.enrollment = enrollment_row(user_id, course_id, current_lesson_id=lessons[0].lesson_id)
    return db.enrollment


class TestProgressCalculation:
    def test_weighted_by_duration(self, lessons) -> None:
        assert calculate_progress_percentage(lessons, [lessons[0].lesson_id]) == 25
        assert calculate_progress_percentage(lessons, [lessons[1].lesson_id]) == 50

    def test_count_based_without_durations(self, course_id) -> None:
        lessons = [LessonOutline(course_id, uuid4(), p) for p in (1, 2, 3)]

        assert calculate_progress_percentage(lessons, [lessons[0].lesson_id]) == 33
        both = [lessons[0].lesson_id, lessons[1].lesson_id]
        assert calculate_progress_percentage(lessons, both) == 67

    def test_unknown_lessons_ignored(self, lessons) -> None:
        assert calculate_progress_percentage(lessons, [uuid4()]) == 0

    def test_no_lessons(self) -> None:
        assert calculate_progress_percentage([], []) == 0


class TestEnroll:
    async def test_enroll_starts_at_first_lesson(
        self, service, db, user_id, course_id, lessons
    ) -> None:
        enrollment = await service.enroll(user_id, course_id)

        assert enrollment.current_lesson_id == lessons[0].lesson_id
        assert enrollment.status == EnrollmentStatus.ENROLLED.value
        assert enrollment.progress_percentage == 0
        # Dual write: by course and by user
        assert len(db.written("INSERT INTO learnmate.enrollments ")) == 1
        assert len(db.written("INSERT INTO learnmate.enrollments_by_user")) == 1

    async def test_enroll_twice(self, service, enrolled, user_id, course_id) -> None:
        with pytest.raises(AlreadyEnrolledError):
            await service.enroll(user_id, course_id)

    async def test_unknown_course(self, service, catalog, user_id, course_id) -> None:
        catalog.get_course.return_value = None

        with pytest.raises(CourseNotFoundError):
            await service.enroll(user_id, course_id)

    async def test_draft_course(self, service, catalog, user_id, course_id) -> None:
        catalog.get_course.return_value = Course(id=course_id, status="draft")

        with pytest.raises(CourseNotFoundError):
            await service.enroll(user_id, course_id)

    async def test_course_without_lessons(self, service, catalog, user_id, course_id) -> None:
        catalog.first_lesson.return_value = None

        enrollment = await service.enroll(user_id, course_id)

        assert enrollment.current_lesson_id is None

    async def test_unenroll_removes_progress(
        self, service, db, enrolled, user_id, course_id
    ) -> None:
        await service.unenroll(user_id, course_id)

        deleted = [cql for cql, _ in db.writes if cql.startswith("DELETE")]
        assert len(deleted) == 4
        assert any(".lesson_watch" in cql for cql in deleted)

    async def test_unenroll_without_enrollment(self, service, user_id, course_id) -> None:
        with pytest.raises(NotEnrolledError):
            await service.unenroll(user_id, course_id)


class TestMarkLessonComplete:
    async def test_completion_updates_progress_and_advances(
        self, service, db, enrolled, user_id, course_id, lessons
    ) -> None:
        result = await service.mark_lesson_complete(user_id, course_id, lessons[0].lesson_id)

        assert result.already_completed is False
        assert result.progress_percentage == 25
        assert result.is_completed is False
        assert result.current_lesson_id == lessons[1].lesson_id
        assert len(db.written("INSERT INTO learnmate.completed_lessons")) == 1
        saved = db.written("INSERT INTO learnmate.enrollments ")[-1]
        assert saved[2] == EnrollmentStatus.IN_PROGRESS.value

    async def test_completion_is_idempotent(
        self, service, db, enrolled, user_id, course_id, lessons
    ) -> None:
        enrolled.progress_percentage = 25
        db.completed = [completed_row(user_id, course_id, lessons[0].lesson_id)]

        result = await service.mark_lesson_complete(user_id, course_id, lessons[0].lesson_id)

        assert result.already_completed is True
        assert result.progress_percentage == 25
        assert db.writes == []

    async def test_last_lesson_completes_course(
        self, service, db, enrolled, user_id, course_id, lessons
    ) -> None:
        db.completed = [
            completed_row(user_id, course_id, lessons[0].lesson_id),
            completed_row(user_id, course_id, lessons[1].lesson_id),
        ]

        result = await service.mark_lesson_complete(user_id, course_id, lessons[2].lesson_id)

        assert result.progress_percentage == 100
        assert result.is_completed is True
        # No lesson after the last one
        assert result.current_lesson_id == lessons[0].lesson_id
        saved = db.written("INSERT INTO learnmate.enrollments ")[-1]
        assert saved[2] == EnrollmentStatus.COMPLETED.value
        assert saved[4] is not None

    async def test_lesson_of_another_course(
        self, service, enrolled, user_id, course_id
    ) -> None:
        with pytest.raises(LessonNotFoundError):
            await service.mark_lesson_complete(user_id, course_id, uuid4())

    async def test_not_enrolled(self, service, user_id, course_id, lessons) -> None:
        with pytest.raises(NotEnrolledError):
            await service.mark_lesson_complete(user_id, course_id, lessons[0].lesson_id)


class TestWatchProgress:
    async def test_first_report_creates_record(
        self, service, db, enrolled, user_id, course_id, lessons
    ) -> None:
        lesson_id = lessons[1].lesson_id

        result = await service.update_watch_progress(user_id, course_id, lesson_id, 30.7, 600)

        assert result.watched_seconds == 30
        assert result.duration_seconds == 600
        assert result.completion_triggered is False
        assert db.written("INSERT INTO learnmate.lesson_watch")[0][3:5] == [30, 600]
        saved = db.written("INSERT INTO learnmate.enrollments ")[-1]
        assert saved[2] == EnrollmentStatus.IN_PROGRESS.value

    async def test_record_never_moves_backwards(
        self, service, db, enrolled, user_id, course_id, lessons
    ) -> None:
        lesson_id = lessons[1].lesson_id
        db.watch = watch_row(user_id, course_id, lesson_id, 300, 600)

        result = await service.update_watch_progress(user_id, course_id, lesson_id, 100, 0)

        assert result.watched_seconds == 300
        assert result.duration_seconds == 600
        assert db.written("INSERT INTO learnmate.lesson_watch")[0][3:5] == [300, 600]

    async def test_completion_threshold(
        self, service, db, enrolled, user_id, course_id, lessons
    ) -> None:
        lesson_id = lessons[0].lesson_id

        result = await service.update_watch_progress(user_id, course_id, lesson_id, 540, 600)

        assert result.completion_triggered is True
        assert result.progress_percentage == 25
        assert len(db.written("INSERT INTO learnmate.completed_lessons")) == 1

    async def test_below_threshold(
        self, service, db, enrolled, user_id, course_id, lessons
    ) -> None:
        result = await service.update_watch_progress(
            user_id, course_id, lessons[0].lesson_id, 539, 600
        )

        assert result.completion_triggered is False
        assert db.written("INSERT INTO learnmate.completed_lessons") == []

    async def test_early_finish_threshold(
        self, service, db, enrolled, user_id, course_id, lessons
    ) -> None:
        lesson_id = lessons[0].lesson_id

        early = await service.update_watch_progress(
            user_id, course_id, lesson_id, 360, 600, mark_if_threshold=True
        )

        assert early.completion_triggered is True

    async def test_early_finish_below_threshold(
        self, service, enrolled, user_id, course_id, lessons
    ) -> None:
        result = await service.update_watch_progress(
            user_id, course_id, lessons[0].lesson_id, 359, 600, mark_if_threshold=True
        )

        assert result.completion_triggered is False

    async def test_already_completed_lesson_not_completed_again(
        self, service, db, enrolled, user_id, course_id, lessons
    ) -> None:
        lesson_id = lessons[0].lesson_id
        db.completed = [completed_row(user_id, course_id, lesson_id)]

        result = await service.update_watch_progress(user_id, course_id, lesson_id, 600, 600)

        assert result.completion_triggered is False
        assert db.written("INSERT INTO learnmate.completed_lessons") == []

    async def test_unknown_duration_uses_stored_duration(
        self, service, db, enrolled, user_id, course_id, lessons
    ) -> None:
        lesson_id = lessons[0].lesson_id
        db.watch = watch_row(user_id, course_id, lesson_id, 500, 600)

        result = await service.update_watch_progress(user_id, course_id, lesson_id, 560, 0)

        assert result.completion_triggered is True

    async def test_no_duration_at_all(
        self, service, db, enrolled, user_id, course_id, lessons
    ) -> None:
        result = await service.update_watch_progress(
            user_id, course_id, lessons[0].lesson_id, 100, 0
        )

        assert result.completion_triggered is False
        assert result.duration_seconds == 0

    async def test_not_enrolled(self, service, user_id, course_id, lessons) -> None:
        with pytest.raises(NotEnrolledError):
            await service.update_watch_progress(
                user_id, course_id, lessons[0].lesson_id, 10, 100
            )

    async def test_lesson_of_another_course_is_rejected(
        self, service, db, enrolled, user_id, course_id
    ) -> None:
        with pytest.raises(LessonNotFoundError):
            await service.update_watch_progress(user_id, course_id, uuid4(), 600, 600)

        assert db.written("INSERT INTO learnmate.lesson_watch") == []
        assert db.written("INSERT INTO learnmate.completed_lessons") == []


class TestCurrentLessonAndDetail:
    async def test_update_current_lesson(
        self, service, enrolled, user_id, course_id, lessons
    ) -> None:
        enrollment = await service.update_current_lesson(
            user_id, course_id, lessons[2].lesson_id
        )

        assert enrollment.current_lesson_id == lessons[2].lesson_id
        assert enrollment.last_accessed_at is not None

    async def test_update_current_lesson_unknown(
        self, service, enrolled, user_id, course_id
    ) -> None:
        with pytest.raises(LessonNotFoundError):
            await service.update_current_lesson(user_id, course_id, uuid4())

    async def test_detail_lists_lessons_completions_and_watches(
        self, service, db, enrolled, user_id, course_id, lessons
    ) -> None:
        db.completed = [completed_row(user_id, course_id, lessons[0].lesson_id)]
        db.watch = watch_row(user_id, course_id, lessons[1].lesson_id, 42, 90)

        detail = await service.get_enrollment_detail(user_id, course_id)

        assert [item.lesson_id for item in detail.lessons] == [
            lesson.lesson_id for lesson in lessons
        ]
        assert [item.lesson_id for item in detail.completed_lessons] == [lessons[0].lesson_id]
        assert detail.lesson_watch[0].watched_seconds == 42
        data = detail.model_dump(by_alias=True)
        assert "lessonWatch" in data
        assert "completedLessons" in data

    async def test_list_enrollments(self, service, db, user_id, course_id) -> None:
        db.by_user = [enrollment_row(user_id, course_id), enrollment_row(user_id, uuid4())]

        enrollments = await service.list_enrollments(user_id)

        assert len(enrollments) == 2
        assert enrollments[0].course_id == course_id


class TestCertificate:
    async def test_completed_course(self, service, db, user_id, course_id) -> None:
        completed_at = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
        db.enrollment = enrollment_row(
            user_id,
            course_id,
            status=EnrollmentStatus.COMPLETED.value,
            progress_percentage=100,
            is_completed=True,
            completed_at=completed_at,
        )

        certificate = await service.get_certificate(user_id, course_id)

        assert certificate.course_id == course_id
        assert certificate.course_title == "Pharmacology"
        assert certificate.issued_at == completed_at

    async def test_incomplete_course(self, service, db, user_id, course_id) -> None:
        db.enrollment = enrollment_row(user_id, course_id, progress_percentage=99)

        with pytest.raises(CourseNotCompletedError):
            await service.get_certificate(user_id, course_id)

    async def test_not_enrolled(self, service, user_id, course_id) -> None:
        with pytest.raises(NotEnrolledError):
            await service.get_certificate(user_id, course_id)
