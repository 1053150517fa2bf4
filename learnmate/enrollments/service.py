"""Enrollment and lesson progress service layer.

Business logic for:
- Course enrollment lifecycle (enroll, list, detail, unenroll)
- Watch progress updates with threshold completion
- Lesson completion with course progress recalculation
- Completion certificate eligibility
- Current lesson navigation
"""

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from learnmate.courses.models import LessonOutline
from learnmate.utils import percentage

from .models import CompletedLesson, Enrollment, EnrollmentStatus, LessonWatch
from .schemas import (
    CertificateResponse,
    CompletedLessonResponse,
    EnrollmentDetailResponse,
    EnrollmentLessonResponse,
    LessonCompletionResponse,
    LessonWatchResponse,
    WatchProgressResponse,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from learnmate.courses.service import CatalogService

logger = structlog.get_logger(__name__)

# Watched share of a media lesson that completes it
COMPLETION_RATIO = 0.9
# Watched share from which the learner may finish a lesson early
EARLY_FINISH_RATIO = 0.6


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class EnrollmentError(Exception):
    """Base enrollment error."""

    def __init__(self, message: str, code: str = "enrollment_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotEnrolledError(EnrollmentError):
    """User not enrolled in course."""

    def __init__(self, message: str = "Enrollment not found"):
        super().__init__(message, "not_enrolled")


class AlreadyEnrolledError(EnrollmentError):
    """User already enrolled."""

    def __init__(self, message: str = "Already enrolled in this course"):
        super().__init__(message, "already_enrolled")


class CourseNotFoundError(EnrollmentError):
    """Course missing or not published."""

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


class LessonNotFoundError(EnrollmentError):
    """Lesson is not part of the course."""

    def __init__(self, message: str = "Lesson not found in course"):
        super().__init__(message, "lesson_not_found")


class CourseNotCompletedError(EnrollmentError):
    """Certificate requested before the course is fully completed."""

    def __init__(self, message: str = "Course not yet completed"):
        super().__init__(message, "course_not_completed")


# ==============================================================================
# Progress Calculation
# ==============================================================================


def calculate_progress_percentage(
    lessons: list[LessonOutline], completed_ids: Iterable[UUID]
) -> int:
    """Course progress weighted by lesson duration.

    Falls back to the share of completed lessons when no lesson has a
    duration. Completions of lessons no longer in the course are ignored.
    """
    if not lessons:
        return 0

    completed = set(completed_ids)
    done = [lesson for lesson in lessons if lesson.lesson_id in completed]

    total_duration = sum(lesson.duration_minutes for lesson in lessons)
    if total_duration > 0:
        completed_duration = sum(lesson.duration_minutes for lesson in done)
        return percentage(completed_duration, total_duration)
    return percentage(len(done), len(lessons))


def _cassandra_now() -> datetime:
    """Current UTC time truncated to Cassandra's millisecond precision."""
    now = datetime.now(UTC)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


# ==============================================================================
# Enrollment Service
# ==============================================================================


class EnrollmentService:
    """Service for enrollments and lesson progress."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        catalog: "CatalogService",
        completion_ratio: float = COMPLETION_RATIO,
        early_finish_ratio: float = EARLY_FINISH_RATIO,
    ):
        """Initialize with Cassandra session and the course catalog."""
        self.session = session
        self.keyspace = keyspace
        self.catalog = catalog
        self.completion_ratio = completion_ratio
        self.early_finish_ratio = early_finish_ratio
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        # Enrollments
        self._get_enrollment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE course_id = ? AND user_id = ?
        """)

        self._upsert_enrollment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (course_id, user_id, status, enrolled_at, completed_at,
             progress_percentage, is_completed, current_lesson_id, last_accessed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._delete_enrollment = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.enrollments
            WHERE course_id = ? AND user_id = ?
        """)

        # Enrollments by user (lookup)
        self._get_user_enrollments = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments_by_user
            WHERE user_id = ?
        """)

        self._upsert_enrollment_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_user
            (user_id, enrolled_at, course_id, status, progress_percentage,
             is_completed, current_lesson_id, last_accessed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._delete_enrollment_by_user = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.enrollments_by_user
            WHERE user_id = ? AND enrolled_at = ? AND course_id = ?
        """)

        # Completed lessons
        self._get_completed_lessons = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.completed_lessons
            WHERE user_id = ? AND course_id = ?
        """)

        self._insert_completed_lesson = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.completed_lessons
            (user_id, course_id, lesson_id, completed_at)
            VALUES (?, ?, ?, ?)
        """)

        self._delete_completed_lessons = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.completed_lessons
            WHERE user_id = ? AND course_id = ?
        """)

        # Lesson watch
        self._get_lesson_watch = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.lesson_watch
            WHERE user_id = ? AND course_id = ? AND lesson_id = ?
        """)

        self._get_course_lesson_watch = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.lesson_watch
            WHERE user_id = ? AND course_id = ?
        """)

        self._upsert_lesson_watch = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.lesson_watch
            (user_id, course_id, lesson_id, watched_seconds, duration_seconds, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """)

        self._delete_lesson_watch = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.lesson_watch
            WHERE user_id = ? AND course_id = ?
        """)

    # ==========================================================================
    # Enrollment Operations
    # ==========================================================================

    async def enroll(self, user_id: UUID, course_id: UUID) -> Enrollment:
        """Enroll user in a published course.

        The first lesson (by position) becomes the current lesson.

        Raises:
            CourseNotFoundError: If the course is missing or not published
            AlreadyEnrolledError: If user already enrolled
        """
        course = await self.catalog.get_course(course_id)
        if not course or not course.is_published:
            raise CourseNotFoundError

        existing = await self.get_enrollment(user_id, course_id)
        if existing:
            raise AlreadyEnrolledError

        first_lesson = await self.catalog.first_lesson(course_id)
        now = _cassandra_now()
        enrollment = Enrollment(
            course_id=course_id,
            user_id=user_id,
            status=EnrollmentStatus.ENROLLED.value,
            enrolled_at=now,
            current_lesson_id=first_lesson.lesson_id if first_lesson else None,
            last_accessed_at=now,
        )

        await self._save_enrollment(enrollment)

        logger.info(
            "user_enrolled",
            user_id=str(user_id),
            course_id=str(course_id),
        )

        return enrollment

    async def get_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        """Get enrollment by user and course."""
        result = await self.session.aexecute(self._get_enrollment, [course_id, user_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def require_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment:
        """Get enrollment or raise NotEnrolledError."""
        enrollment = await self.get_enrollment(user_id, course_id)
        if not enrollment:
            raise NotEnrolledError
        return enrollment

    async def list_enrollments(self, user_id: UUID) -> list[Enrollment]:
        """Get all enrollments for a user, newest first."""
        rows = await self.session.aexecute(self._get_user_enrollments, [user_id])
        return [Enrollment.from_row(row) for row in rows]

    async def get_enrollment_detail(
        self, user_id: UUID, course_id: UUID
    ) -> EnrollmentDetailResponse:
        """Get enrollment with ordered lessons, completions and watch records."""
        enrollment = await self.require_enrollment(user_id, course_id)
        lessons = await self.catalog.list_course_lessons(course_id)
        completed = await self.get_completed_lessons(user_id, course_id)
        watches = await self.get_lesson_watches(user_id, course_id)

        detail = EnrollmentDetailResponse.from_entity(enrollment)
        detail.lessons = [EnrollmentLessonResponse.from_entity(item) for item in lessons]
        detail.completed_lessons = [
            CompletedLessonResponse.from_entity(item) for item in completed
        ]
        detail.lesson_watch = [LessonWatchResponse.from_entity(item) for item in watches]
        return detail

    async def unenroll(self, user_id: UUID, course_id: UUID) -> None:
        """Remove the enrollment with its completions and watch records.

        Raises:
            NotEnrolledError: If user is not enrolled
        """
        enrollment = await self.require_enrollment(user_id, course_id)

        await self.session.aexecute(self._delete_enrollment, [course_id, user_id])
        await self.session.aexecute(
            self._delete_enrollment_by_user,
            [user_id, enrollment.enrolled_at, course_id],
        )
        await self.session.aexecute(self._delete_completed_lessons, [user_id, course_id])
        await self.session.aexecute(self._delete_lesson_watch, [user_id, course_id])

        logger.info(
            "user_unenrolled",
            user_id=str(user_id),
            course_id=str(course_id),
        )

    async def update_current_lesson(
        self, user_id: UUID, course_id: UUID, lesson_id: UUID
    ) -> Enrollment:
        """Set the lesson the student continues from.

        Raises:
            NotEnrolledError: If user is not enrolled
            LessonNotFoundError: If the lesson is not part of the course
        """
        enrollment = await self.require_enrollment(user_id, course_id)
        lessons = await self.catalog.list_course_lessons(course_id)
        self._require_lesson(lessons, lesson_id)

        enrollment.current_lesson_id = lesson_id
        enrollment.last_accessed_at = _cassandra_now()
        await self._save_enrollment(enrollment)
        return enrollment

    async def _save_enrollment(self, enrollment: Enrollment) -> None:
        """Write enrollment to both tables (dual-write)."""
        await self.session.aexecute(
            self._upsert_enrollment,
            [
                enrollment.course_id,
                enrollment.user_id,
                enrollment.status,
                enrollment.enrolled_at,
                enrollment.completed_at,
                enrollment.progress_percentage,
                enrollment.is_completed,
                enrollment.current_lesson_id,
                enrollment.last_accessed_at,
            ],
        )

        await self.session.aexecute(
            self._upsert_enrollment_by_user,
            [
                enrollment.user_id,
                enrollment.enrolled_at,
                enrollment.course_id,
                enrollment.status,
                enrollment.progress_percentage,
                enrollment.is_completed,
                enrollment.current_lesson_id,
                enrollment.last_accessed_at,
            ],
        )

    # ==========================================================================
    # Lesson Completion
    # ==========================================================================

    async def get_completed_lessons(
        self, user_id: UUID, course_id: UUID
    ) -> list[CompletedLesson]:
        """Get the lessons a user completed in a course."""
        rows = await self.session.aexecute(
            self._get_completed_lessons, [user_id, course_id]
        )
        return [CompletedLesson.from_row(row) for row in rows]

    async def mark_lesson_complete(
        self, user_id: UUID, course_id: UUID, lesson_id: UUID
    ) -> LessonCompletionResponse:
        """Mark a lesson complete (idempotent).

        A new completion recalculates course progress and moves the current
        lesson to the next one by position.

        Raises:
            NotEnrolledError: If user is not enrolled
            LessonNotFoundError: If the lesson is not part of the course
        """
        enrollment = await self.require_enrollment(user_id, course_id)
        lessons = await self.catalog.list_course_lessons(course_id)
        self._require_lesson(lessons, lesson_id)

        completed_ids = {
            item.lesson_id for item in await self.get_completed_lessons(user_id, course_id)
        }
        already_completed = lesson_id in completed_ids

        if not already_completed:
            completed_ids.add(lesson_id)
            await self._record_completion(enrollment, lessons, completed_ids, lesson_id)

        return LessonCompletionResponse(
            lesson_id=lesson_id,
            already_completed=already_completed,
            progress_percentage=enrollment.progress_percentage,
            is_completed=enrollment.is_completed,
            current_lesson_id=enrollment.current_lesson_id,
        )

    async def _record_completion(
        self,
        enrollment: Enrollment,
        lessons: list[LessonOutline],
        completed_ids: set[UUID],
        lesson_id: UUID,
    ) -> None:
        """Persist a new completion and update the enrollment in place."""
        now = _cassandra_now()
        await self.session.aexecute(
            self._insert_completed_lesson,
            [enrollment.user_id, enrollment.course_id, lesson_id, now],
        )

        self._recalculate_progress(enrollment, lessons, completed_ids, now)

        next_lesson = self._next_lesson(lessons, lesson_id)
        if next_lesson:
            enrollment.current_lesson_id = next_lesson.lesson_id

        enrollment.last_accessed_at = now
        await self._save_enrollment(enrollment)

        logger.info(
            "lesson_completed",
            user_id=str(enrollment.user_id),
            course_id=str(enrollment.course_id),
            lesson_id=str(lesson_id),
            progress_percentage=enrollment.progress_percentage,
        )

    def _recalculate_progress(
        self,
        enrollment: Enrollment,
        lessons: list[LessonOutline],
        completed_ids: set[UUID],
        now: datetime,
    ) -> None:
        """Refresh progress percentage and course completion."""
        enrollment.progress_percentage = calculate_progress_percentage(
            lessons, completed_ids
        )

        if enrollment.progress_percentage == 100:
            if not enrollment.is_completed:
                enrollment.is_completed = True
                enrollment.completed_at = now
                logger.info(
                    "course_completed",
                    user_id=str(enrollment.user_id),
                    course_id=str(enrollment.course_id),
                )
            enrollment.status = EnrollmentStatus.COMPLETED.value
        elif enrollment.status == EnrollmentStatus.ENROLLED.value:
            enrollment.status = EnrollmentStatus.IN_PROGRESS.value

    async def get_certificate(self, user_id: UUID, course_id: UUID) -> CertificateResponse:
        """Certificate details of a fully completed course.

        Raises:
            NotEnrolledError: If user is not enrolled
            CourseNotCompletedError: If course progress is below 100%
        """
        enrollment = await self.require_enrollment(user_id, course_id)
        if enrollment.progress_percentage < 100:
            raise CourseNotCompletedError

        course = await self.catalog.get_course(course_id)
        logger.info(
            "certificate_issued", user_id=str(user_id), course_id=str(course_id)
        )
        return CertificateResponse(
            course_id=course_id,
            course_title=course.title if course else "",
            issued_at=enrollment.completed_at or _cassandra_now(),
        )

    # ==========================================================================
    # Watch Progress
    # ==========================================================================

    async def get_lesson_watch(
        self, user_id: UUID, course_id: UUID, lesson_id: UUID
    ) -> LessonWatch | None:
        """Get the watch record of one lesson."""
        result = await self.session.aexecute(
            self._get_lesson_watch, [user_id, course_id, lesson_id]
        )
        row = result.one()
        return LessonWatch.from_row(row) if row else None

    async def get_lesson_watches(
        self, user_id: UUID, course_id: UUID
    ) -> list[LessonWatch]:
        """Get every watch record of a course."""
        rows = await self.session.aexecute(
            self._get_course_lesson_watch, [user_id, course_id]
        )
        return [LessonWatch.from_row(row) for row in rows]

    async def update_watch_progress(
        self,
        user_id: UUID,
        course_id: UUID,
        lesson_id: UUID,
        watched_seconds: float,
        duration_seconds: float,
        mark_if_threshold: bool = False,
    ) -> WatchProgressResponse:
        """Record a watch progress report from the player.

        The stored record never moves backwards. The lesson is completed when
        the reported position reaches the completion ratio, or the early
        finish ratio when the learner asked to finish early
        (`mark_if_threshold`).

        Raises:
            NotEnrolledError: If user is not enrolled
            LessonNotFoundError: If the lesson is not part of the course
        """
        enrollment = await self.require_enrollment(user_id, course_id)
        lessons = await self.catalog.list_course_lessons(course_id)
        self._require_lesson(lessons, lesson_id)

        # Cassandra columns are INT
        watched = int(watched_seconds)
        duration = int(duration_seconds)

        watch = await self.get_lesson_watch(user_id, course_id, lesson_id)
        if watch:
            watch.merge(watched, duration)
        else:
            watch = LessonWatch(
                user_id=user_id,
                course_id=course_id,
                lesson_id=lesson_id,
                watched_seconds=watched,
                duration_seconds=duration,
            )

        await self.session.aexecute(
            self._upsert_lesson_watch,
            [
                watch.user_id,
                watch.course_id,
                watch.lesson_id,
                watch.watched_seconds,
                watch.duration_seconds,
                watch.updated_at,
            ],
        )

        effective_duration = duration or watch.duration_seconds
        completion_triggered = False

        if effective_duration > 0:
            ratio = watched / effective_duration
            threshold = self.early_finish_ratio if mark_if_threshold else self.completion_ratio
            if ratio >= threshold:
                completed_ids = {
                    item.lesson_id
                    for item in await self.get_completed_lessons(user_id, course_id)
                }
                if lesson_id not in completed_ids:
                    completed_ids.add(lesson_id)
                    await self._record_completion(
                        enrollment, lessons, completed_ids, lesson_id
                    )
                    completion_triggered = True
                    logger.info(
                        "lesson_threshold_completed",
                        user_id=str(user_id),
                        lesson_id=str(lesson_id),
                        ratio=round(ratio, 3),
                        early_finish=mark_if_threshold,
                    )

        if not completion_triggered:
            enrollment.last_accessed_at = _cassandra_now()
            if enrollment.status == EnrollmentStatus.ENROLLED.value:
                enrollment.status = EnrollmentStatus.IN_PROGRESS.value
            await self._save_enrollment(enrollment)

        return WatchProgressResponse(
            watched_seconds=watch.watched_seconds,
            duration_seconds=watch.duration_seconds,
            completion_triggered=completion_triggered,
            progress_percentage=enrollment.progress_percentage,
            is_completed=enrollment.is_completed,
        )

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @staticmethod
    def _require_lesson(lessons: list[LessonOutline], lesson_id: UUID) -> LessonOutline:
        for lesson in lessons:
            if lesson.lesson_id == lesson_id:
                return lesson
        raise LessonNotFoundError

    @staticmethod
    def _next_lesson(lessons: list[LessonOutline], lesson_id: UUID) -> LessonOutline | None:
        current = next((item for item in lessons if item.lesson_id == lesson_id), None)
        if current is None:
            return None
        return next((item for item in lessons if item.position > current.position), None)
