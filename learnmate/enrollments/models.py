"""Database models for course enrollments and lesson progress.

Cassandra table definitions for:
- Enrollments: Course enrollment with overall progress
- Completed lessons: Lessons a student finished in a course
- Lesson watch: Furthest watched second per media lesson (for resume)
- Lookup tables: For user-based queries

Architecture: Dual-write pattern for efficient queries by both
course_id and user_id perspectives.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from learnmate.utils import ensure_utc_aware


class EnrollmentStatus(str, Enum):
    """Course enrollment status."""

    ENROLLED = "enrolled"  # Not started yet
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"  # Every lesson completed


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Enrollments partitioned by course_id
# For queries: "who is enrolled in this course?"
ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    course_id UUID,
    user_id UUID,
    status TEXT,
    enrolled_at TIMESTAMP,
    completed_at TIMESTAMP,
    progress_percentage INT,
    is_completed BOOLEAN,
    current_lesson_id UUID,
    last_accessed_at TIMESTAMP,
    PRIMARY KEY (course_id, user_id)
)
"""

# Lookup: courses by user, newest enrollment first
ENROLLMENTS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_user (
    user_id UUID,
    enrolled_at TIMESTAMP,
    course_id UUID,
    status TEXT,
    progress_percentage INT,
    is_completed BOOLEAN,
    current_lesson_id UUID,
    last_accessed_at TIMESTAMP,
    PRIMARY KEY (user_id, enrolled_at, course_id)
) WITH CLUSTERING ORDER BY (enrolled_at DESC, course_id ASC)
"""

# One row per completed lesson; the partition is the whole course for a user
COMPLETED_LESSONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.completed_lessons (
    user_id UUID,
    course_id UUID,
    lesson_id UUID,
    completed_at TIMESTAMP,
    PRIMARY KEY ((user_id, course_id), lesson_id)
)
"""

# Watch high-water mark per media lesson
LESSON_WATCH_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lesson_watch (
    user_id UUID,
    course_id UUID,
    lesson_id UUID,
    watched_seconds INT,
    duration_seconds INT,
    updated_at TIMESTAMP,
    PRIMARY KEY ((user_id, course_id), lesson_id)
)
"""

# All CQL statements for table setup
ENROLLMENT_TABLES_CQL = [
    ENROLLMENTS_TABLE_CQL,
    ENROLLMENTS_BY_USER_TABLE_CQL,
    COMPLETED_LESSONS_TABLE_CQL,
    LESSON_WATCH_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Enrollment:
    """Course enrollment entity.

    Attributes:
        course_id: Course UUID
        user_id: User UUID
        status: Enrollment status (enrolled, in_progress, completed)
        enrolled_at: Enrollment timestamp
        completed_at: Course completion timestamp
        progress_percentage: Duration-weighted course progress (0-100)
        is_completed: Whether every lesson has been completed
        current_lesson_id: Lesson the student continues from
        last_accessed_at: Last access timestamp
    """

    def __init__(
        self,
        course_id: UUID,
        user_id: UUID,
        status: str = EnrollmentStatus.ENROLLED.value,
        enrolled_at: datetime | None = None,
        completed_at: datetime | None = None,
        progress_percentage: int = 0,
        is_completed: bool = False,
        current_lesson_id: UUID | None = None,
        last_accessed_at: datetime | None = None,
    ):
        self.course_id = course_id
        self.user_id = user_id
        self.status = status
        self.enrolled_at = ensure_utc_aware(enrolled_at) or datetime.now(UTC)
        self.completed_at = ensure_utc_aware(completed_at)
        self.progress_percentage = progress_percentage
        self.is_completed = is_completed
        self.current_lesson_id = current_lesson_id
        self.last_accessed_at = ensure_utc_aware(last_accessed_at)

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from a row of either enrollment table."""
        return cls(
            course_id=row.course_id,
            user_id=row.user_id,
            status=row.status or EnrollmentStatus.ENROLLED.value,
            enrolled_at=row.enrolled_at,
            completed_at=getattr(row, "completed_at", None),
            progress_percentage=row.progress_percentage or 0,
            is_completed=bool(row.is_completed),
            current_lesson_id=row.current_lesson_id,
            last_accessed_at=row.last_accessed_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "course_id": self.course_id,
            "user_id": self.user_id,
            "status": self.status,
            "enrolled_at": self.enrolled_at,
            "completed_at": self.completed_at,
            "progress_percentage": self.progress_percentage,
            "is_completed": self.is_completed,
            "current_lesson_id": self.current_lesson_id,
            "last_accessed_at": self.last_accessed_at,
        }

    def __repr__(self) -> str:
        return (
            f"<Enrollment user={self.user_id} course={self.course_id} "
            f"{self.status} {self.progress_percentage}%>"
        )


class CompletedLesson:
    """Lesson completed by a student within a course."""

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        lesson_id: UUID,
        completed_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.course_id = course_id
        self.lesson_id = lesson_id
        self.completed_at = ensure_utc_aware(completed_at) or datetime.now(UTC)

    @classmethod
    def from_row(cls, row: Any) -> "CompletedLesson":
        """Create CompletedLesson instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            lesson_id=row.lesson_id,
            completed_at=row.completed_at,
        )

    def __repr__(self) -> str:
        return f"<CompletedLesson user={self.user_id} lesson={self.lesson_id}>"


class LessonWatch:
    """Furthest continuously watched position of a media lesson.

    Both counters only ever grow; see `merge`.
    """

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        lesson_id: UUID,
        watched_seconds: int = 0,
        duration_seconds: int = 0,
        updated_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.course_id = course_id
        self.lesson_id = lesson_id
        self.watched_seconds = watched_seconds
        self.duration_seconds = duration_seconds
        self.updated_at = ensure_utc_aware(updated_at) or datetime.now(UTC)

    def merge(self, watched_seconds: int, duration_seconds: int) -> None:
        """Fold an incoming report into the record without moving backwards."""
        self.watched_seconds = max(self.watched_seconds, watched_seconds)
        if duration_seconds:
            self.duration_seconds = max(self.duration_seconds, duration_seconds)
        self.updated_at = datetime.now(UTC)

    @classmethod
    def from_row(cls, row: Any) -> "LessonWatch":
        """Create LessonWatch instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            lesson_id=row.lesson_id,
            watched_seconds=row.watched_seconds or 0,
            duration_seconds=row.duration_seconds or 0,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "course_id": self.course_id,
            "lesson_id": self.lesson_id,
            "watched_seconds": self.watched_seconds,
            "duration_seconds": self.duration_seconds,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return (
            f"<LessonWatch lesson={self.lesson_id} "
            f"{self.watched_seconds}/{self.duration_seconds}s>"
        )
