"""Pydantic schemas for enrollments and lesson progress.

Request and response models for:
- Watch progress updates (throttled player reports)
- Lesson completion
- Course enrollment and its detail view

Fields are camelCase on the wire (``watchedSeconds``, ``markIfThreshold``)
and snake_case in Python.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from learnmate.courses.models import LessonOutline

from .models import CompletedLesson, Enrollment, EnrollmentStatus, LessonWatch


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ==============================================================================
# Watch Progress Schemas
# ==============================================================================


class UpdateWatchProgressRequest(CamelModel):
    """Watch progress report from a media lesson player."""

    watched_seconds: float = Field(
        0, ge=0, description="Furthest continuously watched second"
    )
    duration_seconds: float = Field(0, ge=0, description="Media duration in seconds")
    mark_if_threshold: bool = Field(
        False, description="Complete the lesson if the early-finish ratio is reached"
    )


class WatchProgressResponse(CamelModel):
    """Result of a watch progress report."""

    watched_seconds: int
    duration_seconds: int
    completion_triggered: bool = Field(
        description="Whether this report completed the lesson"
    )
    progress_percentage: int = Field(description="Course progress (0-100)")
    is_completed: bool = Field(description="Whether the course is completed")


class LessonWatchResponse(CamelModel):
    """Stored watch record for a lesson (used to resume playback)."""

    lesson_id: UUID
    watched_seconds: int
    duration_seconds: int
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: LessonWatch) -> "LessonWatchResponse":
        """Create response from entity."""
        return cls.model_validate(entity)


# ==============================================================================
# Lesson Completion Schemas
# ==============================================================================


class LessonCompletionResponse(CamelModel):
    """Result of marking a lesson complete."""

    lesson_id: UUID
    already_completed: bool = False
    progress_percentage: int
    is_completed: bool
    current_lesson_id: UUID | None = None


class CompletedLessonResponse(CamelModel):
    """Completed lesson entry."""

    lesson_id: UUID
    completed_at: datetime

    @classmethod
    def from_entity(cls, entity: CompletedLesson) -> "CompletedLessonResponse":
        """Create response from entity."""
        return cls.model_validate(entity)


# ==============================================================================
# Enrollment Schemas
# ==============================================================================


class EnrollmentResponse(CamelModel):
    """Course enrollment response."""

    course_id: UUID
    status: EnrollmentStatus
    enrolled_at: datetime
    completed_at: datetime | None = None
    progress_percentage: int = Field(description="Course progress (0-100)")
    is_completed: bool = False
    current_lesson_id: UUID | None = None
    last_accessed_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: Enrollment) -> "EnrollmentResponse":
        """Create response from entity."""
        return cls(
            course_id=entity.course_id,
            status=EnrollmentStatus(entity.status),
            enrolled_at=entity.enrolled_at,
            completed_at=entity.completed_at,
            progress_percentage=entity.progress_percentage,
            is_completed=entity.is_completed,
            current_lesson_id=entity.current_lesson_id,
            last_accessed_at=entity.last_accessed_at,
        )


class EnrollmentLessonResponse(CamelModel):
    """Lesson entry of the enrolled course, in order."""

    lesson_id: UUID
    position: int
    title: str
    duration_minutes: int = 0
    content_type: str | None = None

    @classmethod
    def from_entity(cls, entity: LessonOutline) -> "EnrollmentLessonResponse":
        """Create response from entity."""
        return cls.model_validate(entity)


class EnrollmentDetailResponse(EnrollmentResponse):
    """Enrollment with lessons, completions and watch records."""

    lessons: list[EnrollmentLessonResponse] = Field(default_factory=list)
    completed_lessons: list[CompletedLessonResponse] = Field(default_factory=list)
    lesson_watch: list[LessonWatchResponse] = Field(default_factory=list)


class EnrollmentListResponse(CamelModel):
    """List of the current user's enrollments."""

    items: list[EnrollmentResponse]
    total: int


class MessageResponse(CamelModel):
    """Simple message response."""

    message: str


class CertificateResponse(CamelModel):
    """Completion certificate details; issued only at 100% progress."""

    course_id: UUID
    course_title: str
    issued_at: datetime
