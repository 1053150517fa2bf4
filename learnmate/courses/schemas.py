"""Pydantic schemas for the course catalog.

Response models for courses and lessons, plus the typed content payloads
stored per lesson type. Payload keys are camelCase on the wire
(``videoUrl``, ``correctAnswer``...) and snake_case in Python.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from learnmate.courses.models import ContentStatus, Course, Lesson, LessonOutline


# ==============================================================================
# Content Payloads
# ==============================================================================


class ContentModel(BaseModel):
    """Base for lesson content payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class VideoContent(ContentModel):
    """Uploaded video lesson."""

    video_url: str = Field(..., min_length=1, description="Playable video URL")
    mimetype: str = Field("video/mp4", description="Video MIME type")
    duration: int | None = Field(None, ge=0, description="Duration in seconds")


class YouTubeContent(ContentModel):
    """Embedded YouTube lesson; either field identifies the video."""

    youtube_url: str | None = Field(None, description="Any YouTube video URL")
    video_id: str | None = Field(None, description="11-character video id")
    thumbnail_url: str | None = Field(None, description="Preview image URL")
    duration: int | None = Field(None, ge=0, description="Duration in seconds")


class TextContent(ContentModel):
    """Rich text lesson."""

    html_content: str = Field("", description="Lesson body (HTML or markdown)")


class QuizQuestion(ContentModel):
    """Multiple-choice question."""

    question: str = Field(..., description="Question text")
    options: list[str] = Field(default_factory=list, description="Answer options")
    correct_answer: int | None = Field(
        None, ge=0, description="Index of the correct option"
    )


class QuizContent(ContentModel):
    """Untimed quiz lesson."""

    questions: list[QuizQuestion] = Field(default_factory=list)


class AssessmentContent(ContentModel):
    """Timed, proctored assessment lesson."""

    questions: list[QuizQuestion] = Field(default_factory=list)
    duration: int | None = Field(None, gt=0, description="Time limit in minutes")
    passing_score: float | None = Field(
        None, ge=0, le=100, description="Minimum score (percent) to pass"
    )


# ==============================================================================
# Catalog Responses
# ==============================================================================


class CourseResponse(BaseModel):
    """Course response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str | None = None
    status: ContentStatus
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, course: Course) -> "CourseResponse":
        return cls.model_validate(course)


class LessonOutlineResponse(BaseModel):
    """Lesson entry in a course outline."""

    model_config = ConfigDict(from_attributes=True)

    lesson_id: UUID
    position: int
    title: str
    duration_minutes: int = 0
    content_type: str | None = None

    @classmethod
    def from_entity(cls, outline: LessonOutline) -> "LessonOutlineResponse":
        return cls.model_validate(outline)


class LessonResponse(BaseModel):
    """Lesson detail response (content included)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_id: UUID | None = None
    title: str
    description: str | None = None
    position: int
    duration_minutes: int = 0
    content_type: str | None = None
    content_data: dict | None = None
    is_preview: bool = False

    @classmethod
    def from_entity(cls, lesson: Lesson) -> "LessonResponse":
        return cls.model_validate(lesson)
