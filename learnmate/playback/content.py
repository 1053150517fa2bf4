"""Lesson content dispatch.

Maps a catalog lesson to what the learner's client should run: a media
player (local video or YouTube), a text page, a quiz, or a proctored
assessment. Anything that cannot be played resolves to
`UnavailableContent` instead of raising.
"""

from dataclasses import dataclass, field
from typing import TypeVar
from uuid import UUID

import structlog
from pydantic import BaseModel, ValidationError

from learnmate.config.settings import Settings, get_settings
from learnmate.courses.models import ContentType, Lesson
from learnmate.courses.schemas import (
    AssessmentContent,
    QuizContent,
    QuizQuestion,
    TextContent,
    VideoContent,
    YouTubeContent,
)
from learnmate.playback.youtube import extract_youtube_video_id


logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

UNAVAILABLE_MESSAGE = "Content not available"

YOUTUBE_THUMBNAIL_URL = "https://img.youtube.com/vi/{video_id}/{variant}.jpg"
# Not every video has every size; clients try these in order
YOUTUBE_THUMBNAIL_VARIANTS = ("maxresdefault", "hqdefault", "mqdefault")


@dataclass(frozen=True)
class VideoPlayback:
    lesson_id: UUID
    video_url: str
    mimetype: str = "video/mp4"


@dataclass(frozen=True)
class YouTubePlayback:
    lesson_id: UUID
    video_id: str
    thumbnail_url: str | None = None

    @property
    def embed_url(self) -> str:
        return f"https://www.youtube.com/embed/{self.video_id}"

    def thumbnail_candidates(self) -> list[str]:
        """Thumbnail URLs to try, the stored one first."""
        candidates = [
            YOUTUBE_THUMBNAIL_URL.format(video_id=self.video_id, variant=variant)
            for variant in YOUTUBE_THUMBNAIL_VARIANTS
        ]
        if self.thumbnail_url and self.thumbnail_url not in candidates:
            candidates.insert(0, self.thumbnail_url)
        return candidates


@dataclass(frozen=True)
class TextPlayback:
    lesson_id: UUID
    html_content: str


@dataclass(frozen=True)
class QuizPlayback:
    lesson_id: UUID
    questions: list[QuizQuestion] = field(default_factory=list)

    @property
    def is_ready(self) -> bool:
        """A quiz without questions is shown as being prepared."""
        return bool(self.questions)


@dataclass(frozen=True)
class AssessmentPlayback:
    lesson_id: UUID
    questions: list[QuizQuestion]
    duration_minutes: int
    passing_score: float


@dataclass(frozen=True)
class UnavailableContent:
    lesson_id: UUID | None
    reason: str
    message: str = UNAVAILABLE_MESSAGE


LessonContent = (
    VideoPlayback
    | YouTubePlayback
    | TextPlayback
    | QuizPlayback
    | AssessmentPlayback
    | UnavailableContent
)


def _parse(model: type[ModelT], data: dict) -> ModelT | None:
    try:
        return model.model_validate(data)
    except ValidationError:
        return None


def resolve_lesson_content(
    lesson: Lesson | None, settings: Settings | None = None
) -> LessonContent:
    """Resolve what to play for a lesson; never raises for bad content."""
    if lesson is None:
        return UnavailableContent(lesson_id=None, reason="missing_lesson")

    if not lesson.content_type or lesson.content_data is None:
        return UnavailableContent(lesson_id=lesson.id, reason="missing_content")

    settings = settings or get_settings()
    data = lesson.content_data
    content: LessonContent | None = None

    content_type = lesson.content_type
    if content_type == ContentType.VIDEO.value:
        video = _parse(VideoContent, data)
        if video:
            content = VideoPlayback(lesson.id, video.video_url, video.mimetype)
    elif content_type == ContentType.YOUTUBE.value:
        youtube = _parse(YouTubeContent, data)
        if youtube:
            video_id = youtube.video_id or extract_youtube_video_id(youtube.youtube_url)
            if video_id:
                content = YouTubePlayback(lesson.id, video_id, youtube.thumbnail_url)
    elif content_type == ContentType.TEXT.value:
        text = _parse(TextContent, data)
        if text:
            content = TextPlayback(lesson.id, text.html_content)
    elif content_type == ContentType.QUIZ.value:
        quiz = _parse(QuizContent, data)
        if quiz:
            content = QuizPlayback(lesson.id, quiz.questions)
    elif content_type == ContentType.ASSESSMENT.value:
        assessment = _parse(AssessmentContent, data)
        if assessment:
            content = AssessmentPlayback(
                lesson.id,
                assessment.questions,
                assessment.duration or settings.assessment_default_duration_minutes,
                assessment.passing_score
                if assessment.passing_score is not None
                else settings.assessment_default_passing_score,
            )
    else:
        return UnavailableContent(lesson_id=lesson.id, reason="unsupported_type")

    if content is None:
        logger.warning(
            "lesson_content_invalid",
            lesson_id=str(lesson.id),
            content_type=lesson.content_type,
        )
        return UnavailableContent(lesson_id=lesson.id, reason="invalid_content")
    return content
