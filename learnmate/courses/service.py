"""Course catalog service layer.

Read-only access to courses and their ordered lessons. Lesson outlines are
read on every progress recalculation, so they are cached in Redis when a
client is available.
"""

import json
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from learnmate.core.redis import course_outline_key
from learnmate.courses.models import Course, Lesson, LessonOutline


if TYPE_CHECKING:
    from cassandra.cluster import Session
    from redis.asyncio import Redis

logger = structlog.get_logger(__name__)

DEFAULT_OUTLINE_TTL_SECONDS = 300


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CatalogError(Exception):
    """Base catalog error."""

    def __init__(self, message: str, code: str = "catalog_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CourseNotFoundError(CatalogError):
    """Course does not exist (or is not visible to students)."""

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


class LessonNotFoundError(CatalogError):
    """Lesson does not exist in the course."""

    def __init__(self, message: str = "Lesson not found"):
        super().__init__(message, "lesson_not_found")


# ==============================================================================
# Catalog Service
# ==============================================================================


class CatalogService:
    """Service for reading courses and lessons."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        redis: "Redis | None" = None,
        outline_ttl: int = DEFAULT_OUTLINE_TTL_SECONDS,
    ):
        """Initialize with Cassandra session and optional Redis cache."""
        self.session = session
        self.keyspace = keyspace
        self.redis = redis
        self.outline_ttl = outline_ttl
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        self._get_course_by_id = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.courses WHERE id = ?"
        )
        self._get_lesson_by_id = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.lessons WHERE id = ?"
        )
        self._get_course_lessons = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.lessons_by_course WHERE course_id = ?"
        )

    async def get_course(self, course_id: UUID) -> Course | None:
        """Get course by ID."""
        result = await self.session.aexecute(self._get_course_by_id, [course_id])
        row = result.one()
        return Course.from_row(row) if row else None

    async def get_lesson(self, lesson_id: UUID, course_id: UUID | None = None) -> Lesson:
        """Get a lesson by ID, optionally checking it belongs to a course.

        Raises:
            LessonNotFoundError: If the lesson does not exist or is in
                another course
        """
        result = await self.session.aexecute(self._get_lesson_by_id, [lesson_id])
        row = result.one()
        if not row:
            raise LessonNotFoundError
        lesson = Lesson.from_row(row)
        if course_id is not None and lesson.course_id != course_id:
            raise LessonNotFoundError
        return lesson

    async def list_course_lessons(self, course_id: UUID) -> list[LessonOutline]:
        """Get the lessons of a course ordered by position."""
        cached = await self._get_cached_outline(course_id)
        if cached is not None:
            return cached

        rows = await self.session.aexecute(self._get_course_lessons, [course_id])
        outline = sorted(
            (LessonOutline.from_row(row) for row in rows),
            key=lambda item: item.position,
        )

        await self._cache_outline(course_id, outline)
        return outline

    async def first_lesson(self, course_id: UUID) -> LessonOutline | None:
        """Get the first lesson of a course by position."""
        outline = await self.list_course_lessons(course_id)
        return outline[0] if outline else None

    # ==========================================================================
    # Cache Management
    # ==========================================================================

    async def _get_cached_outline(self, course_id: UUID) -> list[LessonOutline] | None:
        if not self.redis:
            return None
        try:
            cached = await self.redis.get(course_outline_key(str(course_id)))
        except Exception as e:
            logger.warning("catalog_cache_read_failed", course_id=str(course_id), error=str(e))
            return None
        if not cached:
            return None
        return [LessonOutline.from_dict(item) for item in json.loads(cached)]

    async def _cache_outline(self, course_id: UUID, outline: list[LessonOutline]) -> None:
        if not self.redis:
            return
        try:
            await self.redis.setex(
                course_outline_key(str(course_id)),
                self.outline_ttl,
                json.dumps([item.to_dict() for item in outline]),
            )
        except Exception as e:
            logger.warning("catalog_cache_write_failed", course_id=str(course_id), error=str(e))

    async def invalidate_outline(self, course_id: UUID) -> None:
        """Drop the cached outline of a course."""
        if self.redis:
            await self.redis.delete(course_outline_key(str(course_id)))
