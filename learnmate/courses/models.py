"""Database models for the course catalog.

Cassandra table definitions for:
- Courses: Main course table
- Lessons: Lesson content, looked up by id
- Lookup tables: Lessons of a course ordered by position

The catalog is read-only from this service's perspective; authoring tools
write the same tables.
"""

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from learnmate.utils import ensure_utc_aware


class ContentStatus(str, Enum):
    """Course publication status."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ContentType(str, Enum):
    """Lesson content type."""

    VIDEO = "video"
    YOUTUBE = "youtube"
    TEXT = "text"
    QUIZ = "quiz"
    ASSIGNMENT = "assignment"
    ASSESSMENT = "assessment"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    description TEXT,
    status TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# content_data holds the type-specific payload as JSON text
LESSON_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons (
    id UUID PRIMARY KEY,
    course_id UUID,
    title TEXT,
    description TEXT,
    position INT,
    duration_minutes INT,
    content_type TEXT,
    content_data TEXT,
    is_preview BOOLEAN,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# Lookup: ordered lessons of a course (for progress and next lesson)
LESSONS_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons_by_course (
    course_id UUID,
    position INT,
    lesson_id UUID,
    title TEXT,
    duration_minutes INT,
    content_type TEXT,
    PRIMARY KEY (course_id, position, lesson_id)
) WITH CLUSTERING ORDER BY (position ASC, lesson_id ASC)
"""

# All CQL statements for table setup
CATALOG_TABLES_CQL = [
    COURSE_TABLE_CQL,
    LESSON_TABLE_CQL,
    LESSONS_BY_COURSE_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Course:
    """Course entity.

    Attributes:
        id: Unique identifier (UUID)
        title: Course title
        description: Course description
        status: Publication status (draft, published, archived)
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    def __init__(
        self,
        id: UUID | None = None,
        title: str = "",
        description: str | None = None,
        status: str = ContentStatus.DRAFT.value,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.title = title
        self.description = description
        self.status = status
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @property
    def is_published(self) -> bool:
        """Check if students can enroll in the course."""
        return self.status == ContentStatus.PUBLISHED.value

    @classmethod
    def from_row(cls, row: Any) -> "Course":
        """Create Course instance from Cassandra row."""
        return cls(
            id=row.id,
            title=row.title or "",
            description=row.description,
            status=row.status or ContentStatus.DRAFT.value,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Course {self.title} ({self.status})>"


class Lesson:
    """Lesson entity with its type-specific content payload.

    Attributes:
        id: Unique identifier (UUID)
        course_id: Owning course
        title: Lesson title
        description: Lesson description
        position: Order within the course (1-based)
        duration_minutes: Nominal duration, used to weight course progress
        content_type: Type of content (video, youtube, text, quiz, assessment)
        content_data: Raw content payload (decoded JSON object)
        is_preview: Free preview lesson
    """

    def __init__(
        self,
        id: UUID | None = None,
        course_id: UUID | None = None,
        title: str = "",
        description: str | None = None,
        position: int = 1,
        duration_minutes: int = 0,
        content_type: str | None = None,
        content_data: dict[str, Any] | None = None,
        is_preview: bool = False,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.course_id = course_id
        self.title = title
        self.description = description
        self.position = position
        self.duration_minutes = duration_minutes
        self.content_type = content_type
        self.content_data = content_data
        self.is_preview = is_preview
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @staticmethod
    def decode_content(raw: str | None) -> dict[str, Any] | None:
        """Decode the stored JSON payload; anything but an object is dropped."""
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            return None
        return data if isinstance(data, dict) else None

    @classmethod
    def from_row(cls, row: Any) -> "Lesson":
        """Create Lesson instance from Cassandra row."""
        return cls(
            id=row.id,
            course_id=row.course_id,
            title=row.title or "",
            description=row.description,
            position=row.position or 1,
            duration_minutes=row.duration_minutes or 0,
            content_type=row.content_type,
            content_data=cls.decode_content(row.content_data),
            is_preview=bool(row.is_preview),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "course_id": self.course_id,
            "title": self.title,
            "description": self.description,
            "position": self.position,
            "duration_minutes": self.duration_minutes,
            "content_type": self.content_type,
            "content_data": self.content_data,
            "is_preview": self.is_preview,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Lesson {self.position}. {self.title} ({self.content_type})>"


class LessonOutline:
    """Ordered lesson entry of a course (lessons_by_course row).

    Carries only what progress calculation and navigation need, and is the
    shape cached in Redis.
    """

    def __init__(
        self,
        course_id: UUID,
        lesson_id: UUID,
        position: int,
        title: str = "",
        duration_minutes: int = 0,
        content_type: str | None = None,
    ):
        self.course_id = course_id
        self.lesson_id = lesson_id
        self.position = position
        self.title = title
        self.duration_minutes = duration_minutes
        self.content_type = content_type

    @classmethod
    def from_row(cls, row: Any) -> "LessonOutline":
        """Create LessonOutline instance from Cassandra row."""
        return cls(
            course_id=row.course_id,
            lesson_id=row.lesson_id,
            position=row.position,
            title=row.title or "",
            duration_minutes=row.duration_minutes or 0,
            content_type=row.content_type,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LessonOutline":
        """Create LessonOutline from its cached (JSON) form."""
        return cls(
            course_id=UUID(data["course_id"]),
            lesson_id=UUID(data["lesson_id"]),
            position=int(data["position"]),
            title=data.get("title", ""),
            duration_minutes=int(data.get("duration_minutes") or 0),
            content_type=data.get("content_type"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "course_id": str(self.course_id),
            "lesson_id": str(self.lesson_id),
            "position": self.position,
            "title": self.title,
            "duration_minutes": self.duration_minutes,
            "content_type": self.content_type,
        }

    def __repr__(self) -> str:
        return f"<LessonOutline {self.position}. {self.lesson_id}>"
