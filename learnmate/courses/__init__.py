"""Read-only course catalog.

Provides:
- Courses and their ordered lessons
- Typed lesson content payloads
- Redis-cached lesson outlines
"""

from .models import (
    CATALOG_TABLES_CQL,
    ContentStatus,
    ContentType,
    Course,
    Lesson,
    LessonOutline,
)


__all__ = [
    "CATALOG_TABLES_CQL",
    "ContentStatus",
    "ContentType",
    "Course",
    "Lesson",
    "LessonOutline",
]
