"""Course enrollments and lesson progress.

Provides:
- Course enrollment lifecycle
- Watch progress with resume records and threshold completion
- Lesson completion with duration-weighted course progress
"""

from .models import (
    ENROLLMENT_TABLES_CQL,
    CompletedLesson,
    Enrollment,
    EnrollmentStatus,
    LessonWatch,
)


__all__ = [
    "ENROLLMENT_TABLES_CQL",
    "CompletedLesson",
    "Enrollment",
    "EnrollmentStatus",
    "LessonWatch",
]
