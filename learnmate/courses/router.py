"""Course catalog API endpoints.

Provides read-only routes for:
- Course details
- Ordered lesson outline of a course
- Lesson content
plus outline cache invalidation for content administrators.
"""

from uuid import UUID

from fastapi import APIRouter, status

from learnmate.auth.dependencies import CourseAdminUser, CurrentUser, OptionalUser
from learnmate.auth.permissions import is_at_least_course_admin
from learnmate.auth.schemas import AuthenticatedUser
from learnmate.courses.dependencies import CatalogServiceDep, handle_catalog_error
from learnmate.courses.models import Course
from learnmate.courses.schemas import (
    CourseResponse,
    LessonOutlineResponse,
    LessonResponse,
)
from learnmate.courses.service import CatalogError, CourseNotFoundError


router = APIRouter(prefix="/v1/courses", tags=["courses"])


def can_view_course(user: AuthenticatedUser | None, course: Course) -> bool:
    """Published courses are public; others only for content administrators."""
    if course.is_published:
        return True
    return user is not None and is_at_least_course_admin(user.role)


@router.get(
    "/{course_id}",
    response_model=CourseResponse,
    summary="Get course details",
)
async def get_course(
    course_id: UUID,
    catalog: CatalogServiceDep,
    user: OptionalUser,
) -> CourseResponse:
    """Get a course."""
    course = await catalog.get_course(course_id)
    if not course or not can_view_course(user, course):
        raise handle_catalog_error(CourseNotFoundError())
    return CourseResponse.from_entity(course)


@router.get(
    "/{course_id}/lessons",
    response_model=list[LessonOutlineResponse],
    summary="List course lessons",
)
async def list_course_lessons(
    course_id: UUID,
    catalog: CatalogServiceDep,
    user: OptionalUser,
) -> list[LessonOutlineResponse]:
    """List the lessons of a course in order."""
    course = await catalog.get_course(course_id)
    if not course or not can_view_course(user, course):
        raise handle_catalog_error(CourseNotFoundError())
    outline = await catalog.list_course_lessons(course_id)
    return [LessonOutlineResponse.from_entity(item) for item in outline]


@router.get(
    "/{course_id}/lessons/{lesson_id}",
    response_model=LessonResponse,
    summary="Get lesson content",
)
async def get_lesson(
    course_id: UUID,
    lesson_id: UUID,
    catalog: CatalogServiceDep,
    _user: CurrentUser,
) -> LessonResponse:
    """Get a lesson with its content payload."""
    try:
        lesson = await catalog.get_lesson(lesson_id, course_id=course_id)
    except CatalogError as e:
        raise handle_catalog_error(e) from e
    return LessonResponse.from_entity(lesson)


@router.delete(
    "/{course_id}/lessons/cache",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Invalidate cached lesson outline",
)
async def invalidate_lesson_outline(
    course_id: UUID,
    catalog: CatalogServiceDep,
    _user: CourseAdminUser,
) -> None:
    """Drop the cached outline after lessons were edited (COURSE_ADMIN+)."""
    await catalog.invalidate_outline(course_id)
