"""Enrollment and lesson progress API endpoints.

Provides routes for:
- Course enrollment lifecycle
- Watch progress reports from lesson players (throttled client-side)
- Lesson completion
- Current lesson navigation
- Completion certificate eligibility
"""

from uuid import UUID

from fastapi import APIRouter, status

from learnmate.auth.dependencies import CurrentUser
from learnmate.core.context import set_lesson_context

from .dependencies import EnrollmentServiceDep, handle_enrollment_error
from .schemas import (
    CertificateResponse,
    EnrollmentDetailResponse,
    EnrollmentListResponse,
    EnrollmentResponse,
    LessonCompletionResponse,
    MessageResponse,
    UpdateWatchProgressRequest,
    WatchProgressResponse,
)
from .service import EnrollmentError


router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


# ==============================================================================
# Enrollment Endpoints
# ==============================================================================


@router.get(
    "",
    response_model=EnrollmentListResponse,
    summary="List my enrollments",
)
async def list_enrollments(
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentListResponse:
    """List the current user's enrollments, newest first."""
    enrollments = await enrollment_service.list_enrollments(user.id)
    items = [EnrollmentResponse.from_entity(e) for e in enrollments]
    return EnrollmentListResponse(items=items, total=len(items))


@router.post(
    "/{course_id}",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in course",
)
async def enroll(
    course_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    """Enroll in a published course.

    The first lesson of the course becomes the current lesson.
    """
    try:
        enrollment = await enrollment_service.enroll(user.id, course_id)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e
    return EnrollmentResponse.from_entity(enrollment)


@router.get(
    "/{course_id}",
    response_model=EnrollmentDetailResponse,
    summary="Get enrollment details",
)
async def get_enrollment(
    course_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentDetailResponse:
    """Get enrollment with lessons, completions and watch records."""
    try:
        return await enrollment_service.get_enrollment_detail(user.id, course_id)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


@router.delete(
    "/{course_id}",
    response_model=MessageResponse,
    summary="Unenroll from course",
)
async def unenroll(
    course_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> MessageResponse:
    """Drop a course, removing its completions and watch records."""
    try:
        await enrollment_service.unenroll(user.id, course_id)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e
    return MessageResponse(message="Successfully unenrolled from course")


# ==============================================================================
# Lesson Progress Endpoints
# ==============================================================================


@router.put(
    "/{course_id}/lessons/{lesson_id}/complete",
    response_model=LessonCompletionResponse,
    summary="Mark lesson complete",
)
async def mark_lesson_complete(
    course_id: UUID,
    lesson_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> LessonCompletionResponse:
    """Mark a lesson complete.

    Idempotent: completing an already completed lesson changes nothing.
    """
    set_lesson_context(course_id, lesson_id)
    try:
        return await enrollment_service.mark_lesson_complete(
            user.id, course_id, lesson_id
        )
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


@router.put(
    "/{course_id}/lessons/{lesson_id}/progress",
    response_model=WatchProgressResponse,
    summary="Update lesson watch progress",
)
async def update_watch_progress(
    course_id: UUID,
    lesson_id: UUID,
    data: UpdateWatchProgressRequest,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> WatchProgressResponse:
    """Record the furthest watched second of a video or YouTube lesson.

    Completes the lesson at 90% watched, or at 60% when `markIfThreshold`
    is set (learner chose to finish early).
    """
    set_lesson_context(course_id, lesson_id)
    try:
        return await enrollment_service.update_watch_progress(
            user_id=user.id,
            course_id=course_id,
            lesson_id=lesson_id,
            watched_seconds=data.watched_seconds,
            duration_seconds=data.duration_seconds,
            mark_if_threshold=data.mark_if_threshold,
        )
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e


@router.put(
    "/{course_id}/current-lesson/{lesson_id}",
    response_model=EnrollmentResponse,
    summary="Set current lesson",
)
async def update_current_lesson(
    course_id: UUID,
    lesson_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    """Set the lesson the learner continues from."""
    set_lesson_context(course_id, lesson_id)
    try:
        enrollment = await enrollment_service.update_current_lesson(
            user.id, course_id, lesson_id
        )
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e
    return EnrollmentResponse.from_entity(enrollment)


@router.get(
    "/{course_id}/certificate",
    response_model=CertificateResponse,
    summary="Get completion certificate",
)
async def get_certificate(
    course_id: UUID,
    enrollment_service: EnrollmentServiceDep,
    user: CurrentUser,
) -> CertificateResponse:
    """Certificate details of a course completed to 100%.

    Returns 400 while the course is not yet completed.
    """
    try:
        return await enrollment_service.get_certificate(user.id, course_id)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e
