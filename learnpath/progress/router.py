"""Student progress tracking API endpoints.

Provides routes for:
- Manual lesson completion (checkbox)
- Course enrollment
- Progress queries and explicit recompute
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from learnpath.auth.dependencies import CurrentUser

from .dependencies import ProgressTrackerDep, handle_progress_error
from .schemas import (
    CourseProgressResponse,
    EnrollmentListResponse,
    EnrollmentResponse,
    EnrollRequest,
    LessonCompletionResponse,
    RecomputeResponse,
)
from .service import ProgressError


router = APIRouter(prefix="/v1/progress", tags=["progress"])
enrollments_router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


# ==============================================================================
# Lesson Completion Endpoints
# ==============================================================================


async def _set_completion(
    lesson_id: UUID,
    completed: bool,
    tracker: ProgressTrackerDep,
    user: CurrentUser,
) -> LessonCompletionResponse:
    lesson = await tracker.store.get_lesson(lesson_id)
    if lesson is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Lesson not found",
        )

    percentage = await tracker.set_lesson_completion(
        user, lesson_id, lesson.course_id, completed
    )
    return LessonCompletionResponse(
        lesson_id=lesson_id,
        course_id=lesson.course_id,
        state=tracker.completion_state(user, lesson_id),
        progress_percentage=percentage,
    )


@router.post(
    "/lessons/{lesson_id}/complete",
    response_model=LessonCompletionResponse,
    summary="Mark lesson as complete",
)
async def mark_lesson_complete(
    lesson_id: UUID,
    tracker: ProgressTrackerDep,
    user: CurrentUser,
) -> LessonCompletionResponse:
    """Manually mark a lesson as complete and recompute the course percentage.

    Storage failures do not raise: the state in the response stays unchanged
    and an error notification is queued for the user.
    """
    return await _set_completion(lesson_id, True, tracker, user)


@router.delete(
    "/lessons/{lesson_id}/complete",
    response_model=LessonCompletionResponse,
    summary="Unmark lesson completion",
)
async def unmark_lesson_complete(
    lesson_id: UUID,
    tracker: ProgressTrackerDep,
    user: CurrentUser,
) -> LessonCompletionResponse:
    """Remove a lesson completion and recompute the course percentage."""
    return await _set_completion(lesson_id, False, tracker, user)


# ==============================================================================
# Progress Query Endpoints
# ==============================================================================


@router.get(
    "/courses/{course_id}",
    response_model=CourseProgressResponse,
    summary="Get course progress",
)
async def get_course_progress(
    course_id: UUID,
    tracker: ProgressTrackerDep,
    user: CurrentUser,
) -> CourseProgressResponse:
    """Refresh completions and report stored and computed percentages."""
    await tracker.load_completions(user)
    enrollment = await tracker.get_enrollment(user, course_id)
    lessons = await tracker.store.list_lessons(course_id)
    completed = [
        lesson.id for lesson in lessons if tracker.is_lesson_completed(user, lesson.id)
    ]

    return CourseProgressResponse(
        course_id=course_id,
        enrolled=enrollment is not None,
        stored_percentage=enrollment.progress_percentage if enrollment else None,
        computed_percentage=await tracker.compute_progress(user, course_id),
        completed_lesson_ids=completed,
        lessons_total=len(lessons),
    )


@router.post(
    "/courses/{course_id}/recompute",
    response_model=RecomputeResponse,
    summary="Recompute course progress",
)
async def recompute_course_progress(
    course_id: UUID,
    tracker: ProgressTrackerDep,
    user: CurrentUser,
) -> RecomputeResponse:
    """Recalculate the enrollment percentage from completion records."""
    percentage = await tracker.recompute_progress(user, course_id)
    return RecomputeResponse(course_id=course_id, progress_percentage=percentage)


# ==============================================================================
# Enrollment Endpoints
# ==============================================================================


@enrollments_router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in course",
)
async def enroll_in_course(
    data: EnrollRequest,
    tracker: ProgressTrackerDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    """Enroll current user in a course."""
    try:
        enrollment = await tracker.enroll(user, data.course_id)
    except ProgressError as e:
        raise handle_progress_error(e) from e
    return EnrollmentResponse.from_entity(enrollment)


@enrollments_router.get(
    "",
    response_model=EnrollmentListResponse,
    summary="Get my enrollments",
)
async def get_my_enrollments(
    tracker: ProgressTrackerDep,
    user: CurrentUser,
) -> EnrollmentListResponse:
    """Get all course enrollments for current user."""
    enrollments = await tracker.list_enrollments(user)
    return EnrollmentListResponse(
        items=[EnrollmentResponse.from_entity(e) for e in enrollments],
        total=len(enrollments),
    )
