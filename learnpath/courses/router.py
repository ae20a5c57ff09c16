"""Course authoring API endpoints.

Provides routes for:
- Courses: catalogue, create, update, submit for review
- Lessons: list, create, update
- Quizzes: quiz settings and questions of quiz lessons
- Admin: approve / reject pending courses
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from learnpath.auth.dependencies import AdminUser, InstructorUser

from .dependencies import CourseServiceDep, handle_course_error
from .models import CourseStatus
from .schemas import (
    CourseListResponse,
    CourseResponse,
    CreateCourseRequest,
    CreateLessonRequest,
    LessonListResponse,
    LessonResponse,
    QuestionRequest,
    QuestionResponse,
    QuizRequest,
    QuizResponse,
    UpdateCourseRequest,
    UpdateLessonRequest,
)
from .service import CourseError


# ==============================================================================
# Courses Router
# ==============================================================================

router_courses = APIRouter(prefix="/v1/courses", tags=["courses"])


@router_courses.get(
    "",
    response_model=CourseListResponse,
    summary="List approved courses",
)
async def list_approved_courses(
    course_service: CourseServiceDep,
) -> CourseListResponse:
    """Public catalogue: approved courses only."""
    courses = await course_service.list_courses(CourseStatus.APPROVED)
    return CourseListResponse(
        items=[CourseResponse.from_entity(c) for c in courses],
        total=len(courses),
    )


@router_courses.post(
    "",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create course",
)
async def create_course(
    data: CreateCourseRequest,
    course_service: CourseServiceDep,
    user: InstructorUser,
) -> CourseResponse:
    """Create a draft course (INSTRUCTOR+)."""
    course = await course_service.create_course(user, data)
    return CourseResponse.from_entity(course)


@router_courses.get(
    "/mine",
    response_model=CourseListResponse,
    summary="List my courses",
)
async def list_my_courses(
    course_service: CourseServiceDep,
    user: InstructorUser,
) -> CourseListResponse:
    """Courses authored by the current instructor, any status."""
    courses = await course_service.list_instructor_courses(user)
    return CourseListResponse(
        items=[CourseResponse.from_entity(c) for c in courses],
        total=len(courses),
    )


@router_courses.get(
    "/{course_id}",
    response_model=CourseResponse,
    summary="Get course",
)
async def get_course(
    course_id: UUID,
    course_service: CourseServiceDep,
) -> CourseResponse:
    course = await course_service.get_course(course_id)
    if course is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Course not found",
        )
    return CourseResponse.from_entity(course)


@router_courses.put(
    "/{course_id}",
    response_model=CourseResponse,
    summary="Update course",
)
async def update_course(
    course_id: UUID,
    data: UpdateCourseRequest,
    course_service: CourseServiceDep,
    user: InstructorUser,
) -> CourseResponse:
    """Update course (owner or ADMIN only)."""
    try:
        course = await course_service.update_course(user, course_id, data)
    except CourseError as e:
        raise handle_course_error(e) from e
    return CourseResponse.from_entity(course)


@router_courses.post(
    "/{course_id}/submit",
    response_model=CourseResponse,
    summary="Submit course for review",
)
async def submit_course(
    course_id: UUID,
    course_service: CourseServiceDep,
    user: InstructorUser,
) -> CourseResponse:
    """Draft or rejected course goes to pending review."""
    try:
        course = await course_service.submit_for_review(user, course_id)
    except CourseError as e:
        raise handle_course_error(e) from e
    return CourseResponse.from_entity(course)


# --------------------------------------------------------------------------
# Lessons
# --------------------------------------------------------------------------


@router_courses.get(
    "/{course_id}/lessons",
    response_model=LessonListResponse,
    summary="List course lessons",
)
async def list_lessons(
    course_id: UUID,
    course_service: CourseServiceDep,
) -> LessonListResponse:
    """Lessons ordered by ``order_index``."""
    lessons = await course_service.list_lessons(course_id)
    return LessonListResponse(
        items=[LessonResponse.from_entity(lesson) for lesson in lessons],
        total=len(lessons),
    )


@router_courses.post(
    "/{course_id}/lessons",
    response_model=LessonResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create lesson",
)
async def create_lesson(
    course_id: UUID,
    data: CreateLessonRequest,
    course_service: CourseServiceDep,
    user: InstructorUser,
) -> LessonResponse:
    try:
        lesson = await course_service.create_lesson(user, course_id, data)
    except CourseError as e:
        raise handle_course_error(e) from e
    return LessonResponse.from_entity(lesson)


@router_courses.put(
    "/lessons/{lesson_id}",
    response_model=LessonResponse,
    summary="Update lesson",
)
async def update_lesson(
    lesson_id: UUID,
    data: UpdateLessonRequest,
    course_service: CourseServiceDep,
    user: InstructorUser,
) -> LessonResponse:
    try:
        lesson = await course_service.update_lesson(user, lesson_id, data)
    except CourseError as e:
        raise handle_course_error(e) from e
    return LessonResponse.from_entity(lesson)


# --------------------------------------------------------------------------
# Quizzes
# --------------------------------------------------------------------------


@router_courses.get(
    "/lessons/{lesson_id}/quiz",
    response_model=QuizResponse,
    summary="Get lesson quiz (author view)",
)
async def get_quiz(
    lesson_id: UUID,
    course_service: CourseServiceDep,
    user: InstructorUser,
) -> QuizResponse:
    try:
        found = await course_service.get_quiz(user, lesson_id)
    except CourseError as e:
        raise handle_course_error(e) from e
    if found is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Quiz not found",
        )
    quiz, questions = found
    return QuizResponse.from_entity(quiz, questions)


@router_courses.put(
    "/lessons/{lesson_id}/quiz",
    response_model=QuizResponse,
    summary="Create or update lesson quiz",
)
async def save_quiz(
    lesson_id: UUID,
    data: QuizRequest,
    course_service: CourseServiceDep,
    user: InstructorUser,
) -> QuizResponse:
    try:
        quiz = await course_service.save_quiz(user, lesson_id, data)
    except CourseError as e:
        raise handle_course_error(e) from e
    return QuizResponse.from_entity(quiz)


@router_courses.post(
    "/lessons/{lesson_id}/quiz/questions",
    response_model=QuestionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add quiz question",
)
async def add_question(
    lesson_id: UUID,
    data: QuestionRequest,
    course_service: CourseServiceDep,
    user: InstructorUser,
) -> QuestionResponse:
    try:
        question = await course_service.save_question(user, lesson_id, data)
    except CourseError as e:
        raise handle_course_error(e) from e
    return QuestionResponse.model_validate(question)


@router_courses.put(
    "/lessons/{lesson_id}/quiz/questions/{question_id}",
    response_model=QuestionResponse,
    summary="Update quiz question",
)
async def update_question(
    lesson_id: UUID,
    question_id: UUID,
    data: QuestionRequest,
    course_service: CourseServiceDep,
    user: InstructorUser,
) -> QuestionResponse:
    try:
        question = await course_service.save_question(
            user, lesson_id, data, question_id=question_id
        )
    except CourseError as e:
        raise handle_course_error(e) from e
    return QuestionResponse.model_validate(question)


@router_courses.delete(
    "/lessons/{lesson_id}/quiz/questions/{question_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete quiz question",
)
async def delete_question(
    lesson_id: UUID,
    question_id: UUID,
    course_service: CourseServiceDep,
    user: InstructorUser,
) -> None:
    try:
        await course_service.delete_question(user, lesson_id, question_id)
    except CourseError as e:
        raise handle_course_error(e) from e


# ==============================================================================
# Admin Router
# ==============================================================================

router_admin = APIRouter(prefix="/v1/admin/courses", tags=["admin"])


@router_admin.get(
    "",
    response_model=CourseListResponse,
    summary="List courses for review",
)
async def admin_list_courses(
    course_service: CourseServiceDep,
    user: AdminUser,
    status_filter: CourseStatus | None = Query(None, alias="status"),
) -> CourseListResponse:
    """All courses, optionally filtered by status (ADMIN only)."""
    courses = await course_service.list_courses(status_filter)
    return CourseListResponse(
        items=[CourseResponse.from_entity(c) for c in courses],
        total=len(courses),
    )


@router_admin.post(
    "/{course_id}/approve",
    response_model=CourseResponse,
    summary="Approve course",
)
async def approve_course(
    course_id: UUID,
    course_service: CourseServiceDep,
    user: AdminUser,
) -> CourseResponse:
    try:
        course = await course_service.approve_course(user, course_id)
    except CourseError as e:
        raise handle_course_error(e) from e
    return CourseResponse.from_entity(course)


@router_admin.post(
    "/{course_id}/reject",
    response_model=CourseResponse,
    summary="Reject course",
)
async def reject_course(
    course_id: UUID,
    course_service: CourseServiceDep,
    user: AdminUser,
) -> CourseResponse:
    try:
        course = await course_service.reject_course(user, course_id)
    except CourseError as e:
        raise handle_course_error(e) from e
    return CourseResponse.from_entity(course)
