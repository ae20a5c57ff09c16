"""FastAPI dependencies for course authoring.

Provides dependency injection for:
- Course service instance
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import CourseError, CourseService


async def get_course_service(request: Request) -> CourseService:
    """Get course service from app state."""
    app_state = request.app.state
    if getattr(app_state, "course_service", None) is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Course service not available",
        )
    return app_state.course_service


CourseServiceDep = Annotated[CourseService, Depends(get_course_service)]


def handle_course_error(error: CourseError) -> HTTPException:
    """Convert course errors to HTTP exceptions."""
    status_map = {
        "course_not_found": status.HTTP_404_NOT_FOUND,
        "lesson_not_found": status.HTTP_404_NOT_FOUND,
        "quiz_not_found": status.HTTP_404_NOT_FOUND,
        "question_not_found": status.HTTP_404_NOT_FOUND,
        "not_course_owner": status.HTTP_403_FORBIDDEN,
        "invalid_status_transition": status.HTTP_409_CONFLICT,
        "invalid_question": status.HTTP_400_BAD_REQUEST,
        "not_quiz_lesson": status.HTTP_400_BAD_REQUEST,
    }

    status_code = status_map.get(error.code, status.HTTP_400_BAD_REQUEST)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
