"""FastAPI dependencies for course reviews."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import ReviewError, ReviewService


async def get_review_service(request: Request) -> ReviewService:
    """Get review service from app state."""
    app_state = request.app.state
    if getattr(app_state, "review_service", None) is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Review service not available",
        )
    return app_state.review_service


ReviewServiceDep = Annotated[ReviewService, Depends(get_review_service)]


def handle_review_error(error: ReviewError) -> HTTPException:
    """Convert review errors to HTTP exceptions."""
    status_map = {
        "course_not_found": status.HTTP_404_NOT_FOUND,
        "review_not_found": status.HTTP_404_NOT_FOUND,
        "not_enrolled": status.HTTP_403_FORBIDDEN,
        "already_reviewed": status.HTTP_409_CONFLICT,
    }

    status_code = status_map.get(error.code, status.HTTP_400_BAD_REQUEST)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
