"""FastAPI dependencies for quiz sessions."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import QuizSessionManager
from .session import QuizError


async def get_quiz_sessions(request: Request) -> QuizSessionManager:
    """Get quiz session manager from app state."""
    app_state = request.app.state
    if getattr(app_state, "quiz_sessions", None) is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Quiz service not available",
        )
    return app_state.quiz_sessions


QuizSessionsDep = Annotated[QuizSessionManager, Depends(get_quiz_sessions)]


def handle_quiz_error(error: QuizError) -> HTTPException:
    """Convert quiz errors to HTTP exceptions."""
    status_map = {
        "session_not_found": status.HTTP_404_NOT_FOUND,
        "no_selection": status.HTTP_400_BAD_REQUEST,
        "invalid_option": status.HTTP_400_BAD_REQUEST,
        "invalid_state": status.HTTP_409_CONFLICT,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
