"""FastAPI dependencies for progress tracking.

Provides dependency injection for:
- Progress tracker
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import ProgressError, ProgressTracker


async def get_progress_tracker(request: Request) -> ProgressTracker:
    """Get progress tracker from app state."""
    app_state = request.app.state
    if getattr(app_state, "progress_tracker", None) is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Progress service not available",
        )
    return app_state.progress_tracker


# Type alias for dependency injection
ProgressTrackerDep = Annotated[ProgressTracker, Depends(get_progress_tracker)]


def handle_progress_error(error: ProgressError) -> HTTPException:
    """Convert progress errors to HTTP exceptions."""
    status_map = {
        "course_not_found": status.HTTP_404_NOT_FOUND,
        "already_enrolled": status.HTTP_409_CONFLICT,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
