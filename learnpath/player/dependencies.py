"""FastAPI dependencies for the course player."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .sequencer import PlayerError
from .service import PlayerRegistry


async def get_player_registry(request: Request) -> PlayerRegistry:
    """Get player registry from app state."""
    app_state = request.app.state
    if getattr(app_state, "players", None) is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Player service not available",
        )
    return app_state.players


PlayerRegistryDep = Annotated[PlayerRegistry, Depends(get_player_registry)]


def handle_player_error(error: PlayerError) -> HTTPException:
    """Convert player errors to HTTP exceptions."""
    status_map = {
        "player_not_open": status.HTTP_404_NOT_FOUND,
        "lesson_not_found": status.HTTP_404_NOT_FOUND,
        "no_current_lesson": status.HTTP_409_CONFLICT,
        "not_quiz_lesson": status.HTTP_400_BAD_REQUEST,
        "manual_completion_not_allowed": status.HTTP_400_BAD_REQUEST,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
