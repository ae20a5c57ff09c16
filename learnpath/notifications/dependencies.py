"""FastAPI dependencies for notifications."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import NotificationCenter


async def get_notification_center(request: Request) -> NotificationCenter:
    """Get notification center from app state."""
    app_state = request.app.state
    if getattr(app_state, "notifications", None) is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Notification service not available",
        )
    return app_state.notifications


NotificationCenterDep = Annotated[NotificationCenter, Depends(get_notification_center)]
