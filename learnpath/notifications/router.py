"""Notification API endpoints."""

from fastapi import APIRouter

from learnpath.auth.dependencies import CurrentUser

from .dependencies import NotificationCenterDep
from .schemas import NotificationListResponse, NotificationResponse


router = APIRouter(prefix="/v1/notifications", tags=["notifications"])


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="Fetch my notifications",
)
async def drain_notifications(
    notifications: NotificationCenterDep,
    user: CurrentUser,
) -> NotificationListResponse:
    """Return pending notifications, oldest first, and clear them."""
    items = await notifications.drain(user.user_id)
    return NotificationListResponse(
        items=[NotificationResponse.from_entity(n) for n in items],
        total=len(items),
    )
