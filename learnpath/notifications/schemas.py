"""Pydantic schemas for notifications."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from .models import Notification, NotificationLevel


class NotificationResponse(BaseModel):
    id: UUID
    level: NotificationLevel
    message: str
    code: str | None = None
    created_at: datetime

    @classmethod
    def from_entity(cls, notification: Notification) -> "NotificationResponse":
        return cls(
            id=notification.id,
            level=notification.level,
            message=notification.message,
            code=notification.code,
            created_at=notification.created_at,
        )


class NotificationListResponse(BaseModel):
    items: list[NotificationResponse]
    total: int
