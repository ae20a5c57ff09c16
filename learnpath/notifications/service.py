"""Notification center over the learning store."""

from datetime import timedelta
from uuid import UUID

import structlog

from learnpath.storage import LearningStore, StorageError

from .models import Notification, NotificationLevel


logger = structlog.get_logger(__name__)

DEFAULT_TTL = timedelta(days=7)


class NotificationCenter:
    """Stores notifications per user until they are drained.

    A drain returns at most ``buffer_size`` of the newest entries and removes
    everything up to the newest one, so older overflow is dropped with it.
    Undrained entries expire after ``ttl``.
    """

    def __init__(
        self,
        store: LearningStore,
        buffer_size: int = 50,
        ttl: timedelta = DEFAULT_TTL,
    ) -> None:
        self.store = store
        self.buffer_size = buffer_size
        self.ttl = ttl

    async def publish(
        self,
        user_id: UUID,
        level: NotificationLevel,
        message: str,
        code: str | None = None,
    ) -> Notification:
        """Store a notification for a user.

        A storage failure is logged and the notification is still returned;
        publishing usually reports another failure and must not mask it.
        """
        notification = Notification(
            user_id=user_id, level=level, message=message, code=code
        )
        try:
            await self.store.insert_notification(
                notification, int(self.ttl.total_seconds())
            )
        except StorageError as e:
            logger.error(
                "notification_persist_failed",
                notified_user_id=str(user_id),
                level=level.value,
                error=e.message,
            )
            return notification

        log_method = logger.warning if level == NotificationLevel.ERROR else logger.debug
        log_method(
            "notification_published",
            notified_user_id=str(user_id),
            level=level.value,
            code=code,
            notification_message=message,
        )
        return notification

    async def success(self, user_id: UUID, message: str) -> Notification:
        return await self.publish(user_id, NotificationLevel.SUCCESS, message)

    async def error(
        self, user_id: UUID, message: str, code: str | None = None
    ) -> Notification:
        return await self.publish(user_id, NotificationLevel.ERROR, message, code)

    async def peek(self, user_id: UUID) -> list[Notification]:
        """Pending notifications, oldest first, without removing them."""
        return await self.store.list_notifications(user_id, self.buffer_size)

    async def drain(self, user_id: UUID) -> list[Notification]:
        """Return and clear a user's pending notifications, oldest first."""
        items = await self.store.list_notifications(user_id, self.buffer_size)
        if items:
            await self.store.delete_notifications(user_id, items[-1].created_at)
        return items
