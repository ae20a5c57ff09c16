"""Database models for user-visible notifications.

These are the toasts a player shows after an action ("Lesson marked as
complete", "Failed to save quiz attempt"). They are stored per user until the
user fetches them, and expire on their own after a retention period.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class NotificationLevel(str, Enum):
    """Severity shown to the user."""

    SUCCESS = "success"
    INFO = "info"
    ERROR = "error"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Partitioned by user; newest first so a LIMIT returns the latest entries
NOTIFICATIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.notifications (
    user_id UUID,
    created_at TIMESTAMP,
    notification_id UUID,
    level TEXT,
    message TEXT,
    code TEXT,
    PRIMARY KEY ((user_id), created_at, notification_id)
) WITH CLUSTERING ORDER BY (created_at DESC, notification_id ASC)
"""

NOTIFICATIONS_TABLES_CQL = [NOTIFICATIONS_TABLE_CQL]


# ==============================================================================
# Entity Classes
# ==============================================================================


def _utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt


@dataclass(frozen=True)
class Notification:
    """One message for one user."""

    user_id: UUID
    level: NotificationLevel
    message: str
    code: str | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "Notification":
        """Create Notification from Cassandra row."""
        return cls(
            id=row.notification_id,
            user_id=row.user_id,
            level=NotificationLevel(row.level),
            message=row.message,
            code=row.code,
            created_at=_utc(row.created_at),
        )
