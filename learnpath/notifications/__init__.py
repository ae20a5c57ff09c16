"""User-visible notifications.

Provides:
- Notification, NotificationLevel
- NOTIFICATIONS_TABLES_CQL
- NotificationCenter: see ``learnpath.notifications.service``
"""

from .models import NOTIFICATIONS_TABLES_CQL, Notification, NotificationLevel


__all__ = ["NOTIFICATIONS_TABLES_CQL", "Notification", "NotificationLevel"]
