"""In-app notification provider keeping an in-memory inbox.

Hey future me - this is what the notification bell in the app reads from!
Unlike push bridges (fire-and-forget), the inbox keeps notifications around so the UI can:
- List them (newest first, optionally per user / unread only / by type)
- Show an unread badge
- Mark one or all as read
- Delete them

The inbox lives as long as the process. Old entries beyond max_count are dropped
oldest-first so a chatty conversation can't grow it forever.
"""

import logging
from uuid import uuid4

from eventy.domain.ports.notification import (
    INotificationProvider,
    Notification,
    NotificationResult,
    NotificationType,
)

logger = logging.getLogger(__name__)


class InAppNotificationProvider(INotificationProvider):
    """In-app notification provider storing notifications in memory."""

    def __init__(self, enabled: bool = True, max_count: int = 100) -> None:
        """Initialize the inbox.

        Args:
            enabled: Disabled providers reject every send
            max_count: Max notifications kept (oldest dropped first)
        """
        self._enabled = enabled
        self._max_count = max_count
        self._inbox: list[Notification] = []

    @property
    def name(self) -> str:
        """Provider name."""
        return "inapp"

    @property
    def supported_types(self) -> list[NotificationType]:
        """In-app supports all notification types."""
        return []

    async def is_configured(self) -> bool:
        return self._enabled

    async def send(self, notification: Notification) -> NotificationResult:
        """Store notification in the inbox."""
        if not self._enabled:
            return NotificationResult(
                success=False,
                provider_name=self.name,
                notification_type=notification.type,
                error="In-app notifications disabled",
            )

        if notification.id is None:
            notification.id = f"notif_{uuid4().hex[:12]}"
        self._inbox.append(notification)
        self._cleanup_old_notifications()

        logger.info(
            "[NOTIFICATION] In-app stored: %s - %s (id=%s)",
            notification.type.value,
            notification.title[:50],
            notification.id,
        )
        return NotificationResult(
            success=True,
            provider_name=self.name,
            notification_type=notification.type,
            external_id=notification.id,
        )

    def _cleanup_old_notifications(self) -> None:
        overflow = len(self._inbox) - self._max_count
        if overflow > 0:
            del self._inbox[:overflow]

    # =========================================================================
    # QUERY METHODS (for UI use)
    # =========================================================================

    def get_notifications(
        self,
        user_id: str | None = None,
        unread_only: bool = False,
        notification_type: NotificationType | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Notification]:
        """Get notifications, newest first, with filtering and pagination."""
        matches = [
            n
            for n in reversed(self._inbox)
            if (user_id is None or n.user_id == user_id)
            and (not unread_only or not n.read)
            and (notification_type is None or n.type == notification_type)
        ]
        return matches[offset : offset + limit]

    def get_unread_count(self, user_id: str | None = None) -> int:
        return sum(
            1
            for n in self._inbox
            if not n.read and (user_id is None or n.user_id == user_id)
        )

    def mark_as_read(self, notification_ids: list[str], user_id: str | None = None) -> int:
        """Mark notifications as read.

        Returns:
            Number of notifications that changed from unread to read
        """
        wanted = set(notification_ids)
        changed = 0
        for n in self._inbox:
            if n.id in wanted and not n.read and (user_id is None or n.user_id == user_id):
                n.read = True
                changed += 1
        return changed

    def mark_all_as_read(self, user_id: str | None = None) -> int:
        changed = 0
        for n in self._inbox:
            if not n.read and (user_id is None or n.user_id == user_id):
                n.read = True
                changed += 1
        return changed

    def delete_notification(self, notification_id: str, user_id: str | None = None) -> bool:
        """Delete one notification. Returns False if it wasn't found."""
        for index, n in enumerate(self._inbox):
            if n.id == notification_id and (user_id is None or n.user_id == user_id):
                del self._inbox[index]
                return True
        return False

    def clear(self, user_id: str | None = None) -> None:
        """Drop every notification (of one user, or all)."""
        if user_id is None:
            self._inbox.clear()
        else:
            self._inbox = [n for n in self._inbox if n.user_id != user_id]


__all__ = ["InAppNotificationProvider"]
