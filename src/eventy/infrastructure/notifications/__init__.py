"""Notification providers.

Each provider implements INotificationProvider and is handed to NotificationService.
"""

from eventy.infrastructure.notifications.inapp_provider import InAppNotificationProvider

__all__ = ["InAppNotificationProvider"]
