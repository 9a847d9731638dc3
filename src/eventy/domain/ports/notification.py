"""Notification provider interfaces for the notification service.

Hey future me - this is the PORT (interface) for notification providers!
Each provider implements this interface. The NotificationService builds the
marketplace notifications (purchase confirmed, ticket sold, new message, event
reminder) and hands them to every configured provider.

Architecture:
- NotificationService (Application Layer) -> INotificationProvider (Port)
- InAppNotificationProvider (local inbox), push bridges, etc. -> implement the port
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class NotificationType(str, Enum):
    """Types of notifications the marketplace produces."""

    PURCHASE_CONFIRMATION = "purchase_confirmation"
    SALE_SUCCESS = "sale_success"
    EVENT_REMINDER = "event_reminder"
    MESSAGE = "message"
    SYSTEM = "system"


class NotificationPriority(str, Enum):
    """Priority levels for notifications.

    Hey future me - providers can use this to decide urgency:
    - LOW: reminders, can wait
    - NORMAL: messages, sales
    - HIGH: anything money-related the user must see now
    """

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


@dataclass
class Notification:
    """Notification payload handed to providers.

    Example:
        notif = Notification(
            type=NotificationType.SALE_SUCCESS,
            title="Ticket sold!",
            message='Your ticket for "Rock Night" sold for 45.00€',
            user_id="u-1",
            related_id="tx_9",
        )
    """

    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.NORMAL
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime | None = None
    user_id: str | None = None
    related_id: str | None = None
    read: bool = False
    id: str | None = None

    def __post_init__(self) -> None:
        """Set timestamp if not provided."""
        if self.timestamp is None:
            self.timestamp = datetime.now(UTC)


@dataclass
class NotificationResult:
    """Result of sending a notification through one provider."""

    success: bool
    provider_name: str
    notification_type: NotificationType
    error: str | None = None
    external_id: str | None = None


class INotificationProvider(ABC):
    """Interface for notification providers.

    Each provider must:
    1. Have a unique name
    2. Declare which notification types it supports (empty list = all)
    3. Implement send() to deliver the notification
    4. Implement is_configured()
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name for this provider (e.g., 'inapp', 'push')."""
        pass

    @property
    @abstractmethod
    def supported_types(self) -> list[NotificationType]:
        """List of notification types this provider can handle.

        Return empty list to support ALL types.
        """
        pass

    @abstractmethod
    async def send(self, notification: Notification) -> NotificationResult:
        """Send a notification through this provider."""
        pass

    @abstractmethod
    async def is_configured(self) -> bool:
        """Check if this provider is ready to deliver."""
        pass

    def supports(self, notification_type: NotificationType) -> bool:
        """Check if this provider supports a notification type."""
        supported = self.supported_types
        return len(supported) == 0 or notification_type in supported


__all__ = [
    "NotificationType",
    "NotificationPriority",
    "Notification",
    "NotificationResult",
    "INotificationProvider",
]
