"""Notification service for sending notifications through multiple providers.

Hey future me - this is the MAIN ENTRY POINT for notifications!
It builds the marketplace notifications (purchase confirmed, ticket sold, new message,
event reminder, system) and hands each one to ALL configured providers.

Architecture:
- NotificationService (this) uses INotificationProvider interface
- Providers implement the actual delivery (InAppNotificationProvider = local inbox)

Usage:
    inbox = InAppNotificationProvider()
    notifications = NotificationService([inbox])
    await notifications.send_purchase_confirmation("u-1", "tx_9", "Rock Night", Decimal("45.00"))

Delivery failures are logged and reported as False; they never raise into the caller.
A purchase must not look failed just because the bell icon couldn't be updated.
"""

import asyncio
import logging
import math
from collections.abc import Sequence
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from eventy.domain.dtos import EventDTO, MessageDTO
from eventy.domain.ports.notification import (
    INotificationProvider,
    Notification,
    NotificationPriority,
    NotificationResult,
    NotificationType,
)

logger = logging.getLogger(__name__)

# Reminders go out a week before, the day before and on the day itself
EVENT_REMINDER_DAYS = (7, 1, 0)
MESSAGE_PREVIEW_LENGTH = 50


def _format_amount(amount: Decimal | float) -> str:
    return f"{Decimal(str(amount)).quantize(Decimal('0.01'))}€"


def days_until_event(event_start: datetime, now: datetime | None = None) -> int:
    """Whole days until the event, rounded UP (an event in 3 hours is "1 day" away)."""
    delta = event_start - (now or datetime.now(UTC))
    return math.ceil(delta.total_seconds() / 86400)


def should_send_event_reminder(
    event_start: datetime, now: datetime | None = None
) -> tuple[bool, int]:
    """Check whether today is a reminder day for an event.

    Returns:
        (due, days_until) - days_until can be negative for past events, which are never due
    """
    days = days_until_event(event_start, now)
    return days >= 0 and days in EVENT_REMINDER_DAYS, days


def message_preview(content: str) -> str:
    if len(content) > MESSAGE_PREVIEW_LENGTH:
        return f"{content[:MESSAGE_PREVIEW_LENGTH]}..."
    return content


class NotificationService:
    """Service for sending notifications through multiple providers.

    Hey future me - each notification goes to ALL providers in parallel. Providers that
    say they're not configured are skipped on every send (is_configured is cheap).
    """

    def __init__(self, providers: Sequence[INotificationProvider] | None = None) -> None:
        self._providers: list[INotificationProvider] = list(providers or [])
        # (user_id, event_id, days) already reminded; keeps the 7/1/0 reminders one-shot
        self._sent_reminders: set[tuple[str | None, str, int]] = set()

    def add_provider(self, provider: INotificationProvider) -> None:
        self._providers.append(provider)

    async def _configured_providers(self) -> list[INotificationProvider]:
        configured: list[INotificationProvider] = []
        for provider in self._providers:
            try:
                if await provider.is_configured():
                    configured.append(provider)
            except Exception as e:
                logger.warning(f"[NOTIFICATION] Failed to check provider {provider.name}: {e}")
        return configured

    async def send(self, notification: Notification) -> bool:
        """Send an already-built notification to all configured providers.

        Returns:
            True if at least one provider succeeded (or none is configured)
        """
        logger.info(
            f"[NOTIFICATION] {notification.type.value}: {notification.title} - "
            f"{notification.message[:100]}"
        )

        providers = await self._configured_providers()
        if not providers:
            logger.debug("[NOTIFICATION] No providers configured, logged only")
            return True

        results = await self._send_to_providers(notification, providers)
        successes = sum(1 for r in results if r.success)
        failures = len(results) - successes

        if failures > 0:
            failed_providers = [r.provider_name for r in results if not r.success]
            logger.warning(
                f"[NOTIFICATION] {successes}/{len(results)} providers succeeded, "
                f"failed: {failed_providers}"
            )

        return successes > 0

    async def send_notification(
        self,
        notification_type: NotificationType,
        title: str,
        message: str,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        data: dict[str, Any] | None = None,
        user_id: str | None = None,
        related_id: str | None = None,
    ) -> bool:
        """Build a notification and send it. All send_* helpers end up here."""
        return await self.send(
            Notification(
                type=notification_type,
                title=title,
                message=message,
                priority=priority,
                data=data or {},
                user_id=user_id,
                related_id=related_id,
                timestamp=datetime.now(UTC),
            )
        )

    async def _send_to_providers(
        self, notification: Notification, providers: list[INotificationProvider]
    ) -> list[NotificationResult]:
        targets = [p for p in providers if p.supports(notification.type)]
        if not targets:
            return []
        return list(
            await asyncio.gather(*(self._send_to_provider(p, notification) for p in targets))
        )

    async def _send_to_provider(
        self, provider: INotificationProvider, notification: Notification
    ) -> NotificationResult:
        # Individual provider failures don't crash the whole service
        try:
            return await provider.send(notification)
        except Exception as e:
            logger.error(f"[NOTIFICATION] Provider {provider.name} error: {e}")
            return NotificationResult(
                success=False,
                provider_name=provider.name,
                notification_type=notification.type,
                error=str(e),
            )

    # =========================================================================
    # CONVENIENCE METHODS
    # =========================================================================

    async def send_purchase_confirmation(
        self,
        user_id: str,
        transaction_id: str,
        event_name: str | None,
        amount: Decimal | float,
    ) -> bool:
        """Tell the buyer their purchase went through.

        Without an event name the message stays generic; ids mean nothing to a buyer.
        """
        subject = f'Your purchase for "{event_name}"' if event_name else "Your ticket purchase"
        return await self.send_notification(
            notification_type=NotificationType.PURCHASE_CONFIRMATION,
            title="Purchase confirmed!",
            message=f"{subject} has been confirmed. Amount: {_format_amount(amount)}",
            priority=NotificationPriority.HIGH,
            data={"transaction_id": transaction_id, "event_name": event_name},
            user_id=user_id,
            related_id=transaction_id,
        )

    async def send_sale_success(
        self, user_id: str, transaction_id: str, event_name: str, amount: Decimal | float
    ) -> bool:
        """Tell the seller their ticket was sold."""
        return await self.send_notification(
            notification_type=NotificationType.SALE_SUCCESS,
            title="Ticket sold!",
            message=f'Your ticket for "{event_name}" sold for {_format_amount(amount)}',
            priority=NotificationPriority.NORMAL,
            data={"transaction_id": transaction_id, "event_name": event_name},
            user_id=user_id,
            related_id=transaction_id,
        )

    async def send_new_message(
        self, user_id: str, message: MessageDTO, sender_name: str
    ) -> bool:
        return await self.send_notification(
            notification_type=NotificationType.MESSAGE,
            title="New message",
            message=f"{sender_name}: {message_preview(message.content)}",
            data={"conversation_id": message.conversation_id, "sender_id": message.sender_id},
            user_id=user_id,
            related_id=message.conversation_id,
        )

    async def send_event_reminder(
        self, user_id: str, event: EventDTO, now: datetime | None = None
    ) -> bool:
        """Send a reminder if today is a reminder day and it wasn't sent yet.

        Returns:
            True only if a reminder was actually delivered
        """
        if event.start_date is None:
            return False

        due, days = should_send_event_reminder(event.start_date, now)
        reminder_key = (user_id, event.id, days)
        if not due or reminder_key in self._sent_reminders:
            return False

        if days == 0:
            when = "today"
        elif days == 1:
            when = "tomorrow"
        else:
            when = f"in {days} days"
        location = f" at {event.location}" if event.location else ""

        sent = await self.send_notification(
            notification_type=NotificationType.EVENT_REMINDER,
            title="Event reminder",
            message=f'Don\'t forget! "{event.name}" takes place {when}{location}',
            priority=NotificationPriority.LOW,
            data={"event_id": event.id, "days_until": days},
            user_id=user_id,
            related_id=event.id,
        )
        if sent:
            self._sent_reminders.add(reminder_key)
        return sent

    async def send_system_notification(
        self,
        user_id: str | None,
        title: str,
        message: str,
        related_id: str | None = None,
    ) -> bool:
        return await self.send_notification(
            notification_type=NotificationType.SYSTEM,
            title=title,
            message=message,
            user_id=user_id,
            related_id=related_id,
        )
