"""Notification watch - the background loop behind the bell icon.

Hey future me - one PollCycle does two jobs here:
1. every tick re-checks the favorited events of the logged-in user and sends the
   7-day / 1-day / same-day reminders. NotificationService dedupes per reminder day,
   so ticking every few seconds never double-sends.
2. the inbox unread count is the poll signal, so the bell only rings when it goes UP.

Same session rules as messaging: the cycle dies with the session.
"""

import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime

from eventy.application.services.auth_session import AuthSession
from eventy.application.services.favorite_reconciler import FavoriteReconciler
from eventy.application.services.notification_service import NotificationService
from eventy.application.workers.polling_sync import PollCycle, PollSignal
from eventy.config import PollingSettings
from eventy.domain.entities import Session
from eventy.domain.exceptions import InvalidStateException, RequestFailed, SessionInvalidated
from eventy.domain.ports.notification import Notification
from eventy.infrastructure.integrations.eventy_api import EventApi
from eventy.infrastructure.notifications import InAppNotificationProvider

logger = logging.getLogger(__name__)

NewNotificationCallback = Callable[[Notification, int], Awaitable[None] | None]


def notification_unread_signal(notifications: Sequence[Notification]) -> PollSignal:
    """Build the poll signal for an inbox listing (newest first).

    value = number of unread notifications
    item_id = newest unread notification
    """
    unread = [n for n in notifications if not n.read]
    return PollSignal(
        value=len(unread),
        item_id=unread[0].id if unread else None,
        snapshot={n.id: n.read for n in notifications if n.id is not None},
    )


class NotificationWatcher:
    """Event reminders plus unread polling of the in-app inbox."""

    def __init__(
        self,
        notifications: NotificationService,
        inbox: InAppNotificationProvider,
        favorites: FavoriteReconciler,
        event_api: EventApi,
        auth: AuthSession,
        polling: PollingSettings,
    ) -> None:
        self._notifications = notifications
        self._inbox = inbox
        self._favorites = favorites
        self._event_api = event_api
        self._auth = auth
        self._polling = polling
        self._cycle: PollCycle[list[Notification]] | None = None
        self._unsubscribe = auth.subscribe(self._on_session_changed)

    @property
    def is_watching(self) -> bool:
        return self._cycle is not None and self._cycle.is_running

    async def check_event_reminders(self, user_id: str, now: datetime | None = None) -> int:
        """Send due reminders for the user's favorited events.

        Returns:
            Number of reminders actually sent

        Raises:
            SessionInvalidated: Session died while looking up an event
        """
        sent = 0
        for relation in self._favorites.favorites(user_id):
            try:
                event = await self._event_api.get_event(relation.event_id)
            except SessionInvalidated:
                raise
            except RequestFailed as e:
                # One broken event must not block the reminders of the others
                logger.warning("Skipping reminder check for %s: %s", relation.event_id, e)
                continue
            if await self._notifications.send_event_reminder(user_id, event, now=now):
                sent += 1
        if sent:
            logger.info("Sent %d event reminder(s) to %s", sent, user_id)
        return sent

    async def _poll(self) -> list[Notification]:
        session = self._auth.current_session()
        if session is None:
            return []
        user_id = session.subject_id
        await self.check_event_reminders(user_id)
        return self._inbox.get_notifications(
            user_id, unread_only=True, limit=self._inbox.get_unread_count(user_id)
        )

    def watch(
        self,
        on_new_notification: NewNotificationCallback,
        on_update: Callable[[PollSignal, list[Notification]], Awaitable[None] | None]
        | None = None,
    ) -> PollCycle[list[Notification]]:
        """Start the reminder/inbox cycle. A running cycle is replaced.

        Args:
            on_new_notification: Called with (newest unread notification, unread count)
            on_update: Optional silent-refresh callback for every poll result

        Raises:
            InvalidStateException: Nobody is logged in
        """
        if self._auth.current_session() is None:
            raise InvalidStateException("Notification watch requires a logged-in user")

        async def surface(signal: PollSignal, notifications: list[Notification]) -> None:
            newest = next((n for n in notifications if n.id == signal.item_id), None)
            if newest is None:
                return
            result = on_new_notification(newest, signal.value)
            if inspect.isawaitable(result):
                await result

        self.stop()
        cycle: PollCycle[list[Notification]] = PollCycle(
            name="notifications",
            fetch=self._poll,
            compare=notification_unread_signal,
            on_new=surface,
            interval=self._polling.notifications_interval,
            on_update=on_update,
        )
        self._cycle = cycle
        cycle.start()
        return cycle

    def stop(self) -> None:
        if self._cycle is not None:
            self._cycle.stop()
            self._cycle = None

    def _on_session_changed(self, session: Session | None) -> None:
        if session is None:
            if self.is_watching:
                logger.info("Session ended, stopping notification watch")
            self.stop()

    def close(self) -> None:
        self.stop()
        self._unsubscribe()
