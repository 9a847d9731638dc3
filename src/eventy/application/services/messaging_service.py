"""Messaging service - buyer/seller conversations.

Hey future me - live updates here are plain polling (the backend has no push channel).
watch_conversations() hands the conversation list to a PollCycle and only surfaces a
"new message" when the total unread count goes UP. If the only conversations that grew
are the one the user has open, we stay quiet and just refresh state; otherwise the newest
unfocused one is surfaced.

Watch cycles are tied to the session: as soon as AuthSession publishes "no session",
every cycle we started is stopped. Nobody should keep polling with a dead token.
"""

import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime

from eventy.application.services.auth_session import AuthSession
from eventy.application.workers.polling_sync import PollCycle, PollSignal
from eventy.config import PollingSettings
from eventy.domain.dtos import ConversationDTO, MessageDTO
from eventy.domain.entities import Session
from eventy.domain.exceptions import InvalidStateException, ValidationError
from eventy.infrastructure.integrations.eventy_api import InteractionApi

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 500

NewMessageCallback = Callable[[ConversationDTO, int], Awaitable[None] | None]


def _activity_key(conversation: ConversationDTO) -> tuple[bool, float]:
    activity = conversation.last_activity
    return activity is not None, activity.timestamp() if activity is not None else 0.0


def conversation_unread_signal(conversations: Sequence[ConversationDTO]) -> PollSignal:
    """Build the poll signal for a conversation list.

    value = total unread over all conversations
    item_id = the unread conversation with the newest activity (first one wins on ties)
    snapshot = conversation id -> (unread_count, last activity)
    counts = conversation id -> unread count for unread conversations, newest first
    """
    snapshot: dict[str, tuple[int, datetime | None]] = {
        c.id: (c.unread_count, c.last_activity) for c in conversations
    }
    unread = [c for c in conversations if c.unread_count > 0]
    # sort() is stable (also reversed), so equal timestamps keep list order
    unread.sort(key=_activity_key, reverse=True)

    return PollSignal(
        value=sum(c.unread_count for c in unread),
        item_id=unread[0].id if unread else None,
        snapshot=snapshot,
        counts={c.id: c.unread_count for c in unread},
    )


class MessagingService:
    """Conversations, messages and unread polling for the logged-in user."""

    def __init__(
        self,
        interactions: InteractionApi,
        auth: AuthSession,
        polling: PollingSettings,
    ) -> None:
        self._interactions = interactions
        self._auth = auth
        self._polling = polling
        self._open_conversation_id: str | None = None
        self._cycles: list[PollCycle[list[ConversationDTO]]] = []
        self._unsubscribe = auth.subscribe(self._on_session_changed)

    @property
    def open_conversation_id(self) -> str | None:
        return self._open_conversation_id

    @property
    def active_cycles(self) -> list[PollCycle[list[ConversationDTO]]]:
        return [c for c in self._cycles if c.is_running]

    def _require_session(self) -> Session:
        session = self._auth.current_session()
        if session is None:
            raise InvalidStateException("Messaging requires a logged-in user")
        return session

    def is_focused(self, conversation_id: str) -> bool:
        return conversation_id == self._open_conversation_id

    def watch_conversations(
        self,
        on_new_message: NewMessageCallback,
        on_update: Callable[[PollSignal, list[ConversationDTO]], Awaitable[None] | None]
        | None = None,
    ) -> PollCycle[list[ConversationDTO]]:
        """Start polling the conversation list.

        Args:
            on_new_message: Called with (most relevant conversation, total unread)
            on_update: Optional silent-refresh callback for every poll result

        Returns:
            The running PollCycle (stop() it when the view goes away)
        """
        self._require_session()

        async def surface(signal: PollSignal, conversations: list[ConversationDTO]) -> None:
            conversation = next((c for c in conversations if c.id == signal.item_id), None)
            if conversation is None:
                return
            result = on_new_message(conversation, signal.value)
            if inspect.isawaitable(result):
                await result

        cycle: PollCycle[list[ConversationDTO]] = PollCycle(
            name="conversations",
            fetch=self._interactions.list_conversations,
            compare=conversation_unread_signal,
            on_new=surface,
            interval=self._polling.conversations_interval,
            is_focused=self.is_focused,
            on_update=on_update,
        )
        self._cycles = [c for c in self._cycles if c.is_running]
        self._cycles.append(cycle)
        cycle.start()
        return cycle

    def stop_watching(self) -> None:
        for cycle in self._cycles:
            cycle.stop()
        self._cycles.clear()

    async def list_conversations(self) -> list[ConversationDTO]:
        self._require_session()
        return await self._interactions.list_conversations()

    async def open_conversation(self, conversation_id: str) -> list[MessageDTO]:
        """Focus a conversation and load its messages.

        Listen up: the backend marks the messages as READ when we fetch them, so focus is
        recorded first. A poll landing while we wait won't alert for this conversation.
        """
        self._require_session()
        self._open_conversation_id = conversation_id
        return await self._interactions.get_messages(conversation_id)

    def close_conversation(self) -> None:
        self._open_conversation_id = None

    async def send_message(self, conversation_id: str, content: str) -> None:
        """Send a message.

        Raises:
            ValidationError: Empty content, or longer than MAX_MESSAGE_LENGTH after trimming
        """
        text = content.strip()
        if not text:
            raise ValidationError("Message cannot be empty")
        if len(text) > MAX_MESSAGE_LENGTH:
            raise ValidationError(
                f"Message is too long ({len(text)} > {MAX_MESSAGE_LENGTH} characters)"
            )
        self._require_session()
        await self._interactions.send_message(conversation_id, text)

    async def start_purchase_conversation(
        self, seller_id: str, ticket_id: str, event_id: str | None = None
    ) -> ConversationDTO:
        """Open the buyer/seller conversation for a freshly bought ticket."""
        session = self._require_session()
        if seller_id == session.subject_id:
            raise ValidationError("Cannot start a conversation with yourself")
        conversation = await self._interactions.create_conversation(
            seller_id, ticket_id=ticket_id, event_id=event_id
        )
        logger.info(
            "Conversation %s opened with seller %s for ticket %s",
            conversation.id,
            seller_id,
            ticket_id,
        )
        return conversation

    def _on_session_changed(self, session: Session | None) -> None:
        if session is None:
            if self._cycles:
                logger.info("Session ended, stopping %d conversation watch(es)", len(self._cycles))
            self.stop_watching()
            self._open_conversation_id = None

    def close(self) -> None:
        self.stop_watching()
        self._unsubscribe()
