"""Typed wrappers for the Eventy backend endpoints.

Hey future me - one small class per backend area, all sharing the same ApiClient.
They only translate between JSON and DTOs; all auth and error mapping happens in
ApiClient. A payload that doesn't match the DTO becomes RequestFailed(MALFORMED).
"""

import logging
from collections.abc import Callable
from decimal import Decimal
from typing import Any, TypeVar

from eventy.config import PaymentSettings
from eventy.domain.dtos import (
    ConversationDTO,
    EventDTO,
    FavoriteDTO,
    MessageDTO,
    PaymentIntent,
    TicketDTO,
)
from eventy.domain.exceptions import RequestFailed, RequestFailureKind, ValidationError
from eventy.infrastructure.integrations.api_client import ApiClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _parse(factory: Callable[[Any], T], payload: Any, path: str) -> T:
    try:
        return factory(payload)
    except (ValidationError, ValueError, TypeError, KeyError, AttributeError) as e:
        raise RequestFailed(
            RequestFailureKind.MALFORMED, f"{path}: unexpected payload ({e})"
        ) from e


def _parse_list(factory: Callable[[Any], T], payload: Any, path: str) -> list[T]:
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise RequestFailed(
            RequestFailureKind.MALFORMED, f"{path}: expected a JSON array"
        )
    return [_parse(factory, item, path) for item in payload]


class TransactionApi:
    """POST /transactions and /transactions/{id}/confirm."""

    def __init__(self, api: ApiClient, payment_settings: PaymentSettings) -> None:
        self._api = api
        self._payment_settings = payment_settings

    async def create_payment_intent(self, ticket_id: str, amount: Decimal) -> PaymentIntent:
        """Ask the backend to prepare a transaction and return the payment-sheet secret."""
        path = "/transactions"
        payload = await self._api.post(
            path,
            json={
                "ticketId": ticket_id,
                # JSON has no decimal type; the backend expects a number
                "amount": float(amount),
                "paymentMethod": self._payment_settings.payment_method,
            },
        )
        return _parse(PaymentIntent.from_payload, payload, path)

    async def confirm_transaction(self, transaction_id: str) -> None:
        """Tell the backend the payment went through so the ticket gets marked sold."""
        await self._api.post(f"/transactions/{transaction_id}/confirm")


class InteractionApi:
    """Conversations and messages."""

    BASE_PATH = "/interactions/messages/conversations"

    def __init__(self, api: ApiClient) -> None:
        self._api = api

    async def create_conversation(
        self,
        participant_id: str,
        ticket_id: str | None = None,
        event_id: str | None = None,
    ) -> ConversationDTO:
        """Create (or fetch the existing) conversation with a participant."""
        payload = await self._api.post(
            self.BASE_PATH,
            json={"participantId": participant_id, "ticketId": ticket_id, "eventId": event_id},
        )
        return _parse(ConversationDTO.from_payload, payload, self.BASE_PATH)

    async def list_conversations(self) -> list[ConversationDTO]:
        payload = await self._api.get(self.BASE_PATH)
        return _parse_list(ConversationDTO.from_payload, payload, self.BASE_PATH)

    # Hey future me - GET on the messages endpoint marks them READ on the server as a side
    # effect. Only call it when the user actually opens the conversation!
    async def get_messages(self, conversation_id: str) -> list[MessageDTO]:
        path = f"{self.BASE_PATH}/{conversation_id}/messages"
        payload = await self._api.get(path)
        return _parse_list(MessageDTO.from_payload, payload, path)

    async def send_message(self, conversation_id: str, content: str) -> None:
        await self._api.post(
            f"{self.BASE_PATH}/{conversation_id}/messages", json={"content": content}
        )


class FavoriteApi:
    """Favorites of a user."""

    def __init__(self, api: ApiClient) -> None:
        self._api = api

    async def list_favorites(self, user_id: str) -> list[FavoriteDTO]:
        path = f"/favorites/user/{user_id}"
        payload = await self._api.get(path)
        return _parse_list(FavoriteDTO.from_payload, payload, path)

    async def add_favorite(self, user_id: str, event_id: str) -> FavoriteDTO:
        path = "/favorites"
        payload = await self._api.post(
            path, json={"userId": user_id, "event": {"eventId": event_id}}
        )
        return _parse(FavoriteDTO.from_payload, payload, path)

    async def remove_favorite(self, user_id: str, event_id: str) -> None:
        await self._api.delete(f"/favorites/user/{user_id}/event/{event_id}")


class EventApi:
    """Public catalogue reads (work without a session)."""

    def __init__(self, api: ApiClient) -> None:
        self._api = api

    async def list_events(
        self,
        search: str | None = None,
        location: str | None = None,
        category_id: str | None = None,
    ) -> list[EventDTO]:
        params: dict[str, Any] = {}
        if search:
            params["search"] = search
        # "all" is the UI's "no filter" sentinel
        if location and location != "all":
            params["location"] = location
        if category_id and category_id != "all":
            params["categoryId"] = category_id
        payload = await self._api.get("/events", params=params or None)
        return _parse_list(EventDTO.from_payload, payload, "/events")

    async def get_event(self, event_id: str) -> EventDTO:
        path = f"/events/{event_id}"
        return _parse(EventDTO.from_payload, await self._api.get(path), path)

    async def get_ticket(self, ticket_id: str) -> TicketDTO:
        path = f"/tickets/{ticket_id}"
        return _parse(TicketDTO.from_payload, await self._api.get(path), path)
