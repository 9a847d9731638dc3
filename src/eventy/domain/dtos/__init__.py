"""
Data Transfer Objects for the Eventy backend API.

Hey future me - these DTOs are the ONLY place where backend JSON field names
(camelCase, nested "event": {"eventId": ...}) are known. Integrations call
`from_payload()` and hand typed objects to the application layer, so services never
poke at raw dicts.

Flow: backend JSON -> DTO.from_payload() (validates) -> application service

A missing required field raises ValidationError; ApiClient callers translate that into
RequestFailed(MALFORMED) because the backend broke its contract, not the user.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from eventy.domain.exceptions import ValidationError
from eventy.domain.value_objects import parse_optional_timestamp, parse_timestamp


def _require(payload: dict[str, Any], key: str, dto: str) -> Any:
    if not isinstance(payload, dict):
        raise ValidationError(f"{dto}: expected JSON object, got {type(payload).__name__}")
    value = payload.get(key)
    if value is None or value == "":
        raise ValidationError(f"{dto}: missing required field '{key}'")
    return value


def _decimal(value: Any, field_name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"{field_name}: not a number: {value!r}") from e


@dataclass(frozen=True)
class PaymentIntent:
    """Result of POST /transactions."""

    client_secret: str
    transaction_id: str

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "PaymentIntent":
        return cls(
            client_secret=str(_require(payload, "clientSecret", "PaymentIntent")),
            transaction_id=str(_require(payload, "transactionId", "PaymentIntent")),
        )


# Hey future me - the backend Message uses a Long id and its own field names
# (dateSent, isRead, messageType). Keep them mapped HERE, not in the UI.
@dataclass(frozen=True)
class MessageDTO:
    """A single chat message."""

    id: str
    conversation_id: str
    sender_id: str
    receiver_id: str | None
    content: str
    date_sent: datetime
    is_read: bool = False
    message_type: str = "GENERAL"

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "MessageDTO":
        return cls(
            id=str(_require(payload, "id", "Message")),
            conversation_id=str(_require(payload, "conversationId", "Message")),
            sender_id=str(_require(payload, "senderId", "Message")),
            receiver_id=payload.get("receiverId"),
            content=str(payload.get("content") or ""),
            date_sent=parse_timestamp(_require(payload, "dateSent", "Message"), "dateSent"),
            is_read=bool(payload.get("isRead", False)),
            message_type=str(payload.get("messageType") or "GENERAL"),
        )


@dataclass(frozen=True)
class ConversationDTO:
    """A buyer/seller conversation with its unread counter."""

    id: str
    participant1_id: str
    participant2_id: str
    unread_count: int = 0
    last_message: MessageDTO | None = None
    related_ticket_id: str | None = None
    related_event_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def last_activity(self) -> datetime | None:
        """Timestamp used to rank conversations (last message, else updatedAt)."""
        if self.last_message is not None:
            return self.last_message.date_sent
        return self.updated_at

    def other_participant(self, user_id: str) -> str:
        """Return the participant id that is not user_id."""
        if self.participant1_id == user_id:
            return self.participant2_id
        return self.participant1_id

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ConversationDTO":
        last_message_raw = payload.get("lastMessage") if isinstance(payload, dict) else None
        return cls(
            id=str(_require(payload, "id", "Conversation")),
            participant1_id=str(_require(payload, "participant1Id", "Conversation")),
            participant2_id=str(_require(payload, "participant2Id", "Conversation")),
            unread_count=int(payload.get("unreadCount") or 0),
            last_message=(
                MessageDTO.from_payload(last_message_raw) if last_message_raw else None
            ),
            related_ticket_id=payload.get("relatedTicketId"),
            related_event_id=payload.get("relatedEventId"),
            created_at=parse_optional_timestamp(payload.get("createdAt"), "createdAt"),
            updated_at=parse_optional_timestamp(payload.get("updatedAt"), "updatedAt"),
        )


@dataclass(frozen=True)
class FavoriteDTO:
    """Server-side favorite record."""

    id: str
    user_id: str
    event_id: str
    added_at: datetime | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "FavoriteDTO":
        event = _require(payload, "event", "Favorite")
        return cls(
            id=str(_require(payload, "favoriteId", "Favorite")),
            user_id=str(_require(payload, "userId", "Favorite")),
            event_id=str(_require(event, "eventId", "Favorite.event")),
            added_at=parse_optional_timestamp(payload.get("addedDate"), "addedDate"),
        )


@dataclass(frozen=True)
class EventDTO:
    """Public event listing."""

    id: str
    name: str
    start_date: datetime | None = None
    end_date: datetime | None = None
    location: str | None = None
    description: str | None = None
    status: str = "active"
    image_url: str | None = None
    category_label: str | None = None
    price_range: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "EventDTO":
        return cls(
            id=str(_require(payload, "id", "Event")),
            name=str(_require(payload, "name", "Event")),
            start_date=parse_optional_timestamp(payload.get("startDate"), "startDate"),
            end_date=parse_optional_timestamp(payload.get("endDate"), "endDate"),
            location=payload.get("location"),
            description=payload.get("description"),
            status=str(payload.get("status") or "active"),
            image_url=payload.get("imageUrl"),
            category_label=payload.get("categoryLabel"),
            price_range=payload.get("priceRange"),
        )


@dataclass(frozen=True)
class TicketDTO:
    """Ticket offered for resale."""

    id: str
    event_id: str
    vendor_id: str
    sale_price: Decimal
    status: str
    original_price: Decimal | None = None
    seller_name: str | None = None
    section: str | None = None
    row: int | None = None
    seat: str | None = None

    @property
    def is_available(self) -> bool:
        return self.status == "AVAILABLE"

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "TicketDTO":
        original = payload.get("originalPrice") if isinstance(payload, dict) else None
        return cls(
            id=str(_require(payload, "id", "Ticket")),
            event_id=str(_require(payload, "eventId", "Ticket")),
            vendor_id=str(_require(payload, "vendorId", "Ticket")),
            sale_price=_decimal(_require(payload, "salePrice", "Ticket"), "salePrice"),
            status=str(_require(payload, "status", "Ticket")),
            original_price=_decimal(original, "originalPrice") if original is not None else None,
            seller_name=payload.get("sellerName"),
            section=payload.get("section"),
            row=payload.get("row"),
            seat=payload.get("seat"),
        )


__all__ = [
    "ConversationDTO",
    "EventDTO",
    "FavoriteDTO",
    "MessageDTO",
    "PaymentIntent",
    "TicketDTO",
]
