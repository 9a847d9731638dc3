"""Domain entities."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum


class Role(str, Enum):
    """Application role derived from the token's roles collection."""

    USER = "USER"
    ADMIN = "ADMIN"


# Hey future me, Session is FROZEN on purpose! AuthSession is the only owner and every
# other component gets this exact object as a read-only snapshot. If you need a "changed"
# session (new token), AuthSession builds a new one and publishes it. Never mutate.
@dataclass(frozen=True)
class Session:
    """Authenticated identity plus the bearer token it was decoded from."""

    subject_id: str
    display_name: str
    email: str | None
    role: Role
    access_token: str = field(repr=False)
    token_expiry: datetime | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the token expiry (if known) has passed."""
        if self.token_expiry is None:
            return False
        return (now or datetime.now(UTC)) >= self.token_expiry


# Yo, this one is SINGLE-USE! The code_verifier binds exactly one authorization attempt to
# one code exchange. AuthSession drops it right after the exchange (success or failure)
# so a stale verifier can never be replayed on the next login.
@dataclass(frozen=True)
class PendingAuthRequest:
    """PKCE material for one in-flight authorization attempt."""

    code_verifier: str = field(repr=False)
    code_challenge: str
    redirect_uri: str
    state: str


class PurchaseState(str, Enum):
    """States of the buy-ticket state machine."""

    IDLE = "idle"
    INTENT_CREATED = "intent_created"
    SHEET_PRESENTED = "sheet_presented"
    CONFIRMING = "confirming"
    CONFIRMED = "confirmed"
    SHEET_CANCELLED = "sheet_cancelled"
    CONFIRM_FAILED = "confirm_failed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_PURCHASE_STATES


_TERMINAL_PURCHASE_STATES = frozenset(
    {PurchaseState.CONFIRMED, PurchaseState.SHEET_CANCELLED, PurchaseState.CONFIRM_FAILED}
)

# Forward-only edges. INTENT_CREATED -> CONFIRM_FAILED covers a payment sheet that fails
# to initialize before the user ever sees it.
PURCHASE_TRANSITIONS: dict[PurchaseState, frozenset[PurchaseState]] = {
    PurchaseState.IDLE: frozenset({PurchaseState.INTENT_CREATED}),
    PurchaseState.INTENT_CREATED: frozenset(
        {PurchaseState.SHEET_PRESENTED, PurchaseState.CONFIRM_FAILED}
    ),
    PurchaseState.SHEET_PRESENTED: frozenset(
        {PurchaseState.CONFIRMING, PurchaseState.SHEET_CANCELLED}
    ),
    PurchaseState.CONFIRMING: frozenset(
        {PurchaseState.CONFIRMED, PurchaseState.CONFIRM_FAILED}
    ),
    PurchaseState.CONFIRMED: frozenset(),
    PurchaseState.SHEET_CANCELLED: frozenset(),
    PurchaseState.CONFIRM_FAILED: frozenset(),
}


# Listen up, a PurchaseAttempt only EXISTS once the backend handed us a transaction id.
# Idle is modelled as "no attempt at all", so transaction_id can never be missing while
# a payment sheet is up. A retry is a brand-new attempt - we never rewind this one.
@dataclass
class PurchaseAttempt:
    """One run of the buy-ticket flow from intent to terminal outcome."""

    ticket_id: str
    amount: Decimal
    transaction_id: str
    client_secret: str = field(repr=False)
    state: PurchaseState = PurchaseState.INTENT_CREATED
    seller_id: str | None = None
    event_id: str | None = None
    correlation_id: str | None = None
    history: list[PurchaseState] = field(
        default_factory=lambda: [PurchaseState.INTENT_CREATED]
    )
    error: str | None = None

    def advance(self, new_state: PurchaseState) -> None:
        """Move forward along the state machine.

        Raises:
            ValueError: If the edge does not exist (backward or skipping)
        """
        if new_state not in PURCHASE_TRANSITIONS[self.state]:
            raise ValueError(
                f"Illegal purchase transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
        self.history.append(new_state)


@dataclass
class FavoriteRelation:
    """Favorite link between a user and an event, as known locally."""

    user_id: str
    event_id: str
    server_confirmed: bool = False
    favorite_id: str | None = None
    added_at: datetime | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.user_id, self.event_id)


__all__ = [
    "PURCHASE_TRANSITIONS",
    "FavoriteRelation",
    "PendingAuthRequest",
    "PurchaseAttempt",
    "PurchaseState",
    "Role",
    "Session",
]
