"""Domain exceptions."""

from enum import Enum
from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so code can inspect it without parsing
    # str(exception). This is your base class - DON'T raise it directly! Always use a specific
    # subclass so callers can catch precisely (AuthCancelled vs. AuthStateMismatch, etc).
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class ValidationError(DomainException):
    """Input or wire data failed validation.

    Example:
        raise ValidationError("Message content cannot be empty")
        raise ValidationError("dateSent: array timestamps are not accepted")
    """

    pass


class ConfigurationError(DomainException):
    """Application misconfiguration.

    Example:
        raise ConfigurationError("KEYCLOAK_CLIENT_ID is not configured")
    """

    pass


class InvalidStateException(DomainException):
    """Raised when a state machine is in an invalid state for the requested operation.

    Example: calling begin() on a purchase that already has an intent,
    or reset() while the payment sheet is still open.
    """

    pass


# =============================================================================
# Authentication
# Hey future me - ALL of these are absorbed by AuthSession! The UI only ever sees
# "not logged in". They still exist as distinct types so logs and tests can tell
# a user-cancel from a CSRF-looking state mismatch.
# =============================================================================


class AuthenticationError(DomainException):
    """Base class for login / session restore failures."""

    pass


class AuthCancelled(AuthenticationError):
    """User dismissed the authorization interface."""

    def __init__(self, message: str = "Login was cancelled by the user") -> None:
        super().__init__(message)


class AuthProviderError(AuthenticationError):
    """Identity provider reported an error (redirect error or token endpoint error)."""

    def __init__(self, message: str, error_code: str | None = None) -> None:
        super().__init__(message)
        self.error_code = error_code  # e.g. "invalid_grant", "access_denied"


class AuthStateMismatch(AuthenticationError):
    """Returned OAuth state does not match the pending request."""

    def __init__(self, message: str = "OAuth state mismatch - possible CSRF") -> None:
        super().__init__(message)


class TokenDecodeError(AuthenticationError):
    """Access token is malformed, missing its subject, or expired."""

    pass


class TokenExchangeError(AuthenticationError):
    """Network failure while exchanging the authorization code.

    Distinct from TokenDecodeError: the token never arrived.
    """

    pass


class StorageUnavailable(DomainException):
    """Secure token storage failed (corruption, permissions, locked DB).

    Callers treat this exactly like "no token stored" - it must never block startup.
    """

    pass


# =============================================================================
# Requests
# =============================================================================


class RequestFailureKind(str, Enum):
    """Classification of a failed backend request."""

    NETWORK = "network"  # timeout, DNS, connection refused
    SERVER = "server"  # 5xx
    CLIENT = "client"  # 4xx other than 401/403 (404, 409, 422, ...)
    MALFORMED = "malformed"  # body is not the JSON shape we expect
    UNAUTHORIZED = "unauthorized"  # 401/403


class RequestFailed(DomainException):
    """Backend request failed. ApiClient never retries; the calling feature decides."""

    def __init__(
        self,
        kind: RequestFailureKind,
        detail: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(f"Request failed ({kind.value}): {detail}")
        self.kind = kind
        self.detail = detail
        self.status_code = status_code


class SessionInvalidated(RequestFailed):
    """Backend answered 401/403.

    By the time this is raised the session-invalidated event has ALREADY been
    emitted and handled, so the caller sees an absent session.
    """

    def __init__(self, detail: str, status_code: int) -> None:
        super().__init__(RequestFailureKind.UNAUTHORIZED, detail, status_code)


# =============================================================================
# Purchase flow
# =============================================================================


class PurchaseError(DomainException):
    """Base class for purchase failures. Terminal for the current attempt."""

    pass


class TicketUnavailable(PurchaseError):
    """Backend refused to create a payment intent (sold, reserved, withdrawn)."""

    def __init__(self, ticket_id: str, detail: str = "") -> None:
        message = f"Ticket {ticket_id} is no longer available"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.ticket_id = ticket_id


class PurchaseNetworkError(PurchaseError):
    """Payment intent could not be created because the backend was unreachable."""

    pass


class PaymentSheetUnavailable(PurchaseError):
    """Payment sheet failed to initialize. No money has moved."""

    pass


class PaymentDeclined(PurchaseError):
    """Payment provider declined the card."""

    pass


class PaymentSheetCancelled(PurchaseError):
    """User closed the payment sheet without paying."""

    pass


class ConfirmationFailedAfterPayment(PurchaseError):
    """Payment captured but the backend did not record the sale.

    Hey future me - this is THE scary one! Money has moved but the ticket is not marked
    sold. NEVER retry it automatically and NEVER hide it behind a generic error toast.
    The UI must show "contact support" together with the transaction id.
    """

    requires_support = True

    def __init__(self, transaction_id: str, detail: str = "") -> None:
        message = (
            f"Payment succeeded but confirmation of transaction {transaction_id} failed. "
            "Please contact support."
        )
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.transaction_id = transaction_id


# =============================================================================
# Favorites
# =============================================================================


class ReconcileFailed(DomainException):
    """Backend rejected a favorite toggle; local state was reverted."""

    def __init__(self, user_id: str, event_id: str, detail: str = "") -> None:
        message = f"Could not update favorite {event_id} for user {user_id}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.user_id = user_id
        self.event_id = event_id


# =============================================================================
# Public API - All exceptions that can be imported
# =============================================================================
__all__ = [
    # Base
    "DomainException",
    "ValidationError",
    "ConfigurationError",
    "InvalidStateException",
    # Auth
    "AuthenticationError",
    "AuthCancelled",
    "AuthProviderError",
    "AuthStateMismatch",
    "TokenDecodeError",
    "TokenExchangeError",
    "StorageUnavailable",
    # Requests
    "RequestFailureKind",
    "RequestFailed",
    "SessionInvalidated",
    # Purchase
    "PurchaseError",
    "TicketUnavailable",
    "PurchaseNetworkError",
    "PaymentSheetUnavailable",
    "PaymentDeclined",
    "PaymentSheetCancelled",
    "ConfirmationFailedAfterPayment",
    # Favorites
    "ReconcileFailed",
]
