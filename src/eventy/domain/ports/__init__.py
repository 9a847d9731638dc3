"""Domain ports (interfaces) for dependency inversion.

Hey future me - everything that needs a HUMAN or a platform SDK lives behind a port:
the system browser for login, the card payment sheet, the secure token storage.
The embedding mobile shell implements these; tests use AsyncMock(spec=...).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

from eventy.domain.ports.notification import (
    INotificationProvider,
    Notification,
    NotificationPriority,
    NotificationResult,
    NotificationType,
)


class ITokenStore(ABC):
    """Secure persistence of the current access token.

    load() returns None when nothing is stored - absence is NOT an error.
    Backend failures raise StorageUnavailable.
    """

    @abstractmethod
    async def save(self, token: str) -> None:
        """Persist the access token, replacing any previous one."""
        pass

    @abstractmethod
    async def load(self) -> str | None:
        """Load the stored access token, or None if absent."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove the stored access token (no-op if absent)."""
        pass


class AuthorizationOutcome(str, Enum):
    """How the external authorization interface was closed."""

    SUCCESS = "success"
    CANCELLED = "cancelled"
    ERROR = "error"


@dataclass(frozen=True)
class AuthorizationCallback:
    """Redirect callback delivered by the authorization browser."""

    outcome: AuthorizationOutcome
    params: dict[str, str] = field(default_factory=dict)
    error: str | None = None


class IAuthorizationBrowser(ABC):
    """External authorization interface (system browser / auth tab)."""

    @abstractmethod
    async def authorize(self, authorization_url: str, redirect_uri: str) -> AuthorizationCallback:
        """Open the authorization URL and wait until the redirect arrives or the user closes it.

        Must always resolve - a dismissed browser returns outcome CANCELLED.
        """
        pass


class PaymentSheetStatus(str, Enum):
    """Result reported by the payment SDK."""

    COMPLETED = "completed"
    CANCELED = "canceled"
    FAILED = "failed"


@dataclass(frozen=True)
class PaymentSheetResult:
    """Outcome of initPaymentSheet / presentPaymentSheet."""

    status: PaymentSheetStatus
    message: str | None = None
    code: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == PaymentSheetStatus.COMPLETED


class IPaymentSheet(ABC):
    """Third-party payment sheet (card entry UI + payment capture)."""

    @abstractmethod
    async def init_payment_sheet(
        self, client_secret: str, merchant_display_name: str
    ) -> PaymentSheetResult:
        """Prepare the sheet for the given payment intent."""
        pass

    @abstractmethod
    async def present_payment_sheet(self) -> PaymentSheetResult:
        """Show the sheet and wait for the user to pay, cancel, or be declined."""
        pass


__all__ = [
    "AuthorizationCallback",
    "AuthorizationOutcome",
    "IAuthorizationBrowser",
    "INotificationProvider",
    "IPaymentSheet",
    "ITokenStore",
    "Notification",
    "NotificationPriority",
    "NotificationResult",
    "NotificationType",
    "PaymentSheetResult",
    "PaymentSheetStatus",
]
