"""Purchase orchestrator - the buy-ticket state machine.

Hey future me - READ THIS before touching anything here. Money moves in this file.

    IDLE -> INTENT_CREATED -> SHEET_PRESENTED -> CONFIRMING -> CONFIRMED
                   |                 |                |
                   v                 v                v
             CONFIRM_FAILED   SHEET_CANCELLED   CONFIRM_FAILED
           (sheet init failed)  (cancel/decline)  (paid, not recorded!)

- begin(): only from IDLE, creates the payment intent. A failed begin leaves us in IDLE
  with NO attempt object around.
- present_sheet(): only from INTENT_CREATED. Cancel or decline = no confirm call, ever.
- Confirm failure after a successful payment raises ConfirmationFailedAfterPayment.
  That one goes to a human. Never retry it here.
- reset(): back to IDLE from IDLE, INTENT_CREATED or any terminal state. Not while the
  sheet is up or we're confirming, those must finish first.
- Cancelling the task that runs present_sheet() still lands in a terminal state:
  SHEET_CANCELLED while the sheet is up, CONFIRM_FAILED while confirming (money may
  have moved, same escalation as a failed confirm).

States never go backwards; a retry is a NEW attempt (reset + begin).
"""

import logging
from collections.abc import Callable
from decimal import Decimal, InvalidOperation
from uuid import uuid4

from eventy.application.services.auth_session import AuthSession
from eventy.application.services.messaging_service import MessagingService
from eventy.application.services.notification_service import NotificationService
from eventy.config import PaymentSettings
from eventy.domain.entities import PurchaseAttempt, PurchaseState
from eventy.domain.exceptions import (
    ConfirmationFailedAfterPayment,
    DomainException,
    InvalidStateException,
    PaymentDeclined,
    PaymentSheetCancelled,
    PaymentSheetUnavailable,
    PurchaseNetworkError,
    RequestFailed,
    RequestFailureKind,
    SessionInvalidated,
    TicketUnavailable,
    ValidationError,
)
from eventy.domain.ports import IPaymentSheet, PaymentSheetResult, PaymentSheetStatus
from eventy.infrastructure.integrations.eventy_api import EventApi, TransactionApi
from eventy.infrastructure.observability.logging import correlation_scope

logger = logging.getLogger(__name__)

StateListener = Callable[[PurchaseState], None]

# Listen up: these are the only states reset() refuses. Something external (the payment
# sheet, the confirm request) is still running and will write the outcome.
_UNRESETTABLE_STATES = frozenset({PurchaseState.SHEET_PRESENTED, PurchaseState.CONFIRMING})


def _to_amount(amount: Decimal | float | int | str) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"Invalid amount: {amount!r}") from e
    if not value.is_finite() or value <= 0:
        raise ValidationError(f"Amount must be positive, got {amount!r}")
    return value


class PurchaseOrchestrator:
    """Drives one ticket purchase at a time through the payment flow."""

    def __init__(
        self,
        transactions: TransactionApi,
        payment_sheet: IPaymentSheet,
        payment_settings: PaymentSettings,
        auth: AuthSession | None = None,
        messaging: MessagingService | None = None,
        notifications: NotificationService | None = None,
        event_api: EventApi | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            transactions: Backend transaction endpoints
            payment_sheet: Payment SDK bridge
            payment_settings: Merchant name shown on the sheet
            auth: Optional, used to address the buyer's purchase notification
            messaging: Optional, opens the buyer/seller conversation after a sale
            notifications: Optional, sends the purchase confirmation notification
            event_api: Optional, looks up the event name for that notification
        """
        self._transactions = transactions
        self._payment_sheet = payment_sheet
        self._payment_settings = payment_settings
        self._auth = auth
        self._messaging = messaging
        self._notifications = notifications
        self._event_api = event_api
        self._attempt: PurchaseAttempt | None = None
        self._begin_pending = False
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> PurchaseState:
        if self._attempt is None:
            return PurchaseState.IDLE
        return self._attempt.state

    @property
    def attempt(self) -> PurchaseAttempt | None:
        return self._attempt

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Observe state transitions (IDLE is reported on reset)."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, state: PurchaseState) -> None:
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Purchase state listener failed")

    def _advance(self, attempt: PurchaseAttempt, new_state: PurchaseState) -> None:
        previous = attempt.state
        try:
            attempt.advance(new_state)
        except ValueError as e:
            raise InvalidStateException(str(e)) from e
        logger.info(
            "Purchase %s: %s -> %s", attempt.transaction_id, previous.value, new_state.value
        )
        self._notify(new_state)

    def _require(self, expected: PurchaseState) -> PurchaseAttempt:
        if self._attempt is None or self._attempt.state != expected:
            raise InvalidStateException(
                f"Purchase must be in state {expected.value}, currently {self.state.value}"
            )
        return self._attempt

    async def begin(
        self,
        ticket_id: str,
        amount: Decimal | float | int | str,
        seller_id: str | None = None,
        event_id: str | None = None,
    ) -> PurchaseAttempt:
        """Create the payment intent for a ticket.

        Raises:
            InvalidStateException: Not IDLE, or another begin() is still waiting
            ValidationError: Amount is not a positive number
            TicketUnavailable: Backend rejected the intent (sold, reserved, ...)
            PurchaseNetworkError: Backend unreachable or answered garbage
            SessionInvalidated: Session died (401/403), user must log in again
        """
        # Everything up to the first await runs synchronously, so a second begin()
        # issued while this one is waiting is rejected right here instead of queued
        if self._attempt is not None or self._begin_pending:
            raise InvalidStateException(
                f"Cannot begin a purchase while in state {self.state.value}"
            )
        value = _to_amount(amount)

        self._begin_pending = True
        with correlation_scope(f"purchase-{uuid4().hex[:12]}") as correlation_id:
            logger.info(
                "Starting purchase of ticket %s for %s (correlation_id=%s)",
                ticket_id,
                value,
                correlation_id,
            )
            try:
                intent = await self._transactions.create_payment_intent(ticket_id, value)
            except SessionInvalidated:
                raise
            except RequestFailed as e:
                if e.kind == RequestFailureKind.CLIENT:
                    logger.warning("Ticket %s rejected by backend: %s", ticket_id, e.detail)
                    raise TicketUnavailable(ticket_id, e.detail) from e
                logger.warning("Could not create payment intent for %s: %s", ticket_id, e)
                raise PurchaseNetworkError(
                    f"Could not create payment intent: {e.detail}"
                ) from e
            finally:
                self._begin_pending = False

            self._attempt = PurchaseAttempt(
                ticket_id=ticket_id,
                amount=value,
                transaction_id=intent.transaction_id,
                client_secret=intent.client_secret,
                seller_id=seller_id,
                event_id=event_id,
                correlation_id=correlation_id,
            )
            logger.info("Payment intent created: transaction %s", intent.transaction_id)
            self._notify(PurchaseState.INTENT_CREATED)
        return self._attempt

    async def present_sheet(self) -> PurchaseAttempt:
        """Show the payment sheet and, if the user pays, confirm with the backend.

        Returns:
            The CONFIRMED attempt

        Raises:
            InvalidStateException: Not INTENT_CREATED
            PaymentSheetUnavailable: Sheet failed to initialize (-> CONFIRM_FAILED, no charge)
            PaymentSheetCancelled: User closed the sheet (-> SHEET_CANCELLED)
            PaymentDeclined: Provider declined (-> SHEET_CANCELLED)
            ConfirmationFailedAfterPayment: Paid but not recorded (-> CONFIRM_FAILED)
            asyncio.CancelledError: Caller cancelled us; the attempt still lands in a
                terminal state (SHEET_CANCELLED or CONFIRM_FAILED) so reset() works
        """
        attempt = self._require(PurchaseState.INTENT_CREATED)
        # present_sheet may run in another task than begin(); keep the log lines together
        with correlation_scope(attempt.correlation_id or None):
            return await self._run_sheet(attempt)

    async def _run_sheet(self, attempt: PurchaseAttempt) -> PurchaseAttempt:
        init_result = await self._init_sheet(attempt)
        if not init_result.ok:
            attempt.error = init_result.message or "Payment sheet could not be initialized"
            self._advance(attempt, PurchaseState.CONFIRM_FAILED)
            raise PaymentSheetUnavailable(attempt.error)

        self._advance(attempt, PurchaseState.SHEET_PRESENTED)
        try:
            sheet_result = await self._present(attempt)
        except BaseException:
            # Cancelled while the sheet was up; no success was reported, so nothing to confirm
            attempt.error = "Payment sheet interrupted"
            self._advance(attempt, PurchaseState.SHEET_CANCELLED)
            logger.warning("Payment sheet for %s interrupted", attempt.transaction_id)
            raise

        if sheet_result.status == PaymentSheetStatus.CANCELED:
            attempt.error = sheet_result.message or "Payment cancelled"
            self._advance(attempt, PurchaseState.SHEET_CANCELLED)
            raise PaymentSheetCancelled(attempt.error)
        if sheet_result.status != PaymentSheetStatus.COMPLETED:
            attempt.error = sheet_result.message or "Payment declined"
            self._advance(attempt, PurchaseState.SHEET_CANCELLED)
            raise PaymentDeclined(attempt.error)

        self._advance(attempt, PurchaseState.CONFIRMING)
        try:
            await self._transactions.confirm_transaction(attempt.transaction_id)
        except RequestFailed as e:
            self._confirm_failed(attempt, e.detail, e)
            raise ConfirmationFailedAfterPayment(attempt.transaction_id, e.detail) from e
        except Exception as e:
            detail = str(e) or type(e).__name__
            self._confirm_failed(attempt, detail, e)
            raise ConfirmationFailedAfterPayment(attempt.transaction_id, detail) from e
        except BaseException as e:
            # Cancellation must still propagate; the money question goes to a human
            self._confirm_failed(attempt, "Confirmation interrupted", e)
            raise

        self._advance(attempt, PurchaseState.CONFIRMED)
        await self._after_confirmed(attempt)
        return attempt

    def _confirm_failed(
        self, attempt: PurchaseAttempt, detail: str, error: BaseException
    ) -> None:
        attempt.error = detail
        self._advance(attempt, PurchaseState.CONFIRM_FAILED)
        logger.error(
            "PAYMENT CAPTURED BUT NOT CONFIRMED: transaction %s, ticket %s: %r",
            attempt.transaction_id,
            attempt.ticket_id,
            error,
        )

    async def _init_sheet(self, attempt: PurchaseAttempt) -> PaymentSheetResult:
        try:
            return await self._payment_sheet.init_payment_sheet(
                attempt.client_secret, self._payment_settings.merchant_display_name
            )
        except Exception as e:
            logger.warning("Payment sheet init raised for %s: %s", attempt.transaction_id, e)
            return PaymentSheetResult(PaymentSheetStatus.FAILED, message=str(e))

    async def _present(self, attempt: PurchaseAttempt) -> PaymentSheetResult:
        # An SDK crash before reporting success means we never got a capture; treat as decline
        try:
            return await self._payment_sheet.present_payment_sheet()
        except Exception as e:
            logger.warning("Payment sheet raised for %s: %s", attempt.transaction_id, e)
            return PaymentSheetResult(PaymentSheetStatus.FAILED, message=str(e))

    # Hey future me - everything in here is a NICE-TO-HAVE after the sale is recorded.
    # A failure is logged and that's it; it must never turn a confirmed purchase into an error.
    async def _after_confirmed(self, attempt: PurchaseAttempt) -> None:
        if self._messaging is not None and attempt.seller_id:
            try:
                await self._messaging.start_purchase_conversation(
                    attempt.seller_id, attempt.ticket_id, attempt.event_id
                )
            except DomainException as e:
                logger.warning(
                    "Could not open seller conversation for %s: %s", attempt.transaction_id, e
                )

        if self._notifications is not None and self._auth is not None:
            session = self._auth.current_session()
            if session is not None:
                await self._notifications.send_purchase_confirmation(
                    session.subject_id,
                    attempt.transaction_id,
                    await self._event_name(attempt),
                    attempt.amount,
                )

    async def _event_name(self, attempt: PurchaseAttempt) -> str | None:
        if self._event_api is None or not attempt.event_id:
            return None
        try:
            event = await self._event_api.get_event(attempt.event_id)
        except DomainException as e:
            logger.warning("Could not look up event %s: %s", attempt.event_id, e)
            return None
        return event.name

    def reset(self) -> None:
        """Drop the current attempt and go back to IDLE.

        Raises:
            InvalidStateException: Sheet is up, confirmation is running, or begin() is pending
        """
        if self._begin_pending:
            raise InvalidStateException("Cannot reset while a payment intent is being created")
        if self.state in _UNRESETTABLE_STATES:
            raise InvalidStateException(f"Cannot reset while in state {self.state.value}")
        if self._attempt is None:
            return
        logger.debug("Purchase %s reset", self._attempt.transaction_id)
        self._attempt = None
        self._notify(PurchaseState.IDLE)
