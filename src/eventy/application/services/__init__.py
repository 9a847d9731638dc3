"""Application services (use-case level orchestration)."""

from eventy.application.services.auth_session import AuthSession
from eventy.application.services.favorite_reconciler import FavoriteReconciler
from eventy.application.services.messaging_service import (
    MessagingService,
    conversation_unread_signal,
)
from eventy.application.services.notification_service import NotificationService
from eventy.application.services.notification_watch import (
    NotificationWatcher,
    notification_unread_signal,
)
from eventy.application.services.purchase_orchestrator import PurchaseOrchestrator
from eventy.application.services.token_decoder import decode_session, derive_role

__all__ = [
    "AuthSession",
    "FavoriteReconciler",
    "MessagingService",
    "NotificationService",
    "NotificationWatcher",
    "PurchaseOrchestrator",
    "conversation_unread_signal",
    "decode_session",
    "derive_role",
    "notification_unread_signal",
]
