"""Client lifecycle management for startup and shutdown.

Hey future me - this is the composition root. The embedding app (mobile shell, CLI, tests)
hands in the two human-facing ports and gets a fully wired EventyClient back:

    async with client_lifespan(browser, payment_sheet) as client:
        if client.auth.current_session() is None:
            await client.auth.login()
        await client.purchases.begin("tk_1", "45.00")

Startup order matters:
1. logging (so everything after is visible)
2. secure store tables
3. restore_session() - flips is_loading exactly once, never raises
Shutdown closes in reverse: polling, HTTP clients, DB engine.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from eventy.application.services import (
    AuthSession,
    FavoriteReconciler,
    MessagingService,
    NotificationService,
    NotificationWatcher,
    PurchaseOrchestrator,
)
from eventy.config import Settings, get_settings
from eventy.domain.entities import Session
from eventy.domain.events import AuthEventBus
from eventy.domain.ports import IAuthorizationBrowser, IPaymentSheet
from eventy.infrastructure.integrations import (
    ApiClient,
    EventApi,
    FavoriteApi,
    InteractionApi,
    KeycloakClient,
    TransactionApi,
)
from eventy.infrastructure.notifications import InAppNotificationProvider
from eventy.infrastructure.observability import configure_logging
from eventy.infrastructure.persistence import Database, DatabaseTokenStore

logger = logging.getLogger(__name__)


@dataclass
class EventyClient:
    """Every wired component of the client core."""

    settings: Settings
    events: AuthEventBus
    database: Database
    token_store: DatabaseTokenStore
    keycloak: KeycloakClient
    api: ApiClient
    event_api: EventApi
    auth: AuthSession
    messaging: MessagingService
    inbox: InAppNotificationProvider
    notifications: NotificationService
    notification_watch: NotificationWatcher
    favorites: FavoriteReconciler
    purchases: PurchaseOrchestrator

    async def aclose(self) -> None:
        """Stop polling and release HTTP clients and the DB engine."""
        self.messaging.close()
        self.notification_watch.close()
        await self.api.close()
        await self.keycloak.close()
        await self.database.close()


def build_client(
    browser: IAuthorizationBrowser,
    payment_sheet: IPaymentSheet,
    settings: Settings | None = None,
) -> EventyClient:
    """Wire all components. Does no I/O; see client_lifespan() for startup."""
    settings = settings or get_settings()
    events = AuthEventBus()

    database = Database(settings.database)
    token_store = DatabaseTokenStore(database)
    keycloak = KeycloakClient(settings.keycloak)
    # ApiClient subscribes before AuthSession so its token copy is updated first on
    # every session change
    api = ApiClient(settings.api, events)
    auth = AuthSession(keycloak, browser, token_store, events)

    inbox = InAppNotificationProvider()
    notifications = NotificationService([inbox])
    messaging = MessagingService(InteractionApi(api), auth, settings.polling)
    favorites = FavoriteReconciler(FavoriteApi(api))
    event_api = EventApi(api)
    notification_watch = NotificationWatcher(
        notifications, inbox, favorites, event_api, auth, settings.polling
    )

    def forget_user_state(session: Session | None) -> None:
        if session is None:
            favorites.clear()

    auth.subscribe(forget_user_state)

    purchases = PurchaseOrchestrator(
        TransactionApi(api, settings.payment),
        payment_sheet,
        settings.payment,
        auth=auth,
        messaging=messaging,
        notifications=notifications,
        event_api=event_api,
    )

    return EventyClient(
        settings=settings,
        events=events,
        database=database,
        token_store=token_store,
        keycloak=keycloak,
        api=api,
        event_api=event_api,
        auth=auth,
        messaging=messaging,
        inbox=inbox,
        notifications=notifications,
        notification_watch=notification_watch,
        favorites=favorites,
        purchases=purchases,
    )


@asynccontextmanager
async def client_lifespan(
    browser: IAuthorizationBrowser,
    payment_sheet: IPaymentSheet,
    settings: Settings | None = None,
) -> AsyncGenerator[EventyClient, None]:
    """Start the client core, yield it, and always clean up."""
    settings = settings or get_settings()

    configure_logging(
        log_level=settings.logging.level,
        json_format=settings.logging.json_format,
        app_name=settings.app_name,
    )
    logger.info("Starting %s client core", settings.app_name)

    client = build_client(browser, payment_sheet, settings)
    try:
        try:
            await client.database.create_tables()
        except (SQLAlchemyError, OSError) as e:
            # Startup must not die on a broken secure store; the token store reports
            # StorageUnavailable and we simply start logged out
            logger.error("Secure store unavailable: %s", e)

        session = await client.auth.restore_session()
        logger.info(
            "Startup complete (%s)",
            f"logged in as {session.subject_id}" if session else "logged out",
        )
        yield client
    finally:
        logger.info("Shutting down %s client core", settings.app_name)
        await client.aclose()
