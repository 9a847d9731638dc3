"""Authentication session service.

Hey future me - this is the SINGLE authority over the Session! Nobody else creates,
replaces, or destroys it. Other components either read current_session() or subscribe
to SESSION_CHANGED on the event bus.

OAuth Flow (authorization code + PKCE against Keycloak):
1. login() creates a PendingAuthRequest (verifier, challenge, state)
2. the authorization browser opens Keycloak and waits for the redirect (or cancel)
3. state is checked, the code is exchanged with the SAME verifier
4. the token is decoded into a Session, persisted, published
5. the PendingAuthRequest is dropped no matter what happened

Startup: restore_session() loads the persisted token once and flips is_loading.
Invalidation: ApiClient emits SESSION_INVALIDATED on 401/403 -> we logout().
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from eventy.domain.entities import PendingAuthRequest, Session
from eventy.domain.events import AuthEvent, AuthEventBus
from eventy.domain.exceptions import (
    AuthCancelled,
    AuthProviderError,
    AuthStateMismatch,
    InvalidStateException,
    StorageUnavailable,
    TokenDecodeError,
)
from eventy.domain.ports import (
    AuthorizationOutcome,
    IAuthorizationBrowser,
    ITokenStore,
)
from eventy.application.services.token_decoder import decode_session
from eventy.infrastructure.integrations.keycloak_client import KeycloakClient

logger = logging.getLogger(__name__)

SessionListener = Callable[[Session | None], Awaitable[None] | None]


class AuthSession:
    """Owns the login state of the app."""

    # Hey future me - 5s is plenty for a local key/value read. If the secure store hangs
    # (locked DB on a cold device), we give up and start logged out instead of showing a
    # splash screen forever.
    RESTORE_TIMEOUT_SECONDS = 5.0

    def __init__(
        self,
        keycloak: KeycloakClient,
        browser: IAuthorizationBrowser,
        token_store: ITokenStore,
        events: AuthEventBus,
    ) -> None:
        """Initialize auth session.

        Args:
            keycloak: Identity provider client
            browser: External authorization interface
            token_store: Secure token persistence
            events: Session event bus shared with ApiClient
        """
        self._keycloak = keycloak
        self._browser = browser
        self._token_store = token_store
        self._events = events
        self._session: Session | None = None
        self._pending: PendingAuthRequest | None = None
        self._is_loading = True
        self._restored = False
        events.subscribe(AuthEvent.SESSION_INVALIDATED, self._on_session_invalidated)

    @property
    def is_loading(self) -> bool:
        """True until restore_session() has finished (whatever the outcome)."""
        return self._is_loading

    @property
    def is_authenticated(self) -> bool:
        return self.current_session() is not None

    @property
    def login_in_progress(self) -> bool:
        return self._pending is not None

    def current_session(self) -> Session | None:
        """Latest published session; an expired one is reported as absent."""
        session = self._session
        if session is not None and session.is_expired():
            return None
        return session

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Listen for session changes. Returns an unsubscribe callable."""
        return self._events.subscribe(AuthEvent.SESSION_CHANGED, listener)

    async def _publish(self, session: Session | None) -> None:
        self._session = session
        await self._events.emit(AuthEvent.SESSION_CHANGED, session)

    def _new_pending_request(self) -> PendingAuthRequest:
        verifier = KeycloakClient.generate_code_verifier()
        return PendingAuthRequest(
            code_verifier=verifier,
            code_challenge=KeycloakClient.generate_code_challenge(verifier),
            redirect_uri=self._keycloak.settings.redirect_uri,
            state=KeycloakClient.generate_state(),
        )

    async def login(self) -> Session:
        """Run the authorization-code + PKCE flow.

        Returns:
            The new Session

        Raises:
            InvalidStateException: A login is already in progress
            AuthCancelled: User closed the authorization interface
            AuthProviderError: Keycloak reported an error
            AuthStateMismatch: Redirect state does not match the pending request
            TokenExchangeError: Token endpoint unreachable
            TokenDecodeError: Token received but unusable
        """
        if self._pending is not None:
            raise InvalidStateException("A login is already in progress")

        pending = self._new_pending_request()
        self._pending = pending
        try:
            authorization_url = self._keycloak.get_authorization_url(
                pending.state, pending.code_challenge, pending.redirect_uri
            )
            logger.debug("Starting login with state=%s...", pending.state[:8])

            callback = await self._browser.authorize(authorization_url, pending.redirect_uri)

            if callback.outcome == AuthorizationOutcome.CANCELLED:
                logger.info("Login cancelled by user")
                raise AuthCancelled()
            if callback.outcome == AuthorizationOutcome.ERROR:
                message = (
                    callback.error
                    or callback.params.get("error_description")
                    or callback.params.get("error")
                    or "Authorization failed"
                )
                logger.warning("Identity provider error during login: %s", message)
                raise AuthProviderError(message, error_code=callback.params.get("error"))

            if callback.params.get("state") != pending.state:
                logger.warning("Login rejected: state mismatch")
                raise AuthStateMismatch()

            code = callback.params.get("code")
            if not code:
                raise AuthProviderError("Redirect did not contain an authorization code")

            token_data = await self._keycloak.exchange_code(
                code, pending.code_verifier, pending.redirect_uri
            )
            try:
                session = decode_session(token_data["access_token"])
            except TokenDecodeError:
                logger.error("Received an access token that cannot be decoded")
                raise

            await self._persist(session.access_token)
            await self._publish(session)
            logger.info("Logged in as %s (%s)", session.subject_id, session.role.value)
            return session
        finally:
            # Single-use: the verifier of this attempt is gone whatever happened
            self._pending = None

    async def _persist(self, token: str) -> None:
        try:
            await self._token_store.save(token)
        except StorageUnavailable as e:
            # Session still works in memory; it just won't survive a restart
            logger.warning("Could not persist access token: %s", e)

    async def restore_session(self) -> Session | None:
        """Restore a persisted session at process start.

        Never raises. Corrupt or expired tokens are cleared and the app starts logged out.
        """
        if self._restored:
            return self.current_session()

        session: Session | None = None
        try:
            token = await self._load_token()
            if token:
                try:
                    session = decode_session(token)
                except TokenDecodeError as e:
                    logger.info("Discarding stored token: %s", e)
                    await self._clear_store()
            if session is not None:
                await self._publish(session)
                logger.info("Restored session for %s", session.subject_id)
        finally:
            self._restored = True
            self._is_loading = False
        return session

    async def _load_token(self) -> str | None:
        try:
            return await asyncio.wait_for(
                self._token_store.load(), timeout=self.RESTORE_TIMEOUT_SECONDS
            )
        except StorageUnavailable as e:
            logger.warning("Secure store unavailable at startup, starting logged out: %s", e)
        except TimeoutError:
            logger.warning("Secure store did not answer in time, starting logged out")
        return None

    async def _clear_store(self) -> None:
        try:
            await self._token_store.clear()
        except StorageUnavailable as e:
            logger.warning("Could not clear stored token: %s", e)

    async def logout(self) -> None:
        """Drop the session. Calling it while logged out is a no-op."""
        if self._session is None:
            return
        subject_id = self._session.subject_id
        self._session = None
        await self._clear_store()
        await self._publish(None)
        logger.info("Logged out %s", subject_id)

    async def _on_session_invalidated(self, status_code: int | None) -> None:
        if self._session is None:
            return
        logger.info("Session invalidated by backend (%s), logging out", status_code)
        await self.logout()
