"""Backend API gateway client.

Hey future me - this is the SINGLE chokepoint every backend call goes through!
It does exactly three things:
1. Adds "Authorization: Bearer <token>" when we have a token (public endpoints work without)
2. On 401/403: clears its cached token copy, emits SESSION_INVALIDATED and waits until every
   listener (AuthSession -> logout) is done, THEN raises SessionInvalidated
3. Maps every other failure to RequestFailed(kind, detail)

It does NOT retry. Retry policy belongs to the feature that knows whether a call is
idempotent (hint: confirmTransaction is not something you blindly replay).
"""

import logging
from typing import Any

import httpx

from eventy.config import ApiSettings
from eventy.domain.entities import Session
from eventy.domain.events import AuthEvent, AuthEventBus
from eventy.domain.exceptions import (
    RequestFailed,
    RequestFailureKind,
    SessionInvalidated,
)
from eventy.infrastructure.observability.logging import get_correlation_id

logger = logging.getLogger(__name__)

AUTH_FAILURE_STATUSES = (401, 403)


class ApiClient:
    """HTTP client for the Eventy API gateway."""

    def __init__(
        self,
        settings: ApiSettings,
        events: AuthEventBus,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize API client.

        Args:
            settings: API gateway settings
            events: Session event bus (for token updates and invalidation)
            http_client: Optional pre-built HTTP client (not closed by close())
        """
        self.settings = settings
        self._events = events
        self._client = http_client
        self._owns_client = http_client is None
        self._token: str | None = None
        self._unsubscribe = events.subscribe(AuthEvent.SESSION_CHANGED, self._on_session_changed)

    # Hey future me - the token here is a COPY. AuthSession publishes every session change and
    # we just mirror the bearer string. Never derive identity from this field.
    def _on_session_changed(self, session: Session | None) -> None:
        self._token = session.access_token if session is not None else None

    @property
    def has_token(self) -> bool:
        return self._token is not None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.base_url,
                timeout=self.settings.timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client and stop listening for session changes."""
        self._unsubscribe()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _build_url(self, path: str) -> str:
        # Injected clients may not carry our base_url, so always send an absolute URL
        return f"{self.settings.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _build_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        correlation_id = get_correlation_id()
        if correlation_id:
            headers["X-Correlation-ID"] = correlation_id
        return headers

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (None for empty bodies).

        Args:
            method: HTTP method
            path: Path relative to the gateway base URL (e.g. "/transactions")
            json: Optional JSON body
            params: Optional query parameters

        Returns:
            Decoded JSON or None

        Raises:
            SessionInvalidated: 401/403 (after invalidation handling completed)
            RequestFailed: network, server, client or malformed-body failure
        """
        client = await self._get_client()
        url = self._build_url(path)

        try:
            response = await client.request(
                method=method,
                url=url,
                json=json,
                params=params,
                headers=self._build_headers(),
            )
        except httpx.TimeoutException as e:
            raise RequestFailed(RequestFailureKind.NETWORK, f"{method} {path} timed out") from e
        except httpx.HTTPError as e:
            raise RequestFailed(RequestFailureKind.NETWORK, f"{method} {path}: {e}") from e

        if response.status_code in AUTH_FAILURE_STATUSES:
            await self._handle_auth_failure(method, path, response.status_code)
            raise SessionInvalidated(
                f"{method} {path} returned {response.status_code}", response.status_code
            )

        if response.status_code >= 500:
            raise RequestFailed(
                RequestFailureKind.SERVER,
                f"{method} {path} returned {response.status_code}",
                response.status_code,
            )
        if response.status_code >= 400:
            raise RequestFailed(
                RequestFailureKind.CLIENT,
                f"{method} {path} returned {response.status_code}: {response.text[:200]}",
                response.status_code,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RequestFailed(
                RequestFailureKind.MALFORMED,
                f"{method} {path} returned a non-JSON body",
                response.status_code,
            ) from e

    # Listen up, the ORDER here is the whole point: clear our copy first, then let every
    # listener run to completion. Only after that does request() raise, so whoever catches
    # the SessionInvalidated already sees an absent session.
    async def _handle_auth_failure(self, method: str, path: str, status_code: int) -> None:
        logger.warning(
            "Authorization failure (%d) on %s %s - invalidating session",
            status_code,
            method,
            path,
        )
        self._token = None
        await self._events.emit(AuthEvent.SESSION_INVALIDATED, status_code)

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)
