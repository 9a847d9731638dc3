"""Keycloak HTTP client implementation with OAuth PKCE."""

import base64
import hashlib
import logging
import secrets
from typing import Any, cast
from urllib.parse import urlencode

import httpx

from eventy.config import KeycloakSettings
from eventy.domain.exceptions import (
    AuthProviderError,
    ConfigurationError,
    TokenExchangeError,
)

logger = logging.getLogger(__name__)


class KeycloakClient:
    """HTTP client for the Keycloak authorization-code + PKCE flow."""

    # Hey future me, we DON'T create the HTTP client here - it gets lazy-loaded in
    # _get_client() so constructing this outside a running loop is safe. Tests pass their
    # own httpx.AsyncClient in.
    def __init__(
        self,
        settings: KeycloakSettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize Keycloak client.

        Args:
            settings: Keycloak configuration settings
            http_client: Optional pre-built HTTP client (not closed by close())
        """
        self.settings = settings
        self._client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=30.0)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # Yo future me, PKCE verifier = 32 random bytes, base64url, "=" padding stripped (RFC 7636
    # wants 43-128 unreserved chars, this gives 43). NEVER log it and never put it in a URL -
    # whoever has it can redeem the authorization code.
    @staticmethod
    def generate_code_verifier() -> str:
        """
        Generate a PKCE code verifier.

        Returns:
            Random code verifier string
        """
        return (
            base64.urlsafe_b64encode(secrets.token_bytes(32))
            .decode("utf-8")
            .rstrip("=")
        )

    @staticmethod
    def generate_code_challenge(code_verifier: str) -> str:
        """
        Generate a PKCE S256 code challenge from verifier.

        Args:
            code_verifier: Code verifier string

        Returns:
            SHA256 hash of code verifier as base64 URL-safe string
        """
        digest = hashlib.sha256(code_verifier.encode("utf-8")).digest()
        return base64.urlsafe_b64encode(digest).decode("utf-8").rstrip("=")

    @staticmethod
    def generate_state() -> str:
        """Generate a random CSRF state value."""
        return secrets.token_urlsafe(32)

    def _ensure_configured(self, redirect_uri: str) -> None:
        # Fail fast with a readable message instead of Keycloak's
        # "Invalid parameter: redirect_uri" page.
        if not self.settings.client_id or not self.settings.client_id.strip():
            raise ConfigurationError(
                "KEYCLOAK_CLIENT_ID is not configured. "
                "Set it to the public client registered in the eventy realm."
            )
        if not redirect_uri or not redirect_uri.strip():
            raise ConfigurationError(
                "KEYCLOAK_REDIRECT_URI is not configured. "
                "Set it to the app scheme callback (e.g., eventy://redirect)."
            )

    def get_authorization_url(
        self, state: str, code_challenge: str, redirect_uri: str | None = None
    ) -> str:
        """
        Build the Keycloak authorization URL.

        Args:
            state: State parameter for CSRF protection
            code_challenge: PKCE S256 challenge
            redirect_uri: Redirect URI (defaults to settings)

        Returns:
            Authorization URL

        Raises:
            ConfigurationError: If client_id or redirect_uri is not configured
        """
        redirect_uri = redirect_uri or self.settings.redirect_uri
        self._ensure_configured(redirect_uri)

        params = {
            "client_id": self.settings.client_id,
            "response_type": "code",
            "redirect_uri": redirect_uri,
            "scope": " ".join(self.settings.scopes),
            "state": state,
            "code_challenge_method": "S256",
            "code_challenge": code_challenge,
        }
        return f"{self.settings.authorization_endpoint}?{urlencode(params)}"

    # Yo future me, this is THE critical step after the redirect. The code is single-use and
    # short-lived, redirect_uri MUST be byte-identical to the one in the authorization URL,
    # and Keycloak wants form-urlencoded, not JSON.
    async def exchange_code(
        self, code: str, code_verifier: str, redirect_uri: str | None = None
    ) -> dict[str, Any]:
        """
        Exchange authorization code for tokens.

        Args:
            code: Authorization code from the redirect
            code_verifier: PKCE code verifier of the same attempt
            redirect_uri: Redirect URI used for the authorization URL

        Returns:
            Token response containing at least access_token

        Raises:
            TokenExchangeError: Network failure talking to the token endpoint
            AuthProviderError: Keycloak rejected the exchange or returned no token
        """
        redirect_uri = redirect_uri or self.settings.redirect_uri
        self._ensure_configured(redirect_uri)
        client = await self._get_client()

        data = {
            "client_id": self.settings.client_id,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "code_verifier": code_verifier,
        }

        try:
            response = await client.post(
                self.settings.token_endpoint,
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as e:
            logger.warning("Token endpoint unreachable: %s", e)
            raise TokenExchangeError(f"Token endpoint unreachable: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        # Hey future me - Keycloak answers 400 {"error": "invalid_grant", ...} for an expired
        # code or a verifier that doesn't match. Surface the provider's own description.
        if response.is_error or "error" in payload:
            error_code = payload.get("error")
            description = payload.get("error_description") or (
                f"Token endpoint returned HTTP {response.status_code}"
            )
            raise AuthProviderError(str(description), error_code=error_code)

        if not payload.get("access_token"):
            raise AuthProviderError("No access_token received from token endpoint")

        logger.info("Exchanged authorization code for tokens")
        return cast(dict[str, Any], payload)
