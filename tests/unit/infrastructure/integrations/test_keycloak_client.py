"""Tests for KeycloakClient (PKCE helpers, authorization URL, code exchange)."""

import base64
import hashlib
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from pytest_httpx import HTTPXMock

from eventy.config import KeycloakSettings
from eventy.domain.exceptions import (
    AuthProviderError,
    ConfigurationError,
    TokenExchangeError,
)
from eventy.infrastructure.integrations.keycloak_client import KeycloakClient

TOKEN_URL = "https://auth.example.com/realms/eventy-realm/protocol/openid-connect/token"


@pytest.fixture
async def keycloak(keycloak_settings: KeycloakSettings):
    client = KeycloakClient(keycloak_settings)
    yield client
    await client.close()


class TestPkce:
    def test_verifier_is_url_safe_and_long_enough(self) -> None:
        verifier = KeycloakClient.generate_code_verifier()

        assert 43 <= len(verifier) <= 128
        assert "=" not in verifier
        assert set(verifier) <= set(
            "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"
        )

    def test_verifiers_are_unique(self) -> None:
        assert KeycloakClient.generate_code_verifier() != KeycloakClient.generate_code_verifier()

    def test_challenge_is_s256_of_verifier(self) -> None:
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"

        challenge = KeycloakClient.generate_code_challenge(verifier)

        # RFC 7636 appendix B
        assert challenge == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"
        expected = base64.urlsafe_b64encode(hashlib.sha256(verifier.encode()).digest())
        assert challenge == expected.decode().rstrip("=")

    def test_state_is_random(self) -> None:
        assert KeycloakClient.generate_state() != KeycloakClient.generate_state()


class TestAuthorizationUrl:
    def test_contains_pkce_and_state(self, keycloak: KeycloakClient) -> None:
        url = keycloak.get_authorization_url("state-1", "challenge-1")

        parsed = urlparse(url)
        params = {k: v[0] for k, v in parse_qs(parsed.query).items()}
        assert parsed.netloc == "auth.example.com"
        assert parsed.path == "/realms/eventy-realm/protocol/openid-connect/auth"
        assert params == {
            "client_id": "eventy-mobile",
            "response_type": "code",
            "redirect_uri": "eventy://redirect",
            "scope": "openid profile email",
            "state": "state-1",
            "code_challenge_method": "S256",
            "code_challenge": "challenge-1",
        }

    def test_missing_client_id_fails_fast(self) -> None:
        client = KeycloakClient(KeycloakSettings(client_id="  "))

        with pytest.raises(ConfigurationError):
            client.get_authorization_url("s", "c")

    def test_missing_redirect_uri_fails_fast(self) -> None:
        client = KeycloakClient(KeycloakSettings(redirect_uri=""))

        with pytest.raises(ConfigurationError):
            client.get_authorization_url("s", "c")


class TestExchangeCode:
    async def test_posts_form_encoded_body(
        self, keycloak: KeycloakClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=TOKEN_URL, method="POST", json={"access_token": "at", "expires_in": 300}
        )

        payload = await keycloak.exchange_code("code-1", "verifier-1")

        assert payload["access_token"] == "at"
        request = httpx_mock.get_request()
        assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        assert form == {
            "client_id": "eventy-mobile",
            "grant_type": "authorization_code",
            "code": "code-1",
            "redirect_uri": "eventy://redirect",
            "code_verifier": "verifier-1",
        }

    async def test_invalid_grant_maps_to_provider_error(
        self, keycloak: KeycloakClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=TOKEN_URL,
            method="POST",
            status_code=400,
            json={"error": "invalid_grant", "error_description": "Code not valid"},
        )

        with pytest.raises(AuthProviderError) as exc_info:
            await keycloak.exchange_code("stale", "verifier-1")

        assert exc_info.value.error_code == "invalid_grant"
        assert "Code not valid" in str(exc_info.value)

    async def test_non_json_error_body(
        self, keycloak: KeycloakClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=TOKEN_URL, method="POST", status_code=502, text="Bad Gateway")

        with pytest.raises(AuthProviderError, match="HTTP 502"):
            await keycloak.exchange_code("code-1", "verifier-1")

    async def test_missing_access_token(
        self, keycloak: KeycloakClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=TOKEN_URL, method="POST", json={"token_type": "Bearer"})

        with pytest.raises(AuthProviderError, match="No access_token"):
            await keycloak.exchange_code("code-1", "verifier-1")

    async def test_network_failure(
        self, keycloak: KeycloakClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_exception(httpx.ConnectError("connection refused"))

        with pytest.raises(TokenExchangeError):
            await keycloak.exchange_code("code-1", "verifier-1")

    async def test_injected_client_is_not_closed(self, keycloak_settings) -> None:
        async with httpx.AsyncClient() as http_client:
            client = KeycloakClient(keycloak_settings, http_client=http_client)
            await client.close()
            assert not http_client.is_closed
