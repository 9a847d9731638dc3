"""Shared test fixtures."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock

import pytest
from jose import jwt

from eventy.config import (
    ApiSettings,
    DatabaseSettings,
    KeycloakSettings,
    PaymentSettings,
    PollingSettings,
)
from eventy.domain.entities import Role, Session
from eventy.domain.events import AuthEventBus
from eventy.domain.ports import (
    AuthorizationCallback,
    AuthorizationOutcome,
    IAuthorizationBrowser,
    ITokenStore,
)

TokenFactory = Callable[..., str]


def build_token(
    sub: str | None = "user-1",
    name: str | None = "Jane Doe",
    preferred_username: str | None = "jane",
    email: str | None = "jane@example.com",
    roles: list[str] | None = None,
    expires_in: int | None = 3600,
    **extra: Any,
) -> str:
    """Build a signed JWT shaped like a Keycloak access token."""
    claims: dict[str, Any] = {}
    if sub is not None:
        claims["sub"] = sub
    if name is not None:
        claims["name"] = name
    if preferred_username is not None:
        claims["preferred_username"] = preferred_username
    if email is not None:
        claims["email"] = email
    if roles is not None:
        claims["realm_access"] = {"roles": roles}
    if expires_in is not None:
        claims["exp"] = int((datetime.now(UTC) + timedelta(seconds=expires_in)).timestamp())
    claims.update(extra)
    return jwt.encode(claims, "test-signing-key", algorithm="HS256")


@pytest.fixture
def make_token() -> TokenFactory:
    return build_token


@pytest.fixture
def session() -> Session:
    return Session(
        subject_id="user-1",
        display_name="Jane Doe",
        email="jane@example.com",
        role=Role.USER,
        access_token=build_token(),
    )


@pytest.fixture
def keycloak_settings() -> KeycloakSettings:
    return KeycloakSettings(
        base_url="https://auth.example.com",
        realm="eventy-realm",
        client_id="eventy-mobile",
        redirect_uri="eventy://redirect",
    )


@pytest.fixture
def api_settings() -> ApiSettings:
    return ApiSettings(base_url="https://api.example.com/api", timeout=5.0)


@pytest.fixture
def payment_settings() -> PaymentSettings:
    return PaymentSettings(merchant_display_name="Eventy Test", payment_method="CREDIT_CARD")


@pytest.fixture
def polling_settings() -> PollingSettings:
    return PollingSettings(conversations_interval=0.01, notifications_interval=0.01)


@pytest.fixture
def database_settings(tmp_path: Any) -> DatabaseSettings:
    return DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'secure.db'}")


@pytest.fixture
def events() -> AuthEventBus:
    return AuthEventBus()


class InMemoryTokenStore(ITokenStore):
    """Token store double that counts calls."""

    def __init__(self, token: str | None = None) -> None:
        self.token = token
        self.save_calls = 0
        self.clear_calls = 0

    async def save(self, token: str) -> None:
        self.save_calls += 1
        self.token = token

    async def load(self) -> str | None:
        return self.token

    async def clear(self) -> None:
        self.clear_calls += 1
        self.token = None


@pytest.fixture
def token_store() -> InMemoryTokenStore:
    return InMemoryTokenStore()


@pytest.fixture
def browser() -> AsyncMock:
    """Authorization browser that echoes the state from the URL back with a code."""
    mock = AsyncMock(spec=IAuthorizationBrowser)

    async def authorize(authorization_url: str, redirect_uri: str) -> AuthorizationCallback:
        from urllib.parse import parse_qs, urlparse

        state = parse_qs(urlparse(authorization_url).query)["state"][0]
        return AuthorizationCallback(
            outcome=AuthorizationOutcome.SUCCESS,
            params={"code": "auth-code-123", "state": state},
        )

    mock.authorize.side_effect = authorize
    return mock
