"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from eventy.config import (
    ApiSettings,
    KeycloakSettings,
    PollingSettings,
    Settings,
    get_settings,
)


class TestKeycloakSettings:
    def test_endpoints_derive_from_realm(self) -> None:
        settings = KeycloakSettings(base_url="https://auth.example.com/", realm="r1")

        assert settings.base_url == "https://auth.example.com"
        assert (
            settings.authorization_endpoint
            == "https://auth.example.com/realms/r1/protocol/openid-connect/auth"
        )
        assert (
            settings.token_endpoint
            == "https://auth.example.com/realms/r1/protocol/openid-connect/token"
        )

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KEYCLOAK_CLIENT_ID", "eventy-web")
        monkeypatch.setenv("KEYCLOAK_REALM", "staging")

        settings = KeycloakSettings()

        assert settings.client_id == "eventy-web"
        assert settings.realm == "staging"
        assert settings.scopes == ["openid", "profile", "email"]


class TestValidation:
    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            ApiSettings(timeout=0)

    def test_polling_interval_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            PollingSettings(conversations_interval=-1)


class TestSettings:
    def test_groups_read_their_own_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("API_BASE_URL", "https://api.eventy.test/api")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("POLLING_CONVERSATIONS_INTERVAL", "2.5")

        settings = Settings()

        assert settings.api.base_url == "https://api.eventy.test/api"
        assert settings.logging.level == "DEBUG"
        assert settings.polling.conversations_interval == 2.5
        assert settings.payment.payment_method == "CREDIT_CARD"

    def test_get_settings_is_cached(self) -> None:
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
