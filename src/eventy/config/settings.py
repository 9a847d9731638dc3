"""Application settings loaded from environment variables.

Hey future me - every group here has its OWN env prefix so a deployment can
override just one concern (e.g. KEYCLOAK_BASE_URL) without touching the rest.
The mobile shell injects these at startup; tests build the groups directly.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class KeycloakSettings(BaseSettings):
    """Identity provider (Keycloak realm) settings."""

    model_config = SettingsConfigDict(
        env_prefix="KEYCLOAK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = Field(
        default="http://localhost:8090",
        description="Keycloak base URL (no trailing slash)",
    )
    realm: str = Field(default="eventy-realm", description="Keycloak realm")
    client_id: str = Field(default="eventy-mobile", description="Public client id")
    redirect_uri: str = Field(
        default="eventy://redirect",
        description="Redirect URI registered for the mobile scheme",
    )
    scopes: list[str] = Field(default_factory=lambda: ["openid", "profile", "email"])

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    # Hey future me - these two endpoints are the standard OIDC paths Keycloak exposes
    # per realm. If someone ever swaps the IdP, only these properties need to change.
    @property
    def authorization_endpoint(self) -> str:
        return f"{self.base_url}/realms/{self.realm}/protocol/openid-connect/auth"

    @property
    def token_endpoint(self) -> str:
        return f"{self.base_url}/realms/{self.realm}/protocol/openid-connect/token"


class ApiSettings(BaseSettings):
    """Backend API gateway settings."""

    model_config = SettingsConfigDict(
        env_prefix="API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = Field(
        default="http://localhost:8080/api",
        description="API gateway base URL",
    )
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")


class DatabaseSettings(BaseSettings):
    """Local secure store settings."""

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: str = Field(
        default="sqlite+aiosqlite:///./eventy_secure.db",
        description="SQLAlchemy async URL of the local secure store",
    )
    echo: bool = Field(default=False, description="Echo SQL statements")


class PaymentSettings(BaseSettings):
    """Payment sheet settings."""

    model_config = SettingsConfigDict(
        env_prefix="PAYMENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    merchant_display_name: str = Field(default="Eventy")
    payment_method: str = Field(
        default="CREDIT_CARD",
        description="Payment method sent with the payment intent",
    )


class PollingSettings(BaseSettings):
    """Polling intervals for live data (seconds)."""

    model_config = SettingsConfigDict(
        env_prefix="POLLING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    conversations_interval: float = Field(default=5.0, gt=0)
    notifications_interval: float = Field(default=30.0, gt=0)


class LoggingSettings(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    level: str = Field(default="INFO")
    json_format: bool = Field(default=False)


class Settings(BaseSettings):
    """Aggregated application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="eventy")
    keycloak: KeycloakSettings = Field(default_factory=KeycloakSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    payment: PaymentSettings = Field(default_factory=PaymentSettings)
    polling: PollingSettings = Field(default_factory=PollingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
