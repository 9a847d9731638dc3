"""Configuration module for Eventy."""

from .settings import (
    ApiSettings,
    DatabaseSettings,
    KeycloakSettings,
    LoggingSettings,
    PaymentSettings,
    PollingSettings,
    Settings,
    get_settings,
)

__all__ = [
    "ApiSettings",
    "DatabaseSettings",
    "KeycloakSettings",
    "LoggingSettings",
    "PaymentSettings",
    "PollingSettings",
    "Settings",
    "get_settings",
]
