"""External integrations: identity provider and backend API."""

from eventy.infrastructure.integrations.api_client import ApiClient
from eventy.infrastructure.integrations.eventy_api import (
    EventApi,
    FavoriteApi,
    InteractionApi,
    TransactionApi,
)
from eventy.infrastructure.integrations.keycloak_client import KeycloakClient

__all__ = [
    "ApiClient",
    "EventApi",
    "FavoriteApi",
    "InteractionApi",
    "KeycloakClient",
    "TransactionApi",
]
