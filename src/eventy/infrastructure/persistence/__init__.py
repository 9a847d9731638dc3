"""Persistence: local secure store."""

from eventy.infrastructure.persistence.database import Database
from eventy.infrastructure.persistence.token_store import (
    ACCESS_TOKEN_KEY,
    DatabaseTokenStore,
)

__all__ = ["ACCESS_TOKEN_KEY", "Database", "DatabaseTokenStore"]
