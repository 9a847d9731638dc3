"""Access token persistence backed by the local secure store."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from eventy.domain.exceptions import StorageUnavailable
from eventy.domain.ports import ITokenStore
from eventy.infrastructure.persistence.database import Database
from eventy.infrastructure.persistence.models import SecureItemModel, utc_now

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "accessToken"  # nosec B105 - storage key name, not a secret


class DatabaseTokenStore(ITokenStore):
    """ITokenStore on top of the secure_items table.

    Hey future me - every operation opens its OWN session scope and releases it before
    returning. "Not found" is a normal None. Anything the driver throws (locked file,
    corrupt DB, permissions) becomes StorageUnavailable, which AuthSession treats as
    "no token" so the app still starts.
    """

    def __init__(self, database: Database, key: str = ACCESS_TOKEN_KEY) -> None:
        self._database = database
        self._key = key

    @asynccontextmanager
    async def _scope(self, operation: str) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with self._database.session_scope() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Secure store %s failed: %s", operation, e)
            raise StorageUnavailable(f"Secure store {operation} failed: {e}") from e

    async def save(self, token: str) -> None:
        async with self._scope("save") as session:
            item = await session.get(SecureItemModel, self._key)
            if item is None:
                session.add(SecureItemModel(key=self._key, value=token))
            else:
                item.value = token
                item.updated_at = utc_now()
        logger.debug("Stored %s", self._key)

    async def load(self) -> str | None:
        async with self._scope("load") as session:
            result = await session.execute(
                select(SecureItemModel.value).where(SecureItemModel.key == self._key)
            )
            return result.scalar_one_or_none()

    async def clear(self) -> None:
        async with self._scope("clear") as session:
            await session.execute(
                delete(SecureItemModel).where(SecureItemModel.key == self._key)
            )
        logger.debug("Cleared %s", self._key)
