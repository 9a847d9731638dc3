"""Favorite reconciler - optimistic favorite toggles kept in sync with the backend.

Hey future me - the heart icon flips IMMEDIATELY, the backend call happens afterwards.
If the backend says no, the local state snaps back and ReconcileFailed is raised.

Two taps on the same heart before the first call returns are serialized per
(user_id, event_id) with an asyncio.Lock: the second toggle waits for the first to
settle and then toggles whatever the state is at THAT point. Toggle twice = back where
you started, no matter how the network interleaves.

A dead session is NOT a backend "no". The ApiClient logs the user out before the
SessionInvalidated reaches us, and logout clears this cache. Rolling back after that
would put the old user's favorite back into a logged-out cache, so we don't.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from eventy.domain.entities import FavoriteRelation
from eventy.domain.exceptions import ReconcileFailed, RequestFailed, SessionInvalidated
from eventy.infrastructure.integrations.eventy_api import FavoriteApi

logger = logging.getLogger(__name__)

FavoriteKey = tuple[str, str]


class FavoriteReconciler:
    """Local favorite state with optimistic updates and rollback."""

    def __init__(self, favorites: FavoriteApi) -> None:
        self._favorites = favorites
        self._relations: dict[FavoriteKey, FavoriteRelation] = {}
        # Locks live only while someone holds or waits for them
        self._locks: dict[FavoriteKey, asyncio.Lock] = {}
        self._lock_users: dict[FavoriteKey, int] = {}
        # Bumped by clear() so in-flight toggles know their snapshot is stale
        self._generation = 0
        self._user_generations: dict[str, int] = {}

    def is_favorite(self, user_id: str, event_id: str) -> bool:
        return (user_id, event_id) in self._relations

    def get(self, user_id: str, event_id: str) -> FavoriteRelation | None:
        return self._relations.get((user_id, event_id))

    def favorites(self, user_id: str) -> list[FavoriteRelation]:
        return [r for (uid, _), r in self._relations.items() if uid == user_id]

    def _epoch(self, user_id: str) -> tuple[int, int]:
        return self._generation, self._user_generations.get(user_id, 0)

    @property
    def pending_toggles(self) -> int:
        """Number of (user, event) keys with a toggle running or queued."""
        return len(self._locks)

    @asynccontextmanager
    async def _serialized(self, key: FavoriteKey) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                del self._locks[key]

    async def load(self, user_id: str) -> list[FavoriteRelation]:
        """Replace the local favorites of a user with the server's list.

        Raises:
            RequestFailed: Backend unreachable (local state untouched)
        """
        server_favorites = await self._favorites.list_favorites(user_id)
        for key in [k for k in self._relations if k[0] == user_id]:
            del self._relations[key]
        for dto in server_favorites:
            relation = FavoriteRelation(
                user_id=user_id,
                event_id=dto.event_id,
                server_confirmed=True,
                favorite_id=dto.id,
                added_at=dto.added_at,
            )
            self._relations[relation.key] = relation
        logger.debug("Loaded %d favorites for %s", len(server_favorites), user_id)
        return self.favorites(user_id)

    async def toggle(self, user_id: str, event_id: str) -> bool:
        """Flip the favorite state of an event.

        Returns:
            True if the event is a favorite afterwards

        Raises:
            ReconcileFailed: Backend rejected the change; local state was restored
            SessionInvalidated: Session died; nothing is restored, logout owns the cache
        """
        key = (user_id, event_id)
        async with self._serialized(key):
            existing = self._relations.get(key)
            if existing is not None:
                await self._remove(key, existing)
                return False
            await self._add(key)
            return True

    async def _remove(self, key: FavoriteKey, existing: FavoriteRelation) -> None:
        user_id, event_id = key
        epoch = self._epoch(user_id)
        del self._relations[key]
        try:
            await self._favorites.remove_favorite(user_id, event_id)
        except SessionInvalidated:
            logger.info("Session ended while removing favorite %s, not restoring", event_id)
            raise
        except RequestFailed as e:
            if self._epoch(user_id) == epoch:
                self._relations[key] = existing
            logger.warning("Removing favorite %s failed, reverted: %s", event_id, e)
            raise ReconcileFailed(user_id, event_id, e.detail) from e

    async def _add(self, key: FavoriteKey) -> None:
        user_id, event_id = key
        relation = FavoriteRelation(user_id=user_id, event_id=event_id)
        self._relations[key] = relation
        try:
            dto = await self._favorites.add_favorite(user_id, event_id)
        except SessionInvalidated:
            self._relations.pop(key, None)
            raise
        except RequestFailed as e:
            self._relations.pop(key, None)
            logger.warning("Adding favorite %s failed, reverted: %s", event_id, e)
            raise ReconcileFailed(user_id, event_id, e.detail) from e
        if self._relations.get(key) is not relation:
            # Cache was cleared mid-flight (logout), don't resurrect the entry
            return
        relation.server_confirmed = True
        relation.favorite_id = dto.id
        relation.added_at = dto.added_at

    def clear(self, user_id: str | None = None) -> None:
        """Forget local favorites (all, or of one user). Used on logout."""
        if user_id is None:
            self._generation += 1
            self._relations.clear()
            return
        self._user_generations[user_id] = self._user_generations.get(user_id, 0) + 1
        for key in [k for k in self._relations if k[0] == user_id]:
            del self._relations[key]
