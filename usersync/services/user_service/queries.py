"""
UserService Queries - Read Operations

This module contains the read side of the service:
- read / subscribe (cache only, never blocks)
- ensure_fresh / refresh / invalidate (fetch on demand with retry)
- search / stats (derived from the cached snapshot)
- get_user (cache first, then a single GET)
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from usersync.errors import Outcome, SyncError, TransportError, normalize_error
from usersync.models import User, UserStats, summarize
from usersync.utils import logger, timeit
from usersync.utils.cache import Listener, Snapshot

from .base import UserServiceBase


class UserServiceQueries(UserServiceBase):
    """
    Query operations for UserService.

    Collection fetches are de-duplicated by the cache and retried by the
    base class policy; everything else reads the current snapshot.
    """

    # ──────────────────────── SNAPSHOT ──────────────────────────────────

    def read(self) -> Snapshot:
        """Returns the current snapshot immediately, fresh or not."""
        return self._cache.read()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Pushes the current and every later snapshot to `listener`."""
        return self._cache.subscribe(listener)

    def invalidate(self) -> None:
        self._cache.invalidate()

    # ──────────────────────── FETCHERS ─────────────────────────────────

    async def ensure_fresh(self, max_age: float | None = None) -> Outcome[Snapshot]:
        """
        Makes sure the snapshot is no older than `max_age` seconds.

        Args:
            max_age: Accepted snapshot age. Defaults to `settings.CACHE_MAX_AGE`.

        Returns:
            The fresh snapshot, or the final error once retries are exhausted.
            On failure the previous snapshot stays readable and stale.
        """
        max_age = self._max_age if max_age is None else max_age
        try:
            snapshot = await self._cache.ensure_fresh(self._fetch_collection, max_age)
        except SyncError as error:
            return Outcome.failure(error)
        return Outcome.success(snapshot)

    async def refresh(self) -> Outcome[Snapshot]:
        """Forces a refetch, joining one already in flight."""
        logger.info("Atualização manual da coleção solicitada")
        self._cache.invalidate()
        return await self.ensure_fresh()

    async def get_user(self, user_id: int) -> Outcome[User]:
        """
        Returns a single user, from the cache when present.

        A cache miss performs one `GET /users/:id` without retry; the result
        is returned but not inserted in the cache.
        """
        cached = self._cache.read().get(user_id)
        if cached is not None:
            return Outcome.success(cached)
        try:
            user = await self._api.get_user(user_id)
        except TransportError as exc:
            error = normalize_error(exc)
            logger.warning(f"get_user [{user_id}] falhou ({error.kind.value}): {error.message}")
            return Outcome.failure(error)
        return Outcome.success(user)

    # ──────────────────────── DERIVED ──────────────────────────────────

    @timeit
    def search(self, query: str = "") -> list[User]:
        """Case-insensitive substring match on name or email, ordered by id."""
        users = self._cache.read().users
        needle = query.lower()
        if not needle:
            return users
        return [
            user
            for user in users
            if needle in user.name.lower() or needle in user.email.lower()
        ]

    def stats(self, now: datetime | None = None, days: int = 7) -> UserStats:
        return summarize(self._cache.read().users, now=now, days=days)
