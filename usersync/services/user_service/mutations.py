"""
UserService Mutations - Write Operations

This module contains all POST/PUT/DELETE operations:
- create
- update
- delete
"""

from __future__ import annotations

from typing import Any

from usersync.errors import ErrorKind, Outcome, SyncError
from usersync.models import MutationKind, User, UserFields
from usersync.utils import logger
from usersync.utils.cache import NEW_ENTITY_KEY

from .base import UserServiceBase, coerce_fields


class UserServiceMutations(UserServiceBase):
    """
    Mutation operations for UserService (POST/PUT/DELETE).

    Each call is rejected with `CONFLICT_IN_PROGRESS` while another mutation
    runs against the same id (creates share one synthetic key), and applies
    the server's answer to the cache before returning.
    """

    def _require_cached(self, user_id: int, kind: MutationKind) -> SyncError | None:
        if user_id in self._cache.read():
            return None
        logger.warning(f"{kind.value} [{user_id}] ignorado: usuário ausente do cache")
        return SyncError(ErrorKind.NOT_FOUND, f"User {user_id} not found.", 404)

    # ──────────────────────── STATE‑CHANGERS ────────────────────────────

    async def create(
        self, fields: UserFields | dict[str, Any] | None = None, **kwargs: Any
    ) -> Outcome[User]:
        """
        Creates a user and inserts the server's entity in the cache.

        Args:
            fields: `UserFields` or a mapping with `name` and `email`.
            **kwargs: Field overrides (`name=...`, `email=...`).

        Returns:
            The created user, or `VALIDATION_FAILED` (no network call),
            `CONFLICT_IN_PROGRESS`, or the normalized server error.
        """
        try:
            payload = coerce_fields(fields, **kwargs)
        except SyncError as error:
            return Outcome.failure(error)

        async def request_coro() -> User:
            return await self._api.create_user(payload)

        return await self._execute_state_changing_request(
            key=NEW_ENTITY_KEY,
            kind=MutationKind.create,
            request_coro=request_coro,
            apply=self._cache.apply_create,
        )

    async def update(
        self,
        user_id: int,
        fields: UserFields | dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> Outcome[User]:
        """
        Replaces name/email of a cached user.

        Fails fast with `NOT_FOUND` when `user_id` is not in the cache.
        """
        try:
            payload = coerce_fields(fields, **kwargs)
        except SyncError as error:
            return Outcome.failure(error)
        if (error := self._require_cached(user_id, MutationKind.update)) is not None:
            return Outcome.failure(error)

        async def request_coro() -> User:
            return await self._api.update_user(user_id, payload)

        return await self._execute_state_changing_request(
            key=user_id,
            kind=MutationKind.update,
            request_coro=request_coro,
            apply=self._cache.apply_update,
        )

    async def delete(self, user_id: int) -> Outcome[int]:
        """Deletes a cached user; the outcome value is the removed id."""
        if (error := self._require_cached(user_id, MutationKind.delete)) is not None:
            return Outcome.failure(error)

        async def request_coro() -> int:
            await self._api.delete_user(user_id)
            return user_id

        return await self._execute_state_changing_request(
            key=user_id,
            kind=MutationKind.delete,
            request_coro=request_coro,
            apply=self._cache.apply_delete,
        )
