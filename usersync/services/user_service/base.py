"""
UserService Base - Infrastructure and Core Utilities

This module contains the base class with:
- Transport adapter and resource cache ownership (one per session)
- Retry policy for collection reads
- Guarded execution of state-changing requests
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Coroutine, TypeVar

from pydantic import BaseModel, ValidationError

from usersync.config import settings
from usersync.errors import ErrorKind, Outcome, SyncError, TransportError, normalize_error
from usersync.models import MutationKind, MutationState, User, UserFields
from usersync.utils import ResourceCache, logger
from usersync.utils.cache import MutationKey
from usersync.utils.clients import UsersApi

_R = TypeVar("_R")


def coerce_fields(fields: UserFields | dict[str, Any] | None, **kwargs: Any) -> UserFields:
    """
    Build validated `UserFields` from a model, a mapping or keyword arguments.

    Raises:
        SyncError: `VALIDATION_FAILED` with the collected field messages.
    """
    if isinstance(fields, UserFields) and not kwargs:
        return fields
    data = fields.model_dump() if isinstance(fields, BaseModel) else dict(fields or {})
    data.update(kwargs)
    try:
        return UserFields.model_validate(data)
    except ValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
        raise SyncError(ErrorKind.VALIDATION_FAILED, details) from exc


class UserServiceBase:
    """
    Base class for UserService with infrastructure utilities.

    Provides:
    - The session-owned `ResourceCache`
    - The `UsersApi` transport adapter
    - Bounded, fixed-delay retry for reads
    - The per-key mutation state machine (IDLE → IN_FLIGHT → COMMITTED/FAILED → IDLE)
    """

    def __init__(
        self,
        api: UsersApi | None = None,
        *,
        cache: ResourceCache | None = None,
        max_attempts: int | None = None,
        retry_delay: float | None = None,
        max_age: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        **kwargs,
    ) -> None:
        """Initialize base infrastructure."""
        self._api = api or UsersApi(**kwargs)
        self._cache = cache or ResourceCache()
        self._max_attempts = max_attempts or settings.FETCH_MAX_ATTEMPTS
        self._retry_delay = (
            settings.FETCH_RETRY_DELAY if retry_delay is None else retry_delay
        )
        self._max_age = settings.CACHE_MAX_AGE if max_age is None else max_age
        self._sleep = sleep
        self._mutation_states: dict[MutationKey, MutationState] = {}

    @property
    def cache(self) -> ResourceCache:
        return self._cache

    async def close(self) -> None:
        """Ends the session: drops the cache and closes the http client."""
        self._cache.clear()
        self._mutation_states.clear()
        await self._api.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *_exc) -> None:
        await self.close()

    # ──────────────────────── reads ─────────────────────────────────── #

    async def _execute_with_retry(
        self,
        request_coro: Callable[[], Coroutine[Any, Any, _R]],
        operation_name: str,
    ) -> _R:
        """
        Executes a read with the explicit retry policy.

        Transient kinds (`UNREACHABLE`, `SERVER_FAULT`) are retried up to
        `max_attempts` in total, `retry_delay` seconds apart. Any other kind
        is raised on the first failure.

        Raises:
            SyncError: the normalized error of the last attempt.
        """
        for attempt in range(1, self._max_attempts + 1):
            try:
                return await request_coro()
            except TransportError as exc:
                error = normalize_error(exc)

            if not error.kind.transient:
                logger.error(
                    f"{operation_name} falhou sem retentativa ({error.kind.value}): {error.message}"
                )
                raise error
            if attempt == self._max_attempts:
                logger.error(
                    f"{operation_name} falhou após {attempt} tentativas ({error.kind.value}): {error.message}"
                )
                raise error

            logger.warning(
                f"{operation_name} tentativa {attempt}/{self._max_attempts} falhou "
                f"({error.kind.value}); nova tentativa em {self._retry_delay:g}s"
            )
            await self._sleep(self._retry_delay)

        raise RuntimeError("Máximo de retentativas excedido")

    async def _fetch_collection(self) -> list[User]:
        return await self._execute_with_retry(self._api.list_users, "list_users")

    # ──────────────────────── mutations ─────────────────────────────── #

    def mutation_state(self, key: MutationKey) -> MutationState:
        return self._mutation_states.get(key, MutationState.idle)

    def _transition(self, key: MutationKey, kind: MutationKind, state: MutationState) -> None:
        if state is MutationState.idle:
            self._mutation_states.pop(key, None)
        else:
            self._mutation_states[key] = state
        logger.debug(f"Mutação {kind.value} [{key}] → {state.value}")

    async def _execute_state_changing_request(
        self,
        key: MutationKey,
        kind: MutationKind,
        request_coro: Callable[[], Coroutine[Any, Any, _R]],
        apply: Callable[[_R], None],
    ) -> Outcome[_R]:
        """
        Executes a mutation under the in-flight guard.

        The cache is only touched through `apply`, after the server confirmed,
        and before the outcome is returned. Mutations are never retried.

        Args:
            key: Entity id, or the synthetic key for creates.
            kind: Mutation kind, for bookkeeping and logs.
            request_coro: Coroutine function performing the network call.
            apply: Applies the confirmed result to the cache.

        Returns:
            Success with the server result, or failure with the normalized error.
        """
        try:
            self._cache.begin_mutation(key, kind)
        except SyncError as error:
            logger.warning(f"Mutação {kind.value} [{key}] rejeitada: {error.message}")
            return Outcome.failure(error)

        self._transition(key, kind, MutationState.in_flight)
        try:
            result = await request_coro()
            # released first so the snapshot pushed by `apply` is settled
            self._cache.end_mutation(key, notify=False)
            apply(result)
            self._transition(key, kind, MutationState.committed)
            logger.success(f"Mutação {kind.value} [{key}] confirmada pelo servidor")
            return Outcome.success(result)
        except TransportError as exc:
            error = normalize_error(exc)
            self._transition(key, kind, MutationState.failed)
            logger.error(
                f"Mutação {kind.value} [{key}] falhou ({error.kind.value}): {error.message}"
            )
            return Outcome.failure(error)
        except Exception as exc:
            self._transition(key, kind, MutationState.failed)
            logger.exception(f"Erro inesperado na mutação {kind.value} [{key}]: {exc}")
            return Outcome.failure(SyncError(ErrorKind.SERVER_FAULT, str(exc)))
        finally:
            self._cache.end_mutation(key)
            self._transition(key, kind, MutationState.idle)
