from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Awaitable, Callable, Iterable, Mapping

from usersync.errors import SyncError
from usersync.models import MutationKind, User
from usersync.utils.logger import logger

"""
In-memory cache of one remote collection.

The cache owns the last known-good entity set plus its freshness metadata
and in-flight bookkeeping. Content changes only through the `apply_*`
methods; each one swaps in a new entity map and then notifies subscribers,
so a listener never sees a half-applied change.
"""

NEW_ENTITY_KEY = "new"

MutationKey = int | str
Listener = Callable[["Snapshot"], None]
Fetcher = Callable[[], Awaitable[list[User]]]


# ─────────────────────────── Snapshot ───────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Immutable view of the cache at one point in time."""

    entities: Mapping[int, User] = field(default_factory=lambda: MappingProxyType({}))
    fetched_at: float | None = None
    is_stale: bool = True
    in_flight_fetch: bool = False
    in_flight_mutations: Mapping[MutationKey, MutationKind] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __len__(self) -> int:
        return len(self.entities)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self.entities

    def get(self, user_id: int) -> User | None:
        return self.entities.get(user_id)

    @property
    def users(self) -> list[User]:
        """Entities ordered by id."""
        return [self.entities[k] for k in sorted(self.entities)]


# ─────────────────────────── Cache ──────────────────────────────────────────────


class ResourceCache:
    """
    Cached remote collection keyed by entity id.

    Created empty and stale; populated by the first successful fetch; updated
    by committed mutations; discarded with its owning session.

    Args:
        clock: Monotonic time source used for freshness and race checks.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entities: dict[int, User] = {}
        self._fetched_at: float | None = None
        self._committed_at: float | None = None
        self._is_stale = True
        self._inflight_fetch: asyncio.Task[Snapshot] | None = None
        self._inflight_mutations: dict[MutationKey, MutationKind] = {}
        self._listeners: list[Listener] = []

    def __repr__(self) -> str:
        return (
            f"<ResourceCache(entities={len(self._entities)}, stale={self._is_stale}, "
            f"fetching={self._inflight_fetch is not None}, "
            f"mutations={len(self._inflight_mutations)})>"
        )

    # ──────────────────────── reads ─────────────────────────────────── #

    def read(self) -> Snapshot:
        """Return the current snapshot without blocking."""
        return Snapshot(
            entities=MappingProxyType(self._entities),
            fetched_at=self._fetched_at,
            is_stale=self._is_stale,
            in_flight_fetch=self._inflight_fetch is not None,
            in_flight_mutations=MappingProxyType(dict(self._inflight_mutations)),
        )

    def is_fresh(self, max_age: float) -> bool:
        if self._is_stale or self._fetched_at is None:
            return False
        return self._clock() - self._fetched_at <= max_age

    # ──────────────────────── fetch coordination ────────────────────── #

    async def ensure_fresh(self, fetcher: Fetcher, max_age: float) -> Snapshot:
        """
        Resolve once the snapshot is fresh enough.

        Returns immediately when the snapshot is younger than `max_age` and
        not stale. Otherwise joins the fetch already in flight or starts one
        with `fetcher`. Every caller attached to the same fetch observes the
        same result or the same exception.
        """
        if self._inflight_fetch is None and self.is_fresh(max_age):
            return self.read()

        task = self._inflight_fetch
        if task is None:
            task = asyncio.ensure_future(self._run_fetch(fetcher, self._clock()))
            self._inflight_fetch = task
            logger.debug("Nova busca da coleção iniciada")
        else:
            logger.debug("Busca da coleção já em andamento, anexando ao pedido existente")

        # shield: a cancelled caller must not cancel the shared fetch
        return await asyncio.shield(task)

    async def _run_fetch(self, fetcher: Fetcher, issued_at: float) -> Snapshot:
        try:
            entities = await fetcher()
        except Exception:
            self._inflight_fetch = None
            # previous content survives, but is no longer trusted
            if not self._is_stale:
                self._is_stale = True
                self._notify()
            raise
        finally:
            self._inflight_fetch = None
        self.apply_fetch_result(entities, issued_at)
        return self.read()

    # ──────────────────────── writes ────────────────────────────────── #

    def apply_fetch_result(
        self, entities: Iterable[User], issued_at: float | None = None
    ) -> bool:
        """
        Replace the entity set wholesale with a fetch result.

        A result whose fetch was issued before a mutation committed is
        dropped and the snapshot is left stale so the next read refetches.

        Returns:
            True if the result was applied.
        """
        if (
            issued_at is not None
            and self._committed_at is not None
            and issued_at < self._committed_at
        ):
            logger.info(
                "Resultado de busca descartado: emitido antes de uma mutação confirmada"
            )
            self._is_stale = True
            self._notify()
            return False

        self._entities = {user.id: user for user in entities}
        self._fetched_at = self._clock()
        self._is_stale = False
        logger.debug("Coleção atualizada com {} entidades", len(self._entities))
        self._notify()
        return True

    def apply_create(self, entity: User) -> None:
        self._commit({**self._entities, entity.id: entity})

    def apply_update(self, entity: User) -> None:
        self._commit({**self._entities, entity.id: entity})

    def apply_delete(self, user_id: int) -> None:
        entities = dict(self._entities)
        entities.pop(user_id, None)
        self._commit(entities)

    def _commit(self, entities: dict[int, User]) -> None:
        now = self._clock()
        self._entities = entities
        self._committed_at = now
        # a partial set is only trusted once a full fetch has landed
        if self._fetched_at is not None:
            self._fetched_at = now
            self._is_stale = False
        self._notify()

    def invalidate(self) -> None:
        """Mark the snapshot stale; content is kept until the next fetch."""
        if not self._is_stale:
            self._is_stale = True
            self._notify()

    # ──────────────────────── mutation bookkeeping ──────────────────── #

    def begin_mutation(self, key: MutationKey, kind: MutationKind) -> None:
        """
        Register a mutation as in flight for `key`.

        Raises:
            SyncError: `CONFLICT_IN_PROGRESS` if `key` already has one.
        """
        if key in self._inflight_mutations:
            raise SyncError.in_progress(key)
        self._inflight_mutations[key] = kind

    def end_mutation(self, key: MutationKey, notify: bool = True) -> None:
        """
        Release `key`. Subscribers are told unless `notify` is False, which
        callers use when an `apply_*` is about to push the next snapshot.
        """
        if self._inflight_mutations.pop(key, None) is not None and notify:
            self._notify()

    def mutation_in_flight(self, key: MutationKey) -> MutationKind | None:
        return self._inflight_mutations.get(key)

    # ──────────────────────── subscribers ───────────────────────────── #

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register `listener`; it receives the current snapshot right away and
        every later one. Returns a callable that unsubscribes it.
        """
        self._listeners.append(listener)
        self._deliver(listener, self.read())

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.read()
        for listener in list(self._listeners):
            self._deliver(listener, snapshot)

    @staticmethod
    def _deliver(listener: Listener, snapshot: Snapshot) -> None:
        try:
            listener(snapshot)
        except Exception as exc:  # noqa: BLE001
            logger.opt(exception=exc).error(
                f"Erro no assinante {getattr(listener, '__qualname__', listener)!r}: {exc}"
            )

    def clear(self) -> None:
        """Drop all state and subscribers at the end of a session."""
        if self._inflight_fetch is not None and not self._inflight_fetch.done():
            self._inflight_fetch.cancel()
        self._inflight_fetch = None
        self._entities = {}
        self._fetched_at = None
        self._committed_at = None
        self._is_stale = True
        self._inflight_mutations.clear()
        self._listeners.clear()
