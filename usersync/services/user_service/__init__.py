"""
UserService - High-level façade over the cached users collection
"""

from .base import UserServiceBase, coerce_fields
from .mutations import UserServiceMutations
from .queries import UserServiceQueries


class UserService(
    UserServiceMutations,
    UserServiceQueries,
    UserServiceBase,
):
    """
    High-level façade over one session of the users collection.

    Combines functionality from:
    - UserServiceBase: Infrastructure (cache, transport, retry, mutation guard)
    - UserServiceQueries: reads (ensure_fresh, refresh, search, stats, get_user)
    - UserServiceMutations: writes (create, update, delete)

    Use as an async context manager, or call `await service.close()` when the
    session ends.
    """

    def __repr__(self) -> str:
        return f"<UserService(cache={self._cache!r})>"


__all__ = ["UserService", "UserServiceBase", "coerce_fields"]
