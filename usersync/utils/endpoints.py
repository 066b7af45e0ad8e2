from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from usersync.config import settings

_METHODS: Final = frozenset({"GET", "POST", "PUT", "DELETE"})


@dataclass(frozen=True, slots=True)
class Endpoint:
    """A resolved HTTP route: verb plus path relative to the API base URL."""

    method: str
    path: str

    def __post_init__(self) -> None:
        if self.method not in _METHODS:
            raise ValueError(f"Método HTTP não suportado: {self.method}")


class UsersEndpoints:
    """Builds the routes of the users collection.

    Paths are relative so the HTTP client can join them to its own base URL.
    """

    __slots__ = ("_root",)

    def __init__(self, collection_path: str | None = None) -> None:
        self._root = "/" + (collection_path or settings.USERS_PATH).strip("/")

    def _item(self, user_id: int) -> str:
        return f"{self._root}/{int(user_id)}"

    @property
    def list(self) -> Endpoint:
        return Endpoint("GET", self._root)

    @property
    def create(self) -> Endpoint:
        return Endpoint("POST", self._root)

    def get(self, user_id: int) -> Endpoint:
        return Endpoint("GET", self._item(user_id))

    def update(self, user_id: int) -> Endpoint:
        return Endpoint("PUT", self._item(user_id))

    def delete(self, user_id: int) -> Endpoint:
        return Endpoint("DELETE", self._item(user_id))


API = UsersEndpoints()
