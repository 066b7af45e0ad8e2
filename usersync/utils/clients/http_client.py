from __future__ import annotations

from typing import Any

import httpx
import orjson
from pydantic import ValidationError

from usersync.config import settings
from usersync.errors import TransportError
from usersync.models import User, UserFields, parse_user, parse_users
from usersync.utils.endpoints import API, Endpoint, UsersEndpoints
from usersync.utils.logger import logger

# ───────────────────────── constants & helpers ────────────────────────── #

_JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


# ---------------------main class definition---------------------#
class HttpClient:
    """A small asynchronous JSON client bound to one API base URL.

    Every non-2xx response and every network failure is raised as
    `TransportError`; no retry happens at this level.
    """

    def __init__(self, base_url: str | None = None, **kwargs) -> None:
        self._base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self._timeout = kwargs.get("timeout", settings.HTTP_TIMEOUT)
        self._max_connections = kwargs.get(
            "max_connections", settings.HTTP_MAX_CONNECTIONS
        )

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(
                connect=self._timeout,
                read=self._timeout,
                write=self._timeout,
                pool=self._timeout * 2,
            ),
            limits=httpx.Limits(
                max_connections=self._max_connections,
                max_keepalive_connections=max(1, self._max_connections // 2),
            ),
            headers=_JSON_HEADERS,
            transport=kwargs.get("transport"),
            follow_redirects=True,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *_exc) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if not self._client.is_closed:
            await self._client.aclose()

    # ------- response helpers -------------------------------------------- #

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        content = response.content
        if not content:
            return None
        try:
            return orjson.loads(content)
        except orjson.JSONDecodeError:
            logger.debug(
                "Resposta de {} {} não era JSON válido. Retornando como texto.",
                response.request.method,
                response.request.url.path,
            )
            return response.text

    # ------- high-level request ------------------------------------------ #

    async def request(
        self, endpoint: Endpoint, *, json_data: dict | None = None
    ) -> tuple[Any, int]:
        """
        Perform one HTTP exchange and return the decoded body with its status.

        Raises:
            TransportError: with `status_code=None` when no response was
                received, or with the status and decoded body otherwise.
        """
        content = orjson.dumps(json_data) if json_data is not None else None
        try:
            response = await self._client.request(
                endpoint.method, endpoint.path, content=content
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "Falha de comunicação em {} {}: {}: {}",
                endpoint.method,
                endpoint.path,
                type(exc).__name__,
                exc,
            )
            raise TransportError(None, None, str(exc) or type(exc).__name__) from exc

        payload = self._decode(response)
        if not response.is_success:
            logger.debug(
                "{} {} respondeu HTTP {}",
                endpoint.method,
                endpoint.path,
                response.status_code,
            )
            raise TransportError(response.status_code, payload)
        return payload, response.status_code


class UsersApi:
    """Transport adapter for the users collection.

    Speaks the `{success, data}` / `{success, error}` envelope and hands
    validated `User` models to the synchronization core.
    """

    def __init__(
        self,
        http_client: HttpClient | None = None,
        endpoints: UsersEndpoints | None = None,
        **kwargs,
    ) -> None:
        self._http = http_client or HttpClient(**kwargs)
        self._endpoints = endpoints or API

    async def close(self) -> None:
        await self._http.close()

    async def __aenter__(self) -> "UsersApi":
        return self

    async def __aexit__(self, *_exc) -> None:
        await self.close()

    @staticmethod
    def _unwrap(payload: Any, status_code: int) -> Any:
        if not isinstance(payload, dict) or "success" not in payload:
            raise TransportError(status_code, payload, "Envelope de resposta inválido")
        if payload.get("success") is not True:
            raise TransportError(status_code, payload)
        return payload.get("data")

    async def _call(
        self, endpoint: Endpoint, json_data: dict | None = None
    ) -> tuple[Any, int]:
        payload, status_code = await self._http.request(endpoint, json_data=json_data)
        return self._unwrap(payload, status_code), status_code

    async def list_users(self) -> list[User]:
        data, status_code = await self._call(self._endpoints.list)
        try:
            return parse_users(data or [])
        except ValidationError as exc:
            raise TransportError(status_code, data, f"Lista de usuários inválida: {exc}") from exc

    async def get_user(self, user_id: int) -> User:
        data, status_code = await self._call(self._endpoints.get(user_id))
        return self._entity(data, status_code)

    async def create_user(self, fields: UserFields) -> User:
        data, status_code = await self._call(
            self._endpoints.create, json_data=fields.model_dump()
        )
        return self._entity(data, status_code)

    async def update_user(self, user_id: int, fields: UserFields) -> User:
        data, status_code = await self._call(
            self._endpoints.update(user_id), json_data=fields.model_dump()
        )
        return self._entity(data, status_code)

    async def delete_user(self, user_id: int) -> None:
        payload, status_code = await self._http.request(self._endpoints.delete(user_id))
        if isinstance(payload, dict) and payload.get("success") is False:
            raise TransportError(status_code, payload)

    @staticmethod
    def _entity(data: Any, status_code: int) -> User:
        try:
            return parse_user(data)
        except ValidationError as exc:
            raise TransportError(status_code, data, f"Usuário inválido: {exc}") from exc
