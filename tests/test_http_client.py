"""
Tests for HttpClient and UsersApi (usersync/utils/clients/http_client.py)

Tests cover:
- Client configuration
- Envelope unwrapping and entity validation
- Wire shape of each route
- Translation of failures into TransportError
- End-to-end through UserService over a mocked transport
"""

import httpx
import orjson
import pytest

from usersync.errors import ErrorKind, TransportError
from usersync.models import UserFields
from usersync.services import UserService
from usersync.utils.clients import HttpClient, UsersApi

BASE_URL = "http://api.test/api"

ANN = {
    "id": 1,
    "name": "Ann",
    "email": "a@x.com",
    "created_at": "2024-01-01T10:00:00Z",
    "updated_at": "2024-01-01T10:00:00Z",
}


def _ok(data, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json={"success": True, "data": data})


def _err(message: str, status_code: int) -> httpx.Response:
    return httpx.Response(
        status_code,
        json={"success": False, "error": {"error": "x", "message": message, "code": status_code}},
    )


def make_api(handler) -> UsersApi:
    client = HttpClient(BASE_URL, transport=httpx.MockTransport(handler))
    return UsersApi(http_client=client)


# ═══════════════════════════════════════════════════════════════════
# Initialization Tests
# ═══════════════════════════════════════════════════════════════════


@pytest.mark.unit
class TestHttpClientInitialization:

    def test_defaults_from_settings(self):
        client = HttpClient()

        assert client.base_url == "http://localhost:8080/api"
        assert client._timeout == 10.0
        assert isinstance(client._client, httpx.AsyncClient)

    def test_timeout_configuration(self):
        client = HttpClient(BASE_URL, timeout=5.0)
        timeout = client._client.timeout

        assert timeout.connect == 5.0
        assert timeout.read == 5.0
        assert timeout.pool == 10.0

    @pytest.mark.asyncio
    async def test_context_manager_closes_client(self):
        async with HttpClient(BASE_URL) as client:
            assert not client._client.is_closed

        assert client._client.is_closed


# ═══════════════════════════════════════════════════════════════════
# Wire shape
# ═══════════════════════════════════════════════════════════════════


@pytest.mark.integration
class TestUsersApiRoutes:

    @pytest.mark.asyncio
    async def test_list_users(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.method, request.url.path))
            return _ok([ANN])

        async with make_api(handler) as api:
            users = await api.list_users()

        assert seen == [("GET", "/api/users")]
        assert [u.id for u in users] == [1]
        assert users[0].created_at.year == 2024

    @pytest.mark.asyncio
    async def test_create_user_posts_json_body(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.method, request.url.path, orjson.loads(request.content)))
            return _ok({**ANN, "id": 7, "name": "Bo", "email": "b@x.com"}, 201)

        async with make_api(handler) as api:
            user = await api.create_user(UserFields(name="Bo", email="b@x.com"))

        assert seen == [("POST", "/api/users", {"name": "Bo", "email": "b@x.com"})]
        assert user.id == 7

    @pytest.mark.asyncio
    async def test_update_user_puts_to_item(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.method, request.url.path))
            return _ok({**ANN, "name": "Annie"})

        async with make_api(handler) as api:
            user = await api.update_user(1, UserFields(name="Annie", email="a@x.com"))

        assert seen == [("PUT", "/api/users/1")]
        assert user.name == "Annie"

    @pytest.mark.asyncio
    async def test_get_user(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/users/1"
            return _ok(ANN)

        async with make_api(handler) as api:
            user = await api.get_user(1)

        assert user.email == "a@x.com"

    @pytest.mark.asyncio
    async def test_delete_user_accepts_empty_body(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.method, request.url.path, request.content))
            return httpx.Response(204)

        async with make_api(handler) as api:
            assert await api.delete_user(1) is None

        assert seen == [("DELETE", "/api/users/1", b"")]


# ═══════════════════════════════════════════════════════════════════
# Failures
# ═══════════════════════════════════════════════════════════════════


@pytest.mark.integration
class TestUsersApiFailures:

    @pytest.mark.asyncio
    async def test_error_envelope_raises_with_status_and_body(self):
        async with make_api(lambda request: _err("Email already exists", 409)) as api:
            with pytest.raises(TransportError) as exc_info:
                await api.create_user(UserFields(name="Bo", email="b@x.com"))

        assert exc_info.value.status_code == 409
        assert exc_info.value.body["error"]["message"] == "Email already exists"

    @pytest.mark.asyncio
    async def test_network_error_has_no_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with make_api(handler) as api:
            with pytest.raises(TransportError) as exc_info:
                await api.list_users()

        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_timeout_has_no_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("too slow", request=request)

        async with make_api(handler) as api:
            with pytest.raises(TransportError) as exc_info:
                await api.list_users()

        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_unsuccessful_envelope_on_2xx_is_failure(self):
        async with make_api(lambda request: _err("Failed to retrieve users", 200)) as api:
            with pytest.raises(TransportError) as exc_info:
                await api.list_users()

        assert exc_info.value.status_code == 200

    @pytest.mark.asyncio
    async def test_invalid_entity_is_failure(self):
        async with make_api(lambda request: _ok([{"id": "abc"}])) as api:
            with pytest.raises(TransportError) as exc_info:
                await api.list_users()

        assert exc_info.value.status_code == 200

    @pytest.mark.asyncio
    async def test_non_json_error_body_is_kept_as_text(self):
        async with make_api(lambda request: httpx.Response(502, text="Bad Gateway")) as api:
            with pytest.raises(TransportError) as exc_info:
                await api.list_users()

        assert exc_info.value.status_code == 502
        assert exc_info.value.body == "Bad Gateway"


# ═══════════════════════════════════════════════════════════════════
# End-to-end
# ═══════════════════════════════════════════════════════════════════


@pytest.mark.integration
class TestServiceOverHttp:

    @pytest.mark.asyncio
    async def test_fetch_create_delete_round(self):
        store = {1: dict(ANN)}
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append((request.method, request.url.path))
            if request.method == "GET":
                return _ok(list(store.values()))
            if request.method == "POST":
                body = orjson.loads(request.content)
                if any(u["email"] == body["email"] for u in store.values()):
                    return _err("Email already exists", 409)
                new = {**ANN, **body, "id": max(store) + 1}
                store[new["id"]] = new
                return _ok(new, 201)
            if request.method == "DELETE":
                store.pop(int(request.url.path.rsplit("/", 1)[1]))
                return httpx.Response(204)
            return httpx.Response(405)

        async def no_sleep(_delay):
            return None

        service = UserService(api=make_api(handler), sleep=no_sleep)
        async with service:
            assert (await service.ensure_fresh()).ok
            duplicate = await service.create(name="Ann", email="a@x.com")
            created = await service.create(name="Bo", email="b@x.com")
            deleted = await service.delete(1)

            assert duplicate.kind is ErrorKind.CONFLICT
            assert duplicate.error.message == "Email already exists"
            assert created.ok and created.value.id == 2
            assert deleted.ok
            assert sorted(service.read().entities) == [2]

        assert calls.count(("GET", "/api/users")) == 1

    @pytest.mark.asyncio
    async def test_unreachable_server_is_retried_three_times(self):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request.url.path)
            raise httpx.ConnectError("refused", request=request)

        async def no_sleep(_delay):
            return None

        async with UserService(api=make_api(handler), sleep=no_sleep, max_attempts=3) as service:
            outcome = await service.ensure_fresh()

        assert outcome.kind is ErrorKind.UNREACHABLE
        assert len(attempts) == 3
