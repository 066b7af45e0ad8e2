"""
Pytest configuration and shared fixtures.

This conftest.py provides:
- Environment configuration fixtures
- A fake transport adapter and a controllable clock
- A `UserService` session wired to both
"""

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Load test environment variables
TEST_ENV = Path(__file__).parent / ".env.test"
if TEST_ENV.exists():
    load_dotenv(TEST_ENV)
else:
    load_dotenv()  # Fallback to root .env

from usersync.models import User  # noqa: E402
from usersync.services import UserService  # noqa: E402
from usersync.utils.cache import ResourceCache  # noqa: E402

T1 = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


# ─── Pytest Configuration ────────────────────────────────────────────


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (wire-level, mocked transport)")


# ─── Environment Fixtures ────────────────────────────────────────────


@pytest.fixture(scope="session")
def project_root_dir() -> Path:
    """Return the root directory of the project."""
    return Path(__file__).parents[1]


# ─── Helpers ─────────────────────────────────────────────────────────


def make_user(user_id: int, name: str = "Ann", email: str | None = None, created_at: datetime = T1) -> User:
    return User(
        id=user_id,
        name=name,
        email=email or f"user{user_id}@x.com",
        created_at=created_at,
        updated_at=created_at,
    )


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUsersApi:
    """Stand-in for `UsersApi`; every operation is an `AsyncMock`."""

    def __init__(self):
        self.list_users = AsyncMock(return_value=[])
        self.get_user = AsyncMock()
        self.create_user = AsyncMock()
        self.update_user = AsyncMock()
        self.delete_user = AsyncMock(return_value=None)
        self.close = AsyncMock()


def gated(result, gate: asyncio.Event):
    """Side effect that blocks until `gate` is set, then returns or raises `result`."""

    async def _side_effect(*_args, **_kwargs):
        await gate.wait()
        if isinstance(result, BaseException):
            raise result
        return result

    return _side_effect


async def settle(rounds: int = 5) -> None:
    """Let scheduled tasks run up to their next suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# ─── Service Fixtures ────────────────────────────────────────────────


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_api() -> FakeUsersApi:
    return FakeUsersApi()


@pytest.fixture
def fake_sleep() -> AsyncMock:
    return AsyncMock(return_value=None)


@pytest_asyncio.fixture
async def service(fake_api, clock, fake_sleep):
    """A session over the fake transport with the production retry policy."""
    svc = UserService(
        api=fake_api,
        cache=ResourceCache(clock=clock),
        max_attempts=3,
        retry_delay=1.0,
        max_age=30.0,
        sleep=fake_sleep,
    )
    yield svc
    await svc.close()


@pytest_asyncio.fixture
async def seeded_service(service, fake_api):
    """Session whose cache already holds users 1 and 5."""
    fake_api.list_users.return_value = [make_user(1, "Ann", "a@x.com"), make_user(5, "Eve", "e@x.com")]
    outcome = await service.ensure_fresh()
    assert outcome.ok
    fake_api.list_users.reset_mock()
    return service
