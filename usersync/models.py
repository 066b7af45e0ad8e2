from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class MutationKind(str, Enum):
    create = "create"
    update = "update"
    delete = "delete"


class MutationState(str, Enum):
    idle = "idle"
    in_flight = "in_flight"
    committed = "committed"
    failed = "failed"


class User(BaseModel):
    """A user as returned by the server. Fields are trusted verbatim."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    created_at: datetime
    updated_at: datetime


class UserFields(BaseModel):
    """Mutable fields sent on create and update."""

    name: str = Field(..., examples=["Ann Smith"])
    email: str = Field(..., examples=["ann@example.com"])

    @field_validator("name", "email", mode="before")
    @classmethod
    def collapse_whitespace(cls, v: Any) -> Any:
        if isinstance(v, str):
            return " ".join(v.split())
        return v

    @field_validator("name", "email")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("must not be empty")
        return v


class UserStats(BaseModel):
    total: int
    recent_signups: int
    window_days: int = 7


_USER_LIST = TypeAdapter(list[User])


def parse_user(payload: Any) -> User:
    return User.model_validate(payload)


def parse_users(payload: Any) -> list[User]:
    return _USER_LIST.validate_python(payload)


def summarize(users: list[User], now: datetime | None = None, days: int = 7) -> UserStats:
    """Totals shown next to the users table: all users and signups in the last `days`."""
    now = now or datetime.now(tz=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    cutoff = now - timedelta(days=days)
    recent = 0
    for user in users:
        created = user.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        if created > cutoff:
            recent += 1
    return UserStats(total=len(users), recent_signups=recent, window_days=days)
