from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

"""
Error taxonomy of the synchronization core.

Transport failures arrive as `TransportError` (status code and body, or no
status at all when nothing was received) and are mapped by `normalize_error`
into exactly one `ErrorKind`. Public service operations never raise: they
resolve to an `Outcome` carrying either a value or a `SyncError`.
"""

T = TypeVar("T")


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    VALIDATION_FAILED = "validation_failed"
    UNREACHABLE = "unreachable"
    SERVER_FAULT = "server_fault"
    CONFLICT_IN_PROGRESS = "conflict_in_progress"

    @property
    def transient(self) -> bool:
        return self in _TRANSIENT


_TRANSIENT = frozenset({ErrorKind.UNREACHABLE, ErrorKind.SERVER_FAULT})

_DEFAULT_MESSAGES = {
    ErrorKind.NOT_FOUND: "User not found.",
    ErrorKind.CONFLICT: "A user with this email already exists.",
    ErrorKind.VALIDATION_FAILED: "Invalid request.",
    ErrorKind.UNREACHABLE: "Could not reach the server. Check your connection.",
    ErrorKind.SERVER_FAULT: "The server failed to process the request.",
    ErrorKind.CONFLICT_IN_PROGRESS: "Another change to this user is still in progress.",
}


class TransportError(Exception):
    """Raised by the transport adapter for any non-successful exchange.

    `status_code` is None when no response was received (DNS, connect,
    timeout or protocol failure).
    """

    def __init__(
        self,
        status_code: int | None = None,
        body: Any = None,
        message: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        if message is None:
            message = f"HTTP {status_code}" if status_code is not None else "no response"
        super().__init__(message)


class SyncError(Exception):
    """A normalized failure surfaced to callers of the service."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.kind = kind
        self.message = message or _DEFAULT_MESSAGES[kind]
        self.status_code = status_code
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"SyncError(kind={self.kind.value!r}, message={self.message!r}, status_code={self.status_code!r})"

    @classmethod
    def in_progress(cls, key: object) -> "SyncError":
        return cls(
            ErrorKind.CONFLICT_IN_PROGRESS,
            f"A mutation for '{key}' is already in flight.",
        )


def classify_status(status_code: int | None) -> ErrorKind:
    if status_code is None:
        return ErrorKind.UNREACHABLE
    if status_code == 404:
        return ErrorKind.NOT_FOUND
    if status_code == 409:
        return ErrorKind.CONFLICT
    if status_code in (400, 422):
        return ErrorKind.VALIDATION_FAILED
    return ErrorKind.SERVER_FAULT


def server_message(body: Any) -> str | None:
    """Extract the structured message from an error envelope, if any."""
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict):
        message = error.get("message")
    else:
        message = body.get("message")
    if isinstance(message, str) and message.strip():
        return message.strip()
    return None


def normalize_error(exc: TransportError) -> SyncError:
    """Map a transport failure into the domain taxonomy.

    Total and side-effect free: every `TransportError` yields exactly one
    kind. A message supplied by the server wins over the generic one.
    """
    kind = classify_status(exc.status_code)
    message = server_message(exc.body) if exc.status_code is not None else None
    return SyncError(kind, message, exc.status_code)


@dataclass(frozen=True, slots=True)
class Outcome(Generic[T]):
    """Discriminated result of a service operation."""

    value: T | None = None
    error: SyncError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> ErrorKind | None:
        return self.error.kind if self.error else None

    @classmethod
    def success(cls, value: T | None = None) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: SyncError) -> "Outcome[T]":
        return cls(error=error)

    def unwrap(self) -> T | None:
        if self.error is not None:
            raise self.error
        return self.value
