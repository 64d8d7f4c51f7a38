"""Explicit success/failure result type returned by every core operation.

Search, ingestion and embedding never mix "raise on failure" with "return
``None`` on failure": they return a :class:`Result`, which is either
``Result.success(value)`` or ``Result.failure(kind, message)``.  Callers
check ``result.ok`` (or call :meth:`Result.unwrap`) and cannot silently
forget that the operation might have failed.

:class:`ErrorKind` is the error taxonomy shared across the core:

* ``INVALID_INPUT`` -- bad tenant id, empty URL or query; rejected before I/O.
* ``UPSTREAM_TRANSIENT`` -- rate limit or network blip that outlived retries.
* ``UPSTREAM_FATAL`` -- auth failure, malformed provider response, non-2xx
  fetch, database error.
* ``CONTENT_REJECTED`` -- every candidate was dropped by content validation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from synchat.utils.errors import SynChatError

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Classification of a failed core operation."""

    INVALID_INPUT = "invalid_input"
    UPSTREAM_TRANSIENT = "upstream_transient"
    UPSTREAM_FATAL = "upstream_fatal"
    CONTENT_REJECTED = "content_rejected"

    @classmethod
    def from_exception(cls, exc: BaseException) -> ErrorKind:
        """Map a provider exception onto the taxonomy."""
        if isinstance(exc, SynChatError) and exc.retryable:
            return cls.UPSTREAM_TRANSIENT
        return cls.UPSTREAM_FATAL


class ResultError(RuntimeError):
    """Raised by :meth:`Result.unwrap` on a failed result."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(f"{kind.value}: {message}")
        self.kind = kind


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value (``ok=True``) or an error kind and message (``ok=False``)."""

    ok: bool
    value: T | None = None
    error_kind: ErrorKind | None = None
    message: str = ""

    @classmethod
    def success(cls, value: T, message: str = "") -> Result[T]:
        return cls(ok=True, value=value, message=message)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> Result[T]:
        return cls(ok=False, error_kind=kind, message=message)

    @classmethod
    def from_exception(cls, exc: BaseException, context: str = "") -> Result[T]:
        """Build a failure from a provider exception, prefixing *context*."""
        message = f"{context}: {exc}" if context else str(exc)
        return cls.failure(ErrorKind.from_exception(exc), message)

    def unwrap(self) -> T:
        """Return the value or raise :class:`ResultError`."""
        if not self.ok:
            raise ResultError(self.error_kind or ErrorKind.UPSTREAM_FATAL, self.message)
        return self.value  # type: ignore[return-value]

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default  # type: ignore[return-value]
