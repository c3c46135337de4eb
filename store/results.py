"""Reported outcomes returned across the repository and service boundary."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from connector.errors import (
    SelectorUnavailableError,
    StoreNotFoundError,
    StoreSerializationError,
    StoreTransportError,
)


class FailureKind(Enum):
    TRANSPORT = "transport"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    MALFORMED = "malformed"
    SERIALIZATION = "serialization"


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a repository or service operation.

    ``message`` is always a single line suitable for showing to the operator.
    """

    ok: bool
    message: str
    key: Optional[str] = None
    value: Any = None
    failure: Optional[FailureKind] = None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, message: str, *, key: Optional[str] = None, value: Any = None) -> "OperationResult":
        return cls(ok=True, message=message, key=key, value=value)

    @classmethod
    def failed(cls, failure: FailureKind, message: str, *, key: Optional[str] = None) -> "OperationResult":
        return cls(ok=False, message=message, key=key, failure=failure)

    @classmethod
    def from_exception(cls, exc: Exception, action: str, *, key: Optional[str] = None) -> "OperationResult":
        if isinstance(exc, StoreNotFoundError):
            failure = FailureKind.NOT_FOUND
        elif isinstance(exc, StoreSerializationError):
            failure = FailureKind.SERIALIZATION
        elif isinstance(exc, (StoreTransportError, SelectorUnavailableError)):
            failure = FailureKind.TRANSPORT
        else:
            raise TypeError(f"Unsupported failure type {type(exc).__name__}") from exc
        return cls.failed(failure, f"Error {action}: {exc}", key=key)


__all__ = ["FailureKind", "OperationResult"]
