"""Exceptions raised by the remote store and collaborator clients."""
from __future__ import annotations


class StoreClientError(RuntimeError):
    """Base exception for remote document store errors."""


class StoreTransportError(StoreClientError):
    """Raised when the store is unreachable or answers with an error status."""


class StoreNotFoundError(StoreClientError):
    """Raised when a record or natural key does not exist in the store."""


class StoreSerializationError(StoreClientError):
    """Raised when a record cannot be encoded or a response cannot be decoded."""


class SelectorUnavailableError(RuntimeError):
    """Raised when the doctor selection service cannot be reached."""


__all__ = [
    "SelectorUnavailableError",
    "StoreClientError",
    "StoreNotFoundError",
    "StoreSerializationError",
    "StoreTransportError",
]
