"""Generic repository that keeps the remote store and the cache in step."""
from __future__ import annotations

import dataclasses
import json
import logging
import re
import uuid
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from connector.errors import StoreClientError
from records.models import EntityKind, EntityRecord

from .cache import EntityCache
from .results import FailureKind, OperationResult

logger = logging.getLogger(__name__)

_CAMEL_HUMP = re.compile(r"(?<!^)(?=[A-Z])")


class CollectionStore(Protocol):
    """Protocol describing the remote operations the repository relies on."""

    kind: EntityKind

    def create(self, entity: EntityRecord) -> str:
        """Persist a new record and return its key."""

    def get_all(self) -> Dict[str, EntityRecord]:
        """Return every record in the collection keyed by remote key."""

    def get_by_id(self, record_id: str) -> EntityRecord:
        """Return one record or raise ``StoreNotFoundError``."""

    def update(self, record_id: str, entity: EntityRecord) -> None:
        """Overwrite the record stored under ``record_id``."""

    def update_field(self, record_id: str, field: str, value: Any) -> None:
        """Overwrite one attribute of the record stored under ``record_id``."""

    def delete_by_id(self, record_id: str) -> None:
        """Remove the record stored under ``record_id``."""


def attribute_name(field: str) -> str:
    """Map ``appointmentIds`` or ``appointment_ids`` to ``appointment_ids``."""

    return _CAMEL_HUMP.sub("_", field).lower()


class Repository:
    """Persistence entry point for one entity kind.

    Every write goes to the remote store first and is mirrored into the cache
    only once the store has accepted it, so a failed write leaves the cache
    exactly as it was. Failures come back as :class:`OperationResult` values.
    """

    def __init__(self, store: CollectionStore, cache: EntityCache) -> None:
        self.kind = store.kind
        self._store = store
        self._cache = cache

    @property
    def label(self) -> str:
        return self.kind.label

    # Reads served from the cache.

    def get(self, key: str) -> Optional[EntityRecord]:
        return self._cache.get(self.kind, key)

    def all(self) -> Dict[str, EntityRecord]:
        return self._cache.snapshot(self.kind)

    def values(self) -> List[EntityRecord]:
        return self._cache.values(self.kind)

    def find_by_name(self, name: str) -> Optional[Tuple[str, EntityRecord]]:
        return self._cache.find_by_name(self.kind, name)

    def find_by_id(self, entity_id: uuid.UUID) -> Optional[Tuple[str, EntityRecord]]:
        return self._cache.find_by_id(self.kind, entity_id)

    # Reads that go to the store.

    def fetch(self, key: str) -> OperationResult:
        try:
            entity = self._store.get_by_id(key)
        except StoreClientError as exc:
            logger.error("Failed to fetch %s %s: %s", self.label, key, exc)
            return OperationResult.from_exception(exc, f"fetching {self.label}", key=key)
        self._cache.upsert(self.kind, key, entity)
        return OperationResult.success(f"Fetched {self.label} '{key}'", key=key, value=entity)

    def refresh(self) -> OperationResult:
        """Replace this kind's cache with the store's collection."""

        try:
            records = self._store.get_all()
        except StoreClientError as exc:
            logger.error("Failed to load %s records; clearing cached copies: %s", self.label, exc)
            self._cache.replace_all(self.kind, {})
            return OperationResult.from_exception(exc, f"loading {self.label} records")
        self._cache.replace_all(self.kind, records)
        return OperationResult.success(f"Loaded {len(records)} {self.label} records", value=len(records))

    # Writes.

    def create(self, entity: EntityRecord) -> OperationResult:
        self.kind.check(entity)
        entity.ensure_id()
        try:
            key = self._store.create(entity)
        except StoreClientError as exc:
            logger.error("Failed to create %s %s: %s", self.label, entity.id, exc)
            return OperationResult.from_exception(exc, f"creating {self.label}")
        self._cache.upsert(self.kind, key, entity)
        return OperationResult.success(f"Record created successfully (ID: {key})", key=key, value=entity)

    def update(self, key: str, entity: EntityRecord) -> OperationResult:
        self.kind.check(entity)
        try:
            self._store.update(key, entity)
        except StoreClientError as exc:
            logger.error("Failed to update %s %s: %s", self.label, key, exc)
            return OperationResult.from_exception(exc, f"updating {self.label}", key=key)
        self._cache.upsert(self.kind, key, entity)
        return OperationResult.success(f"Record '{key}' updated successfully", key=key, value=entity)

    def update_field(self, key: str, field: str, value: Any) -> OperationResult:
        """Write one attribute of the cached record ``key``.

        The value is passed through the record's wire form before anything is
        sent, so a value the record cannot hold is reported as a serialization
        failure and the cache receives the same value a reload would produce.
        """

        name = attribute_name(field)
        known = {item.name for item in dataclasses.fields(self.kind.model)}
        if name not in known:
            return OperationResult.failed(
                FailureKind.SERIALIZATION, f"{self.kind.model.__name__} has no field '{field}'", key=key
            )
        cached = self._cache.get(self.kind, key)
        if cached is None:
            return OperationResult.failed(FailureKind.NOT_FOUND, f"Record '{key}' not found.", key=key)
        try:
            candidate = dataclasses.replace(cached, **{name: value})
            decoded = self.kind.decode(json.loads(json.dumps(candidate.to_wire())))
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("Rejected value for %s.%s on %s: %s", self.label, field, key, exc)
            return OperationResult.failed(
                FailureKind.SERIALIZATION, f"Invalid value for '{field}': {exc}", key=key
            )
        stored_value = getattr(decoded, name)

        try:
            self._store.update_field(key, field, stored_value)
        except StoreClientError as exc:
            logger.error("Failed to update %s.%s on %s: %s", self.label, field, key, exc)
            return OperationResult.from_exception(exc, f"updating {self.label} field", key=key)

        setattr(cached, name, stored_value)
        self._cache.upsert(self.kind, key, cached)
        return OperationResult.success(f"Field '{field}' updated on '{key}'", key=key, value=cached)

    def delete(self, name: str) -> OperationResult:
        """Delete the first record whose name matches ``name``.

        The name is resolved against the cache, so an unknown name is reported
        without contacting the store.
        """

        match = self._cache.find_by_name(self.kind, name)
        if match is None:
            return OperationResult.failed(FailureKind.NOT_FOUND, f"Record '{name}' not found.")
        key, _ = match
        result = self.delete_by_id(key)
        if result.ok:
            return OperationResult.success(f"Record '{name}' deleted successfully!", key=key)
        return result

    def delete_by_id(self, key: str) -> OperationResult:
        try:
            self._store.delete_by_id(key)
        except StoreClientError as exc:
            logger.error("Failed to delete %s %s: %s", self.label, key, exc)
            return OperationResult.from_exception(exc, f"deleting {self.label}", key=key)
        self._cache.remove(self.kind, key)
        return OperationResult.success(f"Record '{key}' deleted successfully!", key=key)


def build_repositories(stores: Mapping[EntityKind, CollectionStore], cache: EntityCache) -> Dict[EntityKind, Repository]:
    return {kind: Repository(stores[kind], cache) for kind in EntityKind}


__all__ = ["CollectionStore", "Repository", "attribute_name", "build_repositories"]
