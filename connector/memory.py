"""In-memory document collection used for offline sessions and tests."""
from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from records import codec
from records.models import EntityKind, EntityRecord, Named

from .errors import StoreNotFoundError, StoreTransportError

logger = logging.getLogger(__name__)


class InMemoryCollection:
    """Stores wire payloads in a dictionary, mirroring ``CollectionClient``.

    Records are kept in their encoded form so that every read goes through
    the same codec as the HTTP client. Setting ``fail`` makes every call raise
    :class:`StoreTransportError`, which simulates an unreachable store.
    """

    def __init__(self, kind: EntityKind, documents: Optional[Dict[str, Dict[str, Any]]] = None) -> None:
        self.kind = kind
        self.documents: Dict[str, Dict[str, Any]] = dict(documents or {})
        self.calls: List[Tuple[str, str]] = []
        self.fail = False

    def _enter(self, method: str, target: str) -> None:
        self.calls.append((method, target))
        if self.fail:
            raise StoreTransportError(f"{self.kind.collection} store is unavailable")

    def create(self, entity: EntityRecord) -> str:
        record_id = str(self.kind.check(entity).ensure_id())
        self._enter("PUT", record_id)
        self.documents[record_id] = entity.to_wire()
        return record_id

    def get_all(self) -> Dict[str, EntityRecord]:
        self._enter("GET", self.kind.collection)
        records: Dict[str, EntityRecord] = {}
        for key, payload in self.documents.items():
            try:
                records[key] = self.kind.decode(copy.deepcopy(payload))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping invalid %s record %s: %s", self.kind.label, key, exc)
        return records

    def get_by_id(self, record_id: str) -> EntityRecord:
        self._enter("GET", record_id)
        if record_id not in self.documents:
            raise StoreNotFoundError(f"{self.kind.label.capitalize()} '{record_id}' not found")
        return self.kind.decode(copy.deepcopy(self.documents[record_id]))

    def update(self, record_id: str, entity: EntityRecord) -> None:
        self._enter("PUT", record_id)
        self.documents[record_id] = self.kind.check(entity).to_wire()

    def update_field(self, record_id: str, field: str, value: Any) -> None:
        method = "PUT" if codec.is_array_value(value) else "PATCH"
        self._enter(method, f"{record_id}/{codec.camel_case(field)}")
        document = self.documents.setdefault(record_id, {})
        document[codec.camel_case(field)] = codec.encode_value(value)

    def delete_by_id(self, record_id: str) -> None:
        self._enter("DELETE", record_id)
        self.documents.pop(record_id, None)

    def delete_by_name(self, name: str) -> str:
        target = name.strip().lower()
        for key, record in self.get_all().items():
            if isinstance(record, Named) and record.display_name().strip().lower() == target:
                self.delete_by_id(key)
                return key
        raise StoreNotFoundError(f"{self.kind.label.capitalize()} '{name}' not found")


def build_collections(
    documents: Optional[Mapping[str, Mapping[str, Dict[str, Any]]]] = None,
) -> Dict[EntityKind, InMemoryCollection]:
    """One collection per kind, optionally pre-filled from an export keyed by collection name."""

    documents = documents or {}
    return {kind: InMemoryCollection(kind, dict(documents.get(kind.collection) or {})) for kind in EntityKind}


def load_export(path: Path) -> Dict[str, Dict[str, Dict[str, Any]]]:
    """Read a database export shaped like ``{"Patients": {key: record}, ...}``."""

    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError(f"Export {path} must be a JSON object keyed by collection")
    known = {kind.collection for kind in EntityKind}
    export: Dict[str, Dict[str, Dict[str, Any]]] = {}
    for collection, records in data.items():
        if collection not in known:
            logger.warning("Ignoring unknown collection %s in %s", collection, path)
            continue
        if not isinstance(records, dict):
            raise ValueError(f"Collection {collection} in {path} must be a JSON object")
        export[collection] = {str(key): record for key, record in records.items() if isinstance(record, dict)}
    return export


__all__ = ["InMemoryCollection", "build_collections", "load_export"]
