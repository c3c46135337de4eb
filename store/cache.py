"""Session-scoped mirror of the remote collections."""
from __future__ import annotations

import uuid
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from records.models import EntityKind, EntityRecord, Identifiable, Named


class EntityCache:
    """Maps remote keys to records, one mapping per entity kind.

    The cache is built when a session starts and discarded when it ends. It
    is only ever mutated by the repository and the bulk loader.
    """

    def __init__(self) -> None:
        self._entries: Dict[EntityKind, Dict[str, EntityRecord]] = {kind: {} for kind in EntityKind}

    def upsert(self, kind: EntityKind, key: str, entity: EntityRecord) -> None:
        self._entries[kind][key] = kind.check(entity)

    def remove(self, kind: EntityKind, key: str) -> None:
        self._entries[kind].pop(key, None)

    def replace_all(self, kind: EntityKind, mapping: Mapping[str, EntityRecord]) -> None:
        self._entries[kind] = {key: kind.check(entity) for key, entity in mapping.items()}

    def clear(self) -> None:
        for kind in EntityKind:
            self._entries[kind] = {}

    def get(self, kind: EntityKind, key: str) -> Optional[EntityRecord]:
        return self._entries[kind].get(key)

    def contains(self, kind: EntityKind, key: str) -> bool:
        return key in self._entries[kind]

    def count(self, kind: EntityKind) -> int:
        return len(self._entries[kind])

    def items(self, kind: EntityKind) -> Iterator[Tuple[str, EntityRecord]]:
        return iter(list(self._entries[kind].items()))

    def values(self, kind: EntityKind) -> List[EntityRecord]:
        return list(self._entries[kind].values())

    def snapshot(self, kind: EntityKind) -> Dict[str, EntityRecord]:
        return dict(self._entries[kind])

    def find_by_name(self, kind: EntityKind, name: str) -> Optional[Tuple[str, EntityRecord]]:
        """Return the first record whose display name matches, ignoring case.

        Records sharing a name are not distinguished; the first one wins.
        """

        target = name.strip().lower()
        for key, entity in self._entries[kind].items():
            if isinstance(entity, Named) and entity.display_name().strip().lower() == target:
                return key, entity
        return None

    def find_by_id(self, kind: EntityKind, entity_id: uuid.UUID) -> Optional[Tuple[str, EntityRecord]]:
        for key, entity in self._entries[kind].items():
            if isinstance(entity, Identifiable) and entity.id == entity_id:
                return key, entity
        return None
