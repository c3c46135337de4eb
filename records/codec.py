"""Helpers for translating record fields to and from their JSON wire form."""
from __future__ import annotations

import re
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Type, TypeVar

E = TypeVar("E", bound=Enum)

_FRACTION_PATTERN = re.compile(r"(\.\d{6})\d+")
_CAMEL_BOUNDARY = re.compile(r"_([a-z0-9])")


def camel_case(name: str) -> str:
    """Convert ``document_number`` style names to ``documentNumber``."""

    return _CAMEL_BOUNDARY.sub(lambda match: match.group(1).upper(), name)


def encode_uuid(value: Optional[uuid.UUID]) -> Optional[str]:
    return str(value) if value is not None else None


def decode_uuid(value: Any) -> Optional[uuid.UUID]:
    if value is None or value == "":
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as exc:
        raise ValueError(f"Invalid identifier {value!r}") from exc


def encode_uuid_list(values: Iterable[uuid.UUID]) -> List[str]:
    return [str(value) for value in values]


def decode_uuid_list(values: Any) -> List[uuid.UUID]:
    if values is None:
        return []
    if isinstance(values, Mapping):
        # The store turns sparse arrays into objects keyed by index.
        values = [values[key] for key in sorted(values, key=lambda item: int(item))]
    if not isinstance(values, Sequence) or isinstance(values, (str, bytes)):
        raise ValueError("Identifier lists must be JSON arrays")
    decoded: List[uuid.UUID] = []
    for value in values:
        if value is None:
            continue
        decoded.append(decode_uuid(value))
    return decoded


def encode_timestamp(value: datetime) -> str:
    return value.isoformat()


def normalize_timestamp(value: datetime) -> datetime:
    """Return ``value`` as naive local time."""

    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def decode_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return normalize_timestamp(value)
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Timestamps must be ISO formatted strings")
    text = value.strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    text = _FRACTION_PATTERN.sub(r"\1", text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValueError(f"Timestamp {value!r} is not ISO formatted") from exc
    return normalize_timestamp(parsed)


def encode_ordinal(member: Enum) -> int:
    return list(type(member)).index(member)


def decode_enum(enum_type: Type[E], value: Any, default: Optional[E] = None) -> E:
    """Decode an enum written either as its ordinal or as its name."""

    members = list(enum_type)
    if value is None:
        if default is None:
            raise ValueError(f"Missing {enum_type.__name__} value")
        return default
    if isinstance(value, bool):
        raise ValueError(f"Unsupported {enum_type.__name__} value {value!r}")
    if isinstance(value, int):
        if 0 <= value < len(members):
            return members[value]
        raise ValueError(f"Unknown {enum_type.__name__} ordinal {value}")
    if isinstance(value, str):
        normalized = value.strip().lower()
        for member in members:
            if normalized in (member.name.lower(), str(member.value).lower()):
                return member
    raise ValueError(f"Unknown {enum_type.__name__} value {value!r}")


def extract(payload: Mapping[str, Any], key: str, default: Any = None) -> Any:
    """Read ``key`` from a wire payload, tolerating PascalCase property names."""

    if key in payload:
        return payload[key]
    pascal = key[:1].upper() + key[1:]
    return payload.get(pascal, default)


def require(payload: Mapping[str, Any], key: str) -> Any:
    value = extract(payload, key)
    if value is None:
        raise KeyError(f"Expected {key!r} in record payload")
    return value


def is_array_value(value: Any) -> bool:
    """Whether ``value`` must be written to the store as a whole JSON array."""

    if isinstance(value, (str, bytes, bytearray, Mapping)):
        return False
    return isinstance(value, (list, tuple, set, frozenset))


def encode_value(value: Any) -> Any:
    """Encode a single attribute value for a partial field write."""

    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, datetime):
        return encode_timestamp(value)
    if isinstance(value, Enum):
        # String-valued enums travel by name, the others by ordinal.
        return value.value if isinstance(value, str) else encode_ordinal(value)
    if is_array_value(value):
        return [encode_value(item) for item in value]
    return value
