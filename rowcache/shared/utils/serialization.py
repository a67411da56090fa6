"""Deterministic serialization for cache key maps.

Key maps are encoded in a length-prefixed array text format so keys stay
byte-identical to entries written by existing deployments:

    {"id": "1"}  ->  a:1:{s:2:"id";s:1:"1";}

Every string is prefixed by its UTF-8 byte length, which makes the
encoding injective: two different maps never produce the same text.
"""

from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from typing import Any


def stringify_value(value: Any) -> str:
    """Coerce a scalar to the string form used in cache keys.

    None becomes "", booleans become "1"/"", enums use their value and
    datetimes use "YYYY-MM-DD HH:MM:SS[.ffffff]". Everything else is str().
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else ""
    if isinstance(value, Enum):
        return stringify_value(value.value)
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def _serialize_string(value: str) -> str:
    return f's:{len(value.encode("utf-8"))}:"{value}";'


def serialize_key_map(mapping: Mapping[str, Any]) -> str:
    """Serialize a column -> value map, sorted by column name.

    Args:
        mapping: Column names to scalar values (coerced with stringify_value).

    Returns:
        Order-independent serialized form of the map.
    """
    items = sorted((str(k), stringify_value(v)) for k, v in mapping.items())
    body = "".join(_serialize_string(k) + _serialize_string(v) for k, v in items)
    return f"a:{len(items)}:{{{body}}}"
