"""Cache key builders. Single place for key format (DRY).

Key layout: "{prefix}::{Entity}::{serialized sorted column map}". Pointer
values stored under secondary keys are themselves full keys, so anything
starting with "{prefix}::" read back from the store is a pointer.

The prefix and entity name must not contain CACHE_KEY_SEP to avoid
ambiguous or colliding keys.
"""

from collections.abc import Mapping
from typing import Any

from rowcache.core.constants import CACHE_KEY_SEP
from rowcache.shared.utils.serialization import serialize_key_map


def _validate_key_component(value: str, name: str) -> None:
    """Raise ValueError if value is empty or contains the cache key separator.

    Args:
        value: String component used in a cache key.
        name: Name of the component (for error message).

    Raises:
        ValueError: If value is empty or contains CACHE_KEY_SEP.
    """
    if not value:
        raise ValueError(f"Cache key component {name!r} must not be empty")
    if CACHE_KEY_SEP in value:
        raise ValueError(
            f"Cache key component {name!r} must not contain separator {CACHE_KEY_SEP!r}"
        )


def pointer_prefix(prefix: str) -> str:
    """Leading text shared by every key (and so every pointer value)."""
    _validate_key_component(prefix, "prefix")
    return f"{prefix}{CACHE_KEY_SEP}"


def entity_prefix(prefix: str, entity_name: str) -> str:
    """Key prefix for one entity type."""
    _validate_key_component(entity_name, "entity_name")
    return f"{pointer_prefix(prefix)}{entity_name}{CACHE_KEY_SEP}"


def cache_key(prefix: str, entity_name: str, mapping: Mapping[str, Any]) -> str:
    """Full cache key for one column -> value map of an entity."""
    return entity_prefix(prefix, entity_name) + serialize_key_map(mapping)


def is_pointer(value: Any, prefix: str) -> bool:
    """Return True if a stored value is a reference to another key."""
    return isinstance(value, str) and value.startswith(pointer_prefix(prefix))
