"""Capability contracts an entity type satisfies to take part in caching.

Entity types are usually classes (SQLAlchemy models using CacheableMixin),
so every method is called on the type itself. Optional behaviors are
separate protocols checked by type inspection, never by probing for
individual attributes at call sites.
"""

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from rowcache.core.constants import CACHE_KEY_SEP
from rowcache.domain.exceptions import CacheConfigurationException

# One unique-key declaration: a single column name or a composite column list.
UniqueKeyDeclaration = str | Sequence[str]


@runtime_checkable
class CacheableEntity(Protocol):
    """Required contract for every cached entity type."""

    def entity_name(self) -> str:
        """Name used in cache keys (one per table)."""
        ...

    def unique_keys(self) -> Sequence[UniqueKeyDeclaration]:
        """Declared unique constraints: column names or composite column lists."""
        ...

    def primary_key_name(self) -> str:
        """Name of the single primary-key column."""
        ...

    def cache_active(self) -> bool:
        """Per-entity cache switch (combined with the global switch)."""
        ...

    def cache_expiration_minutes(self) -> int:
        """TTL for stored records, in minutes."""
        ...


@runtime_checkable
class SoftDeleteCapable(Protocol):
    """Entity types whose rows are logically deleted through a nullable column."""

    def soft_delete_column_name(self) -> str:
        ...


@runtime_checkable
class PrimaryUniqueKeyDesignating(Protocol):
    """Entity types that name which unique key holds the record payload."""

    def primary_unique_key(self) -> UniqueKeyDeclaration | None:
        ...


def entity_name_of(entity: Any) -> str:
    """Return a printable name for any entity-like object (for errors and logs)."""
    if isinstance(entity, CacheableEntity):
        return entity.entity_name()
    return getattr(entity, "__name__", repr(entity))


def soft_delete_column_of(entity: CacheableEntity) -> str | None:
    """Return the soft-delete column name when the entity supports soft deletes."""
    if isinstance(entity, SoftDeleteCapable):
        return entity.soft_delete_column_name() or None
    return None


def designated_primary_key_of(entity: CacheableEntity) -> UniqueKeyDeclaration | None:
    """Return the explicitly designated primary unique key, if any."""
    if isinstance(entity, PrimaryUniqueKeyDesignating):
        return entity.primary_unique_key()
    return None


def _validate_unique_key(name: str, declaration: Any) -> None:
    if isinstance(declaration, str):
        if not declaration:
            raise CacheConfigurationException(name, "unique key column name is empty")
        return
    if not isinstance(declaration, Sequence) or not declaration:
        raise CacheConfigurationException(
            name, f"unique key must be a column name or a non-empty column list, got {declaration!r}"
        )
    columns = list(declaration)
    if not all(isinstance(c, str) and c for c in columns):
        raise CacheConfigurationException(
            name, f"unique key columns must be non-empty strings, got {declaration!r}"
        )
    if len(set(columns)) != len(columns):
        raise CacheConfigurationException(
            name, f"unique key {declaration!r} repeats a column"
        )


def ensure_cacheable(entity: Any) -> CacheableEntity:
    """Check the entity satisfies the cacheable contract; fail loudly otherwise.

    Args:
        entity: Entity type being attached to the cache layer.

    Returns:
        The same entity, typed as CacheableEntity.

    Raises:
        CacheConfigurationException: If a required capability is missing or
            its declaration is malformed.
    """
    if not isinstance(entity, CacheableEntity):
        raise CacheConfigurationException(
            entity_name_of(entity),
            "does not implement entity_name/unique_keys/primary_key_name/"
            "cache_active/cache_expiration_minutes",
        )
    name = entity.entity_name()
    if not isinstance(name, str) or not name or CACHE_KEY_SEP in name:
        raise CacheConfigurationException(
            getattr(entity, "__name__", repr(entity)),
            f"entity name must be a non-empty string without {CACHE_KEY_SEP!r}, got {name!r}",
        )
    primary_key = entity.primary_key_name()
    if not isinstance(primary_key, str) or not primary_key:
        raise CacheConfigurationException(name, "primary key name is empty")
    for declaration in entity.unique_keys():
        _validate_unique_key(name, declaration)
    expiration = entity.cache_expiration_minutes()
    if not isinstance(expiration, int) or expiration <= 0:
        raise CacheConfigurationException(
            name, f"cache expiration must be a positive number of minutes, got {expiration!r}"
        )
    return entity
