"""Entity capability contracts."""

from rowcache.domain.entities.declaration import (
    CacheableEntity,
    PrimaryUniqueKeyDesignating,
    SoftDeleteCapable,
    designated_primary_key_of,
    ensure_cacheable,
    entity_name_of,
    soft_delete_column_of,
)

__all__ = [
    "CacheableEntity",
    "PrimaryUniqueKeyDesignating",
    "SoftDeleteCapable",
    "designated_primary_key_of",
    "ensure_cacheable",
    "entity_name_of",
    "soft_delete_column_of",
]
