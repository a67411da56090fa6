"""Application services: unique-key registry, key resolver and read-through orchestrator."""

from rowcache.application.services.cache_key_resolver import (
    CacheKeyResolver,
    passes_soft_delete,
)
from rowcache.application.services.cache_orchestrator import CacheOrchestrator
from rowcache.application.services.unique_key_registry import (
    UniqueKeyConstraint,
    UniqueKeyRegistry,
    UniqueKeySet,
    build_unique_key_set,
    sorted_column_string,
)

__all__ = [
    "CacheKeyResolver",
    "CacheOrchestrator",
    "UniqueKeyConstraint",
    "UniqueKeyRegistry",
    "UniqueKeySet",
    "build_unique_key_set",
    "passes_soft_delete",
    "sorted_column_string",
]
