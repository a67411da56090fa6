"""Cache key resolver: query predicates -> cache keys -> cached records.

A lookup is served only when every key resolves to a record that also
satisfies the soft-delete predicate. Anything less is a miss, never a
partial result.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from rowcache.application.services.unique_key_registry import UniqueKeyRegistry
from rowcache.domain.entities.declaration import CacheableEntity, soft_delete_column_of
from rowcache.domain.enums import PredicateOperator
from rowcache.domain.query.predicate import Predicate
from rowcache.domain.query.predicate_set import PredicateSet
from rowcache.infrastructure.cache.cache_protocol import CacheProtocol
from rowcache.infrastructure.cache.keys import cache_key, entity_prefix, is_pointer
from rowcache.shared.utils.serialization import stringify_value

logger = logging.getLogger(__name__)


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def passes_soft_delete(predicate: Predicate | None, record: Mapping[str, Any]) -> bool:
    """Return True if a cached record satisfies the query's soft-delete predicate.

    A record without the soft-delete column never qualifies.
    """
    if predicate is None:
        return True
    if predicate.column not in record:
        return False
    stored = record[predicate.column]
    kind = predicate.kind
    if kind is PredicateOperator.IS_NULL:
        return _is_empty(stored)
    if kind is PredicateOperator.IS_NOT_NULL:
        return not _is_empty(stored)
    if kind is PredicateOperator.EQUALS:
        return stringify_value(stored) == predicate.value
    if kind is PredicateOperator.IN:
        return stringify_value(stored) in predicate.value
    return False


class CacheKeyResolver:
    """Maps predicate sets onto registered unique keys and reads them back.

    Pointer values are followed exactly once: a pointer that leads to
    another pointer is a miss.
    """

    def __init__(
        self,
        registry: UniqueKeyRegistry,
        cache: CacheProtocol,
        key_prefix: str,
    ) -> None:
        self.registry = registry
        self.cache = cache
        self.key_prefix = key_prefix

    def predicate_set_for(
        self, entity: CacheableEntity, clauses: Iterable[Mapping[str, Any]]
    ) -> PredicateSet:
        """Normalize raw clauses with the entity's soft-delete column."""
        return PredicateSet.from_clauses(clauses, soft_delete_column_of(entity))

    def lookup_keys(self, entity: CacheableEntity, predicates: PredicateSet) -> list[str]:
        """Return the cache keys for a query, or [] when it is not cacheable."""
        if not len(predicates):
            return []
        signature = predicates.signature()
        if self.registry.lookup(entity, signature) is None:
            logger.debug(
                "No unique key %r on %s; not cacheable", signature, entity.entity_name()
            )
            return []
        return predicates.cache_keys(entity_prefix(self.key_prefix, entity.entity_name()))

    async def fetch(self, key: str) -> dict[str, Any] | None:
        """Read one key, following a pointer at most once."""
        value = await self.cache.get(key)
        if is_pointer(value, self.key_prefix):
            value = await self.cache.get(value)
        if isinstance(value, dict):
            return value
        return None

    async def resolve(
        self, entity: CacheableEntity, predicates: PredicateSet
    ) -> list[dict[str, Any]] | None:
        """Return cached records for every key, or None on any miss.

        Args:
            entity: Entity type being queried.
            predicates: Normalized filter of the query.

        Returns:
            Records in key order, or None when not cacheable, any key is
            missing, or a record fails the soft-delete predicate.
        """
        keys = self.lookup_keys(entity, predicates)
        if not keys:
            return None
        soft_delete = predicates.soft_delete_predicate()
        records: list[dict[str, Any]] = []
        for key in keys:
            record = await self.fetch(key)
            if record is None:
                return None
            if not passes_soft_delete(soft_delete, record):
                logger.debug("Cached record for %s fails soft-delete predicate", key)
                return None
            records.append(record)
        return records

    def keys_for_record(
        self, entity: CacheableEntity, attributes: Mapping[str, Any]
    ) -> dict[str, str]:
        """Signature -> cache key for every unique key the record can fill.

        Constraints with a column absent from the attributes, or null in
        them, produce no key.
        """
        keys: dict[str, str] = {}
        for signature, constraint in self.registry.constraints(entity).items():
            if any(attributes.get(column) is None for column in constraint.columns):
                continue
            mapping = {column: attributes[column] for column in constraint.columns}
            keys[signature] = cache_key(self.key_prefix, entity.entity_name(), mapping)
        return keys

    def primary_key_for_record(
        self, entity: CacheableEntity, attributes: Mapping[str, Any]
    ) -> str | None:
        primary = self.registry.primary_constraint(entity)
        return self.keys_for_record(entity, attributes).get(primary.name)
