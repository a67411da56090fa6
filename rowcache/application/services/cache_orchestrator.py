"""Read-through / write-through coordinator.

Reads try the cache first and fall back to the data source, storing what
the data source returned. Writes and deletes invalidate every key of the
affected record.

No locking is added around cache population: two concurrent writers of
the same record race at the store, and the cache may briefly serve
either writer's value until the next invalidation or TTL expiry.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from rowcache.application.interfaces.data_source import IDataSource
from rowcache.application.services.cache_key_resolver import CacheKeyResolver
from rowcache.application.services.unique_key_registry import UniqueKeyRegistry, UniqueKeySet
from rowcache.core.config import Settings, get_settings
from rowcache.domain.entities.declaration import CacheableEntity
from rowcache.domain.query.shape import QueryShape
from rowcache.infrastructure.cache.cache_protocol import CacheProtocol

logger = logging.getLogger(__name__)


class CacheOrchestrator:
    """Serves entity queries from cache when possible (read-through).

    Caching for an entity is effective only when both the process-wide
    switch and the entity's own cache_active() are on. Invalidation runs
    regardless of either switch.
    """

    def __init__(
        self,
        cache: CacheProtocol,
        registry: UniqueKeyRegistry,
        *,
        key_prefix: str,
        cache_active: bool = True,
    ) -> None:
        self.cache = cache
        self.registry = registry
        self.resolver = CacheKeyResolver(registry, cache, key_prefix)
        self._cache_active = cache_active

    @classmethod
    def from_settings(
        cls,
        cache: CacheProtocol,
        registry: UniqueKeyRegistry,
        settings: Settings | None = None,
    ) -> CacheOrchestrator:
        settings = settings or get_settings()
        return cls(
            cache,
            registry,
            key_prefix=settings.cache_key_prefix,
            cache_active=settings.cache_active,
        )

    @property
    def key_prefix(self) -> str:
        return self.resolver.key_prefix

    def set_cache_active(self, active: bool = True) -> None:
        """Flip the process-wide cache switch."""
        self._cache_active = bool(active)
        logger.info("Global cache %s", "enabled" if self._cache_active else "disabled")

    def is_cache_active(self) -> bool:
        return self._cache_active

    def is_caching(self, entity: CacheableEntity) -> bool:
        """True when both the global and the entity's switch are on."""
        return self._cache_active and bool(entity.cache_active())

    def attach(self, entity: CacheableEntity) -> UniqueKeySet:
        """Validate and register an entity type at wiring time."""
        return self.registry.register(entity)

    async def read(
        self,
        entity: CacheableEntity,
        query: QueryShape,
        data_source: IDataSource,
        *,
        fresh: bool = False,
    ) -> list[dict[str, Any]]:
        """Return the query's records from cache, or from the data source.

        Args:
            entity: Entity type being queried.
            query: Shape of the query, including the statement to execute.
            data_source: Executes the statement on a miss.
            fresh: Skip the cache entirely (no lookup, no write-through), for
                callers whose transaction holds uncommitted writes.

        Returns:
            Records as attribute maps.
        """
        caching = not fresh and self.is_caching(entity) and self.cache.is_available()
        if caching and query.is_cache_candidate():
            predicates = self.resolver.predicate_set_for(entity, query.clauses)
            cached = await self.resolver.resolve(entity, predicates)
            if cached is not None:
                if query.limit is not None:
                    cached = cached[: query.limit]
                logger.debug(
                    "Served %d %s record(s) from cache", len(cached), entity.entity_name()
                )
                return cached
        records = await data_source.execute(query.statement)
        if caching and not query.columns:
            for record in records:
                await self.remember(entity, record)
        return records

    async def remember(self, entity: CacheableEntity, record: Mapping[str, Any]) -> bool:
        """Store a record under its primary key and pointers under the others.

        Returns:
            False when caching is off or the record lacks its primary key columns.
        """
        if not self.is_caching(entity):
            return False
        keys = self.resolver.keys_for_record(entity, record)
        primary_key = keys.get(self.registry.primary_constraint(entity).name)
        if primary_key is None:
            logger.debug(
                "Record of %s has no primary cache key; not stored", entity.entity_name()
            )
            return False
        ttl = entity.cache_expiration_minutes() * 60
        await self.cache.set(primary_key, dict(record), ttl=ttl)
        for key in keys.values():
            if key != primary_key:
                await self.cache.set(key, primary_key, ttl=ttl)
        return True

    async def invalidate(
        self,
        entity: CacheableEntity,
        record: Mapping[str, Any],
        previous: Mapping[str, Any] | None = None,
    ) -> list[str]:
        """Delete every cache key of a record, whatever the cache switches say.

        Args:
            entity: Entity type of the record.
            record: Current attribute values.
            previous: Attribute values before an update, so keys built from
                old unique-key values are dropped too.

        Returns:
            The keys deleted.
        """
        keys = list(self.resolver.keys_for_record(entity, record).values())
        if previous:
            for key in self.resolver.keys_for_record(entity, previous).values():
                if key not in keys:
                    keys.append(key)
        for key in keys:
            await self.cache.delete(key)
        if keys:
            logger.debug("Invalidated %d key(s) for %s", len(keys), entity.entity_name())
        return keys

    async def forget_key(self, key: str) -> bool:
        """Drop a single cache key."""
        return await self.cache.delete(key)
