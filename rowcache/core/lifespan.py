"""Cache layer lifespan: startup and shutdown.

Single place for wiring the cache store, the unique-key registry and the
orchestrator. No cache logic here.
"""

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

from rowcache.application.services.cache_orchestrator import CacheOrchestrator
from rowcache.application.services.unique_key_registry import UniqueKeyRegistry
from rowcache.core.config import Settings, get_settings
from rowcache.domain.entities.declaration import CacheableEntity
from rowcache.infrastructure.cache.redis_cache import RedisCacheStore
from rowcache.infrastructure.persistence.database import dispose_engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def cache_lifespan(
    settings: Settings | None = None,
    entities: Sequence[CacheableEntity] = (),
    store: RedisCacheStore | None = None,
) -> AsyncIterator[CacheOrchestrator]:
    """Build a ready orchestrator, yield it, then shut everything down.

    Startup: register entities (configuration errors raise here), connect
    Redis when REDIS_ENABLED. With Redis disabled or unreachable the store
    reports unavailable and every read goes to the database.
    Shutdown: Redis disconnect, SQL engine dispose.

    Args:
        settings: Optional settings; defaults to get_settings().
        entities: Entity types to validate and register up front.
        store: Optional pre-built store (tests inject one with a fake client).
    """
    settings = settings or get_settings()

    # ---- Startup ----
    registry = UniqueKeyRegistry()
    registry.register_all(entities)

    cache = store or RedisCacheStore(settings=settings)
    if settings.redis_enabled:
        await cache.connect()
    else:
        logger.info("Redis disabled; reads go straight to the database")

    orchestrator = CacheOrchestrator.from_settings(cache, registry, settings)
    logger.info(
        "Cache layer ready (prefix=%s, active=%s, entities=%d)",
        settings.cache_key_prefix,
        settings.cache_active,
        len(entities),
    )

    try:
        yield orchestrator
    finally:
        # ---- Shutdown ----
        await cache.disconnect()
        await dispose_engine()
