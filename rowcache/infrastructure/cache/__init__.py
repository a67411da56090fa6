"""Cache: Redis store and cache key utilities.

Used by the read-through orchestrator. RedisCacheStore uses
rowcache.core.config; key format is in keys.py (DRY).
"""

from rowcache.infrastructure.cache.cache_protocol import CacheProtocol
from rowcache.infrastructure.cache.keys import (
    cache_key,
    entity_prefix,
    is_pointer,
    pointer_prefix,
)
from rowcache.infrastructure.cache.redis_cache import RedisCacheStore

__all__ = [
    "CacheProtocol",
    "RedisCacheStore",
    "cache_key",
    "entity_prefix",
    "is_pointer",
    "pointer_prefix",
]
