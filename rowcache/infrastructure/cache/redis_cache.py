"""Redis-backed cache store for cached records and key pointers.

Async Redis with TTL support. Record payloads are stored as JSON
objects; pointers as JSON strings. Connectivity problems do not
propagate by default: reads degrade to a miss and writes to "not stored".
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import redis.asyncio as redis

from rowcache.core.config import Settings, get_settings
from rowcache.domain.exceptions import CacheStoreException

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RedisCacheStore:
    """Async Redis cache store (implements CacheProtocol).

    Uses rowcache.core.config for connection settings. Call connect() at
    startup and disconnect() at shutdown.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        settings: Settings | None = None,
        raise_on_error: bool = False,
    ) -> None:
        """Initialize the store.

        Args:
            redis_client: Optional Redis client for testing or DI. An injected
                client is treated as connected.
            settings: Optional settings; defaults to get_settings().
            raise_on_error: Raise CacheStoreException on a failed command
                instead of answering with the fallback value.
        """
        self.redis = redis_client
        self.settings = settings or get_settings()
        self.raise_on_error = raise_on_error
        self._connected = redis_client is not None

    async def connect(self) -> None:
        """Establish Redis connection. Call on startup."""
        if self.redis is not None:
            return
        try:
            self.redis = redis.Redis(
                host=self.settings.redis_host,
                port=self.settings.redis_port,
                db=self.settings.redis_db,
                password=self.settings.redis_password.get_secret_value()
                if self.settings.redis_password
                else None,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_keepalive=True,
            )
            await self.redis.ping()
            self._connected = True
            logger.info(
                "Redis cache connected: %s:%s",
                self.settings.redis_host,
                self.settings.redis_port,
            )
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.warning("Redis connection failed: %s. Cache disabled.", e)
            self._connected = False
            self.redis = None

    async def disconnect(self) -> None:
        """Close Redis connection. Call on shutdown."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self._connected = False
            logger.info("Redis cache disconnected")

    async def _reconnect(self) -> bool:
        """Drop the current client and connect again. Returns True if reconnected."""
        if self.redis is None:
            return False
        try:
            await self.redis.aclose()
        except redis.RedisError:
            logger.debug("Ignoring error while closing stale Redis client")
        self.redis = None
        self._connected = False
        await self.connect()
        return self._connected

    def is_available(self) -> bool:
        """Return True if Redis is connected and usable."""
        return self._connected and self.redis is not None

    async def _call(
        self,
        operation: str,
        key: str,
        command: Callable[[redis.Redis], Awaitable[T]],
        fallback: T,
    ) -> T:
        """Run one Redis command, retrying once after a reconnect.

        Connection and timeout errors trigger a single reconnect; any other
        Redis error is logged and answered with the fallback value (or
        raised as CacheStoreException when raise_on_error is set).
        """
        if not self.is_available() or self.redis is None:
            return fallback
        try:
            return await command(self.redis)
        except (redis.ConnectionError, redis.TimeoutError) as e:
            if await self._reconnect() and self.redis is not None:
                try:
                    return await command(self.redis)
                except redis.RedisError as retry_error:
                    logger.exception("Cache %s error for key %s after reconnect", operation, key)
                    return self._fail(operation, key, retry_error, fallback)
            logger.warning("Cache %s unavailable for key %s (Redis disconnected)", operation, key)
            return self._fail(operation, key, e, fallback)
        except redis.RedisError as e:
            logger.exception("Cache %s error for key %s", operation, key)
            return self._fail(operation, key, e, fallback)

    def _fail(self, operation: str, key: str, error: Exception, fallback: T) -> T:
        if self.raise_on_error:
            raise CacheStoreException(operation, key, str(error)) from error
        return fallback

    async def get(self, key: str) -> Any | None:
        """Return the stored value (JSON-decoded) or None if missing/unavailable.

        Args:
            key: Cache key (see rowcache.infrastructure.cache.keys).

        Returns:
            Record payload dict, pointer string, or None.
        """
        raw = await self._call("get", key, lambda client: client.get(key), None)
        if raw is None:
            logger.debug("Cache MISS: %s", key)
            return None
        try:
            value = json.loads(raw)
        except ValueError:
            logger.warning("Cache value for key %s is not valid JSON; treating as miss", key)
            return None
        logger.debug("Cache HIT: %s", key)
        return value

    async def set(self, key: str, value: Any, ttl: int = 300) -> bool:
        """Store value with TTL. Returns True on success.

        Args:
            key: Cache key.
            value: Record payload or pointer (JSON-serializable).
            ttl: Time-to-live in seconds (default 300).

        Returns:
            True if stored, False otherwise (including values JSON cannot encode).
        """
        try:
            serialized = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.warning("Cache value for key %s is not JSON-serializable; not stored", key)
            return self._fail("set", key, e, False)

        async def _setex(client: redis.Redis) -> bool:
            await client.setex(key, ttl, serialized)
            return True

        stored = await self._call("set", key, _setex, False)
        if stored:
            logger.debug("Cache SET: %s (TTL: %ss)", key, ttl)
        return stored

    async def delete(self, key: str) -> bool:
        """Remove key from the store. Returns True if the command ran.

        Args:
            key: Cache key to delete.

        Returns:
            True if deleted (or already absent), False if Redis is unavailable.
        """

        async def _delete(client: redis.Redis) -> bool:
            await client.delete(key)
            return True

        deleted = await self._call("delete", key, _delete, False)
        if deleted:
            logger.debug("Cache DELETE: %s", key)
        return deleted
