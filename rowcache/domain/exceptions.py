"""Domain exceptions for the read-through cache layer.

Only wiring mistakes raise. Query shapes the cache cannot serve are not
errors: they fall through to the data source.
"""

from typing import Any


class RowCacheException(Exception):
    """Base exception for all rowcache errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. entity, columns).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class CacheConfigurationException(RowCacheException):
    """Raised when an entity type is attached without satisfying the cacheable contract."""

    def __init__(self, entity: str, reason: str) -> None:
        """Initialize with the offending entity and the broken requirement.

        Args:
            entity: Entity name (or repr of the object) being wired.
            reason: What part of the contract is not met.
        """
        super().__init__(
            f"Entity {entity!r} cannot be cached: {reason}",
            "CACHE_CONFIGURATION_ERROR",
            {"entity": entity, "reason": reason},
        )


class CacheStoreException(RowCacheException):
    """Raised when a cache store operation fails and the caller asked to see it."""

    def __init__(self, operation: str, key: str, reason: str) -> None:
        super().__init__(
            f"Cache {operation} failed for key {key!r}",
            "CACHE_STORE_ERROR",
            {"operation": operation, "key": key, "reason": reason},
        )


class ResourceNotFoundException(RowCacheException):
    """Raised when a record expected to exist is not found."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        """Initialize with resource type and id.

        Args:
            resource_type: Entity name (e.g. 'User').
            resource_id: The primary key that was not found.
        """
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            "RESOURCE_NOT_FOUND",
            {"resource_type": resource_type, "resource_id": resource_id},
        )
