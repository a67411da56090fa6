"""Model mixins for cacheable entity types."""

from rowcache.infrastructure.persistence.models.mixins import (
    SOFT_DELETE_COLUMN,
    CacheableMixin,
    SoftDeleteMixin,
    TimestampMixin,
)

__all__ = ["SOFT_DELETE_COLUMN", "CacheableMixin", "SoftDeleteMixin", "TimestampMixin"]
