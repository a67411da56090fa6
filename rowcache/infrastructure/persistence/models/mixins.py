"""SQLAlchemy mixins that make a model a cacheable entity type (DRY).

Provides: CacheableMixin (unique-key declaration and cache switches),
SoftDeleteMixin (deleted_at + soft-delete capability) and TimestampMixin.

Example:

    class User(CacheableMixin, SoftDeleteMixin, Base):
        __tablename__ = "user"
        __cache_unique_keys__ = ("id", "uuid", ("account_id", "email"))
        __cache_expiration_minutes__ = 60 * 24 * 7
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, inspect as sa_inspect
from sqlalchemy.orm import Mapped, declared_attr, mapped_column
from sqlalchemy.sql import func

from rowcache.core.config import get_settings
from rowcache.domain.entities.declaration import UniqueKeyDeclaration
from rowcache.domain.exceptions import CacheConfigurationException

SOFT_DELETE_COLUMN = "deleted_at"


class CacheableMixin:
    """Class-level cache declaration read through classmethods.

    Override the dunder attributes on the model; a None expiration falls
    back to CACHE_DEFAULT_EXPIRATION_MINUTES.
    """

    # Unannotated: declarative must not treat these as mapped attributes.
    __cache_unique_keys__ = ()
    __cache_primary_unique_key__ = None
    __cache_active__ = True
    __cache_expiration_minutes__ = None

    @classmethod
    def entity_name(cls) -> str:
        return cls.__name__

    @classmethod
    def unique_keys(cls) -> Sequence[UniqueKeyDeclaration]:
        return cls.__cache_unique_keys__

    @classmethod
    def primary_unique_key(cls) -> UniqueKeyDeclaration | None:
        """Unique key that holds the payload; defaults to the first declared."""
        return cls.__cache_primary_unique_key__

    @classmethod
    def primary_key_name(cls) -> str:
        """Column name of the mapper's single primary key."""
        primary_key = sa_inspect(cls).primary_key
        if len(primary_key) != 1:
            raise CacheConfigurationException(
                cls.__name__,
                f"expected a single-column primary key, found {len(primary_key)} columns",
            )
        return primary_key[0].name

    @classmethod
    def cache_active(cls) -> bool:
        return cls.__cache_active__

    @classmethod
    def cache_expiration_minutes(cls) -> int:
        if cls.__cache_expiration_minutes__ is not None:
            return cls.__cache_expiration_minutes__
        return get_settings().cache_default_expiration_minutes

    @classmethod
    def column_types(cls) -> dict[str, Any]:
        """Column name -> SQLAlchemy type, for rebuilding cached payloads."""
        return {column.name: column.type for column in sa_inspect(cls).columns}


class SoftDeleteMixin:
    """Mixin for soft delete (deleted_at). Null means not deleted."""

    @declared_attr
    def deleted_at(cls) -> Mapped[datetime | None]:
        return mapped_column(DateTime(timezone=True), nullable=True, index=True)

    @classmethod
    def soft_delete_column_name(cls) -> str:
        return SOFT_DELETE_COLUMN


class TimestampMixin:
    """Mixin for created_at and updated_at (server defaults, timezone-aware)."""

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        )

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            server_default=func.now(),
            onupdate=func.now(),
            nullable=False,
        )
