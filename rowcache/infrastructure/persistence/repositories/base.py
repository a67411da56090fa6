"""Base repository: generic CRUD and lifecycle hooks (cache invalidation)."""

from typing import Any

from sqlalchemy import and_, inspect as sa_inspect, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import object_session

from rowcache.domain.exceptions import ResourceNotFoundException
from rowcache.infrastructure.persistence.database import Base


class BaseRepository[ModelType: Base]:
    """Base repository with get_by_id, create, update, delete and hooks.

    Subclasses override _on_after_create, _on_after_update and
    _on_after_delete for cache invalidation. Hooks run after the flush,
    so they only see writes the database accepted.
    """

    def __init__(self, db: AsyncSession, model: type[ModelType]) -> None:
        self.db = db
        self.model = model

    async def get_by_id(self, entity_id: Any) -> ModelType | None:
        """Return a single record by primary key, or None."""
        return await self.db.get(self.model, entity_id)

    async def create(self, obj: ModelType) -> ModelType:
        """Persist a new record and run _on_after_create hook."""
        self.db.add(obj)
        await self.db.flush()
        await self.db.refresh(obj)
        await self._on_after_create(obj)
        return obj

    async def update(self, obj: ModelType) -> ModelType:
        """Flush changes to an existing record and run _on_after_update hook.

        Detached objects are merged after confirming the row exists; raises
        ResourceNotFoundException if no row is found.
        """
        mapper = sa_inspect(self.model)
        pk_attrs = [mapper.get_property_by_column(c) for c in mapper.primary_key]
        for attr in pk_attrs:
            if getattr(obj, attr.key) is None:
                raise ValueError(
                    f"Cannot update: primary key '{attr.key}' is missing on "
                    f"{self.model.__name__} instance."
                )
        if object_session(obj) is not self.db.sync_session:
            stmt = select(self.model).where(
                and_(*(getattr(self.model, a.key) == getattr(obj, a.key) for a in pk_attrs))
            )
            result = await self.db.execute(stmt)
            if result.scalar_one_or_none() is None:
                pk_str = ",".join(str(getattr(obj, a.key)) for a in pk_attrs)
                raise ResourceNotFoundException(self.model.__name__, pk_str)
            obj = await self.db.merge(obj)
        previous = self._pending_previous_values(obj)
        await self.db.flush()
        await self.db.refresh(obj)
        await self._on_after_update(obj, previous)
        return obj

    async def delete(self, obj: ModelType) -> None:
        """Delete the record and run _on_after_delete hook."""
        await self.db.delete(obj)
        await self.db.flush()
        await self._on_after_delete(obj)

    def _pending_previous_values(self, obj: ModelType) -> dict[str, Any]:
        """Column name -> committed value for every column changed since load."""
        state = sa_inspect(obj)
        previous: dict[str, Any] = {}
        for attr in state.mapper.column_attrs:
            history = state.attrs[attr.key].history
            if history.has_changes() and history.deleted:
                previous[attr.columns[0].name] = history.deleted[0]
        return previous

    async def _on_after_create(self, obj: ModelType) -> None:
        """Override in subclasses to invalidate caches or emit events."""

    async def _on_after_update(self, obj: ModelType, previous: dict[str, Any]) -> None:
        """Override in subclasses to invalidate caches or emit events."""

    async def _on_after_delete(self, obj: ModelType) -> None:
        """Override in subclasses to invalidate caches or emit events."""
