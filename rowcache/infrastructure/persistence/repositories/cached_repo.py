"""Cached repository: the data-access boundary of the read-through cache.

Reads go through CacheOrchestrator; rows come back as model instances
whether they were served from cache or from the database. Every create,
update and delete invalidates the record's cache keys, again once the
transaction commits. While the transaction holds writes to the model,
reads bypass the cache and are stored only on commit.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import Date, DateTime, inspect as sa_inspect, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import make_transient_to_detached
from sqlalchemy.orm.util import identity_key

from rowcache.application.services.cache_orchestrator import CacheOrchestrator
from rowcache.domain.entities.declaration import soft_delete_column_of
from rowcache.infrastructure.persistence.models.mixins import CacheableMixin
from rowcache.infrastructure.persistence.query_source import describe_select
from rowcache.infrastructure.persistence.repositories.base import BaseRepository
from rowcache.infrastructure.persistence.transaction_cache import TransactionCache
from rowcache.shared.utils.datetime import (
    parse_cached_date,
    parse_cached_datetime,
    to_cache_string,
    utc_now,
)


def _to_cache_value(value: Any) -> Any:
    """Convert a column value to its JSON-safe cached form."""
    if isinstance(value, (datetime, date)):
        return to_cache_string(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


def record_to_dict(obj: Any) -> dict[str, Any]:
    """Map an ORM instance to a JSON-safe column name -> value dict."""
    state = sa_inspect(obj)
    return {
        attr.columns[0].name: _to_cache_value(state.dict.get(attr.key))
        for attr in state.mapper.column_attrs
    }


class CachedRepository[ModelType: CacheableMixin](BaseRepository[ModelType]):
    """Repository whose reads are served through the read-through cache.

    Implements the orchestrator's data source contract via execute().
    """

    def __init__(
        self,
        db: AsyncSession,
        model: type[ModelType],
        orchestrator: CacheOrchestrator,
    ) -> None:
        super().__init__(db, model)
        self.orchestrator = orchestrator
        orchestrator.attach(model)
        self.transaction = TransactionCache.for_session(db, orchestrator)
        mapper = sa_inspect(model)
        self._attr_keys = {attr.columns[0].name: attr.key for attr in mapper.column_attrs}
        self._column_types = model.column_types()
        self._primary_key = model.primary_key_name()

    async def execute(self, statement: Any) -> list[dict[str, Any]]:
        """Run a statement against the database; rows as column -> value maps."""
        result = await self.db.execute(statement)
        return [record_to_dict(obj) for obj in result.scalars().all()]

    def _from_record(self, record: dict[str, Any]) -> ModelType:
        """Rebuild a detached instance from a record (no SELECT)."""
        values: dict[str, Any] = {}
        for column, value in record.items():
            key = self._attr_keys.get(column)
            if key is None:
                continue
            column_type = self._column_types.get(column)
            if isinstance(column_type, DateTime):
                value = parse_cached_datetime(value)
            elif isinstance(column_type, Date):
                value = parse_cached_date(value)
            values[key] = value
        obj = self.model(**values)
        make_transient_to_detached(obj)
        return obj

    async def find(self, statement: Any) -> list[ModelType]:
        """Run a SELECT of this model, served from cache when possible."""
        shape = describe_select(statement, self.model)
        if self.transaction.has_uncommitted_writes(self.model):
            records = await self.orchestrator.read(self.model, shape, self, fresh=True)
            if not shape.columns:
                self.transaction.remember_after_commit(self.model, records)
        else:
            records = await self.orchestrator.read(self.model, shape, self)
        return [await self._attach(record) for record in records]

    async def _attach(self, record: dict[str, Any]) -> ModelType:
        """Return the session's instance for a record, merging it in if absent.

        Instances already in the identity map win, as with a plain query, so
        unflushed changes are never overwritten by a cached payload.
        """
        pk_value = record.get(self._primary_key)
        key = identity_key(self.model, (pk_value,))
        existing = self.db.sync_session.identity_map.get(key)
        if existing is not None:
            return existing
        return await self.db.merge(self._from_record(record), load=False)

    async def find_one(self, statement: Any) -> ModelType | None:
        """Return the first row of a SELECT of this model, or None."""
        rows = await self.find(statement)
        return rows[0] if rows else None

    async def find_by(self, **filters: Any) -> list[ModelType]:
        """Equality lookup on columns, e.g. find_by(email="a@b.com", account_id=27).

        Soft-deleted rows are excluded when the model supports soft deletes.
        """
        stmt = select(self.model).filter_by(**filters)
        soft_delete_column = soft_delete_column_of(self.model)
        if soft_delete_column is not None and soft_delete_column not in filters:
            stmt = stmt.where(getattr(self.model, self._attr_keys[soft_delete_column]).is_(None))
        return await self.find(stmt)

    async def get_by_id(self, entity_id: Any) -> ModelType | None:
        """Return a record by primary key, from cache if available."""
        rows = await self.find(
            select(self.model).where(getattr(self.model, self._attr_keys[self._primary_key]) == entity_id)
        )
        return rows[0] if rows else None

    async def soft_delete(self, obj: ModelType) -> ModelType:
        """Stamp the soft-delete column and save (invalidates like any update)."""
        column = soft_delete_column_of(self.model)
        if column is None:
            raise TypeError(f"{self.model.__name__} does not support soft deletes")
        setattr(obj, self._attr_keys[column], utc_now())
        return await self.update(obj)

    async def _invalidate(self, obj: ModelType, previous: dict[str, Any] | None = None) -> None:
        record = record_to_dict(obj)
        old = None
        if previous:
            old = {**record, **{k: _to_cache_value(v) for k, v in previous.items()}}
        keys = await self.orchestrator.invalidate(self.model, record, old)
        self.transaction.forget_after_commit(keys)

    async def _on_after_create(self, obj: ModelType) -> None:
        await self._invalidate(obj)

    async def _on_after_update(self, obj: ModelType, previous: dict[str, Any]) -> None:
        await self._invalidate(obj, previous)

    async def _on_after_delete(self, obj: ModelType) -> None:
        await self._invalidate(obj)
