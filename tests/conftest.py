"""Pytest configuration and fixtures for rowcache.

Provides a dict-backed cache store, plain entity types for service tests
and SQLAlchemy models on in-memory SQLite (aiosqlite) for repository
tests.
"""

import json
from collections.abc import Callable
from typing import Any

import pytest
from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from rowcache.application.services.cache_orchestrator import CacheOrchestrator
from rowcache.application.services.unique_key_registry import UniqueKeyRegistry
from rowcache.core.config import Settings, get_settings
from rowcache.infrastructure.persistence.database import (
    Base,
    build_engine,
    build_session_factory,
)
from rowcache.infrastructure.persistence.models.mixins import (
    CacheableMixin,
    SoftDeleteMixin,
    TimestampMixin,
)

TEST_PREFIX = "test"


class FakeCacheStore:
    """In-memory CacheProtocol. Values go through JSON like the Redis store."""

    def __init__(self, available: bool = True) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.available = available
        self.get_calls: list[str] = []
        self.deleted: list[str] = []

    def is_available(self) -> bool:
        return self.available

    async def get(self, key: str) -> Any:
        self.get_calls.append(key)
        raw = self.data.get(key)
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any, ttl: int = 300) -> bool:
        self.data[key] = json.dumps(value)
        self.ttls[key] = ttl
        return True

    async def delete(self, key: str) -> bool:
        self.deleted.append(key)
        self.data.pop(key, None)
        self.ttls.pop(key, None)
        return True

    def value(self, key: str) -> Any:
        """Decoded stored value (test helper)."""
        raw = self.data.get(key)
        return None if raw is None else json.loads(raw)


def _entity_type(
    name: str,
    unique_keys: tuple[Any, ...] = ("id",),
    primary_key: str = "id",
    active: bool = True,
    expiration: int = 60,
    soft_delete: str | None = None,
    primary_unique_key: Any = None,
) -> type:
    """Build a plain (non-ORM) entity type satisfying the cacheable contract."""
    attrs: dict[str, Any] = {
        "entity_name": classmethod(lambda cls: name),
        "unique_keys": classmethod(lambda cls: unique_keys),
        "primary_key_name": classmethod(lambda cls: primary_key),
        "cache_active": classmethod(lambda cls: active),
        "cache_expiration_minutes": classmethod(lambda cls: expiration),
    }
    if soft_delete is not None:
        attrs["soft_delete_column_name"] = classmethod(lambda cls: soft_delete)
    if primary_unique_key is not None:
        attrs["primary_unique_key"] = classmethod(lambda cls: primary_unique_key)
    return type(name, (), attrs)


# ---- ORM models used by repository tests ----


class Account(CacheableMixin, Base):
    __tablename__ = "account"
    __cache_unique_keys__ = ("id", "slug")

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    slug: Mapped[str] = mapped_column(String(50), unique=True)


class User(CacheableMixin, SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "user"
    __cache_unique_keys__ = ("id", "uuid", ("account_id", "email"))
    __cache_expiration_minutes__ = 30

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    uuid: Mapped[str] = mapped_column(String(36), unique=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("account.id"))
    email: Mapped[str] = mapped_column(String(255))
    name: Mapped[str | None] = mapped_column(String(100), nullable=True)


class AuditEntry(CacheableMixin, Base):
    __tablename__ = "audit_entry"
    __cache_active__ = False

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    message: Mapped[str] = mapped_column(String(255))


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Each test sees settings built from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        redis_enabled=False,
        cache_key_prefix=TEST_PREFIX,
        database_url="sqlite+aiosqlite:///:memory:",
    )


@pytest.fixture
def fake_cache() -> FakeCacheStore:
    return FakeCacheStore()


@pytest.fixture
def entity_type() -> Callable[..., type]:
    """Factory for plain entity types (see _entity_type)."""
    return _entity_type


@pytest.fixture
def registry() -> UniqueKeyRegistry:
    return UniqueKeyRegistry()


@pytest.fixture
def orchestrator(fake_cache: FakeCacheStore, registry: UniqueKeyRegistry) -> CacheOrchestrator:
    return CacheOrchestrator(fake_cache, registry, key_prefix=TEST_PREFIX)


@pytest.fixture
async def db_session(settings: Settings) -> AsyncSession:
    """Session on a fresh in-memory SQLite database. Rolls back after test."""
    engine = build_engine(settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = build_session_factory(engine)
    async with session_factory() as session:
        yield session
        await session.rollback()
    await engine.dispose()


@pytest.fixture
def user_model() -> type[User]:
    """Soft-deletable model with single and composite unique keys."""
    return User


@pytest.fixture
def account_model() -> type[Account]:
    return Account


@pytest.fixture
def audit_model() -> type[AuditEntry]:
    """Model with caching switched off."""
    return AuditEntry
