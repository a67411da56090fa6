"""Persistence: SQLAlchemy engine, cacheable model mixins and repositories."""

from rowcache.infrastructure.persistence.database import (
    Base,
    build_engine,
    build_session_factory,
    dispose_engine,
    get_db,
    get_db_transactional,
)
from rowcache.infrastructure.persistence.query_source import describe_select
from rowcache.infrastructure.persistence.transaction_cache import TransactionCache

__all__ = [
    "Base",
    "TransactionCache",
    "build_engine",
    "build_session_factory",
    "describe_select",
    "dispose_engine",
    "get_db",
    "get_db_transactional",
]
