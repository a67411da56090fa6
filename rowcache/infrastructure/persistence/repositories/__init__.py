"""Repositories: generic CRUD with lifecycle hooks, and the cached repository."""

from rowcache.infrastructure.persistence.repositories.base import BaseRepository
from rowcache.infrastructure.persistence.repositories.cached_repo import (
    CachedRepository,
    record_to_dict,
)

__all__ = ["BaseRepository", "CachedRepository", "record_to_dict"]
