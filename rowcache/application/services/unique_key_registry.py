"""Unique-key registry: which column sets identify a record of an entity type.

Declarations are code, not data, so each entity's derived structure is
computed once and kept for the life of the registry. The registry is
built at startup and handed to the resolver and orchestrator.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass

from rowcache.domain.entities.declaration import (
    CacheableEntity,
    UniqueKeyDeclaration,
    designated_primary_key_of,
    ensure_cacheable,
)
from rowcache.domain.exceptions import CacheConfigurationException

logger = logging.getLogger(__name__)


def sorted_column_string(columns: UniqueKeyDeclaration) -> str:
    """Canonical signature of a unique key: sorted, comma-joined column names."""
    if isinstance(columns, str):
        return columns
    return ",".join(sorted(columns))


@dataclass(frozen=True)
class UniqueKeyConstraint:
    """A set of columns guaranteed unique for an entity type.

    Attributes:
        name: Canonical signature (sorted, comma-joined columns).
        columns: Columns in declaration order.
        is_primary: True for the constraint whose key holds the record payload.
    """

    name: str
    columns: tuple[str, ...]
    is_primary: bool = False


@dataclass(frozen=True)
class UniqueKeySet:
    """All unique-key constraints of one entity type, keyed by signature."""

    entity_name: str
    constraints: dict[str, UniqueKeyConstraint]
    primary_signature: str

    @property
    def primary(self) -> UniqueKeyConstraint:
        return self.constraints[self.primary_signature]

    def lookup(self, signature: str) -> UniqueKeyConstraint | None:
        return self.constraints.get(signature)


def _as_columns(declaration: UniqueKeyDeclaration) -> tuple[str, ...]:
    if isinstance(declaration, str):
        return (declaration,)
    return tuple(declaration)


def build_unique_key_set(entity: CacheableEntity) -> UniqueKeySet:
    """Derive the unique-key set from an entity's declaration.

    The primary-key column is always a constraint. The primary constraint is
    the designated primary unique key when the entity names one, otherwise
    the first declared constraint.

    Raises:
        CacheConfigurationException: If the declaration is malformed or the
            designated primary unique key is not one of the constraints.
    """
    ensure_cacheable(entity)
    name = entity.entity_name()
    primary_key = entity.primary_key_name()

    declared: list[UniqueKeyDeclaration] = list(entity.unique_keys())
    signatures = [sorted_column_string(d) for d in declared]
    if primary_key not in signatures:
        declared.append(primary_key)
        signatures.append(primary_key)

    designated = designated_primary_key_of(entity)
    primary_signature = (
        sorted_column_string(designated) if designated else signatures[0]
    )
    if primary_signature not in signatures:
        raise CacheConfigurationException(
            name,
            f"primary unique key {primary_signature!r} is not a declared unique key",
        )

    constraints = {
        signature: UniqueKeyConstraint(
            name=signature,
            columns=_as_columns(declaration),
            is_primary=signature == primary_signature,
        )
        for signature, declaration in sorted(zip(signatures, declared), key=lambda item: item[0])
    }
    return UniqueKeySet(
        entity_name=name,
        constraints=constraints,
        primary_signature=primary_signature,
    )


class UniqueKeyRegistry:
    """Compute-once store of UniqueKeySets, safe for concurrent readers.

    The first lookup for an entity builds its set under a lock; later
    lookups read the finished dict without locking.
    """

    def __init__(self) -> None:
        self._sets: dict[str, UniqueKeySet] = {}
        self._lock = threading.Lock()

    def register(self, entity: CacheableEntity) -> UniqueKeySet:
        """Build (once) and return the unique-key set for an entity type.

        Call at wiring time to surface configuration errors early.
        """
        name = ensure_cacheable(entity).entity_name()
        existing = self._sets.get(name)
        if existing is not None:
            return existing
        with self._lock:
            existing = self._sets.get(name)
            if existing is None:
                existing = build_unique_key_set(entity)
                self._sets[name] = existing
                logger.debug(
                    "Registered unique keys for %s: %s (primary %s)",
                    name,
                    list(existing.constraints),
                    existing.primary_signature,
                )
            return existing

    def register_all(self, entities: Sequence[CacheableEntity]) -> None:
        for entity in entities:
            self.register(entity)

    def constraints(self, entity: CacheableEntity) -> dict[str, UniqueKeyConstraint]:
        """Signature -> constraint, in signature order."""
        return self.register(entity).constraints

    def primary_constraint(self, entity: CacheableEntity) -> UniqueKeyConstraint:
        return self.register(entity).primary

    def lookup(self, entity: CacheableEntity, signature: str) -> UniqueKeyConstraint | None:
        """Return the constraint whose signature matches, or None."""
        if not signature:
            return None
        return self.register(entity).lookup(signature)

    def __contains__(self, entity_name: object) -> bool:
        return entity_name in self._sets
