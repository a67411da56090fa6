"""Predicate set: the normalized filter of one query and its cache keying.

Predicates are sorted by column so the signature and the keys do not
depend on the order the caller wrote the clauses in.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from functools import cached_property
from typing import Any

from rowcache.domain.enums import PredicateOperator
from rowcache.domain.query.predicate import Predicate, PredicateValue, normalize_clause
from rowcache.shared.utils.serialization import serialize_key_map

_NULL_CHECKS = (PredicateOperator.IS_NULL, PredicateOperator.IS_NOT_NULL)


class PredicateSet:
    """Immutable, column-sorted collection of predicates for one query.

    Eligibility is decided once and memoized: every predicate is AND-ed,
    only Equals/In shapes appear outside the soft-delete column, no column
    repeats and an In predicate is the only keyed predicate.
    """

    def __init__(
        self,
        predicates: Iterable[Predicate],
        soft_delete_column: str | None = None,
    ) -> None:
        self._predicates = tuple(sorted(predicates, key=lambda p: p.column))
        self.soft_delete_column = soft_delete_column or None

    @classmethod
    def from_clauses(
        cls,
        clauses: Iterable[Mapping[str, Any]],
        soft_delete_column: str | None = None,
    ) -> PredicateSet:
        """Normalize raw clauses and build the set."""
        return cls((normalize_clause(c) for c in clauses), soft_delete_column)

    @property
    def predicates(self) -> tuple[Predicate, ...]:
        return self._predicates

    def __len__(self) -> int:
        return len(self._predicates)

    def __repr__(self) -> str:
        return f"PredicateSet({list(self._predicates)!r}, soft_delete_column={self.soft_delete_column!r})"

    def signature(self) -> str:
        """Comma-joined sorted column names, soft-delete column excluded."""
        return ",".join(p.column for p in self.non_soft_delete_predicates())

    def non_soft_delete_predicates(self) -> list[Predicate]:
        return [p for p in self._predicates if p.column != self.soft_delete_column]

    def soft_delete_predicate(self) -> Predicate | None:
        """Return the predicate on the soft-delete column (first match)."""
        if self.soft_delete_column is None:
            return None
        return self.first_with_column(self.soft_delete_column)

    def first_with_column(self, name: str | None) -> Predicate | None:
        for predicate in self._predicates:
            if predicate.column == name:
                return predicate
        return None

    def in_predicate(self) -> Predicate | None:
        """Return the sole keyed predicate when it is array-valued."""
        keyed = self.non_soft_delete_predicates()
        if len(keyed) == 1 and keyed[0].is_array:
            return keyed[0]
        return None

    def is_cacheable(self) -> bool:
        return self._is_cacheable

    @cached_property
    def _is_cacheable(self) -> bool:
        return (
            self._contains_no_duplicates()
            and self._valid_predicates()
            and self._valid_arrays()
        )

    def _contains_no_duplicates(self) -> bool:
        columns = [p.column for p in self._predicates]
        return len(columns) == len(set(columns))

    def _valid_predicates(self) -> bool:
        for predicate in self._predicates:
            if not predicate.is_and:
                return False
            kind = predicate.kind
            if kind is None:
                return False
            if kind in _NULL_CHECKS and predicate.column != self.soft_delete_column:
                return False
        return True

    def _valid_arrays(self) -> bool:
        keyed = self.non_soft_delete_predicates()
        for predicate in keyed:
            if predicate.kind is PredicateOperator.IN or predicate.is_array:
                return len(keyed) == 1
        return True

    def key_value_map(self) -> dict[str, PredicateValue]:
        """Column -> value map of the keyed predicates; empty when not cacheable."""
        if not self.is_cacheable():
            return {}
        return {p.column: p.value for p in self.non_soft_delete_predicates()}

    def cache_keys(self, prefix: str = "") -> list[str]:
        """Return the prefixed cache keys this query maps to.

        An In predicate expands into one key per value; any other eligible
        set yields exactly one key. Repeated In values share one key. An
        empty list means "not cacheable", never "no results".
        """
        values = self.key_value_map()
        if not values:
            return []
        in_predicate = self.in_predicate()
        if in_predicate is not None:
            return [
                prefix + serialize_key_map({in_predicate.column: value})
                for value in dict.fromkeys(in_predicate.value)
            ]
        return [prefix + serialize_key_map(values)]
