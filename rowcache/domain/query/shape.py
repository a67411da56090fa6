"""Query shape: what the query layer tells the cache about one query."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class QueryShape:
    """Raw filter clauses plus every feature that rules out a cache lookup.

    Attributes:
        clauses: Raw clause mappings (type/column/operator/value(s)/boolean).
        distinct: SELECT DISTINCT was requested.
        limit: LIMIT value, if any. Only a limit of 1 keeps the query cacheable;
            cached results are cut to it.
        offset: OFFSET value, if any.
        groups, havings, orders, unions, joins: Feature present in the query.
        columns: The query projects explicit columns instead of whole rows.
        for_update: The query takes a row lock.
        unsupported: The query layer could not describe part of the query.
        statement: Opaque statement handed back to the data source on a miss.
    """

    clauses: tuple[Mapping[str, Any], ...] = ()
    distinct: bool = False
    limit: int | None = None
    offset: int | None = None
    groups: bool = False
    havings: bool = False
    orders: bool = False
    unions: bool = False
    joins: bool = False
    columns: bool = False
    for_update: bool = False
    unsupported: bool = False
    statement: Any = field(default=None, compare=False)

    def disqualifiers(self) -> list[str]:
        """Names of the features that make this query non-cacheable."""
        found = [
            name
            for name in (
                "distinct",
                "groups",
                "havings",
                "orders",
                "unions",
                "joins",
                "columns",
                "for_update",
                "unsupported",
            )
            if getattr(self, name)
        ]
        if self.limit is not None and self.limit != 1:
            found.append("limit")
        if self.offset:
            found.append("offset")
        if not self.clauses:
            found.append("no_clauses")
        return found

    def is_cache_candidate(self) -> bool:
        return not self.disqualifiers()
