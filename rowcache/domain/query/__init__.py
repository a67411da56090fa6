"""Query model: predicate normalization, predicate sets and query shapes."""

from rowcache.domain.query.predicate import Predicate, normalize_clause, normalize_column
from rowcache.domain.query.predicate_set import PredicateSet
from rowcache.domain.query.shape import QueryShape

__all__ = [
    "Predicate",
    "PredicateSet",
    "QueryShape",
    "normalize_clause",
    "normalize_column",
]
