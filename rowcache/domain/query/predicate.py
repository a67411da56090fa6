"""Predicate normalizer: one raw filter clause -> one canonical Predicate.

Normalization is total. Clauses the cache cannot serve still normalize
(with kind None or an "or" conjunction); PredicateSet rejects them when
it decides eligibility.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from rowcache.core.constants import (
    CLAUSE_BOOL_AND,
    CLAUSE_KEY_BOOLEAN,
    CLAUSE_KEY_COLUMN,
    CLAUSE_KEY_OPERATOR,
    CLAUSE_KEY_TYPE,
    CLAUSE_KEY_VALUE,
    CLAUSE_KEY_VALUES,
    CLAUSE_TYPE_BASIC,
    CLAUSE_TYPE_IN,
    CLAUSE_TYPE_NOT_NULL,
    CLAUSE_TYPE_NULL,
    COLUMN_QUALIFIER_SEP,
    COLUMN_QUOTE_CHARS,
    OPERATOR_EQUALS,
    OPERATOR_IN,
    OPERATOR_IS,
)
from rowcache.domain.enums import Conjunction, PredicateOperator
from rowcache.shared.utils.serialization import stringify_value

PredicateValue = str | tuple[str, ...]

_NULL_TYPES = (CLAUSE_TYPE_NULL, CLAUSE_TYPE_NOT_NULL)


@dataclass(frozen=True)
class Predicate:
    """One normalized filter condition.

    Attributes:
        column: Bare column name (quoting and table qualifier stripped).
        clause_type: Raw clause type token (Basic, In, Null, NotNull, ...).
        operator: Operator token; "In" for In clauses, "Is" for null checks.
        value: String value, or a tuple of strings for In clauses. Null checks
            carry their type token ("Null" / "NotNull").
        conjunction: "and" or "or" as given by the clause.
    """

    column: str
    clause_type: str
    operator: str
    value: PredicateValue
    conjunction: str = CLAUSE_BOOL_AND

    @property
    def kind(self) -> PredicateOperator | None:
        """Cache-relevant operator, or None for shapes the cache never serves."""
        if self.clause_type == CLAUSE_TYPE_IN:
            return PredicateOperator.IN
        if self.clause_type == CLAUSE_TYPE_NULL:
            return PredicateOperator.IS_NULL
        if self.clause_type == CLAUSE_TYPE_NOT_NULL:
            return PredicateOperator.IS_NOT_NULL
        if (
            self.clause_type == CLAUSE_TYPE_BASIC
            and self.operator == OPERATOR_EQUALS
            and not self.is_array
        ):
            return PredicateOperator.EQUALS
        return None

    @property
    def is_array(self) -> bool:
        return isinstance(self.value, tuple)

    @property
    def is_and(self) -> bool:
        return self.conjunction == Conjunction.AND.value


def normalize_column(column: Any) -> str:
    """Strip identifier quoting and any table qualifier from a column reference.

    >>> normalize_column("`users`.`id`")
    'id'
    """
    name = "" if column is None else str(column)
    for ch in COLUMN_QUOTE_CHARS:
        name = name.replace(ch, "")
    return name.rsplit(COLUMN_QUALIFIER_SEP, 1)[-1]


def _normalize_operator(clause_type: str, raw_operator: Any) -> str:
    if clause_type in _NULL_TYPES:
        return OPERATOR_IS
    if clause_type == CLAUSE_TYPE_IN:
        return OPERATOR_IN
    return "" if raw_operator is None else str(raw_operator)


def _normalize_value(clause_type: str, clause: Mapping[str, Any]) -> PredicateValue:
    if clause_type in _NULL_TYPES:
        return clause_type
    key = CLAUSE_KEY_VALUES if clause_type == CLAUSE_TYPE_IN else CLAUSE_KEY_VALUE
    raw = clause.get(key, "")
    if isinstance(raw, (list, tuple, set, frozenset)):
        return tuple(stringify_value(v) for v in raw)
    if clause_type == CLAUSE_TYPE_IN:
        return (stringify_value(raw),)
    return stringify_value(raw)


def normalize_clause(clause: Mapping[str, Any]) -> Predicate:
    """Build a Predicate from one raw clause mapping.

    Args:
        clause: Mapping with type/column/operator/value(s)/boolean keys.

    Returns:
        Normalized Predicate. Never raises for unsupported shapes.
    """
    clause_type = str(clause.get(CLAUSE_KEY_TYPE) or "")
    conjunction = str(clause.get(CLAUSE_KEY_BOOLEAN) or "").lower()
    return Predicate(
        column=normalize_column(clause.get(CLAUSE_KEY_COLUMN)),
        clause_type=clause_type,
        operator=_normalize_operator(clause_type, clause.get(CLAUSE_KEY_OPERATOR)),
        value=_normalize_value(clause_type, clause),
        conjunction=conjunction,
    )
