"""Domain enumerations for predicates.

Enums represent the fixed vocabulary the eligibility engine reasons about.
"""

from enum import Enum


class PredicateOperator(str, Enum):
    """Normalized predicate operator.

    Only these four shapes can ever be served from cache; every other
    comparison normalizes to no operator at all.
    """

    EQUALS = "Equals"
    IN = "In"
    IS_NULL = "IsNull"
    IS_NOT_NULL = "IsNotNull"


class Conjunction(str, Enum):
    """How a predicate joins the previous ones. Only AND is cacheable."""

    AND = "and"
    OR = "or"
