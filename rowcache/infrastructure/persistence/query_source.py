"""Query source: describe a SQLAlchemy SELECT as a QueryShape.

Translates the WHERE criteria of a Select into raw clause mappings and
records every feature that keeps the query away from the cache. Anything
this module does not recognize becomes an unsupported clause, never an
error.
"""

from __future__ import annotations

import logging
import operator
from collections.abc import Iterator
from typing import Any

from sqlalchemy import exc
from sqlalchemy.sql import operators
from sqlalchemy.sql.elements import (
    BinaryExpression,
    BindParameter,
    ClauseList,
    ColumnClause,
    Grouping,
    Null,
)
from sqlalchemy.sql.selectable import CompoundSelect, Select

from rowcache.core.constants import (
    CLAUSE_BOOL_AND,
    CLAUSE_BOOL_OR,
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
    CLAUSE_TYPE_RAW,
    COLUMN_QUALIFIER_SEP,
    OPERATOR_EQUALS,
)
from rowcache.domain.query.shape import QueryShape

logger = logging.getLogger(__name__)

Clause = dict[str, Any]

_OPERATOR_TOKENS: dict[Any, str] = {
    operator.eq: OPERATOR_EQUALS,
    operator.ne: "!=",
    operator.gt: ">",
    operator.ge: ">=",
    operator.lt: "<",
    operator.le: "<=",
    operators.like_op: "like",
    operators.ilike_op: "ilike",
    operators.not_in_op: "not in",
}


def _column_reference(column: ColumnClause) -> str:
    """Table-qualified column name ("table.column") when the table is known."""
    table_name = getattr(getattr(column, "table", None), "name", None)
    if table_name:
        return f"{table_name}{COLUMN_QUALIFIER_SEP}{column.name}"
    return column.name


def _raw_clause(boolean: str, column: str | None = None) -> Clause:
    return {CLAUSE_KEY_TYPE: CLAUSE_TYPE_RAW, CLAUSE_KEY_COLUMN: column, CLAUSE_KEY_BOOLEAN: boolean}


def _binary_clause(expr: BinaryExpression[Any], boolean: str) -> Clause:
    left, right, op = expr.left, expr.right, expr.operator
    if not isinstance(left, ColumnClause):
        return _raw_clause(boolean)
    column = _column_reference(left)
    if op in (operators.is_, operators.is_not) and isinstance(right, Null):
        return {
            CLAUSE_KEY_TYPE: CLAUSE_TYPE_NULL if op is operators.is_ else CLAUSE_TYPE_NOT_NULL,
            CLAUSE_KEY_COLUMN: column,
            CLAUSE_KEY_BOOLEAN: boolean,
        }
    if op is operators.in_op and isinstance(right, BindParameter) and right.expanding:
        return {
            CLAUSE_KEY_TYPE: CLAUSE_TYPE_IN,
            CLAUSE_KEY_COLUMN: column,
            CLAUSE_KEY_VALUES: list(right.effective_value or ()),
            CLAUSE_KEY_BOOLEAN: boolean,
        }
    if isinstance(right, BindParameter) and not right.expanding:
        return {
            CLAUSE_KEY_TYPE: CLAUSE_TYPE_BASIC,
            CLAUSE_KEY_COLUMN: column,
            CLAUSE_KEY_OPERATOR: _OPERATOR_TOKENS.get(op, getattr(op, "__name__", str(op))),
            CLAUSE_KEY_VALUE: right.effective_value,
            CLAUSE_KEY_BOOLEAN: boolean,
        }
    return _raw_clause(boolean, column)


def iter_clauses(criterion: Any, boolean: str = CLAUSE_BOOL_AND) -> Iterator[Clause]:
    """Flatten a WHERE criterion into raw clause mappings.

    AND groups pass their conjunction through; every clause inside an OR
    group is marked "or".
    """
    if criterion is None:
        return
    if isinstance(criterion, Grouping):
        yield from iter_clauses(criterion.element, boolean)
    elif isinstance(criterion, ClauseList) and criterion.operator in (operators.and_, operators.or_):
        inner = CLAUSE_BOOL_OR if criterion.operator is operators.or_ else boolean
        for clause in criterion.clauses:
            yield from iter_clauses(clause, inner)
    elif isinstance(criterion, BinaryExpression):
        yield _binary_clause(criterion, boolean)
    else:
        yield _raw_clause(boolean)


def _literal_int(statement: Select[Any], attribute: str) -> tuple[int | None, bool]:
    """Read LIMIT/OFFSET as an int; the flag is False when it is an expression."""
    try:
        return getattr(statement, attribute), True
    except exc.CompileError:
        return None, False


def _selects_whole_entity(statement: Select[Any], entity: Any | None) -> bool:
    descriptions = statement.column_descriptions
    if len(descriptions) != 1:
        return False
    selected = descriptions[0]
    if selected.get("entity") is None or selected.get("expr") is not selected.get("entity"):
        return False
    return entity is None or selected["entity"] is entity


def describe_select(statement: Any, entity: Any | None = None) -> QueryShape:
    """Build the QueryShape of a SQLAlchemy statement.

    Args:
        statement: Usually a 2.x Select; anything else is marked unsupported.
        entity: Mapped class the statement must select as a whole row, if known.

    Returns:
        QueryShape carrying the statement for execution on a miss.
    """
    if not isinstance(statement, Select):
        return QueryShape(
            unions=isinstance(statement, CompoundSelect),
            unsupported=True,
            statement=statement,
        )
    limit, limit_ok = _literal_int(statement, "_limit")
    offset, offset_ok = _literal_int(statement, "_offset")
    shape = QueryShape(
        clauses=tuple(iter_clauses(statement.whereclause)),
        distinct=bool(statement._distinct or statement._distinct_on),
        limit=limit,
        offset=offset,
        groups=bool(statement._group_by_clauses),
        havings=bool(statement._having_criteria),
        orders=bool(statement._order_by_clauses),
        joins=bool(statement._setup_joins) or len(statement.get_final_froms()) > 1,
        columns=not _selects_whole_entity(statement, entity),
        for_update=statement._for_update_arg is not None,
        unsupported=not (limit_ok and offset_ok),
        statement=statement,
    )
    logger.debug("Described select: %d clause(s), disqualifiers=%s", len(shape.clauses), shape.disqualifiers())
    return shape
