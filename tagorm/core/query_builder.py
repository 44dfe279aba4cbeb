"""SQL fragment builders for filtering, sorting, and paging.

This module centralizes SQL string compilation from query inputs. It keeps
the CRUD layer focused on orchestration while making SQL generation reusable
across dialects: every marker comes from `dialect.placeholder(n)` with a
running 1-based position.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

from .codecs import serialize_value
from .conditions import OPERATORS, SET_OPERATORS, UNARY_OPERATORS, Condition, OrderBy
from .contracts import DialectPort
from .errors import UsageError
from .schema import Field, Model
from .types import PositionalParams

# Offset without a limit still needs a LIMIT clause on most databases.
UNBOUNDED_LIMIT = 2**63 - 1

OrderInput = Union[None, str, OrderBy, Sequence[OrderBy]]


@dataclass(frozen=True)
class CompiledFragment:
    """Represents a compiled SQL fragment with its bound parameters."""

    sql: str
    params: PositionalParams = field(default_factory=list)


def compile_where(
    conditions: Sequence[Condition],
    model: Model,
    dialect: DialectPort,
    *,
    start: int = 1,
) -> CompiledFragment:
    """Compile conditions into a SQL `WHERE` fragment.

    Multiple conditions are combined using `AND`, in input order.

    Args:
        conditions: Conditions to compile; empty means no filter.
        model: Schema used to resolve column names and value codecs.
        dialect: SQL dialect used for identifier quoting and placeholders.
        start: Position of the first placeholder.

    Returns:
        A compiled fragment (leading space included) and its parameters.

    Raises:
        UsageError: If a condition names an unknown column.
    """

    if not conditions:
        return CompiledFragment("")

    clauses: List[str] = []
    params: PositionalParams = []
    for item in conditions:
        clause, fragment_params = _compile_condition(
            item, model, dialect, start + len(params)
        )
        clauses.append(clause)
        params.extend(fragment_params)

    return CompiledFragment(f" WHERE {' AND '.join(clauses)}", params)


def compile_order_by(order: OrderInput, model: Model, dialect: DialectPort) -> str:
    """Compile an `ORDER BY` clause.

    A string is used verbatim (for example `"age DESC, name"`); `OrderBy`
    items are resolved against the model and quoted.
    """

    if not order:
        return ""
    if isinstance(order, str):
        return f" ORDER BY {order}"

    items = [order] if isinstance(order, OrderBy) else list(order)
    parts = []
    for item in items:
        if not isinstance(item, OrderBy):
            raise UsageError(f"order must be a string or OrderBy items, got {type(item).__name__}")
        column = resolve_field(model, item.col).column
        parts.append(f"{dialect.q(column)} {'DESC' if item.desc else 'ASC'}")
    return f" ORDER BY {', '.join(parts)}"


def append_limit_offset(
    sql: str,
    params: PositionalParams,
    *,
    limit: Optional[int],
    offset: Optional[int],
    dialect: DialectPort,
) -> Tuple[str, PositionalParams]:
    """Append pagination clauses and merge parameters.

    Args:
        sql: Base SQL string.
        params: Parameters bound so far; the next placeholder follows them.
        limit: Row limit; `None` means unlimited, `0` means no rows.
        offset: Rows to skip; `None` or `0` means none.
        dialect: SQL dialect used for placeholder style.

    Returns:
        Updated SQL and merged parameters.
    """

    if limit is not None and limit < 0:
        raise UsageError(f"limit must be >= 0, got {limit}")
    if offset is not None and offset < 0:
        raise UsageError(f"offset must be >= 0, got {offset}")
    if not offset:
        offset = None
    if offset is not None and limit is None:
        limit = UNBOUNDED_LIMIT

    clause, extra = dialect.limit_offset_sql(limit, offset, len(params) + 1)
    return sql + clause, [*params, *extra]


def resolve_field(model: Model, name: str) -> Field:
    """Resolve a column or attribute name to a field of `model`."""

    found = model.field_for(name)
    if found is None:
        raise UsageError(f"unknown column '{name}' for {model.name}")
    return found


def _compile_condition(
    condition: Condition,
    model: Model,
    dialect: DialectPort,
    position: int,
) -> Tuple[str, PositionalParams]:
    """Compile one condition into SQL and parameters."""

    target = resolve_field(model, condition.col)
    col_sql = dialect.q(target.column)
    op = " ".join(condition.op.upper().split())
    if op not in OPERATORS:
        raise UsageError(f"unsupported filter operator {condition.op!r}")

    if condition.is_unary or op in UNARY_OPERATORS:
        return f"{col_sql} {op}", []

    if op in SET_OPERATORS:
        values = list(condition.values or [])
        if not values:
            return ("1 = 0" if op == "IN" else "1 = 1"), []
        placeholders = ", ".join(
            dialect.placeholder(position + i) for i in range(len(values))
        )
        return (
            f"{col_sql} {op} ({placeholders})",
            [serialize_value(target, value, dialect) for value in values],
        )

    return (
        f"{col_sql} {op} {dialect.placeholder(position)}",
        [serialize_value(target, condition.value, dialect)],
    )
