"""Filter expressions for queries.

Conditions are tagged values carrying their operator as data. Two adapters
build them from looser inputs: a mapping keyed by `"<column> [operator]"`
strings and an example record whose non-default attributes become equality
tests.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence as SequenceABC
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

from .errors import UsageError
from .schema import Model

# Longest first so "is not null" is never read as "null" or "not in".
OPERATORS: Tuple[str, ...] = (
    "IS NOT NULL",
    "IS NULL",
    "NOT IN",
    ">=",
    "<=",
    "!=",
    "<>",
    ">",
    "<",
    "LIKE",
    "IN",
    "=",
)

UNARY_OPERATORS = frozenset({"IS NULL", "IS NOT NULL"})
SET_OPERATORS = frozenset({"IN", "NOT IN"})


@dataclass(frozen=True)
class Condition:
    """Represents one SQL condition expression.

    Attributes:
        col: Column or attribute name.
        op: SQL operator (for example `=`, `IN`, `IS NULL`).
        value: Scalar value for binary operators.
        values: Sequence value for `IN` / `NOT IN`.
        is_unary: Whether the operator is unary (`IS NULL`, `IS NOT NULL`).
    """

    col: str
    op: str
    value: Any = None
    values: Optional[Sequence[Any]] = None
    is_unary: bool = False


class C:
    """Fluent condition factory methods."""

    @staticmethod
    def eq(col: str, val: Any) -> Condition:
        """Build `col = value` condition."""

        return Condition(col=col, op="=", value=val)

    @staticmethod
    def ne(col: str, val: Any) -> Condition:
        """Build `col <> value` condition."""

        return Condition(col=col, op="<>", value=val)

    @staticmethod
    def lt(col: str, val: Any) -> Condition:
        return Condition(col=col, op="<", value=val)

    @staticmethod
    def le(col: str, val: Any) -> Condition:
        return Condition(col=col, op="<=", value=val)

    @staticmethod
    def gt(col: str, val: Any) -> Condition:
        return Condition(col=col, op=">", value=val)

    @staticmethod
    def ge(col: str, val: Any) -> Condition:
        return Condition(col=col, op=">=", value=val)

    @staticmethod
    def like(col: str, pattern: str) -> Condition:
        """Build `col LIKE pattern` condition."""

        return Condition(col=col, op="LIKE", value=pattern)

    @staticmethod
    def is_null(col: str) -> Condition:
        return Condition(col=col, op="IS NULL", is_unary=True)

    @staticmethod
    def is_not_null(col: str) -> Condition:
        return Condition(col=col, op="IS NOT NULL", is_unary=True)

    @staticmethod
    def in_(col: str, values: Sequence[Any]) -> Condition:
        """Build `col IN (...)` condition; an empty sequence matches nothing."""

        return Condition(col=col, op="IN", values=_as_list(values, col))

    @staticmethod
    def not_in(col: str, values: Sequence[Any]) -> Condition:
        """Build `col NOT IN (...)` condition; an empty sequence matches everything."""

        return Condition(col=col, op="NOT IN", values=_as_list(values, col))


@dataclass(frozen=True)
class OrderBy:
    """Represents one ordering expression."""

    col: str
    desc: bool = False


WhereInput = Any


def parse_condition_key(key: str) -> Tuple[str, str]:
    """Split a `"<column> [operator]"` key into `(column, OPERATOR)`.

    The operator must be separated from the column by whitespace; a key
    without a recognized trailing operator means equality.

    Raises:
        UsageError: If no column name remains.
    """

    normalized = " ".join(key.split())
    upper = normalized.upper()
    for op in OPERATORS:
        suffix = f" {op}"
        if upper.endswith(suffix):
            column = normalized[: -len(suffix)].strip()
            if not column:
                break
            return column, op
    if not normalized or upper in OPERATORS:
        raise UsageError(f"condition key {key!r} has no column name")
    return normalized, "="


def condition_from_item(key: str, value: Any) -> Condition:
    """Build one condition from a mapping entry."""

    column, op = parse_condition_key(key)
    if op in UNARY_OPERATORS:
        # The operand is ignored, except that an explicit False asks for the opposite test.
        if value is False:
            op = "IS NOT NULL" if op == "IS NULL" else "IS NULL"
        return Condition(col=column, op=op, is_unary=True)
    if op in SET_OPERATORS:
        return Condition(col=column, op=op, values=_as_list(value, column))
    return Condition(col=column, op=op, value=value)


def conditions_from_mapping(mapping: Mapping[str, Any]) -> List[Condition]:
    """Convert `{"age >=": 35, "name IN": [...]}` into conditions, in order."""

    result: List[Condition] = []
    for key, value in mapping.items():
        if not isinstance(key, str):
            raise UsageError(f"condition keys must be strings, got {type(key).__name__}")
        result.append(condition_from_item(key, value))
    return result


def conditions_from_example(model: Model, record: Any) -> List[Condition]:
    """Equality conditions for every non-default attribute of `record`."""

    result: List[Condition] = []
    for field in model.fields:
        value = getattr(record, field.name)
        if field.is_default(value):
            continue
        result.append(Condition(col=field.column, op="=", value=value))
    return result


def to_conditions(model: Model, where: WhereInput) -> List[Condition]:
    """Normalize any supported filter input into a list of conditions.

    Accepts `None`, a `Condition`, a sequence of conditions, a mapping of
    `"<column> [operator]"` keys, or an instance of the model's record type.

    Raises:
        UsageError: For any other input.
    """

    if where is None:
        return []
    if isinstance(where, Condition):
        return [where]
    if isinstance(where, Mapping):
        return conditions_from_mapping(where)
    if isinstance(where, model.record_type):
        return conditions_from_example(model, where)
    if isinstance(where, SequenceABC) and not isinstance(where, (str, bytes)):
        items = list(where)
        for item in items:
            if not isinstance(item, Condition):
                raise UsageError(
                    f"condition sequence may only contain Condition, got {type(item).__name__}"
                )
        return items
    raise UsageError(
        f"unsupported filter for {model.name}: {type(where).__name__}; use a "
        "Condition, a sequence of conditions, a mapping, or an example record"
    )


def _as_list(values: Any, col: str) -> List[Any]:
    if isinstance(values, (str, bytes)) or not isinstance(values, (SequenceABC, set, frozenset)):
        raise UsageError(
            f"IN operand for {col!r} must be a list, tuple or set, got {type(values).__name__}"
        )
    return list(values)
