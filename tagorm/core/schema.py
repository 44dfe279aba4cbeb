"""Parsed schema representation of record types."""

from __future__ import annotations

from dataclasses import MISSING, dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple

from .hooks import Hook


@dataclass(frozen=True)
class Field:
    """One mapped dataclass attribute and its column metadata.

    Attributes:
        name: Attribute name on the record class.
        annotation: Declared annotation (after resolving string hints).
        value_type: Annotation with `Optional[...]` unwrapped.
        column: Resolved SQL column name.
        default: Raw SQL default literal/expression from the tag.
        sql_type: Verbatim SQL type override from the tag.
        indexes: Names of non-unique index groups containing this field.
        unique_indexes: Names of unique index groups containing this field.
        init: Whether the dataclass `__init__` accepts the attribute.
    """

    name: str
    annotation: Any
    value_type: Any
    column: str
    primary_key: bool = False
    auto_increment: bool = False
    required: bool = True
    nullable: bool = False
    unique: bool = False
    size: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None
    default: Optional[str] = None
    sql_type: Optional[str] = None
    indexes: Tuple[str, ...] = ()
    unique_indexes: Tuple[str, ...] = ()
    init: bool = True
    attr_default: Any = field(default_factory=lambda: MISSING, repr=False, compare=False)
    attr_default_factory: Any = field(default_factory=lambda: MISSING, repr=False, compare=False)

    def is_default(self, value: Any) -> bool:
        """Whether `value` is the attribute's unset value.

        `None`, the declared dataclass default (or the product of its
        default factory) and, when nothing is declared, the zero value of
        the field's scalar type all count as unset.
        """

        if value is None:
            return True
        if self.attr_default is not MISSING:
            return _safe_equals(value, self.attr_default)
        if self.attr_default_factory is not MISSING:
            return _safe_equals(value, self.attr_default_factory())
        zero = _zero_value(self.value_type)
        return zero is not MISSING and _safe_equals(value, zero)


@dataclass(frozen=True)
class Index:
    """Named index grouping; `fields` keep declaration order."""

    name: str
    unique: bool
    fields: Tuple[str, ...]
    columns: Tuple[str, ...]


@dataclass(frozen=True)
class Model:
    """Schema of one record class, immutable once built."""

    name: str
    table: str
    record_type: type = field(compare=False)
    fields: Tuple[Field, ...]
    primary_keys: Tuple[Field, ...]
    indexes: Tuple[Index, ...] = ()
    hooks: FrozenSet[Hook] = frozenset()
    fields_by_name: Dict[str, Field] = field(
        init=False, repr=False, compare=False, hash=False
    )
    fields_by_column: Dict[str, Field] = field(
        init=False, repr=False, compare=False, hash=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields_by_name", {f.name: f for f in self.fields})
        object.__setattr__(self, "fields_by_column", {f.column: f for f in self.fields})

    def field_for(self, key: str) -> Optional[Field]:
        """Look a field up by column name first, then attribute name."""

        found = self.fields_by_column.get(key)
        if found is None:
            found = self.fields_by_name.get(key)
        return found

    @property
    def columns(self) -> Tuple[str, ...]:
        return tuple(f.column for f in self.fields)

    @property
    def auto_increment_key(self) -> Optional[Field]:
        """The single auto-increment primary key, if the model has one."""

        if len(self.primary_keys) == 1 and self.primary_keys[0].auto_increment:
            return self.primary_keys[0]
        return None

    def has_hook(self, hook: Hook) -> bool:
        return hook in self.hooks

    def values_of(self, record: Any) -> Dict[str, Any]:
        """Return `{attribute: value}` for every mapped field of `record`."""

        return {f.name: getattr(record, f.name) for f in self.fields}


def _zero_value(value_type: Any) -> Any:
    if isinstance(value_type, type) and value_type in _ZERO_FACTORIES:
        return _ZERO_FACTORIES[value_type]()
    return MISSING


def _safe_equals(left: Any, right: Any) -> bool:
    try:
        return bool(left == right)
    except Exception:
        return False


_ZERO_FACTORIES: Dict[type, Callable[[], Any]] = {
    int: int,
    float: float,
    str: str,
    bytes: bytes,
    bool: bool,
}
