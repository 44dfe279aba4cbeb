"""Parser for the per-field tag mini-language.

A tag is a semicolon-separated list of clauses, each `key` or `key:value`,
stored in dataclass field metadata under the `"orm"` key::

    @dataclass
    class User:
        id: Optional[int] = column("primaryKey;autoIncrement", default=None)
        name: str = column("size:100;not null;index", default="")
        secret: str = column("-", default="")

Keys are case-insensitive. A tag that is exactly `-` ignores the field.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from .errors import SchemaError

logger = logging.getLogger(__name__)

TAG_KEY = "orm"

_PRIMARY_KEY = {"primarykey", "primary_key", "pk"}
_AUTO_INCREMENT = {"autoincrement", "auto_increment"}
_COLUMN = {"column", "name"}
_NOT_NULL = {"not null", "notnull", "required"}
_NULL = {"null", "nullable"}
_INDEX = {"index"}
_UNIQUE_INDEX = {"uniqueindex", "unique_index"}


@dataclass
class TagSpec:
    """Attributes collected from one field tag."""

    ignored: bool = False
    primary_key: bool = False
    auto_increment: bool = False
    column: Optional[str] = None
    sql_type: Optional[str] = None
    size: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None
    not_null: bool = False
    null: bool = False
    unique: bool = False
    default: Optional[str] = None
    indexes: List[Optional[str]] = field(default_factory=list)
    unique_indexes: List[Optional[str]] = field(default_factory=list)


def column(tag: str = "", **kwargs: Any) -> Any:
    """Declare a dataclass field carrying an ORM tag.

    Accepts the same keyword arguments as `dataclasses.field`; any
    `metadata` passed in is preserved alongside the tag.
    """

    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[TAG_KEY] = tag
    return dataclasses.field(metadata=metadata, **kwargs)


def parse_tag(text: Optional[str], *, context: str = "") -> TagSpec:
    """Parse a tag string into a `TagSpec`.

    Args:
        text: Raw tag; `None` or empty means "no attributes".
        context: `Class.field` label used in error and warning messages.

    Raises:
        SchemaError: On malformed values.
    """

    spec = TagSpec()
    if text is None:
        return spec
    if not isinstance(text, str):
        raise SchemaError(
            f"tag for {context or 'field'} must be a string, got {type(text).__name__}"
        )
    if text.strip() == "-":
        spec.ignored = True
        return spec

    for raw_clause in text.split(";"):
        clause = raw_clause.strip()
        if not clause:
            continue
        key, sep, raw_value = clause.partition(":")
        key = " ".join(key.lower().split())
        value = raw_value.strip() if sep else None
        _apply_clause(spec, key, value, context)

    return spec


def _apply_clause(spec: TagSpec, key: str, value: Optional[str], context: str) -> None:
    if key in _PRIMARY_KEY:
        spec.primary_key = True
    elif key in _AUTO_INCREMENT:
        spec.auto_increment = True
    elif key in _COLUMN:
        spec.column = _required_value(key, value, context)
    elif key == "type":
        spec.sql_type = _required_value(key, value, context)
    elif key == "size":
        spec.size = _int_value(key, value, context, minimum=1)
    elif key == "precision":
        spec.precision = _int_value(key, value, context, minimum=0)
    elif key == "scale":
        spec.scale = _int_value(key, value, context, minimum=0)
    elif key in _NOT_NULL:
        spec.not_null = True
    elif key in _NULL:
        spec.null = True
    elif key == "unique":
        spec.unique = True
    elif key == "default":
        if value is None:
            raise SchemaError(f"tag key 'default' on {context} requires a value")
        spec.default = value
    elif key in _INDEX:
        spec.indexes.append(value or None)
    elif key in _UNIQUE_INDEX:
        spec.unique_indexes.append(value or None)
    elif key == "-":
        spec.ignored = True
    else:
        logger.warning("unknown tag key %r on %s ignored", key, context or "field")


def _required_value(key: str, value: Optional[str], context: str) -> str:
    if not value:
        raise SchemaError(f"tag key '{key}' on {context} requires a value")
    return value


def _int_value(key: str, value: Optional[str], context: str, *, minimum: int) -> int:
    raw = _required_value(key, value, context)
    try:
        number = int(raw)
    except ValueError as exc:
        raise SchemaError(
            f"invalid {key} value {raw!r} on {context}: expected an integer"
        ) from exc
    if number < minimum:
        raise SchemaError(f"invalid {key} value {number} on {context}: must be >= {minimum}")
    return number
