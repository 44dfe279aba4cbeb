"""Conversion between record attribute values and database values."""

from __future__ import annotations

import json
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional, get_origin

from .contracts import DialectPort
from .errors import UsageError
from .schema import Field, Model


def serialize_value(field: Optional[Field], value: Any, dialect: DialectPort) -> Any:
    """Prepare one attribute value for binding as a statement parameter."""

    if value is None:
        return None
    if isinstance(value, Enum):
        value = value.value
    elif field is not None and _is_json_type(field.value_type):
        value = _serialize_json(value)
    return dialect.adapt_value(value)


def deserialize_value(field: Field, value: Any) -> Any:
    """Convert one database value back into the field's declared type."""

    if value is None:
        return None

    target = field.value_type
    if target is Any:
        return value
    if get_origin(target) is not None or not isinstance(target, type):
        if _is_json_type(target):
            return _deserialize_json(value, field_name=field.name)
        return value

    if issubclass(target, Enum):
        return _deserialize_enum(value, enum_type=target, field_name=field.name)
    if _is_json_type(target):
        return _deserialize_json(value, field_name=field.name)
    if target is date and isinstance(value, datetime):
        return value.date()
    if isinstance(value, target):
        return value

    if target is bool and isinstance(value, (int, str)):
        return _to_bool(value)
    if target is datetime:
        return _parse_temporal(value, datetime.fromisoformat, field.name)
    if target is date:
        return _parse_temporal(value, date.fromisoformat, field.name)
    if target is time:
        return _parse_temporal(value, time.fromisoformat, field.name)
    if target is Decimal:
        return Decimal(str(value))
    if target is uuid.UUID:
        if isinstance(value, (bytes, bytearray)) and len(value) == 16:
            return uuid.UUID(bytes=bytes(value))
        return uuid.UUID(str(value))
    if target is bytes and isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if target in (int, float) and isinstance(value, (int, float, Decimal, str)):
        return target(value)
    return value


def row_to_record(model: Model, row: Mapping[str, Any], dest: Any = None) -> Any:
    """Scan a row mapping into a record.

    Args:
        model: Schema of the record type.
        row: Column name to value mapping; unknown columns are ignored.
        dest: Existing instance to populate in place. When `None` a new
            instance is constructed from the row.

    Returns:
        The populated record.
    """

    values = {}
    late = {}
    for column, raw in row.items():
        field = model.fields_by_column.get(column)
        if field is None:
            continue
        value = deserialize_value(field, raw)
        if dest is None and not field.init:
            late[field.name] = value
        else:
            values[field.name] = value

    if dest is not None:
        for name, value in values.items():
            setattr(dest, name, value)
        return dest

    try:
        record = model.record_type(**values)
    except TypeError as exc:
        raise UsageError(
            f"cannot construct {model.name} from row columns {sorted(row)}: {exc}"
        ) from exc
    # init=False attributes are set after construction.
    for name, value in late.items():
        setattr(record, name, value)
    return record


def _is_json_type(annotation: Any) -> bool:
    base = get_origin(annotation) or annotation
    return base in (dict, list)


def _serialize_json(value: Any) -> Any:
    if isinstance(value, (str, bytes, bytearray, memoryview)):
        return value
    return json.dumps(value)


def _deserialize_json(value: Any, *, field_name: str) -> Any:
    if isinstance(value, (dict, list)):
        return value
    if isinstance(value, str):
        text = value
    elif isinstance(value, (bytes, bytearray, memoryview)):
        text = bytes(value).decode("utf-8")
    else:
        return value

    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(
            f"Cannot deserialize JSON for field {field_name!r}: {text!r}."
        ) from exc


def _deserialize_enum(value: Any, *, enum_type: type[Enum], field_name: str) -> Any:
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError as exc:
        if isinstance(value, str) and value in enum_type.__members__:
            return enum_type[value]
        raise ValueError(
            f"Cannot deserialize value {value!r} to enum {enum_type.__name__} "
            f"for field {field_name!r}."
        ) from exc


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "t", "true", "y", "yes"}
    return bool(value)


def _parse_temporal(value: Any, parse: Any, field_name: str) -> Any:
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    if not isinstance(value, str):
        return value
    try:
        return parse(value)
    except ValueError as exc:
        raise ValueError(
            f"Cannot parse {value!r} as a timestamp for field {field_name!r}."
        ) from exc
