"""Builds and caches `Model` schemas from dataclass record types."""

from __future__ import annotations

import dataclasses
import logging
import sys
import threading
import types
from typing import Any, Dict, List, Optional, Tuple, Union, get_args, get_origin, get_type_hints

from .errors import SchemaError, UsageError
from .hooks import detect_hooks
from .naming import DefaultNamingStrategy, NamingStrategy
from .schema import Field, Index, Model
from .tags import TAG_KEY, TagSpec, parse_tag

logger = logging.getLogger(__name__)

MAX_INDEX_NAME_LENGTH = 60

_CONTAINER_TYPES = (dict, list, set, frozenset, tuple)


class SchemaParser:
    """Parses record types into `Model` objects and caches them per type.

    The cache is safe for concurrent use. Two threads parsing the same
    unseen type may both build a model; the first one stored is returned
    to every later caller.

    Args:
        naming: Naming strategy for tables and columns. Defaults to
            `DefaultNamingStrategy`.
    """

    def __init__(self, naming: Optional[NamingStrategy] = None) -> None:
        self.naming: NamingStrategy = naming or DefaultNamingStrategy()
        self._cache: Dict[type, Model] = {}
        self._lock = threading.Lock()

    def parse(self, target: Any) -> Model:
        """Return the model for a record class or instance.

        Raises:
            UsageError: If `target` is `None` or not a dataclass.
            SchemaError: If the record's tags or columns are invalid.
        """

        if target is None:
            raise UsageError("cannot parse schema of None")
        cls = target if isinstance(target, type) else type(target)
        if not dataclasses.is_dataclass(cls):
            raise UsageError(f"{cls.__name__} is not a dataclass record type")

        with self._lock:
            cached = self._cache.get(cls)
        if cached is not None:
            return cached

        model = self._build(cls)
        with self._lock:
            return self._cache.setdefault(cls, model)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __contains__(self, cls: object) -> bool:
        with self._lock:
            return cls in self._cache

    def _build(self, cls: type) -> Model:
        table = _table_override(cls) or self.naming.table_name(cls.__name__)
        hints = _type_hints(cls)

        fields: List[Field] = []
        owners: Dict[str, str] = {}
        groups: Dict[str, Tuple[bool, List[Field]]] = {}

        for dc_field in dataclasses.fields(cls):
            context = f"{cls.__name__}.{dc_field.name}"
            tag = parse_tag(dc_field.metadata.get(TAG_KEY), context=context)
            if tag.ignored:
                continue

            annotation = hints.get(dc_field.name, dc_field.type)
            mapped = self._build_field(dc_field, annotation, tag, table)

            owner = owners.get(mapped.column)
            if owner is not None:
                raise SchemaError(
                    f"duplicate column name '{mapped.column}' "
                    f"(from fields {owner} and {dc_field.name}) in {cls.__name__}"
                )
            owners[mapped.column] = dc_field.name
            fields.append(mapped)

            for name in mapped.indexes:
                _join_group(groups, name, False, mapped)
            for name in mapped.unique_indexes:
                _join_group(groups, name, True, mapped)

        primary_keys = tuple(f for f in fields if f.primary_key)
        if not primary_keys:
            logger.warning(
                "%s has no primary key; find_by_id, updates and delete are unavailable",
                cls.__name__,
            )

        indexes = tuple(
            Index(
                name=name,
                unique=unique,
                fields=tuple(f.name for f in members),
                columns=tuple(f.column for f in members),
            )
            for name, (unique, members) in sorted(groups.items())
        )

        return Model(
            name=cls.__name__,
            table=table,
            record_type=cls,
            fields=tuple(fields),
            primary_keys=primary_keys,
            indexes=indexes,
            hooks=detect_hooks(cls),
        )

    def _build_field(
        self,
        dc_field: dataclasses.Field,
        annotation: Any,
        tag: TagSpec,
        table: str,
    ) -> Field:
        value_type, optional = unwrap_optional(annotation)
        nullable = optional or _nullable_by_construction(value_type)

        if tag.not_null:
            nullable = False
        elif tag.null:
            nullable = True
        if tag.primary_key:
            nullable = False
        required = tag.primary_key or not nullable

        column = tag.column or self.naming.column_name(dc_field.name)

        indexes = _dedupe(
            name or default_index_name("idx", table, column) for name in tag.indexes
        )
        unique_names = list(tag.unique_indexes)
        if tag.unique:
            unique_names.append(None)
        unique_indexes = _dedupe(
            name or default_index_name("uix", table, column) for name in unique_names
        )

        return Field(
            name=dc_field.name,
            annotation=annotation,
            value_type=value_type,
            column=column,
            primary_key=tag.primary_key,
            auto_increment=tag.auto_increment,
            required=required,
            nullable=nullable,
            unique=tag.unique,
            size=tag.size,
            precision=tag.precision,
            scale=tag.scale,
            default=tag.default,
            sql_type=tag.sql_type,
            indexes=indexes,
            unique_indexes=unique_indexes,
            init=dc_field.init,
            attr_default=dc_field.default,
            attr_default_factory=dc_field.default_factory,
        )


def default_index_name(prefix: str, table: str, column: str) -> str:
    """Build `<prefix>_<table>_<column>` limited to 60 characters."""

    raw_name = f"{prefix}_{table}_{column}"
    safe = "".join(char if char.isalnum() or char == "_" else "_" for char in raw_name)
    return safe[:MAX_INDEX_NAME_LENGTH]


def unwrap_optional(annotation: Any) -> Tuple[Any, bool]:
    """Split `Optional[T]` / `T | None` into `(T, True)`."""

    origin = get_origin(annotation)
    if origin not in (Union, types.UnionType):
        return annotation, False

    all_args = get_args(annotation)
    args = [arg for arg in all_args if arg is not type(None)]
    optional = len(args) != len(all_args)
    if len(args) == 1:
        return args[0], optional
    return annotation, optional


def _join_group(
    groups: Dict[str, Tuple[bool, List[Field]]], name: str, unique: bool, member: Field
) -> None:
    existing = groups.get(name)
    if existing is None:
        groups[name] = (unique, [member])
        return
    if existing[0] != unique:
        raise SchemaError(
            f"index name '{name}' used for both unique and non-unique indexes"
        )
    existing[1].append(member)


def _nullable_by_construction(value_type: Any) -> bool:
    if value_type is Any:
        return True
    base = get_origin(value_type) or value_type
    return isinstance(base, type) and issubclass(base, _CONTAINER_TYPES)


def _table_override(cls: type) -> Optional[str]:
    name = getattr(cls, "__table__", None)
    return name if isinstance(name, str) and name else None


def _type_hints(cls: type) -> Dict[str, Any]:
    module = sys.modules.get(cls.__module__)
    globalns = vars(module) if module is not None else None
    try:
        return dict(get_type_hints(cls, globalns=globalns))
    except Exception as exc:
        raise SchemaError(
            f"cannot resolve type annotations of {cls.__name__}: {exc}"
        ) from exc


def _dedupe(names: Any) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(names))
