"""Low-level CRUD/query implementations used by `Engine` and `Transaction`.

Every function takes the calling `scope` (an engine or a transaction). The
scope supplies the statement executor, the schema parser and the hook
invoker, and is the `db` handed to lifecycle hooks.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Mapping, MutableSequence
from datetime import datetime
from typing import Any, Iterator, List, Optional, Sequence, Tuple

from .codecs import deserialize_value, row_to_record, serialize_value
from .conditions import to_conditions
from .context import QueryContext
from .errors import ExecutionError, OrmError, RecordNotFoundError, UsageError
from .hooks import Hook
from .migrate import migration_statements
from .query_builder import (
    OrderInput,
    append_limit_offset,
    compile_order_by,
    compile_where,
)
from .result import Result
from .schema import Field, Model
from .types import PositionalParams

logger = logging.getLogger(__name__)

TIMESTAMP_COLUMNS = ("created_at", "updated_at")


def create(scope: Any, record: Any, *, ctx: Optional[QueryContext] = None) -> Result:
    """Insert `record` and load database-generated values back onto it."""

    model = _instance_model(scope, record, "create")
    scope.hooks.run_before(Hook.BEFORE_CREATE, record, model.hooks, ctx, scope)

    d = scope.dialect
    auto_key = model.auto_increment_key
    columns: List[Field] = []
    params: PositionalParams = []
    for f in model.fields:
        value = getattr(record, f.name)
        if f.primary_key and f.auto_increment and f.is_default(value):
            continue
        if f.column in TIMESTAMP_COLUMNS and f.value_type is datetime and f.is_default(value):
            # Left to the column's CURRENT_TIMESTAMP default.
            continue
        columns.append(f)
        params.append(serialize_value(f, value, d))

    if not columns:
        raise UsageError(f"no columns to insert for {model.name}")

    column_sql = ", ".join(d.q(f.column) for f in columns)
    placeholders = ", ".join(d.placeholder(i) for i in range(1, len(columns) + 1))
    sql = f"INSERT INTO {d.q(model.table)} ({column_sql}) VALUES ({placeholders})"

    with _wrap_errors("create", model):
        if auto_key is not None and d.supports_returning:
            row = scope.executor.fetchone(
                sql + d.returning_clause(auto_key.column), params, ctx=ctx
            )
            new_id = None if row is None else _first_value(row, auto_key.column)
            result = Result(rows_affected=0 if row is None else 1, last_insert_id=new_id)
        else:
            outcome = scope.executor.execute(sql, params, ctx=ctx)
            result = Result(
                rows_affected=max(outcome.rowcount, 0),
                last_insert_id=outcome.lastrowid if auto_key is not None else None,
            )

    if (
        auto_key is not None
        and result.last_insert_id is not None
        and auto_key.is_default(getattr(record, auto_key.name))
    ):
        setattr(record, auto_key.name, deserialize_value(auto_key, result.last_insert_id))

    _reload(scope, model, record, ctx)
    scope.hooks.run_after(Hook.AFTER_CREATE, record, model.hooks, ctx, scope)
    return result


def find_by_id(
    scope: Any, dest: Any, pk: Any, *, ctx: Optional[QueryContext] = None
) -> Any:
    """Load one record by its single primary key.

    Args:
        dest: Record class (a new instance is returned) or an instance to
            populate in place.
        pk: Primary key value.

    Raises:
        UsageError: If the model does not have exactly one primary key.
        RecordNotFoundError: If no row matches.
    """

    model = scope.parser.parse(dest)
    if len(model.primary_keys) != 1:
        raise UsageError(
            f"find_by_id requires exactly one primary key on {model.name}, "
            f"found {len(model.primary_keys)}"
        )
    key = model.primary_keys[0]
    d = scope.dialect

    sql = f"{_select_sql(model, d)} WHERE {d.q(key.column)} = {d.placeholder(1)}"
    sql, params = append_limit_offset(
        sql, [serialize_value(key, pk, d)], limit=1, offset=None, dialect=d
    )
    with _wrap_errors("find_by_id", model):
        row = scope.executor.fetchone(sql, params, ctx=ctx)
    if row is None:
        raise RecordNotFoundError(model.name, f"{model.name} with {key.column}={pk!r} not found")
    return _finish_find(scope, model, row, dest, ctx)


def find_first(
    scope: Any,
    dest: Any,
    where: Any = None,
    *,
    order: OrderInput = None,
    ctx: Optional[QueryContext] = None,
) -> Any:
    """Load the first record matching `where`.

    Raises:
        RecordNotFoundError: If no row matches.
    """

    model = scope.parser.parse(dest)
    sql, params = _select_query(scope, model, where, order, limit=1, offset=None)
    with _wrap_errors("find_first", model):
        row = scope.executor.fetchone(sql, params, ctx=ctx)
    if row is None:
        raise RecordNotFoundError(model.name)
    return _finish_find(scope, model, row, dest, ctx)


def find(
    scope: Any,
    model_type: Any,
    where: Any = None,
    *,
    order: OrderInput = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    into: Optional[MutableSequence[Any]] = None,
    ctx: Optional[QueryContext] = None,
) -> MutableSequence[Any]:
    """Load every record matching `where`; no match is an empty result.

    Args:
        model_type: Record class (or an instance of it).
        where: Filter input accepted by `to_conditions`.
        order: Raw `ORDER BY` text or `OrderBy` items.
        limit: Maximum rows; `None` for no limit.
        offset: Rows to skip.
        into: Existing list to clear and fill instead of a new one.

    Returns:
        `into` when given, otherwise a new list.
    """

    model = scope.parser.parse(model_type)
    if into is None:
        into = []
    elif not isinstance(into, MutableSequence):
        raise UsageError(f"find destination must be a list, got {type(into).__name__}")
    sql, params = _select_query(scope, model, where, order, limit=limit, offset=offset)

    del into[:]
    with _wrap_errors("find", model):
        for row in scope.executor.iter_rows(sql, params, ctx=ctx):
            into.append(row_to_record(model, row))
    for record in into:
        scope.hooks.run_after(Hook.AFTER_FIND, record, model.hooks, ctx, scope)
    return into


def count(
    scope: Any, model_type: Any, where: Any = None, *, ctx: Optional[QueryContext] = None
) -> int:
    """Count rows matching `where`."""

    model = scope.parser.parse(model_type)
    d = scope.dialect
    fragment = compile_where(to_conditions(model, where), model, d)
    sql = f"SELECT COUNT(*) AS {d.q('count')} FROM {d.q(model.table)}{fragment.sql}"
    with _wrap_errors("count", model):
        row = scope.executor.fetchone(sql, fragment.params, ctx=ctx)
    if row is None:
        return 0
    return int(_first_value(row, "count"))


def updates(
    scope: Any,
    record: Any,
    data: Mapping[str, Any],
    *,
    ctx: Optional[QueryContext] = None,
) -> Result:
    """Update the columns named in `data` on the row identified by `record`.

    Keys are column or attribute names. Primary key entries are skipped;
    keys are never changed through this path.

    Raises:
        UsageError: For a missing/default primary key, an unknown column,
            or when no updatable column remains.
    """

    model = _instance_model(scope, record, "updates")
    if not isinstance(data, Mapping):
        raise UsageError(f"updates data must be a mapping, got {type(data).__name__}")
    _require_keys(model, record, "update")

    scope.hooks.run_before(Hook.BEFORE_UPDATE, record, model.hooks, ctx, scope, data)

    assignments: List[Tuple[Field, Any]] = []
    for key, value in data.items():
        target = model.field_for(key) if isinstance(key, str) else None
        if target is None:
            raise UsageError(f"unknown column '{key}' for {model.name}")
        if target.primary_key:
            logger.warning(
                "skipping primary key column %s in updates of %s", target.column, model.name
            )
            continue
        assignments.append((target, value))
    if not assignments:
        raise UsageError("no valid fields provided for update")

    d = scope.dialect
    set_sql = ", ".join(
        f"{d.q(f.column)} = {d.placeholder(i)}" for i, (f, _) in enumerate(assignments, 1)
    )
    params: PositionalParams = [serialize_value(f, value, d) for f, value in assignments]
    where_sql, where_params = _key_filter(model, record, d, start=len(params) + 1)
    sql = f"UPDATE {d.q(model.table)} SET {set_sql}{where_sql}"

    with _wrap_errors("updates", model):
        outcome = scope.executor.execute(sql, [*params, *where_params], ctx=ctx)
    for f, value in assignments:
        setattr(record, f.name, value)

    result = Result(rows_affected=max(outcome.rowcount, 0))
    if result.rows_affected > 0:
        scope.hooks.run_after(Hook.AFTER_UPDATE, record, model.hooks, ctx, scope)
    return result


def delete(scope: Any, record: Any, *, ctx: Optional[QueryContext] = None) -> Result:
    """Delete the row identified by the primary key of `record`.

    Raises:
        UsageError: When a primary key attribute holds its default value.
    """

    model = _instance_model(scope, record, "delete")
    _require_keys(model, record, "delete")
    scope.hooks.run_before(Hook.BEFORE_DELETE, record, model.hooks, ctx, scope)

    d = scope.dialect
    where_sql, params = _key_filter(model, record, d, start=1)
    sql = f"DELETE FROM {d.q(model.table)}{where_sql}"
    with _wrap_errors("delete", model):
        outcome = scope.executor.execute(sql, params, ctx=ctx)

    result = Result(rows_affected=max(outcome.rowcount, 0))
    if result.rows_affected > 0:
        scope.hooks.run_after(Hook.AFTER_DELETE, record, model.hooks, ctx, scope)
    return result


def auto_migrate(
    scope: Any, records: Sequence[Any], *, ctx: Optional[QueryContext] = None
) -> None:
    """Create missing tables and indexes for each record type."""

    for item in records:
        model = scope.parser.parse(item)
        statements = migration_statements(model, scope.dialect)
        with _wrap_errors("auto_migrate", model):
            for sql in statements:
                scope.executor.execute(sql, ctx=ctx)
        logger.info("auto_migrate ensured table %s for %s", model.table, model.name)


def _instance_model(scope: Any, record: Any, operation: str) -> Model:
    if record is None or isinstance(record, type):
        raise UsageError(f"{operation} requires a record instance, got {record!r}")
    return scope.parser.parse(record)


def _require_keys(model: Model, record: Any, action: str) -> None:
    if not model.primary_keys:
        raise UsageError(f"cannot {action} {model.name}: model has no primary key")
    for key in model.primary_keys:
        if key.is_default(getattr(record, key.name)):
            raise UsageError(
                f"cannot {action}: primary key field {key.name} has zero value"
            )


def _key_filter(
    model: Model, record: Any, dialect: Any, *, start: int
) -> Tuple[str, PositionalParams]:
    clauses = []
    params: PositionalParams = []
    for offset, key in enumerate(model.primary_keys):
        clauses.append(f"{dialect.q(key.column)} = {dialect.placeholder(start + offset)}")
        params.append(serialize_value(key, getattr(record, key.name), dialect))
    return f" WHERE {' AND '.join(clauses)}", params


def _select_sql(model: Model, dialect: Any) -> str:
    columns = ", ".join(dialect.q(f.column) for f in model.fields)
    return f"SELECT {columns} FROM {dialect.q(model.table)}"


def _select_query(
    scope: Any,
    model: Model,
    where: Any,
    order: OrderInput,
    *,
    limit: Optional[int],
    offset: Optional[int],
) -> Tuple[str, PositionalParams]:
    d = scope.dialect
    fragment = compile_where(to_conditions(model, where), model, d)
    sql = _select_sql(model, d) + fragment.sql + compile_order_by(order, model, d)
    return append_limit_offset(sql, fragment.params, limit=limit, offset=offset, dialect=d)


def _finish_find(
    scope: Any, model: Model, row: Mapping[str, Any], dest: Any, ctx: Optional[QueryContext]
) -> Any:
    record = row_to_record(model, row, dest=None if isinstance(dest, type) else dest)
    scope.hooks.run_after(Hook.AFTER_FIND, record, model.hooks, ctx, scope)
    return record


def _reload(scope: Any, model: Model, record: Any, ctx: Optional[QueryContext]) -> None:
    """Re-select a freshly inserted row so database defaults reach `record`."""

    if not model.primary_keys:
        return
    if any(key.is_default(getattr(record, key.name)) for key in model.primary_keys):
        logger.warning("cannot reload %s after create: primary key not known", model.name)
        return

    d = scope.dialect
    where_sql, params = _key_filter(model, record, d, start=1)
    sql, params = append_limit_offset(
        _select_sql(model, d) + where_sql, params, limit=1, offset=None, dialect=d
    )
    try:
        row = scope.executor.fetchone(sql, params, ctx=ctx)
    except OrmError as exc:
        logger.warning("reload of %s after create failed: %s", model.name, exc)
        return
    if row is None:
        logger.warning("reload of %s after create found no row", model.name)
        return
    row_to_record(model, row, dest=record)


def _first_value(row: Mapping[str, Any], preferred: str) -> Any:
    if preferred in row:
        return row[preferred]
    return next(iter(row.values()))


@contextlib.contextmanager
def _wrap_errors(operation: str, model: Model) -> Iterator[None]:
    """Attach operation and model names to collaborator failures."""

    try:
        yield
    except ExecutionError as exc:
        if exc.operation is not None:
            raise
        raise ExecutionError(
            str(exc), operation=operation, model=model.name, sql=exc.sql
        ) from (exc.__cause__ or exc)
