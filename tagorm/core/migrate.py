"""DDL generation for `auto_migrate`.

Only additive statements are produced: tables and indexes are created when
missing and never altered or dropped.
"""

from __future__ import annotations

from typing import List

from .contracts import DialectPort
from .schema import Index, Model


def create_table_sql(model: Model, dialect: DialectPort) -> str:
    """Build `CREATE TABLE IF NOT EXISTS` for a model.

    A single primary key is declared inline on its column; a composite key
    becomes one table-level `PRIMARY KEY (...)` constraint.
    """

    inline_pk = len(model.primary_keys) == 1
    definitions: List[str] = [
        f"{dialect.q(f.column)} {dialect.column_type(f, inline_primary_key=inline_pk)}"
        for f in model.fields
    ]

    if len(model.primary_keys) > 1:
        pk_columns = ", ".join(dialect.q(f.column) for f in model.primary_keys)
        definitions.append(f"PRIMARY KEY ({pk_columns})")

    if dialect.inline_indexes:
        for index in model.indexes:
            if _enforced_inline(model, index):
                continue
            keyword = "UNIQUE KEY" if index.unique else "KEY"
            definitions.append(
                f"{keyword} {dialect.q(index.name)} ({_column_list(index, dialect)})"
            )

    body = ",\n  ".join(definitions)
    return f"CREATE TABLE IF NOT EXISTS {dialect.q(model.table)} (\n  {body}\n)"


def create_index_sql(model: Model, index: Index, dialect: DialectPort) -> str:
    """Build one `CREATE [UNIQUE] INDEX` statement."""

    prefix = "CREATE UNIQUE INDEX" if index.unique else "CREATE INDEX"
    if dialect.supports_index_if_not_exists:
        prefix += " IF NOT EXISTS"
    return (
        f"{prefix} {dialect.q(index.name)} ON {dialect.q(model.table)} "
        f"({_column_list(index, dialect)})"
    )


def migration_statements(model: Model, dialect: DialectPort) -> List[str]:
    """All statements `auto_migrate` runs for one model, in order."""

    statements = [create_table_sql(model, dialect)]
    if dialect.inline_indexes:
        return statements
    for index in model.indexes:
        if _enforced_inline(model, index):
            continue
        statements.append(create_index_sql(model, index, dialect))
    return statements


def _enforced_inline(model: Model, index: Index) -> bool:
    """A bare `unique` tag already adds a column-level UNIQUE constraint."""

    if not index.unique or len(index.fields) != 1:
        return False
    field = model.fields_by_name[index.fields[0]]
    return field.unique or field.primary_key


def _column_list(index: Index, dialect: DialectPort) -> str:
    return ", ".join(dialect.q(column) for column in index.columns)
