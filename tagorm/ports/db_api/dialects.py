"""Concrete SQL dialect implementations for DB-API adapters."""

from __future__ import annotations

import re
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional, Tuple, get_origin

from ...core.errors import SchemaError
from ...core.schema import Field

_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_RAW_DEFAULTS = frozenset(
    {"CURRENT_TIMESTAMP", "CURRENT_DATE", "CURRENT_TIME", "NOW()", "NULL", "TRUE", "FALSE"}
)
TIMESTAMP_COLUMNS = ("created_at", "updated_at")


class Dialect:
    """Base dialect that defines SQL quoting, placeholders and type mapping."""

    name: str = "generic"
    paramstyle: str = "qmark"
    quote_char: str = '"'
    supports_returning: bool = False
    supports_index_if_not_exists: bool = True
    inline_indexes: bool = False
    read_only_sql: Optional[str] = None

    int_type = "INTEGER"
    bool_type = "BOOLEAN"
    float_type = "REAL"
    text_type = "TEXT"
    datetime_type = "TIMESTAMP"
    date_type = "DATE"
    time_type = "TIME"
    uuid_type = "CHAR(36)"
    json_type = "TEXT"
    blob_type = "BLOB"
    decimal_type = "NUMERIC"
    max_varchar = 65535

    def q(self, ident: str) -> str:
        """Quote SQL identifier, doubling embedded quote characters."""

        escaped = ident.replace(self.quote_char, self.quote_char * 2)
        return f"{self.quote_char}{escaped}{self.quote_char}"

    def placeholder(self, index: int) -> str:
        """Return the parameter marker for 1-based position `index`."""

        if self.paramstyle == "qmark":
            return "?"
        if self.paramstyle == "format":
            return "%s"
        if self.paramstyle == "numeric":
            return f":{index}"
        raise ValueError(f"Unsupported paramstyle: {self.paramstyle}")

    def returning_clause(self, column: str) -> str:
        """Return `RETURNING` clause when dialect supports it."""

        if self.supports_returning:
            return f" RETURNING {self.q(column)}"
        return ""

    def get_lastrowid(self, cursor: Any) -> Optional[int]:
        """Extract `lastrowid` from DB-API cursor when available."""

        return getattr(cursor, "lastrowid", None)

    def limit_offset_sql(
        self, limit: Optional[int], offset: Optional[int], start: int
    ) -> Tuple[str, List[Any]]:
        """Return the pagination clause and its parameters."""

        sql = ""
        params: List[Any] = []
        if limit is not None:
            sql += f" LIMIT {self.placeholder(start)}"
            params.append(limit)
        if offset is not None:
            sql += f" OFFSET {self.placeholder(start + len(params))}"
            params.append(offset)
        return sql, params

    def adapt_value(self, value: Any) -> Any:
        """Convert a value into something the driver can bind."""

        if isinstance(value, uuid.UUID):
            return str(value)
        return value

    def column_type(self, field: Field, *, inline_primary_key: bool = True) -> str:
        """Build the type and constraint fragment of a column definition.

        Args:
            field: Parsed field.
            inline_primary_key: Emit `PRIMARY KEY` on the column. Pass
                `False` when the table declares a composite key.

        Raises:
            SchemaError: If the field's Python type has no SQL mapping.
        """

        parts = [field.sql_type or self.sql_type(field)]

        if field.default is not None:
            parts.append(f"DEFAULT {format_default(field.default)}")
        else:
            implicit = self.timestamp_default(field)
            if implicit:
                parts.append(f"DEFAULT {implicit}")
        if field.required:
            parts.append("NOT NULL")
        if field.primary_key and inline_primary_key:
            parts.append("PRIMARY KEY")
        if field.auto_increment:
            parts.append(self.auto_increment_sql(field, inline_primary_key))
        if field.unique and not field.primary_key:
            parts.append("UNIQUE")
        return " ".join(parts)

    def sql_type(self, field: Field) -> str:
        """Map the Python type of a field to a SQL type name."""

        value_type = _storage_type(field.value_type)

        if value_type is bool:
            return self.bool_type
        if value_type is int:
            return self.int_type
        if value_type is float:
            return self.float_type
        if value_type is Decimal:
            if field.precision:
                return f"{self.decimal_type}({field.precision},{field.scale or 0})"
            return self.decimal_type
        if value_type is str:
            if field.size and field.size < self.max_varchar:
                return f"VARCHAR({field.size})"
            return self.text_type
        if value_type is datetime:
            return self.datetime_type
        if value_type is date:
            return self.date_type
        if value_type is time:
            return self.time_type
        if value_type in (bytes, bytearray):
            return self.bytes_type(field)
        if value_type is uuid.UUID:
            return self.uuid_type
        if (get_origin(value_type) or value_type) in (dict, list):
            return self.json_type

        raise SchemaError(
            f"unsupported type {value_type!r} for field '{field.name}' "
            f"in dialect {self.name}; declare an explicit 'type:' tag"
        )

    def bytes_type(self, field: Field) -> str:
        return self.blob_type

    def auto_increment_sql(self, field: Field, inline_primary_key: bool) -> str:
        return "AUTOINCREMENT"

    def timestamp_default(self, field: Field) -> Optional[str]:
        """Implicit default for `created_at` / `updated_at` datetime columns."""

        if field.column in TIMESTAMP_COLUMNS and field.value_type is datetime:
            return "CURRENT_TIMESTAMP"
        return None

    def create_migrations_table_sql(self, table: str) -> str:
        return (
            f"CREATE TABLE IF NOT EXISTS {self.q(table)} ("
            f"{self.q('id')} VARCHAR(255) NOT NULL PRIMARY KEY, "
            f"{self.q('applied_at')} {self.datetime_type} NOT NULL)"
        )

    def applied_migrations_sql(self, table: str) -> str:
        return (
            f"SELECT {self.q('id')}, {self.q('applied_at')} FROM {self.q(table)} "
            f"ORDER BY {self.q('id')} ASC"
        )

    def insert_migration_sql(self, table: str) -> str:
        return (
            f"INSERT INTO {self.q(table)} ({self.q('id')}, {self.q('applied_at')}) "
            f"VALUES ({self.placeholder(1)}, {self.placeholder(2)})"
        )

    def delete_migration_sql(self, table: str) -> str:
        return f"DELETE FROM {self.q(table)} WHERE {self.q('id')} = {self.placeholder(1)}"


class SQLiteDialect(Dialect):
    """SQLite dialect (`?` parameters, supports `RETURNING`)."""

    name = "sqlite"
    paramstyle = "qmark"
    quote_char = '"'
    supports_returning = True

    def auto_increment_sql(self, field: Field, inline_primary_key: bool) -> str:
        if not (field.primary_key and inline_primary_key):
            raise SchemaError(
                f"SQLite supports autoIncrement only on a single primary key, "
                f"field '{field.name}'"
            )
        if self.sql_type(field) != "INTEGER" and not field.sql_type:
            raise SchemaError(
                f"SQLite autoIncrement field '{field.name}' must be an integer"
            )
        return "AUTOINCREMENT"

    def adapt_value(self, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.isoformat(sep=" ")
        if isinstance(value, (date, time)):
            return value.isoformat()
        if isinstance(value, Decimal):
            return str(value)
        return super().adapt_value(value)


class PostgresDialect(Dialect):
    """PostgreSQL dialect (`%s` positional parameters)."""

    name = "postgres"
    paramstyle = "format"
    quote_char = '"'
    supports_returning = True
    read_only_sql = "SET TRANSACTION READ ONLY"

    int_type = "BIGINT"
    float_type = "DOUBLE PRECISION"
    uuid_type = "UUID"
    json_type = "JSONB"
    blob_type = "BYTEA"

    def auto_increment_sql(self, field: Field, inline_primary_key: bool) -> str:
        return "GENERATED BY DEFAULT AS IDENTITY"

    def adapt_value(self, value: Any) -> Any:
        return value


class MySQLDialect(Dialect):
    """MySQL dialect (`%s` positional parameters, no `RETURNING`)."""

    name = "mysql"
    paramstyle = "format"
    quote_char = "`"
    supports_returning = False
    supports_index_if_not_exists = False
    inline_indexes = True
    read_only_sql = "START TRANSACTION READ ONLY"

    int_type = "BIGINT"
    float_type = "DOUBLE"
    datetime_type = "DATETIME(6)"
    time_type = "TIME(6)"
    json_type = "JSON"
    decimal_type = "DECIMAL"

    def bytes_type(self, field: Field) -> str:
        if field.size and field.size < self.max_varchar:
            return f"VARBINARY({field.size})"
        return self.blob_type

    def auto_increment_sql(self, field: Field, inline_primary_key: bool) -> str:
        return "AUTO_INCREMENT"

    def timestamp_default(self, field: Field) -> Optional[str]:
        if field.value_type is not datetime:
            return None
        if field.column == "created_at":
            return "CURRENT_TIMESTAMP(6)"
        if field.column == "updated_at":
            return "CURRENT_TIMESTAMP(6) ON UPDATE CURRENT_TIMESTAMP(6)"
        return None


def format_default(value: str) -> str:
    """Render a tag default as SQL.

    Keywords, numbers, quoted literals and parenthesized expressions are
    emitted verbatim; any other text becomes a quoted string literal.
    """

    text = value.strip()
    upper = text.upper()
    if upper in _RAW_DEFAULTS or upper.startswith("CURRENT_TIMESTAMP("):
        return text
    if _NUMBER.match(text):
        return text
    if len(text) >= 2 and text[0] == text[-1] == "'":
        return text
    if text.startswith("(") and text.endswith(")"):
        return text
    return "'" + text.replace("'", "''") + "'"


def _storage_type(value_type: Any) -> Any:
    """Enums are stored by the type of their member values."""

    if get_origin(value_type) is not None or not isinstance(value_type, type):
        return value_type
    if issubclass(value_type, Enum):
        for base in (bool, int, float, str):
            if issubclass(value_type, base):
                return base
        kinds = {type(member.value) for member in value_type}
        if len(kinds) == 1:
            return kinds.pop()
        return str
    return value_type
