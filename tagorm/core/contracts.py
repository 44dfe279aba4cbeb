"""Core port contracts used by adapters and the engine."""

from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Protocol

from .context import QueryContext
from .types import MaybeRow, QueryParams, RowMapping


@dataclass(frozen=True)
class ExecResult:
    """Outcome of a write statement reported by the database adapter."""

    rowcount: int = 0
    lastrowid: Optional[int] = None


class DialectPort(Protocol):
    """Dialect behavior required by query compilation and CRUD operations."""

    name: str
    paramstyle: str
    supports_returning: bool
    supports_index_if_not_exists: bool
    inline_indexes: bool

    def q(self, ident: str) -> str: ...

    def placeholder(self, index: int) -> str: ...

    def column_type(self, field: Any, *, inline_primary_key: bool = True) -> str: ...

    def returning_clause(self, column: str) -> str: ...

    def limit_offset_sql(
        self, limit: Optional[int], offset: Optional[int], start: int
    ) -> tuple[str, List[Any]]: ...

    def adapt_value(self, value: Any) -> Any: ...

    def create_migrations_table_sql(self, table: str) -> str: ...

    def applied_migrations_sql(self, table: str) -> str: ...

    def insert_migration_sql(self, table: str) -> str: ...

    def delete_migration_sql(self, table: str) -> str: ...


class ExecutorPort(Protocol):
    """Statement execution shared by connections and transactions."""

    dialect: DialectPort

    def execute(
        self, sql: str, params: QueryParams = None, *, ctx: Optional[QueryContext] = None
    ) -> ExecResult: ...

    def fetchone(
        self, sql: str, params: QueryParams = None, *, ctx: Optional[QueryContext] = None
    ) -> MaybeRow: ...

    def fetchall(
        self, sql: str, params: QueryParams = None, *, ctx: Optional[QueryContext] = None
    ) -> List[RowMapping]: ...

    def iter_rows(
        self, sql: str, params: QueryParams = None, *, ctx: Optional[QueryContext] = None
    ) -> Iterator[RowMapping]: ...


class TransactionPort(ExecutorPort, Protocol):
    """One unit of work opened by `DatabasePort.begin`."""

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


class DatabasePort(ExecutorPort, Protocol):
    """Database adapter behavior required by the engine."""

    def begin(
        self, ctx: Optional[QueryContext] = None, *, read_only: bool = False
    ) -> TransactionPort: ...

    def transaction(
        self, ctx: Optional[QueryContext] = None
    ) -> AbstractContextManager[TransactionPort]: ...

    def close(self) -> None: ...
