"""Engine and transaction facades over the CRUD operations."""

from __future__ import annotations

import contextlib
import logging
from collections.abc import MutableSequence
from typing import Any, Iterator, Mapping, Optional, Type, TypeVar

from . import crud
from .context import QueryContext
from .contracts import DatabasePort, DialectPort, ExecutorPort, TransactionPort
from .errors import TransactionClosedError
from .hooks import HookInvoker
from .parser import SchemaParser
from .query_builder import OrderInput
from .result import Result
from .schema import Model
from .types import QueryParams

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Operations:
    """CRUD surface shared by `Engine` and `Transaction`."""

    parser: SchemaParser
    hooks: HookInvoker

    @property
    def executor(self) -> ExecutorPort:
        raise NotImplementedError

    @property
    def dialect(self) -> DialectPort:
        return self.executor.dialect

    def model(self, record_or_type: Any) -> Model:
        """Return the parsed schema of a record class or instance."""

        return self.parser.parse(record_or_type)

    def create(self, record: T, *, ctx: Optional[QueryContext] = None) -> Result:
        return crud.create(self, record, ctx=ctx)

    def find_by_id(
        self, dest: Type[T] | T, pk: Any, *, ctx: Optional[QueryContext] = None
    ) -> T:
        return crud.find_by_id(self, dest, pk, ctx=ctx)

    def find_first(
        self,
        dest: Type[T] | T,
        where: Any = None,
        *,
        order: OrderInput = None,
        ctx: Optional[QueryContext] = None,
    ) -> T:
        return crud.find_first(self, dest, where, order=order, ctx=ctx)

    def find(
        self,
        model: Type[T],
        where: Any = None,
        *,
        order: OrderInput = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        into: Optional[MutableSequence[T]] = None,
        ctx: Optional[QueryContext] = None,
    ) -> MutableSequence[T]:
        return crud.find(
            self,
            model,
            where,
            order=order,
            limit=limit,
            offset=offset,
            into=into,
            ctx=ctx,
        )

    def count(
        self, model: Type[Any], where: Any = None, *, ctx: Optional[QueryContext] = None
    ) -> int:
        return crud.count(self, model, where, ctx=ctx)

    def updates(
        self,
        record: Any,
        data: Mapping[str, Any],
        *,
        ctx: Optional[QueryContext] = None,
    ) -> Result:
        return crud.updates(self, record, data, ctx=ctx)

    def delete(self, record: Any, *, ctx: Optional[QueryContext] = None) -> Result:
        return crud.delete(self, record, ctx=ctx)

    def auto_migrate(self, *records: Any, ctx: Optional[QueryContext] = None) -> None:
        crud.auto_migrate(self, records, ctx=ctx)

    def exec_raw(
        self, sql: str, params: QueryParams = None, *, ctx: Optional[QueryContext] = None
    ) -> Result:
        """Run a statement as-is; placeholders must follow the dialect."""

        outcome = self.executor.execute(sql, params, ctx=ctx)
        return Result(rows_affected=max(outcome.rowcount, 0), last_insert_id=outcome.lastrowid)


class Engine(_Operations):
    """Entry point binding a database adapter, a schema parser and hooks.

    Args:
        database: Data-access collaborator (for example the DB-API
            `Database` adapter).
        parser: Schema cache to use; each engine owns a new one by default.
        hooks: Hook invoker; defaults to `HookInvoker()`.
    """

    def __init__(
        self,
        database: DatabasePort,
        *,
        parser: Optional[SchemaParser] = None,
        hooks: Optional[HookInvoker] = None,
    ) -> None:
        self.database = database
        self.parser = parser or SchemaParser()
        self.hooks = hooks or HookInvoker()

    @property
    def executor(self) -> ExecutorPort:
        return self.database

    def begin(
        self, ctx: Optional[QueryContext] = None, *, read_only: bool = False
    ) -> Transaction:
        """Open a transaction sharing this engine's parser and hooks."""

        return Transaction(self, self.database.begin(ctx, read_only=read_only))

    @contextlib.contextmanager
    def transaction(
        self, ctx: Optional[QueryContext] = None, *, read_only: bool = False
    ) -> Iterator[Transaction]:
        """Run a block in one transaction: commit on success, rollback on error."""

        with self.begin(ctx, read_only=read_only) as tx:
            yield tx

    def close(self) -> None:
        self.database.close()

    def __enter__(self) -> Engine:
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()


class Transaction(_Operations):
    """Same CRUD surface as `Engine`, scoped to one unit of work.

    Hooks called inside a transaction receive the transaction as `db`, so
    the statements they issue join the same unit of work.
    """

    def __init__(self, engine: Engine, handle: TransactionPort) -> None:
        self.engine = engine
        self.parser = engine.parser
        self.hooks = engine.hooks
        self._handle = handle
        self._done = False

    @property
    def executor(self) -> ExecutorPort:
        if self._done:
            raise TransactionClosedError("transaction has already been committed or rolled back")
        return self._handle

    @property
    def dialect(self) -> DialectPort:
        return self._handle.dialect

    @property
    def done(self) -> bool:
        # The handle finishes on its own when the database closes underneath it.
        return self._done or bool(getattr(self._handle, "done", False))

    def commit(self) -> None:
        if self._done:
            raise TransactionClosedError("transaction has already been committed or rolled back")
        self._done = True
        self._handle.commit()

    def rollback(self) -> None:
        if self._done:
            raise TransactionClosedError("transaction has already been committed or rolled back")
        self._done = True
        self._handle.rollback()

    def __enter__(self) -> Transaction:
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        if self.done:
            return
        if exc_type is None:
            self.commit()
            return
        try:
            self.rollback()
        except Exception:
            logger.exception("rollback after %s failed", exc_type.__name__)
