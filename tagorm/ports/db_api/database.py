"""DB-API adapter implementation for the core database port."""

from __future__ import annotations

import contextlib
import logging
import threading
from typing import Any, Callable, Dict, Iterator, Mapping, Optional

from ...core.context import QueryContext, check_context
from ...core.contracts import ExecResult
from ...core.errors import ExecutionError, OrmError, TransactionClosedError, UsageError
from ...core.types import MaybeRow, QueryParams, RowMapping, Rows
from .dialects import Dialect

logger = logging.getLogger(__name__)

Connector = Callable[[str], Any]


class Database:
    """Thin DB-API wrapper that normalizes execute and row mapping behavior.

    Statements issued outside `begin()`/`transaction()` are committed right
    away, so single CRUD calls behave like autocommit.

    While a transaction is open the connection belongs to it. The thread
    that opened it must send statements through the transaction object;
    plain statements and `begin()` calls from other threads wait until the
    transaction ends.
    """

    def __init__(
        self,
        conn: Any | None,
        dialect: Dialect,
        *,
        connector: Optional[Connector] = None,
    ):
        """Create database adapter.

        Args:
            conn: DB-API connection object, or `None` for an unconnected
                adapter that `connect()` opens later.
            dialect: Concrete SQL dialect instance.
            connector: Callable opening a connection from a DSN.
        """

        self.conn = conn
        self.dialect = dialect
        self._connector = connector
        self._closed = False
        self._state = threading.Condition()
        self._owner: Optional[int] = None
        self._active: Optional[DatabaseTransaction] = None
        self._busy: Dict[int, int] = {}

    @property
    def connected(self) -> bool:
        return self.conn is not None and not self._closed

    @property
    def in_transaction(self) -> bool:
        return self._active is not None

    def connect(self, dsn: str) -> Database:
        """Open the underlying connection through the configured connector."""

        if self.conn is not None:
            raise UsageError(f"{self.dialect.name} database is already connected")
        if self._connector is None:
            raise UsageError(f"no connector configured for dialect {self.dialect.name}")
        self.conn = self._connector(dsn)
        self._closed = False
        logger.debug("connected %s database", self.dialect.name)
        return self

    def _require_open_connection(self) -> Any:
        if self._closed or self.conn is None:
            raise RuntimeError("connection is closed")
        return self.conn

    def _should_begin_sqlite_transaction(self, conn: Any) -> bool:
        if getattr(self.dialect, "name", "").lower() != "sqlite":
            return False
        return not bool(getattr(conn, "in_transaction", False))

    @contextlib.contextmanager
    def _statement(self) -> Iterator[None]:
        # Plain statement: wait out other threads' transactions, never join one.
        me = threading.get_ident()
        with self._state:
            if self._owner == me:
                raise UsageError(
                    "a transaction is open on this connection; "
                    "run the statement through the transaction"
                )
            while self._owner is not None:
                self._state.wait()
            self._busy[me] = self._busy.get(me, 0) + 1
        try:
            yield
        finally:
            with self._state:
                remaining = self._busy.pop(me) - 1
                if remaining:
                    self._busy[me] = remaining
                self._state.notify_all()

    def _claim(self) -> None:
        me = threading.get_ident()
        with self._state:
            if self._owner == me:
                raise UsageError("a transaction is already in progress on this connection")
            while self._owner is not None or any(t != me for t in self._busy):
                self._state.wait()
            self._owner = me

    def _release(self) -> None:
        with self._state:
            self._owner = None
            self._active = None
            self._state.notify_all()

    def begin(
        self, ctx: Optional[QueryContext] = None, *, read_only: bool = False
    ) -> DatabaseTransaction:
        """Start a unit of work; statements run inside it until commit/rollback.

        Raises:
            UsageError: If the calling thread already has a transaction open.
        """

        check_context(ctx)
        self._claim()
        try:
            conn = self._require_open_connection()
            self._start(conn, read_only)
        except BaseException:
            self._release()
            raise
        tx = DatabaseTransaction(self)
        self._active = tx
        return tx

    def _start(self, conn: Any, read_only: bool) -> None:
        try:
            if self._should_begin_sqlite_transaction(conn):
                conn.execute("BEGIN")
            if read_only and self.dialect.read_only_sql:
                cur = conn.cursor()
                try:
                    cur.execute(self.dialect.read_only_sql)
                finally:
                    _close_cursor(cur)
        except OrmError:
            raise
        except Exception as exc:
            raise ExecutionError(f"begin transaction failed: {exc}", operation="begin") from exc

    @contextlib.contextmanager
    def transaction(self, ctx: Optional[QueryContext] = None):
        """Provide commit/rollback transaction scope."""

        tx = self.begin(ctx)
        try:
            yield tx
        except BaseException:
            tx.rollback()
            raise
        tx.commit()

    def _end_transaction(self, commit: bool) -> None:
        try:
            conn = self._require_open_connection()
            if commit:
                conn.commit()
            else:
                conn.rollback()
        finally:
            self._release()

    def execute(
        self, sql: str, params: QueryParams = None, *, ctx: Optional[QueryContext] = None
    ) -> ExecResult:
        """Execute SQL with optional parameters and report affected rows."""

        with self._statement():
            return self._execute(sql, params, ctx)

    def fetchone(
        self, sql: str, params: QueryParams = None, *, ctx: Optional[QueryContext] = None
    ) -> MaybeRow:
        """Execute query and return one normalized row mapping."""

        with self._statement():
            return self._fetchone(sql, params, ctx)

    def fetchall(
        self, sql: str, params: QueryParams = None, *, ctx: Optional[QueryContext] = None
    ) -> Rows:
        """Execute query and return all rows as normalized mappings."""

        with self._statement():
            return self._fetchall(sql, params, ctx)

    def iter_rows(
        self, sql: str, params: QueryParams = None, *, ctx: Optional[QueryContext] = None
    ) -> Iterator[RowMapping]:
        """Stream rows one at a time; the cursor closes when iteration ends."""

        with self._statement():
            yield from self._iter_rows(sql, params, ctx)

    def _execute(self, sql: str, params: QueryParams, ctx: Optional[QueryContext]) -> ExecResult:
        cur = self._run(sql, params, ctx)
        try:
            return ExecResult(
                rowcount=getattr(cur, "rowcount", -1),
                lastrowid=self.dialect.get_lastrowid(cur),
            )
        finally:
            _close_cursor(cur)
            self._autocommit()

    def _fetchone(self, sql: str, params: QueryParams, ctx: Optional[QueryContext]) -> MaybeRow:
        cur = self._run(sql, params, ctx)
        try:
            row = self._fetch(cur, sql, "fetchone")
            return None if row is None else self._row_to_mapping(cur, row)
        finally:
            _close_cursor(cur)
            self._autocommit()

    def _fetchall(self, sql: str, params: QueryParams, ctx: Optional[QueryContext]) -> Rows:
        cur = self._run(sql, params, ctx)
        try:
            rows = self._fetch(cur, sql, "fetchall")
            return [self._row_to_mapping(cur, r) for r in rows]
        finally:
            _close_cursor(cur)
            self._autocommit()

    def _iter_rows(
        self, sql: str, params: QueryParams, ctx: Optional[QueryContext]
    ) -> Iterator[RowMapping]:
        cur = self._run(sql, params, ctx)
        try:
            while True:
                row = self._fetch(cur, sql, "fetchone")
                if row is None:
                    return
                yield self._row_to_mapping(cur, row)
        finally:
            _close_cursor(cur)
            self._autocommit()

    def _run(self, sql: str, params: QueryParams, ctx: Optional[QueryContext]) -> Any:
        check_context(ctx)
        conn = self._require_open_connection()
        logger.debug("sql=%s params=%r", sql, params)
        cur = conn.cursor()
        try:
            if params is None:
                cur.execute(sql)
            else:
                cur.execute(sql, list(params))
        except Exception as exc:
            _close_cursor(cur)
            self._rollback_failed_statement()
            raise ExecutionError(str(exc), sql=sql) from exc
        return cur

    def _autocommit(self) -> None:
        if self._active is None and self.conn is not None:
            self.conn.commit()

    def _rollback_failed_statement(self) -> None:
        if self._active is not None or self.conn is None:
            return
        rollback = getattr(self.conn, "rollback", None)
        if callable(rollback):
            rollback()

    def _row_to_mapping(self, cursor: Any, row: Any) -> RowMapping:
        """Normalize row object to mapping.

        Supports mapping rows directly and tuple/list rows via
        `cursor.description`.
        """

        if isinstance(row, Mapping):
            return row

        if isinstance(row, (tuple, list)):
            desc = getattr(cursor, "description", None)
            if not desc:
                raise TypeError(
                    "Cursor has no description; cannot map tuple rows to dict."
                )
            cols = [d[0] for d in desc]
            return dict(zip(cols, row))

        keys = getattr(row, "keys", None)
        if callable(keys):
            return {key: row[key] for key in keys()}

        raise TypeError(f"Unsupported row type: {type(row)}")

    def _fetch(self, cur: Any, sql: str, method: str) -> Any:
        try:
            return getattr(cur, method)()
        except Exception as exc:
            raise ExecutionError(str(exc), sql=sql) from exc

    def close(self) -> None:
        """Close the underlying connection; safe to call twice.

        A transaction still open at this point is discarded and marked
        finished, so later use of it raises `TransactionClosedError`.
        """

        if self._closed:
            return
        conn = self.conn
        self._closed = True
        self.conn = None
        active = self._active
        if active is not None:
            active._done = True
            logger.warning("closing %s database with an open transaction", self.dialect.name)
        self._release()
        if conn is None:
            return
        close = getattr(conn, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()


class DatabaseTransaction:
    """Statement executor bound to one open transaction of a `Database`."""

    def __init__(self, database: Database) -> None:
        self._database = database
        self.dialect = database.dialect
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def _require_active(self) -> Database:
        if self._done:
            raise TransactionClosedError("transaction has already been committed or rolled back")
        return self._database

    def execute(
        self, sql: str, params: QueryParams = None, *, ctx: Optional[QueryContext] = None
    ) -> ExecResult:
        return self._require_active()._execute(sql, params, ctx)

    def fetchone(
        self, sql: str, params: QueryParams = None, *, ctx: Optional[QueryContext] = None
    ) -> MaybeRow:
        return self._require_active()._fetchone(sql, params, ctx)

    def fetchall(
        self, sql: str, params: QueryParams = None, *, ctx: Optional[QueryContext] = None
    ) -> Rows:
        return self._require_active()._fetchall(sql, params, ctx)

    def iter_rows(
        self, sql: str, params: QueryParams = None, *, ctx: Optional[QueryContext] = None
    ) -> Iterator[RowMapping]:
        return self._require_active()._iter_rows(sql, params, ctx)

    def commit(self) -> None:
        database = self._require_active()
        self._done = True
        try:
            database._end_transaction(commit=True)
        except Exception as exc:
            raise ExecutionError(f"commit failed: {exc}", operation="commit") from exc

    def rollback(self) -> None:
        database = self._require_active()
        self._done = True
        try:
            database._end_transaction(commit=False)
        except Exception as exc:
            raise ExecutionError(f"rollback failed: {exc}", operation="rollback") from exc


def _close_cursor(cur: Any) -> None:
    close = getattr(cur, "close", None)
    if callable(close):
        close()
