"""DuckDB engine: one in-memory connection, typed row cursors, bulk CSV copy."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator, Sequence

import duckdb

from codec import row_to_wire
from errors import EngineError, InternalError, NoRowsError
from sql import quote_ident

logger = logging.getLogger(__name__)

FETCH_BATCH_SIZE = 2048


class Engine(ABC):
    @abstractmethod
    def execute(self, sql: str, params: Sequence[Any] | None = None) -> None:
        """Run a statement that returns no rows."""

    @abstractmethod
    def query_row(self, sql: str, params: Sequence[Any] | None = None) -> tuple:
        """Return exactly one row, raising NoRowsError when there is none."""

    @abstractmethod
    def query(self, sql: str, params: Sequence[Any] | None = None) -> "RowCursor":
        """Open a forward-only cursor. It must be closed before the next call."""

    @abstractmethod
    def copy_from_csv(self, path: str, table: str) -> None:
        """Create ``table`` from a CSV file, letting the engine infer the schema."""

    @abstractmethod
    def copy_to_csv(self, select_sql: str, path: str, header: bool = True) -> None:
        """Write the result of ``select_sql`` to a CSV file."""

    @abstractmethod
    def close(self) -> None:
        pass


class RowCursor:
    """Forward-only iterator over a result set.

    While a cursor is open it owns the connection; the engine refuses other
    statements until it is drained or closed.
    """

    def __init__(self, engine: "DuckDBEngine", result: duckdb.DuckDBPyConnection) -> None:
        self._engine = engine
        self._result = result
        self.columns: list[str] = (
            [desc[0] for desc in result.description] if result.description else []
        )
        self.closed = False

    def __iter__(self) -> Iterator[tuple]:
        while not self.closed:
            try:
                batch = self._result.fetchmany(FETCH_BATCH_SIZE)
            except duckdb.Error as e:
                self.close()
                raise EngineError(str(e)) from e
            if not batch:
                self.close()
                return
            yield from batch

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._engine._release(self)

    def __enter__(self) -> "RowCursor":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class DuckDBEngine(Engine):
    def __init__(self, memory_limit: str = "4GB", threads: int = 4) -> None:
        try:
            self.conn = duckdb.connect(
                database=":memory:",
                config={"memory_limit": memory_limit, "threads": threads},
            )
        except duckdb.Error as e:
            raise EngineError(f"Failed to open DuckDB: {e}") from e
        self._cursor: RowCursor | None = None
        self._in_transaction = False
        self._closed = False
        logger.info(
            f"[ENGINE] Opened in-memory DuckDB (memory_limit={memory_limit}, threads={threads})"
        )

    # ── statements ──

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> None:
        self._run(sql, params)

    def execute_many(self, sql: str, rows: Sequence[Sequence[Any]]) -> None:
        self._ensure_idle()
        try:
            self.conn.executemany(sql, rows)
        except duckdb.Error as e:
            raise EngineError(str(e)) from e

    def query_row(self, sql: str, params: Sequence[Any] | None = None) -> tuple:
        row = self._run(sql, params).fetchone()
        if row is None:
            raise NoRowsError(sql)
        return row

    def query(self, sql: str, params: Sequence[Any] | None = None) -> RowCursor:
        cursor = RowCursor(self, self._run(sql, params))
        self._cursor = cursor
        return cursor

    def execute_query(self, sql: str, params: Sequence[Any] | None = None) -> dict:
        """Run a SELECT and materialise it as a wire-level QueryResult."""
        with self.query(sql, params) as cursor:
            rows = [row_to_wire(row) for row in cursor]
            columns = cursor.columns
        return {"columns": columns, "rows": rows, "totalRows": len(rows)}

    def count_rows(self, source_sql: str, params: Sequence[Any] | None = None) -> int:
        return int(self.query_row(f"SELECT COUNT(*) FROM {source_sql}", params)[0])

    # ── bulk copy ──

    def copy_from_csv(self, path: str, table: str) -> None:
        self.execute(
            f"CREATE TABLE {quote_ident(table)} AS "
            f"SELECT * FROM read_csv_auto(?, header=true, all_varchar=false)",
            [path],
        )

    def copy_to_csv(self, select_sql: str, path: str, header: bool = True) -> None:
        header_opt = "HEADER true" if header else "HEADER false"
        self.execute(f"COPY ({select_sql}) TO ? (FORMAT CSV, {header_opt})", [path])

    # ── transactions ──

    def begin(self) -> None:
        self.execute("BEGIN TRANSACTION")
        self._in_transaction = True

    def commit(self) -> None:
        try:
            self.execute("COMMIT")
        finally:
            self._in_transaction = False

    def rollback(self) -> None:
        if not self._in_transaction:
            return
        self._in_transaction = False
        self.execute("ROLLBACK")

    @contextmanager
    def transaction(self) -> Iterator[None]:
        self.begin()
        try:
            yield
        except BaseException:
            self.rollback()
            raise
        self.commit()

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    # ── lifecycle ──

    def setting(self, name: str) -> str:
        return str(self.query_row("SELECT current_setting(?)", [name])[0])

    def close(self) -> None:
        if self._closed:
            return
        if self._cursor is not None:
            self._cursor.close()
        if self._in_transaction:
            try:
                self.rollback()
            except EngineError as e:
                logger.warning(f"[ENGINE] Rollback on close failed: {e}")
        self.conn.close()
        self._closed = True
        logger.info("[ENGINE] Closed DuckDB connection")

    @property
    def closed(self) -> bool:
        return self._closed

    def _run(self, sql: str, params: Sequence[Any] | None) -> duckdb.DuckDBPyConnection:
        self._ensure_idle()
        logger.debug(f"[ENGINE] {sql}")
        try:
            if params:
                return self.conn.execute(sql, list(params))
            return self.conn.execute(sql)
        except duckdb.Error as e:
            raise EngineError(str(e)) from e

    def _ensure_idle(self) -> None:
        if self._closed:
            raise InternalError("Engine connection is closed")
        if self._cursor is not None:
            raise InternalError("A row cursor is still open on the engine connection")

    def _release(self, cursor: RowCursor) -> None:
        if self._cursor is cursor:
            self._cursor = None
