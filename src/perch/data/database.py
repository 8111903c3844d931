"""Synchronous statement executor over one SQLite connection.

SQL in, dicts out. A ``Database`` owns exactly one connection, opened
lazily on first use (or eagerly via ``connect()``) and never reopened
behind the caller's back. Statements run one at a time.

Connection URL format::

    sqlite:///path/to/db.sqlite    # SQLite file
    sqlite:///:memory:             # In-memory SQLite

Usage::

    db = Database("sqlite:///app.db")

    db.run_execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT)")
    user_id = db.write_record("users", {"name": "Alice"})
    rows = db.read_table("users", where="id = ?", params=[user_id])

    with db.transaction():
        db.write_record("users", {"name": "Bob"})
        db.update_record("users", {"name": "Bobby"}, "name = ?", ["Bob"])

Thread safety:
    - Opening the connection is guarded by a ``threading.Lock``
      (double-checked)
    - Every statement and every transaction holds an ``RLock``, so a
      transaction's statements never interleave with another caller's
"""

from __future__ import annotations

import logging
import re
import sqlite3
import threading
import time
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from perch.data import query as q
from perch.data._sqlite import classify_error, permits_threads
from perch.data._sqlite import connect as sqlite_connect
from perch.data.errors import DataError
from perch.data.query import BoundParam, BoundQuery, JoinSpec, ParamType

logger = logging.getLogger("perch.data")

type Statement = BoundQuery | str

# Statements whose result is a row set in ``custom_query``.
_ROW_KEYWORDS = frozenset({"SELECT", "PRAGMA", "EXPLAIN", "WITH", "VALUES"})
_FIRST_WORD = re.compile(r"^\s*([A-Za-z]+)")


def _as_text(value: Any) -> Any:
    if isinstance(value, (str, bytes)):
        return value
    return str(value)


_BINDERS: dict[ParamType, Callable[[Any], Any]] = {
    ParamType.INTEGER: int,
    ParamType.FLOAT: float,
    ParamType.STRING: _as_text,
}


def _bind(params: Sequence[BoundParam]) -> tuple[Any, ...]:
    """Convert each parameter by its tag. ``None`` binds as NULL."""
    return tuple(None if p.value is None else _BINDERS[p.type](p.value) for p in params)


def _coerce(statement: Statement, params: Sequence[Any]) -> BoundQuery:
    if isinstance(statement, BoundQuery):
        return statement
    bound = tuple(p if isinstance(p, BoundParam) else BoundParam.of(p) for p in params)
    return BoundQuery(sql=statement, params=bound)


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """Database connection configuration."""

    url: str
    echo: bool = False
    timeout: float = 5.0


class Database:
    """One connection, serial statements, typed parameter binding.

    Low-level calls take a ``BoundQuery`` from ``perch.data.query`` or a
    raw ``(sql, params)`` pair::

        db.run_query(query.select("users", where="id = ?", params=[1]))
        db.run_query("SELECT * FROM users WHERE id = ?", [1])

    Driver failures raise ``PrepareFailed`` or ``ExecuteFailed`` and are
    never retried.
    """

    __slots__ = ("_config", "_conn", "_depth", "_lock", "_path", "_stmt_lock")

    def __init__(self, url: str, /, *, echo: bool = False, timeout: float = 5.0) -> None:
        self._config = DatabaseConfig(url=url, echo=echo, timeout=timeout)
        self._path = _parse_sqlite_path(url)
        self._lock = threading.Lock()
        self._stmt_lock = threading.RLock()
        self._conn: sqlite3.Connection | None = None
        self._depth = 0

    @property
    def config(self) -> DatabaseConfig:
        return self._config

    @property
    def connected(self) -> bool:
        return self._conn is not None

    @property
    def permits_threads(self) -> bool:
        """True if statements may run on a thread other than the opener's."""
        return permits_threads()

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    # -- Lifecycle --

    def connect(self) -> None:
        """Open the connection now instead of on first use (fail fast).

        Raises ``ConnectionFailed`` if the database cannot be opened.
        """
        if self._conn is not None:
            return
        with self._lock:
            if self._conn is not None:
                return
            self._conn = sqlite_connect(self._path, timeout=self._config.timeout)
            logger.debug("Opened SQLite connection to %s", self._path)

    def close(self) -> None:
        """Close the connection. A later call opens a fresh one."""
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None

    def __enter__(self) -> Database:
        self.connect()
        return self

    def __exit__(self, *_: Any) -> None:
        self.close()

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self.connect()
        assert self._conn is not None
        return self._conn

    # -- Echo / query logging --

    def _log_query(self, sql: str, params: Sequence[Any], elapsed: float) -> None:
        level = logging.INFO if self._config.echo else logging.DEBUG
        if not logger.isEnabledFor(level):
            return
        param_str = f"  params={tuple(params)!r}" if params else ""
        logger.log(level, "%6.1fms  %s%s", elapsed * 1000, sql, param_str)

    # -- Low-level execution --

    def _cursor(self, bound: BoundQuery) -> sqlite3.Cursor:
        """Run *bound* and return its cursor. Caller holds ``_stmt_lock``."""
        conn = self._connection()
        t0 = time.perf_counter()
        try:
            if bound.is_batch:
                return conn.executemany(bound.sql, [_bind(row) for row in bound.rows])
            if not bound.params:
                return conn.execute(bound.sql)
            return conn.execute(bound.sql, _bind(bound.params))
        except sqlite3.Error as exc:
            raise classify_error(exc) from exc
        finally:
            self._log_query(bound.sql, bound.values, time.perf_counter() - t0)

    def run_query(self, statement: Statement, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Execute and return every row as a dict keyed by column name."""
        bound = _coerce(statement, params)
        with self._stmt_lock:
            cursor = self._cursor(bound)
            try:
                rows = cursor.fetchall()
            except sqlite3.Error as exc:
                raise classify_error(exc) from exc
            if cursor.description is None:
                return []
            columns = [desc[0] for desc in cursor.description]
            return [dict(zip(columns, row, strict=True)) for row in rows]

    def run_execute(self, statement: Statement, params: Sequence[Any] = ()) -> int:
        """Execute and return the number of affected rows."""
        bound = _coerce(statement, params)
        with self._stmt_lock:
            return max(self._cursor(bound).rowcount, 0)

    def run_insert(self, statement: Statement, params: Sequence[Any] = ()) -> int:
        """Execute and return the last inserted row id."""
        bound = _coerce(statement, params)
        with self._stmt_lock:
            return self._cursor(bound).lastrowid or 0

    def run_script(self, sql: str, /) -> None:
        """Execute several ``;``-separated statements (schema setup)."""
        with self._stmt_lock:
            conn = self._connection()
            t0 = time.perf_counter()
            try:
                conn.executescript(sql)
            except sqlite3.Error as exc:
                raise classify_error(exc) from exc
            finally:
                self._log_query(sql, (), time.perf_counter() - t0)

    # -- Transactions --

    @contextmanager
    def transaction(self) -> Iterator[Database]:
        """Execute the block atomically.

        Commits on clean exit. Any exception rolls back and propagates
        unchanged. Nesting is transparent: an inner ``transaction()``
        joins the outer one.

        Usage::

            with db.transaction():
                db.write_record("orders", {...})
                db.update_record("stock", {...}, "sku = ?", [sku])
        """
        with self._stmt_lock:
            if self._depth > 0:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            conn = self._connection()
            self._depth = 1
            try:
                conn.autocommit = False
                yield self
                try:
                    conn.commit()
                except sqlite3.Error as exc:
                    raise classify_error(exc) from exc
            except BaseException:
                conn.rollback()
                raise
            finally:
                conn.autocommit = True
                self._depth = 0

    def run_transaction[T](self, work: Callable[[Database], T]) -> T:
        """Call ``work(db)`` inside ``transaction()`` and return its result."""
        with self.transaction():
            return work(self)

    # -- Table operations --

    def read_table(
        self,
        table: str,
        columns: str = "*",
        *,
        where: str | None = None,
        params: Sequence[Any] = (),
        order: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict[str, Any]]:
        return self.run_query(
            q.select(
                table,
                columns,
                where=where,
                params=params,
                order=order,
                limit=limit,
                offset=offset,
            )
        )

    def read_table_with_join(
        self,
        table: str,
        joins: Sequence[JoinSpec | Mapping[str, Any]],
        columns: str = "*",
        *,
        where: str | None = None,
        params: Sequence[Any] = (),
        order: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict[str, Any]]:
        return self.run_query(
            q.select(
                table,
                columns,
                joins=joins,
                where=where,
                params=params,
                order=order,
                limit=limit,
                offset=offset,
            )
        )

    def read_table_paginated(
        self,
        table: str,
        page: int = 1,
        per_page: int = 20,
        columns: str = "*",
        *,
        joins: Sequence[JoinSpec | Mapping[str, Any]] = (),
        where: str | None = None,
        params: Sequence[Any] = (),
        order: str | None = None,
    ) -> list[dict[str, Any]]:
        """Return one page of rows; *page* is 1-based and clamps at 1."""
        limit, offset = q.paginate(page, per_page)
        return self.run_query(
            q.select(
                table,
                columns,
                joins=joins,
                where=where,
                params=params,
                order=order,
                limit=limit,
                offset=offset,
            )
        )

    def partial_search(
        self,
        table: str,
        column: str,
        term: str,
        columns: str = "*",
        *,
        order: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict[str, Any]]:
        return self.run_query(
            q.search(table, column, term, columns=columns, order=order, limit=limit, offset=offset)
        )

    def write_record(self, table: str, values: Mapping[str, Any]) -> int:
        """Insert one row and return its id."""
        return self.run_insert(q.insert(table, values))

    def batch_insert(
        self, table: str, columns: Sequence[str], rows: Sequence[Sequence[Any]]
    ) -> int:
        """Insert many rows with one statement; returns the rows inserted."""
        return self.run_execute(q.insert_many(table, columns, rows))

    def update_record(
        self, table: str, values: Mapping[str, Any], where: str, params: Sequence[Any] = ()
    ) -> int:
        return self.run_execute(q.update(table, values, where, params))

    def delete_record(self, table: str, where: str, params: Sequence[Any] = ()) -> int:
        return self.run_execute(q.delete(table, where, params))

    def count_rows(self, table: str, where: str | None = None, params: Sequence[Any] = ()) -> int:
        rows = self.run_query(q.count(table, where, params))
        return int(rows[0]["cnt"]) if rows else 0

    def count_partial_search(self, table: str, column: str, term: str) -> int:
        rows = self.run_query(q.count_search(table, column, term))
        return int(rows[0]["cnt"]) if rows else 0

    def custom_query(
        self, sql: str, params: Sequence[Any] = ()
    ) -> list[dict[str, Any]] | dict[str, int]:
        """Run caller-written SQL.

        Row-returning statements (SELECT, PRAGMA, EXPLAIN, WITH, VALUES)
        return rows; anything else returns ``{"affected_rows": n}``.
        """
        m = _FIRST_WORD.match(sql)
        if m and m.group(1).upper() in _ROW_KEYWORDS:
            return self.run_query(sql, params)
        return {"affected_rows": self.run_execute(sql, params)}


# =============================================================================
# URL parsing
# =============================================================================


def _parse_sqlite_path(url: str) -> str:
    """Extract the file path from a sqlite:// URL."""
    # sqlite:///path/to/db  ->  path/to/db
    # sqlite:///:memory:    ->  :memory:
    prefix = "sqlite:///"
    if url.startswith(prefix):
        return url[len(prefix) :]
    prefix_short = "sqlite://"
    if url.startswith(prefix_short):
        return url[len(prefix_short) :]
    msg = f"Unsupported database URL: {url!r}. Supported: sqlite:///path, sqlite:///:memory:"
    raise DataError(msg)
