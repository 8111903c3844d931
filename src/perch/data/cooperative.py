"""Cooperative facade over ``Database`` for async callers.

Every operation of ``Database`` is exposed as an ``async def`` with the
same arguments and the same results. Calls are serialized through one
``anyio.Lock`` so no two operations ever reach the connection at once.

When the linked SQLite library permits cross-thread use, the blocking
call runs in an ``anyio`` worker thread and the event loop stays free.
Otherwise the call runs inline on the loop thread after an ``anyio``
checkpoint: a suspension point only, with identical results.

Usage::

    adb = AsyncDatabase(Database("sqlite:///app.db"))
    rows = await adb.read_table("users", order="name")
    await adb.run_transaction(lambda db: db.write_record("users", {"name": "Ada"}))
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any

import anyio
import anyio.lowlevel
import anyio.to_thread

from perch.data.database import Database, Statement
from perch.data.query import JoinSpec


class AsyncDatabase:
    """Async wrapper with suspension points, never parallelism."""

    __slots__ = ("_db", "_lock", "_use_threads")

    def __init__(self, db: Database, *, use_threads: bool | None = None) -> None:
        self._db = db
        self._use_threads = db.permits_threads if use_threads is None else use_threads
        self._lock: anyio.Lock | None = None  # Created lazily on first use

    @property
    def db(self) -> Database:
        return self._db

    @property
    def uses_threads(self) -> bool:
        return self._use_threads

    async def _call[T](self, func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
        # Can't create the lock in __init__ before an event loop exists.
        if self._lock is None:
            self._lock = anyio.Lock()
        async with self._lock:
            if self._use_threads:
                return await anyio.to_thread.run_sync(lambda: func(*args, **kwargs))
            await anyio.lowlevel.checkpoint()
            return func(*args, **kwargs)

    # -- Lifecycle --

    async def connect(self) -> None:
        await self._call(self._db.connect)

    async def close(self) -> None:
        await self._call(self._db.close)

    async def __aenter__(self) -> AsyncDatabase:
        await self.connect()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()

    # -- Low-level execution --

    async def run_query(
        self, statement: Statement, params: Sequence[Any] = ()
    ) -> list[dict[str, Any]]:
        return await self._call(self._db.run_query, statement, params)

    async def run_execute(self, statement: Statement, params: Sequence[Any] = ()) -> int:
        return await self._call(self._db.run_execute, statement, params)

    async def run_insert(self, statement: Statement, params: Sequence[Any] = ()) -> int:
        return await self._call(self._db.run_insert, statement, params)

    async def run_script(self, sql: str, /) -> None:
        await self._call(self._db.run_script, sql)

    async def run_transaction[T](self, work: Callable[[Database], T]) -> T:
        """Run ``work(db)`` atomically. *work* is synchronous and runs whole."""
        return await self._call(self._db.run_transaction, work)

    # -- Table operations --

    async def read_table(
        self, table: str, columns: str = "*", **kwargs: Any
    ) -> list[dict[str, Any]]:
        return await self._call(self._db.read_table, table, columns, **kwargs)

    async def read_table_with_join(
        self,
        table: str,
        joins: Sequence[JoinSpec | Mapping[str, Any]],
        columns: str = "*",
        **kwargs: Any,
    ) -> list[dict[str, Any]]:
        return await self._call(self._db.read_table_with_join, table, joins, columns, **kwargs)

    async def read_table_paginated(
        self, table: str, page: int = 1, per_page: int = 20, columns: str = "*", **kwargs: Any
    ) -> list[dict[str, Any]]:
        return await self._call(
            self._db.read_table_paginated, table, page, per_page, columns, **kwargs
        )

    async def partial_search(
        self, table: str, column: str, term: str, columns: str = "*", **kwargs: Any
    ) -> list[dict[str, Any]]:
        return await self._call(self._db.partial_search, table, column, term, columns, **kwargs)

    async def write_record(self, table: str, values: Mapping[str, Any]) -> int:
        return await self._call(self._db.write_record, table, values)

    async def batch_insert(
        self, table: str, columns: Sequence[str], rows: Sequence[Sequence[Any]]
    ) -> int:
        return await self._call(self._db.batch_insert, table, columns, rows)

    async def update_record(
        self, table: str, values: Mapping[str, Any], where: str, params: Sequence[Any] = ()
    ) -> int:
        return await self._call(self._db.update_record, table, values, where, params)

    async def delete_record(self, table: str, where: str, params: Sequence[Any] = ()) -> int:
        return await self._call(self._db.delete_record, table, where, params)

    async def count_rows(
        self, table: str, where: str | None = None, params: Sequence[Any] = ()
    ) -> int:
        return await self._call(self._db.count_rows, table, where, params)

    async def count_partial_search(self, table: str, column: str, term: str) -> int:
        return await self._call(self._db.count_partial_search, table, column, term)

    async def custom_query(
        self, sql: str, params: Sequence[Any] = ()
    ) -> list[dict[str, Any]] | dict[str, int]:
        return await self._call(self._db.custom_query, sql, params)
