"""Statement builders for perch.data.

Each builder returns a ``BoundQuery``: SQL text with ``?`` placeholders
plus an ordered tuple of type-tagged parameters. Values are never
spliced into the SQL text; names always pass ``perch.data.identifiers``.

Usage::

    from perch.data import query

    q = query.select(
        "users u",
        "u.id, u.name, o.total",
        joins=[{"type": "left", "table": "orders o", "on": "o.user_id = u.id"}],
        where="u.active = ?",
        params=[1],
        order="u.name asc",
        limit=10,
    )
    q.sql     # 'SELECT "u"."id", ... LEFT JOIN "orders" o ON o.user_id = u.id ...'
    q.values  # (1,)

Trust boundary: WHERE and ON predicates are raw caller text. They are
never sanitized, only their parameters are bound. Build them from
constants, not from user input.

Queries are built fresh per call and never cached.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from perch.data.errors import InvalidArgument, InvalidJoinSpec
from perch.data.identifiers import (
    normalize_join_type,
    quote_column_list,
    quote_identifier,
    quote_order_list,
)


class ParamType(Enum):
    """Driver binding tag for a parameter."""

    INTEGER = "i"
    FLOAT = "d"
    STRING = "s"


def infer_type(value: Any) -> ParamType:
    """Tag *value* for binding. ``bool`` counts as an integer."""
    if isinstance(value, int):
        return ParamType.INTEGER
    if isinstance(value, float):
        return ParamType.FLOAT
    return ParamType.STRING


@dataclass(frozen=True, slots=True)
class BoundParam:
    value: Any
    type: ParamType

    @classmethod
    def of(cls, value: Any) -> BoundParam:
        return cls(value=value, type=infer_type(value))


@dataclass(frozen=True, slots=True)
class BoundQuery:
    """A statement ready for the executor.

    ``params`` for single statements; ``rows`` holds one parameter tuple
    per row for ``insert_many``.
    """

    sql: str
    params: tuple[BoundParam, ...] = ()
    rows: tuple[tuple[BoundParam, ...], ...] = ()

    @property
    def values(self) -> tuple[Any, ...]:
        return tuple(p.value for p in self.params)

    @property
    def is_batch(self) -> bool:
        return bool(self.rows)


@dataclass(frozen=True, slots=True)
class JoinSpec:
    """One JOIN clause. ``on`` is a raw predicate."""

    table: str
    on: str
    type: str = "INNER"

    @classmethod
    def coerce(cls, spec: JoinSpec | Mapping[str, Any]) -> JoinSpec:
        if isinstance(spec, JoinSpec):
            join = spec
        else:
            join = cls(
                table=spec.get("table") or "",
                on=spec.get("on") or "",
                type=spec.get("type") or "INNER",
            )
        if not join.table or not join.on:
            msg = f"Join requires both a table and an ON predicate: {spec!r}"
            raise InvalidJoinSpec(msg)
        return join

    def to_sql(self) -> str:
        return f"{normalize_join_type(self.type)} JOIN {quote_identifier(self.table)} ON {self.on}"


def bind(values: Iterable[Any]) -> tuple[BoundParam, ...]:
    """Tag every value in order."""
    return tuple(BoundParam.of(v) for v in values)


def paginate(page: int, per_page: int) -> tuple[int, int]:
    """Return ``(limit, offset)`` for a 1-based *page*; pages below 1 clamp to 1."""
    return per_page, max(0, page - 1) * per_page


def _limit_clause(limit: int | None, offset: int | None) -> str:
    if limit is None:
        return ""
    clause = f" LIMIT {int(limit)}"
    if offset is not None and int(offset) > 0:
        clause += f" OFFSET {int(offset)}"
    return clause


def select(
    table: str,
    columns: str = "*",
    *,
    joins: Iterable[JoinSpec | Mapping[str, Any]] = (),
    where: str | None = None,
    params: Sequence[Any] = (),
    order: str | None = None,
    limit: int | None = None,
    offset: int | None = None,
) -> BoundQuery:
    """Build a SELECT.

    ``SELECT <cols> FROM <table> [<TYPE> JOIN ...]* [WHERE <where>]
    [ORDER BY <order>] [LIMIT n [OFFSET m]]``. OFFSET is only emitted
    together with LIMIT and only when positive.
    """
    parts = [f"SELECT {quote_column_list(columns)} FROM {quote_identifier(table)}"]
    parts.extend(JoinSpec.coerce(j).to_sql() for j in joins)
    if where:
        parts.append(f"WHERE {where}")
    if order:
        safe_order = quote_order_list(order)
        if safe_order:
            parts.append(f"ORDER BY {safe_order}")
    sql = " ".join(parts) + _limit_clause(limit, offset)
    return BoundQuery(sql=sql, params=bind(params))


def insert(table: str, values: Mapping[str, Any]) -> BoundQuery:
    """Build a single-row INSERT. Column order follows *values*."""
    if not values:
        msg = "insert() requires at least one column value"
        raise InvalidArgument(msg)
    columns = ", ".join(quote_identifier(col) for col in values)
    placeholders = ", ".join("?" for _ in values)
    sql = f"INSERT INTO {quote_identifier(table)} ({columns}) VALUES ({placeholders})"
    return BoundQuery(sql=sql, params=bind(values.values()))


def insert_many(
    table: str, columns: Sequence[str], rows: Iterable[Sequence[Any]]
) -> BoundQuery:
    """Build one INSERT statement executed once per row.

    Every row must supply exactly one value per column.
    """
    if not columns:
        msg = "insert_many() requires at least one column"
        raise InvalidArgument(msg)
    bound_rows: list[tuple[BoundParam, ...]] = []
    for index, row in enumerate(rows):
        if len(row) != len(columns):
            msg = f"Row {index} has {len(row)} values, expected {len(columns)}"
            raise InvalidArgument(msg)
        bound_rows.append(bind(row))
    if not bound_rows:
        msg = "insert_many() requires at least one row"
        raise InvalidArgument(msg)
    column_sql = ", ".join(quote_identifier(col) for col in columns)
    placeholders = ", ".join("?" for _ in columns)
    sql = f"INSERT INTO {quote_identifier(table)} ({column_sql}) VALUES ({placeholders})"
    return BoundQuery(sql=sql, rows=tuple(bound_rows))


def update(
    table: str, values: Mapping[str, Any], where: str, params: Sequence[Any] = ()
) -> BoundQuery:
    """Build an UPDATE. SET parameters precede WHERE parameters."""
    if not values:
        msg = "update() requires at least one column value"
        raise InvalidArgument(msg)
    if not where or not where.strip():
        msg = "update() requires a WHERE clause"
        raise InvalidArgument(msg)
    assignments = ", ".join(f"{quote_identifier(col)} = ?" for col in values)
    sql = f"UPDATE {quote_identifier(table)} SET {assignments} WHERE {where}"
    return BoundQuery(sql=sql, params=bind([*values.values(), *params]))


def delete(table: str, where: str, params: Sequence[Any] = ()) -> BoundQuery:
    """Build a DELETE. An empty WHERE is refused."""
    if not where or not where.strip():
        msg = "delete() requires a WHERE clause"
        raise InvalidArgument(msg)
    sql = f"DELETE FROM {quote_identifier(table)} WHERE {where}"
    return BoundQuery(sql=sql, params=bind(params))


def count(table: str, where: str | None = None, params: Sequence[Any] = ()) -> BoundQuery:
    """Build ``SELECT COUNT(*) AS "cnt"`` with an optional WHERE."""
    sql = f'SELECT COUNT(*) AS "cnt" FROM {quote_identifier(table)}'
    if where:
        sql += f" WHERE {where}"
    return BoundQuery(sql=sql, params=bind(params))


def search(
    table: str,
    column: str,
    term: str,
    *,
    columns: str = "*",
    order: str | None = None,
    limit: int | None = None,
    offset: int | None = None,
) -> BoundQuery:
    """Build a substring search: ``WHERE <column> LIKE '%term%'``."""
    return select(
        table,
        columns,
        where=f"{quote_identifier(column)} LIKE ?",
        params=[f"%{term}%"],
        order=order,
        limit=limit,
        offset=offset,
    )


def count_search(table: str, column: str, term: str) -> BoundQuery:
    """Count rows matching ``search(table, column, term)``."""
    return count(table, f"{quote_identifier(column)} LIKE ?", [f"%{term}%"])
