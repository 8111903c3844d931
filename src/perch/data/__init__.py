"""perch.data: identifier-safe statement building and execution.

SQL in, dicts out. Values are always bound as parameters; table, column,
and alias names pass an allow-list before they reach the SQL text.

Basic usage::

    from perch.data import Database, query

    db = Database("sqlite:///app.db")
    db.write_record("users", {"name": "Alice", "age": 30})
    rows = db.run_query(query.select("users", "id, name", order="name"))
"""

from perch.data import query
from perch.data.cooperative import AsyncDatabase
from perch.data.database import Database, DatabaseConfig
from perch.data.errors import (
    ConnectionFailed,
    DataError,
    DriverError,
    ExecuteFailed,
    InvalidArgument,
    InvalidIdentifier,
    InvalidJoinSpec,
    PrepareFailed,
)
from perch.data.identifiers import (
    normalize_join_type,
    quote_column_list,
    quote_identifier,
    quote_order_list,
)
from perch.data.query import BoundParam, BoundQuery, JoinSpec, ParamType

__all__ = [
    "AsyncDatabase",
    "BoundParam",
    "BoundQuery",
    "ConnectionFailed",
    "DataError",
    "Database",
    "DatabaseConfig",
    "DriverError",
    "ExecuteFailed",
    "InvalidArgument",
    "InvalidIdentifier",
    "InvalidJoinSpec",
    "JoinSpec",
    "ParamType",
    "PrepareFailed",
    "normalize_join_type",
    "query",
    "quote_column_list",
    "quote_identifier",
    "quote_order_list",
]
