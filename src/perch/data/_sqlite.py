"""SQLite driver glue: opening the connection and classifying errors.

Uses Python 3.12+ features:
    - ``autocommit=True``: individual statements commit on their own;
      ``Database.transaction()`` flips to manual mode for the bracket
    - ``check_same_thread=False``: the cooperative facade may run
      statements on an ``anyio`` worker thread; ``Database`` serializes
      every statement with its own lock
"""

import sqlite3

from perch.data.errors import ConnectionFailed, DriverError, ExecuteFailed, PrepareFailed

# OperationalError texts that mean the statement never compiled.
_PREPARE_MARKERS = (
    "syntax error",
    "near ",
    "no such table",
    "no such column",
    "has no column named",
    "ambiguous column",
    "incomplete input",
    "unrecognized token",
)


def permits_threads() -> bool:
    """True if the linked SQLite library is built in serialized mode."""
    return sqlite3.threadsafety == 3


def connect(path: str, *, timeout: float = 5.0) -> sqlite3.Connection:
    """Open *path* (or ``:memory:``) and apply connection pragmas."""
    try:
        conn = sqlite3.connect(
            path,
            timeout=timeout,
            check_same_thread=False,
            autocommit=True,
        )
        conn.execute("PRAGMA foreign_keys=ON")
    except sqlite3.Error as exc:
        raise ConnectionFailed(
            f"Could not open SQLite database {path!r}: {exc}",
            code=getattr(exc, "sqlite_errorcode", None),
            name=getattr(exc, "sqlite_errorname", None),
        ) from exc
    return conn


def classify_error(exc: sqlite3.Error) -> DriverError:
    """Map a ``sqlite3`` exception to ``PrepareFailed`` or ``ExecuteFailed``.

    Programming and interface errors (bad binding counts, unsupported
    parameter types) and operational errors whose text reports a compile
    failure are prepare failures. Everything else, constraint violations
    included, failed while running.
    """
    message = str(exc)
    code = getattr(exc, "sqlite_errorcode", None)
    name = getattr(exc, "sqlite_errorname", None)

    if isinstance(exc, (sqlite3.ProgrammingError, sqlite3.InterfaceError)):
        return PrepareFailed(message, code=code, name=name)
    if isinstance(exc, sqlite3.OperationalError):
        lowered = message.lower()
        if any(marker in lowered for marker in _PREPARE_MARKERS):
            return PrepareFailed(message, code=code, name=name)
    return ExecuteFailed(message, code=code, name=name)
