"""Data layer error hierarchy.

Build-time errors (``InvalidIdentifier``, ``InvalidJoinSpec``,
``InvalidArgument``) are raised before any SQL reaches the connection.
Driver errors (``ConnectionFailed``, ``PrepareFailed``, ``ExecuteFailed``)
carry the driver's own message and code. Neither kind is retried.
"""

from perch.errors import PerchError


class DataError(PerchError):
    """Base for all perch.data errors."""


class InvalidIdentifier(DataError, ValueError):  # noqa: N818
    """A table, column, or alias name failed the allow-list check."""


class InvalidJoinSpec(DataError, ValueError):  # noqa: N818
    """A join is missing its table or its ON predicate."""


class InvalidArgument(DataError, ValueError):  # noqa: N818
    """An argument cannot produce a valid statement (e.g. empty insert)."""


class DriverError(DataError):
    """An error reported by the database driver.

    Attributes:
        message: The driver's error text.
        code: The driver's numeric error code, when it reports one.
        name: The driver's symbolic error name, when it reports one.
    """

    def __init__(self, message: str, *, code: int | None = None, name: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.name = name

    def __str__(self) -> str:
        if self.code is not None:
            return f"({self.code}) {self.message}"
        return self.message


class ConnectionFailed(DriverError):  # noqa: N818
    """The connection could not be established."""


class PrepareFailed(DriverError):  # noqa: N818
    """The statement could not be compiled or its parameters bound."""


class ExecuteFailed(DriverError):  # noqa: N818
    """The statement was compiled but failed while running."""
