"""Perch exception hierarchy.

Shared across the route table, dispatcher, and middleware so every
module raises and catches the same types.

Routing outcomes (404, 405, 403) are normally produced by the dispatcher
as plain responses. The ``HTTPError`` subclasses below exist so handlers
and middleware can end a request with a given status by raising.
"""

from dataclasses import dataclass


class PerchError(Exception):
    """Base for all perch-specific errors."""


class ConfigurationError(PerchError):
    """Raised when app configuration is invalid.

    Typically raised during route registration or ``App._freeze()``.
    """


@dataclass(frozen=True, slots=True)
class HTTPError(PerchError):
    """An error that maps directly to an HTTP status code.

    Raised by handlers or middleware. The dispatcher catches these
    and turns them into a response, via ``@app.error()`` if registered.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """404 — no route matched the request path."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


RouteNotFound = NotFound


class MethodNotAllowed(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """405 — the request method has no route table.

    Carries an ``Allow`` header listing the methods the table supports.
    """

    def __init__(self, allowed: frozenset[str], detail: str = "") -> None:
        allow_value = ", ".join(sorted(allowed))
        default_detail = f"Method not allowed. Allowed methods: {allow_value}"
        super().__init__(
            status=405,
            detail=detail or default_detail,
            headers=(("Allow", allow_value),),
        )


class CsrfInvalid(HTTPError):  # noqa: N818
    """403 — the submitted CSRF token is missing or does not match."""

    def __init__(self, detail: str = "Invalid CSRF token") -> None:
        super().__init__(status=403, detail=detail)
