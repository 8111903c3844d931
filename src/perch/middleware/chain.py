"""Middleware chain — composes global and route middleware around a handler.

Global middleware run first, in registration order, then the matched
route's own middleware, in registration order. The chain is built
bottom-up: starting from the terminal continuation (which calls the
handler), each middleware is wrapped around the continuation built so
far, walking the list in reverse.
"""

from collections.abc import Sequence

from perch.http.response import Response
from perch.middleware.protocol import Middleware, Next


class MiddlewareChain:
    """An ordered list of global middleware plus per-route composition.

    Usage::

        chain = MiddlewareChain([log_requests])
        response = chain.run(match.middleware, match.path_params, terminal)
    """

    __slots__ = ("_global",)

    def __init__(self, global_middleware: Sequence[Middleware] = ()) -> None:
        self._global: tuple[Middleware, ...] = tuple(global_middleware)

    @property
    def global_middleware(self) -> tuple[Middleware, ...]:
        return self._global

    def resolve(self, route_middleware: Sequence[Middleware]) -> tuple[Middleware, ...]:
        """Global middleware followed by *route_middleware*."""
        return (*self._global, *route_middleware)

    def build(
        self,
        route_middleware: Sequence[Middleware],
        params: dict[str, str],
        terminal: Next,
    ) -> Next:
        """Return the outermost continuation for this request."""
        handler: Next = terminal
        for mw in reversed(self.resolve(route_middleware)):
            handler = _wrap(mw, params, handler)
        return handler

    def run(
        self,
        route_middleware: Sequence[Middleware],
        params: dict[str, str],
        terminal: Next,
    ) -> Response:
        """Build the chain and run it."""
        return self.build(route_middleware, params, terminal)()


def _wrap(mw: Middleware, params: dict[str, str], downstream: Next) -> Next:
    def step() -> Response:
        return mw(params, downstream)

    return step
