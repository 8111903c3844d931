"""Middleware protocol and Next type alias.

A middleware is any callable matching::

    def my_mw(params: dict[str, str], next: Next) -> Response: ...

No base class required. The framework checks the shape, not the lineage.

``params`` holds the matched path parameters (name -> raw value, in
declaration order). ``next`` takes no arguments and returns the
downstream response. A middleware that returns without calling ``next``
ends the request with its own response: the handler and every later
middleware are skipped. There is no other way to cancel.

The current request is available through ``perch.context.get_request()``.
"""

from collections.abc import Callable
from typing import Protocol

from perch.http.response import Response

# The rest of the chain, already bound to the current request
type Next = Callable[[], Response]


class Middleware(Protocol):
    """Protocol for perch middleware.

    Accepts both functions and callable objects::

        # Function middleware
        def timing(params, next):
            start = time.monotonic()
            response = next()
            return response.with_header("X-Time", f"{time.monotonic() - start:.3f}")

        # Class middleware
        class RequireLogin:
            def __call__(self, params, next):
                if "user" not in g:
                    return Redirect("/login").to_response()
                return next()
    """

    def __call__(self, params: dict[str, str], next: Next) -> Response: ...
