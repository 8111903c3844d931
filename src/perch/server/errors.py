"""Error handling pipeline for perch requests.

Maps HTTPError exceptions and unexpected failures to Response objects,
using registered error handlers or plain-text defaults.
"""

import inspect
import logging
from collections.abc import Callable
from typing import Any

from perch.errors import HTTPError
from perch.http.request import Request
from perch.http.response import Response
from perch.server.negotiation import negotiate
from perch.templating.integration import ViewRenderer

logger = logging.getLogger("perch.server")

type ErrorHandlers = dict[int | type, Callable[..., Any]]


def call_error_handler(
    handler: Callable[..., Any],
    request: Request,
    exc: Exception,
    renderer: ViewRenderer | None,
) -> Response:
    """Invoke a user-registered error handler with introspected arguments.

    Error handlers may accept zero, one (request), or two (request, exc) args.
    """
    params = list(inspect.signature(handler).parameters.values())

    if len(params) >= 2:
        result = handler(request, exc)
    elif len(params) == 1:
        result = handler(request)
    else:
        result = handler()

    return negotiate(result, renderer=renderer)


def handle_http_error(
    exc: HTTPError,
    request: Request,
    error_handlers: ErrorHandlers,
    renderer: ViewRenderer | None,
) -> Response:
    """Map an HTTPError to a Response using registered error handlers."""
    logger.debug("%d %s %s: %s", exc.status, request.method, request.path, exc.detail)

    # Try exact exception type, then status code
    handler = error_handlers.get(type(exc)) or error_handlers.get(exc.status)
    if handler is not None:
        response = call_error_handler(handler, request, exc, renderer)
        # Keep the exception's status unless the handler chose its own
        if response.status == 200:
            response = response.with_status(exc.status)
        # Exception headers (e.g. Allow) survive unless the handler set them
        for name, value in exc.headers:
            if response.header(name) is None:
                response = response.with_header(name, value)
        return response

    body = exc.detail or f"Error {exc.status}"
    resp = Response(body=body, content_type="text/plain; charset=utf-8").with_status(exc.status)
    for name, value in exc.headers:
        resp = resp.with_header(name, value)
    return resp


def handle_internal_error(
    exc: Exception,
    request: Request,
    error_handlers: ErrorHandlers,
    renderer: ViewRenderer | None,
    debug: bool,
) -> Response:
    """Handle unexpected exceptions as 500 errors."""
    logger.exception("500 %s %s", request.method, request.path)

    handler = error_handlers.get(500) or error_handlers.get(type(exc))
    if handler is not None:
        response = call_error_handler(handler, request, exc, renderer)
        if response.status == 200:
            response = response.with_status(500)
        return response

    body = "Internal Server Error"
    if debug:
        body = f"{body}\n\n{type(exc).__name__}: {exc}"
    return Response(body=body, status=500, content_type="text/plain; charset=utf-8")
