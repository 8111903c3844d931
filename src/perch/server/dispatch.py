"""Request dispatcher: the staged pipeline every request walks through.

Stages, each of which may end the request:

1. Static check     - a configured static root serves regular files
                      inside it, for any method, before routing
2. Method check     - methods without a route table get 405 + ``Allow``
3. CSRF check       - protected methods (POST) need a form token equal
                      to the session token, else 403
4. Route lookup     - first matching route wins; a miss goes to the
                      not-found handler (404)
5. Middleware run   - global then route middleware, each may
                      short-circuit by not calling ``next()``
6. Handler run      - path values passed positionally; a plain string
                      handler redirects to ``/<string>``

Routing outcomes (404, 405, 403) are responses, not exceptions.
``HTTPError`` raised by a handler or middleware becomes a response with
its status; anything else becomes a 500.
"""

import logging
from collections.abc import Callable
from contextvars import Token

from perch.context import g, request_var
from perch.errors import HTTPError
from perch.http.request import Request
from perch.http.response import Redirect, Response
from perch.middleware.chain import MiddlewareChain
from perch.middleware.csrf import CSRFConfig, is_csrf_valid, requires_csrf
from perch.middleware.static import StaticFiles
from perch.routing.route import RouteMatch
from perch.routing.router import RouteTable
from perch.server.errors import ErrorHandlers, handle_http_error, handle_internal_error
from perch.server.negotiation import negotiate
from perch.session import SessionStore
from perch.templating.integration import ViewRenderer

logger = logging.getLogger("perch.server")

_TEXT = "text/plain; charset=utf-8"

type NotFoundHandler = Callable[[Request], Response]


def method_not_allowed(routes: RouteTable) -> Response:
    allow = ", ".join(sorted(routes.methods))
    return Response(body="405 Method Not Allowed", status=405, content_type=_TEXT).with_header(
        "Allow", allow
    )


def csrf_rejected() -> Response:
    return Response(body="Invalid CSRF token", status=403, content_type=_TEXT)


def default_not_found(request: Request) -> Response:
    return Response(body="404 Not Found", status=404, content_type=_TEXT)


def _terminal(match: RouteMatch, renderer: ViewRenderer | None) -> Callable[[], Response]:
    """The innermost continuation: invoke the matched handler."""

    def run_handler() -> Response:
        handler = match.handler
        if isinstance(handler, str):
            return Redirect("/" + handler.lstrip("/")).to_response()
        return negotiate(handler(*match.args), renderer=renderer)

    return run_handler


def dispatch_request(
    request: Request,
    *,
    routes: RouteTable,
    chain: MiddlewareChain,
    static: StaticFiles | None = None,
    session: SessionStore | None = None,
    csrf: CSRFConfig | None = None,
    not_found: NotFoundHandler = default_not_found,
    error_handlers: ErrorHandlers | None = None,
    renderer: ViewRenderer | None = None,
    debug: bool = False,
) -> Response:
    """Process one pre-parsed request through the full pipeline."""
    token: Token[Request] = request_var.set(request)
    try:
        response = _dispatch(
            request,
            routes=routes,
            chain=chain,
            static=static,
            session=session,
            csrf=csrf,
            not_found=not_found,
            error_handlers=error_handlers or {},
            renderer=renderer,
            debug=debug,
        )
    finally:
        g._reset()
        request_var.reset(token)

    logger.debug("%s %s -> %d", request.method, request.path, response.status)
    return response


def _dispatch(
    request: Request,
    *,
    routes: RouteTable,
    chain: MiddlewareChain,
    static: StaticFiles | None,
    session: SessionStore | None,
    csrf: CSRFConfig | None,
    not_found: NotFoundHandler,
    error_handlers: ErrorHandlers,
    renderer: ViewRenderer | None,
    debug: bool,
) -> Response:
    if static is not None:
        served = static.serve(request.path)
        if served is not None:
            return served

    if not routes.supports(request.method):
        return method_not_allowed(routes)

    if requires_csrf(request, csrf) and (
        session is None or not is_csrf_valid(request, session, csrf)
    ):
        logger.info("CSRF check failed: %s %s", request.method, request.path)
        return csrf_rejected()

    try:
        match = routes.lookup(request.method, request.path)
        if match is None:
            return not_found(request)
        result = chain.run(match.middleware, match.path_params, _terminal(match, renderer))
        return negotiate(result, renderer=renderer)
    except HTTPError as exc:
        return handle_http_error(exc, request, error_handlers, renderer)
    except Exception as exc:
        return handle_internal_error(exc, request, error_handlers, renderer, debug)
