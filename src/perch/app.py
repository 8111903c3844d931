"""Perch application class.

Mutable during setup (route registration, middleware, error handlers).
Frozen on the first request: the route table and middleware chain are
compiled once and never change while serving.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from perch.config import AppConfig
from perch.context import get_request
from perch.data.database import Database
from perch.errors import NotFound
from perch.http.request import Request
from perch.http.response import Redirect, Response, json_response
from perch.middleware.chain import MiddlewareChain
from perch.middleware.csrf import CSRFConfig
from perch.middleware.csrf import csrf_field as render_csrf_field
from perch.middleware.protocol import Middleware
from perch.middleware.static import StaticFiles
from perch.routing.route import Handler
from perch.routing.router import RouteTable
from perch.server.dispatch import default_not_found, dispatch_request
from perch.server.errors import ErrorHandlers, call_error_handler
from perch.session import Session, SessionStore
from perch.templating.integration import KidaRenderer, ViewNotFound, ViewRenderer
from perch.utils import redirect_with_message


@dataclass(slots=True)
class _PendingRoute:
    """A route waiting to be compiled."""

    method: str
    path: str
    handler: Handler
    middleware: tuple[Middleware, ...] = field(default_factory=tuple)


class App:
    """The perch application.

    Usage::

        app = App(AppConfig(static_dir="public"), db="sqlite:///app.db")

        @app.get("/users/{id}")
        def show_user(user_id):
            rows = app.db.read_table("users", where="id = ?", params=[user_id])
            return rows[0] if rows else ("Not found", 404)

        with app.group("/admin"):
            app.get("/", "login")           # redirects to /login

        response = app(Request.build("GET", "/users/1"))

    Thread safety:
        The setup phase is single-threaded (decorators at import time).
        The freeze transition uses a Lock + double-check so exactly one
        thread compiles the app.
    """

    __slots__ = (
        "_chain",
        "_csrf",
        "_db",
        "_error_handlers",
        "_freeze_lock",
        "_frozen",
        "_markup_filters",
        "_middleware_list",
        "_pending_routes",
        "_prefixes",
        "_renderer",
        "_route_middleware",
        "_routes",
        "_static",
        "_template_filters",
        "config",
        "session",
    )

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        db: Database | str | None = None,
        renderer: ViewRenderer | None = None,
        session: SessionStore | None = None,
    ) -> None:
        self.config: AppConfig = config or AppConfig()
        self.session: SessionStore = session if session is not None else Session()
        self._pending_routes: list[_PendingRoute] = []
        self._prefixes: list[str] = []
        self._middleware_list: list[Middleware] = []
        self._route_middleware: dict[str, list[Middleware]] = {}
        self._error_handlers: ErrorHandlers = {}
        self._template_filters: dict[str, Callable[..., Any]] = {}
        self._markup_filters: dict[str, Callable[..., str]] = {}
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()
        self._renderer: ViewRenderer | None = renderer
        self._csrf = CSRFConfig(
            field_name=self.config.csrf_field,
            session_key=self.config.csrf_session_key,
            token_bytes=self.config.csrf_token_bytes,
        )

        # Database: a Database instance, a connection URL, or config.database_url.
        url = db if isinstance(db, str) else self.config.database_url
        if isinstance(db, Database):
            self._db: Database | None = db
        elif url is not None:
            self._db = Database(url, echo=self.config.database_echo)
        else:
            self._db = None

        # Compiled state, set during _freeze()
        self._routes: RouteTable | None = None
        self._chain: MiddlewareChain | None = None
        self._static: StaticFiles | None = None

    # -- Route registration --

    def route(
        self,
        path: str,
        *,
        methods: Iterable[str] | None = None,
        middleware: Iterable[Middleware] = (),
    ) -> Callable[[Handler], Handler]:
        """Register a route handler via decorator.

        Args:
            path: URL path pattern. Use ``{param}`` for path parameters;
                values reach the handler positionally, in pattern order.
            methods: HTTP methods. Defaults to ``["GET"]``.
            middleware: Middleware run for this route only, after the
                global middleware.
        """

        route_middleware = tuple(middleware)

        def decorator(func: Handler) -> Handler:
            for method in methods or ["GET"]:
                self._add(method, path, func, route_middleware)
            return func

        return decorator

    def _register(
        self,
        method: str,
        path: str,
        handler: Handler | None,
        middleware: Iterable[Middleware],
    ) -> Any:
        if handler is None:
            return self.route(path, methods=[method], middleware=middleware)
        self._add(method, path, handler, middleware)
        return handler

    def get(
        self, path: str, handler: Handler | None = None, *, middleware: Iterable[Middleware] = ()
    ) -> Any:
        """Register a GET route, directly or as a decorator.

        A string handler is a redirect target: ``app.get("/", "login")``
        answers ``GET /`` with a redirect to ``/login``.
        """
        return self._register("GET", path, handler, middleware)

    def post(
        self, path: str, handler: Handler | None = None, *, middleware: Iterable[Middleware] = ()
    ) -> Any:
        return self._register("POST", path, handler, middleware)

    def put(
        self, path: str, handler: Handler | None = None, *, middleware: Iterable[Middleware] = ()
    ) -> Any:
        return self._register("PUT", path, handler, middleware)

    def patch(
        self, path: str, handler: Handler | None = None, *, middleware: Iterable[Middleware] = ()
    ) -> Any:
        return self._register("PATCH", path, handler, middleware)

    def delete(
        self, path: str, handler: Handler | None = None, *, middleware: Iterable[Middleware] = ()
    ) -> Any:
        return self._register("DELETE", path, handler, middleware)

    def _add(
        self, method: str, path: str, handler: Handler, middleware: Iterable[Middleware]
    ) -> None:
        self._check_not_frozen()
        full_path = "".join(self._prefixes) + path
        self._pending_routes.append(
            _PendingRoute(method.upper(), full_path, handler, tuple(middleware))
        )

    @contextmanager
    def group(self, prefix: str) -> Iterator[App]:
        """Prefix every route registered inside the block. Groups nest::

            with app.group("/admin"):
                with app.group("/users"):
                    app.get("/{id}", show)   # /admin/users/{id}
        """
        self._check_not_frozen()
        self._prefixes.append(prefix)
        try:
            yield self
        finally:
            self._prefixes.pop()

    # -- Middleware --

    def add_middleware(self, middleware: Middleware, routes: Iterable[str] = ()) -> None:
        """Add a middleware to the pipeline.

        Without *routes* the middleware is global. With *routes* it runs
        only for those path patterns (any method), before each route's
        own middleware.
        """
        self._check_not_frozen()
        paths = list(routes)
        if not paths:
            self._middleware_list.append(middleware)
            return
        for path in paths:
            self._route_middleware.setdefault(path, []).append(middleware)

    # -- Error handlers --

    def error(
        self,
        code_or_exception: int | type[Exception],
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register an error handler via decorator.

        Keyed by status code (404, 500, ...) or exception type. Handlers
        may take ``()``, ``(request)`` or ``(request, exc)``.
        """

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self._check_not_frozen()
            self._error_handlers[code_or_exception] = func
            return func

        return decorator

    # -- Template filters --

    def template_filter(
        self,
        name: str | None = None,
        *,
        markup: bool = False,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register a kida view filter.

        With ``markup=True`` the filter's output is trusted HTML and is
        not autoescaped. Filters apply to the ``KidaRenderer`` built from
        ``config.view_dir``, not to a renderer passed to ``App()``.
        """

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self._check_not_frozen()
            filter_name = name or func.__name__
            target = self._markup_filters if markup else self._template_filters
            target[filter_name] = func
            return func

        return decorator

    # -- Collaborators --

    @property
    def db(self) -> Database:
        """The database instance, if configured.

        Raises ``RuntimeError`` if no database was configured on this app.
        """
        if self._db is None:
            msg = (
                "No database configured. Pass db= to App() or set "
                "AppConfig.database_url."
            )
            raise RuntimeError(msg)
        return self._db

    @property
    def renderer(self) -> ViewRenderer | None:
        """The view renderer, created from ``config.view_dir`` if it exists."""
        if self._renderer is None and Path(self.config.view_dir).is_dir():
            self._renderer = KidaRenderer(
                self.config.view_dir,
                autoescape=self.config.autoescape,
                auto_reload=self.config.debug,
                markup_globals={"csrf_field": self.csrf_field},
                filters=self._template_filters,
                markup_filters=self._markup_filters,
            )
        return self._renderer

    @property
    def routes(self) -> RouteTable:
        self._ensure_frozen()
        assert self._routes is not None
        return self._routes

    # -- Response helpers --

    def render(self, view: str, /, **context: Any) -> str:
        """Render *view* with *context* and return the text."""
        renderer = self.renderer
        if renderer is None:
            msg = f"Cannot render {view!r}: no renderer configured and no view directory found"
            raise ViewNotFound(msg)
        return renderer.render(view, context)

    def send_html(
        self, view: str, /, *, main_view: str | None = None, status: int = 200, **context: Any
    ) -> Response:
        """Render *view* alone for htmx requests, else the main view.

        The main view receives the partial's name as ``view`` so a layout
        can include it.
        """
        try:
            is_fragment = get_request().is_fragment
        except LookupError:
            is_fragment = False
        if is_fragment:
            body = self.render(view, **context)
        else:
            body = self.render(main_view or self.config.main_view, view=view, **context)
        return Response(body=body, status=status)

    def send_json(self, data: Any, status: int = 200) -> Response:
        """JSON response with unescaped Unicode."""
        return json_response(data, status)

    def redirect(self, url: str, status: int = 302) -> Redirect:
        return Redirect(url, status=status)

    def redirect_with_message(self, url: str, message: str) -> Redirect:
        """Store a flash message in the session and redirect."""
        return redirect_with_message(self.session, url, message)

    def csrf_field(self) -> str:
        """Hidden form input carrying the session's CSRF token."""
        return render_csrf_field(self.session, self._csrf)

    # -- Request entry point --

    def __call__(self, request: Request) -> Response:
        """Dispatch one pre-parsed request and return the response."""
        self._ensure_frozen()
        assert self._routes is not None
        assert self._chain is not None
        return dispatch_request(
            request,
            routes=self._routes,
            chain=self._chain,
            static=self._static,
            session=self.session,
            csrf=self._csrf,
            not_found=self._not_found,
            error_handlers=self._error_handlers,
            renderer=self.renderer,
            debug=self.config.debug,
        )

    def _not_found(self, request: Request) -> Response:
        handler = self._error_handlers.get(404)
        if handler is not None:
            response = call_error_handler(handler, request, NotFound(), self.renderer)
            return response.with_status(404) if response.status == 200 else response
        renderer = self.renderer
        if renderer is not None:
            try:
                body = renderer.render(self.config.not_found_view, {"path": request.path})
            except ViewNotFound:
                return default_not_found(request)
            return Response(body=body, status=404)
        return default_not_found(request)

    # -- Internal --

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking."""
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Compile the app into its frozen runtime state.

        MUST only be called while holding _freeze_lock.
        """
        # 1. Compile route table; path-scoped middleware precede the route's own.
        table = RouteTable()
        for pending in self._pending_routes:
            scoped = self._route_middleware.get(pending.path, ())
            table.add(pending.method, pending.path, pending.handler, (*scoped, *pending.middleware))
        table.freeze()
        self._routes = table

        # 2. Capture global middleware as an immutable chain
        self._chain = MiddlewareChain(self._middleware_list)

        # 3. Static root
        if self.config.static_dir is not None:
            self._static = StaticFiles(
                self.config.static_dir, cache_control=self.config.static_cache_control
            )

        self._frozen = True

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register routes, middleware, and error handlers first."
            )
            raise RuntimeError(msg)
