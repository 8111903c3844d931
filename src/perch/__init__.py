"""Perch: a small web toolkit with a guarded SQL layer.

Route matching with middleware dispatch, plus an identifier-safe
statement builder over SQLite.

Basic usage::

    from perch import App, AppConfig

    app = App(AppConfig(static_dir="public"), db="sqlite:///app.db")

    @app.get("/users/{id}")
    def show_user(user_id):
        return app.db.read_table("users", where="id = ?", params=[user_id])

    response = app(Request.build("GET", "/users/1"))

Data access::

    from perch.data import Database, query
    db = Database("sqlite:///app.db")
    rows = db.run_query(query.select("users", "id, name", order="name"))
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "ConfigurationError",
    "CsrfInvalid",
    "HTTPError",
    "MarkdownRenderer",
    "MethodNotAllowed",
    "Middleware",
    "Next",
    "NotFound",
    "PerchError",
    "Redirect",
    "Request",
    "Response",
    "RouteNotFound",
    "Session",
    "View",
    "g",
    "get_request",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import perch`` fast while providing a clean top-level API.
    """
    if name == "App":
        from perch.app import App

        return App

    if name == "AppConfig":
        from perch.config import AppConfig

        return AppConfig

    if name == "Request":
        from perch.http.request import Request

        return Request

    if name in ("Response", "Redirect"):
        from perch.http import response as _resp

        return getattr(_resp, name)

    if name == "View":
        from perch.templating.returns import View

        return View

    if name == "MarkdownRenderer":
        from perch.markdown import MarkdownRenderer

        return MarkdownRenderer

    if name == "Session":
        from perch.session import Session

        return Session

    if name in ("Middleware", "Next"):
        from perch.middleware import protocol as _mw

        return getattr(_mw, name)

    if name in ("g", "get_request"):
        from perch import context as _ctx

        return getattr(_ctx, name)

    if name in (
        "ConfigurationError",
        "CsrfInvalid",
        "HTTPError",
    "MarkdownRenderer",
        "MethodNotAllowed",
        "NotFound",
        "PerchError",
        "RouteNotFound",
    ):
        from perch import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
