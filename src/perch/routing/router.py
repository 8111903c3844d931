"""Route table with ordered, exact-arity path matching.

Each HTTP method owns an insertion-ordered mapping of pattern string to
``Route``. Lookup walks the method's routes in registration order and
returns the first whose pattern matches. Patterns have a fixed number of
segments: no wildcards, no optional parts, no prefix matching.
"""

from collections.abc import Callable, Iterable
from typing import Any

from perch.errors import ConfigurationError, MethodNotAllowed
from perch.routing.route import Handler, PathSegment, Route, RouteMatch

SUPPORTED_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE")


def _split(path: str) -> list[str]:
    # Leading, trailing and repeated slashes are insignificant.
    return [part for part in path.split("/") if part]


def _is_param(part: str) -> bool:
    """True if *part* is exactly one ``{name}`` pair spanning the segment."""
    if len(part) < 3 or part[0] != "{" or part[-1] != "}":
        return False
    inner = part[1:-1]
    return "{" not in inner and "}" not in inner


def parse_path(path: str) -> tuple[PathSegment, ...]:
    """Parse a route pattern string into segments.

    Examples::

        "/users"           -> (PathSegment("users"),)
        "/users/{id}"      -> (PathSegment("users"), PathSegment("{id}", True, "id"))
        "//users//{id}/"   -> same as above
        "/users/{id"       -> (PathSegment("users"), PathSegment("{id"))

    Malformed braces never raise; the segment is treated as a literal.
    """
    segments: list[PathSegment] = []
    for part in _split(path):
        if _is_param(part):
            segments.append(PathSegment(value=part, is_param=True, param_name=part[1:-1]))
        else:
            segments.append(PathSegment(value=part))
    return tuple(segments)


def match_values(segments: tuple[PathSegment, ...], path: str) -> tuple[str, ...] | None:
    """Match a request path against a parsed pattern.

    Returns one value per parameter segment, in pattern order, or
    ``None``. Segment counts must be equal; literals compare
    case-sensitively; parameters bind the raw segment text.
    """
    parts = _split(path)
    if len(parts) != len(segments):
        return None

    values: list[str] = []
    for seg, part in zip(segments, parts, strict=True):
        if seg.is_param:
            values.append(part)
        elif seg.value != part:
            return None
    return tuple(values)


def match_path(segments: tuple[PathSegment, ...], path: str) -> dict[str, str] | None:
    """Like ``match_values`` but keyed by parameter name.

    A name repeated in one pattern keeps its last value here; use
    ``match_values`` (or ``RouteMatch.args``) for every value.
    """
    values = match_values(segments, path)
    if values is None:
        return None
    names = (seg.param_name or "" for seg in segments if seg.is_param)
    return dict(zip(names, values, strict=True))


class RouteTable:
    """Per-method, insertion-ordered route table.

    Usage::

        table = RouteTable()
        table.add("GET", "/users/{id}", show_user)
        table.freeze()
        match = table.lookup("GET", "/users/42")
        match.args  # ("42",)

    Re-adding the same (method, pattern) replaces the earlier route in
    its original priority slot. Only the latest handler is reachable.
    """

    __slots__ = ("_frozen", "_routes")

    def __init__(self, methods: Iterable[str] = SUPPORTED_METHODS) -> None:
        self._routes: dict[str, dict[str, Route]] = {m.upper(): {} for m in methods}
        self._frozen = False

    @property
    def methods(self) -> frozenset[str]:
        """Methods that have a route table (known methods)."""
        return frozenset(self._routes)

    def supports(self, method: str) -> bool:
        return method in self._routes

    def add(
        self,
        method: str,
        path: str,
        handler: Handler,
        middleware: Iterable[Callable[..., Any]] = (),
    ) -> Route:
        """Register *handler* for *method* and *path*.

        Raises ``ConfigurationError`` for methods outside the table and
        ``RuntimeError`` once the table has been frozen.
        """
        if self._frozen:
            msg = "Cannot add routes after the route table is frozen."
            raise RuntimeError(msg)

        method = method.upper()
        if method not in self._routes:
            msg = (
                f"Unsupported HTTP method {method!r} for route {path!r}. "
                f"Supported: {', '.join(self._routes)}"
            )
            raise ConfigurationError(msg)

        route = Route(
            method=method,
            path=path,
            segments=parse_path(path),
            handler=handler,
            middleware=tuple(middleware),
        )
        self._routes[method][path] = route
        return route

    def freeze(self) -> None:
        """Freeze the table. No more routes can be added."""
        self._frozen = True

    @property
    def routes(self) -> list[Route]:
        """All registered routes, grouped by method, in priority order."""
        return [route for table in self._routes.values() for route in table.values()]

    def lookup(self, method: str, path: str) -> RouteMatch | None:
        """Return the first route for *method* matching *path*, or ``None``.

        Raises ``MethodNotAllowed`` if *method* has no route table; callers
        that treat this as a normal outcome should check ``supports()`` first.
        """
        table = self._routes.get(method)
        if table is None:
            raise MethodNotAllowed(self.methods)

        for route in table.values():
            values = match_values(route.segments, path)
            if values is not None:
                return RouteMatch(
                    route=route,
                    path_params=dict(zip(route.param_names, values, strict=True)),
                    args=values,
                    middleware=route.middleware,
                )
        return None
