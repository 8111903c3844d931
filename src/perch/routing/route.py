"""Route and RouteMatch frozen dataclasses."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

# A handler is a callable, or a plain identifier naming a redirect target.
type Handler = Callable[..., Any] | str


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a route path.

    Literal:  ``/users``  (is_param=False)
    Param:    ``/{id}``   (is_param=True, param_name="id")
    """

    value: str
    is_param: bool = False
    param_name: str | None = None


@dataclass(frozen=True, slots=True)
class Route:
    """A registered route.

    ``segments`` is parsed once from ``path`` at registration time so
    dispatch never re-splits the pattern string.
    """

    method: str
    path: str
    segments: tuple[PathSegment, ...]
    handler: Handler
    middleware: tuple[Callable[..., Any], ...] = ()

    @property
    def param_names(self) -> tuple[str, ...]:
        """Parameter names in declaration order."""
        return tuple(s.param_name for s in self.segments if s.param_name is not None)


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route lookup.

    ``path_params`` preserves declaration order. Handlers receive the
    values positionally (``args``, one per parameter segment), not by
    name: a handler for ``/users/{id}/posts/{slug}`` is called as
    ``handler(id, slug)``. A repeated name keeps only its last value in
    ``path_params`` but every value in ``args``.
    """

    route: Route
    path_params: dict[str, str]
    args: tuple[str, ...] = ()
    middleware: tuple[Callable[..., Any], ...] = ()

    @property
    def handler(self) -> Handler:
        return self.route.handler
