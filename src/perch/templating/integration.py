"""View rendering via kida.

The dispatcher only needs ``render(view, context) -> str``. Any object
with that method can be passed to ``App(renderer=...)``; ``KidaRenderer``
is the default when a view directory exists.
"""

from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Protocol

from kida import Environment, FileSystemLoader
from kida.utils.html import Markup

from perch.errors import PerchError
from perch.markdown.renderer import MarkdownRenderer


class ViewNotFound(PerchError):  # noqa: N818
    """Raised when a view name does not resolve to a file."""


class ViewRenderer(Protocol):
    """Renders a named view with a name -> value mapping."""

    def render(self, view: str, context: Mapping[str, Any]) -> str: ...


class KidaRenderer:
    """Renders views from a directory with a kida ``Environment``.

    The environment is created once and reused for every render.
    ``globals_`` are exposed to every view; values that return markup
    (like ``csrf_field``) are wrapped so autoescape leaves them alone.
    ``filters`` and ``markup_filters`` follow the same split.

    Every view gets a ``markdown`` filter backed by *markdown* (a default
    ``MarkdownRenderer`` when not given)::

        {{ post.body | markdown }}
    """

    __slots__ = ("_directory", "_env", "_markdown")

    def __init__(
        self,
        directory: str | Path,
        *,
        autoescape: bool = True,
        auto_reload: bool = False,
        globals_: Mapping[str, Any] | None = None,
        markup_globals: Mapping[str, Callable[..., str]] | None = None,
        filters: Mapping[str, Callable[..., Any]] | None = None,
        markup_filters: Mapping[str, Callable[..., str]] | None = None,
        markdown: MarkdownRenderer | None = None,
    ) -> None:
        self._directory = Path(directory)
        self._markdown = markdown
        self._env = Environment(
            loader=FileSystemLoader(str(self._directory)),
            autoescape=autoescape,
            auto_reload=auto_reload,
        )
        self._env.update_filters({"markdown": _as_markup(self._render_markdown)})
        # User filters may override the built-in markdown filter
        if filters:
            self._env.update_filters(dict(filters))
        if markup_filters:
            self._env.update_filters({n: _as_markup(f) for n, f in markup_filters.items()})
        for name, value in (globals_ or {}).items():
            self._env.add_global(name, value)
        for name, func in (markup_globals or {}).items():
            self._env.add_global(name, _as_markup(func))

    @property
    def directory(self) -> Path:
        return self._directory

    def has_view(self, view: str) -> bool:
        return (self._directory / view).is_file()

    def render(self, view: str, context: Mapping[str, Any]) -> str:
        """Render *view* with *context*.

        Raises ``ViewNotFound`` if the view file does not exist.
        """
        if not self.has_view(view):
            msg = f"View not found: {view}"
            raise ViewNotFound(msg)
        template = self._env.get_template(view)
        return template.render(dict(context))

    def _render_markdown(self, source: str | None) -> str:
        # Created on first use
        if self._markdown is None:
            self._markdown = MarkdownRenderer()
        return self._markdown.render(source)


def _as_markup(func: Callable[..., str]) -> Callable[..., Any]:
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return Markup(func(*args, **kwargs))

    return wrapper
