"""Core markdown renderer wrapping patitas."""

from patitas import Markdown


class MarkdownRenderer:
    """Render Markdown source to HTML via patitas.

    Every call does a full parse and render; the patitas instance is
    built once and reused.

    Args:
        plugins: Patitas plugins to enable (default: all).
        highlight: Enable syntax highlighting for fenced code blocks.
    """

    __slots__ = ("_md",)

    def __init__(
        self,
        *,
        plugins: list[str] | None = None,
        highlight: bool = False,
    ) -> None:
        self._md = Markdown(plugins=plugins or ["all"], highlight=highlight)

    def render(self, source: str | None) -> str:
        """Render Markdown source to an HTML string. Empty input gives ``""``."""
        if not source:
            return ""
        return self._md(source)
