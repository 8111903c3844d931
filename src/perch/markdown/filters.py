"""Template filter registration for Markdown rendering."""

from __future__ import annotations

from typing import TYPE_CHECKING

from perch.markdown.renderer import MarkdownRenderer

if TYPE_CHECKING:
    from perch.app import App


def register_markdown_filter(
    app: App,
    *,
    plugins: list[str] | None = None,
    highlight: bool = False,
    filter_name: str = "markdown",
) -> MarkdownRenderer:
    """Register a Markdown filter with custom patitas options on the app.

    The default ``markdown`` filter already exists in every view; use
    this to change its plugins or to add a second filter::

        md = register_markdown_filter(app, plugins=["strikethrough"], filter_name="md")

        # In views:    {{ note | md }}
        # In code:     html = md.render("~~old~~ new")

    Returns the ``MarkdownRenderer`` backing the filter.
    """
    renderer = MarkdownRenderer(plugins=plugins, highlight=highlight)
    app.template_filter(filter_name, markup=True)(renderer.render)
    return renderer
