"""Markdown rendering for perch via patitas.

Views get a ``markdown`` filter out of the box::

    {{ post.body | markdown }}

In handlers::

    from perch.markdown import MarkdownRenderer

    html = MarkdownRenderer().render("# Hello")
"""

from perch.markdown.filters import register_markdown_filter
from perch.markdown.renderer import MarkdownRenderer

__all__ = [
    "MarkdownRenderer",
    "register_markdown_filter",
]
