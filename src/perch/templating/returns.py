"""View return type.

A frozen dataclass handlers return. The dispatcher hands it to the
configured renderer.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class View:
    """Render a view with a context.

    Usage::

        return View("home.html", title="Home", items=items)
    """

    name: str
    context: dict[str, Any] = field(default_factory=dict)
    status: int = 200

    def __init__(self, name: str, /, *, status: int = 200, **context: Any) -> None:
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "context", context)
        object.__setattr__(self, "status", status)
