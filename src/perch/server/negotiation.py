"""Content negotiation: maps handler return values to Response objects.

isinstance-based dispatch, no magic, fully predictable.
"""

from typing import Any

from perch.errors import ConfigurationError
from perch.http.response import Redirect, Response, json_response
from perch.templating.integration import ViewRenderer
from perch.templating.returns import View


def negotiate(value: Any, *, renderer: ViewRenderer | None = None) -> Response:
    """Convert a handler's return value to a Response.

    Dispatch order:

    1. ``Response``         -> pass through
    2. ``Redirect``         -> 3xx with Location header
    3. ``View``             -> render via the configured renderer
    4. ``str``              -> 200, text/html
    5. ``bytes``            -> 200, application/octet-stream
    6. ``dict`` / ``list``  -> 200, application/json (unescaped Unicode)
    7. ``None``             -> empty 200
    8. ``(value, int)``     -> negotiate value, override status
    """
    match value:
        case Response():
            return value
        case Redirect():
            return value.to_response()
        case View():
            if renderer is None:
                msg = (
                    "View return type requires a renderer. "
                    "Pass renderer= to App() or configure view_dir."
                )
                raise ConfigurationError(msg)
            html = renderer.render(value.name, value.context)
            return Response(body=html).with_status(value.status)
        case str():
            return Response(body=value)
        case bytes():
            return Response(body=value, content_type="application/octet-stream")
        case dict() | list():
            return json_response(value)
        case None:
            return Response(body="")
        case (inner, int() as status):
            return negotiate(inner, renderer=renderer).with_status(status)
        case _:
            msg = (
                f"Cannot convert {type(value).__name__} to a response. "
                "Return a Response, Redirect, View, str, bytes, dict, list, or None."
            )
            raise TypeError(msg)
