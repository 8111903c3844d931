"""Process-wide session store.

Holds the CSRF token and flash messages for the running process. How a
session is tied to a client (cookies, server-side storage) is left to
the transport in front of the app; perch only needs ``get``/``set``.
"""

import threading
from typing import Any, Protocol


class SessionStore(Protocol):
    """What the dispatcher and CSRF helpers need from a session."""

    def get(self, key: str, default: Any = None) -> Any: ...
    def set(self, key: str, value: Any) -> None: ...


class Session:
    """In-memory session, safe to share between threads.

    Usage::

        session = Session()
        session.set("csrf", token)
        session.get("csrf")
    """

    __slots__ = ("_data", "_lock")

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def pop(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.pop(key, default)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data

    def __repr__(self) -> str:
        return f"Session(keys={sorted(self._data)!r})"
