"""Immutable multi-valued parameters parsed from URL-encoded text.

``QueryParams`` holds the query string; ``FormData`` holds an
``application/x-www-form-urlencoded`` body. Both share one parser.
"""

from collections.abc import Iterator, Mapping
from urllib.parse import parse_qs


class _EncodedParams(Mapping[str, str]):
    """Immutable URL-encoded parameters.

    ``__getitem__`` returns the first value for a key.
    ``get_list`` returns all values for a key.
    """

    __slots__ = ("_data", "_raw")

    _data: dict[str, list[str]]
    _raw: str

    def __init__(self, raw: str | bytes = "") -> None:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        object.__setattr__(self, "_raw", raw)
        object.__setattr__(self, "_data", parse_qs(raw, keep_blank_values=True))

    def __getitem__(self, key: str) -> str:
        return self._data[key][0]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        items = ", ".join(f"{k!r}: {self[k]!r}" for k in self)
        return f"{type(self).__name__}({{{items}}})"

    @property
    def raw(self) -> str:
        return self._raw

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        """Return the first value for *key*, or *default* if missing."""
        values = self._data.get(key)
        if values:
            return values[0]
        return default

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key*."""
        return list(self._data.get(key, []))

    def get_int(self, key: str, default: int | None = None) -> int | None:
        """Return value as int, or *default* if missing or not numeric."""
        value = self.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            return default


class QueryParams(_EncodedParams):
    """Query string parameters (``?search=milk&page=2``)."""

    __slots__ = ()


class FormData(_EncodedParams):
    """URL-encoded form fields from a request body."""

    __slots__ = ()
