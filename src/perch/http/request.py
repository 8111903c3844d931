"""Immutable HTTP request.

Requests arrive pre-parsed from whatever transport sits in front of the
app: method, path, query string, body, and headers. The request is
honest about what it is: received data that doesn't change.
"""

from __future__ import annotations

import json as json_module
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from perch.http.headers import Headers
from perch.http.query import FormData, QueryParams


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    Build one with ``Request.build()``::

        request = Request.build("POST", "/posts", body=b"title=Hi&csrf=abc",
                                headers={"Content-Type": "application/x-www-form-urlencoded"})
        request.form["title"]  # "Hi"
    """

    method: str
    path: str
    headers: Headers
    query: QueryParams
    body: bytes = b""

    # Private: mutable cache for parsed form data
    # (dict contents are mutable even though the field reference is frozen)
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    # -- Computed properties --

    @property
    def is_fragment(self) -> bool:
        """True if this is an htmx fragment request (HX-Request header)."""
        return self.headers.get("hx-request") == "true"

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.get("content-type")

    @property
    def url(self) -> str:
        """Request path plus query string."""
        if self.query.raw:
            return f"{self.path}?{self.query.raw}"
        return self.path

    @property
    def form(self) -> FormData:
        """The body parsed as URL-encoded form fields.

        Bodies with a non-form Content-Type parse as an empty form.
        Result is cached.
        """
        if "_form" in self._cache:
            return self._cache["_form"]
        ct = self.content_type or "application/x-www-form-urlencoded"
        result = FormData(self.body) if "form-urlencoded" in ct else FormData()
        self._cache["_form"] = result
        return result

    def text(self) -> str:
        """The body decoded as UTF-8."""
        return self.body.decode("utf-8")

    def json(self) -> Any:
        """The body parsed as JSON."""
        return json_module.loads(self.body)

    # -- Factory --

    @classmethod
    def build(
        cls,
        method: str,
        path: str,
        *,
        query_string: str | bytes = "",
        body: str | bytes = b"",
        headers: Mapping[str, str] | Iterable[tuple[str, str]] = (),
    ) -> Request:
        """Create a Request from pre-parsed pieces.

        A query string embedded in *path* (``/search?q=x``) is split off
        when *query_string* is not given separately.
        """
        if "?" in path and not query_string:
            path, _, query_string = path.partition("?")
        if isinstance(body, str):
            body = body.encode("utf-8")
        return cls(
            method=method.upper(),
            path=path or "/",
            headers=Headers(headers),
            query=QueryParams(query_string),
            body=body,
        )
