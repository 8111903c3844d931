"""Small helpers handlers reach for: text shortening, flash redirects, HTTP fetch.

``fetch`` never raises for HTTP or transport failures. It reports them
in a ``FetchResult`` instead::

    result = fetch("https://api.example.com/items", {"Accept": "application/json"})
    if result.ok:
        items = result.json()
    else:
        log.warning("fetch failed: %s (%d)", result.error, result.status_code)
"""

import json as json_module
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from perch.http.response import Redirect
from perch.session import SessionStore

logger = logging.getLogger("perch.utils")

FLASH_KEY = "msg"
DEFAULT_TIMEOUT = 30.0

type FetchHeaders = Mapping[str, str] | Sequence[str]


def shorten_text(text: str, max_length: int) -> str:
    """Cut *text* to *max_length* characters, ending with ``...`` when cut."""
    if len(text) <= max_length:
        return text
    return text[: max(max_length - 3, 0)] + "..."


def redirect_with_message(
    session: SessionStore, url: str, message: str, *, key: str = FLASH_KEY
) -> Redirect:
    """Store a flash message under *key* in the session and redirect to *url*."""
    session.set(key, message)
    return Redirect(url)


@dataclass(frozen=True, slots=True)
class FetchResult:
    """Outcome of ``fetch``. Exactly one of ``data`` and ``error`` is set.

    ``status_code`` is 0 when no response arrived at all.
    """

    status_code: int
    data: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and 200 <= self.status_code < 300

    def json(self) -> Any:
        if self.data is None:
            msg = f"No response body: {self.error}"
            raise ValueError(msg)
        return json_module.loads(self.data)


def _normalize_headers(headers: FetchHeaders | None) -> dict[str, str]:
    """Accept a mapping or ``"Name: value"`` lines."""
    if headers is None:
        return {}
    if isinstance(headers, Mapping):
        return dict(headers)
    out: dict[str, str] = {}
    for line in headers:
        name, sep, value = line.partition(":")
        if sep:
            out[name.strip()] = value.strip()
    return out


def _result(response: httpx.Response) -> FetchResult:
    return FetchResult(status_code=response.status_code, data=response.text)


def fetch(
    url: str,
    headers: FetchHeaders | None = None,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    client: httpx.Client | None = None,
) -> FetchResult:
    """GET *url*, following redirects.

    Non-2xx responses still carry their body in ``data``. Transport
    failures (DNS, refused connection, timeout) produce ``error``.
    """
    hdrs = _normalize_headers(headers)
    try:
        if client is not None:
            response = client.get(url, headers=hdrs, timeout=timeout, follow_redirects=True)
        else:
            with httpx.Client(follow_redirects=True, timeout=timeout) as own:
                response = own.get(url, headers=hdrs)
    except httpx.HTTPError as exc:
        logger.warning("fetch %s failed: %s", url, exc)
        return FetchResult(status_code=0, error=str(exc) or type(exc).__name__)
    return _result(response)


async def fetch_async(
    url: str,
    headers: FetchHeaders | None = None,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    client: httpx.AsyncClient | None = None,
) -> FetchResult:
    """Cooperative ``fetch``: same arguments, same results."""
    hdrs = _normalize_headers(headers)
    try:
        if client is not None:
            response = await client.get(
                url, headers=hdrs, timeout=timeout, follow_redirects=True
            )
        else:
            async with httpx.AsyncClient(follow_redirects=True, timeout=timeout) as own:
                response = await own.get(url, headers=hdrs)
    except httpx.HTTPError as exc:
        logger.warning("fetch %s failed: %s", url, exc)
        return FetchResult(status_code=0, error=str(exc) or type(exc).__name__)
    return _result(response)
