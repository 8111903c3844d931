"""CSRF protection — token-based, session-backed.

A random token is stored in the session once and echoed back by forms
in a hidden field. The dispatcher validates it before routing.

Only ``POST`` is checked by default. ``PUT``, ``PATCH`` and ``DELETE``
pass unchecked unless an app widens ``CSRFConfig.protected_methods``.

Templates::

    <form method="post">
        {{ csrf_field() }}
        ...
    </form>
"""

import html
import logging
import secrets
from dataclasses import dataclass

from perch.http.request import Request
from perch.session import SessionStore

logger = logging.getLogger("perch.security")


@dataclass(frozen=True, slots=True)
class CSRFConfig:
    """CSRF configuration.

    Attributes:
        field_name: Form field carrying the token.
        session_key: Key used to store the token in the session.
        token_bytes: Random bytes per token (hex-encoded, so twice as many chars).
        protected_methods: Methods whose requests must carry a valid token.
    """

    field_name: str = "csrf"
    session_key: str = "csrf"
    token_bytes: int = 50
    protected_methods: frozenset[str] = frozenset({"POST"})


def ensure_csrf_token(session: SessionStore, config: CSRFConfig | None = None) -> str:
    """Return the session's token, generating and storing one if missing."""
    cfg = config or CSRFConfig()
    token = session.get(cfg.session_key)
    if not token:
        token = secrets.token_hex(cfg.token_bytes)
        session.set(cfg.session_key, token)
    return token


def csrf_field(session: SessionStore, config: CSRFConfig | None = None) -> str:
    """Render a hidden input carrying the session's CSRF token.

    Renders: ``<input type="hidden" name="csrf" value="...">``
    """
    cfg = config or CSRFConfig()
    token = ensure_csrf_token(session, cfg)
    name = html.escape(cfg.field_name, quote=True)
    value = html.escape(token, quote=True)
    return f'<input type="hidden" name="{name}" value="{value}">'


def requires_csrf(request: Request, config: CSRFConfig | None = None) -> bool:
    cfg = config or CSRFConfig()
    return request.method in cfg.protected_methods


def is_csrf_valid(
    request: Request, session: SessionStore, config: CSRFConfig | None = None
) -> bool:
    """Check the submitted form token against the session token.

    Both must be present and equal. Comparison is constant-time.
    """
    cfg = config or CSRFConfig()
    expected = session.get(cfg.session_key)
    submitted = request.form.get(cfg.field_name)
    if not expected or submitted is None:
        logger.debug("CSRF token missing from %s", "form" if expected else "session")
        return False
    if not secrets.compare_digest(str(submitted).encode("utf-8"), str(expected).encode("utf-8")):
        logger.debug("CSRF token mismatch")
        return False
    return True
