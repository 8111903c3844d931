"""Middleware protocol, chain composition, and built-in request guards."""

from perch.middleware.chain import MiddlewareChain
from perch.middleware.csrf import CSRFConfig, csrf_field, ensure_csrf_token, is_csrf_valid
from perch.middleware.protocol import Middleware, Next
from perch.middleware.static import StaticFiles

__all__ = [
    "CSRFConfig",
    "Middleware",
    "MiddlewareChain",
    "Next",
    "StaticFiles",
    "csrf_field",
    "ensure_csrf_token",
    "is_csrf_valid",
]
