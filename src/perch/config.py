"""Application configuration.

AppConfig is a frozen dataclass — immutable after creation, IDE-autocompletable,
no string-key dict lookups.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, static_dir="public", view_dir="views")
    """

    debug: bool = False

    # Static files (served before routing when set)
    static_dir: str | Path | None = None
    static_cache_control: str = "public, max-age=3600"

    # Views
    view_dir: str | Path = "views"
    autoescape: bool = True
    not_found_view: str = "partials/404.html"
    main_view: str = "index.html"

    # CSRF
    csrf_field: str = "csrf"
    csrf_session_key: str = "csrf"
    csrf_token_bytes: int = 50

    # Database
    database_url: str | None = None
    database_echo: bool = False
