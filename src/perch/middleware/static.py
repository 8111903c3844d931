"""Static file serving, checked before any routing.

Security: the requested path is joined to the static root and fully
resolved (symlinks, ``..``); the result must still sit inside the
resolved root and be a regular file. Anything else falls through to
routing, so ``/../secret.txt`` can never reach outside the root.
"""

import logging
import mimetypes
from pathlib import Path

from perch.http.response import Response

logger = logging.getLogger("perch.server")

# Leading-byte signatures checked before the extension table.
_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"%PDF-", "application/pdf"),
)

_EXTENSIONS: dict[str, str] = {
    "css": "text/css",
    "js": "application/javascript",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "svg": "image/svg+xml",
    "html": "text/html",
}

DEFAULT_MIME = "application/octet-stream"


def sniff_mime(head: bytes) -> str | None:
    """Content-sniff the first bytes of a file."""
    for signature, mime in _SIGNATURES:
        if head.startswith(signature):
            return mime
    if head.startswith(b"RIFF") and head[8:12] == b"WEBP":
        return "image/webp"
    return None


def guess_mime(file_path: Path, head: bytes = b"") -> str:
    """MIME type for *file_path*: sniffed, then by extension, then default."""
    sniffed = sniff_mime(head)
    if sniffed is not None:
        return sniffed
    ext = file_path.suffix.lower().lstrip(".")
    if ext in _EXTENSIONS:
        return _EXTENSIONS[ext]
    guessed, _ = mimetypes.guess_type(file_path.name)
    return guessed or DEFAULT_MIME


class StaticFiles:
    """Serves files from a directory ahead of routing.

    Usage::

        static = StaticFiles("./public")
        response = static.serve("/css/site.css")  # Response or None
    """

    __slots__ = ("_cache_control", "_directory")

    def __init__(
        self, directory: str | Path, *, cache_control: str = "public, max-age=3600"
    ) -> None:
        self._directory = Path(directory).resolve()
        self._cache_control = cache_control

    @property
    def directory(self) -> Path:
        return self._directory

    def resolve(self, path: str) -> Path | None:
        """Return the file *path* refers to, or ``None`` if it must not be served."""
        relative = path.lstrip("/")
        if not relative:
            return None
        try:
            file_path = (self._directory / relative).resolve()
        except (OSError, RuntimeError, ValueError):
            return None
        if not file_path.is_relative_to(self._directory):
            return None
        if not file_path.is_file():
            return None
        return file_path

    def serve(self, path: str) -> Response | None:
        """Build a response for *path*, or ``None`` to fall through.

        A file that vanishes or cannot be read after resolving also
        falls through.
        """
        file_path = self.resolve(path)
        if file_path is None:
            return None
        try:
            return self._serve_file(file_path)
        except OSError as exc:
            logger.warning("Static file %s unreadable: %s", file_path, exc)
            return None

    def _serve_file(self, file_path: Path) -> Response:
        body = file_path.read_bytes()
        content_type = guess_mime(file_path, body[:16])
        return (
            Response(body=body, content_type=content_type)
            .with_header("Content-Length", str(len(body)))
            .with_header("Cache-Control", self._cache_control)
        )
