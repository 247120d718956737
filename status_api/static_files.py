"""Static SPA serving with a directory traversal guard and client-side routing fallback."""

import errno
import os
from pathlib import Path
from typing import Optional

from loguru import logger
from starlette.responses import PlainTextResponse, Response

INDEX_FILE = "index.html"

MIME_TYPES = {
    ".html": "text/html",
    ".js": "application/javascript",
    ".css": "text/css",
    ".json": "application/json",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".txt": "text/plain",
    ".pdf": "application/pdf",
    ".wav": "audio/wav",
    ".mp4": "video/mp4",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".eot": "application/vnd.ms-fontobject",
    ".otf": "font/otf",
    ".wasm": "application/wasm",
}
DEFAULT_MIME_TYPE = "application/octet-stream"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}
LONG_CACHE = "public, max-age=31536000"


def content_type_for(path: str) -> str:
    return MIME_TYPES.get(os.path.splitext(path)[1].lower(), DEFAULT_MIME_TYPE)


def cache_control_for(path: str) -> str:
    return "no-cache" if path.lower().endswith(".html") else LONG_CACHE


class StaticSite:
    """Serves files from a build directory"""

    def __init__(self, root: Path):
        self.root = os.path.abspath(root)

    @property
    def index_path(self) -> str:
        return os.path.join(self.root, INDEX_FILE)

    def resolve(self, url_path: str) -> Optional[str]:
        """Map a URL path to a file path under root, or None if it escapes root.

        Purely lexical: nothing on disk is touched.
        """
        if url_path in ("/", "", "/index.html"):
            return self.index_path
        candidate = os.path.normpath(os.path.join(self.root, url_path.lstrip("/")))
        if candidate != self.root and not candidate.startswith(self.root + os.sep):
            return None
        return candidate

    def _file_response(self, file_path: str, content: bytes) -> Response:
        headers = dict(CORS_HEADERS)
        headers["Cache-Control"] = cache_control_for(file_path)
        return Response(content=content, media_type=content_type_for(file_path), headers=headers)

    def _within_root(self, file_path: str) -> bool:
        """True if the real target of `file_path` is under the real root"""
        root = os.path.realpath(self.root)
        target = os.path.realpath(file_path)
        return target == root or target.startswith(root + os.sep)

    def options(self) -> Response:
        """Answer a CORS preflight"""
        return Response(status_code=200, headers=CORS_HEADERS)

    def serve(self, url_path: str) -> Response:
        """Serve a URL path: 200 file, 200 SPA entry, 403, 404 or 500"""
        file_path = self.resolve(url_path)
        if file_path is None:
            logger.warning(f"Rejected path outside static root: {url_path}")
            return PlainTextResponse("Forbidden", status_code=403)

        if not os.path.isfile(file_path):
            # Unknown paths belong to the client-side router
            file_path = self.index_path

        if not self._within_root(file_path):
            logger.warning(f"Rejected symlink leaving static root: {url_path}")
            return PlainTextResponse("Forbidden", status_code=403)

        try:
            with open(file_path, "rb") as f:
                content = f.read()
        except FileNotFoundError:
            logger.error(f"SPA entry document missing: {file_path}")
            return Response("<h1>404 Not Found</h1>", status_code=404, media_type="text/html")
        except OSError as e:
            code = errno.errorcode.get(e.errno, "UNKNOWN") if e.errno else "UNKNOWN"
            logger.exception(f"Failed to read {file_path}")
            return PlainTextResponse(f"Server Error: {code}", status_code=500)

        return self._file_response(file_path, content)

    def has_index(self) -> bool:
        return os.path.isfile(self.index_path)
