"""
=============================================================================
STATIC FILES
=============================================================================

A handler that serves a directory tree. Register it on a prefix route:

    handler = StaticFileHandler("public", param="path")
    routes.register("GET", "/assets/*path", handler)

    GET /assets/css/site.css  →  public/css/site.css
                                 Content-Type from the MIME registry

The part of the path after the route's prefix arrives in
request.path_params; the handler never looks at the route itself.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  remainder ──► root / remainder ──► resolve() ──► inside root?      │
    │                                                     │ no  → 403     │
    │                                                     ▼ yes           │
    │                                 directory? ──► index.html or 403    │
    │                                 missing?   ──► 404                  │
    │                                 If-None-Match == ETag ──► 304       │
    │                                 otherwise  ──► 200 + file bytes     │
    └─────────────────────────────────────────────────────────────────────┘

ETags are "<mtime>-<size>"; cheap, and good enough to avoid resending an
unchanged file.

=============================================================================
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from ..http.headers import Headers
from ..http.mime_types import mime_type_for
from ..http.request import Request
from ..http.response import (
    Response,
    format_http_date,
    forbidden,
    internal_error,
    not_found,
    not_modified,
)


logger = logging.getLogger(__name__)


class StaticFileHandler:
    """
    Serves files below root_dir.

    Args:
        root_dir:      Directory to serve. Must exist.
        param:         path_params key holding the requested file path.
                       When absent, url_prefix is stripped from request.path.
        url_prefix:    Fallback prefix for handlers used on exact routes.
        index_file:    File served for a directory request.
        cache_max_age: Cache-Control max-age in seconds.
    """

    def __init__(
        self,
        root_dir: Union[str, Path],
        param: str = "*",
        url_prefix: str = "",
        index_file: str = "index.html",
        cache_max_age: int = 3600,
    ):
        self.root_dir = Path(root_dir).resolve()
        if not self.root_dir.is_dir():
            raise ValueError(f"Static root directory does not exist: {root_dir}")
        self.param = param
        self.url_prefix = url_prefix.rstrip("/")
        self.index_file = index_file
        self.cache_max_age = cache_max_age

    def __repr__(self) -> str:
        return f"StaticFileHandler({str(self.root_dir)!r})"

    def __call__(self, request: Request) -> Response:
        relative = self._requested_path(request)
        target = (self.root_dir / relative.lstrip("/")).resolve()

        try:
            target.relative_to(self.root_dir)
        except ValueError:
            logger.warning("Path traversal attempt: %s", relative)
            return forbidden("Access denied")

        if target.is_dir():
            index = target / self.index_file
            if not index.is_file():
                return forbidden("Directory listing not allowed")
            target = index

        if not target.is_file():
            return not_found(f"File not found: {relative}")
        return self._serve(target, request)

    def _requested_path(self, request: Request) -> str:
        if self.param in request.path_params:
            return request.path_params[self.param]
        path = request.path
        if self.url_prefix and path.startswith(self.url_prefix):
            path = path[len(self.url_prefix):]
        return path

    def _serve(self, path: Path, request: Request) -> Response:
        try:
            stat = path.stat()
            etag = f'"{int(stat.st_mtime)}-{stat.st_size}"'
            if request.headers.get("If-None-Match") == etag:
                return not_modified(etag)
            content = path.read_bytes()
        except PermissionError:
            return forbidden("Permission denied")
        except OSError as e:
            logger.error("Error serving file %s: %s", path, e)
            return internal_error("Failed to read file")

        modified = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        headers = Headers()
        headers["Content-Type"] = mime_type_for(path.name)
        headers["Content-Length"] = str(len(content))
        headers["ETag"] = etag
        headers["Last-Modified"] = format_http_date(modified)
        headers["Cache-Control"] = f"public, max-age={self.cache_max_age}"
        return Response(200, headers, content)


def serve_static(root_dir: Union[str, Path], param: str = "*", **kwargs) -> StaticFileHandler:
    """Shorthand for StaticFileHandler(root_dir, param, ...)."""
    return StaticFileHandler(root_dir, param=param, **kwargs)
