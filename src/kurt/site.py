"""
=============================================================================
SITE FILES
=============================================================================

A site file is a plain Python script describing routes. Kurt runs it with
runpy and a `kurt` object already in its globals:

    # site.py
    @kurt.get("/")
    def home(request):
        return "<h1>Hello</h1>"

    @kurt.post("/echo")
    def echo(request):
        return json_response(request.json)

    kurt.static("/assets", "public")

    @kurt.default
    def missing(request):
        return text("nothing here", 404)

The script runs with the current directory set to the folder holding it,
so relative paths (like "public" above) are relative to the site file.

Everything the script registers goes through the delegate's add_handler()
and set_default_handler(), exactly like code calling the API directly.

=============================================================================
"""

import logging
import os
import runpy
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Union

from .handlers.static import StaticFileHandler
from .http import mime_types as _mime
from .http.response import Response, html, json_response, redirect, text
from .routing import Handler

if TYPE_CHECKING:
    from .delegate import KurtDelegate


logger = logging.getLogger(__name__)


class SiteBuilder:
    """The `kurt` object a site file sees."""

    def __init__(self, delegate: "KurtDelegate"):
        self.delegate = delegate

    def handler(self, method: str, path: str, func: Optional[Handler] = None):
        """
        Register func for (method, path). Without func, returns a decorator.
        """
        if func is not None:
            self.delegate.add_handler(method, path, func)
            return func

        def decorator(f: Handler) -> Handler:
            self.delegate.add_handler(method, path, f)
            return f

        return decorator

    def get(self, path: str, func: Optional[Handler] = None):
        return self.handler("GET", path, func)

    def post(self, path: str, func: Optional[Handler] = None):
        return self.handler("POST", path, func)

    def put(self, path: str, func: Optional[Handler] = None):
        return self.handler("PUT", path, func)

    def delete(self, path: str, func: Optional[Handler] = None):
        return self.handler("DELETE", path, func)

    def patch(self, path: str, func: Optional[Handler] = None):
        return self.handler("PATCH", path, func)

    def head(self, path: str, func: Optional[Handler] = None):
        return self.handler("HEAD", path, func)

    def options(self, path: str, func: Optional[Handler] = None):
        return self.handler("OPTIONS", path, func)

    def default(self, func: Handler) -> Handler:
        """Set the fallback handler; usable as a decorator."""
        self.delegate.set_default_handler(func)
        return func

    def static(self, prefix: str, directory: Union[str, Path], **kwargs: Any) -> StaticFileHandler:
        """
        Serve *directory* under *prefix* for GET and HEAD.

            kurt.static("/assets", "public")   # GET /assets/a.css → public/a.css

        Extra keyword arguments go to StaticFileHandler; *param* also names
        the wildcard in the registered pattern.
        """
        param = kwargs.pop("param", "path")
        handler = StaticFileHandler(directory, param=param, **kwargs)
        pattern = prefix.rstrip("/") + "/*" + ("" if param == "*" else param)
        self.delegate.add_handler("GET", pattern, handler)
        self.delegate.add_handler("HEAD", pattern, handler)
        return handler

    def mime_types(self, mapping: Optional[Mapping[str, str]] = None) -> Mapping[str, str]:
        """Read the MIME table, or add/override entries when given a mapping."""
        if mapping is not None:
            _mime.update_mime_types(mapping)
        return _mime.mime_types()


def site_globals(delegate: "KurtDelegate") -> Dict[str, Any]:
    return {
        "kurt": SiteBuilder(delegate),
        "Response": Response,
        "text": text,
        "html": html,
        "json_response": json_response,
        "redirect": redirect,
    }


def load_site(path: Union[str, Path], delegate: "KurtDelegate", chdir: bool = True) -> Dict[str, Any]:
    """
    Run the site file at *path* against *delegate*.

    Returns:
        The script's resulting globals.

    Raises:
        FileNotFoundError: If the file does not exist.
        InvalidPatternError: If the script registers a malformed route.
        Exception: Whatever else the script itself raises.
    """
    site = Path(path).resolve()
    if not site.is_file():
        raise FileNotFoundError(f"Site file not found: {path}")

    if chdir:
        os.chdir(site.parent)
    logger.info("Loading site %s", site)
    return runpy.run_path(str(site), init_globals=site_globals(delegate), run_name="__kurt_site__")
