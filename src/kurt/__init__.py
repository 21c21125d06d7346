"""
=============================================================================
KURT
=============================================================================

A small embeddable HTTP/1.1 server that routes requests to handlers by
method and path.

    from kurt import Kurt, DefaultDelegate, serve_static, text

    kurt = Kurt.instance()
    delegate = DefaultDelegate()
    kurt.set_delegate(delegate)

    delegate.add_handler("GET", "/", lambda request: text("hello"))
    delegate.add_handler("GET", "/files/*path", serve_static("public", "path"))
    delegate.set_default_handler(lambda request: text("nope", 404))

    if kurt.bind("127.0.0.1", 8080) == 0:
        kurt.run()

=============================================================================
LAYOUT
=============================================================================

    kurt.server       Kurt: bind / run / shutdown, process-wide instance
    kurt.dispatcher   Request → handler → Response, never raises
    kurt.routing      RouteTable: exact and prefix routes, default slot
    kurt.delegate     KurtDelegate interface, DefaultDelegate
    kurt.site         site files (Python scripts) that register routes
    kurt.http         Request, Response, Headers, MIME registry
    kurt.core         sockets, connections, worker pool
    kurt.handlers     built-in handlers (static files)

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .delegate import DefaultDelegate, KurtDelegate
from .dispatcher import Dispatcher
from .errors import (
    BindError,
    HandlerFailure,
    InvalidPatternError,
    KurtError,
    NoDefaultHandlerError,
    NoMatchError,
)
from .handlers import StaticFileHandler, serve_static
from .http import Headers, Request, Response, html, json_response, redirect, text
from .routing import Route, RouteTable
from .server import Kurt

__all__ = [
    "__version__",
    "Kurt",
    "ServerConfig",
    "KurtDelegate",
    "DefaultDelegate",
    "Dispatcher",
    "RouteTable",
    "Route",
    "Request",
    "Response",
    "Headers",
    "text",
    "html",
    "json_response",
    "redirect",
    "StaticFileHandler",
    "serve_static",
    "KurtError",
    "BindError",
    "InvalidPatternError",
    "NoMatchError",
    "NoDefaultHandlerError",
    "HandlerFailure",
]
