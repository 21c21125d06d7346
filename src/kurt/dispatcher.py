"""
=============================================================================
DISPATCHER
=============================================================================

Turns a Request into a Response. Never raises.

    Request ──► RouteTable.resolve(method, path)
                  │
                  ├── match        → handler(request with path_params)
                  ├── no match     → default handler(request)
                  └── no default   → 404
                                        │
            handler raised / returned junk → 500 (logged)
                                        │
                                        ▼
                              normalize() → Response

Handlers may return a Response, or a bare value that normalize() wraps:

    str        → 200 text/html; charset=utf-8
    bytes      → 200 application/octet-stream
    dict/list  → 200 application/json
    anything else (None included) → handler failure → 500

The only change made to a handler's own Response is adding
Content-Length when it is missing.

=============================================================================
"""

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Optional

from .errors import HandlerFailure, NoDefaultHandlerError, NoMatchError
from .http.request import Request
from .http.response import Response, coerce_body, internal_error, not_found
from .routing import RouteTable

if TYPE_CHECKING:
    from .delegate import KurtDelegate


logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Routes requests through a RouteTable.

        dispatcher = Dispatcher()
        dispatcher.routes.register("GET", "/", lambda req: "hello")
        dispatcher.handle(Request("GET", "/"))     # → 200 "hello"
        dispatcher.handle(Request("GET", "/nope")) # → 404
    """

    def __init__(self, routes: Optional[RouteTable] = None):
        self.routes = routes if routes is not None else RouteTable()
        self._delegate: Optional["KurtDelegate"] = None

    # =========================================================================
    # DELEGATE
    # =========================================================================

    def set_delegate(self, delegate: Optional["KurtDelegate"]) -> None:
        """Install the delegate and give it this dispatcher to register into."""
        if delegate is not None:
            delegate.attach(self)
        self._delegate = delegate

    @property
    def delegate(self) -> Optional["KurtDelegate"]:
        return self._delegate

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def handle(self, request: Request) -> Response:
        try:
            handler, request = self._select(request)
        except NoMatchError as e:
            logger.debug("%s", e)
            return not_found()

        try:
            return self.normalize(handler(request), request)
        except HandlerFailure as failure:
            logger.error("%s", failure)
        except Exception as e:
            failure = HandlerFailure(request.method, request.path, original=e)
            logger.exception("%s", failure)
        return internal_error()

    def _select(self, request: Request):
        found = self.routes.resolve(request.method, request.path)
        if found is not None:
            if found.route.is_prefix:
                params = dict(request.path_params)
                params.update(found.path_params)
                request = replace(request, path_params=params)
            return found.handler, request

        default = self.routes.default
        if default is None:
            raise NoDefaultHandlerError(request.method, request.path)
        return default, request

    def normalize(self, result: Any, request: Request) -> Response:
        """
        Coerce a handler's return value into a Response.

        Raises:
            HandlerFailure: If the value cannot be turned into a Response.
        """
        if isinstance(result, Response):
            response = result
        else:
            try:
                response = coerce_body(result)
            except TypeError as e:
                raise HandlerFailure(request.method, request.path, message=str(e))
        if not isinstance(response.body, (bytes, bytearray)):
            raise HandlerFailure(
                request.method, request.path,
                message=f"response body must be bytes, got {type(response.body).__name__}",
            )
        if "Content-Length" not in response.headers:
            response.headers["Content-Length"] = str(len(response.body))
        return response

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def dump(self) -> str:
        """
        Describe the routing configuration.

            Routes:
              GET      /
              GET      /static/*path
            Default handler: set

        The text is returned and also logged at INFO.
        """
        lines = ["Routes:"]
        routes = self.routes.routes()
        if not routes:
            lines.append("  (none)")
        for route in routes:
            lines.append(f"  {route.method:8} {route.pattern}")
        lines.append(
            "Default handler: " + ("set" if self.routes.default is not None else "not set")
        )
        text = "\n".join(lines)
        logger.info("%s", text)
        return text
