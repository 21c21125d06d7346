"""
=============================================================================
DELEGATE
=============================================================================

The configuration layer Kurt talks to. A delegate decides what the site
looks like (routes, default handler) and may take over request handling
entirely.

    ┌──────────────┐  set_delegate()   ┌─────────────┐   attach()   ┌──────────┐
    │  Kurt server │ ────────────────► │ Dispatcher  │ ───────────► │ Delegate │
    └──────────────┘                   └─────────────┘              └──────────┘
            │                                 ▲                          │
            │  on_launch() once               │  add_handler() /         │
            │  handle(request) per request    │  set_default_handler()   │
            └─────────────────────────────────┴──────────────────────────┘

Subclass KurtDelegate to build a custom one; DefaultDelegate forwards
everything to the Dispatcher and loads site files with kurt.site.

=============================================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

from .http.request import Request
from .routing import Handler, Route

if TYPE_CHECKING:
    from .dispatcher import Dispatcher


logger = logging.getLogger(__name__)


class KurtDelegate(ABC):
    """Capability interface between Kurt and the code configuring it."""

    dispatcher: Optional["Dispatcher"] = None

    def attach(self, dispatcher: "Dispatcher") -> None:
        """Called by Dispatcher.set_delegate(); remembers the dispatcher."""
        self.dispatcher = dispatcher

    def on_launch(self) -> None:
        """Called once before the server starts accepting connections."""

    @abstractmethod
    def configure_site(self, path: str) -> None:
        """Load the site description at *path*."""

    @abstractmethod
    def add_handler(self, method: str, path: str, handler: Handler) -> Any:
        """Register *handler* for (method, path)."""

    @abstractmethod
    def set_default_handler(self, handler: Optional[Handler]) -> None:
        """Install the handler used when no route matches."""

    @abstractmethod
    def handle(self, request: Request) -> Any:
        """Produce a Response (or a value the Dispatcher can normalize)."""

    def dump(self) -> Optional[str]:
        """Describe the current configuration. Does nothing by default."""
        return None


class DefaultDelegate(KurtDelegate):
    """
    Stock delegate: registrations go to the Dispatcher's RouteTable and
    requests go through Dispatcher.handle().

    Used on its own (never attached to a server) it creates a private
    Dispatcher the first time one is needed.
    """

    def _require_dispatcher(self) -> "Dispatcher":
        if self.dispatcher is None:
            from .dispatcher import Dispatcher

            Dispatcher().set_delegate(self)
        return self.dispatcher

    def configure_site(self, path: str) -> None:
        from .site import load_site

        load_site(path, self)

    def add_handler(self, method: str, path: str, handler: Handler) -> Route:
        return self._require_dispatcher().routes.register(method, path, handler)

    def set_default_handler(self, handler: Optional[Handler]) -> None:
        self._require_dispatcher().routes.set_default(handler)

    def handle(self, request: Request) -> Any:
        return self._require_dispatcher().handle(request)

    def dump(self) -> str:
        return self._require_dispatcher().dump()
