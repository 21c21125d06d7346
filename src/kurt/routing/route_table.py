"""
=============================================================================
ROUTE TABLE
=============================================================================

Maps (method, path) to a handler, plus one default handler slot for
requests nothing else claims.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  GET   /                 → home                                     │
    │  GET   /api/status       → status          (exact)                  │
    │  GET   /static/*path     → files           (prefix "/static/")      │
    │  GET   /static/img/*     → images          (prefix "/static/img/")  │
    │  POST  /api/items        → create_item     (exact)                  │
    │  ─────────────────────────────────────────────────────────────────  │
    │  default                 → not_found_page                           │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PATTERNS
=============================================================================

    /about            exact: the path must be identical (case-sensitive,
                      trailing slash included)
    /static/*         prefix: any path starting with "/static/"
    /static/*path     same, and the remainder is named "path"

A "*" may only open the last segment. Anything else ("/a*", "/*/b",
whitespace, no leading "/") raises InvalidPatternError at registration.

=============================================================================
MATCHING
=============================================================================

    1. Only routes registered for the request's method are candidates.
       Methods compare case-insensitively ("get" == "GET").
    2. An exact route equal to the path wins outright. Its literal part is
       the whole path, so no prefix route can be longer.
    3. Otherwise the prefix route with the LONGEST literal prefix wins:

           GET /static/img/logo.png
               "/static/img/" (12 chars)  beats  "/static/" (8 chars)

    4. No candidate → None, and the caller falls back to the default.

Registering the same (method, pattern) twice replaces the handler and
keeps the route where it was in registration order.

=============================================================================
CONCURRENCY
=============================================================================

Readers never take a lock. All state lives in one immutable _Snapshot;
writers build a new snapshot under a lock and publish it with a single
attribute assignment:

    reader:  snap = self._snapshot      ← one atomic read, then no locks
    writer:  with self._lock:
                 self._snapshot = _Snapshot.build(...)

So routes can be added while requests are being served and every lookup
sees either the table before the write or after it.

=============================================================================
"""

import logging
import re
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from ..errors import InvalidPatternError


logger = logging.getLogger(__name__)

Handler = Callable[..., object]

# RFC 7230 token
METHOD_PATTERN = re.compile(r"^[!#$%&'*+.^_`|~0-9A-Za-z-]+$")
WILDCARD_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
WHITESPACE = re.compile(r"\s")


@dataclass(frozen=True)
class Route:
    """
    One registered binding.

        Route(method="GET", pattern="/static/*path", handler=files,
              prefix="/static/", wildcard="path")

    For exact routes prefix is the whole pattern and wildcard is None.
    """

    method: str
    pattern: str
    handler: Handler = field(compare=False)
    prefix: str = ""
    wildcard: Optional[str] = None

    @property
    def is_prefix(self) -> bool:
        return self.wildcard is not None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.method, self.pattern)

    def __str__(self) -> str:
        return f"{self.method} {self.pattern}"


@dataclass(frozen=True)
class RouteMatch:
    """
    A successful lookup.

    remainder is the part of the path after a prefix route's literal
    prefix ("" for exact routes).
    """

    route: Route
    remainder: str = ""

    @property
    def handler(self) -> Handler:
        return self.route.handler

    @property
    def path_params(self) -> Dict[str, str]:
        if not self.route.is_prefix:
            return {}
        return {self.route.wildcard: self.remainder}


def parse_pattern(method: str, pattern: str) -> Tuple[str, str, Optional[str]]:
    """
    Validate a (method, pattern) pair.

    Returns:
        (normalized method, literal prefix, wildcard name or None)

    Raises:
        InvalidPatternError: On an empty or malformed method or pattern.
    """
    if not isinstance(method, str) or not method:
        raise InvalidPatternError(f"{method} {pattern}", "empty HTTP method")
    if not METHOD_PATTERN.match(method):
        raise InvalidPatternError(f"{method} {pattern}", "method is not an HTTP token")
    if not isinstance(pattern, str) or not pattern:
        raise InvalidPatternError(str(pattern), "empty path")
    if not pattern.startswith("/"):
        raise InvalidPatternError(pattern, "path must start with '/'")
    if WHITESPACE.search(pattern):
        raise InvalidPatternError(pattern, "path contains whitespace")

    star = pattern.find("*")
    if star == -1:
        return method.upper(), pattern, None

    prefix, tail = pattern[:star], pattern[star + 1:]
    if not prefix.endswith("/"):
        raise InvalidPatternError(pattern, "'*' must start a path segment")
    if "/" in tail or "*" in tail:
        raise InvalidPatternError(pattern, "'*' is only allowed in the last segment")
    if tail and not WILDCARD_NAME_PATTERN.match(tail):
        raise InvalidPatternError(pattern, f"invalid wildcard name {tail!r}")
    return method.upper(), prefix, tail or "*"


@dataclass(frozen=True)
class _Snapshot:
    """Immutable view of the table; replaced wholesale on every write."""

    routes: Tuple[Route, ...] = ()
    exact: Mapping[Tuple[str, str], Route] = field(
        default_factory=lambda: MappingProxyType({})
    )
    # method → prefix routes, longest literal prefix first
    prefixes: Mapping[str, Tuple[Route, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    default: Optional[Handler] = None

    @classmethod
    def build(cls, routes: Tuple[Route, ...], default: Optional[Handler]) -> "_Snapshot":
        exact: Dict[Tuple[str, str], Route] = {}
        prefixes: Dict[str, List[Route]] = {}
        for route in routes:
            if route.is_prefix:
                prefixes.setdefault(route.method, []).append(route)
            else:
                exact[route.key] = route

        # sorted() is stable: equal lengths keep registration order
        ordered = {
            method: tuple(sorted(group, key=lambda r: len(r.prefix), reverse=True))
            for method, group in prefixes.items()
        }
        return cls(
            routes=routes,
            exact=MappingProxyType(exact),
            prefixes=MappingProxyType(ordered),
            default=default,
        )


class RouteTable:
    """
    Ordered (method, pattern) → handler bindings with a default slot.

    Example:
        table = RouteTable()
        table.register("GET", "/", home)
        table.register("GET", "/static/*path", files)
        table.set_default(not_found_page)

        table.match("get", "/")                      # → home
        table.resolve("GET", "/static/a.css")        # → RouteMatch(files, "a.css")
        table.match("POST", "/")                     # → None
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot = _Snapshot()

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def register(self, method: str, pattern: str, handler: Handler) -> Route:
        """
        Bind *handler* to (method, pattern), replacing any earlier binding
        for the same pair.

        Raises:
            InvalidPatternError: If the method or pattern is malformed.
            TypeError: If handler is not callable.
        """
        method, prefix, wildcard = parse_pattern(method, pattern)
        if not callable(handler):
            raise TypeError(f"handler for {method} {pattern} is not callable")

        route = Route(method, pattern, handler, prefix, wildcard)
        with self._lock:
            current = self._snapshot
            routes = list(current.routes)
            for index, existing in enumerate(routes):
                if existing.key == route.key:
                    routes[index] = route
                    logger.debug("Replaced route %s", route)
                    break
            else:
                routes.append(route)
                logger.debug("Registered route %s", route)
            self._snapshot = _Snapshot.build(tuple(routes), current.default)
        return route

    def set_default(self, handler: Optional[Handler]) -> None:
        """Install the fallback handler (None removes it)."""
        if handler is not None and not callable(handler):
            raise TypeError("default handler is not callable")
        with self._lock:
            current = self._snapshot
            self._snapshot = _Snapshot(
                current.routes, current.exact, current.prefixes, handler
            )

    def clear(self) -> None:
        """Drop every route and the default handler."""
        with self._lock:
            self._snapshot = _Snapshot()

    # =========================================================================
    # LOOKUP (lock-free)
    # =========================================================================

    def resolve(self, method: str, path: str) -> Optional[RouteMatch]:
        snapshot = self._snapshot
        method = method.upper()

        route = snapshot.exact.get((method, path))
        if route is not None:
            return RouteMatch(route)

        for route in snapshot.prefixes.get(method, ()):
            if path.startswith(route.prefix):
                return RouteMatch(route, path[len(route.prefix):])
        return None

    def match(self, method: str, path: str) -> Optional[Handler]:
        """The handler that should serve (method, path), or None."""
        found = self.resolve(method, path)
        return found.handler if found else None

    @property
    def default(self) -> Optional[Handler]:
        return self._snapshot.default

    def routes(self) -> List[Route]:
        """All routes in registration order."""
        return list(self._snapshot.routes)

    def __len__(self) -> int:
        return len(self._snapshot.routes)

    def __iter__(self):
        return iter(self._snapshot.routes)

    def __repr__(self) -> str:
        return f"<RouteTable routes={len(self)} default={self.default is not None}>"
