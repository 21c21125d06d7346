"""Route registration and (method, path) matching."""

from .route_table import Handler, Route, RouteMatch, RouteTable, parse_pattern

__all__ = ["Handler", "Route", "RouteMatch", "RouteTable", "parse_pattern"]
