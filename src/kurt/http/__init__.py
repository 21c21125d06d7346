"""
=============================================================================
HTTP MESSAGE TYPES
=============================================================================

Value types that cross the boundary between the socket transport and the
routing core.

    ┌──────────────┬──────────────────────────────────────────────────────┐
    │ headers      │ Headers: ordered, case-insensitive multimap          │
    │ request      │ Request (frozen), RequestParser, HTTPParseError      │
    │ response     │ Response, to_bytes(), text/html/json helpers         │
    │ mime_types   │ process-wide extension → content-type registry       │
    └──────────────┴──────────────────────────────────────────────────────┘

    REQUEST:                          RESPONSE:
    GET /path HTTP/1.1\r\n            HTTP/1.1 200 OK\r\n
    Header: Value\r\n                 Header: Value\r\n
    \r\n                              \r\n
    [body]                            [body]

=============================================================================
"""

from .headers import Headers
from .mime_types import mime_type_for, set_mime_types, update_mime_types
from .request import HTTPParseError, Request, RequestParser, parse_request
from .response import (
    Response,
    binary,
    error_response,
    format_http_date,
    html,
    internal_error,
    json_response,
    not_found,
    redirect,
    text,
)

__all__ = [
    "Headers",
    # request
    "Request",
    "RequestParser",
    "HTTPParseError",
    "parse_request",
    # response
    "Response",
    "text",
    "html",
    "json_response",
    "binary",
    "redirect",
    "error_response",
    "not_found",
    "internal_error",
    "format_http_date",
    # mime
    "mime_type_for",
    "set_mime_types",
    "update_mime_types",
]
