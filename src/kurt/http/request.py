"""
=============================================================================
HTTP REQUEST
=============================================================================

The Request value handed to every handler, and the parser that builds it
from the raw bytes a Connection reads off the socket.

    Raw bytes                   Request                    Handler
    from socket   ──parse──►    (frozen)     ──dispatch──► callable
                                                                │
    b"GET /a?x=1 HTTP/1.1\r\n   Request(                        ▼
      Host: ...\r\n\r\n"          method="GET",            Response
                                  path="/a",
                                  query_params={"x": ["1"]},
                                  headers=Headers(...),
                                  body=b"")

A Request is immutable once the transport layer has built it. The only
derived copy is made by the Dispatcher, which fills in path_params when a
wildcard route matches (dataclasses.replace, never in-place mutation).

=============================================================================
REQUEST LINE
=============================================================================

    METHOD SP REQUEST-TARGET SP HTTP-VERSION

Methods are HTTP tokens of any case ("get" is accepted, the router
compares case-insensitively). Unknown methods are not rejected here: a
method nobody registered simply falls through to the default handler.

=============================================================================
"""

import json
import re
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import parse_qs, unquote

from .headers import Headers


class HTTPParseError(Exception):
    """
    Raised when a raw request cannot be parsed.

    Carries the status code the connection should answer with:

        400 Bad Request                 - malformed syntax
        413 Payload Too Large           - request exceeds the size limit
        505 HTTP Version Not Supported  - not HTTP/1.0 or HTTP/1.1
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def split_target(target: str) -> Tuple[str, Dict[str, List[str]]]:
    """
    Split a request target into a decoded path and its query parameters.

        "/users?page=1&tag=a&tag=b" → ("/users", {"page": ["1"], "tag": ["a", "b"]})

    The target is origin-form, so a leading "//" is part of the path and
    never an authority.
    """
    raw_path, _, query = target.partition("#")[0].partition("?")
    path = unquote(raw_path) or "/"
    return path, parse_qs(query, keep_blank_values=True)


@dataclass(frozen=True)
class Request:
    """
    A parsed HTTP request.

    Attributes:
        method:         Method as sent by the client (case preserved).
        path:           Decoded path without the query string.
        version:        "HTTP/1.1" or "HTTP/1.0".
        headers:        Read-only ordered multimap (case-insensitive).
        query_params:   Query string as name → list of values.
        body:           Raw body bytes (Content-Length delimited).
        path_params:    Filled by the Dispatcher for wildcard routes.
        client_address: (ip, port) of the peer.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Headers = field(default_factory=lambda: Headers(frozen=True))
    query_params: Dict[str, List[str]] = field(default_factory=dict)
    body: bytes = b""
    path_params: Dict[str, str] = field(default_factory=dict)
    client_address: Tuple[str, int] = ("", 0)

    def __post_init__(self):
        # Accept plain dicts and str bodies for convenience, store them frozen.
        if not isinstance(self.headers, Headers) or not self.headers.frozen:
            object.__setattr__(self, "headers", Headers(self.headers, frozen=True))
        if isinstance(self.body, str):
            object.__setattr__(self, "body", self.body.encode("utf-8"))

    @classmethod
    def from_target(
        cls,
        method: str,
        target: str,
        headers: Union[Headers, dict, None] = None,
        body: Union[bytes, str] = b"",
        **kwargs: Any,
    ) -> "Request":
        """Build a Request from a raw target, deriving path and query params."""
        path, query_params = split_target(target)
        return cls(
            method=method,
            path=path,
            headers=headers if headers is not None else Headers(frozen=True),
            query_params=query_params,
            body=body,
            **kwargs,
        )

    # =========================================================================
    # CONVENIENCE ACCESSORS
    # =========================================================================

    @property
    def content_type(self) -> Optional[str]:
        """Content-Type without parameters, lower-cased."""
        value = self.headers.get("content-type", "")
        return value.split(";")[0].strip().lower() or None

    @property
    def content_length(self) -> int:
        try:
            return int(self.headers.get("content-length", "0"))
        except ValueError:
            return 0

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @cached_property
    def json(self) -> Any:
        """
        The body decoded as JSON (None for an empty body).

        Raises:
            HTTPParseError: If the body is not valid JSON.
        """
        if not self.body:
            return None
        try:
            return json.loads(self.body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise HTTPParseError(f"Invalid JSON body: {e}")

    @property
    def is_keep_alive(self) -> bool:
        """
        HTTP/1.1 keeps the connection open unless told "close";
        HTTP/1.0 closes it unless told "keep-alive".
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        return self.headers.get(name, default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter."""
        values = self.query_params.get(name)
        return values[0] if values else default

    def get_query_list(self, name: str) -> List[str]:
        return list(self.query_params.get(name, []))


class RequestParser:
    """
    Parses one complete raw request (as returned by Connection.read_request)
    into a Request.

        1. size check                     → 413
        2. split head / body at CRLFCRLF  → 400 if missing
        3. request line                   → 400 / 505
        4. header lines                   → Headers (order kept)
        5. body, cut to Content-Length    → 400 if short
    """

    # RFC 7230 token characters
    REQUEST_LINE_PATTERN = re.compile(
        r"^([!#$%&'*+.^_`|~0-9A-Za-z-]+) (\S+) (HTTP/\d\.\d)$"
    )
    HEADER_PATTERN = re.compile(r"^([^:\s]+):\s*(.*?)\s*$")

    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(self, data: bytes, client_address: Tuple[str, int] = ("", 0)) -> Request:
        if len(data) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(data)} bytes", status_code=413)

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        # Header bytes are ISO-8859-1 on the wire; decoding that way never fails.
        head = data[:header_end].decode("latin-1")
        body = data[header_end + 4:]

        lines = head.split("\r\n")
        method, target, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", "0"))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")
        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length header")
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        path, query_params = split_target(target)
        if ".." in path.split("/"):
            raise HTTPParseError("Invalid path: contains ..")

        return Request(
            method=method,
            path=path,
            version=version,
            headers=headers.copy(frozen=True),
            query_params=query_params,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> Tuple[str, str, str]:
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = match.groups()
        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)
        if not target.startswith("/"):
            raise HTTPParseError(f"Unsupported request target: {target!r}")
        return method, target, version

    def _parse_headers(self, lines: List[str]) -> Headers:
        headers = Headers()
        for line in lines:
            if not line:
                continue
            if line[0] in " \t":
                # obs-fold continuation lines are rejected by RFC 7230 §3.2.4
                raise HTTPParseError("Obsolete header line folding")
            match = self.HEADER_PATTERN.match(line)
            if not match:
                raise HTTPParseError(f"Malformed header line: {line!r}")
            headers.add(*match.groups())
        return headers


def parse_request(
    data: bytes,
    client_address: Tuple[str, int] = ("", 0),
    max_size: int = 10 * 1024 * 1024,
) -> Request:
    """One-shot helper around RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
