"""
=============================================================================
HTTP RESPONSE
=============================================================================

What a handler gives back, and how it becomes bytes on the wire.

    Handler returns        to_bytes()                 Connection
    Response     ─────►    serializes     ─────►      sendall()
        │                      │
    Response(               b"HTTP/1.1 200 OK\r\n
      status_code=200,        Content-Type: text/plain\r\n
      headers=Headers(...),   Content-Length: 5\r\n
      body=b"hello")          Date: ...\r\n
                              Server: Kurt/1.0\r\n
                              \r\n
                              hello"

Headers are an ordered multimap, so a handler can send several Set-Cookie
lines and they go out in the order they were added. Serialization only
ever ADDS missing Content-Length, Date and Server fields; it never touches
what the handler set.

=============================================================================
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Optional, Union

from .headers import Headers


SERVER_NAME = "Kurt/1.0"


def reason_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Unknown"


def format_http_date(dt: Optional[datetime] = None) -> str:
    """
    Format a datetime as an RFC 7231 HTTP-date, always in GMT.

        Wed, 01 Jan 2026 12:00:00 GMT
    """
    if dt is None:
        dt = datetime.now(timezone.utc)
    elif dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)

    days = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
    months = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
    return (
        f"{days[dt.weekday()]}, {dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


@dataclass
class Response:
    """
    An HTTP response.

    Attributes:
        status_code: Numeric status (200, 404, ...).
        headers:     Ordered multimap; a plain dict is converted.
        body:        Body bytes; a str is encoded as UTF-8.
        version:     Protocol version used in the status line.
    """

    status_code: int = 200
    headers: Headers = field(default_factory=Headers)
    body: bytes = b""
    version: str = "HTTP/1.1"

    def __post_init__(self):
        if not isinstance(self.headers, Headers) or self.headers.frozen:
            self.headers = Headers(self.headers)
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")
        self.status_code = int(self.status_code)

    @property
    def reason(self) -> str:
        return reason_phrase(self.status_code)

    @property
    def status_line(self) -> str:
        return f"{self.version} {self.status_code} {self.reason}"

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("Content-Type")

    def set_header(self, name: str, value: str) -> "Response":
        """Replace *name* with a single value. Returns self for chaining."""
        self.headers[name] = value
        return self

    def add_header(self, name: str, value: str) -> "Response":
        self.headers.add(name, value)
        return self

    def to_bytes(self, server_name: str = SERVER_NAME) -> bytes:
        headers = self.headers.copy()

        # A client needs Content-Length to know where the body ends on a
        # kept-alive connection.
        headers.setdefault("Content-Length", str(len(self.body)))
        headers.setdefault("Date", format_http_date())
        headers.setdefault("Server", server_name)

        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in headers.items())
        head = "\r\n".join(lines) + "\r\n\r\n"
        return head.encode("latin-1", errors="replace") + self.body


# =============================================================================
# CONVENIENCE CONSTRUCTORS
# =============================================================================
#
#     return text("pong")
#     return json_response({"id": 7}, status_code=201)
#     return redirect("/login")
#
# =============================================================================

def text(body: str, status_code: int = 200,
         content_type: str = "text/plain; charset=utf-8") -> Response:
    return Response(status_code, Headers({"Content-Type": content_type}), body)


def html(body: str, status_code: int = 200) -> Response:
    return text(body, status_code, content_type="text/html; charset=utf-8")


def json_response(data: Any, status_code: int = 200, pretty: bool = False) -> Response:
    """Serialize *data* as a JSON body (non-serializable values fall back to str)."""
    body = json.dumps(data, indent=2 if pretty else None, default=str)
    return Response(status_code, Headers({"Content-Type": "application/json"}), body)


def binary(body: bytes, status_code: int = 200,
           content_type: str = "application/octet-stream") -> Response:
    return Response(status_code, Headers({"Content-Type": content_type}), body)


def redirect(location: str, permanent: bool = False) -> Response:
    status_code = 301 if permanent else 302
    response = text(f"Redirecting to {location}", status_code)
    response.set_header("Location", location)
    return response


def no_content() -> Response:
    return Response(204)


def not_modified(etag: Optional[str] = None) -> Response:
    response = Response(304)
    if etag:
        response.set_header("ETag", etag)
    return response


def error_response(status_code: int, message: Optional[str] = None) -> Response:
    """Plain-text error body: "<code> <reason>" or a custom message."""
    return text(message or f"{status_code} {reason_phrase(status_code)}", status_code)


def bad_request(message: str = "Bad Request") -> Response:
    return error_response(400, message)


def forbidden(message: str = "Forbidden") -> Response:
    return error_response(403, message)


def not_found(message: str = "Not Found") -> Response:
    return error_response(404, message)


def internal_error(message: str = "Internal Server Error") -> Response:
    return error_response(500, message)


def service_unavailable(message: str = "Service Unavailable") -> Response:
    response = error_response(503, message)
    response.set_header("Retry-After", "1")
    return response


def coerce_body(value: Union[str, bytes, dict, list]) -> Response:
    """
    Turn a bare handler return value into a 200 response.

        str        → text/html; charset=utf-8
        bytes      → application/octet-stream
        dict/list  → application/json

    Raises:
        TypeError: For any other type.
    """
    if isinstance(value, str):
        return html(value)
    if isinstance(value, (bytes, bytearray)):
        return binary(bytes(value))
    if isinstance(value, (dict, list)):
        return json_response(value)
    raise TypeError(f"handler returned {type(value).__name__}, expected a Response")
