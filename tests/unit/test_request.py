"""
Unit tests for HTTP request parsing.
"""

import dataclasses

import pytest

from kurt.http.request import (
    HTTPParseError,
    Request,
    RequestParser,
    parse_request,
)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Test parsing a simple GET request."""
        request = RequestParser().parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/api/users"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)

    def test_parse_headers(self, sample_get_request: bytes):
        """Headers are available case-insensitively."""
        request = parse_request(sample_get_request)

        assert request.host == "localhost:8080"
        assert request.user_agent == "pytest"
        assert request.headers["accept"] == "application/json"
        assert request.is_keep_alive is True

    def test_parse_query_params(self, sample_get_request: bytes):
        """Query parameters are derived from the target."""
        request = parse_request(sample_get_request)

        assert request.query_params == {"page": ["1"], "limit": ["10"]}
        assert request.get_query("page") == "1"
        assert request.get_query("missing") is None
        assert request.get_query("missing", "default") == "default"

    def test_parse_post_with_body(self, sample_post_request: bytes):
        """POST bodies are cut to Content-Length and decodable as JSON."""
        request = parse_request(sample_post_request)

        assert request.method == "POST"
        assert request.content_type == "application/json"
        assert request.json == {"name": "John", "email": "john@example.com"}

    def test_parse_encoded_path_and_query(self):
        raw = b"GET /a%20b?q=hello%20world HTTP/1.1\r\nHost: test\r\n\r\n"
        request = parse_request(raw)

        assert request.path == "/a b"
        assert request.get_query("q") == "hello world"

    def test_double_slash_path_kept_literally(self):
        """A leading "//" is path, not an authority."""
        request = parse_request(b"GET //admin/panel?x=1 HTTP/1.1\r\nHost: test\r\n\r\n")

        assert request.path == "//admin/panel"
        assert request.get_query("x") == "1"

    def test_unknown_method_is_accepted(self):
        """Unregistered methods are left for the router to reject."""
        request = parse_request(b"PURGE /cache HTTP/1.1\r\n\r\n")
        assert request.method == "PURGE"

    def test_lower_case_method_preserved(self):
        request = parse_request(b"get / HTTP/1.1\r\n\r\n")
        assert request.method == "get"

    @pytest.mark.parametrize("raw", [
        b"GET\r\nHost: test\r\n\r\n",
        b"GET  / HTTP/1.1\r\n\r\n",
        b"GET http://example.com/ HTTP/1.1\r\n\r\n",
        b"GET / HTTP/1.1\r\nno-colon-here\r\n\r\n",
        b"GET / HTTP/1.1\r\nX-A: 1\r\n  folded\r\n\r\n",
        b"GET / HTTP/1.1\r\n",
    ])
    def test_malformed_requests_rejected(self, raw):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)
        assert exc_info.value.status_code == 400

    def test_parse_missing_headers(self):
        request = parse_request(b"GET / HTTP/1.1\r\n\r\n")

        assert request.path == "/"
        assert len(request.headers) == 0

    def test_parse_path_traversal_blocked(self):
        raw = b"GET /../../../etc/passwd HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)
        assert "path" in str(exc_info.value).lower()

    def test_parse_request_too_large(self):
        parser = RequestParser(max_request_size=100)
        raw = b"GET / HTTP/1.1\r\nX-Large: " + b"A" * 200 + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(raw)
        assert exc_info.value.status_code == 413

    def test_unsupported_version(self):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GET / HTTP/2.0\r\n\r\n")
        assert exc_info.value.status_code == 505

    def test_http_version_keep_alive_defaults(self):
        """HTTP/1.0 closes by default, HTTP/1.1 keeps alive."""
        assert parse_request(b"GET / HTTP/1.0\r\n\r\n").is_keep_alive is False
        assert parse_request(b"GET / HTTP/1.1\r\n\r\n").is_keep_alive is True
        assert parse_request(
            b"GET / HTTP/1.0\r\nConnection: keep-alive\r\n\r\n"
        ).is_keep_alive is True
        assert parse_request(
            b"GET / HTTP/1.1\r\nConnection: close\r\n\r\n"
        ).is_keep_alive is False

    def test_content_length_handling(self):
        raw = b"POST / HTTP/1.1\r\nContent-Length: 9\r\n\r\ntest body"
        request = parse_request(raw)

        assert request.content_length == 9
        assert request.body == b"test body"

    def test_short_body_rejected(self):
        raw = b"POST / HTTP/1.1\r\nContent-Length: 50\r\n\r\nshort"
        with pytest.raises(HTTPParseError):
            parse_request(raw)

    def test_invalid_content_length_rejected(self):
        raw = b"POST / HTTP/1.1\r\nContent-Length: lots\r\n\r\n"
        with pytest.raises(HTTPParseError):
            parse_request(raw)

    def test_repeated_headers_kept(self):
        raw = b"GET / HTTP/1.1\r\nX-Tag: a\r\nx-tag: b\r\n\r\n"
        request = parse_request(raw)

        assert request.headers.get_list("X-Tag") == ["a", "b"]


class TestRequest:
    """Tests for the Request value."""

    def test_is_frozen(self):
        request = Request("GET", "/")
        with pytest.raises(dataclasses.FrozenInstanceError):
            request.path = "/other"

    def test_headers_are_read_only(self):
        request = Request("GET", "/", headers={"X-A": "1"})

        assert request.headers["x-a"] == "1"
        with pytest.raises(TypeError):
            request.headers["X-B"] = "2"

    def test_str_body_encoded(self):
        assert Request("POST", "/", body="hé").body == "hé".encode("utf-8")

    def test_from_target(self):
        request = Request.from_target("GET", "/search?tag=a&tag=b")

        assert request.path == "/search"
        assert request.get_query_list("tag") == ["a", "b"]
        assert request.get_query("tag") == "a"

    def test_get_header_default(self):
        request = Request(method="GET", path="/")

        assert request.get_header("X-Missing") == ""
        assert request.get_header("X-Missing", "default") == "default"

    def test_invalid_json_body(self):
        request = Request("POST", "/", body=b"{not json")
        with pytest.raises(HTTPParseError):
            request.json

    def test_empty_json_body_is_none(self):
        assert Request("POST", "/").json is None
