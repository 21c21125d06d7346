"""
Unit tests for the route table.
"""

import threading

import pytest

from kurt.errors import InvalidPatternError
from kurt.routing import RouteTable, parse_pattern


def handler_a(request):
    return "a"


def handler_b(request):
    return "b"


def handler_c(request):
    return "c"


class TestRegistration:
    """Tests for RouteTable.register()."""

    def test_register_and_match_exact(self):
        """An exact route matches its own path."""
        table = RouteTable()
        table.register("GET", "/about", handler_a)

        assert table.match("GET", "/about") is handler_a
        assert len(table) == 1

    def test_duplicate_registration_overwrites(self):
        """Registering the same method and path again keeps only the last handler."""
        table = RouteTable()
        table.register("GET", "/x", handler_a)
        table.register("GET", "/y", handler_c)
        table.register("GET", "/x", handler_b)

        assert table.match("GET", "/x") is handler_b
        assert len(table) == 2
        assert [r.pattern for r in table.routes()] == ["/x", "/y"]

    def test_method_stored_upper_case(self):
        """Methods are normalized when stored."""
        table = RouteTable()
        route = table.register("post", "/items", handler_a)

        assert route.method == "POST"

    @pytest.mark.parametrize("pattern", [
        "",
        "about",
        "/a b",
        "/a\tb",
        "/static*",
        "/*/x",
        "/a/**",
        "/files/*bad-name",
    ])
    def test_invalid_patterns_rejected(self, pattern):
        """Malformed paths raise InvalidPatternError."""
        table = RouteTable()
        with pytest.raises(InvalidPatternError):
            table.register("GET", pattern, handler_a)
        assert len(table) == 0

    @pytest.mark.parametrize("method", ["", "GE T", "GET/1", "(GET)"])
    def test_invalid_methods_rejected(self, method):
        """Empty or non-token methods raise InvalidPatternError."""
        with pytest.raises(InvalidPatternError):
            RouteTable().register(method, "/", handler_a)

    def test_invalid_pattern_is_value_error(self):
        """InvalidPatternError can be caught as ValueError."""
        with pytest.raises(ValueError):
            RouteTable().register("GET", "no-slash", handler_a)

    def test_non_callable_handler_rejected(self):
        with pytest.raises(TypeError):
            RouteTable().register("GET", "/", "not a handler")

    def test_parse_pattern(self):
        """parse_pattern splits prefix and wildcard name."""
        assert parse_pattern("get", "/a") == ("GET", "/a", None)
        assert parse_pattern("GET", "/static/*") == ("GET", "/static/", "*")
        assert parse_pattern("GET", "/static/*path") == ("GET", "/static/", "path")
        assert parse_pattern("GET", "/*") == ("GET", "/", "*")


class TestMatching:
    """Tests for match() and resolve()."""

    def test_longest_prefix_wins(self):
        """The route with the longest literal prefix is chosen."""
        table = RouteTable()
        table.register("GET", "/static/*", handler_a)
        table.register("GET", "/static/img/*", handler_b)

        assert table.match("GET", "/static/img/x.png") is handler_b
        assert table.match("GET", "/static/css/site.css") is handler_a

    def test_longest_prefix_wins_regardless_of_order(self):
        table = RouteTable()
        table.register("GET", "/static/img/*", handler_b)
        table.register("GET", "/static/*", handler_a)

        assert table.match("GET", "/static/img/x.png") is handler_b

    def test_exact_beats_prefix(self):
        """An exact route wins over a prefix route that also matches."""
        table = RouteTable()
        table.register("GET", "/api/*", handler_a)
        table.register("GET", "/api/status", handler_b)

        assert table.match("GET", "/api/status") is handler_b
        assert table.match("GET", "/api/other") is handler_a

    def test_other_method_never_matches(self):
        """A route registered for GET does not answer POST."""
        table = RouteTable()
        table.register("GET", "/items", handler_a)
        table.register("GET", "/files/*", handler_b)

        assert table.match("POST", "/items") is None
        assert table.match("POST", "/files/a") is None

    def test_method_case_insensitive(self):
        """Methods compare case-insensitively in both directions."""
        table = RouteTable()
        table.register("get", "/a", handler_a)

        assert table.match("GET", "/a") is handler_a
        assert table.match("Get", "/a") is handler_a

    def test_path_case_sensitive(self):
        """Paths compare case-sensitively."""
        table = RouteTable()
        table.register("GET", "/About", handler_a)

        assert table.match("GET", "/About") is handler_a
        assert table.match("GET", "/about") is None

    def test_trailing_slash_significant(self):
        """/a and /a/ are different paths."""
        table = RouteTable()
        table.register("GET", "/a", handler_a)

        assert table.match("GET", "/a/") is None

    def test_prefix_requires_full_prefix(self):
        """/static/* does not match /static itself."""
        table = RouteTable()
        table.register("GET", "/static/*", handler_a)

        assert table.match("GET", "/static") is None
        assert table.match("GET", "/static/") is handler_a

    def test_resolve_returns_remainder(self):
        """resolve() exposes the part of the path after the prefix."""
        table = RouteTable()
        table.register("GET", "/files/*path", handler_a)

        found = table.resolve("GET", "/files/docs/readme.txt")
        assert found.remainder == "docs/readme.txt"
        assert found.path_params == {"path": "docs/readme.txt"}

    def test_resolve_exact_has_no_params(self):
        table = RouteTable()
        table.register("GET", "/a", handler_a)

        assert table.resolve("GET", "/a").path_params == {}

    def test_no_match_returns_none(self):
        assert RouteTable().match("GET", "/") is None


class TestDefaultHandler:
    """Tests for the default handler slot."""

    def test_default_is_separate_from_routes(self):
        table = RouteTable()
        table.set_default(handler_a)

        assert table.default is handler_a
        assert len(table) == 0
        assert table.match("GET", "/anything") is None

    def test_set_default_replaces(self):
        table = RouteTable()
        table.set_default(handler_a)
        table.set_default(handler_b)

        assert table.default is handler_b

    def test_registering_keeps_default(self):
        table = RouteTable()
        table.set_default(handler_a)
        table.register("GET", "/", handler_b)

        assert table.default is handler_a

    def test_clear(self):
        table = RouteTable()
        table.register("GET", "/", handler_a)
        table.set_default(handler_b)
        table.clear()

        assert len(table) == 0
        assert table.default is None


class TestConcurrency:
    """Reads during writes always see a consistent table."""

    def test_concurrent_matches_are_consistent(self):
        """Readers racing a writer always get a handler that was registered."""
        table = RouteTable()
        table.register("GET", "/stable", handler_a)
        errors = []
        stop = threading.Event()

        def reader():
            while not stop.is_set():
                if table.match("GET", "/stable") is not handler_a:
                    errors.append("lost /stable")

        def writer():
            for i in range(300):
                table.register("GET", f"/dyn/{i}", handler_b)
                table.register("GET", f"/pre{i}/*", handler_c)

        readers = [threading.Thread(target=reader) for _ in range(4)]
        for t in readers:
            t.start()
        writer()
        stop.set()
        for t in readers:
            t.join(timeout=5)

        assert errors == []
        assert len(table) == 601
        assert table.match("GET", "/pre299/x") is handler_c
