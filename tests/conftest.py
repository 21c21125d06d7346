"""
pytest configuration and fixtures.
"""

import socket
import sys
import threading
import time
from pathlib import Path
from typing import Dict, Generator, Optional, Tuple

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from kurt import DefaultDelegate, Kurt, ServerConfig, serve_static
from kurt.http import Request, json_response, text
from kurt.http.mime_types import reset_mime_types


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /api/users?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = b'{"name": "John", "email": "john@example.com"}'
    return (
        b"POST /api/users HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def config() -> ServerConfig:
    """Small, fast test configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        keep_alive_timeout=1.0,
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture(autouse=True)
def reset_globals() -> Generator[None, None, None]:
    """Undo process-wide state between tests."""
    yield
    Kurt.reset_instance()
    Kurt.set_verbose(False)
    reset_mime_types()


class RunningServer:
    """A Kurt server running its accept loop in a background thread."""

    def __init__(self, kurt: Kurt):
        self.kurt = kurt
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.kurt.address[1]

    def start(self) -> "RunningServer":
        self._thread = threading.Thread(target=self.kurt.run, daemon=True)
        self._thread.start()
        for _ in range(50):  # 5 seconds max
            if self.kurt.is_running:
                return self
            time.sleep(0.1)
        raise RuntimeError("Server failed to start")

    def stop(self) -> None:
        self.kurt.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def send(self, data: bytes, timeout: float = 5.0) -> bytes:
        """Send raw bytes and read until the server closes the connection."""
        with socket.create_connection(("127.0.0.1", self.port), timeout=timeout) as s:
            s.sendall(data)
            chunks = []
            while True:
                chunk = s.recv(65536)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)

    def request(self, method: str, path: str) -> Tuple[int, Dict[str, str], bytes]:
        raw = self.send(
            f"{method} {path} HTTP/1.1\r\nHost: localhost\r\nConnection: close\r\n\r\n".encode()
        )
        return split_response(raw)


def split_response(raw: bytes) -> Tuple[int, Dict[str, str], bytes]:
    """(status, lower-cased headers, body) of one raw response."""
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    status = int(lines[0].split(" ", 2)[1])
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip().lower()] = value.strip()
    return status, headers, body


@pytest.fixture
def running_server(config: ServerConfig, tmp_path: Path) -> Generator[RunningServer, None, None]:
    """A bound, running server with a handful of routes."""
    (tmp_path / "hello.txt").write_text("hello file")

    kurt = Kurt(config)
    delegate = DefaultDelegate()
    kurt.set_delegate(delegate)

    def boom(request: Request):
        raise RuntimeError("handler exploded")

    delegate.add_handler("GET", "/hello", lambda request: text("hello"))
    delegate.add_handler("POST", "/echo", lambda request: json_response({"received": request.json}))
    delegate.add_handler("GET", "/fail", boom)
    delegate.add_handler("GET", "/files/*path", serve_static(tmp_path, "path"))
    delegate.set_default_handler(lambda request: text("fallback", 404))

    assert kurt.bind("127.0.0.1", 0) == 0
    server = RunningServer(kurt).start()
    yield server
    server.stop()
    kurt.close()
