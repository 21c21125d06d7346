"""
=============================================================================
KURT SERVER
=============================================================================

One Kurt per process: it owns the listening socket, the worker pool and
the Dispatcher, and talks to a delegate for everything site-specific.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        LIFECYCLE                                    │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   kurt = Kurt.instance()              lazily created, cached        │
    │   kurt.set_delegate(MyDelegate())     routes get registered         │
    │   status = kurt.bind("0.0.0.0", 80)   0 or errno, never raises      │
    │   kurt.run()                          on_launch() once, then serve  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE (worker thread)
=============================================================================

    Connection.read_request()  ──►  RequestParser.parse()
          │ timeout → 408               │ malformed → 400/413/505
          ▼                             ▼
    delegate.handle(request)  (or Dispatcher.handle without a delegate)
          │ raises → 500, logged, loop continues
          ▼
    Response.to_bytes()  ──►  Connection.send()
          │
          └── keep-alive? read the next request : close

A failing handler only ever affects its own response.

=============================================================================
"""

import errno
import logging
import threading
from dataclasses import replace
from typing import Mapping, Optional, Tuple

from .config import ServerConfig
from .core import Connection, SocketServer, ThreadPool
from .delegate import KurtDelegate
from .dispatcher import Dispatcher
from .errors import BindError
from .http import mime_types as _mime
from .http.request import HTTPParseError, Request, RequestParser
from .http.response import Response, error_response, internal_error, service_unavailable


logger = logging.getLogger(__name__)
access_logger = logging.getLogger("kurt.access")
access_logger.setLevel(logging.WARNING)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO") -> None:
    """basicConfig for the process; a no-op if logging is already set up."""
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
    logging.getLogger("kurt").setLevel(numeric)


class Kurt:
    """The embedded HTTP server."""

    _instance: Optional["Kurt"] = None
    _instance_lock = threading.Lock()
    _verbose = False

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.dispatcher = Dispatcher()
        self._listener = SocketServer(self.config)
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._pool: Optional[ThreadPool] = None
        self._launch_lock = threading.Lock()
        self._launched = False
        self._running = False

    # =========================================================================
    # PROCESS-WIDE INSTANCE
    # =========================================================================

    @classmethod
    def instance(cls, config: Optional[ServerConfig] = None) -> "Kurt":
        """
        The process-wide server, created on first use.

        *config* only applies to the call that creates the instance.
        """
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls(config)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Stop and forget the process-wide server (tests, embedders)."""
        with cls._instance_lock:
            current, cls._instance = cls._instance, None
        if current is not None:
            current.shutdown()
            current.close()

    # =========================================================================
    # CLASS-LEVEL SETTINGS
    # =========================================================================

    @classmethod
    def set_verbose(cls, verbose: bool) -> None:
        """Turn per-request access logging (logger "kurt.access") on or off."""
        cls._verbose = bool(verbose)
        access_logger.setLevel(logging.INFO if cls._verbose else logging.WARNING)

    @classmethod
    def verbose(cls) -> bool:
        return cls._verbose

    @classmethod
    def mime_types(cls) -> Mapping[str, str]:
        return _mime.mime_types()

    @classmethod
    def set_mime_types(cls, mapping: Mapping[str, str]) -> None:
        _mime.set_mime_types(mapping)

    @classmethod
    def mime_type_for(cls, filename: str) -> str:
        return _mime.mime_type_for(filename)

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def set_delegate(self, delegate: Optional[KurtDelegate]) -> None:
        self.dispatcher.set_delegate(delegate)

    @property
    def delegate(self) -> Optional[KurtDelegate]:
        return self.dispatcher.delegate

    @property
    def routes(self):
        return self.dispatcher.routes

    def dump(self) -> str:
        return self.dispatcher.dump()

    def bind(self, address: str, port: int) -> int:
        """
        Bind the listening socket.

        Returns:
            0 on success, otherwise the errno describing the failure
            (EADDRINUSE, EACCES, EINVAL for a bad address or port).
        """
        status = self._listener.bind(address, port)
        if status == 0:
            self.config.host, self.config.port = self._listener.address
        return status

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        return self._listener.address

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # RUN
    # =========================================================================

    def launch(self) -> None:
        """Call the delegate's on_launch() exactly once per server."""
        with self._launch_lock:
            if self._launched:
                return
            self._launched = True
        delegate = self.delegate
        if delegate is not None:
            delegate.on_launch()

    def run(self) -> None:
        """
        Serve until shutdown() (or SIGINT/SIGTERM in the main thread).

        Raises:
            BindError: If bind() has not succeeded.
            OSError:   On an unrecoverable accept error.
        """
        if not self._listener.is_bound:
            raise BindError(self.config.host, self.config.port, errno.ENOTCONN)

        self.launch()
        self._pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )
        self._pool.start()
        self._running = True
        try:
            self._listener.serve(self._on_connection)
        finally:
            self._running = False
            self._pool.shutdown(wait=True)
            self._pool = None
            logger.info("Server stopped")

    def shutdown(self) -> None:
        """Stop accepting; run() returns within about a second."""
        self._running = False
        self._listener.shutdown()

    def wait_stopped(self, timeout: Optional[float] = None) -> bool:
        return self._listener.wait_stopped(timeout)

    def close(self) -> None:
        """Release the listening socket of a server that is not running."""
        if not self._listener.is_running:
            self._listener.close()

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _on_connection(self, conn: Connection) -> None:
        if not self._pool.submit(self._process_connection, conn):
            logger.warning("[%s] Worker queue full, rejecting connection", conn.id)
            self._send_error(conn, service_unavailable())
            conn.close()

    def _process_connection(self, conn: Connection) -> None:
        with conn:
            while self._running:
                try:
                    raw = conn.read_request()
                except TimeoutError:
                    self._send_error(conn, error_response(408))
                    return
                except HTTPParseError as e:
                    self._send_error(conn, error_response(e.status_code, str(e)))
                    return
                if raw is None:
                    return

                try:
                    request = self._parser.parse(raw, conn.address)
                except HTTPParseError as e:
                    logger.debug("[%s] Bad request: %s", conn.id, e)
                    self._send_error(conn, error_response(e.status_code, str(e)))
                    return

                # Handlers may return shared Response objects; connection
                # headers go on a per-request copy.
                response = self.respond(request)
                response = replace(response, headers=response.headers.copy())
                keep_alive = self.config.keep_alive and request.is_keep_alive and self._running
                if keep_alive:
                    response.headers.setdefault("Connection", "keep-alive")
                    response.headers.setdefault(
                        "Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}"
                    )
                else:
                    response.headers["Connection"] = "close"
                if request.method.upper() == "HEAD":
                    response = replace(response, body=b"")

                self._log_access(request, response)
                if not conn.send(response.to_bytes(self.config.server_name)):
                    return
                if not keep_alive or response.headers.get("Connection", "").lower() == "close":
                    return

    def respond(self, request: Request) -> Response:
        """
        Produce the response for one request. Never raises.

        The delegate's handle() is used when a delegate is set; its result
        goes through the same normalization as a route handler's.
        """
        delegate = self.delegate
        if delegate is None:
            return self.dispatcher.handle(request)
        try:
            return self.dispatcher.normalize(delegate.handle(request), request)
        except Exception:
            logger.exception("Delegate failed handling %s %s", request.method, request.path)
            return internal_error()

    def _send_error(self, conn: Connection, response: Response) -> None:
        response.set_header("Connection", "close")
        conn.send(response.to_bytes(self.config.server_name))

    def _log_access(self, request: Request, response: Response) -> None:
        access_logger.info(
            '%s "%s %s %s" %d %s',
            request.client_address[0] or "-",
            request.method,
            request.path,
            request.version,
            response.status_code,
            response.headers.get("Content-Length", "-"),
        )
