"""
=============================================================================
TCP LISTENER
=============================================================================

Owns the listening socket and the accept loop. Knows nothing about HTTP:
each accepted socket is wrapped in a Connection and handed to a callback.

    bind(address, port)  ──►  0 or errno        (never raises)
          │
          ▼
    serve(callback)      ──►  accept loop, blocks until shutdown()
          │
          └──► callback(Connection)   (HTTP layer submits to a pool)

The listening socket uses a 1 second accept timeout so the loop can notice
shutdown() without another thread having to close the socket under it.

=============================================================================
ERRORS
=============================================================================

    bind():   OSError → its errno (EADDRINUSE, EACCES, ...)
              unresolvable address / port out of range → EINVAL
    serve():  transient accept errors (ECONNABORTED, EINTR, EMFILE, ...)
              are logged and the loop continues; anything else is logged
              and raised. A failed accept is not retried.

=============================================================================
"""

import errno
import logging
import signal
import socket
import threading
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from ..errors import BindError
from .connection import Connection


logger = logging.getLogger(__name__)

TRANSIENT_ACCEPT_ERRORS = frozenset(
    code for code in (
        getattr(errno, "ECONNABORTED", None),
        getattr(errno, "EINTR", None),
        getattr(errno, "EAGAIN", None),
        getattr(errno, "EMFILE", None),
        getattr(errno, "ENFILE", None),
        getattr(errno, "ENOBUFS", None),
        getattr(errno, "ENOMEM", None),
        getattr(errno, "EPROTO", None),
    ) if code is not None
)


class SocketServer:
    """
    Low-level listener.

        server = SocketServer(config)
        status = server.bind("127.0.0.1", 8080)
        if status == 0:
            server.serve(handle_connection)    # blocks
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self._socket: Optional[socket.socket] = None
        self._address: Optional[Tuple[str, int]] = None
        self._running = False
        self._stopped = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_bound(self) -> bool:
        return self._socket is not None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        """Actual (host, port) bound, with port 0 resolved by the OS."""
        return self._address

    # =========================================================================
    # BIND
    # =========================================================================

    def bind(self, address: str, port: int) -> int:
        """
        Create, bind and listen on a socket.

        Returns:
            0 on success, otherwise an errno value. A previously bound
            socket is released only once the new one is listening; a failed
            bind leaves it in place.
        """
        try:
            sock, bound = self._open(address, port)
        except BindError as e:
            logger.error("%s", e)
            return e.errno
        previous = self._socket
        self._socket, self._address = sock, bound
        if previous is not None:
            previous.close()
        logger.info("Bound to %s:%d", *self._address)
        return 0

    def _open(self, address: str, port: int) -> Tuple[socket.socket, Tuple[str, int]]:
        if isinstance(port, bool) or not isinstance(port, int) or not 0 <= port <= 65535:
            raise BindError(str(address), port, errno.EINVAL)
        if not isinstance(address, str):
            raise BindError(str(address), port, errno.EINVAL)

        try:
            infos = socket.getaddrinfo(
                address or None, port, socket.AF_UNSPEC, socket.SOCK_STREAM,
                0, socket.AI_PASSIVE,
            )
        except (socket.gaierror, UnicodeError, ValueError):
            raise BindError(address, port, errno.EINVAL)

        family, socktype, proto, _, sockaddr = infos[0]
        sock = socket.socket(family, socktype, proto)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            sock.bind(sockaddr)
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            raise BindError.from_os_error(address, port, e)

        sock.settimeout(1.0)
        bound = sock.getsockname()
        return sock, (bound[0], bound[1])

    # =========================================================================
    # ACCEPT LOOP
    # =========================================================================

    def serve(self, on_connection: Callable[[Connection], None]) -> None:
        """
        Accept connections until shutdown().

        Raises:
            BindError: If bind() has not succeeded.
            OSError:   On a non-transient accept failure.
        """
        if self._socket is None:
            raise BindError(self.config.host, self.config.port, errno.ENOTCONN)

        self._running = True
        self._stopped.clear()
        self._install_signal_handlers()
        logger.info("Listening on http://%s:%d", *self._address)
        try:
            self._accept_loop(on_connection)
        finally:
            self._running = False
            self._restore_signal_handlers()
            self.close()
            self._stopped.set()
            logger.info("Listener stopped")

    def _accept_loop(self, on_connection: Callable[[Connection], None]) -> None:
        while self._running:
            try:
                client, peer = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._running:
                    break
                if e.errno in TRANSIENT_ACCEPT_ERRORS:
                    logger.warning("Transient accept error: %s", e)
                    continue
                logger.error("Accept failed: %s", e)
                raise

            logger.debug("Accepted connection from %s:%s", peer[0], peer[1])
            conn = Connection(
                sock=client,
                address=(peer[0], peer[1]),
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            on_connection(conn)

    def shutdown(self) -> None:
        """Ask the accept loop to stop. Safe from any thread, idempotent."""
        if self._running:
            logger.info("Shutting down listener...")
        self._running = False

    def wait_stopped(self, timeout: Optional[float] = None) -> bool:
        return self._stopped.wait(timeout)

    def close(self) -> None:
        if self._socket is not None:
            self._socket.close()
            self._socket = None

    # =========================================================================
    # SIGNALS
    # =========================================================================

    def _install_signal_handlers(self) -> None:
        # signal.signal() only works in the main thread; embedded servers
        # running in a background thread are stopped through shutdown().
        if threading.current_thread() is not threading.main_thread():
            return

        def on_signal(signum, frame):
            logger.info("Received %s, shutting down", signal.Signals(signum).name)
            self.shutdown()

        for sig in (signal.SIGINT, signal.SIGTERM):
            self._original_handlers[sig] = signal.signal(sig, on_signal)

    def _restore_signal_handlers(self) -> None:
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()
