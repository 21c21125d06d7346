"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps one accepted socket. TCP hands us bytes in arbitrary chunks; a
Connection buffers them until one full HTTP request is available:

    1. recv() until the buffer holds "\r\n\r\n" (end of headers)
    2. read Content-Length from the raw header block
    3. recv() until the body is complete
    4. cut that request off the front of the buffer; anything after it
       is the start of the next pipelined request and stays buffered

Keep-alive: the first request may take `timeout` seconds to arrive; each
later one must arrive within `keep_alive_timeout` or the connection is
quietly closed.

    NEW ──► READING ──► WRITING ──► (next request) ──► READING ...
              │                         │
              └──────► CLOSED ◄─────────┘

=============================================================================
"""

import logging
import re
import socket
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from ..http.request import HTTPParseError


logger = logging.getLogger(__name__)

CONTENT_LENGTH = re.compile(rb"^content-length:\s*(\d+)\s*$", re.IGNORECASE | re.MULTILINE)


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    WRITING = "writing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client socket plus its read buffer.

    Attributes:
        sock:             The accepted socket.
        address:          Peer (ip, port).
        id:               Short random id used in log lines.
        requests_handled: Complete requests read so far.
    """

    sock: socket.socket
    address: Tuple[str, int]
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.monotonic)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.sock.setblocking(True)
        self.sock.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        return time.monotonic() - self.created_at

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete raw request.

        Returns:
            The request bytes, or None when the client closed the
            connection or an idle keep-alive connection timed out.

        Raises:
            TimeoutError:   The first request did not arrive in time.
            HTTPParseError: The request exceeds max_request_size (413).
        """
        self.state = ConnectionState.READING
        if self.requests_handled > 0:
            self.sock.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                if not self._fill():
                    return None

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            match = CONTENT_LENGTH.search(self._buffer[:header_end])
            content_length = int(match.group(1)) if match else 0
            if body_start + content_length > self.max_request_size:
                raise HTTPParseError(
                    f"Request too large: {body_start + content_length} bytes",
                    status_code=413,
                )

            while len(self._buffer) < body_start + content_length:
                if not self._fill():
                    # Client hung up mid-body; hand back what we have and
                    # let the parser report the short body.
                    break

            request_end = body_start + content_length
            data, self._buffer = self._buffer[:request_end], self._buffer[request_end:]
            self.requests_handled += 1
            return data

        except socket.timeout:
            if self.requests_handled > 0 and not self._buffer:
                logger.debug("[%s] Keep-alive timeout", self.id)
                return None
            raise TimeoutError("Request read timeout")
        finally:
            if self.state != ConnectionState.CLOSED:
                self.sock.settimeout(self.timeout)

    def _fill(self) -> bool:
        """recv() one chunk into the buffer. False on EOF or reset."""
        try:
            chunk = self.sock.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return False
        if not chunk:
            return False
        self._buffer += chunk
        if len(self._buffer) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(self._buffer)} bytes", status_code=413)
        return True

    def send(self, data: bytes) -> bool:
        """sendall() the bytes. False if the peer is gone."""
        self.state = ConnectionState.WRITING
        try:
            self.sock.sendall(data)
            return True
        except OSError as e:
            logger.debug("[%s] Send failed: %s", self.id, e)
            return False

    def close(self) -> None:
        """
        Half-close, drain briefly, then release the socket.

        Sending FIN before close() lets the client read the last response
        even if it still had unread request bytes in flight.
        """
        if self.state == ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSED
        try:
            self.sock.shutdown(socket.SHUT_WR)
            self.sock.settimeout(0.5)
            while self.sock.recv(1024):
                pass
        except OSError:
            # socket.timeout is an OSError; the peer may already be gone
            logger.debug("[%s] Peer gone during close", self.id)
        finally:
            self.sock.close()

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
