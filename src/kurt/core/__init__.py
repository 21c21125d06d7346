"""
=============================================================================
TRANSPORT
=============================================================================

The socket side of Kurt: everything below the request/response boundary.

    SocketServer   listening socket, bind status, accept loop
    Connection     buffered reads of whole requests, sendall, close
    ThreadPool     bounded workers that run one connection each

=============================================================================
"""

from .connection import Connection, ConnectionState
from .socket_server import SocketServer
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
]
