"""
=============================================================================
KURT ERRORS
=============================================================================

Every error Kurt raises derives from KurtError, so embedders can catch the
whole family with one except clause.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       ERROR TAXONOMY                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   STARTUP (fatal, startup stops)                                    │
    │     BindError              address in use, permission denied, ...   │
    │     InvalidPatternError    malformed route registration             │
    │                                                                      │
    │   PER REQUEST (always recovered into a response)                    │
    │     NoMatchError           no route matched      → 404              │
    │     NoDefaultHandlerError  and no default either → 404              │
    │     HandlerFailure         handler raised        → 500              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Per-request errors never leave the Dispatcher. Startup errors are reported
to whoever is configuring the server.

=============================================================================
"""

import errno as _errno
import os
from typing import Optional


class KurtError(Exception):
    """Base for all Kurt errors."""


class BindError(KurtError):
    """
    The listening socket could not be bound.

    Carries the OS error number so Kurt.bind() can hand it back as a
    status code instead of raising.
    """

    def __init__(self, address: str, port: int, errno: int):
        self.address = address
        self.port = port
        self.errno = errno
        reason = os.strerror(errno) if errno else "unknown error"
        super().__init__(f"Cannot bind {address}:{port}: {reason} (errno {errno})")

    @classmethod
    def from_os_error(cls, address: str, port: int, exc: OSError) -> "BindError":
        # gaierror and friends have no errno; treat them as a bad address.
        return cls(address, port, exc.errno or _errno.EINVAL)


class InvalidPatternError(KurtError, ValueError):
    """A route was registered with an empty or malformed method or path."""

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid route {pattern!r}: {reason}")


class NoMatchError(KurtError):
    """No route matches a request. Internal; becomes a 404."""

    def __init__(self, method: str, path: str):
        self.method = method
        self.path = path
        super().__init__(f"No route matches {method} {path}")


class NoDefaultHandlerError(NoMatchError):
    """No route matched and no default handler was ever set."""


class HandlerFailure(KurtError):
    """
    A handler raised, or returned something that is not a response.

    The original exception (if any) is kept as __cause__ and in .original.
    """

    def __init__(self, method: str, path: str, original: Optional[BaseException] = None,
                 message: Optional[str] = None):
        self.method = method
        self.path = path
        self.original = original
        detail = message or f"{type(original).__name__}: {original}"
        super().__init__(f"Handler for {method} {path} failed: {detail}")
