"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every tunable of a Kurt process in one dataclass.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION PRIORITY                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. Command-line arguments     kurt --port 3000                    │
    │   2. Environment variables      KURT_PORT=3000 kurt                 │
    │   3. Defaults in this class                                         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The CLI starts from ServerConfig.from_env() and overrides whatever flags
were given, then calls validate() before anything touches the network.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off", "")


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _env_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass
class ServerConfig:
    """
    Configuration for a Kurt server.

    NETWORK     host, port, backlog, buffer_size, timeout
    HTTP        keep_alive, keep_alive_timeout, max_request_size
    THREADING   min_workers, max_workers, queue_size
    SITE        site_file, delegate
    LOGGING     log_level, verbose
    """

    # network
    host: str = "127.0.0.1"
    port: int = 8080          # 0 asks the OS for a free port
    backlog: int = 128
    buffer_size: int = 8192
    timeout: Optional[float] = 30.0

    # http
    keep_alive: bool = True
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024

    # threading
    min_workers: int = 4
    max_workers: int = 16
    queue_size: int = 1000

    # site
    site_file: str = "site.py"
    delegate: Optional[str] = None    # "package.module:ClassName"

    # logging
    log_level: str = "INFO"
    verbose: bool = False

    server_name: str = "Kurt/1.0"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """
        Build a config from environment variables.

            KURT_HOST       bind address          (127.0.0.1)
            KURT_PORT       bind port             (8080)
            KURT_WORKERS    max worker threads    (16)
            KURT_TIMEOUT    socket timeout, s     (30)
            KURT_SITE       site file             (site.py)
            KURT_DELEGATE   delegate class        (DefaultDelegate)
            KURT_LOG_LEVEL  logging level         (INFO)
            KURT_VERBOSE    access logging        (off)

        Raises:
            ValueError: If a numeric or boolean variable does not parse.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        max_workers = _env_int(env, "KURT_WORKERS", defaults.max_workers)
        return cls(
            host=env.get("KURT_HOST", defaults.host),
            port=_env_int(env, "KURT_PORT", defaults.port),
            max_workers=max_workers,
            min_workers=min(defaults.min_workers, max(max_workers, 1)),
            timeout=_env_float(env, "KURT_TIMEOUT", defaults.timeout),
            site_file=env.get("KURT_SITE", defaults.site_file),
            delegate=env.get("KURT_DELEGATE", defaults.delegate),
            log_level=env.get("KURT_LOG_LEVEL", defaults.log_level).upper(),
            verbose=_env_bool(env, "KURT_VERBOSE", defaults.verbose),
        )

    def validate(self) -> None:
        """Fail fast on nonsensical values. Raises ValueError."""
        if not self.host:
            raise ValueError("host must not be empty")
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")
        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")
        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if self.keep_alive_timeout <= 0:
            raise ValueError("keep_alive_timeout must be > 0")
        if self.max_request_size < 1024:
            raise ValueError("max_request_size must be >= 1024")
        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")
        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")
        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.log_level}")
