"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All tunables in one dataclass, filled from (highest priority first):

    ┌─────────────────────────────────────────────────────────────────────┐
    │   1. Command-line arguments                                          │
    │      └── statserver --port 3000                                      │
    │                                                                      │
    │   2. Environment variables                                           │
    │      └── STATSERVER_PORT=3000 statserver                             │
    │                                                                      │
    │   3. Default values (in this dataclass)                              │
    └─────────────────────────────────────────────────────────────────────┘

Validation runs once at startup. A bad value stops the server before it
binds, rather than surfacing on the first request.

=============================================================================
"""

import logging
import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")

ENV_PREFIX = "STATSERVER_"


class ConfigError(ValueError):
    """A configuration value is missing its required shape or range."""


@dataclass
class ServerConfig:
    """
    Configuration for the statistics server.

    Development:
        ServerConfig(port=8080, log_level="DEBUG")

    Tests:
        ServerConfig(port=0, access_log=False)   # OS picks a free port
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Interface to bind. "0.0.0.0" listens on every interface."""

    port: int = 8080
    """TCP port. 0 asks the OS for any free port."""

    backlog: int = 128
    """Kernel accept queue length."""

    buffer_size: int = 8192
    """Bytes per recv() call."""

    timeout: Optional[float] = None
    """Per-read socket timeout in seconds. None waits indefinitely."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    """Serve more than one request per connection when the client allows."""

    max_request_size: int = 1024 * 1024  # 1 MB
    """Largest request (head plus body) accepted before answering 413."""

    server_name: str = "statserver/1.0"
    """Server header value and the "server" field of every message."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG, INFO, WARNING, ERROR or CRITICAL."""

    log_format: str = "text"
    """Access log format: 'text' for humans, 'json' for log shippers."""

    access_log: bool = True
    """Emit one access log line per request."""

    @property
    def log_level_value(self) -> int:
        """log_level as a logging module constant."""
        return getattr(logging, self.log_level.upper())

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """
        Create configuration from environment variables.

            STATSERVER_HOST        bind interface    (default 127.0.0.1)
            STATSERVER_PORT        TCP port          (default 8080)
            STATSERVER_TIMEOUT     read timeout, s   (default: none)
            STATSERVER_LOG_LEVEL   logging level     (default INFO)
            STATSERVER_LOG_FORMAT  text or json      (default text)

        Args:
            environ: Mapping to read instead of os.environ.

        Raises:
            ConfigError: If a numeric variable does not parse.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def get(name: str) -> Optional[str]:
            value = env.get(ENV_PREFIX + name)
            return value if value not in (None, "") else None

        port = get("PORT")
        timeout = get("TIMEOUT")

        try:
            return cls(
                host=get("HOST") or defaults.host,
                port=int(port) if port is not None else defaults.port,
                timeout=float(timeout) if timeout is not None else defaults.timeout,
                log_level=(get("LOG_LEVEL") or defaults.log_level).upper(),
                log_format=(get("LOG_FORMAT") or defaults.log_format).lower(),
            )
        except ValueError as e:
            raise ConfigError(f"Invalid environment configuration: {e}") from e

    def merge(self, **overrides) -> "ServerConfig":
        """
        Return a copy with the given fields replaced.

        None values are ignored, so unset command-line flags keep the
        environment/default value.
        """
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)

    def validate(self) -> None:
        """
        Check every value is in range.

        Raises:
            ConfigError: On the first invalid value.
        """
        if not 0 <= self.port <= 65535:
            raise ConfigError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ConfigError("backlog must be >= 1")

        if self.buffer_size < 1024:
            raise ConfigError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError("timeout must be > 0")

        if self.max_request_size < self.buffer_size:
            raise ConfigError("max_request_size must be >= buffer_size")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigError(
                f"Invalid log level: {self.log_level}. Choose from {', '.join(LOG_LEVELS)}."
            )

        if self.log_format not in LOG_FORMATS:
            raise ConfigError(
                f"Invalid log format: {self.log_format}. Choose from {', '.join(LOG_FORMATS)}."
            )

        if not self.server_name:
            raise ConfigError("server_name must not be empty")
