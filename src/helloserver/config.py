"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Everything the server needs to know, read ONCE at startup into an immutable
value. Nothing reads the environment while requests are being handled.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                     │
    │   Environment           CLI (__main__)          Code                │
    │   ───────────           ──────────────          ────                │
    │   PRINT_TEXT            --host                  ServerConfig(...)   │
    │   SHUTDOWN_TIMEOUT      --port                                      │
    │                         --sloth-delay                               │
    │                         --log-level                                 │
    │        │                      │                      │              │
    │        └──────────────────────┼──────────────────────┘              │
    │                               ▼                                     │
    │                  ServerConfig (frozen dataclass)                    │
    │                               │                                     │
    │                          validate()                                 │
    │                               │                                     │
    │                               ▼                                     │
    │                   HTTPServer(config).run()                          │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
SHUTDOWN_TIMEOUT
=============================================================================

A whole number of seconds, written in decimal with an optional sign:

    "30"   → 30
    "+5"   → 5
    "-3"   → -3   (drains with a zero deadline)
    "1.5"  → ConfigError
    " 3"   → ConfigError
    "abc"  → ConfigError
    unset  → 30
    ""     → 30

A bad value is a startup error: the process logs it and exits with status 1
before any socket is opened.

=============================================================================
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Mapping, Optional


DEFAULT_PRINT_TEXT = "Hello World!"
DEFAULT_SHUTDOWN_TIMEOUT = 30

_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(ValueError):
    """Raised when configuration is invalid. The process exits with 1."""


@dataclass(frozen=True)
class ServerConfig:
    """
    Configuration for the hello server.

    Frozen: a started server cannot have its greeting or deadline changed
    underneath it. Derive a variant with dataclasses.replace().

        config = ServerConfig.from_env()
        config = dataclasses.replace(config, port=9090)
    """

    # ─────────────────────────────────────────────────────────────────────
    # GREETING
    # ─────────────────────────────────────────────────────────────────────

    print_text: str = DEFAULT_PRINT_TEXT
    """The greeting every route renders."""

    sloth_delay: float = 30.0
    """Seconds the /sloth/* routes wait before answering."""

    # ─────────────────────────────────────────────────────────────────────
    # LIFECYCLE
    # ─────────────────────────────────────────────────────────────────────

    shutdown_timeout: int = DEFAULT_SHUTDOWN_TIMEOUT
    """
    Seconds to wait for in-flight requests after a stop signal.
    When they do not finish in time, connections are force-closed and the
    process exits with status 1.
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """Address to bind. 0.0.0.0 listens on every interface."""

    port: int = 8080
    """Port to listen on. 0 asks the OS for a free port."""

    backlog: int = 128
    """Maximum number of queued, not yet accepted connections."""

    buffer_size: int = 8192
    """recv() size in bytes."""

    timeout: float = 30.0
    """Seconds a new connection has to deliver its first request (408 after)."""

    keep_alive_timeout: float = 5.0
    """Seconds an idle keep-alive connection is kept open."""

    max_request_size: int = 1024 * 1024
    """Largest accepted request, headers plus body (413 above)."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    @property
    def drain_deadline(self) -> float:
        """shutdown_timeout as a non-negative number of seconds."""
        return float(max(0, self.shutdown_timeout))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "ServerConfig":
        """
        Create configuration from environment variables.

            PRINT_TEXT        Greeting (default: Hello World!; empty keeps default)
            SHUTDOWN_TIMEOUT  Drain deadline in seconds (default: 30)

        Args:
            environ: Mapping to read instead of os.environ.
            **overrides: Field values that take precedence (from the CLI).

        Raises:
            ConfigError: If SHUTDOWN_TIMEOUT is not a decimal integer.
        """
        if environ is None:
            environ = os.environ

        values = {
            "print_text": environ.get("PRINT_TEXT") or DEFAULT_PRINT_TEXT,
            "shutdown_timeout": parse_shutdown_timeout(environ.get("SHUTDOWN_TIMEOUT")),
        }
        values.update(overrides)
        return cls(**values)

    def validate(self) -> None:
        """
        Validate configuration values. Called once at startup.

        Raises:
            ConfigError: On the first invalid value found.
        """
        if not 0 <= self.port < 65536:
            raise ConfigError(f"Invalid port: {self.port}. Must be 0-65535.")
        if self.sloth_delay < 0:
            raise ConfigError(f"sloth_delay must be >= 0, got {self.sloth_delay}")
        if self.backlog < 1:
            raise ConfigError("backlog must be >= 1")
        if self.buffer_size < 1024:
            raise ConfigError("buffer_size must be >= 1024")
        if self.timeout <= 0:
            raise ConfigError("timeout must be > 0")
        if self.keep_alive_timeout <= 0:
            raise ConfigError("keep_alive_timeout must be > 0")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ConfigError(f"Unknown log level: {self.log_level}")

    @property
    def log_level_number(self) -> int:
        return getattr(logging, self.log_level.upper(), logging.INFO)


def parse_shutdown_timeout(raw: Optional[str]) -> int:
    """
    Parse SHUTDOWN_TIMEOUT.

    Args:
        raw: The variable's value, or None when unset. Empty counts as unset.

    Returns:
        The timeout in seconds (may be negative).

    Raises:
        ConfigError: If `raw` is non-empty but is not a decimal integer.
    """
    if not raw:
        return DEFAULT_SHUTDOWN_TIMEOUT
    if not _INTEGER_PATTERN.fullmatch(raw):
        raise ConfigError(f"Invalid SHUTDOWN_TIMEOUT {raw!r}: must be an integer number of seconds")
    return int(raw)
