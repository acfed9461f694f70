"""
=============================================================================
CHAT RELAY CONFIGURATION
=============================================================================

Centralized configuration for the chat server and the console client.

=============================================================================
WHY A CONFIG CLASS?
=============================================================================

Both processes have a handful of knobs (address, port, timeouts, log level).
Keeping them in a dataclass gives us:

1. One place to see every option
2. Typed fields with sensible defaults
3. A validate() step that fails fast at startup

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m chatrelay server --port 5000                    │
    │                                                                      │
    │   2. Default values (in these dataclasses)                          │
    │      └── 0.0.0.0:4000 for the server, 127.0.0.1:4000 for clients  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

There is deliberately no config file and no environment lookup: the relay
is meant to be started by hand on a well-known port.

=============================================================================
"""

import logging
from dataclasses import dataclass


DEFAULT_PORT = 4000
"""Well-known port shared by the server and the client."""

DEFAULT_SERVER_ADDRESS = "127.0.0.1"
"""Address the console client connects to by default."""

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
    """
    Configuration for the chat server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, accept_timeout

    LIFECYCLE
    - install_signal_handlers, shutdown_grace

    LOGGING
    - log_level

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """
    The IP address to bind to.
    - "0.0.0.0" - All network interfaces (default)
    - "127.0.0.1" - Localhost only
    """

    port: int = DEFAULT_PORT
    """
    The port number to listen on. 0 lets the OS pick a free port, which
    is what the test-suite does.
    """

    backlog: int = 128
    """
    Maximum number of queued connections waiting for accept().
    """

    accept_timeout: float = 1.0
    """
    How long a single accept() call may block before the loop re-checks
    whether shutdown was requested. This only bounds the accept loop;
    client connections themselves never time out.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LIFECYCLE
    # ─────────────────────────────────────────────────────────────────────

    install_signal_handlers: bool = True
    """
    Catch SIGINT/SIGTERM for graceful shutdown. Only honoured when the
    server runs on the main thread (Python restricts signal.signal()).
    """

    shutdown_grace: float = 2.0
    """
    Seconds to wait for session threads to finish once shutdown starts.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """
    Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    DEBUG also logs the delivered count of every broadcast.
    """

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: On the first invalid setting found.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.accept_timeout <= 0:
            raise ValueError("accept_timeout must be > 0")

        if self.shutdown_grace < 0:
            raise ValueError("shutdown_grace must be >= 0")

        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(
                f"Invalid log_level: {self.log_level}. "
                f"Must be one of {', '.join(_LOG_LEVELS)}."
            )

    @property
    def log_level_value(self) -> int:
        """Numeric logging level for logging.setLevel()."""
        return getattr(logging, self.log_level.upper(), logging.INFO)


@dataclass
class ClientConfig:
    """Configuration for the interactive console client."""

    host: str = DEFAULT_SERVER_ADDRESS
    port: int = DEFAULT_PORT

    connect_timeout: float = 10.0
    """
    Upper bound for establishing the TCP connection. Once connected the
    socket is switched back to fully blocking mode.
    """

    def validate(self) -> None:
        """Validate configuration values."""
        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 1-65535.")

        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be > 0")
