"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

This module owns the listening socket and the accept loop. It knows nothing
about chat: every accepted socket is wrapped in a Connection and handed to
a callback supplied by ChatServer.

=============================================================================
SOCKET LIFECYCLE (Server Side)
=============================================================================

    1. socket()    Create a socket file descriptor
    2. bind()      Associate the socket with an IP:PORT
                   └─ Fails if the port is taken: fatal at startup
    3. listen()    OS starts queueing incoming connections
    4. accept()    Wait for and accept an incoming connection
                   └─ Returns a NEW socket just for that client
                   └─ Original socket keeps listening!
    5. close()     Release the listening socket on shutdown

=============================================================================
ACCEPT ERRORS
=============================================================================

Not every accept() failure means the server is broken:

    ECONNABORTED   Client gave up before we accepted it
    EPROTO         Protocol error on that single pending connection
    EINTR          Interrupted by a signal
    EMFILE/ENFILE  Out of file descriptors right now
    ENOBUFS/ENOMEM Kernel short on memory right now

These skip ONE connection and the loop keeps going. Anything else on the
listening socket ends the loop, and the socket is closed in finally.

=============================================================================
SIGNAL HANDLING FOR GRACEFUL SHUTDOWN
=============================================================================

SIGINT (2):   Sent when user presses Ctrl+C
SIGTERM (15): Sent by docker stop, systemd stop, kill command

Both just flip the running flag; the accept loop notices within one
accept_timeout and unwinds.

=============================================================================
"""

import errno
import socket
import signal
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


TRANSIENT_ACCEPT_ERRNOS = frozenset({
    errno.ECONNABORTED,
    errno.EPROTO,
    errno.EINTR,
    errno.EMFILE,
    errno.ENFILE,
    errno.ENOBUFS,
    errno.ENOMEM,
})


class SocketServer:
    """
    Low-level TCP socket server.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      SocketServer Internals                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    start(handler)                                                    │
    │        ├──► _create_socket()   socket + SO_REUSEADDR, TCP_NODELAY   │
    │        ├──► bind() / listen()                                        │
    │        ├──► _setup_signals()   (main thread only)                    │
    │        └──► _accept_loop()     BLOCKS here                           │
    │                 └──► accept() → Connection() → handler(conn)         │
    │                                                                      │
    │    shutdown()        flip _running, set _shutdown_event              │
    │    _cleanup()        restore signals, close listening socket         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Usage:
        def handle_connection(conn: Connection):
            ...

        server = SocketServer(config)
        server.start(handle_connection)  # Blocks until shutdown
    """

    def __init__(self, config: ServerConfig):
        """
        Initialize the socket server.

        Args:
            config: Server configuration (host, port, backlog, ...).
        """
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._bound_address: Optional[Tuple[str, int]] = None

        self._running = False

        # Set once listen() succeeded; tests and embedders wait on it
        self._ready_event = threading.Event()
        self._shutdown_event = threading.Event()

        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        """Check if server is running."""
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """
        The server's address (IP, port).

        Once bound this is the real address, so port 0 resolves to the
        port the OS picked.
        """
        if self._bound_address is not None:
            return self._bound_address
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        """Create and configure the listening socket."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Restarting the server right away must not fail with
        # "Address already in use" while old sockets sit in TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Chat lines are tiny; send them right away instead of batching
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # accept() wakes up periodically so shutdown() is noticed
        sock.settimeout(self.config.accept_timeout)

        return sock

    def _setup_signals(self):
        """Install SIGTERM/SIGINT handlers that trigger shutdown()."""
        if not self.config.install_signal_handlers:
            return

        # signal.signal() only works from the main thread
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on main thread, skipping signal handlers")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        """Restore original signal handlers."""
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind, listen and run the accept loop.

        This method BLOCKS until shutdown() is called or the listening
        socket fails.

        Args:
            connection_handler: Called on the accept thread with every new
                                connection. It must return quickly.

        Raises:
            OSError: If the socket cannot be bound (e.g. port in use).
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
            self._socket.listen(self.config.backlog)
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._bound_address = self._socket.getsockname()[:2]

        self._running = True
        self._shutdown_event.clear()

        self._setup_signals()

        logger.info(f"Server listening on {self.address[0]}:{self.address[1]}")
        self._ready_event.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        """
        Main loop for accepting connections.

        ┌─────────────────────────────────────────────────────────────────┐
        │                     Accept Loop Flow                             │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │   while self._running:                                           │
        │       ├──► accept()           (times out every accept_timeout)   │
        │       ├──► Connection(...)    wrap the client socket             │
        │       └──► connection_handler(conn)                              │
        │                                                                  │
        └─────────────────────────────────────────────────────────────────┘
        """
        while self._running:
            logger.debug("Waiting for a new client connection")

            try:
                client_socket, client_address = self._socket.accept()

            except socket.timeout:
                # Normal: lets us re-check self._running
                continue

            except OSError as e:
                if not self._running:
                    break  # Socket closed under us during shutdown

                if isinstance(e, ConnectionAbortedError) or e.errno in TRANSIENT_ACCEPT_ERRNOS:
                    logger.warning(
                        f"Error accepting client connection, the server may be overloaded: {e}"
                    )
                    continue

                logger.error(f"Accept error: {e}")
                break

            try:
                conn = Connection(socket=client_socket, address=client_address)
            except OSError as e:
                logger.warning(f"Could not set up connection from {client_address}: {e}")
                client_socket.close()
                continue

            logger.info(f"[{conn.id}] Client {conn.remote_address} connected")

            try:
                connection_handler(conn)
            except Exception as e:
                # One bad connection must not stop the accept loop
                logger.exception(
                    f"[{conn.id}] Error handling connection from {conn.remote_address}: {e}"
                )
                conn.close()

    def shutdown(self):
        """
        Initiate graceful shutdown.

        Safe to call from a signal handler or any thread, and more than once.
        """
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self):
        """Clean up resources on shutdown."""
        self._running = False
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError as e:
                logger.error(f"Error closing server socket: {e}")
            self._socket = None

        self._shutdown_event.set()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until the server is listening.

        Returns:
            True if the server is ready, False on timeout.
        """
        return self._ready_event.wait(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the server to shut down.

        Returns:
            True if shutdown completed, False if timeout.
        """
        return self._shutdown_event.wait(timeout)
