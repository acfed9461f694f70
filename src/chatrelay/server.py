"""
=============================================================================
CHAT SERVER
=============================================================================

The orchestrator that ties the components together.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │   ChatServer    │                          │
    │                        │ (Orchestrator)  │                          │
    │                        └────────┬────────┘                          │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │ SocketServer │    │   Registry   │◄───│    Router    │        │
    │    │ (accept loop)│    │ (shared list)│    │  (fan-out)   │        │
    │    └──────┬───────┘    └──────────────┘    └──────▲───────┘        │
    │           │ one thread per connection             │                 │
    │           ▼                                       │                 │
    │    ┌──────────────┐                               │                 │
    │    │ ClientSession│───────────────────────────────┘                 │
    │    └──────────────┘                                                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
CONNECTION LIFECYCLE
=============================================================================

    1. CLIENT CONNECTS
       └── SocketServer accepts and wraps it in a Connection
    2. SPAWN
       └── A dedicated session thread is started
       └── Only then is the connection added to the registry
       └── If the thread cannot be started, the connection is closed
           and never registered
    3. LOGIN + RELAY (session thread)
       └── First line = login, announced to everyone else
       └── Later lines = "<login> diz: <text>" to everyone else
    4. EXIT
       └── "sair", EOF or error: session closes its connection
       └── Registry entry is dropped by the next failed broadcast

=============================================================================
"""

import logging
import threading
import time
import weakref
from typing import Optional

from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionRegistry, BroadcastRouter
from .session import ClientSession


logger = logging.getLogger(__name__)


class ChatServer:
    """
    Thread-per-connection chat relay.

    =========================================================================
    USAGE
    =========================================================================

        server = ChatServer(ServerConfig(port=4000))
        server.run()  # Blocks until Ctrl+C / SIGTERM / shutdown()

    From another thread (e.g. tests):

        threading.Thread(target=server.run, daemon=True).start()
        server.wait_until_ready(5.0)
        host, port = server.address
        ...
        server.shutdown()

    =========================================================================
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        """
        Initialize the chat server.

        Args:
            config: Server configuration. Uses defaults if not provided.
        """
        self.config = config or ServerConfig()
        self.config.validate()  # Fail-fast on invalid config

        self._socket_server = SocketServer(self.config)

        # The shared registry is owned here and passed by reference to the
        # router, which every session uses
        self.registry = ConnectionRegistry()
        self.router = BroadcastRouter(self.registry)

        # Session threads, only tracked so shutdown can wait for them
        self._sessions: "weakref.WeakSet[threading.Thread]" = weakref.WeakSet()

        self._running = False

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def address(self):
        """Bound (host, port); the real port once listening."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the server is accepting connections."""
        return self._socket_server.wait_until_ready(timeout)

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Start the server (blocking).

        Args:
            host: Override config host.
            port: Override config port.

        Raises:
            ValueError: If an override makes the config invalid.
            OSError: If the listening socket cannot be bound.
        """
        if host:
            self.config.host = host
        if port is not None:
            self.config.port = port
        self.config.validate()

        self._setup_logging()
        self._running = True

        logger.info(f"Starting chat server on {self.config.host}:{self.config.port}")
        self._print_startup_banner()

        try:
            # Blocks here; calls _handle_connection for each new client
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Ask the server to stop. Safe from any thread."""
        self._socket_server.shutdown()

    def _setup_logging(self):
        """Configure logging based on config."""
        level = self.config.log_level_value

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("chatrelay").setLevel(level)

    def _print_startup_banner(self):
        """Print server startup information."""
        host, port = self.config.host, self.config.port
        print()
        print("╔══════════════════════════════════════════════════════════════╗")
        print(f"  Chat relay starting on {host}:{port}")
        print("  Clients log in with their first line and leave with 'sair'")
        print("  Press Ctrl+C to stop")
        print("╚══════════════════════════════════════════════════════════════╝")
        print()

    def _shutdown(self):
        """
        Graceful shutdown.

        1. The accept loop has already stopped and closed its socket
        2. Interrupt every registered connection so blocked sessions wake up
        3. Give session threads shutdown_grace seconds to close their
           connections themselves
        """
        logger.info("Shutting down server...")
        self._running = False

        for conn in self.registry.snapshot():
            conn.interrupt()

        deadline = time.monotonic() + self.config.shutdown_grace
        for thread in list(self._sessions):
            thread.join(timeout=max(0.0, deadline - time.monotonic()))
            if thread.is_alive():
                logger.warning(f"Session thread {thread.name} did not stop in time")

        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """
        Spawn a session thread for a new connection (runs on accept thread).

        The connection is registered only after its thread started.

        Args:
            conn: The freshly accepted connection.
        """
        session = ClientSession(conn, self.router)

        try:
            thread = threading.Thread(
                target=session.run,
                name=f"session-{conn.id}",
                daemon=True,
            )
            thread.start()
        except (RuntimeError, MemoryError) as e:
            # "can't start new thread": the process is out of threads/memory
            logger.error(
                f"[{conn.id}] Could not create a thread for {conn.remote_address}, "
                f"the server may be overloaded. Closing connection: {e}"
            )
            conn.close()
            return

        self._sessions.add(thread)
        self.registry.add(conn)

