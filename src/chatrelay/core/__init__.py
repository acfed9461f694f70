"""
=============================================================================
CORE NETWORKING COMPONENTS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         SOCKET SERVER                                │
    │  • Creates the listening socket, binds, listens                      │
    │  • Runs the accept() loop on the main thread                         │
    │  • Handles graceful shutdown via signals (SIGTERM, SIGINT)          │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ Hands off new connections
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          CONNECTION                                  │
    │  • Wraps one socket with send(line) / receive() / close()           │
    │  • Carries the client's login and an opaque id                       │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ Registered for fan-out
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                  REGISTRY + BROADCAST ROUTER                         │
    │  • Lock-guarded list of connections believed open                    │
    │  • broadcast_except() writes to everyone but the sender and          │
    │    drops members whose write fails                                   │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .registry import ConnectionRegistry
from .router import BroadcastRouter

__all__ = [
    "SocketServer",        # Listening socket + accept loop
    "Connection",          # Line-based wrapper around one client socket
    "ConnectionState",     # OPEN / CLOSED
    "ConnectionRegistry",  # Shared, lock-guarded set of live connections
    "BroadcastRouter",     # Formats and fans out chat lines
]
