"""
=============================================================================
CHATRELAY - Thread-per-connection text chat relay
=============================================================================

A TCP server that tags every client with a login name and relays each line
one client sends to all the others, plus the matching console client.

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   1. RAW SOCKET PROGRAMMING                                         │
    │      - Listening socket, accept loop, signal-driven shutdown        │
    │      - Line-based reading and writing over a byte stream            │
    │                                                                      │
    │   2. CONCURRENCY                                                    │
    │      - One thread per connected client                              │
    │      - One lock-guarded registry shared by all of them              │
    │                                                                      │
    │   3. PROTOCOL                                                       │
    │      - First line = login, later lines = chat, "sair" = leave      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Quick start:

    python -m chatrelay server            # terminal 1
    python -m chatrelay client            # terminals 2, 3, ...

=============================================================================
"""

__version__ = "1.0.0"

from .server import ChatServer
from .client import ChatClient
from .config import ServerConfig, ClientConfig

__all__ = ["ChatServer", "ChatClient", "ServerConfig", "ClientConfig", "__version__"]
