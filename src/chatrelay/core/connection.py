"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

This module wraps one raw TCP socket with a line-oriented API. The same
class is used on both ends of the wire: the server creates one per accepted
client, and the console client creates one for its link to the server.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

TCP does NOT preserve message boundaries:

    Client sends:
        send("hi\\n")
        send("there\\n")

    Server might receive ANY of these:
        recv() → "hi\\nthere\\n"     (both combined)
        recv() → "h"                (partial)
        recv() → "i\\nthe"           (rest of first + part of second)

The chat protocol delimits messages with "\\n", so we let a buffered file
object (socket.makefile) do the accumulation: readline() keeps pulling
bytes from the kernel until it has a full line.

    ┌───────────────────────────────────────────────────────────────────┐
    │                     Connection internals                           │
    ├───────────────────────────────────────────────────────────────────┤
    │                                                                    │
    │    socket ──makefile("r")──► _reader ──readline()──► receive()    │
    │       │                                                            │
    │       └─────makefile("w")──► _writer ◄──write+flush─── send()     │
    │                                                                    │
    │    close():  _reader.close() → _writer.close() → socket.close()   │
    │                                                                    │
    └───────────────────────────────────────────────────────────────────┘

=============================================================================
ERROR REPORTING
=============================================================================

Nothing in this class raises on transport failure:

- send()     → returns False
- receive()  → returns None (EOF and errors look the same to the caller)
- close()    → logs and carries on

The caller only needs one question answered: "keep going or stop?"

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    OPEN ──────► CLOSED
     │              ▲
     └── send() ────┘   (a failed write also marks the connection closed)

=============================================================================
"""

import socket
import logging
import threading
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional

from .. import protocol


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states."""
    OPEN = "open"        # Streams usable (as far as we know)
    CLOSED = "closed"    # A write failed or close() ran


@dataclass(eq=False)
class Connection:
    """
    Represents one end of a chat link.

    Attributes:
        socket: The connected TCP socket. Owned exclusively by this object.
        address: Peer (ip, port) tuple, used for logging.
        id: Opaque connection identifier. Broadcast exclusion compares
            ids, never logins (logins are not unique).
        login: Login name, None until the first line arrives.
        state: Current connection state.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    login: Optional[str] = None
    state: ConnectionState = ConnectionState.OPEN

    _reader: object = field(default=None, init=False, repr=False)
    _writer: object = field(default=None, init=False, repr=False)
    _write_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self):
        """
        Configure the socket and build the line reader/writer.

        Chat links never time out: a quiet peer may hold its connection
        for as long as it likes.
        """
        self.socket.settimeout(None)

        # newline="\n" on the reader means readline() splits on "\n" only and
        # hands us "\r" untouched; strip_terminator() deals with CRLF peers.
        self._reader = self.socket.makefile(
            "r", encoding=protocol.ENCODING, errors="replace", newline="\n"
        )
        self._writer = self.socket.makefile(
            "w", encoding=protocol.ENCODING, newline="\n"
        )

    @classmethod
    def open(cls, host: str, port: int, timeout: Optional[float] = None) -> "Connection":
        """
        Establish a new outgoing connection.

        Raises:
            OSError: If the server cannot be reached.
        """
        sock = socket.create_connection((host, port), timeout=timeout)
        return cls(socket=sock, address=(host, port))

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def is_open(self) -> bool:
        """False once a write failed or close() was called."""
        return self.state == ConnectionState.OPEN

    @property
    def remote_address(self) -> str:
        """Peer address as "ip:port" for log lines."""
        return f"{self.address[0]}:{self.address[1]}"

    def set_login(self, login: str) -> None:
        self.login = login

    def get_login(self) -> Optional[str]:
        return self.login

    # =========================================================================
    # I/O
    # =========================================================================

    def send(self, line: str) -> bool:
        """
        Send one line and flush it immediately.

        Args:
            line: Text to send, without terminator.

        Returns:
            True if no transport error was observed, False otherwise.
        """
        with self._write_lock:
            try:
                self._writer.write(line + protocol.LINE_TERMINATOR)
                self._writer.flush()
                return True
            except (OSError, ValueError) as e:
                # ValueError: the writer was already closed by its owner
                logger.debug(f"[{self.id}] Send to {self.remote_address} failed: {e}")
                self.state = ConnectionState.CLOSED
                return False

    def receive(self) -> Optional[str]:
        """
        Block until one full line arrives.

        Returns:
            The line without its terminator, or None if the peer closed
            the connection or any error occurred.
        """
        try:
            raw = self._reader.readline()
        except (OSError, ValueError) as e:
            logger.debug(f"[{self.id}] Receive from {self.remote_address} failed: {e}")
            return None

        if not raw:
            return None  # EOF

        return protocol.strip_terminator(raw)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def interrupt(self) -> None:
        """
        Unblock a pending receive() running in another thread.

        Shuts the socket down without releasing it; the thread that owns
        the connection still has to call close().
        """
        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Already disconnected

    def close(self) -> None:
        """
        Release the reader, the writer and the socket, in that order.

        Every step is attempted even if an earlier one fails. Errors are
        logged, never raised.

        Callers must call this at most once per connection; the session
        (or receiver) that owns the connection is the one that closes it.
        """
        self.state = ConnectionState.CLOSED

        try:
            self._reader.close()
        except (OSError, ValueError) as e:
            logger.warning(f"[{self.id}] Error closing reader for {self.remote_address}: {e}")

        with self._write_lock:
            try:
                self._writer.close()
            except (OSError, ValueError) as e:
                # Closing flushes, which fails if the peer is already gone
                logger.debug(f"[{self.id}] Error closing writer for {self.remote_address}: {e}")

        try:
            self.socket.close()
        except OSError as e:
            logger.warning(f"[{self.id}] Error closing socket for {self.remote_address}: {e}")

        logger.debug(f"[{self.id}] Connection to {self.remote_address} closed")

    def __enter__(self):
        """
        Context manager entry.

            with conn:
                line = conn.receive()
            # Connection closed here
        """
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - ensure connection is closed."""
        self.close()
        return False  # Don't suppress exceptions
