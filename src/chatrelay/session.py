"""
=============================================================================
CLIENT SESSION LOOP
=============================================================================

One ClientSession runs on its own thread for every accepted connection.

=============================================================================
SESSION STATE MACHINE
=============================================================================

    AWAITING_LOGIN ──first line──► RELAYING
          │                           │
          │  "sair" / EOF / error     │  "sair" / EOF / error
          ▼                           ▼
        CLOSED ◄──────────────────────┘

- The FIRST line is the login, taken verbatim (empty and duplicate names
  are accepted). It is never relayed as chat; instead "Cliente <login>
  logado." goes to everybody else.
- Every later line goes out as "<login> diz: <line>".
- The exit keyword closes the session in either state and is never
  broadcast.
- A peer that disconnects and a socket error look the same: receive()
  returns None and the session ends. No retry.

When the session ends it closes its connection but leaves it in the
registry; the next broadcast that fails to write to it drops it.

=============================================================================
"""

import logging
from enum import Enum

from .core import Connection, BroadcastRouter
from . import protocol


logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Server-side session states."""
    AWAITING_LOGIN = "awaiting_login"
    RELAYING = "relaying"
    CLOSED = "closed"


class ClientSession:
    """
    Drives the login handshake and message relay for one connection.

    Usage:
        session = ClientSession(conn, router)
        threading.Thread(target=session.run, daemon=True).start()
    """

    def __init__(self, connection: Connection, router: BroadcastRouter):
        self.connection = connection
        self.router = router
        self.state = SessionState.AWAITING_LOGIN

    def run(self) -> None:
        """
        Session main loop (runs on the session thread).

        Always closes the connection exactly once before returning.
        """
        conn = self.connection

        try:
            while self.state != SessionState.CLOSED:
                line = conn.receive()
                if line is None:
                    self.state = SessionState.CLOSED
                    break

                self.handle_line(line)
        except Exception as e:
            # A bug in relay code must only take down this one session
            logger.exception(f"[{conn.id}] Session error for {conn.remote_address}: {e}")
        finally:
            self.state = SessionState.CLOSED
            conn.close()
            logger.info(
                f"[{conn.id}] Client {conn.login or '<no login>'} "
                f"({conn.remote_address}) disconnected"
            )

    def handle_line(self, line: str) -> None:
        """Apply one received line to the state machine."""
        conn = self.connection

        if protocol.is_exit(line):
            logger.debug(f"[{conn.id}] Exit requested by {conn.remote_address}")
            self.state = SessionState.CLOSED
            return

        if self.state == SessionState.AWAITING_LOGIN:
            conn.set_login(line)
            self.state = SessionState.RELAYING
            logger.info(f"[{conn.id}] Client {conn.remote_address} logged in as {conn.login}.")
            self.router.announce_login(conn)
            return

        logger.info(f"[{conn.id}] Message received from {conn.login}: {line}")
        self.router.relay_chat(conn, line)
