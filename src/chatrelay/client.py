"""
=============================================================================
INTERACTIVE CONSOLE CLIENT
=============================================================================

The client runs two independent activities over one Connection:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   MAIN THREAD (sender)              RECEIVER THREAD (daemon)         │
    │   ────────────────────              ────────────────────────         │
    │   read login from console           while line := receive():         │
    │   send login                            print(line)                  │
    │   start receiver ─────────────────► close connection                 │
    │   loop:                                                              │
    │       read a line                                                    │
    │       send it                                                        │
    │       stop after "sair"                                              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The two sides never synchronize. After the user types "sair" the sender
simply returns; the server closes its end, the receiver sees EOF and
closes the connection. The receiver is a daemon thread, so the process may
exit while it is still draining.

=============================================================================
"""

import sys
import logging
import threading
from typing import Optional, TextIO

from .config import ClientConfig
from .core import Connection
from . import protocol


logger = logging.getLogger(__name__)


LOGIN_PROMPT = "Digite seu login: "
MESSAGE_PROMPT = f"Digite uma msg (ou '{protocol.EXIT_KEYWORD}' para encerrar): "


class ChatClient:
    """
    Console chat client.

    Args:
        config: Where to connect.
        stdin: Console input (injectable for tests).
        stdout: Console output (injectable for tests).
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
    ):
        self.config = config or ClientConfig()
        self.config.validate()

        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout

        self.connection: Optional[Connection] = None
        self._receiver: Optional[threading.Thread] = None

    def connect(self) -> Connection:
        """
        Open the connection to the server.

        Raises:
            OSError: If the server cannot be reached.
        """
        self.connection = Connection.open(
            self.config.host,
            self.config.port,
            timeout=self.config.connect_timeout,
        )
        self._print(
            f"Cliente conectado ao servidor no endereço {self.config.host} "
            f"e porta {self.config.port}"
        )
        return self.connection

    def run(self) -> None:
        """
        Connect, log in, then send console lines until the exit keyword.

        Raises:
            OSError: If the server cannot be reached.
        """
        self.connect()

        if not self.login():
            # Console closed before a login was typed
            self.connection.close()
            return

        self._receiver = threading.Thread(
            target=self.receive_loop, name="chat-receiver", daemon=True
        )
        self._receiver.start()

        self.message_loop()

    def login(self) -> bool:
        """
        Read the login from the console and send it as the first line.

        Returns:
            False if the console hit EOF or the send failed.
        """
        login = self._prompt(LOGIN_PROMPT)
        if login is None:
            return False

        self.connection.set_login(login)
        return self.connection.send(login)

    def message_loop(self) -> None:
        """Send console lines until the exit keyword, console EOF or a dead link."""
        while True:
            msg = self._prompt(MESSAGE_PROMPT)
            if msg is None:
                # EOF on the console: leave the chat cleanly
                msg = protocol.EXIT_KEYWORD

            if not self.connection.send(msg):
                logger.debug("Send failed, server connection lost")
                break

            if protocol.is_exit(msg):
                break

    def receive_loop(self) -> None:
        """Print every line from the server until the link closes (receiver thread)."""
        conn = self.connection
        try:
            while True:
                line = conn.receive()
                if line is None:
                    break
                self._print(line)
        finally:
            conn.close()

    def wait_for_receiver(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the receiver thread to finish draining.

        Returns:
            True if the receiver has stopped.
        """
        if self._receiver is None:
            return True
        self._receiver.join(timeout)
        return not self._receiver.is_alive()

    # =========================================================================
    # CONSOLE HELPERS
    # =========================================================================

    def _prompt(self, text: str) -> Optional[str]:
        self.stdout.write(text)
        self.stdout.flush()

        line = self.stdin.readline()
        if not line:
            return None
        return protocol.strip_terminator(line)

    def _print(self, text: str) -> None:
        print(text, file=self.stdout, flush=True)
