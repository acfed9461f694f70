"""
pytest configuration and fixtures.
"""

import socket
import threading
import time
from typing import Callable, Generator, List, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from chatrelay import ChatServer, ServerConfig


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.01) -> bool:
    """Poll until predicate() is true or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class FakeConnection:
    """
    In-memory stand-in for Connection.

    `incoming` feeds receive(); everything passed to send() lands in `sent`.
    With a `gate`, send() blocks until the gate is set, like a peer that
    stopped reading; `send_blocked` is set while it waits.
    """

    _counter = 0

    def __init__(self, incoming: Optional[List[str]] = None, login: Optional[str] = None,
                 fail_send: bool = False, send_delay: float = 0.0,
                 gate: Optional[threading.Event] = None):
        FakeConnection._counter += 1
        self.id = f"fake{FakeConnection._counter}"
        self.address = ("10.0.0.1", 40000 + FakeConnection._counter)
        self.login = login
        self.incoming = list(incoming or [])
        self.sent: List[str] = []
        self.fail_send = fail_send
        self.send_delay = send_delay
        self.gate = gate
        self.send_blocked = threading.Event()
        self.close_calls = 0
        self.received_calls = 0
        self._lock = threading.Lock()

    @property
    def remote_address(self) -> str:
        return f"{self.address[0]}:{self.address[1]}"

    def set_login(self, login):
        self.login = login

    def get_login(self):
        return self.login

    def send(self, line: str) -> bool:
        if self.send_delay:
            time.sleep(self.send_delay)
        if self.gate is not None and not self.gate.is_set():
            self.send_blocked.set()
            self.gate.wait(timeout=10.0)
        if self.fail_send:
            return False
        with self._lock:
            self.sent.append(line)
        return True

    def receive(self):
        self.received_calls += 1
        if not self.incoming:
            return None
        return self.incoming.pop(0)

    def interrupt(self):
        pass

    def close(self):
        self.close_calls += 1


def finishes(target: Callable[[], object], timeout: float = 2.0) -> bool:
    """Run target() on a daemon thread; True if it returned within timeout."""
    worker = threading.Thread(target=target, daemon=True)
    worker.start()
    worker.join(timeout)
    return not worker.is_alive()


class LineClient:
    """Raw test client speaking the line protocol over a real socket."""

    def __init__(self, port: int, timeout: float = 5.0):
        self.timeout = timeout
        self.sock = socket.create_connection(("127.0.0.1", port), timeout=timeout)
        self._buffer = b""

    def send(self, line: str) -> None:
        self.sock.sendall((line + "\n").encode("utf-8"))

    def recv(self) -> Optional[str]:
        """Next line without terminator, or None once the server closed."""
        while b"\n" not in self._buffer:
            chunk = self.sock.recv(4096)
            if not chunk:
                return None
            self._buffer += chunk

        line, self._buffer = self._buffer.split(b"\n", 1)
        return line.decode("utf-8")

    def expect_nothing(self, wait: float = 0.3) -> bool:
        """True if no line arrives within `wait` seconds."""
        if b"\n" in self._buffer:
            return False

        self.sock.settimeout(wait)
        try:
            chunk = self.sock.recv(4096)
        except socket.timeout:
            return True
        finally:
            self.sock.settimeout(self.timeout)

        self._buffer += chunk
        return b"\n" not in self._buffer

    def close(self) -> None:
        self.sock.close()


class ServerRunner:
    """Runs a ChatServer in a background thread."""

    def __init__(self, server: ChatServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    @property
    def registry(self):
        return self.server.registry

    def start(self):
        """Start server in background thread and wait until it listens."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    @property
    def stopped(self) -> bool:
        return self._thread is not None and not self._thread.is_alive()

    def logged_in(self, login: str) -> bool:
        """Is a connection with this login registered?"""
        return any(conn.login == login for conn in self.registry.snapshot())


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def server_config() -> ServerConfig:
    """Server configuration for tests: loopback, OS-picked port, fast polling."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        accept_timeout=0.1,
        install_signal_handlers=False,
        shutdown_grace=1.0,
        log_level="WARNING",
    )


@pytest.fixture
def chat_server(server_config: ServerConfig) -> Generator[ServerRunner, None, None]:
    """A running chat server."""
    runner = ServerRunner(ChatServer(server_config))
    runner.start()

    yield runner

    runner.stop()


@pytest.fixture
def connect(chat_server: ServerRunner) -> Generator[Callable[[], LineClient], None, None]:
    """Factory for raw clients connected to `chat_server`; all closed at teardown."""
    clients: List[LineClient] = []

    def _connect() -> LineClient:
        client = LineClient(chat_server.port)
        clients.append(client)
        return client

    yield _connect

    for client in clients:
        client.close()


@pytest.fixture
def join(chat_server: ServerRunner, connect) -> Callable[[str], LineClient]:
    """Connect and log in; returns once the server registered the login."""

    def _join(login: str) -> LineClient:
        client = connect()
        client.send(login)
        assert wait_for(lambda: chat_server.logged_in(login)), f"{login} never logged in"
        return client

    return _join
