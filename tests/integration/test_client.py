"""
Tests for the console client, against a real server.
"""

import io
import socket
import threading

import pytest

from chatrelay.client import ChatClient, LOGIN_PROMPT, MESSAGE_PROMPT
from chatrelay.config import ClientConfig
from chatrelay.core.connection import Connection

from conftest import wait_for


def make_client(port: int, console: str) -> ChatClient:
    return ChatClient(
        ClientConfig(host="127.0.0.1", port=port, connect_timeout=5.0),
        stdin=io.StringIO(console),
        stdout=io.StringIO(),
    )


class TestChatClient:

    def test_login_message_and_exit(self, chat_server, join):
        bob = join("bob")
        client = make_client(chat_server.port, "alice\nhi\nsair\n")

        client.run()

        assert bob.recv() == "Cliente alice logado."
        assert bob.recv() == "alice diz: hi"
        assert bob.expect_nothing()
        assert client.wait_for_receiver(5.0)

        output = client.stdout.getvalue()
        assert "Cliente conectado ao servidor" in output
        assert LOGIN_PROMPT in output
        assert MESSAGE_PROMPT in output

    def test_console_eof_leaves_chat(self, chat_server, join):
        """Test Ctrl-D on the console behaves like typing the exit keyword."""
        bob = join("bob")
        client = make_client(chat_server.port, "carol\n")

        client.run()

        assert bob.recv() == "Cliente carol logado."
        assert bob.expect_nothing()
        assert client.wait_for_receiver(5.0)
        assert not client.connection.is_open

    def test_eof_before_login(self, chat_server, join):
        bob = join("bob")
        client = make_client(chat_server.port, "")

        client.run()

        assert client.connection.socket.fileno() == -1
        assert bob.expect_nothing()

    def test_receives_broadcasts(self, chat_server, join):
        """Test lines from the server are printed by the receiver thread."""
        client = make_client(chat_server.port, "alice\n")
        client.connect()
        assert client.login()
        assert wait_for(lambda: chat_server.logged_in("alice"))

        bob = join("bob")
        bob.send("oi alice")

        receiver = threading.Thread(target=client.receive_loop, daemon=True)
        receiver.start()

        assert wait_for(lambda: "bob diz: oi alice" in client.stdout.getvalue())
        output = client.stdout.getvalue()
        assert "Cliente bob logado." in output

        client.connection.send("sair")
        receiver.join(timeout=5.0)
        assert not receiver.is_alive()

    def test_connection_refused(self, free_port):
        client = make_client(free_port, "alice\n")

        with pytest.raises(OSError):
            client.run()


class TestReceiveLoop:

    def test_prints_until_eof_then_closes(self):
        ours, theirs = socket.socketpair()
        client = ChatClient(ClientConfig(), stdin=io.StringIO(), stdout=io.StringIO())
        client.connection = Connection(socket=ours, address=("server", 4000))

        theirs.sendall("Cliente bob logado.\nbob diz: olá\n".encode("utf-8"))
        theirs.close()

        client.receive_loop()

        assert client.stdout.getvalue() == "Cliente bob logado.\nbob diz: olá\n"
        assert ours.fileno() == -1

    def test_wait_for_receiver_without_thread(self):
        client = ChatClient(ClientConfig(), stdin=io.StringIO(), stdout=io.StringIO())

        assert client.wait_for_receiver(0.1)
