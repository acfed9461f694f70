"""
Unit tests for the broadcast router.
"""

import pytest

from chatrelay.core.registry import ConnectionRegistry
from chatrelay.core.router import BroadcastRouter

from conftest import FakeConnection


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def router(registry: ConnectionRegistry) -> BroadcastRouter:
    return BroadcastRouter(registry)


class TestBroadcastRouter:
    """Tests for BroadcastRouter class."""

    def test_relay_returns_delivered_count(self, registry, router):
        """Test relay delivers to everyone but the sender."""
        sender = FakeConnection(login="alice")
        others = [FakeConnection(login=f"user{i}") for i in range(3)]
        registry.add(sender)
        for conn in others:
            registry.add(conn)

        assert router.relay(sender, "raw line") == 3
        assert sender.sent == []
        for conn in others:
            assert conn.sent == ["raw line"]

    def test_announce_login(self, registry, router):
        """Test join announcement format."""
        joiner = FakeConnection(login="bob")
        alice = FakeConnection(login="alice")
        registry.add(alice)
        registry.add(joiner)

        router.announce_login(joiner)

        assert alice.sent == ["Cliente bob logado."]
        assert joiner.sent == []

    def test_relay_chat_format(self, registry, router):
        """Test chat lines are prefixed with the sender's login."""
        alice = FakeConnection(login="alice")
        bob = FakeConnection(login="bob")
        registry.add(alice)
        registry.add(bob)

        router.relay_chat(alice, "hi")

        assert bob.sent == ["alice diz: hi"]

    def test_relay_from_unregistered_sender(self, registry, router):
        """Test a sender that is not (yet) registered still reaches everyone."""
        sender = FakeConnection(login="late")
        bob = FakeConnection(login="bob")
        registry.add(bob)

        assert router.relay_chat(sender, "hello") == 1
        assert bob.sent == ["late diz: hello"]

    def test_relay_with_no_recipients(self, registry, router):
        """Test relay into an empty room."""
        sender = FakeConnection(login="alone")
        registry.add(sender)

        assert router.relay_chat(sender, "anyone?") == 0

    def test_partial_failure_is_not_rolled_back(self, registry, router):
        """Test recipients before and after a failed one keep their copy."""
        sender = FakeConnection(login="alice")
        first = FakeConnection(login="first")
        broken = FakeConnection(login="broken", fail_send=True)
        last = FakeConnection(login="last")
        for conn in (sender, first, broken, last):
            registry.add(conn)

        assert router.relay_chat(sender, "hey") == 2
        assert first.sent == ["alice diz: hey"]
        assert last.sent == ["alice diz: hey"]
        assert broken not in registry
