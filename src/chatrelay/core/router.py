"""
Broadcast routing.

Turns chat events into protocol lines and fans them out through the
registry. Each sender's lines go through its own session thread, so
per-sender order is kept; lines from different senders interleave in
whatever order their threads win the registry lock.
"""

import logging

from .connection import Connection
from .registry import ConnectionRegistry
from .. import protocol


logger = logging.getLogger(__name__)


class BroadcastRouter:
    """Delivers messages from one connection to every other registered one."""

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry

    def relay(self, sender: Connection, message: str) -> int:
        """
        Deliver a line to everyone but the sender.

        Returns:
            Number of connections that received it.
        """
        delivered = self.registry.broadcast_except(sender, message)
        logger.debug(f"[{sender.id}] Message forwarded to {delivered} clients")
        return delivered

    def announce_login(self, sender: Connection) -> int:
        """Tell everyone else that `sender` just logged in."""
        return self.relay(sender, protocol.format_login_announcement(sender.login))

    def relay_chat(self, sender: Connection, text: str) -> int:
        """Relay a chat line as "<login> diz: <text>"."""
        return self.relay(sender, protocol.format_chat_message(sender.login, text))
