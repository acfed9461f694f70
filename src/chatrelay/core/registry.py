"""
=============================================================================
CONNECTION REGISTRY
=============================================================================

The registry is the ONE piece of mutable state shared between threads:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   Accept loop (main thread) ───── add() ──────────┐                  │
    │                                                   ▼                  │
    │                                          ┌─────────────────┐         │
    │   Session thread A ── broadcast_except() ►│   _members      │         │
    │   Session thread B ── broadcast_except() ►│   (list)        │         │
    │   Session thread C ── broadcast_except() ►│  guarded by     │         │
    │                                          │  _lock          │         │
    │                                          └─────────────────┘         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The lock only guards the list itself. A broadcast copies the members
under the lock, writes to them with the lock released, then takes the lock
again to drop the ones whose write failed:

    with _lock: targets = list(_members)       # snapshot
    for member in targets: member.send(...)   # no lock held
    with _lock: drop failed members           # by identity

A recipient that stops reading only stalls the broadcast writing to it.
add(), other broadcasts and shutdown keep going.

=============================================================================
LAZY CLEANUP
=============================================================================

A session that ends does NOT remove its connection. The entry stays until a
broadcast tries to write to it and fails; that broadcast drops it. Closed
connections fail their next send() immediately, so they disappear on the
next message anyone sends.

=============================================================================
"""

import logging
import threading
from typing import List

from .connection import Connection


logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """
    Thread-safe collection of connections believed to be open.

    There is no public remove(): entries leave only when a broadcast write
    to them fails. Growth is unbounded for the life of the process.
    """

    def __init__(self):
        self._members: List[Connection] = []
        self._lock = threading.Lock()

    def add(self, connection: Connection) -> None:
        """Register a connection. No duplicate check beyond identity."""
        with self._lock:
            self._members.append(connection)

    def broadcast_except(self, sender: Connection, message: str) -> int:
        """
        Send a message to every member except the sender.

        Members whose send() fails are dropped once the pass is over.
        Delivery is not transactional: recipients that already got the
        message keep it, and the failed one is not retried.

        Targets are the members present when the call starts; a member
        added meanwhile gets the next broadcast, not this one. A slow
        recipient delays the rest of this call only.

        Args:
            sender: Connection the message came from (excluded by id).
            message: Line to deliver.

        Returns:
            Number of members the message was delivered to.
        """
        with self._lock:
            targets = list(self._members)

        delivered = 0
        failed = []

        for member in targets:
            if member.id == sender.id:
                continue

            if member.send(message):
                delivered += 1
            else:
                failed.append(member)

        if failed:
            with self._lock:
                self._members = [
                    m for m in self._members
                    if not any(m is dead for dead in failed)
                ]

            for member in failed:
                logger.info(
                    f"[{member.id}] Dropping {member.login or '<no login>'} "
                    f"({member.remote_address}) from registry after failed send"
                )

        return delivered

    def snapshot(self) -> List[Connection]:
        """Copy of the current members."""
        with self._lock:
            return list(self._members)

    def __len__(self) -> int:
        with self._lock:
            return len(self._members)

    def __contains__(self, connection: Connection) -> bool:
        with self._lock:
            return any(member is connection for member in self._members)
