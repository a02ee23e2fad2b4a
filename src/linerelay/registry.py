"""
Connection Registry - per-client state keyed by socket handle.

Only the relay's event loop touches a registry, so it carries no locking.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Iterator

from .framing import LineFramer


class RegistryFull(Exception):
    def __init__(self, capacity: int) -> None:
        super().__init__(f"connection limit of {capacity} reached")
        self.capacity = capacity


@dataclass(slots=True)
class Connection:
    """One accepted client.

    Args:
        handle: OS socket descriptor; the registry key.
        identity: Server-assigned number used in announcements.
        writer: Outbound side of the socket.
        framer: Holds bytes received but not yet forming a complete line.
    """

    handle: int
    identity: int
    writer: asyncio.StreamWriter
    framer: LineFramer = field(default_factory=LineFramer)

    @property
    def pending(self) -> bytes:
        return self.framer.pending


class ConnectionRegistry:
    def __init__(self, capacity: int = 1024, max_pending: int | None = None) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self._capacity = capacity
        self._max_pending = max_pending
        self._connections: dict[int, Connection] = {}
        self._next_identity = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def next_identity(self) -> int:
        return self._next_identity

    def admit(self, handle: int, writer: asyncio.StreamWriter) -> int:
        """Register a freshly accepted socket and return its identity.

        Raises:
            RegistryFull: ``capacity`` connections are already active.
            ValueError: ``handle`` is already registered.
        """
        if handle in self._connections:
            msg = f"handle {handle} is already active"
            raise ValueError(msg)
        if len(self._connections) >= self._capacity:
            raise RegistryFull(self._capacity)

        identity = self._next_identity
        self._next_identity += 1
        self._connections[handle] = Connection(
            handle=handle,
            identity=identity,
            writer=writer,
            framer=LineFramer(self._max_pending),
        )
        return identity

    def evict(self, handle: int, *, abort: bool = False) -> Connection | None:
        """Drop ``handle``, releasing its buffer and closing its socket.

        With ``abort``, or while output is still queued for the peer, the
        socket is reset at once and the queued bytes are discarded. Evicting
        an unknown handle does nothing.
        """
        conn = self._connections.pop(handle, None)
        if conn is None:
            return None
        conn.framer.clear()
        writer = conn.writer
        if abort or writer.transport.get_write_buffer_size() > 0:
            # close() would wait for a flush a stalled peer never takes.
            writer.transport.abort()
        elif not writer.is_closing():
            writer.close()
        return conn

    def evict_all(self) -> list[Connection]:
        evicted = []
        for handle in sorted(self._connections):
            conn = self.evict(handle)
            if conn is not None:
                evicted.append(conn)
        return evicted

    def active_except(self, handle: int | None) -> Iterator[int]:
        """Yield every active handle but ``handle``, in ascending order.

        Works on a snapshot, so evicting while iterating is safe.
        """
        for active in sorted(self._connections):
            if active != handle:
                yield active

    def get(self, handle: int) -> Connection | None:
        return self._connections.get(handle)

    def __contains__(self, handle: object) -> bool:
        return handle in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    def __iter__(self) -> Iterator[Connection]:
        return iter([self._connections[h] for h in sorted(self._connections)])
