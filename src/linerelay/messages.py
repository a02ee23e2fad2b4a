"""
Relay wire notices and event-loop events.

Notices are the fixed byte strings clients see. Events are what the
listener and reader tasks post to the relay's mailbox.
"""

import asyncio
from dataclasses import dataclass
from typing import TypeAlias


# ============================================================================
# NOTICES - bytes sent to clients
# ============================================================================


def arrival(identity: int) -> bytes:
    return f"server: client {identity} just arrived\n".encode()


def departure(identity: int) -> bytes:
    return f"server: client {identity} just left\n".encode()


def chat(identity: int, line: bytes) -> bytes:
    """Prefix a framed line with its sender. ``line`` keeps its own ``\\n``."""
    return f"client {identity}: ".encode() + line


# ============================================================================
# EVENTS - posted to the relay mailbox
# ============================================================================


@dataclass(frozen=True, slots=True)
class Accepted:
    """The listener accepted a new socket."""

    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter


@dataclass(frozen=True, slots=True)
class Received:
    """One read on a connection returned ``data``."""

    handle: int
    identity: int
    data: bytes


@dataclass(frozen=True, slots=True)
class PeerClosed:
    """A read on a connection returned end-of-stream."""

    handle: int
    identity: int


@dataclass(frozen=True, slots=True)
class ErrorClosed:
    """A read on a connection failed."""

    handle: int
    identity: int
    reason: str


@dataclass(frozen=True, slots=True)
class Shutdown:
    """Stop the relay: drop every client without notices and return."""

    pass


ConnectionEvent: TypeAlias = Received | PeerClosed | ErrorClosed
RelayEvent: TypeAlias = Accepted | ConnectionEvent | Shutdown
