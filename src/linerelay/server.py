"""
Relay Server - accepts clients and fans their lines out to everyone else.

One consumer coroutine drains a mailbox of events posted by the listener and
by a reader task per connection. It is the only code touching the registry,
the line buffers and the writers, and it never awaits while handling an
event, so one event is always fully handled before the next.
"""

from __future__ import annotations

import asyncio
import signal
from asyncio import StreamReader, StreamWriter

from linerelay import logger

from . import messages
from .broadcast import Broadcaster
from .config import RelayConfig
from .framing import FrameTooLong
from .messages import (
    Accepted,
    ErrorClosed,
    PeerClosed,
    Received,
    RelayEvent,
    Shutdown,
)
from .registry import Connection, ConnectionRegistry, RegistryFull


class RelayServer:
    """Line relay bound to one TCP port.

    Usage:
        server = RelayServer(RelayConfig(port=8080))
        await server.serve()          # until SIGINT/SIGTERM or stop()

    Or drive it by hand:
        host, port = await server.start()
        task = asyncio.create_task(server.run())
        ...
        server.stop()
        await task
    """

    def __init__(self, config: RelayConfig | None = None) -> None:
        self._config = config or RelayConfig()
        self._registry = ConnectionRegistry(
            capacity=self._config.capacity,
            max_pending=self._config.max_pending,
        )
        self._broadcaster = Broadcaster(self._registry, self._config.max_write_buffer)
        self._mailbox: asyncio.Queue[RelayEvent] = asyncio.Queue()
        self._server: asyncio.AbstractServer | None = None
        self._readers: dict[int, asyncio.Task[None]] = {}
        self._address: tuple[str, int] | None = None
        self._stopping = False

    @property
    def config(self) -> RelayConfig:
        return self._config

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def address(self) -> tuple[str, int] | None:
        """Bound ``(host, port)``; useful when started on port 0."""
        return self._address

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> tuple[str, int]:
        """Bind and listen. Raises ``OSError`` if the port cannot be bound."""
        self._server = await asyncio.start_server(
            self._on_accept,
            self._config.host,
            self._config.port,
            backlog=self._config.backlog,
            reuse_address=True,
        )
        sockname = self._server.sockets[0].getsockname()
        self._address = (sockname[0], sockname[1])
        logger.info(f"Server listening on port {self._address[1]}...")
        return self._address

    async def serve(self) -> None:
        """Start, run until interrupted, and release everything."""
        await self.start()
        loop = asyncio.get_running_loop()
        installed: list[signal.Signals] = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.stop)
            except (NotImplementedError, RuntimeError):
                # No signal support on this loop; KeyboardInterrupt still ends the process.
                continue
            installed.append(sig)
        try:
            await self.run()
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)

    def stop(self) -> None:
        """Ask the event loop to shut down. Safe to call repeatedly."""
        if self._stopping:
            return
        self._stopping = True
        self._mailbox.put_nowait(Shutdown())

    # =========================================================================
    # EVENT LOOP
    # =========================================================================

    async def run(self) -> None:
        """Handle events until ``stop()`` is called."""
        if self._server is None:
            raise RuntimeError("server is not started")

        while True:
            event = await self._mailbox.get()
            match event:
                case Accepted(reader, writer):
                    self._admit(reader, writer)

                case Received(handle, identity, data):
                    conn = self._live(handle, identity)
                    if conn is not None:
                        self._relay(conn, data)

                case PeerClosed(handle, identity):
                    if self._live(handle, identity) is not None:
                        self._disconnect(handle)

                case ErrorClosed(handle, identity, reason):
                    if self._live(handle, identity) is not None:
                        logger.debug("Read failed", client=identity, error=reason)
                        self._disconnect(handle)

                case Shutdown():
                    await self._shutdown()
                    return

    def _on_accept(self, reader: StreamReader, writer: StreamWriter) -> None:
        self._mailbox.put_nowait(Accepted(reader, writer))

    async def _read_loop(self, handle: int, identity: int, reader: StreamReader) -> None:
        try:
            while True:
                data = await reader.read(self._config.read_size)
                if not data:
                    self._mailbox.put_nowait(PeerClosed(handle, identity))
                    return
                self._mailbox.put_nowait(Received(handle, identity, data))
        except asyncio.CancelledError:
            pass
        except OSError as e:
            self._mailbox.put_nowait(ErrorClosed(handle, identity, str(e) or type(e).__name__))

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def _live(self, handle: int, identity: int) -> Connection | None:
        # Events queued before an eviction may name a handle the OS has reused.
        conn = self._registry.get(handle)
        if conn is None or conn.identity != identity:
            return None
        return conn

    def _admit(self, reader: StreamReader, writer: StreamWriter) -> None:
        sock = writer.get_extra_info("socket")
        if sock is None or writer.is_closing():
            writer.close()
            return
        handle = sock.fileno()

        try:
            identity = self._registry.admit(handle, writer)
        except RegistryFull as e:
            logger.warn("Connection rejected", reason=str(e), peer=writer.get_extra_info("peername"))
            writer.close()
            return

        self._readers[handle] = asyncio.create_task(
            self._read_loop(handle, identity, reader),
            name=f"linerelay-reader-{identity}",
        )
        self._broadcast(messages.arrival(identity), handle)

    def _relay(self, conn: Connection, data: bytes) -> None:
        overflow: FrameTooLong | None = None
        try:
            lines = conn.framer.feed(data)
        except FrameTooLong as e:
            lines, overflow = e.frames, e

        for line in lines:
            self._broadcast(messages.chat(conn.identity, line), conn.handle)

        if overflow is not None:
            logger.warn("Line too long, dropping client", client=conn.identity, size=overflow.size, limit=overflow.limit)
            self._disconnect(conn.handle)

    def _broadcast(self, text: bytes, excluded: int) -> None:
        failed = self._announce(text, excluded)
        if failed:
            self._disconnect(*failed, abort=True)

    def _announce(self, text: bytes, excluded: int) -> tuple[int, ...]:
        logger.info(text.decode(errors="replace").rstrip("\n"))
        return self._broadcaster.broadcast(text, excluded).failed

    def _disconnect(self, *handles: int, abort: bool = False) -> None:
        """Announce departures, then evict.

        ``abort`` resets the sockets instead of flushing them, for recipients
        that failed a send. Recipients that fail while hearing a departure are
        dropped the same way.
        """
        queue = [(handle, abort) for handle in handles]
        while queue:
            handle, reset = queue.pop(0)
            conn = self._registry.get(handle)
            if conn is None:
                continue
            failed = self._announce(messages.departure(conn.identity), handle)
            self._release(handle, abort=reset)
            queue.extend((f, True) for f in failed)

    def _release(self, handle: int, *, abort: bool = False) -> None:
        self._registry.evict(handle, abort=abort)
        task = self._readers.pop(handle, None)
        if task is not None:
            task.cancel()

    async def _shutdown(self) -> None:
        logger.info("Shutting down", clients=len(self._registry))
        if self._server is not None:
            self._server.close()

        readers = list(self._readers.values())
        self._readers.clear()
        for task in readers:
            task.cancel()
        await asyncio.gather(*readers, return_exceptions=True)

        # No departure notices: shutdown drops everyone at once.
        self._registry.evict_all()

        while not self._mailbox.empty():
            match self._mailbox.get_nowait():
                case Accepted(_, writer):
                    writer.close()
                case _:
                    pass

        if self._server is not None:
            # A connection accepted after the drain above keeps wait_closed() pending.
            try:
                await asyncio.wait_for(self._server.wait_closed(), timeout=1.0)
            except TimeoutError:
                logger.debug("Listener closed with connections still in flight")
            self._server = None
