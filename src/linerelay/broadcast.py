from __future__ import annotations

from dataclasses import dataclass

from linerelay import logger

from .registry import ConnectionRegistry


@dataclass(frozen=True, slots=True)
class BroadcastResult:
    delivered: tuple[int, ...]
    failed: tuple[int, ...]


class Broadcaster:
    """Writes one notice to every registered client but the excluded one.

    A write never blocks: the transport buffers whatever the socket does not
    take at once. A recipient whose socket is gone, whose write raises, or
    whose outbound buffer is past ``max_write_buffer`` is reported in
    ``BroadcastResult.failed``; the others still get the notice.
    """

    def __init__(self, registry: ConnectionRegistry, max_write_buffer: int = 1024 * 1024) -> None:
        self._registry = registry
        self._max_write_buffer = max_write_buffer

    def broadcast(self, text: bytes, excluded: int | None = None) -> BroadcastResult:
        delivered: list[int] = []
        failed: list[int] = []

        for handle in self._registry.active_except(excluded):
            conn = self._registry.get(handle)
            if conn is None:
                continue
            writer = conn.writer

            if writer.is_closing():
                logger.warn("Recipient already closing", client=conn.identity)
                failed.append(handle)
                continue

            try:
                writer.write(text)
            except (OSError, RuntimeError) as e:
                logger.warn("Send failed", client=conn.identity, error=str(e))
                failed.append(handle)
                continue

            buffered = writer.transport.get_write_buffer_size()
            if buffered > self._max_write_buffer:
                logger.warn("Recipient not reading", client=conn.identity, buffered=buffered)
                failed.append(handle)
                continue

            delivered.append(handle)

        return BroadcastResult(tuple(delivered), tuple(failed))
