from __future__ import annotations

from typing import Protocol


DELIMITER = b"\n"


class Framer(Protocol):
    def feed(self, data: bytes) -> list[bytes]: ...

    @property
    def pending(self) -> bytes: ...

    def clear(self) -> None: ...


class FrameTooLong(Exception):
    """The incomplete line held for a connection outgrew its bound.

    ``frames`` holds the complete lines extracted by the same ``feed`` call,
    so the caller can still deliver them before dropping the connection.
    """

    def __init__(self, size: int, limit: int, frames: list[bytes]) -> None:
        super().__init__(f"pending line of {size} bytes exceeds limit of {limit}")
        self.size = size
        self.limit = limit
        self.frames = frames


class LineFramer:
    """Splits a byte stream into ``\\n``-terminated lines.

    The delimiter is kept on every emitted line. Bytes after the last
    delimiter stay buffered until a later ``feed`` completes them.
    """

    def __init__(self, max_pending: int | None = None) -> None:
        self._buffer = bytearray()
        self._max_pending = max_pending

    @property
    def pending(self) -> bytes:
        return bytes(self._buffer)

    def feed(self, data: bytes) -> list[bytes]:
        # Only the newly appended bytes can hold a delimiter.
        start = len(self._buffer)
        self._buffer.extend(data)
        frames: list[bytes] = []
        consumed = 0
        index = self._buffer.find(DELIMITER, start)
        while index != -1:
            end = index + 1
            frames.append(bytes(self._buffer[consumed:end]))
            consumed = end
            index = self._buffer.find(DELIMITER, end)
        if consumed:
            del self._buffer[:consumed]

        if self._max_pending is not None and len(self._buffer) > self._max_pending:
            raise FrameTooLong(len(self._buffer), self._max_pending, frames)
        return frames

    def clear(self) -> None:
        self._buffer.clear()

    def __len__(self) -> int:
        return len(self._buffer)
