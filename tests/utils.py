"""Socket and writer helpers shared by the linerelay tests."""

import asyncio
import contextlib
from typing import Callable
from unittest.mock import MagicMock

import pytest


def make_writer(*, closing: bool = False, buffered: int = 0, error: Exception | None = None) -> MagicMock:
    """A StreamWriter double whose writes are recorded on ``writer.write``."""
    writer = MagicMock(spec=asyncio.StreamWriter)
    writer.is_closing = MagicMock(return_value=closing)
    writer.transport.get_write_buffer_size = MagicMock(return_value=buffered)
    if error is not None:
        writer.write = MagicMock(side_effect=error)
    return writer


def written(writer: MagicMock) -> list[bytes]:
    return [c.args[0] for c in writer.write.call_args_list]


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


class Client:
    """A test-side TCP client of the relay."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, identity: int) -> None:
        self.reader = reader
        self.writer = writer
        self.identity = identity

    async def send(self, data: bytes) -> None:
        self.writer.write(data)
        await self.writer.drain()

    async def expect(self, data: bytes, timeout: float = 1.0) -> None:
        got = await asyncio.wait_for(self.reader.readexactly(len(data)), timeout)
        assert got == data

    async def expect_silence(self, timeout: float = 0.1) -> None:
        with pytest.raises(TimeoutError):
            data = await asyncio.wait_for(self.reader.read(1), timeout)
            pytest.fail(f"unexpected data: {data!r}")

    async def expect_eof(self, timeout: float = 1.0) -> None:
        data = await asyncio.wait_for(self.reader.read(), timeout)
        assert data == b""

    async def close(self) -> None:
        self.writer.close()
        with contextlib.suppress(ConnectionError):
            await self.writer.wait_closed()
