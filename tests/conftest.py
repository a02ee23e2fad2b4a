"""Shared fixtures for linerelay tests."""

import asyncio
import socket

import pytest

from linerelay import RelayConfig, RelayServer
from tests.utils import Client, wait_until


@pytest.fixture
def relay_config() -> RelayConfig:
    return RelayConfig(port=0)


@pytest.fixture
async def relay(relay_config: RelayConfig):
    """A started relay whose event loop runs in a background task."""
    server = RelayServer(relay_config)
    await server.start()
    task = asyncio.create_task(server.run())
    yield server
    server.stop()
    await asyncio.wait_for(task, 2.0)


@pytest.fixture
async def connect(relay: RelayServer):
    """Open a client and wait until the relay has admitted it."""
    clients: list[Client] = []

    async def _connect() -> Client:
        before = relay.registry.next_identity
        host, port = relay.address
        reader, writer = await asyncio.open_connection(host, port)
        await wait_until(lambda: relay.registry.next_identity > before)
        client = Client(reader, writer, identity=before)
        clients.append(client)
        return client

    yield _connect

    for client in clients:
        await client.close()


@pytest.fixture
def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]
