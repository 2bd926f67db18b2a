"""
Shared fixtures: a local echo target, a silent TCP target and the relay itself
"""

import asyncio

import pytest
import pytest_asyncio

from relay_testing import EchoTarget
from ws_relay.core.relay_server import WebSocketRelayServer
from ws_relay.utils.port_check import find_available_port


@pytest_asyncio.fixture
async def echo_target():
    target = EchoTarget()
    await target.start()
    yield target
    await target.stop()


@pytest_asyncio.fixture
async def silent_target():
    """TCP server that accepts connections and never answers the handshake"""
    writers = []

    async def handle(reader, writer):
        writers.append(writer)
        await reader.read()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    yield f"ws://127.0.0.1:{port}"

    for writer in writers:
        writer.close()
    server.close()
    await server.wait_closed()


@pytest.fixture
def unused_port():
    port = find_available_port(start_port=29100, max_attempts=100)
    assert port is not None
    return port


@pytest_asyncio.fixture
async def relay():
    port = find_available_port(start_port=18765, max_attempts=100)
    assert port is not None
    server = WebSocketRelayServer(
        host="127.0.0.1",
        port=port,
        connect_timeout=1.0,
        enable_memory_monitoring=False
    )
    await server.serve()
    yield server
    await server.shutdown()
