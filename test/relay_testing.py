"""
Helpers shared by the relay tests
"""

import asyncio
from urllib.parse import quote

from websockets.asyncio.server import serve


class EchoTarget:
    """
    Echo WebSocket server used as the relay target

    Control messages: "close" makes the target close cleanly, "abort" drops
    the TCP connection without a close frame.
    """

    def __init__(self):
        self.server = None
        self.port = None
        self.received = []
        self.connections = 0
        self.disconnected = asyncio.Event()

    @property
    def url(self):
        return f"ws://127.0.0.1:{self.port}"

    async def handler(self, websocket):
        self.connections += 1
        try:
            async for message in websocket:
                self.received.append(message)
                if message == "close":
                    await websocket.close(code=1000)
                    return
                if message == "abort":
                    websocket.transport.abort()
                    return
                await websocket.send(message)
        finally:
            self.disconnected.set()

    async def start(self):
        self.server = await serve(self.handler, "127.0.0.1", 0, compression=None)
        self.port = self.server.sockets[0].getsockname()[1]

    async def stop(self):
        self.server.close()
        await self.server.wait_closed()


def relay_ws_url(relay, target_url, path="/proxy"):
    return f"ws://127.0.0.1:{relay.port}{path}?url={quote(target_url, safe='')}"


def relay_http_url(relay, path="/"):
    return f"http://127.0.0.1:{relay.port}{path}"


async def wait_for(predicate, timeout=5.0):
    """Wait until predicate() is true; the relay finishes sessions on its own schedule"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.02)
