"""
Relay session: one inbound socket paired with one outbound socket

Each direction runs as its own pump task. A pump reacts to three events on
its source socket (message, close, error) and only ever acts on the opposite
socket: forward while it is open, close it when the source goes away.
Nothing is queued; a frame arriving while the peer is not open is dropped.
"""

import asyncio
import time
from typing import Any, Callable, Dict, Optional, Union

from aiohttp import WSCloseCode, WSMsgType, web
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from ..utils.errors import get_error_message, to_error_with_message
from ..utils.logging import get_logger

logger = get_logger(__name__)

TO_TARGET = 'client->target'
TO_CLIENT = 'target->client'

ErrorCallback = Callable[['RelaySession', str, BaseException], Any]


def _payload_size(data: Union[str, bytes]) -> int:
    if isinstance(data, str):
        return len(data.encode('utf-8'))
    return len(data)


class RelaySession:
    """
    Bidirectional forwarder between the caller's socket and the target's

    Args:
        inbound: Prepared aiohttp WebSocketResponse handed to the caller
        outbound: Open websockets ClientConnection to the target
        session_id: Identifier used in logs
        on_error: Called as on_error(session, direction, exc) for transport
            errors after the session started; the close behavior is the same
            with or without it
    """

    def __init__(self, inbound: web.WebSocketResponse, outbound: ClientConnection,
                 session_id: Optional[str] = None,
                 on_error: Optional[ErrorCallback] = None):
        self.inbound = inbound
        self.outbound = outbound
        self.session_id = session_id or f"session-{id(self)}"
        self.on_error = on_error
        # Code used when one side's close or error takes down the other
        self.close_code = WSCloseCode.OK

        self.started_at: Optional[float] = None
        self.ended_at: Optional[float] = None
        self.stats = {
            'frames_to_target': 0,
            'bytes_to_target': 0,
            'frames_to_client': 0,
            'bytes_to_client': 0,
            'frames_dropped': 0,
            'errors': 0
        }

    def inbound_open(self) -> bool:
        return not self.inbound.closed

    def outbound_open(self) -> bool:
        return self.outbound.state is State.OPEN

    @property
    def active(self) -> bool:
        """True until both sockets have left the open state"""
        return self.inbound_open() or self.outbound_open()

    async def run(self):
        """Forward frames both ways until both sockets are closed"""
        self.started_at = time.time()
        logger.info(f"Relay session {self.session_id} started")

        pumps = [
            asyncio.create_task(self._pump_inbound(), name=f"{self.session_id}:{TO_TARGET}"),
            asyncio.create_task(self._pump_outbound(), name=f"{self.session_id}:{TO_CLIENT}"),
        ]
        try:
            await asyncio.gather(*pumps)
        finally:
            for pump in pumps:
                if not pump.done():
                    pump.cancel()
            await self.close(self.close_code)
            self.ended_at = time.time()
            logger.info(f"Relay session {self.session_id} ended after "
                        f"{self.ended_at - self.started_at:.1f}s: {self.stats}")

    async def close(self, code: int = WSCloseCode.OK):
        """Close both sockets; closing an already closed socket does nothing"""
        self.close_code = code
        if self.outbound_open():
            await self.outbound.close(code=code)
        if self.inbound_open():
            await self.inbound.close(code=code)

    def get_stats(self) -> Dict[str, Any]:
        return {
            'session_id': self.session_id,
            'started_at': self.started_at,
            'inbound_open': self.inbound_open(),
            'outbound_open': self.outbound_open(),
            **self.stats
        }

    # Pumps

    async def _pump_inbound(self):
        try:
            async for msg in self.inbound:
                if msg.type in (WSMsgType.TEXT, WSMsgType.BINARY):
                    await self._on_inbound_message(msg.data)
                elif msg.type == WSMsgType.ERROR:
                    await self._on_inbound_error(self.inbound.exception())
                    return
        except Exception as e:
            await self._on_inbound_error(e)
            return
        await self._on_inbound_close()

    async def _pump_outbound(self):
        try:
            async for message in self.outbound:
                await self._on_outbound_message(message)
        except Exception as e:
            # ConnectionClosedError: target vanished without a close frame
            await self._on_outbound_error(e)
            return
        await self._on_outbound_close()

    # Inbound transitions

    async def _on_inbound_message(self, data: Union[str, bytes]):
        if not self.outbound_open():
            self.stats['frames_dropped'] += 1
            return
        try:
            await self.outbound.send(data)
        except ConnectionClosed:
            # Target closed between the state check and the send
            self.stats['frames_dropped'] += 1
            return
        self.stats['frames_to_target'] += 1
        self.stats['bytes_to_target'] += _payload_size(data)

    async def _on_inbound_close(self):
        logger.debug(f"Relay session {self.session_id}: client closed ({self.inbound.close_code})")
        if self.outbound_open():
            await self.outbound.close(code=self.close_code)

    async def _on_inbound_error(self, error: Optional[BaseException]):
        self._report_error(TO_TARGET, error)
        if self.outbound_open():
            await self.outbound.close(code=self.close_code)

    # Outbound transitions

    async def _on_outbound_message(self, message: Union[str, bytes]):
        if not self.inbound_open():
            self.stats['frames_dropped'] += 1
            return
        try:
            if isinstance(message, str):
                await self.inbound.send_str(message)
            else:
                await self.inbound.send_bytes(message)
        except ConnectionResetError:
            self.stats['frames_dropped'] += 1
            return
        self.stats['frames_to_client'] += 1
        self.stats['bytes_to_client'] += _payload_size(message)

    async def _on_outbound_close(self):
        logger.debug(f"Relay session {self.session_id}: target closed ({self.outbound.close_code})")
        if self.inbound_open():
            await self.inbound.close(code=self.close_code)

    async def _on_outbound_error(self, error: Optional[BaseException]):
        self._report_error(TO_CLIENT, error)
        if self.inbound_open():
            await self.inbound.close(code=self.close_code)

    def _report_error(self, direction: str, error: Optional[BaseException]):
        self.stats['errors'] += 1
        error = to_error_with_message(error)
        logger.warning(f"Relay session {self.session_id} transport error on {direction}: "
                       f"{get_error_message(error)}")
        if self.on_error is None:
            return
        try:
            self.on_error(self, direction, error)
        except Exception as e:
            logger.error(f"Error in session error callback: {e}")
