"""
Outbound WebSocket connection establishment
"""

import asyncio
from typing import Optional

from websockets.asyncio.client import ClientConnection, connect

from ..production_config import config
from ..utils.errors import ConnectError, get_error_message
from ..utils.logging import get_logger

logger = get_logger(__name__)


async def connect_target(url: str, timeout: Optional[float] = None,
                         max_size: Optional[int] = None) -> ClientConnection:
    """
    Open a WebSocket connection to url and wait until it is open

    The opening handshake races a timer; whichever finishes first wins and
    the other is cancelled.

    Args:
        url: Validated ws:// or wss:// target
        timeout: Seconds to wait for the connection to open
        max_size: Largest incoming message accepted from the target

    Returns:
        ClientConnection: The open outbound connection

    Raises:
        ConnectError: On timeout or any failure before the connection opened
    """
    if timeout is None:
        timeout = config.CONNECT_TIMEOUT
    if max_size is None:
        max_size = config.MAX_MESSAGE_SIZE

    try:
        websocket = await asyncio.wait_for(
            connect(
                url,
                open_timeout=None,   # bounded by wait_for
                close_timeout=config.CLOSE_TIMEOUT,
                max_size=max_size,
                ping_interval=config.HEARTBEAT_INTERVAL,
                compression=None     # frames pass through untouched
            ),
            timeout=timeout
        )
    except asyncio.TimeoutError as e:
        logger.warning(f"Connection to {url} timed out after {timeout}s")
        raise ConnectError("Connection timeout", url=url) from e
    except Exception as e:
        # Refused, DNS, TLS, bad status or malformed handshake
        message = get_error_message(e)
        logger.warning(f"Connection to {url} failed: {message}")
        raise ConnectError(message, url=url) from e

    logger.debug(f"Connected to target {url}")
    return websocket
