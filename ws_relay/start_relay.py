"""
Standalone WebSocket relay starter
"""

import asyncio
import platform
import signal
import sys

from .core.relay_server import WebSocketRelayServer
from .production_config import config
from .utils.logging import get_logger, setup_logging

logger = get_logger(__name__)

# Set correct event loop policy for Windows
if platform.system() == 'Windows':
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


async def run_relay():
    """Run the relay in the foreground until SIGINT/SIGTERM"""
    server = WebSocketRelayServer()
    await server.serve()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, server.shutdown_sync)
        except NotImplementedError:
            # Windows: fall back to KeyboardInterrupt
            pass

    await server.wait_for_shutdown()


def main():
    """Start the WebSocket relay in standalone mode"""
    setup_logging()
    if not config.validate():
        sys.exit(1)

    logger.info("Starting standalone WebSocket relay server...")
    try:
        asyncio.run(run_relay())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except OSError as e:
        logger.error(f"Could not start relay: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
