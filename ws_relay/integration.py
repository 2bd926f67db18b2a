"""
Relay Integration
Runs the WebSocket relay on its own event loop thread inside a host process
"""

import asyncio
import atexit
import platform
import signal
import threading
from typing import Any, Dict, Optional

from .core.relay_server import WebSocketRelayServer
from .production_config import config
from .utils.logging import get_logger, setup_logging
from .utils.port_check import is_port_in_use

# Set correct event loop policy for Windows
if platform.system() == 'Windows':
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Global state
_relay_instance: Optional[WebSocketRelayServer] = None
_relay_thread: Optional[threading.Thread] = None
_relay_started = threading.Event()

logger = get_logger(__name__)


def create_relay_server(**kwargs) -> WebSocketRelayServer:
    """Create a relay server from configuration; kwargs override config values"""
    server_config = config.get_server_config()
    relay_config = config.get_relay_config()
    logger.info(f"Creating relay server: host={server_config['host']} port={server_config['port']} "
                f"connect_timeout={relay_config['connect_timeout']}s")

    return WebSocketRelayServer(
        host=kwargs.get('host', server_config['host']),
        port=kwargs.get('port', server_config['port']),
        connect_timeout=kwargs.get('connect_timeout', relay_config['connect_timeout']),
        target_param=kwargs.get('target_param', relay_config['target_param']),
        enable_memory_monitoring=kwargs.get('enable_memory_monitoring')
    )


def cleanup_relay_server():
    """Stop the relay server and wait for its thread"""
    global _relay_instance, _relay_thread

    try:
        if _relay_instance is None and _relay_thread is None:
            return

        logger.info("Cleaning up relay server...")

        if _relay_instance:
            try:
                _relay_instance.shutdown_sync()
            except Exception as e:
                logger.warning(f"Error during relay shutdown: {e}")

        if _relay_thread and _relay_thread.is_alive() and _relay_thread is not threading.current_thread():
            logger.info("Waiting for relay thread to finish...")
            _relay_thread.join(timeout=5.0)

            if _relay_thread.is_alive():
                logger.info("Relay thread still running, allowing background cleanup")
            else:
                logger.info("Relay thread finished successfully")

        _relay_instance = None
        _relay_thread = None
        _relay_started.clear()
        logger.info("Relay server cleanup completed")

    except Exception as e:
        logger.error(f"Error during relay cleanup: {e}")
        _relay_instance = None
        _relay_thread = None
        _relay_started.clear()


def signal_handler(signum, frame):
    """Handle shutdown signals"""
    logger.info(f"Received signal {signum}, initiating graceful shutdown...")
    cleanup_relay_server()
    raise SystemExit(0)


def start_relay_server(register_signals: bool = True, wait: float = 5.0, **kwargs) -> Optional[threading.Thread]:
    """
    Start the relay server on a separate thread with its own event loop

    Args:
        register_signals: Install SIGINT/SIGTERM handlers (main thread only)
        wait: Seconds to wait for the server to start listening
        **kwargs: Overrides passed to create_relay_server

    Returns:
        threading.Thread: The server thread, or None if it could not start
    """
    global _relay_instance, _relay_thread
    setup_logging()

    if _relay_thread and _relay_thread.is_alive():
        logger.warning("Relay server already running")
        return _relay_thread

    server = create_relay_server(**kwargs)
    if is_port_in_use(server.host, server.port):
        logger.error(f"Port {server.port} is already in use on {server.host}, relay not started")
        return None

    _relay_instance = server
    _relay_started.clear()

    def run_relay_server():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            loop.run_until_complete(_serve_and_signal(server))
        except Exception as e:
            logger.exception(f"Error in relay server thread: {e}")
        finally:
            try:
                loop.run_until_complete(loop.shutdown_asyncgens())
                loop.close()
            except Exception as e:
                logger.warning(f"Error closing event loop: {e}")
            _relay_started.set()

    _relay_thread = threading.Thread(
        target=run_relay_server,
        name="ws-relay",
        daemon=False  # Allow proper cleanup
    )
    _relay_thread.start()

    atexit.register(cleanup_relay_server)

    if register_signals and threading.current_thread() is threading.main_thread():
        try:
            signal.signal(signal.SIGINT, signal_handler)
            signals_registered = ["SIGINT"]

            if hasattr(signal, 'SIGTERM'):
                signal.signal(signal.SIGTERM, signal_handler)
                signals_registered.append("SIGTERM")

            logger.info(f"Signal handlers registered: {', '.join(signals_registered)}")
        except (ValueError, OSError) as e:
            logger.warning(f"Could not register signal handlers: {e}")

    if not _relay_started.wait(timeout=wait) or not server.running:
        logger.error("Relay server did not start in time")
        cleanup_relay_server()
        return None

    logger.info("Relay server thread started")
    return _relay_thread


async def _serve_and_signal(server: WebSocketRelayServer):
    """Serve, flag the waiting thread once listening, then run until shutdown"""
    try:
        await server.serve()
    finally:
        _relay_started.set()
    await server.wait_for_shutdown()


def get_relay_instance() -> Optional[WebSocketRelayServer]:
    """Get the running relay server instance"""
    return _relay_instance


def get_relay_stats() -> Dict[str, Any]:
    """Get relay statistics"""
    stats = {
        'relay_running': _relay_instance is not None and _relay_instance.running,
        'thread_alive': bool(_relay_thread and _relay_thread.is_alive())
    }

    if _relay_instance:
        stats.update(_relay_instance.get_stats_sync())

    return stats
