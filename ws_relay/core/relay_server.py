"""
WebSocket Relay Server
HTTP front door for the relay: dispatches upgrade requests to relay sessions
and answers everything else with a status document
"""

import asyncio
import concurrent.futures
import itertools
import json
import weakref
from datetime import datetime, timezone
from functools import partial
from typing import Any, Dict, Optional

from aiohttp import WSCloseCode, hdrs, web

from ..production_config import (
    CORS_HEADERS, SERVER_NAME, SERVER_VERSION, WEBSOCKET_ENDPOINT_HINT, config
)
from ..utils.errors import ConnectError, get_error_message
from ..utils.logging import get_logger
from ..utils.port_check import is_port_in_use
from ..utils.url_utils import format_ipv6_url, validate_url
from .connector import connect_target
from .relay_session import RelaySession

logger = get_logger(__name__)


def _text_response(text: str, status: int) -> web.Response:
    return web.Response(text=text, status=status, content_type='text/plain', headers=CORS_HEADERS)


class WebSocketRelayServer:
    """
    Transparent WebSocket relay

    Each accepted upgrade request gets its own RelaySession; sessions share
    nothing but the server's counters.
    """

    def __init__(self, host: Optional[str] = None, port: Optional[int] = None,
                 connect_timeout: Optional[float] = None,
                 target_param: Optional[str] = None,
                 enable_memory_monitoring: Optional[bool] = None):
        self.host = host if host is not None else config.RELAY_HOST
        self.port = port if port is not None else config.RELAY_PORT
        self.connect_timeout = connect_timeout if connect_timeout is not None else config.CONNECT_TIMEOUT
        self.target_param = target_param or config.TARGET_PARAM
        self.max_message_size = config.MAX_MESSAGE_SIZE
        self.heartbeat_interval = config.HEARTBEAT_INTERVAL
        if enable_memory_monitoring is None:
            enable_memory_monitoring = config.ENABLE_MEMORY_MONITORING
        self.enable_memory_monitoring = enable_memory_monitoring

        # Live sessions, held weakly so a finished session is collectable
        self.sessions: "weakref.WeakSet[RelaySession]" = weakref.WeakSet()
        self._session_ids = itertools.count(1)

        self.stats = {
            'upgrade_requests': 0,
            'status_requests': 0,
            'sessions_started': 0,
            'sessions_closed': 0,
            'rejected_requests': 0,
            'connect_failures': 0,
            'transport_errors': 0,
            'server_errors': 0
        }

        # Server state
        self.running = False
        self.app: Optional[web.Application] = None
        self.runner: Optional[web.AppRunner] = None
        self.site: Optional[web.TCPSite] = None
        self.memory_monitor = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._shutdown_future: Optional[asyncio.Future] = None

        logger.info(f"Initialized WebSocketRelayServer for {self.host}:{self.port}")

    def create_app(self) -> web.Application:
        """Build the aiohttp application; every path goes through the dispatcher"""
        app = web.Application(middlewares=[self._error_middleware])
        app.router.add_route('*', '/{path:.*}', self._dispatch)
        app.on_shutdown.append(self._on_shutdown)
        return app

    async def serve(self):
        """Bind and start accepting requests, then return"""
        if is_port_in_use(self.host, self.port):
            raise OSError(f"Port {self.port} is already in use on {self.host}")

        self._loop = asyncio.get_running_loop()
        self.app = self.create_app()
        self.runner = web.AppRunner(self.app, access_log=None)
        await self.runner.setup()
        self.site = web.TCPSite(self.runner, host=self.host, port=self.port)
        await self.site.start()
        self._shutdown_future = self._loop.create_future()
        self.running = True

        if self.enable_memory_monitoring:
            self._start_memory_monitoring()

        logger.info(f"WebSocket relay listening on {self.host}:{self.port}")

    async def start(self):
        """Serve until shutdown is requested"""
        logger.info("Starting WebSocket Relay Server")
        await self.serve()
        await self.wait_for_shutdown()

    async def wait_for_shutdown(self):
        """Block until shutdown_sync() is called or the task is cancelled, then shut down"""
        try:
            await self._shutdown_future
        except (KeyboardInterrupt, asyncio.CancelledError):
            logger.info("Received shutdown signal")
        finally:
            await self.shutdown()

    # Dispatch

    @web.middleware
    async def _error_middleware(self, request: web.Request, handler):
        try:
            response = await handler(request)
        except web.HTTPException as e:
            e.headers.setdefault('Access-Control-Allow-Origin', CORS_HEADERS['Access-Control-Allow-Origin'])
            raise
        except Exception as e:
            self.stats['server_errors'] += 1
            message = get_error_message(e)
            logger.error(f"Server error: {message}")
            return _text_response(f"Server error: {message}", 500)

        if not response.prepared and 'Access-Control-Allow-Origin' not in response.headers:
            response.headers['Access-Control-Allow-Origin'] = CORS_HEADERS['Access-Control-Allow-Origin']
        return response

    async def _dispatch(self, request: web.Request) -> web.StreamResponse:
        upgrade = request.headers.get(hdrs.UPGRADE, '')
        if upgrade.lower() == 'websocket':
            return await self._handle_websocket(request)
        return await self._handle_http(request)

    async def _handle_http(self, request: web.Request) -> web.Response:
        """CORS preflight and the status document"""
        if request.method == hdrs.METH_OPTIONS:
            return web.Response(status=200, headers=CORS_HEADERS)

        self.stats['status_requests'] += 1
        status = {
            'status': 'running',
            'name': SERVER_NAME,
            'version': SERVER_VERSION,
            'timestamp': datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z'),
            'endpoints': {
                'websocket': WEBSOCKET_ENDPOINT_HINT,
            }
        }
        return web.json_response(status, headers=CORS_HEADERS, dumps=partial(json.dumps, indent=2))

    async def _handle_websocket(self, request: web.Request) -> web.StreamResponse:
        """Validate the target, connect to it, then relay until both sides close"""
        self.stats['upgrade_requests'] += 1

        target_url = request.query.get(self.target_param)
        if not target_url:
            self.stats['rejected_requests'] += 1
            return _text_response("Missing target URL", 400)

        if not validate_url(target_url):
            self.stats['rejected_requests'] += 1
            logger.info(f"Rejected invalid target URL: {target_url!r}")
            return _text_response("Invalid WebSocket URL", 400)

        target_url = format_ipv6_url(target_url)

        inbound = web.WebSocketResponse(
            heartbeat=self.heartbeat_interval,
            max_msg_size=self.max_message_size
        )
        # The target is only dialed for a handshake the caller can complete
        if not inbound.can_prepare(request).ok:
            self.stats['rejected_requests'] += 1
            logger.info(f"Rejected incomplete WebSocket handshake from {request.remote}")
            return _text_response("Invalid WebSocket handshake", 400)

        try:
            outbound = await connect_target(
                target_url,
                timeout=self.connect_timeout,
                max_size=self.max_message_size
            )
        except ConnectError as e:
            self.stats['connect_failures'] += 1
            return _text_response(f"Connection failed: {get_error_message(e)}", 502)

        inbound.headers['Access-Control-Allow-Origin'] = CORS_HEADERS['Access-Control-Allow-Origin']
        try:
            await inbound.prepare(request)
        except Exception:
            # The caller's handshake failed, the target connection has no owner
            await outbound.close()
            raise

        session = RelaySession(
            inbound,
            outbound,
            session_id=f"session-{next(self._session_ids)}",
            on_error=self._on_session_error
        )
        self.sessions.add(session)
        self.stats['sessions_started'] += 1
        logger.info(f"Relaying {request.remote} <-> {target_url} ({session.session_id})")

        try:
            await session.run()
        finally:
            self.sessions.discard(session)
            self.stats['sessions_closed'] += 1

        return inbound

    def _on_session_error(self, session: RelaySession, direction: str, error: BaseException):
        self.stats['transport_errors'] += 1

    # Stats

    def get_stats(self) -> Dict[str, Any]:
        """Get server statistics; call from the server's event loop"""
        sessions = [s for s in list(self.sessions) if s.active]
        stats = {
            'running': self.running,
            'host': self.host,
            'port': self.port,
            'active_sessions': len(sessions),
            'sessions': [s.get_stats() for s in sessions],
            **self.stats
        }

        if self.memory_monitor:
            try:
                stats['memory'] = self.memory_monitor.get_stats()
            except Exception as e:
                logger.warning(f"Failed to get memory stats: {e}")

        return stats

    def get_stats_sync(self, timeout: float = 5.0) -> Dict[str, Any]:
        """Get server statistics from another thread by collecting them on the server loop"""
        loop = self._loop
        if loop is None or loop.is_closed() or not loop.is_running():
            return self.get_stats()

        try:
            running_loop = asyncio.get_running_loop()
        except RuntimeError:
            running_loop = None
        if running_loop is loop:
            return self.get_stats()

        async def _collect():
            return self.get_stats()

        try:
            future = asyncio.run_coroutine_threadsafe(_collect(), loop)
            return future.result(timeout=timeout)
        except (RuntimeError, concurrent.futures.CancelledError, concurrent.futures.TimeoutError) as e:
            # Loop closed or stopped answering while shutting down
            logger.warning(f"Could not collect relay stats on the server loop: {e!r}")
            return {'running': self.running, 'host': self.host, 'port': self.port}

    # Memory monitoring

    def _start_memory_monitoring(self):
        try:
            from ..utils.memory_monitor import get_memory_monitor
            self.memory_monitor = get_memory_monitor()
            self.memory_monitor.add_cleanup_callback(self._memory_cleanup_callback, "WebSocketRelay")
            self.memory_monitor.start_monitoring()
            logger.info("Memory monitoring started")
        except Exception as e:
            logger.warning(f"Failed to start memory monitoring: {e}")
            self.memory_monitor = None

    def _memory_cleanup_callback(self) -> str:
        """
        Runs on the monitor thread. The session set belongs to the event loop,
        so the release is scheduled there and only a count is read here.
        """
        loop = self._loop
        if loop is None or loop.is_closed():
            return f"{len(self.sessions)} tracked relay sessions, event loop not running"
        try:
            loop.call_soon_threadsafe(self._release_finished_sessions)
        except RuntimeError as e:
            # Loop closed between the check and the call
            logger.debug(f"Could not schedule session release: {e}")
        return f"{len(self.sessions)} tracked relay sessions, release scheduled"

    def _release_finished_sessions(self):
        finished = [s for s in list(self.sessions) if not s.active]
        for session in finished:
            self.sessions.discard(session)
        if finished:
            logger.info(f"Released {len(finished)} finished relay sessions")

    # Shutdown

    async def _on_shutdown(self, app: web.Application):
        sessions = list(self.sessions)
        if not sessions:
            return
        logger.info(f"Closing {len(sessions)} relay sessions")
        results = await asyncio.gather(
            *(s.close(code=WSCloseCode.GOING_AWAY) for s in sessions),
            return_exceptions=True
        )
        for session, result in zip(sessions, results):
            if isinstance(result, Exception):
                logger.warning(f"Error closing {session.session_id}: {get_error_message(result)}")

    async def shutdown(self):
        """Stop accepting requests and close every live session"""
        if not self.running:
            return
        logger.info("Shutting down WebSocket Relay Server")
        self.running = False

        if self.memory_monitor:
            try:
                self.memory_monitor.stop_monitoring()
            except Exception as e:
                logger.error(f"Error stopping memory monitor: {e}")

        if self.runner:
            await self.runner.cleanup()
            self.runner = None
            self.site = None

        logger.info(f"WebSocket Relay Server shutdown complete: {self.stats}")

    def shutdown_sync(self):
        """Request shutdown from another thread; start() finishes the cleanup"""
        logger.info("Shutting down WebSocket Relay Server (sync)")

        future = self._shutdown_future
        if self._loop is None or future is None or self._loop.is_closed():
            return

        def _signal():
            if not future.done():
                future.set_result(None)

        try:
            self._loop.call_soon_threadsafe(_signal)
        except RuntimeError as e:
            logger.debug(f"Could not signal shutdown future: {e}")
