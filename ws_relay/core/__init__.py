"""
WebSocket Relay Core Module

This module contains the relay server, the per-connection relay session
and the outbound connector.
"""

from .connector import connect_target
from .relay_server import WebSocketRelayServer
from .relay_session import RelaySession

__all__ = ['WebSocketRelayServer', 'RelaySession', 'connect_target']
