"""
WebSocket Relay Package

This package accepts WebSocket upgrade requests that name a target URL,
connects to that target and forwards frames both ways until either side
closes.

Architecture:
- core/: Relay server, relay sessions and the outbound connector
- utils/: URL validation, error normalization, logging and monitoring
"""

# Core components
from .core import WebSocketRelayServer, RelaySession, connect_target

# Integration functions
from .integration import (
    start_relay_server,
    cleanup_relay_server,
    get_relay_stats,
    get_relay_instance
)

# Configuration
from .production_config import ProductionConfig, DevelopmentConfig, CORS_HEADERS

# Utilities
from .utils import (
    ConnectError,
    RelayError,
    find_available_port,
    format_ipv6_url,
    get_error_message,
    is_port_in_use,
    to_error_with_message,
    validate_url
)

__version__ = "1.0.0"
__all__ = [
    # Core components
    'WebSocketRelayServer',
    'RelaySession',
    'connect_target',

    # Integration functions
    'start_relay_server',
    'cleanup_relay_server',
    'get_relay_stats',
    'get_relay_instance',

    # Configuration
    'ProductionConfig',
    'DevelopmentConfig',
    'CORS_HEADERS',

    # Utilities
    'ConnectError',
    'RelayError',
    'find_available_port',
    'format_ipv6_url',
    'get_error_message',
    'is_port_in_use',
    'to_error_with_message',
    'validate_url'
]
