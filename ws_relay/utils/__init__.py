"""
Utilities Module

This module contains utility functions for the WebSocket relay.
"""

from .errors import ConnectError, RelayError, get_error_message, to_error_with_message
from .port_check import find_available_port, is_port_in_use
from .url_utils import format_ipv6_url, validate_url

__all__ = [
    'ConnectError', 'RelayError', 'get_error_message', 'to_error_with_message',
    'find_available_port', 'is_port_in_use',
    'format_ipv6_url', 'validate_url'
]
