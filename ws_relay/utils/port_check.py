"""
Listening port checks for the relay
"""

import socket
from typing import Optional, Tuple

from .logging import get_logger

logger = get_logger(__name__)


def _bind_address(host: Optional[str]) -> Tuple[int, str]:
    if not host or host == '0.0.0.0':
        return socket.AF_INET, ''
    if ':' in host:
        return socket.AF_INET6, host.strip('[]')
    return socket.AF_INET, host


def is_port_in_use(host: Optional[str], port: int) -> bool:
    """
    Check whether host:port can be bound right now

    Args:
        host: Interface the relay would listen on; 0.0.0.0 checks all of them
        port: Port to check

    Returns:
        bool: True if the port is taken or the address cannot be bound
    """
    family, address = _bind_address(host)
    try:
        with socket.socket(family, socket.SOCK_STREAM) as s:
            s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            s.bind((address, port))
    except OSError:
        return True
    return False


def find_available_port(start_port: int = 8765, max_attempts: int = 10,
                        host: str = "127.0.0.1") -> Optional[int]:
    """
    Find the first free port in [start_port, start_port + max_attempts)

    Returns:
        int: Available port number, or None if none found
    """
    for port in range(start_port, start_port + max_attempts):
        if not is_port_in_use(host, port):
            return port

    logger.error(f"No free port on {host} in {start_port}-{start_port + max_attempts - 1}")
    return None
