"""
Logging helpers for the WebSocket relay
"""

import logging

from ..production_config import config

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_configured = False


def setup_logging(level=None):
    """
    Configure the package root logger once

    Args:
        level: Log level name or number, defaults to config.LOG_LEVEL
    """
    global _configured

    root = logging.getLogger('ws_relay')
    if level is None:
        level = config.LOG_LEVEL
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    root.setLevel(level)

    if not _configured:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        _configured = True

    return root


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the package root

    Handlers are left to the host process; the relay's own entry points call
    setup_logging().
    """
    if name != 'ws_relay' and not name.startswith('ws_relay.'):
        name = f"ws_relay.{name}"
    return logging.getLogger(name)
