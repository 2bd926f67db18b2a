"""
Error normalization for the WebSocket relay

Turns any raised or reported failure value into text or an exception object
without ever raising itself.
"""

import json
from collections.abc import Mapping
from typing import Any, Optional

UNKNOWN_ERROR = "Unknown error occurred"


class RelayError(Exception):
    """Base error for the relay"""

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else ""


class ConnectError(RelayError):
    """Outbound WebSocket connection could not be established"""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


def _message_of(error: Any) -> Optional[str]:
    """Return the string message carried by error, if any"""
    if isinstance(error, BaseException):
        text = str(error)
        return text if text else type(error).__name__
    if isinstance(error, Mapping):
        message = error.get('message')
    else:
        message = getattr(error, 'message', None)
    if isinstance(message, str):
        return message
    return None


def _safe_str(error: Any, default: str) -> str:
    try:
        text = str(error)
    except Exception:
        try:
            text = object.__repr__(error)
        except Exception:
            return default
    return text if text and error is not None else default


def get_error_message(error: Any) -> str:
    """
    Get a human readable message from any error value

    Args:
        error: Exception, mapping, arbitrary object or None

    Returns:
        str: The message; never raises
    """
    try:
        if error is None:
            return UNKNOWN_ERROR
        message = _message_of(error)
        if message is not None:
            return message
        return json.dumps(error)
    except Exception:
        return _safe_str(error, UNKNOWN_ERROR)


def to_error_with_message(error: Any) -> BaseException:
    """
    Get an exception object for any error value

    Existing exceptions are returned unchanged; anything else is wrapped
    in a RelayError.
    """
    if isinstance(error, BaseException):
        return error
    try:
        message = _message_of(error)
        if message is not None:
            return RelayError(message)
        if error is None:
            return RelayError(UNKNOWN_ERROR)
        return RelayError(json.dumps(error))
    except Exception:
        return RelayError(_safe_str(error, UNKNOWN_ERROR))
