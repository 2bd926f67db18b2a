"""
Target URL helpers
"""

from urllib.parse import urlsplit, urlunsplit

WEBSOCKET_SCHEMES = ('ws', 'wss')


def format_ipv6_url(url: str) -> str:
    """
    Wrap a bare IPv6 literal host in brackets

    A host with two or more colons cannot be host:port, so it is treated
    as an IPv6 literal. Anything unparsable is returned unchanged.

    Args:
        url: Candidate URL

    Returns:
        str: URL with a bracketed host, or the input unchanged
    """
    try:
        parts = urlsplit(url)
        userinfo, at, host = parts.netloc.rpartition('@')
        if host.count(':') > 1 and not host.startswith('['):
            netloc = f"{userinfo}{at}[{host}]"
            return urlunsplit(parts._replace(netloc=netloc))
        return url
    except (TypeError, ValueError, AttributeError):
        return url


def validate_url(url: str) -> bool:
    """
    Check that url parses and uses a WebSocket scheme

    Returns:
        bool: True for well formed ws:// and wss:// URLs, never raises
    """
    if not isinstance(url, str):
        return False
    try:
        parts = urlsplit(format_ipv6_url(url))
        # Raises ValueError for a non-numeric or out of range port
        parts.port
    except ValueError:
        return False
    return parts.scheme in WEBSOCKET_SCHEMES and bool(parts.hostname)
