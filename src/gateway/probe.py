"""
Existing-gateway probe used in attach-only mode.

Usage:
    from gateway.probe import probe_gateway

    try:
        running = probe_gateway(18789)
    except ProbeError:
        running = False
"""

import errno
import logging
import socket

from core.errors import ProbeError

logger = logging.getLogger(__name__)

# connect_ex results that mean "nothing is listening", not "can't tell"
NOT_LISTENING = {
    errno.ECONNREFUSED,
    errno.ECONNRESET,
    errno.EHOSTUNREACH,
}


def probe_gateway(port: int, host: str = 'localhost', timeout: float = 2.0) -> bool:
    """
    Check whether something accepts TCP connections on the gateway port.

    Args:
        port: Gateway listen port
        host: Host to check (default localhost)
        timeout: Connection timeout in seconds

    Returns:
        True if the port accepts connections, False if it refuses them

    Raises:
        ProbeError: when the result is inconclusive (timeout, resolver or
            socket errors)
    """
    sock = None
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(timeout)
        result = sock.connect_ex((host, port))
    except (socket.timeout, OSError) as e:
        raise ProbeError(f"Cannot probe {host}:{port}: {e}") from e
    finally:
        if sock is not None:
            sock.close()

    if result == 0:
        return True
    if result in NOT_LISTENING:
        return False
    raise ProbeError(f"Cannot probe {host}:{port}: {errno.errorcode.get(result, result)}")
