"""
Gateway Debug Core Module

Shared pieces used by both the supervisor and the diagnostics side:
- Error taxonomy
"""

from .errors import (
    GatewayDebugError,
    SpawnError,
    ProbeError,
    PortQueryUnavailable,
    ConfigIOError,
    ConfigParseError,
)

__all__ = [
    'GatewayDebugError',
    'SpawnError',
    'ProbeError',
    'PortQueryUnavailable',
    'ConfigIOError',
    'ConfigParseError',
]
