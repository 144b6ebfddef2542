"""
Gateway Module

Runs the local gateway as a supervised child process:
- settings: DebugSettings context object (mode, project root, policy)
- supervisor: spawn, log capture, crash restarts with a failure cap
- probe: attach-only check for an already running gateway
"""

from .settings import DebugSettings, GatewayMode, DEFAULT_GATEWAY_PORTS
from .status import GatewayState, GatewayStatus
from .log_buffer import LogBuffer
from .supervisor import GatewaySupervisor

__all__ = [
    'DebugSettings',
    'GatewayMode',
    'DEFAULT_GATEWAY_PORTS',
    'GatewayState',
    'GatewayStatus',
    'LogBuffer',
    'GatewaySupervisor',
]
