"""
Gateway Port Diagnostics

Find out who holds the gateway ports and free them:
- PortInspector: lsof/ps based listener lookup and classification
- ProcessTerminator: SIGTERM delivery with structured results
- DiagnosticsController: check/kill workflow with a confirmation gate
"""

from .port_inspector import PortInspector, PortListener, PortReport
from .terminator import ProcessTerminator, TerminationFailure, TerminationResult
from .controller import DiagnosticsController

__all__ = [
    'PortInspector',
    'PortListener',
    'PortReport',
    'ProcessTerminator',
    'TerminationFailure',
    'TerminationResult',
    'DiagnosticsController',
]
