"""
Gateway Debug Commands Layer

UI-independent operations used by the CLI.

Usage:
    from commands import gateway, ports, settings

    # Supervised gateway
    result = gateway.start()
    result = gateway.get_status()
    result = gateway.get_log(lines=50)

    # Port diagnostics
    result = ports.check()
    result = ports.kill(12345)          # may come back pending
    result = ports.confirm_kill(12345)

    # Persisted knobs
    result = settings.set_attach_only(True)
    result = settings.set_session_store("~/.clawdis/sessions/sessions.json")
"""

from . import gateway
from . import ports
from . import settings
from .base import CommandResult, ResultStatus

__all__ = [
    'gateway',
    'ports',
    'settings',
    'CommandResult',
    'ResultStatus',
]
