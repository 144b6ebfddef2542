"""
Gateway Commands

Start, stop and inspect the supervised gateway process.
Used by the CLI; every call returns a CommandResult.
"""

import logging
import os
import shutil
import sys
from typing import Callable, Optional

from gateway.status import GatewayState
from gateway.supervisor import GatewaySupervisor
from utils.paths import DebugToolPaths

from .base import CommandResult
from .settings import get_settings, get_settings_path

logger = logging.getLogger(__name__)

# Module-level supervisor instance (singleton pattern)
_supervisor: Optional[GatewaySupervisor] = None


def _get_supervisor() -> GatewaySupervisor:
    """Get or create the supervisor for the current settings."""
    global _supervisor

    settings = get_settings()
    if _supervisor is None or _supervisor.settings is not settings:
        if _supervisor is not None and _supervisor.status.is_active:
            logger.warning("Settings replaced while the gateway is active, stopping it")
            _supervisor.stop()
        _supervisor = GatewaySupervisor(settings)
    return _supervisor


def use_supervisor(supervisor: Optional[GatewaySupervisor]) -> None:
    """Install a supervisor (tests), or None to build one lazily."""
    global _supervisor
    _supervisor = supervisor


def subscribe(on_status: Optional[Callable] = None, on_log: Optional[Callable[[str], None]] = None) -> None:
    """
    Follow the gateway.

    Args:
        on_status: callback(status, supervisor) on each state transition
        on_log: callback(chunk) for each piece of gateway output
    """
    supervisor = _get_supervisor()
    if on_status:
        supervisor.subscribe(on_status)
    if on_log:
        supervisor.subscribe_log(on_log)


def get_status() -> CommandResult:
    """
    Get current gateway status.

    Returns:
        CommandResult with the supervisor's status dict
    """
    try:
        supervisor = _get_supervisor()
        status = supervisor.get_status()
        label = supervisor.status.label
    except Exception as e:
        return CommandResult.fail(f"Error getting status: {e}")

    message = f"{label} | Restarts: {status['restart_count']}"
    return CommandResult(success=status['state'] != GatewayState.FAILED.value, message=message, data=status)


def start() -> CommandResult:
    """
    Start the gateway (or attach to a running one in attach-only mode).

    Returns:
        CommandResult indicating success/failure
    """
    supervisor = _get_supervisor()
    if supervisor.status.is_active:
        return CommandResult.warn("Gateway already running", data=supervisor.get_status())

    try:
        started = supervisor.start()
    except Exception as e:
        logger.error(f"Gateway start raised: {e}")
        return CommandResult.fail(f"Error starting gateway: {e}")

    status = supervisor.status
    if started:
        return CommandResult.ok(status.label, data=supervisor.get_status())
    if status.state == GatewayState.RESTARTING:
        return CommandResult.warn(f"Gateway failed to start, retrying: {status.reason}",
                                  data=supervisor.get_status())
    return CommandResult.fail(status.label, error=status.reason, data=supervisor.get_status())


def stop() -> CommandResult:
    """
    Stop the gateway.

    Returns:
        CommandResult indicating success/failure
    """
    supervisor = _get_supervisor()
    if supervisor.status.state == GatewayState.STOPPED:
        return CommandResult.warn("Gateway not running")

    try:
        supervisor.stop()
    except Exception as e:
        return CommandResult.fail(f"Error stopping gateway: {e}")
    return CommandResult.ok("Gateway stopped", data=supervisor.get_status())


def restart() -> CommandResult:
    """Restart the gateway."""
    supervisor = _get_supervisor()
    try:
        started = supervisor.restart()
    except Exception as e:
        return CommandResult.fail(f"Error restarting gateway: {e}")

    status = supervisor.status
    message = f"{status.label} | Restarts: {supervisor.restart_count}"
    if started:
        return CommandResult.ok(message, data=supervisor.get_status())
    return CommandResult.fail(message, error=status.reason, data=supervisor.get_status())


def get_log(lines: Optional[int] = None) -> CommandResult:
    """
    Get captured gateway output.

    Args:
        lines: Only the last N lines (None for everything)
    """
    buffer = _get_supervisor().log_buffer
    text = buffer.tail(lines) if lines else buffer.text()
    if not text:
        return CommandResult.warn("No gateway output yet", data={'log': ""})
    return CommandResult.ok(f"{len(buffer)} characters of gateway output", data={'log': text})


def clear_log() -> CommandResult:
    """Clear captured gateway output."""
    _get_supervisor().clear_log()
    return CommandResult.ok("Gateway log cleared")


def get_debug_info() -> CommandResult:
    """
    Collect the facts shown at the top of the debug panel.

    Returns:
        CommandResult with pid, CLI helper location, log file and more
    """
    settings = get_settings()
    cli_helper = shutil.which(settings.gateway_binary)

    data = {
        'pid': os.getpid(),
        'cli_helper': cli_helper,
        'log_file': str(DebugToolPaths.get_log_file()),
        'binary_path': sys.executable,
        'project_root': settings.project_root,
        'project_root_exists': settings.project_root_path.is_dir(),
        'attach_existing_only': settings.attach_existing_only,
        'gateway_ports': list(settings.gateway_ports),
        'settings_file': str(get_settings_path()),
    }
    if _supervisor is not None and _supervisor.settings is settings:
        data['gateway'] = _supervisor.get_status()

    return CommandResult.ok("Debug info", data=data)
