"""
Port Commands

Check the gateway ports and free them. Killing an expected listener (our
own gateway) is a two-step operation: kill() parks it and returns a
pending result, then confirm_kill(pid) or cancel_kill() resolves it.
"""

import logging
from typing import Iterable, Optional

from diagnostics.controller import DiagnosticsController
from diagnostics.terminator import TerminationResult

from .base import CommandResult
from .settings import get_settings

logger = logging.getLogger(__name__)

# Module-level controller instance (singleton pattern)
_controller: Optional[DiagnosticsController] = None


def _get_controller() -> DiagnosticsController:
    """Get or create the controller for the current settings."""
    global _controller

    settings = get_settings()
    if _controller is None or _controller.settings is not settings:
        if _controller is not None:
            _controller.shutdown(wait=False)
        _controller = DiagnosticsController(settings)
    return _controller


def use_controller(controller: Optional[DiagnosticsController]) -> None:
    """Install a controller (tests), or None to build one lazily."""
    global _controller
    _controller = controller


def check(ports: Optional[Iterable[int]] = None) -> CommandResult:
    """
    Check which processes listen on the gateway ports.

    Returns:
        CommandResult with data['reports'] in the parseable shape
    """
    try:
        reports = _get_controller().check_ports(ports)
    except Exception as e:
        logger.error(f"Port check failed: {e}")
        return CommandResult.fail(f"Error checking ports: {e}")

    data = {'reports': [r.to_dict() for r in reports]}
    failed = [r for r in reports if r.query_failed]
    if failed and len(failed) == len(reports):
        result = CommandResult.not_available(
            "Could not check the gateway ports",
            fix_hint="Install lsof (e.g. sudo apt install lsof)",
        )
        result.data.update(data)
        return result
    if failed:
        return CommandResult.warn("Some ports could not be checked", data=data)

    unexpected = sum(len(r.unexpected) for r in reports)
    if unexpected:
        return CommandResult.warn(f"{unexpected} unexpected listener(s) on gateway ports", data=data)
    return CommandResult.ok("Gateway ports look fine", data=data)


def kill(pid: int) -> CommandResult:
    """
    Kill the process listening on a gateway port.

    Looks the pid up in a fresh port check. Unexpected listeners are killed
    straight away; for expected ones the result is pending and carries the
    confirmation prompt in data['prompt'].
    """
    controller = _get_controller()
    try:
        controller.check_ports()
    except Exception as e:
        return CommandResult.fail(f"Error checking ports: {e}")

    listener = controller.find_listener(pid)
    if listener is None:
        return CommandResult.fail(f"No listener with pid {pid} on the gateway ports")

    result = controller.request_kill(listener)
    if result is None:
        return CommandResult.pending(
            f"Kill {listener.command} ({listener.pid})?",
            data={
                'listener': listener.to_dict(),
                'prompt': "This process looks expected for the current mode. Kill anyway?",
            },
        )
    return _termination_result(controller, result)


def confirm_kill(pid: int) -> CommandResult:
    """Go ahead with the pending kill of pid."""
    controller = _get_controller()
    pending = controller.pending_kill
    if pending is None or pending.pid != pid:
        return CommandResult.fail(f"No pending kill for pid {pid}")

    result = controller.confirm_kill(pid)
    if result is None:
        # Superseded between the check and the confirmation
        return CommandResult.fail(f"No pending kill for pid {pid}")
    return _termination_result(controller, result)


def cancel_kill() -> CommandResult:
    """Drop the pending kill, if any."""
    cancelled = _get_controller().cancel_kill()
    if cancelled is None:
        return CommandResult.warn("No pending kill")
    return CommandResult.ok(f"Kill of {cancelled.pid} cancelled", data={'listener': cancelled.to_dict()})


def _termination_result(controller: DiagnosticsController, result: TerminationResult) -> CommandResult:
    status = controller.kill_status or result.message
    data = {
        'pid': result.pid,
        'escalated': result.escalated,
        'already_gone': result.already_gone,
        'reports': [r.to_dict() for r in controller.reports],
    }
    if not result:
        return CommandResult.fail(
            status,
            error=result.message,
            data={**data, 'reason': result.reason.value if result.reason else None},
        )
    return CommandResult.ok(status, data=data)
