"""
Process termination for port remediation.

Sends SIGTERM to a listener. A pid that is already gone counts as success:
the point of the kill is a free port, and that is already the case.
"""

import logging
import os
import signal
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class TerminationFailure(Enum):
    """Why a termination did not simply succeed.

    NO_SUCH_PROCESS is carried on a successful result: the port is free.
    """
    PERMISSION_DENIED = "permission_denied"
    NO_SUCH_PROCESS = "no_such_process"
    UNKNOWN = "unknown"


@dataclass
class TerminationResult:
    """Outcome of a termination request."""
    pid: int
    success: bool
    message: str
    reason: Optional[TerminationFailure] = None
    escalated: bool = False

    def __bool__(self) -> bool:
        return self.success

    @property
    def already_gone(self) -> bool:
        return self.reason == TerminationFailure.NO_SUCH_PROCESS


class ProcessTerminator:
    """
    Terminate a process by pid.

    Args:
        escalate_after: If set, wait this many seconds after SIGTERM and
            send SIGKILL if the process is still alive. None (default)
            means graceful only.
    """

    def __init__(self, escalate_after: Optional[float] = None,
                 kill: Callable[[int, int], None] = os.kill,
                 poll_interval: float = 0.1):
        self.escalate_after = escalate_after
        self._kill = kill
        self._poll_interval = poll_interval

    def terminate(self, pid: int) -> TerminationResult:
        """
        Send SIGTERM to pid.

        Raises:
            ValueError: for a non-positive pid (which would signal a process
                group) or this process's own pid
        """
        if not isinstance(pid, int) or isinstance(pid, bool) or pid <= 0:
            raise ValueError(f"Invalid pid: {pid!r}")
        if pid == os.getpid():
            raise ValueError("Refusing to terminate this process")

        try:
            self._kill(pid, signal.SIGTERM)
        except ProcessLookupError:
            logger.info(f"Process {pid} already gone")
            return TerminationResult(pid=pid, success=True,
                                     reason=TerminationFailure.NO_SUCH_PROCESS,
                                     message=f"Process {pid} already exited.")
        except PermissionError as e:
            logger.warning(f"Not permitted to kill {pid}: {e}")
            return TerminationResult(pid=pid, success=False,
                                     reason=TerminationFailure.PERMISSION_DENIED,
                                     message=f"Permission denied (try: sudo kill {pid})")
        except OSError as e:
            logger.warning(f"Failed to kill {pid}: {e}")
            return TerminationResult(pid=pid, success=False,
                                     reason=TerminationFailure.UNKNOWN,
                                     message=str(e))

        logger.info(f"Sent SIGTERM to {pid}")
        escalated = False
        if self.escalate_after is not None and not self._wait_for_exit(pid, self.escalate_after):
            escalated = self._force_kill(pid)

        return TerminationResult(pid=pid, success=True, escalated=escalated,
                                 message=f"Sent kill to {pid}.")

    def is_alive(self, pid: int) -> bool:
        """Signal-0 probe. A process we may not signal still exists."""
        try:
            self._kill(pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            return True
        return True

    def _wait_for_exit(self, pid: int, timeout: float) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if not self.is_alive(pid):
                return True
            time.sleep(self._poll_interval)
        return not self.is_alive(pid)

    def _force_kill(self, pid: int) -> bool:
        try:
            self._kill(pid, signal.SIGKILL)
        except ProcessLookupError:
            return False
        except OSError as e:
            logger.warning(f"SIGKILL to {pid} failed: {e}")
            return False
        logger.warning(f"Process {pid} ignored SIGTERM for {self.escalate_after}s, sent SIGKILL")
        return True
