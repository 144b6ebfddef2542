"""Gateway lifecycle status"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class GatewayState(Enum):
    """Supervisor lifecycle states."""
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    RESTARTING = "restarting"
    FAILED = "failed"


@dataclass(frozen=True)
class GatewayStatus:
    """Snapshot of the supervisor state, safe to hand to other threads."""
    state: GatewayState = GatewayState.STOPPED
    reason: Optional[str] = None
    pid: Optional[int] = None
    attached: bool = False

    @classmethod
    def stopped(cls) -> 'GatewayStatus':
        return cls(GatewayState.STOPPED)

    @classmethod
    def starting(cls) -> 'GatewayStatus':
        return cls(GatewayState.STARTING)

    @classmethod
    def running(cls, pid: Optional[int] = None, attached: bool = False) -> 'GatewayStatus':
        return cls(GatewayState.RUNNING, pid=pid, attached=attached)

    @classmethod
    def restarting(cls, reason: Optional[str] = None) -> 'GatewayStatus':
        return cls(GatewayState.RESTARTING, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> 'GatewayStatus':
        return cls(GatewayState.FAILED, reason=reason)

    @property
    def is_active(self) -> bool:
        """True while a start, run or restart is under way."""
        return self.state in (GatewayState.STARTING, GatewayState.RUNNING, GatewayState.RESTARTING)

    @property
    def label(self) -> str:
        if self.state == GatewayState.STOPPED:
            return "Stopped"
        if self.state == GatewayState.STARTING:
            return "Starting…"
        if self.state == GatewayState.RUNNING:
            if self.attached:
                return "Attached to existing gateway"
            return f"Running (pid {self.pid})" if self.pid else "Running"
        if self.state == GatewayState.RESTARTING:
            return "Restarting…"
        return f"Failed: {self.reason or 'unknown error'}"

    def to_dict(self) -> dict:
        return {
            'state': self.state.value,
            'reason': self.reason,
            'pid': self.pid,
            'attached': self.attached,
            'label': self.label,
        }
