"""
Base classes for the commands layer.

CommandResult is what every command returns to the CLI, so no exception
from the supervisor, diagnostics or config code ever reaches the user
unformatted.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from enum import Enum


class ResultStatus(Enum):
    """Command execution status."""
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    PENDING = "pending"
    NOT_AVAILABLE = "not_available"


@dataclass
class CommandResult:
    """
    Unified result type for all commands.

    Attributes:
        success: Whether the command succeeded
        status: Detailed status enum
        message: Human-readable message
        data: Command-specific result data
        error: Error message if failed
    """
    success: bool
    status: ResultStatus = ResultStatus.SUCCESS
    message: str = ""
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.success

    @property
    def needs_confirmation(self) -> bool:
        return self.status == ResultStatus.PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'status': self.status.value,
            'message': self.message,
            'data': self.data,
            'error': self.error,
        }

    @classmethod
    def ok(cls, message: str = "Success", data: Dict[str, Any] = None) -> 'CommandResult':
        """Create a successful result."""
        return cls(success=True, status=ResultStatus.SUCCESS, message=message, data=data or {})

    @classmethod
    def fail(cls, message: str, error: str = None, data: Dict[str, Any] = None) -> 'CommandResult':
        """Create a failed result."""
        return cls(
            success=False,
            status=ResultStatus.ERROR,
            message=message,
            error=error or message,
            data=data or {},
        )

    @classmethod
    def warn(cls, message: str, data: Dict[str, Any] = None) -> 'CommandResult':
        """Create a warning result (nothing went wrong, nothing was done)."""
        return cls(success=True, status=ResultStatus.WARNING, message=message, data=data or {})

    @classmethod
    def pending(cls, message: str, data: Dict[str, Any] = None) -> 'CommandResult':
        """Create a result that waits on a user decision."""
        return cls(success=False, status=ResultStatus.PENDING, message=message, data=data or {})

    @classmethod
    def not_available(cls, message: str, fix_hint: str = "") -> 'CommandResult':
        """Create a not-available result (tool missing)."""
        return cls(
            success=False,
            status=ResultStatus.NOT_AVAILABLE,
            message=message,
            error=fix_hint or message,
            data={'fix_hint': fix_hint},
        )
