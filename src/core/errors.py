"""
Error taxonomy for the gateway debug toolkit.

Only failures that cross a component boundary get a type here. Termination
failures are reported as values (see diagnostics.terminator) because the
caller always needs the pid and reason, never a traceback.
"""

from typing import Optional


class GatewayDebugError(Exception):
    """Base class for toolkit errors."""


class SpawnError(GatewayDebugError):
    """The gateway could not be launched.

    Raised for a missing project root or toolchain and for a child that
    exits before its startup grace period ends.
    """

    def __init__(self, message: str, exit_code: Optional[int] = None):
        super().__init__(message)
        self.exit_code = exit_code


class ProbeError(GatewayDebugError):
    """Could not tell whether a gateway is already running.

    Callers treat this as "not running".
    """


class PortQueryUnavailable(GatewayDebugError):
    """The OS listener query (lsof) is missing or failed to run."""


class ConfigIOError(GatewayDebugError):
    """Reading or writing a persisted JSON document failed."""

    def __init__(self, message: str, path=None):
        super().__init__(message)
        self.path = path


class ConfigParseError(GatewayDebugError):
    """An existing JSON document is malformed.

    Never fatal: the document is treated as empty.
    """
