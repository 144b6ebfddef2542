"""
Gateway Port Inspector

Answers "who is listening on this port?" with lsof/ps and classifies each
listener as expected (our own gateway, in a mode where it should be
running) or unexpected.

Usage:
    from diagnostics.port_inspector import PortInspector

    inspector = PortInspector(settings)
    report = inspector.inspect(18789)
    for listener in report.listeners:
        print(listener.pid, listener.command, listener.expected)

inspect() never raises: when lsof is missing or fails, the report simply
has no listeners and says so in its summary.
"""

import logging
import os
import subprocess
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from core.errors import PortQueryUnavailable
from gateway.settings import DebugSettings, GatewayMode

logger = logging.getLogger(__name__)

QUERY_TIMEOUT = 5


@dataclass(frozen=True)
class PortListener:
    """A process holding a listening TCP socket."""
    pid: int
    command: str
    full_command: str
    expected: bool = False

    def to_dict(self) -> dict:
        return {
            'pid': self.pid,
            'command': self.command,
            'fullCommandLine': self.full_command,
            'expected': self.expected,
        }


@dataclass
class PortReport:
    """Listeners found on one port, with a human-readable summary."""
    port: int
    summary: str
    listeners: List[PortListener] = field(default_factory=list)
    query_failed: bool = False

    @property
    def is_free(self) -> bool:
        return not self.listeners and not self.query_failed

    @property
    def unexpected(self) -> List[PortListener]:
        return [l for l in self.listeners if not l.expected]

    def find(self, pid: int) -> Optional[PortListener]:
        for listener in self.listeners:
            if listener.pid == pid:
                return listener
        return None

    def to_dict(self) -> dict:
        return {
            'port': self.port,
            'summary': self.summary,
            'listeners': [l.to_dict() for l in self.listeners],
        }


def parse_lsof_fields(output: str) -> List[Tuple[int, str]]:
    """
    Parse `lsof -F pc` output into (pid, command) pairs.

    lsof prints one p/c record per process, followed by per-file records
    (one per socket). A pid is only reported once, in first-seen order.
    """
    order: List[int] = []
    commands: Dict[int, str] = {}
    pid: Optional[int] = None

    for line in output.splitlines():
        if not line:
            continue
        tag, value = line[0], line[1:]
        if tag == 'p':
            try:
                pid = int(value)
            except ValueError:
                pid = None
                continue
            if pid not in commands:
                commands[pid] = ""
                order.append(pid)
        elif tag == 'c' and pid is not None and not commands[pid]:
            commands[pid] = value

    return [(p, commands[p]) for p in order]


class PortInspector:
    """Find and classify the listeners on a port."""

    def __init__(self, settings: Optional[DebugSettings] = None,
                 runner: Callable = subprocess.run):
        self.settings = settings or DebugSettings()
        self._run = runner

    def inspect(self, port: int) -> PortReport:
        """Inspect a port. Never raises."""
        try:
            pairs = self._query_listeners(port)
        except PortQueryUnavailable as e:
            logger.warning(f"Port check unavailable for {port}: {e}")
            return PortReport(
                port=port,
                summary=f"Port {port}: could not check listeners ({e}).",
                query_failed=True,
            )

        mode = self.settings.mode
        listeners = [
            PortListener(
                pid=pid,
                command=command or "?",
                full_command=self._resolve_full_command(pid) or command or "?",
                expected=self.is_expected(command, mode),
            )
            for pid, command in pairs
        ]

        return PortReport(port=port, summary=self.summarize(port, listeners), listeners=listeners)

    def is_expected(self, command: str, mode: Optional[str] = None) -> bool:
        """
        Whether a listener with this command name belongs on the gateway ports.

        Only our own gateway binary is expected, and only in local mode. In
        attach-only mode this app never spawns a gateway, so a local gateway
        process is not one we account for and is reported as unexpected.
        """
        mode = mode or self.settings.mode
        if mode != GatewayMode.LOCAL or not command:
            return False
        return os.path.basename(command.strip()) == self.settings.gateway_binary

    @staticmethod
    def summarize(port: int, listeners: List[PortListener]) -> str:
        if not listeners:
            return f"Port {port} is free."

        unexpected = [l for l in listeners if not l.expected]
        if not unexpected:
            names = ", ".join(f"{l.command} (pid {l.pid})" for l in listeners)
            return f"Port {port}: {names} listening (expected)."

        return (f"Port {port}: {len(unexpected)} unexpected listener(s); "
                f"kill to free the port.")

    # ========================================
    # Private Methods
    # ========================================

    def _query_listeners(self, port: int) -> List[Tuple[int, str]]:
        cmd = ['lsof', '-nP', '+c', '0', f'-iTCP:{port}', '-sTCP:LISTEN', '-Fpc']
        try:
            result = self._run(cmd, capture_output=True, text=True, timeout=QUERY_TIMEOUT)
        except (FileNotFoundError, PermissionError) as e:
            raise PortQueryUnavailable(f"lsof not available: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise PortQueryUnavailable(f"lsof timed out after {QUERY_TIMEOUT}s") from e
        except OSError as e:
            raise PortQueryUnavailable(str(e)) from e

        stdout = result.stdout or ""
        # lsof exits 1 both for "no matches" and for real errors; stderr
        # warnings about unreadable mounts are normal noise
        if result.returncode != 0 and not stdout.strip():
            errors = [line for line in (result.stderr or "").splitlines()
                      if line.strip() and 'WARNING' not in line]
            if errors:
                raise PortQueryUnavailable(errors[0].strip())
            return []

        return parse_lsof_fields(stdout)

    def _resolve_full_command(self, pid: int) -> Optional[str]:
        try:
            result = self._run(
                ['ps', '-p', str(pid), '-o', 'command='],
                capture_output=True, text=True, timeout=QUERY_TIMEOUT,
            )
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.debug(f"ps failed for pid {pid}: {e}")
            return None

        if result.returncode != 0:
            return None
        return result.stdout.strip() or None
