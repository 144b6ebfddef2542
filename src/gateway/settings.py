"""
Debug Settings

The explicit settings/context object handed to the supervisor and the
diagnostics controller at construction. Runtime changes (attach-only
toggle, project root) are announced to subscribers instead of being read
from shared globals.
"""

import json
import logging
import threading
from dataclasses import dataclass, field, asdict, fields
from pathlib import Path
from typing import Callable, List, Optional, Set, Tuple

from core.errors import ConfigIOError
from utils.config_patcher import write_text_atomic
from utils.paths import ClawdisPaths, DebugToolPaths

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY_PORTS = (18788, 18789)

SettingsCallback = Callable[['DebugSettings', Set[str]], None]


class GatewayMode:
    """Operating modes used for listener classification"""
    LOCAL = "local"
    ATTACH_ONLY = "attach-only"


@dataclass
class DebugSettings:
    """Complete toolkit configuration"""

    # Gateway launch
    project_root: str = field(default_factory=lambda: str(ClawdisPaths.get_default_project_root()))
    gateway_binary: str = "clawdis"
    gateway_args: List[str] = field(default_factory=lambda: ["gateway"])
    gateway_ports: Tuple[int, ...] = DEFAULT_GATEWAY_PORTS

    # Mode: never spawn, only attach to an already running gateway
    attach_existing_only: bool = False

    # Supervision policy
    max_restart_attempts: int = 5
    restart_delay: float = 2.0  # seconds between restart attempts
    startup_grace: float = 0.5  # an exit inside this window is a failed spawn
    stable_uptime: float = 10.0  # an exit after this long resets the failure count
    stop_timeout: float = 5.0  # SIGTERM -> SIGKILL escalation on stop

    # Log buffer
    log_max_chars: int = 200_000

    # Toolkit logging
    log_level: str = "INFO"

    def __post_init__(self):
        self.gateway_ports = tuple(int(p) for p in self.gateway_ports)
        self.gateway_args = list(self.gateway_args)
        self._callbacks: List[SettingsCallback] = []
        self._lock = threading.Lock()

    @property
    def mode(self) -> str:
        return GatewayMode.ATTACH_ONLY if self.attach_existing_only else GatewayMode.LOCAL

    @property
    def primary_port(self) -> int:
        return self.gateway_ports[0]

    @property
    def project_root_path(self) -> Path:
        return Path(self.project_root).expanduser()

    # ========================================
    # Change notification
    # ========================================

    def subscribe(self, callback: SettingsCallback) -> None:
        """Register callback(settings, changed_keys) for runtime changes"""
        with self._lock:
            self._callbacks.append(callback)

    def unsubscribe(self, callback: SettingsCallback) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def update(self, **changes) -> Set[str]:
        """
        Apply changes and notify subscribers.

        Returns:
            Names of the fields whose value actually changed

        Raises:
            KeyError: for an unknown field name
        """
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise KeyError(f"Unknown setting(s): {', '.join(sorted(unknown))}")

        changed = set()
        for key, value in changes.items():
            if key == 'gateway_ports':
                value = tuple(int(p) for p in value)
            if getattr(self, key) != value:
                setattr(self, key, value)
                changed.add(key)

        if changed:
            logger.debug(f"Settings changed: {', '.join(sorted(changed))}")
            self._notify(changed)
        return changed

    def set_attach_existing_only(self, enabled: bool) -> Set[str]:
        return self.update(attach_existing_only=bool(enabled))

    def set_project_root(self, path: str) -> Set[str]:
        return self.update(project_root=str(Path(path).expanduser()) if path.strip() else self.project_root)

    def reset_project_root(self) -> Set[str]:
        return self.update(project_root=str(ClawdisPaths.get_default_project_root()))

    def _notify(self, changed: Set[str]) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback(self, changed)
            except Exception as e:
                logger.error(f"Settings callback error: {e}")

    # ========================================
    # Persistence
    # ========================================

    def to_dict(self) -> dict:
        data = asdict(self)
        data['gateway_ports'] = list(self.gateway_ports)
        return data

    @classmethod
    def get_settings_path(cls) -> Path:
        return DebugToolPaths.get_settings_file()

    @classmethod
    def load(cls, path: Optional[Path] = None) -> 'DebugSettings':
        """Load settings from file; a missing or corrupt file gives defaults"""
        settings_path = Path(path) if path else cls.get_settings_path()

        if not settings_path.exists():
            logger.info("No debug settings found, using defaults")
            return cls()

        try:
            with open(settings_path, 'r') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("settings file is not a JSON object")

            known = {f.name for f in fields(cls)}
            ignored = set(data) - known
            if ignored:
                logger.debug(f"Ignoring unknown settings: {', '.join(sorted(ignored))}")

            settings = cls(**{k: v for k, v in data.items() if k in known})
            logger.info(f"Loaded debug settings from {settings_path}")
            return settings

        except (OSError, ValueError, TypeError) as e:
            logger.error(f"Failed to load debug settings: {e}")
            return cls()

    def save(self, path: Optional[Path] = None) -> bool:
        """Save settings to file"""
        settings_path = Path(path) if path else self.get_settings_path()

        try:
            write_text_atomic(settings_path, json.dumps(self.to_dict(), indent=2, sort_keys=True) + "\n")
        except ConfigIOError as e:
            logger.error(f"Failed to save debug settings: {e}")
            return False

        logger.info(f"Saved debug settings to {settings_path}")
        return True
