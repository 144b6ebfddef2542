"""
Settings Commands

Owns the DebugSettings instance shared by the gateway and ports commands,
plus the two persisted knobs the debug panel edits: the project root and
the attach-only flag. The session store lives in the gateway's own config
document and goes through SessionStoreSetting.
"""

import logging
from pathlib import Path
from typing import Optional

from gateway.settings import DebugSettings
from utils.config_patcher import SessionStoreSetting

from .base import CommandResult

logger = logging.getLogger(__name__)

# Module-level settings instance (singleton pattern)
_settings: Optional[DebugSettings] = None
_settings_path: Optional[Path] = None


def get_settings() -> DebugSettings:
    """Get the shared settings, loading them from disk on first use."""
    global _settings

    if _settings is None:
        _settings = DebugSettings.load(_settings_path)
    return _settings


def use_settings(settings: Optional[DebugSettings], path: Optional[Path] = None) -> None:
    """
    Replace the shared settings (CLI startup and tests).

    Passing None drops the instance so the next get_settings() reloads
    from path.
    """
    global _settings, _settings_path

    _settings = settings
    _settings_path = Path(path) if path else None


def get_settings_path() -> Path:
    """Where the shared settings are loaded from and saved to."""
    return _settings_path or DebugSettings.get_settings_path()


def _save(settings: DebugSettings, message: str, changed) -> CommandResult:
    data = {'changed': sorted(changed), 'settings': settings.to_dict()}
    if not settings.save(_settings_path):
        return CommandResult.fail(
            f"{message}, but saving settings failed",
            error=f"Could not write {get_settings_path()}",
            data=data,
        )
    return CommandResult.ok(message, data=data)


def show() -> CommandResult:
    """Return the current settings."""
    settings = get_settings()
    return CommandResult.ok("Current settings", data={'settings': settings.to_dict()})


def set_attach_only(enabled: bool) -> CommandResult:
    """Toggle attach-only mode and persist it."""
    settings = get_settings()
    changed = settings.set_attach_existing_only(enabled)
    if not changed:
        return CommandResult.warn(
            f"Attach-only mode already {'on' if enabled else 'off'}",
            data={'settings': settings.to_dict()},
        )
    return _save(settings, f"Attach-only mode {'enabled' if enabled else 'disabled'}", changed)


def set_project_root(path: str) -> CommandResult:
    """Point the gateway launcher at a different checkout."""
    if not path or not path.strip():
        return CommandResult.fail("Project root cannot be empty")

    settings = get_settings()
    changed = settings.set_project_root(path.strip())
    message = f"Project root set to {settings.project_root}"
    if not settings.project_root_path.is_dir():
        logger.warning(f"Project root {settings.project_root} does not exist yet")
        message += " (directory does not exist yet)"
    return _save(settings, message, changed)


def reset_project_root() -> CommandResult:
    """Restore the default project root."""
    settings = get_settings()
    changed = settings.reset_project_root()
    return _save(settings, f"Project root reset to {settings.project_root}", changed)


def get_session_store(config_path: Optional[Path] = None) -> CommandResult:
    """Read the session store path from the gateway config."""
    setting = SessionStoreSetting(config_path)
    value = setting.load()
    return CommandResult.ok(value, data={'session_store': value, 'config_path': str(setting.config_path)})


def set_session_store(value: str, config_path: Optional[Path] = None) -> CommandResult:
    """
    Write the session store path into the gateway config.

    An empty value stores the default path. On a failed write the edited
    value is still reported back so the caller can retry.
    """
    setting = SessionStoreSetting(config_path)
    saved = setting.save(value)

    data = {'session_store': setting.value, 'config_path': str(setting.config_path)}
    if not saved:
        return CommandResult.fail(
            f"Failed to save session store: {setting.last_error}",
            error=setting.last_error,
            data=data,
        )
    return CommandResult.ok(f"Session store set to {setting.value}", data=data)
