"""
Gateway Debug Path Constants

Centralized path definitions to reduce hardcoding across the codebase.

IMPORTANT: Always use get_real_user_home() instead of Path.home() when
the path should be in the user's home directory. This handles the case
where the toolkit is run with sudo (e.g. to kill a root-owned listener)
but still needs the real user's config files, not root's.
"""

from pathlib import Path
import os


# ============================================================================
# Core utility functions - use these instead of Path.home()
# ============================================================================

def get_real_user_home() -> Path:
    """
    Get the real user's home directory, even when running as root via sudo.

    Returns:
        Path to the real user's home directory
    """
    sudo_user = os.environ.get('SUDO_USER')
    if sudo_user and sudo_user != 'root':
        return Path(f'/home/{sudo_user}')

    return Path.home()


def get_real_username() -> str:
    """Get the real username, even when running as root via sudo."""
    sudo_user = os.environ.get('SUDO_USER')
    if sudo_user and sudo_user != 'root':
        return sudo_user

    return os.environ.get('USER', 'unknown')


# ============================================================================
# Path classes
# ============================================================================

class ClawdisPaths:
    """Paths owned by the gateway and its CLI (shared with other processes)"""

    @classmethod
    def get_state_dir(cls) -> Path:
        """Get the ~/.clawdis state directory"""
        return get_real_user_home() / '.clawdis'

    @classmethod
    def get_config_file(cls) -> Path:
        """Get the JSON config document read by the CLI session loader"""
        return cls.get_state_dir() / 'clawdis.json'

    @classmethod
    def get_default_session_store(cls) -> Path:
        """Default session store used when none is configured"""
        return cls.get_state_dir() / 'sessions' / 'sessions.json'

    @classmethod
    def get_default_project_root(cls) -> Path:
        """Default checkout used to locate pnpm/node when launching the gateway"""
        return get_real_user_home() / 'Projects' / 'clawdis'


class DebugToolPaths:
    """Paths owned by this toolkit"""

    @classmethod
    def get_config_dir(cls) -> Path:
        """Get toolkit config directory"""
        return get_real_user_home() / '.config' / 'clawdis-debug'

    @classmethod
    def get_settings_file(cls) -> Path:
        """Get the persisted settings file"""
        return cls.get_config_dir() / 'settings.json'

    @classmethod
    def get_cache_dir(cls) -> Path:
        """Get toolkit cache directory"""
        return get_real_user_home() / '.cache' / 'clawdis-debug'

    @classmethod
    def get_log_file(cls) -> Path:
        """Get the toolkit's own log file"""
        return cls.get_cache_dir() / 'debug.log'

    @classmethod
    def ensure_user_dirs(cls) -> None:
        """Create user directories if they don't exist"""
        cls.get_config_dir().mkdir(parents=True, exist_ok=True)
        cls.get_cache_dir().mkdir(parents=True, exist_ok=True)
