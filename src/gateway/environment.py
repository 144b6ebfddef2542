"""
Gateway launch environment.

The gateway is a node project. Launching it from a GUI-started app means
PATH is usually the bare system default, so the toolchain dirs under the
configured project root (and the common pnpm/homebrew locations) are put
in front of it before the command is resolved.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from core.errors import SpawnError
from utils.paths import get_real_user_home

logger = logging.getLogger(__name__)

# Checked in order, only existing dirs are added
TOOLCHAIN_DIRS = (
    'Library/pnpm',
    '.local/share/pnpm',
)
SYSTEM_TOOLCHAIN_DIRS = (
    '/opt/homebrew/bin',
    '/usr/local/bin',
)


def validate_project_root(project_root: Path) -> Path:
    """
    Check that the project root exists.

    Raises:
        SpawnError: if the root is missing or not a directory
    """
    root = Path(project_root).expanduser()
    if not root.is_dir():
        raise SpawnError(f"Project root not found: {root}")
    return root


def augmented_path_entries(project_root: Path, home: Optional[Path] = None) -> List[str]:
    """Directories to prepend to PATH for the given project root."""
    home = home or get_real_user_home()
    candidates = [
        project_root / 'node_modules' / '.bin',
        project_root / 'bin',
    ]
    candidates += [home / rel for rel in TOOLCHAIN_DIRS]
    candidates += [Path(p) for p in SYSTEM_TOOLCHAIN_DIRS]

    entries = []
    for candidate in candidates:
        if candidate.is_dir() and str(candidate) not in entries:
            entries.append(str(candidate))
    return entries


def build_gateway_environment(project_root: Path,
                              base_env: Optional[Dict[str, str]] = None,
                              home: Optional[Path] = None) -> Dict[str, str]:
    """
    Build the environment the gateway is launched with.

    Raises:
        SpawnError: if the project root is invalid
    """
    root = validate_project_root(project_root)
    env = dict(os.environ if base_env is None else base_env)

    existing = [p for p in env.get('PATH', '').split(os.pathsep) if p]
    extra = [p for p in augmented_path_entries(root, home) if p not in existing]
    env['PATH'] = os.pathsep.join(extra + existing)
    return env


def resolve_gateway_command(project_root: Path,
                            env: Dict[str, str],
                            binary: str = 'clawdis',
                            args: Optional[List[str]] = None) -> Tuple[List[str], Path]:
    """
    Work out how to launch the gateway.

    Preference order:
      1. the gateway binary on the augmented PATH
      2. pnpm, when the project root has a package.json
      3. node running <root>/dist/index.js

    Returns:
        (argv, working directory)

    Raises:
        SpawnError: if no usable toolchain is found
    """
    root = validate_project_root(project_root)
    args = list(args if args is not None else ['gateway'])
    search_path = env.get('PATH', '')

    found = shutil.which(binary, path=search_path)
    if found:
        return [found] + args, root

    pnpm = shutil.which('pnpm', path=search_path)
    if pnpm and (root / 'package.json').exists():
        return [pnpm, binary] + args, root

    node = shutil.which('node', path=search_path)
    entry = root / 'dist' / 'index.js'
    if node and entry.exists():
        return [node, str(entry)] + args, root

    raise SpawnError(
        f"No gateway toolchain found: looked for {binary}, pnpm and node "
        f"(with {entry}) under {root}"
    )
