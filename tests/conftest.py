"""
Shared fixtures for the gateway debug toolkit tests.
"""

import os
import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def fake_home(tmp_path, monkeypatch):
    """Point the real-user home at a temp dir so no test touches ~/."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("SUDO_USER", raising=False)
    return home


@pytest.fixture
def settings(fake_home):
    """Settings with fast timings and an existing project root."""
    from gateway.settings import DebugSettings

    root = fake_home / "Projects" / "clawdis"
    root.mkdir(parents=True)
    return DebugSettings(
        project_root=str(root),
        restart_delay=0.01,
        startup_grace=0.05,
        stable_uptime=5.0,
        stop_timeout=1.0,
        max_restart_attempts=3,
    )
