"""
Tests for gateway launch environment and command resolution.

Run: python3 -m pytest tests/test_environment.py -v
"""

import os
import stat

import pytest

from core.errors import SpawnError
from gateway.environment import (
    augmented_path_entries,
    build_gateway_environment,
    resolve_gateway_command,
    validate_project_root,
)


def make_executable(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "clawdis"
    root.mkdir()
    return root


class TestValidateProjectRoot:
    """Tests for validate_project_root."""

    def test_missing_root(self, tmp_path):
        with pytest.raises(SpawnError, match="Project root not found"):
            validate_project_root(tmp_path / "nope")

    def test_file_is_not_a_root(self, tmp_path):
        f = tmp_path / "file"
        f.write_text("")
        with pytest.raises(SpawnError):
            validate_project_root(f)


class TestEnvironment:
    """PATH augmentation."""

    def test_project_dirs_first(self, project, tmp_path):
        (project / "node_modules" / ".bin").mkdir(parents=True)
        (project / "bin").mkdir()

        env = build_gateway_environment(project, base_env={'PATH': '/usr/bin'}, home=tmp_path / "home")
        entries = env['PATH'].split(os.pathsep)

        assert entries[0] == str(project / "node_modules" / ".bin")
        assert entries[1] == str(project / "bin")
        assert entries[-1] == "/usr/bin"

    def test_missing_dirs_skipped(self, project, tmp_path):
        entries = augmented_path_entries(project, home=tmp_path / "home")

        assert str(project / "bin") not in entries
        assert str(project / "node_modules" / ".bin") not in entries

    def test_home_toolchain_dirs(self, project, tmp_path):
        home = tmp_path / "home"
        (home / ".local" / "share" / "pnpm").mkdir(parents=True)

        entries = augmented_path_entries(project, home=home)

        assert str(home / ".local" / "share" / "pnpm") in entries

    def test_existing_path_entries_not_duplicated(self, project, tmp_path):
        (project / "bin").mkdir()
        base = {'PATH': os.pathsep.join([str(project / "bin"), "/usr/bin"])}

        env = build_gateway_environment(project, base_env=base, home=tmp_path / "home")

        assert env['PATH'].split(os.pathsep).count(str(project / "bin")) == 1

    def test_base_env_preserved(self, project, tmp_path):
        env = build_gateway_environment(project, base_env={'PATH': '', 'FOO': 'bar'}, home=tmp_path)
        assert env['FOO'] == 'bar'

    def test_invalid_root(self, tmp_path):
        with pytest.raises(SpawnError):
            build_gateway_environment(tmp_path / "missing", base_env={})


class TestResolveGatewayCommand:
    """Launcher preference order."""

    def test_binary_on_path_preferred(self, project, tmp_path):
        binary = make_executable(project / "node_modules" / ".bin" / "clawdis")
        make_executable(tmp_path / "tools" / "pnpm")
        (project / "package.json").write_text("{}")
        env = {'PATH': os.pathsep.join([str(binary.parent), str(tmp_path / "tools")])}

        argv, cwd = resolve_gateway_command(project, env)

        assert argv == [str(binary), "gateway"]
        assert cwd == project

    def test_pnpm_fallback(self, project, tmp_path):
        pnpm = make_executable(tmp_path / "tools" / "pnpm")
        (project / "package.json").write_text("{}")
        env = {'PATH': str(pnpm.parent)}

        argv, _ = resolve_gateway_command(project, env, args=["gateway", "--verbose"])

        assert argv == [str(pnpm), "clawdis", "gateway", "--verbose"]

    def test_pnpm_needs_package_json(self, project, tmp_path):
        make_executable(tmp_path / "tools" / "pnpm")
        env = {'PATH': str(tmp_path / "tools")}

        with pytest.raises(SpawnError, match="No gateway toolchain"):
            resolve_gateway_command(project, env)

    def test_node_fallback(self, project, tmp_path):
        node = make_executable(tmp_path / "tools" / "node")
        entry = project / "dist" / "index.js"
        entry.parent.mkdir()
        entry.write_text("")
        env = {'PATH': str(node.parent)}

        argv, _ = resolve_gateway_command(project, env)

        assert argv == [str(node), str(entry), "gateway"]

    def test_nothing_found(self, project, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()

        with pytest.raises(SpawnError):
            resolve_gateway_command(project, {'PATH': str(empty)})
