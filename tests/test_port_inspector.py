"""
Tests for PortInspector (lsof/ps parsing and listener classification).

Run: python3 -m pytest tests/test_port_inspector.py -v
"""

import subprocess
from unittest.mock import MagicMock

import pytest

from diagnostics.port_inspector import PortInspector, PortListener, PortReport, parse_lsof_fields
from gateway.settings import DebugSettings


def completed(stdout="", returncode=0, stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


def fake_runner(lsof_output="", lsof_code=0, lsof_stderr="", commands=None):
    """Runner answering lsof with fixed output and ps from a pid->cmdline map."""
    commands = commands or {}

    def run(cmd, **kwargs):
        if cmd[0] == 'lsof':
            return completed(lsof_output, lsof_code, lsof_stderr)
        if cmd[0] == 'ps':
            pid = int(cmd[2])
            if pid in commands:
                return completed(commands[pid] + "\n")
            return completed("", 1)
        raise AssertionError(f"unexpected command {cmd}")

    return MagicMock(side_effect=run)


@pytest.fixture
def local_settings(fake_home):
    return DebugSettings()


class TestParseLsofFields:
    """Tests for parse_lsof_fields."""

    def test_single_process(self):
        assert parse_lsof_fields("p123\ncnode\nf20\n") == [(123, "node")]

    def test_duplicate_pid_reported_once(self):
        output = "p10\ncclawdis\nf20\nf21\np10\ncclawdis\nf22\n"
        assert parse_lsof_fields(output) == [(10, "clawdis")]

    def test_order_preserved(self):
        output = "p30\ncpython3\np10\ncnode\np20\ncruby\n"
        assert [pid for pid, _ in parse_lsof_fields(output)] == [30, 10, 20]

    def test_garbage_lines_ignored(self):
        assert parse_lsof_fields("pabc\ncx\n\np5\ncnc\n") == [(5, "nc")]


class TestInspect:
    """inspect() end to end with a fake runner."""

    def test_free_port(self, local_settings):
        inspector = PortInspector(local_settings, runner=fake_runner("", lsof_code=1))
        report = inspector.inspect(18789)

        assert report.is_free
        assert report.summary == "Port 18789 is free."
        assert report.to_dict() == {'port': 18789, 'summary': "Port 18789 is free.", 'listeners': []}

    def test_expected_gateway(self, local_settings):
        runner = fake_runner("p500\ncclawdis\nf3\n", commands={500: "/usr/local/bin/clawdis gateway"})
        report = PortInspector(local_settings, runner=runner).inspect(18789)

        assert report.listeners == [PortListener(500, "clawdis", "/usr/local/bin/clawdis gateway", True)]
        assert report.summary == "Port 18789: clawdis (pid 500) listening (expected)."
        assert report.unexpected == []

    def test_unexpected_listener(self, local_settings):
        runner = fake_runner("p77\ncnc\n", commands={77: "nc -l 18788"})
        report = PortInspector(local_settings, runner=runner).inspect(18788)

        assert report.listeners[0].expected is False
        assert report.summary == "Port 18788: 1 unexpected listener(s); kill to free the port."

    def test_parseable_shape(self, local_settings):
        runner = fake_runner("p77\ncnc\n", commands={77: "nc -l 18788"})
        report = PortInspector(local_settings, runner=runner).inspect(18788)

        assert report.to_dict() == {
            'port': 18788,
            'summary': "Port 18788: 1 unexpected listener(s); kill to free the port.",
            'listeners': [{'pid': 77, 'command': "nc", 'fullCommandLine': "nc -l 18788", 'expected': False}],
        }

    def test_ps_failure_falls_back_to_command(self, local_settings):
        report = PortInspector(local_settings, runner=fake_runner("p9\ncnode\n")).inspect(18788)

        assert report.listeners[0].full_command == "node"

    def test_lsof_missing(self, local_settings):
        runner = MagicMock(side_effect=FileNotFoundError("lsof"))
        report = PortInspector(local_settings, runner=runner).inspect(18788)

        assert report.listeners == []
        assert report.query_failed
        assert not report.is_free
        assert "could not check listeners" in report.summary

    def test_lsof_timeout(self, local_settings):
        runner = MagicMock(side_effect=subprocess.TimeoutExpired("lsof", 5))
        report = PortInspector(local_settings, runner=runner).inspect(18788)

        assert report.query_failed

    def test_lsof_real_error(self, local_settings):
        runner = fake_runner("", lsof_code=1, lsof_stderr="lsof: unsupported option\n")
        report = PortInspector(local_settings, runner=runner).inspect(18788)

        assert report.query_failed
        assert "unsupported option" in report.summary

    def test_lsof_warnings_ignored(self, local_settings):
        runner = fake_runner("", lsof_code=1,
                             lsof_stderr="lsof: WARNING: can't stat() fuse.gvfsd-fuse file system\n")
        report = PortInspector(local_settings, runner=runner).inspect(18788)

        assert report.is_free

    def test_lsof_command_line(self, local_settings):
        runner = fake_runner("", lsof_code=1)
        PortInspector(local_settings, runner=runner).inspect(18788)

        cmd = runner.call_args_list[0][0][0]
        assert cmd == ['lsof', '-nP', '+c', '0', '-iTCP:18788', '-sTCP:LISTEN', '-Fpc']


class TestClassification:
    """Expected vs unexpected by mode and command name."""

    def test_gateway_binary_expected_in_local_mode(self, local_settings):
        inspector = PortInspector(local_settings)
        assert inspector.is_expected("clawdis") is True
        assert inspector.is_expected("/opt/bin/clawdis") is True

    def test_other_commands_unexpected(self, local_settings):
        inspector = PortInspector(local_settings)
        assert inspector.is_expected("node") is False
        assert inspector.is_expected("clawdis-helper") is False
        assert inspector.is_expected("") is False

    def test_attach_only_everything_unexpected(self, fake_home):
        settings = DebugSettings(attach_existing_only=True)
        assert PortInspector(settings).is_expected("clawdis") is False

    def test_mode_change_seen_on_next_inspect(self, local_settings):
        runner = fake_runner("p500\ncclawdis\n")
        inspector = PortInspector(local_settings, runner=runner)

        assert inspector.inspect(18789).listeners[0].expected is True
        local_settings.set_attach_existing_only(True)
        assert inspector.inspect(18789).listeners[0].expected is False

    def test_custom_gateway_binary(self, fake_home):
        settings = DebugSettings(gateway_binary="my-gateway")
        inspector = PortInspector(settings)

        assert inspector.is_expected("my-gateway") is True
        assert inspector.is_expected("clawdis") is False


class TestPortReport:
    """Tests for PortReport helpers."""

    def test_find(self):
        listener = PortListener(1, "a", "a", False)
        report = PortReport(port=1, summary="", listeners=[listener])

        assert report.find(1) is listener
        assert report.find(2) is None
