#!/usr/bin/env python3
"""
Clawdis Gateway Debug Toolkit
Main entry point for the application

Features:
- Debug facts (pid, CLI helper, log file, project root)
- Gateway port check with expected/unexpected listener classification
- Kill a listener, with confirmation for the expected gateway
- Supervised foreground gateway run with crash restarts
- Session store / project root / attach-only settings
"""

import json
import os
import sys
import time
import click
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

# Add src to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from commands import gateway as gateway_cmd
from commands import ports as ports_cmd
from commands import settings as settings_cmd
from commands.base import CommandResult, ResultStatus
from gateway.status import GatewayState
from utils.logging_config import setup_logging, level_from_name
from utils.paths import DebugToolPaths
from __version__ import get_full_version, show_version_history

console = Console()

STATUS_STYLES = {
    ResultStatus.SUCCESS: "green",
    ResultStatus.WARNING: "yellow",
    ResultStatus.PENDING: "yellow",
    ResultStatus.ERROR: "red",
    ResultStatus.NOT_AVAILABLE: "red",
}


def print_result(result: CommandResult):
    """Print a one-line CommandResult summary"""
    style = STATUS_STYLES.get(result.status, "white")
    console.print(f"[{style}]{result.message}[/{style}]")
    if not result.success and result.error and result.error != result.message:
        console.print(f"[dim]{result.error}[/dim]")
    hint = result.data.get('fix_hint') if result.data else None
    if hint:
        console.print(f"[dim]Hint: {hint}[/dim]")


def exit_for(result: CommandResult):
    """Exit non-zero for failed results"""
    if not result.success and result.status != ResultStatus.PENDING:
        sys.exit(1)


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.option('--log-file', type=click.Path(dir_okay=False), default=None,
              help='Log file (default: ~/.cache/clawdis-debug/debug.log)')
@click.option('--settings', 'settings_file', type=click.Path(dir_okay=False), default=None,
              help='Settings file (default: ~/.config/clawdis-debug/settings.json)')
@click.option('--version', is_flag=True, help='Show version information')
@click.pass_context
def main(ctx, debug, log_file, settings_file, version):
    """Clawdis gateway debug toolkit"""
    if version:
        console.print(f"clawdis-debug v{get_full_version()}")
        return

    settings_cmd.use_settings(None, settings_file)
    settings = settings_cmd.get_settings()

    level = 'DEBUG' if debug else settings.log_level
    setup_logging(level=level_from_name(level), log_file=log_file or DebugToolPaths.get_log_file(), force=True)

    if ctx.invoked_subcommand is None:
        show_info()


# ========================================
# Info
# ========================================

def show_info():
    """Display the debug facts table"""
    result = gateway_cmd.get_debug_info()
    info = result.data
    session = settings_cmd.get_session_store()

    table = Table(title="Debug Info", show_header=True, header_style="bold magenta")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("PID", str(info['pid']))
    table.add_row("CLI helper", info['cli_helper'] or "[red]not found on PATH[/red]")
    table.add_row("Log file", info['log_file'])
    table.add_row("Binary path", info['binary_path'])
    root_note = "" if info['project_root_exists'] else " [red](missing)[/red]"
    table.add_row("Project root", f"{info['project_root']}{root_note}")
    table.add_row("Attach-only", "on" if info['attach_existing_only'] else "off")
    table.add_row("Gateway ports", ", ".join(str(p) for p in info['gateway_ports']))
    table.add_row("Session store", session.data.get('session_store', ''))
    table.add_row("Settings file", info['settings_file'])
    gateway = info.get('gateway')
    if gateway:
        table.add_row("Gateway", f"{gateway['label']} (restarts: {gateway['restart_count']})")

    console.print(table)


@main.command()
def info():
    """Show debug facts"""
    show_info()


@main.command()
@click.option('--history', is_flag=True, help='Show version history')
def version(history):
    """Show version information"""
    console.print(f"clawdis-debug v{get_full_version()}")
    if history:
        show_version_history(console)


# ========================================
# Ports
# ========================================

def show_reports(reports):
    """Render port reports as a table"""
    table = Table(title="Gateway Ports", show_header=True, header_style="bold magenta")
    table.add_column("Port", style="cyan")
    table.add_column("PID")
    table.add_column("Command")
    table.add_column("Full command", overflow="fold")
    table.add_column("Expected")

    for report in reports:
        if not report['listeners']:
            table.add_row(str(report['port']), "-", "[dim]free[/dim]", "", "")
            continue
        for listener in report['listeners']:
            expected = "[green]yes[/green]" if listener['expected'] else "[red]no[/red]"
            table.add_row(str(report['port']), str(listener['pid']), listener['command'],
                          listener['fullCommandLine'], expected)

    console.print(table)
    for report in reports:
        console.print(f"  {report['summary']}")


@main.command()
@click.option('--json', 'as_json', is_flag=True, help='Print reports as JSON')
@click.option('--port', 'port_list', type=int, multiple=True, help='Check this port instead (repeatable)')
def ports(as_json, port_list):
    """Check which processes listen on the gateway ports"""
    result = ports_cmd.check(port_list or None)
    reports = result.data.get('reports', [])

    if as_json:
        click.echo(json.dumps(reports, indent=2))
    else:
        show_reports(reports)
        print_result(result)
    exit_for(result)


@main.command()
@click.argument('pid', type=int)
@click.option('--yes', '-y', is_flag=True, help='Do not ask before killing the expected gateway')
def kill(pid, yes):
    """Kill the process listening on a gateway port"""
    result = ports_cmd.kill(pid)

    if result.needs_confirmation:
        console.print(Panel(result.data['prompt'], title=result.message, border_style="yellow"))
        if yes or Confirm.ask("Kill anyway?", default=False, console=console):
            result = ports_cmd.confirm_kill(pid)
        else:
            ports_cmd.cancel_kill()
            console.print("[dim]Cancelled[/dim]")
            return

    print_result(result)
    if result.data.get('reports'):
        for report in result.data['reports']:
            console.print(f"  {report['summary']}")
    exit_for(result)


# ========================================
# Gateway
# ========================================

@main.command()
@click.option('--tail', type=int, default=0, help='Print this many lines of earlier output on exit')
def run(tail):
    """Run the gateway in the foreground until Ctrl+C"""

    def on_status(status, supervisor):
        console.print(f"[bold cyan]Gateway:[/bold cyan] {status.label} "
                      f"[dim]| Restarts: {supervisor.restart_count}[/dim]")

    def on_log(chunk):
        console.print(chunk, end="", markup=False, highlight=False)

    gateway_cmd.subscribe(on_status=on_status, on_log=on_log)
    result = gateway_cmd.start()
    if not result.success and result.status != ResultStatus.WARNING:
        print_result(result)
        sys.exit(1)

    try:
        while True:
            status = gateway_cmd.get_status()
            state = status.data.get('state')
            if state in (GatewayState.FAILED.value, GatewayState.STOPPED.value):
                break
            if status.data.get('attached'):
                console.print("[dim]Attached to an existing gateway; nothing to supervise.[/dim]")
                break
            time.sleep(0.5)
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopping gateway...[/yellow]")

    last = gateway_cmd.get_status()
    stopped = gateway_cmd.stop()
    if tail:
        console.print(Panel(gateway_cmd.get_log(tail).data.get('log', ''), title="Gateway output"))
    print_result(last if last.data.get('state') == GatewayState.FAILED.value else stopped)
    exit_for(last)


# ========================================
# Settings
# ========================================

@main.command('session-store')
@click.argument('path', required=False)
@click.option('--default', 'use_default', is_flag=True, help='Reset to the default session store')
def session_store(path, use_default):
    """Show or set the session store path"""
    if path is None and not use_default:
        result = settings_cmd.get_session_store()
        console.print(f"Session store: [green]{result.data['session_store']}[/green]")
        console.print(f"[dim]From {result.data['config_path']}[/dim]")
        return

    result = settings_cmd.set_session_store("" if use_default else path)
    print_result(result)
    exit_for(result)


@main.command('project-root')
@click.argument('path', required=False)
@click.option('--reset', is_flag=True, help='Restore the default project root')
def project_root(path, reset):
    """Show or set the gateway project root"""
    if reset:
        result = settings_cmd.reset_project_root()
    elif path:
        result = settings_cmd.set_project_root(path)
    else:
        settings = settings_cmd.get_settings()
        console.print(f"Project root: [green]{settings.project_root}[/green]")
        return

    print_result(result)
    exit_for(result)


@main.command('attach-only')
@click.argument('state', type=click.Choice(['on', 'off']), required=False)
def attach_only(state):
    """Show or toggle attach-only mode"""
    if state is None:
        settings = settings_cmd.get_settings()
        console.print(f"Attach-only: [green]{'on' if settings.attach_existing_only else 'off'}[/green]")
        return

    result = settings_cmd.set_attach_only(state == 'on')
    print_result(result)
    exit_for(result)


if __name__ == '__main__':
    main()
