"""Version information for the Clawdis gateway debug toolkit"""

__version__ = "0.3.0"
__version_info__ = (0, 3, 0)
__release_date__ = "2026-10-18"

# Version history
VERSION_HISTORY = [
    {
        "version": "0.3.0",
        "date": "2026-10-18",
        "changes": [
            "Confirmation gate for killing the expected gateway listener",
            "Restart cap: give up after consecutive crash loops",
            "Attach-only mode probes the gateway port instead of spawning",
            "Session store path editing with atomic config writes",
        ]
    },
    {
        "version": "0.2.0",
        "date": "2026-09-02",
        "changes": [
            "Port check for both gateway ports with lsof/ps",
            "Bounded gateway log buffer",
            "JSON output for port reports",
        ]
    },
    {
        "version": "0.1.0",
        "date": "2026-07-21",
        "changes": [
            "Initial release: supervised gateway launch with log capture",
        ]
    },
]


def get_version():
    """Get current version string"""
    return __version__


def get_full_version():
    """Get version with release date"""
    return f"{__version__} ({__release_date__})"


def show_version_history(console=None):
    """Display version history"""
    from rich.console import Console
    from rich.table import Table

    console = console or Console()

    table = Table(title="Version History", show_header=True, header_style="bold magenta")
    table.add_column("Version", style="cyan", width=10)
    table.add_column("Date", style="green", width=12)
    table.add_column("Changes", style="white")

    for entry in VERSION_HISTORY:
        changes = "\n".join(f"- {c}" for c in entry['changes'][:3])
        if len(entry['changes']) > 3:
            changes += f"\n  ... and {len(entry['changes']) - 3} more"
        table.add_row(entry['version'], entry['date'], changes)

    console.print(table)
