"""Version information for PPPoE Diagnostics"""

__version__ = "1.0.0"
__version_info__ = (1, 0, 0)
__release_date__ = "2026-10-12"

# Version history
VERSION_HISTORY = [
    {
        "version": "1.0.0",
        "date": "2026-10-12",
        "changes": [
            "Quick and full PPPoE workflows with a ranked health report",
            "Credential fallback across parameters, credentials file and saved profile",
            "Temporary Wi-Fi disable with recovery of adapters left disabled",
            "JSON report export",
        ]
    },
]


def get_version():
    """Get current version string"""
    return __version__


def get_full_version():
    """Get version with release date"""
    return f"{__version__} ({__release_date__})"


def show_version_history():
    """Display version history"""
    from rich.table import Table
    from utils.console import get_console

    table = Table(title="Version History", show_header=True, header_style="bold magenta")
    table.add_column("Version", style="cyan", width=10)
    table.add_column("Date", style="green", width=12)
    table.add_column("Changes", style="white")

    for entry in VERSION_HISTORY:
        changes = "\n".join(f"- {c}" for c in entry['changes'][:3])
        if len(entry['changes']) > 3:
            changes += f"\n  ... and {len(entry['changes']) - 3} more"
        table.add_row(entry['version'], entry['date'], changes)

    get_console().print(table)
