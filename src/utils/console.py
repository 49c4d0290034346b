"""
PPPoE Diag Console Manager

Provides a singleton Rich Console instance for consistent output formatting
across the application.

Usage:
    from utils.console import console
    console.print("[success]Connected[/success]")

Or for explicit access:
    from utils.console import get_console
    c = get_console()
"""

from rich.console import Console
from rich.table import Table
from rich.theme import Theme
from typing import Optional
import threading

# Thread-safe singleton
_console: Optional[Console] = None
_lock = threading.Lock()

PPPOE_DIAG_THEME = Theme({
    "info": "cyan",
    "success": "green",
    "warning": "yellow",
    "error": "red bold",
    "heading": "bold magenta",
    "highlight": "bold cyan",
    "dim": "dim white",
    "status.ok": "bold green",
    "status.warn": "bold yellow",
    "status.fail": "bold red",
})

STATUS_STYLES = {
    'ok': ('status.ok', '✓ OK'),
    'warn': ('status.warn', '⚠ WARN'),
    'fail': ('status.fail', '✗ FAIL'),
}


def get_console(force_terminal: bool = None,
                no_color: bool = None,
                width: int = None) -> Console:
    """
    Get the singleton Console instance.

    Args:
        force_terminal: Force terminal mode (for testing)
        no_color: Disable color output
        width: Override console width

    Returns:
        The shared Console instance
    """
    global _console

    if _console is None:
        with _lock:
            # Double-check locking
            if _console is None:
                _console = Console(
                    theme=PPPOE_DIAG_THEME,
                    force_terminal=force_terminal,
                    no_color=no_color,
                    width=width,
                    highlight=True,
                    markup=True,
                )

    return _console


# Default console instance for direct import
console = get_console()


# Convenience functions
def print_success(message: str):
    """Print a success message"""
    get_console().print(f"[success]✓ {message}[/success]")


def print_error(message: str):
    """Print an error message"""
    get_console().print(f"[error]✗ {message}[/error]")


def print_warning(message: str):
    """Print a warning message"""
    get_console().print(f"[warning]⚠ {message}[/warning]")


def print_info(message: str):
    """Print an info message"""
    get_console().print(f"[info]ℹ {message}[/info]")


def print_heading(message: str):
    """Print a heading"""
    c = get_console()
    c.print(f"\n[heading]{message}[/heading]")
    c.print("[dim]" + "─" * len(message) + "[/dim]")


def format_status(status: str) -> str:
    """Rich markup for an ok/warn/fail status value"""
    style, label = STATUS_STYLES.get(status, ('dim', status.upper()))
    return f"[{style}]{label}[/{style}]"


def health_table(records, title: str = "Diagnostic Results") -> Table:
    """
    Build a results table from health records.

    Args:
        records: Iterable of HealthRecord, in display order
        title: Table title
    """
    table = Table(title=title, show_lines=False, header_style="heading")
    table.add_column("Check", style="highlight", no_wrap=True)
    table.add_column("Status", justify="center")
    table.add_column("Detail")
    for record in records:
        table.add_row(record.label, format_status(record.status.value), record.detail)
    return table


def print_overall(status: str, counts: dict):
    """Print the overall status line under the results table"""
    summary = ", ".join(f"{count} {name}" for name, count in counts.items())
    get_console().print(f"\nOverall: {format_status(status)}  [dim]({summary})[/dim]")
