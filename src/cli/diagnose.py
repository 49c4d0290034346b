#!/usr/bin/env python3
"""PPPoE Diagnostic Tool

Walks the network stack (adapters, link state, PPP interface, routing, DNS)
and prints a pass/warn/fail report. Wi-Fi adapters are disabled for the
duration of the test and re-enabled afterwards.

Usage:
    pppoe-diag                       # quick checks
    sudo pppoe-diag --full           # dial, tune routes, advanced probes
    sudo pppoe-diag --full --stability --report /tmp/diag.json
    sudo pppoe-diag --sweep          # re-enable adapters left by a crash

Exit codes: 0 OK, 1 WARN, 2 FAIL.
"""

import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path

import click

# Add src to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from __version__ import get_full_version, get_version, show_version_history
from core.diagnostics import (
    AdapterToggleGuard, CheckStatus, run_full_workflow, run_quick_workflow,
)
from utils.console import (
    get_console, health_table, print_error, print_heading, print_info, print_overall,
    print_success, print_warning,
)
from utils.env_config import build_workflow_options, get_config, initialize_config, show_config_summary
from utils.logging_config import setup_logging
from utils.paths import PppoeDiagPaths

logger = logging.getLogger(__name__)

EXIT_CODES = {
    CheckStatus.OK: 0,
    CheckStatus.WARN: 1,
    CheckStatus.FAIL: 2,
}


def default_report_path() -> Path:
    """Timestamped report file in the reports directory"""
    stamp = datetime.now().strftime('%Y%m%d-%H%M%S')
    return PppoeDiagPaths.get_reports_dir() / f"pppoe-diag-{stamp}.json"


def write_report(result, path) -> Path:
    """Write the JSON report for result. Credentials are never included."""
    report_path = Path(path).expanduser()
    report_path.parent.mkdir(parents=True, exist_ok=True)
    with open(report_path, 'w') as f:
        json.dump(dict(result.to_dict(), tool_version=get_version()), f, indent=2)
    return report_path


def run_sweep() -> int:
    """Re-enable adapters recorded by a previous run that never restored them."""
    from commands.adapters import LinuxAdapterProvider

    guard = AdapterToggleGuard(LinuxAdapterProvider())
    restored = guard.sweep_orphans()
    if guard.last_error is not None:
        print_error(str(guard.last_error))
        return EXIT_CODES[CheckStatus.FAIL]
    if restored:
        print_success(f"Re-enabled {restored} adapter(s)")
    else:
        print_info("Nothing to restore")
    return EXIT_CODES[CheckStatus.OK]


@click.command()
@click.option('--full', is_flag=True, help='Run the full workflow (dial, routes, advanced probes)')
@click.option('--name', help='NetworkManager PPPoE connection name')
@click.option('--user', help='PPPoE username')
@click.option('--password', help='PPPoE password (prefer the credentials file)')
@click.option('--credentials-file', type=click.Path(dir_okay=False), help='Credentials file')
@click.option('--adapter', help='Wired adapter to test (default: first Ethernet adapter that is up)')
@click.option('--skip-wifi-toggle', is_flag=True, help='Leave Wi-Fi adapters enabled')
@click.option('--stability', is_flag=True, help='Add the stability test to the full workflow')
@click.option('--report', 'report_path', type=click.Path(dir_okay=False), help='Write a JSON report')
@click.option('--save-report', is_flag=True, help='Write a timestamped JSON report to the reports directory')
@click.option('--log-file', type=click.Path(dir_okay=False), help='Write a debug transcript')
@click.option('--transcript', is_flag=True, help='Write a debug transcript to the log directory')
@click.option('--sweep', is_flag=True, help='Only re-enable adapters left disabled by a crashed run')
@click.option('--show-config', is_flag=True, help='Show current configuration')
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--debug', is_flag=True, help='Enable debug logging')
def main(full, name, user, password, credentials_file, adapter, skip_wifi_toggle, stability,
         report_path, save_report, log_file, transcript, sweep, show_config, version, debug):
    """PPPoE connection diagnostics"""
    console = get_console()

    # Initialize configuration from .env file
    config_result = initialize_config()

    if transcript and not log_file:
        log_file = str(PppoeDiagPaths.get_log_dir() / 'pppoe-diag.log')
    level_name = 'DEBUG' if debug else get_config('PPPOE_LOG_LEVEL').upper()
    setup_logging(
        level=getattr(logging, level_name, logging.WARNING),
        log_file=log_file or get_config('PPPOE_LOG_FILE') or None,
    )

    if version:
        console.print(f"PPPoE Diagnostics v{get_full_version()}")
        show_version_history()
        return

    if show_config:
        show_config_summary()
        return

    for warning in config_result['warnings']:
        print_warning(warning)
    if not config_result['valid']:
        for error in config_result['errors']:
            print_error(error)
        sys.exit(EXIT_CODES[CheckStatus.FAIL])

    if sweep:
        sys.exit(run_sweep())

    def progress(line: str):
        console.print(f"[dim]  {line}[/dim]")

    options = build_workflow_options(
        pppoe_name=name,
        user_name=user,
        password=password,
        credentials_file_path=credentials_file,
        target_adapter=adapter,
        skip_wifi_toggle=True if skip_wifi_toggle else None,
        run_stability_test=True if stability else None,
        write_log=progress,
    )

    workflow = run_full_workflow if full else run_quick_workflow
    print_heading(f"PPPoE Diagnostics ({'full' if full else 'quick'}): {options.pppoe_name}")
    result = workflow(options)

    summary = result.health.summarize()
    console.print()
    console.print(health_table(summary.records))
    print_overall(summary.overall_status.value,
                  {status.value: count for status, count in summary.counts.items()})

    if result.disabled_wifi_adapters:
        console.print(f"[dim]Wi-Fi adapters toggled: {', '.join(result.disabled_wifi_adapters)}[/dim]")

    if save_report and not report_path:
        report_path = default_report_path()
    if report_path:
        try:
            saved = write_report(result, report_path)
            print_info(f"Report saved to {saved}")
        except OSError as e:
            logger.error(f"Could not write report: {e}")
            print_error(f"Could not write report: {e}")

    sys.exit(EXIT_CODES[summary.overall_status])


if __name__ == '__main__':
    main()
