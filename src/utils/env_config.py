"""Environment configuration loader and validator"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Any
from dotenv import dotenv_values
from rich.table import Table

from utils.console import get_console
from utils.paths import PppoeDiagPaths

logger = logging.getLogger(__name__)

# Default configuration values
DEFAULTS = {
    # Connection
    'PPPOE_NAME': 'PPPoE',
    'PPPOE_USERNAME': '',
    'PPPOE_PASSWORD': '',
    'PPPOE_CREDENTIALS_FILE': '',
    'PPPOE_TARGET_ADAPTER': '',
    'PPPOE_SKIP_WIFI_TOGGLE': 'false',

    # Probes
    'PPPOE_PING_TARGETS': '8.8.8.8,1.1.1.1',
    'PPPOE_DNS_NAMES': 'google.com,cloudflare.com',
    'PPPOE_TRACEROUTE_TARGET': '8.8.8.8',
    'PPPOE_PING_TIMEOUT': '2',
    'PPPOE_ROUTE_METRIC': '10',

    # Stability test
    'PPPOE_STABILITY_SAMPLES': '10',
    'PPPOE_STABILITY_INTERVAL': '3',

    # Logging
    'PPPOE_LOG_LEVEL': 'WARNING',
    'PPPOE_LOG_FILE': '',
}

# Never shown in the summary table
SECRET_KEYS = {'PPPOE_PASSWORD'}

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def find_env_file() -> Optional[Path]:
    """Find the .env file in standard locations"""
    # Check locations in order of priority
    search_paths = [
        Path.cwd() / '.env',
        PppoeDiagPaths.get_config_dir() / '.env',
        Path(__file__).parent.parent.parent / '.env',
    ]

    for path in search_paths:
        if path.exists():
            return path

    return None


def load_env_file(env_path: Optional[Path] = None) -> Dict[str, str]:
    """Load environment variables from .env file

    Variables already set in the environment win over the file.

    Args:
        env_path: Optional path to .env file. If None, auto-discovers.

    Returns:
        Dictionary of loaded environment variables
    """
    loaded_vars = {}

    if env_path is None:
        env_path = find_env_file()

    if env_path is None or not env_path.exists():
        return loaded_vars

    try:
        values = dotenv_values(env_path)
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Could not load .env file {env_path}: {e}")
        return loaded_vars

    for key, value in values.items():
        if value is None:
            continue
        loaded_vars[key] = value
        os.environ.setdefault(key, value)

    logger.debug(f"Loaded {len(loaded_vars)} settings from {env_path}")
    return loaded_vars


def get_config(key: str, default: Optional[str] = None) -> str:
    """Get configuration value from environment or defaults

    Priority:
    1. Environment variable
    2. Provided default
    3. Built-in default
    """
    return os.environ.get(key, default if default is not None else DEFAULTS.get(key, ''))


def get_config_bool(key: str, default: bool = False) -> bool:
    """Get boolean configuration value"""
    value = get_config(key, str(default).lower())
    return value.lower() in ('true', 'yes', '1', 'on')


def get_config_int(key: str, default: int = 0) -> int:
    """Get integer configuration value"""
    try:
        return int(get_config(key, str(default)))
    except ValueError:
        return default


def get_config_float(key: str, default: float = 0.0) -> float:
    """Get float configuration value"""
    try:
        return float(get_config(key, str(default)))
    except ValueError:
        return default


def get_config_list(key: str, default: Optional[List[str]] = None) -> List[str]:
    """Get comma-separated configuration value as a list (always a list)"""
    raw = get_config(key, ','.join(default) if default is not None else None)
    return [item.strip() for item in raw.split(',') if item.strip()]


def validate_config() -> Dict[str, Any]:
    """Validate current configuration and return status

    Returns:
        Dictionary with validation results
    """
    results = {
        'valid': True,
        'warnings': [],
        'errors': [],
        'config': {}
    }

    name = get_config('PPPOE_NAME').strip()
    if not name:
        results['errors'].append("PPPOE_NAME is empty")
        results['valid'] = False
    results['config']['pppoe_name'] = name

    # Credentials file
    creds = get_config('PPPOE_CREDENTIALS_FILE')
    if creds and not Path(creds).expanduser().exists():
        results['warnings'].append(f"Credentials file does not exist: {creds}")
    results['config']['credentials_file'] = creds

    # A username without a password falls through to the file/saved store
    if bool(get_config('PPPOE_USERNAME')) != bool(get_config('PPPOE_PASSWORD')):
        results['warnings'].append("Only one of PPPOE_USERNAME/PPPOE_PASSWORD is set")

    # Check log level
    log_level = get_config('PPPOE_LOG_LEVEL').upper()
    if log_level not in VALID_LOG_LEVELS:
        results['errors'].append(f"Invalid PPPOE_LOG_LEVEL: {log_level}")
        results['valid'] = False
    results['config']['log_level'] = log_level

    for key in ('PPPOE_PING_TIMEOUT', 'PPPOE_ROUTE_METRIC', 'PPPOE_STABILITY_SAMPLES'):
        value = get_config(key)
        if not value.isdigit():
            results['errors'].append(f"{key} must be a non-negative integer: {value}")
            results['valid'] = False

    if not get_config_list('PPPOE_PING_TARGETS'):
        results['warnings'].append("PPPOE_PING_TARGETS is empty; ping checks will be skipped")

    return results


def show_config_summary():
    """Display current configuration summary"""
    console = get_console()
    table = Table(title="Current Configuration", show_header=True, header_style="bold cyan")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_column("Source", style="yellow")

    env_file = find_env_file()

    for key in sorted(DEFAULTS.keys()):
        env_value = os.environ.get(key)
        default_value = DEFAULTS[key]

        if env_value is not None:
            value = env_value
            source = ".env" if env_file else "env var"
        else:
            value = default_value
            source = "default"

        if key in SECRET_KEYS and value:
            value = "********"

        table.add_row(key, value, source)

    console.print(table)

    if env_file:
        console.print(f"\n[dim]Loaded from: {env_file}[/dim]")
    else:
        console.print("\n[dim]No .env file found, using defaults[/dim]")


def build_workflow_options(**overrides):
    """Build WorkflowOptions from configuration; non-None overrides win.

    Usage:
        options = build_workflow_options(pppoe_name="DSL", write_log=print)
    """
    from core.diagnostics.models import WorkflowOptions

    creds_file = get_config('PPPOE_CREDENTIALS_FILE')
    if not creds_file and PppoeDiagPaths.get_credentials_file().exists():
        creds_file = str(PppoeDiagPaths.get_credentials_file())

    values = {
        'pppoe_name': get_config('PPPOE_NAME') or 'PPPoE',
        'user_name': get_config('PPPOE_USERNAME'),
        'password': get_config('PPPOE_PASSWORD'),
        'credentials_file_path': creds_file,
        'target_adapter': get_config('PPPOE_TARGET_ADAPTER') or None,
        'skip_wifi_toggle': get_config_bool('PPPOE_SKIP_WIFI_TOGGLE'),
        'ping_targets': get_config_list('PPPOE_PING_TARGETS'),
        'dns_names': get_config_list('PPPOE_DNS_NAMES'),
        'traceroute_target': get_config('PPPOE_TRACEROUTE_TARGET'),
        'ping_timeout': get_config_int('PPPOE_PING_TIMEOUT', 2),
        'ppp_route_metric': get_config_int('PPPOE_ROUTE_METRIC', 10),
        'stability_samples': get_config_int('PPPOE_STABILITY_SAMPLES', 10),
        'stability_interval': get_config_float('PPPOE_STABILITY_INTERVAL', 3.0),
    }
    for key, value in overrides.items():
        if value is not None:
            values[key] = value
    return WorkflowOptions(**values)


def initialize_config():
    """Initialize configuration by loading .env file

    Call this at application startup
    """
    env_file = find_env_file()
    loaded = load_env_file(env_file)

    if loaded:
        logger.info(f"Loaded {len(loaded)} settings from {env_file}")

    return validate_config()
