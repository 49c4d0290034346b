"""System utilities for OS detection and information"""

import os
import shutil
import platform
import distro


# Tools the capability wrappers shell out to
REQUIRED_TOOLS = ['ip', 'ping']
OPTIONAL_TOOLS = ['nmcli', 'traceroute', 'getent']


def check_root():
    """Check if running with root privileges"""
    return os.geteuid() == 0


def get_system_info():
    """OS, kernel, architecture and Python facts for the basic system checks"""
    return {
        'os': distro.name() or 'Unknown Linux',
        'os_version': distro.version() or 'Unknown',
        'arch': platform.machine(),
        'platform': platform.system(),
        'python': platform.python_version(),
        'kernel': platform.release(),
    }


def find_missing_tools(tools):
    """Return the tools from the list that are not on PATH (always a list)"""
    return [tool for tool in tools if shutil.which(tool) is None]


def get_service_status(service_name):
    """systemd state of a service ('active', 'inactive', ...) or 'unknown'"""
    # commands imports core.diagnostics, which imports this module
    from commands.base import run_tool

    result = run_tool(['systemctl', 'is-active', service_name], timeout=10)
    # is-active exits non-zero for inactive units but still prints the state
    state = (result.raw_output or '').strip()
    return state or 'unknown'


def is_service_running(service_name):
    """Check if a systemd service is running"""
    return get_service_status(service_name) == 'active'
