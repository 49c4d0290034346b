"""
PPPoE Diag Commands Layer

Capability implementations the diagnostic workflow drives.
All operating-system access goes here.

Usage:
    from commands import adapters, netprobe, dialer, routes

    # Adapter control
    provider = adapters.LinuxAdapterProvider()
    result = provider.list_adapters()
    result = provider.set_adapter_enabled("wlan0", False)

    # Probes
    probe = netprobe.LinuxNetProbe()
    result = probe.ping("8.8.8.8", count=4)
    result = probe.resolve_dns("google.com")
    result = probe.traceroute("8.8.8.8")

    # PPPoE dialing (NetworkManager)
    nm = dialer.NmcliDialer()
    result = nm.dial("PPPoE", "user@isp", password)

    # Addresses and routes
    table = routes.LinuxRouteTable()
    result = table.get_default_routes()
"""

from .base import CommandResult, CommandError, ResultStatus, run_tool
from . import adapters
from . import netprobe
from . import dialer
from . import routes

__all__ = [
    'adapters',
    'netprobe',
    'dialer',
    'routes',
    'CommandResult',
    'CommandError',
    'ResultStatus',
    'run_tool',
]
