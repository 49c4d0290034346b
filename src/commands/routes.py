"""
Route Commands

Address and default-route queries for the PPP discovery stage, plus the
route-metric adjustment the full workflow applies to the PPP interface.
"""

import json
import logging
from typing import List, Optional

from core.diagnostics.models import AddressInfo, RouteInfo

from .base import CommandResult, run_tool

logger = logging.getLogger(__name__)


def parse_ip_addr(output: str, interface: str) -> Optional[AddressInfo]:
    """First IPv4 address from `ip -j -4 addr show dev IFACE` output."""
    try:
        entries = json.loads(output or '[]')
    except ValueError:
        return None
    for entry in entries if isinstance(entries, list) else []:
        for addr in entry.get('addr_info', []) or []:
            if addr.get('family') == 'inet' and addr.get('local'):
                return AddressInfo(
                    address=addr['local'],
                    prefix_length=int(addr.get('prefixlen', 32)),
                    interface=entry.get('ifname', interface),
                )
    return None


def parse_default_routes(output: str) -> List[RouteInfo]:
    """Default routes from `ip -j -4 route show default`, lowest metric first."""
    try:
        entries = json.loads(output or '[]')
    except ValueError:
        return []
    routes = []
    for entry in entries if isinstance(entries, list) else []:
        if not isinstance(entry, dict) or not entry.get('dev'):
            continue
        routes.append(RouteInfo(
            interface=entry['dev'],
            metric=int(entry.get('metric', 0)),
            gateway=entry.get('gateway'),
        ))
    return sorted(routes, key=lambda r: r.metric)


class LinuxRouteTable:
    """IPv4 address and default route access via iproute2."""

    def __init__(self, timeout: float = 10):
        self.timeout = timeout

    def get_ipv4_address(self, interface: str) -> Optional[AddressInfo]:
        result = run_tool(['ip', '-j', '-4', 'addr', 'show', 'dev', interface], timeout=self.timeout)
        if not result:
            logger.debug(f"No address information for {interface}: {result.message}")
            return None
        return parse_ip_addr(result.raw_output, interface)

    def get_default_routes(self) -> List[RouteInfo]:
        result = run_tool(['ip', '-j', '-4', 'route', 'show', 'default'], timeout=self.timeout)
        if not result:
            logger.warning(f"Could not read default routes: {result.message}")
            return []
        return parse_default_routes(result.raw_output)

    def set_route_metric(self, interface: str, metric: int) -> CommandResult:
        """Replace the default route through interface with the given metric."""
        result = run_tool(
            ['ip', 'route', 'replace', 'default', 'dev', interface, 'metric', str(metric)],
            timeout=self.timeout
        )
        if result:
            return CommandResult.ok(f"Default route via {interface} set to metric {metric}",
                                    data={'interface': interface, 'metric': metric})
        return CommandResult.fail(
            f"Could not set route metric on {interface}: {result.error or result.message}",
            status=result.status,
            data={'interface': interface, 'metric': metric}
        )
