"""
Adapter Commands

AdapterProvider implementation on top of iproute2:
- list_adapters: parse `ip -j link show`
- set_adapter_enabled: `ip link set dev NAME up|down`

Status mapping:
    admin down                       -> Disabled
    admin up, carrier present        -> Up
    admin up, no carrier             -> Disconnected
"""

import json
import logging
from typing import List

from core.diagnostics.models import AdapterInfo, AdapterStatus, MediaType
from utils.paths import SystemPaths

from .base import CommandResult, ResultStatus, run_tool

logger = logging.getLogger(__name__)


def _media_type(entry: dict) -> str:
    link_type = entry.get('link_type', '')
    name = entry.get('ifname', '')
    if link_type == 'loopback':
        return MediaType.LOOPBACK
    if link_type == 'ppp' or name.startswith('ppp'):
        return MediaType.PPP
    if link_type == 'ether':
        if SystemPaths.is_wireless(name):
            return MediaType.WIRELESS
        return MediaType.ETHERNET
    return MediaType.OTHER


def _status(entry: dict) -> str:
    flags = entry.get('flags', []) or []
    if 'UP' not in flags:
        return AdapterStatus.DISABLED
    operstate = entry.get('operstate', 'UNKNOWN')
    if operstate == 'UP' or (operstate == 'UNKNOWN' and 'LOWER_UP' in flags):
        return AdapterStatus.UP
    return AdapterStatus.DISCONNECTED


def parse_ip_link(output: str) -> List[AdapterInfo]:
    """Parse `ip -j link show` output into AdapterInfo objects."""
    try:
        entries = json.loads(output or '[]')
    except ValueError as e:
        logger.warning(f"Could not parse ip link output: {e}")
        return []
    if not isinstance(entries, list):
        return []

    adapters = []
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get('ifname'):
            continue
        adapters.append(AdapterInfo(
            name=entry['ifname'],
            status=_status(entry),
            media_type=_media_type(entry),
            mac=entry.get('address'),
            index=entry.get('ifindex'),
        ))
    return adapters


class LinuxAdapterProvider:
    """Adapter enumeration and control via iproute2."""

    def __init__(self, timeout: float = 10):
        self.timeout = timeout

    def list_adapters(self) -> List[AdapterInfo]:
        """All adapters except loopback. Empty list if ip is unavailable."""
        result = run_tool(['ip', '-j', 'link', 'show'], timeout=self.timeout)
        if not result:
            logger.warning(f"Could not list adapters: {result.message}")
            return []
        return [a for a in parse_ip_link(result.raw_output) if a.media_type != MediaType.LOOPBACK]

    def set_adapter_enabled(self, name: str, enabled: bool) -> CommandResult:
        """Bring an adapter administratively up or down."""
        state = 'up' if enabled else 'down'
        result = run_tool(['ip', 'link', 'set', 'dev', name, state], timeout=self.timeout)
        if result:
            return CommandResult.ok(f"{name} set {state}", data={'name': name, 'enabled': enabled})
        if result.status is ResultStatus.NOT_FOUND:
            return CommandResult.fail(f"Adapter {name} not found", status=ResultStatus.NOT_FOUND,
                                      data={'name': name})
        return CommandResult.fail(
            f"Could not set {name} {state}: {result.error or result.message}",
            error=result.error,
            status=result.status,
            data={'name': name}
        )
