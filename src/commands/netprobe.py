"""
Network Probe Commands

NetProbe implementation using the system ping/traceroute tools and the
resolver. Every operation carries a timeout; a timeout is reported as a
failed result, never as a hang or an exception.
"""

import logging
import re
import socket
from typing import List, Optional

from core.diagnostics.models import PingResult

from .base import CommandResult, ResultStatus, run_tool

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r'time[=<]\s*([\d.]+)\s*ms')
_STATS_RE = re.compile(r'(\d+)\s+packets transmitted,\s+(\d+)\s+(?:packets )?received')
_HOP_RE = re.compile(r'^\s*(\d+)\s+(.*)$')
_HOP_ADDR_RE = re.compile(r'\(?(\d{1,3}(?:\.\d{1,3}){3})\)?')
_HOP_RTT_RE = re.compile(r'([\d.]+)\s*ms')


def parse_ping_output(target: str, output: str, count: int) -> PingResult:
    """Parse iputils ping output into a PingResult."""
    latencies = [float(m) for m in _TIME_RE.findall(output or '')]
    sent, received = count, len(latencies)
    stats = _STATS_RE.search(output or '')
    if stats:
        sent, received = int(stats.group(1)), int(stats.group(2))
    return PingResult(
        target=target,
        success=received > 0,
        sent=sent,
        received=received,
        latencies_ms=latencies,
        message=f"{received}/{sent} replies from {target}",
    )


def parse_traceroute_output(output: str) -> List[dict]:
    """
    Parse traceroute -n output into hop dicts.

    Each hop: {'hop': int, 'address': str or None, 'rtt_ms': [float, ...]}.
    A hop of '* * *' has address None and an empty rtt list.
    """
    hops = []
    for line in (output or '').splitlines():
        match = _HOP_RE.match(line)
        if not match:
            continue
        rest = match.group(2)
        addr = _HOP_ADDR_RE.search(rest)
        hops.append({
            'hop': int(match.group(1)),
            'address': addr.group(1) if addr else None,
            'rtt_ms': [float(v) for v in _HOP_RTT_RE.findall(rest)],
        })
    return hops


class LinuxNetProbe:
    """Ping, DNS and traceroute probes."""

    def ping(self, target: str, count: int = 4, timeout: int = 2,
             interface: Optional[str] = None) -> PingResult:
        """
        Ping target count times.

        Args:
            target: Hostname or IP
            count: Echo requests to send
            timeout: Per-reply timeout in seconds
            interface: Optional source interface (-I)
        """
        args = ['ping', '-n', '-c', str(count), '-W', str(timeout)]
        if interface:
            args += ['-I', interface]
        args.append(target)

        # Overall limit: one timeout per packet plus the 1s send interval
        result = run_tool(args, timeout=count * (timeout + 1) + 2)
        if result.raw_output:
            return parse_ping_output(target, result.raw_output, count)
        if result.status is ResultStatus.TIMEOUT:
            return PingResult(target=target, success=False, sent=count,
                              message=f"Ping to {target} timed out", timed_out=True)
        return PingResult(target=target, success=False, sent=count,
                          message=result.error or result.message)

    def resolve_dns(self, name: str, timeout: float = 5) -> CommandResult:
        """Resolve name to IPv4 addresses with getent, falling back to the resolver."""
        result = run_tool(['getent', 'ahostsv4', name], timeout=timeout)
        if result:
            addresses = []
            for line in (result.raw_output or '').splitlines():
                parts = line.split()
                if parts and parts[0] not in addresses:
                    addresses.append(parts[0])
            if addresses:
                return CommandResult.ok(
                    f"{name} -> {addresses[0]}",
                    data={'hostname': name, 'addresses': addresses, 'resolved': True}
                )
        if result.status is ResultStatus.TIMEOUT:
            return CommandResult.timeout(f"DNS lookup for {name} timed out",
                                         data={'hostname': name, 'addresses': [], 'resolved': False})
        if result.status is not ResultStatus.NOT_AVAILABLE:
            return CommandResult.fail(f"DNS resolution failed for {name}",
                                      data={'hostname': name, 'addresses': [], 'resolved': False})

        try:
            ip = socket.gethostbyname(name)
            return CommandResult.ok(
                f"{name} -> {ip}",
                data={'hostname': name, 'addresses': [ip], 'resolved': True}
            )
        except socket.gaierror as e:
            return CommandResult.fail(
                f"DNS resolution failed for {name}",
                error=str(e),
                data={'hostname': name, 'addresses': [], 'resolved': False}
            )

    def traceroute(self, target: str, max_hops: int = 15, timeout: float = 60) -> CommandResult:
        """Trace the route to target. data['hops'] is always a list."""
        result = run_tool(['traceroute', '-n', '-m', str(max_hops), '-w', '2', '-q', '1', target],
                          timeout=timeout)
        hops = parse_traceroute_output(result.raw_output or '')
        if not result and not hops:
            return CommandResult.fail(
                f"Traceroute to {target} failed: {result.message}",
                status=result.status,
                data={'target': target, 'hops': []}
            )
        reached = any(h['address'] == target for h in hops)
        return CommandResult.ok(
            f"{len(hops)} hop(s) to {target}",
            data={'target': target, 'hops': hops, 'reached': reached}
        )

    def tcp_connect(self, host: str, port: int = 443, timeout: float = 3.0) -> CommandResult:
        """Quick reachability check: can a TCP connection be opened?"""
        try:
            sock = socket.create_connection((host, port), timeout=timeout)
            sock.close()
            return CommandResult.ok(f"{host}:{port} reachable", data={'host': host, 'port': port})
        except socket.timeout:
            return CommandResult.timeout(f"{host}:{port} timed out", data={'host': host, 'port': port})
        except OSError as e:
            return CommandResult.fail(f"{host}:{port} unreachable", error=str(e),
                                      data={'host': host, 'port': port})
