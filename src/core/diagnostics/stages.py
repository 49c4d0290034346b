"""
Check Pipeline Stages

Each stage is a plain function with the contract

    stage(ledger, ctx, *prior_outputs) -> StageOutcome(ledger, output)

Stages add records to the ledger they are given and return a typed output
for the stages after them. They pattern-match on the result objects the
capabilities return instead of catching OS exceptions; a stage that does
raise is contained by the WorkflowDriver.

Ranks:
    1       basic system facts
    3-4     adapter selection and link state
    6-7     credentials and dial (full)
    8-9     PPP interface, address, default route
    10      DNS, ping, reachability
    13-14   loss/jitter/multi-destination, traceroute (full)
    15      stability sampling (full, opt-in)
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from commands.base import ResultStatus
from utils.system import (
    REQUIRED_TOOLS, OPTIONAL_TOOLS,
    check_root, find_missing_tools, get_system_info, is_service_running,
)
from utils.paths import SystemPaths

from .credentials import CredentialResolver
from .errors import CallerContractViolation
from .ledger import HealthLedger
from .models import (
    AdapterInfo, AdapterStatus, CheckStatus, ConnectResult, InterfaceInfo,
    MediaType, PingResult, PppDiscovery, WorkflowOptions,
)

logger = logging.getLogger(__name__)

# Display ranks
RANK_SYSTEM = 1
RANK_WIFI = 2
RANK_ADAPTER = 3
RANK_LINK = 4
RANK_CREDENTIALS = 6
RANK_DIAL = 7
RANK_PPP_INTERFACE = 8
RANK_ROUTE = 9
RANK_CONNECTIVITY = 10
RANK_ADVANCED = 13
RANK_TRACEROUTE = 14
RANK_STABILITY = 15
RANK_RESTORE = 16

# Advanced connectivity thresholds
LOSS_WARN_PCT = 0.0
LOSS_FAIL_PCT = 10.0
JITTER_WARN_MS = 30.0
JITTER_FAIL_MS = 100.0
ADVANCED_PING_COUNT = 10
MAX_PROBE_WORKERS = 4

NETWORK_MANAGER = 'NetworkManager'


@dataclass
class StageOutcome:
    """What every stage returns: the ledger plus its typed output (or None)."""
    ledger: HealthLedger
    output: Any = None


@dataclass
class StageContext:
    """Capabilities and options shared by every stage of one run."""
    options: WorkflowOptions
    adapters: Any
    probe: Any
    dialer: Any
    routes: Any
    resolver: CredentialResolver
    full: bool = False
    sleep: Callable[[float], None] = time.sleep
    progress: List[str] = field(default_factory=list)

    def log(self, message: str) -> None:
        """
        Log a progress line and forward it to the caller's write_log.

        Raises:
            CallerContractViolation: if write_log raises
        """
        logger.info(message)
        self.progress.append(message)
        write_log = self.options.write_log
        if write_log is None:
            return
        try:
            write_log(message)
        except Exception as e:
            raise CallerContractViolation(f"write_log callback raised: {e}") from e


def _ping_detail(result: PingResult) -> str:
    if result.timed_out:
        return result.message or f"Ping to {result.target} timed out"
    detail = f"{result.received}/{result.sent} replies"
    if result.avg_ms is not None:
        detail += f", avg {result.avg_ms} ms"
    return detail


# === Stage 1: basic system ===

def check_basic_system(ledger: HealthLedger, ctx: StageContext) -> StageOutcome:
    ctx.log("Checking basic system...")
    info = get_system_info()
    os_detail = (f"{info['os']} {info['os_version']} "
                 f"(kernel {info['kernel']}, {info['arch']}, Python {info['python']})")
    if info['platform'] == 'Linux':
        ledger.add("Operating system", CheckStatus.OK, os_detail, RANK_SYSTEM)
    else:
        ledger.add("Operating system", CheckStatus.WARN,
                   f"{info['platform']} is not supported; results may be incomplete", RANK_SYSTEM)

    if check_root():
        ledger.add("Privileges", CheckStatus.OK, "Running as root", RANK_SYSTEM)
    else:
        ledger.add("Privileges", CheckStatus.WARN,
                   "Not running as root; adapter toggling and route changes may fail", RANK_SYSTEM)

    missing = find_missing_tools(REQUIRED_TOOLS)
    if missing:
        ledger.add("Required tools", CheckStatus.FAIL, f"Missing: {', '.join(missing)}", RANK_SYSTEM)
    else:
        ledger.add("Required tools", CheckStatus.OK, ', '.join(REQUIRED_TOOLS), RANK_SYSTEM)

    missing_optional = find_missing_tools(OPTIONAL_TOOLS)
    if missing_optional:
        ledger.add("Optional tools", CheckStatus.WARN,
                   f"Missing: {', '.join(missing_optional)}", RANK_SYSTEM)

    if is_service_running(NETWORK_MANAGER):
        ledger.add("NetworkManager", CheckStatus.OK, "Service is active", RANK_SYSTEM)
    else:
        ledger.add("NetworkManager", CheckStatus.WARN,
                   "Service is not active; dialing and saved credentials are unavailable",
                   RANK_SYSTEM)
    return StageOutcome(ledger, None)


# === Stage 2: adapter selection and link state ===

def select_adapter(adapters: List[AdapterInfo], target: Optional[str]) -> Optional[AdapterInfo]:
    """
    Pick the adapter the PPPoE session should run over.

    An explicit target wins. Otherwise the first wired adapter that is Up,
    then the first wired adapter in any state.
    """
    if target:
        return next((a for a in adapters if a.name == target), None)
    wired = [a for a in adapters if a.is_wired]
    return next((a for a in wired if a.is_up), wired[0] if wired else None)


def check_adapter(ledger: HealthLedger, ctx: StageContext) -> StageOutcome:
    ctx.log("Checking network adapters...")
    adapters = list(ctx.adapters.list_adapters() or [])
    target = ctx.options.target_adapter
    adapter = select_adapter(adapters, target)

    if adapter is None:
        if target:
            detail = f"Adapter '{target}' not found"
        elif adapters:
            detail = f"No wired Ethernet adapter among {len(adapters)} adapter(s)"
        else:
            detail = "No network adapters found"
        ledger.add("Network adapter", CheckStatus.FAIL, detail, RANK_ADAPTER)
        return StageOutcome(ledger, None)

    mac = f", MAC {adapter.mac}" if adapter.mac else ""
    ledger.add("Network adapter", CheckStatus.OK,
               f"{adapter.name} ({adapter.media_type}{mac})", RANK_ADAPTER)
    ctx.log(f"Selected adapter {adapter.name}")

    if adapter.status == AdapterStatus.UP:
        ledger.add("Link state", CheckStatus.OK, f"{adapter.name} link is up", RANK_LINK)
    elif adapter.status == AdapterStatus.DISABLED:
        ledger.add("Link state", CheckStatus.FAIL,
                   f"{adapter.name} is administratively disabled", RANK_LINK)
    else:
        ledger.add("Link state", CheckStatus.FAIL,
                   f"{adapter.name} has no carrier; check the cable and modem", RANK_LINK)
    return StageOutcome(ledger, adapter)


# === Stage 3: credentials and dial (full) ===

def check_credentials_and_dial(ledger: HealthLedger, ctx: StageContext,
                               adapter: Optional[AdapterInfo]) -> StageOutcome:
    opts = ctx.options
    if not isinstance(adapter, AdapterInfo):
        ledger.add("PPPoE connection", CheckStatus.FAIL,
                   "Skipped: no usable wired adapter", RANK_DIAL)
        return StageOutcome(ledger, None)

    if not ctx.dialer.profile_exists(opts.pppoe_name):
        ledger.add("PPPoE connection", CheckStatus.FAIL,
                   f"No NetworkManager connection named '{opts.pppoe_name}'", RANK_DIAL)
        return StageOutcome(ledger, None)

    ctx.log("Resolving credentials...")
    sources = ctx.resolver.candidates(opts.user_name, opts.password,
                                      opts.credentials_file_path, opts.pppoe_name)
    if not sources:
        ledger.add("Credentials", CheckStatus.FAIL,
                   "No credentials found (checked parameters, credentials file, saved store)",
                   RANK_CREDENTIALS)
        return StageOutcome(ledger, None)
    ledger.add("Credentials", CheckStatus.OK,
               f"Available sources: {', '.join(s.describe() for s in sources)}", RANK_CREDENTIALS)

    ctx.log(f"Dialing '{opts.pppoe_name}' over {adapter.name}...")
    connection = ctx.resolver.connect_with_fallback(ctx.dialer, opts.pppoe_name, sources=sources)

    if connection.success:
        ledger.add("PPPoE connection", CheckStatus.OK,
                   f"{connection.message} (attempt {connection.attempts})", RANK_DIAL)
    else:
        ledger.add("PPPoE connection", CheckStatus.FAIL,
                   f"{connection.message} (exit code {connection.exit_code})", RANK_DIAL)
    ctx.log(connection.message)
    return StageOutcome(ledger, connection)


# === Stage 4: PPP interface, address, default route ===

def _find_ppp_interface(adapters: List[AdapterInfo]) -> Optional[AdapterInfo]:
    ppp = [a for a in adapters if a.media_type == MediaType.PPP]
    return next((a for a in ppp if a.is_up), ppp[0] if ppp else None)


def _owns_default_route(routes: list, interface: str) -> bool:
    return bool(routes) and routes[0].interface == interface


def check_ppp_interface(ledger: HealthLedger, ctx: StageContext,
                        adapter: Optional[AdapterInfo],
                        connection: Optional[ConnectResult]) -> StageOutcome:
    ctx.log("Looking for the PPP interface...")
    discovery = PppDiscovery()
    ppp = _find_ppp_interface(list(ctx.adapters.list_adapters() or []))

    if ppp is None or not ppp.is_up:
        dialed = isinstance(connection, ConnectResult) and connection.success
        status = CheckStatus.FAIL if (ctx.full or dialed) else CheckStatus.WARN
        detail = (f"{ppp.name} exists but is {ppp.status}" if ppp
                  else "No PPP interface; the PPPoE connection is not established")
        ledger.add("PPP interface", status, detail, RANK_PPP_INTERFACE)
        return StageOutcome(ledger, discovery)

    discovery.interface = InterfaceInfo(name=ppp.name, status=ppp.status, index=ppp.index)
    ledger.add("PPP interface", CheckStatus.OK, f"{ppp.name} is up", RANK_PPP_INTERFACE)

    address = ctx.routes.get_ipv4_address(ppp.name)
    if address is None:
        ledger.add("PPP address", CheckStatus.FAIL,
                   f"No IPv4 address assigned to {ppp.name}", RANK_PPP_INTERFACE)
    else:
        discovery.address = address
        ledger.add("PPP address", CheckStatus.OK,
                   f"{address.address}/{address.prefix_length}", RANK_PPP_INTERFACE)

    routes = list(ctx.routes.get_default_routes() or [])
    if not routes:
        ledger.add("Default route", CheckStatus.FAIL, "No default route", RANK_ROUTE)
        return StageOutcome(ledger, discovery)

    if _owns_default_route(routes, ppp.name):
        discovery.owns_default_route = True
        ledger.add("Default route", CheckStatus.OK,
                   f"Default route via {ppp.name} (metric {routes[0].metric})", RANK_ROUTE)
        return StageOutcome(ledger, discovery)

    owner = routes[0]
    if not ctx.full:
        ledger.add("Default route", CheckStatus.WARN,
                   f"Default route uses {owner.interface} (metric {owner.metric}), not {ppp.name}",
                   RANK_ROUTE)
        return StageOutcome(ledger, discovery)

    metric = ctx.options.ppp_route_metric
    ctx.log(f"Setting default route metric on {ppp.name} to {metric}...")
    change = ctx.routes.set_route_metric(ppp.name, metric)
    if change:
        discovery.owns_default_route = _owns_default_route(
            list(ctx.routes.get_default_routes() or []), ppp.name)
    if change and discovery.owns_default_route:
        ledger.add("Default route", CheckStatus.OK,
                   f"Default route moved to {ppp.name} (metric {metric})", RANK_ROUTE)
    elif change.status is ResultStatus.PERMISSION_DENIED:
        ledger.add("Default route", CheckStatus.WARN,
                   f"Default route uses {owner.interface}; changing the metric needs root",
                   RANK_ROUTE)
    else:
        ledger.add("Default route", CheckStatus.WARN,
                   f"Default route still uses {owner.interface}: {change.message}", RANK_ROUTE)
    return StageOutcome(ledger, discovery)


# === Stage 5: connectivity ===

def check_connectivity(ledger: HealthLedger, ctx: StageContext,
                       adapter: Optional[AdapterInfo],
                       ppp: Optional[PppDiscovery]) -> StageOutcome:
    opts = ctx.options
    ctx.log("Checking connectivity...")

    names = list(opts.dns_names or [])
    if names:
        resolved = [n for n in names if ctx.probe.resolve_dns(n)]
        if len(resolved) == len(names):
            ledger.add("DNS resolution", CheckStatus.OK,
                       f"Resolved {', '.join(resolved)}", RANK_CONNECTIVITY)
        elif resolved:
            ledger.add("DNS resolution", CheckStatus.WARN,
                       f"Resolved {len(resolved)}/{len(names)} names", RANK_CONNECTIVITY)
        else:
            servers = SystemPaths.get_nameservers()
            via = f" via {', '.join(servers)}" if servers else "; no nameservers configured"
            ledger.add("DNS resolution", CheckStatus.FAIL,
                       f"Could not resolve {', '.join(names)}{via}", RANK_CONNECTIVITY)

    targets = list(opts.ping_targets or [])
    if not targets:
        ledger.add("Ping", CheckStatus.WARN, "No ping targets configured", RANK_CONNECTIVITY)
        return StageOutcome(ledger, None)

    target = targets[0]
    interface = ppp.interface.name if isinstance(ppp, PppDiscovery) and ppp.interface else None
    result = ctx.probe.ping(target, count=4, timeout=opts.ping_timeout, interface=interface)
    if result.success and result.received == result.sent:
        ledger.add(f"Ping {target}", CheckStatus.OK, _ping_detail(result), RANK_CONNECTIVITY)
    elif result.success:
        ledger.add(f"Ping {target}", CheckStatus.WARN, _ping_detail(result), RANK_CONNECTIVITY)
    else:
        ledger.add(f"Ping {target}", CheckStatus.FAIL, _ping_detail(result), RANK_CONNECTIVITY)

    reach = ctx.probe.tcp_connect(target, 53, timeout=3.0)
    if reach:
        ledger.add("Internet reachability", CheckStatus.OK, reach.message, RANK_CONNECTIVITY)
    else:
        ledger.add("Internet reachability", CheckStatus.FAIL, reach.message, RANK_CONNECTIVITY)
    return StageOutcome(ledger, None)


# === Stage 6: advanced connectivity and traceroute (full) ===

def _ping_all(ctx: StageContext, targets: List[str], interface: Optional[str]) -> List[PingResult]:
    """Ping every target concurrently; results come back in target order."""
    workers = max(1, min(MAX_PROBE_WORKERS, len(targets)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [
            executor.submit(ctx.probe.ping, target, count=ADVANCED_PING_COUNT,
                            timeout=ctx.options.ping_timeout, interface=interface)
            for target in targets
        ]
        results = []
        for target, future in zip(targets, futures):
            try:
                results.append(future.result())
            except Exception as e:
                logger.warning(f"Ping probe for {target} raised: {e}")
                results.append(PingResult(target=target, success=False,
                                          sent=ADVANCED_PING_COUNT, message=str(e)))
    return results


def check_advanced_connectivity(ledger: HealthLedger, ctx: StageContext,
                                ppp: Optional[PppDiscovery]) -> StageOutcome:
    opts = ctx.options
    targets = list(opts.ping_targets or [])
    interface = ppp.interface.name if isinstance(ppp, PppDiscovery) and ppp.interface else None

    if targets:
        ctx.log(f"Probing {len(targets)} destination(s)...")
        results = _ping_all(ctx, targets, interface)

        # Ledger writes only after every probe has completed
        sent = sum(r.sent for r in results)
        received = sum(r.received for r in results)
        loss = 100.0 if sent <= 0 else round((sent - received) / sent * 100, 1)
        if loss <= LOSS_WARN_PCT:
            ledger.add("Packet loss", CheckStatus.OK, f"0% over {sent} packets", RANK_ADVANCED)
        elif loss <= LOSS_FAIL_PCT:
            ledger.add("Packet loss", CheckStatus.WARN, f"{loss}% over {sent} packets", RANK_ADVANCED)
        else:
            ledger.add("Packet loss", CheckStatus.FAIL, f"{loss}% over {sent} packets", RANK_ADVANCED)

        jitters = [r.jitter_ms for r in results if r.jitter_ms is not None]
        if not jitters:
            ledger.add("Jitter", CheckStatus.WARN, "Not enough replies to measure jitter",
                       RANK_ADVANCED)
        else:
            jitter = max(jitters)
            if jitter <= JITTER_WARN_MS:
                status = CheckStatus.OK
            elif jitter <= JITTER_FAIL_MS:
                status = CheckStatus.WARN
            else:
                status = CheckStatus.FAIL
            ledger.add("Jitter", status, f"{jitter} ms (worst destination)", RANK_ADVANCED)

        reachable = [r.target for r in results if r.success]
        if len(reachable) == len(targets):
            status = CheckStatus.OK
        elif reachable:
            status = CheckStatus.WARN
        else:
            status = CheckStatus.FAIL
        ledger.add("Multi-destination routing", status,
                   f"{len(reachable)}/{len(targets)} reachable"
                   + (f": {', '.join(reachable)}" if reachable else ""),
                   RANK_ADVANCED)

    target = opts.traceroute_target
    if target:
        ctx.log(f"Tracing route to {target}...")
        trace = ctx.probe.traceroute(target)
        hops = list((trace.data or {}).get('hops') or [])
        if trace.status is ResultStatus.NOT_AVAILABLE:
            ledger.add("Traceroute", CheckStatus.WARN, "traceroute is not installed", RANK_TRACEROUTE)
        elif not trace:
            ledger.add("Traceroute", CheckStatus.FAIL, trace.message, RANK_TRACEROUTE)
        elif (trace.data or {}).get('reached'):
            ledger.add("Traceroute", CheckStatus.OK,
                       f"Reached {target} in {len(hops)} hop(s)", RANK_TRACEROUTE)
        else:
            last = next((h['address'] for h in reversed(hops) if h.get('address')), None)
            ledger.add("Traceroute", CheckStatus.WARN,
                       f"{target} not reached after {len(hops)} hop(s)"
                       + (f"; last responding hop {last}" if last else ""),
                       RANK_TRACEROUTE)
    return StageOutcome(ledger, None)


# === Stage 7: stability (full, opt-in) ===

def check_stability(ledger: HealthLedger, ctx: StageContext,
                    ppp: Optional[PppDiscovery]) -> StageOutcome:
    opts = ctx.options
    targets = list(opts.ping_targets or [])
    if not targets or opts.stability_samples <= 0:
        ledger.add("Connection stability", CheckStatus.WARN, "No samples configured", RANK_STABILITY)
        return StageOutcome(ledger, None)

    target = targets[0]
    interface = ppp.interface.name if isinstance(ppp, PppDiscovery) and ppp.interface else None
    ctx.log(f"Sampling {target} {opts.stability_samples} times, "
            f"every {opts.stability_interval}s...")

    latencies = []
    answered = 0
    for i in range(opts.stability_samples):
        if i:
            ctx.sleep(opts.stability_interval)
        sample = ctx.probe.ping(target, count=1, timeout=opts.ping_timeout, interface=interface)
        if sample.success:
            answered += 1
            latencies.extend(sample.latencies_ms)

    summary = PingResult(target=target, success=answered > 0, sent=opts.stability_samples,
                         received=answered, latencies_ms=latencies)
    detail = f"{answered}/{opts.stability_samples} samples answered"
    if summary.avg_ms is not None:
        detail += f", avg {summary.avg_ms} ms"
    if summary.jitter_ms is not None:
        detail += f", jitter {summary.jitter_ms} ms"

    if summary.packet_loss == 0:
        ledger.add("Connection stability", CheckStatus.OK, detail, RANK_STABILITY)
    elif summary.packet_loss <= 20:
        ledger.add("Connection stability", CheckStatus.WARN, detail, RANK_STABILITY)
    else:
        ledger.add("Connection stability", CheckStatus.FAIL, detail, RANK_STABILITY)

    if interface:
        still_up = any(a.name == interface and a.is_up
                       for a in (ctx.adapters.list_adapters() or []))
        if still_up:
            ledger.add("PPP session", CheckStatus.OK,
                       f"{interface} stayed up during sampling", RANK_STABILITY)
        else:
            ledger.add("PPP session", CheckStatus.FAIL,
                       f"{interface} dropped during sampling", RANK_STABILITY)
    return StageOutcome(ledger, None)
