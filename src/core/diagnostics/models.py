"""
Diagnostic Data Models

These data structures are shared by the engine, the OS wrappers and the CLI:
- Health records are frozen dataclasses (append-only ledger)
- Every optional field uses None for "absent"
- Every zero-or-more field is a list, never a scalar
- JSON serialization built-in for report export (never carries credentials)
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


# === Status Enums ===

class CheckStatus(Enum):
    """Status of a single diagnostic check, ordered by severity."""
    OK = "ok"         # Check passed
    WARN = "warn"     # Works, but review recommended
    FAIL = "fail"     # Action required

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @classmethod
    def parse(cls, value: Any) -> 'CheckStatus':
        """Accept a CheckStatus or a case-insensitive name/value ("OK", "warn")."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            text = value.strip().lower()
            for status in cls:
                if text in (status.value, status.name.lower()):
                    return status
            if text in ('pass', 'passed', 'success'):
                return cls.OK
            if text in ('warning',):
                return cls.WARN
            if text in ('failed', 'error'):
                return cls.FAIL
        raise ValueError(f"Unknown check status: {value!r}")


_SEVERITY = {
    CheckStatus.OK: 0,
    CheckStatus.WARN: 1,
    CheckStatus.FAIL: 2,
}


class CredentialSourceKind(Enum):
    """Where a username/password pair came from."""
    PARAMETERS = "parameters"
    FILE = "file"
    SAVED_STORE = "saved_store"


class GuardState(Enum):
    """Lifecycle of an AdapterToggleGuard."""
    IDLE = "idle"
    DISABLING = "disabling"
    DISABLED = "disabled"
    RESTORING = "restoring"


class AdapterStatus:
    """Adapter status names, as reported by the adapter provider."""
    UP = "Up"
    DISCONNECTED = "Disconnected"
    DISABLED = "Disabled"


class MediaType:
    """Adapter media types."""
    ETHERNET = "802.3"
    WIRELESS = "802.11"
    PPP = "ppp"
    LOOPBACK = "loopback"
    OTHER = "other"


# === Health ledger records ===

@dataclass(frozen=True)
class HealthRecord:
    """
    One diagnostic outcome.

    Attributes:
        label: Human-readable check name (e.g., "DNS resolution")
        status: OK, WARN or FAIL
        detail: Explanation shown next to the status
        rank: Display ordering key; ties keep insertion order
    """
    label: str
    status: CheckStatus
    detail: str
    rank: int = 0

    @property
    def key(self) -> str:
        """Ledger storage key: zero-padded rank and label."""
        return f"{self.rank:03d}_{self.label}"

    def to_dict(self) -> dict:
        """Serialize for JSON output."""
        return {
            "label": self.label,
            "status": self.status.value,
            "detail": self.detail,
            "rank": self.rank,
        }


@dataclass
class LedgerSummary:
    """Severity rollup of a ledger."""
    overall_status: CheckStatus
    counts: Dict[CheckStatus, int]
    records: List[HealthRecord]

    @property
    def has_failures(self) -> bool:
        return self.counts.get(CheckStatus.FAIL, 0) > 0

    def to_dict(self) -> dict:
        return {
            "overall_status": self.overall_status.value,
            "counts": {status.value: count for status, count in self.counts.items()},
            "records": [r.to_dict() for r in self.records],
        }


# === Network stack records ===

@dataclass
class AdapterInfo:
    """A network adapter as reported by the adapter provider."""
    name: str
    status: str
    media_type: str = MediaType.OTHER
    mac: Optional[str] = None
    index: Optional[int] = None

    @property
    def is_up(self) -> bool:
        return self.status == AdapterStatus.UP

    @property
    def is_wireless(self) -> bool:
        return self.media_type == MediaType.WIRELESS

    @property
    def is_wired(self) -> bool:
        return self.media_type == MediaType.ETHERNET

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "status": self.status,
            "media_type": self.media_type,
            "mac": self.mac,
            "index": self.index,
        }


@dataclass
class InterfaceInfo:
    """The PPP/WAN interface created by a dial connection."""
    name: str
    status: str
    index: Optional[int] = None

    def to_dict(self) -> dict:
        return {"name": self.name, "status": self.status, "index": self.index}


@dataclass
class AddressInfo:
    """An IPv4 address assigned to an interface."""
    address: str
    prefix_length: int
    interface: str

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "prefix_length": self.prefix_length,
            "interface": self.interface,
        }


@dataclass
class RouteInfo:
    """A default route entry."""
    interface: str
    metric: int = 0
    gateway: Optional[str] = None


@dataclass
class PingResult:
    """Result of a ping probe. latencies_ms is always a list."""
    target: str
    success: bool
    sent: int = 0
    received: int = 0
    latencies_ms: List[float] = field(default_factory=list)
    message: str = ""
    timed_out: bool = False

    @property
    def packet_loss(self) -> float:
        """Packet loss in percent (100.0 when nothing was sent)."""
        if self.sent <= 0:
            return 100.0
        return round((self.sent - self.received) / self.sent * 100, 1)

    @property
    def avg_ms(self) -> Optional[float]:
        if not self.latencies_ms:
            return None
        return round(sum(self.latencies_ms) / len(self.latencies_ms), 2)

    @property
    def jitter_ms(self) -> Optional[float]:
        """Mean absolute difference between consecutive samples."""
        if len(self.latencies_ms) < 2:
            return None
        diffs = [abs(b - a) for a, b in zip(self.latencies_ms, self.latencies_ms[1:])]
        return round(sum(diffs) / len(diffs), 2)


@dataclass
class DialResult:
    """Outcome of one WanDialer.dial call. Output never contains the password."""
    success: bool
    exit_code: int
    output: str = ""
    auth_failure: bool = False


# === Credentials ===

@dataclass
class CredentialSource:
    """
    A resolved username/password pair and where it came from.

    The password is excluded from repr and from every serialization.
    """
    source: CredentialSourceKind
    username: str
    password: str = field(repr=False)

    def describe(self, include_username: bool = False) -> str:
        """Human-readable description; never includes the password."""
        if include_username:
            return f"{self.source.value} ({self.username})"
        return self.source.value

    def to_dict(self) -> dict:
        return {"source": self.source.value}


@dataclass
class ConnectResult:
    """Outcome of a dial attempt with credential fallback."""
    success: bool
    source: Optional[CredentialSourceKind] = None
    attempts: int = 0
    exit_code: Optional[int] = None
    message: str = ""
    tried_sources: List[CredentialSourceKind] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "source": self.source.value if self.source else None,
            "attempts": self.attempts,
            "exit_code": self.exit_code,
            "message": self.message,
            "tried_sources": [s.value for s in self.tried_sources],
        }


# === Workflow ===

LogCallback = Callable[[str], None]


@dataclass
class WorkflowOptions:
    """
    Options recognized by run_quick_workflow / run_full_workflow.

    write_log is optional; when absent, progress lines are only logged.
    """
    pppoe_name: str = "PPPoE"
    user_name: str = ""
    password: str = field(default="", repr=False)
    credentials_file_path: str = ""
    target_adapter: Optional[str] = None
    skip_wifi_toggle: bool = False
    write_log: Optional[LogCallback] = None
    ping_targets: List[str] = field(default_factory=lambda: ["8.8.8.8", "1.1.1.1"])
    dns_names: List[str] = field(default_factory=lambda: ["google.com", "cloudflare.com"])
    traceroute_target: str = "8.8.8.8"
    ppp_route_metric: int = 10
    ping_timeout: int = 2
    run_stability_test: bool = False
    stability_samples: int = 10
    stability_interval: float = 3.0
    disconnect_after: bool = False
    state_dir: Optional[str] = None


@dataclass
class PppDiscovery:
    """Output of the PPP interface discovery stage."""
    interface: Optional[InterfaceInfo] = None
    address: Optional[AddressInfo] = None
    owns_default_route: bool = False


@dataclass
class WorkflowResult:
    """
    Complete result of one workflow run.

    Not mutated after it is returned to the caller.
    """
    health: Any  # HealthLedger; typed loosely to avoid an import cycle
    adapter: Optional[AdapterInfo] = None
    ppp_interface: Optional[InterfaceInfo] = None
    ppp_ip: Optional[AddressInfo] = None
    connection_result: Optional[ConnectResult] = None
    disabled_wifi_adapters: List[str] = field(default_factory=list)
    generated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        """Serialize for report export. Credentials are never included."""
        summary = self.health.summarize()
        return {
            "generated_at": self.generated_at.isoformat(),
            "overall_status": summary.overall_status.value,
            "summary": {status.value: count for status, count in summary.counts.items()},
            "health": [r.to_dict() for r in summary.records],
            "adapter": self.adapter.to_dict() if self.adapter else None,
            "ppp_interface": self.ppp_interface.to_dict() if self.ppp_interface else None,
            "ppp_ip": self.ppp_ip.to_dict() if self.ppp_ip else None,
            "connection_result": self.connection_result.to_dict() if self.connection_result else None,
            "disabled_wifi_adapters": list(self.disabled_wifi_adapters),
        }
