"""
PPPoE Diagnostic Orchestration Engine

Health ledger, credential waterfall, adapter toggle guard and the
quick/full workflows the CLI consumes.

Usage:
    from core.diagnostics import WorkflowOptions, run_quick_workflow

    result = run_quick_workflow(WorkflowOptions(pppoe_name="PPPoE"))
    for record in result.health:
        print(record.label, record.status.value)
"""

from .models import (
    CheckStatus,
    CredentialSourceKind,
    HealthRecord,
    LedgerSummary,
    AdapterInfo,
    InterfaceInfo,
    AddressInfo,
    CredentialSource,
    ConnectResult,
    DialResult,
    PingResult,
    WorkflowOptions,
    WorkflowResult,
)
from .errors import (
    DiagnosticError,
    InvalidRecord,
    ProbeFailure,
    StageShapeViolation,
    NoCredentials,
    ResourceGuardFailure,
    CallerContractViolation,
)
from .ledger import HealthLedger, new_ledger, add_health, summarize
from .credentials import CredentialResolver, resolve_credentials
from .adapter_guard import AdapterToggleGuard
from .engine import WorkflowDriver, run_quick_workflow, run_full_workflow

__all__ = [
    'WorkflowDriver',
    'run_quick_workflow',
    'run_full_workflow',
    'HealthLedger',
    'new_ledger',
    'add_health',
    'summarize',
    'CredentialResolver',
    'resolve_credentials',
    'AdapterToggleGuard',
    'CheckStatus',
    'CredentialSourceKind',
    'HealthRecord',
    'LedgerSummary',
    'AdapterInfo',
    'InterfaceInfo',
    'AddressInfo',
    'CredentialSource',
    'ConnectResult',
    'DialResult',
    'PingResult',
    'WorkflowOptions',
    'WorkflowResult',
    'DiagnosticError',
    'InvalidRecord',
    'ProbeFailure',
    'StageShapeViolation',
    'NoCredentials',
    'ResourceGuardFailure',
    'CallerContractViolation',
]
