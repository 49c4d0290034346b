"""
Diagnostic error taxonomy.

Only CallerContractViolation is allowed to propagate out of a workflow
call. Every other class is caught by the engine and turned into a ledger
entry or a log line.
"""


class DiagnosticError(Exception):
    """Base class for engine errors."""


class InvalidRecord(DiagnosticError):
    """A health record could not be added (blank label, unknown status)."""


class ProbeFailure(DiagnosticError):
    """An expected network probe failure; becomes a WARN/FAIL entry."""


class StageShapeViolation(DiagnosticError):
    """A stage returned an outcome of the wrong shape."""

    def __init__(self, stage: str, message: str):
        super().__init__(f"{stage}: {message}")
        self.stage = stage


class NoCredentials(DiagnosticError):
    """Every credential source was exhausted."""


class ResourceGuardFailure(DiagnosticError):
    """Adapter restoration could not be confirmed."""

    def __init__(self, message: str, adapters=None):
        super().__init__(message)
        self.adapters = list(adapters or [])


class CallerContractViolation(DiagnosticError):
    """A caller-supplied callback failed (e.g. the write_log callback raised)."""
