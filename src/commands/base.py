"""
Base classes for the commands layer.

CommandResult provides a consistent return type across all OS wrappers.
Wrappers never raise for OS failures; they return a CommandResult whose
status tells the caller what kind of failure happened.
"""

import subprocess
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum


class ResultStatus(Enum):
    """Command execution status."""
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    NOT_AVAILABLE = "not_available"
    TIMEOUT = "timeout"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"


@dataclass
class CommandResult:
    """
    Unified result type for all commands.

    Attributes:
        success: Whether the command succeeded
        status: Detailed status enum
        message: Human-readable message
        data: Command-specific result data
        error: Error message if failed
        raw_output: Raw command output (for debugging)
    """
    success: bool
    status: ResultStatus = ResultStatus.SUCCESS
    message: str = ""
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    raw_output: Optional[str] = None

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, message: str = "Success", data: Dict[str, Any] = None, raw: str = None) -> 'CommandResult':
        """Create a successful result."""
        return cls(
            success=True,
            status=ResultStatus.SUCCESS,
            message=message,
            data=data or {},
            raw_output=raw
        )

    @classmethod
    def fail(cls, message: str, error: str = None, raw: str = None, data: Dict[str, Any] = None,
             status: ResultStatus = ResultStatus.ERROR) -> 'CommandResult':
        """Create a failed result."""
        return cls(
            success=False,
            status=status,
            message=message,
            error=error or message,
            data=data or {},
            raw_output=raw
        )

    @classmethod
    def warn(cls, message: str, data: Dict[str, Any] = None) -> 'CommandResult':
        """Create a warning result (partial success)."""
        return cls(
            success=True,
            status=ResultStatus.WARNING,
            message=message,
            data=data or {}
        )

    @classmethod
    def not_available(cls, message: str, fix_hint: str = "") -> 'CommandResult':
        """Create a not-available result (tool missing)."""
        return cls(
            success=False,
            status=ResultStatus.NOT_AVAILABLE,
            message=message,
            error=fix_hint or message,
            data={'fix_hint': fix_hint}
        )

    @classmethod
    def timeout(cls, message: str, data: Dict[str, Any] = None) -> 'CommandResult':
        """Create a timed-out result."""
        return cls(
            success=False,
            status=ResultStatus.TIMEOUT,
            message=message,
            error=message,
            data=data or {}
        )


class CommandError(Exception):
    """Exception raised when a command wrapper is misused."""

    def __init__(self, message: str, result: CommandResult = None):
        super().__init__(message)
        self.result = result or CommandResult.fail(message)


def run_tool(args: List[str], timeout: float = 10) -> CommandResult:
    """
    Run an external tool and map OS failures onto a CommandResult.

    The returned result carries stdout in raw_output and the exit code in
    data['returncode']. Non-zero exit codes are reported as failures.

    Raises:
        CommandError: if args is empty
    """
    if not args:
        raise CommandError("run_tool needs a command to run")
    try:
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            timeout=timeout
        )
    except subprocess.TimeoutExpired:
        return CommandResult.timeout(f"{args[0]} timed out after {timeout}s")
    except FileNotFoundError:
        return CommandResult.not_available(f"{args[0]} command not available",
                                           fix_hint=f"Install {args[0]}")
    except PermissionError as e:
        return CommandResult.fail(f"Permission denied running {args[0]}", error=str(e),
                                  status=ResultStatus.PERMISSION_DENIED)
    except OSError as e:
        return CommandResult.fail(f"{args[0]} failed: {e}")

    stderr = (result.stderr or '').strip()
    data = {'returncode': result.returncode, 'stderr': stderr}
    if result.returncode == 0:
        return CommandResult.ok(f"{args[0]} completed", data=data, raw=result.stdout)

    status = ResultStatus.ERROR
    lowered = stderr.lower()
    if 'operation not permitted' in lowered or 'permission denied' in lowered:
        status = ResultStatus.PERMISSION_DENIED
    elif 'cannot find device' in lowered or 'does not exist' in lowered or 'unknown connection' in lowered:
        status = ResultStatus.NOT_FOUND
    return CommandResult.fail(
        f"{args[0]} exited with code {result.returncode}",
        error=stderr or None,
        raw=result.stdout,
        data=data,
        status=status
    )
