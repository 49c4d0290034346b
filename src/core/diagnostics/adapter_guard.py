"""
Adapter Toggle Guard

Disables a set of adapters (normally the Wi-Fi radios that would otherwise
steal the default route during a wired/PPP test), remembers exactly which
ones it changed, and re-enables them afterwards.

The set of adapters this run owes restoration is persisted to a JSON record
before disable_all returns, so a crash between disable and restore leaves a
discoverable record. sweep_orphans() restores any such record on the next
start.

Usage:
    guard = AdapterToggleGuard(provider)
    guard.sweep_orphans()
    with guard.disabled(wifi_adapters) as names:
        run_checks()
    # every adapter in names is enabled again here
"""

import json
import logging
import os
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from commands.base import CommandResult, ResultStatus
from utils.paths import PppoeDiagPaths

from .errors import ResourceGuardFailure
from .models import AdapterInfo, GuardState

logger = logging.getLogger(__name__)

RECORD_FILENAME = 'adapter_toggle.json'


class AdapterToggleRecord:
    """Persisted set of adapter names a run disabled and still owes restoration."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> List[str]:
        """Names in the record; an unreadable record is treated as empty."""
        try:
            data = json.loads(self.path.read_text())
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            logger.error(f"Adapter toggle record {self.path} is unreadable: {e}")
            return []
        names = data.get('adapters', []) if isinstance(data, dict) else []
        return [n for n in names if isinstance(n, str) and n]

    def save(self, names: Iterable[str]) -> None:
        """Write the record atomically. An empty set removes the file."""
        names = sorted(set(names))
        if not names:
            self.clear()
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        now = datetime.now().isoformat()
        payload = {
            'adapters': names,
            'pid': os.getpid(),
            'created': self._created() or now,
            'updated': now,
        }
        tmp_path = self.path.with_suffix('.tmp')
        tmp_path.write_text(json.dumps(payload, indent=2))
        os.replace(tmp_path, self.path)

    def _created(self) -> Optional[str]:
        try:
            data = json.loads(self.path.read_text())
        except (OSError, ValueError):
            return None
        return data.get('created') if isinstance(data, dict) else None

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    def exists(self) -> bool:
        return self.path.exists()


class AdapterToggleGuard:
    """
    Resource guard around adapter disable/restore.

    State machine: IDLE -> DISABLING -> DISABLED -> RESTORING -> IDLE.
    """

    def __init__(self, provider, record_path: Optional[Path] = None):
        self.provider = provider
        if record_path is None:
            record_path = PppoeDiagPaths.get_state_dir() / RECORD_FILENAME
        self.record = AdapterToggleRecord(record_path)
        self.state = GuardState.IDLE
        self.last_restored: List[str] = []
        self.last_error: Optional[ResourceGuardFailure] = None
        # Adapters disabled by this guard and not yet restored
        self.held: List[str] = []

    def _set_enabled(self, name: str, enabled: bool):
        """Provider call that never raises; an exception becomes a failed result."""
        try:
            return self.provider.set_adapter_enabled(name, enabled)
        except Exception as e:
            action = "enable" if enabled else "disable"
            logger.error(f"Adapter provider raised trying to {action} {name}: {e}")
            return CommandResult.fail(f"{type(e).__name__}: {e}", error=str(e))

    def disable_all(self, candidates: Optional[Iterable[AdapterInfo]]) -> List[str]:
        """
        Disable every candidate whose status is Up.

        Adapters that are already inactive are left alone and not recorded.
        Each successful disable is persisted, and added to self.held, before
        moving on. Individual failures are logged and skipped.

        Returns:
            Names of the adapters this call disabled (always a list)
        """
        self.state = GuardState.DISABLING
        owed = set(self.record.load())
        disabled: List[str] = []

        for adapter in candidates or []:
            if not isinstance(adapter, AdapterInfo):
                logger.warning(f"Skipping malformed adapter entry: {adapter!r}")
                continue
            if not adapter.is_up:
                logger.debug(f"Adapter {adapter.name} is {adapter.status}, leaving it alone")
                continue
            result = self._set_enabled(adapter.name, False)
            if not result:
                logger.warning(f"Could not disable adapter {adapter.name}: {result.message}")
                continue
            disabled.append(adapter.name)
            if adapter.name not in self.held:
                self.held.append(adapter.name)
            owed.add(adapter.name)
            try:
                self.record.save(owed)
            except OSError as e:
                logger.error(f"Could not persist adapter toggle record {self.record.path}: {e}")
            logger.info(f"Disabled adapter {adapter.name}")

        self.state = GuardState.DISABLED if disabled else GuardState.IDLE
        return disabled

    def restore_all(self, names: Optional[Iterable[str]]) -> bool:
        """
        Re-enable every adapter in names.

        An adapter that no longer exists counts as restored. Calling this with
        None, an empty set, or twice in a row is a no-op.

        Returns:
            False if a present adapter could not be re-enabled; the record then
            keeps that name for the next sweep.
        """
        names = [n for n in (names or []) if n]
        if not names:
            self.state = GuardState.IDLE
            return True

        self.state = GuardState.RESTORING
        try:
            present = {a.name for a in (self.provider.list_adapters() or [])}
        except Exception as e:
            logger.error(f"Could not list adapters before restoring: {e}")
            present = set()
        failed: List[str] = []
        self.last_restored = []

        for name in names:
            result = self._set_enabled(name, True)
            if result:
                logger.info(f"Re-enabled adapter {name}")
                self.last_restored.append(name)
            elif result.status is ResultStatus.NOT_FOUND or (present and name not in present):
                logger.info(f"Adapter {name} no longer exists, nothing to restore")
            else:
                logger.error(f"Could not re-enable adapter {name}: {result.message}")
                failed.append(name)
        self.held = [n for n in self.held if n not in names or n in failed]

        owed = (set(self.record.load()) - set(names)) | set(failed)
        try:
            self.record.save(owed)
        except OSError as e:
            logger.error(f"Could not update adapter toggle record {self.record.path}: {e}")

        self.state = GuardState.IDLE
        self.last_error = None
        if failed:
            self.last_error = ResourceGuardFailure(
                f"Adapter(s) still disabled: {', '.join(failed)}; "
                f"they will be retried on the next run",
                adapters=failed,
            )
            logger.error(str(self.last_error))
            return False
        return True

    def sweep_orphans(self) -> int:
        """
        Restore adapters left disabled by a crashed previous run.

        Returns:
            Number of adapters re-enabled
        """
        orphans = self.record.load()
        if not orphans:
            if self.record.exists():
                self.record.clear()
            return 0

        logger.warning(f"Found adapters left disabled by a previous run: {', '.join(orphans)}")
        self.restore_all(orphans)
        return len(self.last_restored)

    @contextmanager
    def disabled(self, candidates: Optional[Iterable[AdapterInfo]]) -> Iterator[List[str]]:
        """Disable candidates for the duration of the block; always restore."""
        try:
            yield self.disable_all(candidates)
        finally:
            self.restore_all(list(self.held))
