"""
Tests for the adapter toggle guard.

Run: python3 -m pytest tests/test_adapter_guard.py -v
"""

import json
import os
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from core.diagnostics.adapter_guard import AdapterToggleGuard, AdapterToggleRecord
from core.diagnostics.errors import ResourceGuardFailure
from core.diagnostics.models import AdapterStatus, GuardState
from fakes import FakeAdapterProvider, ethernet, wifi


@pytest.fixture
def record_path(tmp_path):
    return tmp_path / "state" / "adapter_toggle.json"


@pytest.fixture
def provider():
    return FakeAdapterProvider([
        wifi("wlan0"),
        wifi("wlan1"),
        wifi("wlan2", status=AdapterStatus.DISABLED),
        ethernet("eth0"),
    ])


class TestAdapterToggleRecord:
    """Tests for the persisted record."""

    def test_save_and_load(self, record_path):
        """Test names round-trip through the file."""
        record = AdapterToggleRecord(record_path)
        record.save({"wlan1", "wlan0"})
        assert record.load() == ["wlan0", "wlan1"]
        data = json.loads(record_path.read_text())
        assert data['pid'] == os.getpid()

    def test_created_kept_across_saves(self, record_path):
        """Test a later save keeps the original creation time."""
        record = AdapterToggleRecord(record_path)
        record.save(["wlan0"])
        created = json.loads(record_path.read_text())['created']
        record.save(["wlan0", "wlan1"])
        data = json.loads(record_path.read_text())
        assert data['created'] == created
        assert data['adapters'] == ["wlan0", "wlan1"]

    def test_empty_save_clears(self, record_path):
        """Test saving an empty set removes the record."""
        record = AdapterToggleRecord(record_path)
        record.save(["wlan0"])
        record.save([])
        assert not record.exists()

    def test_missing_record(self, record_path):
        """Test a missing record loads as empty."""
        assert AdapterToggleRecord(record_path).load() == []

    def test_corrupt_record(self, record_path):
        """Test an unreadable record loads as empty."""
        record_path.parent.mkdir(parents=True)
        record_path.write_text("{not json")
        assert AdapterToggleRecord(record_path).load() == []


class TestDisableAll:
    """Tests for disable_all."""

    def test_disables_only_active(self, provider, record_path):
        """Test three Wi-Fi adapters, one already disabled: exactly two are disabled."""
        guard = AdapterToggleGuard(provider, record_path=record_path)
        candidates = [a for a in provider.list_adapters() if a.is_wireless]

        disabled = guard.disable_all(candidates)

        assert disabled == ["wlan0", "wlan1"]
        assert provider.status_of("wlan0") == AdapterStatus.DISABLED
        assert provider.status_of("wlan1") == AdapterStatus.DISABLED
        assert ("wlan2", False) not in provider.calls
        assert guard.state == GuardState.DISABLED

    def test_record_persisted(self, provider, record_path):
        """Test disabled names are on disk before disable_all returns."""
        guard = AdapterToggleGuard(provider, record_path=record_path)
        guard.disable_all([provider.adapters["wlan0"]])
        assert AdapterToggleRecord(record_path).load() == ["wlan0"]

    def test_failure_is_skipped(self, record_path):
        """Test one adapter failing to disable does not abort the batch."""
        provider = FakeAdapterProvider([wifi("wlan0"), wifi("wlan1")], fail_disable=["wlan0"])
        guard = AdapterToggleGuard(provider, record_path=record_path)
        assert guard.disable_all(provider.list_adapters()) == ["wlan1"]

    def test_provider_exception_is_skipped(self, record_path):
        """Test a provider that raises for one adapter does not abort the batch."""
        provider = FakeAdapterProvider([wifi("wlan0"), wifi("wlan1")], raise_disable=["wlan1"])
        guard = AdapterToggleGuard(provider, record_path=record_path)

        assert guard.disable_all(provider.list_adapters()) == ["wlan0"]
        assert guard.held == ["wlan0"]
        assert AdapterToggleRecord(record_path).load() == ["wlan0"]

    def test_held_tracks_restoration(self, provider, record_path):
        """Test held names are dropped once restored."""
        guard = AdapterToggleGuard(provider, record_path=record_path)
        guard.disable_all([provider.adapters["wlan0"], provider.adapters["wlan1"]])
        assert guard.held == ["wlan0", "wlan1"]
        guard.restore_all(["wlan0"])
        assert guard.held == ["wlan1"]

    def test_none_and_empty(self, provider, record_path):
        """Test None or empty candidates return an empty list."""
        guard = AdapterToggleGuard(provider, record_path=record_path)
        assert guard.disable_all(None) == []
        assert guard.disable_all([]) == []
        assert guard.state == GuardState.IDLE

    def test_malformed_entries_skipped(self, provider, record_path):
        """Test entries that are not AdapterInfo are ignored."""
        guard = AdapterToggleGuard(provider, record_path=record_path)
        assert guard.disable_all(["wlan0", None, {"name": "wlan1"}]) == []


class TestRestoreAll:
    """Tests for restore_all."""

    def test_restores_exactly_disabled(self, provider, record_path):
        """Test restore re-enables the disabled pair and leaves the pre-disabled one alone."""
        guard = AdapterToggleGuard(provider, record_path=record_path)
        disabled = guard.disable_all([a for a in provider.list_adapters() if a.is_wireless])

        assert guard.restore_all(disabled) is True

        assert provider.status_of("wlan0") == AdapterStatus.UP
        assert provider.status_of("wlan1") == AdapterStatus.UP
        assert provider.status_of("wlan2") == AdapterStatus.DISABLED
        assert ("wlan2", True) not in provider.calls
        assert not record_path.exists()
        assert guard.state == GuardState.IDLE

    def test_empty_and_none_are_noops(self, provider, record_path):
        """Test restore of nothing succeeds without touching adapters."""
        guard = AdapterToggleGuard(provider, record_path=record_path)
        assert guard.restore_all(set()) is True
        assert guard.restore_all(None) is True
        assert provider.calls == []

    def test_idempotent(self, provider, record_path):
        """Test calling restore twice is safe."""
        guard = AdapterToggleGuard(provider, record_path=record_path)
        disabled = guard.disable_all([provider.adapters["wlan0"]])
        assert guard.restore_all(disabled) is True
        assert guard.restore_all(disabled) is True
        assert provider.status_of("wlan0") == AdapterStatus.UP

    def test_vanished_adapter_counts_as_restored(self, provider, record_path):
        """Test an adapter that no longer exists is not a failure."""
        guard = AdapterToggleGuard(provider, record_path=record_path)
        disabled = guard.disable_all([provider.adapters["wlan0"]])
        del provider.adapters["wlan0"]

        assert guard.restore_all(disabled) is True
        assert not record_path.exists()

    def test_failed_restore_kept_for_sweep(self, record_path):
        """Test a present adapter that cannot be re-enabled stays in the record."""
        provider = FakeAdapterProvider([wifi("wlan0")], fail_enable=["wlan0"])
        guard = AdapterToggleGuard(provider, record_path=record_path)
        disabled = guard.disable_all(provider.list_adapters())

        assert guard.restore_all(disabled) is False
        assert isinstance(guard.last_error, ResourceGuardFailure)
        assert guard.last_error.adapters == ["wlan0"]
        assert AdapterToggleRecord(record_path).load() == ["wlan0"]

    def test_provider_exception_kept_for_sweep(self, record_path):
        """Test a provider that raises while re-enabling is a failed restore, not an error."""
        provider = FakeAdapterProvider([wifi("wlan0")])
        guard = AdapterToggleGuard(provider, record_path=record_path)
        disabled = guard.disable_all(provider.list_adapters())
        provider.set_adapter_enabled = MagicMock(side_effect=OSError("netlink down"))

        assert guard.restore_all(disabled) is False
        assert guard.held == ["wlan0"]
        assert AdapterToggleRecord(record_path).load() == ["wlan0"]

    def test_listing_exception_still_restores(self, provider, record_path):
        """Test restore goes ahead when adapters cannot be listed."""
        guard = AdapterToggleGuard(provider, record_path=record_path)
        disabled = guard.disable_all([provider.adapters["wlan0"]])
        provider.list_error = OSError("netlink down")

        assert guard.restore_all(disabled) is True
        assert provider.status_of("wlan0") == AdapterStatus.UP


class TestSweepOrphans:
    """Tests for recovering a crashed run."""

    def test_sweep_restores_and_clears(self, provider, record_path):
        """Test a record left by a crashed run is restored on the next start."""
        crashed = AdapterToggleGuard(provider, record_path=record_path)
        crashed.disable_all([provider.adapters["wlan0"], provider.adapters["wlan1"]])
        # No restore: the process "crashed" here

        fresh = AdapterToggleGuard(provider, record_path=record_path)
        assert fresh.sweep_orphans() == 2
        assert provider.status_of("wlan0") == AdapterStatus.UP
        assert provider.status_of("wlan1") == AdapterStatus.UP
        assert not record_path.exists()

    def test_sweep_without_record(self, provider, record_path):
        """Test sweeping with nothing recorded is a no-op."""
        assert AdapterToggleGuard(provider, record_path=record_path).sweep_orphans() == 0
        assert provider.calls == []

    def test_sweep_clears_corrupt_record(self, provider, record_path):
        """Test a corrupt record is removed."""
        record_path.parent.mkdir(parents=True)
        record_path.write_text("garbage")
        assert AdapterToggleGuard(provider, record_path=record_path).sweep_orphans() == 0
        assert not record_path.exists()


class TestScopedUse:
    """Tests for the disabled() context manager."""

    def test_restores_on_exception(self, provider, record_path):
        """Test adapters come back even when the block raises."""
        guard = AdapterToggleGuard(provider, record_path=record_path)
        with pytest.raises(RuntimeError):
            with guard.disabled([provider.adapters["wlan0"]]) as names:
                assert names == ["wlan0"]
                assert provider.status_of("wlan0") == AdapterStatus.DISABLED
                raise RuntimeError("stage blew up")
        assert provider.status_of("wlan0") == AdapterStatus.UP
        assert not record_path.exists()

    def test_default_record_path_uses_state_dir(self, provider, tmp_path):
        """Test the record lives in PPPOE_DIAG_STATE_DIR when set."""
        with patch.dict(os.environ, {'PPPOE_DIAG_STATE_DIR': str(tmp_path)}):
            guard = AdapterToggleGuard(provider)
        assert guard.record.path == tmp_path / "adapter_toggle.json"
