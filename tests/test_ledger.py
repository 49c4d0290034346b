"""
Tests for the health ledger.

Run: python3 -m pytest tests/test_ledger.py -v
"""

import random
import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from core.diagnostics.ledger import HealthLedger, add_health, new_ledger, summarize
from core.diagnostics.models import CheckStatus, HealthRecord


class TestHealthLedgerAdd:
    """Tests for adding records."""

    def test_add_returns_ledger(self):
        """Test add returns the ledger for chaining."""
        ledger = new_ledger()
        assert ledger.add("DNS resolution", CheckStatus.OK, "ok", rank=10) is ledger
        assert len(ledger) == 1

    def test_key_is_zero_padded_rank_and_label(self):
        """Test storage key format."""
        ledger = HealthLedger().add("Link state", CheckStatus.OK, rank=4)
        assert ledger.keys() == ["004_Link state"]

    def test_same_label_different_rank_kept(self):
        """Test identical labels at different ranks are distinct entries."""
        ledger = HealthLedger()
        ledger.add("Ping", CheckStatus.OK, rank=10)
        ledger.add("Ping", CheckStatus.FAIL, rank=13)
        assert len(ledger) == 2
        assert [r.status for r in ledger.find("Ping")] == [CheckStatus.OK, CheckStatus.FAIL]

    def test_duplicate_key_is_appended_not_replaced(self):
        """Test a second record with the same rank and label does not overwrite."""
        ledger = HealthLedger()
        ledger.add("Ping", CheckStatus.OK, "first", rank=10)
        ledger.add("Ping", CheckStatus.WARN, "second", rank=10)
        assert len(ledger) == 2
        assert "010_Ping#2" in ledger
        assert ledger.get("010_Ping").detail == "first"

    def test_keys_follow_record_order(self):
        """Test keys() and records() share the rank-then-insertion order."""
        ledger = HealthLedger()
        ledger.add("Ping", CheckStatus.OK, rank=10)
        ledger.add("Adapter", CheckStatus.OK, rank=3)
        ledger.add("Ping", CheckStatus.WARN, rank=10)
        assert ledger.keys() == ["003_Adapter", "010_Ping", "010_Ping#2"]
        assert [ledger.get(k) for k in ledger.keys()] == ledger.records()

    def test_blank_label_rejected(self):
        """Test blank labels leave the ledger unchanged."""
        ledger = HealthLedger().add("ok", CheckStatus.OK)
        assert ledger.add("   ", CheckStatus.FAIL) is ledger
        assert ledger.add("", CheckStatus.FAIL) is ledger
        assert len(ledger) == 1

    def test_unknown_status_rejected(self):
        """Test an unknown status is logged and ignored."""
        ledger = HealthLedger()
        ledger.add("Check", "bogus")
        assert len(ledger) == 0

    def test_status_strings_accepted(self):
        """Test status names and values parse."""
        ledger = HealthLedger()
        ledger.add("a", "OK").add("b", "warn").add("c", "Fail")
        assert [r.status for r in ledger] == [CheckStatus.OK, CheckStatus.WARN, CheckStatus.FAIL]

    def test_label_is_trimmed(self):
        """Test surrounding whitespace is stripped from labels."""
        ledger = HealthLedger().add("  DNS  ", CheckStatus.OK)
        assert ledger.records()[0].label == "DNS"

    def test_non_integer_rank_rejected(self):
        """Test rank must be an integer."""
        ledger = HealthLedger()
        ledger.add("x", CheckStatus.OK, rank="3")
        ledger.add("y", CheckStatus.OK, rank=True)
        assert len(ledger) == 0

    def test_records_are_immutable(self):
        """Test records cannot be modified once added."""
        ledger = HealthLedger().add("x", CheckStatus.OK)
        record = ledger.records()[0]
        with pytest.raises(AttributeError):
            record.status = CheckStatus.FAIL


class TestOrdering:
    """Tests for display ordering."""

    def test_rank_then_insertion_order(self):
        """Test records sort by rank, ties by insertion order."""
        ledger = HealthLedger()
        ledger.add("late", CheckStatus.OK, rank=10)
        ledger.add("early", CheckStatus.OK, rank=1)
        ledger.add("late-second", CheckStatus.OK, rank=10)
        ledger.add("middle", CheckStatus.OK, rank=4)
        assert [r.label for r in ledger] == ["early", "middle", "late", "late-second"]

    def test_negative_rank_sorts_first(self):
        """Test negative ranks sort before zero."""
        ledger = HealthLedger()
        ledger.add("zero", CheckStatus.OK)
        ledger.add("negative", CheckStatus.OK, rank=-1)
        assert [r.label for r in ledger] == ["negative", "zero"]

    def test_rank_above_999_orders_numerically(self):
        """Test ordering does not depend on key string comparison."""
        ledger = HealthLedger()
        ledger.add("big", CheckStatus.OK, rank=1000)
        ledger.add("small", CheckStatus.OK, rank=200)
        assert [r.label for r in ledger] == ["small", "big"]

    def test_random_sequences_non_decreasing(self):
        """Test summarize returns non-decreasing ranks for arbitrary inserts."""
        rng = random.Random(1234)
        for _ in range(25):
            ledger = HealthLedger()
            for i in range(rng.randint(0, 20)):
                ledger.add(f"check{i}", rng.choice(list(CheckStatus)), rank=rng.randint(-5, 20))
            ranks = [r.rank for r in summarize(ledger).records]
            assert ranks == sorted(ranks)


class TestSummarize:
    """Tests for the severity rollup."""

    def test_empty_ledger_is_ok(self):
        """Test no checks run is not a failure."""
        summary = new_ledger().summarize()
        assert summary.overall_status == CheckStatus.OK
        assert summary.records == []

    def test_any_fail_is_fail(self):
        """Test a single FAIL dominates."""
        ledger = HealthLedger()
        ledger.add("a", CheckStatus.OK).add("b", CheckStatus.WARN).add("c", CheckStatus.FAIL)
        assert ledger.summarize().overall_status == CheckStatus.FAIL
        assert ledger.summarize().has_failures is True

    def test_warn_without_fail_is_warn(self):
        """Test WARN with no FAIL."""
        ledger = HealthLedger().add("a", CheckStatus.OK).add("b", CheckStatus.WARN)
        assert ledger.summarize().overall_status == CheckStatus.WARN

    def test_all_ok_is_ok(self):
        """Test only OK records."""
        ledger = HealthLedger().add("a", CheckStatus.OK).add("b", CheckStatus.OK)
        assert ledger.summarize().overall_status == CheckStatus.OK

    def test_counts(self):
        """Test counts by status include zero entries."""
        ledger = HealthLedger().add("a", CheckStatus.OK).add("b", CheckStatus.OK)
        counts = ledger.summarize().counts
        assert counts == {CheckStatus.OK: 2, CheckStatus.WARN: 0, CheckStatus.FAIL: 0}

    def test_random_rollup_matches_worst(self):
        """Test overall status is FAIL iff a FAIL exists, else WARN iff a WARN exists."""
        rng = random.Random(99)
        for _ in range(50):
            statuses = [rng.choice(list(CheckStatus)) for _ in range(rng.randint(1, 8))]
            ledger = HealthLedger()
            for i, status in enumerate(statuses):
                ledger.add(f"c{i}", status, rank=rng.randint(0, 5))
            overall = ledger.summarize().overall_status
            if CheckStatus.FAIL in statuses:
                assert overall == CheckStatus.FAIL
            elif CheckStatus.WARN in statuses:
                assert overall == CheckStatus.WARN
            else:
                assert overall == CheckStatus.OK

    def test_to_dict(self):
        """Test JSON-ready summary."""
        ledger = HealthLedger().add("DNS", CheckStatus.WARN, "slow", rank=10)
        data = ledger.summarize().to_dict()
        assert data['overall_status'] == 'warn'
        assert data['counts']['warn'] == 1
        assert data['records'][0] == {'label': 'DNS', 'status': 'warn', 'detail': 'slow', 'rank': 10}


class TestFunctionalInterface:
    """Tests for add_health / summarize on malformed input."""

    def test_none_ledger_is_noop(self):
        """Test a None ledger is returned unchanged."""
        assert add_health(None, "x", CheckStatus.OK) is None

    def test_non_ledger_returned_unchanged(self):
        """Test a dict from a broken stage is returned as-is."""
        broken = {'not': 'a ledger'}
        assert add_health(broken, "x", CheckStatus.OK) is broken
        assert broken == {'not': 'a ledger'}

    def test_unhashable_label_is_noop(self):
        """Test an unhashable label leaves the ledger unchanged."""
        ledger = new_ledger()
        assert add_health(ledger, ["x"], CheckStatus.OK) is ledger
        assert len(ledger) == 0

    def test_add_health_adds(self):
        """Test add_health on a real ledger."""
        ledger = add_health(new_ledger(), "x", "warn", "detail", rank=2)
        assert ledger.records() == [HealthRecord("x", CheckStatus.WARN, "detail", 2)]

    def test_summarize_non_ledger(self):
        """Test summarize of a non-ledger is an empty OK summary."""
        summary = summarize(None)
        assert summary.overall_status == CheckStatus.OK
        assert summary.records == []
