"""
Health Ledger

Ordered, append-only collection of HealthRecords with a deterministic
severity rollup. The ledger is threaded through the whole check pipeline,
so a bad update must never abort diagnostics: invalid records are logged
and dropped, and the ledger is returned unchanged.

Usage:
    ledger = HealthLedger()
    ledger.add("DNS resolution", CheckStatus.OK, "google.com resolved", rank=10)
    summary = ledger.summarize()
    summary.overall_status  # CheckStatus.OK
"""

import logging
from typing import Any, Dict, Iterator, List, Optional

from .errors import InvalidRecord
from .models import CheckStatus, HealthRecord, LedgerSummary

logger = logging.getLogger(__name__)


class HealthLedger:
    """
    Insertion-ordered mapping from composite key to HealthRecord.

    Iteration order is ascending rank, then insertion order. Records are
    never replaced; a second record with the same rank and label is stored
    under a suffixed key.
    """

    def __init__(self):
        self._records: Dict[str, HealthRecord] = {}
        self._sequence: Dict[str, int] = {}

    def add(self, label: Any, status: Any, detail: Any = "", rank: int = 0) -> 'HealthLedger':
        """
        Append a record and return the ledger.

        Invalid input (blank label, unknown status, non-integer rank) is
        logged and ignored; the ledger is returned unchanged.
        """
        try:
            record = self._build_record(label, status, detail, rank)
        except InvalidRecord as e:
            logger.warning(f"Health record rejected: {e}")
            return self

        key = record.key
        if key in self._records:
            n = 2
            while f"{key}#{n}" in self._records:
                n += 1
            key = f"{key}#{n}"

        self._sequence[key] = len(self._sequence)
        self._records[key] = record
        logger.debug(f"Health [{record.status.value.upper()}] {record.label}: {record.detail}")
        return self

    @staticmethod
    def _build_record(label: Any, status: Any, detail: Any, rank: Any) -> HealthRecord:
        if not isinstance(label, str) or not label.strip():
            raise InvalidRecord(f"label must be a non-empty string, got {label!r}")
        try:
            parsed_status = CheckStatus.parse(status)
        except ValueError as e:
            raise InvalidRecord(str(e)) from e
        if isinstance(rank, bool) or not isinstance(rank, int):
            raise InvalidRecord(f"rank must be an integer, got {rank!r}")
        return HealthRecord(
            label=label.strip(),
            status=parsed_status,
            detail="" if detail is None else str(detail),
            rank=rank,
        )

    # === Read access ===

    def _ordered_keys(self) -> List[str]:
        """Storage keys in display order (rank, then insertion)."""
        return sorted(self._records, key=lambda k: (self._records[k].rank, self._sequence[k]))

    def records(self) -> List[HealthRecord]:
        return [self._records[k] for k in self._ordered_keys()]

    def keys(self) -> List[str]:
        return self._ordered_keys()

    def get(self, key: str) -> Optional[HealthRecord]:
        return self._records.get(key)

    def find(self, label: str) -> List[HealthRecord]:
        """All records with the given label, in display order."""
        return [r for r in self.records() if r.label == label]

    def __iter__(self) -> Iterator[HealthRecord]:
        return iter(self.records())

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: object) -> bool:
        return key in self._records

    @property
    def overall_status(self) -> CheckStatus:
        """Maximum severity across all records; OK for an empty ledger."""
        worst = CheckStatus.OK
        for record in self._records.values():
            if record.status.severity > worst.severity:
                worst = record.status
        return worst

    def summarize(self) -> LedgerSummary:
        """Severity rollup and rank-ordered record list."""
        counts = {status: 0 for status in CheckStatus}
        for record in self._records.values():
            counts[record.status] += 1
        return LedgerSummary(
            overall_status=self.overall_status,
            counts=counts,
            records=self.records(),
        )

    def __repr__(self) -> str:
        return f"HealthLedger(records={len(self)}, overall={self.overall_status.value})"


# === Functional interface ===

def new_ledger() -> HealthLedger:
    """Return an empty ledger."""
    return HealthLedger()


def add_health(ledger: Any, label: Any, status: Any, detail: Any = "", rank: int = 0) -> Any:
    """
    Add a record to ledger and return it.

    A ledger that is not a HealthLedger (None, a dict from a broken stage)
    is returned as-is; this never raises.
    """
    if not isinstance(ledger, HealthLedger):
        logger.warning(f"add_health called with {type(ledger).__name__}, ignoring '{label}'")
        return ledger
    try:
        hash(label)
    except TypeError:
        logger.warning("add_health called with an unhashable label, ignoring")
        return ledger
    return ledger.add(label, status, detail, rank)


def summarize(ledger: Any) -> LedgerSummary:
    """Summarize ledger; anything that is not a HealthLedger summarizes as empty."""
    if not isinstance(ledger, HealthLedger):
        return HealthLedger().summarize()
    return ledger.summarize()
