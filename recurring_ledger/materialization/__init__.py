"""Materialization package: explicit state and day closing."""

from recurring_ledger.materialization.state import LedgerState
from recurring_ledger.materialization.closing import (
    DayClosingResult,
    due_occurrences,
    record_day,
)

__all__ = [
    "DayClosingResult",
    "LedgerState",
    "due_occurrences",
    "record_day",
]
