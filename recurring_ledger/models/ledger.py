"""
Materialization Ledger

The permanent side of the system: persisted transactions plus the set of
globally closed ("recorded") calendar days.

DESIGN DECISION: The ledger is a frozen snapshot. Every change produces a
new ledger, which callers swap in atomically. The projection engine only
ever reads it.

Two distinct exclusions come from here:
1. Per-rule dedup: a transaction carrying (recurring_id, original_date)
   consumes that occurrence forever.
2. Global closure: a recorded day suppresses every rule on that date.
"""

from collections.abc import Iterable
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from recurring_ledger.models.recurrence import OccurrenceKey, Transaction


class MaterializationLedger(BaseModel):
    """Snapshot of persisted transactions and recorded days."""

    model_config = ConfigDict(frozen=True)

    transactions: tuple[Transaction, ...] = Field(default_factory=tuple)
    recorded_days: frozenset[date] = Field(default_factory=frozenset)

    @property
    def consumed_keys(self) -> frozenset[OccurrenceKey]:
        """Every (rule, canonical date) already materialized."""
        return frozenset(
            t.occurrence_key for t in self.transactions if t.occurrence_key is not None
        )

    def is_recorded(self, day: date) -> bool:
        return day in self.recorded_days

    def is_consumed(self, key: OccurrenceKey) -> bool:
        return key in self.consumed_keys

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        for transaction in self.transactions:
            if transaction.id == transaction_id:
                return transaction
        return None

    def with_transactions(self, added: Iterable[Transaction]) -> "MaterializationLedger":
        """New ledger with transactions appended (existing order kept)."""
        return MaterializationLedger(
            transactions=self.transactions + tuple(added),
            recorded_days=self.recorded_days,
        )

    def with_recorded_day(self, day: date) -> "MaterializationLedger":
        return MaterializationLedger(
            transactions=self.transactions,
            recorded_days=self.recorded_days | {day},
        )

    def replacing_transaction(self, transaction: Transaction) -> "MaterializationLedger":
        """New ledger with the transaction of the same ID replaced in place."""
        return MaterializationLedger(
            transactions=tuple(
                transaction if t.id == transaction.id else t for t in self.transactions
            ),
            recorded_days=self.recorded_days,
        )

    def without_transaction(self, transaction_id: str) -> "MaterializationLedger":
        return MaterializationLedger(
            transactions=tuple(t for t in self.transactions if t.id != transaction_id),
            recorded_days=self.recorded_days,
        )
