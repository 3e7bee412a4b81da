"""
In-Memory Storage Implementation

Used in tests and for throwaway sessions. Stored values are copied on the
way in and out so callers cannot mutate what is "on disk".
"""

import copy
from datetime import date
from typing import Any
from uuid import UUID

from recurring_ledger.models.audit import AuditEvent
from recurring_ledger.models.recurrence import RecurrenceRule, Transaction
from recurring_ledger.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Ledger storage held in plain Python collections."""

    def __init__(self):
        self.rules: list[RecurrenceRule] = []
        self.overrides: dict[str, dict[str, dict[str, Any]]] = {}
        self.recorded_days: set[date] = set()
        self.transactions: list[Transaction] = []
        self.save_counts: dict[str, int] = {
            "rules": 0,
            "overrides": 0,
            "recorded_days": 0,
            "transactions": 0,
        }

    async def load_rules(self) -> list[RecurrenceRule]:
        return list(self.rules)

    async def save_rules(self, rules: list[RecurrenceRule]) -> bool:
        self.rules = list(rules)
        self.save_counts["rules"] += 1
        return True

    async def load_overrides(self) -> dict[str, dict[str, dict[str, Any]]]:
        return copy.deepcopy(self.overrides)

    async def save_overrides(self, overrides: dict[str, dict[str, dict[str, Any]]]) -> bool:
        self.overrides = copy.deepcopy(overrides)
        self.save_counts["overrides"] += 1
        return True

    async def load_recorded_days(self) -> set[date]:
        return set(self.recorded_days)

    async def save_recorded_days(self, days: set[date]) -> bool:
        self.recorded_days = set(days)
        self.save_counts["recorded_days"] += 1
        return True

    async def load_transactions(self) -> list[Transaction]:
        return list(self.transactions)

    async def save_transactions(self, transactions: list[Transaction]) -> bool:
        self.transactions = list(transactions)
        self.save_counts["transactions"] += 1
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self.events if e.correlation_id == correlation_id]

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        return [
            e for e in self.events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self.events))[:limit]
