"""
Explicit application state.

Rules, overrides and the ledger travel together as one frozen snapshot.
Commands build a new LedgerState and swap it in whole; nothing patches a
live snapshot field by field.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from recurring_ledger.models.ledger import MaterializationLedger
from recurring_ledger.models.recurrence import RecurrenceRule
from recurring_ledger.recurrence.overrides import OverrideStore


class LedgerState(BaseModel):
    """Everything the projection engine needs, as one immutable value."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    rules: tuple[RecurrenceRule, ...] = Field(default_factory=tuple)
    overrides: OverrideStore = Field(default_factory=OverrideStore)
    ledger: MaterializationLedger = Field(default_factory=MaterializationLedger)

    def get_rule(self, rule_id: str) -> Optional[RecurrenceRule]:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None

    def evolve(self, **changes) -> "LedgerState":
        """New state with the given fields replaced."""
        return LedgerState(
            rules=changes.get("rules", self.rules),
            overrides=changes.get("overrides", self.overrides),
            ledger=changes.get("ledger", self.ledger),
        )
