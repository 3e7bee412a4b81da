"""
Override Store

Keyed, per-occurrence adjustments of rules.

DESIGN DECISION: The store is an immutable snapshot. set() returns a new
store with the partial merged in, so a snapshot handed to the engine never
changes underneath it. Keys are OccurrenceKey pairs, never formatted
strings.

Overrides are inert data. An override whose canonical date the rule no
longer produces (e.g., after its anchor was edited) is never looked up
and has no effect.
"""

from collections.abc import Iterator, Mapping
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from recurring_ledger.models.recurrence import OccurrenceKey, Override


class OverrideStore:
    """Immutable mapping of (rule_id, canonical_date) to Override."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Optional[Mapping[OccurrenceKey, Override]] = None):
        self._entries: dict[OccurrenceKey, Override] = {
            OccurrenceKey(*key): value for key, value in (entries or {}).items()
        }

    def get(self, rule_id: str, canonical_date: date) -> Optional[Override]:
        """Override for one occurrence, or None."""
        return self._entries.get(OccurrenceKey(rule_id, canonical_date))

    def set(
        self,
        rule_id: str,
        canonical_date: date,
        *,
        date: Optional[date] = None,
        amount: Optional[Decimal] = None,
    ) -> "OverrideStore":
        """
        Merge a partial override into the entry for one occurrence.

        Only the fields passed are changed; the existing entry is never
        replaced wholesale. Returns the new snapshot.
        """
        partial = Override.model_validate(
            {k: v for k, v in (("date", date), ("amount", amount)) if v is not None}
        )
        return self.merge(rule_id, canonical_date, partial)

    def merge(
        self,
        rule_id: str,
        canonical_date: date,
        partial: Override,
    ) -> "OverrideStore":
        key = OccurrenceKey(rule_id, canonical_date)
        entries = dict(self._entries)
        entries[key] = entries.get(key, Override()).merged_with(partial)
        return OverrideStore(entries)

    def for_rule(self, rule_id: str) -> dict[date, Override]:
        """All overrides of one rule, keyed by canonical date."""
        return {
            key.canonical_date: value
            for key, value in self._entries.items()
            if key.rule_id == rule_id
        }

    def moved_onto(self, day: date) -> list[OccurrenceKey]:
        """Keys of the occurrences an override moves onto day."""
        return sorted(
            key for key, value in self._entries.items() if value.date == day
        )

    def to_nested(self) -> dict[str, dict[str, dict[str, Any]]]:
        """
        Persistence shape: {rule_id: {"YYYY-MM-DD": {"date": ..., "amount": ...}}}.
        """
        nested: dict[str, dict[str, dict[str, Any]]] = {}
        for key in sorted(self._entries):
            value = self._entries[key].model_dump(mode="json", exclude_none=True)
            nested.setdefault(key.rule_id, {})[key.canonical_date.isoformat()] = value
        return nested

    @classmethod
    def from_nested(cls, nested: Mapping[str, Mapping[Any, Any]]) -> "OverrideStore":
        """Build a store from the persistence shape (str or date inner keys)."""
        entries = {}
        for rule_id, by_date in nested.items():
            for canonical, value in by_date.items():
                if isinstance(canonical, str):
                    canonical = date.fromisoformat(canonical)
                entries[OccurrenceKey(rule_id, canonical)] = Override.model_validate(value)
        return cls(entries)

    def __iter__(self) -> Iterator[OccurrenceKey]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OverrideStore):
            return NotImplemented
        return self._entries == other._entries

    def __hash__(self) -> int:
        return hash(frozenset(self._entries.items()))

    def __repr__(self) -> str:
        return f"OverrideStore({len(self._entries)} entries)"
