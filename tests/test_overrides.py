"""
Tests for the immutable override store.
"""

import pytest
from datetime import date
from decimal import Decimal

from recurring_ledger.models.recurrence import OccurrenceKey, Override
from recurring_ledger.recurrence.overrides import OverrideStore


class TestOverrideStore:
    """Tests for OverrideStore."""

    def test_empty_store_returns_none(self):
        """Test lookups on an empty store."""
        store = OverrideStore()
        assert store.get("rule-1", date(2026, 2, 10)) is None
        assert len(store) == 0

    def test_set_returns_new_snapshot(self):
        """Test that set never mutates the original store."""
        store = OverrideStore()
        updated = store.set("rule-1", date(2026, 2, 10), amount=Decimal("500"))

        assert store.get("rule-1", date(2026, 2, 10)) is None
        assert updated.get("rule-1", date(2026, 2, 10)).amount == Decimal("500")

    def test_partial_updates_merge(self):
        """Test that setting amount after date keeps the date."""
        store = OverrideStore()
        store = store.set("rule-1", date(2026, 2, 10), date=date(2026, 2, 12))
        store = store.set("rule-1", date(2026, 2, 10), amount=Decimal("500000"))

        override = store.get("rule-1", date(2026, 2, 10))
        assert override.date == date(2026, 2, 12)
        assert override.amount == Decimal("500000")

    def test_later_value_wins(self):
        """Test that a second date replaces the first."""
        store = OverrideStore()
        store = store.set("rule-1", date(2026, 2, 10), date=date(2026, 2, 12))
        store = store.set("rule-1", date(2026, 2, 10), date=date(2026, 2, 13))
        assert store.get("rule-1", date(2026, 2, 10)).date == date(2026, 2, 13)

    def test_keys_are_composite(self):
        """Test that rule IDs containing dashes do not collide."""
        store = OverrideStore()
        store = store.set("rule-a", date(2026, 2, 10), amount=Decimal("1"))
        store = store.set("rule-a-2026", date(2026, 2, 10), amount=Decimal("2"))

        assert store.get("rule-a", date(2026, 2, 10)).amount == Decimal("1")
        assert store.get("rule-a-2026", date(2026, 2, 10)).amount == Decimal("2")
        assert OccurrenceKey("rule-a", date(2026, 2, 10)) in store

    def test_zero_amount_allowed(self):
        """Test that zero is a valid override amount."""
        store = OverrideStore().set("rule-1", date(2026, 2, 10), amount=Decimal("0"))
        assert store.get("rule-1", date(2026, 2, 10)).amount == Decimal("0")

    def test_negative_amount_rejected(self):
        """Test that negative override amounts are rejected."""
        with pytest.raises(ValueError):
            OverrideStore().set("rule-1", date(2026, 2, 10), amount=Decimal("-1"))

    def test_for_rule(self):
        """Test listing one rule's overrides."""
        store = OverrideStore()
        store = store.set("rule-1", date(2026, 2, 10), amount=Decimal("1"))
        store = store.set("rule-1", date(2026, 3, 10), amount=Decimal("2"))
        store = store.set("rule-2", date(2026, 2, 10), amount=Decimal("3"))

        assert set(store.for_rule("rule-1")) == {date(2026, 2, 10), date(2026, 3, 10)}
        assert store.for_rule("missing") == {}

    def test_moved_onto(self):
        """Test finding the occurrences moved onto a day."""
        store = (
            OverrideStore()
            .set("rent", date(2026, 12, 10), date=date(2026, 2, 5))
            .set("payroll", date(2026, 2, 2), date=date(2026, 2, 5))
            .set("rent", date(2026, 3, 10), amount=Decimal("0"))
        )
        assert store.moved_onto(date(2026, 2, 5)) == [
            OccurrenceKey("payroll", date(2026, 2, 2)),
            OccurrenceKey("rent", date(2026, 12, 10)),
        ]
        assert store.moved_onto(date(2026, 3, 10)) == []

    def test_equality_is_structural(self):
        """Test that equal contents compare equal and hash equal."""
        a = OverrideStore().set("rule-1", date(2026, 2, 10), amount=Decimal("1"))
        b = OverrideStore().set("rule-1", date(2026, 2, 10), amount=Decimal("1"))
        assert a == b
        assert hash(a) == hash(b)
        assert a != OverrideStore()


class TestOverridePersistenceShape:
    """Tests for the nested persistence shape."""

    def test_to_nested(self):
        """Test the {rule_id: {YYYY-MM-DD: fields}} shape."""
        store = OverrideStore().set(
            "rule-1", date(2026, 2, 10), date=date(2026, 2, 12), amount=Decimal("500000")
        )
        nested = store.to_nested()
        assert nested == {
            "rule-1": {"2026-02-10": {"date": "2026-02-12", "amount": "500000"}},
        }

    def test_to_nested_omits_unset_fields(self):
        """Test that an amount-only override has no date key."""
        store = OverrideStore().set("rule-1", date(2026, 2, 10), amount=Decimal("5"))
        assert store.to_nested()["rule-1"]["2026-02-10"] == {"amount": "5"}

    def test_from_nested_restores_store(self):
        """Test reading the nested shape back."""
        store = OverrideStore().set(
            "rule-1", date(2026, 2, 10), date=date(2026, 2, 12), amount=Decimal("500000")
        )
        assert OverrideStore.from_nested(store.to_nested()) == store

    def test_from_nested_accepts_models(self):
        """Test date keys and Override values."""
        store = OverrideStore.from_nested({
            "rule-1": {date(2026, 2, 10): Override(amount=Decimal("7"))},
        })
        assert store.get("rule-1", date(2026, 2, 10)).amount == Decimal("7")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
