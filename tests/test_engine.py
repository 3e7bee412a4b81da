"""
Tests for the projection engine.

All tests pass "today" explicitly; nothing reads the wall clock.
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from recurring_ledger.models.ledger import MaterializationLedger
from recurring_ledger.models.recurrence import (
    Frequency,
    ProjectedOccurrence,
    RecurrenceRule,
    Transaction,
)
from recurring_ledger.recurrence.engine import (
    ProjectionEngine,
    generate_occurrences,
    merge_entries,
    project,
    projection_window,
)
from recurring_ledger.recurrence.overrides import OverrideStore


TODAY = date(2026, 1, 5)


def weekly_rule(**overrides) -> RecurrenceRule:
    fields = {
        "id": "payroll",
        "description": "Weekly payroll",
        "amount": Decimal("100000"),
        "category_id": "payroll",
        "frequency": Frequency.WEEKLY,
        "day_of_week": 1,
        "start_date": date(2026, 1, 5),
    }
    fields.update(overrides)
    return RecurrenceRule(**fields)


def monthly_rule(**overrides) -> RecurrenceRule:
    fields = {
        "id": "rent",
        "description": "Office rent",
        "amount": Decimal("250000"),
        "category_id": "rent",
        "frequency": Frequency.MONTHLY,
        "day_of_month": 10,
        "start_date": date(2026, 1, 10),
    }
    fields.update(overrides)
    return RecurrenceRule(**fields)


def run(rules, overrides=None, ledger=None, today=TODAY, **kwargs):
    kwargs.setdefault("months_ahead", 2)
    kwargs.setdefault("lookback_months", 0)
    return project(
        rules,
        overrides or OverrideStore(),
        ledger or MaterializationLedger(),
        today,
        **kwargs,
    )


def projected(entries):
    return [e for e in entries if isinstance(e, ProjectedOccurrence)]


class TestProjectionWindow:
    """Tests for the lookback boundary and horizon end."""

    def test_window_uses_month_starts(self):
        """Test both ends of the window are first-of-month dates."""
        assert projection_window(TODAY, 2, 0) == (date(2026, 1, 1), date(2026, 3, 1))

    def test_default_window(self):
        """Test the default six months ahead and three back."""
        assert projection_window(date(2026, 10, 19)) == (date(2026, 7, 1), date(2027, 4, 1))


class TestWeeklyScenario:
    """End-to-end: a Monday payroll over a two-month horizon."""

    def test_one_occurrence_per_monday(self):
        """Test every Monday from 2026-01-05 through the horizon end."""
        entries = run([weekly_rule()])

        expected = [date(2026, 1, 5) + timedelta(weeks=i) for i in range(8)]
        assert [e.effective_date for e in entries] == expected
        assert all(e.amount == Decimal("100000") for e in entries)
        assert all(e.status == "projected" for e in entries)

    def test_occurrence_identity(self):
        """Test synthetic IDs and canonical dates."""
        first = run([weekly_rule()])[0]
        assert first.id == "gen-payroll-2026-01-05"
        assert first.canonical_date == date(2026, 1, 5)
        assert first.rule_id == "payroll"
        assert first.description == "Weekly payroll"

    def test_output_sorted_ascending(self):
        """Test that two rules interleave by date."""
        entries = run([monthly_rule(), weekly_rule()])
        dates = [e.effective_date for e in entries]
        assert dates == sorted(dates)
        assert date(2026, 1, 10) in dates
        assert date(2026, 2, 10) in dates


class TestOverrides:
    """Tests for per-occurrence overrides."""

    def test_override_displacement(self):
        """Test moving 2026-02-10 to 2026-02-12 with a new amount."""
        overrides = OverrideStore().set(
            "rent", date(2026, 2, 10), date=date(2026, 2, 12), amount=Decimal("500000")
        )
        entries = run([monthly_rule()], overrides)

        moved = [e for e in entries if e.canonical_date == date(2026, 2, 10)]
        assert len(moved) == 1
        assert moved[0].effective_date == date(2026, 2, 12)
        assert moved[0].amount == Decimal("500000")
        assert moved[0].id == "gen-rent-2026-02-10"
        assert date(2026, 2, 10) not in [e.effective_date for e in entries]

    def test_override_amount_only(self):
        """Test that an amount-only override keeps the canonical date."""
        overrides = OverrideStore().set("rent", date(2026, 1, 10), amount=Decimal("1"))
        first = run([monthly_rule()], overrides)[0]
        assert first.effective_date == date(2026, 1, 10)
        assert first.amount == Decimal("1")

    def test_zero_amount_occurrence_still_listed(self):
        """Test that a skipped occurrence shows with amount zero."""
        overrides = OverrideStore().set("rent", date(2026, 1, 10), amount=Decimal("0"))
        first = run([monthly_rule()], overrides)[0]
        assert first.amount == Decimal("0")

    def test_stale_override_is_harmless(self):
        """Test that an override on a date the rule never produces is ignored."""
        overrides = OverrideStore().set("rent", date(2026, 1, 11), amount=Decimal("1"))
        entries = run([monthly_rule()], overrides)
        assert all(e.amount == Decimal("250000") for e in entries)

    def test_moved_occurrence_reorders_output(self):
        """Test that a displaced occurrence is sorted by its new date."""
        overrides = OverrideStore().set("payroll", date(2026, 1, 12), date=date(2026, 1, 20))
        entries = run([weekly_rule()], overrides)
        dates = [e.effective_date for e in entries]
        assert dates == sorted(dates)
        assert dates.index(date(2026, 1, 19)) < dates.index(date(2026, 1, 20))


class TestMaterializationExclusions:
    """Tests for no-duplication and global closure."""

    def test_materialized_occurrence_not_projected(self):
        """Test that a transaction consuming (rule, date) suppresses it."""
        transaction = Transaction(
            date=date(2026, 1, 13),
            original_date=date(2026, 1, 12),
            description="Weekly payroll",
            amount=Decimal("100000"),
            recurring_id="payroll",
        )
        ledger = MaterializationLedger(transactions=(transaction,))
        entries = run([weekly_rule()], ledger=ledger)

        canonical = [e.canonical_date for e in projected(entries)]
        assert date(2026, 1, 12) not in canonical
        assert transaction in entries
        assert len(entries) == 8

    def test_manual_transaction_does_not_consume(self):
        """Test that a transaction without linkage suppresses nothing."""
        transaction = Transaction(
            date=date(2026, 1, 12),
            description="Bonus",
            amount=Decimal("5000"),
        )
        ledger = MaterializationLedger(transactions=(transaction,))
        entries = run([weekly_rule()], ledger=ledger)
        assert len(projected(entries)) == 8

    def test_recorded_day_closes_every_rule(self):
        """Test that nothing from any rule lands on a recorded day."""
        ledger = MaterializationLedger(recorded_days=frozenset({date(2026, 1, 12)}))
        rule_b = weekly_rule(id="cleaning", description="Cleaning")
        entries = run([weekly_rule(), rule_b], ledger=ledger)
        assert date(2026, 1, 12) not in [e.effective_date for e in entries]
        assert date(2026, 1, 12) not in [e.canonical_date for e in projected(entries)]

    def test_override_onto_recorded_day_is_suppressed(self):
        """Test global closure for effective dates."""
        ledger = MaterializationLedger(recorded_days=frozenset({date(2026, 1, 15)}))
        overrides = OverrideStore().set("payroll", date(2026, 1, 19), date=date(2026, 1, 15))
        entries = run([weekly_rule()], overrides, ledger)
        assert date(2026, 1, 15) not in [e.effective_date for e in entries]
        assert date(2026, 1, 19) not in [e.canonical_date for e in projected(entries)]

    def test_override_away_from_recorded_day_still_closed(self):
        """Test that a recorded canonical date stays closed when displaced."""
        ledger = MaterializationLedger(recorded_days=frozenset({date(2026, 1, 12)}))
        overrides = OverrideStore().set("payroll", date(2026, 1, 12), date=date(2026, 1, 14))
        entries = run([weekly_rule()], overrides, ledger)
        assert date(2026, 1, 14) not in [e.effective_date for e in entries]


class TestInvalidRules:
    """Tests for rule skipping."""

    @pytest.mark.parametrize("fields", [
        {"day_of_week": None},
        {"day_of_week": 7},
        {"day_of_week": None, "day_of_month": 3},
    ])
    def test_invalid_weekly_rule_skipped(self, fields):
        """Test that a bad anchor skips only that rule."""
        bad = weekly_rule(id="bad", **fields)
        entries = run([bad, monthly_rule()])
        assert entries
        assert all(e.rule_id == "rent" for e in entries)

    def test_invalid_monthly_rule_skipped(self):
        """Test a monthly rule with day_of_month out of range."""
        bad = monthly_rule(id="bad", day_of_month=40)
        assert generate_occurrences([bad], OverrideStore(), MaterializationLedger(), TODAY) == []


class TestMerge:
    """Tests for merge ordering."""

    def test_persisted_first_on_ties(self):
        """Test that a transaction precedes a projection on the same date."""
        transaction = Transaction(
            date=date(2026, 1, 12),
            description="Supplies",
            amount=Decimal("20"),
        )
        ledger = MaterializationLedger(transactions=(transaction,))
        entries = run([weekly_rule()], ledger=ledger)

        same_day = [e for e in entries if e.effective_date == date(2026, 1, 12)]
        assert same_day[0] is transaction
        assert isinstance(same_day[1], ProjectedOccurrence)

    def test_rule_order_kept_on_ties(self):
        """Test that projections on the same date keep rule order."""
        rule_a = weekly_rule(id="a")
        rule_b = weekly_rule(id="b")
        entries = run([rule_b, rule_a])
        first_day = [e.rule_id for e in entries if e.effective_date == date(2026, 1, 5)]
        assert first_day == ["b", "a"]

    def test_merge_entries_is_stable(self):
        """Test merge_entries directly."""
        t1 = Transaction(date=date(2026, 1, 2), description="A", amount=Decimal("1"))
        t2 = Transaction(date=date(2026, 1, 1), description="B", amount=Decimal("1"))
        merged = merge_entries([t1, t2], [])
        assert merged == [t2, t1]


class TestProjectionEngine:
    """Tests for memoization."""

    def test_equal_inputs_reuse_result(self):
        """Test that structurally equal inputs do not recompute."""
        engine = ProjectionEngine(months_ahead=2, lookback_months=0)
        first = engine.project([weekly_rule()], OverrideStore(), MaterializationLedger(), TODAY)
        second = engine.project([weekly_rule()], OverrideStore(), MaterializationLedger(), TODAY)

        assert engine.computations == 1
        assert first == second

    def test_changed_input_recomputes(self):
        """Test that a new today or new overrides recompute."""
        engine = ProjectionEngine(months_ahead=2, lookback_months=0)
        rules = [weekly_rule()]
        engine.project(rules, OverrideStore(), MaterializationLedger(), TODAY)
        engine.project(rules, OverrideStore(), MaterializationLedger(), date(2026, 2, 1))
        overrides = OverrideStore().set("payroll", date(2026, 2, 2), amount=Decimal("1"))
        engine.project(rules, overrides, MaterializationLedger(), date(2026, 2, 1))
        assert engine.computations == 3

    def test_returned_list_is_a_copy(self):
        """Test that mutating a result cannot corrupt the memo."""
        engine = ProjectionEngine(months_ahead=2, lookback_months=0)
        first = engine.project([weekly_rule()], OverrideStore(), MaterializationLedger(), TODAY)
        first.clear()
        second = engine.project([weekly_rule()], OverrideStore(), MaterializationLedger(), TODAY)
        assert len(second) == 8

    def test_clear_forces_recompute(self):
        """Test clearing the memo."""
        engine = ProjectionEngine(months_ahead=2, lookback_months=0)
        engine.project([weekly_rule()], OverrideStore(), MaterializationLedger(), TODAY)
        engine.clear()
        engine.project([weekly_rule()], OverrideStore(), MaterializationLedger(), TODAY)
        assert engine.computations == 2

    def test_inputs_not_mutated(self):
        """Test that projecting leaves the inputs unchanged."""
        overrides = OverrideStore().set("payroll", date(2026, 1, 12), date=date(2026, 1, 14))
        ledger = MaterializationLedger(recorded_days=frozenset({date(2026, 1, 5)}))
        rules = [weekly_rule()]
        run(rules, overrides, ledger)

        assert len(overrides) == 1
        assert ledger.recorded_days == frozenset({date(2026, 1, 5)})
        assert ledger.transactions == ()
        assert rules == [weekly_rule()]

    def test_enforced_end_date(self):
        """Test the end-date switch."""
        rule = weekly_rule(end_date=date(2026, 1, 20))
        open_ended = ProjectionEngine(months_ahead=2, lookback_months=0)
        enforced = ProjectionEngine(months_ahead=2, lookback_months=0, enforce_end_date=True)

        ledger = MaterializationLedger()
        assert len(open_ended.project([rule], OverrideStore(), ledger, TODAY)) == 8
        assert [e.effective_date for e in enforced.project([rule], OverrideStore(), ledger, TODAY)] == [
            date(2026, 1, 5), date(2026, 1, 12), date(2026, 1, 19),
        ]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
