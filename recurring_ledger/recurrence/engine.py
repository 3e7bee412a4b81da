"""
Projection Engine

Expands recurrence rules into projected occurrences over a rolling window
and merges them with persisted transactions into one date-ordered list.

GUARANTEES:
- Pure: output depends only on (rules, overrides, ledger, today, window
  settings). Inputs are never mutated. "today" is a parameter, never read
  from the wall clock here.
- No duplication: an occurrence already materialized (same rule, same
  canonical date) is never projected again.
- Global closure: nothing is projected onto a recorded day, whether it
  lands there canonically or through an override.
- A malformed rule is skipped; it never aborts the other rules.

WINDOW:
- Lookback boundary: first day of the month lookback_months before
  today's month. Rules starting earlier are fast-forwarded (closed form)
  to their last period on or before it.
- Horizon end: first day of the month months_ahead after today's month,
  inclusive.
"""

from collections.abc import Iterable, Sequence
from datetime import date
from typing import Optional

import structlog

from recurring_ledger.config.settings import ProjectionSettings
from recurring_ledger.models.ledger import MaterializationLedger
from recurring_ledger.models.recurrence import (
    LedgerEntry,
    OccurrenceKey,
    ProjectedOccurrence,
    RecurrenceRule,
    Transaction,
)
from recurring_ledger.recurrence.anchor import add_months
from recurring_ledger.recurrence.overrides import OverrideStore
from recurring_ledger.recurrence.schedule import canonical_dates


logger = structlog.get_logger()

DEFAULT_MONTHS_AHEAD = 6
DEFAULT_LOOKBACK_MONTHS = 3


def projection_window(
    today: date,
    months_ahead: int = DEFAULT_MONTHS_AHEAD,
    lookback_months: int = DEFAULT_LOOKBACK_MONTHS,
) -> tuple[date, date]:
    """Return (lookback_boundary, horizon_end) for the given day."""
    back_year, back_month = add_months(today.year, today.month, -lookback_months)
    end_year, end_month = add_months(today.year, today.month, months_ahead)
    return date(back_year, back_month, 1), date(end_year, end_month, 1)


def expand_rule(
    rule: RecurrenceRule,
    overrides: OverrideStore,
    recorded_days: frozenset[date],
    consumed: frozenset[OccurrenceKey],
    since: Optional[date],
    until: date,
    enforce_end_date: bool = False,
) -> list[ProjectedOccurrence]:
    """
    Project one rule between since (lookback boundary) and until.

    The caller is responsible for skipping rules without a valid anchor.
    """
    occurrences = []
    for canonical in canonical_dates(rule, until, since, enforce_end_date):
        key = OccurrenceKey(rule.id, canonical)
        if key in consumed or canonical in recorded_days:
            continue

        override = overrides.get(rule.id, canonical)
        effective_date = canonical
        amount = rule.amount
        if override is not None:
            if override.date is not None:
                effective_date = override.date
            if override.amount is not None:
                amount = override.amount

        # Moved onto a closed day: the day is sealed for every rule
        if effective_date in recorded_days:
            continue

        occurrences.append(ProjectedOccurrence(
            id=ProjectedOccurrence.synthetic_id(rule.id, canonical),
            effective_date=effective_date,
            canonical_date=canonical,
            amount=amount,
            rule_id=rule.id,
            description=rule.description,
            category_id=rule.category_id,
            expense_type=rule.expense_type,
        ))
    return occurrences


def generate_occurrences(
    rules: Iterable[RecurrenceRule],
    overrides: OverrideStore,
    ledger: MaterializationLedger,
    today: date,
    months_ahead: int = DEFAULT_MONTHS_AHEAD,
    lookback_months: int = DEFAULT_LOOKBACK_MONTHS,
    enforce_end_date: bool = False,
) -> list[ProjectedOccurrence]:
    """Project every expandable rule; rules are processed in input order."""
    since, until = projection_window(today, months_ahead, lookback_months)
    consumed = ledger.consumed_keys

    generated: list[ProjectedOccurrence] = []
    for rule in rules:
        if not rule.has_valid_anchor():
            logger.warning(
                "rule_skipped",
                rule_id=rule.id,
                frequency=rule.frequency.value,
                day_of_month=rule.day_of_month,
                day_of_week=rule.day_of_week,
            )
            continue
        generated.extend(expand_rule(
            rule,
            overrides=overrides,
            recorded_days=ledger.recorded_days,
            consumed=consumed,
            since=since,
            until=until,
            enforce_end_date=enforce_end_date,
        ))
    return generated


def merge_entries(
    transactions: Sequence[Transaction],
    occurrences: Sequence[ProjectedOccurrence],
) -> list[LedgerEntry]:
    """
    Persisted transactions followed by projections, ordered by effective
    date. Ties keep concatenation order, so persisted records come first.
    """
    combined: list[LedgerEntry] = [*transactions, *occurrences]
    order = sorted(
        range(len(combined)),
        key=lambda i: (combined[i].effective_date, i),
    )
    return [combined[i] for i in order]


def project(
    rules: Iterable[RecurrenceRule],
    overrides: OverrideStore,
    ledger: MaterializationLedger,
    today: date,
    months_ahead: int = DEFAULT_MONTHS_AHEAD,
    lookback_months: int = DEFAULT_LOOKBACK_MONTHS,
    enforce_end_date: bool = False,
) -> list[LedgerEntry]:
    """Full projection: generated occurrences merged with the ledger."""
    occurrences = generate_occurrences(
        rules,
        overrides,
        ledger,
        today,
        months_ahead=months_ahead,
        lookback_months=lookback_months,
        enforce_end_date=enforce_end_date,
    )
    return merge_entries(ledger.transactions, occurrences)


class ProjectionEngine:
    """
    Projection with single-slot memoization.

    The last result is reused while every dependency compares equal to the
    previous call's (rules, overrides, ledger, today). All inputs are
    immutable snapshots, so structural equality is a safe cache key.
    """

    def __init__(
        self,
        months_ahead: int = DEFAULT_MONTHS_AHEAD,
        lookback_months: int = DEFAULT_LOOKBACK_MONTHS,
        enforce_end_date: bool = False,
    ):
        self.months_ahead = months_ahead
        self.lookback_months = lookback_months
        self.enforce_end_date = enforce_end_date
        self._memo_key: Optional[tuple] = None
        self._memo_value: tuple[LedgerEntry, ...] = ()
        self._computations = 0

    @classmethod
    def from_settings(cls, settings: ProjectionSettings) -> "ProjectionEngine":
        return cls(
            months_ahead=settings.months_ahead,
            lookback_months=settings.lookback_months,
            enforce_end_date=settings.enforce_end_date,
        )

    @property
    def computations(self) -> int:
        """How many times the projection was actually computed."""
        return self._computations

    def project(
        self,
        rules: Iterable[RecurrenceRule],
        overrides: OverrideStore,
        ledger: MaterializationLedger,
        today: date,
    ) -> list[LedgerEntry]:
        rules = tuple(rules)
        key = (rules, overrides, ledger, today)
        if self._memo_key is not None and self._memo_key == key:
            return list(self._memo_value)

        entries = project(
            rules,
            overrides,
            ledger,
            today,
            months_ahead=self.months_ahead,
            lookback_months=self.lookback_months,
            enforce_end_date=self.enforce_end_date,
        )
        self._computations += 1
        self._memo_key = key
        self._memo_value = tuple(entries)

        logger.debug(
            "projection_computed",
            today=today.isoformat(),
            rules=len(rules),
            persisted=len(ledger.transactions),
            projected=len(entries) - len(ledger.transactions),
        )
        return list(entries)

    def clear(self) -> None:
        self._memo_key = None
        self._memo_value = ()
