"""
Day Closing

A calendar day is either Open or Closed. Closing is one-way; there is no
reopen.

record_day(day):
1. No-op if the day is already closed (idempotent)
2. Every projected occurrence whose effective date is the day, across all
   rules, becomes a new permanent Transaction that keeps the
   (recurring_id, original_date) linkage
3. The day is sealed into the recorded set

After it returns, no projection can show (a) any occurrence just
materialized, or (b) anything on that day, from any rule.
"""

from datetime import date

import structlog
from pydantic import BaseModel, ConfigDict, Field

from recurring_ledger.models.ledger import MaterializationLedger
from recurring_ledger.models.recurrence import ProjectedOccurrence, Transaction
from recurring_ledger.recurrence.anchor import month_index
from recurring_ledger.recurrence.engine import (
    DEFAULT_LOOKBACK_MONTHS,
    DEFAULT_MONTHS_AHEAD,
    generate_occurrences,
)
from recurring_ledger.materialization.state import LedgerState


logger = structlog.get_logger()


class DayClosingResult(BaseModel):
    """Outcome of closing one day."""

    model_config = ConfigDict(frozen=True)

    day: date
    ledger: MaterializationLedger
    materialized: tuple[Transaction, ...] = Field(default_factory=tuple)
    already_recorded: bool = False


def due_occurrences(
    state: LedgerState,
    day: date,
    today: date,
    months_ahead: int = DEFAULT_MONTHS_AHEAD,
    lookback_months: int = DEFAULT_LOOKBACK_MONTHS,
    enforce_end_date: bool = False,
) -> list[ProjectedOccurrence]:
    """
    Projected occurrences whose effective date is day.

    The projection window is widened when needed so that it always covers
    day and the canonical date of every occurrence an override moves onto
    day. Once day is sealed nothing can land on it again, so an occurrence
    moved there from outside the regular window must be picked up now.
    """
    covered = [day] + [key.canonical_date for key in state.overrides.moved_onto(day)]
    for target in covered:
        offset = month_index(target) - month_index(today)
        months_ahead = max(months_ahead, offset + 1)
        lookback_months = max(lookback_months, -offset)

    occurrences = generate_occurrences(
        state.rules,
        state.overrides,
        state.ledger,
        today,
        months_ahead=months_ahead,
        lookback_months=lookback_months,
        enforce_end_date=enforce_end_date,
    )
    return [o for o in occurrences if o.effective_date == day]


def record_day(
    state: LedgerState,
    day: date,
    today: date,
    months_ahead: int = DEFAULT_MONTHS_AHEAD,
    lookback_months: int = DEFAULT_LOOKBACK_MONTHS,
    enforce_end_date: bool = False,
) -> DayClosingResult:
    """
    Close a day. Pure: returns the new ledger instead of mutating anything.
    """
    if state.ledger.is_recorded(day):
        logger.info("day_already_recorded", day=day.isoformat())
        return DayClosingResult(day=day, ledger=state.ledger, already_recorded=True)

    due = due_occurrences(
        state,
        day,
        today,
        months_ahead=months_ahead,
        lookback_months=lookback_months,
        enforce_end_date=enforce_end_date,
    )
    materialized = tuple(occurrence.materialize() for occurrence in due)
    ledger = state.ledger.with_transactions(materialized).with_recorded_day(day)

    logger.info(
        "day_recorded",
        day=day.isoformat(),
        materialized=len(materialized),
        rules=sorted({t.recurring_id for t in materialized}),
    )
    return DayClosingResult(day=day, ledger=ledger, materialized=materialized)
