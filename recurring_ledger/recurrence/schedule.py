"""
Canonical Occurrence Schedule

Turns a rule into the ordered sequence of its canonical dates.

Period k of a rule is defined in closed form:
- Monthly: the month start_month + k * interval, on day_of_month clipped
  to that month's length
- Weekly: the first day_of_week on or after start_date, plus k * interval weeks

Each date is derived from k and the anchor alone, never from the previous
date, so a clipped February never pulls later months off their anchor day.
That is also what makes fast-forwarding safe: jumping straight to period k
yields the same date as stepping there one period at a time.
"""

from collections.abc import Iterator
from datetime import date, timedelta
from typing import Optional

from recurring_ledger.models.recurrence import Frequency, RecurrenceRule
from recurring_ledger.recurrence.anchor import (
    add_months,
    align_to_weekday,
    clipped_date,
    month_index,
)


def _monthly_date(rule: RecurrenceRule, period: int) -> date:
    year, month = add_months(
        rule.start_date.year, rule.start_date.month, period * rule.interval
    )
    return clipped_date(year, month, rule.day_of_month)


def _weekly_origin(rule: RecurrenceRule) -> date:
    return align_to_weekday(rule.start_date, rule.day_of_week)


def _weekly_date(rule: RecurrenceRule, period: int) -> date:
    return _weekly_origin(rule) + timedelta(weeks=period * rule.interval)


def occurrence_date(rule: RecurrenceRule, period: int) -> date:
    """Canonical date of the given period index (0 = first period)."""
    if rule.frequency == Frequency.MONTHLY:
        return _monthly_date(rule, period)
    return _weekly_date(rule, period)


def first_period_at_or_before(rule: RecurrenceRule, boundary: date) -> int:
    """
    Closed-form index of the last period whose canonical date is on or
    before boundary. Returns 0 when the rule starts after boundary.
    """
    if rule.frequency == Frequency.MONTHLY:
        months = month_index(boundary) - month_index(rule.start_date)
        if months <= 0:
            return 0
        period = months // rule.interval
        # Boundary month itself may land after the boundary day
        if period > 0 and _monthly_date(rule, period) > boundary:
            period -= 1
        return period

    days = (boundary - _weekly_origin(rule)).days
    if days <= 0:
        return 0
    return days // (7 * rule.interval)


def canonical_dates(
    rule: RecurrenceRule,
    until: date,
    since: Optional[date] = None,
    enforce_end_date: bool = False,
) -> Iterator[date]:
    """
    Yield the rule's canonical dates in ascending order up to until.

    Args:
        rule: A rule with a valid anchor (see RecurrenceRule.has_valid_anchor)
        until: Last date (inclusive) to generate
        since: Lookback boundary. When the rule starts before it, the
               sequence is fast-forwarded to the last period on or before
               since. The result is then exactly a suffix of the
               sequence generated with since=None.
        enforce_end_date: Stop after rule.end_date when set

    Canonical dates before rule.start_date are never produced.
    """
    period = 0
    if since is not None and rule.start_date < since:
        period = first_period_at_or_before(rule, since)

    while True:
        current = occurrence_date(rule, period)
        if current > until:
            return
        if enforce_end_date and rule.end_date is not None and current > rule.end_date:
            return
        if current >= rule.start_date:
            yield current
        period += 1
