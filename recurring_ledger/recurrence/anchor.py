"""
Anchor Date Resolution and Calendar Arithmetic

resolve_anchor computes the first valid occurrence date for a rule being
authored. It is used ONLY at authoring time; expansion never calls it.

Weekdays follow the stored convention: 0 = Sunday ... 6 = Saturday.
Python's date.weekday() uses 0 = Monday, so every comparison goes through
sunday_weekday().
"""

import calendar
from datetime import date, timedelta

from recurring_ledger.models.recurrence import Frequency


def days_in_month(year: int, month: int) -> int:
    """Number of days in the given month (handles leap years)."""
    return calendar.monthrange(year, month)[1]


def add_months(year: int, month: int, months: int) -> tuple[int, int]:
    """Shift (year, month) by a whole number of months, either direction."""
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def month_index(d: date) -> int:
    """Months since year 0; differences give whole-month distances."""
    return d.year * 12 + (d.month - 1)


def clipped_date(year: int, month: int, day: int) -> date:
    """The given day in the given month, clipped to the month's last day."""
    return date(year, month, min(day, days_in_month(year, month)))


def sunday_weekday(d: date) -> int:
    """Weekday with 0 = Sunday."""
    return (d.weekday() + 1) % 7


def align_to_weekday(d: date, day_of_week: int) -> date:
    """First date on or after d that falls on day_of_week (0 = Sunday)."""
    return d + timedelta(days=(day_of_week - sunday_weekday(d) + 7) % 7)


def resolve_anchor(valid_from: date, frequency: Frequency, target: int) -> date:
    """
    Compute the first occurrence date of a new rule.

    Args:
        valid_from: Earliest date the rule applies
        frequency: Rule frequency
        target: day_of_week (0-6, 0 = Sunday) for weekly rules,
                day_of_month (1-31) for monthly rules

    Returns:
        Weekly: valid_from advanced to the next target weekday (or itself).
        Monthly: the target day of valid_from's month, or of the next month
        when valid_from is already past it; clipped to short months.

    Raises:
        ValueError: If target is out of range for the frequency
    """
    frequency = Frequency(frequency)

    if frequency == Frequency.WEEKLY:
        if not 0 <= target <= 6:
            raise ValueError(f"day_of_week must be in 0..6, got {target}")
        return align_to_weekday(valid_from, target)

    if not 1 <= target <= 31:
        raise ValueError(f"day_of_month must be in 1..31, got {target}")

    year, month = valid_from.year, valid_from.month
    if valid_from.day > target:
        year, month = add_months(year, month, 1)
    return clipped_date(year, month, target)
