"""Recurrence package: anchor resolution, schedules, overrides and projection."""

from recurring_ledger.recurrence.anchor import (
    add_months,
    days_in_month,
    resolve_anchor,
    sunday_weekday,
)
from recurring_ledger.recurrence.engine import (
    ProjectionEngine,
    expand_rule,
    generate_occurrences,
    merge_entries,
    project,
    projection_window,
)
from recurring_ledger.recurrence.overrides import OverrideStore
from recurring_ledger.recurrence.schedule import canonical_dates, occurrence_date

__all__ = [
    # Anchor resolution
    "add_months",
    "days_in_month",
    "resolve_anchor",
    "sunday_weekday",
    # Schedules
    "canonical_dates",
    "occurrence_date",
    # Overrides
    "OverrideStore",
    # Projection
    "ProjectionEngine",
    "expand_rule",
    "generate_occurrences",
    "merge_entries",
    "project",
    "projection_window",
]
