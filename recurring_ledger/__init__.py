"""
Recurring Ledger - Source Package

Projects recurring financial obligations (rent, payroll, subscriptions)
onto a rolling calendar horizon and turns them into permanent records
exactly once, when a day is closed.

DESIGN PRINCIPLES:
1. Projection is a pure function of explicit state
2. A closed day is closed for every rule
3. An occurrence is materialized at most once
4. Every user command is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Recurring Ledger Team"

from recurring_ledger.config.logging_setup import configure_logging

configure_logging()
