"""
Data Models Package

This package contains all Pydantic models used in the Recurring Ledger system.
All data flowing through the system must conform to these schemas.
"""

from recurring_ledger.models.recurrence import (
    ExpenseType,
    Frequency,
    LedgerEntry,
    LedgerExport,
    OccurrenceKey,
    Override,
    ProjectedOccurrence,
    RecurrenceRule,
    RuleDraft,
    Transaction,
    TransactionStatus,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from recurring_ledger.models.ledger import MaterializationLedger
from recurring_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Recurrence models
    "ExpenseType",
    "Frequency",
    "LedgerEntry",
    "LedgerExport",
    "OccurrenceKey",
    "Override",
    "ProjectedOccurrence",
    "RecurrenceRule",
    "RuleDraft",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    # Ledger snapshot
    "MaterializationLedger",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
