"""
Audit Models for Recurring Ledger

Every user command that changes rules, overrides or the ledger is logged.
This provides:
1. Traceability of how each permanent record came to exist
2. Debugging information when projections look wrong
3. Ability to reconstruct who closed which day

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Rules
    RULE_CREATED = "rule_created"
    RULE_UPDATED = "rule_updated"
    RULE_DELETED = "rule_deleted"
    RULE_REJECTED = "rule_rejected"

    # Overrides
    OVERRIDE_SET = "override_set"

    # Materialization
    DAY_RECORDED = "day_recorded"
    OCCURRENCE_CONFIRMED = "occurrence_confirmed"
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Bulk data
    DATA_EXPORTED = "data_exported"
    DATA_IMPORTED = "data_imported"

    # Persistence
    STATE_SAVED = "state_saved"
    SAVE_FAILED = "save_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'rule', 'day', 'transaction')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one day closing)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_json_line(self) -> str:
        """Serialize as one line of the JSON-lines audit log."""
        return json.dumps(self.model_dump(mode="json"), ensure_ascii=False)


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.rule_created(rule_id, description, correlation_id)
        event = AuditEventBuilder.day_recorded(day, materialized_ids, correlation_id)
    """

    @staticmethod
    def rule_created(
        rule_id: str,
        description: str,
        start_date: date,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RULE_CREATED,
            entity_type="rule",
            entity_id=rule_id,
            correlation_id=correlation_id,
            description=f"Recurring rule created: {description}",
            details={
                "start_date": start_date.isoformat(),
            },
            is_user_action=True,
        )

    @staticmethod
    def rule_updated(
        rule_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RULE_UPDATED,
            entity_type="rule",
            entity_id=rule_id,
            correlation_id=correlation_id,
            description=f"Recurring rule updated ({', '.join(fields) or 'no fields'})",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def rule_deleted(
        rule_id: str,
        orphaned_overrides: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RULE_DELETED,
            entity_type="rule",
            entity_id=rule_id,
            correlation_id=correlation_id,
            description="Recurring rule deleted",
            details={"orphaned_overrides": orphaned_overrides},
            is_user_action=True,
        )

    @staticmethod
    def rule_rejected(
        issues: list[dict],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RULE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="rule",
            correlation_id=correlation_id,
            description=f"Rule rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def override_set(
        rule_id: str,
        canonical_date: date,
        fields: dict[str, str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OVERRIDE_SET,
            entity_type="rule",
            entity_id=rule_id,
            correlation_id=correlation_id,
            description=f"Occurrence of {canonical_date.isoformat()} adjusted",
            details={
                "canonical_date": canonical_date.isoformat(),
                **fields,
            },
            is_user_action=True,
        )

    @staticmethod
    def day_recorded(
        day: date,
        materialized_ids: list[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DAY_RECORDED,
            entity_type="day",
            entity_id=day.isoformat(),
            correlation_id=correlation_id,
            description=(
                f"Day {day.isoformat()} closed, "
                f"{len(materialized_ids)} occurrences materialized"
            ),
            details={"materialized_ids": materialized_ids},
            is_user_action=True,
        )

    @staticmethod
    def occurrence_confirmed(
        transaction_id: str,
        rule_id: str,
        canonical_date: date,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCCURRENCE_CONFIRMED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Projected occurrence of {canonical_date.isoformat()} confirmed",
            details={
                "rule_id": rule_id,
                "canonical_date": canonical_date.isoformat(),
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_changed(
        event_type: AuditEventType,
        transaction_id: str,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        verb = event_type.value.split("_", 1)[1]
        return AuditEvent(
            event_type=event_type,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction {verb}: {amount}",
            details={"amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def bulk_data(
        event_type: AuditEventType,
        counts: dict[str, int],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            correlation_id=correlation_id,
            description=f"Data {event_type.value.split('_', 1)[1]}",
            details=counts,
            is_user_action=True,
        )

    @staticmethod
    def state_saved(
        collection: str,
        count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_SAVED,
            severity=AuditSeverity.DEBUG,
            entity_type="collection",
            entity_id=collection,
            description=f"Saved {count} {collection}",
            details={"count": count},
        )

    @staticmethod
    def save_failed(
        collection: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="collection",
            entity_id=collection,
            description=f"Failed to save {collection}",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
