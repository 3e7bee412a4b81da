"""
Audit Logger

DESIGN DECISION: Every command that changes rules, overrides or the ledger
is logged. This provides:
1. Complete traceability of permanent records
2. Debugging capability when a projection looks wrong

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from datetime import date
from typing import Optional
from uuid import UUID, uuid4

import structlog

from recurring_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from recurring_ledger.services.storage import AuditStorageInterface


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_rule_created(
        self,
        rule_id: str,
        description: str,
        start_date: date,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log rule creation."""
        await self.log(AuditEventBuilder.rule_created(
            rule_id=rule_id,
            description=description,
            start_date=start_date,
            correlation_id=correlation_id,
        ))

    async def log_rule_updated(
        self,
        rule_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.rule_updated(
            rule_id=rule_id,
            fields=fields,
            correlation_id=correlation_id,
        ))

    async def log_rule_deleted(
        self,
        rule_id: str,
        orphaned_overrides: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.rule_deleted(
            rule_id=rule_id,
            orphaned_overrides=orphaned_overrides,
            correlation_id=correlation_id,
        ))

    async def log_rule_rejected(
        self,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a draft that failed validation."""
        await self.log(AuditEventBuilder.rule_rejected(
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_override_set(
        self,
        rule_id: str,
        canonical_date: date,
        fields: dict[str, str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.override_set(
            rule_id=rule_id,
            canonical_date=canonical_date,
            fields=fields,
            correlation_id=correlation_id,
        ))

    async def log_day_recorded(
        self,
        day: date,
        materialized_ids: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a day closing and what it materialized."""
        await self.log(AuditEventBuilder.day_recorded(
            day=day,
            materialized_ids=materialized_ids,
            correlation_id=correlation_id,
        ))

    async def log_occurrence_confirmed(
        self,
        transaction_id: str,
        rule_id: str,
        canonical_date: date,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.occurrence_confirmed(
            transaction_id=transaction_id,
            rule_id=rule_id,
            canonical_date=canonical_date,
            correlation_id=correlation_id,
        ))

    async def log_transaction_changed(
        self,
        event_type: AuditEventType,
        transaction_id: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_changed(
            event_type=event_type,
            transaction_id=transaction_id,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_bulk_data(
        self,
        event_type: AuditEventType,
        counts: dict[str, int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.bulk_data(
            event_type=event_type,
            counts=counts,
            correlation_id=correlation_id,
        ))

    async def log_state_saved(self, collection: str, count: int) -> None:
        await self.log(AuditEventBuilder.state_saved(collection=collection, count=count))

    async def log_save_failed(self, collection: str, error_message: str) -> None:
        """Log a background save that gave up."""
        await self.log(AuditEventBuilder.save_failed(
            collection=collection,
            error_message=error_message,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user command (e.g., closing a day).
    Pass it through all subsequent operations.
    """
    return uuid4()
