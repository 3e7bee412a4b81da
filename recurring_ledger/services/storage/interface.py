"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the JSON file backend for a real database later
2. Use in-memory storage for testing
3. Keep the projection engine unaware that storage exists at all

Each collection is loaded and saved as a whole. The application replaces
its in-memory snapshots atomically and writes them back (debounced), so
there is no need for row-level operations here.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Any
from uuid import UUID

from recurring_ledger.models.audit import AuditEvent
from recurring_ledger.models.recurrence import RecurrenceRule, Transaction


class LedgerStorageInterface(ABC):
    """
    Abstract interface for the four persisted collections.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def load_rules(self) -> list[RecurrenceRule]:
        """
        Load all recurring rules.

        Returns:
            Rules in stored order (empty if nothing stored yet)

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def save_rules(self, rules: list[RecurrenceRule]) -> bool:
        """
        Replace the stored rules.

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def load_overrides(self) -> dict[str, dict[str, dict[str, Any]]]:
        """
        Load overrides in their nested shape:
        {rule_id: {"YYYY-MM-DD": {"date": "YYYY-MM-DD", "amount": "123.45"}}}
        """
        pass

    @abstractmethod
    async def save_overrides(self, overrides: dict[str, dict[str, dict[str, Any]]]) -> bool:
        """Replace the stored overrides (nested shape)."""
        pass

    @abstractmethod
    async def load_recorded_days(self) -> set[date]:
        """Load the set of closed calendar days."""
        pass

    @abstractmethod
    async def save_recorded_days(self, days: set[date]) -> bool:
        """Replace the stored set of closed calendar days."""
        pass

    @abstractmethod
    async def load_transactions(self) -> list[Transaction]:
        """Load all persisted transactions."""
        pass

    @abstractmethod
    async def save_transactions(self, transactions: list[Transaction]) -> bool:
        """Replace the stored transactions."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one day closing).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Args:
            entity_type: Type of entity (e.g., 'rule', 'day')
            entity_id: The entity's ID

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class CorruptDataError(StorageError):
    """Stored document exists but cannot be parsed."""
    pass
