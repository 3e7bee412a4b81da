"""
Main Orchestrator for Recurring Ledger

This module ties together all the components and defines the commands
that change the ledger:
1. Rule maintenance (author, update, delete, per-occurrence overrides)
2. Materialization (close a day, confirm one occurrence, undo)
3. Manual transactions
4. Export / import of every collection

DESIGN DECISION: The orchestrator enforces the boundaries:
- The projection engine is pure; only this module changes state
- Every command builds a new LedgerState and swaps it in whole
- Persistence is notified after the swap and writes in the background
- Every command is audited

"today" is captured once per command and passed down explicitly.
"""

from collections.abc import Callable
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional
from uuid import UUID

import structlog

from recurring_ledger.audit import AuditLogger, create_correlation_id
from recurring_ledger.config import ProjectionSettings, configure_logging, get_settings
from recurring_ledger.materialization import DayClosingResult, LedgerState, record_day
from recurring_ledger.models.audit import AuditEventType
from recurring_ledger.models.ledger import MaterializationLedger
from recurring_ledger.models.recurrence import (
    LedgerEntry,
    LedgerExport,
    OccurrenceKey,
    ProjectedOccurrence,
    RecurrenceRule,
    RuleDraft,
    Transaction,
    ValidationResult,
)
from recurring_ledger.recurrence import OverrideStore, ProjectionEngine, projection_window
from recurring_ledger.services.persistence import StatePersistence
from recurring_ledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    JsonFileLedgerStorage,
    JsonLinesAuditStorage,
)
from recurring_ledger.validation import RuleValidationError, RuleValidator, author_rule


logger = structlog.get_logger()


class LedgerError(Exception):
    """A command cannot be applied to the current state."""
    pass


class RuleNotFoundError(LedgerError):
    """No rule with the given ID."""
    pass


class TransactionNotFoundError(LedgerError):
    """No transaction with the given ID."""
    pass


class LedgerService:
    """
    Owns the current LedgerState and applies commands to it.

    Reads (project) are synchronous and memoized. Commands are async
    because they audit and notify persistence.
    """

    def __init__(
        self,
        state: Optional[LedgerState] = None,
        engine: Optional[ProjectionEngine] = None,
        persistence: Optional[StatePersistence] = None,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[RuleValidator] = None,
        projection_settings: Optional[ProjectionSettings] = None,
        clock: Optional[Callable[[], date]] = None,
    ):
        if engine is None:
            engine = ProjectionEngine.from_settings(
                projection_settings or get_settings().projection
            )
        self._state = state or LedgerState()
        self._engine = engine
        self._persistence = persistence
        self._audit_logger = audit_logger
        self._validator = validator or RuleValidator()
        self._clock = clock or date.today

    @classmethod
    async def load(
        cls,
        persistence: StatePersistence,
        **kwargs: Any,
    ) -> "LedgerService":
        """Build a service from whatever the persistence storage holds."""
        state = await persistence.load_state()
        return cls(state=state, persistence=persistence, **kwargs)

    @property
    def state(self) -> LedgerState:
        """The current immutable snapshot."""
        return self._state

    @property
    def engine(self) -> ProjectionEngine:
        return self._engine

    def _commit(self, new_state: LedgerState) -> None:
        previous = self._state
        self._state = new_state
        if self._persistence:
            self._persistence.notify(previous, new_state)

    def _require_rule(self, rule_id: str) -> RecurrenceRule:
        rule = self._state.get_rule(rule_id)
        if rule is None:
            raise RuleNotFoundError(f"Rule not found: {rule_id}")
        return rule

    def _require_transaction(self, transaction_id: str) -> Transaction:
        transaction = self._state.ledger.get_transaction(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(f"Transaction not found: {transaction_id}")
        return transaction

    # =========================================================================
    # READS
    # =========================================================================

    def project(self, today: Optional[date] = None) -> list[LedgerEntry]:
        """
        Persisted transactions merged with projected occurrences.

        Recomputed only when the state or today changed since the last call.
        """
        today = today or self._clock()
        state = self._state
        return self._engine.project(state.rules, state.overrides, state.ledger, today)

    def check_rule(self, rule_id: str, today: Optional[date] = None) -> ValidationResult:
        """Validate a stored rule against the current projection window."""
        rule = self._require_rule(rule_id)
        horizon_start, _ = projection_window(
            today or self._clock(),
            self._engine.months_ahead,
            self._engine.lookback_months,
        )
        return self._validator.validate(rule, horizon_start=horizon_start)

    # =========================================================================
    # RULES & OVERRIDES
    # =========================================================================

    async def add_rule(
        self,
        draft: RuleDraft,
        correlation_id: Optional[UUID] = None,
    ) -> RecurrenceRule:
        """
        Validate a draft and add the resulting rule.

        Raises:
            RuleValidationError: If the draft has error-level issues
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            rule = author_rule(draft, self._validator)
        except RuleValidationError as e:
            if self._audit_logger:
                issues = [
                    {"field": i.field, "type": i.issue_type, "message": i.message}
                    for i in e.result.issues
                ]
                await self._audit_logger.log_rule_rejected(
                    issues=issues,
                    correlation_id=correlation_id,
                )
            raise

        self._commit(self._state.evolve(rules=self._state.rules + (rule,)))

        if self._audit_logger:
            await self._audit_logger.log_rule_created(
                rule_id=rule.id,
                description=rule.description,
                start_date=rule.start_date,
                correlation_id=correlation_id,
            )
        return rule

    async def update_rule(
        self,
        rule_id: str,
        correlation_id: Optional[UUID] = None,
        **fields: Any,
    ) -> RecurrenceRule:
        """
        Merge field changes into a rule. Overrides are left untouched; any
        that no longer match a canonical date simply stop applying.

        Raises:
            RuleNotFoundError: If the rule does not exist
            RuleValidationError: If the updated rule has error-level issues
        """
        correlation_id = correlation_id or create_correlation_id()
        rule = self._require_rule(rule_id)
        if "id" in fields and fields["id"] != rule_id:
            raise LedgerError("A rule's ID cannot be changed")

        updated = RecurrenceRule.model_validate({**rule.model_dump(), **fields})
        result = self._validator.validate(updated)
        if result.has_errors:
            raise RuleValidationError(result)

        rules = tuple(updated if r.id == rule_id else r for r in self._state.rules)
        self._commit(self._state.evolve(rules=rules))

        if self._audit_logger:
            await self._audit_logger.log_rule_updated(
                rule_id=rule_id,
                fields=sorted(fields),
                correlation_id=correlation_id,
            )
        return updated

    async def delete_rule(
        self,
        rule_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> RecurrenceRule:
        """
        Remove a rule. Its overrides and materialized transactions stay.

        Raises:
            RuleNotFoundError: If the rule does not exist
        """
        correlation_id = correlation_id or create_correlation_id()
        rule = self._require_rule(rule_id)

        rules = tuple(r for r in self._state.rules if r.id != rule_id)
        self._commit(self._state.evolve(rules=rules))

        if self._audit_logger:
            await self._audit_logger.log_rule_deleted(
                rule_id=rule_id,
                orphaned_overrides=len(self._state.overrides.for_rule(rule_id)),
                correlation_id=correlation_id,
            )
        return rule

    async def set_override(
        self,
        rule_id: str,
        canonical_date: date,
        *,
        date: Optional[date] = None,
        amount: Optional[Decimal] = None,
        correlation_id: Optional[UUID] = None,
    ) -> OverrideStore:
        """
        Merge a partial override into one occurrence of a rule.

        Raises:
            RuleNotFoundError: If the rule does not exist
            LedgerError: If neither date nor amount is given
        """
        correlation_id = correlation_id or create_correlation_id()
        self._require_rule(rule_id)
        if date is None and amount is None:
            raise LedgerError("An override needs a date, an amount, or both")

        overrides = self._state.overrides.set(
            rule_id, canonical_date, date=date, amount=amount
        )
        self._commit(self._state.evolve(overrides=overrides))

        if self._audit_logger:
            fields = {}
            if date is not None:
                fields["date"] = date.isoformat()
            if amount is not None:
                fields["amount"] = str(amount)
            await self._audit_logger.log_override_set(
                rule_id=rule_id,
                canonical_date=canonical_date,
                fields=fields,
                correlation_id=correlation_id,
            )
        return overrides

    async def skip_occurrence(
        self,
        rule_id: str,
        canonical_date: date,
        correlation_id: Optional[UUID] = None,
    ) -> OverrideStore:
        """Cancel a single occurrence by overriding its amount to zero."""
        return await self.set_override(
            rule_id,
            canonical_date,
            amount=Decimal("0"),
            correlation_id=correlation_id,
        )

    # =========================================================================
    # MATERIALIZATION
    # =========================================================================

    async def record_day(
        self,
        day: date,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> DayClosingResult:
        """
        Close a day: materialize everything due on it and seal it.

        Safe to call twice; the second call changes nothing.
        """
        correlation_id = correlation_id or create_correlation_id()
        today = today or self._clock()

        result = record_day(
            self._state,
            day,
            today,
            months_ahead=self._engine.months_ahead,
            lookback_months=self._engine.lookback_months,
            enforce_end_date=self._engine.enforce_end_date,
        )
        if result.already_recorded:
            return result

        self._commit(self._state.evolve(ledger=result.ledger))

        if self._audit_logger:
            await self._audit_logger.log_day_recorded(
                day=day,
                materialized_ids=[t.id for t in result.materialized],
                correlation_id=correlation_id,
            )
        return result

    async def confirm_occurrence(
        self,
        occurrence: ProjectedOccurrence,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Materialize one projected occurrence ahead of its day being closed.

        Raises:
            RuleNotFoundError: If the occurrence's rule no longer exists
            LedgerError: If the occurrence is already materialized or its
                         day is already closed
        """
        correlation_id = correlation_id or create_correlation_id()
        self._require_rule(occurrence.rule_id)
        ledger = self._state.ledger
        if ledger.is_consumed(occurrence.key):
            raise LedgerError(
                f"Occurrence {occurrence.canonical_date.isoformat()} of "
                f"{occurrence.rule_id} is already materialized"
            )
        if ledger.is_recorded(occurrence.effective_date):
            raise LedgerError(f"Day {occurrence.effective_date.isoformat()} is closed")

        transaction = occurrence.materialize()
        self._commit(self._state.evolve(ledger=ledger.with_transactions([transaction])))

        if self._audit_logger:
            await self._audit_logger.log_occurrence_confirmed(
                transaction_id=transaction.id,
                rule_id=occurrence.rule_id,
                canonical_date=occurrence.canonical_date,
                correlation_id=correlation_id,
            )
        return transaction

    async def undo_transaction(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Delete a materialized transaction so its occurrence is projected
        again (unless the day it falls on is closed).

        Raises:
            TransactionNotFoundError: If the transaction does not exist
            LedgerError: If the transaction was not derived from a rule
        """
        transaction = self._require_transaction(transaction_id)
        if transaction.occurrence_key is None:
            raise LedgerError(
                f"Transaction {transaction_id} was not derived from a rule; "
                "use delete_transaction"
            )
        return await self._remove_transaction(transaction, correlation_id)

    # =========================================================================
    # MANUAL TRANSACTIONS
    # =========================================================================

    async def add_transaction(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Add a manually entered transaction.

        Raises:
            LedgerError: If the ID exists or it consumes an occurrence that
                         is already materialized
        """
        correlation_id = correlation_id or create_correlation_id()
        ledger = self._state.ledger
        if ledger.get_transaction(transaction.id) is not None:
            raise LedgerError(f"Transaction already exists: {transaction.id}")
        key = transaction.occurrence_key
        if key is not None and ledger.is_consumed(key):
            raise LedgerError(
                f"Occurrence {key.canonical_date.isoformat()} of "
                f"{key.rule_id} is already materialized"
            )

        self._commit(self._state.evolve(ledger=ledger.with_transactions([transaction])))

        if self._audit_logger:
            await self._audit_logger.log_transaction_changed(
                event_type=AuditEventType.TRANSACTION_ADDED,
                transaction_id=transaction.id,
                amount=str(transaction.amount),
                correlation_id=correlation_id,
            )
        return transaction

    async def update_transaction(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
        **fields: Any,
    ) -> Transaction:
        """
        Merge field changes into a transaction, keeping its position.

        Raises:
            TransactionNotFoundError: If the transaction does not exist
        """
        correlation_id = correlation_id or create_correlation_id()
        transaction = self._require_transaction(transaction_id)
        if "id" in fields and fields["id"] != transaction_id:
            raise LedgerError("A transaction's ID cannot be changed")

        updated = Transaction.model_validate({**transaction.model_dump(), **fields})
        ledger = self._state.ledger.replacing_transaction(updated)
        self._commit(self._state.evolve(ledger=ledger))

        if self._audit_logger:
            await self._audit_logger.log_transaction_changed(
                event_type=AuditEventType.TRANSACTION_UPDATED,
                transaction_id=transaction_id,
                amount=str(updated.amount),
                correlation_id=correlation_id,
            )
        return updated

    async def delete_transaction(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Raises:
            TransactionNotFoundError: If the transaction does not exist
        """
        transaction = self._require_transaction(transaction_id)
        return await self._remove_transaction(transaction, correlation_id)

    async def _remove_transaction(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID],
    ) -> Transaction:
        correlation_id = correlation_id or create_correlation_id()
        ledger = self._state.ledger.without_transaction(transaction.id)
        self._commit(self._state.evolve(ledger=ledger))

        if self._audit_logger:
            await self._audit_logger.log_transaction_changed(
                event_type=AuditEventType.TRANSACTION_DELETED,
                transaction_id=transaction.id,
                amount=str(transaction.amount),
                correlation_id=correlation_id,
            )
        return transaction

    # =========================================================================
    # EXPORT / IMPORT
    # =========================================================================

    async def export_bundle(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerExport:
        """Snapshot every collection into one versioned bundle."""
        state = self._state
        overrides: dict[str, dict[date, Any]] = {}
        for key in sorted(state.overrides):
            overrides.setdefault(key.rule_id, {})[key.canonical_date] = (
                state.overrides.get(*key)
            )

        bundle = LedgerExport(
            rules=list(state.rules),
            overrides=overrides,
            recorded_days=sorted(state.ledger.recorded_days),
            transactions=list(state.ledger.transactions),
        )

        if self._audit_logger:
            await self._audit_logger.log_bulk_data(
                event_type=AuditEventType.DATA_EXPORTED,
                counts=self._bundle_counts(bundle),
                correlation_id=correlation_id,
            )
        return bundle

    async def import_bundle(
        self,
        bundle: LedgerExport,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerState:
        """
        Replace the whole state with the bundle's contents.

        The bundle is already validated (unique IDs) by LedgerExport.
        """
        overrides = OverrideStore({
            OccurrenceKey(rule_id, canonical): override
            for rule_id, by_date in bundle.overrides.items()
            for canonical, override in by_date.items()
        })
        state = LedgerState(
            rules=tuple(bundle.rules),
            overrides=overrides,
            ledger=MaterializationLedger(
                transactions=tuple(bundle.transactions),
                recorded_days=frozenset(bundle.recorded_days),
            ),
        )
        self._commit(state)

        logger.info("bundle_imported", **self._bundle_counts(bundle))
        if self._audit_logger:
            await self._audit_logger.log_bulk_data(
                event_type=AuditEventType.DATA_IMPORTED,
                counts=self._bundle_counts(bundle),
                correlation_id=correlation_id,
            )
        return state

    @staticmethod
    def _bundle_counts(bundle: LedgerExport) -> dict[str, int]:
        return {
            "rules": len(bundle.rules),
            "overrides": sum(len(v) for v in bundle.overrides.values()),
            "recorded_days": len(bundle.recorded_days),
            "transactions": len(bundle.transactions),
        }

    async def flush(self) -> bool:
        """Write every pending change now (call before shutdown)."""
        if self._persistence is None:
            return True
        return await self._persistence.flush()


async def create_app_components(
    use_storage: bool = True,
    data_dir: Optional[Path] = None,
) -> LedgerService:
    """
    Factory function to create a ready-to-use LedgerService.

    Args:
        use_storage: Whether to use JSON files on disk.
                    Set to False for throwaway in-memory sessions.
        data_dir: Overrides PERSISTENCE_DATA_DIR

    Returns:
        A LedgerService loaded from storage
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)
    persistence_settings = settings.persistence

    if use_storage:
        directory = Path(data_dir) if data_dir else persistence_settings.data_dir
        ledger_storage = JsonFileLedgerStorage(directory)
        audit_storage = JsonLinesAuditStorage(
            directory / persistence_settings.audit_log_filename
        )
    else:
        ledger_storage = InMemoryLedgerStorage()
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)
    persistence = StatePersistence.from_settings(
        ledger_storage,
        persistence_settings,
        audit_logger=audit_logger,
    )
    return await LedgerService.load(
        persistence,
        audit_logger=audit_logger,
        projection_settings=settings.projection,
    )
