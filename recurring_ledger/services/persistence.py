"""
Debounced State Persistence

DESIGN DECISION: In-memory state is authoritative. Every command swaps in
a new snapshot immediately; writing it to storage happens later, once the
collection has been quiet for a short period. A burst of edits becomes one
write carrying the latest snapshot.

GUARANTEES:
- Each collection has its own saver, so a busy collection never delays
  another one
- Writes of one collection never overlap and are issued in order
- flush() writes whatever is pending right away (use it on shutdown)
- A failed write is logged (locally and to the audit trail) and never
  raised into the command that triggered it
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Optional

import structlog

from recurring_ledger.audit import AuditLogger
from recurring_ledger.config import PersistenceSettings, get_settings
from recurring_ledger.materialization.state import LedgerState
from recurring_ledger.models.ledger import MaterializationLedger
from recurring_ledger.recurrence.overrides import OverrideStore
from recurring_ledger.services.storage import LedgerStorageInterface, StorageError


logger = structlog.get_logger()

DEFAULT_QUIET_PERIOD_SECONDS = 2.0


class DebouncedSaver:
    """
    Writes the latest scheduled value after a quiet period.

    Must be used from inside a running event loop.
    """

    def __init__(
        self,
        name: str,
        save_fn: Callable[[Any], Awaitable[Any]],
        quiet_period: float = DEFAULT_QUIET_PERIOD_SECONDS,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.name = name
        self._save_fn = save_fn
        self._quiet_period = quiet_period
        self._audit = audit_logger
        self._pending: Any = None
        self._has_pending = False
        self._deadline = 0.0
        self._task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self.saves = 0
        self.failures = 0

    @property
    def pending(self) -> bool:
        """True while a scheduled value has not been written yet."""
        return self._has_pending

    def schedule(self, data: Any) -> None:
        """Replace the pending value and restart the quiet period."""
        loop = asyncio.get_running_loop()
        self._pending = data
        self._has_pending = True
        self._deadline = loop.time() + self._quiet_period
        if self._task is None or self._task.done():
            self._task = loop.create_task(self._run())

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while self._has_pending:
            delay = self._deadline - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
                continue
            await self._write()

    async def _write(self) -> bool:
        async with self._lock:
            if not self._has_pending:
                return True
            data = self._pending
            self._pending = None
            self._has_pending = False

            try:
                await self._save_fn(data)
            except Exception as e:
                self.failures += 1
                logger.error("debounced_save_failed", collection=self.name, error=str(e))
                if self._audit:
                    await self._audit.log_save_failed(self.name, str(e))
                return False

            self.saves += 1
            logger.debug("state_saved", collection=self.name)
            if self._audit:
                count = len(data) if hasattr(data, "__len__") else 1
                await self._audit.log_state_saved(self.name, count)
            return True

    async def flush(self) -> bool:
        """Write the pending value now. Returns False if the write failed."""
        result = await self._write()
        # A value scheduled while writing is left to the running task
        if not self._has_pending and self._task is not None and not self._task.done():
            self._task.cancel()
            self._task = None
        return result

    def cancel(self) -> None:
        """Drop the pending value without writing it."""
        self._pending = None
        self._has_pending = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None


class StatePersistence:
    """
    One debounced saver per persisted collection.

    notify() compares two snapshots and schedules a save only for the
    collections that actually changed.
    """

    COLLECTIONS = ("rules", "overrides", "recorded_days", "transactions")

    def __init__(
        self,
        storage: LedgerStorageInterface,
        quiet_period: float = DEFAULT_QUIET_PERIOD_SECONDS,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._savers = {
            "rules": DebouncedSaver(
                "rules", storage.save_rules, quiet_period, audit_logger
            ),
            "overrides": DebouncedSaver(
                "overrides", storage.save_overrides, quiet_period, audit_logger
            ),
            "recorded_days": DebouncedSaver(
                "recorded_days", storage.save_recorded_days, quiet_period, audit_logger
            ),
            "transactions": DebouncedSaver(
                "transactions", storage.save_transactions, quiet_period, audit_logger
            ),
        }

    @classmethod
    def from_settings(
        cls,
        storage: LedgerStorageInterface,
        settings: Optional[PersistenceSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ) -> "StatePersistence":
        settings = settings or get_settings().persistence
        return cls(
            storage,
            quiet_period=settings.quiet_period_seconds,
            audit_logger=audit_logger,
        )

    @property
    def storage(self) -> LedgerStorageInterface:
        return self._storage

    def saver(self, collection: str) -> DebouncedSaver:
        return self._savers[collection]

    @property
    def pending(self) -> list[str]:
        """Names of collections with an unwritten snapshot."""
        return [name for name in self.COLLECTIONS if self._savers[name].pending]

    def notify(self, previous: LedgerState, current: LedgerState) -> None:
        """Schedule saves for every collection that differs between snapshots."""
        if previous.rules != current.rules:
            self._savers["rules"].schedule(list(current.rules))
        if previous.overrides != current.overrides:
            self._savers["overrides"].schedule(current.overrides.to_nested())
        if previous.ledger.recorded_days != current.ledger.recorded_days:
            self._savers["recorded_days"].schedule(set(current.ledger.recorded_days))
        if previous.ledger.transactions != current.ledger.transactions:
            self._savers["transactions"].schedule(list(current.ledger.transactions))

    async def flush(self) -> bool:
        """Write every pending collection now."""
        results = [await self._savers[name].flush() for name in self.COLLECTIONS]
        return all(results)

    async def load_state(self) -> LedgerState:
        """
        Read all four collections into one snapshot.

        A storage failure is recorded in the audit trail and re-raised;
        starting from an empty state would overwrite the stored data on
        the next save.
        """
        try:
            rules = await self._storage.load_rules()
            overrides = OverrideStore.from_nested(await self._storage.load_overrides())
            recorded_days = await self._storage.load_recorded_days()
            transactions = await self._storage.load_transactions()
        except StorageError as e:
            logger.error("state_load_failed", error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"operation": "load_state"},
                )
            raise

        logger.info(
            "state_loaded",
            rules=len(rules),
            overrides=len(overrides),
            recorded_days=len(recorded_days),
            transactions=len(transactions),
        )
        return LedgerState(
            rules=tuple(rules),
            overrides=overrides,
            ledger=MaterializationLedger(
                transactions=tuple(transactions),
                recorded_days=frozenset(recorded_days),
            ),
        )
