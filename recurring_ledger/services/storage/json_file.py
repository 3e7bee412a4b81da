"""
JSON File Storage Implementation

DESIGN DECISION: Each collection lives in its own JSON document inside one
data directory:
- rules.json
- overrides.json
- recorded_days.json
- transactions.json

Writes go to a temporary file first and are moved into place with
os.replace, so a reader never sees a half-written document.

TRADEOFFS:
- Whole-collection rewrites (fine for a small business's volume)
- No cross-document transactions (the debounced saver writes each
  collection independently)
"""

import json
import os
from datetime import date
from pathlib import Path
from typing import Any, Optional
from uuid import UUID

import structlog
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from recurring_ledger.config import PersistenceSettings, get_settings
from recurring_ledger.models.audit import AuditEvent
from recurring_ledger.models.recurrence import RecurrenceRule, Transaction
from recurring_ledger.services.storage.interface import (
    AuditStorageInterface,
    CorruptDataError,
    LedgerStorageInterface,
    StorageError,
)


logger = structlog.get_logger()

RULES_FILE = "rules.json"
OVERRIDES_FILE = "overrides.json"
RECORDED_DAYS_FILE = "recorded_days.json"
TRANSACTIONS_FILE = "transactions.json"


@retry(
    retry=retry_if_exception_type(OSError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
    reraise=True,
)
def _write_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_text(text, encoding="utf-8")
    os.replace(tmp_path, path)


@retry(
    retry=retry_if_exception_type(OSError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
    reraise=True,
)
def _append_line(path: Path, line: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(line + "\n")


class JsonFileLedgerStorage(LedgerStorageInterface):
    """
    JSON file implementation of ledger storage.

    Records that fail validation on load are skipped (and logged) rather
    than failing the whole collection.
    """

    def __init__(self, data_dir: Path):
        self._data_dir = Path(data_dir)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[PersistenceSettings] = None,
    ) -> "JsonFileLedgerStorage":
        settings = settings or get_settings().persistence
        return cls(settings.data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _read_document(self, filename: str, default: Any) -> Any:
        path = self._data_dir / filename
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return default
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}")

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise CorruptDataError(f"{path} is not valid JSON: {e}")

    def _write_document(self, filename: str, payload: Any) -> bool:
        path = self._data_dir / filename
        try:
            _write_atomic(path, json.dumps(payload, indent=2, ensure_ascii=False))
            return True
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}")

    def _read_list(self, filename: str) -> list:
        data = self._read_document(filename, [])
        if not isinstance(data, list):
            raise CorruptDataError(f"{filename} must hold a JSON list")
        return data

    async def load_rules(self) -> list[RecurrenceRule]:
        rules = []
        for index, raw in enumerate(self._read_list(RULES_FILE)):
            try:
                rules.append(RecurrenceRule.model_validate(raw))
            except ValidationError as e:
                logger.warning("stored_rule_skipped", index=index, error=str(e))
        return rules

    async def save_rules(self, rules: list[RecurrenceRule]) -> bool:
        return self._write_document(
            RULES_FILE, [rule.model_dump(mode="json") for rule in rules]
        )

    async def load_overrides(self) -> dict[str, dict[str, dict[str, Any]]]:
        data = self._read_document(OVERRIDES_FILE, {})
        if not isinstance(data, dict):
            raise CorruptDataError(f"{OVERRIDES_FILE} must hold a JSON object")
        return data

    async def save_overrides(self, overrides: dict[str, dict[str, dict[str, Any]]]) -> bool:
        return self._write_document(OVERRIDES_FILE, overrides)

    async def load_recorded_days(self) -> set[date]:
        days = set()
        for raw in self._read_list(RECORDED_DAYS_FILE):
            try:
                days.add(date.fromisoformat(raw))
            except (TypeError, ValueError):
                logger.warning("stored_recorded_day_skipped", value=repr(raw))
        return days

    async def save_recorded_days(self, days: set[date]) -> bool:
        return self._write_document(
            RECORDED_DAYS_FILE, [day.isoformat() for day in sorted(days)]
        )

    async def load_transactions(self) -> list[Transaction]:
        transactions = []
        for index, raw in enumerate(self._read_list(TRANSACTIONS_FILE)):
            try:
                transactions.append(Transaction.model_validate(raw))
            except ValidationError as e:
                logger.warning("stored_transaction_skipped", index=index, error=str(e))
        return transactions

    async def save_transactions(self, transactions: list[Transaction]) -> bool:
        return self._write_document(
            TRANSACTIONS_FILE, [t.model_dump(mode="json") for t in transactions]
        )


class JsonLinesAuditStorage(AuditStorageInterface):
    """
    Append-only audit log, one JSON event per line.
    """

    def __init__(self, path: Path):
        self._path = Path(path)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[PersistenceSettings] = None,
    ) -> "JsonLinesAuditStorage":
        settings = settings or get_settings().persistence
        return cls(settings.data_dir / settings.audit_log_filename)

    def _read_events(self) -> list[AuditEvent]:
        try:
            lines = self._path.read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageError(f"Failed to read audit log: {e}")

        events = []
        for line in lines:
            if not line.strip():
                continue
            try:
                events.append(AuditEvent.model_validate_json(line))
            except ValidationError:
                continue  # Skip malformed lines
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            _append_line(self._path, event.to_json_line())
            return True
        except OSError as e:
            # Audit logging should not break the main flow
            logger.error("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._read_events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._read_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        # File order is append order
        return list(reversed(self._read_events()))[:limit]
