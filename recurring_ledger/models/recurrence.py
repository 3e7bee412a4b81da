"""
Core Data Models for Recurring Ledger

These models define the schemas for everything the projection engine
reads and produces. They are designed to:
1. Be immutable snapshots (the engine never mutates its inputs)
2. Compare structurally (safe memoization of projections)
3. Be serializable for storage and export
4. Keep the audit linkage between a rule and its materialized records

DESIGN DECISION: Anchor parameters are NOT range-checked by the rule model.
A stored rule with a bad anchor must still load; it is simply inert
(skipped by the engine). Range checks live in RuleValidator, which runs at
authoring time.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Literal, NamedTuple, Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)

# Alias for annotating fields that are themselves named ``date``
CalendarDate = date


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_rule_id() -> str:
    return f"rule-{uuid4().hex}"


def new_transaction_id() -> str:
    return f"txn-{uuid4().hex}"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Frequency(str, Enum):
    """How often a rule repeats."""
    MONTHLY = "monthly"
    WEEKLY = "weekly"


class ExpenseType(str, Enum):
    """Fixed obligations (rent) versus variable ones (utilities)."""
    FIXED = "fixed"
    VARIABLE = "variable"


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class TransactionStatus(str, Enum):
    """
    Status of a persisted transaction.

    Manual transactions may be entered as PROJECTED (planned) and later
    marked COMPLETED. Materialized occurrences are always COMPLETED.
    """
    PROJECTED = "projected"
    COMPLETED = "completed"


# =============================================================================
# RULES & OVERRIDES
# =============================================================================

class OccurrenceKey(NamedTuple):
    """
    Composite identity of one occurrence of one rule.

    canonical_date is always the unshifted date the schedule produced,
    never the effective (possibly overridden) date.
    """
    rule_id: str
    canonical_date: date


class RecurrenceRule(BaseModel):
    """
    A recurring financial obligation.

    Monthly rules anchor on day_of_month (1-31, clipped to short months).
    Weekly rules anchor on day_of_week (0 = Sunday ... 6 = Saturday).
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_rule_id,
        min_length=1,
        description="Unique rule ID"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="What the obligation is (e.g., 'Office rent')"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Nominal amount of each occurrence"
    )
    category_id: str = Field(
        ...,
        min_length=1,
        description="Category the occurrences are booked under"
    )
    expense_type: ExpenseType = ExpenseType.FIXED
    frequency: Frequency
    day_of_month: Optional[int] = Field(
        default=None,
        description="Anchor day for monthly rules (1-31)"
    )
    day_of_week: Optional[int] = Field(
        default=None,
        description="Anchor weekday for weekly rules (0 = Sunday)"
    )
    start_date: date = Field(
        ...,
        description="First occurrence date, as produced by resolve_anchor"
    )
    interval: int = Field(
        default=1,
        ge=1,
        le=120,
        description="Repeat every N months or N weeks"
    )
    end_date: Optional[date] = Field(
        default=None,
        description="Last date the obligation applies (not enforced by default)"
    )

    @property
    def anchor(self) -> Optional[int]:
        """The anchor parameter that matches this rule's frequency."""
        if self.frequency == Frequency.MONTHLY:
            return self.day_of_month
        return self.day_of_week

    def has_valid_anchor(self) -> bool:
        """True when the anchor parameter matches the frequency and is in range."""
        anchor = self.anchor
        if anchor is None:
            return False
        if self.frequency == Frequency.MONTHLY:
            return 1 <= anchor <= 31
        return 0 <= anchor <= 6


class RuleDraft(BaseModel):
    """
    Input for authoring a new rule.

    valid_from is the earliest date the user wants the obligation to
    apply; the rule's start_date is derived from it by resolve_anchor.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0)
    category_id: str = Field(..., min_length=1)
    expense_type: ExpenseType = ExpenseType.FIXED
    frequency: Frequency
    day_of_month: Optional[int] = None
    day_of_week: Optional[int] = None
    valid_from: date
    interval: int = Field(default=1, ge=1, le=120)
    end_date: Optional[date] = None

    @property
    def anchor(self) -> Optional[int]:
        if self.frequency == Frequency.MONTHLY:
            return self.day_of_month
        return self.day_of_week


class Override(BaseModel):
    """
    Per-occurrence adjustment of a rule.

    Either field may be absent; an absent field means "use the rule's
    value". An amount of zero is how a single occurrence is cancelled.
    """
    model_config = ConfigDict(frozen=True)

    date: Optional[CalendarDate] = Field(
        default=None,
        description="Effective date replacing the canonical date"
    )
    amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Effective amount replacing the rule amount"
    )

    def merged_with(self, partial: "Override") -> "Override":
        """
        Merge a partial override on top of this one.

        Fields set on the partial win; fields it leaves unset keep
        their current value.
        """
        updates = partial.model_dump(exclude_unset=True, exclude_none=True)
        return self.model_copy(update=updates)


# =============================================================================
# TRANSACTIONS & OCCURRENCES
# =============================================================================

class Transaction(BaseModel):
    """
    A permanent transaction record.

    CRITICAL: when derived from a rule, recurring_id and original_date
    link the record back to (rule, canonical date). That pair is then
    permanently excluded from projection.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_transaction_id,
        min_length=1,
        description="Unique transaction ID"
    )
    date: CalendarDate = Field(
        ...,
        description="Date the money moved (or is planned to move)"
    )
    original_date: Optional[CalendarDate] = Field(
        default=None,
        description="Canonical occurrence date, for records derived from a rule"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=200
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Transaction amount"
    )
    type: TransactionType = TransactionType.EXPENSE
    expense_type: Optional[ExpenseType] = None
    category_id: Optional[str] = None
    recurring: bool = Field(
        default=False,
        description="Always False for persisted records"
    )
    recurring_id: Optional[str] = Field(
        default=None,
        description="ID of the rule this record was materialized from"
    )
    status: TransactionStatus = TransactionStatus.COMPLETED
    created_at: datetime = Field(
        default_factory=_utcnow,
        description="When the record was created"
    )

    @property
    def effective_date(self) -> CalendarDate:
        return self.date

    @property
    def occurrence_key(self) -> Optional[OccurrenceKey]:
        """The (rule, canonical date) pair this record consumes, if any."""
        if self.recurring_id is None or self.original_date is None:
            return None
        return OccurrenceKey(self.recurring_id, self.original_date)


class ProjectedOccurrence(BaseModel):
    """
    An ephemeral occurrence computed from a rule.

    NEVER persisted. Recomputed on every expansion.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    effective_date: date
    canonical_date: date
    amount: Decimal
    rule_id: str
    description: str
    category_id: str
    expense_type: ExpenseType
    status: Literal["projected"] = "projected"

    @staticmethod
    def synthetic_id(rule_id: str, canonical_date: date) -> str:
        """Deterministic ID for the occurrence of a rule on a canonical date."""
        return f"gen-{rule_id}-{canonical_date.isoformat()}"

    @property
    def key(self) -> OccurrenceKey:
        return OccurrenceKey(self.rule_id, self.canonical_date)

    def materialize(self) -> Transaction:
        """Create the permanent record for this occurrence (new identity)."""
        return Transaction(
            date=self.effective_date,
            original_date=self.canonical_date,
            description=self.description,
            amount=self.amount,
            type=TransactionType.EXPENSE,
            expense_type=self.expense_type,
            category_id=self.category_id,
            recurring=False,
            recurring_id=self.rule_id,
            status=TransactionStatus.COMPLETED,
        )


LedgerEntry = Union[Transaction, ProjectedOccurrence]


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found on a rule."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'out_of_range', 'mismatch')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of the two-stage rule validation.

    Stage 1: Schema validation (anchor matches frequency, ranges)
    Stage 2: Semantic validation (date relationships)
    """

    validated_at: datetime = Field(default_factory=_utcnow)
    schema_valid: bool
    semantic_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.schema_valid and self.semantic_valid

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == "warning"]


# =============================================================================
# EXPORT / IMPORT
# =============================================================================

class LedgerExport(BaseModel):
    """
    Complete, versioned snapshot of every collection.

    overrides uses the persisted nested shape:
    {rule_id: {"YYYY-MM-DD": Override}}
    """

    version: int = Field(default=1, ge=1)
    exported_at: datetime = Field(default_factory=_utcnow)
    rules: list[RecurrenceRule] = Field(default_factory=list)
    overrides: dict[str, dict[CalendarDate, Override]] = Field(default_factory=dict)
    recorded_days: list[CalendarDate] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_unique_ids(self) -> 'LedgerExport':
        """Rule and transaction IDs must be unique within a bundle."""
        rule_ids = [r.id for r in self.rules]
        if len(rule_ids) != len(set(rule_ids)):
            raise ValueError("Duplicate rule IDs in export bundle")
        txn_ids = [t.id for t in self.transactions]
        if len(txn_ids) != len(set(txn_ids)):
            raise ValueError("Duplicate transaction IDs in export bundle")
        return self
