"""
Two-Stage Rule Validation

STAGE 1 - SCHEMA VALIDATION:
- The anchor parameter matching the frequency is present
- The anchor is in range (1-31 for monthly, 0-6 for weekly)

STAGE 2 - SEMANTIC VALIDATION:
- End date not before the start
- Start date sitting on the anchor
- End dates that will not stop generation

Stage 2 is skipped when stage 1 fails; semantic checks on a rule without
a usable anchor would only produce noise.

IMPORTANT: Validation NEVER silently fixes issues. The projection engine
independently skips rules with a bad anchor, so a rule that slipped past
validation (e.g., loaded from storage) is inert rather than fatal.
"""

from datetime import date
from typing import Optional, Union

from recurring_ledger.models.recurrence import (
    Frequency,
    RecurrenceRule,
    RuleDraft,
    ValidationIssue,
    ValidationResult,
)
from recurring_ledger.recurrence.anchor import clipped_date, sunday_weekday


RuleLike = Union[RecurrenceRule, RuleDraft]

WEEKDAY_NAMES = [
    "Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday",
]


class RuleValidationError(ValueError):
    """A rule failed validation with at least one error-level issue."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(i.message for i in result.issues if i.severity == "error")
        super().__init__(f"Invalid recurring rule: {messages}")


class RuleValidator:
    """Validates rules and rule drafts."""

    def _validate_schema(self, rule: RuleLike) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: anchor presence and range.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if rule.frequency == Frequency.MONTHLY:
            field, other, low, high = "day_of_month", "day_of_week", 1, 31
        else:
            field, other, low, high = "day_of_week", "day_of_month", 0, 6

        anchor = getattr(rule, field)
        if anchor is None:
            issues.append(ValidationIssue(
                field=field,
                issue_type="missing",
                message=f"{rule.frequency.value.capitalize()} rules need {field}",
                severity="error",
            ))
        elif not low <= anchor <= high:
            issues.append(ValidationIssue(
                field=field,
                issue_type="out_of_range",
                message=f"{field} must be between {low} and {high}, got {anchor}",
                severity="error",
            ))

        if getattr(rule, other) is not None:
            issues.append(ValidationIssue(
                field=other,
                issue_type="mismatch",
                message=f"{other} is ignored for {rule.frequency.value} rules",
                severity="warning",
                suggested_fix=f"Clear {other}",
            ))

        is_valid = not any(i.severity == "error" for i in issues)
        return is_valid, issues

    def _validate_semantics(
        self,
        rule: RuleLike,
        horizon_start: Optional[date] = None,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: date relationships.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        start = rule.start_date if isinstance(rule, RecurrenceRule) else rule.valid_from

        if rule.end_date is not None and rule.end_date < start:
            issues.append(ValidationIssue(
                field="end_date",
                issue_type="invalid_range",
                message="End date cannot be before the start date",
                severity="error",
            ))
        elif (
            rule.end_date is not None
            and horizon_start is not None
            and rule.end_date < horizon_start
        ):
            issues.append(ValidationIssue(
                field="end_date",
                issue_type="not_enforced",
                message=(
                    "End date is before the projection window; occurrences "
                    "are still generated unless end dates are enforced"
                ),
                severity="info",
            ))

        if isinstance(rule, RecurrenceRule):
            if rule.frequency == Frequency.MONTHLY:
                expected = clipped_date(start.year, start.month, rule.day_of_month)
                if expected != start:
                    issues.append(ValidationIssue(
                        field="start_date",
                        issue_type="off_anchor",
                        message=(
                            f"Start date {start.isoformat()} is not on day "
                            f"{rule.day_of_month}; occurrences follow the anchor day"
                        ),
                        severity="warning",
                    ))
            elif sunday_weekday(start) != rule.day_of_week:
                issues.append(ValidationIssue(
                    field="start_date",
                    issue_type="off_anchor",
                    message=(
                        f"Start date {start.isoformat()} is not a "
                        f"{WEEKDAY_NAMES[rule.day_of_week]}; the first occurrence "
                        "is the following one"
                    ),
                    severity="warning",
                ))

        is_valid = not any(i.severity == "error" for i in issues)
        return is_valid, issues

    def validate(self, rule: RuleLike, horizon_start: Optional[date] = None) -> ValidationResult:
        """
        Run both validation stages.

        Args:
            rule: A stored rule or a draft being authored
            horizon_start: Start of the current projection window, used to
                           flag end dates that will not stop generation
        """
        schema_valid, issues = self._validate_schema(rule)

        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantics(rule, horizon_start)
            issues.extend(semantic_issues)

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            issues=issues,
        )

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """Plain-language summary of a validation result."""
        if result.is_valid and not result.issues:
            return "Rule looks good."

        lines = []
        if result.has_errors:
            lines.append(f"Rule cannot be saved ({result.error_count} problem(s)):")
        else:
            lines.append("Rule can be saved, but please check:")
        for issue in result.issues:
            marker = {"error": "✗", "warning": "!", "info": "i"}[issue.severity]
            lines.append(f"  {marker} {issue.message}")
        return "\n".join(lines)
