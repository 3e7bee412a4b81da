"""
Rule Authoring

Turns a validated RuleDraft into a RecurrenceRule whose start_date is the
first real occurrence, as computed by resolve_anchor.
"""

from typing import Optional

from recurring_ledger.models.recurrence import RecurrenceRule, RuleDraft
from recurring_ledger.recurrence.anchor import resolve_anchor
from recurring_ledger.validation.validator import RuleValidationError, RuleValidator


def author_rule(
    draft: RuleDraft,
    validator: Optional[RuleValidator] = None,
    rule_id: Optional[str] = None,
) -> RecurrenceRule:
    """
    Build a rule from a draft.

    Raises:
        RuleValidationError: If the draft has error-level issues
    """
    validator = validator or RuleValidator()
    result = validator.validate(draft)
    if result.has_errors:
        raise RuleValidationError(result)

    fields = draft.model_dump(exclude={"valid_from"})
    fields["start_date"] = resolve_anchor(draft.valid_from, draft.frequency, draft.anchor)
    if rule_id is not None:
        fields["id"] = rule_id
    return RecurrenceRule(**fields)
