"""Validation package."""

from recurring_ledger.validation.validator import RuleValidationError, RuleValidator
from recurring_ledger.validation.authoring import author_rule

__all__ = ["RuleValidationError", "RuleValidator", "author_rule"]
