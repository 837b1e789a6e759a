"""Assistant request validation package."""

from foretrack.validation.validator import (
    InputValidationError,
    clamp_total_spent,
    filter_valid_budgets,
    filter_valid_expenses,
    sanitize_text,
    validate_chat_message,
    validate_description,
    validate_spending_context,
)

__all__ = [
    "InputValidationError",
    "clamp_total_spent",
    "filter_valid_budgets",
    "filter_valid_expenses",
    "sanitize_text",
    "validate_chat_message",
    "validate_description",
    "validate_spending_context",
]
