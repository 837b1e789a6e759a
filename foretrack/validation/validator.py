"""
Assistant Request Validation

Everything sent to the inference service passes through here first.

Two kinds of problems are handled differently:

REJECTED (raise InputValidationError):
- Missing or empty text
- Text over the length limit
- Too many expenses or budgets in one request
- A context that isn't a collection at all

FILTERED (dropped silently, request continues):
- Individual expense or budget entries with the wrong shape,
  a non-numeric amount, or a negative amount

The distinction matters: a bad request is the caller's fault and they
should hear about it, while one malformed row in a 300-row context
shouldn't cost the user their insights.
"""

import re
from decimal import Decimal, InvalidOperation
from numbers import Number
from typing import Any, Iterable, Optional

from foretrack.config import get_settings
from foretrack.models.insight import BudgetSummary, ExpenseSummary, SpendingContext


class InputValidationError(Exception):
    """A request to the assistant was rejected before reaching the model."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


_MARKUP_CHARS = re.compile(r"[<>]")


def sanitize_text(text: str, max_length: int) -> str:
    """Strip angle brackets and cap the length."""
    return _MARKUP_CHARS.sub("", text)[:max_length]


def _validate_text(value: Any, field: str, max_length: int) -> str:
    if not value or not isinstance(value, str):
        raise InputValidationError(
            f"{field.capitalize()} is required and must be a string", field=field
        )

    trimmed = value.strip()
    if not trimmed:
        raise InputValidationError(f"{field.capitalize()} cannot be empty", field=field)
    if len(trimmed) > max_length:
        raise InputValidationError(
            f"{field.capitalize()} must be less than {max_length} characters",
            field=field,
        )

    return sanitize_text(trimmed, max_length)


def validate_description(value: Any) -> str:
    """Validate and sanitize an expense description for categorization."""
    return _validate_text(value, "description", get_settings().app.max_description_length)


def validate_chat_message(value: Any) -> str:
    """Validate and sanitize a chat message."""
    return _validate_text(value, "message", get_settings().app.max_message_length)


def _as_number(value: Any) -> Optional[Decimal]:
    """Return the value as a Decimal if it is a real, finite number."""
    if isinstance(value, bool) or not isinstance(value, Number):
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if number.is_nan() or number.is_infinite():
        return None
    return number


def _field(entry: Any, name: str) -> Any:
    if isinstance(entry, dict):
        return entry.get(name)
    return getattr(entry, name, None)


def _coerce_expense(entry: Any) -> Optional[ExpenseSummary]:
    if isinstance(entry, ExpenseSummary):
        return entry

    category = _field(entry, "category")
    entry_date = _field(entry, "date")
    amount = _as_number(_field(entry, "amount"))
    if not isinstance(category, str) or not isinstance(entry_date, str):
        return None
    if amount is None or amount < 0:
        return None

    description = _field(entry, "description")
    return ExpenseSummary(
        category=category,
        amount=amount,
        description=description if isinstance(description, str) else None,
        date=entry_date,
    )


def _coerce_budget(entry: Any) -> Optional[BudgetSummary]:
    if isinstance(entry, BudgetSummary):
        return entry

    category = _field(entry, "category")
    amount = _as_number(_field(entry, "amount"))
    spent = _as_number(_field(entry, "spent"))
    percentage = _as_number(_field(entry, "percentage"))
    if not isinstance(category, str):
        return None
    if amount is None or amount < 0 or spent is None or percentage is None:
        return None

    return BudgetSummary(
        category=category,
        amount=amount,
        spent=max(spent, Decimal("0")),
        percentage=float(percentage),
    )


def _check_collection(entries: Any, field: str, limit: int) -> list:
    if isinstance(entries, (str, bytes, dict)) or not isinstance(entries, Iterable):
        raise InputValidationError(f"{field.capitalize()} must be a list", field=field)
    entries = list(entries)
    if len(entries) > limit:
        raise InputValidationError(
            f"Too many {field}. Maximum allowed: {limit}", field=field
        )
    return entries


def filter_valid_expenses(entries: Any) -> list[ExpenseSummary]:
    """
    Keep only well-formed expense entries.

    Raises:
        InputValidationError: If entries isn't a list or exceeds the cap
    """
    limit = get_settings().app.max_expenses_per_request
    coerced = (_coerce_expense(e) for e in _check_collection(entries, "expenses", limit))
    return [e for e in coerced if e is not None]


def filter_valid_budgets(entries: Any) -> list[BudgetSummary]:
    """
    Keep only well-formed budget entries.

    Raises:
        InputValidationError: If entries isn't a list or exceeds the cap
    """
    limit = get_settings().app.max_budgets_per_request
    coerced = (_coerce_budget(b) for b in _check_collection(entries, "budgets", limit))
    return [b for b in coerced if b is not None]


def clamp_total_spent(value: Any) -> Decimal:
    """A finite total, floored at zero. Anything else counts as zero."""
    number = _as_number(value)
    if number is None:
        return Decimal("0")
    return max(number, Decimal("0"))


def validate_spending_context(
    expenses: Any,
    budgets: Any,
    total_spent: Any,
    currency: str = "USD",
) -> SpendingContext:
    """Validate a whole assistant context in one call."""
    return SpendingContext(
        expenses=filter_valid_expenses(expenses),
        budgets=filter_valid_budgets(budgets),
        total_spent=clamp_total_spent(total_spent),
        currency=currency,
    )
