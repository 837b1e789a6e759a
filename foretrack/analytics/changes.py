"""Period-over-period change calculator."""

from decimal import Decimal
from typing import Union

from foretrack.models.analytics import AggregateResult, PeriodChange


Number = Union[Decimal, int, float]


def percentage_change(current: Number, previous: Number) -> float:
    """
    (current - previous) / previous * 100.

    Returns 0 when previous is 0 instead of an infinite or undefined
    change. The sign is the same for every kind of value; whether an
    increase is good or bad is for the caller to decide.
    """
    current = Decimal(str(current))
    previous = Decimal(str(previous))
    if previous == 0:
        return 0.0
    return float((current - previous) / previous * 100)


def compare_periods(current: AggregateResult, previous: AggregateResult) -> PeriodChange:
    return PeriodChange(
        expense_change=percentage_change(current.total_expense, previous.total_expense),
        income_change=percentage_change(current.total_income, previous.total_income),
    )
