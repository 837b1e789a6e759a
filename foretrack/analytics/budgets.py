"""
Budget Utilization

Spent-to-limit ratios and their display bands. Bands are presentation
thresholds only; nothing here raises alerts or sends notifications.
"""

from collections.abc import Iterable
from decimal import Decimal
from typing import Optional

from foretrack.models.analytics import (
    BudgetUtilization,
    OverallUtilization,
    UtilizationBand,
)
from foretrack.models.transaction import Budget


ZERO = Decimal("0")
DEFAULT_WARNING_THRESHOLD = 80.0


def utilization_percent(spent: Decimal, limit: Decimal) -> float:
    """spent / limit * 100; 0 when the limit is 0."""
    if limit == 0:
        return 0.0
    return float(spent / limit * 100)


def classify(utilization: float, warning_threshold: float = DEFAULT_WARNING_THRESHOLD) -> UtilizationBand:
    if utilization <= warning_threshold:
        return UtilizationBand.HEALTHY
    if utilization <= 100:
        return UtilizationBand.WARNING
    return UtilizationBand.OVER


def budget_utilization(
    budgets: Iterable[Budget],
    category_totals: dict[str, Decimal],
    warning_threshold: float = DEFAULT_WARNING_THRESHOLD,
) -> list[BudgetUtilization]:
    """Utilization of every active budget, in the order given."""
    results = []
    for budget in budgets:
        if not budget.is_active:
            continue
        spent = category_totals.get(budget.category, ZERO)
        utilization = utilization_percent(spent, budget.limit)
        results.append(
            BudgetUtilization(
                budget=budget,
                spent=spent,
                utilization=utilization,
                remaining=budget.limit - spent,
                band=classify(utilization, warning_threshold),
            )
        )
    return results


def overall_utilization(
    budgets: Iterable[Budget],
    total_expense: Decimal,
    warning_threshold: float = DEFAULT_WARNING_THRESHOLD,
) -> Optional[OverallUtilization]:
    """Total expense against the sum of all active limits; None without budgets."""
    active = [b for b in budgets if b.is_active]
    if not active:
        return None

    total_budget = sum((b.limit for b in active), ZERO)
    utilization = utilization_percent(total_expense, total_budget)
    return OverallUtilization(
        total_budget=total_budget,
        total_spent=total_expense,
        utilization=utilization,
        band=classify(utilization, warning_threshold),
    )
