"""
Analytics Report

Composes the period selector, aggregator, change calculator and budget
utilization into the single report the analytics page renders.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Optional, Union

from foretrack.analytics.aggregator import aggregate
from foretrack.analytics.budgets import (
    DEFAULT_WARNING_THRESHOLD,
    budget_utilization,
    overall_utilization,
)
from foretrack.analytics.changes import compare_periods
from foretrack.analytics.periods import resolve_period
from foretrack.models.analytics import AnalyticsReport, TimeRange
from foretrack.models.transaction import Budget, Transaction


def build_report(
    transactions: Sequence[Transaction],
    budgets: Sequence[Budget],
    time_range: Union[TimeRange, str] = TimeRange.MONTH,
    now: Optional[datetime] = None,
    top_n: int = 5,
    warning_threshold: float = DEFAULT_WARNING_THRESHOLD,
) -> AnalyticsReport:
    """
    Build the report for one range.

    Budgets are measured against the category totals of the selected
    window.
    """
    periods = resolve_period(time_range, now)

    current = aggregate(transactions, periods.current, top_n)
    previous = aggregate(transactions, periods.previous, top_n)

    return AnalyticsReport(
        periods=periods,
        current=current,
        previous=previous,
        changes=compare_periods(current, previous),
        budgets=budget_utilization(budgets, current.category_breakdown, warning_threshold),
        overall_budget=overall_utilization(budgets, current.total_expense, warning_threshold),
    )
