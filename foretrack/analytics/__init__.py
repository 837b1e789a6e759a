"""
Analytics Package

Pure functions over in-memory records: no storage access, no caching,
no state between calls.
"""

from foretrack.analytics.aggregator import (
    aggregate,
    average_daily,
    category_totals,
    daily_totals,
    filter_window,
    partition_by_kind,
    rank_categories,
    savings_rate,
    split_by_window,
    sum_amounts,
)
from foretrack.analytics.budgets import (
    budget_utilization,
    classify,
    overall_utilization,
    utilization_percent,
)
from foretrack.analytics.changes import compare_periods, percentage_change
from foretrack.analytics.periods import current_budget_period, resolve_period
from foretrack.analytics.report import build_report

__all__ = [
    "aggregate",
    "average_daily",
    "build_report",
    "budget_utilization",
    "category_totals",
    "classify",
    "compare_periods",
    "current_budget_period",
    "daily_totals",
    "filter_window",
    "overall_utilization",
    "partition_by_kind",
    "percentage_change",
    "rank_categories",
    "resolve_period",
    "savings_rate",
    "split_by_window",
    "sum_amounts",
    "utilization_percent",
]
