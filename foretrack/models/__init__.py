"""
Data Models Package

This package contains all Pydantic models used in Foretrack.
All data flowing through the system must conform to these schemas.
"""

from foretrack.models.transaction import (
    DEFAULT_CATEGORY_STYLES,
    UNCATEGORIZED,
    Budget,
    BudgetPeriod,
    CategoryStyle,
    CustomCategory,
    ExpenseCategory,
    IncomeSource,
    Transaction,
    TransactionKind,
    category_style,
)
from foretrack.models.analytics import (
    AggregateResult,
    AnalyticsReport,
    BudgetUtilization,
    CategoryTotal,
    DateWindow,
    OverallUtilization,
    PeriodChange,
    PeriodWindows,
    TimeRange,
    UtilizationBand,
)
from foretrack.models.insight import (
    BudgetSummary,
    ExpenseSummary,
    FinancialInsight,
    InsightType,
    SpendingContext,
)
from foretrack.models.query import KindFilter, SortOrder, TransactionPage, TransactionQuery
from foretrack.models.currency import CURRENCIES, Currency, format_amount, get_currency
from foretrack.models.preferences import UserPreferences
from foretrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Records
    "DEFAULT_CATEGORY_STYLES",
    "UNCATEGORIZED",
    "Budget",
    "BudgetPeriod",
    "CategoryStyle",
    "CustomCategory",
    "ExpenseCategory",
    "IncomeSource",
    "Transaction",
    "TransactionKind",
    "category_style",
    # Analytics
    "AggregateResult",
    "AnalyticsReport",
    "BudgetUtilization",
    "CategoryTotal",
    "DateWindow",
    "OverallUtilization",
    "PeriodChange",
    "PeriodWindows",
    "TimeRange",
    "UtilizationBand",
    # Insights
    "BudgetSummary",
    "ExpenseSummary",
    "FinancialInsight",
    "InsightType",
    "SpendingContext",
    # Transaction listing
    "KindFilter",
    "SortOrder",
    "TransactionPage",
    "TransactionQuery",
    # Currency
    "CURRENCIES",
    "Currency",
    "format_amount",
    "get_currency",
    # Preferences
    "UserPreferences",
    # Audit
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
