"""
Analytics Models

Derived values only. Nothing in this module is ever persisted: every
aggregate is recomputed from the current record set whenever the range,
a filter, or a record changes.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from foretrack.models.transaction import Budget


class TimeRange(str, Enum):
    """Named, calendar-relative range used to scope aggregation."""
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


class DateWindow(BaseModel):
    """An inclusive [start, end] range of calendar dates."""

    start: date
    end: date

    @model_validator(mode='after')
    def validate_order(self) -> 'DateWindow':
        if self.end < self.start:
            raise ValueError("Window end cannot be before start")
        return self

    @property
    def days(self) -> int:
        """Number of calendar days covered, both ends included."""
        return (self.end - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def covers(self, other: "DateWindow") -> bool:
        """True if every day of other falls inside this window."""
        return self.start <= other.start and other.end <= self.end


class PeriodWindows(BaseModel):
    """The selected window plus the equally long window right before it."""

    time_range: TimeRange
    reference: datetime
    current: DateWindow
    previous: DateWindow


class CategoryTotal(BaseModel):
    category: str
    total: Decimal


class AggregateResult(BaseModel):
    """Totals for one window."""

    window: DateWindow
    total_expense: Decimal = Decimal("0")
    total_income: Decimal = Decimal("0")
    net_savings: Decimal = Decimal("0")
    savings_rate: float = 0.0
    # Insertion-ordered: first-seen category first
    category_breakdown: dict[str, Decimal] = Field(default_factory=dict)
    daily_totals: dict[date, Decimal] = Field(default_factory=dict)
    average_daily_spending: Decimal = Decimal("0")
    top_categories: list[CategoryTotal] = Field(default_factory=list)
    transaction_count: int = 0

    def category_share(self, category: str) -> float:
        """Percentage of total expense spent in one category."""
        if not self.total_expense:
            return 0.0
        spent = self.category_breakdown.get(category, Decimal("0"))
        return float(spent / self.total_expense * 100)


class PeriodChange(BaseModel):
    """
    Signed percentage deltas, current versus previous window.

    Positive means the value went up. Whether that is good news depends
    on the kind (for expenses it is not); callers decide presentation.
    """

    expense_change: float = 0.0
    income_change: float = 0.0


class UtilizationBand(str, Enum):
    """Display thresholds for budget utilization."""
    HEALTHY = "healthy"    # up to 80%
    WARNING = "warning"    # above 80%, up to 100%
    OVER = "over"          # above 100%


class BudgetUtilization(BaseModel):
    budget: Budget
    spent: Decimal
    utilization: float
    remaining: Decimal
    band: UtilizationBand

    @property
    def over_by(self) -> Decimal:
        return max(Decimal("0"), self.spent - self.budget.limit)


class OverallUtilization(BaseModel):
    total_budget: Decimal
    total_spent: Decimal
    utilization: float
    band: UtilizationBand


class AnalyticsReport(BaseModel):
    """Everything the analytics page shows for one range."""

    periods: PeriodWindows
    current: AggregateResult
    previous: AggregateResult
    changes: PeriodChange
    budgets: list[BudgetUtilization] = Field(default_factory=list)
    overall_budget: Optional[OverallUtilization] = None
