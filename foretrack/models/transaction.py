"""
Core Data Models for Foretrack

These models define the strict schemas for every record that flows
between storage, the analytics engine and the AI agents. They are
designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging

Money is always Decimal. Amounts are never negative: whether a record
adds or removes money is carried by its kind, not by its sign.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionKind(str, Enum):
    """Whether a transaction is money going out or coming in."""
    EXPENSE = "expense"
    INCOME = "income"


class ExpenseCategory(str, Enum):
    """
    Built-in expense categories.

    Users can add their own categories on top of these, so transaction
    records store the category as a plain string.
    """
    FOOD = "Food"
    TRANSPORT = "Transport"
    ENTERTAINMENT = "Entertainment"
    SHOPPING = "Shopping"
    BILLS = "Bills"
    HEALTH = "Health"
    OTHER = "Other"


class IncomeSource(str, Enum):
    """Built-in income sources."""
    SALARY = "Salary"
    FREELANCE = "Freelance"
    BUSINESS = "Business"
    INVESTMENTS = "Investments"
    RENTAL = "Rental"
    GIFTS = "Gifts"
    REFUNDS = "Refunds"
    OTHER = "Other"


class BudgetPeriod(str, Enum):
    """Recurrence period of a budget."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


# Sentinel used whenever an expense has no category
UNCATEGORIZED = ExpenseCategory.OTHER.value


class CategoryStyle(BaseModel):
    """Display glyph and colour token of a category."""

    icon: str
    color: str


DEFAULT_CATEGORY_STYLES: dict[str, CategoryStyle] = {
    ExpenseCategory.FOOD.value: CategoryStyle(icon="🍔", color="Orange"),
    ExpenseCategory.TRANSPORT.value: CategoryStyle(icon="🚗", color="Blue"),
    ExpenseCategory.ENTERTAINMENT.value: CategoryStyle(icon="🎬", color="Purple"),
    ExpenseCategory.SHOPPING.value: CategoryStyle(icon="🛍️", color="Pink"),
    ExpenseCategory.BILLS.value: CategoryStyle(icon="💡", color="Yellow"),
    ExpenseCategory.HEALTH.value: CategoryStyle(icon="🏥", color="Green"),
    ExpenseCategory.OTHER.value: CategoryStyle(icon="📦", color="Gray"),
}


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """
    A single expense or income record.

    Expenses carry a `category`, incomes carry a `source`. A missing
    expense category is allowed here; the aggregator files it under
    "Other".
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owning user's opaque identifier"
    )
    amount: Annotated[
        Decimal,
        Field(ge=0, decimal_places=2, description="Non-negative amount")
    ]
    currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="ISO currency code"
    )
    kind: TransactionKind
    category: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Expense category (expenses only)"
    )
    source: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Income source (income only)"
    )
    note: Optional[str] = Field(
        default=None,
        max_length=1000,
        description="Free-text description"
    )
    date: date
    created_at: datetime = Field(
        default_factory=datetime.utcnow
    )

    @field_validator('currency')
    @classmethod
    def uppercase_currency(cls, v: str) -> str:
        return v.upper()

    @model_validator(mode='after')
    def validate_kind_fields(self) -> 'Transaction':
        """Category belongs to expenses, source belongs to income."""
        if self.kind == TransactionKind.EXPENSE and self.source:
            raise ValueError("Expenses cannot have an income source")
        if self.kind == TransactionKind.INCOME and self.category:
            raise ValueError("Income cannot have an expense category")
        return self

    @property
    def label(self) -> str:
        """Category for expenses, source for income."""
        if self.kind == TransactionKind.EXPENSE:
            return self.category or UNCATEGORIZED
        return self.source or IncomeSource.OTHER.value


# =============================================================================
# BUDGETS AND CATEGORIES
# =============================================================================

class Budget(BaseModel):
    """
    A spending limit for one category over a recurring period.

    At most one active budget may exist per (user, category, period).
    The storage layer enforces this, not the model.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1, max_length=100)
    limit: Annotated[
        Decimal,
        Field(ge=0, decimal_places=2, description="Spending limit")
    ]
    currency: str = Field(default="USD", min_length=3, max_length=3)
    period: BudgetPeriod = BudgetPeriod.MONTHLY
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)


class CustomCategory(BaseModel):
    """A user-defined expense category. Names are unique per user."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=50)
    icon: str = Field(default="📦", max_length=8)
    color: str = Field(default="Gray", max_length=20)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def style(self) -> CategoryStyle:
        return CategoryStyle(icon=self.icon, color=self.color)


def category_style(name: str, custom: Optional[list[CustomCategory]] = None) -> CategoryStyle:
    """Look up the glyph and colour of a category, falling back to "Other"."""
    for category in custom or []:
        if category.name == name:
            return category.style
    return DEFAULT_CATEGORY_STYLES.get(name, DEFAULT_CATEGORY_STYLES[UNCATEGORIZED])
