"""
Insight Models

Shapes exchanged with the inference service: the compact summaries we
send in prompts, and the structured insights we get back.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_serializer


class InsightType(str, Enum):
    TIP = "tip"
    WARNING = "warning"
    ACHIEVEMENT = "achievement"
    SUGGESTION = "suggestion"


class FinancialInsight(BaseModel):
    """A short structured observation about the user's finances."""

    type: InsightType = InsightType.TIP
    title: str = Field(..., min_length=1, max_length=100)
    message: str = Field(..., min_length=1, max_length=500)
    icon: str = Field(default="💡", max_length=16)


class ExpenseSummary(BaseModel):
    """One expense as serialized into a prompt."""

    category: str
    amount: Decimal = Field(ge=0)
    description: Optional[str] = None
    date: str

    @field_serializer('amount')
    def serialize_amount(self, amount: Decimal) -> float:
        return float(amount)


class BudgetSummary(BaseModel):
    """One budget with its current spending, as serialized into a prompt."""

    category: str
    amount: Decimal = Field(ge=0)
    spent: Decimal = Field(ge=0)
    percentage: float

    @field_serializer('amount', 'spent')
    def serialize_money(self, value: Decimal) -> float:
        return float(value)


class SpendingContext(BaseModel):
    """Everything the assistant is allowed to know about the user."""

    expenses: list[ExpenseSummary] = Field(default_factory=list)
    budgets: list[BudgetSummary] = Field(default_factory=list)
    total_spent: Decimal = Decimal("0")
    currency: str = "USD"


# Static results shown whenever the model cannot be reached or answers
# with something we cannot parse.

FALLBACK_INSIGHT = FinancialInsight(
    type=InsightType.TIP,
    title="Track Your Spending",
    message="Keep logging your expenses to get personalized AI insights about your spending habits.",
    icon="💡",
)

EMPTY_STATE_INSIGHT = FinancialInsight(
    type=InsightType.TIP,
    title="Start Tracking",
    message="Add your first expense to unlock AI-powered financial insights!",
    icon="🚀",
)

FALLBACK_ANALYSIS = "Keep tracking your expenses to unlock personalized insights!"

FALLBACK_SAVINGS_TIPS = [
    "Set a weekly spending limit for your top categories",
    "Look for discounts and deals before making purchases",
    "Review your subscriptions and cancel unused ones",
]

FALLBACK_CHAT_EMPTY = (
    "I'm here to help with your finances! "
    "Try asking about your spending patterns or budget tips."
)

FALLBACK_CHAT_ERROR = "I'm having trouble processing that right now. Please try again!"
