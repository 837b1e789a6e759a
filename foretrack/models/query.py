"""
Transaction Listing Models

The transactions page filters, sorts and pages the combined list of
expenses and income. These models describe one such request and its
result.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from foretrack.models.transaction import Transaction


class KindFilter(str, Enum):
    ALL = "all"
    EXPENSE = "expense"
    INCOME = "income"


class SortOrder(str, Enum):
    DATE_DESC = "date-desc"
    DATE_ASC = "date-asc"
    AMOUNT_DESC = "amount-desc"
    AMOUNT_ASC = "amount-asc"


class TransactionQuery(BaseModel):
    """Filters, ordering and page selection for the transactions listing."""

    kind: KindFilter = Field(default=KindFilter.ALL)
    search: Optional[str] = Field(
        default=None,
        description="Case-insensitive match against note, category and source"
    )
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    sort: SortOrder = Field(default=SortOrder.DATE_DESC)
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=15, ge=1, le=100)

    @model_validator(mode='after')
    def check_date_range(self) -> 'TransactionQuery':
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must be on or before date_to")
        return self

    @property
    def is_filtered(self) -> bool:
        return bool(
            self.kind != KindFilter.ALL
            or self.search
            or self.date_from
            or self.date_to
        )


class TransactionPage(BaseModel):
    """One page of the filtered listing plus totals over the whole filtered set."""

    items: list[Transaction] = Field(default_factory=list)
    total_count: int = 0
    page: int = 1
    page_size: int = 15
    total_pages: int = 0
    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")

    @property
    def net(self) -> Decimal:
        return self.total_income - self.total_expense

    @property
    def first_index(self) -> int:
        """1-based position of the first row on this page, 0 when empty."""
        if not self.items:
            return 0
        return (self.page - 1) * self.page_size + 1

    @property
    def last_index(self) -> int:
        if not self.items:
            return 0
        return self.first_index + len(self.items) - 1
