"""Shared factories for the test suite."""

from datetime import date
from decimal import Decimal

import pytest

from foretrack.models.transaction import (
    Budget,
    BudgetPeriod,
    Transaction,
    TransactionKind,
)


USER = "user-1"


@pytest.fixture
def expense():
    """Build an expense: expense("Food", "100", date(2024, 3, 10))."""
    def make(category, amount, on=date(2024, 3, 10), user_id=USER, note=None):
        return Transaction(
            user_id=user_id,
            kind=TransactionKind.EXPENSE,
            category=category,
            amount=Decimal(str(amount)),
            date=on,
            note=note,
        )
    return make


@pytest.fixture
def income():
    def make(source, amount, on=date(2024, 3, 10), user_id=USER, note=None):
        return Transaction(
            user_id=user_id,
            kind=TransactionKind.INCOME,
            source=source,
            amount=Decimal(str(amount)),
            date=on,
            note=note,
        )
    return make


@pytest.fixture
def budget():
    def make(category, limit, period=BudgetPeriod.MONTHLY, user_id=USER, is_active=True):
        return Budget(
            user_id=user_id,
            category=category,
            limit=Decimal(str(limit)),
            period=period,
            is_active=is_active,
        )
    return make


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    """Stands in for a Gemini model: canned answer, remembered prompts."""

    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.prompts = []

    async def generate_content_async(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return FakeResponse(self.text)
