"""
Tests for Foretrack models

Test strategy:
1. Unit tests for individual components (models, analytics, validators)
2. Flow tests against in-memory storage
3. No real API calls in tests (fake Gemini model)
"""

import json
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from foretrack.models.analytics import DateWindow
from foretrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from foretrack.models.currency import format_amount, get_currency
from foretrack.models.preferences import UserPreferences
from foretrack.models.query import TransactionQuery
from foretrack.models.transaction import (
    DEFAULT_CATEGORY_STYLES,
    UNCATEGORIZED,
    Budget,
    CustomCategory,
    ExpenseCategory,
    Transaction,
    TransactionKind,
    category_style,
)


class TestTransactionModel:
    """Tests for the expense/income record."""

    def test_expense_creation(self):
        t = Transaction(
            user_id="u",
            kind=TransactionKind.EXPENSE,
            category="Food",
            amount=Decimal("12.50"),
            date=date(2024, 3, 1),
        )
        assert t.amount == Decimal("12.50")
        assert t.label == "Food"
        assert t.currency == "USD"

    def test_rejects_negative_amount(self):
        with pytest.raises(ValueError):
            Transaction(
                user_id="u",
                kind=TransactionKind.EXPENSE,
                amount=Decimal("-1"),
                date=date(2024, 3, 1),
            )

    def test_rejects_more_than_two_decimal_places(self):
        with pytest.raises(ValueError):
            Transaction(
                user_id="u",
                kind=TransactionKind.EXPENSE,
                amount=Decimal("1.005"),
                date=date(2024, 3, 1),
            )

    def test_expense_cannot_have_source(self):
        with pytest.raises(ValueError):
            Transaction(
                user_id="u",
                kind=TransactionKind.EXPENSE,
                source="Salary",
                amount=Decimal("1"),
                date=date(2024, 3, 1),
            )

    def test_income_cannot_have_category(self):
        with pytest.raises(ValueError):
            Transaction(
                user_id="u",
                kind=TransactionKind.INCOME,
                category="Food",
                amount=Decimal("1"),
                date=date(2024, 3, 1),
            )

    def test_uncategorized_expense_label(self):
        t = Transaction(
            user_id="u",
            kind=TransactionKind.EXPENSE,
            amount=Decimal("1"),
            date=date(2024, 3, 1),
        )
        assert t.label == UNCATEGORIZED

    def test_currency_uppercased(self):
        t = Transaction(
            user_id="u",
            kind=TransactionKind.INCOME,
            amount=Decimal("1"),
            currency="eur",
            date=date(2024, 3, 1),
        )
        assert t.currency == "EUR"


class TestBudgetAndCategoryModels:

    def test_budget_defaults_to_monthly_active(self):
        b = Budget(user_id="u", category="Food", limit=Decimal("200"))
        assert b.period.value == "monthly"
        assert b.is_active

    def test_custom_category_name_required(self):
        with pytest.raises(ValueError):
            CustomCategory(user_id="u", name="   ")

    def test_category_style_prefers_custom(self):
        custom = CustomCategory(user_id="u", name="Pets", icon="🐶", color="Brown")
        assert category_style("Pets", [custom]).icon == "🐶"

    def test_category_style_falls_back_to_other(self):
        assert category_style("Unknown") == DEFAULT_CATEGORY_STYLES[UNCATEGORIZED]

    def test_every_builtin_category_has_a_style(self):
        for category in ExpenseCategory:
            assert category.value in DEFAULT_CATEGORY_STYLES


class TestDateWindow:

    def test_days_are_inclusive(self):
        assert DateWindow(start=date(2024, 3, 1), end=date(2024, 3, 31)).days == 31

    def test_single_day_window(self):
        window = DateWindow(start=date(2024, 3, 1), end=date(2024, 3, 1))
        assert window.days == 1
        assert window.contains(date(2024, 3, 1))

    def test_end_before_start_rejected(self):
        with pytest.raises(ValueError):
            DateWindow(start=date(2024, 3, 2), end=date(2024, 3, 1))

    def test_covers(self):
        march = DateWindow(start=date(2024, 3, 1), end=date(2024, 3, 31))
        assert march.covers(DateWindow(start=date(2024, 3, 10), end=date(2024, 3, 31)))
        assert march.covers(march)
        assert not march.covers(DateWindow(start=date(2024, 2, 29), end=date(2024, 3, 5)))
        assert not DateWindow(start=date(2024, 3, 10), end=date(2024, 3, 16)).covers(march)


class TestTransactionQueryModel:

    def test_date_range_order_checked(self):
        with pytest.raises(ValueError):
            TransactionQuery(date_from=date(2024, 3, 2), date_to=date(2024, 3, 1))

    def test_is_filtered(self):
        assert not TransactionQuery().is_filtered
        assert TransactionQuery(search="coffee").is_filtered

    def test_page_must_be_positive(self):
        with pytest.raises(ValueError):
            TransactionQuery(page=0)


class TestCurrency:

    def test_format_usd(self):
        assert format_amount(Decimal("1234.5")) == "$1,234.50"

    def test_format_negative(self):
        assert format_amount(Decimal("-1234.5"), "USD") == "-$1,234.50"

    def test_format_other_symbol(self):
        assert format_amount(10, "INR") == "₹10.00"

    def test_unknown_code_falls_back_to_usd(self):
        assert get_currency("XYZ").code == "USD"

    def test_preferences_currency_normalized(self):
        assert UserPreferences(user_id="u", currency=" eur ").currency == "EUR"

    def test_preferences_unknown_currency_rejected(self):
        with pytest.raises(ValueError):
            UserPreferences(user_id="u", currency="XYZ")


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            description="Transaction saved",
        )
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_to_sheets_row_has_twelve_columns(self):
        event = AuditEvent(
            event_type=AuditEventType.BUDGET_SAVED,
            description="Budget saved",
            details={"amount": "200"},
        )
        row = event.to_sheets_row()
        assert len(row) == 12
        assert json.loads(row[9]) == {"amount": "200"}

    def test_record_written_maps_event_type(self):
        entity_id = uuid4()
        event = AuditEventBuilder.record_written("category", "deleted", entity_id, "u")
        assert event.event_type == AuditEventType.CATEGORY_DELETED
        assert event.entity_id == entity_id
        assert event.is_user_action

    def test_fetch_failed_is_warning(self):
        event = AuditEventBuilder.fetch_failed("u", "transactions", "timeout")
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "timeout"

    def test_to_log_dict_serializes_ids(self):
        correlation_id = uuid4()
        event = AuditEventBuilder.insights_generated("u", 3, 10, correlation_id=correlation_id)
        log = event.to_log_dict()
        assert log["correlation_id"] == str(correlation_id)
        assert log["details"] == {"insight_count": 3, "expense_count": 10}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
