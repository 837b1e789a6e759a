"""Tests for the aggregator."""

from datetime import date
from decimal import Decimal

import pytest

from foretrack.analytics.aggregator import (
    aggregate,
    average_daily,
    category_totals,
    daily_totals,
    partition_by_kind,
    rank_categories,
    savings_rate,
    split_by_window,
    sum_amounts,
)
from foretrack.models.analytics import DateWindow
from foretrack.models.transaction import Transaction, TransactionKind


MARCH = DateWindow(start=date(2024, 3, 1), end=date(2024, 3, 31))


class TestAggregate:

    def test_reference_example(self, expense, income):
        records = [
            expense("Food", "100"),
            expense("Food", "50"),
            expense("Transport", "30"),
            income("Salary", "500"),
        ]

        result = aggregate(records, MARCH)

        assert result.total_expense == Decimal("180")
        assert result.total_income == Decimal("500")
        assert result.net_savings == Decimal("320")
        assert result.savings_rate == pytest.approx(64.0)
        assert result.category_breakdown == {"Food": Decimal("150"), "Transport": Decimal("30")}
        assert [(c.category, c.total) for c in result.top_categories] == [
            ("Food", Decimal("150")),
            ("Transport", Decimal("30")),
        ]
        assert result.transaction_count == 4

    def test_empty_input(self):
        result = aggregate([], MARCH)
        assert result.total_expense == 0
        assert result.savings_rate == 0.0
        assert result.top_categories == []
        assert result.average_daily_spending == 0

    def test_records_outside_window_ignored(self, expense):
        result = aggregate(
            [expense("Food", "10", date(2024, 2, 29)), expense("Food", "20", date(2024, 3, 31))],
            MARCH,
        )
        assert result.total_expense == Decimal("20")

    def test_window_edges_included(self, expense):
        result = aggregate(
            [expense("Food", "1", date(2024, 3, 1)), expense("Food", "2", date(2024, 3, 31))],
            MARCH,
        )
        assert result.total_expense == Decimal("3")

    def test_sums_are_exact(self, expense):
        records = [expense("Food", "0.10") for _ in range(10)]
        assert aggregate(records, MARCH).total_expense == Decimal("1.00")

    def test_negative_net_gives_negative_rate(self, expense, income):
        result = aggregate([expense("Bills", "150"), income("Salary", "100")], MARCH)
        assert result.net_savings == Decimal("-50")
        assert result.savings_rate == pytest.approx(-50.0)

    def test_top_n_truncates(self, expense):
        records = [expense(name, amount) for name, amount in
                   [("A", 1), ("B", 2), ("C", 3), ("D", 4), ("E", 5), ("F", 6)]]
        top = aggregate(records, MARCH, top_n=3).top_categories
        assert [c.category for c in top] == ["F", "E", "D"]

    def test_category_share(self, expense):
        result = aggregate([expense("Food", "75"), expense("Health", "25")], MARCH)
        assert result.category_share("Food") == pytest.approx(75.0)
        assert result.category_share("Missing") == 0.0


class TestSavingsRate:

    def test_zero_income(self):
        assert savings_rate(Decimal("0"), Decimal("-40")) == 0.0

    def test_matches_formula(self):
        assert savings_rate(Decimal("300"), Decimal("100")) == pytest.approx(100 / 300 * 100)


class TestCategoryTotals:

    def test_missing_category_counts_as_other(self):
        uncategorized = Transaction(
            user_id="u",
            kind=TransactionKind.EXPENSE,
            amount=Decimal("5"),
            date=date(2024, 3, 2),
        )
        assert category_totals([uncategorized]) == {"Other": Decimal("5")}

    def test_first_seen_order(self, expense):
        totals = category_totals([expense("B", "1"), expense("A", "1"), expense("B", "1")])
        assert list(totals) == ["B", "A"]


class TestRanking:

    def test_ties_keep_first_seen_order(self):
        totals = {"Transport": Decimal("50"), "Food": Decimal("50"), "Bills": Decimal("80")}
        ranked = rank_categories(totals)
        assert [c.category for c in ranked] == ["Bills", "Transport", "Food"]

    def test_ranking_is_repeatable(self, expense):
        records = [expense(c, "10") for c in ["Food", "Transport", "Health", "Bills"]]
        first = aggregate(records, MARCH).top_categories
        for _ in range(5):
            assert aggregate(records, MARCH).top_categories == first


class TestDailyAverage:

    def test_days_without_expenses_do_not_count(self, expense):
        records = [
            expense("Food", "10", date(2024, 3, 1)),
            expense("Food", "20", date(2024, 3, 1)),
            expense("Food", "30", date(2024, 3, 20)),
        ]
        by_day = daily_totals(records)
        assert by_day == {date(2024, 3, 1): Decimal("30"), date(2024, 3, 20): Decimal("30")}
        assert average_daily(by_day) == Decimal("30.00")

    def test_average_rounds_to_cents(self, expense):
        records = [
            expense("Food", "10", date(2024, 3, 1)),
            expense("Food", "10", date(2024, 3, 2)),
            expense("Food", "0.01", date(2024, 3, 3)),
        ]
        assert average_daily(daily_totals(records)) == Decimal("6.67")

    def test_income_not_in_daily_totals(self, income):
        assert aggregate([income("Salary", "100")], MARCH).daily_totals == {}


class TestPartitions:

    def test_partition_by_kind_is_complete(self, expense, income):
        records = [expense("Food", "12.34"), income("Salary", "1000"), expense("Bills", "56.78")]
        expenses, incomes = partition_by_kind(records)
        assert len(expenses) + len(incomes) == len(records)
        assert sum_amounts(expenses) + sum_amounts(incomes) == sum_amounts(records)

    def test_window_and_complement_reconstruct_input(self, expense, income):
        records = [
            expense("Food", "1", date(2024, 2, 28)),
            expense("Food", "2", date(2024, 3, 1)),
            income("Salary", "3", date(2024, 3, 15)),
            expense("Bills", "4", date(2024, 3, 31)),
            expense("Bills", "5", date(2024, 4, 1)),
        ]
        inside, outside = split_by_window(records, MARCH)
        assert len(inside) + len(outside) == len(records)
        assert {t.id for t in inside} | {t.id for t in outside} == {t.id for t in records}
        assert not {t.id for t in inside} & {t.id for t in outside}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
