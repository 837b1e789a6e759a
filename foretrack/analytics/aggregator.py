"""
Aggregator

Reduces a list of transactions to the totals for one window.

Sums are exact: amounts are Decimal and accumulate as Decimal. Category
and day totals are plain dicts, which keep insertion order, and ranking
is a separate stable sort over them, so equal totals always come out in
the order they were first seen.
"""

from collections.abc import Iterable
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from foretrack.models.analytics import AggregateResult, CategoryTotal, DateWindow
from foretrack.models.transaction import UNCATEGORIZED, Transaction, TransactionKind


ZERO = Decimal("0")
CENT = Decimal("0.01")


def filter_window(transactions: Iterable[Transaction], window: DateWindow) -> list[Transaction]:
    """Keep the records dated inside the window, both ends included."""
    return [t for t in transactions if window.contains(t.date)]


def split_by_window(
    transactions: Iterable[Transaction],
    window: DateWindow,
) -> tuple[list[Transaction], list[Transaction]]:
    """Partition records into (inside window, outside window)."""
    inside, outside = [], []
    for transaction in transactions:
        if window.contains(transaction.date):
            inside.append(transaction)
        else:
            outside.append(transaction)
    return inside, outside


def partition_by_kind(
    transactions: Iterable[Transaction],
) -> tuple[list[Transaction], list[Transaction]]:
    """Return (expenses, incomes)."""
    expenses, incomes = [], []
    for transaction in transactions:
        if transaction.kind == TransactionKind.EXPENSE:
            expenses.append(transaction)
        else:
            incomes.append(transaction)
    return expenses, incomes


def sum_amounts(transactions: Iterable[Transaction]) -> Decimal:
    return sum((t.amount for t in transactions), ZERO)


def savings_rate(total_income: Decimal, net: Decimal) -> float:
    """Net as a percentage of income; 0 when there is no income."""
    if total_income == 0:
        return 0.0
    return float(net / total_income * 100)


def category_totals(expenses: Iterable[Transaction]) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = {}
    for expense in expenses:
        category = expense.category or UNCATEGORIZED
        totals[category] = totals.get(category, ZERO) + expense.amount
    return totals


def daily_totals(expenses: Iterable[Transaction]) -> dict[date, Decimal]:
    totals: dict[date, Decimal] = {}
    for expense in expenses:
        totals[expense.date] = totals.get(expense.date, ZERO) + expense.amount
    return totals


def average_daily(totals: dict[date, Decimal]) -> Decimal:
    """
    Mean spend over the days that had at least one expense.

    Days without expenses are not counted, so they do not pull the
    average down.
    """
    if not totals:
        return ZERO
    average = sum(totals.values(), ZERO) / len(totals)
    return average.quantize(CENT, rounding=ROUND_HALF_UP)


def rank_categories(totals: dict[str, Decimal], top_n: int = 5) -> list[CategoryTotal]:
    """Highest totals first, ties in first-seen order, truncated to top_n."""
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [
        CategoryTotal(category=category, total=total)
        for category, total in ranked[:top_n]
    ]


def aggregate(
    transactions: Iterable[Transaction],
    window: DateWindow,
    top_n: int = 5,
) -> AggregateResult:
    """Compute every total for the records inside `window`."""
    in_window = filter_window(transactions, window)
    expenses, incomes = partition_by_kind(in_window)

    total_expense = sum_amounts(expenses)
    total_income = sum_amounts(incomes)
    net = total_income - total_expense

    by_category = category_totals(expenses)
    by_day = daily_totals(expenses)

    return AggregateResult(
        window=window,
        total_expense=total_expense,
        total_income=total_income,
        net_savings=net,
        savings_rate=savings_rate(total_income, net),
        category_breakdown=by_category,
        daily_totals=by_day,
        average_daily_spending=average_daily(by_day),
        top_categories=rank_categories(by_category, top_n),
        transaction_count=len(in_window),
    )
