"""
Transaction Listing Engine

Query execution is DETERMINISTIC and works only on stored records.
The storage layer hands back the user's expenses and income; this
engine filters, orders and pages them for the transactions page.

Totals are computed over the whole filtered set, not just the visible
page, so the summary cards agree with the row count.
"""

import math
from typing import Iterable, Optional

from foretrack.analytics.aggregator import partition_by_kind, sum_amounts
from foretrack.config import get_settings
from foretrack.models.query import (
    KindFilter,
    SortOrder,
    TransactionPage,
    TransactionQuery,
)
from foretrack.models.transaction import Transaction, TransactionKind
from foretrack.services.storage import TransactionStorageInterface, list_all_transactions


class QueryExecutionError(Exception):
    """Error during query execution."""
    pass


def _matches_search(transaction: Transaction, needle: str) -> bool:
    haystacks = (transaction.note, transaction.category, transaction.source)
    return any(h and needle in h.lower() for h in haystacks)


def filter_transactions(
    transactions: Iterable[Transaction],
    query: TransactionQuery,
) -> list[Transaction]:
    """Apply the kind, search and date filters, keeping input order."""
    filtered = list(transactions)

    if query.kind != KindFilter.ALL:
        kind = TransactionKind(query.kind.value)
        filtered = [t for t in filtered if t.kind == kind]

    if query.search and query.search.strip():
        needle = query.search.strip().lower()
        filtered = [t for t in filtered if _matches_search(t, needle)]

    if query.date_from:
        filtered = [t for t in filtered if t.date >= query.date_from]
    if query.date_to:
        filtered = [t for t in filtered if t.date <= query.date_to]

    return filtered


def sort_transactions(
    transactions: list[Transaction],
    order: SortOrder,
) -> list[Transaction]:
    """Stable sort; ties keep their incoming order."""
    if order == SortOrder.DATE_DESC:
        return sorted(transactions, key=lambda t: t.date, reverse=True)
    if order == SortOrder.DATE_ASC:
        return sorted(transactions, key=lambda t: t.date)
    if order == SortOrder.AMOUNT_DESC:
        return sorted(transactions, key=lambda t: t.amount, reverse=True)
    return sorted(transactions, key=lambda t: t.amount)


def run_query(
    transactions: Iterable[Transaction],
    query: TransactionQuery,
) -> TransactionPage:
    """Filter, sort and page an in-memory list of transactions."""
    matching = sort_transactions(filter_transactions(transactions, query), query.sort)
    expenses, incomes = partition_by_kind(matching)

    total_pages = math.ceil(len(matching) / query.page_size)
    # Past-the-end pages clamp to the last page.
    page = min(query.page, max(total_pages, 1))
    start = (page - 1) * query.page_size

    return TransactionPage(
        items=matching[start:start + query.page_size],
        total_count=len(matching),
        page=page,
        page_size=query.page_size,
        total_pages=total_pages,
        total_income=sum_amounts(incomes),
        total_expense=sum_amounts(expenses),
    )


class TransactionQueryExecutor:
    """
    Executes transaction listing queries against storage.

    GUARANTEES:
    - Only returns the given user's stored records
    - Never invents or estimates
    - An empty page (not an error) when nothing matches
    """

    def __init__(self, storage: TransactionStorageInterface, batch_size: Optional[int] = None):
        self._storage = storage
        self._batch_size = batch_size or get_settings().app.storage_batch_size

    async def execute(self, user_id: str, query: TransactionQuery) -> TransactionPage:
        try:
            kind = None if query.kind == KindFilter.ALL else TransactionKind(query.kind.value)
            transactions = await list_all_transactions(
                self._storage,
                user_id,
                kind=kind,
                date_from=query.date_from,
                date_to=query.date_to,
                batch_size=self._batch_size,
            )
        except Exception as e:
            raise QueryExecutionError(f"Could not load transactions: {e}") from e

        return run_query(transactions, query)
