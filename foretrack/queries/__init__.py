"""Transaction listing package."""

from foretrack.queries.executor import (
    QueryExecutionError,
    TransactionQueryExecutor,
    filter_transactions,
    run_query,
    sort_transactions,
)

__all__ = [
    "QueryExecutionError",
    "TransactionQueryExecutor",
    "filter_transactions",
    "run_query",
    "sort_transactions",
]
