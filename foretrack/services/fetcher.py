"""
Fetcher

Loads a user's transactions and budgets for analytics.

FAILURE POLICY:
A storage failure never reaches the page. The failure is logged and
audited, and the caller gets the last data we successfully loaded for
that user over a window covering the requested one (or nothing, when
no such load happened yet) with `degraded=True` so the page can say the
numbers may be out of date.

STALE RESULTS:
Refreshes are fire-and-replace. If a user changes the range twice
quickly, the first request may finish last. RequestGate hands out a
generation number per key at the start of each request; only the
highest generation issued so far may publish its result, so an older
request finishing late is dropped instead of overwriting newer data.
"""

import asyncio
import threading
from datetime import date
from typing import Optional

import structlog
from pydantic import BaseModel, Field

from foretrack.audit import AuditLogger
from foretrack.config import get_settings
from foretrack.models.analytics import DateWindow
from foretrack.models.transaction import Budget, Transaction
from foretrack.services.storage import (
    BudgetStorageInterface,
    StorageError,
    TransactionStorageInterface,
    list_all_transactions,
)


logger = structlog.get_logger(__name__)

# Older windows are dropped once a user has this many snapshots
MAX_SNAPSHOTS_PER_USER = 8

# None stands for an unbounded fetch
WindowKey = Optional[tuple[date, date]]


def _window_key(window: Optional[DateWindow]) -> WindowKey:
    return (window.start, window.end) if window else None


def _covers(key: WindowKey, window: Optional[DateWindow]) -> bool:
    if key is None:
        return True
    if window is None:
        return False
    return DateWindow(start=key[0], end=key[1]).covers(window)


class RequestGate:
    """Per-key generation counter; the highest generation wins."""

    def __init__(self):
        self._latest: dict[str, int] = {}
        self._lock = threading.Lock()

    def begin(self, key: str) -> int:
        """Start a new request for key and return its generation."""
        with self._lock:
            generation = self._latest.get(key, 0) + 1
            self._latest[key] = generation
            return generation

    def latest(self, key: str) -> int:
        with self._lock:
            return self._latest.get(key, 0)

    def is_current(self, key: str, generation: int) -> bool:
        """True if no newer request for key has started since this one."""
        return generation == self.latest(key)


class FetchResult(BaseModel):
    """Records loaded for one user, possibly from the last good snapshot."""

    user_id: str
    transactions: list[Transaction] = Field(default_factory=list)
    budgets: list[Budget] = Field(default_factory=list)
    degraded: bool = Field(
        default=False,
        description="True when at least one load failed and older data was used"
    )
    errors: list[str] = Field(default_factory=list)


class Fetcher:
    """
    Loads transactions and budgets concurrently, falling back to the last
    successful snapshot on failure.

    Transaction snapshots are kept per (user, window). A failed load is
    only answered from a snapshot whose window covers the requested one,
    so a narrow refresh never stands in for a wider range.
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        budget_storage: BudgetStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        batch_size: Optional[int] = None,
    ):
        self._transactions = transaction_storage
        self._budgets = budget_storage
        self._audit = audit_logger or AuditLogger()
        self._batch_size = batch_size or get_settings().app.storage_batch_size
        self._last_transactions: dict[str, dict[WindowKey, list[Transaction]]] = {}
        self._last_budgets: dict[str, list[Budget]] = {}

    async def fetch(
        self,
        user_id: str,
        window: Optional[DateWindow] = None,
    ) -> FetchResult:
        """
        Load the user's records.

        Args:
            user_id: Whose records to load
            window: Restrict transactions to this date range (inclusive).
                    Budgets are never date-filtered.
        """
        date_from: Optional[date] = window.start if window else None
        date_to: Optional[date] = window.end if window else None

        transactions, budgets = await asyncio.gather(
            list_all_transactions(
                self._transactions,
                user_id,
                date_from=date_from,
                date_to=date_to,
                batch_size=self._batch_size,
            ),
            self._budgets.list_budgets(user_id, active_only=True),
            return_exceptions=True,
        )

        result = FetchResult(user_id=user_id)

        if isinstance(transactions, BaseException):
            await self._record_failure(user_id, "transactions", transactions)
            result.transactions = self._snapshot(user_id, window)
            result.degraded = True
            result.errors.append(f"transactions: {transactions}")
        else:
            self._remember(user_id, window, transactions)
            result.transactions = list(transactions)

        if isinstance(budgets, BaseException):
            await self._record_failure(user_id, "budgets", budgets)
            result.budgets = list(self._last_budgets.get(user_id, []))
            result.degraded = True
            result.errors.append(f"budgets: {budgets}")
        else:
            self._last_budgets[user_id] = list(budgets)
            result.budgets = list(budgets)

        return result

    def _remember(
        self,
        user_id: str,
        window: Optional[DateWindow],
        transactions: list[Transaction],
    ) -> None:
        snapshots = self._last_transactions.setdefault(user_id, {})
        key = _window_key(window)
        # Re-insert so the most recent load sits last
        snapshots.pop(key, None)
        snapshots[key] = list(transactions)
        while len(snapshots) > MAX_SNAPSHOTS_PER_USER:
            snapshots.pop(next(iter(snapshots)))

    def _snapshot(self, user_id: str, window: Optional[DateWindow]) -> list[Transaction]:
        """Most recent snapshot covering window, cut down to it; empty if none does."""
        snapshots = self._last_transactions.get(user_id, {})
        for key in reversed(list(snapshots)):
            if _covers(key, window):
                records = snapshots[key]
                if window is None:
                    return list(records)
                return [t for t in records if window.contains(t.date)]
        return []

    async def _record_failure(self, user_id: str, resource: str, error: BaseException) -> None:
        logger.warning(
            "fetch_failed",
            user_id=user_id,
            resource=resource,
            error=str(error),
            error_type=type(error).__name__,
            storage_error=isinstance(error, StorageError),
        )
        await self._audit.log_fetch_failed(
            user_id=user_id,
            resource=resource,
            error_message=str(error),
        )
