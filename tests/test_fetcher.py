"""Tests for the fetcher and the stale-result gate."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from foretrack.audit import AuditLogger
from foretrack.models.analytics import DateWindow
from foretrack.models.audit import AuditEventType
from foretrack.services.fetcher import MAX_SNAPSHOTS_PER_USER, Fetcher, RequestGate
from foretrack.services.storage import (
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    InMemoryTransactionStorage,
    StorageError,
)

from conftest import USER


class FlakyTransactionStorage(InMemoryTransactionStorage):
    """In-memory storage whose reads can be switched off."""

    def __init__(self):
        super().__init__()
        self.failing = False

    async def list_transactions(self, *args, **kwargs):
        if self.failing:
            raise StorageError("sheet unavailable")
        return await super().list_transactions(*args, **kwargs)


class BrokenBudgetStorage(InMemoryBudgetStorage):

    async def list_budgets(self, *args, **kwargs):
        raise RuntimeError("quota exceeded")


class TestRequestGate:

    def test_generations_increase_per_key(self):
        gate = RequestGate()
        assert gate.begin("a") == 1
        assert gate.begin("a") == 2
        assert gate.begin("b") == 1

    def test_only_latest_is_current(self):
        gate = RequestGate()
        first = gate.begin("analytics:u")
        second = gate.begin("analytics:u")
        assert not gate.is_current("analytics:u", first)
        assert gate.is_current("analytics:u", second)

    def test_unknown_key(self):
        assert RequestGate().latest("missing") == 0


class TestFetcher:

    def test_loads_transactions_and_active_budgets(self, expense, budget):
        transactions = InMemoryTransactionStorage()
        budgets = InMemoryBudgetStorage()
        asyncio.run(transactions.save_transaction(expense("Food", "10")))
        asyncio.run(budgets.save_budget(budget("Food", 100)))
        asyncio.run(budgets.save_budget(budget("Bills", 100, is_active=False)))

        result = asyncio.run(Fetcher(transactions, budgets).fetch(USER))

        assert not result.degraded
        assert len(result.transactions) == 1
        assert [b.category for b in result.budgets] == ["Food"]

    def test_window_limits_transactions(self, expense):
        transactions = InMemoryTransactionStorage()
        asyncio.run(transactions.save_transaction(expense("Food", "10", date(2024, 1, 5))))
        asyncio.run(transactions.save_transaction(expense("Food", "20", date(2024, 3, 5))))
        window = DateWindow(start=date(2024, 3, 1), end=date(2024, 3, 31))

        result = asyncio.run(Fetcher(transactions, InMemoryBudgetStorage()).fetch(USER, window))

        assert [t.amount for t in result.transactions] == [Decimal("20")]

    def test_failure_falls_back_to_last_snapshot(self, expense):
        transactions = FlakyTransactionStorage()
        asyncio.run(transactions.save_transaction(expense("Food", "10")))
        audit_storage = InMemoryAuditStorage()
        fetcher = Fetcher(transactions, InMemoryBudgetStorage(), AuditLogger(audit_storage))

        asyncio.run(fetcher.fetch(USER))
        transactions.failing = True
        result = asyncio.run(fetcher.fetch(USER))

        assert result.degraded
        assert len(result.transactions) == 1
        assert result.errors == ["transactions: sheet unavailable"]
        events = asyncio.run(audit_storage.get_recent_events())
        assert [e.event_type for e in events] == [AuditEventType.DATA_FETCH_FAILED]

    def test_cold_start_failure_is_empty_not_fatal(self):
        transactions = FlakyTransactionStorage()
        transactions.failing = True

        result = asyncio.run(Fetcher(transactions, InMemoryBudgetStorage()).fetch(USER))

        assert result.degraded
        assert result.transactions == []

    def test_any_exception_degrades(self, expense):
        transactions = InMemoryTransactionStorage()
        asyncio.run(transactions.save_transaction(expense("Food", "10")))

        result = asyncio.run(Fetcher(transactions, BrokenBudgetStorage()).fetch(USER))

        assert result.degraded
        assert len(result.transactions) == 1
        assert result.errors == ["budgets: quota exceeded"]

    def test_snapshot_is_filtered_to_window(self, expense):
        transactions = FlakyTransactionStorage()
        asyncio.run(transactions.save_transaction(expense("Food", "10", date(2024, 1, 5))))
        asyncio.run(transactions.save_transaction(expense("Food", "20", date(2024, 3, 5))))
        fetcher = Fetcher(transactions, InMemoryBudgetStorage())

        asyncio.run(fetcher.fetch(USER))
        transactions.failing = True
        window = DateWindow(start=date(2024, 3, 1), end=date(2024, 3, 31))
        result = asyncio.run(fetcher.fetch(USER, window))

        assert [t.amount for t in result.transactions] == [Decimal("20")]

    def test_snapshots_are_per_user(self, expense):
        transactions = FlakyTransactionStorage()
        asyncio.run(transactions.save_transaction(expense("Food", "10")))
        fetcher = Fetcher(transactions, InMemoryBudgetStorage())

        asyncio.run(fetcher.fetch(USER))
        transactions.failing = True
        result = asyncio.run(fetcher.fetch("someone-else"))

        assert result.transactions == []

    def test_narrow_refresh_does_not_replace_wider_snapshot(self, expense):
        transactions = FlakyTransactionStorage()
        asyncio.run(transactions.save_transaction(expense("Food", "100", date(2024, 1, 10))))
        asyncio.run(transactions.save_transaction(expense("Food", "5", date(2024, 3, 20))))
        fetcher = Fetcher(transactions, InMemoryBudgetStorage())
        year = DateWindow(start=date(2023, 3, 31), end=date(2024, 3, 31))
        week = DateWindow(start=date(2024, 3, 24), end=date(2024, 3, 31))

        asyncio.run(fetcher.fetch(USER, year))
        asyncio.run(fetcher.fetch(USER, week))
        transactions.failing = True
        result = asyncio.run(fetcher.fetch(USER, year))

        assert result.degraded
        assert sum(t.amount for t in result.transactions) == Decimal("105")

    def test_snapshot_narrower_than_request_is_not_used(self, expense):
        transactions = FlakyTransactionStorage()
        asyncio.run(transactions.save_transaction(expense("Food", "100", date(2024, 1, 10))))
        asyncio.run(transactions.save_transaction(expense("Food", "5", date(2024, 3, 20))))
        fetcher = Fetcher(transactions, InMemoryBudgetStorage())
        year = DateWindow(start=date(2023, 3, 31), end=date(2024, 3, 31))
        week = DateWindow(start=date(2024, 3, 18), end=date(2024, 3, 24))

        asyncio.run(fetcher.fetch(USER, week))
        transactions.failing = True
        degraded_year = asyncio.run(fetcher.fetch(USER, year))
        degraded_all = asyncio.run(fetcher.fetch(USER))

        assert degraded_year.degraded
        assert degraded_year.transactions == []
        assert degraded_all.transactions == []

    def test_reads_past_one_storage_batch(self, expense):
        transactions = InMemoryTransactionStorage()
        for day in range(1, 8):
            asyncio.run(transactions.save_transaction(expense("Food", "1", date(2024, 3, day))))
        fetcher = Fetcher(transactions, InMemoryBudgetStorage(), batch_size=3)

        result = asyncio.run(fetcher.fetch(USER))

        assert len(result.transactions) == 7
        assert len({t.id for t in result.transactions}) == 7

    def test_snapshot_count_is_bounded(self, expense):
        transactions = InMemoryTransactionStorage()
        asyncio.run(transactions.save_transaction(expense("Food", "1", date(2024, 3, 10))))
        fetcher = Fetcher(transactions, InMemoryBudgetStorage())

        for day in range(1, 21):
            window = DateWindow(start=date(2024, 3, day), end=date(2024, 3, 31))
            asyncio.run(fetcher.fetch(USER, window))

        assert len(fetcher._last_transactions[USER]) == MAX_SNAPSHOTS_PER_USER


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
