"""
In-Memory Storage

Process-local implementation of the storage interfaces. Used by the
test suite and when the app runs without Google Sheets credentials.
Nothing survives a restart.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from foretrack.models.audit import AuditEvent
from foretrack.models.preferences import UserPreferences
from foretrack.models.transaction import (
    Budget,
    BudgetPeriod,
    CustomCategory,
    Transaction,
    TransactionKind,
)
from foretrack.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    NotFoundError,
    PreferenceStorageInterface,
    TransactionStorageInterface,
    check_budget_unique,
    check_category_unique,
    matches_filters,
)


class InMemoryTransactionStorage(TransactionStorageInterface):

    def __init__(self):
        self._records: dict[UUID, Transaction] = {}

    async def save_transaction(self, transaction: Transaction) -> bool:
        if transaction.id in self._records:
            raise DuplicateError(f"Transaction already exists: {transaction.id}")
        self._records[transaction.id] = transaction.model_copy()
        return True

    async def get_transaction(
        self,
        user_id: str,
        transaction_id: UUID,
    ) -> Optional[Transaction]:
        record = self._records.get(transaction_id)
        if record is None or record.user_id != user_id:
            return None
        return record.model_copy()

    async def update_transaction(self, transaction: Transaction) -> bool:
        existing = self._records.get(transaction.id)
        if existing is None or existing.user_id != transaction.user_id:
            raise NotFoundError(f"Transaction not found: {transaction.id}")
        self._records[transaction.id] = transaction.model_copy()
        return True

    async def delete_transaction(self, user_id: str, transaction_id: UUID) -> bool:
        existing = self._records.get(transaction_id)
        if existing is None or existing.user_id != user_id:
            return False
        del self._records[transaction_id]
        return True

    async def list_transactions(
        self,
        user_id: str,
        kind: Optional[TransactionKind] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = 1000,
        offset: int = 0,
    ) -> list[Transaction]:
        matching = [
            t.model_copy()
            for t in self._records.values()
            if t.user_id == user_id and matches_filters(t, kind, date_from, date_to)
        ]
        matching.sort(key=lambda t: t.date, reverse=True)
        return matching[offset:offset + limit]


class InMemoryBudgetStorage(BudgetStorageInterface):

    def __init__(self):
        self._records: dict[UUID, Budget] = {}

    async def save_budget(self, budget: Budget) -> bool:
        check_budget_unique(budget, self._records.values())
        self._records[budget.id] = budget.model_copy()
        return True

    async def update_budget(self, budget: Budget) -> bool:
        existing = self._records.get(budget.id)
        if existing is None or existing.user_id != budget.user_id:
            raise NotFoundError(f"Budget not found: {budget.id}")
        check_budget_unique(budget, self._records.values())
        self._records[budget.id] = budget.model_copy()
        return True

    async def delete_budget(self, user_id: str, budget_id: UUID) -> bool:
        existing = self._records.get(budget_id)
        if existing is None or existing.user_id != user_id:
            return False
        del self._records[budget_id]
        return True

    async def list_budgets(
        self,
        user_id: str,
        active_only: bool = True,
        period: Optional[BudgetPeriod] = None,
    ) -> list[Budget]:
        return [
            b.model_copy()
            for b in self._records.values()
            if b.user_id == user_id
            and (b.is_active or not active_only)
            and (period is None or b.period == period)
        ]


class InMemoryCategoryStorage(CategoryStorageInterface):

    def __init__(self):
        self._records: dict[UUID, CustomCategory] = {}

    async def save_category(self, category: CustomCategory) -> bool:
        check_category_unique(category, self._records.values())
        self._records[category.id] = category.model_copy()
        return True

    async def update_category(self, category: CustomCategory) -> bool:
        existing = self._records.get(category.id)
        if existing is None or existing.user_id != category.user_id:
            raise NotFoundError(f"Category not found: {category.id}")
        check_category_unique(category, self._records.values())
        self._records[category.id] = category.model_copy()
        return True

    async def delete_category(self, user_id: str, category_id: UUID) -> bool:
        existing = self._records.get(category_id)
        if existing is None or existing.user_id != user_id:
            return False
        del self._records[category_id]
        return True

    async def list_categories(self, user_id: str) -> list[CustomCategory]:
        categories = [c.model_copy() for c in self._records.values() if c.user_id == user_id]
        categories.sort(key=lambda c: c.name)
        return categories


class InMemoryPreferenceStorage(PreferenceStorageInterface):

    def __init__(self):
        self._records: dict[str, UserPreferences] = {}

    async def get_preferences(self, user_id: str) -> Optional[UserPreferences]:
        existing = self._records.get(user_id)
        return existing.model_copy() if existing else None

    async def save_preferences(self, preferences: UserPreferences) -> bool:
        existing = self._records.get(preferences.user_id)
        if existing is not None:
            preferences = preferences.model_copy(update={"id": existing.id})
        self._records[preferences.user_id] = preferences.model_copy()
        return True


class InMemoryAuditStorage(AuditStorageInterface):

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if user_id is None or e.user_id == user_id]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
