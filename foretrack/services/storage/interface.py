"""
Abstract Storage Interface

We define an abstract interface for storage operations. This allows us to:
1. Run the app on Google Sheets or fully in memory
2. Test every flow without credentials
3. Keep the analytics and flows decoupled from the storage implementation

Every read is scoped to one user id. Lists come back newest first.
Uniqueness rules (one active budget per user/category/period, one
category name per user) are enforced here, at the storage layer.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
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


class TransactionStorageInterface(ABC):
    """
    Abstract interface for expense and income records.
    """

    @abstractmethod
    async def save_transaction(self, transaction: Transaction) -> bool:
        """
        Save a new transaction.

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_transaction(
        self,
        user_id: str,
        transaction_id: UUID,
    ) -> Optional[Transaction]:
        """Retrieve one of the user's transactions, or None."""
        pass

    @abstractmethod
    async def update_transaction(self, transaction: Transaction) -> bool:
        """
        Replace an existing transaction.

        Raises:
            NotFoundError: If the user has no transaction with this id
        """
        pass

    @abstractmethod
    async def delete_transaction(self, user_id: str, transaction_id: UUID) -> bool:
        """Delete a transaction. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def list_transactions(
        self,
        user_id: str,
        kind: Optional[TransactionKind] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = 1000,
        offset: int = 0,
    ) -> list[Transaction]:
        """
        List the user's transactions, newest first.

        Args:
            user_id: Owner of the records
            kind: Only expenses or only income
            date_from: Records on or after this date
            date_to: Records on or before this date
            limit: Maximum number of results
            offset: Number of results to skip
        """
        pass


class BudgetStorageInterface(ABC):
    """Abstract interface for budgets."""

    @abstractmethod
    async def save_budget(self, budget: Budget) -> bool:
        """
        Save a new budget.

        Raises:
            DuplicateError: If an active budget already exists for the
                same user, category and period
        """
        pass

    @abstractmethod
    async def update_budget(self, budget: Budget) -> bool:
        """
        Replace an existing budget.

        Raises:
            NotFoundError: If the budget doesn't exist
            DuplicateError: If the change collides with another active budget
        """
        pass

    @abstractmethod
    async def delete_budget(self, user_id: str, budget_id: UUID) -> bool:
        pass

    @abstractmethod
    async def list_budgets(
        self,
        user_id: str,
        active_only: bool = True,
        period: Optional[BudgetPeriod] = None,
    ) -> list[Budget]:
        pass


class CategoryStorageInterface(ABC):
    """Abstract interface for user-defined categories."""

    @abstractmethod
    async def save_category(self, category: CustomCategory) -> bool:
        """
        Raises:
            DuplicateError: If the user already has a category with this name
        """
        pass

    @abstractmethod
    async def update_category(self, category: CustomCategory) -> bool:
        pass

    @abstractmethod
    async def delete_category(self, user_id: str, category_id: UUID) -> bool:
        pass

    @abstractmethod
    async def list_categories(self, user_id: str) -> list[CustomCategory]:
        """The user's categories ordered by name."""
        pass


class PreferenceStorageInterface(ABC):
    """Abstract interface for per-user preferences (one record per user)."""

    @abstractmethod
    async def get_preferences(self, user_id: str) -> Optional[UserPreferences]:
        """The user's saved preferences, or None if they never saved any."""
        pass

    @abstractmethod
    async def save_preferences(self, preferences: UserPreferences) -> bool:
        """Insert or replace the user's preferences."""
        pass


class AuditStorageInterface(ABC):
    """
    Audit trail storage. Append-only: events are never edited or removed.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Related events in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """No record with that id for that user."""
    pass


class DuplicateError(StorageError):
    """A uniqueness rule would be broken by this write."""
    pass


class ConnectionError(StorageError):
    """The backend could not be reached or authorized."""
    pass


# =============================================================================
# Shared rules used by every implementation
# =============================================================================

def matches_filters(
    transaction: Transaction,
    kind: Optional[TransactionKind],
    date_from: Optional[date],
    date_to: Optional[date],
) -> bool:
    if kind and transaction.kind != kind:
        return False
    if date_from and transaction.date < date_from:
        return False
    if date_to and transaction.date > date_to:
        return False
    return True


def check_budget_unique(budget: Budget, existing: Iterable[Budget]) -> None:
    """Raise DuplicateError if another active budget covers the same slot."""
    if not budget.is_active:
        return
    for other in existing:
        if (
            other.id != budget.id
            and other.is_active
            and other.user_id == budget.user_id
            and other.category == budget.category
            and other.period == budget.period
        ):
            raise DuplicateError(
                f"An active {budget.period.value} budget for {budget.category} already exists"
            )


def check_category_unique(category: CustomCategory, existing: Iterable[CustomCategory]) -> None:
    for other in existing:
        if (
            other.id != category.id
            and other.user_id == category.user_id
            and other.name == category.name
        ):
            raise DuplicateError(f"A category named {category.name} already exists")


async def list_all_transactions(
    storage: TransactionStorageInterface,
    user_id: str,
    kind: Optional[TransactionKind] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    batch_size: int = 1000,
) -> list[Transaction]:
    """
    Page through list_transactions until the backend runs out of rows.

    A short batch marks the end, so a range of any size comes back
    complete without a fixed upper limit.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    records: list[Transaction] = []
    offset = 0
    while True:
        batch = await storage.list_transactions(
            user_id,
            kind=kind,
            date_from=date_from,
            date_to=date_to,
            limit=batch_size,
            offset=offset,
        )
        records.extend(batch)
        if len(batch) < batch_size:
            return records
        offset += batch_size
