"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage:
Google Sheets for the hosted app, in-memory for tests and offline use.
"""

from foretrack.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    CategoryStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    PreferenceStorageInterface,
    StorageError,
    TransactionStorageInterface,
    list_all_transactions,
)
from foretrack.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    InMemoryCategoryStorage,
    InMemoryPreferenceStorage,
    InMemoryTransactionStorage,
)
from foretrack.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsCategoryStorage,
    GoogleSheetsClient,
    GoogleSheetsPreferenceStorage,
    GoogleSheetsTransactionStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "CategoryStorageInterface",
    "PreferenceStorageInterface",
    "TransactionStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Helpers
    "list_all_transactions",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryBudgetStorage",
    "InMemoryCategoryStorage",
    "InMemoryPreferenceStorage",
    "InMemoryTransactionStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBudgetStorage",
    "GoogleSheetsCategoryStorage",
    "GoogleSheetsClient",
    "GoogleSheetsPreferenceStorage",
    "GoogleSheetsTransactionStorage",
]
