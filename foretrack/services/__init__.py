"""Services package."""

from foretrack.services.identity import (
    CurrentUser,
    UnauthenticatedError,
    resolve_current_user,
)
from foretrack.services.storage import (
    AuditStorageInterface,
    BudgetStorageInterface,
    CategoryStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)

__all__ = [
    # Identity
    "CurrentUser",
    "UnauthenticatedError",
    "resolve_current_user",
    # Storage services
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "CategoryStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    "TransactionStorageInterface",
]
