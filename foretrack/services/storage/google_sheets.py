"""
Google Sheets Storage Implementation

Google Sheets is the hosted storage backend:
1. Users can view and export their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (fine for personal finance)
- No transactions and no unique indexes, so uniqueness is checked in
  Python right before each write
- Limited query capabilities (we filter in Python)

Each record kind gets its own worksheet. Every row carries the owning
user id and every read filters on it.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional, TypeVar
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from foretrack.config import get_settings
from foretrack.models.audit import AuditEvent, AuditEventType, AuditSeverity
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
    ConnectionError,
    NotFoundError,
    PreferenceStorageInterface,
    StorageError,
    TransactionStorageInterface,
    check_budget_unique,
    check_category_unique,
    matches_filters,
)


# Expenses and incomes share a layout; the label column holds the
# category for expenses and the source for income.
TRANSACTION_COLUMNS = [
    "id",
    "user_id",
    "amount",
    "currency",
    "label",
    "note",
    "date",
    "created_at",
]

BUDGET_COLUMNS = [
    "id",
    "user_id",
    "category",
    "limit",
    "currency",
    "period",
    "is_active",
    "created_at",
]

CATEGORY_COLUMNS = [
    "id",
    "user_id",
    "name",
    "icon",
    "color",
    "created_at",
]

PREFERENCE_COLUMNS = [
    "id",
    "user_id",
    "currency",
    "updated_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

T = TypeVar("T")

storage_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def _cell(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Owns the gspread session and the worksheet lookups.

    Connecting is retried; each worksheet is created with a header row
    the first time it is asked for.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @storage_retry
    def connect(self) -> gspread.Client:
        """
        Authorize with the service account file from settings.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Service account file missing: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Could not authorize with Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Open the spreadsheet named by GOOGLE_SHEETS_SPREADSHEET_ID."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"No spreadsheet with id {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get a worksheet, creating it with a header row if missing."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_transactions_sheet(self, kind: TransactionKind) -> gspread.Worksheet:
        if kind == TransactionKind.EXPENSE:
            return self.get_worksheet(self._settings.expenses_sheet_name, TRANSACTION_COLUMNS)
        return self.get_worksheet(self._settings.incomes_sheet_name, TRANSACTION_COLUMNS)

    def get_budgets_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.budgets_sheet_name, BUDGET_COLUMNS)

    def get_categories_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.categories_sheet_name, CATEGORY_COLUMNS)

    def get_preferences_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.preferences_sheet_name, PREFERENCE_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


class _SheetRecords:
    """Row-level helpers shared by the record storages."""

    @staticmethod
    def load(sheet: gspread.Worksheet, parse: Callable[[list], T]) -> list[tuple[int, T]]:
        """Parse every data row, returning (sheet row number, record)."""
        records = []
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if not row or not row[0]:
                continue
            try:
                records.append((idx, parse(row)))
            except Exception:
                continue  # Skip malformed rows
        return records

    @staticmethod
    def replace_row(sheet: gspread.Worksheet, idx: int, row: list) -> None:
        for col_idx, value in enumerate(row, start=1):
            sheet.update_cell(idx, col_idx, value)


class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """
    Google Sheets implementation of transaction storage.

    Expenses and income live on separate worksheets.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _transaction_to_row(self, transaction: Transaction) -> list:
        return [
            str(transaction.id),
            transaction.user_id,
            str(transaction.amount),
            transaction.currency,
            (transaction.category if transaction.kind == TransactionKind.EXPENSE else transaction.source) or "",
            transaction.note or "",
            transaction.date.isoformat(),
            transaction.created_at.isoformat(),
        ]

    def _row_parser(self, kind: TransactionKind) -> Callable[[list], Transaction]:
        def parse(row: list) -> Transaction:
            label = _cell(row, 4) or None
            return Transaction(
                id=UUID(_cell(row, 0)),
                user_id=_cell(row, 1),
                amount=Decimal(_cell(row, 2)),
                currency=_cell(row, 3, "USD"),
                kind=kind,
                category=label if kind == TransactionKind.EXPENSE else None,
                source=label if kind == TransactionKind.INCOME else None,
                note=_cell(row, 5) or None,
                date=date.fromisoformat(_cell(row, 6)),
                created_at=datetime.fromisoformat(_cell(row, 7)),
            )
        return parse

    def _load(self, kind: TransactionKind) -> tuple[gspread.Worksheet, list[tuple[int, Transaction]]]:
        sheet = self._client.get_transactions_sheet(kind)
        return sheet, _SheetRecords.load(sheet, self._row_parser(kind))

    @storage_retry
    async def save_transaction(self, transaction: Transaction) -> bool:
        try:
            sheet = self._client.get_transactions_sheet(transaction.kind)
            sheet.append_row(self._transaction_to_row(transaction), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

    async def get_transaction(
        self,
        user_id: str,
        transaction_id: UUID,
    ) -> Optional[Transaction]:
        try:
            for kind in TransactionKind:
                _, records = self._load(kind)
                for _, transaction in records:
                    if transaction.id == transaction_id and transaction.user_id == user_id:
                        return transaction
            return None
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")

    async def update_transaction(self, transaction: Transaction) -> bool:
        """
        Rewrite a stored transaction in place.

        A record whose kind changed is moved: its row is removed from the
        old kind's worksheet and appended to the new one.
        """
        try:
            for kind in TransactionKind:
                sheet, records = self._load(kind)
                for idx, existing in records:
                    if existing.id != transaction.id or existing.user_id != transaction.user_id:
                        continue
                    row = self._transaction_to_row(transaction)
                    if kind == transaction.kind:
                        _SheetRecords.replace_row(sheet, idx, row)
                    else:
                        target = self._client.get_transactions_sheet(transaction.kind)
                        target.append_row(row, value_input_option="RAW")
                        sheet.delete_rows(idx)
                    return True
            raise NotFoundError(f"Transaction not found: {transaction.id}")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")

    async def delete_transaction(self, user_id: str, transaction_id: UUID) -> bool:
        try:
            for kind in TransactionKind:
                sheet, records = self._load(kind)
                for idx, existing in records:
                    if existing.id == transaction_id and existing.user_id == user_id:
                        sheet.delete_rows(idx)
                        return True
            return False
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")

    async def list_transactions(
        self,
        user_id: str,
        kind: Optional[TransactionKind] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = 1000,
        offset: int = 0,
    ) -> list[Transaction]:
        try:
            kinds = [kind] if kind else list(TransactionKind)
            transactions = []
            for sheet_kind in kinds:
                _, records = self._load(sheet_kind)
                transactions.extend(
                    t for _, t in records
                    if t.user_id == user_id and matches_filters(t, kind, date_from, date_to)
                )

            transactions.sort(key=lambda t: t.date, reverse=True)
            return transactions[offset:offset + limit]
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")


class GoogleSheetsBudgetStorage(BudgetStorageInterface):
    """Google Sheets implementation of budget storage."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _budget_to_row(self, budget: Budget) -> list:
        return [
            str(budget.id),
            budget.user_id,
            budget.category,
            str(budget.limit),
            budget.currency,
            budget.period.value,
            str(budget.is_active),
            budget.created_at.isoformat(),
        ]

    def _row_to_budget(self, row: list) -> Budget:
        return Budget(
            id=UUID(_cell(row, 0)),
            user_id=_cell(row, 1),
            category=_cell(row, 2),
            limit=Decimal(_cell(row, 3)),
            currency=_cell(row, 4, "USD"),
            period=BudgetPeriod(_cell(row, 5)),
            is_active=_cell(row, 6).lower() == "true",
            created_at=datetime.fromisoformat(_cell(row, 7)),
        )

    def _load(self) -> tuple[gspread.Worksheet, list[tuple[int, Budget]]]:
        sheet = self._client.get_budgets_sheet()
        return sheet, _SheetRecords.load(sheet, self._row_to_budget)

    async def save_budget(self, budget: Budget) -> bool:
        try:
            sheet, records = self._load()
            check_budget_unique(budget, (b for _, b in records))
            sheet.append_row(self._budget_to_row(budget), value_input_option="RAW")
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save budget: {e}")

    async def update_budget(self, budget: Budget) -> bool:
        try:
            sheet, records = self._load()
            check_budget_unique(budget, (b for _, b in records))
            for idx, existing in records:
                if existing.id == budget.id and existing.user_id == budget.user_id:
                    _SheetRecords.replace_row(sheet, idx, self._budget_to_row(budget))
                    return True
            raise NotFoundError(f"Budget not found: {budget.id}")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update budget: {e}")

    async def delete_budget(self, user_id: str, budget_id: UUID) -> bool:
        try:
            sheet, records = self._load()
            for idx, existing in records:
                if existing.id == budget_id and existing.user_id == user_id:
                    sheet.delete_rows(idx)
                    return True
            return False
        except Exception as e:
            raise StorageError(f"Failed to delete budget: {e}")

    async def list_budgets(
        self,
        user_id: str,
        active_only: bool = True,
        period: Optional[BudgetPeriod] = None,
    ) -> list[Budget]:
        try:
            _, records = self._load()
            return [
                b for _, b in records
                if b.user_id == user_id
                and (b.is_active or not active_only)
                and (period is None or b.period == period)
            ]
        except Exception as e:
            raise StorageError(f"Failed to list budgets: {e}")


class GoogleSheetsCategoryStorage(CategoryStorageInterface):
    """Google Sheets implementation of custom category storage."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _category_to_row(self, category: CustomCategory) -> list:
        return [
            str(category.id),
            category.user_id,
            category.name,
            category.icon,
            category.color,
            category.created_at.isoformat(),
        ]

    def _row_to_category(self, row: list) -> CustomCategory:
        return CustomCategory(
            id=UUID(_cell(row, 0)),
            user_id=_cell(row, 1),
            name=_cell(row, 2),
            icon=_cell(row, 3, "📦"),
            color=_cell(row, 4, "Gray"),
            created_at=datetime.fromisoformat(_cell(row, 5)),
        )

    def _load(self) -> tuple[gspread.Worksheet, list[tuple[int, CustomCategory]]]:
        sheet = self._client.get_categories_sheet()
        return sheet, _SheetRecords.load(sheet, self._row_to_category)

    async def save_category(self, category: CustomCategory) -> bool:
        try:
            sheet, records = self._load()
            check_category_unique(category, (c for _, c in records))
            sheet.append_row(self._category_to_row(category), value_input_option="RAW")
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save category: {e}")

    async def update_category(self, category: CustomCategory) -> bool:
        try:
            sheet, records = self._load()
            check_category_unique(category, (c for _, c in records))
            for idx, existing in records:
                if existing.id == category.id and existing.user_id == category.user_id:
                    _SheetRecords.replace_row(sheet, idx, self._category_to_row(category))
                    return True
            raise NotFoundError(f"Category not found: {category.id}")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update category: {e}")

    async def delete_category(self, user_id: str, category_id: UUID) -> bool:
        try:
            sheet, records = self._load()
            for idx, existing in records:
                if existing.id == category_id and existing.user_id == user_id:
                    sheet.delete_rows(idx)
                    return True
            return False
        except Exception as e:
            raise StorageError(f"Failed to delete category: {e}")

    async def list_categories(self, user_id: str) -> list[CustomCategory]:
        try:
            _, records = self._load()
            categories = [c for _, c in records if c.user_id == user_id]
            categories.sort(key=lambda c: c.name)
            return categories
        except Exception as e:
            raise StorageError(f"Failed to list categories: {e}")


class GoogleSheetsPreferenceStorage(PreferenceStorageInterface):
    """
    Preferences on their own worksheet, one row per user. Saving
    overwrites the user's row if there is one.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _preferences_to_row(self, preferences: UserPreferences) -> list:
        return [
            str(preferences.id),
            preferences.user_id,
            preferences.currency,
            preferences.updated_at.isoformat(),
        ]

    def _row_to_preferences(self, row: list) -> UserPreferences:
        return UserPreferences(
            id=UUID(_cell(row, 0)),
            user_id=_cell(row, 1),
            currency=_cell(row, 2, "USD"),
            updated_at=datetime.fromisoformat(_cell(row, 3)),
        )

    def _load(self) -> tuple[gspread.Worksheet, list[tuple[int, UserPreferences]]]:
        sheet = self._client.get_preferences_sheet()
        return sheet, _SheetRecords.load(sheet, self._row_to_preferences)

    async def get_preferences(self, user_id: str) -> Optional[UserPreferences]:
        try:
            _, records = self._load()
            for _, preferences in records:
                if preferences.user_id == user_id:
                    return preferences
            return None
        except Exception as e:
            raise StorageError(f"Failed to read preferences: {e}")

    @storage_retry
    async def save_preferences(self, preferences: UserPreferences) -> bool:
        try:
            sheet, records = self._load()
            for idx, existing in records:
                if existing.user_id == preferences.user_id:
                    kept = preferences.model_copy(update={"id": existing.id})
                    _SheetRecords.replace_row(sheet, idx, self._preferences_to_row(kept))
                    return True
            sheet.append_row(self._preferences_to_row(preferences), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save preferences: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Audit trail on its own worksheet. Rows are only ever appended.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(_cell(row, 0)),
            timestamp=datetime.fromisoformat(_cell(row, 1)),
            event_type=AuditEventType(_cell(row, 2)),
            severity=AuditSeverity(_cell(row, 3)),
            user_id=_cell(row, 4) or None,
            entity_type=_cell(row, 5) or None,
            entity_id=UUID(_cell(row, 6)) if _cell(row, 6) else None,
            correlation_id=UUID(_cell(row, 7)) if _cell(row, 7) else None,
            description=_cell(row, 8),
            details=json.loads(_cell(row, 9)) if _cell(row, 9) else {},
            error_message=_cell(row, 10) or None,
            is_user_action=_cell(row, 11).lower() == "true",
        )

    @storage_retry
    async def append_event(self, event: AuditEvent) -> bool:
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            events = [
                e for _, e in _SheetRecords.load(sheet, self._row_to_event)
                if e.correlation_id == correlation_id
            ]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to read audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            events = [
                e for _, e in _SheetRecords.load(sheet, self._row_to_event)
                if user_id is None or e.user_id == user_id
            ]
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to read audit events: {e}")
