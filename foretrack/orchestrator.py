"""
Main Orchestrator for Foretrack

This module ties together all the components and defines the
end-to-end flows the app pages call:
1. Transactions (record, edit, delete, list)
2. Budgets (set limits, month-to-date overview)
3. Categories (built-in plus user-defined)
4. Analytics (fetch, aggregate, compare, measure budgets)
5. Assistant (insights, categorization, chat)
6. Preferences (display currency)

The orchestrator enforces the boundaries:
- Every storage call is scoped to one user id
- Every write is audited
- The assistant only ever sees a SpendingContext built here
- A refresh that has been superseded never publishes its result
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict, Field

from foretrack.agents import CategorizationAgent, ChatAgent, InsightAgent
from foretrack.analytics import (
    aggregate,
    budget_utilization,
    build_report,
    category_totals,
    current_budget_period,
    filter_window,
    partition_by_kind,
    resolve_period,
)
from foretrack.audit import AuditLogger, create_correlation_id
from foretrack.config import get_settings
from foretrack.models.analytics import (
    AnalyticsReport,
    BudgetUtilization,
    DateWindow,
    TimeRange,
)
from foretrack.models.insight import (
    BudgetSummary,
    ExpenseSummary,
    FinancialInsight,
    SpendingContext,
)
from foretrack.models.preferences import UserPreferences
from foretrack.models.query import TransactionPage, TransactionQuery
from foretrack.models.transaction import (
    DEFAULT_CATEGORY_STYLES,
    Budget,
    BudgetPeriod,
    CategoryStyle,
    CustomCategory,
    ExpenseCategory,
    Transaction,
    TransactionKind,
)
from foretrack.queries import TransactionQueryExecutor
from foretrack.services.fetcher import Fetcher, RequestGate
from foretrack.services.storage import (
    AuditStorageInterface,
    BudgetStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsCategoryStorage,
    GoogleSheetsClient,
    GoogleSheetsPreferenceStorage,
    GoogleSheetsTransactionStorage,
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    InMemoryCategoryStorage,
    InMemoryPreferenceStorage,
    InMemoryTransactionStorage,
    PreferenceStorageInterface,
    TransactionStorageInterface,
    list_all_transactions,
)
from foretrack.validation import (
    validate_chat_message,
    validate_description,
    validate_spending_context,
)


logger = structlog.get_logger(__name__)


class TransactionFlow:
    """Records, edits and lists expenses and income."""

    def __init__(
        self,
        storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._executor = TransactionQueryExecutor(storage)

    async def add_transaction(
        self,
        user_id: str,
        kind: Union[TransactionKind, str],
        amount: Decimal,
        on: date,
        category: Optional[str] = None,
        source: Optional[str] = None,
        note: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> Transaction:
        transaction = Transaction(
            user_id=user_id,
            kind=TransactionKind(kind),
            amount=amount,
            date=on,
            category=category,
            source=source,
            note=note or None,
            currency=currency or get_settings().app.default_currency,
        )
        await self._storage.save_transaction(transaction)
        await self._audit_logger.log_record_written(
            entity_type="transaction",
            action="saved",
            entity_id=transaction.id,
            user_id=user_id,
            amount=transaction.amount,
        )
        return transaction

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        await self._storage.update_transaction(transaction)
        await self._audit_logger.log_record_written(
            entity_type="transaction",
            action="updated",
            entity_id=transaction.id,
            user_id=transaction.user_id,
            amount=transaction.amount,
        )
        return transaction

    async def delete_transaction(self, user_id: str, transaction_id: UUID) -> bool:
        deleted = await self._storage.delete_transaction(user_id, transaction_id)
        if deleted:
            await self._audit_logger.log_record_written(
                entity_type="transaction",
                action="deleted",
                entity_id=transaction_id,
                user_id=user_id,
            )
        return deleted

    async def recent(self, user_id: str, limit: int = 5) -> list[Transaction]:
        return await self._storage.list_transactions(user_id, limit=limit)

    async def list_page(self, user_id: str, query: TransactionQuery) -> TransactionPage:
        return await self._executor.execute(user_id, query)


class BudgetFlow:
    """Sets budgets and measures them against their current period."""

    def __init__(
        self,
        budget_storage: BudgetStorageInterface,
        transaction_storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._budgets = budget_storage
        self._transactions = transaction_storage
        self._audit_logger = audit_logger or AuditLogger()

    async def set_budget(
        self,
        user_id: str,
        category: str,
        limit: Decimal,
        period: Union[BudgetPeriod, str] = BudgetPeriod.MONTHLY,
        currency: Optional[str] = None,
    ) -> Budget:
        """
        Create a budget.

        Raises:
            DuplicateError: If an active budget already covers this
                category and period
        """
        budget = Budget(
            user_id=user_id,
            category=category,
            limit=limit,
            period=BudgetPeriod(period),
            currency=currency or get_settings().app.default_currency,
        )
        await self._budgets.save_budget(budget)
        await self._audit_logger.log_record_written(
            entity_type="budget",
            action="saved",
            entity_id=budget.id,
            user_id=user_id,
            amount=budget.limit,
        )
        return budget

    async def update_budget(self, budget: Budget) -> Budget:
        await self._budgets.update_budget(budget)
        await self._audit_logger.log_record_written(
            entity_type="budget",
            action="updated",
            entity_id=budget.id,
            user_id=budget.user_id,
            amount=budget.limit,
        )
        return budget

    async def delete_budget(self, user_id: str, budget_id: UUID) -> bool:
        deleted = await self._budgets.delete_budget(user_id, budget_id)
        if deleted:
            await self._audit_logger.log_record_written(
                entity_type="budget",
                action="deleted",
                entity_id=budget_id,
                user_id=user_id,
            )
        return deleted

    async def list_budgets(self, user_id: str) -> list[Budget]:
        return await self._budgets.list_budgets(user_id, active_only=False)

    async def overview(
        self,
        user_id: str,
        today: Optional[date] = None,
    ) -> list[BudgetUtilization]:
        """
        Each active budget against spending in its own current period:
        week to date, month to date, quarter to date or year to date.
        """
        today = today or date.today()
        budgets = await self._budgets.list_budgets(user_id, active_only=True)
        if not budgets:
            return []

        windows = {p: current_budget_period(p, today) for p in {b.period for b in budgets}}
        earliest = min(w.start for w in windows.values())
        expenses = await list_all_transactions(
            self._transactions,
            user_id,
            kind=TransactionKind.EXPENSE,
            date_from=earliest,
            date_to=today,
            batch_size=get_settings().app.storage_batch_size,
        )

        threshold = get_settings().app.budget_warning_threshold
        by_id: dict[UUID, BudgetUtilization] = {}
        for period, window in windows.items():
            totals = category_totals(filter_window(expenses, window))
            in_period = [b for b in budgets if b.period == period]
            for result in budget_utilization(in_period, totals, threshold):
                by_id[result.budget.id] = result

        return [by_id[b.id] for b in budgets if b.id in by_id]


class CategoryFlow:
    """Built-in categories plus the user's own."""

    def __init__(
        self,
        storage: CategoryStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()

    async def add_category(
        self,
        user_id: str,
        name: str,
        icon: str = "📦",
        color: str = "Gray",
    ) -> CustomCategory:
        """
        Raises:
            DuplicateError: If the user already has a category with this
                name, or the name is a built-in category
        """
        category = CustomCategory(user_id=user_id, name=name, icon=icon, color=color)
        if category.name in DEFAULT_CATEGORY_STYLES:
            raise DuplicateError(f"{category.name} is a built-in category")

        await self._storage.save_category(category)
        await self._audit_logger.log_record_written(
            entity_type="category",
            action="saved",
            entity_id=category.id,
            user_id=user_id,
        )
        return category

    async def update_category(self, category: CustomCategory) -> CustomCategory:
        """
        Raises:
            DuplicateError: If the new name clashes with another category
                or a built-in one
            NotFoundError: If the category does not exist
        """
        if category.name in DEFAULT_CATEGORY_STYLES:
            raise DuplicateError(f"{category.name} is a built-in category")
        await self._storage.update_category(category)
        await self._audit_logger.log_record_written(
            entity_type="category",
            action="updated",
            entity_id=category.id,
            user_id=category.user_id,
        )
        return category

    async def delete_category(self, user_id: str, category_id: UUID) -> bool:
        deleted = await self._storage.delete_category(user_id, category_id)
        if deleted:
            await self._audit_logger.log_record_written(
                entity_type="category",
                action="deleted",
                entity_id=category_id,
                user_id=user_id,
            )
        return deleted

    async def custom_categories(self, user_id: str) -> list[CustomCategory]:
        return await self._storage.list_categories(user_id)

    async def all_categories(self, user_id: str) -> dict[str, CategoryStyle]:
        """Built-in categories first, then custom ones by name."""
        styles = dict(DEFAULT_CATEGORY_STYLES)
        for category in await self._storage.list_categories(user_id):
            styles.setdefault(category.name, category.style)
        return styles


class AnalyticsView(BaseModel):
    """A published analytics refresh."""

    report: AnalyticsReport
    generation: int
    degraded: bool = False
    errors: list[str] = Field(default_factory=list)


class PreferenceFlow:
    """Remembers each user's display currency between sessions."""

    def __init__(
        self,
        storage: PreferenceStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()

    async def get_currency(self, user_id: str) -> str:
        """The user's saved currency, or the configured default."""
        preferences = await self._storage.get_preferences(user_id)
        if preferences is None:
            return get_settings().app.default_currency
        return preferences.currency

    async def set_currency(self, user_id: str, currency: str) -> UserPreferences:
        """
        Raises:
            ValueError: If the currency code is not supported
        """
        preferences = UserPreferences(user_id=user_id, currency=currency)
        await self._storage.save_preferences(preferences)
        saved = await self._storage.get_preferences(user_id) or preferences
        await self._audit_logger.log_record_written(
            entity_type="preferences",
            action="saved",
            entity_id=saved.id,
            user_id=user_id,
        )
        logger.info("currency_saved", user_id=user_id, currency=saved.currency)
        return saved


class AnalyticsFlow:
    """
    Fetches records and builds the analytics report.

    Refreshes for the same user race freely; the gate lets only the
    most recently started one publish.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        gate: Optional[RequestGate] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._fetcher = fetcher
        self._gate = gate or RequestGate()
        self._audit_logger = audit_logger or AuditLogger()
        self._published: dict[str, AnalyticsView] = {}

    @staticmethod
    def gate_key(user_id: str) -> str:
        return f"analytics:{user_id}"

    async def refresh(
        self,
        user_id: str,
        time_range: Union[TimeRange, str, None] = None,
        now: Optional[datetime] = None,
    ) -> Optional[AnalyticsView]:
        """
        Recompute the report for a range.

        Returns None if a newer refresh for this user started while this
        one was loading; the newer one will publish instead.
        """
        settings = get_settings().app
        key = self.gate_key(user_id)
        generation = self._gate.begin(key)

        periods = resolve_period(time_range or settings.default_time_range, now)
        span = DateWindow(start=periods.previous.start, end=periods.current.end)
        fetched = await self._fetcher.fetch(user_id, span)

        if not self._gate.is_current(key, generation):
            await self._audit_logger.log_stale_discarded(
                user_id=user_id,
                key=key,
                generation=generation,
                latest_generation=self._gate.latest(key),
            )
            return None

        report = build_report(
            fetched.transactions,
            fetched.budgets,
            time_range=periods.time_range,
            now=periods.reference,
            top_n=settings.top_categories_limit,
            warning_threshold=settings.budget_warning_threshold,
        )
        view = AnalyticsView(
            report=report,
            generation=generation,
            degraded=fetched.degraded,
            errors=fetched.errors,
        )
        self._published[user_id] = view
        return view

    def latest(self, user_id: str) -> Optional[AnalyticsView]:
        """The last published view for the user, if any."""
        return self._published.get(user_id)


class AssistantFlow:
    """
    Builds the assistant's context from stored records and routes
    requests to the agents.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        category_storage: Optional[CategoryStorageInterface] = None,
        insight_agent: Optional[InsightAgent] = None,
        categorization_agent: Optional[CategorizationAgent] = None,
        chat_agent: Optional[ChatAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._fetcher = fetcher
        self._categories = category_storage
        self._audit_logger = audit_logger or AuditLogger()
        self._insight_agent = insight_agent or InsightAgent(audit_logger=self._audit_logger)
        self._categorization_agent = categorization_agent or CategorizationAgent(
            audit_logger=self._audit_logger
        )
        self._chat_agent = chat_agent or ChatAgent(audit_logger=self._audit_logger)

    async def build_context(
        self,
        user_id: str,
        currency: Optional[str] = None,
        today: Optional[date] = None,
    ) -> SpendingContext:
        """Month-to-date expenses and monthly budget status."""
        settings = get_settings().app
        window = current_budget_period(BudgetPeriod.MONTHLY, today)
        fetched = await self._fetcher.fetch(user_id, window)

        expenses, _ = partition_by_kind(fetched.transactions)
        totals = category_totals(expenses)
        monthly = [b for b in fetched.budgets if b.period == BudgetPeriod.MONTHLY]
        utilization = budget_utilization(monthly, totals, settings.budget_warning_threshold)

        expense_entries = [
            ExpenseSummary(
                category=e.label,
                amount=e.amount,
                description=e.note,
                date=e.date.isoformat(),
            )
            for e in expenses[:settings.max_expenses_per_request]
        ]
        budget_entries = [
            BudgetSummary(
                category=u.budget.category,
                amount=u.budget.limit,
                spent=u.spent,
                percentage=round(u.utilization, 1),
            )
            for u in utilization[:settings.max_budgets_per_request]
        ]

        return validate_spending_context(
            expense_entries,
            budget_entries,
            sum(totals.values(), Decimal("0")),
            currency=currency or settings.default_currency,
        )

    async def insights(
        self,
        user_id: str,
        currency: Optional[str] = None,
    ) -> list[FinancialInsight]:
        correlation_id = create_correlation_id()
        context = await self.build_context(user_id, currency)
        insights = await self._insight_agent.generate_insights(context, user_id=user_id)
        await self._audit_logger.log_insights_generated(
            user_id=user_id,
            insight_count=len(insights),
            expense_count=len(context.expenses),
            correlation_id=correlation_id,
        )
        return insights

    async def spending_analysis(self, user_id: str) -> str:
        context = await self.build_context(user_id)
        return await self._insight_agent.generate_spending_analysis(
            context.expenses, context.budgets, user_id=user_id
        )

    async def savings_tips(
        self,
        user_id: str,
        currency: Optional[str] = None,
        today: Optional[date] = None,
    ) -> list[str]:
        """Tips targeted at this month's biggest categories."""
        settings = get_settings().app
        window = current_budget_period(BudgetPeriod.MONTHLY, today)
        fetched = await self._fetcher.fetch(user_id, window)
        result = aggregate(fetched.transactions, window, settings.top_categories_limit)
        return await self._insight_agent.generate_savings_tips(
            result.top_categories,
            currency=currency or settings.default_currency,
            user_id=user_id,
        )

    async def suggest_category(self, user_id: str, description: str) -> str:
        """
        Raises:
            InputValidationError: If the description is empty or too long
        """
        cleaned = validate_description(description)
        allowed = [c.value for c in ExpenseCategory]
        if self._categories:
            allowed.extend(
                c.name for c in await self._categories.list_categories(user_id)
                if c.name not in allowed
            )

        category = await self._categorization_agent.categorize_expense(
            cleaned, allowed=allowed, user_id=user_id
        )
        await self._audit_logger.log_expense_categorized(user_id=user_id, category=category)
        return category

    async def chat(
        self,
        user_id: str,
        message: str,
        currency: Optional[str] = None,
    ) -> str:
        """
        Raises:
            InputValidationError: If the message is empty or too long
        """
        cleaned = validate_chat_message(message)
        context = await self.build_context(user_id, currency)
        answer = await self._chat_agent.chat(cleaned, context, user_id=user_id)
        await self._audit_logger.log_chat_answered(user_id=user_id, message_length=len(cleaned))
        return answer


class AppComponents(BaseModel):
    """Everything the app pages need, wired to one storage backend."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    transactions: TransactionFlow
    budgets: BudgetFlow
    categories: CategoryFlow
    preferences: PreferenceFlow
    analytics: AnalyticsFlow
    assistant: AssistantFlow
    audit_logger: AuditLogger
    audit_storage: AuditStorageInterface
    sheets_client: Optional[GoogleSheetsClient] = None

    @property
    def storage_backend(self) -> str:
        return "google_sheets" if self.sheets_client else "memory"


def create_app_components(use_storage: bool = True) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    When False, or when Sheets isn't configured,
                    everything runs on in-memory storage.
    """
    sheets_client = None
    transaction_storage: TransactionStorageInterface
    budget_storage: BudgetStorageInterface
    category_storage: CategoryStorageInterface
    preference_storage: PreferenceStorageInterface
    audit_storage: AuditStorageInterface

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            sheets_client.connect()
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None

    if sheets_client:
        transaction_storage = GoogleSheetsTransactionStorage(sheets_client)
        budget_storage = GoogleSheetsBudgetStorage(sheets_client)
        category_storage = GoogleSheetsCategoryStorage(sheets_client)
        preference_storage = GoogleSheetsPreferenceStorage(sheets_client)
        audit_storage = GoogleSheetsAuditStorage(sheets_client)
    else:
        transaction_storage = InMemoryTransactionStorage()
        budget_storage = InMemoryBudgetStorage()
        category_storage = InMemoryCategoryStorage()
        preference_storage = InMemoryPreferenceStorage()
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)
    fetcher = Fetcher(transaction_storage, budget_storage, audit_logger)

    return AppComponents(
        transactions=TransactionFlow(transaction_storage, audit_logger),
        budgets=BudgetFlow(budget_storage, transaction_storage, audit_logger),
        categories=CategoryFlow(category_storage, audit_logger),
        preferences=PreferenceFlow(preference_storage, audit_logger),
        analytics=AnalyticsFlow(fetcher, audit_logger=audit_logger),
        assistant=AssistantFlow(fetcher, category_storage, audit_logger=audit_logger),
        audit_logger=audit_logger,
        audit_storage=audit_storage,
        sheets_client=sheets_client,
    )
