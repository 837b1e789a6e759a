"""
Flow tests for the orchestrator

Everything runs on in-memory storage with fake Gemini models.
"""

import asyncio
from datetime import date, datetime
from decimal import Decimal

import pytest

from foretrack.agents import CategorizationAgent, ChatAgent, InsightAgent
from foretrack.audit import AuditLogger
from foretrack.models.analytics import TimeRange, UtilizationBand
from foretrack.models.audit import AuditEventType
from foretrack.models.insight import EMPTY_STATE_INSIGHT
from foretrack.models.query import TransactionQuery
from foretrack.models.transaction import BudgetPeriod, TransactionKind
from foretrack.orchestrator import (
    AnalyticsFlow,
    AssistantFlow,
    BudgetFlow,
    CategoryFlow,
    PreferenceFlow,
    TransactionFlow,
    create_app_components,
)
from foretrack.services import UnauthenticatedError, resolve_current_user
from foretrack.services.fetcher import Fetcher
from foretrack.services.storage import (
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    InMemoryCategoryStorage,
    InMemoryPreferenceStorage,
    InMemoryTransactionStorage,
    StorageError,
)
from foretrack.validation import InputValidationError

from conftest import USER, FakeModel


NOW = datetime(2024, 3, 31, 12, 0)


class GatedTransactionStorage(InMemoryTransactionStorage):
    """Reads reaching back before March wait until released."""

    def __init__(self):
        super().__init__()
        self.release = asyncio.Event()

    async def list_transactions(self, user_id, **kwargs):
        if kwargs.get("date_from") and kwargs["date_from"] < date(2024, 3, 1):
            await self.release.wait()
        return await super().list_transactions(user_id, **kwargs)


class FlakyTransactionStorage(InMemoryTransactionStorage):
    """Reads fail while `failing` is set."""

    def __init__(self):
        super().__init__()
        self.failing = False

    async def list_transactions(self, *args, **kwargs):
        if self.failing:
            raise StorageError("sheet unavailable")
        return await super().list_transactions(*args, **kwargs)


@pytest.fixture
def stores():
    return InMemoryTransactionStorage(), InMemoryBudgetStorage(), InMemoryAuditStorage()


class TestAppComponents:

    def test_in_memory_wiring(self):
        components = create_app_components(use_storage=False)
        assert components.storage_backend == "memory"
        assert components.sheets_client is None
        assert isinstance(components.audit_logger, AuditLogger)

    def test_end_to_end_in_memory(self):
        components = create_app_components(use_storage=False)

        async def scenario():
            await components.transactions.add_transaction(
                USER, "expense", Decimal("45"), date(2024, 3, 20), category="Food"
            )
            await components.budgets.set_budget(USER, "Food", Decimal("50"))
            return await components.analytics.refresh(USER, TimeRange.MONTH, now=NOW)

        view = asyncio.run(scenario())
        assert view.report.current.total_expense == Decimal("45")
        assert view.report.budgets[0].band == UtilizationBand.WARNING


class TestTransactionFlow:

    def test_add_is_audited(self, stores):
        transactions, _, audit_storage = stores
        flow = TransactionFlow(transactions, AuditLogger(audit_storage))

        record = asyncio.run(
            flow.add_transaction(USER, TransactionKind.INCOME, Decimal("900"), date(2024, 3, 1), source="Salary")
        )

        assert record.currency == "USD"
        event = asyncio.run(audit_storage.get_recent_events())[0]
        assert event.event_type == AuditEventType.TRANSACTION_SAVED
        assert event.entity_id == record.id

    def test_delete_missing_is_not_audited(self, stores):
        transactions, _, audit_storage = stores
        flow = TransactionFlow(transactions, AuditLogger(audit_storage))
        record = asyncio.run(
            flow.add_transaction(USER, "expense", Decimal("5"), date(2024, 3, 1), category="Food")
        )

        assert not asyncio.run(flow.delete_transaction("someone-else", record.id))
        assert len(asyncio.run(audit_storage.get_recent_events())) == 1

    def test_list_page(self, stores, expense):
        transactions, _, _ = stores
        for day in range(1, 21):
            asyncio.run(transactions.save_transaction(expense("Food", "1", date(2024, 3, day))))
        flow = TransactionFlow(transactions)

        page = asyncio.run(flow.list_page(USER, TransactionQuery()))

        assert len(page.items) == 15
        assert page.total_pages == 2
        assert page.items[0].date == date(2024, 3, 20)


class TestBudgetFlow:

    def test_each_budget_uses_its_own_period(self, stores, expense):
        transactions, budgets, _ = stores
        asyncio.run(transactions.save_transaction(expense("Food", "100", date(2024, 3, 2))))
        asyncio.run(transactions.save_transaction(expense("Food", "30", date(2024, 3, 12))))
        flow = BudgetFlow(budgets, transactions)

        async def scenario():
            await flow.set_budget(USER, "Food", Decimal("200"))
            await flow.set_budget(USER, "Food", Decimal("50"), period=BudgetPeriod.WEEKLY)
            # Thursday; the week started on Monday 11 March
            return await flow.overview(USER, today=date(2024, 3, 14))

        monthly, weekly = asyncio.run(scenario())
        assert monthly.spent == Decimal("130")
        assert weekly.spent == Decimal("30")
        assert weekly.band == UtilizationBand.HEALTHY

    def test_duplicate_rejected(self, stores):
        _, budgets, _ = stores
        flow = BudgetFlow(budgets, InMemoryTransactionStorage())
        asyncio.run(flow.set_budget(USER, "Food", Decimal("200")))
        with pytest.raises(DuplicateError):
            asyncio.run(flow.set_budget(USER, "Food", Decimal("100"), period="monthly"))

    def test_overview_without_budgets(self, stores):
        transactions, budgets, _ = stores
        assert asyncio.run(BudgetFlow(budgets, transactions).overview(USER)) == []


class TestCategoryFlow:

    def test_builtin_name_rejected(self):
        flow = CategoryFlow(InMemoryCategoryStorage())
        with pytest.raises(DuplicateError):
            asyncio.run(flow.add_category(USER, "Food"))

    def test_all_categories_include_custom(self):
        flow = CategoryFlow(InMemoryCategoryStorage())
        asyncio.run(flow.add_category(USER, "Pets", icon="🐶", color="Brown"))

        styles = asyncio.run(flow.all_categories(USER))

        assert styles["Pets"].icon == "🐶"
        assert "Food" in styles
        assert list(styles)[-1] == "Pets"

    def test_rename_updates_style(self):
        flow = CategoryFlow(InMemoryCategoryStorage())
        pets = asyncio.run(flow.add_category(USER, "Pets", icon="🐶"))

        asyncio.run(flow.update_category(pets.model_copy(update={"name": "Animals", "icon": "🐾"})))

        styles = asyncio.run(flow.all_categories(USER))
        assert styles["Animals"].icon == "🐾"
        assert "Pets" not in styles

    def test_rename_to_builtin_rejected(self):
        flow = CategoryFlow(InMemoryCategoryStorage())
        pets = asyncio.run(flow.add_category(USER, "Pets"))

        with pytest.raises(DuplicateError):
            asyncio.run(flow.update_category(pets.model_copy(update={"name": "Food"})))
        assert [c.name for c in asyncio.run(flow.custom_categories(USER))] == ["Pets"]


class TestPreferenceFlow:

    def test_default_currency_until_saved(self):
        flow = PreferenceFlow(InMemoryPreferenceStorage())
        assert asyncio.run(flow.get_currency(USER)) == "USD"

    def test_saved_currency_outlives_the_flow(self, stores):
        _, _, audit_storage = stores
        storage = InMemoryPreferenceStorage()
        asyncio.run(PreferenceFlow(storage, AuditLogger(audit_storage)).set_currency(USER, "eur"))

        assert asyncio.run(PreferenceFlow(storage).get_currency(USER)) == "EUR"
        assert asyncio.run(PreferenceFlow(storage).get_currency("someone-else")) == "USD"
        events = asyncio.run(audit_storage.get_recent_events())
        assert events[0].event_type == AuditEventType.PREFERENCES_SAVED

    def test_second_save_replaces_first(self):
        storage = InMemoryPreferenceStorage()
        flow = PreferenceFlow(storage)
        first = asyncio.run(flow.set_currency(USER, "GBP"))
        second = asyncio.run(flow.set_currency(USER, "JPY"))

        assert second.id == first.id
        assert asyncio.run(flow.get_currency(USER)) == "JPY"

    def test_unknown_currency_rejected(self):
        storage = InMemoryPreferenceStorage()
        with pytest.raises(ValueError):
            asyncio.run(PreferenceFlow(storage).set_currency(USER, "XYZ"))
        assert asyncio.run(storage.get_preferences(USER)) is None

    def test_components_share_preferences(self):
        components = create_app_components(use_storage=False)
        asyncio.run(components.preferences.set_currency(USER, "INR"))
        assert asyncio.run(components.preferences.get_currency(USER)) == "INR"


class TestAnalyticsFlow:

    def test_refresh_publishes(self, stores, expense):
        transactions, budgets, _ = stores
        asyncio.run(transactions.save_transaction(expense("Food", "20", date(2024, 3, 30))))
        flow = AnalyticsFlow(Fetcher(transactions, budgets))

        view = asyncio.run(flow.refresh(USER, "week", now=NOW))

        assert view.generation == 1
        assert not view.degraded
        assert flow.latest(USER) is view

    def test_superseded_refresh_is_discarded(self, expense):
        transactions = GatedTransactionStorage()
        asyncio.run(transactions.save_transaction(expense("Food", "20", date(2024, 3, 30))))
        audit_storage = InMemoryAuditStorage()
        flow = AnalyticsFlow(
            Fetcher(transactions, InMemoryBudgetStorage()),
            audit_logger=AuditLogger(audit_storage),
        )

        async def scenario():
            slow = asyncio.create_task(flow.refresh(USER, TimeRange.MONTH, now=NOW))
            await asyncio.sleep(0)
            fast = await flow.refresh(USER, TimeRange.WEEK, now=NOW)
            transactions.release.set()
            return await slow, fast

        slow, fast = asyncio.run(scenario())

        assert slow is None
        assert fast.generation == 2
        assert flow.latest(USER).report.periods.time_range == TimeRange.WEEK
        events = asyncio.run(audit_storage.get_recent_events())
        assert events[0].event_type == AuditEventType.STALE_RESULT_DISCARDED

    def test_previous_window_records_are_fetched(self, stores, expense):
        transactions, budgets, _ = stores
        asyncio.run(transactions.save_transaction(expense("Food", "50", date(2024, 3, 20))))
        asyncio.run(transactions.save_transaction(expense("Food", "25", date(2024, 2, 10))))
        flow = AnalyticsFlow(Fetcher(transactions, budgets))

        view = asyncio.run(flow.refresh(USER, TimeRange.MONTH, now=NOW))

        assert view.report.previous.total_expense == Decimal("25")
        assert view.report.changes.expense_change == pytest.approx(100.0)

    def test_degraded_refresh_keeps_wide_range_after_assistant_fetch(self, expense):
        transactions = FlakyTransactionStorage()
        asyncio.run(transactions.save_transaction(expense("Food", "100", date(2024, 1, 10))))
        asyncio.run(transactions.save_transaction(expense("Food", "5", date(2024, 3, 20))))
        fetcher = Fetcher(transactions, InMemoryBudgetStorage())
        analytics = AnalyticsFlow(fetcher)
        assistant = AssistantFlow(fetcher)

        healthy = asyncio.run(analytics.refresh(USER, TimeRange.YEAR, now=NOW))
        asyncio.run(assistant.build_context(USER, today=NOW.date()))
        transactions.failing = True
        degraded = asyncio.run(analytics.refresh(USER, TimeRange.YEAR, now=NOW))

        assert healthy.report.current.total_expense == Decimal("105")
        assert degraded.degraded
        assert degraded.report.current.total_expense == Decimal("105")


class TestAssistantFlow:

    def _flow(self, stores, categories=None, **agents):
        transactions, budgets, audit_storage = stores
        return AssistantFlow(
            Fetcher(transactions, budgets),
            category_storage=categories,
            audit_logger=AuditLogger(audit_storage),
            **agents,
        )

    def test_context_holds_month_to_date(self, stores, expense, income, budget):
        transactions, budgets, _ = stores
        asyncio.run(transactions.save_transaction(expense("Food", "40", date(2024, 3, 5), note="market")))
        asyncio.run(transactions.save_transaction(expense("Food", "99", date(2024, 2, 5))))
        asyncio.run(transactions.save_transaction(income("Salary", "1000", date(2024, 3, 1))))
        asyncio.run(budgets.save_budget(budget("Food", 80)))

        context = asyncio.run(self._flow(stores).build_context(USER, today=date(2024, 3, 14)))

        assert [(e.category, e.description) for e in context.expenses] == [("Food", "market")]
        assert context.total_spent == Decimal("40")
        assert context.budgets[0].percentage == 50.0

    def test_insights_without_expenses(self, stores):
        model = FakeModel("[]")
        flow = self._flow(stores, insight_agent=InsightAgent(model=model))

        assert asyncio.run(flow.insights(USER)) == [EMPTY_STATE_INSIGHT]
        assert model.prompts == []

    def test_suggest_category_offers_custom_categories(self, stores):
        categories = InMemoryCategoryStorage()
        asyncio.run(CategoryFlow(categories).add_category(USER, "Pets"))
        model = FakeModel("Pets")
        flow = self._flow(stores, categories, categorization_agent=CategorizationAgent(model=model))

        assert asyncio.run(flow.suggest_category(USER, "dog food")) == "Pets"
        assert "Pets" in model.prompts[0]

    def test_suggest_category_validates_first(self, stores):
        model = FakeModel("Food")
        flow = self._flow(stores, categorization_agent=CategorizationAgent(model=model))

        with pytest.raises(InputValidationError):
            asyncio.run(flow.suggest_category(USER, "   "))
        assert model.prompts == []

    def test_chat(self, stores, expense):
        transactions, _, audit_storage = stores
        asyncio.run(transactions.save_transaction(expense("Food", "12", date.today())))
        flow = self._flow(stores, chat_agent=ChatAgent(model=FakeModel("Mostly food.")))

        assert asyncio.run(flow.chat(USER, "Where does my money go?")) == "Mostly food."
        event = asyncio.run(audit_storage.get_recent_events())[0]
        assert event.event_type == AuditEventType.CHAT_ANSWERED


class TestIdentity:

    def test_explicit_user(self):
        assert resolve_current_user(" alice ").user_id == "alice"

    def test_no_user(self, monkeypatch):
        monkeypatch.delenv("DEFAULT_USER_ID", raising=False)
        with pytest.raises(UnauthenticatedError):
            resolve_current_user(None)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
