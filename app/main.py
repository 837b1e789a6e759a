"""
Streamlit Frontend for Foretrack

The pages users work with every day: record expenses and income, set
budgets, look at where the money went, and ask the assistant about it.

DESIGN PRINCIPLES:
1. Every number on screen comes from the analytics engine, never the model
2. Clear error messages in simple language
3. Degraded data is labelled as such
4. The assistant always answers something, even when Gemini is down
"""

import asyncio
from datetime import date
from decimal import Decimal

import streamlit as st

from foretrack.config import get_settings, validate_all_settings
from foretrack.models import (
    CURRENCIES,
    Budget,
    BudgetPeriod,
    CustomCategory,
    ExpenseCategory,
    IncomeSource,
    KindFilter,
    SortOrder,
    TimeRange,
    Transaction,
    TransactionKind,
    TransactionQuery,
    UtilizationBand,
    category_style,
    format_amount,
)
from foretrack.orchestrator import AppComponents, create_app_components
from foretrack.services import (
    DuplicateError,
    StorageError,
    UnauthenticatedError,
    resolve_current_user,
)
from foretrack.validation import InputValidationError


# Page configuration
st.set_page_config(
    page_title="Foretrack",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .insight-box {
        padding: 16px;
        background-color: #eef2ff;
        border-radius: 10px;
        border-left: 5px solid #6366f1;
        margin: 10px 0;
    }
</style>
""", unsafe_allow_html=True)


BAND_ICONS = {
    UtilizationBand.HEALTHY: "🟢",
    UtilizationBand.WARNING: "🟡",
    UtilizationBand.OVER: "🔴",
}

CATEGORY_COLORS = ["Gray", "Orange", "Blue", "Purple", "Pink", "Yellow", "Green", "Red"]

RANGE_LABELS = {
    TimeRange.WEEK: "Last 7 days",
    TimeRange.MONTH: "Last month",
    TimeRange.QUARTER: "Last 3 months",
    TimeRange.YEAR: "Last year",
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    try:
        return create_app_components(use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize storage: {e}")
        return create_app_components(use_storage=False)


def report_error(components: AppComponents, error: Exception, page: str) -> None:
    """Record an unexpected failure in the audit trail."""
    run_async(components.audit_logger.log_error(
        error_type=type(error).__name__,
        error_message=str(error),
        details={"page": page},
    ))


def money(amount) -> str:
    return format_amount(amount, st.session_state.get("currency", get_settings().app.default_currency))


def load_currency(components: AppComponents, user_id: str, default: str) -> str:
    """The user's saved currency; the default when signed out or unreadable."""
    if not user_id.strip():
        return default
    try:
        return run_async(components.preferences.get_currency(user_id))
    except StorageError as e:
        report_error(components, e, "preferences")
        return default


def save_currency(components: AppComponents, user_id: str, code: str) -> None:
    if not user_id.strip():
        return
    try:
        run_async(components.preferences.set_currency(user_id, code))
    except (StorageError, ValueError) as e:
        st.sidebar.error(f"Could not save currency: {e}")


def change_label(change: float) -> str:
    """Signed percentage for st.metric deltas."""
    return f"{change:+.1f}%"


def main():
    """Main application entry point."""
    components = get_components()
    settings = get_settings().app

    st.sidebar.title("💰 Foretrack")
    st.sidebar.markdown("---")

    if "user_id" not in st.session_state:
        st.session_state.user_id = settings.default_user_id or ""
    st.session_state.user_id = st.sidebar.text_input("Signed in as", value=st.session_state.user_id)

    codes = [c.code for c in CURRENCIES]
    default_code = settings.default_currency if settings.default_currency in codes else "USD"
    if st.session_state.get("currency_user") != st.session_state.user_id:
        st.session_state.currency = load_currency(components, st.session_state.user_id, default_code)
        st.session_state.currency_user = st.session_state.user_id
    current_code = st.session_state.get("currency", default_code)
    selected = st.sidebar.selectbox(
        "Currency",
        options=codes,
        index=codes.index(current_code) if current_code in codes else codes.index(default_code),
        format_func=lambda code: next(f"{c.symbol} {c.code} - {c.name}" for c in CURRENCIES if c.code == code),
    )
    if selected != current_code:
        save_currency(components, st.session_state.user_id, selected)
    st.session_state.currency = selected

    page = st.sidebar.radio(
        "Navigate to:",
        [
            "🏠 Dashboard",
            "📋 Transactions",
            "📊 Analytics",
            "🎯 Budgets",
            "🏷️ Categories",
            "🤖 AI Assistant",
            "⚙️ Settings",
        ],
        index=0,
    )

    if components.storage_backend == "memory":
        st.sidebar.warning("Google Sheets is not configured. Data lives in memory only.")

    if page == "⚙️ Settings":
        render_settings_page(components)
        return

    try:
        user = resolve_current_user(st.session_state.user_id)
    except UnauthenticatedError as e:
        st.info(f"👋 {e}")
        return

    if page == "🏠 Dashboard":
        render_dashboard_page(components, user.user_id)
    elif page == "📋 Transactions":
        render_transactions_page(components, user.user_id)
    elif page == "📊 Analytics":
        render_analytics_page(components, user.user_id)
    elif page == "🎯 Budgets":
        render_budgets_page(components, user.user_id)
    elif page == "🏷️ Categories":
        render_categories_page(components, user.user_id)
    elif page == "🤖 AI Assistant":
        render_assistant_page(components, user.user_id)


# =============================================================================
# Dashboard
# =============================================================================

def render_dashboard_page(components: AppComponents, user_id: str):
    st.title("🏠 Dashboard")

    view = run_async(components.analytics.refresh(user_id, TimeRange.MONTH))
    if view is None:
        view = components.analytics.latest(user_id)
    if view is None:
        st.info("Loading your data...")
        return
    if view.degraded:
        st.warning("We couldn't reach your data just now. Showing the last numbers we loaded.")

    current = view.report.current
    col1, col2, col3 = st.columns(3)
    col1.metric("Income", money(current.total_income))
    col2.metric("Expenses", money(current.total_expense))
    col3.metric("Net savings", money(current.net_savings), f"{current.savings_rate:.1f}% saved")

    render_add_transaction_form(components, user_id)

    st.markdown("### Recent transactions")
    recent = run_async(components.transactions.recent(user_id, limit=5))
    if not recent:
        st.info("No transactions yet. Add your first expense above.")
    for t in recent:
        sign = "-" if t.kind == TransactionKind.EXPENSE else "+"
        st.markdown(f"{category_style(t.label).icon} **{t.label}** · {t.date:%d %b %Y} · {sign}{money(t.amount)}")

    st.markdown("### Budgets this period")
    render_budget_rows(run_async(components.budgets.overview(user_id)))

    st.markdown("### 💡 AI insights")
    if st.button("Generate insights"):
        with st.spinner("Thinking..."):
            insights = run_async(components.assistant.insights(user_id, st.session_state.currency))
        for insight in insights:
            st.markdown(f"""
            <div class="insight-box">
                <h4>{insight.icon} {insight.title}</h4>
                <p>{insight.message}</p>
            </div>
            """, unsafe_allow_html=True)


def render_add_transaction_form(components: AppComponents, user_id: str):
    with st.expander("➕ Add a transaction"):
        kind = st.radio("Type", options=list(TransactionKind), format_func=lambda k: k.value.title(), horizontal=True)
        custom = run_async(components.categories.custom_categories(user_id))

        with st.form("add_transaction", clear_on_submit=True):
            amount = st.number_input("Amount", min_value=0.0, step=0.01, format="%.2f")
            on = st.date_input("Date", value=date.today())
            note = st.text_input("Description")
            if kind == TransactionKind.EXPENSE:
                options = [c.value for c in ExpenseCategory] + [c.name for c in custom]
                label = st.selectbox("Category", options=options)
            else:
                label = st.selectbox("Source", options=[s.value for s in IncomeSource])
            suggest = kind == TransactionKind.EXPENSE and st.checkbox("Let AI pick the category from the description")
            submitted = st.form_submit_button("Save", type="primary")

        if submitted:
            try:
                if suggest and note:
                    label = run_async(components.assistant.suggest_category(user_id, note))
                    st.info(f"AI picked: {label}")
                run_async(components.transactions.add_transaction(
                    user_id=user_id,
                    kind=kind,
                    amount=Decimal(str(amount)).quantize(Decimal("0.01")),
                    on=on,
                    category=label if kind == TransactionKind.EXPENSE else None,
                    source=label if kind == TransactionKind.INCOME else None,
                    note=note,
                    currency=st.session_state.currency,
                ))
                st.success("✅ Saved")
            except (InputValidationError, StorageError, ValueError) as e:
                st.error(f"Could not save: {e}")


# =============================================================================
# Transactions
# =============================================================================

def render_edit_transaction_form(components: AppComponents, transaction: Transaction, labels: list[str]):
    with st.expander("✏️ Edit"):
        with st.form(f"edit-{transaction.id}"):
            col1, col2 = st.columns(2)
            amount = col1.number_input(
                "Amount", min_value=0.0, step=0.01, format="%.2f", value=float(transaction.amount)
            )
            on = col2.date_input("Date", value=transaction.date)
            if transaction.label not in labels:
                labels = labels + [transaction.label]
            field = "category" if transaction.kind == TransactionKind.EXPENSE else "source"
            label = st.selectbox(field.title(), options=labels, index=labels.index(transaction.label))
            note = st.text_input("Description", value=transaction.note or "")
            submitted = st.form_submit_button("Update")

        if submitted:
            try:
                edited = Transaction.model_validate({
                    **transaction.model_dump(),
                    "amount": Decimal(str(amount)).quantize(Decimal("0.01")),
                    "date": on,
                    field: label,
                    "note": note or None,
                })
                run_async(components.transactions.update_transaction(edited))
            except (StorageError, ValueError) as e:
                st.error(f"Could not update: {e}")
            else:
                st.rerun()


def render_transactions_page(components: AppComponents, user_id: str):
    st.title("📋 Transactions")

    col1, col2, col3 = st.columns(3)
    with col1:
        search = st.text_input("Search", placeholder="Description, category or source")
    with col2:
        kind = st.selectbox("Type", options=list(KindFilter), format_func=lambda k: k.value.title())
    with col3:
        sort = st.selectbox(
            "Sort by",
            options=list(SortOrder),
            format_func=lambda s: {
                SortOrder.DATE_DESC: "Newest first",
                SortOrder.DATE_ASC: "Oldest first",
                SortOrder.AMOUNT_DESC: "Highest amount",
                SortOrder.AMOUNT_ASC: "Lowest amount",
            }[s],
        )

    date_range = st.date_input("Date range", value=[], help="Leave empty for all dates")
    date_from = date_range[0] if len(date_range) > 0 else None
    date_to = date_range[1] if len(date_range) > 1 else None

    page_number = st.number_input("Page", min_value=1, value=1, step=1)

    try:
        query = TransactionQuery(
            kind=kind,
            search=search or None,
            date_from=date_from,
            date_to=date_to,
            sort=sort,
            page=int(page_number),
            page_size=get_settings().app.transactions_page_size,
        )
        page = run_async(components.transactions.list_page(user_id, query))
    except Exception as e:
        st.error(f"Could not load transactions: {e}")
        report_error(components, e, "transactions")
        return

    col1, col2, col3 = st.columns(3)
    col1.metric("Income", money(page.total_income))
    col2.metric("Expenses", money(page.total_expense))
    col3.metric("Net", money(page.net))

    if not page.items:
        if query.is_filtered:
            st.info("Nothing matches. Try adjusting your filters to see more results.")
        else:
            st.info("No transactions yet.")
        return

    custom = run_async(components.categories.custom_categories(user_id))
    labels = {
        TransactionKind.EXPENSE: [c.value for c in ExpenseCategory] + [c.name for c in custom],
        TransactionKind.INCOME: [s.value for s in IncomeSource],
    }
    st.caption(f"Showing {page.first_index} - {page.last_index} of {page.total_count} transactions")
    for t in page.items:
        col1, col2 = st.columns([5, 1])
        sign = "-" if t.kind == TransactionKind.EXPENSE else "+"
        col1.markdown(
            f"{category_style(t.label).icon} **{t.label}** · {t.date:%d %b %Y} · "
            f"{sign}{format_amount(t.amount, t.currency)}"
            + (f"  \n{t.note}" if t.note else "")
        )
        if col2.button("🗑️", key=f"delete-{t.id}"):
            run_async(components.transactions.delete_transaction(user_id, t.id))
            st.rerun()
        render_edit_transaction_form(components, t, labels[t.kind])

    if page.total_pages > 1:
        st.caption(f"Page {page.page} / {page.total_pages}")


# =============================================================================
# Analytics
# =============================================================================

def render_analytics_page(components: AppComponents, user_id: str):
    st.title("📊 Analytics")

    settings = get_settings().app
    time_range = st.radio(
        "Range",
        options=list(TimeRange),
        index=list(TimeRange).index(TimeRange(settings.default_time_range)),
        format_func=lambda r: RANGE_LABELS[r],
        horizontal=True,
    )

    view = run_async(components.analytics.refresh(user_id, time_range))
    if view is None:
        # A newer refresh superseded this one; show what was published.
        view = components.analytics.latest(user_id)
    if view is None:
        st.info("Loading your data...")
        return
    if view.degraded:
        st.warning("Some data could not be loaded. Numbers may be out of date.")

    report = view.report
    current, changes = report.current, report.changes
    st.caption(f"{report.periods.current.start:%d %b %Y} - {report.periods.current.end:%d %b %Y}")

    col1, col2, col3, col4 = st.columns(4)
    # Spending going up is bad news, so expenses use the inverse colour.
    col1.metric("Expenses", money(current.total_expense), change_label(changes.expense_change), delta_color="inverse")
    col2.metric("Income", money(current.total_income), change_label(changes.income_change))
    col3.metric("Net savings", money(current.net_savings))
    col4.metric("Savings rate", f"{current.savings_rate:.1f}%")

    st.metric("Average daily spending", money(current.average_daily_spending))

    if not current.category_breakdown:
        st.info("No expenses in this range.")
        return

    col1, col2 = st.columns(2)
    with col1:
        st.markdown("### By category")
        st.bar_chart({"Spending": {k: float(v) for k, v in current.category_breakdown.items()}})
    with col2:
        st.markdown("### Day by day")
        st.line_chart({"Spending": {d.isoformat(): float(v) for d, v in sorted(current.daily_totals.items())}})

    st.markdown("### Top categories")
    for rank, item in enumerate(current.top_categories, start=1):
        style = category_style(item.category)
        st.markdown(
            f"{rank}. {style.icon} **{item.category}** · {money(item.total)} "
            f"({current.category_share(item.category):.1f}%)"
        )

    if report.budgets:
        st.markdown("### Budgets in this range")
        render_budget_rows(report.budgets)
        if report.overall_budget:
            overall = report.overall_budget
            st.progress(min(overall.utilization / 100, 1.0))
            st.caption(
                f"{BAND_ICONS[overall.band]} Overall: {money(overall.total_spent)} of "
                f"{money(overall.total_budget)} ({overall.utilization:.1f}%)"
            )


# =============================================================================
# Budgets
# =============================================================================

def render_budget_rows(rows):
    if not rows:
        st.info("No budgets set yet.")
        return
    for row in rows:
        st.progress(min(row.utilization / 100, 1.0))
        if row.band == UtilizationBand.OVER:
            detail = f"over by {money(row.over_by)}"
        else:
            detail = f"{money(row.remaining)} left"
        st.caption(
            f"{BAND_ICONS[row.band]} **{row.budget.category}** ({row.budget.period.value}) · "
            f"{money(row.spent)} of {money(row.budget.limit)} · {row.utilization:.1f}% · {detail}"
        )


def render_edit_budget_form(components: AppComponents, budget: Budget):
    with st.expander("✏️ Edit"):
        with st.form(f"edit-budget-{budget.id}"):
            limit = st.number_input("Limit", min_value=0.0, step=10.0, format="%.2f", value=float(budget.limit))
            is_active = st.checkbox("Active", value=budget.is_active)
            submitted = st.form_submit_button("Update")

        if submitted:
            try:
                edited = Budget.model_validate({
                    **budget.model_dump(),
                    "limit": Decimal(str(limit)).quantize(Decimal("0.01")),
                    "is_active": is_active,
                })
                run_async(components.budgets.update_budget(edited))
            except DuplicateError as e:
                st.error(str(e))
            except (StorageError, ValueError) as e:
                st.error(f"Could not update: {e}")
            else:
                st.rerun()


def render_budgets_page(components: AppComponents, user_id: str):
    st.title("🎯 Budgets")

    custom = run_async(components.categories.custom_categories(user_id))
    with st.form("add_budget", clear_on_submit=True):
        col1, col2, col3 = st.columns(3)
        category = col1.selectbox("Category", options=[c.value for c in ExpenseCategory] + [c.name for c in custom])
        limit = col2.number_input("Limit", min_value=0.0, step=10.0, format="%.2f")
        period = col3.selectbox("Period", options=list(BudgetPeriod), index=1, format_func=lambda p: p.value.title())
        submitted = st.form_submit_button("Set budget", type="primary")

    if submitted:
        try:
            run_async(components.budgets.set_budget(
                user_id=user_id,
                category=category,
                limit=Decimal(str(limit)).quantize(Decimal("0.01")),
                period=period,
                currency=st.session_state.currency,
            ))
            st.success("✅ Budget saved")
        except DuplicateError as e:
            st.error(str(e))
        except (StorageError, ValueError) as e:
            st.error(f"Could not save: {e}")

    st.markdown("### This period")
    render_budget_rows(run_async(components.budgets.overview(user_id)))

    budgets = run_async(components.budgets.list_budgets(user_id))
    if budgets:
        st.markdown("### Manage")
    for budget in budgets:
        col1, col2 = st.columns([5, 1])
        status = "" if budget.is_active else " (inactive)"
        col1.markdown(f"**{budget.category}** · {budget.period.value} · {money(budget.limit)}{status}")
        if col2.button("🗑️", key=f"delete-budget-{budget.id}"):
            run_async(components.budgets.delete_budget(user_id, budget.id))
            st.rerun()
        render_edit_budget_form(components, budget)


# =============================================================================
# Categories
# =============================================================================

def render_edit_category_form(components: AppComponents, category: CustomCategory):
    with st.expander("✏️ Edit"):
        with st.form(f"edit-category-{category.id}"):
            col1, col2, col3 = st.columns(3)
            name = col1.text_input("Name", value=category.name, max_chars=50)
            icon = col2.text_input("Icon", value=category.icon, max_chars=4)
            colors = CATEGORY_COLORS if category.color in CATEGORY_COLORS else CATEGORY_COLORS + [category.color]
            color = col3.selectbox("Colour", options=colors, index=colors.index(category.color))
            submitted = st.form_submit_button("Update")

        if submitted:
            try:
                edited = CustomCategory.model_validate({
                    **category.model_dump(),
                    "name": name,
                    "icon": icon or "📦",
                    "color": color,
                })
                run_async(components.categories.update_category(edited))
            except DuplicateError:
                st.error("A category with this name already exists")
            except (StorageError, ValueError) as e:
                st.error(f"Could not update: {e}")
            else:
                st.rerun()


def render_categories_page(components: AppComponents, user_id: str):
    st.title("🏷️ Categories")

    with st.form("add_category", clear_on_submit=True):
        col1, col2, col3 = st.columns(3)
        name = col1.text_input("Name", max_chars=50)
        icon = col2.text_input("Icon", value="📦", max_chars=4)
        color = col3.selectbox("Colour", options=CATEGORY_COLORS)
        submitted = st.form_submit_button("Add category", type="primary")

    if submitted:
        try:
            run_async(components.categories.add_category(user_id, name, icon=icon or "📦", color=color))
            st.success(f"✅ Added {name}")
        except DuplicateError:
            st.error("A category with this name already exists")
        except (StorageError, ValueError) as e:
            st.error(f"Could not save: {e}")

    st.markdown("### Built-in")
    styles = run_async(components.categories.all_categories(user_id))
    st.markdown(" · ".join(f"{styles[c.value].icon} {c.value}" for c in ExpenseCategory))

    custom = run_async(components.categories.custom_categories(user_id))
    st.markdown("### Yours")
    if not custom:
        st.info("No custom categories yet.")
    for category in custom:
        col1, col2 = st.columns([5, 1])
        col1.markdown(f"{category.icon} **{category.name}** · {category.color}")
        if col2.button("🗑️", key=f"delete-category-{category.id}"):
            run_async(components.categories.delete_category(user_id, category.id))
            st.rerun()
        render_edit_category_form(components, category)


# =============================================================================
# Assistant
# =============================================================================

def render_assistant_page(components: AppComponents, user_id: str):
    st.title("🤖 AI Assistant")
    st.markdown("Ask anything about your spending and budgets.")

    with st.expander("📝 Example questions"):
        st.markdown("""
        - "Where did most of my money go this month?"
        - "Am I on track with my food budget?"
        - "How can I spend less on entertainment?"
        """)

    if "chat_history" not in st.session_state:
        st.session_state.chat_history = []

    for role, text in st.session_state.chat_history:
        with st.chat_message(role):
            st.markdown(text)

    message = st.chat_input("Ask about your finances")
    if message:
        with st.chat_message("user"):
            st.markdown(message)
        with st.spinner("Thinking..."):
            try:
                answer = run_async(components.assistant.chat(user_id, message, st.session_state.currency))
            except InputValidationError as e:
                answer = str(e)
        with st.chat_message("assistant"):
            st.markdown(answer)
        st.session_state.chat_history.extend([("user", message), ("assistant", answer)])

    st.markdown("---")
    col1, col2 = st.columns(2)
    with col1:
        if st.button("📝 Summarize my month"):
            st.markdown(run_async(components.assistant.spending_analysis(user_id)))
    with col2:
        if st.button("💰 Savings tips"):
            for tip in run_async(components.assistant.savings_tips(user_id, st.session_state.currency)):
                st.markdown(f"- {tip}")


# =============================================================================
# Settings
# =============================================================================

def render_settings_page(components: AppComponents):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("Gemini (AI)", "gemini"),
        ("Application", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.caption(f"Active storage: {components.storage_backend}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your API keys. "
        "See `.env.example` for the required variables."
    )

    st.markdown("### Recent activity")
    events = run_async(components.audit_storage.get_recent_events(
        limit=20,
        user_id=st.session_state.get("user_id") or None,
    ))
    if not events:
        st.info("No activity recorded yet.")
    for event in events:
        st.caption(f"{event.timestamp:%d %b %Y %H:%M} · {event.description}")


if __name__ == "__main__":
    main()
