"""
Streamlit Frontend for Ledger Viewer

A thin consumer of LedgerView over a seeded in-memory backend.

DESIGN PRINCIPLES:
1. The page never mutates ledger data itself; every change goes
   through the form or grid controller
2. Every failure shows up as a notification, nothing is silent
3. Cells being saved or rolled back are marked in the table
"""

import asyncio
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal

import streamlit as st

from ledgerview.audit import NotificationSeverity
from ledgerview.config import get_settings, validate_all_settings
from ledgerview.controllers import CellState, FormStatus
from ledgerview.models.ledger import Account, BackendSettings, Operation, Period
from ledgerview.orchestrator import LedgerView, create_ledger_view
from ledgerview.services.remote import InMemoryLedgerBackend
from ledgerview.store import SliceStatus, WriteStatus


# Page configuration
st.set_page_config(
    page_title="Ledger Viewer",
    page_icon="📒",
    layout="wide",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def build_demo_backend() -> tuple[InMemoryLedgerBackend, list[Account]]:
    """In-memory backend with two accounts and a month of activity."""
    app_settings = get_settings().app
    accounts = [
        Account(id=app_settings.demo_account_id, name="Checking", currency=app_settings.demo_currency),
        Account(id="savings", name="Savings", currency=app_settings.demo_currency),
    ]
    backend = InMemoryLedgerBackend(
        accounts=accounts,
        settings=BackendSettings(tags=["needs", "wants", "savings", "Groceries", "Rent"]),
    )

    start = datetime.now(timezone.utc) - timedelta(days=30)
    checking = accounts[0].id
    backend.seed_transaction(checking, Decimal("2400"), "Salary", start, ["income"])
    backend.seed_transaction(checking, Decimal("-950"), "Rent", start + timedelta(days=1), ["needs", "Rent"])
    backend.seed_transaction(checking, Decimal("-84.20"), "Supermarket", start + timedelta(days=3), ["needs", "Groceries"])
    backend.seed_transaction(checking, Decimal("-42.50"), "Cinema and dinner", start + timedelta(days=6), ["wants"])
    backend.seed_transaction(checking, Decimal("-300"), "Transfer to savings", start + timedelta(days=7), ["savings"])
    backend.seed_transaction("savings", Decimal("300"), "Transfer from checking", start + timedelta(days=7))
    return backend, accounts


def get_view() -> LedgerView:
    """Get or create the ledger view (kept for the whole session)."""
    if "ledger_view" not in st.session_state:
        backend, accounts = build_demo_backend()
        view = create_ledger_view(accounts[0], backend=backend)
        run_async(view.open())
        st.session_state.ledger_view = view
        st.session_state.accounts = accounts
    return st.session_state.ledger_view


def main():
    """Main application entry point."""
    view = get_view()
    accounts: list[Account] = st.session_state.accounts

    # Sidebar navigation
    st.sidebar.title("📒 Ledger Viewer")
    st.sidebar.markdown("---")

    selected = st.sidebar.selectbox(
        "Account",
        options=accounts,
        index=[a.id for a in accounts].index(view.account.id),
        format_func=lambda a: f"{a.display_name} ({a.currency})",
    )
    if selected.id != view.account.id:
        run_async(view.switch_account(selected))

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Overview", "🧾 Transactions", "⚙️ Settings"],
        index=0,
    )

    if st.sidebar.button("🔄 Reload"):
        run_async(view.refresh())

    render_notifications(view)

    # Route to appropriate page
    if page == "📊 Overview":
        render_overview_page(view)
    elif page == "🧾 Transactions":
        render_transactions_page(view)
    elif page == "⚙️ Settings":
        render_settings_page(view)


def render_notifications(view: LedgerView):
    """Show pending notifications in the sidebar."""
    notifications = view.notifier.notifications
    if not notifications:
        return

    st.sidebar.markdown("---")
    for notification in notifications[-5:]:
        if notification.severity == NotificationSeverity.ERROR:
            st.sidebar.error(notification.message)
        elif notification.severity == NotificationSeverity.WARNING:
            st.sidebar.warning(notification.message)
        else:
            st.sidebar.info(notification.message)

    if st.sidebar.button("Dismiss all"):
        view.notifier.clear()
        st.rerun()


def render_overview_page(view: LedgerView):
    """Render balances and the needs/wants/savings split."""
    st.title("📊 Overview")
    state = view.store.state

    col1, col2 = st.columns(2)
    with col1:
        if state.balance_status == SliceStatus.LOADING:
            st.markdown("Balance: …")
        elif state.balance_status == SliceStatus.FAILED:
            st.error("Balance unavailable")
        else:
            st.metric("Balance", f"{state.balance:,.2f} {state.currency or ''}")
    with col2:
        st.metric("Transactions", len(state.transactions or ()))

    st.markdown("### Spending by category")
    period = None
    if st.toggle("Current month only"):
        period = Period.month_of(run_async(view.store.today()))
    breakdown = view.breakdown(period)
    columns = st.columns(3)
    for column, category_balance in zip(columns, breakdown.categories()):
        with column:
            st.metric(category_balance.category.value.title(), f"{category_balance.amount:,.2f}")

    shares = view.ideal_comparison(period)
    st.bar_chart(
        {
            "category": [share.category.value for share in shares],
            "actual %": [float(share.actual_percent) for share in shares],
            "ideal %": [float(share.ideal_percent) for share in shares],
        },
        x="category",
        y=["actual %", "ideal %"],
    )

    with st.expander("🔍 Server category totals"):
        if st.button("Compare with server"):
            balances = run_async(view.category_balances(period))
            for category, amount in balances.items():
                shown = "unavailable" if amount is None else f"{amount:,.2f}"
                st.markdown(f"**{category.value.title()}:** {shown}")


def render_transactions_page(view: LedgerView):
    """Render the editable transaction table and the add form."""
    st.title("🧾 Transactions")
    state = view.store.state

    if state.transactions is None:
        if state.transactions_status == SliceStatus.FAILED:
            st.error("Transactions could not be loaded. Use Reload to try again.")
        else:
            st.info("Loading transactions…")
        return

    transactions = state.transactions
    grid = view.grid

    table = {
        "id": [t.id for t in transactions],
        "date": [t.date for t in transactions],
        "description": [t.description for t in transactions],
        "amount": [str(t.amount) for t in transactions],
        "tags": [", ".join(tag.label for tag in t.tags) for t in transactions],
        "status": [
            _status_marker(view.store.row_status(t.id)) for t in transactions
        ],
    }

    st.data_editor(
        table,
        key="transactions_editor",
        hide_index=True,
        disabled=["id", "status"],
        column_config={
            "id": None,
            "date": st.column_config.DatetimeColumn("Date"),
            "amount": st.column_config.TextColumn("Amount"),
            "tags": st.column_config.TextColumn("Tags", help="Comma-separated labels"),
        },
    )

    edited_rows = st.session_state.get("transactions_editor", {}).get("edited_rows", {})
    if edited_rows and st.button("💾 Save changes", type="primary"):
        for index, changes in edited_rows.items():
            row_id = transactions[int(index)].id
            for field, value in changes.items():
                grid.begin_edit(row_id, field)
                grid.set_value(row_id, field, value)
                run_async(grid.commit(row_id, field))
                cell = grid.cell_status(row_id, field)
                if cell.error:
                    st.error(f"{field}: {cell.error}")
                    if cell.state == CellState.EDITING:
                        grid.cancel(row_id, field)
        del st.session_state["transactions_editor"]
        st.rerun()

    st.markdown("---")
    render_add_form(view)


def _status_marker(status) -> str:
    if status == WriteStatus.PENDING:
        return "⏳"
    if status == WriteStatus.FAILED:
        return "⚠️"
    return ""


def render_add_form(view: LedgerView):
    """Render the add-transaction form."""
    st.markdown("### Add transaction")
    form = view.form

    with st.form("add_transaction", clear_on_submit=False):
        col1, col2 = st.columns(2)
        with col1:
            amount_text = st.text_input("Amount", value="0")
            operation = st.radio(
                "Type",
                options=list(Operation),
                format_func=lambda op: op.value.title(),
                horizontal=True,
            )
        with col2:
            description = st.text_input("Description")
            day = st.date_input("Date", value=datetime.now(timezone.utc).date())

        tags = st.multiselect(
            "Tags",
            options=view.tag_registry.labels,
            help="Pick existing tags",
        )
        new_tags = st.text_input("New tags", placeholder="Comma-separated")

        submitted = st.form_submit_button("➕ Add", type="primary")

    if not submitted:
        return

    run_async(form.open())
    form.set_amount_text(amount_text)
    form.set_operation(operation)
    form.set_description(description)
    form.set_date(datetime.combine(day, time(), tzinfo=timezone.utc))
    form.set_tags(list(tags) + new_tags.split(","))

    if not form.can_submit:
        st.error("Please enter a valid amount, e.g. 45.99 or 45,99")
        form.cancel()
        return

    with st.spinner("Saving..."):
        created = run_async(form.submit())

    if form.status == FormStatus.ERROR_VISIBLE:
        st.error(f"Not saved: {form.error_message}")
        form.cancel()
    elif created is not None:
        st.success(f"✅ Added {created.description or 'transaction'} ({created.amount:,.2f})")


def render_settings_page(view: LedgerView):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Configuration")
    app_settings = get_settings().app
    st.caption(
        f"Environment: {app_settings.app_environment} · "
        f"log level: {app_settings.effective_log_level}"
    )
    status = validate_all_settings()
    for name in ("remote", "app"):
        if status.get(name, False):
            st.success(f"✅ {name} settings - OK")
        else:
            st.error(f"❌ {name} settings - {status.get(f'{name}_error', 'Invalid')}")

    backend_settings = run_async(view.store.settings())
    st.markdown("### Backend settings")
    st.json(backend_settings.model_dump(mode="json"))

    with st.expander("📜 Recent audit events", expanded=app_settings.debug_mode):
        for event in view.audit_logger.recent_events(limit=20):
            st.markdown(
                f"`{event.timestamp:%H:%M:%S}` **{event.event_type.value}** {event.description}"
            )


if __name__ == "__main__":
    main()
