"""
Streamlit Frontend for BudgetFlow

DESIGN PRINCIPLES:
1. The UI never computes a figure itself; it renders the DashboardView the
   orchestrator returns
2. Every action button is disabled while its call is running and shows one
   success or failure message afterwards
3. Clear error messages in simple language

Pages: Overview, Reports & AI, Transactions, Investments, Account.
"""

import asyncio
from datetime import date
from decimal import Decimal

import streamlit as st

from budgetflow.config import get_settings, validate_all_settings
from budgetflow.models.finance import InvestmentType, PaymentMethod, TransactionType
from budgetflow.orchestrator import AuthFlow, FinanceFlow, create_app_components
from budgetflow.services.identity import IdentityNotConfiguredError


# Page configuration
st.set_page_config(
    page_title="BudgetFlow",
    page_icon="💰",
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


def get_components() -> tuple[AuthFlow, FinanceFlow]:
    """
    Get or create application components for this browser session.

    Kept in session_state rather than st.cache_resource: the session context
    belongs to one signed-in user and must not be shared. A browser reload
    starts a new Streamlit session and therefore asks for sign-in again.
    """
    if "components" not in st.session_state:
        auth_flow, finance_flow, _ = create_app_components()
        run_async(auth_flow.restore_session())
        st.session_state.components = (auth_flow, finance_flow)
    return st.session_state.components


def money(amount: Decimal) -> str:
    symbol = get_settings().app.currency_symbol
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def main():
    """Main application entry point."""
    try:
        auth_flow, finance_flow = get_components()
    except IdentityNotConfiguredError as e:
        st.error(f"❌ {e.message}")
        st.info("Set FIREBASE_API_KEY in your .env file, or IDENTITY_BACKEND=local.")
        st.stop()

    user = auth_flow.session.user
    if user is None:
        render_sign_in_page(auth_flow)
        return

    if "month" not in st.session_state:
        st.session_state.month = date.today().strftime("%Y-%m")

    st.sidebar.title("💰 BudgetFlow")
    st.sidebar.caption(user.email)
    month_picked = st.sidebar.date_input(
        "Month",
        value=date.fromisoformat(f"{st.session_state.month}-01"),
    )
    st.session_state.month = month_picked.strftime("%Y-%m")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Overview", "🧠 Reports & AI", "📒 Transactions", "📈 Investments", "⚙️ Account"],
        index=0,
    )

    if st.sidebar.button("Sign out"):
        run_async(auth_flow.sign_out())
        st.rerun()

    month = st.session_state.month
    if page == "📊 Overview":
        render_overview_page(finance_flow, user.id, month)
    elif page == "🧠 Reports & AI":
        render_reports_page(finance_flow, user.id, month)
    elif page == "📒 Transactions":
        render_transactions_page(finance_flow, user.id, month)
    elif page == "📈 Investments":
        render_investments_page(finance_flow, user.id, month)
    elif page == "⚙️ Account":
        render_account_page(auth_flow)


def render_sign_in_page(auth_flow: AuthFlow):
    """Sign in, or create the account on first use."""
    st.title("💰 BudgetFlow")
    st.markdown("Sign in with your email. New emails get a fresh account.")

    with st.form("sign_in"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Continue", type="primary")

    if submitted:
        with st.spinner("Signing in..."):
            result = run_async(auth_flow.sign_in(email, password))
        if result.success:
            st.rerun()
        else:
            st.error(result.message)


def render_overview_page(finance_flow: FinanceFlow, user_id: str, month: str):
    st.title("📊 Overview")
    view = run_async(finance_flow.load_dashboard(user_id, month))

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Income", money(view.stats.total_income))
    col2.metric("Expenses", money(view.stats.total_expense))
    col3.metric("Monthly balance", money(view.stats.balance))
    col4.metric("Lifetime liquidity", money(view.lifetime_liquidity))

    st.markdown("---")
    left, right = st.columns(2)

    with left:
        st.subheader("💵 Cash on hand")
        st.markdown(f"**{money(view.current_cash)}**")
        with st.form("set_cash"):
            new_cash = st.number_input(
                "Set current cash",
                min_value=0.0,
                value=float(max(view.current_cash, Decimal("0"))),
                step=100.0,
            )
            if st.form_submit_button("Update cash"):
                run_async(finance_flow.set_current_cash(user_id, month, str(new_cash)))
                st.rerun()

    with right:
        st.subheader("🎯 Special allocations")
        st.caption(f"Total this month: {money(view.monthly_special_total)}")
        if view.allocation:
            for item in view.allocation.items:
                c1, c2 = st.columns([4, 1])
                c1.write(f"{item.label}: {money(item.amount)}")
                if c2.button("Delete", key=f"alloc_{item.id}"):
                    run_async(finance_flow.delete_allocation_item(user_id, month, item.id))
                    st.rerun()
        with st.form("add_allocation"):
            label = st.text_input("Label")
            amount = st.number_input("Amount", min_value=0.0, step=100.0)
            if st.form_submit_button("Add allocation"):
                run_async(finance_flow.add_allocation_item(user_id, month, label, str(amount)))
                st.rerun()

    st.markdown("---")
    st.subheader("Recent transactions")
    for t in view.transactions[:5]:
        sign = "+" if t.type == TransactionType.INCOME else "-"
        st.write(f"{t.date} · {t.category_name} · {sign}{money(t.amount)} ({t.payment_method.value})")


def render_reports_page(finance_flow: FinanceFlow, user_id: str, month: str):
    st.title("🧠 Reports & AI")
    view = run_async(finance_flow.load_dashboard(user_id, month))

    st.subheader("Expenses by category")
    if view.category_breakdown:
        st.bar_chart(
            [{"category": s.name, "amount": float(s.value)} for s in view.category_breakdown],
            x="category",
            y="amount",
            horizontal=True,
        )
    else:
        st.info("No expenses this month.")

    st.subheader("Daily flow")
    if view.daily_flow:
        st.bar_chart({
            "income": {d.day: float(d.income) for d in view.daily_flow},
            "expense": {d.day: float(d.expense) for d in view.daily_flow},
        })

    st.markdown("---")
    st.subheader("AI insights")
    if st.button("Generate insights", disabled=not view.transactions):
        with st.spinner("Asking Gemini..."):
            result = run_async(finance_flow.generate_insights(user_id, month))
        if result.used_fallback:
            st.warning(result.text)
        else:
            st.markdown(result.text)


def render_transactions_page(finance_flow: FinanceFlow, user_id: str, month: str):
    st.title("📒 Transactions")
    view = run_async(finance_flow.load_dashboard(user_id, month))

    with st.form("add_transaction"):
        col1, col2, col3 = st.columns(3)
        kind = col1.selectbox("Type", list(TransactionType), format_func=lambda x: x.value.title())
        method = col2.selectbox("Payment", list(PaymentMethod), format_func=lambda x: x.value.title())
        on = col3.date_input("Date", value=date.today())
        category = st.selectbox(
            "Category",
            view.categories,
            format_func=lambda c: f"{c.name} ({c.type.value})",
        )
        amount = st.number_input("Amount", min_value=0.0, step=10.0)
        note = st.text_input("Note")
        if st.form_submit_button("Add transaction", type="primary"):
            run_async(finance_flow.add_transaction(
                user_id,
                month,
                amount=str(amount),
                transaction_type=kind,
                category_id=category.id if category else None,
                on=on,
                note=note,
                payment_method=method,
            ))
            st.rerun()

    export = run_async(finance_flow.export_csv(user_id, month))
    st.download_button(
        "⬇️ Download CSV",
        data=export.content,
        file_name=export.filename,
        mime=export.mime_type,
    )

    st.markdown("---")
    if not view.transactions:
        st.info("No transactions this month.")
    for t in view.transactions:
        c1, c2 = st.columns([5, 1])
        sign = "+" if t.type == TransactionType.INCOME else "-"
        c1.write(f"{t.date} · {t.category_name} · {sign}{money(t.amount)} ({t.payment_method.value}) {t.note}")
        if c2.button("Delete", key=f"tx_{t.id}"):
            run_async(finance_flow.delete_transaction(user_id, month, t.id))
            st.rerun()


def render_investments_page(finance_flow: FinanceFlow, user_id: str, month: str):
    st.title("📈 Investments")
    view = run_async(finance_flow.load_dashboard(user_id, month))
    st.metric("Portfolio value", money(view.portfolio_value))
    st.caption("Investments are not part of lifetime liquidity.")

    with st.form("add_investment"):
        name = st.text_input("Name")
        kind = st.selectbox("Type", list(InvestmentType), format_func=lambda x: x.value)
        amount = st.number_input("Amount", min_value=0.0, step=1000.0)
        on = st.date_input("Date", value=date.today())
        if st.form_submit_button("Add investment"):
            run_async(finance_flow.add_investment(user_id, month, name, kind, str(amount), on))
            st.rerun()

    for inv in view.investments:
        c1, c2 = st.columns([5, 1])
        c1.write(f"{inv.date} · {inv.name} ({inv.type.value}) · {money(inv.amount)}")
        if c2.button("Delete", key=f"inv_{inv.id}"):
            run_async(finance_flow.delete_investment(user_id, month, inv.id))
            st.rerun()


def render_account_page(auth_flow: AuthFlow):
    """Change password and connection status."""
    st.title("⚙️ Account")

    st.markdown("### Change password")
    with st.form("change_password"):
        current = st.text_input("Current password", type="password")
        new = st.text_input("New password", type="password")
        submitted = st.form_submit_button("Update password")
    if submitted:
        with st.spinner("Updating..."):
            result = run_async(auth_flow.change_password(current, new))
        if result.success:
            st.success(result.message)
        else:
            st.error(result.message)

    st.markdown("---")
    st.markdown("### Connection Status")

    status = validate_all_settings()
    services = [
        ("Record store", "storage"),
        ("Google Sheets (Storage)", "google_sheets"),
        ("Firebase (Sign-in)", "firebase"),
        ("Gemini (AI)", "gemini"),
    ]
    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")


if __name__ == "__main__":
    main()
