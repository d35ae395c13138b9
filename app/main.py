"""
Streamlit Frontend for Little Treasury

DESIGN PRINCIPLES:
1. Every figure is shown in the user's base currency
2. Pending income is visible but never counted until received
3. Clear error messages in simple language
4. AI output is advice; only the investment chat can change holdings

Run with:
    streamlit run app/main.py
"""

import asyncio
from datetime import datetime, time, timezone
from decimal import Decimal

import streamlit as st
from pydantic import ValidationError

from treasury.config import get_settings, validate_all_settings
from treasury.ledger import UnsupportedCurrencyError
from treasury.models import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    AccountType,
    Category,
    CategoryKind,
    Currency,
    Language,
    RecurringFrequency,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from treasury.orchestrator import create_app_components
from treasury.session import AuthenticationError, FinanceSession


# Page configuration
st.set_page_config(
    page_title="Little Treasury",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .warning-box {
        padding: 20px;
        background-color: #fff3cd;
        border-radius: 10px;
        border-left: 5px solid #ffc107;
        margin: 10px 0;
    }
    .info-box {
        padding: 20px;
        background-color: #cce5ff;
        border-radius: 10px;
        border-left: 5px solid #004085;
        margin: 10px 0;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


CUSTOM_CATEGORY_OPTION = "Custom..."


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    try:
        return create_app_components()
    except Exception as e:
        st.error(f"Failed to initialize storage: {e}")
        return create_app_components(backend="memory")


def money(amount: Decimal, currency: Currency) -> str:
    return f"{amount:,.2f} {currency.value}"


def current_session() -> FinanceSession:
    return st.session_state.finance_session


def main():
    """Main application entry point."""
    components = get_components()

    if "language" not in st.session_state:
        st.session_state.language = Language(get_settings().app.language)

    if "finance_session" not in st.session_state:
        user = run_async(components.auth.current_user())
        if user is None:
            render_login_page(components)
            return
        st.session_state.finance_session = run_async(components.open_session(user))

    session = current_session()

    # Sidebar navigation
    st.sidebar.title("💰 Little Treasury")
    st.sidebar.markdown(f"Signed in as **{session.user.username}**")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        [
            "📊 Dashboard",
            "🧾 Transactions",
            "🏦 Accounts",
            "💡 Advisor",
            "📈 Investment Chat",
            "⚙️ Settings",
        ],
        index=0,
    )

    if page == "📊 Dashboard":
        render_dashboard_page(session)
    elif page == "🧾 Transactions":
        render_transactions_page(session)
    elif page == "🏦 Accounts":
        render_accounts_page(session)
    elif page == "💡 Advisor":
        render_advisor_page(session, components)
    elif page == "📈 Investment Chat":
        render_chat_page(session, components)
    elif page == "⚙️ Settings":
        render_settings_page(session, components)


def render_login_page(components):
    """Render the sign-in form."""
    st.title("💰 Little Treasury")
    st.markdown("Sign in to see your accounts.")

    with st.form("login"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        name = st.text_input("Name (optional)")
        submitted = st.form_submit_button("Sign in", type="primary")

    if submitted:
        try:
            user = run_async(components.auth.login(email, password, name or None))
        except AuthenticationError as e:
            st.error(str(e))
            return
        st.session_state.finance_session = run_async(components.open_session(user))
        st.rerun()


def render_dashboard_page(session: FinanceSession):
    """Render the overview page."""
    st.title("📊 Dashboard")

    summary = session.summary()
    base = summary.base_currency

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Net Worth", money(summary.net_worth, base))
    with col2:
        st.metric("Pending Income", money(summary.pending_income, base))
    with col3:
        st.metric("Spent This Month", money(summary.monthly_expenses, base))

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Assets", money(summary.total_assets, base), f"{summary.asset_count} accounts")
    with col2:
        st.metric("Investments", money(summary.investment_assets, base))
    with col3:
        st.metric("Liabilities", money(summary.total_liabilities, base), f"{summary.debt_count} accounts")

    if summary.needs_check_in:
        st.markdown("""
        <div class="warning-box">
            <h4>📈 Investment check-in</h4>
            <p>Some investment accounts have not been updated today.
            Use the Investment Chat page to refresh them.</p>
        </div>
        """, unsafe_allow_html=True)

    if summary.advice_stale:
        st.markdown("""
        <div class="info-box">
            <h4>💡 Time for a review</h4>
            <p>Your financial advice is more than a week old. Visit the Advisor page.</p>
        </div>
        """, unsafe_allow_html=True)

    st.markdown("---")
    st.markdown("### Accounts by currency and type")
    for group in session.groups():
        st.markdown(
            f"**{group.key}** · {group.count} account(s) · "
            f"{money(group.balance, group.currency)}"
        )

    st.markdown("### Recent transactions")
    render_transaction_list(session, limit=10, allow_receive=False)


def render_transaction_list(session: FinanceSession, limit: int, allow_receive: bool):
    transactions = session.state.transactions[:limit]
    if not transactions:
        st.info("No transactions yet.")
        return

    names = {a.id: a.name for a in session.state.accounts}

    for tx in transactions:
        col1, col2, col3 = st.columns([3, 2, 1])
        with col1:
            target = f" → {names.get(tx.to_account_id, '?')}" if tx.to_account_id else ""
            st.markdown(
                f"**{tx.category.label}** · {names.get(tx.account_id, '?')}{target}  \n"
                f"{tx.date.strftime('%d %b %Y')} {tx.note}"
            )
        with col2:
            sign = "-" if tx.type == TransactionType.EXPENSE else "+" if tx.type == TransactionType.INCOME else ""
            st.markdown(f"{sign}{money(tx.amount, tx.currency)}")
            if tx.is_pending:
                expected = f" (expected {tx.expected_date.strftime('%d %b')})" if tx.expected_date else ""
                st.caption(f"⏳ Pending{expected}")
        with col3:
            if allow_receive and tx.is_pending:
                if st.button("Received", key=f"receive_{tx.id}"):
                    session.mark_as_received(tx.id)
                    st.rerun()


def render_transactions_page(session: FinanceSession):
    """Render the add-transaction form and the transaction list."""
    st.title("🧾 Transactions")

    state = session.state
    accounts = state.accounts
    account_ids = [a.id for a in accounts]
    names = {a.id: f"{a.name} ({a.currency.value})" for a in accounts}

    tx_type = st.radio(
        "Type",
        list(TransactionType),
        format_func=lambda t: t.value.title(),
        horizontal=True,
    )

    with st.form("add_transaction"):
        col1, col2 = st.columns(2)
        with col1:
            amount = st.number_input("Amount", min_value=0.0, step=1.0, format="%.2f")
            currency = st.selectbox(
                "Currency",
                list(Currency),
                index=list(Currency).index(state.base_currency),
                format_func=lambda c: c.value,
            )
            account_id = st.selectbox("Account", account_ids, format_func=names.get)
            to_account_id = None
            if tx_type == TransactionType.TRANSFER:
                to_account_id = st.selectbox("To account", account_ids, format_func=names.get)
        with col2:
            kinds = INCOME_CATEGORIES if tx_type == TransactionType.INCOME else EXPENSE_CATEGORIES
            category_choice = st.selectbox(
                "Category",
                [k.value for k in kinds] + [CUSTOM_CATEGORY_OPTION],
            )
            custom_label = st.text_input("Custom category")
            tx_date = st.date_input("Date", value=datetime.now(timezone.utc).date())
            tags = st.text_input("Tags (comma separated)")

        note = st.text_input("Note")

        pending = False
        expected_date = None
        if tx_type == TransactionType.INCOME:
            pending = st.checkbox("Not received yet (pending)")
            expected_date = st.date_input("Expected date", value=None)

        is_amortized = False
        months = 0
        if tx_type == TransactionType.EXPENSE:
            is_amortized = st.checkbox("Stockpile purchase (spread over months)")
            months = st.number_input("Months", min_value=0, max_value=120, value=0)

        submitted = st.form_submit_button("💾 Save", type="primary")

    if submitted:
        label = custom_label if category_choice == CUSTOM_CATEGORY_OPTION else category_choice
        try:
            transaction = Transaction(
                date=datetime.combine(tx_date, time(12, 0), tzinfo=timezone.utc),
                expected_date=(
                    datetime.combine(expected_date, time(12, 0), tzinfo=timezone.utc)
                    if expected_date else None
                ),
                amount=Decimal(str(amount)),
                currency=currency,
                type=tx_type,
                category=Category.from_label(label),
                tags=[t for t in tags.split(",")],
                account_id=account_id,
                to_account_id=to_account_id,
                note=note,
                status=TransactionStatus.PENDING if pending else TransactionStatus.COMPLETED,
                is_amortized=is_amortized,
                amortization_months=int(months),
            )
        except ValidationError as e:
            st.error(f"Please check the form: {e.errors()[0]['msg']}")
        else:
            session.add_transaction(transaction)
            st.success("✅ Transaction saved")
            st.rerun()

    st.markdown("---")
    render_transaction_list(session, limit=100, allow_receive=True)


def render_accounts_page(session: FinanceSession):
    """Render account groups, account creation and recurring payments."""
    st.title("🏦 Accounts")

    for group in session.groups():
        with st.expander(f"{group.key} · {money(group.balance, group.currency)}"):
            for account in session.accounts_in_group(group.key):
                st.markdown(f"**{account.name}** · {money(account.balance, account.currency)}")
                for holding in account.holdings:
                    change = f" ({holding.daily_change:+,.2f})" if holding.daily_change is not None else ""
                    st.caption(f"{holding.name}: {holding.amount:,.2f}{change}")

    with st.expander("➕ New account"):
        with st.form("new_account"):
            name = st.text_input("Name")
            account_type = st.selectbox("Type", list(AccountType), format_func=lambda t: t.value.title())
            currency = st.selectbox("Currency", list(Currency), format_func=lambda c: c.value)
            balance = st.number_input("Opening balance", step=100.0, format="%.2f")
            color = st.color_picker("Color", "#3B82F6")
            if st.form_submit_button("Create", type="primary"):
                try:
                    session.create_account(name, account_type, currency, Decimal(str(balance)), color)
                except ValidationError as e:
                    st.error(f"Please check the form: {e.errors()[0]['msg']}")
                else:
                    st.rerun()

    st.markdown("---")
    st.markdown("### 🔁 Recurring payments")

    names = {a.id: a.name for a in session.state.accounts}
    for rule in session.state.recurring_rules:
        col1, col2 = st.columns([4, 1])
        with col1:
            st.markdown(
                f"**{rule.name}** · {money(rule.amount, rule.currency)} · "
                f"{rule.frequency.value.title()} · {rule.category.label} · "
                f"{names.get(rule.account_id, '?')}"
            )
        with col2:
            if st.button("Record", key=f"record_{rule.id}"):
                session.record_recurring_payment(rule.id)
                st.rerun()

    with st.expander("➕ New recurring payment"):
        with st.form("new_rule"):
            name = st.text_input("Name")
            amount = st.number_input("Amount", min_value=0.0, step=10.0, format="%.2f")
            category = st.selectbox(
                "Category",
                [k.value for k in EXPENSE_CATEGORIES],
                index=EXPENSE_CATEGORIES.index(CategoryKind.HOUSING),
            )
            frequency = st.selectbox("Frequency", list(RecurringFrequency), format_func=lambda f: f.value.title())
            account_id = st.selectbox("Account", list(names), format_func=names.get)
            if st.form_submit_button("Add", type="primary"):
                try:
                    session.add_recurring_rule(
                        name=name,
                        amount=Decimal(str(amount)),
                        category=category,
                        frequency=frequency,
                        account_id=account_id,
                    )
                except ValidationError as e:
                    st.error(f"Please check the form: {e.errors()[0]['msg']}")
                else:
                    st.rerun()


def render_advisor_page(session: FinanceSession, components):
    """Render the AI advice page."""
    st.title("💡 Advisor")
    st.markdown("Get advice based on your balances and recent transactions.")

    if st.button("✨ Generate advice", type="primary"):
        with st.spinner("Thinking about your finances..."):
            result = run_async(
                components.advice_flow.request_advice(
                    session,
                    language=st.session_state.language,
                )
            )
        st.session_state.advice_text = result.text

    if st.session_state.get("advice_text"):
        st.markdown(st.session_state.advice_text)


def render_chat_page(session: FinanceSession, components):
    """Render the investment chat page."""
    st.title("📈 Investment Chat")
    st.markdown(
        "Describe a trade or upload a screenshot of your investment app. "
        "Holdings are replaced with what the assistant reads."
    )

    investments = [a for a in session.state.accounts if a.type == AccountType.INVESTMENT]
    if not investments:
        st.info("Create an investment account first.")
        return

    account = st.selectbox("Account", investments, format_func=lambda a: a.name)
    st.markdown(f"**Balance:** {money(account.balance, account.currency)}")
    for holding in account.holdings:
        st.caption(f"{holding.name}: {holding.amount:,.2f}")

    history = st.session_state.setdefault("chat_history", [])
    for role, text in history:
        with st.chat_message(role):
            st.markdown(text)

    # A new key gives an empty uploader once a screenshot has been sent
    upload_key = st.session_state.setdefault("chat_upload_key", 0)
    uploaded = st.file_uploader(
        "Screenshot (optional)",
        type=["jpg", "jpeg", "png", "webp"],
        key=f"chat_upload_{upload_key}",
    )
    message = st.chat_input("e.g. I bought 10 shares of Apple for $150")

    if message:
        history.append(("user", message))
        with st.spinner("Reading your portfolio..."):
            result = run_async(
                components.chat_flow.send_message(
                    session,
                    account.id,
                    message,
                    image=uploaded.getvalue() if uploaded else None,
                    language=st.session_state.language,
                )
            )
        history.append(("assistant", result.text))
        if uploaded:
            st.session_state.chat_upload_key = upload_key + 1
        st.rerun()


def render_settings_page(session: FinanceSession, components):
    """Render the settings page."""
    st.title("⚙️ Settings")

    currencies = list(Currency)
    base = st.selectbox(
        "Base currency",
        currencies,
        index=currencies.index(session.state.base_currency),
        format_func=lambda c: c.value,
    )
    if base != session.state.base_currency:
        try:
            session.set_base_currency(base)
        except UnsupportedCurrencyError as e:
            st.error(str(e))
        else:
            st.rerun()

    languages = list(Language)
    st.session_state.language = st.selectbox(
        "AI language",
        languages,
        index=languages.index(st.session_state.language),
        format_func=lambda lang: lang.display_name,
    )

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Gemini (AI)", "gemini"),
        ("Storage", "storage"),
        ("Google Sheets (Storage)", "google_sheets"),
    ]

    for name, key in services:
        if key not in status:
            continue
        if status[key]:
            st.success(f"✅ {name} - Connected")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    if not all(status.get(key, True) for _, key in services):
        st.info(
            "To configure the application, create a `.env` file with your API keys. "
            "See `.env.example` for the required variables."
        )

    st.markdown("### Recent activity")
    for event in session.audit.recent_events[:10]:
        st.caption(f"{event.timestamp.strftime('%d %b %H:%M')} · {event.description}")

    st.markdown("---")
    if st.button("🚪 Sign out"):
        session.close()
        run_async(components.auth.logout())
        for key in ("finance_session", "advice_text", "chat_history"):
            st.session_state.pop(key, None)
        st.rerun()


if __name__ == "__main__":
    main()
