"""
Aggregation Engine

Pure functions that turn the raw account and transaction lists into the
numbers shown on the dashboard.

Nothing here keeps state or has side effects, so every function is safe to
call again after each change. Functions that depend on the current date take
an optional `now`; it defaults to the wall clock.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from treasury.ledger.currency import normalize
from treasury.models.finance import (
    Account,
    AccountGroup,
    AccountType,
    Currency,
    FinanceSummary,
    LedgerState,
    Transaction,
    TransactionStatus,
    TransactionType,
    as_utc,
    utc_now,
)


ADVICE_STALE_AFTER = timedelta(milliseconds=604_800_000)

GROUP_KEY_SEPARATOR = "-"


def _now(now: Optional[datetime]) -> datetime:
    return as_utc(now) if now is not None else utc_now()


# =============================================================================
# TOTALS
# =============================================================================

def net_worth(accounts: Iterable[Account], base_currency: Currency) -> Decimal:
    """Sum of every balance in the base currency. Liabilities subtract."""
    return sum(
        (normalize(a.balance, a.currency, base_currency) for a in accounts),
        Decimal("0"),
    )


def pending_income(
    transactions: Iterable[Transaction],
    base_currency: Currency,
) -> Decimal:
    """Income that has been earned but not yet received, regardless of expected date."""
    return sum(
        (
            normalize(t.amount, t.currency, base_currency)
            for t in transactions
            if t.type == TransactionType.INCOME and t.status == TransactionStatus.PENDING
        ),
        Decimal("0"),
    )


def in_month_of(moment: datetime, now: datetime) -> bool:
    moment = as_utc(moment)
    return moment.year == now.year and moment.month == now.month


def monthly_expenses(
    transactions: Iterable[Transaction],
    base_currency: Currency,
    now: Optional[datetime] = None,
) -> Decimal:
    """
    Expenses whose occurrence date falls in the current calendar month.

    The month is taken from `now` at call time, not from a fixed
    reporting period.
    """
    now = _now(now)
    return sum(
        (
            normalize(t.amount, t.currency, base_currency)
            for t in transactions
            if t.type == TransactionType.EXPENSE and in_month_of(t.date, now)
        ),
        Decimal("0"),
    )


def total_assets(accounts: Iterable[Account], base_currency: Currency) -> Decimal:
    """Everything that is not a credit or loan account."""
    return sum(
        (
            normalize(a.balance, a.currency, base_currency)
            for a in accounts
            if not a.is_liability
        ),
        Decimal("0"),
    )


def investment_assets(accounts: Iterable[Account], base_currency: Currency) -> Decimal:
    return sum(
        (
            normalize(a.balance, a.currency, base_currency)
            for a in accounts
            if a.type == AccountType.INVESTMENT
        ),
        Decimal("0"),
    )


def total_liabilities(accounts: Iterable[Account], base_currency: Currency) -> Decimal:
    """Outstanding debt as a positive number."""
    return sum(
        (
            normalize(abs(a.balance), a.currency, base_currency)
            for a in accounts
            if a.is_liability
        ),
        Decimal("0"),
    )


# =============================================================================
# GROUPING
# =============================================================================

def group_key(currency: Currency, account_type: AccountType) -> str:
    """Composite key such as 'CNY-SAVINGS'."""
    return f"{Currency(currency).value}{GROUP_KEY_SEPARATOR}{AccountType(account_type).value}"


def parse_group_key(key: str) -> tuple[Currency, AccountType]:
    """
    Inverse of group_key.

    Raises ValueError for keys that don't name a known currency and type.
    """
    currency, sep, account_type = key.partition(GROUP_KEY_SEPARATOR)
    if not sep:
        raise ValueError(f"Malformed group key: {key!r}")
    return Currency(currency), AccountType(account_type)


def group_accounts(accounts: Iterable[Account]) -> list[AccountGroup]:
    """
    Partition accounts by (currency, type).

    Groups come out in the order their first member appears. Balances are
    raw sums since members share a currency.
    """
    groups: dict[str, dict] = {}

    for account in accounts:
        key = group_key(account.currency, account.type)
        if key not in groups:
            groups[key] = {
                "key": key,
                "currency": account.currency,
                "type": account.type,
                "balance": Decimal("0"),
                "account_ids": [],
            }
        groups[key]["balance"] += account.balance
        groups[key]["account_ids"].append(account.id)

    return [
        AccountGroup(count=len(data["account_ids"]), **data)
        for data in groups.values()
    ]


def accounts_in_group(accounts: Iterable[Account], key: str) -> list[Account]:
    """The accounts behind one group key, for drill-down views."""
    currency, account_type = parse_group_key(key)
    return [a for a in accounts if a.currency == currency and a.type == account_type]


# =============================================================================
# REMINDERS
# =============================================================================

def needs_investment_check_in(
    accounts: Iterable[Account],
    now: Optional[datetime] = None,
) -> bool:
    """True if any investment account has not been checked in today (UTC)."""
    today = _now(now).date()
    return any(
        a.last_check_in is None or as_utc(a.last_check_in).date() != today
        for a in accounts
        if a.type == AccountType.INVESTMENT
    )


def advice_is_stale(
    last_generated_at: Optional[datetime],
    now: Optional[datetime] = None,
    stale_after: timedelta = ADVICE_STALE_AFTER,
) -> bool:
    """True if advice was never generated or is older than `stale_after` (seven days)."""
    if last_generated_at is None:
        return True
    return _now(now) - as_utc(last_generated_at) > stale_after


# =============================================================================
# SUMMARY
# =============================================================================

def summarize(
    state: LedgerState,
    now: Optional[datetime] = None,
    advice_stale_after: timedelta = ADVICE_STALE_AFTER,
) -> FinanceSummary:
    """Every dashboard figure for one user."""
    now = _now(now)
    base = state.base_currency

    return FinanceSummary(
        base_currency=base,
        net_worth=net_worth(state.accounts, base),
        pending_income=pending_income(state.transactions, base),
        monthly_expenses=monthly_expenses(state.transactions, base, now),
        total_assets=total_assets(state.accounts, base),
        investment_assets=investment_assets(state.accounts, base),
        total_liabilities=total_liabilities(state.accounts, base),
        asset_count=sum(1 for a in state.accounts if a.balance > 0),
        debt_count=sum(1 for a in state.accounts if a.balance < 0),
        needs_check_in=needs_investment_check_in(state.accounts, now),
        advice_stale=advice_is_stale(state.last_advice_at, now, advice_stale_after),
        computed_at=now,
    )
