"""
Transaction Lifecycle Manager

Creates transactions, applies their balance effects and completes pending
ones. Also home to the two other ledger writes: creating accounts and
replacing an investment account's holdings.

Every function takes a LedgerState and returns a new one. Inputs are never
modified.

CRITICAL: A transaction's balance effect is applied exactly once, either
when it is created as COMPLETED or when it moves from PENDING to
COMPLETED. mark_as_received ignores anything that is not PENDING.

Known asymmetry: EXPENSE and INCOME change the source account by the raw
amount, even when the transaction currency differs from the account
currency. Only TRANSFER converts (for the destination side). Reports
always normalize, so the dashboard stays consistent; the ledger does not.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from treasury.ledger.currency import conversion_rate
from treasury.models.finance import (
    Account,
    AccountType,
    Currency,
    ExpenseEffect,
    Holding,
    IncomeEffect,
    LedgerState,
    Transaction,
    TransactionStatus,
    TransferEffect,
    as_utc,
    new_id,
    utc_now,
)


def apply_balance_effect(
    accounts: list[Account],
    transaction: Transaction,
) -> list[Account]:
    """
    Return the account list with one transaction's effect applied.

    Only the source account (and, for transfers, the destination) change.
    Ids that match no account are ignored.
    """
    deltas: dict[str, Decimal] = {}

    match transaction.effect:
        case ExpenseEffect(account_id=source, amount=amount):
            deltas[source] = -amount
        case IncomeEffect(account_id=source, amount=amount):
            deltas[source] = amount
        case TransferEffect(
            account_id=source,
            to_account_id=target,
            amount=amount,
            currency=currency,
        ):
            deltas[source] = -amount
            destination = next((a for a in accounts if a.id == target), None)
            if destination is not None:
                deltas[target] = amount * conversion_rate(currency, destination.currency)

    return [
        account.model_copy(update={"balance": account.balance + deltas[account.id]})
        if account.id in deltas else account
        for account in accounts
    ]


def create_transaction(
    state: LedgerState,
    transaction: Transaction,
) -> tuple[LedgerState, Transaction]:
    """
    Record a new transaction.

    The transaction gets a fresh id and goes to the front of the list.
    Its balance effect is applied now only if it is already COMPLETED;
    pending ones wait for mark_as_received.
    """
    created = transaction.model_copy(update={"id": new_id()})

    accounts = state.accounts
    if created.status == TransactionStatus.COMPLETED:
        accounts = apply_balance_effect(accounts, created)

    new_state = state.model_copy(update={
        "accounts": accounts,
        "transactions": [created, *state.transactions],
    })
    return new_state, created


def mark_as_received(
    state: LedgerState,
    transaction_id: str,
    now: Optional[datetime] = None,
) -> LedgerState:
    """
    Complete a pending transaction.

    Sets the status to COMPLETED, moves the occurrence date to `now` and
    applies the balance effect. For an unknown id or a transaction that is
    not PENDING, the very same state object is returned, so callers can
    tell nothing happened with `is`.
    """
    transaction = state.get_transaction(transaction_id)
    if transaction is None or transaction.status != TransactionStatus.PENDING:
        return state

    completed = transaction.model_copy(update={
        "status": TransactionStatus.COMPLETED,
        "date": as_utc(now) if now is not None else utc_now(),
    })

    return state.model_copy(update={
        "accounts": apply_balance_effect(state.accounts, completed),
        "transactions": [
            completed if t.id == transaction_id else t
            for t in state.transactions
        ],
    })


def create_account(
    state: LedgerState,
    name: str,
    account_type: AccountType,
    currency: Currency,
    balance: Decimal = Decimal("0"),
    color: str = "#3B82F6",
) -> tuple[LedgerState, Account]:
    """Append a new account with an empty holdings list."""
    account = Account(
        id=new_id(),
        name=name,
        type=account_type,
        currency=currency,
        balance=balance,
        color=color,
        holdings=[],
    )
    new_state = state.model_copy(update={"accounts": [*state.accounts, account]})
    return new_state, account


def replace_holdings(
    state: LedgerState,
    account_id: str,
    holdings: Iterable[Holding],
    now: Optional[datetime] = None,
) -> tuple[LedgerState, Optional[Account]]:
    """
    Swap in a full new holdings list for one account.

    The balance becomes the sum of the holding amounts and the check-in
    time is stamped. Unknown accounts leave the state untouched.
    """
    account = state.get_account(account_id)
    if account is None:
        return state, None

    holdings = list(holdings)
    updated = account.model_copy(update={
        "holdings": holdings,
        "balance": sum((h.amount for h in holdings), Decimal("0")),
        "last_check_in": as_utc(now) if now is not None else utc_now(),
    })

    new_state = state.model_copy(update={
        "accounts": [updated if a.id == account_id else a for a in state.accounts],
    })
    return new_state, updated
