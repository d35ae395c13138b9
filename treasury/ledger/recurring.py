"""
Recurring Rule Evaluator

Turns recurring rules into concrete transactions on demand and seeds the
default rule for new users.

Materializing is manual: the user presses "record" and one COMPLETED
expense is produced. The rule's next_due_date is never advanced, so the
same rule can be recorded any number of times.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence, Union

from treasury.models.finance import (
    Account,
    Category,
    CategoryKind,
    Currency,
    RecurringFrequency,
    RecurringRule,
    Transaction,
    TransactionStatus,
    TransactionType,
    as_utc,
    utc_now,
)


RECURRING_TAG = "Recurring"

DEFAULT_RULE_ID = "rec_1"

# Account id used when a rule is seeded before any account exists
FALLBACK_ACCOUNT_ID = "1"


def _now(now: Optional[datetime]) -> datetime:
    return as_utc(now) if now is not None else utc_now()


def _first_account_id(accounts: Sequence[Account]) -> str:
    return accounts[0].id if accounts else FALLBACK_ACCOUNT_ID


def materialize(rule: RecurringRule, now: Optional[datetime] = None) -> Transaction:
    """
    Build the expense one occurrence of a rule stands for.

    The caller passes the result to create_transaction, which assigns
    the final id and applies the balance effect.
    """
    return Transaction(
        date=_now(now),
        amount=rule.amount,
        currency=rule.currency,
        type=TransactionType.EXPENSE,
        category=rule.category,
        tags=[RECURRING_TAG],
        account_id=rule.account_id,
        note=f"Auto-generated: {rule.name}",
        status=TransactionStatus.COMPLETED,
        is_amortized=False,
        amortization_months=0,
        is_recurring=True,
    )


def default_rule(
    accounts: Sequence[Account],
    now: Optional[datetime] = None,
) -> RecurringRule:
    """The monthly health insurance payment every new user starts with."""
    return RecurringRule(
        id=DEFAULT_RULE_ID,
        name="Health Insurance",
        amount=Decimal("500"),
        currency=Currency.CNY,
        category=Category(kind=CategoryKind.INSURANCE),
        frequency=RecurringFrequency.MONTHLY,
        next_due_date=_now(now),
        account_id=_first_account_id(accounts),
    )


def ensure_default_rules(
    rules: Sequence[RecurringRule],
    accounts: Sequence[Account],
    now: Optional[datetime] = None,
) -> list[RecurringRule]:
    """Return the rules unchanged, or the default rule if there are none."""
    if rules:
        return list(rules)
    return [default_rule(accounts, now)]


def new_rule(
    name: str,
    amount: Union[Decimal, int, str],
    accounts: Sequence[Account],
    currency: Currency,
    category: Union[Category, CategoryKind, str] = CategoryKind.HOUSING,
    frequency: RecurringFrequency = RecurringFrequency.MONTHLY,
    account_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> RecurringRule:
    """
    Build a user-defined rule.

    `currency` is normally the user's base currency. Without an explicit
    account_id the rule charges the first account.
    """
    return RecurringRule(
        name=name,
        amount=amount,
        currency=currency,
        category=category,
        frequency=frequency,
        next_due_date=_now(now),
        account_id=account_id or _first_account_id(accounts),
    )
