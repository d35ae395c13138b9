"""
Session Store

Holds the logged-in user's LedgerState and is the only place where it is
replaced. Every command runs a pure ledger function, swaps in the result,
schedules a debounced save and notifies subscribers.

Commands are synchronous. Only AI calls (see orchestrator) are async.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Iterable, Optional, Union
from uuid import UUID

from treasury.audit.logger import AuditLogger
from treasury.config import get_settings
from treasury.ledger.aggregation import (
    ADVICE_STALE_AFTER,
    accounts_in_group,
    group_accounts,
    summarize,
)
from treasury.ledger.currency import rate_for
from treasury.ledger.lifecycle import (
    create_account,
    create_transaction,
    mark_as_received,
    replace_holdings,
)
from treasury.ledger.recurring import materialize, new_rule
from treasury.models.finance import (
    Account,
    AccountGroup,
    AccountType,
    Category,
    CategoryKind,
    Currency,
    FinanceSummary,
    Holding,
    LedgerState,
    RecurringFrequency,
    RecurringRule,
    Transaction,
    User,
    as_utc,
    utc_now,
)
from treasury.services.storage.interface import RecordStore
from treasury.session.persistence import DebouncedSaver, StatePersistence


Subscriber = Callable[[LedgerState], None]


class FinanceSession:
    """
    One user's working ledger.

    Usage:
        session = await open_session(store, user)
        session.add_transaction(tx)
        summary = session.summary()
        session.close()
    """

    def __init__(
        self,
        user: User,
        state: LedgerState,
        saver: Optional[DebouncedSaver] = None,
        audit_logger: Optional[AuditLogger] = None,
        advice_stale_after: timedelta = ADVICE_STALE_AFTER,
    ):
        self._user = user
        self._state = state
        self._saver = saver
        self._audit = audit_logger or AuditLogger(user_id=user.id)
        self._advice_stale_after = advice_stale_after
        self._subscribers: list[Subscriber] = []

    @property
    def user(self) -> User:
        return self._user

    @property
    def state(self) -> LedgerState:
        return self._state

    @property
    def audit(self) -> AuditLogger:
        return self._audit

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for state changes. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _commit(self, new_state: LedgerState) -> None:
        if new_state is self._state:
            return
        self._state = new_state
        if self._saver is not None:
            self._saver.schedule(new_state)
        for callback in list(self._subscribers):
            callback(new_state)

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def add_transaction(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """Record a transaction. Returns it with its assigned id."""
        new_state, created = create_transaction(self._state, transaction)
        self._commit(new_state)
        self._audit.log_transaction_created(created, correlation_id)
        return created

    def mark_as_received(
        self,
        transaction_id: str,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Complete a pending transaction.

        Returns False (and logs why) if the id is unknown or the
        transaction is not pending.
        """
        new_state = mark_as_received(self._state, transaction_id, now)
        if new_state is self._state:
            existing = self._state.get_transaction(transaction_id)
            reason = (
                "unknown transaction" if existing is None
                else f"transaction is {existing.status.value}"
            )
            self._audit.log_receive_ignored(transaction_id, reason)
            return False

        self._commit(new_state)
        self._audit.log_transaction_received(new_state.get_transaction(transaction_id))
        return True

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    def create_account(
        self,
        name: str,
        account_type: AccountType,
        currency: Currency,
        balance: Union[Decimal, int, str] = Decimal("0"),
        color: str = "#3B82F6",
    ) -> Account:
        new_state, account = create_account(
            self._state,
            name=name,
            account_type=AccountType(account_type),
            currency=Currency(currency),
            balance=Decimal(str(balance)),
            color=color,
        )
        self._commit(new_state)
        self._audit.log_account_created(account)
        return account

    def update_holdings(
        self,
        account_id: str,
        holdings: Iterable[Holding],
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Account]:
        """Replace an account's holdings. Returns None for unknown accounts."""
        new_state, account = replace_holdings(self._state, account_id, holdings, now)
        if account is None:
            return None
        self._commit(new_state)
        self._audit.log_holdings_updated(account, correlation_id)
        return account

    # =========================================================================
    # RECURRING PAYMENTS
    # =========================================================================

    def add_recurring_rule(
        self,
        name: str,
        amount: Union[Decimal, int, str],
        currency: Optional[Currency] = None,
        category: Union[Category, CategoryKind, str] = CategoryKind.HOUSING,
        frequency: RecurringFrequency = RecurringFrequency.MONTHLY,
        account_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> RecurringRule:
        """Add a user-defined rule. Currency defaults to the base currency."""
        rule = new_rule(
            name=name,
            amount=amount,
            accounts=self._state.accounts,
            currency=currency or self._state.base_currency,
            category=category,
            frequency=frequency,
            account_id=account_id,
            now=now,
        )
        self._commit(self._state.model_copy(update={
            "recurring_rules": [*self._state.recurring_rules, rule],
        }))
        self._audit.log_recurring_rule_added(rule.id, rule.name)
        return rule

    def record_recurring_payment(
        self,
        rule_id: str,
        now: Optional[datetime] = None,
    ) -> Optional[Transaction]:
        """
        Record one occurrence of a rule as a completed expense.

        The rule itself is not changed. Returns None for unknown rules.
        """
        rule = self._state.get_rule(rule_id)
        if rule is None:
            return None

        new_state, created = create_transaction(self._state, materialize(rule, now))
        self._commit(new_state)
        self._audit.log_recurring_payment_recorded(rule.id, created.id, rule.name)
        return created

    # =========================================================================
    # PREFERENCES
    # =========================================================================

    def set_base_currency(self, currency: Union[Currency, str]) -> None:
        """Change the reporting currency. Unknown codes raise UnsupportedCurrencyError."""
        rate_for(currency)
        currency = Currency(currency)
        old = self._state.base_currency
        if currency == old:
            return
        self._commit(self._state.model_copy(update={"base_currency": currency}))
        self._audit.log_base_currency_changed(old.value, currency.value)

    def record_advice(self, at: Optional[datetime] = None) -> None:
        """Remember when advice was last generated successfully."""
        at = as_utc(at) if at is not None else utc_now()
        self._commit(self._state.model_copy(update={"last_advice_at": at}))

    # =========================================================================
    # DERIVED VALUES
    # =========================================================================

    def summary(self, now: Optional[datetime] = None) -> FinanceSummary:
        return summarize(self._state, now, self._advice_stale_after)

    def groups(self) -> list[AccountGroup]:
        return group_accounts(self._state.accounts)

    def accounts_in_group(self, key: str) -> list[Account]:
        return accounts_in_group(self._state.accounts, key)

    def close(self) -> bool:
        """Write any pending save immediately. Call before logging out."""
        if self._saver is None:
            return False
        return self._saver.flush()


async def open_session(
    store: RecordStore,
    user: User,
    audit_logger: Optional[AuditLogger] = None,
    now: Optional[datetime] = None,
) -> FinanceSession:
    """
    Load a user's ledger and wrap it in a session.

    Debounce delay, default base currency and the advice staleness window
    come from settings.
    """
    settings = get_settings()
    audit_logger = audit_logger or AuditLogger(user_id=user.id)

    persistence = StatePersistence(
        store,
        user.id,
        default_base_currency=Currency(settings.app.default_base_currency),
    )
    state = await persistence.load(now)
    saver = DebouncedSaver(
        persistence,
        delay_seconds=settings.storage.save_debounce_seconds,
        audit_logger=audit_logger,
    )

    return FinanceSession(
        user=user,
        state=state,
        saver=saver,
        audit_logger=audit_logger,
        advice_stale_after=timedelta(days=settings.app.advice_stale_after_days),
    )
