"""
Ledger Persistence

Loads and saves one user's LedgerState through a RecordStore, and
debounces saves so a burst of edits produces a single write.

Records per user (namespace = user id):
    accounts        JSON array
    transactions    JSON array, most recent first
    recurringRules  JSON array
    baseCurrency    currency code
    lastAdviceAt    ISO timestamp or null

Each collection is written whole on every save.
"""

import asyncio
import threading
from datetime import datetime
from typing import Any, Optional

import structlog
from pydantic import TypeAdapter, ValidationError

from treasury.audit.logger import AuditLogger
from treasury.ledger.recurring import ensure_default_rules
from treasury.ledger.seed import default_accounts
from treasury.models.finance import (
    Account,
    Currency,
    LedgerState,
    RecurringRule,
    Transaction,
)
from treasury.services.storage.interface import RecordStore, StorageError


logger = structlog.get_logger(__name__)


ACCOUNTS_KEY = "accounts"
TRANSACTIONS_KEY = "transactions"
RECURRING_RULES_KEY = "recurringRules"
BASE_CURRENCY_KEY = "baseCurrency"
LAST_ADVICE_KEY = "lastAdviceAt"

_accounts_adapter = TypeAdapter(list[Account])
_transactions_adapter = TypeAdapter(list[Transaction])
_rules_adapter = TypeAdapter(list[RecurringRule])
_optional_datetime_adapter = TypeAdapter(Optional[datetime])


class StatePersistence:
    """Reads and writes the records that make up one user's ledger."""

    def __init__(
        self,
        store: RecordStore,
        user_id: str,
        default_base_currency: Currency = Currency.CNY,
    ):
        self._store = store
        self._user_id = user_id
        self._default_base_currency = Currency(default_base_currency)

    @property
    def user_id(self) -> str:
        return self._user_id

    def _parse(self, key: str, adapter: TypeAdapter, raw: Any) -> Any:
        try:
            return adapter.validate_python(raw)
        except ValidationError as e:
            raise StorageError(f"Corrupt {key} record for {self._user_id}: {e}")

    async def load(self, now: Optional[datetime] = None) -> LedgerState:
        """
        Load the user's ledger.

        Missing records fall back to the first-run defaults: the starter
        accounts, no transactions, the default recurring rule and the
        configured base currency. An empty rule list is reseeded as well.
        """
        raw_accounts = await self._store.get(self._user_id, ACCOUNTS_KEY)
        raw_transactions = await self._store.get(self._user_id, TRANSACTIONS_KEY)
        raw_rules = await self._store.get(self._user_id, RECURRING_RULES_KEY)
        raw_base = await self._store.get(self._user_id, BASE_CURRENCY_KEY)
        raw_advice = await self._store.get(self._user_id, LAST_ADVICE_KEY)

        if raw_accounts is None:
            accounts = default_accounts(now)
        else:
            accounts = self._parse(ACCOUNTS_KEY, _accounts_adapter, raw_accounts)

        transactions = []
        if raw_transactions is not None:
            transactions = self._parse(TRANSACTIONS_KEY, _transactions_adapter, raw_transactions)

        rules = []
        if raw_rules is not None:
            rules = self._parse(RECURRING_RULES_KEY, _rules_adapter, raw_rules)
        rules = ensure_default_rules(rules, accounts, now)

        try:
            base_currency = Currency(raw_base) if raw_base else self._default_base_currency
        except ValueError:
            raise StorageError(f"Corrupt {BASE_CURRENCY_KEY} record for {self._user_id}: {raw_base!r}")

        last_advice_at = self._parse(LAST_ADVICE_KEY, _optional_datetime_adapter, raw_advice)

        logger.debug(
            "ledger_loaded",
            user_id=self._user_id,
            account_count=len(accounts),
            transaction_count=len(transactions),
        )

        return LedgerState(
            accounts=accounts,
            transactions=transactions,
            recurring_rules=rules,
            base_currency=base_currency,
            last_advice_at=last_advice_at,
        )

    async def save(self, state: LedgerState) -> None:
        """Write every record of the ledger. Raises StorageError on failure."""
        await self._store.put(
            self._user_id,
            ACCOUNTS_KEY,
            [a.to_record() for a in state.accounts],
        )
        await self._store.put(
            self._user_id,
            TRANSACTIONS_KEY,
            [t.to_record() for t in state.transactions],
        )
        await self._store.put(
            self._user_id,
            RECURRING_RULES_KEY,
            [r.to_record() for r in state.recurring_rules],
        )
        await self._store.put(
            self._user_id,
            BASE_CURRENCY_KEY,
            state.base_currency.value,
        )
        await self._store.put(
            self._user_id,
            LAST_ADVICE_KEY,
            state.last_advice_at.isoformat() if state.last_advice_at else None,
        )


class DebouncedSaver:
    """
    Runs StatePersistence.save after a quiet period.

    Every schedule() cancels the save that is still waiting and starts a new
    timer, so only the last state of a burst is written. Saves run on the
    timer thread with their own event loop. A failed save is logged as
    SAVE_FAILED and otherwise ignored; the next change schedules another.
    """

    def __init__(
        self,
        persistence: StatePersistence,
        delay_seconds: float = 0.8,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._persistence = persistence
        self._delay = delay_seconds
        self._audit = audit_logger or AuditLogger(user_id=persistence.user_id)
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._pending_state: Optional[LedgerState] = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending_state is not None

    def schedule(self, state: LedgerState) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._pending_state = state
            self._timer = threading.Timer(self._delay, self._on_timer)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        """Drop the waiting save without writing it."""
        with self._lock:
            self._take_pending()

    def flush(self) -> bool:
        """
        Run the waiting save now, on the calling thread.

        Must not be called from inside a running event loop.
        Returns True if there was something to save and it was written.
        """
        with self._lock:
            state = self._take_pending()
        if state is None:
            return False
        return self._save(state)

    def _take_pending(self) -> Optional[LedgerState]:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        state, self._pending_state = self._pending_state, None
        return state

    def _on_timer(self) -> None:
        with self._lock:
            if self._timer is not threading.current_thread():
                # Replaced or flushed after this timer fired
                return
            self._timer = None
            state, self._pending_state = self._pending_state, None
        if state is not None:
            self._save(state)

    def _save(self, state: LedgerState) -> bool:
        user_id = self._persistence.user_id
        try:
            asyncio.run(self._persistence.save(state))
        except StorageError as e:
            self._audit.log_save_failed(user_id, str(e))
            return False
        self._audit.log_state_saved(
            user_id=user_id,
            transaction_count=len(state.transactions),
            account_count=len(state.accounts),
        )
        return True
