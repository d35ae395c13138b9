"""
Ledger Package

The pure core of Little Treasury: currency conversion, dashboard
aggregation, the transaction lifecycle and recurring rules. Nothing in
this package performs I/O.
"""

from treasury.ledger.currency import (
    EXCHANGE_RATES,
    REFERENCE_CURRENCY,
    UnsupportedCurrencyError,
    conversion_rate,
    normalize,
    rate_for,
)
from treasury.ledger.aggregation import (
    ADVICE_STALE_AFTER,
    accounts_in_group,
    advice_is_stale,
    group_accounts,
    group_key,
    investment_assets,
    monthly_expenses,
    needs_investment_check_in,
    net_worth,
    parse_group_key,
    pending_income,
    summarize,
    total_assets,
    total_liabilities,
)
from treasury.ledger.lifecycle import (
    apply_balance_effect,
    create_account,
    create_transaction,
    mark_as_received,
    replace_holdings,
)
from treasury.ledger.recurring import (
    DEFAULT_RULE_ID,
    RECURRING_TAG,
    default_rule,
    ensure_default_rules,
    materialize,
    new_rule,
)
from treasury.ledger.seed import default_accounts

__all__ = [
    # Currency
    "EXCHANGE_RATES",
    "REFERENCE_CURRENCY",
    "UnsupportedCurrencyError",
    "conversion_rate",
    "normalize",
    "rate_for",
    # Aggregation
    "ADVICE_STALE_AFTER",
    "accounts_in_group",
    "advice_is_stale",
    "group_accounts",
    "group_key",
    "investment_assets",
    "monthly_expenses",
    "needs_investment_check_in",
    "net_worth",
    "parse_group_key",
    "pending_income",
    "summarize",
    "total_assets",
    "total_liabilities",
    # Lifecycle
    "apply_balance_effect",
    "create_account",
    "create_transaction",
    "mark_as_received",
    "replace_holdings",
    # Recurring
    "DEFAULT_RULE_ID",
    "RECURRING_TAG",
    "default_rule",
    "ensure_default_rules",
    "materialize",
    "new_rule",
    # Seed
    "default_accounts",
]
