"""
Data Models Package

All Pydantic models used by Little Treasury. Data flowing through the
ledger, the AI gateway and the record stores conforms to these schemas.
"""

from treasury.models.finance import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    Account,
    AccountGroup,
    AccountType,
    BalanceEffect,
    Category,
    CategoryKind,
    Currency,
    ExpenseEffect,
    FinanceSummary,
    Holding,
    IncomeEffect,
    Language,
    LedgerState,
    RecurringFrequency,
    RecurringRule,
    Transaction,
    TransactionStatus,
    TransactionType,
    TransferEffect,
    User,
    as_utc,
    new_id,
    utc_now,
)
from treasury.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "EXPENSE_CATEGORIES",
    "INCOME_CATEGORIES",
    "Account",
    "AccountGroup",
    "AccountType",
    "BalanceEffect",
    "Category",
    "CategoryKind",
    "Currency",
    "ExpenseEffect",
    "FinanceSummary",
    "Holding",
    "IncomeEffect",
    "Language",
    "LedgerState",
    "RecurringFrequency",
    "RecurringRule",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "TransferEffect",
    "User",
    "as_utc",
    "new_id",
    "utc_now",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
