"""
Core Data Models for Little Treasury

These models define the schemas for everything the ledger works with:
accounts, holdings, transactions, recurring rules and the per-user state
that ties them together.

DESIGN DECISION: We use Pydantic v2 models that are frozen. A ledger
operation never edits a model in place; it returns a copy. This keeps the
"apply a balance effect exactly once" rule easy to reason about.

All models serialize with camelCase aliases (accountId, dailyChange, ...)
so persisted records and AI payloads share one wire format. Either
spelling is accepted on input.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional, Union
from uuid import uuid4

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    """Current wall-clock time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_id() -> str:
    """Fresh identifier for accounts, transactions and rules."""
    return uuid4().hex


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class TreasuryModel(BaseModel):
    """Base for every persisted model."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        frozen=True,
    )

    def to_record(self) -> dict:
        """JSON-safe dict using the camelCase wire names."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Currency(str, Enum):
    """Currencies with an entry in the rate table."""
    CNY = "CNY"
    USD = "USD"
    EUR = "EUR"
    JPY = "JPY"
    HKD = "HKD"
    KRW = "KRW"


class AccountType(str, Enum):
    """
    Account kinds.

    CREDIT and LOAN accounts carry negative balances.
    """
    SAVINGS = "SAVINGS"        # Cash, debit cards
    INVESTMENT = "INVESTMENT"  # Stocks, funds
    CREDIT = "CREDIT"          # Credit cards, consumer credit
    LOAN = "LOAN"              # Long term debt


class TransactionType(str, Enum):
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"
    TRANSFER = "TRANSFER"


class TransactionStatus(str, Enum):
    """
    Settlement status.

    The only legal transition is PENDING -> COMPLETED.
    """
    COMPLETED = "COMPLETED"
    PENDING = "PENDING"


class RecurringFrequency(str, Enum):
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class Language(str, Enum):
    """Language of AI-generated commentary."""
    EN = "en"
    ZH = "zh"

    @property
    def display_name(self) -> str:
        return "Chinese" if self is Language.ZH else "English"


class CategoryKind(str, Enum):
    """
    Known transaction categories.

    DESIGN DECISION: Categories are a closed set plus one CUSTOM variant.
    A custom category carries its own label, so grouping by kind stays
    exhaustive while users can still type their own.
    """
    # Expenses
    FOOD = "Food"
    TRANSPORT = "Transport"
    HOUSING = "Housing"
    SHOPPING = "Shopping"
    ENTERTAINMENT = "Entertainment"
    HEALTH = "Health"
    INSURANCE = "Insurance"
    FAMILY = "Family"
    # Income
    SALARY = "Salary"
    BONUS = "Bonus"
    PART_TIME = "Part-time"
    INVESTMENT = "Investment"
    GIFT = "Gift"
    # Both
    OTHER = "Other"
    CUSTOM = "Custom"


EXPENSE_CATEGORIES: tuple[CategoryKind, ...] = (
    CategoryKind.FOOD,
    CategoryKind.TRANSPORT,
    CategoryKind.HOUSING,
    CategoryKind.SHOPPING,
    CategoryKind.ENTERTAINMENT,
    CategoryKind.HEALTH,
    CategoryKind.INSURANCE,
    CategoryKind.FAMILY,
    CategoryKind.OTHER,
)

INCOME_CATEGORIES: tuple[CategoryKind, ...] = (
    CategoryKind.SALARY,
    CategoryKind.BONUS,
    CategoryKind.PART_TIME,
    CategoryKind.INVESTMENT,
    CategoryKind.GIFT,
    CategoryKind.OTHER,
)


# =============================================================================
# CATEGORY
# =============================================================================

class Category(TreasuryModel):
    """
    A transaction category: one of the known kinds, or a custom label.

    Plain strings are accepted anywhere a Category is expected:
    "Food" becomes the FOOD kind, "Pet care" becomes CUSTOM("Pet care").
    """

    kind: CategoryKind
    custom_label: Optional[str] = Field(
        default=None,
        max_length=50,
        description="Label for CUSTOM categories"
    )

    @model_validator(mode="before")
    @classmethod
    def parse_label(cls, data):
        if isinstance(data, CategoryKind):
            return {"kind": data}
        if isinstance(data, str):
            return cls._fields_for_label(data)
        return data

    @staticmethod
    def _fields_for_label(label: str) -> dict:
        label = label.strip()
        if not label:
            return {"kind": CategoryKind.OTHER}
        for kind in CategoryKind:
            if kind is not CategoryKind.CUSTOM and kind.value.lower() == label.lower():
                return {"kind": kind}
        return {"kind": CategoryKind.CUSTOM, "custom_label": label}

    @model_validator(mode="after")
    def validate_label(self) -> "Category":
        if self.kind == CategoryKind.CUSTOM and not self.custom_label:
            raise ValueError("Custom categories need a label")
        if self.kind != CategoryKind.CUSTOM and self.custom_label:
            raise ValueError("Only custom categories carry a label")
        return self

    @classmethod
    def from_label(cls, label: str) -> "Category":
        return cls.model_validate(label)

    @property
    def label(self) -> str:
        if self.kind == CategoryKind.CUSTOM:
            return self.custom_label
        return self.kind.value

    @property
    def is_custom(self) -> bool:
        return self.kind == CategoryKind.CUSTOM

    def __str__(self) -> str:
        return self.label


# =============================================================================
# ACCOUNTS
# =============================================================================

class Holding(TreasuryModel):
    """One named position inside an investment account."""

    code: Optional[str] = Field(
        default=None,
        max_length=20,
        description="Ticker or fund code"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Position name, e.g. 'Gold ETF'"
    )
    amount: Decimal = Field(
        ...,
        description="Current total value, in the account's currency"
    )
    daily_change: Optional[Decimal] = Field(
        default=None,
        description="Profit or loss today"
    )
    quantity: Optional[Decimal] = Field(
        default=None,
        description="Number of shares or units"
    )

    @field_validator('code', mode='before')
    @classmethod
    def code_as_text(cls, v):
        """Fund and A-share codes often arrive as JSON numbers (510300)."""
        if isinstance(v, (int, float, Decimal)) and not isinstance(v, bool):
            return str(v)
        return v


class Account(TreasuryModel):
    """
    A money container.

    The balance is always expressed in the account's own currency and is
    negative for liabilities.
    """

    id: str = Field(default_factory=new_id)
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
    )
    type: AccountType
    currency: Currency
    balance: Decimal = Field(default=Decimal("0"))
    color: str = Field(
        default="#3B82F6",
        description="Display color"
    )
    last_check_in: Optional[UtcDatetime] = Field(
        default=None,
        description="When holdings were last refreshed (investment accounts)"
    )
    holdings: list[Holding] = Field(default_factory=list)

    @property
    def is_liability(self) -> bool:
        return self.type in (AccountType.CREDIT, AccountType.LOAN)


class AccountGroup(TreasuryModel):
    """
    Accounts sharing one (currency, type) pair.

    The balance is a raw sum: every member shares the group currency.
    """

    key: str
    currency: Currency
    type: AccountType
    balance: Decimal = Decimal("0")
    count: int = 0
    account_ids: list[str] = Field(default_factory=list)


# =============================================================================
# BALANCE EFFECTS
# =============================================================================

class ExpenseEffect(TreasuryModel):
    account_id: str
    amount: Decimal


class IncomeEffect(TreasuryModel):
    account_id: str
    amount: Decimal


class TransferEffect(TreasuryModel):
    account_id: str
    to_account_id: str
    amount: Decimal
    currency: Currency


BalanceEffect = Union[ExpenseEffect, IncomeEffect, TransferEffect]


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(TreasuryModel):
    """
    A single ledger entry.

    Transactions are immutable. The one allowed change, PENDING ->
    COMPLETED, is made by the lifecycle manager on a copy.
    """

    id: str = Field(default_factory=new_id)
    date: UtcDatetime = Field(
        default_factory=utc_now,
        description="Occurrence / earning date"
    )
    expected_date: Optional[UtcDatetime] = Field(
        default=None,
        description="Settlement date, only meaningful while PENDING"
    )
    amount: Decimal = Field(..., ge=0)
    currency: Currency
    type: TransactionType
    category: Category = Field(
        default_factory=lambda: Category(kind=CategoryKind.OTHER)
    )
    tags: list[str] = Field(default_factory=list)
    account_id: str = Field(
        ...,
        min_length=1,
        description="Source account"
    )
    to_account_id: Optional[str] = Field(
        default=None,
        description="Destination account (transfers only)"
    )
    note: str = Field(default="", max_length=1000)
    status: TransactionStatus = TransactionStatus.COMPLETED

    # Stockpile purchases: informational only
    is_amortized: bool = False
    amortization_months: int = Field(default=0, ge=0)

    is_recurring: bool = False

    @field_validator('tags')
    @classmethod
    def clean_tags(cls, v: list[str]) -> list[str]:
        """Strip tags, drop empties and duplicates, keep first-seen order."""
        seen = []
        for tag in v:
            tag = tag.strip()
            if tag and tag not in seen:
                seen.append(tag)
        return seen

    @model_validator(mode='after')
    def validate_shape(self) -> 'Transaction':
        if self.type == TransactionType.TRANSFER:
            if not self.to_account_id:
                raise ValueError("Transfers need a destination account")
            if self.to_account_id == self.account_id:
                raise ValueError("Transfer source and destination must differ")
        elif self.to_account_id:
            raise ValueError("Only transfers have a destination account")

        if self.is_amortized:
            if self.type != TransactionType.EXPENSE:
                raise ValueError("Only expenses can be amortized")
            if self.amortization_months < 1:
                raise ValueError("Amortized expenses need at least one month")

        return self

    @property
    def is_pending(self) -> bool:
        return self.status == TransactionStatus.PENDING

    @property
    def effect(self) -> BalanceEffect:
        """The balance change this transaction stands for."""
        if self.type == TransactionType.EXPENSE:
            return ExpenseEffect(account_id=self.account_id, amount=self.amount)
        if self.type == TransactionType.INCOME:
            return IncomeEffect(account_id=self.account_id, amount=self.amount)
        return TransferEffect(
            account_id=self.account_id,
            to_account_id=self.to_account_id,
            amount=self.amount,
            currency=self.currency,
        )


class RecurringRule(TreasuryModel):
    """
    Template for a repeating expense.

    Materializing a rule creates a transaction; the rule itself is
    left untouched, including next_due_date.
    """

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0)
    currency: Currency
    category: Category
    frequency: RecurringFrequency = RecurringFrequency.MONTHLY
    next_due_date: UtcDatetime = Field(default_factory=utc_now)
    account_id: str


# =============================================================================
# USERS AND STATE
# =============================================================================

class User(TreasuryModel):
    id: str = Field(..., min_length=1)
    username: str
    email: str


class LedgerState(TreasuryModel):
    """
    Everything one user owns.

    Transactions are kept most-recent-first.
    """

    accounts: list[Account] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    recurring_rules: list[RecurringRule] = Field(default_factory=list)
    base_currency: Currency = Currency.CNY
    last_advice_at: Optional[UtcDatetime] = None

    def get_account(self, account_id: str) -> Optional[Account]:
        return next((a for a in self.accounts if a.id == account_id), None)

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return next((t for t in self.transactions if t.id == transaction_id), None)

    def get_rule(self, rule_id: str) -> Optional[RecurringRule]:
        return next((r for r in self.recurring_rules if r.id == rule_id), None)


class FinanceSummary(BaseModel):
    """Derived values shown on the dashboard, all in the base currency."""

    base_currency: Currency
    net_worth: Decimal
    pending_income: Decimal
    monthly_expenses: Decimal
    total_assets: Decimal
    investment_assets: Decimal
    total_liabilities: Decimal
    asset_count: int = Field(ge=0)
    debt_count: int = Field(ge=0)
    needs_check_in: bool
    advice_stale: bool
    computed_at: datetime = Field(default_factory=utc_now)
