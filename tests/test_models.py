"""
Tests for Little Treasury models

Test strategy:
1. Unit tests for individual components (models, ledger functions)
2. Integration tests for flows (with fake Gemini models)
3. No real API calls in tests
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from pydantic import ValidationError

from treasury.models import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    Account,
    AccountType,
    Category,
    CategoryKind,
    Currency,
    ExpenseEffect,
    Holding,
    IncomeEffect,
    Transaction,
    TransactionStatus,
    TransactionType,
    TransferEffect,
)
from treasury.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestCategory:
    """Tests for the closed category set with a custom variant."""

    def test_known_label_parses_to_kind(self):
        """Test that a known label becomes its kind."""
        category = Category.from_label("Food")
        assert category.kind == CategoryKind.FOOD
        assert category.label == "Food"
        assert not category.is_custom

    def test_label_matching_ignores_case(self):
        """Test case-insensitive matching of known labels."""
        assert Category.from_label("part-time").kind == CategoryKind.PART_TIME

    def test_unknown_label_becomes_custom(self):
        """Test that user-typed labels are kept as custom categories."""
        category = Category.from_label("Pet care")
        assert category.kind == CategoryKind.CUSTOM
        assert category.label == "Pet care"
        assert str(category) == "Pet care"

    def test_empty_label_is_other(self):
        """Test that an empty label falls back to Other."""
        assert Category.from_label("  ").kind == CategoryKind.OTHER

    def test_custom_requires_label(self):
        """Test that a custom category without a label is rejected."""
        with pytest.raises(ValidationError):
            Category(kind=CategoryKind.CUSTOM)

    def test_known_kind_rejects_label(self):
        """Test that only custom categories carry a label."""
        with pytest.raises(ValidationError):
            Category(kind=CategoryKind.FOOD, custom_label="Snacks")

    def test_transaction_accepts_plain_string(self):
        """Test that transactions accept category strings."""
        tx = Transaction(
            amount=Decimal("10"),
            currency=Currency.CNY,
            type=TransactionType.EXPENSE,
            category="Transport",
            account_id="a",
        )
        assert tx.category.kind == CategoryKind.TRANSPORT

    def test_category_lists(self):
        """Test the expense and income category sets."""
        assert CategoryKind.INSURANCE in EXPENSE_CATEGORIES
        assert CategoryKind.SALARY in INCOME_CATEGORIES
        assert CategoryKind.OTHER in EXPENSE_CATEGORIES
        assert CategoryKind.OTHER in INCOME_CATEGORIES
        assert CategoryKind.CUSTOM not in EXPENSE_CATEGORIES


class TestTransactionModel:
    """Tests for Transaction validation."""

    def _tx(self, **overrides):
        data = dict(
            amount=Decimal("50"),
            currency=Currency.CNY,
            type=TransactionType.EXPENSE,
            account_id="wallet",
        )
        data.update(overrides)
        return Transaction(**data)

    def test_defaults(self):
        """Test default status and category."""
        tx = self._tx()
        assert tx.status == TransactionStatus.COMPLETED
        assert tx.category.kind == CategoryKind.OTHER
        assert tx.id
        assert tx.date.tzinfo is not None

    def test_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValidationError):
            self._tx(amount=Decimal("-1"))

    def test_transfer_requires_destination(self):
        """Test that a transfer needs a destination account."""
        with pytest.raises(ValidationError):
            self._tx(type=TransactionType.TRANSFER)

    def test_transfer_rejects_same_account(self):
        """Test that source and destination must differ."""
        with pytest.raises(ValidationError):
            self._tx(type=TransactionType.TRANSFER, to_account_id="wallet")

    def test_expense_rejects_destination(self):
        """Test that only transfers carry a destination."""
        with pytest.raises(ValidationError):
            self._tx(to_account_id="other")

    def test_amortization_only_for_expenses(self):
        """Test that income cannot be amortized."""
        with pytest.raises(ValidationError):
            self._tx(type=TransactionType.INCOME, is_amortized=True, amortization_months=3)

    def test_amortization_needs_months(self):
        """Test that an amortized expense needs at least one month."""
        with pytest.raises(ValidationError):
            self._tx(is_amortized=True, amortization_months=0)
        assert self._tx(is_amortized=True, amortization_months=6).amortization_months == 6

    def test_tags_are_cleaned(self):
        """Test that tags are stripped and de-duplicated."""
        tx = self._tx(tags=[" food ", "", "food", "lunch"])
        assert tx.tags == ["food", "lunch"]

    def test_naive_datetime_is_utc(self):
        """Test that naive dates are treated as UTC."""
        tx = self._tx(date=datetime(2024, 1, 1, 8, 0))
        assert tx.date == datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)

    def test_effect_variants(self):
        """Test that each type maps to its balance effect."""
        assert isinstance(self._tx().effect, ExpenseEffect)
        assert isinstance(self._tx(type=TransactionType.INCOME).effect, IncomeEffect)

        transfer = self._tx(type=TransactionType.TRANSFER, to_account_id="usd").effect
        assert isinstance(transfer, TransferEffect)
        assert transfer.to_account_id == "usd"
        assert transfer.currency == Currency.CNY

    def test_models_are_frozen(self):
        """Test that transactions cannot be edited in place."""
        tx = self._tx()
        with pytest.raises(ValidationError):
            tx.amount = Decimal("1")


class TestSerialization:
    """Tests for the camelCase wire format."""

    def test_record_uses_camel_case(self):
        """Test that records use camelCase keys."""
        tx = Transaction(
            amount=Decimal("12.50"),
            currency=Currency.USD,
            type=TransactionType.INCOME,
            category="Pet care",
            account_id="usd",
            status=TransactionStatus.PENDING,
        )
        record = tx.to_record()
        assert record["accountId"] == "usd"
        assert record["isAmortized"] is False
        assert record["amount"] == "12.50"
        assert record["category"] == {"kind": "Custom", "customLabel": "Pet care"}

        restored = Transaction.model_validate(record)
        assert restored.to_record() == record
        assert restored.category.label == "Pet care"

    def test_holding_accepts_camel_case(self):
        """Test that AI payloads with dailyChange validate."""
        holding = Holding.model_validate({"name": "Gold ETF", "amount": 10200, "dailyChange": -50})
        assert holding.daily_change == Decimal("-50")

    def test_account_liability_flag(self):
        """Test which account types are liabilities."""
        card = Account(name="Card", type=AccountType.CREDIT, currency=Currency.CNY)
        loan = Account(name="Loan", type=AccountType.LOAN, currency=Currency.CNY)
        fund = Account(name="Fund", type=AccountType.INVESTMENT, currency=Currency.CNY)
        assert card.is_liability and loan.is_liability
        assert not fund.is_liability

    def test_ledger_state_lookups(self, state):
        """Test lookup helpers on LedgerState."""
        assert state.get_account("usd").currency == Currency.USD
        assert state.get_account("missing") is None
        assert state.get_transaction("missing") is None
        assert state.get_rule("missing") is None


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            description="Account created",
        )
        assert event.event_id is not None
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEventBuilder.transaction_created(
            transaction_id="tx1",
            transaction_type="EXPENSE",
            amount="50",
            currency="CNY",
            status="COMPLETED",
            user_id="jane",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "transaction_created"
        assert log_dict["entity_id"] == "tx1"
        assert log_dict["user_id"] == "jane"
        assert log_dict["details"]["amount"] == "50"
        assert log_dict["is_user_action"] is True

    def test_receive_ignored_is_warning(self):
        """Test that ignored receives are warnings."""
        event = AuditEventBuilder.receive_ignored("tx1", "transaction is COMPLETED")
        assert event.severity == AuditSeverity.WARNING
        assert event.details["reason"] == "transaction is COMPLETED"

    def test_advice_generated_severity(self):
        """Test severity of failed advice generation."""
        assert AuditEventBuilder.advice_generated(True).severity == AuditSeverity.INFO
        assert AuditEventBuilder.advice_generated(False).severity == AuditSeverity.WARNING

    def test_save_failed_is_error(self):
        """Test save failure events."""
        event = AuditEventBuilder.save_failed("jane", "disk full")
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "disk full"
