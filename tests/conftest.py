"""Shared fixtures for the Little Treasury tests."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from treasury.models import (
    Account,
    AccountType,
    Currency,
    LedgerState,
    User,
)


@pytest.fixture
def now():
    return datetime(2024, 5, 15, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def wallet():
    return Account(
        id="wallet",
        name="Wallet",
        type=AccountType.SAVINGS,
        currency=Currency.CNY,
        balance=Decimal("200"),
    )


@pytest.fixture
def usd_checking():
    return Account(
        id="usd",
        name="Chase Checking",
        type=AccountType.SAVINGS,
        currency=Currency.USD,
        balance=Decimal("100"),
    )


@pytest.fixture
def credit_card():
    return Account(
        id="card",
        name="Huabei",
        type=AccountType.CREDIT,
        currency=Currency.CNY,
        balance=Decimal("-1200"),
    )


@pytest.fixture
def state(wallet, usd_checking, credit_card):
    return LedgerState(accounts=[wallet, usd_checking, credit_card])


@pytest.fixture
def user():
    return User(id="jane_example_com", username="jane", email="jane@example.com")
