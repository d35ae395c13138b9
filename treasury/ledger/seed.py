"""Starter accounts shown to a user on first login."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from treasury.models.finance import (
    Account,
    AccountType,
    Currency,
    Holding,
    as_utc,
    utc_now,
)


def default_accounts(now: Optional[datetime] = None) -> list[Account]:
    now = as_utc(now) if now is not None else utc_now()
    return [
        Account(
            id="1",
            name="Wallet",
            type=AccountType.SAVINGS,
            currency=Currency.CNY,
            balance=Decimal("500"),
            color="#10B981",
        ),
        Account(
            id="2",
            name="Alipay Fund",
            type=AccountType.INVESTMENT,
            currency=Currency.CNY,
            balance=Decimal("15200"),
            color="#3B82F6",
            last_check_in=now,
            holdings=[
                Holding(name="China CSI 300", amount=Decimal("5000"), daily_change=Decimal("120")),
                Holding(name="Gold ETF", amount=Decimal("10200"), daily_change=Decimal("-50")),
            ],
        ),
        Account(
            id="3",
            name="Huabei",
            type=AccountType.CREDIT,
            currency=Currency.CNY,
            balance=Decimal("-1200"),
            color="#F59E0B",
        ),
        Account(
            id="4",
            name="Chase Checking",
            type=AccountType.SAVINGS,
            currency=Currency.USD,
            balance=Decimal("2000"),
            color="#3B82F6",
        ),
    ]
