"""Shared builders for the test suite."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from expense_tracker.models.records import Budget, Transaction, TransactionKind


OWNER = "user-1"
OTHER_OWNER = "user-2"


def make_transaction(
    kind: str = "expense",
    amount: str = "10",
    category: str = "Food",
    when: datetime = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc),
    owner_id: str = OWNER,
    title: str = "Test",
) -> Transaction:
    return Transaction(
        owner_id=owner_id,
        kind=TransactionKind(kind),
        amount=Decimal(amount),
        title=title,
        category=category,
        occurred_at=when,
    )


def make_budget(
    amount: str = "100",
    spent: str = "0",
    category: str = "Food",
    start: date = date(2024, 3, 1),
    end: date = date(2024, 3, 31),
    owner_id: str = OWNER,
    is_active: bool = True,
) -> Budget:
    return Budget(
        owner_id=owner_id,
        category=category,
        amount=Decimal(amount),
        spent=Decimal(spent),
        start_date=start,
        end_date=end,
        is_active=is_active,
    )


@pytest.fixture
def utc():
    return timezone.utc
