"""
Aggregation Engine

DESIGN DECISION: Aggregation is PURE.
Every function here works on an in-memory snapshot of records that the
caller already fetched. Nothing reads from or writes to storage, so these
functions cannot fail because of I/O and give the same answer every time.

Amounts must already be validated. If a non-finite or negative amount still
reaches this module, we fail fast with InvalidAmountError instead of
returning a wrong total.

Percentages never divide by zero: a zero denominator yields 0.
"""

import calendar
from collections.abc import Iterable, Sequence
from datetime import date, datetime, tzinfo
from decimal import Decimal
from typing import Optional, Union

from expense_tracker.models.records import (
    KIND_ALL,
    Budget,
    Transaction,
    TransactionKind,
)
from expense_tracker.models.reports import (
    BudgetOverview,
    BudgetProgress,
    CategorySummary,
    KindTotals,
    ProgressSeverity,
)


# Severity thresholds, in percent; each is inclusive of its tier
WARN_THRESHOLD = 70.0
CRITICAL_THRESHOLD = 90.0

ZERO = Decimal("0")
HUNDRED = Decimal("100")

Number = Union[Decimal, int, float]


class InvalidAmountError(ValueError):
    """An amount that should have been rejected by input validation."""

    def __init__(self, field: str, value: object, record_id: Optional[object] = None):
        self.field = field
        self.value = value
        self.record_id = record_id
        where = f" on record {record_id}" if record_id is not None else ""
        super().__init__(
            f"Invalid {field}{where}: {value!r} (must be a finite, non-negative number)"
        )


def _to_decimal(value: Number, field: str, record_id: Optional[object] = None) -> Decimal:
    if isinstance(value, bool):
        raise InvalidAmountError(field, value, record_id)
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    else:
        raise InvalidAmountError(field, value, record_id)
    if not amount.is_finite() or amount < 0:
        raise InvalidAmountError(field, value, record_id)
    return amount


def _amount_of(transaction: Transaction) -> Decimal:
    return _to_decimal(transaction.amount, "amount", transaction.id)


def _coerce_kind(kind: Union[TransactionKind, str]) -> TransactionKind:
    try:
        return TransactionKind(kind)
    except ValueError:
        raise ValueError(f"Unknown transaction kind: {kind!r}")


# =============================================================================
# TOTALS
# =============================================================================

def totals_by_kind(transactions: Iterable[Transaction]) -> KindTotals:
    """Sum amounts per kind. An empty input gives zero for both."""
    income = ZERO
    expense = ZERO
    for tx in transactions:
        amount = _amount_of(tx)
        if tx.kind == TransactionKind.INCOME:
            income += amount
        else:
            expense += amount
    return KindTotals(income=income, expense=expense)


def balance(totals: KindTotals) -> Decimal:
    """Income minus expense. May be negative."""
    return totals.income - totals.expense


def filter_by_kind(
    transactions: Iterable[Transaction],
    kind: Union[TransactionKind, str],
) -> list[Transaction]:
    """Keep only one kind; "all" keeps everything, in order."""
    if kind == KIND_ALL:
        return list(transactions)
    wanted = _coerce_kind(kind)
    return [tx for tx in transactions if tx.kind == wanted]


# =============================================================================
# DATES
# =============================================================================

def day_key(moment: datetime, tz: Optional[tzinfo] = None) -> date:
    """
    Calendar day of a moment, in local time.

    `tz` overrides the system local timezone. Naive datetimes are taken
    as already local.
    """
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(tz).date()


def group_by_day(
    transactions: Iterable[Transaction],
    tz: Optional[tzinfo] = None,
) -> dict[date, list[Transaction]]:
    """
    Group transactions by local calendar day, most recent day first.

    Within a day the input order is kept.
    """
    groups: dict[date, list[Transaction]] = {}
    for tx in transactions:
        groups.setdefault(day_key(tx.occurred_at, tz), []).append(tx)
    return {day: groups[day] for day in sorted(groups, reverse=True)}


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last calendar day of a month."""
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def filter_by_period(
    transactions: Iterable[Transaction],
    start: date,
    end: date,
    tz: Optional[tzinfo] = None,
) -> list[Transaction]:
    """Transactions whose local day falls in [start, end], both inclusive."""
    return [
        tx for tx in transactions
        if start <= day_key(tx.occurred_at, tz) <= end
    ]


# =============================================================================
# CATEGORIES
# =============================================================================

def _percentage(part: Decimal, whole: Decimal) -> float:
    if whole <= 0:
        return 0.0
    return min(float(part / whole * HUNDRED), 100.0)


def category_breakdown(
    transactions: Iterable[Transaction],
    kind: Union[TransactionKind, str],
) -> list[CategorySummary]:
    """
    Total per category for one kind, largest first.

    Percentages are shares of the total of that kind, so they add up to
    100 whenever there is anything to break down. Equal amounts keep the
    order in which their category first appeared.
    """
    wanted = _coerce_kind(kind)
    sums: dict[str, Decimal] = {}
    for tx in transactions:
        if tx.kind != wanted:
            continue
        sums[tx.category] = sums.get(tx.category, ZERO) + _amount_of(tx)

    total = sum(sums.values(), ZERO)
    ordered = sorted(sums.items(), key=lambda item: item[1], reverse=True)
    return [
        CategorySummary(
            category=category,
            amount=amount,
            percentage=_percentage(amount, total),
        )
        for category, amount in ordered
    ]


# =============================================================================
# BUDGETS
# =============================================================================

def progress(spent: Number, allocated: Number) -> float:
    """
    Spent as a percentage of allocated, clamped to [0, 100].

    An allocation of zero has no meaningful progress and yields 0.
    """
    spent_d = _to_decimal(spent, "spent")
    allocated_d = _to_decimal(allocated, "allocated")
    return _percentage(spent_d, allocated_d)


def is_over_budget(spent: Number, allocated: Number) -> bool:
    return _to_decimal(spent, "spent") > _to_decimal(allocated, "allocated")


def over_by(spent: Number, allocated: Number) -> Decimal:
    """How far past the allocation spending went; never negative."""
    return max(_to_decimal(spent, "spent") - _to_decimal(allocated, "allocated"), ZERO)


def progress_severity(percentage: float) -> ProgressSeverity:
    if percentage >= CRITICAL_THRESHOLD:
        return ProgressSeverity.CRITICAL
    if percentage >= WARN_THRESHOLD:
        return ProgressSeverity.WARN
    return ProgressSeverity.OK


def budget_progress(budget: Budget) -> BudgetProgress:
    """Progress of one budget from its current spent value."""
    spent = _to_decimal(budget.spent, "spent", budget.id)
    allocated = _to_decimal(budget.amount, "amount", budget.id)
    percentage = progress(spent, allocated)
    return BudgetProgress(
        budget_id=budget.id,
        category=budget.category,
        amount=allocated,
        spent=spent,
        remaining=max(allocated - spent, ZERO),
        percentage=percentage,
        is_over_budget=is_over_budget(spent, allocated),
        over_by=over_by(spent, allocated),
        severity=progress_severity(percentage),
    )


def budget_overview(budgets: Sequence[Budget]) -> BudgetOverview:
    """Allocated, spent and remaining across all budgets."""
    total_allocated = sum(
        (_to_decimal(b.amount, "amount", b.id) for b in budgets), ZERO
    )
    total_spent = sum(
        (_to_decimal(b.spent, "spent", b.id) for b in budgets), ZERO
    )
    return BudgetOverview(
        total_allocated=total_allocated,
        total_spent=total_spent,
        remaining=total_allocated - total_spent,
    )


def spent_for_budget(
    budget: Budget,
    transactions: Iterable[Transaction],
    tz: Optional[tzinfo] = None,
) -> Decimal:
    """
    Recompute a budget's spent total from transactions.

    Counts the owner's expenses in the budget's category whose local day
    is inside the budget period. This is the source of truth; the stored
    `Budget.spent` is only a cache of it.
    """
    total = ZERO
    for tx in transactions:
        if (
            tx.owner_id == budget.owner_id
            and tx.kind == TransactionKind.EXPENSE
            and tx.category == budget.category
            and budget.covers(day_key(tx.occurred_at, tz))
        ):
            total += _amount_of(tx)
    return total
