"""
Report Models for Expense Tracker

Result shapes produced by the aggregation engine and the report generator.
These are plain value objects: they are computed, never stored.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from expense_tracker.models.records import Transaction, utc_now


class ProgressSeverity(str, Enum):
    """
    How close a budget is to its limit.

    Thresholds are inclusive of the higher tier: 90% is CRITICAL,
    70% is WARN, anything below 70% is OK.
    """
    OK = "ok"
    WARN = "warn"
    CRITICAL = "critical"


class KindTotals(BaseModel):
    """Summed amounts per transaction kind."""

    income: Decimal = Field(default=Decimal("0"), ge=0)
    expense: Decimal = Field(default=Decimal("0"), ge=0)


class CategorySummary(BaseModel):
    """One row of a category breakdown."""

    category: str
    amount: Decimal
    percentage: float = Field(
        ...,
        ge=0.0,
        le=100.0,
        description="Share of the total for this kind (0-100)"
    )


class BudgetComparison(BaseModel):
    """Allocated vs spent for one budget in a monthly report."""

    category: str
    amount: Decimal
    spent: Decimal
    percentage: float = Field(
        ...,
        ge=0.0,
        le=100.0,
        description="Clamped spent/amount progress (0-100)"
    )


class BudgetProgress(BaseModel):
    """
    Everything the budget screens need about one budget.

    `percentage` is clamped at 100, so `is_over_budget` and `over_by` are
    needed to tell "at the cap" from "past the cap".
    """

    budget_id: UUID
    category: str
    amount: Decimal
    spent: Decimal
    remaining: Decimal
    percentage: float = Field(..., ge=0.0, le=100.0)
    is_over_budget: bool
    over_by: Decimal
    severity: ProgressSeverity


class BudgetOverview(BaseModel):
    """Totals across all of an owner's budgets."""

    total_allocated: Decimal = Decimal("0")
    total_spent: Decimal = Decimal("0")
    remaining: Decimal = Decimal("0")


class MonthlyReport(BaseModel):
    """
    Monthly income/expense report for one owner.

    With no transactions or budgets in the period every number is zero and
    both lists are empty - that is a valid report, not an error.
    """

    owner_id: str
    year: int
    month: int = Field(..., ge=1, le=12)
    period_start: date
    period_end: date

    total_income: Decimal = Decimal("0")
    total_expenses: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")

    expenses_by_category: list[CategorySummary] = Field(default_factory=list)
    budget_comparison: list[BudgetComparison] = Field(default_factory=list)

    generated_at: datetime = Field(default_factory=utc_now)


class DashboardSummary(BaseModel):
    """Home screen summary: all-time totals, recent activity, budgets."""

    owner_id: str
    total_income: Decimal = Decimal("0")
    total_expenses: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")
    recent_transactions: list[Transaction] = Field(default_factory=list)
    budgets: list[BudgetProgress] = Field(default_factory=list)
    overview: BudgetOverview = Field(default_factory=BudgetOverview)
    generated_at: datetime = Field(default_factory=utc_now)
