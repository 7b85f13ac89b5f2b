"""
Report Generator

Composes aggregation results into the monthly report and the dashboard
summary.

DESIGN DECISION: Report building is split in two.
- build_monthly_report() is PURE: records in, report out. It trusts the
  spent values on the budgets it is given.
- ReportGenerator fetches the records, recomputes every budget's spent
  total from the transactions (recompute-on-read), and then calls the pure
  builder. A stale cached total therefore never reaches a report.

budget_comparison keeps budget fetch order; expenses_by_category is
largest first.
"""

from collections.abc import Sequence
from datetime import tzinfo
from typing import Optional
from uuid import UUID

from expense_tracker.aggregation import (
    balance,
    budget_overview,
    budget_progress,
    category_breakdown,
    filter_by_period,
    month_bounds,
    progress,
    spent_for_budget,
    totals_by_kind,
)
from expense_tracker.audit import AuditLogger, create_correlation_id
from expense_tracker.config import get_settings, resolve_timezone
from expense_tracker.models.records import Budget, Transaction, TransactionKind
from expense_tracker.models.reports import (
    BudgetComparison,
    DashboardSummary,
    MonthlyReport,
)
from expense_tracker.services.storage import (
    BudgetStorageInterface,
    TransactionStorageInterface,
)


def build_monthly_report(
    owner_id: str,
    year: int,
    month: int,
    transactions: Sequence[Transaction],
    budgets: Sequence[Budget],
    tz: Optional[tzinfo] = None,
) -> MonthlyReport:
    """
    Build one owner's report for one calendar month.

    Transactions outside the month (local time, first through last day
    inclusive) or belonging to someone else are ignored, as are budgets
    that are inactive or don't overlap the month.
    """
    period_start, period_end = month_bounds(year, month)

    owned = [tx for tx in transactions if tx.owner_id == owner_id]
    in_month = filter_by_period(owned, period_start, period_end, tz)
    totals = totals_by_kind(in_month)

    active = [
        b for b in budgets
        if b.owner_id == owner_id
        and b.is_active
        and b.overlaps(period_start, period_end)
    ]

    return MonthlyReport(
        owner_id=owner_id,
        year=year,
        month=month,
        period_start=period_start,
        period_end=period_end,
        total_income=totals.income,
        total_expenses=totals.expense,
        balance=balance(totals),
        expenses_by_category=category_breakdown(in_month, TransactionKind.EXPENSE),
        budget_comparison=[
            BudgetComparison(
                category=b.category,
                amount=b.amount,
                spent=b.spent,
                percentage=progress(b.spent, b.amount),
            )
            for b in active
        ],
    )


def with_recomputed_spent(
    budgets: Sequence[Budget],
    transactions: Sequence[Transaction],
    tz: Optional[tzinfo] = None,
) -> list[Budget]:
    """Copies of the budgets with spent recomputed from the transactions."""
    return [
        b.model_copy(update={"spent": spent_for_budget(b, transactions, tz)})
        for b in budgets
    ]


class ReportGenerator:
    """
    Storage-backed report generation.

    Reads only; never writes budget totals back. Correcting stored totals
    is the budget flow's job.
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        budget_storage: BudgetStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        tz: Optional[tzinfo] = None,
    ):
        self._transactions = transaction_storage
        self._budgets = budget_storage
        self._audit_logger = audit_logger
        self._settings = get_settings().app
        self._tz = tz if tz is not None else resolve_timezone(self._settings.local_timezone)

    async def generate_monthly_report(
        self,
        owner_id: str,
        year: int,
        month: int,
        correlation_id: Optional[UUID] = None,
    ) -> MonthlyReport:
        """
        Generate the monthly report for an owner.

        Raises:
            ValueError: If month is not 1-12
            StorageError: If the records can't be fetched
        """
        correlation_id = correlation_id or create_correlation_id()
        month_bounds(year, month)  # fail before any I/O on a bad month

        transactions = await self._transactions.list_transactions(owner_id)
        budgets = await self._budgets.list_budgets(owner_id)
        budgets = with_recomputed_spent(budgets, transactions, self._tz)

        report = build_monthly_report(
            owner_id, year, month, transactions, budgets, self._tz
        )

        if self._audit_logger:
            await self._audit_logger.log_report_generated(
                owner_id=owner_id,
                report_type="monthly",
                period=f"{year:04d}-{month:02d}",
                transaction_count=len(transactions),
                correlation_id=correlation_id,
            )

        return report

    async def generate_dashboard(
        self,
        owner_id: str,
        recent_limit: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> DashboardSummary:
        """
        Home screen summary.

        Totals and balance are all-time; budgets are the active ones with
        recomputed progress.
        """
        correlation_id = correlation_id or create_correlation_id()
        limit = recent_limit or self._settings.recent_transactions_limit

        transactions = await self._transactions.list_transactions(owner_id)
        budgets = await self._budgets.list_budgets(owner_id, active_only=True)
        budgets = with_recomputed_spent(budgets, transactions, self._tz)

        totals = totals_by_kind(transactions)
        summary = DashboardSummary(
            owner_id=owner_id,
            total_income=totals.income,
            total_expenses=totals.expense,
            balance=balance(totals),
            recent_transactions=transactions[:limit],
            budgets=[budget_progress(b) for b in budgets],
            overview=budget_overview(budgets),
        )

        if self._audit_logger:
            await self._audit_logger.log_report_generated(
                owner_id=owner_id,
                report_type="dashboard",
                period="all-time",
                transaction_count=len(transactions),
                correlation_id=correlation_id,
            )

        return summary
