"""Aggregation engine package."""

from expense_tracker.aggregation.engine import (
    CRITICAL_THRESHOLD,
    WARN_THRESHOLD,
    InvalidAmountError,
    balance,
    budget_overview,
    budget_progress,
    category_breakdown,
    day_key,
    filter_by_kind,
    filter_by_period,
    group_by_day,
    is_over_budget,
    month_bounds,
    over_by,
    progress,
    progress_severity,
    spent_for_budget,
    totals_by_kind,
)

__all__ = [
    "CRITICAL_THRESHOLD",
    "WARN_THRESHOLD",
    "InvalidAmountError",
    "balance",
    "budget_overview",
    "budget_progress",
    "category_breakdown",
    "day_key",
    "filter_by_kind",
    "filter_by_period",
    "group_by_day",
    "is_over_budget",
    "month_bounds",
    "over_by",
    "progress",
    "progress_severity",
    "spent_for_budget",
    "totals_by_kind",
]
