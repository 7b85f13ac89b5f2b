"""
Tests for the aggregation engine.

Everything here is pure: transactions and budgets in, numbers out.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from expense_tracker.aggregation import (
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
from expense_tracker.models.reports import ProgressSeverity

from conftest import OTHER_OWNER, make_budget, make_transaction


class TestTotals:
    """Tests for totals_by_kind and balance."""

    def test_scenario_food_and_salary(self):
        """Two food expenses and a salary."""
        transactions = [
            make_transaction("expense", "20", "Food"),
            make_transaction("expense", "30", "Food"),
            make_transaction("income", "100", "Salary"),
        ]
        totals = totals_by_kind(transactions)

        assert totals.income == Decimal("100")
        assert totals.expense == Decimal("50")
        assert balance(totals) == Decimal("50")

        breakdown = category_breakdown(transactions, "expense")
        assert len(breakdown) == 1
        assert breakdown[0].category == "Food"
        assert breakdown[0].amount == Decimal("50")
        assert breakdown[0].percentage == pytest.approx(100.0)

    def test_empty_sequence(self):
        """No transactions means zero totals and no breakdown."""
        totals = totals_by_kind([])
        assert totals.income == Decimal("0")
        assert totals.expense == Decimal("0")
        assert category_breakdown([], "expense") == []
        assert category_breakdown([], "income") == []

    def test_additivity(self):
        """Totals of a concatenation equal the sum of the parts."""
        first = [
            make_transaction("expense", "12.50", "Food"),
            make_transaction("income", "1000", "Salary"),
        ]
        second = [
            make_transaction("expense", "7.25", "Transport"),
            make_transaction("expense", "0.25", "Food"),
            make_transaction("income", "40", "Freelance"),
        ]
        a = totals_by_kind(first)
        b = totals_by_kind(second)
        both = totals_by_kind(first + second)

        assert both.income == a.income + b.income
        assert both.expense == a.expense + b.expense

    def test_balance_is_income_minus_expense(self):
        """Balance may go negative."""
        transactions = [
            make_transaction("expense", "300", "Shopping"),
            make_transaction("income", "120", "Salary"),
        ]
        totals = totals_by_kind(transactions)
        assert balance(totals) == totals.income - totals.expense
        assert balance(totals) == Decimal("-180")

    def test_decimal_amounts_add_exactly(self):
        """0.1 + 0.2 is exactly 0.3 with money amounts."""
        transactions = [
            make_transaction("expense", "0.1"),
            make_transaction("expense", "0.2"),
        ]
        assert totals_by_kind(transactions).expense == Decimal("0.3")


class TestFilterByKind:
    """Tests for filter_by_kind."""

    def test_all_keeps_everything_in_order(self):
        transactions = [
            make_transaction("income", "5", "Salary"),
            make_transaction("expense", "3"),
        ]
        assert filter_by_kind(transactions, "all") == transactions

    def test_single_kind(self):
        transactions = [
            make_transaction("income", "5", "Salary"),
            make_transaction("expense", "3"),
        ]
        result = filter_by_kind(transactions, "income")
        assert [t.category for t in result] == ["Salary"]

    def test_unknown_kind_raises(self):
        """An unknown kind is a caller mistake, not an empty result."""
        with pytest.raises(ValueError):
            filter_by_kind([], "transfer")


class TestDates:
    """Tests for day grouping and period filtering."""

    def test_day_key_uses_given_timezone(self):
        """23:30 UTC is already the next day five hours east."""
        moment = datetime(2024, 3, 15, 23, 30, tzinfo=timezone.utc)
        plus_five = timezone(timedelta(hours=5))

        assert day_key(moment, timezone.utc) == date(2024, 3, 15)
        assert day_key(moment, plus_five) == date(2024, 3, 16)

    def test_group_by_day_newest_first(self, utc):
        """Days come back most recent first; within a day input order is kept."""
        early = make_transaction(when=datetime(2024, 3, 1, 9, tzinfo=utc), title="a")
        evening = make_transaction(when=datetime(2024, 3, 5, 18, tzinfo=utc), title="evening")
        morning = make_transaction(when=datetime(2024, 3, 5, 9, tzinfo=utc), title="morning")

        groups = group_by_day([evening, early, morning], utc)

        assert list(groups) == [date(2024, 3, 5), date(2024, 3, 1)]
        assert [t.title for t in groups[date(2024, 3, 5)]] == ["evening", "morning"]

    def test_month_bounds(self):
        assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
        assert month_bounds(2023, 12) == (date(2023, 12, 1), date(2023, 12, 31))

    @pytest.mark.parametrize("month", [0, 13])
    def test_month_bounds_rejects_bad_month(self, month):
        with pytest.raises(ValueError):
            month_bounds(2024, month)

    def test_filter_by_period_is_inclusive(self, utc):
        """First and last day of the period both count."""
        inside_start = make_transaction(when=datetime(2024, 3, 1, 0, 0, tzinfo=utc))
        inside_end = make_transaction(when=datetime(2024, 3, 31, 23, 59, tzinfo=utc))
        outside = make_transaction(when=datetime(2024, 4, 1, 0, 0, tzinfo=utc))

        result = filter_by_period(
            [inside_start, inside_end, outside], date(2024, 3, 1), date(2024, 3, 31), utc
        )
        assert result == [inside_start, inside_end]


class TestCategoryBreakdown:
    """Tests for category_breakdown."""

    def test_sorted_by_amount_descending(self):
        transactions = [
            make_transaction("expense", "10", "Transport"),
            make_transaction("expense", "60", "Food"),
            make_transaction("expense", "30", "Utilities"),
        ]
        result = category_breakdown(transactions, "expense")
        assert [s.category for s in result] == ["Food", "Utilities", "Transport"]

    def test_percentages_sum_to_100(self):
        transactions = [
            make_transaction("expense", "1", "Food"),
            make_transaction("expense", "1", "Transport"),
            make_transaction("expense", "1", "Utilities"),
        ]
        result = category_breakdown(transactions, "expense")
        assert sum(s.percentage for s in result) == pytest.approx(100.0)

    def test_ties_keep_first_appearance(self):
        transactions = [
            make_transaction("expense", "5", "Transport"),
            make_transaction("expense", "5", "Food"),
        ]
        result = category_breakdown(transactions, "expense")
        assert [s.category for s in result] == ["Transport", "Food"]

    def test_other_kind_ignored(self):
        transactions = [
            make_transaction("income", "500", "Salary"),
            make_transaction("expense", "5", "Food"),
        ]
        result = category_breakdown(transactions, "expense")
        assert [s.category for s in result] == ["Food"]


class TestProgress:
    """Tests for budget progress math."""

    def test_scenario_overspent_budget(self):
        """Budget of 100 with 120 spent."""
        budget = make_budget(amount="100", spent="120")

        assert progress(budget.spent, budget.amount) == 100.0
        assert is_over_budget(budget.spent, budget.amount) is True
        assert over_by(budget.spent, budget.amount) == Decimal("20")
        assert progress_severity(100.0) == ProgressSeverity.CRITICAL

        summary = budget_progress(budget)
        assert summary.is_over_budget is True
        assert summary.remaining == Decimal("0")
        assert summary.severity == ProgressSeverity.CRITICAL

    def test_zero_allocation_is_zero_progress(self):
        assert progress(50, 0) == 0.0

    @pytest.mark.parametrize("spent,allocated", [
        (0, 100),
        (50, 100),
        (100, 100),
        (1000, 1),
        (Decimal("0.01"), Decimal("1000000")),
    ])
    def test_progress_in_range(self, spent, allocated):
        assert 0.0 <= progress(spent, allocated) <= 100.0

    @pytest.mark.parametrize("percentage,expected", [
        (69.99, ProgressSeverity.OK),
        (70.0, ProgressSeverity.WARN),
        (89.99, ProgressSeverity.WARN),
        (90.0, ProgressSeverity.CRITICAL),
    ])
    def test_severity_boundaries(self, percentage, expected):
        """The higher tier starts exactly at its threshold."""
        assert progress_severity(percentage) == expected

    def test_not_over_budget_at_exact_limit(self):
        assert is_over_budget(100, 100) is False
        assert over_by(100, 100) == Decimal("0")

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), -1, "12", True])
    def test_invalid_amounts_rejected(self, bad):
        with pytest.raises(InvalidAmountError):
            progress(bad, 100)

    def test_invalid_amount_names_the_field(self):
        with pytest.raises(InvalidAmountError) as exc_info:
            progress(10, float("nan"))
        assert exc_info.value.field == "allocated"


class TestBudgetAggregates:
    """Tests for overview and spent recomputation."""

    def test_overview(self):
        budgets = [
            make_budget(amount="100", spent="40"),
            make_budget(amount="50", spent="70", category="Transport"),
        ]
        overview = budget_overview(budgets)
        assert overview.total_allocated == Decimal("150")
        assert overview.total_spent == Decimal("110")
        assert overview.remaining == Decimal("40")

    def test_overview_of_nothing(self):
        overview = budget_overview([])
        assert overview.total_allocated == Decimal("0")
        assert overview.remaining == Decimal("0")

    def test_spent_for_budget_counts_matching_expenses_only(self, utc):
        budget = make_budget(category="Food")
        transactions = [
            make_transaction("expense", "20", "Food"),
            make_transaction("expense", "5", "Food"),
            make_transaction("income", "500", "Food"),
            make_transaction("expense", "7", "Transport"),
            make_transaction("expense", "9", "Food", owner_id=OTHER_OWNER),
            make_transaction("expense", "11", "Food", when=datetime(2024, 4, 1, 12, tzinfo=utc)),
        ]
        assert spent_for_budget(budget, transactions, utc) == Decimal("25")
