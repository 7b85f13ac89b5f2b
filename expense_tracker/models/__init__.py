"""
Data Models Package

This package contains all Pydantic models used in the Expense Tracker.
All data flowing through the system must conform to these schemas.
"""

from expense_tracker.models.records import (
    DEFAULT_CATEGORIES,
    KIND_ALL,
    Budget,
    BudgetPeriod,
    Category,
    Transaction,
    TransactionKind,
    UserProfile,
    default_categories_for,
    normalize_date,
    normalize_datetime,
    utc_now,
)
from expense_tracker.models.reports import (
    BudgetComparison,
    BudgetOverview,
    BudgetProgress,
    CategorySummary,
    DashboardSummary,
    KindTotals,
    MonthlyReport,
    ProgressSeverity,
)
from expense_tracker.models.validation import (
    TransactionInput,
    ValidationIssue,
    ValidationResult,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "DEFAULT_CATEGORIES",
    "KIND_ALL",
    "Budget",
    "BudgetPeriod",
    "Category",
    "Transaction",
    "TransactionKind",
    "UserProfile",
    "default_categories_for",
    "normalize_date",
    "normalize_datetime",
    "utc_now",
    # Report models
    "BudgetComparison",
    "BudgetOverview",
    "BudgetProgress",
    "CategorySummary",
    "DashboardSummary",
    "KindTotals",
    "MonthlyReport",
    "ProgressSeverity",
    # Validation models
    "TransactionInput",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
