from expense_tracker.reports.generator import (
    ReportGenerator,
    build_monthly_report,
    with_recomputed_spent,
)

__all__ = [
    "ReportGenerator",
    "build_monthly_report",
    "with_recomputed_spent",
]
