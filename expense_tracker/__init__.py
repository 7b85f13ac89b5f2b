"""
Expense Tracker - Source Package

A personal expense tracker: income and expense transactions, categories,
monthly budgets and the summaries built from them.

DESIGN PRINCIPLES:
1. Aggregation is pure - it only ever sees an already-fetched snapshot
2. Derived totals are recomputed from transactions, never trusted blindly
3. Dates are normalized once, at the storage boundary
4. Every write is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
