"""Input validation package."""

from expense_tracker.validation.validator import RecordValidator, parse_amount

__all__ = ["RecordValidator", "parse_amount"]
