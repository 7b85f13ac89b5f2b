"""
Two-Stage Validation Pipeline

DESIGN DECISION: Form input is validated in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required fields present (amount, title, category)
- Amount parses as a finite number greater than zero
- Kind is income or expense

STAGE 2 - SEMANTIC VALIDATION:
- Implausibly large amounts
- Dates in the future
- Categories the user doesn't have
These are warnings: the user may still save.

This is the gate that keeps malformed amounts out of the aggregation
engine, which assumes every amount it sees is already valid.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for the user to correct.
"""

from collections.abc import Iterable
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import uuid4

from expense_tracker.config import get_settings
from expense_tracker.models.records import (
    Category,
    Transaction,
    TransactionKind,
    utc_now,
)
from expense_tracker.models.validation import (
    TransactionInput,
    ValidationIssue,
    ValidationResult,
)


def parse_amount(raw: str) -> Optional[Decimal]:
    """
    Parse a typed amount, or None if it isn't a finite number.

    Thousands separators are accepted ("1,250.50"); anything else that
    Decimal rejects is not.
    """
    text = (raw or "").strip().replace(",", "")
    if not text:
        return None
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


class RecordValidator:
    """
    Validates transaction and budget input through a two-stage pipeline.

    Stage 2 only runs when stage 1 passes.
    """

    def __init__(self):
        self._settings = get_settings().app

    def _validate_schema(
        self,
        form: TransactionInput,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if not form.amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
                severity="error",
                suggested_fix="Enter how much money came in or went out",
            ))
        else:
            amount = parse_amount(form.amount)
            if amount is None:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="invalid_format",
                    message=f"Amount '{form.amount}' is not a number",
                    severity="error",
                    suggested_fix="Use digits only, e.g. 12.50",
                ))
            elif amount <= 0:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message="Amount must be greater than zero",
                    severity="error",
                    suggested_fix="Pick income or expense instead of typing a negative amount",
                ))

        if not form.title:
            issues.append(ValidationIssue(
                field="title",
                issue_type="missing",
                message="Title is required",
                severity="error",
            ))
        elif len(form.title) > 100:
            issues.append(ValidationIssue(
                field="title",
                issue_type="too_long",
                message="Title must be at most 100 characters",
                severity="error",
            ))

        if not form.category:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category is required",
                severity="error",
                suggested_fix="Pick one of your categories",
            ))
        elif len(form.category) > 50:
            issues.append(ValidationIssue(
                field="category",
                issue_type="too_long",
                message="Category must be at most 50 characters",
                severity="error",
            ))

        if form.kind not in {k.value for k in TransactionKind}:
            issues.append(ValidationIssue(
                field="kind",
                issue_type="invalid_value",
                message=f"Unknown transaction type '{form.kind}'",
                severity="error",
                suggested_fix="Choose income or expense",
            ))

        if form.note and len(form.note) > 500:
            issues.append(ValidationIssue(
                field="note",
                issue_type="too_long",
                message="Note must be at most 500 characters",
                severity="error",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        form: TransactionInput,
        known_categories: Optional[Iterable[Category]],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        amount = parse_amount(form.amount)

        max_amount = Decimal(str(self._settings.max_transaction_amount))
        if amount is not None and amount > max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({amount:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        if form.occurred_at is not None:
            tolerance = timedelta(days=self._settings.future_date_tolerance_days)
            occurred = form.occurred_at if form.occurred_at.tzinfo else form.occurred_at.astimezone()
            if occurred > utc_now() + tolerance:
                issues.append(ValidationIssue(
                    field="occurred_at",
                    issue_type="future_date",
                    message=f"Date ({occurred.date()}) is in the future",
                    severity="warning",
                    suggested_fix="Please verify the date is correct",
                ))

        if known_categories is not None:
            names = {
                c.name.lower() for c in known_categories
                if c.kind.value == form.kind
            }
            if form.category.lower() not in names:
                issues.append(ValidationIssue(
                    field="category",
                    issue_type="unknown_category",
                    message=f"'{form.category}' is not one of your {form.kind} categories",
                    severity="warning",
                    suggested_fix="Add the category first or pick an existing one",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate_transaction(
        self,
        form: TransactionInput,
        known_categories: Optional[Iterable[Category]] = None,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            form: The submitted form values
            known_categories: The owner's categories; None skips the check

        Returns:
            ValidationResult with all issues found
        """
        all_issues = []

        schema_valid, schema_issues = self._validate_schema(form)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(
                form, known_categories
            )
            all_issues.extend(semantic_issues)

        warnings = [i.message for i in all_issues if i.severity == "warning"]

        return ValidationResult(
            input_id=form.input_id,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )

    def build_transaction(self, form: TransactionInput, owner_id: str) -> Transaction:
        """
        Turn a form that passed schema validation into a Transaction.

        Raises:
            ValueError: If the form has schema errors
        """
        schema_valid, issues = self._validate_schema(form)
        if not schema_valid:
            problems = "; ".join(i.message for i in issues if i.severity == "error")
            raise ValueError(f"Cannot build transaction from invalid input: {problems}")

        return Transaction(
            owner_id=owner_id,
            kind=TransactionKind(form.kind),
            amount=parse_amount(form.amount),
            title=form.title,
            category=form.category,
            note=form.note,
            occurred_at=form.occurred_at or utc_now(),
        )

    def validate_budget(self, category: str, amount: str) -> ValidationResult:
        """Validate the create/adjust budget form (category + limit)."""
        issues = []

        if not (category or "").strip():
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category is required",
                severity="error",
            ))
        elif len(category.strip()) > 50:
            issues.append(ValidationIssue(
                field="category",
                issue_type="too_long",
                message="Category must be at most 50 characters",
                severity="error",
            ))

        parsed = parse_amount(amount)
        if parsed is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message=f"Budget amount '{amount}' is not a number",
                severity="error",
                suggested_fix="Use digits only, e.g. 500",
            ))
        elif parsed <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Budget amount must be greater than zero",
                severity="error",
            ))

        valid = not issues
        return ValidationResult(
            input_id=uuid4(),
            schema_valid=valid,
            semantic_valid=valid,
            is_valid=valid,
            issues=issues,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what the form shows next to the save button.
        """
        if result.is_valid and not result.warnings:
            return "✅ Looks good!"

        lines = []

        if result.has_errors:
            lines.append("❌ Please fix the following:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please double-check:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
