"""
Validation Models

Raw form input and the outcome of validating it.

IMPORTANT: Form values arrive as text exactly as the user typed them.
Nothing here converts or fixes values - that is the validator's job, and
the validator reports problems instead of silently correcting them.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from expense_tracker.models.records import utc_now


class TransactionInput(BaseModel):
    """What the add/edit transaction form submits."""
    model_config = ConfigDict(str_strip_whitespace=True)

    input_id: UUID = Field(
        default_factory=uuid4,
        description="Identifier of this submission, used in audit events"
    )
    kind: str = Field(default="expense")
    amount: str = Field(default="", description="Amount exactly as typed")
    title: str = Field(default="")
    category: str = Field(default="")
    note: Optional[str] = None
    occurred_at: Optional[datetime] = Field(
        default=None,
        description="When it happened; defaults to now"
    )


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (presence, number format)
    Stage 2: Semantic validation (plausibility checks)
    """

    input_id: UUID
    validated_at: datetime = Field(default_factory=utc_now)

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")

    def issues_for(self, field: str) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.field == field]
