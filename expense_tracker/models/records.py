"""
Core Record Models for Expense Tracker

These models define the schemas of everything the record store persists:
transactions, budgets, categories and user profiles.

They are designed to:
1. Enforce type safety at runtime
2. Normalize dates ONCE, at the storage boundary
3. Be serializable for storage and logging

DESIGN DECISION: The document store hands dates back in more than one shape
(native datetimes, ISO strings, epoch numbers, {"seconds", "nanoseconds"}
wire timestamps). Every datetime field runs through normalize_datetime()
before validation, so only timezone-aware datetimes ever reach aggregation.
"""

import re
from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionKind(str, Enum):
    """Whether money came in or went out."""
    INCOME = "income"
    EXPENSE = "expense"


# Pseudo-kind accepted by listings and filters meaning "no kind filter"
KIND_ALL = "all"


class BudgetPeriod(str, Enum):
    """
    Time window a budget applies to.

    Only MONTHLY budgets are created by the budget flow; the other values
    exist so stored records using them still load.
    """
    MONTHLY = "monthly"
    WEEKLY = "weekly"
    YEARLY = "yearly"


# =============================================================================
# DATE NORMALIZATION
# =============================================================================

_NUMERIC_RE = re.compile(r"^-?\d+(\.\d+)?$")
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def normalize_datetime(value: Any) -> Any:
    """
    Normalize any supported date representation to an aware datetime.

    Accepted:
    - datetime (naive values are taken as local time)
    - date (midnight, local time)
    - ISO-8601 string, with or without offset, "Z" allowed
    - epoch seconds as int/float or numeric string
    - wire timestamp mapping {"seconds": int, "nanoseconds": int}

    Anything else is returned untouched so pydantic reports the error.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.astimezone()
    if isinstance(value, date):
        return datetime.combine(value, time()).astimezone()
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, dict) and "seconds" in value:
        seconds = float(value["seconds"]) + float(value.get("nanoseconds", 0)) / 1e9
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if _NUMERIC_RE.match(text):
            return datetime.fromtimestamp(float(text), tz=timezone.utc)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return value
        return parsed if parsed.tzinfo else parsed.astimezone()
    return value


def normalize_date(value: Any) -> Any:
    """Like normalize_datetime, but for calendar-date fields."""
    if isinstance(value, datetime):
        return normalize_datetime(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and _ISO_DATE_RE.match(value.strip()):
        return date.fromisoformat(value.strip())
    normalized = normalize_datetime(value)
    if isinstance(normalized, datetime):
        return normalized.date()
    return value


# =============================================================================
# TRANSACTION
# =============================================================================

class Transaction(BaseModel):
    """
    A single dated income or expense record.

    Immutable once created except through an explicit edit.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )
    owner_id: str = Field(
        ...,
        min_length=1,
        description="ID of the user owning this transaction"
    )

    kind: TransactionKind
    amount: Decimal = Field(
        ...,
        gt=0,
        allow_inf_nan=False,
        description="Positive amount; the kind carries the sign"
    )
    title: str = Field(
        ...,
        min_length=1,
        max_length=100,
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Category name"
    )
    note: Optional[str] = Field(
        default=None,
        max_length=500,
    )

    # Timestamps
    occurred_at: datetime = Field(
        ...,
        description="When the transaction happened"
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("occurred_at", "created_at", "updated_at", mode="before")
    @classmethod
    def normalize_timestamps(cls, v: Any) -> Any:
        return normalize_datetime(v)

    @field_validator("note", mode="before")
    @classmethod
    def empty_note_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def is_expense(self) -> bool:
        return self.kind == TransactionKind.EXPENSE


# =============================================================================
# BUDGET
# =============================================================================

class Budget(BaseModel):
    """
    A per-category spending allocation for a period.

    `spent` is a CACHED total. The budget flow recomputes it from the
    transactions of the period and writes it back when it drifted, so a
    stored value is only ever a hint.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    owner_id: str = Field(..., min_length=1)

    category: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Category this budget limits (a plain attribute, not an identity)"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        allow_inf_nan=False,
        description="Allocated amount"
    )
    spent: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        allow_inf_nan=False,
        description="Cached sum of matching expenses in the period"
    )

    period: BudgetPeriod = Field(default=BudgetPeriod.MONTHLY)
    start_date: date
    end_date: date
    is_active: bool = Field(default=True)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def normalize_period_dates(cls, v: Any) -> Any:
        return normalize_date(v)

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def normalize_timestamps(cls, v: Any) -> Any:
        return normalize_datetime(v)

    @model_validator(mode='after')
    def validate_period(self) -> 'Budget':
        if self.end_date < self.start_date:
            raise ValueError("Budget end date cannot be before start date")
        return self

    def covers(self, day: date) -> bool:
        """Is the given calendar day inside the budget period?"""
        return self.start_date <= day <= self.end_date

    def overlaps(self, start: date, end: date) -> bool:
        """Does the budget period share at least one day with [start, end]?"""
        return self.start_date <= end and self.end_date >= start


# =============================================================================
# CATEGORY
# =============================================================================

class Category(BaseModel):
    """A label classifying transactions as a kind of income or expense."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    owner_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=50)
    kind: TransactionKind
    is_default: bool = Field(
        default=False,
        description="Seeded by the system rather than created by the user"
    )
    icon: Optional[str] = Field(default=None, max_length=50)
    color: Optional[str] = Field(default=None, max_length=20)
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("created_at", mode="before")
    @classmethod
    def normalize_timestamps(cls, v: Any) -> Any:
        return normalize_datetime(v)


# Seeded for every new user
DEFAULT_CATEGORIES: list[tuple[str, TransactionKind]] = [
    ("Salary", TransactionKind.INCOME),
    ("Investments", TransactionKind.INCOME),
    ("Freelance", TransactionKind.INCOME),
    ("Food", TransactionKind.EXPENSE),
    ("Transport", TransactionKind.EXPENSE),
    ("Utilities", TransactionKind.EXPENSE),
    ("Shopping", TransactionKind.EXPENSE),
    ("Healthcare", TransactionKind.EXPENSE),
]


def default_categories_for(owner_id: str) -> list[Category]:
    """Build the default category set for a new user."""
    return [
        Category(owner_id=owner_id, name=name, kind=kind, is_default=True)
        for name, kind in DEFAULT_CATEGORIES
    ]


# =============================================================================
# USER PROFILE
# =============================================================================

class UserProfile(BaseModel):
    """
    Profile of a registered user.

    Authentication itself belongs to the identity provider; `id` is the uid
    it issued.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=254)
    avatar_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        local, _, domain = v.partition("@")
        if not local or "." not in domain:
            raise ValueError(f"Invalid email address: {v}")
        return v.lower()

    @field_validator("created_at", mode="before")
    @classmethod
    def normalize_timestamps(cls, v: Any) -> Any:
        return normalize_datetime(v)
