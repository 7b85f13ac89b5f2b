"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the record store.
This allows us to:
1. Use Google Sheets today and swap in a real database later
2. Use in-memory storage for testing
3. Keep the aggregation and reporting logic decoupled from storage

The interface is intentionally simple - we're not building a full ORM.
Just the operations the flows need.

CONTRACT: every record handed back by an implementation is an already
validated model, so all of its dates are normalized aware datetimes.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from expense_tracker.models.audit import AuditEvent
from expense_tracker.models.records import (
    Budget,
    Category,
    Transaction,
    TransactionKind,
    UserProfile,
)


class TransactionStorageInterface(ABC):
    """Abstract interface for transaction storage operations."""

    @abstractmethod
    async def save_transaction(self, transaction: Transaction) -> bool:
        """
        Save a new transaction.

        Raises:
            DuplicateError: If a transaction with this ID already exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        """Retrieve a transaction by ID, or None if it does not exist."""
        pass

    @abstractmethod
    async def update_transaction(self, transaction: Transaction) -> bool:
        """
        Replace a stored transaction. The record is written as given,
        including its updated_at.

        Raises:
            NotFoundError: If the transaction doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: UUID) -> bool:
        """Delete a transaction. Returns False if there was nothing to delete."""
        pass

    @abstractmethod
    async def list_transactions(
        self,
        owner_id: str,
        kind: Optional[TransactionKind] = None,
        category: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        """
        List one owner's transactions, newest first.

        Args:
            owner_id: Owner whose transactions to list
            kind: Only this kind
            category: Only this category
            date_from: Only transactions at or after this moment
            date_to: Only transactions at or before this moment
            limit: Maximum number of results (None for all)
        """
        pass


class BudgetStorageInterface(ABC):
    """Abstract interface for budget storage operations."""

    @abstractmethod
    async def save_budget(self, budget: Budget) -> bool:
        pass

    @abstractmethod
    async def get_budget(self, budget_id: UUID) -> Optional[Budget]:
        pass

    @abstractmethod
    async def update_budget(self, budget: Budget) -> bool:
        """
        Replace a stored budget. The record is written as given,
        including its updated_at.

        Raises:
            NotFoundError: If the budget doesn't exist
        """
        pass

    @abstractmethod
    async def delete_budget(self, budget_id: UUID) -> bool:
        pass

    @abstractmethod
    async def list_budgets(
        self,
        owner_id: str,
        category: Optional[str] = None,
        active_only: bool = False,
    ) -> list[Budget]:
        """
        List one owner's budgets in storage (fetch) order.

        Category is a plain filter here. It is never used as a record ID.
        """
        pass

    @abstractmethod
    async def set_budget_spent(self, budget_id: UUID, new_amount: Decimal) -> bool:
        """
        Overwrite a budget's cached spent total.

        The caller computes the total; this only stores it. Writing an
        absolute value (rather than an increment) keeps repeated or racing
        calls harmless.

        Returns:
            True on success, False if the budget does not exist
        """
        pass


class CategoryStorageInterface(ABC):
    """Abstract interface for category storage operations."""

    @abstractmethod
    async def save_category(self, category: Category) -> bool:
        pass

    @abstractmethod
    async def save_categories(self, categories: list[Category]) -> int:
        """Save several categories in one batch. Returns how many were written."""
        pass

    @abstractmethod
    async def list_categories(
        self,
        owner_id: str,
        kind: Optional[TransactionKind] = None,
    ) -> list[Category]:
        pass

    @abstractmethod
    async def list_default_categories(
        self,
        kind: Optional[TransactionKind] = None,
    ) -> list[Category]:
        """System-seeded categories across all owners."""
        pass

    @abstractmethod
    async def update_category(self, category: Category) -> bool:
        pass

    @abstractmethod
    async def delete_category(self, category_id: UUID) -> bool:
        pass


class UserStorageInterface(ABC):
    """Abstract interface for user profile storage."""

    @abstractmethod
    async def save_profile(self, profile: UserProfile) -> bool:
        pass

    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        pass

    @abstractmethod
    async def update_profile(self, profile: UserProfile) -> bool:
        pass

    @abstractmethod
    async def delete_profile(self, user_id: str) -> bool:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a specific entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
