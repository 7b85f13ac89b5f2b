"""
In-Memory Storage Implementation

Dict-backed implementations of the storage interfaces. Used by the tests
and as the fallback when Google Sheets is not configured.

Records are deep-copied on the way in and on the way out, so callers get
a snapshot just like they would from a remote document store - mutating a
returned model never changes what is stored.
"""

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
    utc_now,
)
from expense_tracker.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    NotFoundError,
    TransactionStorageInterface,
    UserStorageInterface,
)


class InMemoryTransactionStorage(TransactionStorageInterface):

    def __init__(self):
        self._records: dict[UUID, Transaction] = {}

    async def save_transaction(self, transaction: Transaction) -> bool:
        if transaction.id in self._records:
            raise DuplicateError(f"Transaction already exists: {transaction.id}")
        self._records[transaction.id] = transaction.model_copy(deep=True)
        return True

    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        record = self._records.get(transaction_id)
        return record.model_copy(deep=True) if record else None

    async def update_transaction(self, transaction: Transaction) -> bool:
        if transaction.id not in self._records:
            raise NotFoundError(f"Transaction not found: {transaction.id}")
        self._records[transaction.id] = transaction.model_copy(deep=True)
        return True

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        return self._records.pop(transaction_id, None) is not None

    async def list_transactions(
        self,
        owner_id: str,
        kind: Optional[TransactionKind] = None,
        category: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        matches = []
        for tx in self._records.values():
            if tx.owner_id != owner_id:
                continue
            if kind and tx.kind != kind:
                continue
            if category and tx.category != category:
                continue
            if date_from and tx.occurred_at < date_from:
                continue
            if date_to and tx.occurred_at > date_to:
                continue
            matches.append(tx.model_copy(deep=True))

        # Newest first; sort is stable so equal dates keep insertion order
        matches.sort(key=lambda t: t.occurred_at, reverse=True)
        return matches[:limit] if limit is not None else matches


class InMemoryBudgetStorage(BudgetStorageInterface):

    def __init__(self):
        self._records: dict[UUID, Budget] = {}

    async def save_budget(self, budget: Budget) -> bool:
        if budget.id in self._records:
            raise DuplicateError(f"Budget already exists: {budget.id}")
        self._records[budget.id] = budget.model_copy(deep=True)
        return True

    async def get_budget(self, budget_id: UUID) -> Optional[Budget]:
        record = self._records.get(budget_id)
        return record.model_copy(deep=True) if record else None

    async def update_budget(self, budget: Budget) -> bool:
        if budget.id not in self._records:
            raise NotFoundError(f"Budget not found: {budget.id}")
        self._records[budget.id] = budget.model_copy(deep=True)
        return True

    async def delete_budget(self, budget_id: UUID) -> bool:
        return self._records.pop(budget_id, None) is not None

    async def list_budgets(
        self,
        owner_id: str,
        category: Optional[str] = None,
        active_only: bool = False,
    ) -> list[Budget]:
        return [
            b.model_copy(deep=True)
            for b in self._records.values()
            if b.owner_id == owner_id
            and (category is None or b.category == category)
            and (not active_only or b.is_active)
        ]

    async def set_budget_spent(self, budget_id: UUID, new_amount: Decimal) -> bool:
        record = self._records.get(budget_id)
        if record is None:
            return False
        self._records[budget_id] = record.model_copy(
            update={"spent": new_amount, "updated_at": utc_now()}
        )
        return True


class InMemoryCategoryStorage(CategoryStorageInterface):

    def __init__(self):
        self._records: dict[UUID, Category] = {}

    async def save_category(self, category: Category) -> bool:
        if category.id in self._records:
            raise DuplicateError(f"Category already exists: {category.id}")
        self._records[category.id] = category.model_copy(deep=True)
        return True

    async def save_categories(self, categories: list[Category]) -> int:
        duplicates = [c.id for c in categories if c.id in self._records]
        if duplicates:
            raise DuplicateError(f"Categories already exist: {duplicates}")
        for category in categories:
            self._records[category.id] = category.model_copy(deep=True)
        return len(categories)

    async def list_categories(
        self,
        owner_id: str,
        kind: Optional[TransactionKind] = None,
    ) -> list[Category]:
        return [
            c.model_copy(deep=True)
            for c in self._records.values()
            if c.owner_id == owner_id and (kind is None or c.kind == kind)
        ]

    async def list_default_categories(
        self,
        kind: Optional[TransactionKind] = None,
    ) -> list[Category]:
        return [
            c.model_copy(deep=True)
            for c in self._records.values()
            if c.is_default and (kind is None or c.kind == kind)
        ]

    async def update_category(self, category: Category) -> bool:
        if category.id not in self._records:
            raise NotFoundError(f"Category not found: {category.id}")
        self._records[category.id] = category.model_copy(deep=True)
        return True

    async def delete_category(self, category_id: UUID) -> bool:
        return self._records.pop(category_id, None) is not None


class InMemoryUserStorage(UserStorageInterface):

    def __init__(self):
        self._records: dict[str, UserProfile] = {}

    async def save_profile(self, profile: UserProfile) -> bool:
        if profile.id in self._records:
            raise DuplicateError(f"Profile already exists: {profile.id}")
        self._records[profile.id] = profile.model_copy(deep=True)
        return True

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        record = self._records.get(user_id)
        return record.model_copy(deep=True) if record else None

    async def update_profile(self, profile: UserProfile) -> bool:
        if profile.id not in self._records:
            raise NotFoundError(f"Profile not found: {profile.id}")
        self._records[profile.id] = profile.model_copy(deep=True)
        return True

    async def delete_profile(self, user_id: str) -> bool:
        return self._records.pop(user_id, None) is not None


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event.model_copy(deep=True))
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return sorted(self._events, key=lambda e: e.timestamp, reverse=True)[:limit]
