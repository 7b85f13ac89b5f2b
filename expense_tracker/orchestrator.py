"""
Main Orchestrator for the Expense Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Transactions (form → validate → save → audit → notify)
2. Budgets (create / adjust / track progress against spending)
3. Accounts (profile registration, default categories, custom categories)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is saved unless it passed schema validation
- Nobody touches another owner's records
- Every write is audited
- Budget spent totals are recomputed from transactions, never incremented

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

from collections.abc import Callable
from datetime import date, datetime, tzinfo
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

import structlog

from expense_tracker.aggregation import (
    budget_progress,
    filter_by_kind,
    filter_by_period,
    group_by_day,
    month_bounds,
    spent_for_budget,
)
from expense_tracker.audit import AuditLogger, create_correlation_id
from expense_tracker.config import get_settings, resolve_timezone
from expense_tracker.events import ChangeType, TransactionChange, TransactionEventBus
from expense_tracker.models.audit import AuditEventType
from expense_tracker.models.records import (
    KIND_ALL,
    Budget,
    Category,
    Transaction,
    TransactionKind,
    UserProfile,
    default_categories_for,
    utc_now,
)
from expense_tracker.models.reports import BudgetProgress
from expense_tracker.models.validation import TransactionInput, ValidationResult
from expense_tracker.reports import ReportGenerator
from expense_tracker.services.storage import (
    BudgetStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsCategoryStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    GoogleSheetsUserStorage,
    InMemoryBudgetStorage,
    InMemoryCategoryStorage,
    InMemoryTransactionStorage,
    InMemoryUserStorage,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
    UserStorageInterface,
)
from expense_tracker.validation import RecordValidator, parse_amount


logger = structlog.get_logger(__name__)


class FormRejectedError(ValueError):
    """Submitted form failed schema validation. Nothing was saved."""

    def __init__(self, result: ValidationResult):
        self.result = result
        problems = "; ".join(i.message for i in result.issues if i.severity == "error")
        super().__init__(problems or "Form rejected")


class TransactionRejectedError(FormRejectedError):
    pass


class BudgetRejectedError(FormRejectedError):
    pass


class OwnershipError(PermissionError):
    """The record exists but belongs to a different owner."""

    def __init__(self, record_type: str, record_id: object):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(f"{record_type} {record_id} belongs to another user")


def _today(tz: Optional[tzinfo]) -> date:
    return datetime.now(tz).date()


class TransactionFlow:
    """
    Orchestrates adding, editing and deleting transactions.

    Flow:
    1. Validate → Two-stage validation (errors block, warnings don't)
    2. Save → Persist to storage
    3. Audit → Record who changed what
    4. Notify → Publish the change so derived data can refresh
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        category_storage: Optional[CategoryStorageInterface] = None,
        validator: Optional[RecordValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        event_bus: Optional[TransactionEventBus] = None,
        tz: Optional[tzinfo] = None,
    ):
        self._storage = transaction_storage
        self._category_storage = category_storage
        self._validator = validator or RecordValidator()
        self._audit_logger = audit_logger
        self._event_bus = event_bus
        self._tz = tz if tz is not None else resolve_timezone(get_settings().app.local_timezone)

    async def _get_owned(self, owner_id: str, transaction_id: UUID) -> Transaction:
        transaction = await self._storage.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        if transaction.owner_id != owner_id:
            raise OwnershipError("Transaction", transaction_id)
        return transaction

    async def _publish(self, change: TransactionChange) -> None:
        if self._event_bus:
            await self._event_bus.publish(change)

    async def _storage_failed(self, error: Exception, correlation_id: UUID) -> None:
        if self._audit_logger:
            await self._audit_logger.log_external_service_error(
                service="storage",
                error_message=str(error),
                correlation_id=correlation_id,
            )

    async def validate_input(
        self,
        owner_id: str,
        form: TransactionInput,
    ) -> ValidationResult:
        """
        Validate a form against the owner's categories.

        Safe to call on every keystroke; nothing is saved or audited.
        """
        known = None
        if self._category_storage:
            known = await self._category_storage.list_categories(owner_id)
        return self._validator.validate_transaction(form, known)

    async def _check_form(
        self,
        owner_id: str,
        form: TransactionInput,
        correlation_id: UUID,
    ) -> ValidationResult:
        result = await self.validate_input(owner_id, form)
        if not result.schema_valid:
            if self._audit_logger:
                await self._audit_logger.log_transaction_rejected(
                    input_id=form.input_id,
                    owner_id=owner_id,
                    issues=[i.model_dump() for i in result.issues],
                    correlation_id=correlation_id,
                )
            raise TransactionRejectedError(result)
        return result

    async def add_transaction(
        self,
        owner_id: str,
        form: TransactionInput,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Validate and save a new transaction.

        Raises:
            TransactionRejectedError: If the form has schema errors
            StorageError: If the save failed
        """
        correlation_id = correlation_id or create_correlation_id()
        await self._check_form(owner_id, form, correlation_id)

        transaction = self._validator.build_transaction(form, owner_id)

        try:
            await self._storage.save_transaction(transaction)
        except StorageError as e:
            await self._storage_failed(e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_transaction_added(
                transaction_id=transaction.id,
                owner_id=owner_id,
                kind=transaction.kind.value,
                amount=transaction.amount,
                category=transaction.category,
                correlation_id=correlation_id,
            )

        await self._publish(TransactionChange(
            change_type=ChangeType.ADDED,
            owner_id=owner_id,
            transaction_id=transaction.id,
            kind=transaction.kind,
            category=transaction.category,
            correlation_id=correlation_id,
        ))
        return transaction

    async def edit_transaction(
        self,
        owner_id: str,
        transaction_id: UUID,
        form: TransactionInput,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Replace a transaction's values with the form's.

        An empty date on the form keeps the original date.

        Raises:
            NotFoundError: If the transaction doesn't exist
            OwnershipError: If it belongs to someone else
            TransactionRejectedError: If the form has schema errors
        """
        correlation_id = correlation_id or create_correlation_id()
        existing = await self._get_owned(owner_id, transaction_id)
        await self._check_form(owner_id, form, correlation_id)

        rebuilt = self._validator.build_transaction(form, owner_id)
        updated = existing.model_copy(update={
            "kind": rebuilt.kind,
            "amount": rebuilt.amount,
            "title": rebuilt.title,
            "category": rebuilt.category,
            "note": rebuilt.note,
            "occurred_at": rebuilt.occurred_at if form.occurred_at else existing.occurred_at,
            "updated_at": utc_now(),
        })
        changed_fields = [
            name for name in ("kind", "amount", "title", "category", "note", "occurred_at")
            if getattr(existing, name) != getattr(updated, name)
        ]

        try:
            await self._storage.update_transaction(updated)
        except StorageError as e:
            await self._storage_failed(e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_transaction_updated(
                transaction_id=transaction_id,
                owner_id=owner_id,
                changed_fields=changed_fields,
                correlation_id=correlation_id,
            )

        await self._publish(TransactionChange(
            change_type=ChangeType.UPDATED,
            owner_id=owner_id,
            transaction_id=transaction_id,
            kind=updated.kind,
            category=updated.category,
            previous_category=existing.category,
            correlation_id=correlation_id,
        ))
        return updated

    async def delete_transaction(
        self,
        owner_id: str,
        transaction_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Delete a transaction.

        Returns False if it was already gone.

        Raises:
            OwnershipError: If it belongs to someone else
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            existing = await self._get_owned(owner_id, transaction_id)
        except NotFoundError:
            return False

        try:
            deleted = await self._storage.delete_transaction(transaction_id)
        except StorageError as e:
            await self._storage_failed(e, correlation_id)
            raise
        if not deleted:
            return False

        if self._audit_logger:
            await self._audit_logger.log_transaction_deleted(
                transaction_id=transaction_id,
                owner_id=owner_id,
                correlation_id=correlation_id,
            )

        await self._publish(TransactionChange(
            change_type=ChangeType.DELETED,
            owner_id=owner_id,
            transaction_id=transaction_id,
            kind=existing.kind,
            category=existing.category,
            correlation_id=correlation_id,
        ))
        return True

    async def list_transactions(
        self,
        owner_id: str,
        kind: Union[TransactionKind, str] = KIND_ALL,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        """Newest first. kind is "income", "expense" or "all"."""
        transactions = filter_by_kind(
            await self._storage.list_transactions(owner_id), kind
        )
        return transactions[:limit] if limit is not None else transactions

    async def list_by_day(
        self,
        owner_id: str,
        kind: Union[TransactionKind, str] = KIND_ALL,
    ) -> dict[date, list[Transaction]]:
        """History grouped by local day, most recent day first."""
        return group_by_day(await self.list_transactions(owner_id, kind), self._tz)

    async def list_by_category(self, owner_id: str, category: str) -> list[Transaction]:
        return await self._storage.list_transactions(owner_id, category=category)

    async def list_in_range(
        self,
        owner_id: str,
        start: date,
        end: date,
        kind: Union[TransactionKind, str] = KIND_ALL,
    ) -> list[Transaction]:
        """Transactions whose local day is in [start, end]."""
        if end < start:
            raise ValueError("Range end cannot be before range start")
        return filter_by_period(
            await self.list_transactions(owner_id, kind), start, end, self._tz
        )


class BudgetFlow:
    """
    Orchestrates budgets and keeps their spent totals honest.

    The stored `spent` of a budget is a cache. It is recomputed from the
    transactions:
    - after every transaction change (via the event bus), written silently
    - on every progress read; a mismatch found here means the cache had
      drifted and is recorded as a warning audit event
    """

    def __init__(
        self,
        budget_storage: BudgetStorageInterface,
        transaction_storage: TransactionStorageInterface,
        validator: Optional[RecordValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        tz: Optional[tzinfo] = None,
    ):
        self._storage = budget_storage
        self._transactions = transaction_storage
        self._validator = validator or RecordValidator()
        self._audit_logger = audit_logger
        self._tz = tz if tz is not None else resolve_timezone(get_settings().app.local_timezone)

    def attach(self, event_bus: TransactionEventBus) -> Callable[[], None]:
        """Keep spent totals in step with transaction changes."""
        return event_bus.subscribe(self._on_transaction_change)

    async def _on_transaction_change(self, change: TransactionChange) -> None:
        # An edit can also flip an expense into income, so every change resyncs
        for category in change.affected_categories:
            await self.sync_spent(
                change.owner_id, category, correlation_id=change.correlation_id
            )

    async def _get_owned(self, owner_id: str, budget_id: UUID) -> Budget:
        budget = await self._storage.get_budget(budget_id)
        if budget is None:
            raise NotFoundError(f"Budget not found: {budget_id}")
        if budget.owner_id != owner_id:
            raise OwnershipError("Budget", budget_id)
        return budget

    def _parse_budget_amount(self, category: str, amount: Union[str, Decimal]) -> Decimal:
        result = self._validator.validate_budget(category, str(amount))
        if not result.is_valid:
            raise BudgetRejectedError(result)
        return parse_amount(str(amount))

    async def _expenses(self, owner_id: str, category: Optional[str] = None) -> list[Transaction]:
        return await self._transactions.list_transactions(
            owner_id, kind=TransactionKind.EXPENSE, category=category
        )

    async def _store_spent(
        self,
        budget: Budget,
        recomputed: Decimal,
        correlation_id: UUID,
        drifted: bool,
    ) -> Budget:
        if budget.spent == recomputed:
            return budget

        if not await self._storage.set_budget_spent(budget.id, recomputed):
            logger.warning(
                "budget_spent_write_failed",
                budget_id=str(budget.id),
                spent=str(recomputed),
            )
        elif drifted and self._audit_logger:
            await self._audit_logger.log_budget_spent_corrected(
                budget_id=budget.id,
                owner_id=budget.owner_id,
                stored=budget.spent,
                recomputed=recomputed,
                correlation_id=correlation_id,
            )
        return budget.model_copy(update={"spent": recomputed})

    async def create_monthly_budget(
        self,
        owner_id: str,
        category: str,
        amount: Union[str, Decimal],
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Budget:
        """
        Create a budget running from the first to the last day of the
        current month.

        Expenses already recorded this month count toward it immediately.

        Raises:
            BudgetRejectedError: If category or amount is invalid
        """
        correlation_id = correlation_id or create_correlation_id()
        allocated = self._parse_budget_amount(category, amount)
        today = today or _today(self._tz)
        start, end = month_bounds(today.year, today.month)

        budget = Budget(
            owner_id=owner_id,
            category=category,
            amount=allocated,
            start_date=start,
            end_date=end,
        )
        spent = spent_for_budget(budget, await self._expenses(owner_id, budget.category), self._tz)
        budget = budget.model_copy(update={"spent": spent})

        await self._storage.save_budget(budget)

        if self._audit_logger:
            await self._audit_logger.log_budget_created(
                budget_id=budget.id,
                owner_id=owner_id,
                category=budget.category,
                amount=budget.amount,
                correlation_id=correlation_id,
            )
        return budget

    async def update_budget_amount(
        self,
        owner_id: str,
        budget_id: UUID,
        amount: Union[str, Decimal],
        correlation_id: Optional[UUID] = None,
    ) -> Budget:
        correlation_id = correlation_id or create_correlation_id()
        existing = await self._get_owned(owner_id, budget_id)
        allocated = self._parse_budget_amount(existing.category, amount)

        updated = existing.model_copy(update={"amount": allocated, "updated_at": utc_now()})
        await self._storage.update_budget(updated)

        if self._audit_logger:
            await self._audit_logger.log_budget_updated(
                budget_id=budget_id,
                owner_id=owner_id,
                changes={"amount": f"{existing.amount} -> {allocated}"},
                correlation_id=correlation_id,
            )
        return updated

    async def deactivate_budget(
        self,
        owner_id: str,
        budget_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> Budget:
        """Stop tracking a budget without deleting its history."""
        correlation_id = correlation_id or create_correlation_id()
        existing = await self._get_owned(owner_id, budget_id)
        if not existing.is_active:
            return existing

        updated = existing.model_copy(update={"is_active": False, "updated_at": utc_now()})
        await self._storage.update_budget(updated)

        if self._audit_logger:
            await self._audit_logger.log_budget_updated(
                budget_id=budget_id,
                owner_id=owner_id,
                changes={"is_active": "True -> False"},
                correlation_id=correlation_id,
            )
        return updated

    async def delete_budget(
        self,
        owner_id: str,
        budget_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        correlation_id = correlation_id or create_correlation_id()
        try:
            await self._get_owned(owner_id, budget_id)
        except NotFoundError:
            return False

        deleted = await self._storage.delete_budget(budget_id)
        if deleted and self._audit_logger:
            await self._audit_logger.log_budget_deleted(
                budget_id=budget_id,
                owner_id=owner_id,
                correlation_id=correlation_id,
            )
        return deleted

    async def list_budget_progress(
        self,
        owner_id: str,
        active_only: bool = True,
        correlation_id: Optional[UUID] = None,
    ) -> list[BudgetProgress]:
        """
        Progress of every budget, with spent recomputed from transactions.

        Budgets come back in storage order.
        """
        correlation_id = correlation_id or create_correlation_id()
        budgets = await self._storage.list_budgets(owner_id, active_only=active_only)
        expenses = await self._expenses(owner_id)

        result = []
        for budget in budgets:
            recomputed = spent_for_budget(budget, expenses, self._tz)
            budget = await self._store_spent(budget, recomputed, correlation_id, drifted=True)
            result.append(budget_progress(budget))
        return result

    async def get_budget_for_category(
        self,
        owner_id: str,
        category: str,
        on: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Budget]:
        """
        The owner's active budget for a category covering a given day
        (today by default), or None.
        """
        correlation_id = correlation_id or create_correlation_id()
        on = on or _today(self._tz)
        candidates = await self._storage.list_budgets(
            owner_id, category=category, active_only=True
        )
        for budget in candidates:
            if budget.covers(on):
                recomputed = spent_for_budget(
                    budget, await self._expenses(owner_id, category), self._tz
                )
                return await self._store_spent(budget, recomputed, correlation_id, drifted=True)
        return None

    async def sync_spent(
        self,
        owner_id: str,
        category: str,
        correlation_id: Optional[UUID] = None,
    ) -> list[Budget]:
        """
        Recompute and store spent for every budget of a category.

        Writing the recomputed total (never an increment) makes repeated or
        concurrent syncs converge on the same value.
        """
        correlation_id = correlation_id or create_correlation_id()
        budgets = await self._storage.list_budgets(owner_id, category=category)
        if not budgets:
            return []

        expenses = await self._expenses(owner_id, category)
        synced = []
        for budget in budgets:
            recomputed = spent_for_budget(budget, expenses, self._tz)
            synced.append(
                await self._store_spent(budget, recomputed, correlation_id, drifted=False)
            )

        logger.info(
            "budget_spent_synced",
            owner_id=owner_id,
            category=category,
            budgets=len(synced),
        )
        return synced


class AccountFlow:
    """
    Orchestrates user profiles and categories.

    Registration seeds the default categories so a new user can start
    recording right away.
    """

    def __init__(
        self,
        user_storage: UserStorageInterface,
        category_storage: CategoryStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._users = user_storage
        self._categories = category_storage
        self._audit_logger = audit_logger

    async def register_profile(
        self,
        user_id: str,
        display_name: str,
        email: str,
        avatar_url: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> UserProfile:
        """
        Raises:
            DuplicateError: If the user already has a profile
        """
        correlation_id = correlation_id or create_correlation_id()
        profile = UserProfile(
            id=user_id,
            display_name=display_name,
            email=email,
            avatar_url=avatar_url,
        )
        await self._users.save_profile(profile)

        if self._audit_logger:
            await self._audit_logger.log_profile_event(
                event_type=AuditEventType.PROFILE_REGISTERED,
                owner_id=user_id,
                correlation_id=correlation_id,
            )

        count = await self._categories.save_categories(default_categories_for(user_id))
        if self._audit_logger:
            await self._audit_logger.log_default_categories_seeded(
                owner_id=user_id,
                count=count,
                correlation_id=correlation_id,
            )
        return profile

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        return await self._users.get_profile(user_id)

    async def update_profile(
        self,
        user_id: str,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
        avatar_url: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> UserProfile:
        """Change the given fields; the others stay as they are."""
        correlation_id = correlation_id or create_correlation_id()
        existing = await self._users.get_profile(user_id)
        if existing is None:
            raise NotFoundError(f"Profile not found: {user_id}")

        changes = {
            name: value
            for name, value in (
                ("display_name", display_name),
                ("email", email),
                ("avatar_url", avatar_url),
            )
            if value is not None
        }
        # Re-validate so the email check runs on the new value
        updated = UserProfile.model_validate({**existing.model_dump(), **changes})
        await self._users.update_profile(updated)

        if self._audit_logger:
            await self._audit_logger.log_profile_event(
                event_type=AuditEventType.PROFILE_UPDATED,
                owner_id=user_id,
                correlation_id=correlation_id,
                details={"changed_fields": sorted(changes)},
            )
        return updated

    async def delete_profile(
        self,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        correlation_id = correlation_id or create_correlation_id()
        deleted = await self._users.delete_profile(user_id)
        if deleted and self._audit_logger:
            await self._audit_logger.log_profile_event(
                event_type=AuditEventType.PROFILE_DELETED,
                owner_id=user_id,
                correlation_id=correlation_id,
            )
        return deleted

    async def add_category(
        self,
        owner_id: str,
        name: str,
        kind: Union[TransactionKind, str],
        icon: Optional[str] = None,
        color: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Category:
        """
        Raises:
            DuplicateError: If the owner already has a category with that
                name for that kind (case-insensitive)
        """
        correlation_id = correlation_id or create_correlation_id()
        category = Category(
            owner_id=owner_id,
            name=name,
            kind=TransactionKind(kind),
            icon=icon,
            color=color,
        )

        existing = await self._categories.list_categories(owner_id, kind=category.kind)
        if any(c.name.lower() == category.name.lower() for c in existing):
            raise DuplicateError(
                f"Category already exists: {category.name} ({category.kind.value})"
            )

        await self._categories.save_category(category)

        if self._audit_logger:
            await self._audit_logger.log_category_added(
                category_id=category.id,
                owner_id=owner_id,
                name=category.name,
                kind=category.kind.value,
                correlation_id=correlation_id,
            )
        return category

    async def list_categories(
        self,
        owner_id: str,
        kind: Optional[Union[TransactionKind, str]] = None,
    ) -> list[Category]:
        return await self._categories.list_categories(
            owner_id, kind=TransactionKind(kind) if kind else None
        )

    async def delete_category(
        self,
        owner_id: str,
        category_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Delete one of the owner's categories.

        Transactions already filed under it keep the name. Returns False if
        the owner has no such category.
        """
        correlation_id = correlation_id or create_correlation_id()
        owned = await self._categories.list_categories(owner_id)
        if not any(c.id == category_id for c in owned):
            return False

        deleted = await self._categories.delete_category(category_id)
        if deleted and self._audit_logger:
            await self._audit_logger.log_category_deleted(
                category_id=category_id,
                owner_id=owner_id,
                correlation_id=correlation_id,
            )
        return deleted


def create_app_components(
    use_storage: bool = True,
) -> tuple[TransactionFlow, BudgetFlow, ReportGenerator, AccountFlow, TransactionEventBus]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run entirely in memory.

    Returns:
        (transaction_flow, budget_flow, report_generator, account_flow, event_bus)
    """
    tz = resolve_timezone(get_settings().app.local_timezone)

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            transaction_storage = GoogleSheetsTransactionStorage(sheets_client)
            budget_storage = GoogleSheetsBudgetStorage(sheets_client)
            category_storage = GoogleSheetsCategoryStorage(sheets_client)
            user_storage = GoogleSheetsUserStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            use_storage = False

    if not use_storage:
        transaction_storage = InMemoryTransactionStorage()
        budget_storage = InMemoryBudgetStorage()
        category_storage = InMemoryCategoryStorage()
        user_storage = InMemoryUserStorage()
        audit_logger = AuditLogger()  # Local-only logging

    validator = RecordValidator()
    event_bus = TransactionEventBus()

    transaction_flow = TransactionFlow(
        transaction_storage=transaction_storage,
        category_storage=category_storage,
        validator=validator,
        audit_logger=audit_logger,
        event_bus=event_bus,
        tz=tz,
    )

    budget_flow = BudgetFlow(
        budget_storage=budget_storage,
        transaction_storage=transaction_storage,
        validator=validator,
        audit_logger=audit_logger,
        tz=tz,
    )
    budget_flow.attach(event_bus)

    report_generator = ReportGenerator(
        transaction_storage=transaction_storage,
        budget_storage=budget_storage,
        audit_logger=audit_logger,
        tz=tz,
    )

    account_flow = AccountFlow(
        user_storage=user_storage,
        category_storage=category_storage,
        audit_logger=audit_logger,
    )

    return transaction_flow, budget_flow, report_generator, account_flow, event_bus
