"""
Integration tests for the flows.

Everything runs against in-memory storage wired the same way
create_app_components wires the real thing.
"""

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from expense_tracker.audit import AuditLogger
from expense_tracker.events import ChangeType, TransactionEventBus
from expense_tracker.models.audit import AuditEventType
from expense_tracker.models.validation import TransactionInput
from expense_tracker.orchestrator import (
    AccountFlow,
    BudgetFlow,
    BudgetRejectedError,
    OwnershipError,
    TransactionFlow,
    TransactionRejectedError,
    create_app_components,
)
from expense_tracker.reports import ReportGenerator
from expense_tracker.services.storage import (
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    InMemoryCategoryStorage,
    InMemoryTransactionStorage,
    InMemoryUserStorage,
    NotFoundError,
)

from conftest import OTHER_OWNER, OWNER, make_budget, make_transaction


UTC = timezone.utc
MARCH = date(2024, 3, 10)


def at(day: int, month: int = 3) -> datetime:
    return datetime(2024, month, day, 12, tzinfo=UTC)


def form(**overrides) -> TransactionInput:
    values = {
        "kind": "expense",
        "amount": "10",
        "title": "Lunch",
        "category": "Food",
        "occurred_at": at(5),
    }
    values.update(overrides)
    return TransactionInput(**values)


class App:
    """Flows sharing one set of in-memory stores."""

    def __init__(self):
        self.transactions = InMemoryTransactionStorage()
        self.budgets = InMemoryBudgetStorage()
        self.categories = InMemoryCategoryStorage()
        self.users = InMemoryUserStorage()
        self.audit_storage = InMemoryAuditStorage()
        audit_logger = AuditLogger(self.audit_storage)

        self.bus = TransactionEventBus()
        self.transaction_flow = TransactionFlow(
            self.transactions,
            category_storage=self.categories,
            audit_logger=audit_logger,
            event_bus=self.bus,
            tz=UTC,
        )
        self.budget_flow = BudgetFlow(
            self.budgets, self.transactions, audit_logger=audit_logger, tz=UTC
        )
        self.budget_flow.attach(self.bus)
        self.account_flow = AccountFlow(self.users, self.categories, audit_logger)

    def events(self, event_type=None):
        events = asyncio.run(self.audit_storage.get_recent_events(limit=1000))
        if event_type is None:
            return events
        return [e for e in events if e.event_type == event_type]


@pytest.fixture
def app():
    return App()


class TestTransactionFlow:
    """Tests for adding, editing and deleting transactions."""

    def test_add_transaction(self, app):
        tx = asyncio.run(app.transaction_flow.add_transaction(OWNER, form(amount="12.50")))

        assert tx.amount == Decimal("12.50")
        assert asyncio.run(app.transactions.get_transaction(tx.id)) == tx
        assert len(app.events(AuditEventType.TRANSACTION_ADDED)) == 1
        assert app.bus.revision(OWNER) == 1

    @pytest.mark.parametrize("amount", ["", "abc", "-5", "0", "NaN"])
    def test_invalid_amount_rejected(self, app, amount):
        """Nothing reaches storage; the rejection is audited."""
        with pytest.raises(TransactionRejectedError) as exc_info:
            asyncio.run(app.transaction_flow.add_transaction(OWNER, form(amount=amount)))

        assert exc_info.value.result.issues_for("amount")
        assert asyncio.run(app.transactions.list_transactions(OWNER)) == []
        assert len(app.events(AuditEventType.TRANSACTION_REJECTED)) == 1
        assert app.bus.revision(OWNER) == 0

    def test_overlong_category_rejected(self, app):
        """A category the record cannot hold is a form error, not a crash."""
        with pytest.raises(TransactionRejectedError) as exc_info:
            asyncio.run(app.transaction_flow.add_transaction(OWNER, form(category="C" * 51)))

        assert exc_info.value.result.issues_for("category")[0].issue_type == "too_long"
        assert asyncio.run(app.transactions.list_transactions(OWNER)) == []

    def test_warnings_do_not_block(self, app):
        """An unknown category is only a warning."""
        tx = asyncio.run(app.transaction_flow.add_transaction(OWNER, form(category="Pets")))
        assert tx.category == "Pets"

    def test_edit_transaction(self, app):
        async def scenario():
            tx = await app.transaction_flow.add_transaction(OWNER, form())
            edited = await app.transaction_flow.edit_transaction(
                OWNER, tx.id, form(amount="25", title="Dinner", occurred_at=None)
            )
            stored = await app.transactions.get_transaction(tx.id)
            return tx, edited, stored

        original, edited, stored = asyncio.run(scenario())
        assert edited == stored
        assert edited.updated_at >= original.updated_at
        assert edited.id == original.id
        assert edited.amount == Decimal("25")
        assert edited.occurred_at == original.occurred_at

        updated_events = app.events(AuditEventType.TRANSACTION_UPDATED)
        assert sorted(updated_events[0].details["changed_fields"]) == ["amount", "title"]

    def test_edit_someone_elses_transaction(self, app):
        async def scenario():
            tx = await app.transaction_flow.add_transaction(OWNER, form())
            await app.transaction_flow.edit_transaction(OTHER_OWNER, tx.id, form())

        with pytest.raises(OwnershipError):
            asyncio.run(scenario())

    def test_edit_missing(self, app):
        with pytest.raises(NotFoundError):
            asyncio.run(app.transaction_flow.edit_transaction(OWNER, uuid4(), form()))

    def test_delete_transaction(self, app):
        async def scenario():
            tx = await app.transaction_flow.add_transaction(OWNER, form())
            first = await app.transaction_flow.delete_transaction(OWNER, tx.id)
            second = await app.transaction_flow.delete_transaction(OWNER, tx.id)
            return first, second

        assert asyncio.run(scenario()) == (True, False)
        assert len(app.events(AuditEventType.TRANSACTION_DELETED)) == 1

    def test_delete_someone_elses_transaction(self, app):
        async def scenario():
            tx = await app.transaction_flow.add_transaction(OWNER, form())
            await app.transaction_flow.delete_transaction(OTHER_OWNER, tx.id)

        with pytest.raises(OwnershipError):
            asyncio.run(scenario())

    def test_change_published(self, app):
        seen = []
        app.bus.subscribe(seen.append)

        tx = asyncio.run(app.transaction_flow.add_transaction(OWNER, form()))
        assert seen[0].change_type == ChangeType.ADDED
        assert seen[0].transaction_id == tx.id

    def test_listing(self, app):
        async def scenario():
            await app.transaction_flow.add_transaction(OWNER, form(occurred_at=at(1)))
            await app.transaction_flow.add_transaction(OWNER, form(occurred_at=at(1)))
            await app.transaction_flow.add_transaction(
                OWNER, form(kind="income", category="Salary", occurred_at=at(3))
            )
            await app.transaction_flow.add_transaction(
                OWNER, form(category="Transport", occurred_at=at(2, month=4))
            )
            flow = app.transaction_flow
            return (
                await flow.list_transactions(OWNER),
                await flow.list_transactions(OWNER, kind="income"),
                await flow.list_transactions(OWNER, limit=2),
                await flow.list_by_day(OWNER, kind="expense"),
                await flow.list_by_category(OWNER, "Transport"),
                await flow.list_in_range(OWNER, date(2024, 3, 1), date(2024, 3, 31)),
            )

        everything, income, limited, by_day, transport, march = asyncio.run(scenario())
        assert len(everything) == 4
        assert [t.category for t in income] == ["Salary"]
        assert len(limited) == 2
        assert list(by_day) == [date(2024, 4, 2), date(2024, 3, 1)]
        assert len(by_day[date(2024, 3, 1)]) == 2
        assert [t.category for t in transport] == ["Transport"]
        assert len(march) == 3

    def test_list_unknown_kind(self, app):
        with pytest.raises(ValueError):
            asyncio.run(app.transaction_flow.list_transactions(OWNER, kind="transfer"))


class TestBudgetFlow:
    """Tests for budgets and their spent totals."""

    def test_create_monthly_budget(self, app):
        budget = asyncio.run(
            app.budget_flow.create_monthly_budget(OWNER, "Food", "300", today=MARCH)
        )
        assert (budget.start_date, budget.end_date) == (date(2024, 3, 1), date(2024, 3, 31))
        assert budget.amount == Decimal("300")
        assert len(app.events(AuditEventType.BUDGET_CREATED)) == 1

    def test_create_counts_existing_expenses(self, app):
        async def scenario():
            await app.transaction_flow.add_transaction(OWNER, form(amount="40"))
            return await app.budget_flow.create_monthly_budget(
                OWNER, "Food", "300", today=MARCH
            )

        assert asyncio.run(scenario()).spent == Decimal("40")

    @pytest.mark.parametrize("category,amount", [
        ("Food", "0"),
        ("Food", "x"),
        ("", "10"),
        ("C" * 51, "10"),
    ])
    def test_create_rejects_bad_form(self, app, category, amount):
        with pytest.raises(BudgetRejectedError):
            asyncio.run(
                app.budget_flow.create_monthly_budget(OWNER, category, amount, today=MARCH)
            )

    def test_spent_follows_transaction_changes(self, app):
        """Adds, edits and deletes all move the stored spent total."""
        async def scenario():
            budget = await app.budget_flow.create_monthly_budget(
                OWNER, "Food", "100", today=MARCH
            )
            flow = app.transaction_flow
            tx1 = await flow.add_transaction(OWNER, form(amount="30"))
            await flow.add_transaction(OWNER, form(amount="20"))
            after_adds = (await app.budgets.get_budget(budget.id)).spent

            await flow.edit_transaction(OWNER, tx1.id, form(amount="30", category="Transport"))
            after_move = (await app.budgets.get_budget(budget.id)).spent

            await flow.add_transaction(OWNER, form(amount="5", occurred_at=at(1, month=4)))
            after_april = (await app.budgets.get_budget(budget.id)).spent

            await flow.delete_transaction(OWNER, tx1.id)
            return after_adds, after_move, after_april

        after_adds, after_move, after_april = asyncio.run(scenario())
        assert after_adds == Decimal("50")
        assert after_move == Decimal("20")
        assert after_april == Decimal("20")
        # Event-driven syncs are routine, not drift
        assert app.events(AuditEventType.BUDGET_SPENT_CORRECTED) == []

    def test_drift_corrected_and_audited(self, app):
        """A stored total that disagrees with the transactions is fixed on read."""
        stale = make_budget(amount="100", spent="90", category="Food")

        async def scenario():
            await app.budgets.save_budget(stale)
            await app.transactions.save_transaction(make_transaction("expense", "15", "Food"))
            progress = await app.budget_flow.list_budget_progress(OWNER)
            stored = await app.budgets.get_budget(stale.id)
            again = await app.budget_flow.list_budget_progress(OWNER)
            return progress, stored, again

        progress, stored, again = asyncio.run(scenario())
        assert progress[0].spent == Decimal("15")
        assert progress[0].percentage == pytest.approx(15.0)
        assert stored.spent == Decimal("15")
        assert again[0].spent == Decimal("15")

        corrections = app.events(AuditEventType.BUDGET_SPENT_CORRECTED)
        assert len(corrections) == 1
        assert corrections[0].details["stored_spent"] == "90"

    def test_get_budget_for_category(self, app):
        async def scenario():
            march = await app.budget_flow.create_monthly_budget(
                OWNER, "Food", "100", today=MARCH
            )
            april = await app.budget_flow.create_monthly_budget(
                OWNER, "Food", "200", today=date(2024, 4, 2)
            )
            return (
                march,
                april,
                await app.budget_flow.get_budget_for_category(OWNER, "Food", on=date(2024, 4, 15)),
                await app.budget_flow.get_budget_for_category(OWNER, "Food", on=date(2024, 5, 1)),
                await app.budget_flow.get_budget_for_category(OTHER_OWNER, "Food", on=MARCH),
            )

        march, april, found, none_in_may, foreign = asyncio.run(scenario())
        assert march.id != april.id
        assert found.id == april.id
        assert none_in_may is None
        assert foreign is None

    def test_update_deactivate_delete(self, app):
        async def scenario():
            budget = await app.budget_flow.create_monthly_budget(
                OWNER, "Food", "100", today=MARCH
            )
            updated = await app.budget_flow.update_budget_amount(OWNER, budget.id, "250")
            assert await app.budgets.get_budget(budget.id) == updated
            inactive = await app.budget_flow.deactivate_budget(OWNER, budget.id)
            assert await app.budgets.get_budget(budget.id) == inactive
            active_progress = await app.budget_flow.list_budget_progress(OWNER)
            deleted = await app.budget_flow.delete_budget(OWNER, budget.id)
            return updated, inactive, active_progress, deleted

        updated, inactive, active_progress, deleted = asyncio.run(scenario())
        assert updated.amount == Decimal("250")
        assert inactive.is_active is False
        assert active_progress == []
        assert deleted is True
        assert len(app.events(AuditEventType.BUDGET_UPDATED)) == 2
        assert len(app.events(AuditEventType.BUDGET_DELETED)) == 1

    def test_someone_elses_budget(self, app):
        async def scenario():
            budget = await app.budget_flow.create_monthly_budget(
                OWNER, "Food", "100", today=MARCH
            )
            await app.budget_flow.update_budget_amount(OTHER_OWNER, budget.id, "1")

        with pytest.raises(OwnershipError):
            asyncio.run(scenario())


class TestAccountFlow:
    """Tests for profiles and categories."""

    def test_register_seeds_defaults(self, app):
        async def scenario():
            profile = await app.account_flow.register_profile(
                OWNER, "Sam", "Sam@Example.com"
            )
            return profile, await app.account_flow.list_categories(OWNER)

        profile, categories = asyncio.run(scenario())
        assert profile.email == "sam@example.com"
        assert len(categories) == 8
        assert len(app.events(AuditEventType.PROFILE_REGISTERED)) == 1
        seeded = app.events(AuditEventType.DEFAULT_CATEGORIES_SEEDED)
        assert seeded[0].details["count"] == 8

    def test_register_twice(self, app):
        async def scenario():
            await app.account_flow.register_profile(OWNER, "Sam", "sam@example.com")
            await app.account_flow.register_profile(OWNER, "Sam", "sam@example.com")

        with pytest.raises(DuplicateError):
            asyncio.run(scenario())

    def test_update_and_delete_profile(self, app):
        async def scenario():
            await app.account_flow.register_profile(OWNER, "Sam", "sam@example.com")
            updated = await app.account_flow.update_profile(OWNER, display_name="Samira")
            deleted = await app.account_flow.delete_profile(OWNER)
            return updated, deleted, await app.account_flow.get_profile(OWNER)

        updated, deleted, gone = asyncio.run(scenario())
        assert updated.display_name == "Samira"
        assert updated.email == "sam@example.com"
        assert deleted
        assert gone is None

    def test_update_profile_rejects_bad_email(self, app):
        async def scenario():
            await app.account_flow.register_profile(OWNER, "Sam", "sam@example.com")
            await app.account_flow.update_profile(OWNER, email="nope")

        with pytest.raises(ValueError):
            asyncio.run(scenario())

    def test_custom_categories(self, app):
        async def scenario():
            await app.account_flow.register_profile(OWNER, "Sam", "sam@example.com")
            pets = await app.account_flow.add_category(OWNER, "Pets", "expense")
            expenses = await app.account_flow.list_categories(OWNER, kind="expense")
            foreign_delete = await app.account_flow.delete_category(OTHER_OWNER, pets.id)
            deleted = await app.account_flow.delete_category(OWNER, pets.id)
            return pets, expenses, foreign_delete, deleted

        pets, expenses, foreign_delete, deleted = asyncio.run(scenario())
        assert not pets.is_default
        assert "Pets" in {c.name for c in expenses}
        assert foreign_delete is False
        assert deleted is True

    def test_duplicate_category_name(self, app):
        async def scenario():
            await app.account_flow.register_profile(OWNER, "Sam", "sam@example.com")
            await app.account_flow.add_category(OWNER, "food", "expense")

        with pytest.raises(DuplicateError):
            asyncio.run(scenario())

    def test_new_category_known_to_validation(self, app):
        async def scenario():
            await app.account_flow.register_profile(OWNER, "Sam", "sam@example.com")
            before = await app.transaction_flow.validate_input(OWNER, form(category="Pets"))
            await app.account_flow.add_category(OWNER, "Pets", "expense")
            after = await app.transaction_flow.validate_input(OWNER, form(category="Pets"))
            return before, after

        before, after = asyncio.run(scenario())
        assert before.warnings
        assert after.warnings == []


class TestCreateAppComponents:
    """Tests for the component factory."""

    def test_in_memory_components_work_end_to_end(self):
        transaction_flow, budget_flow, reports, account_flow, bus = create_app_components(
            use_storage=False
        )
        assert isinstance(reports, ReportGenerator)

        async def scenario():
            await account_flow.register_profile(OWNER, "Sam", "sam@example.com")
            budget = await budget_flow.create_monthly_budget(OWNER, "Food", "100")
            await transaction_flow.add_transaction(
                OWNER, form(amount="60", occurred_at=None)
            )
            return budget, await budget_flow.list_budget_progress(OWNER)

        budget, progress = asyncio.run(scenario())
        assert progress[0].budget_id == budget.id
        assert progress[0].spent == Decimal("60")
        assert bus.revision(OWNER) == 1
