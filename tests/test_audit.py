"""Tests for the audit logger."""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import uuid4

from expense_tracker.audit import AuditLogger, create_correlation_id
from expense_tracker.models.audit import AuditEventBuilder, AuditEventType, AuditSeverity
from expense_tracker.services.storage import InMemoryAuditStorage, StorageError


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_local_only_logging_succeeds(self):
        """Without storage, logging locally counts as success."""
        logger = AuditLogger()
        event = AuditEventBuilder.system_error(
            error_type="boom",
            error_message="something broke",
            correlation_id=create_correlation_id(),
        )
        assert asyncio.run(logger.log(event)) is True

    def test_events_persisted_with_correlation(self):
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        correlation_id = create_correlation_id()
        transaction_id = uuid4()

        async def scenario():
            await logger.log_transaction_added(
                transaction_id=transaction_id,
                owner_id="user-1",
                kind="expense",
                amount=Decimal("12.50"),
                category="Food",
                correlation_id=correlation_id,
            )
            await logger.log_transaction_deleted(
                transaction_id=transaction_id,
                owner_id="user-1",
                correlation_id=correlation_id,
            )
            return await storage.get_events_by_entity("transaction", transaction_id)

        events = asyncio.run(scenario())
        assert [e.event_type for e in events] == [
            AuditEventType.TRANSACTION_ADDED,
            AuditEventType.TRANSACTION_DELETED,
        ]
        assert events[0].details["amount"] == "12.50"
        assert all(e.correlation_id == correlation_id for e in events)

    def test_storage_failure_does_not_raise(self):
        """A broken audit store never breaks the action being audited."""
        storage = AsyncMock()
        storage.append_event.side_effect = StorageError("sheet unavailable")
        logger = AuditLogger(storage)

        async def scenario():
            await logger.log_budget_spent_corrected(
                budget_id=uuid4(),
                owner_id="user-1",
                stored=Decimal("10"),
                recomputed=Decimal("12"),
                correlation_id=uuid4(),
            )

        asyncio.run(scenario())
        event = storage.append_event.call_args.args[0]
        assert event.severity == AuditSeverity.WARNING

    def test_log_reports_storage_result(self):
        storage = AsyncMock()
        storage.append_event.side_effect = StorageError("sheet unavailable")
        logger = AuditLogger(storage)

        async def scenario():
            event = AuditEventBuilder.profile_event(
                event_type=AuditEventType.PROFILE_UPDATED,
                owner_id="user-1",
                correlation_id=uuid4(),
            )
            return await logger.log(event)

        assert asyncio.run(scenario()) is False

    def test_profile_event_description(self):
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)

        asyncio.run(logger.log_profile_event(
            event_type=AuditEventType.PROFILE_DELETED,
            owner_id="user-1",
            correlation_id=uuid4(),
        ))
        events = asyncio.run(storage.get_recent_events())
        assert events[0].description == "Profile deleted"
        assert events[0].owner_id == "user-1"
