"""
Audit Logger

DESIGN DECISION: Every write to a user's records is logged.
This provides:
1. Complete traceability
2. Debugging capability
3. A place where data-quality problems (drifted budget totals) show up

The audit logger:
- Is async to match the storage layer
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from expense_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from expense_tracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_added(
        self,
        transaction_id: UUID,
        owner_id: str,
        kind: str,
        amount: Decimal,
        category: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.transaction_added(
            transaction_id=transaction_id,
            owner_id=owner_id,
            kind=kind,
            amount=str(amount),
            category=category,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_updated(
        self,
        transaction_id: UUID,
        owner_id: str,
        changed_fields: list[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.transaction_updated(
            transaction_id=transaction_id,
            owner_id=owner_id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_deleted(
        self,
        transaction_id: UUID,
        owner_id: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_rejected(
        self,
        input_id: UUID,
        owner_id: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log a form submission that failed validation."""
        event = AuditEventBuilder.transaction_rejected(
            input_id=input_id,
            owner_id=owner_id,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_budget_created(
        self,
        budget_id: UUID,
        owner_id: str,
        category: str,
        amount: Decimal,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.budget_created(
            budget_id=budget_id,
            owner_id=owner_id,
            category=category,
            amount=str(amount),
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_budget_updated(
        self,
        budget_id: UUID,
        owner_id: str,
        changes: dict[str, str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.budget_updated(
            budget_id=budget_id,
            owner_id=owner_id,
            changes=changes,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_budget_deleted(
        self,
        budget_id: UUID,
        owner_id: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.budget_deleted(
            budget_id=budget_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_budget_spent_corrected(
        self,
        budget_id: UUID,
        owner_id: str,
        stored: Decimal,
        recomputed: Decimal,
        correlation_id: UUID,
    ) -> None:
        """Log a cached spent total that had drifted from the transactions."""
        event = AuditEventBuilder.budget_spent_corrected(
            budget_id=budget_id,
            owner_id=owner_id,
            stored=stored,
            recomputed=recomputed,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_category_added(
        self,
        category_id: UUID,
        owner_id: str,
        name: str,
        kind: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.category_added(
            category_id=category_id,
            owner_id=owner_id,
            name=name,
            kind=kind,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_category_deleted(
        self,
        category_id: UUID,
        owner_id: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.category_deleted(
            category_id=category_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_default_categories_seeded(
        self,
        owner_id: str,
        count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.default_categories_seeded(
            owner_id=owner_id,
            count=count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_profile_event(
        self,
        event_type: AuditEventType,
        owner_id: str,
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> None:
        event = AuditEventBuilder.profile_event(
            event_type=event_type,
            owner_id=owner_id,
            correlation_id=correlation_id,
            details=details,
        )
        await self.log(event)

    async def log_report_generated(
        self,
        owner_id: str,
        report_type: str,
        period: str,
        transaction_count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.report_generated(
            owner_id=owner_id,
            report_type=report_type,
            period=period,
            transaction_count=transaction_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., adding a transaction).
    Pass it through all subsequent operations.
    """
    return uuid4()
