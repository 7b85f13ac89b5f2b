"""
Transaction Change Notifications

Screens and services that show derived data (balances, budget progress)
need to know when an owner's transactions changed.

DESIGN DECISION: This is an explicit channel that the component factory
creates and hands to whoever needs it, instead of a process-wide refresh
counter. Subscribers see every change in the order it was published, and a
per-owner revision number lets a caller cheaply tell whether its snapshot
is stale.
"""

import inspect
from collections.abc import Awaitable, Callable
from datetime import datetime
from enum import Enum
from typing import Optional, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from expense_tracker.models.records import TransactionKind, utc_now


logger = structlog.get_logger(__name__)


class ChangeType(str, Enum):
    ADDED = "added"
    UPDATED = "updated"
    DELETED = "deleted"


class TransactionChange(BaseModel):
    """One change to one transaction."""

    change_type: ChangeType
    owner_id: str
    transaction_id: UUID
    kind: TransactionKind
    category: str
    previous_category: Optional[str] = Field(
        default=None,
        description="Category before an edit, when the edit moved it"
    )
    correlation_id: Optional[UUID] = None
    occurred_at: datetime = Field(default_factory=utc_now)

    @property
    def affected_categories(self) -> list[str]:
        """Every category whose totals this change can move."""
        categories = [self.category]
        if self.previous_category and self.previous_category != self.category:
            categories.append(self.previous_category)
        return categories


ChangeHandler = Callable[[TransactionChange], Union[None, Awaitable[None]]]


class TransactionEventBus:
    """
    Publish/subscribe channel for transaction changes.

    Handlers may be plain functions or coroutine functions.
    A failing handler is logged and skipped; it never stops the others
    from running or the write that published the change.
    """

    def __init__(self):
        self._handlers: list[ChangeHandler] = []
        self._revisions: dict[str, int] = {}

    def subscribe(self, handler: ChangeHandler) -> Callable[[], None]:
        """Register a handler. Returns a function that unregisters it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def revision(self, owner_id: str) -> int:
        """How many changes have been published for this owner."""
        return self._revisions.get(owner_id, 0)

    async def publish(self, change: TransactionChange) -> None:
        self._revisions[change.owner_id] = self.revision(change.owner_id) + 1

        for handler in list(self._handlers):
            try:
                result = handler(change)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "transaction_change_handler_failed",
                    handler=getattr(handler, "__qualname__", repr(handler)),
                    change_type=change.change_type.value,
                    transaction_id=str(change.transaction_id),
                )
