"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the document store behind the app because:
1. Users can look at their own records directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions - which is why budget totals are recomputed from
  transactions instead of being incremented in place
- Limited query capabilities (we filter in Python)

Each record type lives in its own worksheet, one record per row, with a
header row. Cells are plain text; turning them back into records goes
through the pydantic models, which is where dates get normalized.
"""

import json
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, TypeVar
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import BaseModel
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from expense_tracker.config import GoogleSheetsSettings, get_settings
from expense_tracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
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
    StorageConnectionError,
    StorageError,
    TransactionStorageInterface,
    UserStorageInterface,
)


logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


# Column layouts, one per worksheet
TRANSACTION_COLUMNS = [
    "id",
    "owner_id",
    "kind",
    "amount",
    "title",
    "category",
    "note",
    "occurred_at",
    "created_at",
    "updated_at",
]

BUDGET_COLUMNS = [
    "id",
    "owner_id",
    "category",
    "amount",
    "spent",
    "period",
    "start_date",
    "end_date",
    "is_active",
    "created_at",
    "updated_at",
]

CATEGORY_COLUMNS = [
    "id",
    "owner_id",
    "name",
    "kind",
    "is_default",
    "icon",
    "color",
    "created_at",
]

USER_COLUMNS = [
    "id",
    "display_name",
    "email",
    "avatar_url",
    "created_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "owner_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


# Writes are retried on transient failures, but never on errors that a
# retry cannot fix
write_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type((DuplicateError, NotFoundError)),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get a worksheet, creating it with a header row if it doesn't exist."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            logger.info("creating_worksheet", title=title)
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, rows=5000
        )

    def get_budgets_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.budgets_sheet_name, BUDGET_COLUMNS)

    def get_categories_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.categories_sheet_name, CATEGORY_COLUMNS)

    def get_users_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.users_sheet_name, USER_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self.get_worksheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


def record_to_row(record: BaseModel, columns: list[str]) -> list[str]:
    """Serialize a record to a row of text cells in column order."""
    data = record.model_dump(mode="json")
    row = []
    for column in columns:
        value = data.get(column)
        row.append("" if value is None else str(value))
    return row


def row_to_record(row: list[str], columns: list[str], model: type[RecordT]) -> RecordT:
    """
    Parse a row of text cells back into a record.

    Missing trailing cells and empty cells are left out so the model's
    defaults apply.
    """
    values: dict[str, Any] = {}
    for index, column in enumerate(columns):
        if index < len(row) and row[index] != "":
            values[column] = row[index]
    return model.model_validate(values)


class _GoogleSheetsRecordStorage(ABC):
    """
    Shared row handling for one worksheet of records.

    Row numbers are 1-based and row 1 is the header, so the first record
    lives on row 2.
    """

    columns: list[str] = []
    model: type[BaseModel] = BaseModel
    record_name = "record"

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @abstractmethod
    def _sheet(self) -> gspread.Worksheet:
        """The worksheet holding this record type."""

    def _records(self) -> list[tuple[int, Any]]:
        """All parseable records with their row numbers, in sheet order."""
        records = []
        all_rows = self._sheet().get_all_values()[1:]  # Skip header
        for row_number, row in enumerate(all_rows, start=2):
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                records.append((row_number, row_to_record(row, self.columns, self.model)))
            except ValueError as e:
                logger.warning(
                    "skipping_malformed_row",
                    record=self.record_name,
                    row_number=row_number,
                    error=str(e),
                )
        return records

    def _find_row(self, record_id: Any) -> Optional[int]:
        key = str(record_id)
        all_rows = self._sheet().get_all_values()
        for row_number, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == key:
                return row_number
        return None

    def _append(self, record: BaseModel, record_id: Any) -> bool:
        if self._find_row(record_id) is not None:
            raise DuplicateError(f"{self.record_name.capitalize()} already exists: {record_id}")
        self._sheet().append_row(
            record_to_row(record, self.columns), value_input_option="RAW"
        )
        return True

    def _replace(self, record: BaseModel, record_id: Any) -> bool:
        row_number = self._find_row(record_id)
        if row_number is None:
            raise NotFoundError(f"{self.record_name.capitalize()} not found: {record_id}")
        sheet = self._sheet()
        for col_idx, value in enumerate(record_to_row(record, self.columns), start=1):
            sheet.update_cell(row_number, col_idx, value)
        return True

    def _delete(self, record_id: Any) -> bool:
        row_number = self._find_row(record_id)
        if row_number is None:
            return False
        self._sheet().delete_rows(row_number)
        return True

    def _get(self, record_id: Any) -> Optional[Any]:
        key = str(record_id)
        for _, record in self._records():
            if str(record.id) == key:
                return record
        return None


class GoogleSheetsTransactionStorage(_GoogleSheetsRecordStorage, TransactionStorageInterface):
    """Transactions, one per row."""

    columns = TRANSACTION_COLUMNS
    model = Transaction
    record_name = "transaction"

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_transactions_sheet()

    @write_retry
    async def save_transaction(self, transaction: Transaction) -> bool:
        try:
            return self._append(transaction, transaction.id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        try:
            return self._get(transaction_id)
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")

    @write_retry
    async def update_transaction(self, transaction: Transaction) -> bool:
        try:
            return self._replace(transaction, transaction.id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        try:
            return self._delete(transaction_id)
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")

    async def list_transactions(
        self,
        owner_id: str,
        kind: Optional[TransactionKind] = None,
        category: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        try:
            transactions = []
            for _, tx in self._records():
                # Apply filters
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
                transactions.append(tx)
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

        # Sort by date descending (newest first)
        transactions.sort(key=lambda t: t.occurred_at, reverse=True)
        return transactions[:limit] if limit is not None else transactions


class GoogleSheetsBudgetStorage(_GoogleSheetsRecordStorage, BudgetStorageInterface):
    """Budgets, one per row, with their cached spent totals."""

    columns = BUDGET_COLUMNS
    model = Budget
    record_name = "budget"

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_budgets_sheet()

    @write_retry
    async def save_budget(self, budget: Budget) -> bool:
        try:
            return self._append(budget, budget.id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save budget: {e}")

    async def get_budget(self, budget_id: UUID) -> Optional[Budget]:
        try:
            return self._get(budget_id)
        except Exception as e:
            raise StorageError(f"Failed to get budget: {e}")

    @write_retry
    async def update_budget(self, budget: Budget) -> bool:
        try:
            return self._replace(budget, budget.id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update budget: {e}")

    async def delete_budget(self, budget_id: UUID) -> bool:
        try:
            return self._delete(budget_id)
        except Exception as e:
            raise StorageError(f"Failed to delete budget: {e}")

    async def list_budgets(
        self,
        owner_id: str,
        category: Optional[str] = None,
        active_only: bool = False,
    ) -> list[Budget]:
        try:
            return [
                budget for _, budget in self._records()
                if budget.owner_id == owner_id
                and (category is None or budget.category == category)
                and (not active_only or budget.is_active)
            ]
        except Exception as e:
            raise StorageError(f"Failed to list budgets: {e}")

    @write_retry
    async def set_budget_spent(self, budget_id: UUID, new_amount: Decimal) -> bool:
        """Write the spent and updated_at cells of one budget row."""
        try:
            row_number = self._find_row(budget_id)
            if row_number is None:
                return False
            sheet = self._sheet()
            sheet.update_cell(
                row_number, BUDGET_COLUMNS.index("spent") + 1, str(new_amount)
            )
            sheet.update_cell(
                row_number, BUDGET_COLUMNS.index("updated_at") + 1, utc_now().isoformat()
            )
            return True
        except Exception as e:
            raise StorageError(f"Failed to update budget spent: {e}")


class GoogleSheetsCategoryStorage(_GoogleSheetsRecordStorage, CategoryStorageInterface):
    """Categories, one per row."""

    columns = CATEGORY_COLUMNS
    model = Category
    record_name = "category"

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_categories_sheet()

    @write_retry
    async def save_category(self, category: Category) -> bool:
        try:
            return self._append(category, category.id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save category: {e}")

    @write_retry
    async def save_categories(self, categories: list[Category]) -> int:
        """Append all rows with a single API call."""
        try:
            rows = [record_to_row(c, CATEGORY_COLUMNS) for c in categories]
            if rows:
                self._sheet().append_rows(rows, value_input_option="RAW")
            return len(rows)
        except Exception as e:
            raise StorageError(f"Failed to save categories: {e}")

    async def list_categories(
        self,
        owner_id: str,
        kind: Optional[TransactionKind] = None,
    ) -> list[Category]:
        try:
            return [
                c for _, c in self._records()
                if c.owner_id == owner_id and (kind is None or c.kind == kind)
            ]
        except Exception as e:
            raise StorageError(f"Failed to list categories: {e}")

    async def list_default_categories(
        self,
        kind: Optional[TransactionKind] = None,
    ) -> list[Category]:
        try:
            return [
                c for _, c in self._records()
                if c.is_default and (kind is None or c.kind == kind)
            ]
        except Exception as e:
            raise StorageError(f"Failed to list default categories: {e}")

    @write_retry
    async def update_category(self, category: Category) -> bool:
        try:
            return self._replace(category, category.id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update category: {e}")

    async def delete_category(self, category_id: UUID) -> bool:
        try:
            return self._delete(category_id)
        except Exception as e:
            raise StorageError(f"Failed to delete category: {e}")


class GoogleSheetsUserStorage(_GoogleSheetsRecordStorage, UserStorageInterface):
    """User profiles, one per row, keyed by the identity-provider uid."""

    columns = USER_COLUMNS
    model = UserProfile
    record_name = "profile"

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_users_sheet()

    @write_retry
    async def save_profile(self, profile: UserProfile) -> bool:
        try:
            return self._append(profile, profile.id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save profile: {e}")

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        try:
            return self._get(user_id)
        except Exception as e:
            raise StorageError(f"Failed to get profile: {e}")

    @write_retry
    async def update_profile(self, profile: UserProfile) -> bool:
        try:
            return self._replace(profile, profile.id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update profile: {e}")

    async def delete_profile(self, user_id: str) -> bool:
        try:
            return self._delete(user_id)
        except Exception as e:
            raise StorageError(f"Failed to delete profile: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            owner_id=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=UUID(safe_get(6)) if safe_get(6) else None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )

    def _all_events(self) -> list[AuditEvent]:
        events = []
        for row in self._client.get_audit_sheet().get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError as e:
                logger.warning("skipping_malformed_audit_row", error=str(e))
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        sheet = self._client.get_audit_sheet()
        sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._all_events() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._all_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._all_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
