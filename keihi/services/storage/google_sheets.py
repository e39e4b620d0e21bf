"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the storage backend because:
1. The user (and their tax accountant) can view the book directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for one person's year)
- No transactions: a batch is written with ONE append_rows call, so the
  API either accepts all rows or none
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so we can swap
to SQLite later without changing the flows.
"""

import json
from datetime import date, datetime
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from keihi.config import GoogleSheetsSettings, get_settings
from keihi.models.audit import AuditEvent, AuditEventType, AuditSeverity
from keihi.models.transaction import (
    Category,
    Transaction,
    TransactionKind,
    TransactionSource,
)
from keihi.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)


# Column mappings for Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "book_id",
    "kind",
    "date",
    "amount",
    "category",
    "income_type",
    "description",
    "source",
    "receipt_path",
    "created_at",
    "updated_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


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
            except FileNotFoundError as e:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                ) from e
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}") from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound as e:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name,
            TRANSACTION_COLUMNS,
            rows=1000,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


def transaction_to_row(record: Transaction) -> list:
    """Convert a Transaction to a spreadsheet row."""
    return [
        str(record.id),
        record.book_id,
        record.kind.value,
        record.transaction_date.isoformat(),
        record.amount,
        record.category.value if record.category else "",
        record.income_type or "",
        record.description,
        record.source.value,
        record.receipt_path or "",
        record.created_at.isoformat(),
        record.updated_at.isoformat() if record.updated_at else "",
    ]


def row_to_transaction(row: list) -> Transaction:
    """Convert a spreadsheet row to a Transaction."""
    # Sheets trims trailing empty cells
    def safe_get(index: int, default: str = "") -> str:
        try:
            return str(row[index]) if row[index] != "" else default
        except IndexError:
            return default

    return Transaction(
        id=UUID(safe_get(0)),
        book_id=safe_get(1),
        kind=TransactionKind(safe_get(2)),
        transaction_date=date.fromisoformat(safe_get(3)),
        amount=int(safe_get(4, "0")),
        category=Category(safe_get(5)) if safe_get(5) else None,
        income_type=safe_get(6) or None,
        description=safe_get(7),
        source=TransactionSource(safe_get(8, TransactionSource.MANUAL.value)),
        receipt_path=safe_get(9) or None,
        created_at=datetime.fromisoformat(safe_get(10)),
        updated_at=datetime.fromisoformat(safe_get(11)) if safe_get(11) else None,
    )


class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """
    Google Sheets implementation of transaction storage.

    All books share one worksheet; book_id is a column.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append_rows(self, rows: list[list]) -> None:
        sheet = self._client.get_transactions_sheet()
        sheet.append_rows(rows, value_input_option="RAW")

    async def commit_transactions(
        self,
        book_id: str,
        records: list[Transaction],
    ) -> int:
        """Append the whole batch in a single API call."""
        for record in records:
            if record.book_id != book_id:
                raise StorageError(
                    f"Record {record.id} belongs to book {record.book_id!r}, "
                    f"not {book_id!r}"
                )
        if not records:
            return 0

        try:
            self._append_rows([transaction_to_row(record) for record in records])
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save transactions: {e}") from e

        logger.info("transactions_committed", book_id=book_id, count=len(records))
        return len(records)

    async def commit_single(self, record: Transaction) -> UUID:
        """Save one confirmed record."""
        await self.commit_transactions(record.book_id, [record])
        return record.id

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _update_row(self, row_number: int, row: list) -> None:
        sheet = self._client.get_transactions_sheet()
        sheet.update(range_name=f"A{row_number}", values=[row], value_input_option="RAW")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _delete_row(self, row_number: int) -> None:
        sheet = self._client.get_transactions_sheet()
        sheet.delete_rows(row_number)

    def _find_row(
        self,
        book_id: str,
        transaction_id: UUID,
    ) -> Optional[tuple[int, list]]:
        """Sheet row number (header is row 1) and cells of one record."""
        sheet = self._client.get_transactions_sheet()
        all_rows = sheet.get_all_values()
        for row_number, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == str(transaction_id) and len(row) > 1 and row[1] == book_id:
                return row_number, row
        return None

    async def get_transaction(
        self,
        book_id: str,
        transaction_id: UUID,
    ) -> Optional[Transaction]:
        """Retrieve a record by its ID."""
        try:
            found = self._find_row(book_id, transaction_id)
            return row_to_transaction(found[1]) if found else None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}") from e

    async def update_transaction(self, record: Transaction) -> Transaction:
        """Rewrite the record's row in place."""
        try:
            found = self._find_row(record.book_id, record.id)
            if found is None:
                raise NotFoundError(f"Transaction not found: {record.id}")
            record.updated_at = datetime.utcnow()
            self._update_row(found[0], transaction_to_row(record))
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}") from e

        logger.info("transaction_updated", book_id=record.book_id, transaction_id=str(record.id))
        return record

    async def delete_transaction(
        self,
        book_id: str,
        transaction_id: UUID,
    ) -> bool:
        """Delete a record's row."""
        try:
            found = self._find_row(book_id, transaction_id)
            if found is None:
                return False
            self._delete_row(found[0])
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}") from e

        logger.info("transaction_deleted", book_id=book_id, transaction_id=str(transaction_id))
        return True

    async def list_transactions(
        self,
        book_id: str,
        year: Optional[int] = None,
        kind: Optional[TransactionKind] = None,
        month: Optional[int] = None,
        category: Optional[Category] = None,
    ) -> list[Transaction]:
        """List records with optional filters, newest first."""
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}") from e

        records = []
        for line_number, row in enumerate(all_rows, start=2):
            if not row or not row[0] or len(row) < 2 or row[1] != book_id:
                continue

            try:
                record = row_to_transaction(row)
            except ValueError as e:
                logger.warning(
                    "malformed_transaction_row",
                    row=line_number,
                    error=str(e),
                )
                continue

            # Apply filters
            if year is not None and record.transaction_date.year != year:
                continue
            if month is not None and record.transaction_date.month != month:
                continue
            if kind is not None and record.kind != kind:
                continue
            if category is not None and record.category != category:
                continue

            records.append(record)

        # Sort by date descending (newest first)
        records.sort(key=lambda r: (r.transaction_date, r.created_at), reverse=True)
        return records


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
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError as e:
                logger.warning("malformed_audit_row", error=str(e))
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Failures are logged, never raised."""
        try:
            self._append_row(event.to_sheets_row())
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning(
                "audit_write_failed",
                event_type=event.event_type.value,
                error=str(e),
            )
            return False

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append_row(self, row: list) -> None:
        sheet = self._client.get_audit_sheet()
        sheet.append_row(row, value_input_option="RAW")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID, in chronological order."""
        events = [
            event for event in self._read_events()
            if event.correlation_id == correlation_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events, newest first."""
        events = self._read_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
