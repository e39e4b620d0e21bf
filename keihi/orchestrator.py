"""
Main Orchestrator for Keihi

This module ties together all the components and defines the
end-to-end flows for:
1. Receipt Scan (image → preprocess → OCR → extract → confirm → save)
2. CSV Import (statement → preview → select/edit → commit)
3. Ledger (manual income/expense entries, edit, delete)
4. Reports (dashboard, annual summary, tax text, backup)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No data persists without user confirmation
- An import batch is persisted with exactly one storage call
- A scan result that arrives after a newer scan started is dropped
- Every step is audited

Per-user state lives in a BookkeepingSession that the caller passes in;
the flows themselves hold only their collaborators.
"""

import asyncio
from datetime import date, datetime
from pathlib import Path, PurePath
from typing import AsyncIterator, Optional, Sequence
from uuid import UUID

import structlog
from pydantic import ValidationError

from keihi.audit import AuditLogger, create_correlation_id
from keihi.config import get_settings
from keihi.extraction import extract_fields, suggest_category
from keihi.imports import ImportSession, ImportSessionClosedError, NoRowsSelectedError
from keihi.models.transaction import (
    AnnualSummary,
    Category,
    DashboardSummary,
    ImportResult,
    ImportState,
    ScanStage,
    ScanUpdate,
    StatementParseResult,
    StatementRow,
    Transaction,
    TransactionKind,
    TransactionSource,
)
from keihi.reports import (
    build_annual_summary,
    build_backup_export,
    build_dashboard,
    recent_transactions,
    render_tax_summary_text,
)
from keihi.services.image import ImageDecodeError, ImagePreprocessor, load_image
from keihi.services.ocr import (
    OCRError,
    OCRServiceInterface,
    OCRUnavailableError,
    TesseractOCRService,
)
from keihi.services.statements import StatementCsvParser
from keihi.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)
from keihi.session import BookkeepingSession, PendingReceipt
from keihi.validation import ReceiptValidator


logger = structlog.get_logger(__name__)


# Overall progress at the start of each scan stage
PROGRESS_DECODING = 0
PROGRESS_PREPROCESSING = 5
PROGRESS_RECOGNIZING = 15
PROGRESS_EXTRACTING = 90
PROGRESS_COMPLETED = 100


class NoPendingReceiptError(Exception):
    """Confirm or cancel was called with no receipt on the confirm screen."""

    def __init__(self, message: str = "No scanned receipt is waiting for confirmation"):
        super().__init__(message)


class ReceiptScanFlow:
    """
    Orchestrates the receipt scan flow.

    Flow:
    1. Decode → image bytes to a Pillow image
    2. Preprocess → grayscale, contrast, binarize
    3. Recognize → OCR to raw text (progress reported)
    4. Extract → propose amount, date, description, category
    5. Review → Present to user (PAUSE - require confirmation)
    6. Confirm → User explicitly approves (possibly after edits)
    7. Save → Persist to storage

    User confirmation (step 6) is MANDATORY.
    The system NEVER auto-saves.
    """

    def __init__(
        self,
        storage: TransactionStorageInterface,
        ocr_service: Optional[OCRServiceInterface] = None,
        preprocessor: Optional[ImagePreprocessor] = None,
        validator: Optional[ReceiptValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        language_hints: Optional[Sequence[str]] = None,
    ):
        self._storage = storage
        self._ocr_service = ocr_service or TesseractOCRService()
        self._preprocessor = preprocessor or ImagePreprocessor()
        self._validator = validator or ReceiptValidator()
        self._audit_logger = audit_logger or AuditLogger()
        self._language_hints = language_hints
        app_settings = get_settings().app
        self._max_upload_bytes = app_settings.max_upload_size_bytes
        self._supported_formats = app_settings.supported_formats_list

    async def scan(
        self,
        session: BookkeepingSession,
        image_bytes: bytes,
        filename: Optional[str] = None,
        today: Optional[date] = None,
    ) -> AsyncIterator[ScanUpdate]:
        """
        Scan one receipt photo.

        Starting a scan supersedes any scan still running for the same
        session. Closing the generator early cancels recognition.

        Yields:
            ScanUpdates with increasing progress. The last one is
            COMPLETED (with the proposed receipt), FAILED (with an
            error) or SUPERSEDED.
        """
        attempt_id = session.begin_scan()
        correlation_id = create_correlation_id()
        session.clear_pending_receipt()

        await self._audit_logger.log_scan_started(
            attempt_id=attempt_id,
            filename=filename,
            file_size=len(image_bytes),
            correlation_id=correlation_id,
        )
        yield ScanUpdate(attempt_id=attempt_id, stage=ScanStage.DECODING, progress=PROGRESS_DECODING)

        # Step 1: Decode
        try:
            if len(image_bytes) > self._max_upload_bytes:
                raise ImageDecodeError(
                    f"Image is {len(image_bytes):,} bytes; limit is {self._max_upload_bytes:,}"
                )
            extension = PurePath(filename).suffix.lstrip(".").lower() if filename else ""
            if extension and extension not in self._supported_formats:
                raise ImageDecodeError(f"Unsupported image format: .{extension}")
            image = await asyncio.to_thread(load_image, image_bytes)
        except ImageDecodeError as e:
            session.end_scan(attempt_id)
            await self._audit_logger.log_image_decode_failed(
                attempt_id=attempt_id,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            yield self._failed(attempt_id, PROGRESS_DECODING, e)
            return

        # Step 2: Preprocess
        yield ScanUpdate(attempt_id=attempt_id, stage=ScanStage.PREPROCESSING, progress=PROGRESS_PREPROCESSING)
        bitmap = await asyncio.to_thread(self._preprocessor.preprocess, image)
        if not session.is_current_attempt(attempt_id):
            yield await self._superseded(attempt_id, PROGRESS_PREPROCESSING, correlation_id)
            return

        # Step 3: Recognize
        yield ScanUpdate(attempt_id=attempt_id, stage=ScanStage.RECOGNIZING, progress=PROGRESS_RECOGNIZING)
        progress = PROGRESS_RECOGNIZING
        queue: asyncio.Queue = asyncio.Queue()
        loop = asyncio.get_running_loop()

        def on_progress(fraction: float) -> None:
            loop.call_soon_threadsafe(queue.put_nowait, fraction)

        task = asyncio.create_task(
            self._ocr_service.recognize(bitmap, self._language_hints, on_progress)
        )
        try:
            while True:
                getter = asyncio.ensure_future(queue.get())
                try:
                    await asyncio.wait({task, getter}, return_when=asyncio.FIRST_COMPLETED)
                finally:
                    if not getter.done():
                        getter.cancel()

                if getter.done() and not getter.cancelled():
                    fraction = min(max(getter.result(), 0.0), 1.0)
                    span = PROGRESS_EXTRACTING - PROGRESS_RECOGNIZING
                    new_progress = PROGRESS_RECOGNIZING + int(fraction * span)
                    if new_progress > progress:
                        progress = new_progress
                        yield ScanUpdate(
                            attempt_id=attempt_id,
                            stage=ScanStage.RECOGNIZING,
                            progress=progress,
                        )
                    continue

                if task.done():
                    break

            text = task.result()
        except OCRError as e:
            if not session.is_current_attempt(attempt_id):
                yield await self._superseded(attempt_id, progress, correlation_id)
                return
            session.end_scan(attempt_id)
            if isinstance(e, OCRUnavailableError):
                await self._audit_logger.log_external_service_error(
                    service="tesseract",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            await self._audit_logger.log_ocr_failed(
                attempt_id=attempt_id,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            yield self._failed(attempt_id, progress, e)
            return
        finally:
            if not task.done():
                task.cancel()

        # A newer scan (or a cancel) started while we were recognizing
        if not session.is_current_attempt(attempt_id):
            yield await self._superseded(attempt_id, progress, correlation_id)
            return

        await self._audit_logger.log_ocr_completed(
            attempt_id=attempt_id,
            line_count=len([line for line in text.splitlines() if line.strip()]),
            correlation_id=correlation_id,
        )

        # Step 4: Extract
        yield ScanUpdate(attempt_id=attempt_id, stage=ScanStage.EXTRACTING, progress=PROGRESS_EXTRACTING)
        receipt = extract_fields(text, today=today)
        category = suggest_category(receipt.description)
        validation = self._validator.validate(receipt, today=today)

        session.pending_receipt = PendingReceipt(
            attempt_id=attempt_id,
            receipt=receipt,
            suggested_category=category,
            validation=validation,
            correlation_id=correlation_id,
            filename=filename,
        )
        session.end_scan(attempt_id)

        await self._audit_logger.log_fields_extracted(
            attempt_id=attempt_id,
            amount=receipt.amount,
            receipt_date=receipt.receipt_date.isoformat(),
            category=category.value,
            unresolved_fields=list(receipt.unresolved_fields),
            correlation_id=correlation_id,
        )

        yield ScanUpdate(
            attempt_id=attempt_id,
            stage=ScanStage.COMPLETED,
            progress=PROGRESS_COMPLETED,
            receipt=receipt,
            suggested_category=category,
            validation=validation,
        )

    def _failed(self, attempt_id: UUID, progress: int, error: Exception) -> ScanUpdate:
        logger.warning("scan_failed", attempt_id=str(attempt_id), error=str(error))
        return ScanUpdate(
            attempt_id=attempt_id,
            stage=ScanStage.FAILED,
            progress=progress,
            error=f"scan failed: {error}",
        )

    async def _superseded(
        self,
        attempt_id: UUID,
        progress: int,
        correlation_id: UUID,
    ) -> ScanUpdate:
        await self._audit_logger.log_scan_superseded(
            attempt_id=attempt_id,
            correlation_id=correlation_id,
        )
        return ScanUpdate(
            attempt_id=attempt_id,
            stage=ScanStage.SUPERSEDED,
            progress=progress,
        )

    async def confirm_and_save(
        self,
        session: BookkeepingSession,
        amount: Optional[int] = None,
        receipt_date: Optional[date] = None,
        description: Optional[str] = None,
        category: Optional[Category] = None,
        receipt_path: Optional[str] = None,
    ) -> Transaction:
        """
        Confirm the receipt on the confirm screen and save it.

        CRITICAL: This is called ONLY after explicit user confirmation.

        Args:
            session: The user's session holding the pending receipt
            amount, receipt_date, description, category: User edits;
                None keeps the proposed value

        Returns:
            The saved Transaction

        Raises:
            NoPendingReceiptError: Nothing was scanned
            IncompleteReceiptError: Amount still missing or an edit is out of
                range (pending kept)
            StorageError: Save failed (pending kept for retry)
        """
        pending = session.pending_receipt
        if pending is None:
            raise NoPendingReceiptError()

        updates: dict = {}
        if amount is not None:
            updates["amount"] = amount
        if receipt_date is not None:
            updates["receipt_date"] = receipt_date
        if description is not None:
            updates["description"] = description.strip()
        updates["unresolved_fields"] = tuple(
            name for name in pending.receipt.unresolved_fields if name not in updates
        )
        corrected = self._validator.apply_corrections(pending.receipt, updates)
        self._validator.require_submittable(corrected)

        record = Transaction(
            book_id=session.book_id,
            kind=TransactionKind.EXPENSE,
            transaction_date=corrected.receipt_date,
            amount=corrected.amount,
            category=category or pending.suggested_category,
            description=corrected.description,
            source=TransactionSource.OCR,
            receipt_path=receipt_path,
        )

        await self._audit_logger.log_receipt_confirmed(
            transaction_id=record.id,
            attempt_id=pending.attempt_id,
            correlation_id=pending.correlation_id,
        )

        try:
            await self._storage.commit_single(record)
        except StorageError as e:
            await self._audit_logger.log_save_failed(
                entity_type="transaction",
                entity_id=record.id,
                error_message=str(e),
                correlation_id=pending.correlation_id,
            )
            raise

        session.clear_pending_receipt()
        await self._audit_logger.log_transaction_saved(
            transaction_id=record.id,
            description=record.description,
            amount=record.amount,
            source=record.source.value,
            correlation_id=pending.correlation_id,
        )
        return record

    async def cancel(self, session: BookkeepingSession) -> None:
        """
        Close the scan without saving.

        Drops the pending receipt and makes any scan still in flight
        come back as superseded.
        """
        pending = session.clear_pending_receipt()
        in_flight = session.current_attempt_id
        session.current_attempt_id = None

        attempt_id = pending.attempt_id if pending else in_flight
        if attempt_id is None:
            return

        await self._audit_logger.log_receipt_cancelled(
            attempt_id=attempt_id,
            correlation_id=pending.correlation_id if pending else create_correlation_id(),
        )


class CsvImportFlow:
    """
    Orchestrates the statement import flow.

    Flow:
    1. Parse → statement CSV to normalized rows
    2. Preview → candidates with suggested categories, all included
    3. Edit → user toggles rows and overrides categories
    4. Commit → included rows persisted with ONE storage call

    One import per user session; starting a new one replaces any
    uncommitted preview.
    """

    def __init__(
        self,
        storage: TransactionStorageInterface,
        parser: Optional[StatementCsvParser] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._parser = parser or StatementCsvParser()
        self._audit_logger = audit_logger or AuditLogger()

    async def parse_upload(
        self,
        csv_bytes: bytes,
        correlation_id: Optional[UUID] = None,
    ) -> StatementParseResult:
        """
        Parse a statement file.

        Raises:
            StatementFormatError: The file is not a usable statement
        """
        correlation_id = correlation_id or create_correlation_id()
        result = self._parser.parse(csv_bytes)
        await self._audit_logger.log_statement_parsed(
            row_count=result.row_count,
            skipped_count=len(result.skipped),
            encoding=result.encoding,
            correlation_id=correlation_id,
        )
        return result

    async def start_import_session(
        self,
        session: BookkeepingSession,
        rows: Sequence[StatementRow],
    ) -> ImportSession:
        """Open a preview for parsed rows, replacing any uncommitted one."""
        import_session = ImportSession.start(rows)
        previous = session.replace_import(import_session)

        if previous is not None and previous.state not in (ImportState.COMMITTING, ImportState.COMMITTED):
            await self._audit_logger.log_import_discarded(
                session_id=previous.session_id,
                reason="replaced by a new upload",
                correlation_id=previous.session_id,
            )

        await self._audit_logger.log_import_started(
            session_id=import_session.session_id,
            row_count=len(import_session.rows),
            correlation_id=import_session.session_id,
        )
        return import_session

    async def upload(
        self,
        session: BookkeepingSession,
        csv_bytes: bytes,
    ) -> tuple[ImportSession, StatementParseResult]:
        """Parse a statement and open its preview in one step."""
        result = await self.parse_upload(csv_bytes)
        import_session = await self.start_import_session(session, result.rows)
        return import_session, result

    def _current(self, session: BookkeepingSession) -> ImportSession:
        if session.import_session is None:
            raise ImportSessionClosedError("No import in progress")
        return session.import_session

    def toggle_row(
        self,
        session: BookkeepingSession,
        index: int,
        included: Optional[bool] = None,
    ) -> bool:
        return self._current(session).toggle_row(index, included)

    def set_row_category(
        self,
        session: BookkeepingSession,
        index: int,
        category: Category,
    ) -> None:
        self._current(session).set_row_category(index, category)

    async def commit_session(self, session: BookkeepingSession) -> ImportResult:
        """
        Persist the included rows.

        Returns:
            ImportResult with the number of records stored

        Raises:
            NoRowsSelectedError: Nothing included (no storage call, PREVIEW kept)
            ImportSessionClosedError: This import is already being committed
            StorageError: Storage rejected the batch (PREVIEW restored for retry)
        """
        import_session = self._current(session)
        correlation_id = import_session.session_id

        try:
            batch = import_session.begin_commit(session.book_id)
        except NoRowsSelectedError:
            await self._audit_logger.log_import_no_selection(
                session_id=import_session.session_id,
                correlation_id=correlation_id,
            )
            raise

        try:
            imported_count = await self._storage.commit_transactions(session.book_id, batch)
        except StorageError as e:
            import_session.abort_commit()
            await self._audit_logger.log_save_failed(
                entity_type="import",
                entity_id=import_session.session_id,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise
        except asyncio.CancelledError:
            import_session.abort_commit()
            raise

        import_session.mark_committed()
        # A newer upload may have replaced this import while storage was busy
        if session.import_session is import_session:
            session.discard_import()

        await self._audit_logger.log_import_committed(
            session_id=import_session.session_id,
            imported_count=imported_count,
            correlation_id=correlation_id,
        )
        return ImportResult(
            session_id=import_session.session_id,
            imported_count=imported_count,
            committed_at=import_session.committed_at,
        )

    async def cancel_import(self, session: BookkeepingSession) -> None:
        """Return the open preview to the upload step."""
        import_session = self._current(session)
        import_session.cancel()
        await self._audit_logger.log_import_discarded(
            session_id=import_session.session_id,
            reason="cancelled by user",
            correlation_id=import_session.session_id,
        )


class InvalidEntryError(Exception):
    """A manual entry or edit is missing a required field or breaks a field rule."""
    pass


class LedgerFlow:
    """
    Manual income and expense entries, and edit or delete of any record.

    Deleting a record also removes its receipt file when receipts_dir is
    configured and the file lies inside it.
    """

    def __init__(
        self,
        storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        receipts_dir: Optional[str] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        if receipts_dir is None:
            receipts_dir = get_settings().app.receipts_dir
        self._receipts_dir = Path(receipts_dir) if receipts_dir else None

    @staticmethod
    def _require(transaction_date: Optional[date], amount: Optional[int]) -> None:
        if transaction_date is None or not amount:
            raise InvalidEntryError("Date and amount are required")
        if amount < 0:
            raise InvalidEntryError("Amount must be greater than zero")

    @staticmethod
    def _build(values: dict) -> Transaction:
        try:
            return Transaction.model_validate(values)
        except ValidationError as e:
            raise InvalidEntryError(str(e)) from e

    async def _save(self, record: Transaction) -> Transaction:
        correlation_id = create_correlation_id()
        try:
            await self._storage.commit_single(record)
        except StorageError as e:
            await self._audit_logger.log_save_failed(
                entity_type="transaction",
                entity_id=record.id,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_transaction_saved(
            transaction_id=record.id,
            description=record.description,
            amount=record.amount,
            source=record.source.value,
            correlation_id=correlation_id,
        )
        return record

    async def add_income(
        self,
        book_id: str,
        transaction_date: Optional[date],
        amount: Optional[int],
        income_type: Optional[str] = None,
        description: str = "",
    ) -> Transaction:
        """
        Record income. income_type defaults to 振込.

        Raises:
            InvalidEntryError: Date or amount missing, or a field rule broken
            StorageError: Save failed
        """
        self._require(transaction_date, amount)
        record = self._build({
            "book_id": book_id,
            "kind": TransactionKind.INCOME,
            "transaction_date": transaction_date,
            "amount": amount,
            "income_type": income_type or None,
            "description": description,
        })
        return await self._save(record)

    async def add_expense(
        self,
        book_id: str,
        transaction_date: Optional[date],
        amount: Optional[int],
        category: Optional[Category],
        description: str = "",
        receipt_path: Optional[str] = None,
        source: TransactionSource = TransactionSource.MANUAL,
    ) -> Transaction:
        """
        Record an expense.

        Raises:
            InvalidEntryError: Date, amount or category missing, or a
                field rule broken
            StorageError: Save failed
        """
        self._require(transaction_date, amount)
        if category is None:
            raise InvalidEntryError("Expense entries require a category")
        record = self._build({
            "book_id": book_id,
            "kind": TransactionKind.EXPENSE,
            "transaction_date": transaction_date,
            "amount": amount,
            "category": category,
            "description": description,
            "receipt_path": receipt_path,
            "source": source,
        })
        return await self._save(record)

    async def list_income(
        self,
        book_id: str,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> list[Transaction]:
        return await self._storage.list_transactions(
            book_id, year=year, month=month, kind=TransactionKind.INCOME,
        )

    async def list_expenses(
        self,
        book_id: str,
        year: Optional[int] = None,
        month: Optional[int] = None,
        category: Optional[Category] = None,
    ) -> list[Transaction]:
        return await self._storage.list_transactions(
            book_id, year=year, month=month, kind=TransactionKind.EXPENSE, category=category,
        )

    async def update_transaction(
        self,
        book_id: str,
        transaction_id: UUID,
        transaction_date: Optional[date] = None,
        amount: Optional[int] = None,
        category: Optional[Category] = None,
        income_type: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Transaction:
        """
        Edit a stored record. None leaves a field unchanged.

        Raises:
            NotFoundError: No such record in the book
            InvalidEntryError: An edit breaks a field rule (e.g. a category
                on income); nothing is written
            StorageError: Update failed
        """
        existing = await self._storage.get_transaction(book_id, transaction_id)
        if existing is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")

        edits = {
            "transaction_date": transaction_date,
            "amount": amount,
            "category": category,
            "income_type": income_type,
            "description": description,
        }
        changes = {name: value for name, value in edits.items() if value is not None}
        if "amount" in changes and changes["amount"] <= 0:
            raise InvalidEntryError("Amount must be greater than zero")
        updated = self._build({**existing.model_dump(), **changes})

        correlation_id = create_correlation_id()
        try:
            stored = await self._storage.update_transaction(updated)
        except StorageError as e:
            await self._audit_logger.log_save_failed(
                entity_type="transaction",
                entity_id=transaction_id,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_transaction_updated(
            transaction_id=transaction_id,
            changed_fields=[name for name in changes if getattr(existing, name) != getattr(stored, name)],
            correlation_id=correlation_id,
        )
        return stored

    async def delete_transaction(self, book_id: str, transaction_id: UUID) -> bool:
        """
        Delete one record and its receipt file.

        Returns:
            False if the record did not exist

        Raises:
            StorageError: Delete failed (the receipt file is kept)
        """
        existing = await self._storage.get_transaction(book_id, transaction_id)
        if existing is None:
            return False

        correlation_id = create_correlation_id()
        try:
            deleted = await self._storage.delete_transaction(book_id, transaction_id)
        except StorageError as e:
            await self._audit_logger.log_save_failed(
                entity_type="transaction",
                entity_id=transaction_id,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise
        if not deleted:
            return False

        receipt_removed = await self._remove_receipt(existing.receipt_path)
        await self._audit_logger.log_transaction_deleted(
            transaction_id=transaction_id,
            receipt_removed=receipt_removed,
            correlation_id=correlation_id,
        )
        return True

    async def _remove_receipt(self, receipt_path: Optional[str]) -> bool:
        if not receipt_path or self._receipts_dir is None:
            return False

        root = self._receipts_dir.resolve()
        target = (root / receipt_path.lstrip("/")).resolve()
        if root not in target.parents:
            logger.warning("receipt_outside_receipts_dir", receipt_path=receipt_path)
            return False

        try:
            await asyncio.to_thread(target.unlink)
        except FileNotFoundError:
            return False
        except OSError as e:
            # The record is already gone; a stray file is only reported
            logger.warning("receipt_delete_failed", receipt_path=receipt_path, error=str(e))
            return False
        return True


class ReportFlow:
    """Read-only reports over one book."""

    def __init__(
        self,
        storage: TransactionStorageInterface,
        blue_return_deduction: Optional[int] = None,
    ):
        self._storage = storage
        if blue_return_deduction is None:
            blue_return_deduction = get_settings().app.blue_return_deduction
        self._deduction = blue_return_deduction

    async def annual_summary(self, book_id: str, year: int) -> AnnualSummary:
        records = await self._storage.list_transactions(book_id, year=year)
        return build_annual_summary(records, year)

    async def tax_summary_text(self, book_id: str, year: int) -> str:
        """The 確定申告 text block for one year."""
        summary = await self.annual_summary(book_id, year)
        return render_tax_summary_text(summary, self._deduction)

    async def dashboard(self, book_id: str, today: Optional[date] = None) -> DashboardSummary:
        """This year and month at a glance; today defaults to the local date."""
        records = await self._storage.list_transactions(book_id)
        return build_dashboard(records, today or date.today())

    async def recent(self, book_id: str, limit: int = 10) -> list[Transaction]:
        records = await self._storage.list_transactions(book_id)
        return recent_transactions(records, limit)

    async def export_backup(
        self,
        book_id: str,
        exported_at: Optional[datetime] = None,
    ) -> dict:
        """JSON-ready backup of every record in the book."""
        records = await self._storage.list_transactions(book_id)
        return build_backup_export(records, exported_at)


def create_app_components(
    use_storage: bool = True,
) -> tuple[ReceiptScanFlow, CsvImportFlow, LedgerFlow, ReportFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to keep everything in memory.

    Returns:
        (receipt_scan_flow, csv_import_flow, ledger_flow, report_flow, sheets_client)
    """
    sheets_client = None
    storage: TransactionStorageInterface = InMemoryTransactionStorage()
    audit_logger = AuditLogger()  # Local-only logging

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            storage = GoogleSheetsTransactionStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            storage = InMemoryTransactionStorage()
            audit_logger = AuditLogger()

    receipt_scan_flow = ReceiptScanFlow(
        storage=storage,
        audit_logger=audit_logger,
    )
    csv_import_flow = CsvImportFlow(
        storage=storage,
        audit_logger=audit_logger,
    )
    ledger_flow = LedgerFlow(
        storage=storage,
        audit_logger=audit_logger,
    )
    report_flow = ReportFlow(storage=storage)

    return receipt_scan_flow, csv_import_flow, ledger_flow, report_flow, sheets_client
