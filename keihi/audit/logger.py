"""
Audit Logger

DESIGN DECISION: Every significant bookkeeping step is logged.
This provides:
1. Complete traceability of what was scanned, imported and saved
2. Debugging capability for OCR misreads
3. User can see history of their interactions

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace one scan or one import end to end
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from keihi.models.audit import AuditEvent, AuditEventBuilder
from keihi.services.storage import AuditStorageInterface


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
        structlog.processors.JSONRenderer(ensure_ascii=False)
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
    2. Audit storage, when configured (Google Sheets or in-memory)
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
        self._logger = structlog.get_logger("keihi.audit")

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

    async def log_scan_started(
        self,
        attempt_id: UUID,
        filename: Optional[str],
        file_size: int,
        correlation_id: UUID,
    ) -> None:
        """Log receipt scan start."""
        await self.log(AuditEventBuilder.scan_started(
            attempt_id=attempt_id,
            filename=filename,
            file_size=file_size,
            correlation_id=correlation_id,
        ))

    async def log_image_decode_failed(
        self,
        attempt_id: UUID,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.image_decode_failed(
            attempt_id=attempt_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_ocr_completed(
        self,
        attempt_id: UUID,
        line_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log OCR completion."""
        await self.log(AuditEventBuilder.ocr_completed(
            attempt_id=attempt_id,
            line_count=line_count,
            correlation_id=correlation_id,
        ))

    async def log_ocr_failed(
        self,
        attempt_id: UUID,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.ocr_failed(
            attempt_id=attempt_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_scan_superseded(
        self,
        attempt_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.scan_superseded(
            attempt_id=attempt_id,
            correlation_id=correlation_id,
        ))

    async def log_fields_extracted(
        self,
        attempt_id: UUID,
        amount: int,
        receipt_date: str,
        category: str,
        unresolved_fields: list[str],
        correlation_id: UUID,
    ) -> None:
        """Log the fields proposed for the confirm screen."""
        await self.log(AuditEventBuilder.fields_extracted(
            attempt_id=attempt_id,
            amount=amount,
            receipt_date=receipt_date,
            category=category,
            unresolved_fields=unresolved_fields,
            correlation_id=correlation_id,
        ))

    async def log_receipt_confirmed(
        self,
        transaction_id: UUID,
        attempt_id: UUID,
        correlation_id: UUID,
    ) -> None:
        """Log user confirmation."""
        await self.log(AuditEventBuilder.receipt_confirmed(
            transaction_id=transaction_id,
            attempt_id=attempt_id,
            correlation_id=correlation_id,
        ))

    async def log_receipt_cancelled(
        self,
        attempt_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.receipt_cancelled(
            attempt_id=attempt_id,
            correlation_id=correlation_id,
        ))

    async def log_statement_parsed(
        self,
        row_count: int,
        skipped_count: int,
        encoding: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.statement_parsed(
            row_count=row_count,
            skipped_count=skipped_count,
            encoding=encoding,
            correlation_id=correlation_id,
        ))

    async def log_import_started(
        self,
        session_id: UUID,
        row_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.import_started(
            session_id=session_id,
            row_count=row_count,
            correlation_id=correlation_id,
        ))

    async def log_import_discarded(
        self,
        session_id: UUID,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.import_discarded(
            session_id=session_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_import_no_selection(
        self,
        session_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.import_no_selection(
            session_id=session_id,
            correlation_id=correlation_id,
        ))

    async def log_import_committed(
        self,
        session_id: UUID,
        imported_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log a successful import commit."""
        await self.log(AuditEventBuilder.import_committed(
            session_id=session_id,
            imported_count=imported_count,
            correlation_id=correlation_id,
        ))

    async def log_transaction_saved(
        self,
        transaction_id: UUID,
        description: str,
        amount: int,
        source: str,
        correlation_id: UUID,
    ) -> None:
        """Log a single record save."""
        await self.log(AuditEventBuilder.transaction_saved(
            transaction_id=transaction_id,
            description=description,
            amount=amount,
            source=source,
            correlation_id=correlation_id,
        ))

    async def log_transaction_updated(
        self,
        transaction_id: UUID,
        changed_fields: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_updated(
            transaction_id=transaction_id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        ))

    async def log_transaction_deleted(
        self,
        transaction_id: UUID,
        receipt_removed: bool,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            receipt_removed=receipt_removed,
            correlation_id=correlation_id,
        ))

    async def log_save_failed(
        self,
        entity_type: str,
        entity_id: UUID,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.save_failed(
            entity_type=entity_type,
            entity_id=entity_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a failure of a service outside the app (OCR engine, spreadsheet)."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., receipt scan).
    Pass it through all subsequent operations.
    """
    return uuid4()
