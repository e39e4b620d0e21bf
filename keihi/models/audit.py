"""
Audit Models for Keihi

Every significant step of a receipt scan or statement import is logged.
This provides:
1. Traceability from a saved record back to the scan or CSV it came from
2. Debugging information when OCR or storage goes wrong
3. A history the user can inspect

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step in the scan and import pipelines has its own event type.
    """
    # Receipt scanning
    SCAN_STARTED = "scan_started"
    IMAGE_DECODE_FAILED = "image_decode_failed"
    OCR_COMPLETED = "ocr_completed"
    OCR_FAILED = "ocr_failed"
    SCAN_SUPERSEDED = "scan_superseded"
    FIELDS_EXTRACTED = "fields_extracted"

    # Human confirmation
    RECEIPT_CONFIRMED = "receipt_confirmed"
    RECEIPT_CANCELLED = "receipt_cancelled"

    # Statement import
    STATEMENT_PARSED = "statement_parsed"
    IMPORT_STARTED = "import_started"
    IMPORT_DISCARDED = "import_discarded"
    IMPORT_NO_SELECTION = "import_no_selection"
    IMPORT_COMMITTED = "import_committed"

    # Persistence
    TRANSACTION_SAVED = "transaction_saved"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    SAVE_FAILED = "save_failed"

    # System events
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'scan', 'import', 'transaction')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one scan)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, ensure_ascii=False) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.scan_started(attempt_id, filename, correlation_id)
        event = AuditEventBuilder.import_committed(session_id, 3, correlation_id)
    """

    @staticmethod
    def scan_started(
        attempt_id: UUID,
        filename: Optional[str],
        file_size: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SCAN_STARTED,
            entity_type="scan",
            entity_id=attempt_id,
            correlation_id=correlation_id,
            description=f"Receipt scan started: {filename or 'unnamed image'}",
            details={
                "filename": filename,
                "file_size_bytes": file_size,
            },
            is_user_action=True,
        )

    @staticmethod
    def image_decode_failed(
        attempt_id: UUID,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMAGE_DECODE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="scan",
            entity_id=attempt_id,
            correlation_id=correlation_id,
            description="Receipt image could not be decoded",
            error_message=error_message,
        )

    @staticmethod
    def ocr_completed(
        attempt_id: UUID,
        line_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCR_COMPLETED,
            entity_type="scan",
            entity_id=attempt_id,
            correlation_id=correlation_id,
            description=f"OCR completed with {line_count} text lines",
            details={
                "line_count": line_count,
            },
        )

    @staticmethod
    def ocr_failed(
        attempt_id: UUID,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCR_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="scan",
            entity_id=attempt_id,
            correlation_id=correlation_id,
            description="OCR recognition failed",
            error_message=error_message,
        )

    @staticmethod
    def scan_superseded(
        attempt_id: UUID,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SCAN_SUPERSEDED,
            entity_type="scan",
            entity_id=attempt_id,
            correlation_id=correlation_id,
            description="Scan result dropped: a newer scan was started",
        )

    @staticmethod
    def fields_extracted(
        attempt_id: UUID,
        amount: int,
        receipt_date: str,
        category: str,
        unresolved_fields: list[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FIELDS_EXTRACTED,
            severity=AuditSeverity.WARNING if unresolved_fields else AuditSeverity.INFO,
            entity_type="scan",
            entity_id=attempt_id,
            correlation_id=correlation_id,
            description=f"Receipt fields proposed: ¥{amount:,} on {receipt_date}",
            details={
                "amount": amount,
                "receipt_date": receipt_date,
                "suggested_category": category,
                "unresolved_fields": unresolved_fields,
            },
        )

    @staticmethod
    def receipt_confirmed(
        transaction_id: UUID,
        attempt_id: UUID,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_CONFIRMED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="User confirmed receipt data",
            details={
                "attempt_id": str(attempt_id),
            },
            is_user_action=True,
        )

    @staticmethod
    def receipt_cancelled(
        attempt_id: UUID,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_CANCELLED,
            entity_type="scan",
            entity_id=attempt_id,
            correlation_id=correlation_id,
            description="User closed the scan without saving",
            is_user_action=True,
        )

    @staticmethod
    def statement_parsed(
        row_count: int,
        skipped_count: int,
        encoding: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATEMENT_PARSED,
            severity=AuditSeverity.WARNING if skipped_count else AuditSeverity.INFO,
            entity_type="statement",
            correlation_id=correlation_id,
            description=f"Statement parsed: {row_count} rows, {skipped_count} skipped",
            details={
                "row_count": row_count,
                "skipped_count": skipped_count,
                "encoding": encoding,
            },
        )

    @staticmethod
    def import_started(
        session_id: UUID,
        row_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_STARTED,
            entity_type="import",
            entity_id=session_id,
            correlation_id=correlation_id,
            description=f"Import preview opened with {row_count} rows",
            details={
                "row_count": row_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def import_discarded(
        session_id: UUID,
        reason: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_DISCARDED,
            entity_type="import",
            entity_id=session_id,
            correlation_id=correlation_id,
            description="Uncommitted import discarded",
            details={
                "reason": reason,
            },
        )

    @staticmethod
    def import_no_selection(
        session_id: UUID,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_NO_SELECTION,
            severity=AuditSeverity.WARNING,
            entity_type="import",
            entity_id=session_id,
            correlation_id=correlation_id,
            description="Import commit rejected: no rows selected",
            is_user_action=True,
        )

    @staticmethod
    def import_committed(
        session_id: UUID,
        imported_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_COMMITTED,
            entity_type="import",
            entity_id=session_id,
            correlation_id=correlation_id,
            description=f"Imported {imported_count} transactions",
            details={
                "imported_count": imported_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_saved(
        transaction_id: UUID,
        description: str,
        amount: int,
        source: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction saved: {description or '(no description)'} - ¥{amount:,}",
            details={
                "amount": amount,
                "source": source,
            },
        )

    @staticmethod
    def transaction_updated(
        transaction_id: UUID,
        changed_fields: list[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction updated: {', '.join(changed_fields) or 'no changes'}",
            details={
                "changed_fields": changed_fields,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: UUID,
        receipt_removed: bool,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted",
            details={
                "receipt_removed": receipt_removed,
            },
            is_user_action=True,
        )

    @staticmethod
    def save_failed(
        entity_type: str,
        entity_id: UUID,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Saving {entity_type} failed",
            error_message=error_message,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
