"""
Data Models Package

This package contains all Pydantic models used in Keihi.
All data flowing through the system must conform to these schemas.
"""

from keihi.models.transaction import (
    DEFAULT_INCOME_TYPE,
    FALLBACK_CATEGORY,
    AnnualSummary,
    Category,
    CategoryDefinition,
    CategoryTotal,
    DashboardSummary,
    ExtractedReceipt,
    ImportResult,
    ImportState,
    MonthlyTotal,
    ScanStage,
    ScanUpdate,
    SkippedRow,
    StatementParseResult,
    StatementRow,
    Transaction,
    TransactionCandidate,
    TransactionKind,
    TransactionSource,
    ValidationIssue,
    ValidationResult,
)
from keihi.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "DEFAULT_INCOME_TYPE",
    "FALLBACK_CATEGORY",
    "AnnualSummary",
    "Category",
    "CategoryDefinition",
    "CategoryTotal",
    "DashboardSummary",
    "ExtractedReceipt",
    "ImportResult",
    "ImportState",
    "MonthlyTotal",
    "ScanStage",
    "ScanUpdate",
    "SkippedRow",
    "StatementParseResult",
    "StatementRow",
    "Transaction",
    "TransactionCandidate",
    "TransactionKind",
    "TransactionSource",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
