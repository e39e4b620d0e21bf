"""
Core Data Models for Keihi

These models define the schemas for everything flowing through the
receipt and statement pipelines. They are designed to:
1. Enforce the bookkeeping invariants at runtime (whole-yen amounts,
   valid calendar dates, taxonomy categories)
2. Provide clear validation error messages
3. Serialize dates as YYYY-MM-DD for storage and logging

DESIGN DECISION: Amounts are plain integers in yen.
The system is single-currency and yen has no minor unit, so there is
nothing for a Decimal to carry.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Category(str, Enum):
    """
    Expense categories (勘定科目) used for the tax return.

    DESIGN DECISION: The declaration order here is the order the
    category suggester walks. Earlier members win ties.
    """
    OUTSOURCING = "outsourcing"
    TRAVEL = "travel"
    COMMUNICATION = "communication"
    SUPPLIES = "supplies"
    ADVERTISING = "advertising"
    ENTERTAINMENT = "entertainment"
    DEPRECIATION = "depreciation"
    HOME_OFFICE = "home_office"
    FEES = "fees"
    MISC = "misc"  # Fallback when no keyword matches


FALLBACK_CATEGORY = Category.MISC

DEFAULT_INCOME_TYPE = "振込"


class TransactionKind(str, Enum):
    """Direction of a bookkeeping record."""
    INCOME = "income"
    EXPENSE = "expense"


class TransactionSource(str, Enum):
    """Where a record came from."""
    MANUAL = "manual"
    OCR = "ocr"
    CSV = "csv"
    API = "api"


class ImportState(str, Enum):
    """
    CSV import session state.

    UPLOAD → PREVIEW → COMMITTING → COMMITTED, or PREVIEW → UPLOAD on
    cancel. COMMITTING falls back to PREVIEW when storage fails.
    COMMITTED is terminal.
    """
    UPLOAD = "upload"
    PREVIEW = "preview"
    COMMITTING = "committing"
    COMMITTED = "committed"


class ScanStage(str, Enum):
    """Stage reported by a receipt scan progress update."""
    DECODING = "decoding"
    PREPROCESSING = "preprocessing"
    RECOGNIZING = "recognizing"
    EXTRACTING = "extracting"
    COMPLETED = "completed"
    FAILED = "failed"
    SUPERSEDED = "superseded"  # A newer scan started; this result is dropped


# =============================================================================
# CATEGORY TAXONOMY ENTRY
# =============================================================================

class CategoryDefinition(BaseModel):
    """
    One entry of the fixed category taxonomy.

    Keywords are lower-case and kept as an ordered tuple so the
    suggester's first-match semantics never depend on set or dict order.
    """
    model_config = ConfigDict(frozen=True)

    id: Category
    display_name: str = Field(..., min_length=1)
    icon: str = Field(default="")
    keywords: tuple[str, ...] = Field(default_factory=tuple)


# =============================================================================
# RECEIPT EXTRACTION
# =============================================================================

class ExtractedReceipt(BaseModel):
    """
    Fields proposed from OCR text.

    CRITICAL: This is PROPOSED data, NOT verified.
    It MUST be shown on the confirm screen before anything is saved.

    A field that could not be found falls back to a default
    (amount 0, today's date, empty description) and is listed in
    unresolved_fields so the confirm screen can demand correction.
    """
    model_config = ConfigDict(frozen=True)

    amount: int = Field(
        default=0,
        ge=0,
        description="Proposed total in yen (0 = not found)"
    )
    receipt_date: date = Field(
        ...,
        description="Proposed receipt date"
    )
    description: str = Field(
        default="",
        max_length=50,
        description="Proposed vendor / description"
    )
    unresolved_fields: tuple[str, ...] = Field(
        default_factory=tuple,
        description="Fields that fell back to their defaults"
    )

    @property
    def is_complete(self) -> bool:
        """True when every field came from the receipt text."""
        return not self.unresolved_fields


# =============================================================================
# STATEMENT CSV
# =============================================================================

class StatementRow(BaseModel):
    """A normalized row read from a card/bank statement CSV."""
    model_config = ConfigDict(str_strip_whitespace=True)

    line_number: int = Field(
        ...,
        ge=1,
        description="Line in the source file (header is line 1)"
    )
    transaction_date: date
    amount: int = Field(
        ...,
        description="Amount as the statement states it (sign preserved)"
    )
    description: str = Field(default="")


class SkippedRow(BaseModel):
    """A statement row that could not be normalized."""

    line_number: int = Field(..., ge=1)
    reason: str
    raw: dict[str, str] = Field(default_factory=dict)


class StatementParseResult(BaseModel):
    """Output of the statement CSV parser."""

    rows: list[StatementRow] = Field(default_factory=list)
    skipped: list[SkippedRow] = Field(default_factory=list)
    encoding: str = Field(default="utf-8")

    @property
    def row_count(self) -> int:
        return len(self.rows)


class TransactionCandidate(BaseModel):
    """
    One previewed import row with its suggested category.

    Lives only for one import session.
    """
    model_config = ConfigDict(frozen=True)

    transaction_date: date
    amount: int
    description: str = ""
    suggested_category: Category = FALLBACK_CATEGORY


# =============================================================================
# PERSISTED RECORD
# =============================================================================

class Transaction(BaseModel):
    """
    An income or expense record as the storage layer persists it.

    CRITICAL: Records built from OCR or CSV data are only created after
    the user has confirmed them.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique record ID"
    )
    book_id: str = Field(
        ...,
        min_length=1,
        description="Book (ledger) this record belongs to"
    )
    kind: TransactionKind
    transaction_date: date
    amount: int = Field(
        ...,
        ge=0,
        description="Amount in yen"
    )

    # Expenses carry a category, income carries a type (振込, 現金, ...)
    category: Optional[Category] = None
    income_type: Optional[str] = Field(
        default=None,
        max_length=50
    )

    description: str = Field(
        default="",
        max_length=500
    )
    source: TransactionSource = TransactionSource.MANUAL
    receipt_path: Optional[str] = None
    created_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    updated_at: Optional[datetime] = None

    @model_validator(mode='after')
    def validate_kind_fields(self) -> 'Transaction':
        """Expenses need a category; income needs a type and no category."""
        if self.kind == TransactionKind.EXPENSE:
            if self.category is None:
                raise ValueError("Expense records require a category")
            if self.income_type is not None:
                raise ValueError("Expense records cannot have an income type")
        else:
            if self.category is not None:
                raise ValueError("Income records cannot have an expense category")
            if not self.income_type:
                self.income_type = DEFAULT_INCOME_TYPE
        return self

    @property
    def category_or_type(self) -> str:
        """Category id for expenses, income type for income."""
        if self.kind == TransactionKind.EXPENSE:
            return self.category.value
        return self.income_type


class ImportResult(BaseModel):
    """Reported back to the caller after a successful import commit."""

    session_id: UUID
    imported_count: int = Field(..., ge=0)
    committed_at: datetime = Field(default_factory=datetime.utcnow)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'future_date', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of validating a receipt for the confirm screen.

    Errors block submission until the user corrects the field.
    Warnings are shown but do not block.
    """

    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def can_submit(self) -> bool:
        return not self.has_errors


# =============================================================================
# SCAN PROGRESS
# =============================================================================

class ScanUpdate(BaseModel):
    """
    One progress update of a receipt scan.

    The last update of a scan has stage COMPLETED, FAILED or SUPERSEDED.
    Only COMPLETED carries a receipt.
    """

    attempt_id: UUID
    stage: ScanStage
    progress: int = Field(
        ...,
        ge=0,
        le=100,
        description="Overall completion percentage"
    )
    receipt: Optional[ExtractedReceipt] = None
    suggested_category: Optional[Category] = None
    validation: Optional[ValidationResult] = None
    error: Optional[str] = None

    @property
    def is_final(self) -> bool:
        return self.stage in (ScanStage.COMPLETED, ScanStage.FAILED, ScanStage.SUPERSEDED)


# =============================================================================
# REPORT MODELS
# =============================================================================

class CategoryTotal(BaseModel):
    """Expense total for one category."""

    category: Category
    display_name: str
    total: int = Field(..., ge=0)
    count: int = Field(..., ge=0)


class MonthlyTotal(BaseModel):
    """Income and expense totals for one month."""

    month: int = Field(..., ge=1, le=12)
    income: int = Field(default=0, ge=0)
    expense: int = Field(default=0, ge=0)


class AnnualSummary(BaseModel):
    """Yearly totals used by the report screen and the tax text."""

    year: int = Field(..., ge=2000, le=2099)
    income: int = Field(default=0, ge=0)
    expenses: int = Field(default=0, ge=0)
    breakdown: list[CategoryTotal] = Field(default_factory=list)
    monthly: list[MonthlyTotal] = Field(default_factory=list)

    @property
    def profit(self) -> int:
        return self.income - self.expenses


class DashboardSummary(BaseModel):
    """
    This year and this month at a glance.

    recent mixes income and expenses from every year, newest first.
    """

    year: int = Field(..., ge=2000, le=2099)
    month: int = Field(..., ge=1, le=12)
    year_income: int = Field(default=0, ge=0)
    year_expense: int = Field(default=0, ge=0)
    month_income: int = Field(default=0, ge=0)
    month_expense: int = Field(default=0, ge=0)
    recent: list[Transaction] = Field(default_factory=list)
    breakdown: list[CategoryTotal] = Field(default_factory=list)
    monthly: list[MonthlyTotal] = Field(default_factory=list)

    @property
    def year_profit(self) -> int:
        return self.year_income - self.year_expense
