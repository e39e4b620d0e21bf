"""
CSV Import Session

Holds the preview of one statement upload while the user decides which
rows to import and fixes categories.

STATE MACHINE:
    UPLOAD --start()--> PREVIEW --begin_commit()--> COMMITTING --mark_committed()--> COMMITTED
                         |  ^                          |
                         |  +-------abort_commit()-----+
                         +--cancel()--> UPLOAD

Row edits (toggle, category override) are only accepted in PREVIEW.
While a batch is with storage the session is COMMITTING and rejects
edits, cancel and a second commit. A committed session rejects every
further operation.

The session never persists anything itself. begin_commit() turns the
included rows into Transactions; the caller hands that batch to storage
in one call and then calls mark_committed(), or abort_commit() if
storage failed.
"""

from datetime import datetime
from typing import Optional, Sequence
from uuid import UUID, uuid4

from keihi.extraction.categories import suggest_category
from keihi.models.transaction import (
    Category,
    ImportState,
    StatementRow,
    Transaction,
    TransactionCandidate,
    TransactionKind,
    TransactionSource,
)


class ImportSessionError(Exception):
    """Base exception for import session errors."""
    pass


class NoRowsSelectedError(ImportSessionError):
    """Commit was requested with every row excluded."""

    def __init__(self, message: str = "No rows selected for import"):
        super().__init__(message)


class ImportSessionClosedError(ImportSessionError):
    """The session is not in a state that accepts this operation."""
    pass


class RowIndexError(ImportSessionError):
    """A row index outside the preview was given."""
    pass


class ImportRow:
    """One preview row: candidate plus the user's decisions."""

    def __init__(self, index: int, candidate: TransactionCandidate):
        self.index = index
        self.candidate = candidate
        self.included = True
        self.category_override: Optional[Category] = None

    @property
    def category(self) -> Category:
        """The category the row will be imported with."""
        return self.category_override or self.candidate.suggested_category

    def __repr__(self) -> str:
        return (
            f"ImportRow(index={self.index}, included={self.included}, "
            f"category={self.category.value})"
        )


def build_candidate(row: StatementRow) -> TransactionCandidate:
    """Attach a suggested category to a parsed statement row."""
    return TransactionCandidate(
        transaction_date=row.transaction_date,
        amount=row.amount,
        description=row.description,
        suggested_category=suggest_category(row.description),
    )


class ImportSession:
    """
    Preview state of one CSV import.

    Usage:
        session = ImportSession.start(parse_result.rows)
        session.toggle_row(2)
        session.set_row_category(0, Category.TRAVEL)
        batch = session.begin_commit(book_id)
        try:
            await storage.commit_transactions(book_id, batch)
        except StorageError:
            session.abort_commit()
            raise
        session.mark_committed()
    """

    def __init__(self, session_id: Optional[UUID] = None):
        self.session_id = session_id or uuid4()
        self.state = ImportState.UPLOAD
        self.rows: list[ImportRow] = []
        self.created_at = datetime.utcnow()
        self.committed_at: Optional[datetime] = None

    @classmethod
    def start(cls, rows: Sequence[StatementRow]) -> "ImportSession":
        """Create a session already in PREVIEW for the given rows."""
        session = cls()
        session.load(rows)
        return session

    def _require_state(self, *allowed: ImportState) -> None:
        if self.state == ImportState.COMMITTED:
            raise ImportSessionClosedError(
                f"Import session {self.session_id} is already committed"
            )
        if self.state == ImportState.COMMITTING and ImportState.COMMITTING not in allowed:
            raise ImportSessionClosedError(
                f"Import session {self.session_id} is already being committed"
            )
        if self.state not in allowed:
            raise ImportSessionClosedError(
                f"Operation not allowed in state {self.state.value}"
            )

    def _row(self, index: int) -> ImportRow:
        if not 0 <= index < len(self.rows):
            raise RowIndexError(
                f"Row {index} out of range (0..{len(self.rows) - 1})"
            )
        return self.rows[index]

    def load(self, rows: Sequence[StatementRow]) -> None:
        """Build candidates for every row and enter PREVIEW. All rows start included."""
        self._require_state(ImportState.UPLOAD)
        self.rows = [
            ImportRow(index, build_candidate(row))
            for index, row in enumerate(rows)
        ]
        self.state = ImportState.PREVIEW

    def toggle_row(self, index: int, included: Optional[bool] = None) -> bool:
        """
        Flip (or set) a row's include flag.

        Returns:
            The row's new include flag
        """
        self._require_state(ImportState.PREVIEW)
        row = self._row(index)
        row.included = (not row.included) if included is None else included
        return row.included

    def set_row_category(self, index: int, category: Category) -> None:
        """Override the suggested category for one row."""
        self._require_state(ImportState.PREVIEW)
        self._row(index).category_override = Category(category)

    @property
    def selected_rows(self) -> list[ImportRow]:
        return [row for row in self.rows if row.included]

    @property
    def selected_count(self) -> int:
        return len(self.selected_rows)

    def build_commit_batch(self, book_id: str) -> list[Transaction]:
        """
        Turn the included rows into expense records, in preview order.

        Raises:
            NoRowsSelectedError: Every row is excluded (state stays PREVIEW)
        """
        self._require_state(ImportState.PREVIEW)
        selected = self.selected_rows
        if not selected:
            raise NoRowsSelectedError()

        return [
            Transaction(
                book_id=book_id,
                kind=TransactionKind.EXPENSE,
                transaction_date=row.candidate.transaction_date,
                amount=abs(row.candidate.amount),
                category=row.category,
                description=row.candidate.description,
                source=TransactionSource.CSV,
            )
            for row in selected
        ]

    def begin_commit(self, book_id: str) -> list[Transaction]:
        """
        Build the batch and hold the session in COMMITTING until storage answers.

        Raises:
            NoRowsSelectedError: Every row is excluded (state stays PREVIEW)
            ImportSessionClosedError: A commit is already in flight
        """
        batch = self.build_commit_batch(book_id)
        self.state = ImportState.COMMITTING
        return batch

    def abort_commit(self) -> None:
        """Storage rejected the batch; reopen the preview for a retry."""
        self._require_state(ImportState.COMMITTING)
        self.state = ImportState.PREVIEW

    def mark_committed(self) -> None:
        """Close the session after storage accepted the batch."""
        self._require_state(ImportState.COMMITTING)
        self.state = ImportState.COMMITTED
        self.committed_at = datetime.utcnow()

    def cancel(self) -> None:
        """Drop the preview and return to UPLOAD."""
        self._require_state(ImportState.PREVIEW, ImportState.UPLOAD)
        self.rows = []
        self.state = ImportState.UPLOAD
