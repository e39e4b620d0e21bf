"""
Per-user bookkeeping session.

Everything the flows need to remember between calls for one user lives
here, passed explicitly: the book being edited, the current scan
attempt, the receipt waiting on the confirm screen, and the open CSV
import. Nothing is module-global, so two users never share state.
"""

from dataclasses import dataclass, field
from typing import Optional
from uuid import UUID, uuid4

from keihi.config import get_settings
from keihi.imports.session import ImportSession
from keihi.models.transaction import Category, ExtractedReceipt, ValidationResult


@dataclass
class PendingReceipt:
    """A scanned receipt shown on the confirm screen, not yet saved."""

    attempt_id: UUID
    receipt: ExtractedReceipt
    suggested_category: Category
    validation: ValidationResult
    correlation_id: UUID
    filename: Optional[str] = None


@dataclass
class BookkeepingSession:
    """
    State of one user's session.

    Attempt ids order receipt scans: only the latest attempt may
    publish a result. An import session started later replaces any
    uncommitted earlier one.
    """

    book_id: str
    session_id: UUID = field(default_factory=uuid4)
    current_attempt_id: Optional[UUID] = None
    pending_receipt: Optional[PendingReceipt] = None
    import_session: Optional[ImportSession] = None

    def begin_scan(self) -> UUID:
        """Start a new scan attempt, superseding any in flight."""
        self.current_attempt_id = uuid4()
        return self.current_attempt_id

    def is_current_attempt(self, attempt_id: UUID) -> bool:
        return self.current_attempt_id == attempt_id

    def end_scan(self, attempt_id: UUID) -> None:
        """Forget the attempt if it is still the current one."""
        if self.is_current_attempt(attempt_id):
            self.current_attempt_id = None

    def clear_pending_receipt(self) -> Optional[PendingReceipt]:
        pending = self.pending_receipt
        self.pending_receipt = None
        return pending

    def replace_import(self, import_session: ImportSession) -> Optional[ImportSession]:
        """
        Install a new import session.

        Returns:
            The uncommitted session it replaced, if any
        """
        previous = self.import_session
        self.import_session = import_session
        return previous

    def discard_import(self) -> Optional[ImportSession]:
        previous = self.import_session
        self.import_session = None
        return previous


def new_session(book_id: Optional[str] = None) -> BookkeepingSession:
    """Open a session on book_id, or on the configured default book."""
    return BookkeepingSession(book_id=book_id or get_settings().app.default_book_id)
