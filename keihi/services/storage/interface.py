"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the receipt and import flows decoupled from storage

The interface is small: the bookkeeping core commits confirmed records,
reads them back for reports, and edits or deletes single records from
the ledger screens.

ATOMICITY: Each commit call is all-or-nothing from the caller's point
of view. If commit_transactions raises, no record of that batch may be
visible afterwards.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from keihi.models.transaction import Category, Transaction, TransactionKind
from keihi.models.audit import AuditEvent


class TransactionStorageInterface(ABC):
    """
    Abstract interface for transaction storage operations.

    Any storage implementation (Google Sheets, SQLite, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def commit_transactions(
        self,
        book_id: str,
        records: list[Transaction],
    ) -> int:
        """
        Persist a batch of records atomically.

        Args:
            book_id: Book every record must belong to
            records: Records to persist, in order

        Returns:
            Number of records persisted

        Raises:
            StorageError: If the batch could not be persisted
                          (nothing from the batch is persisted)
        """
        pass

    @abstractmethod
    async def commit_single(self, record: Transaction) -> UUID:
        """
        Persist one record.

        Returns:
            The record's ID

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_transaction(
        self,
        book_id: str,
        transaction_id: UUID,
    ) -> Optional[Transaction]:
        """Get one record of a book, or None."""
        pass

    @abstractmethod
    async def update_transaction(self, record: Transaction) -> Transaction:
        """
        Replace a stored record with the same id and book.

        Sets record.updated_at.

        Returns:
            The stored record

        Raises:
            NotFoundError: If the record does not exist in its book
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_transaction(
        self,
        book_id: str,
        transaction_id: UUID,
    ) -> bool:
        """
        Delete one record.

        Returns:
            True if deleted, False if it did not exist
        """
        pass

    @abstractmethod
    async def list_transactions(
        self,
        book_id: str,
        year: Optional[int] = None,
        kind: Optional[TransactionKind] = None,
        month: Optional[int] = None,
        category: Optional[Category] = None,
    ) -> list[Transaction]:
        """
        List records of a book, newest first.

        Args:
            book_id: Book to read
            year: Only records dated in this calendar year
            kind: Only income or only expenses
            month: Only records dated in this month (1-12, any year
                   unless year is also given)
            category: Only expenses with this category
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one receipt scan).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
