"""
In-Memory Storage Implementation

Used for local runs without Google Sheets and as the test double for
the flows. Follows the same contract as the other backends, including
all-or-nothing batch commits.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from keihi.models.audit import AuditEvent
from keihi.models.transaction import Category, Transaction, TransactionKind
from keihi.services.storage.interface import (
    AuditStorageInterface,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)


class InMemoryTransactionStorage(TransactionStorageInterface):
    """
    Keeps records in a per-book list.

    commit_calls counts batch commits so callers (and tests) can see
    how many times persistence was actually invoked.
    """

    def __init__(self):
        self._books: dict[str, list[Transaction]] = {}
        self.commit_calls = 0

    async def commit_transactions(
        self,
        book_id: str,
        records: list[Transaction],
    ) -> int:
        self.commit_calls += 1

        # Check the whole batch before touching the book
        for record in records:
            if record.book_id != book_id:
                raise StorageError(
                    f"Record {record.id} belongs to book {record.book_id!r}, "
                    f"not {book_id!r}"
                )

        existing = {record.id for record in self._books.get(book_id, [])}
        duplicates = [str(record.id) for record in records if record.id in existing]
        if duplicates:
            raise StorageError(f"Records already exist: {', '.join(duplicates)}")

        self._books.setdefault(book_id, []).extend(records)
        return len(records)

    async def commit_single(self, record: Transaction) -> UUID:
        await self.commit_transactions(record.book_id, [record])
        return record.id

    def _index(self, book_id: str, transaction_id: UUID) -> Optional[int]:
        for index, record in enumerate(self._books.get(book_id, [])):
            if record.id == transaction_id:
                return index
        return None

    async def get_transaction(
        self,
        book_id: str,
        transaction_id: UUID,
    ) -> Optional[Transaction]:
        index = self._index(book_id, transaction_id)
        return None if index is None else self._books[book_id][index]

    async def update_transaction(self, record: Transaction) -> Transaction:
        index = self._index(record.book_id, record.id)
        if index is None:
            raise NotFoundError(f"Transaction not found: {record.id}")
        record.updated_at = datetime.utcnow()
        self._books[record.book_id][index] = record
        return record

    async def delete_transaction(
        self,
        book_id: str,
        transaction_id: UUID,
    ) -> bool:
        index = self._index(book_id, transaction_id)
        if index is None:
            return False
        del self._books[book_id][index]
        return True

    async def list_transactions(
        self,
        book_id: str,
        year: Optional[int] = None,
        kind: Optional[TransactionKind] = None,
        month: Optional[int] = None,
        category: Optional[Category] = None,
    ) -> list[Transaction]:
        records = [
            record
            for record in self._books.get(book_id, [])
            if (year is None or record.transaction_date.year == year)
            and (month is None or record.transaction_date.month == month)
            and (kind is None or record.kind == kind)
            and (category is None or record.category == category)
        ]
        records.sort(key=lambda r: (r.transaction_date, r.created_at), reverse=True)
        return records


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self.events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
