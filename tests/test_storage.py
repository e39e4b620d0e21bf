"""
Tests for storage backends.

Google Sheets is exercised through a fake client standing in for
GoogleSheetsClient; no network calls are made.
"""

import asyncio
import pytest
from datetime import date, datetime, timedelta
from uuid import uuid4

from tenacity import wait_none

from keihi.models.audit import AuditEventBuilder
from keihi.models.transaction import (
    Category,
    Transaction,
    TransactionKind,
    TransactionSource,
)
from keihi.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsTransactionStorage,
    InMemoryAuditStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    StorageError,
)
from keihi.services.storage.google_sheets import (
    AUDIT_COLUMNS,
    TRANSACTION_COLUMNS,
    row_to_transaction,
    transaction_to_row,
)


def _expense(amount: int, day: date, book_id: str = "default", **overrides) -> Transaction:
    values = {
        "book_id": book_id,
        "kind": TransactionKind.EXPENSE,
        "transaction_date": day,
        "amount": amount,
        "category": Category.SUPPLIES,
        "description": "文具",
    }
    values.update(overrides)
    return Transaction(**values)


def _income(amount: int, day: date, book_id: str = "default") -> Transaction:
    return Transaction(
        book_id=book_id,
        kind=TransactionKind.INCOME,
        transaction_date=day,
        amount=amount,
    )


class FakeWorksheet:
    """Keeps rows as strings, the way Sheets returns them."""

    def __init__(self, header: list[str]):
        self.rows = [list(header)]
        self.append_calls = 0
        self.failures_left = 0

    def _maybe_fail(self):
        self.append_calls += 1
        if self.failures_left:
            self.failures_left -= 1
            raise RuntimeError("quota exceeded")

    def append_rows(self, rows, value_input_option=None):
        self._maybe_fail()
        self.rows.extend([[str(cell) for cell in row] for row in rows])

    def append_row(self, row, value_input_option=None):
        self._maybe_fail()
        self.rows.append([str(cell) for cell in row])

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def update(self, range_name=None, values=None, value_input_option=None):
        row_number = int(range_name.lstrip("A"))
        self.rows[row_number - 1] = [str(cell) for cell in values[0]]

    def delete_rows(self, start_index):
        del self.rows[start_index - 1]


class FakeSheetsClient:
    def __init__(self):
        self.transactions = FakeWorksheet(TRANSACTION_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_transactions_sheet(self):
        return self.transactions

    def get_audit_sheet(self):
        return self.audit


@pytest.fixture
def no_retry_wait(monkeypatch):
    monkeypatch.setattr(GoogleSheetsTransactionStorage._append_rows.retry, "wait", wait_none())
    monkeypatch.setattr(GoogleSheetsAuditStorage._append_row.retry, "wait", wait_none())


class TestInMemoryTransactionStorage:
    """Tests for the in-memory backend."""

    def test_commit_and_list(self):
        storage = InMemoryTransactionStorage()
        records = [_expense(100, date(2024, 1, 5)), _expense(200, date(2024, 2, 5))]

        count = asyncio.run(storage.commit_transactions("default", records))
        listed = asyncio.run(storage.list_transactions("default"))

        assert count == 2
        assert storage.commit_calls == 1
        assert [record.amount for record in listed] == [200, 100]  # newest first

    def test_filters(self):
        storage = InMemoryTransactionStorage()
        records = [
            _expense(100, date(2023, 12, 31)),
            _expense(200, date(2024, 1, 1)),
            _income(300, date(2024, 1, 2)),
        ]
        asyncio.run(storage.commit_transactions("default", records))

        in_2024 = asyncio.run(storage.list_transactions("default", year=2024))
        income = asyncio.run(storage.list_transactions("default", kind=TransactionKind.INCOME))

        assert sorted(record.amount for record in in_2024) == [200, 300]
        assert [record.amount for record in income] == [300]

    def test_month_and_category_filters(self):
        storage = InMemoryTransactionStorage()
        asyncio.run(storage.commit_transactions("default", [
            _expense(100, date(2024, 3, 1), category=Category.TRAVEL),
            _expense(200, date(2024, 3, 9)),
            _expense(300, date(2024, 4, 1), category=Category.TRAVEL),
            _income(400, date(2024, 3, 31)),
        ]))

        march = asyncio.run(storage.list_transactions("default", year=2024, month=3))
        travel = asyncio.run(storage.list_transactions("default", category=Category.TRAVEL))

        assert [record.amount for record in march] == [400, 200, 100]
        assert [record.amount for record in travel] == [300, 100]

    def test_get_update_delete(self):
        storage = InMemoryTransactionStorage()
        record = _expense(100, date(2024, 1, 5))
        asyncio.run(storage.commit_single(record))

        assert asyncio.run(storage.get_transaction("default", record.id)) == record
        assert asyncio.run(storage.get_transaction("other", record.id)) is None

        edited = record.model_copy(update={"amount": 150})
        stored = asyncio.run(storage.update_transaction(edited))
        assert stored.updated_at is not None
        assert asyncio.run(storage.get_transaction("default", record.id)).amount == 150

        assert asyncio.run(storage.delete_transaction("default", record.id)) is True
        assert asyncio.run(storage.delete_transaction("default", record.id)) is False
        assert asyncio.run(storage.list_transactions("default")) == []

    def test_update_missing_record(self):
        storage = InMemoryTransactionStorage()
        with pytest.raises(NotFoundError):
            asyncio.run(storage.update_transaction(_expense(100, date(2024, 1, 5))))

    def test_books_are_separate(self):
        storage = InMemoryTransactionStorage()
        asyncio.run(storage.commit_single(_expense(100, date(2024, 1, 5), book_id="a")))
        assert asyncio.run(storage.list_transactions("b")) == []

    def test_batch_is_atomic(self):
        """Test a batch with one bad record persists nothing."""
        storage = InMemoryTransactionStorage()
        records = [
            _expense(100, date(2024, 1, 5)),
            _expense(200, date(2024, 1, 6), book_id="other"),
        ]

        with pytest.raises(StorageError):
            asyncio.run(storage.commit_transactions("default", records))
        assert asyncio.run(storage.list_transactions("default")) == []

    def test_duplicate_ids_rejected(self):
        storage = InMemoryTransactionStorage()
        record = _expense(100, date(2024, 1, 5))
        asyncio.run(storage.commit_single(record))

        with pytest.raises(StorageError, match="already exist"):
            asyncio.run(storage.commit_single(record))
        assert len(asyncio.run(storage.list_transactions("default"))) == 1

    def test_commit_single_returns_id(self):
        storage = InMemoryTransactionStorage()
        record = _expense(100, date(2024, 1, 5))
        assert asyncio.run(storage.commit_single(record)) == record.id


class TestInMemoryAuditStorage:
    """Tests for the in-memory audit log."""

    def test_correlation_and_recent(self):
        storage = InMemoryAuditStorage()
        correlation_id = uuid4()
        first = AuditEventBuilder.scan_started(uuid4(), "a.jpg", 10, correlation_id)
        second = AuditEventBuilder.ocr_completed(uuid4(), 5, correlation_id)
        other = AuditEventBuilder.scan_started(uuid4(), "b.jpg", 10, uuid4())
        second.timestamp = first.timestamp + timedelta(seconds=1)
        other.timestamp = first.timestamp + timedelta(seconds=2)

        for event in (second, first, other):
            asyncio.run(storage.append_event(event))

        related = asyncio.run(storage.get_events_by_correlation_id(correlation_id))
        recent = asyncio.run(storage.get_recent_events(limit=2))

        assert related == [first, second]
        assert recent == [other, second]


class TestSheetRows:
    """Tests for row conversion."""

    def test_round_trip_expense(self):
        record = _expense(
            1200,
            date(2024, 3, 15),
            source=TransactionSource.OCR,
            receipt_path="receipts/2024-03-15.jpg",
        )
        row = [str(cell) for cell in transaction_to_row(record)]
        assert row_to_transaction(row) == record

    def test_updated_at_round_trips(self):
        record = _expense(1200, date(2024, 3, 15), updated_at=datetime(2024, 3, 20, 8, 30))
        row = [str(cell) for cell in transaction_to_row(record)]
        assert len(row) == len(TRANSACTION_COLUMNS)
        assert row_to_transaction(row).updated_at == datetime(2024, 3, 20, 8, 30)

    def test_rows_without_updated_at_column(self):
        """Test rows written before the updated_at column existed still load."""
        record = _expense(1200, date(2024, 3, 15))
        row = [str(cell) for cell in transaction_to_row(record)][:11]
        assert row_to_transaction(row).updated_at is None

    def test_income_row_has_type_not_category(self):
        row = transaction_to_row(_income(50000, date(2024, 3, 31)))
        assert row[5] == ""
        assert row[6] == "振込"

    def test_unknown_source_falls_back_to_manual(self):
        record = _income(50000, date(2024, 3, 31))
        row = [str(cell) for cell in transaction_to_row(record)]
        row[8] = ""
        assert row_to_transaction(row).source == TransactionSource.MANUAL


class TestGoogleSheetsTransactionStorage:
    """Tests for the Sheets backend with a fake client."""

    def test_batch_written_in_one_call(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsTransactionStorage(client)
        records = [_expense(100 * i, date(2024, 1, i)) for i in range(1, 4)]

        count = asyncio.run(storage.commit_transactions("default", records))

        assert count == 3
        assert client.transactions.append_calls == 1
        assert len(client.transactions.rows) == 4  # header + 3

    def test_list_filters_by_book_and_year(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsTransactionStorage(client)
        asyncio.run(storage.commit_transactions("default", [
            _expense(100, date(2023, 5, 1)),
            _expense(200, date(2024, 5, 1)),
        ]))
        asyncio.run(storage.commit_single(_expense(999, date(2024, 5, 1), book_id="other")))

        listed = asyncio.run(storage.list_transactions("default", year=2024))

        assert [record.amount for record in listed] == [200]

    def test_malformed_rows_are_skipped(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsTransactionStorage(client)
        asyncio.run(storage.commit_single(_expense(100, date(2024, 5, 1))))
        client.transactions.rows.append(["not-a-uuid", "default", "expense"])

        listed = asyncio.run(storage.list_transactions("default"))

        assert len(listed) == 1

    def test_mixed_books_rejected_before_writing(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsTransactionStorage(client)

        with pytest.raises(StorageError):
            asyncio.run(storage.commit_transactions("default", [
                _expense(100, date(2024, 5, 1), book_id="other"),
            ]))
        assert client.transactions.append_calls == 0

    def test_update_rewrites_row_in_place(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsTransactionStorage(client)
        first = _expense(100, date(2024, 5, 1))
        second = _expense(200, date(2024, 5, 2))
        asyncio.run(storage.commit_transactions("default", [first, second]))

        asyncio.run(storage.update_transaction(second.model_copy(update={"description": "コピー用紙"})))

        assert len(client.transactions.rows) == 3
        assert client.transactions.rows[2][7] == "コピー用紙"
        assert client.transactions.rows[2][11] != ""
        loaded = asyncio.run(storage.get_transaction("default", second.id))
        assert loaded.description == "コピー用紙"
        assert asyncio.run(storage.get_transaction("default", first.id)).description == "文具"

    def test_update_other_book_is_not_found(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsTransactionStorage(client)
        record = _expense(100, date(2024, 5, 1))
        asyncio.run(storage.commit_single(record))

        with pytest.raises(NotFoundError):
            asyncio.run(storage.update_transaction(record.model_copy(update={"book_id": "other"})))

    def test_delete_removes_row(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsTransactionStorage(client)
        first = _expense(100, date(2024, 5, 1))
        second = _expense(200, date(2024, 5, 2))
        asyncio.run(storage.commit_transactions("default", [first, second]))

        assert asyncio.run(storage.delete_transaction("default", first.id)) is True
        assert asyncio.run(storage.delete_transaction("default", first.id)) is False
        assert [record.id for record in asyncio.run(storage.list_transactions("default"))] == [second.id]

    def test_list_filters_by_month_and_category(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsTransactionStorage(client)
        asyncio.run(storage.commit_transactions("default", [
            _expense(100, date(2024, 3, 1), category=Category.TRAVEL),
            _expense(200, date(2024, 3, 9)),
            _expense(300, date(2024, 4, 1), category=Category.TRAVEL),
        ]))

        listed = asyncio.run(storage.list_transactions("default", month=3, category=Category.TRAVEL))

        assert [record.amount for record in listed] == [100]

    def test_transient_failure_is_retried(self, no_retry_wait):
        client = FakeSheetsClient()
        client.transactions.failures_left = 1
        storage = GoogleSheetsTransactionStorage(client)

        count = asyncio.run(storage.commit_single(_expense(100, date(2024, 5, 1))))

        assert count
        assert client.transactions.append_calls == 2
        assert len(client.transactions.rows) == 2

    def test_persistent_failure_raises_storage_error(self, no_retry_wait):
        client = FakeSheetsClient()
        client.transactions.failures_left = 5
        storage = GoogleSheetsTransactionStorage(client)

        with pytest.raises(StorageError, match="quota exceeded"):
            asyncio.run(storage.commit_single(_expense(100, date(2024, 5, 1))))
        assert client.transactions.append_calls == 3
        assert len(client.transactions.rows) == 1


class TestGoogleSheetsAuditStorage:
    """Tests for the Sheets audit log with a fake client."""

    def test_append_and_read_back(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsAuditStorage(client)
        correlation_id = uuid4()
        event = AuditEventBuilder.import_committed(uuid4(), 3, correlation_id)

        assert asyncio.run(storage.append_event(event)) is True
        events = asyncio.run(storage.get_events_by_correlation_id(correlation_id))

        assert len(events) == 1
        assert events[0].event_id == event.event_id
        assert events[0].details == {"imported_count": 3}
        assert events[0].is_user_action is True

    def test_write_failure_is_not_raised(self, no_retry_wait):
        client = FakeSheetsClient()
        client.audit.failures_left = 5
        storage = GoogleSheetsAuditStorage(client)
        event = AuditEventBuilder.scan_started(uuid4(), None, 0, uuid4())

        assert asyncio.run(storage.append_event(event)) is False

    def test_recent_events_newest_first(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsAuditStorage(client)
        base = datetime(2024, 3, 1, 12, 0, 0)
        for offset in range(3):
            event = AuditEventBuilder.scan_started(uuid4(), f"{offset}.jpg", 0, uuid4())
            event.timestamp = base + timedelta(minutes=offset)
            asyncio.run(storage.append_event(event))

        recent = asyncio.run(storage.get_recent_events(limit=2))

        assert [event.details["filename"] for event in recent] == ["2.jpg", "1.jpg"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
