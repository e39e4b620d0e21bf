"""
Statement CSV Parser

Reads card and bank statement exports into normalized rows
{date, amount, description}. Column names differ between issuers, so
each field has an ordered list of header aliases; the first alias with
a non-empty value in a row wins.

Rows that cannot be normalized are reported in `skipped` with the
reason, never silently dropped. A file without a usable header is
rejected as a whole with StatementFormatError.

Japanese issuers commonly export Shift_JIS (CP932); UTF-8 with or
without BOM is tried first.
"""

import csv
import io
import re
from datetime import date, datetime
from typing import Optional

import structlog

from keihi.models.transaction import (
    SkippedRow,
    StatementParseResult,
    StatementRow,
)


logger = structlog.get_logger(__name__)


DATE_COLUMNS: tuple[str, ...] = ("利用日", "ご利用日", "日付", "取引日", "Date")
AMOUNT_COLUMNS: tuple[str, ...] = ("金額", "利用金額", "ご利用金額", "出金金額", "Amount")
DESCRIPTION_COLUMNS: tuple[str, ...] = (
    "利用店舗",
    "ご利用先",
    "利用店名・商品名",
    "摘要",
    "内容",
    "Description",
)

ENCODINGS: tuple[str, ...] = ("utf-8-sig", "cp932")

_DATE_FORMATS: tuple[str, ...] = ("%Y/%m/%d", "%Y-%m-%d", "%Y.%m.%d", "%Y年%m月%d日")
_AMOUNT_STRIP_RE = re.compile(r"[^0-9.\-]")
_AMOUNT_RE = re.compile(r"(-?\d+)(?:\.(\d+))?")


class StatementFormatError(Exception):
    """The CSV cannot be read as a statement at all."""
    pass


def _decode(csv_bytes: bytes) -> tuple[str, str]:
    for encoding in ENCODINGS:
        try:
            return csv_bytes.decode(encoding), encoding
        except UnicodeDecodeError:
            continue
    raise StatementFormatError(
        f"File is not valid text in any of: {', '.join(ENCODINGS)}"
    )


def _first_value(row: dict[str, str], aliases: tuple[str, ...]) -> str:
    for alias in aliases:
        value = row.get(alias)
        if value and value.strip():
            return value.strip()
    return ""


def parse_statement_date(value: str) -> Optional[date]:
    """Parse the date formats statements use; None if unrecognized."""
    value = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def parse_statement_amount(value: str) -> Optional[int]:
    """
    Parse an amount cell such as "¥1,200" or "-3,000円".

    Everything except digits, '.' and '-' is dropped first. A decimal
    part of all zeros ("1,200.00") is accepted; any other fraction
    gives None.
    """
    cleaned = _AMOUNT_STRIP_RE.sub("", value)
    match = _AMOUNT_RE.fullmatch(cleaned)
    if match is None:
        return None
    whole, fraction = match.groups()
    if fraction and fraction.strip("0"):
        return None
    return int(whole)


class StatementCsvParser:
    """
    Normalizes statement CSV uploads.

    Stateless; one instance can parse any number of files.
    """

    def __init__(
        self,
        date_columns: tuple[str, ...] = DATE_COLUMNS,
        amount_columns: tuple[str, ...] = AMOUNT_COLUMNS,
        description_columns: tuple[str, ...] = DESCRIPTION_COLUMNS,
    ):
        self._date_columns = date_columns
        self._amount_columns = amount_columns
        self._description_columns = description_columns

    def _check_header(self, fieldnames: Optional[list[str]]) -> None:
        if not fieldnames:
            raise StatementFormatError("CSV has no header row")
        headers = set(fieldnames)
        missing = []
        if not headers.intersection(self._date_columns):
            missing.append("date")
        if not headers.intersection(self._amount_columns):
            missing.append("amount")
        if missing:
            raise StatementFormatError(
                f"CSV header has no {' or '.join(missing)} column "
                f"(found: {', '.join(fieldnames)})"
            )

    def _normalize(self, line_number: int, row: dict[str, str]) -> StatementRow | SkippedRow:
        raw_date = _first_value(row, self._date_columns)
        raw_amount = _first_value(row, self._amount_columns)
        description = _first_value(row, self._description_columns)

        if not raw_date:
            return SkippedRow(line_number=line_number, reason="missing date", raw=row)
        transaction_date = parse_statement_date(raw_date)
        if transaction_date is None:
            return SkippedRow(
                line_number=line_number,
                reason=f"unrecognized date: {raw_date}",
                raw=row,
            )

        amount = parse_statement_amount(raw_amount)
        if amount is None:
            return SkippedRow(
                line_number=line_number,
                reason=f"unrecognized amount: {raw_amount or '(empty)'}",
                raw=row,
            )
        if amount <= 0:
            # Refunds, credits and zero rows are not imported as expenses
            return SkippedRow(
                line_number=line_number,
                reason=f"non-positive amount: {amount}",
                raw=row,
            )

        return StatementRow(
            line_number=line_number,
            transaction_date=transaction_date,
            amount=amount,
            description=description,
        )

    def parse(self, csv_bytes: bytes) -> StatementParseResult:
        """
        Parse an uploaded statement.

        Args:
            csv_bytes: Raw file content

        Returns:
            StatementParseResult with normalized rows in file order
            and the rows that were skipped

        Raises:
            StatementFormatError: Undecodable file or missing columns
        """
        text, encoding = _decode(csv_bytes)
        reader = csv.DictReader(io.StringIO(text))

        # Strip header cells in place; positions must stay aligned with data cells
        fieldnames = [(name or "").strip() for name in reader.fieldnames or []]
        self._check_header([name for name in fieldnames if name])
        reader.fieldnames = fieldnames

        result = StatementParseResult(encoding=encoding)
        for row in reader:
            # Header is line 1; csv line_num counts physical lines read so far
            line_number = reader.line_num
            cells = {
                key: (value or "")
                for key, value in row.items()
                if key is not None and isinstance(value, str)
            }
            if not any(value.strip() for value in cells.values()):
                continue
            normalized = self._normalize(line_number, cells)
            if isinstance(normalized, StatementRow):
                result.rows.append(normalized)
            else:
                result.skipped.append(normalized)

        logger.info(
            "statement_parsed",
            encoding=encoding,
            rows=len(result.rows),
            skipped=len(result.skipped),
        )
        return result


def parse_csv(csv_bytes: bytes) -> StatementParseResult:
    """Parse with the default column aliases."""
    return StatementCsvParser().parse(csv_bytes)
