"""
Receipt Field Extractor

Turns noisy OCR text from a Japanese receipt into a proposed
{amount, date, description}.

This is a best-effort heuristic, not a parser with guarantees.
Wrong proposals are expected; the confirm screen is where they get fixed.
Nothing in this module raises on bad input. A field that cannot be
found falls back to its default and is reported in unresolved_fields.

Amount policy:
1. Largest number on any line carrying a total keyword (合計, 税込, ...)
2. Otherwise the largest currency-marked token (¥1,200 / 1,200円)
3. Otherwise 0

Date policy: lines are scanned top to bottom and the first line that
yields a valid date wins. Within a line the formats are tried in order:
YYYY/M/D, YYYY年M月D日, then Reiwa shorthand (R6.3.20 / 令和6.3.20).

Description policy: a line naming the store (店, 株式会社, ...) among
the first 8 lines, otherwise the first plausible text line among the
first 5.
"""

import re
from datetime import date
from typing import Optional

import structlog

from keihi.models.transaction import ExtractedReceipt


logger = structlog.get_logger(__name__)


TOTAL_KEYWORDS: tuple[str, ...] = (
    "合計",
    "総合計",
    "税込",
    "お支払",
    "お買上計",
    "お買上金額",
    "total",
)

STORE_MARKERS: tuple[str, ...] = (
    "株式会社",
    "(株)",
    "（株）",
    "有限会社",
    "商店",
    "ストア",
    "ショップ",
    "マート",
    "店",
    "store",
    "shop",
    "mart",
    "market",
)

MAX_DESCRIPTION_LENGTH = 50
STORE_SCAN_LINES = 8
FALLBACK_SCAN_LINES = 5

# Reiwa 1 = 2019. Other eras are not handled.
REIWA_OFFSET = 2018

# Number with optional thousands separators: 1,200 / 12000
_NUMBER_RE = re.compile(r"\d{1,3}(?:,\d{3})+|\d+")
_YEN_PREFIX_RE = re.compile(r"[¥￥]\s*(\d{1,3}(?:,\d{3})+|\d+)")
_YEN_SUFFIX_RE = re.compile(r"(\d{1,3}(?:,\d{3})+|\d+)\s*円")

_DATE_PATTERNS: tuple[tuple[re.Pattern, int], ...] = (
    (re.compile(r"(20\d{2})[/.\-](\d{1,2})[/.\-](\d{1,2})"), 0),
    (re.compile(r"(\d{4})年\s*(\d{1,2})月\s*(\d{1,2})日"), 0),
    (re.compile(r"(?:令和|令|[Rr])\s*(\d{1,2})\.(\d{1,2})\.(\d{1,2})"), REIWA_OFFSET),
)

# Only digits, punctuation, symbols and whitespace
_NO_TEXT_RE = re.compile(r"[\d\W_]+")
_LEADING_DATE_RE = re.compile(r"^(?:\d{2,4}[/.\-年]|(?:令和|令|[Rr])\s*\d{1,2}\.)")
_WHITESPACE_RUN_RE = re.compile(r"\s{2,}")
_TIME_RE = re.compile(r"\d{1,2}:\d{2}(?::\d{2})?")


def _to_int(token: str) -> int:
    return int(token.replace(",", ""))


def _strip_dates_and_times(line: str) -> str:
    for pattern, _ in _DATE_PATTERNS:
        line = pattern.sub(" ", line)
    return _TIME_RE.sub(" ", line)


def extract_amount(lines: list[str]) -> Optional[int]:
    """
    Find the receipt total.

    Dates and clock times on a keyword line (お買上日 2024/03/15 14:32)
    are not amounts and are removed before numbers are read.

    Returns None when neither a keyword line nor a currency-marked
    token gives a number.
    """
    best: Optional[int] = None
    for line in lines:
        lowered = line.lower()
        if not any(keyword in lowered for keyword in TOTAL_KEYWORDS):
            continue
        for token in _NUMBER_RE.findall(_strip_dates_and_times(line)):
            value = _to_int(token)
            if best is None or value > best:
                best = value

    if best is not None:
        return best

    for line in lines:
        for pattern in (_YEN_PREFIX_RE, _YEN_SUFFIX_RE):
            for token in pattern.findall(line):
                value = _to_int(token)
                if best is None or value > best:
                    best = value

    return best


def _date_from_line(line: str) -> Optional[date]:
    for pattern, year_offset in _DATE_PATTERNS:
        for match in pattern.finditer(line):
            year, month, day = (int(group) for group in match.groups())
            year += year_offset
            if not 2000 <= year <= 2099:
                continue
            try:
                return date(year, month, day)
            except ValueError:
                # 2024/13/45 and friends: keep looking
                continue
    return None


def extract_date(lines: list[str]) -> Optional[date]:
    """First valid date found scanning lines top to bottom."""
    for line in lines:
        found = _date_from_line(line)
        if found is not None:
            return found
    return None


def _has_text(line: str) -> bool:
    return len(line) >= 2 and not _NO_TEXT_RE.fullmatch(line)


def extract_description(lines: list[str]) -> Optional[str]:
    """Vendor name, or the first plausible heading line."""
    for line in lines[:STORE_SCAN_LINES]:
        lowered = line.lower()
        if _has_text(line) and any(marker in lowered for marker in STORE_MARKERS):
            return _WHITESPACE_RUN_RE.sub(" ", line)[:MAX_DESCRIPTION_LENGTH]

    for line in lines[:FALLBACK_SCAN_LINES]:
        if _has_text(line) and not _LEADING_DATE_RE.match(line):
            return line[:MAX_DESCRIPTION_LENGTH]

    return None


def extract_fields(text: Optional[str], today: Optional[date] = None) -> ExtractedReceipt:
    """
    Propose receipt fields from raw OCR text.

    Args:
        text: OCR output, one receipt line per text line
        today: Date used when no date is found (defaults to date.today())

    Returns:
        ExtractedReceipt; never raises
    """
    lines = [line.strip() for line in (text or "").splitlines()]
    lines = [line for line in lines if line]

    unresolved = []

    amount = extract_amount(lines)
    if amount is None:
        amount = 0
        unresolved.append("amount")

    receipt_date = extract_date(lines)
    if receipt_date is None:
        receipt_date = today or date.today()
        unresolved.append("receipt_date")

    description = extract_description(lines)
    if description is None:
        description = ""
        unresolved.append("description")

    logger.debug(
        "receipt_fields_extracted",
        line_count=len(lines),
        amount=amount,
        receipt_date=receipt_date.isoformat(),
        unresolved=unresolved,
    )

    return ExtractedReceipt(
        amount=amount,
        receipt_date=receipt_date,
        description=description,
        unresolved_fields=tuple(unresolved),
    )
