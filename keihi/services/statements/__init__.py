"""Statement (card/bank CSV) parsing package."""

from keihi.services.statements.csv_parser import (
    AMOUNT_COLUMNS,
    DATE_COLUMNS,
    DESCRIPTION_COLUMNS,
    StatementCsvParser,
    StatementFormatError,
    parse_csv,
    parse_statement_amount,
    parse_statement_date,
)

__all__ = [
    "AMOUNT_COLUMNS",
    "DATE_COLUMNS",
    "DESCRIPTION_COLUMNS",
    "StatementCsvParser",
    "StatementFormatError",
    "parse_csv",
    "parse_statement_amount",
    "parse_statement_date",
]
