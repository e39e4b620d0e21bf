"""CSV import reconciliation: preview, select, commit."""

from keihi.imports.session import (
    ImportRow,
    ImportSession,
    ImportSessionClosedError,
    ImportSessionError,
    NoRowsSelectedError,
    RowIndexError,
    build_candidate,
)

__all__ = [
    "ImportRow",
    "ImportSession",
    "ImportSessionClosedError",
    "ImportSessionError",
    "NoRowsSelectedError",
    "RowIndexError",
    "build_candidate",
]
