"""Confirm-screen validation of extracted receipts."""

from keihi.validation.validator import IncompleteReceiptError, ReceiptValidator

__all__ = [
    "IncompleteReceiptError",
    "ReceiptValidator",
]
