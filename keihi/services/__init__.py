"""Services package."""

from keihi.services.image import (
    ImageDecodeError,
    ImagePreprocessor,
    load_image,
    preprocess,
)
from keihi.services.ocr import (
    OCRError,
    OCRServiceInterface,
    OCRTimeoutError,
    OCRUnavailableError,
    TesseractOCRService,
)
from keihi.services.statements import (
    StatementCsvParser,
    StatementFormatError,
    parse_csv,
)
from keihi.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    InMemoryAuditStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)

__all__ = [
    # Image services
    "ImageDecodeError",
    "ImagePreprocessor",
    "load_image",
    "preprocess",
    # OCR services
    "OCRError",
    "OCRServiceInterface",
    "OCRTimeoutError",
    "OCRUnavailableError",
    "TesseractOCRService",
    # Statement services
    "StatementCsvParser",
    "StatementFormatError",
    "parse_csv",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStorage",
    "InMemoryAuditStorage",
    "InMemoryTransactionStorage",
    "NotFoundError",
    "StorageError",
    "TransactionStorageInterface",
]
