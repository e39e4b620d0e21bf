"""OCR services package."""

from keihi.services.ocr.tesseract_service import (
    OCRError,
    OCRServiceInterface,
    OCRTimeoutError,
    OCRUnavailableError,
    ProgressCallback,
    TesseractOCRService,
)

__all__ = [
    "OCRError",
    "OCRServiceInterface",
    "OCRTimeoutError",
    "OCRUnavailableError",
    "ProgressCallback",
    "TesseractOCRService",
]
