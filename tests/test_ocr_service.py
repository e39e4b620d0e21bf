"""
Tests for the Tesseract OCR service.

pytesseract.image_to_string is monkeypatched; the tesseract binary is
never invoked.
"""

import asyncio
import pytest
import time

import pytesseract
from PIL import Image

from keihi.config import TesseractSettings
from keihi.services.ocr import (
    OCRError,
    OCRTimeoutError,
    OCRUnavailableError,
    TesseractOCRService,
)
from keihi.services.ocr.tesseract_service import HEARTBEAT_CEILING, estimated_fraction


@pytest.fixture
def service() -> TesseractOCRService:
    return TesseractOCRService(TesseractSettings(languages="jpn+eng", timeout_seconds=30))


@pytest.fixture
def bitmap() -> Image.Image:
    return Image.new("L", (100, 40), 255)


def _raise(error: Exception):
    def fake(*args, **kwargs):
        raise error
    return fake


class TestRecognize:
    """Tests for successful recognition."""

    def test_returns_text_and_reports_progress(self, service, bitmap, monkeypatch):
        calls = {}

        def fake(image, lang=None, config=None, timeout=0):
            calls.update(lang=lang, config=config, timeout=timeout)
            return "合計 ¥1,200\n"

        monkeypatch.setattr(pytesseract, "image_to_string", fake)
        progress = []

        text = asyncio.run(service.recognize(bitmap, on_progress=progress.append))

        assert text == "合計 ¥1,200\n"
        assert progress == [0.0, 1.0]
        assert calls == {"lang": "jpn+eng", "config": "--psm 6", "timeout": 30}

    def test_language_hints_override_defaults(self, service, bitmap, monkeypatch):
        seen = []
        monkeypatch.setattr(
            pytesseract,
            "image_to_string",
            lambda image, lang=None, **kwargs: seen.append(lang) or "",
        )

        asyncio.run(service.recognize(bitmap, language_hints=["eng"]))

        assert seen == ["eng"]

    def test_reports_estimated_progress_while_running(self, bitmap, monkeypatch):
        """Test a slow recognition reports rising fractions before finishing."""
        service = TesseractOCRService(TesseractSettings(progress_interval_seconds=0.01))

        def slow(image, **kwargs):
            time.sleep(0.2)
            return "合計 ¥1,200\n"

        monkeypatch.setattr(pytesseract, "image_to_string", slow)
        progress = []

        asyncio.run(service.recognize(bitmap, on_progress=progress.append))

        assert progress[0] == 0.0
        assert progress[-1] == 1.0
        middle = progress[1:-1]
        assert len(middle) >= 2
        assert all(0.0 < fraction < 1.0 for fraction in middle)
        assert all(earlier < later for earlier, later in zip(progress, progress[1:]))

    def test_estimate_approaches_ceiling(self):
        assert estimated_fraction(0) == 0.0
        assert estimated_fraction(1) == pytest.approx(HEARTBEAT_CEILING / 2)
        assert estimated_fraction(1) < estimated_fraction(2) < HEARTBEAT_CEILING


class TestRecognizeErrors:
    """Tests for mapping pytesseract failures."""

    def test_missing_binary(self, service, bitmap, monkeypatch):
        monkeypatch.setattr(pytesseract, "image_to_string", _raise(pytesseract.TesseractNotFoundError()))
        with pytest.raises(OCRUnavailableError):
            asyncio.run(service.recognize(bitmap))

    def test_tesseract_error(self, service, bitmap, monkeypatch):
        error = pytesseract.TesseractError(1, "Failed loading language 'jpn'")
        monkeypatch.setattr(pytesseract, "image_to_string", _raise(error))
        with pytest.raises(OCRError, match="Failed loading language"):
            asyncio.run(service.recognize(bitmap))

    def test_timeout(self, service, bitmap, monkeypatch):
        monkeypatch.setattr(
            pytesseract,
            "image_to_string",
            _raise(RuntimeError("Tesseract process timeout")),
        )
        with pytest.raises(OCRTimeoutError, match="30s"):
            asyncio.run(service.recognize(bitmap))

    def test_no_completion_progress_on_failure(self, service, bitmap, monkeypatch):
        monkeypatch.setattr(pytesseract, "image_to_string", _raise(RuntimeError("boom")))
        progress = []
        with pytest.raises(OCRError):
            asyncio.run(service.recognize(bitmap, on_progress=progress.append))
        assert progress == [0.0]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
