"""
OCR Service using Tesseract

DESIGN DECISION: OCR only turns a bitmap into raw text lines.
Everything that interprets the text (amount, date, vendor) lives in
keihi.extraction, so the heuristics can be tested without an OCR engine
and the engine can be swapped without touching them.

Tesseract is blocking and slow (seconds per receipt). It runs in a
worker thread so the event loop stays responsive, and progress is
reported through a callback as a fraction 0.0–1.0. pytesseract exposes
no progress of its own, so while the thread runs the service reports an
estimate every progress_interval_seconds that creeps toward
HEARTBEAT_CEILING; 1.0 is only reported once text is back.

Cancellation is cooperative: cancelling the awaiting task abandons the
result. The tesseract subprocess is left to finish on its own thread;
nothing it produces is read after cancellation.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence

import pytesseract
import structlog
from PIL import Image

from keihi.config import TesseractSettings, get_settings


logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[float], None]

HEARTBEAT_CEILING = 0.9


class OCRError(Exception):
    """Base exception for OCR errors."""
    pass


class OCRUnavailableError(OCRError):
    """The tesseract binary or a requested language is not installed."""
    pass


class OCRTimeoutError(OCRError):
    """Recognition took longer than the configured timeout."""
    pass


def estimated_fraction(ticks: int) -> float:
    """Progress estimate after `ticks` heartbeats; halves the remaining gap each tick."""
    return HEARTBEAT_CEILING * (1 - 0.5 ** ticks)


class OCRServiceInterface(ABC):
    """
    Abstract OCR capability.

    Any engine (Tesseract, a cloud API, a test stub) must implement this.
    """

    @abstractmethod
    async def recognize(
        self,
        image: Image.Image,
        language_hints: Optional[Sequence[str]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        """
        Recognize text in a preprocessed receipt bitmap.

        Args:
            image: Binarized receipt image
            language_hints: Tesseract language codes (e.g. ["jpn", "eng"])
            on_progress: Called with fractional completion 0.0–1.0

        Returns:
            Raw text, one receipt line per text line

        Raises:
            OCRError: If recognition fails
        """
        pass


class TesseractOCRService(OCRServiceInterface):
    """
    OCR through the local tesseract binary via pytesseract.

    Language hints default to TesseractSettings.languages ("jpn+eng").
    """

    def __init__(self, settings: Optional[TesseractSettings] = None):
        self._settings = settings or get_settings().tesseract
        if self._settings.cmd:
            pytesseract.pytesseract.tesseract_cmd = self._settings.cmd

    def _build_config(self) -> str:
        return f"--psm {self._settings.page_segmentation_mode}"

    def _run(self, image: Image.Image, lang: str) -> str:
        return pytesseract.image_to_string(
            image,
            lang=lang,
            config=self._build_config(),
            timeout=self._settings.timeout_seconds,
        )

    async def recognize(
        self,
        image: Image.Image,
        language_hints: Optional[Sequence[str]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        """Run tesseract in a worker thread and return the raw text."""
        languages = list(language_hints or self._settings.language_list)
        lang = "+".join(languages)

        if on_progress:
            on_progress(0.0)

        worker = asyncio.ensure_future(asyncio.to_thread(self._run, image, lang))
        try:
            ticks = 0
            while True:
                done, _ = await asyncio.wait(
                    {worker},
                    timeout=self._settings.progress_interval_seconds,
                )
                if done:
                    break
                ticks += 1
                if on_progress:
                    on_progress(estimated_fraction(ticks))
            text = worker.result()
        except pytesseract.TesseractNotFoundError as e:
            raise OCRUnavailableError(f"Tesseract is not installed: {e}") from e
        except pytesseract.TesseractError as e:
            raise OCRError(f"Tesseract failed ({lang}): {e.message}") from e
        except RuntimeError as e:
            # pytesseract signals its timeout with a bare RuntimeError
            if "timeout" in str(e).lower():
                raise OCRTimeoutError(
                    f"Recognition exceeded {self._settings.timeout_seconds}s"
                ) from e
            raise OCRError(f"Recognition failed: {e}") from e
        finally:
            if not worker.done():
                worker.cancel()

        if on_progress:
            on_progress(1.0)

        logger.info(
            "ocr_recognized",
            languages=languages,
            characters=len(text),
        )
        return text
