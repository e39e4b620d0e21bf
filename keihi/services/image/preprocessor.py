"""
Receipt Image Preprocessor

Prepares a photographed receipt for OCR:
1. Downscale to a maximum width (aspect ratio kept)
2. Grayscale via luminance 0.299R + 0.587G + 0.114B
3. Contrast stretch around a midpoint
4. Threshold to pure black/white

DESIGN DECISION: Steps 3 and 4 are folded into a single 256-entry
lookup table applied with Image.point(). The transform is pure and
deterministic: identical pixels in, identical pixels out.

Decoding is separate (load_image). A photo that cannot be decoded
fails there with ImageDecodeError; preprocess() itself never fails.
"""

from io import BytesIO
from typing import Optional

import structlog
from PIL import Image, ImageOps, UnidentifiedImageError

from keihi.config import PreprocessSettings, get_settings


logger = structlog.get_logger(__name__)


class ImageDecodeError(Exception):
    """The uploaded bytes could not be decoded as an image."""
    pass


def build_threshold_table(
    contrast_factor: float,
    midpoint: int,
    threshold: int,
) -> list[int]:
    """
    Lookup table mapping a luminance value to 0 or 255.

    value → clamp((value - midpoint) * factor + midpoint) → 255 if ≥ threshold else 0
    """
    table = []
    for value in range(256):
        stretched = (value - midpoint) * contrast_factor + midpoint
        stretched = max(0.0, min(255.0, stretched))
        table.append(255 if stretched >= threshold else 0)
    return table


def load_image(image_bytes: bytes) -> Image.Image:
    """
    Decode uploaded bytes into an RGB or grayscale image.

    Applies the EXIF orientation so phone photos come out upright.

    Raises:
        ImageDecodeError: If the bytes are not a readable image
    """
    if not image_bytes:
        raise ImageDecodeError("Image is empty")

    try:
        image = Image.open(BytesIO(image_bytes))
        image.load()
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        SyntaxError,  # Pillow reports some corrupt chunks this way
        ValueError,
    ) as e:
        raise ImageDecodeError(f"Cannot open image: {e}") from e

    image = ImageOps.exif_transpose(image)

    # Palette/CMYK/alpha modes → RGB so luminance weights apply uniformly
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    return image


class ImagePreprocessor:
    """
    Binarizes receipt photos for OCR.

    Parameters come from PreprocessSettings unless passed explicitly.
    """

    def __init__(self, settings: Optional[PreprocessSettings] = None):
        self._settings = settings or get_settings().preprocess
        self._table = build_threshold_table(
            self._settings.contrast_factor,
            self._settings.contrast_midpoint,
            self._settings.threshold,
        )

    @property
    def max_width(self) -> int:
        return self._settings.max_width

    def _downscale(self, image: Image.Image) -> Image.Image:
        """Shrink to max_width if wider; never upscale."""
        width, height = image.size
        if width <= self._settings.max_width:
            return image
        ratio = self._settings.max_width / width
        new_size = (self._settings.max_width, max(1, round(height * ratio)))
        return image.resize(new_size, Image.LANCZOS)

    def preprocess(self, image: Image.Image) -> Image.Image:
        """
        Produce a black/white "L" mode bitmap capped at max_width.

        Args:
            image: Decoded receipt photo, any mode and size

        Returns:
            New image whose pixels are only 0 or 255
        """
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")

        original_size = image.size
        image = self._downscale(image)

        # Pillow's "L" conversion is ITU-R 601-2: 0.299R + 0.587G + 0.114B
        gray = image.convert("L") if image.mode != "L" else image
        binarized = gray.point(self._table)

        logger.debug(
            "image_preprocessed",
            original_size=original_size,
            output_size=binarized.size,
        )
        return binarized


def preprocess(image: Image.Image) -> Image.Image:
    """Preprocess with the configured default settings."""
    return ImagePreprocessor().preprocess(image)
