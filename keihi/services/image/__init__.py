"""Image processing services package."""

from keihi.services.image.preprocessor import (
    ImageDecodeError,
    ImagePreprocessor,
    build_threshold_table,
    load_image,
    preprocess,
)

__all__ = [
    "ImageDecodeError",
    "ImagePreprocessor",
    "build_threshold_table",
    "load_image",
    "preprocess",
]
