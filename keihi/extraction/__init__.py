"""Receipt text extraction and category suggestion."""

from keihi.extraction.categories import (
    CATEGORY_TAXONOMY,
    display_name,
    get_category_definition,
    suggest_category,
)
from keihi.extraction.receipt_parser import extract_fields

__all__ = [
    "CATEGORY_TAXONOMY",
    "display_name",
    "extract_fields",
    "get_category_definition",
    "suggest_category",
]
