"""Configuration package."""

from keihi.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    PreprocessSettings,
    Settings,
    TesseractSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "PreprocessSettings",
    "Settings",
    "TesseractSettings",
    "get_settings",
    "validate_all_settings",
]
