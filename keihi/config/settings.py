"""
Configuration Management for Keihi

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Tunable constants of the receipt pipeline (preprocessing thresholds,
OCR languages) live next to the storage credentials so every knob
the system has can be read in one place.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PreprocessSettings(BaseSettings):
    """Receipt image preprocessing parameters."""

    model_config = SettingsConfigDict(
        env_prefix="PREPROCESS_",
        extra="ignore"
    )

    max_width: int = Field(
        default=1600,
        ge=100,
        description="Images wider than this are downscaled (aspect ratio kept)"
    )
    contrast_factor: float = Field(
        default=1.6,
        gt=0.0,
        description="Contrast stretch factor applied around the midpoint"
    )
    contrast_midpoint: int = Field(
        default=128,
        ge=0,
        le=255,
        description="Luminance value left unchanged by the contrast stretch"
    )
    threshold: int = Field(
        default=140,
        ge=0,
        le=255,
        description="Stretched luminance at or above this becomes white"
    )


class TesseractSettings(BaseSettings):
    """Tesseract OCR configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TESSERACT_",
        extra="ignore"
    )

    cmd: Optional[str] = Field(
        default=None,
        description="Path to the tesseract binary (None = look up on PATH)"
    )
    languages: str = Field(
        default="jpn+eng",
        description="Default language hints, '+'-separated"
    )
    page_segmentation_mode: int = Field(
        default=6,
        ge=0,
        le=13,
        description="Tesseract --psm value (6 = single uniform block of text)"
    )
    timeout_seconds: int = Field(
        default=60,
        ge=0,
        description="Abort recognition after this many seconds (0 = no limit)"
    )
    progress_interval_seconds: float = Field(
        default=0.5,
        gt=0,
        description="How often to report estimated progress while tesseract runs"
    )

    @property
    def language_list(self) -> list[str]:
        """Get language hints as a list."""
        return [lang.strip() for lang in self.languages.split("+") if lang.strip()]


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet for income/expense records"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    default_book_id: str = Field(
        default="default",
        min_length=1,
        description="Book used when the caller does not name one"
    )

    # File upload limits
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum upload file size in MB"
    )
    supported_image_formats: str = Field(
        default="jpg,jpeg,png,gif,webp,heic",
        description="Comma-separated list of supported image formats"
    )
    receipts_dir: Optional[str] = Field(
        default=None,
        description="Directory receipt_path values are relative to (None = receipt files are not managed)"
    )

    # Validation thresholds
    max_receipt_amount: int = Field(
        default=10_000_000,
        ge=1,
        description="Receipt totals above this (yen) are flagged as suspicious"
    )
    future_date_tolerance_days: int = Field(
        default=7,
        ge=0,
        description="How many days in the future a receipt date can be"
    )

    # Tax summary
    blue_return_deduction: int = Field(
        default=650_000,
        ge=0,
        description="Blue-return special deduction assumed by the tax summary (yen)"
    )

    @property
    def supported_formats_list(self) -> list[str]:
        """Get supported formats as a list."""
        return [fmt.strip().lower() for fmt in self.supported_image_formats.split(",")]

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so a missing Google Sheets
    # configuration does not prevent local-only use.

    @property
    def preprocess(self) -> PreprocessSettings:
        return PreprocessSettings()

    @property
    def tesseract(self) -> TesseractSettings:
        return TesseractSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    "<name>_error" entry for each block that failed.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    sections = {
        "preprocess": lambda: settings.preprocess,
        "tesseract": lambda: settings.tesseract,
        "google_sheets": lambda: settings.google_sheets,
        "app": lambda: settings.app,
    }

    for name, load in sections.items():
        try:
            load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
