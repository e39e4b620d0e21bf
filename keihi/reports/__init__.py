"""Yearly summary, dashboard, tax text and backup export."""

from keihi.reports.summary import (
    BLUE_RETURN_DEDUCTION,
    backup_filename,
    build_annual_summary,
    build_backup_export,
    build_dashboard,
    estimated_taxable_income,
    recent_transactions,
    render_tax_summary_text,
)

__all__ = [
    "BLUE_RETURN_DEDUCTION",
    "backup_filename",
    "build_annual_summary",
    "build_backup_export",
    "build_dashboard",
    "estimated_taxable_income",
    "recent_transactions",
    "render_tax_summary_text",
]
