"""
Two-Stage Receipt Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Fields the extractor could not find (they hold defaults)
- Amount must be positive

STAGE 2 - SEMANTIC VALIDATION:
- Future date detection
- Very old date detection
- Absurd amount detection

Stage 2 only runs when stage 1 found no errors.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for the confirm screen; the user corrects the fields.
"""

from datetime import date, timedelta
from typing import Any, Optional

from pydantic import ValidationError

from keihi.config import AppSettings, get_settings
from keihi.models.transaction import (
    ExtractedReceipt,
    ValidationIssue,
    ValidationResult,
)


class IncompleteReceiptError(Exception):
    """A receipt with blocking validation errors was submitted."""

    def __init__(self, result: ValidationResult):
        self.result = result
        fields = ", ".join(
            issue.field for issue in result.issues if issue.severity == "error"
        )
        super().__init__(f"Receipt cannot be saved; fix: {fields}")


class ReceiptValidator:
    """
    Validates extracted (or user-corrected) receipts.

    Errors block saving; warnings are shown on the confirm screen.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def _validate_schema(
        self,
        receipt: ExtractedReceipt,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: missing or defaulted fields.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if receipt.amount <= 0:
            missing = "amount" in receipt.unresolved_fields
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing" if missing else "invalid_value",
                message=(
                    "Total amount could not be read from the receipt"
                    if missing
                    else "Amount must be greater than zero"
                ),
                severity="error",
                suggested_fix="Enter the total shown on the receipt",
            ))

        if "receipt_date" in receipt.unresolved_fields:
            issues.append(ValidationIssue(
                field="receipt_date",
                issue_type="defaulted",
                message=f"No date found on the receipt; using {receipt.receipt_date.isoformat()}",
                severity="warning",
                suggested_fix="Check the date before saving",
            ))

        if not receipt.description:
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="Store name could not be read",
                severity="warning",  # Warning because user can manually enter
                suggested_fix="Enter the store or a short description",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        receipt: ExtractedReceipt,
        today: date,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: plausibility checks.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        # Future date check (with tolerance)
        max_future_date = today + timedelta(days=self._settings.future_date_tolerance_days)
        if receipt.receipt_date > max_future_date:
            issues.append(ValidationIssue(
                field="receipt_date",
                issue_type="future_date",
                message=f"Receipt date ({receipt.receipt_date.isoformat()}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        # Very old date check (might be OCR error)
        min_reasonable_date = today - timedelta(days=365 * 2)
        if receipt.receipt_date < min_reasonable_date:
            issues.append(ValidationIssue(
                field="receipt_date",
                issue_type="suspicious_date",
                message=f"Receipt date ({receipt.receipt_date.isoformat()}) seems unusually old",
                severity="warning",
                suggested_fix="Please verify the date was read correctly",
            ))

        # Absurd amount check
        if receipt.amount > self._settings.max_receipt_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount (¥{receipt.amount:,}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate(
        self,
        receipt: ExtractedReceipt,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        Run both stages.

        Args:
            receipt: Extracted or corrected receipt
            today: Reference date for date checks (defaults to today)

        Returns:
            ValidationResult with all issues found
        """
        today = today or date.today()
        all_issues = []

        schema_valid, schema_issues = self._validate_schema(receipt)
        all_issues.extend(schema_issues)

        if schema_valid:
            _, semantic_issues = self._validate_semantic(receipt, today)
            all_issues.extend(semantic_issues)

        return ValidationResult(issues=all_issues)

    def apply_corrections(
        self,
        receipt: ExtractedReceipt,
        updates: dict[str, Any],
    ) -> ExtractedReceipt:
        """
        Build a new receipt from the proposal and the user's edits.

        Edits go through the model's own field rules (amount >= 0,
        description up to 50 characters).

        Raises:
            IncompleteReceiptError: If an edit breaks a field rule
        """
        try:
            return ExtractedReceipt.model_validate({**receipt.model_dump(), **updates})
        except ValidationError as e:
            issues = [
                ValidationIssue(
                    field=str(error["loc"][0]) if error["loc"] else "receipt",
                    issue_type="invalid_value",
                    message=error["msg"],
                    severity="error",
                )
                for error in e.errors()
            ]
            raise IncompleteReceiptError(ValidationResult(issues=issues)) from e

    def require_submittable(
        self,
        receipt: ExtractedReceipt,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        Validate and raise if anything blocks saving.

        Raises:
            IncompleteReceiptError: If there are error-level issues
        """
        result = self.validate(receipt, today=today)
        if result.has_errors:
            raise IncompleteReceiptError(result)
        return result

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a short summary for the confirm screen.
        """
        if not result.issues:
            return "✅ All checks passed! Please review the details below."

        lines = []

        errors = [issue for issue in result.issues if issue.severity == "error"]
        warnings = [issue for issue in result.issues if issue.severity == "warning"]

        if errors:
            lines.append("❌ Please fix before saving:")
            for issue in errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

        if warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for issue in warnings:
                lines.append(f"   • {issue.message}")

        return "\n".join(lines)
