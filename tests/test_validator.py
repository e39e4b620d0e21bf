"""Tests for confirm-screen receipt validation."""

import pytest
from datetime import date

from keihi.config import AppSettings
from keihi.models.transaction import ExtractedReceipt
from keihi.validation import IncompleteReceiptError, ReceiptValidator


TODAY = date(2024, 6, 1)


@pytest.fixture
def validator() -> ReceiptValidator:
    return ReceiptValidator(AppSettings(max_receipt_amount=100_000, future_date_tolerance_days=7))


def _receipt(**overrides) -> ExtractedReceipt:
    values = {
        "amount": 1200,
        "receipt_date": date(2024, 5, 20),
        "description": "文具店",
    }
    values.update(overrides)
    return ExtractedReceipt(**values)


class TestSchemaStage:
    """Tests for missing and defaulted fields."""

    def test_clean_receipt(self, validator):
        result = validator.validate(_receipt(), today=TODAY)
        assert result.issues == []
        assert result.can_submit

    def test_missing_amount_is_error(self, validator):
        receipt = _receipt(amount=0, unresolved_fields=("amount",))
        result = validator.validate(receipt, today=TODAY)

        assert result.has_errors
        assert result.issues[0].field == "amount"
        assert result.issues[0].issue_type == "missing"

    def test_zero_amount_entered_is_error(self, validator):
        result = validator.validate(_receipt(amount=0), today=TODAY)
        assert result.issues[0].issue_type == "invalid_value"

    def test_defaulted_date_is_warning(self, validator):
        receipt = _receipt(receipt_date=TODAY, unresolved_fields=("receipt_date",))
        result = validator.validate(receipt, today=TODAY)
        assert not result.has_errors
        assert result.issues[0].issue_type == "defaulted"

    def test_missing_description_is_warning(self, validator):
        result = validator.validate(_receipt(description=""), today=TODAY)
        assert not result.has_errors
        assert result.issues[0].field == "description"

    def test_semantic_stage_skipped_on_errors(self, validator):
        receipt = _receipt(amount=0, receipt_date=date(2030, 1, 1))
        result = validator.validate(receipt, today=TODAY)
        assert [issue.field for issue in result.issues] == ["amount"]


class TestSemanticStage:
    """Tests for plausibility warnings."""

    def test_future_date_within_tolerance(self, validator):
        result = validator.validate(_receipt(receipt_date=date(2024, 6, 8)), today=TODAY)
        assert result.issues == []

    def test_future_date_beyond_tolerance(self, validator):
        result = validator.validate(_receipt(receipt_date=date(2024, 6, 9)), today=TODAY)
        assert result.issues[0].issue_type == "future_date"
        assert result.can_submit

    def test_old_date(self, validator):
        result = validator.validate(_receipt(receipt_date=date(2021, 1, 1)), today=TODAY)
        assert result.issues[0].issue_type == "suspicious_date"

    def test_high_amount(self, validator):
        result = validator.validate(_receipt(amount=150_000), today=TODAY)
        assert result.issues[0].issue_type == "suspicious_value"
        assert "¥150,000" in result.issues[0].message


class TestSubmission:
    """Tests for the save gate."""

    def test_require_submittable_raises(self, validator):
        with pytest.raises(IncompleteReceiptError) as excinfo:
            validator.require_submittable(_receipt(amount=0), today=TODAY)
        assert excinfo.value.result.has_errors
        assert "amount" in str(excinfo.value)

    def test_require_submittable_allows_warnings(self, validator):
        result = validator.require_submittable(_receipt(description=""), today=TODAY)
        assert not result.has_errors

    def test_summary_text(self, validator):
        clean = validator.validate(_receipt(), today=TODAY)
        assert "All checks passed" in validator.get_user_friendly_summary(clean)

        broken = validator.validate(_receipt(amount=0, description=""), today=TODAY)
        summary = validator.get_user_friendly_summary(broken)
        assert "Please fix before saving" in summary
        assert "Please verify the following" in summary



class TestCorrections:
    """Tests for applying confirm-screen edits to a proposal."""

    def test_edits_are_applied(self, validator):
        corrected = validator.apply_corrections(_receipt(), {"amount": 980, "description": "喫茶店"})
        assert corrected.amount == 980
        assert corrected.description == "喫茶店"
        assert corrected.receipt_date == date(2024, 5, 20)

    def test_overlong_description_is_rejected(self, validator):
        """Test a 60-character description fails like any other blocking error."""
        with pytest.raises(IncompleteReceiptError) as excinfo:
            validator.apply_corrections(_receipt(), {"description": "あ" * 60})
        issue = excinfo.value.result.issues[0]
        assert issue.field == "description"
        assert issue.severity == "error"
        assert "description" in str(excinfo.value)

    def test_negative_amount_is_rejected(self, validator):
        with pytest.raises(IncompleteReceiptError) as excinfo:
            validator.apply_corrections(_receipt(), {"amount": -5})
        assert excinfo.value.result.issues[0].field == "amount"

if __name__ == "__main__":
    pytest.main([__file__, "-v"])
