"""Tests for yearly summaries, tax text and backup export."""

import json
import pytest
from datetime import date, datetime

from keihi.models.transaction import Category, Transaction, TransactionKind
from keihi.reports import (
    backup_filename,
    build_annual_summary,
    build_backup_export,
    build_dashboard,
    estimated_taxable_income,
    recent_transactions,
    render_tax_summary_text,
)


def _expense(amount: int, day: date, category: Category = Category.SUPPLIES) -> Transaction:
    return Transaction(
        book_id="default",
        kind=TransactionKind.EXPENSE,
        transaction_date=day,
        amount=amount,
        category=category,
    )


def _income(amount: int, day: date) -> Transaction:
    return Transaction(
        book_id="default",
        kind=TransactionKind.INCOME,
        transaction_date=day,
        amount=amount,
    )


@pytest.fixture
def book() -> list[Transaction]:
    return [
        _income(1_500_000, date(2024, 3, 31)),
        _income(1_500_000, date(2024, 9, 30)),
        _expense(300_000, date(2024, 2, 10), Category.OUTSOURCING),
        _expense(80_000, date(2024, 3, 15), Category.TRAVEL),
        _expense(40_000, date(2024, 3, 20), Category.SUPPLIES),
        _expense(40_000, date(2024, 11, 2), Category.TRAVEL),
        _expense(40_000, date(2024, 12, 1), Category.COMMUNICATION),
        _expense(99_999, date(2023, 12, 31), Category.MISC),  # other year
    ]


class TestAnnualSummary:
    """Tests for build_annual_summary."""

    def test_totals(self, book):
        summary = build_annual_summary(book, 2024)
        assert summary.income == 3_000_000
        assert summary.expenses == 500_000
        assert summary.profit == 2_500_000

    def test_breakdown_largest_first(self, book):
        summary = build_annual_summary(book, 2024)
        assert [item.category for item in summary.breakdown] == [
            Category.OUTSOURCING,
            Category.TRAVEL,
            Category.COMMUNICATION,
            Category.SUPPLIES,
        ]
        travel = summary.breakdown[1]
        assert travel.total == 120_000
        assert travel.count == 2
        assert travel.display_name == "旅費交通費"

    def test_ties_keep_taxonomy_order(self):
        records = [
            _expense(1000, date(2024, 1, 1), Category.MISC),
            _expense(1000, date(2024, 1, 2), Category.TRAVEL),
        ]
        summary = build_annual_summary(records, 2024)
        assert [item.category for item in summary.breakdown] == [Category.TRAVEL, Category.MISC]

    def test_monthly_buckets(self, book):
        summary = build_annual_summary(book, 2024)
        assert len(summary.monthly) == 12
        march = summary.monthly[2]
        assert march.month == 3
        assert march.income == 1_500_000
        assert march.expense == 120_000
        assert summary.monthly[0].income == 0
        assert summary.monthly[0].expense == 0

    def test_empty_year(self):
        summary = build_annual_summary([], 2024)
        assert summary.income == 0
        assert summary.breakdown == []
        assert len(summary.monthly) == 12


class TestTaxSummaryText:
    """Tests for the accountant-facing summary text."""

    def test_layout(self, book):
        text = render_tax_summary_text(build_annual_summary(book, 2024))
        lines = text.splitlines()

        assert lines[0] == "【2024年分 確定申告データまとめ】"
        assert "期間: 2024/01/01 - 2024/12/31" in lines
        assert "総収入: 3,000,000円" in lines
        assert "総経費: 500,000円" in lines
        assert "  外注工賃: 300,000円" in lines
        assert "  青色申告特別控除: 650,000円（65万円控除想定）" in lines
        assert "  課税所得目安: 1,850,000円" in lines
        assert text.endswith("\n")

    def test_breakdown_lines_follow_summary_order(self, book):
        text = render_tax_summary_text(build_annual_summary(book, 2024))
        assert text.index("外注工賃") < text.index("旅費交通費") < text.index("消耗品費")

    def test_taxable_income_floors_at_zero(self):
        summary = build_annual_summary([_income(500_000, date(2024, 5, 1))], 2024)
        assert estimated_taxable_income(summary) == 0
        assert "  課税所得目安: 0円" in render_tax_summary_text(summary).splitlines()

    def test_custom_deduction(self):
        summary = build_annual_summary([_income(1_000_000, date(2024, 5, 1))], 2024)
        text = render_tax_summary_text(summary, deduction=100_000)
        assert "  青色申告特別控除: 100,000円（10万円控除想定）" in text.splitlines()
        assert "  課税所得目安: 900,000円" in text.splitlines()


class TestDashboard:
    """Tests for the this-year / this-month overview."""

    def test_year_and_month_totals(self, book):
        dashboard = build_dashboard(book, today=date(2024, 3, 25))

        assert (dashboard.year, dashboard.month) == (2024, 3)
        assert dashboard.year_income == 3_000_000
        assert dashboard.year_expense == 500_000
        assert dashboard.year_profit == 2_500_000
        assert dashboard.month_income == 1_500_000
        assert dashboard.month_expense == 120_000

    def test_breakdown_and_trend_cover_this_year(self, book):
        dashboard = build_dashboard(book, today=date(2024, 3, 25))

        assert dashboard.breakdown[0].category == Category.OUTSOURCING
        assert Category.MISC not in [item.category for item in dashboard.breakdown]
        assert [bucket.month for bucket in dashboard.monthly] == list(range(1, 13))

    def test_recent_spans_all_years(self, book):
        dashboard = build_dashboard(book, today=date(2025, 1, 5), recent_limit=10)

        assert len(dashboard.recent) == 8
        assert dashboard.recent[-1].transaction_date == date(2023, 12, 31)
        assert dashboard.year_income == 0
        assert dashboard.month_expense == 0


class TestRecentAndBackup:
    """Tests for the dashboard list and JSON backup."""

    def test_recent_newest_first(self, book):
        recent = recent_transactions(book, limit=3)
        assert [record.transaction_date for record in recent] == [
            date(2024, 12, 1),
            date(2024, 11, 2),
            date(2024, 9, 30),
        ]

    def test_backup_export(self, book):
        exported_at = datetime(2025, 1, 10, 9, 0, 0)
        export = build_backup_export(book, exported_at=exported_at)

        assert export["export_date"] == "2025-01-10T09:00:00"
        assert export["summary"] == {
            "total_income": 3_000_000,
            "total_expenses": 599_999,
            "income_count": 2,
            "expense_count": 6,
        }
        assert export["expenses"][0]["transaction_date"] == "2023-12-31"
        assert export["income"][0]["income_type"] == "振込"
        json.dumps(export, ensure_ascii=False)

    def test_backup_filename(self):
        assert backup_filename(datetime(2025, 1, 10, 9, 0)) == "tax-backup-2025-01-10.json"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
