"""
Yearly Reports

Pure functions over lists of Transactions:
- build_annual_summary: totals, category breakdown, monthly trend
- render_tax_summary_text: the 確定申告 summary block users paste
  into a message to their accountant
- build_dashboard: this year and this month at a glance
- build_backup_export: JSON-ready dump of the whole book

The tax text is a convenience summary, not a tax computation.
"""

from collections import defaultdict
from datetime import date, datetime
from typing import Iterable, Optional

from keihi.extraction.categories import display_name
from keihi.models.transaction import (
    AnnualSummary,
    Category,
    CategoryTotal,
    DashboardSummary,
    MonthlyTotal,
    Transaction,
    TransactionKind,
)


BLUE_RETURN_DEDUCTION = 650_000


def _yen(amount: int) -> str:
    return f"{amount:,}円"


def build_annual_summary(
    transactions: Iterable[Transaction],
    year: int,
) -> AnnualSummary:
    """
    Aggregate one calendar year.

    Records dated outside the year are ignored. The breakdown only
    lists categories that have expenses, largest total first.
    """
    income = 0
    expenses = 0
    category_totals: dict = defaultdict(int)
    category_counts: dict = defaultdict(int)
    monthly_income = [0] * 12
    monthly_expense = [0] * 12

    for record in transactions:
        if record.transaction_date.year != year:
            continue
        month_index = record.transaction_date.month - 1
        if record.kind == TransactionKind.INCOME:
            income += record.amount
            monthly_income[month_index] += record.amount
        else:
            expenses += record.amount
            monthly_expense[month_index] += record.amount
            category_totals[record.category] += record.amount
            category_counts[record.category] += 1

    breakdown = [
        CategoryTotal(
            category=category,
            display_name=display_name(category),
            total=total,
            count=category_counts[category],
        )
        for category, total in category_totals.items()
    ]
    # Ties keep taxonomy order
    order = {category: index for index, category in enumerate(Category)}
    breakdown.sort(key=lambda item: (-item.total, order[item.category]))

    monthly = [
        MonthlyTotal(month=month, income=monthly_income[month - 1], expense=monthly_expense[month - 1])
        for month in range(1, 13)
    ]

    return AnnualSummary(
        year=year,
        income=income,
        expenses=expenses,
        breakdown=breakdown,
        monthly=monthly,
    )


def estimated_taxable_income(
    summary: AnnualSummary,
    deduction: int = BLUE_RETURN_DEDUCTION,
) -> int:
    """Income minus expenses minus the blue-return deduction, floored at 0."""
    return max(0, summary.income - summary.expenses - deduction)


def render_tax_summary_text(
    summary: AnnualSummary,
    deduction: int = BLUE_RETURN_DEDUCTION,
) -> str:
    """
    Render the yearly summary as plain text.

    Example:
        【2024年分 確定申告データまとめ】

        期間: 2024/01/01 - 2024/12/31
        総収入: 3,000,000円
        総経費: 420,000円
        ...
    """
    year = summary.year
    lines = [
        f"【{year}年分 確定申告データまとめ】",
        "",
        f"期間: {year}/01/01 - {year}/12/31",
        f"総収入: {_yen(summary.income)}",
        f"総経費: {_yen(summary.expenses)}",
        "",
        "【経費内訳】",
    ]
    for item in summary.breakdown:
        lines.append(f"  {item.display_name}: {_yen(item.total)}")

    lines.extend([
        "",
        "【控除・所得】",
        f"  青色申告特別控除: {_yen(deduction)}（{deduction // 10_000}万円控除想定）",
        f"  課税所得目安: {_yen(estimated_taxable_income(summary, deduction))}",
        "",
        "【質問・コメント】",
        "  ここに質問を記入してください",
    ])
    return "\n".join(lines) + "\n"


def recent_transactions(
    transactions: Iterable[Transaction],
    limit: int = 10,
) -> list[Transaction]:
    """Newest records first, income and expenses mixed."""
    ordered = sorted(
        transactions,
        key=lambda r: (r.transaction_date, r.created_at),
        reverse=True,
    )
    return ordered[:limit]


def build_dashboard(
    transactions: Iterable[Transaction],
    today: date,
    recent_limit: int = 10,
) -> DashboardSummary:
    """Totals for today's year and month plus the latest records of any year."""
    transactions = list(transactions)
    summary = build_annual_summary(transactions, today.year)
    this_month = summary.monthly[today.month - 1]

    return DashboardSummary(
        year=today.year,
        month=today.month,
        year_income=summary.income,
        year_expense=summary.expenses,
        month_income=this_month.income,
        month_expense=this_month.expense,
        recent=recent_transactions(transactions, recent_limit),
        breakdown=summary.breakdown,
        monthly=summary.monthly,
    )


def build_backup_export(
    transactions: Iterable[Transaction],
    exported_at: Optional[datetime] = None,
) -> dict:
    """
    JSON-ready dump of every record, oldest first.

    The caller writes it with json.dump(..., ensure_ascii=False).
    """
    exported_at = exported_at or datetime.utcnow()
    ordered = sorted(transactions, key=lambda r: (r.transaction_date, r.created_at))

    income = [r for r in ordered if r.kind == TransactionKind.INCOME]
    expenses = [r for r in ordered if r.kind == TransactionKind.EXPENSE]

    return {
        "export_date": exported_at.isoformat(),
        "income": [r.model_dump(mode="json") for r in income],
        "expenses": [r.model_dump(mode="json") for r in expenses],
        "summary": {
            "total_income": sum(r.amount for r in income),
            "total_expenses": sum(r.amount for r in expenses),
            "income_count": len(income),
            "expense_count": len(expenses),
        },
    }


def backup_filename(exported_at: datetime) -> str:
    return f"tax-backup-{exported_at.date().isoformat()}.json"
