"""
aggregate.py - Derived views over canonical expenses.

Every function here reads a sequence of `Expense` records and returns new
summary models; nothing is cached and records are never modified.

Money policy: amounts are `Decimal` and are summed naively in input order.
Averages and percentages are left unrounded; display code rounds.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from date_filter import filter_expenses_by_date_range, parse_expense_date
from logging_config import get_logger
from models import (
    NOT_AVAILABLE,
    UNKNOWN,
    ZERO,
    Budget,
    BudgetProgress,
    BudgetStatus,
    CategorySummary,
    DailySummary,
    DateRange,
    Expense,
    ExpenseReport,
    ExpenseStats,
    MerchantSummary,
    MonthlySummary,
)

logger = get_logger(__name__)

HUNDRED = Decimal("100")
DANGER_THRESHOLD = Decimal("90")
WARNING_THRESHOLD = Decimal("70")

NEUTRAL_COLOR = "#9ca3af"

# First matching row wins; keywords are matched as lowercase substrings.
CATEGORY_COLORS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("groceries", "🛒"), "#22c55e"),
    (("shopping", "🛍️"), "#f97316"),
    (("dining", "restaurant", "☕", "🍽️"), "#f59e0b"),
    (("transport", "🚗", "⛽"), "#0ea5e9"),
    (("entertainment", "🎬"), "#f43f5e"),
    (("utilities", "💡"), "#facc15"),
    (("health", "💊", "🏋️"), "#14b8a6"),
    (("travel", "✈️"), "#06b6d4"),
    (("home", "🏠"), "#84cc16"),
)


def category_color(category: str) -> str:
    """Display color for a category label, gray when nothing matches."""
    lowered = (category or "").lower()
    for keywords, color in CATEGORY_COLORS:
        if any(keyword in lowered for keyword in keywords):
            return color
    return NEUTRAL_COLOR


def category_colors(categories: Iterable[str]) -> dict[str, str]:
    return {category: category_color(category) for category in categories}


class _Bucket:
    __slots__ = ("total", "count")

    def __init__(self) -> None:
        self.total = ZERO
        self.count = 0

    def add(self, amount: Decimal) -> None:
        self.total += amount
        self.count += 1


def _group(expenses: Iterable[Expense], key) -> dict[str, _Bucket]:
    """Sum totals per key, preserving first-seen key order."""
    buckets: dict[str, _Bucket] = {}
    for expense in expenses:
        group_key = key(expense)
        if group_key is None:
            continue
        bucket = buckets.get(group_key)
        if bucket is None:
            bucket = buckets[group_key] = _Bucket()
        bucket.add(expense.total)
    return buckets


def _top_key(buckets: dict[str, _Bucket]) -> str:
    """Key with the largest total; ties go to the first key seen."""
    best_key: Optional[str] = None
    best_total: Optional[Decimal] = None
    for group_key, bucket in buckets.items():
        if best_total is None or bucket.total > best_total:
            best_key, best_total = group_key, bucket.total
    return best_key or NOT_AVAILABLE


def _payment_key(expense: Expense) -> str:
    return (expense.payment_method or "").strip() or UNKNOWN


def calculate_stats(expenses: Sequence[Expense]) -> ExpenseStats:
    """Overall totals plus the top category, merchant and payment method."""
    if not expenses:
        return ExpenseStats()

    total_spending = sum((expense.total for expense in expenses), ZERO)
    count = len(expenses)
    return ExpenseStats(
        total_spending=total_spending,
        transaction_count=count,
        average_transaction=total_spending / count,
        top_category=_top_key(_group(expenses, lambda e: e.category)),
        top_merchant=_top_key(_group(expenses, lambda e: e.merchant)),
        top_payment_method=_top_key(_group(expenses, _payment_key)),
    )


def aggregate_by_category(expenses: Sequence[Expense]) -> list[CategorySummary]:
    """Spend per exact category label, largest first."""
    buckets = _group(expenses, lambda e: e.category)
    grand_total = sum((bucket.total for bucket in buckets.values()), ZERO)

    summaries = [
        CategorySummary(
            category=category,
            total=bucket.total,
            count=bucket.count,
            percentage=(bucket.total / grand_total * HUNDRED) if grand_total > 0 else ZERO,
            color=category_color(category),
        )
        for category, bucket in buckets.items()
    ]
    summaries.sort(key=lambda summary: summary.total, reverse=True)
    return summaries


def aggregate_by_merchant(expenses: Sequence[Expense]) -> list[MerchantSummary]:
    """Spend per exact merchant name with the average ticket, largest first."""
    buckets = _group(expenses, lambda e: e.merchant)
    summaries = [
        MerchantSummary(
            merchant=merchant,
            total=bucket.total,
            count=bucket.count,
            average_transaction=bucket.total / bucket.count,
        )
        for merchant, bucket in buckets.items()
    ]
    summaries.sort(key=lambda summary: summary.total, reverse=True)
    return summaries


def format_month_label(month_key: str) -> str:
    """Render "2025-12" as "Dec 2025"; unparsable keys are returned as-is."""
    try:
        return datetime.strptime(month_key, "%Y-%m").strftime("%b %Y")
    except ValueError:
        return month_key


def aggregate_by_month(expenses: Sequence[Expense]) -> list[MonthlySummary]:
    """Spend per calendar month, skipping undated records.

    Sorted by the rendered label string ("Apr 2026" < "Dec 2025"), not by
    date, so trends spanning a year boundary come out out of order.
    """
    buckets = _group(expenses, lambda e: e.date[:7] if e.date else None)
    summaries = [
        MonthlySummary(
            month=format_month_label(month_key),
            total=bucket.total,
            count=bucket.count,
        )
        for month_key, bucket in buckets.items()
    ]
    summaries.sort(key=lambda summary: summary.month)
    return summaries


def aggregate_by_day(expenses: Sequence[Expense]) -> list[DailySummary]:
    """Spend per exact date string, oldest first, skipping undated records."""
    buckets = _group(expenses, lambda e: e.date or None)
    summaries = [
        DailySummary(date=day, total=bucket.total, count=bucket.count)
        for day, bucket in buckets.items()
    ]
    summaries.sort(key=lambda summary: summary.date)
    return summaries


def budget_status(percentage: Decimal) -> BudgetStatus:
    if percentage >= DANGER_THRESHOLD:
        return BudgetStatus.DANGER
    if percentage >= WARNING_THRESHOLD:
        return BudgetStatus.WARNING
    return BudgetStatus.SAFE


def calculate_budget_progress(
    expenses: Sequence[Expense],
    budgets: Iterable[Budget],
    now: Optional[datetime] = None,
) -> list[BudgetProgress]:
    """Compare this calendar month's spend per category with each budget.

    Always applies its own current-month window, whatever range the caller
    already filtered by. One result per budget, in budget order.
    """
    current_month = filter_expenses_by_date_range(expenses, DateRange.THIS_MONTH, now=now)
    spent_by_category = {
        category: bucket.total
        for category, bucket in _group(current_month, lambda e: e.category).items()
    }

    progress: list[BudgetProgress] = []
    for budget in budgets:
        spent = spent_by_category.get(budget.category, ZERO)
        limit = budget.monthly_limit
        percentage = spent / limit * HUNDRED if limit > 0 else ZERO
        progress.append(
            BudgetProgress(
                category=budget.category,
                spent=spent,
                limit=limit,
                percentage=percentage,
                status=budget_status(percentage),
            )
        )
    return progress


def sort_expenses_by_date(expenses: Iterable[Expense]) -> list[Expense]:
    """Newest first by parsed ISO date.

    Records whose date is empty or not ISO-parsable ("Dec 5, 2025") follow
    in their original order.
    """
    dated: list[tuple[datetime, Expense]] = []
    undated: list[Expense] = []
    for expense in expenses:
        parsed = parse_expense_date(expense.date)
        if parsed is None:
            undated.append(expense)
        else:
            dated.append((parsed, expense))
    dated.sort(key=lambda pair: pair[0], reverse=True)
    return [expense for _, expense in dated] + undated


def build_report(
    expenses: Sequence[Expense],
    date_range: DateRange | str = DateRange.ALL,
    budgets: Optional[Iterable[Budget]] = None,
    now: Optional[datetime] = None,
) -> ExpenseReport:
    """Assemble every dashboard view for one request.

    Stats, breakdowns and the daily trend cover the selected range; the
    monthly trend always covers every record so the chart keeps its history.
    """
    selected = filter_expenses_by_date_range(expenses, date_range, now=now)
    report = ExpenseReport(
        records=selected,
        stats=calculate_stats(selected),
        category_breakdown=aggregate_by_category(selected),
        merchant_breakdown=aggregate_by_merchant(selected),
        monthly_trend=aggregate_by_month(expenses),
        daily_trend=aggregate_by_day(selected),
    )
    if budgets is not None:
        report.budget_progress = calculate_budget_progress(expenses, list(budgets), now=now)

    logger.info(
        "build_report | range=%s | records=%s | selected=%s | total=%s | budgets=%s",
        getattr(date_range, "value", date_range),
        len(expenses),
        len(selected),
        report.stats.total_spending,
        len(report.budget_progress) if report.budget_progress is not None else 0,
    )
    return report
