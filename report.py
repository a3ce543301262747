"""
report.py - Text and JSON-ready rendering of an `ExpenseReport`.

This module converts the aggregated report into:
- a terminal-friendly text block for CLI usage
- a camelCase dictionary for APIs/logging/storage
"""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from date_filter import parse_expense_date
from logging_config import get_logger
from models import BudgetStatus, ExpenseReport

logger = get_logger(__name__)

OUTPUT_WIDTH = 56
SEPARATOR = "=" * OUTPUT_WIDTH
MAX_ROWS_DISPLAY = 5
CENT = Decimal("0.01")

STATUS_MARKERS: dict[BudgetStatus, str] = {
    BudgetStatus.SAFE: "ok",
    BudgetStatus.WARNING: "!!",
    BudgetStatus.DANGER: "XX",
}


def format_currency(amount: Decimal | float | int) -> str:
    """Format an amount as US dollars, e.g. 1234.5 -> "$1,234.50"."""
    value = Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_percentage(value: Decimal | float | int) -> str:
    return f"{Decimal(str(value)):.1f}%"


def format_date(date_str: str) -> str:
    """Format "2025-12-05" as "Dec 5, 2025"; anything unparsable is returned as-is."""
    parsed = parse_expense_date(date_str)
    if parsed is None:
        return date_str
    return f"{parsed:%b} {parsed.day}, {parsed.year}"


def current_month_name(now: Optional[datetime] = None) -> str:
    return f"{(now or datetime.now()):%B %Y}"


def format_report_text(report: ExpenseReport | None) -> str:
    """Format a report into a human-readable text block."""
    if report is None:
        logger.error("report_input_error | report_none=True | fallback=error_block")
        return f"\n{SEPARATOR}\n  ERROR: No expense data available\n{SEPARATOR}\n"

    stats = report.stats
    lines: list[str] = [
        "",
        SEPARATOR,
        f"  Spending - {format_currency(stats.total_spending)} "
        f"across {stats.transaction_count} expense(s)",
        SEPARATOR,
        "",
        f"  Average:        {format_currency(stats.average_transaction)}",
        f"  Top category:   {stats.top_category}",
        f"  Top merchant:   {stats.top_merchant}",
        f"  Top payment:    {stats.top_payment_method}",
    ]

    lines.append("")
    lines.append("  By category:")
    if not report.category_breakdown:
        lines.append("    • (no expenses)")
    for summary in report.category_breakdown[:MAX_ROWS_DISPLAY]:
        lines.append(
            f"    • {summary.category:<24} {format_currency(summary.total):>12}"
            f"  {format_percentage(summary.percentage):>6}"
        )
    hidden = len(report.category_breakdown) - MAX_ROWS_DISPLAY
    if hidden > 0:
        lines.append(f"    • ... and {hidden} more categor{'y' if hidden == 1 else 'ies'}")

    lines.append("")
    lines.append("  Top merchants:")
    if not report.merchant_breakdown:
        lines.append("    • (no expenses)")
    for summary in report.merchant_breakdown[:MAX_ROWS_DISPLAY]:
        lines.append(
            f"    • {summary.merchant:<24} {format_currency(summary.total):>12}"
            f"  x{summary.count}"
        )

    if report.monthly_trend:
        lines.append("")
        lines.append("  Monthly trend:")
        for month in report.monthly_trend:
            lines.append(f"    • {month.month:<10} {format_currency(month.total):>12}  ({month.count})")

    if report.budget_progress:
        lines.append("")
        lines.append(f"  Budgets ({current_month_name()}):")
        for progress in report.budget_progress:
            marker = STATUS_MARKERS.get(progress.status, "??")
            lines.append(
                f"    [{marker}] {progress.category:<20} "
                f"{format_currency(progress.spent)} of {format_currency(progress.limit)}"
                f"  ({format_percentage(progress.percentage)})"
            )

    lines.append("")
    lines.append(SEPARATOR)
    lines.append("")
    return "\n".join(lines)


def format_report_json(report: ExpenseReport | None) -> dict[str, Any]:
    """Return the report as a JSON-ready dict with camelCase keys."""
    if report is None:
        logger.error("report_input_error | report_none=True | fallback=error_payload")
        return {"status": "error", "error": "No expense data available"}

    return report.model_dump(mode="json", by_alias=True, exclude_none=True)
