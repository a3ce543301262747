"""
date_filter.py - Narrow expenses to one of the dashboard's date windows.

Windows are inclusive and anchored to the wall clock at call time unless
`now` is passed in. Records without a parseable date only survive "all".
"""

from __future__ import annotations

from datetime import datetime, time
from typing import Iterable, Optional

from dateutil import parser as dateparser
from dateutil.relativedelta import relativedelta

from logging_config import get_logger
from models import DateRange, Expense

logger = get_logger(__name__)


def _start_of_month(moment: datetime) -> datetime:
    return datetime.combine(moment.date().replace(day=1), time.min)


def _end_of_month(moment: datetime) -> datetime:
    last_day = moment.date().replace(day=1) + relativedelta(months=1, days=-1)
    return datetime.combine(last_day, time.max)


def coerce_range(value: DateRange | str) -> Optional[DateRange]:
    """Return the DateRange for `value`, or None when it is not a known range."""
    if isinstance(value, DateRange):
        return value
    try:
        return DateRange(str(value).strip())
    except ValueError:
        return None


def date_range_window(
    date_range: DateRange | str,
    now: Optional[datetime] = None,
) -> Optional[tuple[datetime, datetime]]:
    """Return the inclusive (start, end) window, or None for "all"/unknown."""
    selected = coerce_range(date_range)
    if selected is None or selected is DateRange.ALL:
        return None

    now = now or datetime.now()
    if now.tzinfo is not None:
        now = now.astimezone().replace(tzinfo=None)
    if selected is DateRange.THIS_MONTH:
        return _start_of_month(now), _end_of_month(now)
    if selected is DateRange.LAST_MONTH:
        previous = now - relativedelta(months=1)
        return _start_of_month(previous), _end_of_month(previous)
    if selected is DateRange.LAST_3_MONTHS:
        return _start_of_month(now - relativedelta(months=2)), _end_of_month(now)
    # thisYear runs up to the current moment, not the end of the year.
    return datetime.combine(now.date().replace(month=1, day=1), time.min), now


def parse_expense_date(value: str) -> Optional[datetime]:
    """Parse an ISO date/datetime string; None when empty or unparsable."""
    if not value or not value.strip():
        return None
    try:
        parsed = dateparser.isoparse(value.strip())
    except (ValueError, OverflowError) as exc:
        logger.debug(
            "parse_expense_date | parse_error=%s | raw=%r | fallback=None",
            type(exc).__name__,
            value,
        )
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def filter_expenses_by_date_range(
    expenses: Iterable[Expense],
    date_range: DateRange | str,
    now: Optional[datetime] = None,
) -> list[Expense]:
    """Keep the expenses whose date falls inside `date_range`.

    "all" returns every record in its original order, undated ones
    included. Unknown range names are treated like "all".
    """
    records = list(expenses)
    selected = coerce_range(date_range)
    if selected is None:
        logger.warning(
            "filter_expenses | unknown_range=%r | fallback='all'",
            date_range,
        )
        return records

    window = date_range_window(selected, now=now)
    if window is None:
        return records

    start, end = window
    kept: list[Expense] = []
    for expense in records:
        expense_date = parse_expense_date(expense.date)
        if expense_date is not None and start <= expense_date <= end:
            kept.append(expense)

    logger.debug(
        "filter_expenses | range=%s | start=%s | end=%s | kept=%s | dropped=%s",
        selected.value,
        start.date().isoformat(),
        end.date().isoformat(),
        len(kept),
        len(records) - len(kept),
    )
    return kept
