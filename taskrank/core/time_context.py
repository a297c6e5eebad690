"""Relative time phrases: filter ranges for specific queries, labels for vague ones.

A specific query ("bugs due this week") turns its time phrase into a
DateRange filter. A vague query ("what should I do this week?") keeps the
phrase as context for downstream analysis instead of narrowing the results.
"""

from __future__ import annotations

import calendar
import logging
from datetime import date, timedelta
from typing import Optional, Union

from taskrank.models import DateRange
from taskrank.models.task import ISO_DATE_RE, RELATIVE_DUE_RE

logger = logging.getLogger(__name__)

TIME_CONTEXT_DESCRIPTIONS = {
    "today": "Tasks due today + overdue",
    "tomorrow": "Tasks due by tomorrow + overdue",
    "yesterday": "Tasks that were due yesterday",
    "this-week": "Tasks due by the end of this week + overdue",
    "next-week": "Tasks due by the end of next week + overdue",
    "last-week": "Tasks that were due last week",
    "this-month": "Tasks due by the end of this month + overdue",
    "next-month": "Tasks due by the end of next month + overdue",
    "last-month": "Tasks that were due last month",
    "this-year": "Tasks due by the end of this year + overdue",
    "next-year": "Tasks due by the end of next year + overdue",
    "last-year": "Tasks that were due last year",
}


# =============================================================================
# Calendar helpers (weeks start on Monday)
# =============================================================================


def start_of_week(day: date) -> date:
    return day - timedelta(days=day.weekday())


def end_of_week(day: date) -> date:
    return start_of_week(day) + timedelta(days=6)


def start_of_month(day: date) -> date:
    return day.replace(day=1)


def end_of_month(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def add_months(day: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month's length."""
    index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(index, 12)
    last_day = calendar.monthrange(year, month + 1)[1]
    return date(year, month + 1, min(day.day, last_day))


def period_bounds(period: str, today: date) -> tuple[date, date]:
    """Start and end of a named period relative to today.

    Args:
        period: One of today, tomorrow, yesterday, [last-|next-]week,
            [last-|next-]month, [last-|next-]year (with or without "this-").
        today: Reference date.

    Returns:
        Inclusive (start, end) tuple.

    Raises:
        ValueError: If the period name is unknown.
    """
    name = period.removeprefix("this-")
    if name == "today":
        return today, today
    if name == "tomorrow":
        day = today + timedelta(days=1)
        return day, day
    if name == "yesterday":
        day = today - timedelta(days=1)
        return day, day

    shift, _, unit = name.rpartition("-")
    offset = {"": 0, "last": -1, "next": 1}.get(shift)
    if offset is None:
        raise ValueError(f"Unknown period: {period!r}")

    if unit == "week":
        anchor = today + timedelta(weeks=offset)
        return start_of_week(anchor), end_of_week(anchor)
    if unit == "month":
        anchor = add_months(start_of_month(today), offset)
        return anchor, end_of_month(anchor)
    if unit == "year":
        year = today.year + offset
        return date(year, 1, 1), date(year, 12, 31)
    raise ValueError(f"Unknown period: {period!r}")


# =============================================================================
# Time context resolution
# =============================================================================


def to_date_range(phrase_key: str, today: Optional[date] = None) -> DateRange:
    """Convert a time-context key into its filter form.

    "this/next" periods (and today/tomorrow) become "<=" the end of the
    period, so overdue and undated tasks stay in. "last" periods and
    yesterday become a closed "between" window.
    """
    current = today or date.today()
    start, end = period_bounds(phrase_key, current)
    if phrase_key == "yesterday" or phrase_key.startswith("last-"):
        return DateRange(operator="between", date=start, end_date=end)
    return DateRange(operator="<=", date=end)


def resolve_time_context(
    phrase_key: str, is_vague: bool, today: Optional[date] = None
) -> Union[DateRange, str]:
    """Resolve a recognized time phrase for the enclosing query.

    Args:
        phrase_key: Canonical time-context key (e.g. "this-week").
        is_vague: Whether the enclosing query was judged vague.
        today: Reference date (defaults to the current date).

    Returns:
        The key itself (context form) for vague queries, otherwise a DateRange.
    """
    if is_vague:
        logger.debug("Time phrase %r kept as context (vague query)", phrase_key)
        return phrase_key
    date_range = to_date_range(phrase_key, today)
    logger.debug("Time phrase %r -> %s %s", phrase_key, date_range.operator, date_range.date)
    return date_range


def describe(phrase_key: str) -> str:
    return TIME_CONTEXT_DESCRIPTIONS.get(phrase_key, phrase_key)


# =============================================================================
# Due filter tokens
# =============================================================================


def relative_end(token: str, today: date) -> Optional[date]:
    """End date of a relative "+Nd" / "+Nw" / "+Nm" token, or None."""
    match = RELATIVE_DUE_RE.match(token)
    if not match:
        return None
    amount, unit = int(match.group(1)), match.group(2)
    if unit == "d":
        return today + timedelta(days=amount)
    if unit == "w":
        return today + timedelta(weeks=amount)
    return add_months(today, amount)


def matches_due_filter(token: str, due: Optional[date], today: Optional[date] = None) -> bool:
    """Evaluate one canonical due-date filter token against a task's due date.

    Args:
        token: Canonical token ("overdue", "week", "+3d", "2026-01-31", ...).
        due: Task due date, or None.
        today: Reference date (defaults to the current date).

    Returns:
        True if the task satisfies the token.
    """
    current = today or date.today()

    if token == "any":
        return due is not None
    if token == "none":
        return due is None
    if due is None:
        return False
    if token == "overdue":
        return due < current
    if token == "future":
        return due > current

    end = relative_end(token, current)
    if end is not None:
        return current <= due <= end

    if ISO_DATE_RE.match(token):
        return due == date.fromisoformat(token)

    start, finish = period_bounds(token, current)
    return start <= due <= finish
