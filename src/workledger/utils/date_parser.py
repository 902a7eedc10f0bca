"""Date parsing utilities for attendance and payment dates."""

import re
from datetime import date, timedelta
from typing import Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

_WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
_DAYS_AGO = re.compile(r"^(\d+)\s+days?\s+ago$")


def parse_date(date_str: str, today: Optional[date] = None) -> date:
    """Parse a date string into a date object.

    Supports:
    - Absolute dates: "2025-01-15", "15 Jan 2025", "15/01/2025" (day first)
    - Relative dates: "today", "yesterday", "3 days ago", "last monday"

    Args:
        date_str: Date string
        today: Reference date for relative forms (defaults to date.today())

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    text = date_str.strip().lower()
    today = today or date.today()

    if text == "today":
        return today
    if text == "yesterday":
        return today - timedelta(days=1)

    match = _DAYS_AGO.match(text)
    if match:
        return today - timedelta(days=int(match.group(1)))

    if text.startswith("last ") and text[5:] in _WEEKDAYS:
        # Most recent such weekday strictly before today
        days_ago = (today.weekday() - _WEEKDAYS.index(text[5:])) % 7 or 7
        return today - timedelta(days=days_ago)

    try:
        return date.fromisoformat(text)
    except ValueError:
        pass

    try:
        return date_parser.parse(text, dayfirst=True).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def get_month_range(period: str, today: Optional[date] = None) -> tuple[date, date]:
    """Get start and end dates for a month period.

    Args:
        period: "this-month" (month start to today) or "last-month" (whole month)
        today: Reference date (defaults to date.today())

    Returns:
        Tuple of (start_date, end_date)

    Raises:
        ValueError: If period string is not recognized
    """
    period = period.strip().lower()
    today = today or date.today()

    if period == "this-month":
        return (today.replace(day=1), today)

    if period == "last-month":
        start_date = (today - relativedelta(months=1)).replace(day=1)
        end_date = today.replace(day=1) - timedelta(days=1)
        return (start_date, end_date)

    raise ValueError(f"Unknown period: '{period}'. Supported periods: this-month, last-month")
