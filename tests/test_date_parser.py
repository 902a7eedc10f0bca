"""Tests for date parser with relative dates."""

import pytest
from datetime import date, timedelta
from dateutil.relativedelta import relativedelta
from workledger.utils.date_parser import parse_date, get_month_range

# A Wednesday
REFERENCE = date(2025, 1, 15)


def test_parse_absolute_date():
    """Test parsing absolute dates."""
    result = parse_date("2025-01-15")
    assert result == date(2025, 1, 15)


def test_parse_today():
    """Test parsing 'today'."""
    result = parse_date("today")
    assert result == date.today()


def test_parse_yesterday():
    """Test parsing 'yesterday'."""
    result = parse_date("Yesterday", today=REFERENCE)
    assert result == date(2025, 1, 14)


def test_parse_days_ago():
    """Test parsing 'N days ago'."""
    assert parse_date("3 days ago", today=REFERENCE) == date(2025, 1, 12)
    assert parse_date("1 day ago", today=REFERENCE) == date(2025, 1, 14)


def test_parse_last_weekday():
    """Test parsing 'last <weekday>'."""
    assert parse_date("last monday", today=REFERENCE) == date(2025, 1, 13)
    # Same weekday as today means one week back
    assert parse_date("last wednesday", today=REFERENCE) == date(2025, 1, 8)


def test_parse_invalid_relative():
    """Test parsing invalid relative date."""
    with pytest.raises(ValueError):
        parse_date("last invalid")


def test_parse_garbage():
    """Test parsing text that is not a date."""
    with pytest.raises(ValueError, match="Could not parse date"):
        parse_date("not a date")


def test_parse_standard_formats():
    """Test parsing various standard date formats."""
    # These should all work via dateutil parser
    assert parse_date("January 15, 2024") == date(2024, 1, 15)
    assert parse_date("15/01/2024") == date(2024, 1, 15)
    assert parse_date("05/01/2024") == date(2024, 1, 5)


def test_get_month_range_this_month():
    """Test get_month_range for this-month."""
    start, end = get_month_range("this-month", today=REFERENCE)
    assert start == date(2025, 1, 1)
    assert end == REFERENCE


def test_get_month_range_last_month():
    """Test get_month_range for last-month."""
    today = date.today()
    start, end = get_month_range("last-month")
    # First day of last month
    expected_start = (today - relativedelta(months=1)).replace(day=1)
    # Last day of last month (day before first day of current month)
    expected_end = today.replace(day=1) - timedelta(days=1)
    assert start == expected_start
    assert end == expected_end
    assert end.month == expected_start.month


def test_get_month_range_year_boundary():
    """Test last-month in January falls in the previous year."""
    start, end = get_month_range("last-month", today=REFERENCE)
    assert start == date(2024, 12, 1)
    assert end == date(2024, 12, 31)


def test_get_month_range_invalid_period():
    """Test get_month_range with invalid period."""
    with pytest.raises(ValueError, match="Unknown period"):
        get_month_range("invalid-period")
