"""Границы периода отчёта."""
from datetime import date, datetime

import pytest

from backoffice.core.errors import ValidationError
from backoffice.services.periods import day_bounds, parse_date_range, parse_open_range, resolve_period

NOW = datetime(2024, 3, 15, 18, 45)


def test_today():
    assert resolve_period("today", now=NOW) == ("2024-03-15", "2024-03-15")


def test_week_is_rolling_seven_days():
    assert resolve_period("week", now=NOW) == ("2024-03-08", "2024-03-15")


def test_week_crosses_month_boundary():
    assert resolve_period("week", now=datetime(2024, 3, 3, 9, 0)) == ("2024-02-25", "2024-03-03")


def test_month_starts_on_first_day():
    assert resolve_period("month", now=NOW) == ("2024-03-01", "2024-03-15")


def test_custom_passes_dates_through():
    assert resolve_period("custom", "2024-01-10", "2024-01-20", now=NOW) == ("2024-01-10", "2024-01-20")
    # Не проверяется здесь — это дело читателей
    assert resolve_period("custom", "2024-02-01", "2024-01-01") == ("2024-02-01", "2024-01-01")


@pytest.mark.parametrize("start,end", [(None, "2024-01-20"), ("2024-01-10", ""), (None, None)])
def test_custom_requires_both_dates(start, end):
    with pytest.raises(ValidationError):
        resolve_period("custom", start, end)


def test_unknown_mode():
    with pytest.raises(ValidationError):
        resolve_period("year", now=NOW)


def test_parse_date_range():
    assert parse_date_range("2024-01-10", "2024-01-10") == (date(2024, 1, 10), date(2024, 1, 10))


@pytest.mark.parametrize(
    "start,end",
    [("2024-02-01", "2024-01-01"), ("10.01.2024", "2024-01-20"), ("2024-01-10", None), ("2024-13-01", "2024-12-31")],
)
def test_parse_date_range_rejects(start, end):
    with pytest.raises(ValidationError):
        parse_date_range(start, end)


def test_day_bounds_cover_whole_last_day():
    start, end = day_bounds(date(2024, 1, 10), date(2024, 1, 11))
    assert start == datetime(2024, 1, 10)
    assert end == datetime(2024, 1, 12)


def test_open_range_defaults_missing_bounds():
    today = date(2024, 3, 15)
    assert parse_open_range("2024-03-01", None, today=today) == (date(2024, 3, 1), today)
    assert parse_open_range(None, "2024-02-01", today=today) == (date(1970, 1, 1), date(2024, 2, 1))
    assert parse_open_range(None, None, today=today) == (date(1970, 1, 1), today)


def test_open_range_still_checks_order():
    with pytest.raises(ValidationError):
        parse_open_range("2024-04-01", None, today=date(2024, 3, 15))
