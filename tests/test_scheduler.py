"""Tests for session date expansion and weekday parsing."""
from datetime import date, datetime, timedelta

import pandas as pd
import pytest

from core.scheduler import (
    CalendarWindow,
    Weekday,
    expand_window,
    generate_simple_pattern,
    parse_day_filter,
    parse_ymd,
)


@pytest.mark.parametrize("start,end", [
    ("2025-01-01", "2025-01-01"),
    ("2025-01-06", "2025-01-19"),
    ("2024-02-20", "2024-03-05"),   # crosses a leap day
    ("2024-12-30", "2025-01-02"),
])
def test_unfiltered_window_has_every_day(start, end) -> None:
    dates = expand_window(start, end)
    span = (parse_ymd(end) - parse_ymd(start)).days + 1
    assert len(dates) == span
    assert dates[0] == start
    assert dates[-1] == end
    assert dates == sorted(set(dates))


def test_weekday_filter_keeps_named_days_only() -> None:
    assert expand_window("2025-01-06", "2025-01-19", "Monday, Wednesday") == [
        "2025-01-06", "2025-01-08", "2025-01-13", "2025-01-15",
    ]


def test_malformed_window_is_empty() -> None:
    assert expand_window("not-a-date", "2025-01-19") == []
    assert expand_window("2025-01-06", "2025-02-30") == []
    assert expand_window("2025-01-19", "2025-01-06") == []


def test_filter_naming_no_weekday_means_every_day() -> None:
    assert len(expand_window("2025-01-06", "2025-01-12", "someday, ")) == 7


def test_parse_day_filter_accepts_full_and_short_names() -> None:
    assert parse_day_filter("monday, WED , Fri") == {Weekday.MONDAY, Weekday.WEDNESDAY, Weekday.FRIDAY}
    assert parse_day_filter("sun") == {Weekday.SUNDAY}


def test_parse_day_filter_ignores_partial_tokens() -> None:
    # no prefix matching: 'Mo' and 'Thurs' are not weekdays
    assert parse_day_filter("Mo, Thurs, Tuesday") == {Weekday.TUESDAY}
    assert parse_day_filter("Mo") is None
    assert parse_day_filter("") is None
    assert parse_day_filter(None) is None


def test_weekday_ordinals_match_date_weekday() -> None:
    monday = date(2025, 1, 6)
    for i in range(7):
        d = monday + timedelta(days=i)
        assert Weekday(d.weekday()).value == i


def test_parse_ymd() -> None:
    assert parse_ymd("2025-1-6") == date(2025, 1, 6)
    assert parse_ymd(date(2025, 1, 6)) == date(2025, 1, 6)
    assert parse_ymd("06/01/2025") is None
    assert parse_ymd("2025-13-01") is None
    assert parse_ymd(None) is None


def test_parse_ymd_truncates_datetimes() -> None:
    assert parse_ymd(datetime(2025, 1, 6, 18, 30)) == date(2025, 1, 6)
    assert type(parse_ymd(datetime(2025, 1, 6))) is date
    assert parse_ymd(pd.Timestamp("2025-01-06 09:00")) == date(2025, 1, 6)
    assert parse_ymd(pd.NaT) is None


def test_window_accepts_datetime_bounds() -> None:
    assert expand_window(datetime(2025, 1, 6, 12), "2025-01-08") == ["2025-01-06", "2025-01-07", "2025-01-08"]
    assert expand_window(pd.Timestamp("2025-01-06"), datetime(2025, 1, 7)) == ["2025-01-06", "2025-01-07"]


def test_generate_simple_pattern_keeps_listed_weekdays() -> None:
    days = generate_simple_pattern(date(2025, 1, 6), date(2025, 1, 12), [Weekday.MONDAY, 5])
    assert days == [date(2025, 1, 6), date(2025, 1, 11)]


def test_calendar_window_membership() -> None:
    win = CalendarWindow.from_session("2025-01-06", "2025-01-19", "Monday")
    assert "2025-01-13" in win
    assert "2025-01-14" not in win
    assert "2025-01-20" not in win
    assert "garbage" not in win
    assert win.dates() == ["2025-01-06", "2025-01-13"]
