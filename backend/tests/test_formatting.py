"""Tests for chat date/time formatting."""
from datetime import datetime

from lostfound.chat.formatting import format_last_message_date, format_time

NOW = datetime(2024, 3, 5, 12, 0)


def test_same_day_shows_time():
    ts = datetime(2024, 3, 5, 8, 7).timestamp()
    assert format_last_message_date(ts, now=NOW) == "08:07"


def test_previous_day_shows_yesterday():
    ts = datetime(2024, 3, 4, 23, 59).timestamp()
    assert format_last_message_date(ts, now=NOW) == "Yesterday"


def test_yesterday_across_month_boundary():
    now = datetime(2024, 3, 1, 0, 30)
    ts = datetime(2024, 2, 29, 22, 0).timestamp()
    assert format_last_message_date(ts, now=now) == "Yesterday"


def test_older_shows_date():
    ts = datetime(2024, 3, 2, 9, 0).timestamp()
    assert format_last_message_date(ts, now=NOW) == "02/3/2024"


def test_older_year():
    ts = datetime(2023, 12, 25, 18, 0).timestamp()
    assert format_last_message_date(ts, now=NOW) == "25/12/2023"


def test_format_time_pads_minutes_only():
    assert format_time(datetime(2024, 3, 5, 9, 5).timestamp()) == "9:05"
    assert format_time(datetime(2024, 3, 5, 14, 30).timestamp()) == "14:30"
