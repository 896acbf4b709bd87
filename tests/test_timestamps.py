"""Tests for timestamp helpers."""

from datetime import datetime, timedelta, timezone

import pytest

from tender_alerts.utils.timestamps import (
    days_until,
    ensure_utc,
    format_display_date,
    format_timestamp,
    normalize_time_of_day,
    to_local,
    utc_now,
)

START = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def test_utc_now_is_aware():
    assert utc_now().tzinfo == timezone.utc


def test_ensure_utc_naive_assumed_utc():
    assert ensure_utc(datetime(2026, 1, 1, 8, 0)) == datetime(2026, 1, 1, 8, 0, tzinfo=timezone.utc)


def test_ensure_utc_converts_aware():
    colombo = timezone(timedelta(hours=5, minutes=30))
    converted = ensure_utc(datetime(2026, 1, 1, 9, 0, tzinfo=colombo))
    assert converted == datetime(2026, 1, 1, 3, 30, tzinfo=timezone.utc)
    assert converted.tzinfo == timezone.utc


def test_ensure_utc_none():
    assert ensure_utc(None) is None


@pytest.mark.parametrize(
    "delta, expected",
    [
        (timedelta(days=1), 1),
        (timedelta(hours=36), 2),
        (timedelta(hours=1), 1),
        (timedelta(0), 0),
        (timedelta(hours=-12), 0),
        (timedelta(hours=-36), -1),
    ],
)
def test_days_until_rounds_up(delta, expected):
    assert days_until(START + delta, START) == expected


def test_to_local_uses_named_zone():
    local = to_local(START, "Asia/Colombo")
    assert (local.hour, local.minute) == (17, 30)


def test_format_display_date_crosses_midnight_in_zone():
    late_utc = datetime(2026, 3, 5, 20, 0, tzinfo=timezone.utc)
    assert format_display_date(late_utc, "UTC") == "March 5, 2026"
    assert format_display_date(late_utc, "Asia/Colombo") == "March 6, 2026"
    assert format_display_date(None) == ""


def test_format_timestamp():
    assert format_timestamp(START) == "2026-03-02T12:00:00Z"
    assert format_timestamp(None) == ""


@pytest.mark.parametrize("value, expected", [("9:00", "09:00"), ("09:05", "09:05"), (" 23:59 ", "23:59")])
def test_normalize_time_of_day(value, expected):
    assert normalize_time_of_day(value) == expected


@pytest.mark.parametrize("value", ["24:00", "9", "09:60", "nine", None])
def test_normalize_time_of_day_rejects(value):
    with pytest.raises(ValueError):
        normalize_time_of_day(value)
