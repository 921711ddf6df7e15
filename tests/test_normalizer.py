from datetime import date, datetime

import pandas as pd

from caip.core.normalizer import (
    clean_text,
    is_missing,
    parse_flexible_date,
    parse_int,
    parse_number,
    parse_serial_date,
    parse_short_date,
)


# -------------------------------------------------
# Dates
# -------------------------------------------------

def test_slash_datetime_is_day_first():
    assert parse_flexible_date("15/01/2026 07:40") == datetime(2026, 1, 15, 7, 40)


def test_slash_date_without_time():
    assert parse_flexible_date("03/02/2026") == datetime(2026, 2, 3)


def test_text_month_with_time():
    assert parse_flexible_date("20 Jan 2026 11:02") == datetime(2026, 1, 20, 11, 2)


def test_iso_falls_through_to_generic_parser():
    assert parse_flexible_date("2026-01-20T11:02:00") == datetime(2026, 1, 20, 11, 2)


def test_serial_number_with_time_fraction():
    # 46037 = 2026-01-15; 0.5 of a day = 12:00
    assert parse_flexible_date(46037.5) == datetime(2026, 1, 15, 12, 0)
    assert parse_serial_date(46037) == datetime(2026, 1, 15)


def test_native_values_pass_through():
    assert parse_flexible_date(date(2026, 1, 2)) == datetime(2026, 1, 2)
    assert parse_flexible_date(pd.Timestamp("2026-01-02 08:30")) == datetime(2026, 1, 2, 8, 30)
    aware = pd.Timestamp("2026-01-02 08:30", tz="UTC")
    assert parse_flexible_date(aware).tzinfo is None


def test_unparseable_and_missing_dates_are_none():
    assert parse_flexible_date("not a date") is None
    assert parse_flexible_date("") is None
    assert parse_flexible_date(None) is None
    assert parse_flexible_date(pd.NaT) is None
    assert parse_flexible_date("31/02/2026") is None


def test_short_date_century_pivot():
    assert parse_short_date("12-Jan-26") == date(2026, 1, 12)
    assert parse_short_date("12-Jan-75") == date(1975, 1, 12)
    assert parse_short_date("12-January-26") is None
    assert parse_short_date("12/01/26") is None
    assert parse_short_date("") is None


# -------------------------------------------------
# Numbers / text
# -------------------------------------------------

def test_parse_number_markers_and_separators():
    assert parse_number("1,234.5") == 1234.5
    assert parse_number(7) == 7.0
    for marker in ("", "NA", "N/A", "*", None, float("nan"), float("inf")):
        assert parse_number(marker) is None


def test_parse_int_leading_integer():
    assert parse_int("45 years") == 45
    assert parse_int(45.0) == 45
    assert parse_int("unknown") is None


def test_missing_and_clean_text():
    assert is_missing("   ")
    assert is_missing(float("nan"))
    assert not is_missing(0)
    assert clean_text("  Online ") == "Online"
    assert clean_text("") is None


def test_serial_number_as_csv_text():
    assert parse_flexible_date("46034.5") == datetime(2026, 1, 12, 12, 0)
    assert parse_flexible_date("46034") == parse_flexible_date(46034)


def test_partial_dates_do_not_depend_on_the_clock():
    # missing parts come from 1900-01-01, not from today
    assert parse_flexible_date("Jan 2026") == datetime(2026, 1, 1)
    assert parse_flexible_date("5") == datetime(1900, 1, 4)
