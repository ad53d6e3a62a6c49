"""
Unit tests for rates/dates.py: serial and M/D/Y parsing, ISO input, display
formatting. No I/O.
"""
from datetime import date, timedelta

import pytest

from rates.dates import format_display_date, normalize_date, parse_iso_date, to_iso, year_bounds


# ── normalize_date: serials ──────────────────────────────────────────────────

def test_serial_string():
    assert normalize_date("45292") == date(2024, 1, 1)


def test_serial_number():
    assert normalize_date(45292) == date(2024, 1, 1)


def test_serial_fraction_truncated():
    assert normalize_date("45292.75") == date(2024, 1, 1)


def test_serial_one_is_epoch():
    assert normalize_date("1") == date(1899, 12, 31)


def test_serial_out_of_range():
    assert normalize_date("99999999") is None


@pytest.mark.parametrize("raw", ["nan", "inf", "1e400"])
def test_serial_non_finite(raw):
    assert normalize_date(raw) is None


# ── normalize_date: M/D/Y ────────────────────────────────────────────────────

def test_mdy():
    assert normalize_date("3/5/2021") == date(2021, 3, 5)


def test_mdy_padded_and_trailing_space():
    assert normalize_date("03/05/2021 ") == date(2021, 3, 5)


def test_mdy_two_digit_year_is_1900s():
    assert normalize_date("1/1/24") == date(1924, 1, 1)


@pytest.mark.parametrize("raw", ["2/30/2024", "13/1/2024", "0/1/2024"])
def test_mdy_impossible_day(raw):
    assert normalize_date(raw) is None


@pytest.mark.parametrize("raw", ["1/1", "1/1/2024/5", "a/b/c", "2024-01-01", "not a date", "", "  "])
def test_mdy_malformed(raw):
    assert normalize_date(raw) is None


def test_none():
    assert normalize_date(None) is None


def test_bool_is_not_a_serial():
    assert normalize_date(True) is None


# ── serial and M/D/Y agree ───────────────────────────────────────────────────

@pytest.mark.parametrize("serial", [61, 367, 36526, 43831, 45292, 45657])
def test_serial_and_mdy_agree(serial):
    expected = date(1899, 12, 31) + timedelta(days=serial - 1)
    mdy = f"{expected.month}/{expected.day}/{expected.year}"
    assert normalize_date(str(serial)) == normalize_date(mdy) == expected


# ── helpers ──────────────────────────────────────────────────────────────────

def test_parse_iso_date():
    assert parse_iso_date("2024-01-31") == date(2024, 1, 31)
    assert parse_iso_date("2024-01-31T00:00:00.000Z") == date(2024, 1, 31)
    assert parse_iso_date(date(2020, 2, 2)) == date(2020, 2, 2)


@pytest.mark.parametrize("raw", [None, "", "01/31/2024", "2024-13-01"])
def test_parse_iso_date_invalid(raw):
    assert parse_iso_date(raw) is None


def test_format_display_date():
    assert format_display_date(date(2024, 1, 5)) == "01/05/2024"
    assert format_display_date(None) == "-"


def test_to_iso():
    assert to_iso(date(2024, 1, 5)) == "2024-01-05"
    assert to_iso(None) is None


def test_year_bounds():
    assert year_bounds(2023) == (date(2023, 1, 1), date(2023, 12, 31))
