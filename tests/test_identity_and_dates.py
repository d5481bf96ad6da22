# clinic_records/tests/test_identity_and_dates.py
# IDENTITY NORMALIZATION & DAY KEY TESTS

import calendar
from datetime import date, datetime

import numpy as np
import pandas as pd
import pytest

from data_processing import (
    INVALID_DAY,
    MonthWindow,
    PatientKey,
    days_in,
    display_id,
    is_valid_day,
    is_within,
    month_window_of,
    normalize_patient_id,
    same_patient,
    to_day,
    to_epoch_ms,
    to_month_window
)

# --- Identity Tests ---
@pytest.mark.parametrize("number", [1, 7, 42, 999, 1234, 98765])
def test_identity_equivalence_across_formats(number):
    """Numeric key, zero-padded display id and bare numeric string are one patient."""
    expected = PatientKey(number)
    assert normalize_patient_id(number) == expected
    assert normalize_patient_id(str(number)) == expected
    assert normalize_patient_id(f"P{number:04d}") == expected
    assert normalize_patient_id(f"P{number}") == expected
    assert normalize_patient_id(f"p{number:04d}") == expected


@pytest.mark.parametrize("raw", [1.0, np.int64(1), np.float64(1.0), " 1 ", "0001", "1.0", "P0001", "P1", PatientKey(1)])
def test_identity_accepts_json_and_csv_shapes(raw):
    assert normalize_patient_id(raw) == PatientKey(1)


@pytest.mark.parametrize("raw", [None, "", "null", "N/A", "undefined", float("nan"), pd.NA])
def test_missing_identifiers_share_the_bare_sentinel(raw):
    key = normalize_patient_id(raw)
    assert not key.is_resolved
    assert key == PatientKey("?")


@pytest.mark.parametrize("raw", ["abc", "P", "P0000", "PX12", 0, -3, 1.5, True, "Patient 1"])
def test_unusable_identifiers_become_stable_sentinels(raw):
    key = normalize_patient_id(raw)
    assert not key.is_resolved
    assert key == normalize_patient_id(raw)
    assert str(key.value).startswith("?")


def test_sentinels_do_not_collide_with_real_patients():
    assert normalize_patient_id("abc") != normalize_patient_id("abd")
    assert normalize_patient_id(True) != normalize_patient_id(1)


def test_display_id_formatting():
    assert display_id(1) == "P0001"
    assert display_id("P12") == "P0012"
    assert display_id(PatientKey(123456)) == "P123456"
    assert display_id("mystery") == "?mystery"
    assert str(PatientKey(5)) == "P0005"


def test_same_patient():
    assert same_patient("P0003", 3)
    assert not same_patient("P0003", "P0030")


def test_sort_key_orders_numbers_before_sentinels():
    keys = [PatientKey("?zeta"), PatientKey(10), PatientKey(2), PatientKey("?alpha")]
    ordered = sorted(keys, key=lambda k: k.sort_key)
    assert [k.value for k in ordered] == [2, 10, "?alpha", "?zeta"]

# --- Day Key Tests ---
@pytest.mark.parametrize("raw", [
    "2025-03-05",
    "2025/03/05",
    "05-03-2025",
    "05/03/2025",
    "5/3/2025",
    "2025-03-05T00:00:00.000Z",
    "2025-03-05T23:59:59+05:30",
    "2025-03-05 10:15:00",
    date(2025, 3, 5),
    datetime(2025, 3, 5, 18, 30),
    pd.Timestamp("2025-03-05 08:00"),
    np.datetime64("2025-03-05T08:00"),
])
def test_to_day_accepts_every_source_format(raw):
    assert to_day(raw) == "2025-03-05"


def test_to_day_reads_epoch_seconds_and_milliseconds():
    assert to_day(1741132800) == "2025-03-05"
    assert to_day(1741132800000) == "2025-03-05"
    assert to_day("1741132800000") == "2025-03-05"


@pytest.mark.parametrize("raw", [
    None, "", "Invalid Date", "not a date", "2025-02-30", "31/04/2025", "2025",
    "1899-12-31", "2101-01-01", True, float("nan"), pd.NaT, {"date": "2025-03-05"},
    "now", "today", "Yesterday", "tomorrow", "10:00", "10:00:30", "March 5",
])
def test_to_day_rejects_unusable_values(raw):
    assert to_day(raw) is INVALID_DAY
    assert not is_valid_day(to_day(raw))


def test_to_epoch_ms_normalizes_units():
    assert to_epoch_ms(100) == 100_000
    assert to_epoch_ms(1741132800000) == 1741132800000
    assert to_epoch_ms("2025-03-05T00:00:00Z") == 1741132800000
    assert to_epoch_ms("2025-03-05T00:00:00") == 1741132800000
    assert to_epoch_ms("garbage") is None
    assert to_epoch_ms(None) is None


@pytest.mark.parametrize("raw", ["now", "today", "Tomorrow", "yesterday", "10:00", "09:30:15", "March 5"])
def test_to_epoch_ms_never_reads_the_clock(raw):
    assert to_epoch_ms(raw) is None


def test_day_first_datetimes_agree_across_parsers():
    assert to_day("05-03-2025 10:30") == "2025-03-05"
    assert to_day("13/03/2025 09:00:15") == "2025-03-13"
    assert to_epoch_ms("05-03-2025 10:30") == to_epoch_ms("2025-03-05T10:30:00")
    assert to_epoch_ms("13/03/2025 09:00:15") == to_epoch_ms("2025-03-13T09:00:15")
    assert to_epoch_ms("05-03-2025 10:30") < to_epoch_ms("13-03-2025 09:00")
    assert to_epoch_ms("31-02-2025 10:30") is None


def test_to_month_window_validates_caller_input():
    assert to_month_window(3, 2025) == MonthWindow(month=3, year=2025)
    assert to_month_window("12", "2024").period == "2024-12"
    with pytest.raises(ValueError):
        to_month_window(13, 2025)
    with pytest.raises(ValueError):
        to_month_window(0, 2025)
    with pytest.raises(ValueError):
        to_month_window(1, 1800)


@pytest.mark.parametrize("year", [1900, 1999, 2000, 2023, 2024, 2025, 2100])
def test_day_completeness_for_every_month(year):
    """daysIn has the true Gregorian length and every key round-trips through to_day."""
    for month in range(1, 13):
        window = to_month_window(month, year)
        days = days_in(window)
        assert len(days) == calendar.monthrange(year, month)[1]
        assert days == sorted(set(days))
        assert all(to_day(day) == day for day in days)
        assert all(is_within(day, window) for day in days)


def test_february_lengths():
    assert len(days_in(MonthWindow(2, 2024))) == 29
    assert len(days_in(MonthWindow(2, 2025))) == 28
    assert len(days_in(MonthWindow(2, 1900))) == 28
    assert len(days_in(MonthWindow(2, 2000))) == 29


def test_window_membership():
    march = MonthWindow(3, 2025)
    assert is_within("2025-03-31", march)
    assert not is_within("2025-04-01", march)
    assert not is_within(INVALID_DAY, march)
    assert month_window_of("05/03/2025") == march
    assert month_window_of("nonsense") is None
