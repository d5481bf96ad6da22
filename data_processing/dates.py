# clinic_records/data_processing/dates.py
# CANONICAL DAY KEYS & MONTH WINDOWS

"""
Normalizes the date encodings found across the clinic's record sources into
a canonical calendar-day key (``YYYY-MM-DD``) and into month windows.

Sources disagree on format: attendance rows carry ``YYYY-MM-DD``, the backend
writes ``DD-MM-YYYY``, the UI displays ``DD/MM/YYYY``, MySQL DATE columns come
back as ISO datetimes, and some rows only have an epoch ``createdAt``.
Unparseable values become `INVALID_DAY`; they are never coerced to "today".
"""

import calendar
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, List, Optional, Union

import numpy as np
import pandas as pd

from config import settings
from .helpers import is_missing

logger = logging.getLogger(__name__)

DayKey = str


class DaySentinel(Enum):
    INVALID = "Invalid"


INVALID_DAY = DaySentinel.INVALID

_DAY_KEY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_YMD = re.compile(r'^(\d{4})[-/](\d{1,2})[-/](\d{1,2})$')
_DMY = re.compile(r'^(\d{1,2})([-/])(\d{1,2})\2(\d{4})$')
_ISO_DATETIME = re.compile(r'^(\d{4})-(\d{1,2})-(\d{1,2})[T ]\d{1,2}:\d{2}')
_DMY_DATETIME = re.compile(r'^(\d{1,2})([-/])(\d{1,2})\2(\d{4})[T ](\d{1,2}):(\d{2})(?::(\d{2}))?')
# pandas reads these, and bare times, relative to the current clock.
_RELATIVE_WORDS = frozenset({'now', 'today', 'yesterday', 'tomorrow'})
_HAS_YEAR = re.compile(r'\d{4}')
# Short digit runs ("2025", "5") are not dates; only epoch-sized numbers are.
_EPOCH_TEXT = re.compile(r'^-?\d{9,}(?:\.\d+)?$')


@dataclass(frozen=True)
class MonthWindow:
    """A (month, year) reporting period; see `days_in` for its days."""
    month: int
    year: int

    @property
    def period(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def __str__(self) -> str:
        return self.period


def is_valid_day(day: Any) -> bool:
    return isinstance(day, str) and bool(_DAY_KEY.match(day))


def _day_from_parts(year: int, month: int, day: int) -> Union[DayKey, DaySentinel]:
    if not settings.DATES.min_year <= year <= settings.DATES.max_year:
        return INVALID_DAY
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return INVALID_DAY


def _day_from_text_formats(text: str) -> Optional[Union[DayKey, DaySentinel]]:
    """Explicit day-only formats. Returns None when no pattern applies."""
    ymd = _YMD.match(text)
    if ymd:
        return _day_from_parts(int(ymd.group(1)), int(ymd.group(2)), int(ymd.group(3)))
    dmy = _DMY.match(text)
    if dmy:
        return _day_from_parts(int(dmy.group(4)), int(dmy.group(3)), int(dmy.group(1)))
    return None


def _epoch_to_timestamp(value: float) -> pd.Timestamp:
    unit = 'ms' if abs(value) >= settings.DATES.epoch_ms_threshold else 's'
    return pd.Timestamp(value, unit=unit, tz='UTC')


def _timestamp_from_text(text: str) -> Optional[pd.Timestamp]:
    """
    Free-text fallback shared by `to_day` and `to_epoch_ms`. Day-first
    datetimes are read explicitly; text without a four-digit year, or a
    relative word, is rejected rather than resolved against the clock.
    """
    if text.lower() in _RELATIVE_WORDS or not _HAS_YEAR.search(text):
        return None
    dmy = _DMY_DATETIME.match(text)
    if dmy:
        return pd.Timestamp(
            year=int(dmy.group(4)), month=int(dmy.group(3)), day=int(dmy.group(1)),
            hour=int(dmy.group(5)), minute=int(dmy.group(6)), second=int(dmy.group(7) or 0),
        )
    if _ISO_DATETIME.match(text):
        return pd.Timestamp(text)
    ts = pd.to_datetime(text, dayfirst=True, errors='coerce')
    return None if is_missing(ts) else ts


def _day_from_timestamp(ts: Any) -> Union[DayKey, DaySentinel]:
    if is_missing(ts):
        return INVALID_DAY
    return _day_from_parts(ts.year, ts.month, ts.day)


def to_day(raw: Any) -> Union[DayKey, DaySentinel]:
    """
    Converts any supported date representation to a DayKey. Never raises.

    Accepts date/datetime/pd.Timestamp/np.datetime64 values, epoch numbers,
    ``YYYY-MM-DD``, ``YYYY/MM/DD``, ``DD-MM-YYYY``, ``DD/MM/YYYY`` and ISO
    datetime strings (whose calendar date is taken as written). Anything else
    goes through a day-first pandas parse; relative words ("today") and text
    without a four-digit year ("10:00") are rejected. Failures yield INVALID_DAY.
    """
    if raw is INVALID_DAY or is_missing(raw) or isinstance(raw, (bool, np.bool_)):
        return INVALID_DAY

    try:
        # datetime and pd.Timestamp are date subclasses.
        if isinstance(raw, date):
            return _day_from_parts(raw.year, raw.month, raw.day)
        if isinstance(raw, np.datetime64):
            return _day_from_timestamp(pd.Timestamp(raw))
        if isinstance(raw, (int, float, np.integer, np.floating)):
            return _day_from_timestamp(_epoch_to_timestamp(float(raw)))

        text = str(raw).strip()
        explicit = _day_from_text_formats(text)
        if explicit is not None:
            return explicit
        iso = _ISO_DATETIME.match(text)
        if iso:
            return _day_from_parts(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))
        if _EPOCH_TEXT.match(text):
            return _day_from_timestamp(_epoch_to_timestamp(float(text)))
        if text.isdigit():
            return INVALID_DAY
        ts = _timestamp_from_text(text)
        return INVALID_DAY if ts is None else _day_from_timestamp(ts)
    except (ValueError, TypeError, OverflowError) as e:
        logger.debug(f"Could not parse date value {raw!r}: {e}")
        return INVALID_DAY


def to_epoch_ms(raw: Any) -> Optional[float]:
    """
    Normalizes a createdAt-style value to epoch milliseconds for ordering.
    Naive datetimes are read as UTC. Returns None when unparseable.
    """
    if is_missing(raw) or isinstance(raw, (bool, np.bool_)):
        return None
    try:
        if isinstance(raw, (int, float, np.integer, np.floating)):
            value = float(raw)
            return value if abs(value) >= settings.DATES.epoch_ms_threshold else value * 1000.0
        if isinstance(raw, (datetime, np.datetime64)):
            ts = pd.Timestamp(raw)
        elif isinstance(raw, date):
            ts = pd.Timestamp(raw.year, raw.month, raw.day)
        else:
            text = str(raw).strip()
            if _EPOCH_TEXT.match(text):
                return to_epoch_ms(float(text))
            day_only = _day_from_text_formats(text)
            if day_only is INVALID_DAY:
                return None
            ts = pd.Timestamp(day_only) if day_only is not None else _timestamp_from_text(text)
        if is_missing(ts):
            return None
        if ts.tzinfo is None:
            ts = ts.tz_localize('UTC')
        return ts.value / 1_000_000
    except (ValueError, TypeError, OverflowError) as e:
        logger.debug(f"Could not parse timestamp value {raw!r}: {e}")
        return None


def to_month_window(month: Any, year: Any) -> MonthWindow:
    """Builds a MonthWindow; raises ValueError for a month outside 1..12 or an out-of-range year."""
    month_num, year_num = int(month), int(year)
    if not 1 <= month_num <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month!r}.")
    if not settings.DATES.min_year <= year_num <= settings.DATES.max_year:
        raise ValueError(f"Year {year!r} is outside {settings.DATES.min_year}..{settings.DATES.max_year}.")
    return MonthWindow(month=month_num, year=year_num)


def month_window_of(day: Any) -> Optional[MonthWindow]:
    """The MonthWindow containing ``day``, or None for an invalid day."""
    key = to_day(day)
    if key is INVALID_DAY:
        return None
    return MonthWindow(month=int(key[5:7]), year=int(key[:4]))


def days_in(window: MonthWindow) -> List[DayKey]:
    """Every DayKey of the window, in order, using the true month length."""
    last_day = calendar.monthrange(window.year, window.month)[1]
    return [f"{window.period}-{d:02d}" for d in range(1, last_day + 1)]


def is_within(day: Any, window: MonthWindow) -> bool:
    if day is INVALID_DAY or not is_valid_day(day):
        return False
    return day[:7] == window.period
