from __future__ import annotations

import calendar
import logging
import re
import warnings
from datetime import date, datetime, time, timedelta
from typing import Any, NamedTuple

import pandas as pd

from ..models.grid import Cell

"""Temporal normalization for spreadsheet cells.

Registration exports mix Gregorian and Hijri dates and write times in 24-hour,
12-hour English and 12-hour Arabic forms, sometimes with Arabic-Indic digits.
Everything here turns a cell into a canonical ``YYYY-MM-DD`` date string or a
24-hour ``HH:MM`` time string.

Calendar rules:
- A date string is Hijri iff its year lies in [1200, 1600). Hijri dates are
  never reinterpreted as Gregorian or converted unless explicitly requested.
- The text Excel displays is authoritative. A cell formatted with a Hijri
  calendar still stores a Gregorian serial underneath; reading the typed value
  would silently swap calendars, so it is only a fallback.
- Hijri <-> Gregorian conversion is arithmetic (30-year cycle). It is exact as
  a round trip but may drift a day or two from observed-moon calendars.
"""

__all__ = [
    "HijriDate",
    "to_ascii_digits",
    "is_hijri",
    "is_hijri_number_format",
    "hijri_to_gregorian",
    "gregorian_to_hijri",
    "extract_date_from_display_text",
    "parse_date",
    "parse_time",
    "add_minutes",
    "to_gregorian_storage",
]

logger = logging.getLogger(__name__)

HIJRI_MIN_YEAR = 1200
HIJRI_MAX_YEAR = 1600  # exclusive
MIN_DATE_YEAR = 1000
MAX_DATE_YEAR = 2999

EXCEL_EPOCH = date(1899, 12, 30)
HIJRI_EPOCH = date(622, 7, 15)
MAX_EXCEL_SERIAL = 2958466  # 9999-12-31

_LEAP_REMAINDERS = frozenset({2, 5, 7, 10, 13, 16, 18, 21, 24, 26, 29})
_CYCLE_YEARS = 30
_CYCLE_DAYS = _CYCLE_YEARS * 354 + len(_LEAP_REMAINDERS)

_DIGITS = str.maketrans("٠١٢٣٤٥٦٧٨٩۰۱۲۳۴۵۶۷۸۹", "01234567890123456789")
_BIDI_MARKS = re.compile("[\u200e\u200f\u061c\u202a-\u202e]")

_YMD_RE = re.compile(r"^(\d{4})\s*[-/.]\s*(\d{1,2})\s*[-/.]\s*(\d{1,2})(?!\d)")
_DMY_RE = re.compile(r"^(\d{1,2})\s*[-/.]\s*(\d{1,2})\s*[-/.]\s*(\d{4})(?!\d)")
_YEAR_RE = re.compile(r"\d{4}")

_CLOCK_RE = re.compile(r"(\d{1,2}):(\d{2})")
_LATIN_MERIDIEM_RE = re.compile(r"(?<![A-Z])([AP])\.?\s?M\.?(?![A-Z])")
_ARABIC_AM = "ص"
_ARABIC_PM = "م"

_HIJRI_FORMAT_MARKERS = ("B2", "[$-1970000]", "HIJRI")


class HijriDate(NamedTuple):
    year: int
    month: int
    day: int

    def isoformat(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"


def to_ascii_digits(text: str) -> str:
    """Map Arabic-Indic and Extended Arabic-Indic digits to ASCII."""
    return text.translate(_DIGITS)


def _clean(text: str) -> str:
    return _BIDI_MARKS.sub("", to_ascii_digits(text)).strip()


def is_hijri_year(year: int) -> bool:
    return HIJRI_MIN_YEAR <= year < HIJRI_MAX_YEAR


def is_hijri(date_str: str) -> bool:
    """True when a canonical YYYY-MM-DD string carries a Hijri year."""
    try:
        return is_hijri_year(int(date_str[:4]))
    except (TypeError, ValueError):
        return False


def is_hijri_number_format(number_format: str | None) -> bool:
    if not number_format:
        return False
    upper = number_format.upper()
    return any(marker in upper for marker in _HIJRI_FORMAT_MARKERS)


# ---------------------------------------------------------------------------
# Hijri arithmetic calendar
# ---------------------------------------------------------------------------

def _is_hijri_leap_year(year: int) -> bool:
    return year % _CYCLE_YEARS in _LEAP_REMAINDERS


def _hijri_year_length(year: int) -> int:
    return 355 if _is_hijri_leap_year(year) else 354


def _hijri_month_length(year: int, month: int) -> int:
    if month == 12 and _is_hijri_leap_year(year):
        return 30
    return 30 if month % 2 == 1 else 29


def _days_before_hijri_year(year: int) -> int:
    cycles, rest = divmod(year - 1, _CYCLE_YEARS)
    return cycles * _CYCLE_DAYS + sum(_hijri_year_length(y) for y in range(1, rest + 1))


def hijri_to_gregorian(year: int, month: int, day: int) -> date:
    """Convert a Hijri date to a Gregorian date.

    Raises:
        ValueError: if month/day are outside the arithmetic calendar
    """
    if year < 1 or not 1 <= month <= 12:
        raise ValueError(f"invalid Hijri date {year}-{month}-{day}")
    if not 1 <= day <= _hijri_month_length(year, month):
        raise ValueError(f"invalid Hijri day {year}-{month}-{day}")
    days = _days_before_hijri_year(year)
    days += sum(_hijri_month_length(year, m) for m in range(1, month))
    days += day - 1
    return HIJRI_EPOCH + timedelta(days=days)


def gregorian_to_hijri(value: date) -> HijriDate:
    """Convert a Gregorian date to its Hijri (year, month, day).

    Raises:
        ValueError: for dates before the Hijri epoch
    """
    if isinstance(value, datetime):
        value = value.date()
    remaining = (value - HIJRI_EPOCH).days
    if remaining < 0:
        raise ValueError(f"date before Hijri epoch: {value.isoformat()}")
    cycles, remaining = divmod(remaining, _CYCLE_DAYS)
    year = cycles * _CYCLE_YEARS + 1
    while remaining >= _hijri_year_length(year):
        remaining -= _hijri_year_length(year)
        year += 1
    month = 1
    while remaining >= _hijri_month_length(year, month):
        remaining -= _hijri_month_length(year, month)
        month += 1
    return HijriDate(year, month, remaining + 1)


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

def _format_date(year: int, month: int, day: int) -> str | None:
    if not MIN_DATE_YEAR <= year <= MAX_DATE_YEAR or not 1 <= month <= 12:
        return None
    # Excel Hijri renderings may show day 30 where the arithmetic calendar has 29
    max_day = 30 if is_hijri_year(year) else calendar.monthrange(year, month)[1]
    if not 1 <= day <= max_day:
        return None
    return f"{year:04d}-{month:02d}-{day:02d}"


def extract_date_from_display_text(text: str | None) -> str | None:
    """Read a canonical date from the text a spreadsheet displays.

    Accepts year-first (2025-03-15, 1446/09/15) and day-first (15/03/2025)
    layouts with -, / or . separators. Trailing time or a Hijri suffix is
    ignored. Day-first is assumed unless only month-first is valid.

    Returns:
        Zero-padded YYYY-MM-DD (Hijri dates unchanged) or None
    """
    if not text:
        return None
    s = _clean(str(text))
    m = _YMD_RE.match(s)
    if m:
        year, month, day = (int(g) for g in m.groups())
        return _format_date(year, month, day)
    m = _DMY_RE.match(s)
    if m:
        first, second, year = (int(g) for g in m.groups())
        if second > 12 and first <= 12:
            return _format_date(year, first, second)
        return _format_date(year, second, first)
    return None


def _serial_to_date(serial: float) -> date | None:
    if serial <= 0 or serial >= MAX_EXCEL_SERIAL:
        return None
    return EXCEL_EPOCH + timedelta(days=int(serial))


def _parse_free_text_date(text: str) -> str | None:
    # only attempt when a 4-digit year is present; bare numbers parse as days
    if not _YEAR_RE.search(text):
        return None
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        ts = pd.to_datetime(text, errors="coerce", dayfirst=True)
    if ts is None or pd.isna(ts):
        return None
    return _format_date(ts.year, ts.month, ts.day)


def parse_date(value: Cell | Any) -> str | None:
    """Normalize a cell (or raw value) to YYYY-MM-DD.

    Order: display text, then the typed value (datetime/date, Excel serial),
    then free-text parsing. Hijri values are returned as Hijri.
    """
    cell = value if isinstance(value, Cell) else Cell(value=value)
    text = cell.literal_text
    found = extract_date_from_display_text(text)
    if found:
        return found

    typed = cell.value
    if is_hijri_number_format(cell.number_format) and typed is not None and not isinstance(typed, str):
        logger.warning(
            "Hijri-formatted cell without readable display text (%r); falling back to Gregorian value",
            text,
        )
    if isinstance(typed, datetime):
        return typed.strftime("%Y-%m-%d")
    if isinstance(typed, date):
        return typed.isoformat()
    if isinstance(typed, (int, float)) and not isinstance(typed, bool):
        d = _serial_to_date(float(typed))
        return d.isoformat() if d else None
    if isinstance(typed, str) and typed.strip():
        return _parse_free_text_date(_clean(typed))
    return None


def to_gregorian_storage(date_str: str) -> str:
    """Convert a canonical Hijri date to Gregorian; Gregorian passes through.

    Raises:
        ValueError: if the Hijri date does not exist in the arithmetic calendar
    """
    if not is_hijri(date_str):
        return date_str
    year, month, day = (int(p) for p in date_str.split("-"))
    return hijri_to_gregorian(year, month, day).isoformat()


# ---------------------------------------------------------------------------
# Times
# ---------------------------------------------------------------------------

def _format_time(hours: int, minutes: int) -> str | None:
    if not 0 <= hours <= 23 or not 0 <= minutes <= 59:
        return None
    return f"{hours:02d}:{minutes:02d}"


def _parse_time_text(text: str) -> str | None:
    s = _clean(text)
    m = _CLOCK_RE.search(s)
    if not m:
        return None
    hours, minutes = int(m.group(1)), int(m.group(2))

    meridiem: str | None = None
    if _ARABIC_AM in s:
        meridiem = "AM"
    elif _ARABIC_PM in s:
        meridiem = "PM"
    else:
        latin = _LATIN_MERIDIEM_RE.search(s.upper())
        if latin:
            meridiem = latin.group(1) + "M"

    if meridiem == "PM" and hours < 12:
        hours += 12
    elif meridiem == "AM" and hours == 12:
        hours = 0
    return _format_time(hours, minutes)


def _fraction_to_time(value: float) -> str:
    fraction = value % 1 if value >= 1 else value
    total = round(fraction * 24 * 60) % (24 * 60)
    return f"{total // 60:02d}:{total % 60:02d}"


def parse_time(value: Cell | Any) -> str | None:
    """Normalize a cell (or raw value) to 24-hour HH:MM.

    Handles "14:30", "2:30 PM", "08:00 ص", "م 02:30", Arabic-Indic digits,
    time/datetime values and fractional day numbers (0.5 -> "12:00").
    """
    cell = value if isinstance(value, Cell) else Cell(value=value)
    text = cell.display_text
    if text.strip():
        parsed = _parse_time_text(text)
        if parsed:
            return parsed

    typed = cell.value
    if isinstance(typed, datetime):
        return typed.strftime("%H:%M")
    if isinstance(typed, time):
        return typed.strftime("%H:%M")
    if isinstance(typed, (int, float)) and not isinstance(typed, bool) and typed >= 0:
        return _fraction_to_time(float(typed))
    return None


def add_minutes(hhmm: str, minutes: int) -> str:
    """Add minutes to an HH:MM string, wrapping past midnight."""
    hours, mins = (int(p) for p in hhmm.split(":"))
    total = (hours * 60 + mins + minutes) % (24 * 60)
    return f"{total // 60:02d}:{total % 60:02d}"
