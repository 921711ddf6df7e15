"""
Date / value normalization for spreadsheet cells.

Every function here is total: a cell that cannot be interpreted
returns None and the caller decides what to count.
"""

import math
import re
from datetime import date, datetime, timedelta
from numbers import Number
from typing import Any, Callable, List, Optional

import pandas as pd
from dateutil import parser as date_parser

# Spreadsheet serial day 0 (Excel's 1900 system, leap-year bug included)
SERIAL_EPOCH = datetime(1899, 12, 30)

MONTH_ABBR = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

_NULL_TOKENS = {"", "NA", "N/A", "*", "NAN", "NONE", "NULL"}

_SLASH_DATETIME = re.compile(
    r"^(\d{1,2})/(\d{1,2})/(\d{4})\s+(\d{1,2}):(\d{2})(?::(\d{2}))?$"
)
_SLASH_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_TEXT_MONTH = re.compile(
    r"^(\d{1,2})\s+([A-Za-z]{3,})\s+(\d{4})(?:\s+(\d{1,2}):(\d{2}))?$"
)

# Serial numbers exported as text: "46034" or "46034.5"
_SERIAL_TEXT = re.compile(r"^\d{1,5}(?:\.\d+)?$")

# Missing date parts are filled from here, never from the clock
GENERIC_PARSE_DEFAULT = datetime(1900, 1, 1)


# =====================================================
# MISSING VALUE DETECTION
# =====================================================

def is_missing(value: Any) -> bool:
    """True for None, NaN, NaT and blank strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def clean_text(value: Any) -> Optional[str]:
    if is_missing(value):
        return None
    text = str(value).strip()
    return text or None


# =====================================================
# NUMBERS
# =====================================================

def parse_number(value: Any) -> Optional[float]:
    """
    Parse a published-statistics cell into a float.

    Suppressed or missing markers (NA, N/A, *) are None, not zero.
    """
    if is_missing(value) or isinstance(value, bool):
        return None

    if isinstance(value, Number):
        number = float(value)
        return number if math.isfinite(number) else None

    text = str(value).strip()
    if text.upper() in _NULL_TOKENS:
        return None

    try:
        number = float(text.replace(",", ""))
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def parse_int(value: Any) -> Optional[int]:
    """Leading-integer parse: '45 years' -> 45, 45.0 -> 45."""
    if is_missing(value) or isinstance(value, bool):
        return None

    if isinstance(value, Number):
        number = float(value)
        return int(number) if math.isfinite(number) else None

    match = re.match(r"^\s*([+-]?\d+)", str(value))
    return int(match.group(1)) if match else None


# =====================================================
# DATE PARSE STRATEGIES (ORDER IS LOAD-BEARING)
# =====================================================

def _safe_datetime(year, month, day, hour=0, minute=0, second=0) -> Optional[datetime]:
    try:
        return datetime(int(year), int(month), int(day), int(hour), int(minute), int(second))
    except (ValueError, OverflowError):
        return None


def _parse_slash_datetime(text: str) -> Optional[datetime]:
    match = _SLASH_DATETIME.match(text)
    if not match:
        return None
    day, month, year, hour, minute, second = match.groups()
    return _safe_datetime(year, month, day, hour, minute, second or 0)


def _parse_slash_date(text: str) -> Optional[datetime]:
    match = _SLASH_DATE.match(text)
    if not match:
        return None
    day, month, year = match.groups()
    return _safe_datetime(year, month, day)


def _parse_text_month(text: str) -> Optional[datetime]:
    match = _TEXT_MONTH.match(text)
    if not match:
        return None
    day, month_name, year, hour, minute = match.groups()
    month = MONTH_ABBR.get(month_name[:3].lower())
    if month is None:
        return None
    return _safe_datetime(year, month, day, hour or 0, minute or 0)


def _parse_generic(text: str) -> Optional[datetime]:
    try:
        parsed = date_parser.parse(text, default=GENERIC_PARSE_DEFAULT)
    except (ValueError, OverflowError, TypeError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None)
    return parsed


TEXT_DATE_STRATEGIES: List[Callable[[str], Optional[datetime]]] = [
    _parse_slash_datetime,   # 15/01/2026 07:40
    _parse_slash_date,       # 15/01/2026
    _parse_text_month,       # 20 Jan 2026 11:02
    _parse_generic,          # ISO and anything else dateutil understands
]


def parse_serial_date(value: float) -> Optional[datetime]:
    """
    Decode a spreadsheet serial number: whole days since the serial
    epoch, fractional part as time of day rounded to the minute.
    """
    if not math.isfinite(value):
        return None
    whole_days = math.floor(value)
    try:
        result = SERIAL_EPOCH + timedelta(days=whole_days)
        fraction = value - whole_days
        if fraction > 0:
            result += timedelta(minutes=round(fraction * 24 * 60))
    except OverflowError:
        return None
    return result


def parse_flexible_date(value: Any) -> Optional[datetime]:
    """
    Normalize a raw cell (native date, serial number or free text)
    into a naive datetime. First successful strategy wins.
    """
    if is_missing(value) or isinstance(value, bool):
        return None

    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()

    if isinstance(value, datetime):
        return value.replace(tzinfo=None) if value.tzinfo else value

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    if isinstance(value, Number):
        return parse_serial_date(float(value))

    text = str(value).strip()
    if _SERIAL_TEXT.match(text):
        return parse_serial_date(float(text))

    for strategy in TEXT_DATE_STRATEGIES:
        result = strategy(text)
        if result is not None:
            return result
    return None


def parse_short_date(value: Any) -> Optional[date]:
    """
    Parse DD-Mon-YY appointment dates (e.g. '12-Jan-26').
    Two-digit years >= 50 are 19xx, otherwise 20xx.
    """
    if is_missing(value):
        return None

    parts = str(value).strip().split("-")
    if len(parts) != 3:
        return None

    day_text, month_text, year_text = parts
    month = MONTH_ABBR.get(month_text.strip().lower()) if len(month_text.strip()) == 3 else None
    if month is None:
        return None

    try:
        day = int(day_text)
        year_short = int(year_text)
    except ValueError:
        return None

    year = 1900 + year_short if year_short >= 50 else 2000 + year_short
    try:
        return date(year, month, day)
    except ValueError:
        return None
