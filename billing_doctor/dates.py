"""
dates.py: tolerant date parsing for time-entry rows.

Public API:
    parse_date(raw)                       -> datetime | None
    dates_within_tolerance(a, b, days)    -> bool
    display_date(raw)                     -> str

Accepted inputs, in the order they are tried:
    datetime / date / pandas Timestamp    used as-is
    spreadsheet serial numbers            45297, "45297"
    ISO                                   2024-01-06, 2024/01/06 (optional HH:MM)
    European dotted                       06.01.2024 (always day-first)
    slash or dash                         01/06/2024, 13-01-2024 (see below)
    anything else                         ordinals stripped, then pandas

Slash/dash dates are disambiguated only by a component greater than 12.
When both components are 12 or less the month-first (US) reading wins, so
"06/01/2024" is June 1st. UK timesheets with such dates will be misread.
"""

from __future__ import annotations

import math
import numbers
import re
from datetime import date, datetime, timedelta
from typing import Any

import pandas as pd

SERIAL_EPOCH = datetime(1900, 1, 1)
SERIAL_LEAP_BUG_CUTOFF = 59
SERIAL_MAX = 100_000

SERIAL_RE = re.compile(r"^\d+$")
ISO_DASH_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:\s+\d{1,2}:\d{1,2})?$")
ISO_SLASH_RE = re.compile(r"^(\d{4})/(\d{1,2})/(\d{1,2})(?:\s+\d{1,2}:\d{1,2})?$")
DOTTED_RE = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")
AMBIGUOUS_RE = re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})(?:\s+\d{1,2}:\d{1,2}.*)?$")
ORDINAL_RE = re.compile(r"(\d+)(st|nd|rd|th)\b", re.IGNORECASE)


def _from_serial(serial: float) -> datetime | None:
    if not 0 < serial < SERIAL_MAX:
        return None
    # Spreadsheets count 1900-02-29, which never existed.
    if serial > SERIAL_LEAP_BUG_CUTOFF:
        serial -= 1
    return SERIAL_EPOCH + timedelta(days=serial - 1)


def _ymd(year: int, month: int, day: int) -> datetime | None:
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def _parse_iso(match: re.Match) -> datetime | None:
    return _ymd(int(match.group(1)), int(match.group(2)), int(match.group(3)))


def _parse_dotted(match: re.Match) -> datetime | None:
    return _ymd(int(match.group(3)), int(match.group(2)), int(match.group(1)))


def _parse_ambiguous(match: re.Match) -> datetime | None:
    first, second, year = int(match.group(1)), int(match.group(2)), int(match.group(3))
    if first > 12 and second <= 12:
        return _ymd(year, second, first)
    if second > 12 and first <= 12:
        return _ymd(year, first, second)
    return _ymd(year, first, second)


PATTERNS = [
    (ISO_DASH_RE, _parse_iso),
    (ISO_SLASH_RE, _parse_iso),
    (DOTTED_RE, _parse_dotted),
    (AMBIGUOUS_RE, _parse_ambiguous),
]


def _parse_natural(text: str) -> datetime | None:
    cleaned = ORDINAL_RE.sub(r"\1", text)
    try:
        parsed = pd.to_datetime(cleaned, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if not isinstance(parsed, pd.Timestamp) or pd.isna(parsed):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.tz_convert(None)
    return parsed.to_pydatetime()


def parse_date(raw: Any) -> datetime | None:
    """Parse any supported date representation. Returns None instead of raising."""
    if raw is None or raw is pd.NaT or isinstance(raw, bool):
        return None
    if isinstance(raw, pd.Timestamp):
        if pd.isna(raw):
            return None
        if raw.tzinfo is not None:
            raw = raw.tz_convert(None)
        return raw.to_pydatetime()
    if isinstance(raw, datetime):
        return raw.replace(tzinfo=None)
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day)
    if isinstance(raw, numbers.Real):
        number = float(raw)
        if math.isnan(number) or math.isinf(number):
            return None
        return _from_serial(number)

    text = str(raw).strip()
    if not text:
        return None
    if SERIAL_RE.match(text):
        return _from_serial(float(text))

    for pattern, parse in PATTERNS:
        match = pattern.match(text)
        if match:
            parsed = parse(match)
            if parsed is not None:
                return parsed

    return _parse_natural(text)


def dates_within_tolerance(first: Any, second: Any, tolerance_days: float) -> bool:
    """True when both dates parse and lie at most ``tolerance_days`` apart."""
    left = parse_date(first)
    right = parse_date(second)
    if left is None or right is None:
        return False
    diff_days = abs((left - right).total_seconds()) / 86_400
    return diff_days <= tolerance_days


def display_date(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, (datetime, pd.Timestamp)):
        if pd.isna(raw):
            return ""
        if (raw.hour, raw.minute, raw.second, raw.microsecond) == (0, 0, 0, 0):
            return raw.strftime("%Y-%m-%d")
        return raw.isoformat(sep=" ")
    if isinstance(raw, date):
        return raw.isoformat()
    return str(raw)
