"""Date parsing utilities."""

import re
from datetime import date, timedelta
from typing import Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

# Field order for the statement date formats banks use
_FORMAT_ORDER = {
    "YYYY/MM/DD": ("y", "m", "d"),
    "YYYY-MM-DD": ("y", "m", "d"),
    "YYYY.MM.DD": ("y", "m", "d"),
    "DD/MM/YYYY": ("d", "m", "y"),
    "MM/DD/YYYY": ("m", "d", "y"),
}

_SEPARATORS = re.compile(r"[/\-.]")


def _expand_year(year: int) -> int:
    if year >= 100:
        return year
    return 2000 + year if year < 50 else 1900 + year


def _normalize(date_str: str) -> str:
    """Turn Japanese 2024年1月15日 style dates into 2024/1/15."""
    value = date_str.strip()
    value = value.replace("年", "/").replace("月", "/").replace("日", "")
    return value.strip()


def _parse_with_format(value: str, date_format: str) -> date:
    order = _FORMAT_ORDER.get(date_format.upper())
    if order is None:
        raise ValueError(f"Unsupported date format '{date_format}'")

    if _SEPARATORS.search(value) is None and len(value) == 8 and value.isdigit():
        # Compact YYYYMMDD exports
        parts = [value[:4], value[4:6], value[6:]] if order[0] == "y" else [value[:2], value[2:4], value[4:]]
    else:
        parts = _SEPARATORS.split(value)
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        raise ValueError(f"Could not parse date '{value}' as {date_format}")

    fields = dict(zip(order, (int(p) for p in parts)))
    return date(_expand_year(fields["y"]), fields["m"], fields["d"])


def parse_date(date_str: str, date_format: Optional[str] = None, allow_relative: bool = False) -> date:
    """Parse a date string into a date object.

    Supports:
    - Statement formats: "YYYY/MM/DD", "YYYY-MM-DD", "DD/MM/YYYY", "MM/DD/YYYY"
      when `date_format` is given, with two-digit years expanded
    - Japanese dates: "2024年1月15日"
    - Relative dates: "today", "yesterday" when `allow_relative` is set
    - Anything else dateutil understands ("January 15, 2024", ...)

    Args:
        date_str: Date string in various formats
        date_format: Expected field order of the string, if known
        allow_relative: Accept "today" and "yesterday"; only for user input,
            never for statement cells

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    if date_str is None or not str(date_str).strip():
        raise ValueError("Empty date string")

    value = _normalize(str(date_str))
    lowered = value.lower()
    today = date.today()
    if allow_relative and lowered == "today":
        return today
    if allow_relative and lowered == "yesterday":
        return today - timedelta(days=1)

    if date_format:
        try:
            return _parse_with_format(value, date_format)
        except ValueError:
            # Fall through to the generic parser; exports do not always honor their template
            pass

    # Year-first dates are unambiguous; day-first guesses only apply to the rest
    try:
        dt = date_parser.parse(value, yearfirst=True, dayfirst=False)
        return dt.date()
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def parse_iso_date(date_str: str) -> date:
    """Parse a strict YYYY-MM-DD date.

    Raises:
        ValueError: If the string is not a valid YYYY-MM-DD date
    """
    if not re.fullmatch(r"\d{4}-\d{2}-\d{2}", date_str or ""):
        raise ValueError(f"Invalid date '{date_str}': expected YYYY-MM-DD")
    return date.fromisoformat(date_str)


def get_date_range(period: str) -> tuple[date, date]:
    """Get start and end dates for a specified period.

    Args:
        period: Period string (this-month, this-year, last-month, last-year)

    Returns:
        Tuple of (start_date, end_date) for the specified period

    Raises:
        ValueError: If period string is not recognized
    """
    period = period.strip().lower()
    today = date.today()

    if period == "this-month":
        return (today.replace(day=1), today)

    elif period == "this-year":
        return (today.replace(month=1, day=1), today)

    elif period == "last-month":
        start_date = (today - relativedelta(months=1)).replace(day=1)
        end_date = today.replace(day=1) - timedelta(days=1)
        return (start_date, end_date)

    elif period == "last-year":
        start_date = today.replace(month=1, day=1) - relativedelta(years=1)
        end_date = today.replace(month=1, day=1) - timedelta(days=1)
        return (start_date, end_date)

    else:
        raise ValueError(
            f"Unknown period: '{period}'. Supported periods: this-month, this-year, last-month, last-year"
        )
