"""
Date helpers for LMS timestamps and certificate text.

The LMS sends dates as "YYYY-MM-DD", "YYYY-MM-DD HH:MM:SS" or full ISO-8601.
Only the calendar date matters here; no timezone conversion is applied, so the
date printed on a certificate is the date the LMS reported.
"""
from datetime import date, datetime
from typing import Optional, Union


def parse_lms_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """Parse an LMS date/datetime string into a date. Returns None if unparseable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def format_long_date(value: Union[str, date, datetime, None]) -> str:
    """
    Render a date the way certificates print it: "March 1, 2024".
    Unparseable strings are returned unchanged.
    """
    parsed = parse_lms_date(value)
    if parsed is None:
        return value if isinstance(value, str) else ""
    return f"{parsed.strftime('%B')} {parsed.day}, {parsed.year}"
