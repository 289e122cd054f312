"""
Temporal Helpers - Date parsing and date-range handling.

Handles the date spellings found across the housing CSVs:
- "01/01/2015" (day/month/year)
- "Jan-15" and "Jan 2015" (abbreviated month)
- "2015-01-01" and "2015-01" (ISO)
- anything else dateutil can make sense of

All timestamps are UTC-aware so that scale math never depends on the
local timezone.
"""

import re
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple, TypeVar

from dateutil import parser as date_parser

# Priority order matters: "01/02/2020" must read as 1 February, not 2 January.
DATE_FORMATS = (
    '%d/%m/%Y',
    '%d/%m/%y',
    '%b-%y',
    '%b %Y',
    '%Y-%m-%d',
    '%Y-%m',
)

_FALLBACK_DEFAULT = datetime(2000, 1, 1)
_HAS_DIGIT = re.compile(r'\d')

T = TypeVar('T')


def parse_date(raw: Optional[str]) -> Optional[datetime]:
    """
    Parse a date string using the fixed priority list of formats.

    Args:
        raw: Raw cell value (may be None or blank)

    Returns:
        UTC-aware datetime, or None if no format matches
    """
    s = str(raw if raw is not None else '').strip()
    if not s:
        return None

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue

    # Generic fallback; a string without any digit is never a usable date
    if not _HAS_DIGIT.search(s):
        return None
    try:
        parsed = date_parser.parse(s, default=_FALLBACK_DEFAULT, dayfirst=True)
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_epoch(dt: datetime) -> float:
    """Seconds since the epoch for a (UTC) datetime."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def from_epoch(seconds: float) -> datetime:
    """UTC datetime from seconds since the epoch."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def date_extent(dates: Sequence[datetime]) -> Optional[Tuple[datetime, datetime]]:
    """Earliest and latest date, or None for an empty sequence."""
    if not dates:
        return None
    return min(dates), max(dates)


def filter_by_dates(
    items: Sequence[T],
    dates: Sequence[datetime],
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None
) -> List[T]:
    """
    Keep the items whose date falls inside [start_date, end_date].

    Args:
        items: Items to filter
        dates: Date of each item (same length as items)
        start_date: Start date (inclusive)
        end_date: End date (inclusive)

    Returns:
        Filtered items, in input order
    """
    if start_date is None and end_date is None:
        return list(items)

    filtered = []
    for item, date in zip(items, dates):
        if start_date is not None and date < start_date:
            continue
        if end_date is not None and date > end_date:
            continue
        filtered.append(item)
    return filtered
