"""
Display Formatter - Text for axes, tooltips and labels.

Missing values always display as an em dash so a gap in the data never
reads as a zero.
"""

from datetime import datetime
from typing import Optional

from .records import is_missing

MISSING_TEXT = '—'


def format_month(dt: datetime) -> str:
    """'Mar 2020' style label used by tooltips."""
    return dt.strftime('%b %Y')


def format_axis_date(dt: datetime, span_days: float) -> str:
    """Axis tick label; years only once the axis spans several years."""
    if span_days > 3 * 365:
        return dt.strftime('%Y')
    return dt.strftime('%b %Y')


def format_value(value: Optional[float], decimals: int = 1) -> str:
    """Plain number, e.g. index levels: 104.3"""
    if is_missing(value):
        return MISSING_TEXT
    return f"{value:.{decimals}f}"


def format_percent(value: Optional[float], decimals: int = 1) -> str:
    """Percent change, e.g. 6.7%"""
    if is_missing(value):
        return MISSING_TEXT
    return f"{value:.{decimals}f}%"


def format_tick(value: float) -> str:
    """Compact axis tick: integers without decimals, others trimmed."""
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}".rstrip('0').rstrip('.')


def format_money(value: Optional[float]) -> str:
    """Pounds with thousands separators: £34,512"""
    if is_missing(value):
        return MISSING_TEXT
    sign = '-' if value < 0 else ''
    return f"{sign}£{abs(value):,.0f}"


def format_signed_money(value: Optional[float]) -> str:
    """Signed change in pounds: +£1,204 / -£310"""
    if is_missing(value):
        return MISSING_TEXT
    sign = '-' if value < 0 else '+'
    return f"{sign}£{abs(value):,.0f}"


def format_ratio(value: Optional[float]) -> str:
    """Affordability ratio, whole number."""
    if is_missing(value):
        return MISSING_TEXT
    return f"{value:.0f}"
