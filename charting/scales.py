"""
Scale Builder - Data domains -> pixel ranges.

Scales are frozen: every data, width or selection change builds new ones.
Linear tick and "nice" math follows the d3-array conventions (ticks at
1, 2 or 5 x 10^k) so axes land on round numbers.
"""

import bisect
import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, List, Optional, Sequence, Tuple

from dateutil.relativedelta import relativedelta

from config import config
from processing.records import is_missing
from processing.temporal import date_extent, filter_by_dates, from_epoch, parse_date, to_epoch

logger = logging.getLogger(__name__)

TEMPORAL = 'temporal'
LINEAR = 'linear'
BAND = 'band'

# Thresholds between 1/2/5/10 tick steps (sqrt(50), sqrt(10), sqrt(2))
_E10 = math.sqrt(50)
_E5 = math.sqrt(10)
_E2 = math.sqrt(2)


# =============================================================================
# TICK MATH
# =============================================================================

def tick_increment(start: float, stop: float, count: int) -> float:
    """
    Step between ticks; negative values mean 1/|step| (for steps < 1).

    Returning the reciprocal for fractional steps keeps tick values exact
    (0.1 * 3 != 0.3, but 3 / 10 == 0.3).
    """
    step = (stop - start) / max(0, count)
    power = math.floor(math.log10(step))
    error = step / (10 ** power)
    factor = 10 if error >= _E10 else 5 if error >= _E5 else 2 if error >= _E2 else 1
    if power >= 0:
        return factor * (10 ** power)
    return -(10 ** -power) / factor


def _tick_plan(start: float, stop: float, count: float) -> Tuple[int, int, float]:
    step = (stop - start) / max(0, count)
    power = math.floor(math.log10(step))
    error = step / (10 ** power)
    factor = 10 if error >= _E10 else 5 if error >= _E5 else 2 if error >= _E2 else 1
    if power < 0:
        inc = (10 ** -power) / factor
        i1, i2 = round(start * inc), round(stop * inc)
        if i1 / inc < start:
            i1 += 1
        if i2 / inc > stop:
            i2 -= 1
        inc = -inc
    else:
        inc = (10 ** power) * factor
        i1, i2 = round(start / inc), round(stop / inc)
        if i1 * inc < start:
            i1 += 1
        if i2 * inc > stop:
            i2 -= 1
    if i2 < i1 and 0.5 <= count < 2:
        return _tick_plan(start, stop, count * 2)
    return i1, i2, inc


def linear_ticks(start: float, stop: float, count: int = 10) -> List[float]:
    """Round tick values covering [start, stop]."""
    if count <= 0:
        return []
    if start == stop:
        return [start]
    reverse = stop < start
    if reverse:
        start, stop = stop, start
    i1, i2, inc = _tick_plan(start, stop, count)
    if i2 < i1:
        return []
    if inc < 0:
        ticks = [(i1 + i) / -inc for i in range(i2 - i1 + 1)]
    else:
        ticks = [(i1 + i) * inc for i in range(i2 - i1 + 1)]
    return ticks[::-1] if reverse else ticks


def nice(start: float, stop: float, count: int = 10) -> Tuple[float, float]:
    """Extend [start, stop] outward to round tick boundaries."""
    if start == stop or not (math.isfinite(start) and math.isfinite(stop)):
        return start, stop
    reverse = stop < start
    if reverse:
        start, stop = stop, start
    prestep = None
    for _ in range(10):
        step = tick_increment(start, stop, count)
        if step == prestep:
            break
        if step > 0:
            start = math.floor(start / step) * step
            stop = math.ceil(stop / step) * step
        elif step < 0:
            start = math.ceil(start * step) / step
            stop = math.floor(stop * step) / step
        else:
            break
        prestep = step
    return (stop, start) if reverse else (start, stop)


# Calendar intervals for time axes: (unit, step, approx seconds)
_DAY = 86400.0
TIME_INTERVALS = [
    ('day', 1, _DAY),
    ('day', 2, 2 * _DAY),
    ('day', 7, 7 * _DAY),
    ('month', 1, 30 * _DAY),
    ('month', 3, 91 * _DAY),
    ('month', 6, 182 * _DAY),
    ('year', 1, 365 * _DAY),
    ('year', 2, 2 * 365 * _DAY),
    ('year', 5, 5 * 365 * _DAY),
    ('year', 10, 10 * 365 * _DAY),
    ('year', 20, 20 * 365 * _DAY),
    ('year', 50, 50 * 365 * _DAY),
]


def _choose_interval(span_seconds: float, count: int) -> Tuple[str, int]:
    target = span_seconds / max(1, count)
    durations = [d for _, _, d in TIME_INTERVALS]
    i = bisect.bisect_left(durations, target)
    if i == 0:
        unit, step, _ = TIME_INTERVALS[0]
    elif i == len(TIME_INTERVALS):
        unit, step, _ = TIME_INTERVALS[-1]
    else:
        # Closer of the two bracketing intervals, on a ratio basis
        lo, hi = TIME_INTERVALS[i - 1], TIME_INTERVALS[i]
        unit, step, _ = lo if target / lo[2] < hi[2] / target else hi
    return unit, step


def _floor_to_interval(dt: datetime, unit: str, step: int) -> datetime:
    if unit == 'year':
        return dt.replace(year=dt.year - dt.year % step, month=1, day=1,
                          hour=0, minute=0, second=0, microsecond=0)
    if unit == 'month':
        month0 = (dt.month - 1) - (dt.month - 1) % step
        return dt.replace(month=month0 + 1, day=1, hour=0, minute=0, second=0, microsecond=0)
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def time_ticks(start: datetime, stop: datetime, count: int = 7) -> List[datetime]:
    """Calendar-aligned ticks (first of month / first of year) within [start, stop]."""
    if stop < start:
        start, stop = stop, start
    if start == stop:
        return [start]
    unit, step = _choose_interval((stop - start).total_seconds(), count)
    if unit == 'year':
        delta = relativedelta(years=step)
    elif unit == 'month':
        delta = relativedelta(months=step)
    else:
        delta = relativedelta(days=step)

    ticks = []
    tick = _floor_to_interval(start, unit, step)
    while tick <= stop:
        if tick >= start:
            ticks.append(tick)
        tick = tick + delta
    return ticks


# =============================================================================
# SCALE
# =============================================================================

@dataclass(frozen=True)
class Scale:
    """
    Immutable mapping from a data domain to a pixel range.

    kind 'temporal' and 'linear' domains are (min, max) pairs; 'band'
    domains are a tuple of category names.
    """

    kind: str
    domain: Tuple[Any, ...]
    range: Tuple[float, float]
    padding_inner: float = 0.0
    padding_outer: float = 0.0

    def _numeric_domain(self) -> Tuple[float, float]:
        d0, d1 = self.domain
        if self.kind == TEMPORAL:
            return to_epoch(d0), to_epoch(d1)
        return float(d0), float(d1)

    def __call__(self, value: Any) -> float:
        if self.kind == BAND:
            try:
                index = self.domain.index(value)
            except ValueError:
                return math.nan
            return self._band_start() + self.step * index

        if value is None:
            return math.nan
        x = to_epoch(value) if self.kind == TEMPORAL else float(value)
        d0, d1 = self._numeric_domain()
        r0, r1 = self.range
        if d1 == d0:
            return (r0 + r1) / 2
        return r0 + (x - d0) / (d1 - d0) * (r1 - r0)

    def invert(self, px: float) -> Any:
        """Pixel -> domain value (datetime for temporal scales)."""
        if self.kind == BAND:
            raise TypeError("band scales cannot be inverted")
        d0, d1 = self._numeric_domain()
        r0, r1 = self.range
        value = d0 if r1 == r0 else d0 + (px - r0) / (r1 - r0) * (d1 - d0)
        return from_epoch(value) if self.kind == TEMPORAL else value

    def ticks(self, count: int = 10) -> list:
        if self.kind == BAND:
            return list(self.domain)
        if self.kind == TEMPORAL:
            return time_ticks(self.domain[0], self.domain[1], count)
        return linear_ticks(self.domain[0], self.domain[1], count)

    @property
    def step(self) -> float:
        """Distance between band starts."""
        if self.kind != BAND:
            return 0.0
        n = len(self.domain)
        start, stop = sorted(self.range)
        return (stop - start) / max(1, n - self.padding_inner + self.padding_outer * 2)

    @property
    def bandwidth(self) -> float:
        if self.kind != BAND:
            return 0.0
        return self.step * (1 - self.padding_inner)

    def _band_start(self) -> float:
        n = len(self.domain)
        start, stop = sorted(self.range)
        # Centered (align 0.5)
        return start + (stop - start - self.step * (n - self.padding_inner)) * 0.5

    def center(self, value: Any) -> float:
        """Pixel centre of a band (or the plain position on other scales)."""
        if self.kind == BAND:
            return self(value) + self.bandwidth / 2
        return self(value)

    def with_range(self, px_range: Tuple[float, float]) -> 'Scale':
        return replace(self, range=(float(px_range[0]), float(px_range[1])))


# =============================================================================
# LAYOUT
# =============================================================================

@dataclass(frozen=True)
class Margins:
    t: float
    r: float
    b: float
    l: float

    def scaled(self, factor: float) -> 'Margins':
        return Margins(
            t=round(self.t * factor),
            r=round(self.r * factor),
            b=round(self.b * factor),
            l=round(self.l * factor),
        )


@dataclass(frozen=True)
class Layout:
    """Chart box, margins and the axis/label configuration for one render pass."""

    width: float
    height: float
    margin: Margins
    compact: bool = False
    x_ticks: int = 7
    y_ticks: int = 7
    font_size: float = 12
    tick_font_size: float = 11

    @classmethod
    def for_width(
        cls,
        width: float,
        height: float,
        margin: Margins,
        x_ticks: int = 7,
        y_ticks: int = 7,
        breakpoint: Optional[int] = None,
        compact: Optional[bool] = None,
    ) -> 'Layout':
        """
        Layout for a container width.

        Below the breakpoint every axis of the chart switches together to
        the compact configuration: fewer ticks, tighter margins, smaller text.
        Pass compact explicitly when the box is a panel inside a wider container.
        """
        breakpoint = config.compact_breakpoint if breakpoint is None else breakpoint
        if compact is None:
            compact = width < breakpoint
        if compact:
            return cls(
                width=width,
                height=height,
                margin=margin.scaled(0.6),
                compact=True,
                x_ticks=max(2, x_ticks // 2),
                y_ticks=max(2, y_ticks // 2 + 1),
                font_size=10,
                tick_font_size=9,
            )
        return cls(width=width, height=height, margin=margin,
                   x_ticks=x_ticks, y_ticks=y_ticks)

    @property
    def plot_left(self) -> float:
        return self.margin.l

    @property
    def plot_right(self) -> float:
        return self.width - self.margin.r

    @property
    def plot_top(self) -> float:
        return self.margin.t

    @property
    def plot_bottom(self) -> float:
        return self.height - self.margin.b

    @property
    def plot_width(self) -> float:
        return self.plot_right - self.plot_left

    @property
    def plot_height(self) -> float:
        return self.plot_bottom - self.plot_top

    @property
    def x_range(self) -> Tuple[float, float]:
        return (self.plot_left, self.plot_right)

    @property
    def y_range(self) -> Tuple[float, float]:
        # SVG y grows downward: larger values sit higher
        return (self.plot_bottom, self.plot_top)

    def contains(self, x: float, y: float) -> bool:
        """True if a pointer position is inside the plot area."""
        return self.plot_left <= x <= self.plot_right and self.plot_top <= y <= self.plot_bottom


# =============================================================================
# SCALE BUILDER
# =============================================================================

class ScaleBuilder:
    """Derives temporal, linear and band scales from loaded data."""

    def __init__(self, annotation_pad: Optional[timedelta] = None, pad_ratio: float = 0.1):
        if annotation_pad is None:
            annotation_pad = timedelta(days=config.annotation_pad_days)
        self.annotation_pad = annotation_pad
        self.pad_ratio = pad_ratio

    def temporal(
        self,
        timestamps: Sequence[datetime],
        px_range: Tuple[float, float],
        annotations: Optional[Sequence[dict]] = None,
    ) -> Scale:
        """
        Time scale over [first, last] timestamp.

        With annotations, the upper end grows to the latest event date (at or
        after the data start) plus the lookahead pad, so labels of events past
        the last data point still have room.
        """
        if not timestamps:
            raise ValueError("cannot build a temporal scale without timestamps")
        lo, hi = date_extent(timestamps)

        if annotations:
            parsed = (parse_date(a.get('date')) for a in annotations)
            event_dates = [d for d in parsed if d is not None]
            in_scope = filter_by_dates(event_dates, event_dates, start_date=lo)
            latest = max(in_scope + [hi])
            hi = latest + self.annotation_pad

        return Scale(kind=TEMPORAL, domain=(lo, hi), range=_as_range(px_range))

    def linear(
        self,
        values: Sequence[float],
        px_range: Tuple[float, float],
        ticks: int = 10,
        pad_ratio: Optional[float] = None,
    ) -> Scale:
        """
        Value scale over every finite value, padded and then niced.

        The pad is a fraction of the range on each side, or 1 when all
        values are equal.
        """
        pad_ratio = self.pad_ratio if pad_ratio is None else pad_ratio
        finite = [float(v) for v in values if not is_missing(v)]
        if not finite:
            logger.debug("No finite values for linear scale; using [0, 1]")
            return Scale(kind=LINEAR, domain=(0.0, 1.0), range=_as_range(px_range))

        lo, hi = min(finite), max(finite)
        pad = (hi - lo) * pad_ratio or 1.0
        lo, hi = nice(lo - pad, hi + pad, ticks)
        return Scale(kind=LINEAR, domain=(lo, hi), range=_as_range(px_range))

    def linear_money(self, values: Sequence[float], px_range: Tuple[float, float],
                     ticks: int = 10) -> Scale:
        """Salary axis: floor(min * 0.95) to ceil(max * 1.05), niced."""
        finite = [float(v) for v in values if not is_missing(v)]
        lo = math.floor((min(finite) if finite else 0.0) * 0.95)
        hi = math.ceil((max(finite) if finite else 1.0) * 1.05)
        lo, hi = nice(lo, hi, ticks)
        return Scale(kind=LINEAR, domain=(lo, hi), range=_as_range(px_range))

    def band(self, categories: Sequence[str], px_range: Tuple[float, float],
             padding: float = 0.4) -> Scale:
        """Categorical rows with equal inner and outer padding."""
        return Scale(
            kind=BAND,
            domain=tuple(categories),
            range=_as_range(px_range),
            padding_inner=padding,
            padding_outer=padding,
        )


def _as_range(px_range: Tuple[float, float]) -> Tuple[float, float]:
    return (float(px_range[0]), float(px_range[1]))
