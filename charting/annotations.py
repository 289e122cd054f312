"""
Annotation Layout - Place event markers and labels on a time chart.

For each event inside the temporal domain:
- the marker sits on the annotated series, by linear interpolation
  between the two rows around the event date
- the label starts just right of the marker, but is pushed left when it
  would cross the plot's right edge (never allowed to overflow)
- label heights cycle through a few stagger offsets so events close in
  time do not print on top of each other
"""

import bisect
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from config import ANNOTATIONS
from processing.records import MISSING, JoinedRow, is_missing
from processing.temporal import filter_by_dates, parse_date, to_epoch
from .scales import Layout, Scale
from .svg import estimate_text_height, estimate_text_width

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnnotationEvent:
    """One laid-out event: marker position plus label box."""

    date: datetime
    label: str
    value: float
    pixel_x: float
    pixel_y: float
    label_x: float
    label_y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.label_x + self.width


def interpolate_at(rows: Sequence[JoinedRow], key: str, t: datetime) -> float:
    """
    Value of `key` at time t, linear between the bracketing rows.

    Before the first row or after the last, the edge row is used. If one
    side of the bracket is missing, the other side's value is returned.
    """
    if not rows:
        return MISSING
    epochs = [to_epoch(r.timestamp) for r in rows]
    target = to_epoch(t)
    if len(rows) == 1 or target <= epochs[0]:
        return rows[0].get(key)
    if target >= epochs[-1]:
        return rows[-1].get(key)

    i = bisect.bisect_left(epochs, target)
    a, b = rows[i - 1], rows[i]
    va, vb = a.get(key), b.get(key)
    if is_missing(va):
        return vb
    if is_missing(vb):
        return va
    span = epochs[i] - epochs[i - 1]
    if span == 0:
        return va
    u = (target - epochs[i - 1]) / span
    return va + u * (vb - va)


class AnnotationLayoutEngine:
    """
    Lays out a fixed list of {'date', 'label'} events.

    Args:
        events: Event dicts with ISO 'date' and 'label' ('\\n' splits lines)
        offset: Gap between marker and label start (px)
        stagger: Vertical step between stagger levels (px)
        cycle: Number of stagger levels
        right_inset: Extra room kept free at the plot's right edge (px)
    """

    def __init__(
        self,
        events: Optional[Sequence[dict]] = None,
        offset: float = 4,
        stagger: float = 10,
        cycle: int = 4,
        right_inset: float = 8,
        font_size: float = 12,
    ):
        self.events = list(ANNOTATIONS if events is None else events)
        self.offset = offset
        self.stagger = stagger
        self.cycle = cycle
        self.right_inset = right_inset
        self.font_size = font_size

    def in_domain(self, x_scale: Scale) -> List[dict]:
        """Events whose date falls inside the scale's domain, with parsed dates."""
        dated = [(parse_date(e.get('date')), e) for e in self.events]
        dated = [(t, e) for t, e in dated if t is not None]
        d0, d1 = x_scale.domain
        kept = filter_by_dates(dated, [t for t, _ in dated], start_date=d0, end_date=d1)
        return [{'date': t, 'label': str(e.get('label', ''))} for t, e in kept]

    def layout(
        self,
        rows: Sequence[JoinedRow],
        key: str,
        x_scale: Scale,
        y_scale: Scale,
        layout: Layout,
        font_size: Optional[float] = None,
    ) -> List[AnnotationEvent]:
        """
        Position every in-domain event on series `key`.

        Events with no value to sit on are dropped.
        """
        font_size = self.font_size if font_size is None else font_size
        top_base = layout.plot_top + 6
        right_edge = layout.plot_right - self.right_inset

        placed: List[AnnotationEvent] = []
        for event in self.in_domain(x_scale):
            value = interpolate_at(rows, key, event['date'])
            if is_missing(value):
                logger.debug(f"Skipping annotation {event['label']!r}: no value at date")
                continue

            px = x_scale(event['date'])
            width = estimate_text_width(event['label'], font_size, bold=True)
            height = estimate_text_height(event['label'], font_size)
            total = width + 2 * self.offset
            label_x = min(px + self.offset, right_edge - total)
            label_y = top_base - (len(placed) % self.cycle) * self.stagger

            placed.append(AnnotationEvent(
                date=event['date'],
                label=event['label'],
                value=value,
                pixel_x=px,
                pixel_y=y_scale(value),
                label_x=label_x,
                label_y=label_y,
                width=width,
                height=height,
            ))
        return placed
