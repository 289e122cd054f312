"""
Chart Renderer - Data + scales + interaction state -> SVG element tree.

The renderer maps values to visual attributes and nothing else: every
number it draws was computed by the scale, hover or annotation layers.
Each call builds a brand-new tree, so drawing twice with the same inputs
yields identical output.
"""

import math
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from config import COLORS
from processing.formatter import format_axis_date, format_tick
from processing.records import JoinedRow, SalaryComparison, is_missing
from registry import SeriesStyle
from .annotations import AnnotationEvent
from .hover import DOT_RADIUS, DOT_RADIUS_HOVER, HIT_STROKE, HoverState, Tooltip
from .scales import Layout, Scale
from .svg import SvgElement, estimate_text_width, fmt_number, svg_root

Point = Tuple[float, float]

LINEAR_CURVE = 'linear'
MONOTONE_CURVE = 'monotone'

TOOLTIP_PAD_X = 10
TOOLTIP_PAD_Y = 8
TOOLTIP_LINE = 15


# =============================================================================
# PATH GEOMETRY
# =============================================================================

def line_segments(
    rows: Sequence[JoinedRow],
    key: str,
    x_scale: Scale,
    y_scale: Scale,
) -> List[List[Point]]:
    """Pixel points for one series, split into runs at missing values."""
    segments: List[List[Point]] = []
    current: List[Point] = []
    for row in rows:
        v = row.get(key)
        if is_missing(v):
            if current:
                segments.append(current)
                current = []
            continue
        current.append((x_scale(row.timestamp), y_scale(v)))
    if current:
        segments.append(current)
    return segments


def _xy(x: float, y: float) -> str:
    return f"{fmt_number(x)},{fmt_number(y)}"


def linear_path(points: Sequence[Point]) -> str:
    if not points:
        return ''
    if len(points) == 1:
        return f"M{_xy(*points[0])}Z"
    return 'M' + 'L'.join(_xy(x, y) for x, y in points)


def _div(a: float, b: float, negative_zero: bool = False) -> float:
    """IEEE-style division: x/0 -> +-inf, 0/0 -> nan."""
    if b != 0:
        return a / b
    if a == 0 or math.isnan(a):
        return math.nan
    inf = math.copysign(math.inf, a)
    return -inf if negative_zero else inf


def _sign(x: float) -> int:
    return -1 if x < 0 else 1


def _slope3(x0: float, y0: float, x1: float, y1: float, x2: float, y2: float) -> float:
    """Fritsch-Carlson tangent at (x1, y1), bounded to keep the curve monotone."""
    h0, h1 = x1 - x0, x2 - x1
    s0 = _div(y1 - y0, h0, h1 < 0)
    s1 = _div(y2 - y1, h1, h0 < 0)
    p = _div(s0 * h1 + s1 * h0, h0 + h1)
    if math.isnan(s0) or math.isnan(s1) or math.isnan(p):
        return 0.0
    t = (_sign(s0) + _sign(s1)) * min(abs(s0), abs(s1), 0.5 * abs(p))
    return 0.0 if math.isnan(t) else t


def _slope2(x0: float, y0: float, x1: float, y1: float, t: float) -> float:
    """One-sided tangent for the end points."""
    h = x1 - x0
    return (3 * (y1 - y0) / h - t) / 2 if h else t


def _bezier(p0: Point, p1: Point, t0: float, t1: float) -> str:
    (x0, y0), (x1, y1) = p0, p1
    dx = (x1 - x0) / 3
    return f"C{_xy(x0 + dx, y0 + dx * t0)},{_xy(x1 - dx, y1 - dx * t1)},{_xy(x1, y1)}"


def monotone_path(points: Sequence[Point]) -> str:
    """
    Cubic path monotone in y between points (d3.curveMonotoneX).

    Consecutive identical points are ignored.
    """
    pts: List[Point] = []
    for p in points:
        if not pts or p != pts[-1]:
            pts.append(p)
    if len(pts) < 3:
        return linear_path(pts)

    tangents = [0.0] * len(pts)
    for i in range(1, len(pts) - 1):
        (x0, y0), (x1, y1), (x2, y2) = pts[i - 1], pts[i], pts[i + 1]
        tangents[i] = _slope3(x0, y0, x1, y1, x2, y2)
    tangents[0] = _slope2(*pts[0], *pts[1], tangents[1])
    tangents[-1] = _slope2(*pts[-2], *pts[-1], tangents[-2])

    parts = [f"M{_xy(*pts[0])}"]
    for i in range(1, len(pts)):
        parts.append(_bezier(pts[i - 1], pts[i], tangents[i - 1], tangents[i]))
    return ''.join(parts)


def series_path(segments: Sequence[Sequence[Point]], curve: str = LINEAR_CURVE) -> str:
    """One path 'd' with a separate subpath per gap-free run."""
    build = monotone_path if curve == MONOTONE_CURVE else linear_path
    return ''.join(build(seg) for seg in segments)


def z_order(styles: Sequence[SeriesStyle]) -> List[SeriesStyle]:
    """Neutral series first, focal series last; ties keep input order."""
    return sorted(styles, key=lambda s: s.priority)


# =============================================================================
# RENDERER
# =============================================================================

class ChartRenderer:
    """
    Draws chart parts into a fresh SVG tree.

    Args:
        layout: Chart box and axis configuration for this render pass
        colors: Palette (defaults to the shared COLORS)
    """

    def __init__(self, layout: Layout, colors: Optional[Dict[str, str]] = None):
        self.layout = layout
        self.colors = dict(COLORS if colors is None else colors)

    def root(self) -> SvgElement:
        return svg_root(self.layout.width, self.layout.height)

    # -------------------------------------------------------------------------
    # Placeholders
    # -------------------------------------------------------------------------

    def loading(self) -> SvgElement:
        svg = self.root()
        svg.add('text', 'Loading…', x=20, y=40, class_='placeholder loading',
                font_size=self.layout.font_size, fill=self.colors['text'])
        return svg

    def error(self, message: str) -> SvgElement:
        svg = self.root()
        svg.add('text', f"Error: {message}", x=20, y=40, class_='placeholder error',
                font_size=self.layout.font_size, fill=self.colors['error'])
        return svg

    # -------------------------------------------------------------------------
    # Axes & grid
    # -------------------------------------------------------------------------

    def _axis_group(self, parent: SvgElement, cls: str, transform: str) -> SvgElement:
        return parent.add('g', class_=f"axis {cls}", transform=transform,
                          font_size=self.layout.tick_font_size, fill=self.colors['muted'])

    def time_axis(self, parent: SvgElement, x_scale: Scale, ticks: Optional[int] = None) -> SvgElement:
        """Bottom axis with calendar ticks."""
        lay = self.layout
        g = self._axis_group(parent, 'x-axis', f"translate(0,{fmt_number(lay.plot_bottom)})")
        g.add('line', class_='domain', x1=lay.plot_left, x2=lay.plot_right, y1=0, y2=0,
              stroke=self.colors['axis'])
        d0, d1 = x_scale.domain
        span_days = (d1 - d0).total_seconds() / 86400
        for t in x_scale.ticks(ticks or lay.x_ticks):
            px = x_scale(t)
            tick = g.add('g', class_='tick', transform=f"translate({fmt_number(px)},0)")
            tick.add('line', y2=6, stroke=self.colors['axis'])
            tick.add('text', format_axis_date(t, span_days), y=9, dy='0.71em', text_anchor='middle')
        return g

    def value_axis(
        self,
        parent: SvgElement,
        y_scale: Scale,
        ticks: Optional[int] = None,
        tick_format: Callable[[float], str] = format_tick,
    ) -> SvgElement:
        """Left axis for a linear scale."""
        lay = self.layout
        g = self._axis_group(parent, 'y-axis', f"translate({fmt_number(lay.plot_left)},0)")
        g.add('line', class_='domain', x1=0, x2=0, y1=lay.plot_top, y2=lay.plot_bottom,
              stroke=self.colors['axis'])
        for v in y_scale.ticks(ticks or lay.y_ticks):
            tick = g.add('g', class_='tick', transform=f"translate(0,{fmt_number(y_scale(v))})")
            tick.add('line', x2=-6, stroke=self.colors['axis'])
            tick.add('text', tick_format(v), x=-9, dy='0.32em', text_anchor='end')
        return g

    def bottom_value_axis(
        self,
        parent: SvgElement,
        x_scale: Scale,
        ticks: Optional[int] = None,
        tick_format: Callable[[float], str] = format_tick,
    ) -> SvgElement:
        """Bottom axis for a linear x scale (dumbbell)."""
        lay = self.layout
        g = self._axis_group(parent, 'x-axis', f"translate(0,{fmt_number(lay.plot_bottom)})")
        g.add('line', class_='domain', x1=lay.plot_left, x2=lay.plot_right, y1=0, y2=0,
              stroke=self.colors['axis'])
        for v in x_scale.ticks(ticks or lay.x_ticks):
            tick = g.add('g', class_='tick', transform=f"translate({fmt_number(x_scale(v))},0)")
            tick.add('line', y2=6, stroke=self.colors['axis'])
            tick.add('text', tick_format(v), y=9, dy='0.71em', text_anchor='middle')
        return g

    def band_axis(self, parent: SvgElement, y_band: Scale) -> SvgElement:
        """Left axis naming each band row."""
        lay = self.layout
        g = self._axis_group(parent, 'y-axis', f"translate({fmt_number(lay.plot_left)},0)")
        g.add('line', class_='domain', x1=0, x2=0, y1=lay.plot_top, y2=lay.plot_bottom,
              stroke=self.colors['axis'])
        for name in y_band.domain:
            tick = g.add('g', class_='tick', transform=f"translate(0,{fmt_number(y_band.center(name))})")
            tick.add('line', x2=-6, stroke=self.colors['axis'])
            tick.add('text', name, x=-9, dy='0.32em', text_anchor='end')
        return g

    def horizontal_grid(self, parent: SvgElement, y_scale: Scale, ticks: Optional[int] = None) -> SvgElement:
        lay = self.layout
        g = parent.add('g', class_='grid', stroke=self.colors['grid'])
        for v in y_scale.ticks(ticks or lay.y_ticks):
            py = y_scale(v)
            g.add('line', x1=lay.plot_left, x2=lay.plot_right, y1=py, y2=py)
        return g

    def vertical_grid(self, parent: SvgElement, x_scale: Scale, ticks: Optional[int] = None) -> SvgElement:
        lay = self.layout
        g = parent.add('g', class_='grid', stroke=self.colors['grid'])
        for v in x_scale.ticks(ticks or lay.x_ticks):
            px = x_scale(v)
            g.add('line', x1=px, x2=px, y1=lay.plot_top, y2=lay.plot_bottom)
        return g

    def zero_line(self, parent: SvgElement, y_scale: Scale) -> Optional[SvgElement]:
        """Baseline at 0 when 0 is inside the value domain."""
        lo, hi = sorted(y_scale.domain)
        if not lo <= 0 <= hi:
            return None
        py = y_scale(0)
        return parent.add('line', class_='zero', x1=self.layout.plot_left, x2=self.layout.plot_right,
                          y1=py, y2=py, stroke=self.colors['zero'])

    # -------------------------------------------------------------------------
    # Series
    # -------------------------------------------------------------------------

    def series(
        self,
        parent: SvgElement,
        rows: Sequence[JoinedRow],
        styles: Sequence[SeriesStyle],
        x_scale: Scale,
        y_scale: Scale,
        curve: str = LINEAR_CURVE,
    ) -> SvgElement:
        """One path per series, drawn neutral -> secondary -> focal."""
        g = parent.add('g', class_='series')
        for style in z_order(styles):
            d = series_path(line_segments(rows, style.key, x_scale, y_scale), curve)
            g.add('path', d=d, fill='none', stroke=style.color, stroke_width=style.width,
                  stroke_opacity=style.opacity, stroke_dasharray=style.dash,
                  data_key=style.key)
        return g

    def end_labels(
        self,
        parent: SvgElement,
        rows: Sequence[JoinedRow],
        styles: Sequence[SeriesStyle],
        x_scale: Scale,
        y_scale: Scale,
    ) -> SvgElement:
        """Series names beside the last row, kept inside the plot's right edge."""
        g = parent.add('g', class_='end-labels', font_size=self.layout.font_size)
        if not rows:
            return g
        last = rows[-1]
        right_limit = self.layout.plot_right - 2
        for style in styles:
            v = last.get(style.key)
            if is_missing(v):
                continue
            x = min(x_scale(last.timestamp) + 6, right_limit)
            g.add('text', style.label, x=x, y=y_scale(v), dominant_baseline='middle',
                  fill=style.color)
        return g

    # -------------------------------------------------------------------------
    # Annotations
    # -------------------------------------------------------------------------

    def annotations(self, parent: SvgElement, events: Sequence[AnnotationEvent],
                    font_size: float = 12, pad_x: float = 4) -> SvgElement:
        """Dashed full-height guide, marker dot and backed label per event."""
        lay = self.layout
        g = parent.add('g', class_='annotations')
        for event in events:
            g.add('line', class_='vline', x1=event.pixel_x, x2=event.pixel_x,
                  y1=lay.plot_top, y2=lay.plot_bottom, stroke=self.colors['annotation'],
                  stroke_width=1, stroke_dasharray='3,3', opacity=0.9)
            g.add('circle', class_='marker', cx=event.pixel_x, cy=event.pixel_y, r=4,
                  fill=self.colors['annotation'], stroke='white', stroke_width=1.2)

            label = g.add('g', class_='toplabel',
                          transform=f"translate({fmt_number(event.label_x)},{fmt_number(event.label_y)})")
            lines = event.label.split('\n')
            line_height = event.height / max(1, len(lines))
            label.add('rect', x=-pad_x, y=-font_size,
                      width=event.width + 2 * pad_x, height=event.height + 4,
                      fill='rgba(255,255,255,0.8)', rx=2)
            text = label.add('text', font_size=font_size, font_weight=700,
                             fill=self.colors['annotation_text'])
            for i, line in enumerate(lines):
                text.add('tspan', line, x=0, dy=0 if i == 0 else fmt_number(line_height))
        return g

    # -------------------------------------------------------------------------
    # Hover
    # -------------------------------------------------------------------------

    def focus(self, parent: SvgElement, state: HoverState) -> Optional[SvgElement]:
        """Guide line and focus markers of an active hover."""
        if not state.active:
            return None
        lay = self.layout
        g = parent.add('g', class_='focus')
        if state.guide_x is not None:
            g.add('line', class_='guide', x1=state.guide_x, x2=state.guide_x,
                  y1=lay.plot_top, y2=lay.plot_bottom, stroke=self.colors['guide'], stroke_width=1)
        for marker in state.markers:
            g.add('circle', class_='focus-marker', cx=marker.x, cy=marker.y, r=4.5,
                  fill=marker.color or self.colors['highlight'], stroke='white',
                  stroke_width=1.5, data_key=marker.key)
        return g

    def overlay(self, parent: SvgElement) -> SvgElement:
        """Transparent pointer-capture rect over the plot area."""
        lay = self.layout
        return parent.add('rect', class_='overlay', x=lay.plot_left, y=lay.plot_top,
                          width=lay.plot_width, height=lay.plot_height,
                          fill='transparent', pointer_events='all', style='cursor:crosshair')

    def tooltip(self, parent: SvgElement, tooltip: Tooltip, font_size: float = 12) -> Optional[SvgElement]:
        """Dark tooltip box centred above the pointer, kept inside the chart."""
        if not tooltip.visible:
            return None
        rows = [tooltip.title] + [f"{line.label}: {line.value}" for line in tooltip.lines]
        if tooltip.note:
            rows.append(tooltip.note)
        swatch = 16 if any(line.color for line in tooltip.lines) else 0
        width = max(estimate_text_width(r, font_size, bold=True) for r in rows) + swatch + 2 * TOOLTIP_PAD_X
        height = len(rows) * TOOLTIP_LINE + 2 * TOOLTIP_PAD_Y

        x = tooltip.x - width / 2
        x = min(max(0.0, x), max(0.0, self.layout.width - width))
        y = max(0.0, tooltip.y - 14 - height)

        g = parent.add('g', class_='tooltip', transform=f"translate({fmt_number(x)},{fmt_number(y)})",
                       font_size=font_size, pointer_events='none')
        g.add('rect', width=width, height=height, rx=8, fill=self.colors['tooltip_bg'])
        baseline = TOOLTIP_PAD_Y + TOOLTIP_LINE - 4
        g.add('text', tooltip.title, x=TOOLTIP_PAD_X, y=baseline, font_weight=600,
              fill=self.colors['tooltip_text'], class_='tooltip-title')
        for i, line in enumerate(tooltip.lines, start=1):
            ty = baseline + i * TOOLTIP_LINE
            tx = TOOLTIP_PAD_X
            if line.color:
                g.add('circle', cx=tx + 5, cy=ty - 4, r=5, fill=line.color)
                tx += swatch
            text = g.add('text', x=tx, y=ty, fill=self.colors['tooltip_text'], class_='tooltip-line')
            text.add('tspan', f"{line.label}: ")
            text.add('tspan', line.value, font_weight=700 if line.bold else None)
        if tooltip.note:
            ty = baseline + (len(tooltip.lines) + 1) * TOOLTIP_LINE
            g.add('text', tooltip.note, x=TOOLTIP_PAD_X, y=ty, font_size=11,
                  fill=self.colors['tooltip_text'], class_='tooltip-note')
        return g

    # -------------------------------------------------------------------------
    # Dumbbell
    # -------------------------------------------------------------------------

    def dumbbell_rows(
        self,
        parent: SvgElement,
        rows: Sequence[SalaryComparison],
        x_scale: Scale,
        y_band: Scale,
        hovered: Optional[int] = None,
        delta_format: Callable[[float], str] = format_tick,
    ) -> SvgElement:
        """Connector, hit line, start/end dots and change label per row."""
        g = parent.add('g', class_='rows')
        for i, row in enumerate(rows):
            active = i == hovered
            cy = y_band.center(row.name)
            xa, xb = x_scale(row.start), x_scale(row.end)
            r = DOT_RADIUS_HOVER if active else DOT_RADIUS
            rg = g.add('g', class_='row active' if active else 'row',
                       transform=f"translate(0,{fmt_number(cy)})")
            rg.add('line', class_='connector', x1=xa, x2=xb, y1=0, y2=0,
                   stroke=self.colors['connector_hover' if active else 'connector'],
                   stroke_width=3 if active else 2)
            rg.add('line', class_='hitline', x1=xa, x2=xb, y1=0, y2=0, stroke='transparent',
                   stroke_width=HIT_STROKE, pointer_events='stroke')
            rg.add('circle', class_='dot-start', cx=xa, cy=0, r=r, fill=self.colors['start_dot'])
            rg.add('circle', class_='dot-end', cx=xb, cy=0, r=r, fill=self.colors['end_dot'])
            rg.add('text', delta_format(row.diff), class_='delta', x=max(xa, xb) + 8, y=0,
                   dominant_baseline='middle', font_size=11, fill=self.colors['highlight'])
        return g

    # -------------------------------------------------------------------------
    # Map
    # -------------------------------------------------------------------------

    def regions(
        self,
        parent: SvgElement,
        paths: Sequence[str],
        fills: Sequence[str],
        emphasized: Sequence[bool],
        hovered: Optional[int] = None,
        labels: Optional[Sequence[str]] = None,
    ) -> SvgElement:
        """Filled polygons, then a crisp non-interactive outline layer."""
        g = parent.add('g', class_='regions')
        for i, (d, fill, top) in enumerate(zip(paths, fills, emphasized)):
            width = 2 if top else 1
            if i == hovered:
                width = 2.2
            g.add('path', d=d, fill=fill, class_='region top' if top else 'region',
                  stroke=self.colors['map_top_stroke' if top else 'map_stroke'],
                  stroke_width=width, data_name=labels[i] if labels else None)
        outline = parent.add('g', class_='outlines', fill='none', stroke=self.colors['map_outline'],
                             stroke_width=0.75, pointer_events='none')
        for d in paths:
            outline.add('path', d=d)
        return g

    def legend_gradient(
        self,
        parent: SvgElement,
        gradient_id: str,
        stops: Sequence[Tuple[float, str]],
        scale: Scale,
        title: str,
        width: float = 260,
        height: float = 10,
        ticks: int = 5,
        tick_format: Callable[[float], str] = format_tick,
    ) -> SvgElement:
        """
        Horizontal gradient bar with ticks along `scale`.

        scale's range must already span the bar in pixels.
        """
        x0 = scale.range[0]
        y0 = self.layout.height - 36
        defs = parent.add('defs')
        grad = defs.add('linearGradient', id=gradient_id, x1='0%', y1='0%', x2='100%', y2='0%')
        for offset, color in stops:
            grad.add('stop', offset=f"{fmt_number(offset * 100)}%", stop_color=color)

        g = parent.add('g', class_='legend')
        g.add('rect', x=x0, y=y0, width=width, height=height, rx=2,
              fill=f"url(#{gradient_id})", stroke=self.colors['axis'])
        axis = g.add('g', transform=f"translate(0,{fmt_number(y0 + height)})",
                     font_size=self.layout.tick_font_size, fill=self.colors['muted'])
        for v in scale.ticks(ticks):
            px = scale(v)
            axis.add('line', x1=px, x2=px, y1=0, y2=4, stroke=self.colors['muted'])
            axis.add('text', tick_format(v), x=px, y=14, text_anchor='middle')
        axis.add('text', title, x=x0 + width / 2, y=26, text_anchor='middle',
                 fill=self.colors['muted'], font_size=12)
        return g

    def year_slider(
        self,
        parent: SvgElement,
        years: Sequence[int],
        selected: Optional[int],
        scale: Scale,
        y: float,
    ) -> Optional[SvgElement]:
        """
        Year selection control: "Year" label, track with a tick per loaded
        year, end labels, a thumb at the selected year and its value.

        scale maps years onto the track's pixel span.
        """
        if not years:
            return None
        x0, x1 = scale.range
        g = parent.add('g', class_='year-slider')
        g.add('text', 'Year', x=self.layout.plot_left, y=y, dominant_baseline='middle',
              font_size=12, fill=self.colors['muted'])
        g.add('line', class_='slider-track', x1=x0, x2=x1, y1=y, y2=y,
              stroke=self.colors['slider_track'], stroke_width=4, stroke_linecap='round')
        for year in years:
            px = scale(year)
            g.add('line', class_='slider-tick', x1=px, x2=px, y1=y + 5, y2=y + 9,
                  stroke=self.colors['slider_track'])
        for year, anchor in ((years[0], 'start'), (years[-1], 'end')):
            g.add('text', str(year), class_='slider-end', x=scale(year), y=y + 20,
                  text_anchor=anchor, font_size=self.layout.tick_font_size,
                  fill=self.colors['muted'])
        if selected is not None:
            g.add('circle', class_='slider-thumb', cx=scale(selected), cy=y, r=7,
                  fill=self.colors['slider_thumb'], stroke=self.colors['slider_ring'],
                  stroke_width=2, data_year=selected)
            g.add('text', str(selected), class_='slider-value', x=self.layout.plot_right, y=y,
                  text_anchor='end', dominant_baseline='middle', font_size=12,
                  font_weight=700, fill=self.colors['text'])
        return g

    # -------------------------------------------------------------------------
    # Panels
    # -------------------------------------------------------------------------

    def panel_title(self, parent: SvgElement, text: str) -> SvgElement:
        return parent.add('text', text, class_='panel-title', x=self.layout.plot_left,
                          y=self.layout.plot_top - 8, font_size=self.layout.font_size,
                          font_weight=700, fill=self.colors['text'])


def emphasize(style: SeriesStyle, color: str, width: float = 3.2) -> SeriesStyle:
    """The hovered series of a disambiguating chart, drawn on top."""
    return replace(style, color=color, width=width, opacity=1.0, priority=style.priority + 10)
