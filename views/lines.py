"""
Line Chart Views - Annual % change lines and the house price index chart.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from config import COLORS, config
from processing.formatter import format_percent, format_tick, format_value
from processing.ingest import series_from_points
from processing.join import DatasetJoiner, rows_from_points
from processing.records import JoinedRow, TypedPoint
from registry import SeriesStyle, registry
from sources import DataSourceManager
from charting.annotations import AnnotationEvent, AnnotationLayoutEngine
from charting.hover import DISAMBIGUATING, SYNCHRONIZED, HoverQueryEngine, HoverState
from charting.renderer import MONOTONE_CURVE, ChartRenderer, emphasize
from charting.scales import Margins, Scale
from charting.svg import SvgElement
from .base import ChartView

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineSnapshot:
    """Rows and plotted keys of one successful load."""

    rows: Tuple[JoinedRow, ...]
    keys: Tuple[str, ...]


def _only(points: Sequence[TypedPoint], keys: Sequence[str]) -> List[TypedPoint]:
    return [TypedPoint(p.timestamp, {k: p.get(k) for k in keys}) for p in points]


def percent_tick(value: float) -> str:
    return f"{format_tick(value)}%"


class _LineView(ChartView):
    """Shared scale/hover plumbing for single-panel time-series charts."""

    mode = SYNCHRONIZED
    value_format = staticmethod(format_value)

    def __init__(self, manager: Optional[DataSourceManager] = None, width: Optional[float] = None):
        super().__init__(manager, width)
        self.rows: Tuple[JoinedRow, ...] = ()
        self.keys: Tuple[str, ...] = ()
        self.x_scale: Optional[Scale] = None
        self.y_scale: Optional[Scale] = None
        self.hover: Optional[HoverQueryEngine] = None

    def _apply(self, snapshot: LineSnapshot) -> None:
        self.rows = snapshot.rows
        self.keys = snapshot.keys

    def styles(self) -> List[SeriesStyle]:
        return registry.styles_for(list(self.keys))

    def hover_colors(self) -> Dict[str, str]:
        return {s.key: s.color for s in self.styles()}

    def _temporal_annotations(self) -> Optional[Sequence[dict]]:
        return None

    def _rebuild(self) -> None:
        layout = self.make_layout()
        timestamps = [r.timestamp for r in self.rows]
        self.x_scale = self.builder.temporal(timestamps, layout.x_range,
                                             annotations=self._temporal_annotations())
        values = [r.get(k) for r in self.rows for k in self.keys]
        self.y_scale = self.builder.linear(values, layout.y_range)
        self.layout = layout

        labels = {s.key: s.label for s in self.styles()}
        if self.hover is None:
            self.hover = HoverQueryEngine(
                self.rows, self.keys, self.x_scale, self.y_scale, layout,
                mode=self.mode, labels=labels, colors=self.hover_colors(),
                value_format=self.value_format,
            )
        else:
            self.hover.labels = labels
            self.hover.colors = self.hover_colors()
            self.hover.reset(self.rows, self.keys, self.x_scale, self.y_scale, layout)

    def _pointer_move(self, x: float, y: float) -> HoverState:
        return self.hover.move(x, y)

    def _pointer_leave(self) -> HoverState:
        return self.hover.leave()


class InflationView(_LineView):
    """
    Private rents and house prices (annual % change) against CPI inflation.

    The YoY file drives the rows; each row takes the inflation reading
    closest in time (within the join tolerance). Synchronized hover shows
    all three values at once; housing-market events are annotated on the
    inflation line.
    """

    name = 'inflation'
    WIDTH = 920
    HEIGHT = 700
    MIN_HEIGHT = 360
    MARGIN = Margins(t=40, r=72, b=44, l=56)
    KEYS = ('rent', 'house', 'inflation')
    ANNOTATED_KEY = 'inflation'

    mode = SYNCHRONIZED
    value_format = staticmethod(format_percent)

    def __init__(
        self,
        manager: Optional[DataSourceManager] = None,
        width: Optional[float] = None,
        annotations: Optional[Sequence[dict]] = None,
        tolerance: Optional[timedelta] = None,
    ):
        super().__init__(manager, width)
        if tolerance is None:
            tolerance = timedelta(days=config.join_tolerance_days)
        self.joiner = DatasetJoiner(tolerance)
        self.annotator = AnnotationLayoutEngine(annotations)
        self.events: List[AnnotationEvent] = []

    async def _load(self) -> LineSnapshot:
        yoy, inflation = await self.fetch('rent_house_yoy', 'inflation')
        primary = self.ingestor('rent_house_yoy').parse_points(yoy.rows)
        secondary = self.ingestor('inflation').parse_points(inflation.rows)
        rows = self.joiner.join(_only(primary, ('rent', 'house')), _only(secondary, ('inflation',)))
        return LineSnapshot(rows=tuple(rows), keys=self.KEYS)

    def _temporal_annotations(self) -> Optional[Sequence[dict]]:
        return self.annotator.events

    def _rebuild(self) -> None:
        super()._rebuild()
        self.events = self.annotator.layout(
            self.rows, self.ANNOTATED_KEY, self.x_scale, self.y_scale, self.layout,
            font_size=self.layout.font_size,
        )

    def _draw(self, renderer: ChartRenderer) -> SvgElement:
        svg = renderer.root()
        styles = self.styles()
        renderer.time_axis(svg, self.x_scale)
        renderer.value_axis(svg, self.y_scale, tick_format=percent_tick)
        renderer.horizontal_grid(svg, self.y_scale)
        renderer.zero_line(svg, self.y_scale)
        renderer.series(svg, self.rows, styles, self.x_scale, self.y_scale, MONOTONE_CURVE)
        renderer.end_labels(svg, self.rows, styles, self.x_scale, self.y_scale)
        renderer.annotations(svg, self.events, font_size=self.layout.font_size)
        renderer.focus(svg, self.hover.state)
        renderer.overlay(svg)
        renderer.tooltip(svg, self.hover.tooltip)
        return svg


class HpiLinesView(_LineView):
    """
    House price index (2015 = 100): UK, London and every region.

    Dozens of grey lines share one panel, so hover picks the single line
    drawn closest to the pointer and highlights only that one.
    """

    name = 'hpi'
    WIDTH = 1400
    HEIGHT = 700
    MIN_HEIGHT = 360
    MARGIN = Margins(t=40, r=40, b=60, l=80)

    mode = DISAMBIGUATING
    value_format = staticmethod(format_value)

    async def _load(self) -> LineSnapshot:
        (hpi,) = await self.fetch('hpi')
        points = self.ingestor('hpi').parse_points(hpi.rows)
        keys = tuple(s.key for s in series_from_points(points))
        return LineSnapshot(rows=tuple(rows_from_points(points)), keys=keys)

    def hover_colors(self) -> Dict[str, str]:
        return {s.key: s.color if s.emphasized else COLORS['highlight'] for s in self.styles()}

    def _draw(self, renderer: ChartRenderer) -> SvgElement:
        svg = renderer.root()
        styles = self.styles()
        chosen = self.hover.state.emphasized
        drawn = [
            emphasize(s, self.hover.colors[s.key]) if s.key == chosen else s
            for s in styles
        ]
        renderer.time_axis(svg, self.x_scale)
        renderer.value_axis(svg, self.y_scale)
        renderer.horizontal_grid(svg, self.y_scale)
        renderer.series(svg, self.rows, drawn, self.x_scale, self.y_scale, MONOTONE_CURVE)
        renderer.end_labels(svg, self.rows, [s for s in styles if s.emphasized],
                            self.x_scale, self.y_scale)
        renderer.focus(svg, self.hover.state)
        renderer.overlay(svg)
        renderer.tooltip(svg, self.hover.tooltip)
        return svg
