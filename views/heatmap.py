"""
Affordability Map - London boroughs colored by house price to earnings ratio.

Colors use a fixed ratio range so moving the year slider compares like
with like. The year's five least affordable boroughs get a red outline.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from shapely.geometry.base import BaseGeometry

from config import AFFORDABILITY_DOMAIN, config
from processing.formatter import format_money, format_ratio
from processing.records import RegionFeature, RegionMetric
from sources import DataSourceManager
from charting.choropleth import ChoroplethColorMapper, RegionIndex, RegionMetricTable, metric_key
from charting.geo import MercatorProjection, ProjectedRegions, region_shapes
from charting.hover import HoverState, RegionHover, TooltipLine
from charting.renderer import ChartRenderer
from charting.scales import LINEAR, Margins, Scale
from charting.svg import SvgElement
from .base import ChartView

logger = logging.getLogger(__name__)

METRIC = 'affordability'
METRIC_FIELDS = ('affordability', 'house_price', 'workplace')

LEGEND_WIDTH = 260
LEGEND_INSET = 24

# Year slider: track inset from the "Year" label and the value readout
SLIDER_LABEL_ROOM = 44
SLIDER_VALUE_ROOM = 56
SLIDER_HIT = 12


@dataclass(frozen=True)
class MapSnapshot:
    features: Tuple[RegionFeature, ...]
    metrics: Tuple[RegionMetric, ...]


class AffordabilityMapView(ChartView):
    """
    Choropleth of the affordability ratio with a year selection.

    Args:
        manager: Data source manager
        width: Initial container width
        year: Initially selected year (defaults to the latest loaded)
        derive_domain: Use the min/max over ALL years instead of the preset range
    """

    name = 'affordability_map'
    WIDTH = 820
    HEIGHT = 760
    MIN_HEIGHT = 320
    MARGIN = Margins(t=64, r=28, b=28, l=28)

    def __init__(
        self,
        manager: Optional[DataSourceManager] = None,
        width: Optional[float] = None,
        year: Optional[int] = None,
        top_n: Optional[int] = None,
        derive_domain: bool = False,
    ):
        super().__init__(manager, width)
        self.requested_year = year
        self.top_n = config.top_n if top_n is None else top_n
        self.derive_domain = derive_domain
        self.mapper = ChoroplethColorMapper()
        self.features: Tuple[RegionFeature, ...] = ()
        self.shapes: List[BaseGeometry] = []
        self.table = RegionMetricTable([])
        self.year: Optional[int] = None
        self.regions: Optional[ProjectedRegions] = None
        self.hover: Optional[RegionHover] = None
        self._index = RegionIndex([])
        self._matches: List[Optional[RegionMetric]] = []
        self._top: List[bool] = []

    async def _load(self) -> MapSnapshot:
        boundaries, metrics = await self.fetch('borough_boundaries', 'borough_metrics')
        rows = self.ingestor('borough_metrics').parse_region_metrics(metrics.rows, METRIC_FIELDS)
        return MapSnapshot(features=tuple(boundaries.features), metrics=tuple(rows))

    def _apply(self, snapshot: MapSnapshot) -> None:
        self.features = snapshot.features
        self.shapes = region_shapes(snapshot.features)
        self.table = RegionMetricTable(snapshot.metrics)
        domain = AFFORDABILITY_DOMAIN
        if self.derive_domain:
            domain = ChoroplethColorMapper.fixed_domain_for(snapshot.metrics, METRIC)
        self.mapper = ChoroplethColorMapper(domain)
        self.year = self.table.clamp_year(self.requested_year)

    @property
    def years(self) -> List[int]:
        return list(self.table.years)

    def select_year(self, year: int) -> Optional[int]:
        """Move the year slider; only fills and emphasis change."""
        self.requested_year = year
        if not self.ready:
            return None
        self.year = self.table.clamp_year(year)
        self._select()
        return self.year

    def _select(self) -> None:
        """Match features to this year's metrics and mark the top N."""
        self._index = self.table.for_year(self.year)
        self._matches = [self._index.lookup(f) for f in self.features]
        top = self._index.top_keys(METRIC, self.top_n)
        self._top = [m is not None and metric_key(m) in top for m in self._matches]
        if self.hover is not None:
            self.hover.leave()

    def _rebuild(self) -> None:
        layout = self.make_layout()
        extent = ((layout.plot_left, layout.plot_top), (layout.plot_right, layout.plot_bottom))
        projection = MercatorProjection.fit_extent(extent, self.shapes)
        self.regions = ProjectedRegions(self.shapes, projection)
        self.layout = layout
        if self.hover is None:
            self.hover = RegionHover(self.regions.locate, self.describe)
        else:
            self.hover.locate = self.regions.locate
        self._select()

    def fill_for(self, index: int) -> str:
        metric = self._matches[index]
        return self.mapper.color(metric.get(METRIC) if metric else None)

    def is_top(self, index: int) -> bool:
        return self._top[index]

    def describe(self, index: int) -> Tuple[str, List[TooltipLine], str]:
        feature = self.features[index]
        metric = self._matches[index]
        get = metric.get if metric else (lambda key: None)
        lines = [
            TooltipLine('Affordability ratio', format_ratio(get('affordability'))),
            TooltipLine('Median house price', format_money(get('house_price'))),
            TooltipLine('Workplace median pay', format_money(get('workplace'))),
        ]
        note = f"Top {self.top_n} most expensive" if self._top[index] else ''
        return f"{feature.label} — {self.year}", lines, note

    def _pointer_move(self, x: float, y: float) -> HoverState:
        return self.hover.move(x, y)

    def _pointer_leave(self) -> HoverState:
        return self.hover.leave()

    # -------------------------------------------------------------------------
    # Year slider
    # -------------------------------------------------------------------------

    @property
    def slider_y(self) -> float:
        return self.layout.plot_top / 2

    def slider_scale(self) -> Scale:
        """Loaded years -> pixels along the slider track."""
        x0 = self.layout.plot_left + SLIDER_LABEL_ROOM
        x1 = self.layout.plot_right - SLIDER_VALUE_ROOM
        first, last = (self.years[0], self.years[-1]) if self.years else (0, 0)
        domain = (first, last) if last > first else (first - 0.5, first + 0.5)
        return Scale(kind=LINEAR, domain=domain, range=(x0, x1))

    def year_at(self, x: float) -> Optional[int]:
        """Pointer X on the track -> nearest loaded year."""
        if not self.years:
            return None
        return self.table.clamp_year(int(round(self.slider_scale().invert(x))))

    def slider_press(self, x: float, y: float) -> Optional[int]:
        """
        Press or drag on the slider: select the year under the pointer.

        Returns:
            The selected year, or None when the pointer is off the slider
        """
        if not self.ready:
            return None
        x0, x1 = self.slider_scale().range
        if abs(y - self.slider_y) > SLIDER_HIT or not x0 - SLIDER_HIT <= x <= x1 + SLIDER_HIT:
            return None
        return self.select_year(self.year_at(x))

    def legend_scale(self) -> Scale:
        width = min(LEGEND_WIDTH, self.layout.width - 2 * LEGEND_INSET)
        x0 = self.layout.width - width - LEGEND_INSET
        return Scale(kind=LINEAR, domain=self.mapper.domain, range=(x0, x0 + width))

    def _draw(self, renderer: ChartRenderer) -> SvgElement:
        svg = renderer.root()
        n = len(self.features)
        renderer.regions(
            svg,
            paths=[self.regions.path(i) for i in range(n)],
            fills=[self.fill_for(i) for i in range(n)],
            emphasized=self._top,
            hovered=self.hover.state.index,
            labels=[f.label for f in self.features],
        )
        scale = self.legend_scale()
        renderer.legend_gradient(
            svg,
            gradient_id=f"{self.name}-{id(self)}-legend",
            stops=self.mapper.legend_stops(),
            scale=scale,
            title='Affordability ratio (lower = more affordable)',
            width=scale.range[1] - scale.range[0],
            tick_format=format_ratio,
        )
        renderer.year_slider(svg, self.years, self.year, self.slider_scale(), self.slider_y)
        renderer.tooltip(svg, self.hover.tooltip)
        return svg
