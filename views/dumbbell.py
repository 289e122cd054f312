"""
Salary Dumbbell - Borough salaries in two years, one row per borough.

Rows are sorted by the later year's salary (highest on top). The chart
grows with the number of boroughs instead of squeezing rows together.
"""

import logging
from typing import List, Optional, Tuple

from processing.formatter import format_money, format_signed_money
from processing.records import SalaryComparison
from sources import DataSourceManager
from charting.hover import DumbbellHover, HoverState
from charting.renderer import ChartRenderer
from charting.resize import chart_height
from charting.scales import Margins, Scale
from charting.svg import SvgElement
from .base import ChartView

logger = logging.getLogger(__name__)

ROW_HEIGHT = 25
MAX_HEIGHT = 1600


class SalaryDumbbellView(ChartView):
    """Borough salaries: change from one year to another."""

    name = 'salary_dumbbell'
    WIDTH = 1100
    HEIGHT = 900
    MIN_HEIGHT = 240
    MARGIN = Margins(t=40, r=160, b=50, l=260)
    X_TICKS = 6
    BAND_PADDING = 0.4

    def __init__(
        self,
        manager: Optional[DataSourceManager] = None,
        width: Optional[float] = None,
        from_year: int = 2022,
        to_year: int = 2024,
    ):
        super().__init__(manager, width)
        self.from_year = from_year
        self.to_year = to_year
        self.rows: Tuple[SalaryComparison, ...] = ()
        self.x_scale: Optional[Scale] = None
        self.y_scale: Optional[Scale] = None
        self.hover: Optional[DumbbellHover] = None

    async def set_years(self, from_year: int, to_year: int) -> bool:
        """Compare a different pair of years (reloads; the newest request wins)."""
        self.from_year, self.to_year = from_year, to_year
        return await self.load()

    async def _load(self) -> Tuple[int, int, Tuple[SalaryComparison, ...]]:
        from_year, to_year = self.from_year, self.to_year
        (salary,) = await self.fetch('salary')
        rows = self.ingestor('salary').parse_salaries(salary.rows, from_year, to_year)
        return from_year, to_year, tuple(rows)

    def _apply(self, snapshot: Tuple[int, int, Tuple[SalaryComparison, ...]]) -> None:
        self.from_year, self.to_year, self.rows = snapshot

    def height_for(self, width: float) -> float:
        """Content-derived: a fixed height per borough plus the margins."""
        padding = self.MARGIN.t + self.MARGIN.b
        return chart_height(len(self.rows), ROW_HEIGHT, self.MIN_HEIGHT, MAX_HEIGHT, padding)

    def _rebuild(self) -> None:
        layout = self.make_layout()
        names: List[str] = [r.name for r in self.rows]
        self.y_scale = self.builder.band(names, (layout.plot_top, layout.plot_bottom),
                                         padding=self.BAND_PADDING)
        values = [v for r in self.rows for v in (r.start, r.end)]
        self.x_scale = self.builder.linear_money(values, layout.x_range)
        self.layout = layout

        if self.hover is None:
            self.hover = DumbbellHover(self.rows, self.x_scale, self.y_scale,
                                       self.from_year, self.to_year)
        else:
            self.hover.from_year, self.hover.to_year = self.from_year, self.to_year
            self.hover.reset(self.rows, self.x_scale, self.y_scale)

    def _pointer_move(self, x: float, y: float) -> HoverState:
        return self.hover.move(x, y)

    def _pointer_leave(self) -> HoverState:
        return self.hover.leave()

    def _draw(self, renderer: ChartRenderer) -> SvgElement:
        svg = renderer.root()
        renderer.bottom_value_axis(svg, self.x_scale, tick_format=format_money)
        renderer.band_axis(svg, self.y_scale)
        renderer.vertical_grid(svg, self.x_scale)
        renderer.dumbbell_rows(svg, self.rows, self.x_scale, self.y_scale,
                               hovered=self.hover.state.index, delta_format=format_signed_money)
        renderer.tooltip(svg, self.hover.tooltip)
        return svg
