"""
Rent Small Multiples - One mini chart per region, shared axes.

In each panel the focal region is red, the UK black and every other
region grey. Panels flow into as many columns as the container fits.
Every panel has its own hover engine and tooltip.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from config import COLORS, config
from processing.formatter import format_value
from processing.ingest import series_from_points
from processing.join import rows_from_points
from processing.records import JoinedRow, is_missing
from registry import PRIORITY_FOCAL, PRIORITY_NEUTRAL, PRIORITY_SECONDARY, SeriesStyle, pretty
from sources import DataSourceManager
from charting.hover import IDLE, SYNCHRONIZED, HoverQueryEngine, HoverState
from charting.renderer import ChartRenderer
from charting.scales import Layout, Margins, Scale
from charting.svg import SvgElement, fmt_number, svg_root
from .base import ChartView
from .lines import LineSnapshot

logger = logging.getLogger(__name__)

UK_KEY = 'uk'

PANEL_MIN_WIDTH = 280
PANEL_GAP = 12


@dataclass(frozen=True)
class Panel:
    """One region's panel: position in the grid and its own hover engine."""

    key: str
    x: float
    y: float
    hover: HoverQueryEngine


def panel_styles(focal: str, keys: Tuple[str, ...]) -> List[SeriesStyle]:
    """Other regions grey, UK black, focal red (drawn in that order)."""
    styles = []
    for key in keys:
        if key == focal:
            styles.append(SeriesStyle(key, pretty(key), COLORS['focal'], 2.6, 1.0,
                                      priority=PRIORITY_FOCAL))
        elif key == UK_KEY:
            styles.append(SeriesStyle(key, 'UK', COLORS['uk'], 2.2, 1.0,
                                      priority=PRIORITY_SECONDARY))
        else:
            styles.append(SeriesStyle(key, pretty(key), COLORS['other'], 1.2, 0.7,
                                      priority=PRIORITY_NEUTRAL))
    return styles


class RentSmallMultiplesView(ChartView):
    """Rent price index (2015 = 100) small multiples by region."""

    name = 'rent_small_multiples'
    WIDTH = 320
    HEIGHT = 220
    MARGIN = Margins(t=24, r=16, b=26, l=36)
    X_TICKS = 4
    Y_TICKS = 4

    def __init__(self, manager: Optional[DataSourceManager] = None, width: Optional[float] = None,
                 show_tooltip: bool = True):
        super().__init__(manager, width)
        self.show_tooltip = show_tooltip
        self.rows: Tuple[JoinedRow, ...] = ()
        self.keys: Tuple[str, ...] = ()
        self.panels: List[Panel] = []
        self.columns = 1
        self.panel_width = float(self.WIDTH)
        self.x_scale: Optional[Scale] = None
        self.y_scale: Optional[Scale] = None

    @property
    def regions(self) -> List[str]:
        return [k for k in self.keys if k != UK_KEY]

    async def _load(self) -> LineSnapshot:
        (rent,) = await self.fetch('rent_index')
        points = self.ingestor('rent_index').parse_points(rent.rows)
        keys = tuple(s.key for s in series_from_points(points))
        return LineSnapshot(rows=tuple(rows_from_points(points)), keys=keys)

    def _apply(self, snapshot: LineSnapshot) -> None:
        self.rows = snapshot.rows
        self.keys = snapshot.keys

    def grid(self, width: float) -> Tuple[int, float]:
        """(columns, panel width) for a container width."""
        columns = max(1, int((width + PANEL_GAP) // (PANEL_MIN_WIDTH + PANEL_GAP)))
        panel_width = (width - PANEL_GAP * (columns - 1)) / columns
        return columns, panel_width

    @property
    def total_height(self) -> float:
        rows = math.ceil(len(self.panels) / self.columns) if self.panels else 1
        return rows * self.HEIGHT + (rows - 1) * PANEL_GAP

    def _rebuild(self) -> None:
        self.columns, self.panel_width = self.grid(self.width)
        compact = self.width < config.compact_breakpoint
        layout = Layout.for_width(self.panel_width, self.HEIGHT, self.MARGIN,
                                  self.X_TICKS, self.Y_TICKS, compact=compact)

        # Shared across panels: every region and the UK line
        self.x_scale = self.builder.temporal([r.timestamp for r in self.rows], layout.x_range)
        values = [r.get(k) for r in self.rows for k in self.keys]
        self.y_scale = self.builder.linear(values, layout.y_range)
        self.layout = layout

        self.panels = []
        for i, key in enumerate(self.regions):
            col, row = i % self.columns, i // self.columns
            hover_keys = [key] + ([UK_KEY] if UK_KEY in self.keys else [])
            hover = HoverQueryEngine(
                self.rows, hover_keys, self.x_scale, self.y_scale, layout,
                mode=SYNCHRONIZED,
                labels={key: pretty(key), UK_KEY: 'UK'},
                colors={key: COLORS['focal'], UK_KEY: COLORS['uk']},
                value_format=format_value,
            )
            self.panels.append(Panel(
                key=key,
                x=col * (self.panel_width + PANEL_GAP),
                y=row * (self.HEIGHT + PANEL_GAP),
                hover=hover,
            ))

    def panel_at(self, x: float, y: float) -> Optional[Panel]:
        for panel in self.panels:
            if panel.x <= x <= panel.x + self.panel_width and panel.y <= y <= panel.y + self.HEIGHT:
                return panel
        return None

    def _pointer_move(self, x: float, y: float) -> HoverState:
        target = self.panel_at(x, y) if self.show_tooltip else None
        state = IDLE
        for panel in self.panels:
            if panel is target:
                state = panel.hover.move(x - panel.x, y - panel.y)
            elif panel.hover.active:
                panel.hover.leave()
        return state

    def _pointer_leave(self) -> HoverState:
        for panel in self.panels:
            panel.hover.leave()
        return IDLE

    def panel_title(self, key: str) -> str:
        title = pretty(key)
        last = self.rows[-1].get(key) if self.rows else None
        if is_missing(last):
            return title
        return f"{title} — {format_value(last)}"

    def _draw(self, renderer: ChartRenderer) -> SvgElement:
        svg = svg_root(self.width, self.total_height)
        for panel in self.panels:
            g = svg.add('g', class_='panel', data_key=panel.key,
                        transform=f"translate({fmt_number(panel.x)},{fmt_number(panel.y)})")
            renderer.time_axis(g, self.x_scale)
            renderer.value_axis(g, self.y_scale)
            renderer.horizontal_grid(g, self.y_scale)
            renderer.series(g, self.rows, panel_styles(panel.key, self.keys),
                            self.x_scale, self.y_scale)
            renderer.panel_title(g, self.panel_title(panel.key))
            renderer.focus(g, panel.hover.state)
            renderer.overlay(g)
            renderer.tooltip(g, panel.hover.tooltip)
        return svg
