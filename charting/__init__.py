"""Charting module - Scales, hover, annotations, color mapping and SVG drawing."""

from .scales import Scale, ScaleBuilder, Layout, Margins, nice, linear_ticks, time_ticks
from .hover import (
    HoverQueryEngine, DumbbellHover, RegionHover, HoverState, Tooltip, TooltipLine,
    nearest_index, SYNCHRONIZED, DISAMBIGUATING,
)
from .annotations import AnnotationLayoutEngine, AnnotationEvent, interpolate_at
from .choropleth import ChoroplethColorMapper, RegionIndex, RegionMetricTable, top_n, clean_name
from .geo import MercatorProjection, ProjectedRegions, region_shapes, svg_path
from .resize import ResizeController, chart_height
from .renderer import ChartRenderer
from .svg import SvgElement

__all__ = [
    'Scale',
    'ScaleBuilder',
    'Layout',
    'Margins',
    'nice',
    'linear_ticks',
    'time_ticks',
    'HoverQueryEngine',
    'DumbbellHover',
    'RegionHover',
    'HoverState',
    'Tooltip',
    'TooltipLine',
    'nearest_index',
    'SYNCHRONIZED',
    'DISAMBIGUATING',
    'AnnotationLayoutEngine',
    'AnnotationEvent',
    'interpolate_at',
    'ChoroplethColorMapper',
    'RegionIndex',
    'RegionMetricTable',
    'top_n',
    'clean_name',
    'MercatorProjection',
    'ProjectedRegions',
    'region_shapes',
    'svg_path',
    'ResizeController',
    'chart_height',
    'ChartRenderer',
    'SvgElement',
]
