"""Views module - One self-contained chart per class."""

from .base import ChartView, LOADING, ERROR, READY
from .lines import InflationView, HpiLinesView
from .small_multiples import RentSmallMultiplesView
from .dumbbell import SalaryDumbbellView
from .heatmap import AffordabilityMapView

__all__ = [
    'ChartView',
    'LOADING',
    'ERROR',
    'READY',
    'InflationView',
    'HpiLinesView',
    'RentSmallMultiplesView',
    'SalaryDumbbellView',
    'AffordabilityMapView',
]
