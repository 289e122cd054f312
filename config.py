"""
HousingCharts - Centralized Configuration

All environment variables, constants, and settings in one place.
"""

import os
from dataclasses import dataclass


@dataclass
class Config:
    """Application configuration loaded from environment."""

    # Data hosting (CSV/GeoJSON files are served from here)
    base_url: str = "http://localhost:5173/"
    http_timeout: float = 15.0

    # Join settings
    join_tolerance_days: int = 40      # ~monthly series drift

    # Layout settings
    annotation_pad_days: int = 240     # ~8 months of room for event labels
    compact_breakpoint: int = 520      # px; below this, compact axes
    default_width: int = 820           # px; used before the container reports

    # Choropleth
    top_n: int = 5

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls(
            base_url=os.environ.get('HOUSINGCHARTS_BASE_URL', "http://localhost:5173/"),
            http_timeout=float(os.environ.get('HOUSINGCHARTS_HTTP_TIMEOUT', 15.0)),
            join_tolerance_days=int(os.environ.get('HOUSINGCHARTS_JOIN_TOLERANCE_DAYS', 40)),
            annotation_pad_days=int(os.environ.get('HOUSINGCHARTS_ANNOTATION_PAD_DAYS', 240)),
            compact_breakpoint=int(os.environ.get('HOUSINGCHARTS_COMPACT_BREAKPOINT', 520)),
            default_width=int(os.environ.get('HOUSINGCHARTS_DEFAULT_WIDTH', 820)),
            top_n=int(os.environ.get('HOUSINGCHARTS_TOP_N', 5)),
        )

    def data_url(self, file_name: str) -> str:
        """Resolve a data file name against the configured base URL."""
        if file_name.startswith(('http://', 'https://')):
            return file_name
        return self.base_url.rstrip('/') + '/' + file_name.lstrip('/')


# Global config instance
config = Config.from_env()


# Data files (hosted externally, fetched fresh on every load)
DATA_FILES = {
    'rent_house_yoy': 'pipr_hpi_uk.csv',
    'inflation': 'uk_inflation_rate.csv',
    'hpi': 'hpi_uk_london.csv',
    'rent_index': 'pipr_uk.csv',
    'salary': 'ldn_salary_growth.csv',
    'borough_metrics': 'ldn_ar_we_hp.csv',
    'borough_boundaries': 'london_boroughs.geojson',
}


# Housing market events for annotations
ANNOTATIONS = [
    {'date': '2020-03-23', 'label': 'UK lockdown\nbegins'},
    {'date': '2021-12-16', 'label': 'BoE first\nrate hike'},
    {'date': '2022-09-23', 'label': 'Mini-budget'},
    {'date': '2025-03-01', 'label': 'SDLT change'},
]


# Affordability ratio range, kept fixed so colors compare across years
AFFORDABILITY_DOMAIN = (5.0, 25.0)


COLORS = {
    # Lines
    'rent': '#73605b',
    'house': '#9e2f50',
    'inflation': '#6b7280',
    'uk': '#111827',
    'focal': '#e11d48',
    'other': '#9ca3af',
    'highlight': '#0f172a',

    # Annotations
    'annotation': '#9ca3af',
    'annotation_text': '#111827',

    # Axes & chrome
    'axis': '#e5e7eb',
    'grid': '#f3f4f6',
    'zero': '#dddddd',
    'guide': '#d1d5db',
    'text': '#111827',
    'muted': '#6b7280',
    'error': 'crimson',
    'tooltip_bg': 'rgba(17,24,39,0.92)',
    'tooltip_text': '#ffffff',

    # Dumbbell
    'connector': '#cbd5e1',
    'connector_hover': '#73605b',
    'start_dot': '#94a3b8',
    'end_dot': '#9e2f50',

    # Map
    'map_low': '#f3f4f6',
    'map_high': '#982339',
    'map_missing': '#e5e7eb',
    'map_stroke': '#d1d5db',
    'map_outline': '#73605b',
    'map_top': '#9d6173',
    'map_top_stroke': '#9e2f50',
    'slider_track': '#e5e7eb',
    'slider_thumb': '#6b7280',
    'slider_ring': '#f9fafb',
}
