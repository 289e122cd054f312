"""Data sources module - Unified interface for fetching data files."""

from .base import DataSource, FetchResult
from .csv_source import CSVSource
from .geojson_source import GeoJSONSource
from .manager import DataSourceManager

__all__ = [
    'DataSource',
    'FetchResult',
    'CSVSource',
    'GeoJSONSource',
    'DataSourceManager',
]
