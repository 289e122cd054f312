"""Registry module - Series styles and dataset definitions."""

from .series_registry import (
    SeriesRegistry, SeriesStyle, DatasetInfo, registry, pretty,
    PRIORITY_NEUTRAL, PRIORITY_SECONDARY, PRIORITY_FOCAL,
)

__all__ = [
    'SeriesRegistry',
    'SeriesStyle',
    'DatasetInfo',
    'registry',
    'pretty',
    'PRIORITY_NEUTRAL',
    'PRIORITY_SECONDARY',
    'PRIORITY_FOCAL',
]
