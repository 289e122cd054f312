"""Processing module - Ingestion, joins, temporal helpers and formatting."""

from .records import (
    MISSING, is_missing, TypedPoint, Series, JoinedRow,
    SalaryComparison, RegionMetric, RegionFeature,
)
from .temporal import parse_date, to_epoch, from_epoch
from .ingest import DataIngestor, ParseError, parse_number, normalize_column
from .join import DatasetJoiner, rows_from_points

__all__ = [
    'MISSING',
    'is_missing',
    'TypedPoint',
    'Series',
    'JoinedRow',
    'SalaryComparison',
    'RegionMetric',
    'RegionFeature',
    'parse_date',
    'to_epoch',
    'from_epoch',
    'DataIngestor',
    'ParseError',
    'parse_number',
    'normalize_column',
    'DatasetJoiner',
    'rows_from_points',
]
