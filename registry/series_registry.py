"""
Series Registry - Single Source of Truth for series display and datasets.

Consolidates:
- SERIES_DB (label, color, stroke and z-priority per series key)
- DATASETS (file + header aliases per dataset)

Unknown series keys (e.g. the dozen regional columns of the HPI file) get
a neutral grey style and a prettified label, so new columns in a CSV never
need a code change.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from config import COLORS, DATA_FILES

# Z-order priorities: drawn low to high so focal lines are never occluded
PRIORITY_NEUTRAL = 0
PRIORITY_SECONDARY = 1
PRIORITY_FOCAL = 2


@dataclass
class SeriesStyle:
    """Display metadata for a single plotted series."""

    key: str
    label: str
    color: str = COLORS['other']
    width: float = 1.4
    opacity: float = 0.7
    dash: Optional[str] = None
    priority: int = PRIORITY_NEUTRAL
    unit: str = ''  # '' (index level) or '%'

    @property
    def emphasized(self) -> bool:
        return self.priority > PRIORITY_NEUTRAL


@dataclass
class DatasetInfo:
    """A data file and the header aliases that normalize it."""

    id: str
    file_name: str
    aliases: Dict[str, str] = field(default_factory=dict)
    description: str = ''


# =============================================================================
# SERIES DATABASE - Display metadata for all known series
# =============================================================================

SERIES_DB: Dict[str, SeriesStyle] = {
    'rent': SeriesStyle(
        key='rent',
        label='Private rents',
        color=COLORS['rent'],
        width=2.5,
        opacity=1.0,
        priority=PRIORITY_FOCAL,
        unit='%',
    ),
    'house': SeriesStyle(
        key='house',
        label='House prices',
        color=COLORS['house'],
        width=2.5,
        opacity=1.0,
        priority=PRIORITY_FOCAL,
        unit='%',
    ),
    'inflation': SeriesStyle(
        key='inflation',
        label='Inflation',
        color=COLORS['inflation'],
        width=2.0,
        opacity=1.0,
        dash='4 3',
        priority=PRIORITY_SECONDARY,
        unit='%',
    ),
    'uk_hpi': SeriesStyle(
        key='uk_hpi',
        label='UK',
        color=COLORS['uk'],
        width=2.6,
        opacity=1.0,
        priority=PRIORITY_FOCAL,
    ),
    'london_hpi': SeriesStyle(
        key='london_hpi',
        label='London',
        color=COLORS['focal'],
        width=2.6,
        opacity=1.0,
        priority=PRIORITY_SECONDARY,
    ),
    'uk': SeriesStyle(
        key='uk',
        label='UK',
        color=COLORS['uk'],
        width=2.2,
        opacity=1.0,
        priority=PRIORITY_SECONDARY,
    ),
}


# =============================================================================
# DATASETS - Files and their header spellings
# =============================================================================

DATASETS: Dict[str, DatasetInfo] = {
    'rent_house_yoy': DatasetInfo(
        id='rent_house_yoy',
        file_name=DATA_FILES['rent_house_yoy'],
        aliases={'pipr': 'rent', 'uk_hpi': 'house'},
        description='Private rent (PIPR) and UK HPI annual % change',
    ),
    'inflation': DatasetInfo(
        id='inflation',
        file_name=DATA_FILES['inflation'],
        aliases={'annual_rate': 'inflation', 'rate': 'inflation'},
        description='CPI annual inflation rate',
    ),
    'hpi': DatasetInfo(
        id='hpi',
        file_name=DATA_FILES['hpi'],
        description='House price index (2015=100), UK, London and regions',
    ),
    'rent_index': DatasetInfo(
        id='rent_index',
        file_name=DATA_FILES['rent_index'],
        description='Rent price index (2015=100) by region',
    ),
    'salary': DatasetInfo(
        id='salary',
        file_name=DATA_FILES['salary'],
        description='ASHE workplace earnings by borough and year',
    ),
    'borough_metrics': DatasetInfo(
        id='borough_metrics',
        file_name=DATA_FILES['borough_metrics'],
        aliases={'workplace_earnings': 'workplace', 'median_price': 'house_price'},
        description='Borough earnings, house price and affordability ratio by year',
    ),
    'borough_boundaries': DatasetInfo(
        id='borough_boundaries',
        file_name=DATA_FILES['borough_boundaries'],
        description='London borough boundaries (GeoJSON)',
    ),
}


def pretty(key: str) -> str:
    """'north_east' -> 'North East'"""
    style = SERIES_DB.get(key)
    if style:
        return style.label
    words = re.sub(r'[_\s]+', ' ', str(key)).strip().split(' ')
    return ' '.join(w[:1].upper() + w[1:] for w in words if w)


class SeriesRegistry:
    """Lookup for series styles and dataset definitions."""

    def __init__(self, series: Optional[Dict[str, SeriesStyle]] = None,
                 datasets: Optional[Dict[str, DatasetInfo]] = None):
        self._series = dict(SERIES_DB if series is None else series)
        self._datasets = dict(DATASETS if datasets is None else datasets)

    def get_series(self, key: str) -> SeriesStyle:
        """Style for a key; unknown keys get a neutral grey style."""
        style = self._series.get(key)
        if style is not None:
            return style
        return SeriesStyle(key=key, label=pretty(key))

    def get_dataset(self, dataset_id: str) -> DatasetInfo:
        return self._datasets[dataset_id]

    def styles_for(self, keys: List[str]) -> List[SeriesStyle]:
        return [self.get_series(k) for k in keys]


# Global registry instance
registry = SeriesRegistry()
