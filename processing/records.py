"""
Data Model - Typed records shared by ingestion, joins, scales and views.

Every snapshot is immutable: a reload builds new records instead of
patching old ones. Missing numerics are NaN (MISSING) and never zero.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

MISSING = float('nan')

# One source row: column name -> raw string value
RawRecord = Mapping[str, str]


def is_missing(value: Optional[float]) -> bool:
    """True for None, NaN and infinities."""
    if value is None:
        return True
    try:
        return not math.isfinite(value)
    except TypeError:
        return True


@dataclass(frozen=True)
class TypedPoint:
    """One timestamped row of numeric fields."""

    timestamp: datetime
    fields: Dict[str, float] = field(default_factory=dict)

    def get(self, key: str) -> float:
        return self.fields.get(key, MISSING)


@dataclass(frozen=True)
class Series:
    """A named sequence of points, sorted ascending by timestamp."""

    key: str
    values: Tuple[TypedPoint, ...]

    def value(self, index: int) -> float:
        return self.values[index].get(self.key)

    def finite_values(self) -> list:
        return [v for v in (p.get(self.key) for p in self.values) if not is_missing(v)]


@dataclass(frozen=True)
class JoinedRow:
    """One timestamp with values aligned from two or more series."""

    timestamp: datetime
    fields: Dict[str, float] = field(default_factory=dict)

    def get(self, key: str) -> float:
        return self.fields.get(key, MISSING)


@dataclass(frozen=True)
class SalaryComparison:
    """A borough's salary at two years, for the dumbbell chart."""

    name: str
    start: float
    end: float

    @property
    def diff(self) -> float:
        return self.end - self.start


@dataclass(frozen=True)
class RegionMetric:
    """Metrics for one region in one year, keyed by (year, code)."""

    year: int
    code: str
    name: str
    fields: Dict[str, float] = field(default_factory=dict)

    def get(self, key: str) -> float:
        return self.fields.get(key, MISSING)


@dataclass(frozen=True)
class RegionFeature:
    """One boundary polygon from the GeoJSON source."""

    code: str
    name: str
    geometry: Dict[str, Any]

    @property
    def label(self) -> str:
        return self.name or self.code
