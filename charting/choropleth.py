"""
Choropleth Colors - Metric value -> fill, top-N emphasis, region lookup.

The color domain is FIXED (default affordability 5-25) and never follows
the selected year's min/max, so a borough's color can be compared across
years. Interpolation runs in CIE Lab between two endpoint colors, the same
way d3.interpolateLab does, and the legend samples that same interpolator.
"""

import logging
import re
import unicodedata
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np

from config import AFFORDABILITY_DOMAIN, COLORS, config
from processing.records import RegionFeature, RegionMetric, is_missing

logger = logging.getLogger(__name__)


# =============================================================================
# LAB COLOR MATH (D50 white point, as in d3-color)
# =============================================================================

_XN, _YN, _ZN = 0.96422, 1.0, 0.82521
_T0 = 4 / 29
_T1 = 6 / 29
_T2 = 3 * _T1 * _T1
_T3 = _T1 * _T1 * _T1

_RGB_TO_XYZ = np.array([
    [0.4360747, 0.3850649, 0.1430804],
    [0.2225045, 0.7168786, 0.0606169],
    [0.0139322, 0.0971045, 0.7141733],
])
_XYZ_TO_RGB = np.array([
    [3.1338561, -1.6168667, -0.4906146],
    [-0.9787684, 1.9161415, 0.0334540],
    [0.0719453, -0.2289914, 1.4052427],
])


def parse_hex(color: str) -> np.ndarray:
    """'#982339' or '#982339ff' -> array([152, 35, 57]); alpha is ignored."""
    s = color.strip().lstrip('#')
    if len(s) == 3:
        s = ''.join(c * 2 for c in s)
    if len(s) not in (6, 8):
        raise ValueError(f"not a hex color: {color!r}")
    return np.array([int(s[i:i + 2], 16) for i in (0, 2, 4)], dtype=float)


def to_hex(rgb: np.ndarray) -> str:
    r, g, b = (int(v) for v in np.clip(np.round(rgb), 0, 255))
    return f"#{r:02x}{g:02x}{b:02x}"


def _rgb2lrgb(channel: np.ndarray) -> np.ndarray:
    c = channel / 255.0
    return np.where(c <= 0.04045, c / 12.92, ((c + 0.055) / 1.055) ** 2.4)


def _lrgb2rgb(channel: np.ndarray) -> np.ndarray:
    c = np.maximum(channel, 0.0)
    return 255 * np.where(c <= 0.0031308, 12.92 * c, 1.055 * c ** (1 / 2.4) - 0.055)


def _xyz2lab(t: np.ndarray) -> np.ndarray:
    return np.where(t > _T3, np.cbrt(t), t / _T2 + _T0)


def _lab2xyz(t: np.ndarray) -> np.ndarray:
    return np.where(t > _T1, t ** 3, _T2 * (t - _T0))


def rgb_to_lab(rgb: np.ndarray) -> np.ndarray:
    """sRGB (0-255) -> Lab. Greys keep a = b = 0 exactly."""
    linear = _rgb2lrgb(np.asarray(rgb, dtype=float))
    xyz = _RGB_TO_XYZ @ linear
    y = _xyz2lab(xyz[1] / _YN)
    if linear[0] == linear[1] == linear[2]:
        x = z = y
    else:
        x = _xyz2lab(xyz[0] / _XN)
        z = _xyz2lab(xyz[2] / _ZN)
    return np.array([116 * y - 16, 500 * (x - y), 200 * (y - z)])


def lab_to_rgb(lab: np.ndarray) -> np.ndarray:
    """Lab -> sRGB (0-255, unclipped)."""
    l, a, b = lab
    y = (l + 16) / 116
    x = y + a / 500
    z = y - b / 200
    xyz = np.array([_XN * _lab2xyz(x), _YN * _lab2xyz(y), _ZN * _lab2xyz(z)])
    return _lrgb2rgb(_XYZ_TO_RGB @ xyz)


class LabInterpolator:
    """t in [0, 1] -> color, interpolating each Lab channel linearly."""

    def __init__(self, start: str, end: str):
        self.start = rgb_to_lab(parse_hex(start))
        self.end = rgb_to_lab(parse_hex(end))

    def __call__(self, t: float) -> str:
        lab = self.start + (self.end - self.start) * float(t)
        return to_hex(lab_to_rgb(lab))


# =============================================================================
# COLOR MAPPER
# =============================================================================

class ChoroplethColorMapper:
    """
    Fixed-domain, clamped sequential color scale.

    Args:
        domain: (lo, hi) metric range; must not depend on the selected year
        low: Color at lo (and below)
        high: Color at hi (and above)
        missing: Fill for regions without a value
    """

    def __init__(
        self,
        domain: Tuple[float, float] = AFFORDABILITY_DOMAIN,
        low: str = COLORS['map_low'],
        high: str = COLORS['map_high'],
        missing: str = COLORS['map_missing'],
    ):
        lo, hi = float(domain[0]), float(domain[1])
        if not hi > lo:
            raise ValueError(f"color domain must be increasing, got {domain}")
        self.domain = (lo, hi)
        self.missing = missing
        self.interpolate = LabInterpolator(low, high)

    @staticmethod
    def fixed_domain_for(metrics: Sequence[RegionMetric], field: str) -> Tuple[float, float]:
        """Domain spanning every year of a dataset, for data without a preset range."""
        values = [m.get(field) for m in metrics]
        finite = [v for v in values if not is_missing(v)]
        if not finite:
            return AFFORDABILITY_DOMAIN
        lo, hi = min(finite), max(finite)
        return (lo, hi) if hi > lo else (lo - 1, hi + 1)

    def position(self, value: Optional[float]) -> Optional[float]:
        """Value -> [0, 1], clamped; None for missing values."""
        if is_missing(value):
            return None
        lo, hi = self.domain
        return min(1.0, max(0.0, (value - lo) / (hi - lo)))

    def color(self, value: Optional[float]) -> str:
        t = self.position(value)
        if t is None:
            return self.missing
        return self.interpolate(t)

    def legend_stops(self, count: int = 11) -> List[Tuple[float, str]]:
        """Evenly spaced (offset, color) stops from the fill interpolator."""
        if count < 2:
            raise ValueError("a legend needs at least two stops")
        return [(i / (count - 1), self.interpolate(i / (count - 1))) for i in range(count)]


# =============================================================================
# REGION LOOKUP & TOP-N
# =============================================================================

_PUNCT = re.compile(r"[-'’.,()]")
_SPACES = re.compile(r'\s+')


def clean_name(name: str) -> str:
    """
    Normalized region name for fallback matching.

    'Kensington & Chelsea' and 'Kensington and Chelsea' -> 'kensington and chelsea'
    """
    s = unicodedata.normalize('NFKD', str(name or '').lower())
    s = s.replace('\u200b', '').replace('&', ' and ')
    s = _PUNCT.sub(' ', s)
    return _SPACES.sub(' ', s).strip()


def metric_key(metric: RegionMetric) -> str:
    return metric.code or clean_name(metric.name)


def top_n(metrics: Sequence[RegionMetric], field: str, n: Optional[int] = None) -> List[RegionMetric]:
    """
    The n regions with the largest finite values, largest first.

    Missing values never qualify; ties keep input order. Always returns
    exactly min(n, number of finite values) regions.
    """
    n = config.top_n if n is None else n
    candidates = [m for m in metrics if not is_missing(m.get(field))]
    # sorted() is stable, so equal values keep input order
    ranked = sorted(candidates, key=lambda m: -m.get(field))
    return ranked[:max(0, n)]


class RegionIndex:
    """One year's metrics, looked up by code and then by normalized name."""

    def __init__(self, metrics: Sequence[RegionMetric]):
        self.metrics = list(metrics)
        self.by_code: Dict[str, RegionMetric] = {}
        self.by_name: Dict[str, RegionMetric] = {}
        for m in self.metrics:
            if m.code:
                self.by_code.setdefault(m.code, m)
            if m.name:
                self.by_name.setdefault(clean_name(m.name), m)

    def lookup(self, feature: RegionFeature) -> Optional[RegionMetric]:
        if feature.code and feature.code in self.by_code:
            return self.by_code[feature.code]
        if feature.name:
            return self.by_name.get(clean_name(feature.name))
        return None

    def top_keys(self, field: str, n: Optional[int] = None) -> Set[str]:
        return {metric_key(m) for m in top_n(self.metrics, field, n)}


class RegionMetricTable:
    """Region metrics for all years, sliced per selected year."""

    def __init__(self, metrics: Sequence[RegionMetric]):
        grouped: Dict[int, List[RegionMetric]] = defaultdict(list)
        for m in metrics:
            grouped[m.year].append(m)
        self.years: List[int] = sorted(grouped)
        self._indexes = {year: RegionIndex(rows) for year, rows in grouped.items()}
        self.metrics = list(metrics)

    def clamp_year(self, year: Optional[int]) -> Optional[int]:
        """Nearest loaded year (the earlier one on a tie); None selects the latest."""
        if not self.years:
            return None
        if year is None:
            return self.years[-1]
        return min(self.years, key=lambda y: (abs(y - year), y))

    def for_year(self, year: int) -> RegionIndex:
        return self._indexes.get(year) or RegionIndex([])
