"""
Geo Projection - Web Mercator fitted to a pixel box, SVG paths, hit testing.

Region boundaries are shapely geometries built once per load. Projection
goes lon/lat -> EPSG:3857 metres (pyproj) -> pixels (a uniform scale plus
translation), applied to whole geometries with shapely.ops.transform.
"""

from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
from pyproj import Transformer
from shapely.geometry import MultiPolygon, Point, Polygon, shape
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform, unary_union
from shapely.prepared import prep

from processing.records import RegionFeature
from .svg import fmt_number

Extent = Tuple[Tuple[float, float], Tuple[float, float]]

_WEB_MERCATOR = Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)


def region_shape(feature: RegionFeature) -> BaseGeometry:
    """The feature's GeoJSON geometry as a shapely shape."""
    return shape(feature.geometry)


def region_shapes(features: Sequence[RegionFeature]) -> List[BaseGeometry]:
    return [region_shape(f) for f in features]


class MercatorProjection:
    """Web Mercator metres -> pixels: x = k*mx + tx, y = ty - k*my (north up)."""

    def __init__(self, scale: float = 1.0, translate: Tuple[float, float] = (0.0, 0.0)):
        self.scale = scale
        self.translate = translate

    def _to_pixels(self, lon: Any, lat: Any) -> Tuple[Any, Any]:
        mx, my = _WEB_MERCATOR.transform(lon, lat)
        tx, ty = self.translate
        return np.asarray(mx) * self.scale + tx, ty - np.asarray(my) * self.scale

    def __call__(self, lon: float, lat: float) -> Tuple[float, float]:
        x, y = self._to_pixels(float(lon), float(lat))
        return float(x), float(y)

    def project(self, geometry: BaseGeometry) -> BaseGeometry:
        """A lon/lat geometry in pixel coordinates."""
        return transform(self._to_pixels, geometry)

    @classmethod
    def fit_extent(cls, extent: Extent, shapes: Sequence[BaseGeometry]) -> 'MercatorProjection':
        """
        Scale and centre so every shape fits inside extent.

        Args:
            extent: ((x0, y0), (x1, y1)) pixel box
            shapes: Region geometries in lon/lat

        Raises:
            ValueError: if there is no non-empty geometry to fit
        """
        solid = [s for s in shapes if not s.is_empty]
        if not solid:
            raise ValueError("cannot fit a projection to empty geometry")
        metres = transform(_WEB_MERCATOR.transform, unary_union(solid))
        x0, y0, x1, y1 = metres.bounds

        (ex0, ey0), (ex1, ey1) = extent
        w, h = ex1 - ex0, ey1 - ey0
        spans = [s for s in (w / (x1 - x0) if x1 > x0 else None,
                             h / (y1 - y0) if y1 > y0 else None) if s is not None]
        k = min(spans) if spans else 1.0
        tx = ex0 + (w - k * (x1 + x0)) / 2
        ty = ey0 + (h + k * (y1 + y0)) / 2
        return cls(scale=k, translate=(tx, ty))


def _polygons(geometry: BaseGeometry) -> List[Polygon]:
    if isinstance(geometry, Polygon):
        return [geometry]
    if isinstance(geometry, MultiPolygon):
        return list(geometry.geoms)
    return []


def _ring_path(coords) -> str:
    points = [f"{fmt_number(float(x))},{fmt_number(float(y))}" for x, y in coords]
    return 'M' + 'L'.join(points) + 'Z'


def svg_path(geometry: BaseGeometry) -> str:
    """SVG path data with one subpath per ring (holes included)."""
    parts = []
    for polygon in _polygons(geometry):
        if polygon.is_empty:
            continue
        parts.append(_ring_path(polygon.exterior.coords))
        parts.extend(_ring_path(ring.coords) for ring in polygon.interiors)
    return ''.join(parts)


class ProjectedRegions:
    """Shapes projected once per render pass, for paths and hit tests."""

    def __init__(self, shapes: Sequence[BaseGeometry], projection: MercatorProjection):
        self.projection = projection
        self.shapes = [projection.project(s) for s in shapes]
        self._paths = [svg_path(s) for s in self.shapes]
        self._prepared = [prep(s) for s in self.shapes]

    def __len__(self) -> int:
        return len(self.shapes)

    def path(self, index: int) -> str:
        return self._paths[index]

    def contains(self, index: int, x: float, y: float) -> bool:
        if self.shapes[index].is_empty:
            return False
        return self._prepared[index].intersects(Point(x, y))

    def locate(self, x: float, y: float) -> Optional[int]:
        """Index of the region under a pixel, or None."""
        for i in range(len(self.shapes)):
            if self.contains(i, x, y):
                return i
        return None
