"""
GeoJSON Data Source - Region boundary polygons.

Boundary files from different vintages name their keys differently
(LAD23CD, LAD22CD, GSS_CODE, ...), so code and name are looked up from a
list of known property spellings.
"""

import json
import logging
from typing import Optional
from urllib.parse import urlparse

import httpx
from shapely.errors import GEOSException
from shapely.geometry import shape

from processing.records import RegionFeature
from .base import DataSource, FetchResult
from .http import fetch_bytes

logger = logging.getLogger(__name__)

CODE_PROPERTIES = ('code', 'LAD23CD', 'LAD22CD', 'LAD20CD', 'GSS_CODE')
NAME_PROPERTIES = ('name', 'LAD23NM', 'LAD22NM', 'LAD20NM', 'NAME', 'Borough', 'borough')


def _first_property(props: dict, keys: tuple) -> str:
    for key in keys:
        value = props.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ''


def feature_from_geojson(feature: dict) -> Optional[RegionFeature]:
    """Convert one GeoJSON feature; features without polygon area are skipped."""
    geometry = feature.get('geometry') or {}
    if geometry.get('type') not in ('Polygon', 'MultiPolygon'):
        return None
    try:
        polygon = shape(geometry)
    except (ValueError, TypeError, IndexError, GEOSException) as e:
        logger.warning(f"Skipping malformed boundary geometry: {e}")
        return None
    if polygon.is_empty:
        return None
    props = feature.get('properties') or {}
    return RegionFeature(
        code=_first_property(props, CODE_PROPERTIES),
        name=_first_property(props, NAME_PROPERTIES),
        geometry=geometry,
    )


def parse_feature_collection(content: bytes) -> list:
    """Decode a FeatureCollection into RegionFeatures."""
    data = json.loads(content.decode('utf-8-sig'))
    if data.get('type') != 'FeatureCollection':
        raise ValueError("expected a GeoJSON FeatureCollection")
    features = []
    for raw in data.get('features', []):
        feature = feature_from_geojson(raw)
        if feature is not None:
            features.append(feature)
    return features


class GeoJSONSource(DataSource):
    """Data source for GeoJSON boundary files."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client

    @property
    def name(self) -> str:
        return "GeoJSON"

    def supports(self, url: str) -> bool:
        return urlparse(url).path.lower().endswith(('.geojson', '.json'))

    async def fetch(self, url: str) -> FetchResult:
        """Fetch a boundary file and decode its polygon features."""
        content, error = await fetch_bytes(url, self._client)
        if error:
            return FetchResult(url=url, error=error)

        try:
            features = parse_feature_collection(content)
        except (ValueError, AttributeError) as e:
            logger.warning(f"Could not parse GeoJSON {url}: {e}")
            return FetchResult(url=url, error=f"Could not parse {url}: {e}")

        if not features:
            return FetchResult(url=url, error=f"No polygon features in {url}")

        logger.info(f"Loaded {len(features)} features from {url}")
        return FetchResult(url=url, features=features)
