"""
Shared fixtures for the housing chart tests.

Provides small CSV/GeoJSON payloads shaped like the hosted data files and a
factory for DataSourceManagers backed by httpx.MockTransport, so no test
ever touches the network.
"""

import asyncio
import json
import sys
from pathlib import Path

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sources import DataSourceManager  # noqa: E402

BASE_URL = 'http://test/'


# ── Payloads ─────────────────────────────────────────────────────────────────

YOY_CSV = """Date,PIPR,UK_HPI
01/01/2020,1.4,2.2
01/02/2020,1.5,2.7
01/03/2020,1.4,2.1
01/04/2020,1.5,
01/05/2020,1.6,2.6
01/06/2020,1.5,2.9
01/07/2020,1.4,3.1
01/08/2020,1.5,3.4
"""

INFLATION_CSV = """Month, Annual rate
Jan-20,1.8
Feb-20,1.7
Mar-20,1.5
Apr-20,0.8
May-20,0.5
Jun-20,0.6
Aug-20,0.2
"""

HPI_CSV = """Date,UK_HPI,London_HPI,North East,Wales
2020-01,120.1,130.5,98.2,110.0
2020-02,120.6,131.0,98.4,110.9
2020-03,121.0,130.2,98.9,111.4
2020-04,121.9,130.8,,112.0
2020-05,122.4,131.6,99.5,112.6
"""

RENT_CSV = """Date,UK,London,North East,Wales
2020-01,104.0,107.5,101.2,103.0
2020-02,104.3,107.9,101.3,103.2
2020-03,104.5,108.2,101.6,103.6
2020-04,104.9,108.1,101.8,104.0
"""

SALARY_CSV = """LA_name,metric,2022,2023,2024
Camden,salary,"£40,100","£41,000","£43,250"
Hackney,salary,"£35,500","£36,100","£38,900"
Westminster,salary,"£46,000","£47,500","£49,200"
Newham,salary,"£31,000",,"£33,800"
Camden,jobs,"120,000","121,000","125,000"
Lambeth,salary,,"£37,000","£37,900"
"""

BOROUGHS = [
    ('E09000001', 'City of London'),
    ('E09000002', 'Barking and Dagenham'),
    ('E09000003', 'Barnet'),
    ('E09000004', 'Bexley'),
    ('E09000005', 'Brent'),
    ('E09000006', 'Bromley'),
    ('E09000007', 'Camden'),
]

# 2023 has no row at all for Bromley (E09000006)
METRICS_CSV = """year,code,name,affordability,median_price,workplace_earnings
2022,E09000001,City of London,18.2,"£850,000","£46,700"
2022,E09000002,Barking and Dagenham,10.1,"£330,000","£32,600"
2022,E09000003,Barnet,14.7,"£590,000","£40,100"
2022,E09000004,Bexley,11.3,"£380,000","£33,600"
2022,E09000005,Brent,13.9,"£520,000","£37,400"
2022,E09000006,Bromley,30.5,"£500,000","£16,400"
2022,E09000007,Camden,19.9,"£860,000","£43,200"
2023,E09000001,City of London,17.5,"£820,000","£46,900"
2023,E09000002,Barking and Dagenham,9.8,"£335,000","£34,100"
2023,E09000003,Barnet,14.1,"£580,000","£41,100"
2023,E09000004,Bexley,11.0,"£375,000","£34,000"
2023,E09000005,Brent,13.2,"£510,000","£38,600"
2023,E09000007,Camden,18.6,"£830,000","£44,600"
"""


def square(lon: float, lat: float, size: float = 0.04) -> dict:
    """Closed square Polygon geometry with its south-west corner at (lon, lat)."""
    ring = [
        [lon, lat],
        [lon + size, lat],
        [lon + size, lat + size],
        [lon, lat + size],
        [lon, lat],
    ]
    return {'type': 'Polygon', 'coordinates': [ring]}


def borough_geojson() -> dict:
    features = []
    for i, (code, name) in enumerate(BOROUGHS):
        lon = -0.3 + (i % 4) * 0.05
        lat = 51.40 + (i // 4) * 0.05
        features.append({
            'type': 'Feature',
            'properties': {'LAD23CD': code, 'LAD23NM': name},
            'geometry': square(lon, lat),
        })
    # A point feature is not a region and must be skipped
    features.append({
        'type': 'Feature',
        'properties': {'name': 'Marker'},
        'geometry': {'type': 'Point', 'coordinates': [-0.1, 51.5]},
    })
    return {'type': 'FeatureCollection', 'features': features}


DEFAULT_FILES = {
    'pipr_hpi_uk.csv': YOY_CSV,
    'uk_inflation_rate.csv': INFLATION_CSV,
    'hpi_uk_london.csv': HPI_CSV,
    'pipr_uk.csv': RENT_CSV,
    'ldn_salary_growth.csv': SALARY_CSV,
    'ldn_ar_we_hp.csv': METRICS_CSV,
    'london_boroughs.geojson': json.dumps(borough_geojson()),
}


# ── Fixtures ──────────────────────────────────────────────────────────────────

def make_handler(files: dict):
    """MockTransport handler serving files by path; unknown paths are 404."""
    def handler(request: httpx.Request) -> httpx.Response:
        name = request.url.path.lstrip('/')
        if name not in files:
            return httpx.Response(404, text='not found')
        body = files[name]
        return httpx.Response(200, content=body.encode('utf-8') if isinstance(body, str) else body)
    return handler


@pytest.fixture
def data_files():
    """Mutable copy of the default file set, keyed by file name."""
    return dict(DEFAULT_FILES)


@pytest.fixture
def manager_factory():
    """
    Build a DataSourceManager whose client answers from an in-memory handler.

    Usage: manager_factory(files) or manager_factory(handler=callable).
    Every manager built is closed at teardown.
    """
    managers = []

    def factory(files=None, handler=None):
        if handler is None:
            handler = make_handler(DEFAULT_FILES if files is None else files)
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        managers.append(DataSourceManager(client=client, base_url=BASE_URL))
        return managers[-1]

    yield factory

    async def close_all():
        for manager in managers:
            await manager.close()

    asyncio.run(close_all())


@pytest.fixture
def manager(manager_factory):
    return manager_factory()
