"""Tests for the data source layer, with HTTP served by httpx.MockTransport."""

import asyncio
import json

import httpx

from sources import CSVSource, DataSourceManager, GeoJSONSource, http
from sources.csv_source import read_csv_records
from sources.geojson_source import parse_feature_collection
from sources.http import describe_status, fetch_bytes

from conftest import BASE_URL, SALARY_CSV, borough_geojson, make_handler


def test_read_csv_records_keeps_raw_strings():
    rows = read_csv_records(SALARY_CSV.encode('utf-8'))
    assert rows[0]['LA_name'] == 'Camden'
    assert rows[0]['2022'] == '£40,100'
    # Blank cells stay blank strings, never NaN
    assert rows[3]['2023'] == ''


def test_read_csv_records_strips_bom():
    rows = read_csv_records('\ufeffDate,UK\n2020-01,1.0\n'.encode('utf-8'))
    assert list(rows[0]) == ['Date', 'UK']


def test_parse_feature_collection_skips_non_polygons():
    raw = json.dumps(borough_geojson()).encode('utf-8')
    features = parse_feature_collection(raw)
    assert len(features) == 7
    assert features[0].code == 'E09000001'
    assert features[0].label == 'City of London'


def test_describe_status():
    assert describe_status('u', 200) is None
    assert 'not found' in describe_status('u', 404)
    assert 'Rate limit' in describe_status('u', 429)
    assert 'Server error' in describe_status('u', 503)


def test_manager_routes_by_extension():
    manager = DataSourceManager(base_url=BASE_URL)
    assert isinstance(manager.get_source('http://x/a.csv'), CSVSource)
    assert isinstance(manager.get_source('http://x/b.geojson?v=2'), GeoJSONSource)
    assert manager.get_source('http://x/c.xlsx') is None
    assert manager.resolve('pipr_uk.csv') == 'http://test/pipr_uk.csv'
    assert manager.resolve('https://cdn/x.csv') == 'https://cdn/x.csv'
    assert manager.available_sources() == ['CSV', 'GeoJSON']


def test_fetch_many_keeps_order(manager):
    results = asyncio.run(manager.fetch_many(['ldn_salary_growth.csv', 'london_boroughs.geojson']))
    assert results[0].is_valid and results[0].rows
    assert results[1].is_valid and len(results[1].features) == 7
    assert results[0].info['columns'][0] == 'LA_name'


def test_missing_file_is_an_error_result(manager):
    result = asyncio.run(manager.fetch('nope.csv'))
    assert not result.is_valid
    assert result.error == 'Data file not found: http://test/nope.csv'


def test_unsupported_extension_is_an_error_result(manager):
    result = asyncio.run(manager.fetch('report.xlsx'))
    assert result.error.startswith('No data source found')


def test_bad_payloads_become_errors(manager_factory):
    manager = manager_factory({'empty.csv': '', 'bad.geojson': '{"type": "Feature"}',
                               'points.geojson': json.dumps({'type': 'FeatureCollection',
                                                             'features': []})})
    empty, bad, points = asyncio.run(manager.fetch_many(['empty.csv', 'bad.geojson',
                                                         'points.geojson']))
    assert empty.error and bad.error and points.error


def test_transport_failure_is_an_error():
    def handler(request):
        raise httpx.ConnectError('connection refused', request=request)

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await fetch_bytes('http://test/x.csv', client)

    content, error = asyncio.run(scenario())
    assert content is None
    assert 'Could not fetch' in error


def test_empty_or_malformed_polygons_are_skipped():
    data = borough_geojson()
    data['features'][0]['geometry'] = {'type': 'Polygon', 'coordinates': []}
    data['features'][1]['geometry'] = {'type': 'Polygon', 'coordinates': [[[0, 0], [1, 1]]]}
    features = parse_feature_collection(json.dumps(data).encode('utf-8'))
    assert [f.code for f in features] == ['E09000003', 'E09000004', 'E09000005',
                                          'E09000006', 'E09000007']


def test_boundary_file_without_area_is_an_error_result(manager_factory):
    empty = {'type': 'FeatureCollection', 'features': [
        {'type': 'Feature', 'properties': {'LAD23CD': 'E09000001'},
         'geometry': {'type': 'Polygon', 'coordinates': []}},
    ]}
    manager = manager_factory({'london_boroughs.geojson': json.dumps(empty)})
    result = asyncio.run(manager.fetch('london_boroughs.geojson'))
    assert result.error == 'No polygon features in http://test/london_boroughs.geojson'


# ── Client lifecycle ─────────────────────────────────────────────────────────

def test_manager_closes_its_client(data_files):
    async def scenario():
        client = httpx.AsyncClient(transport=httpx.MockTransport(make_handler(data_files)))
        async with DataSourceManager(client=client, base_url=BASE_URL) as manager:
            result = await manager.fetch('pipr_uk.csv')
        return client, result

    client, result = asyncio.run(scenario())
    assert result.is_valid
    assert client.is_closed


def test_manager_without_client_closes_shared_pool():
    async def scenario():
        pooled = http.get_async_client()
        await DataSourceManager(base_url=BASE_URL).close()
        return pooled

    pooled = asyncio.run(scenario())
    assert pooled.is_closed
    assert http._async_client is None
