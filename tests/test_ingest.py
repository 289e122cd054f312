"""
Tests for processing.ingest and processing.temporal.

Covers header normalization, numeric cleaning, date format priority and the
ParseError contract for datasets with no usable rows.
"""

import math
from datetime import datetime, timezone

import pytest

from processing.ingest import (
    DataIngestor, ParseError, normalize_column, parse_number, series_from_points,
)
from processing.records import is_missing
from processing.temporal import date_extent, filter_by_dates, parse_date


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


# ── parse_date ───────────────────────────────────────────────────────────────

def test_parse_date_day_first_slashes():
    """01/02/2020 is 1 February, not 2 January."""
    assert parse_date('01/02/2020') == utc(2020, 2, 1)


@pytest.mark.parametrize('raw', ['01/02/20', '1/2/20', '01.02.2020', '01-02-2020'])
def test_parse_date_two_digit_years_and_other_separators_stay_day_first(raw):
    assert parse_date(raw) == utc(2020, 2, 1)


def test_parse_date_supported_formats():
    assert parse_date('Mar-21') == utc(2021, 3, 1)
    assert parse_date('Mar 2021') == utc(2021, 3, 1)
    assert parse_date('2021-03-15') == utc(2021, 3, 15)
    assert parse_date('2021-03') == utc(2021, 3, 1)


def test_parse_date_fallback_and_failures():
    """The generic fallback handles other spellings; junk and blanks give None."""
    assert parse_date('15 March 2021') == utc(2021, 3, 15)
    assert parse_date('') is None
    assert parse_date(None) is None
    assert parse_date('not a date') is None


def test_date_extent_and_filter():
    dates = [utc(2020, 3, 1), utc(2020, 1, 1), utc(2020, 2, 1)]
    assert date_extent(dates) == (utc(2020, 1, 1), utc(2020, 3, 1))
    assert date_extent([]) is None
    kept = filter_by_dates(['a', 'b', 'c'], dates, start_date=utc(2020, 2, 1))
    assert kept == ['a', 'c']


# ── parse_number ─────────────────────────────────────────────────────────────

@pytest.mark.parametrize('raw,expected', [
    ('1.5', 1.5),
    ('£1,339', 1339.0),
    ('£1,234,567', 1234567.0),
    ('81,3', 81.3),
    ('1.234,5', 1234.5),
    (' 12 % ', 12.0),
    ('-0.4', -0.4),
])
def test_parse_number_cleans_cells(raw, expected):
    assert parse_number(raw) == pytest.approx(expected)


@pytest.mark.parametrize('raw', ['', '   ', None, 'n/a', 'inf', '..'])
def test_parse_number_missing_is_nan(raw):
    """Unusable cells become MISSING, never zero and never an exception."""
    value = parse_number(raw)
    assert math.isnan(value)
    assert is_missing(value)


# ── normalize_column ─────────────────────────────────────────────────────────

def test_normalize_column_trims_and_collapses():
    assert normalize_column('  North   East ') == 'north_east'
    assert normalize_column('Date') == 'date'


def test_normalize_column_aliases():
    assert normalize_column('Month') == 'date'
    assert normalize_column('LA_name') == 'name'
    assert normalize_column('PIPR', {'pipr': 'rent'}) == 'rent'


# ── DataIngestor ─────────────────────────────────────────────────────────────

def test_parse_points_sorted_ascending():
    """Ingested timestamps never go backwards, whatever the source order."""
    rows = [
        {'Date': '2020-03', 'A': '3'},
        {'Date': '2020-01', 'A': '1'},
        {'Date': '2020-02', 'A': '2'},
    ]
    points = DataIngestor().parse_points(rows)
    stamps = [p.timestamp for p in points]
    assert stamps == sorted(stamps)
    assert [p.get('a') for p in points] == [1.0, 2.0, 3.0]


def test_parse_points_drops_bad_dates_keeps_missing_cells():
    rows = [
        {'Date': '2020-01', 'A': '1'},
        {'Date': 'garbage', 'A': '2'},
        {'Date': '2020-02', 'A': ''},
    ]
    points = DataIngestor().parse_points(rows)
    assert len(points) == 2
    assert math.isnan(points[1].get('a'))


def test_parse_points_zero_rows_raises():
    with pytest.raises(ParseError):
        DataIngestor().parse_points([{'Date': 'nope', 'A': '1'}])
    with pytest.raises(ParseError):
        DataIngestor().parse_points([])


def test_parse_points_first_header_spelling_wins():
    rows = [{'Date': '2020-01', 'Month': '1999-01', 'A': '1'}]
    points = DataIngestor().parse_points(rows)
    assert points[0].timestamp == utc(2020, 1, 1)


def test_parse_returns_one_series_per_column():
    rows = [
        {'Date': '2020-01', 'UK': '1', 'London': '2'},
        {'Date': '2020-02', 'UK': '3', 'London': ''},
    ]
    series = DataIngestor().parse(rows)
    assert [s.key for s in series] == ['uk', 'london']
    assert series[0].finite_values() == [1.0, 3.0]
    assert series[1].finite_values() == [2.0]


def test_series_from_points_keeps_first_seen_order():
    points = DataIngestor().parse_points([{'Date': '2020-01', 'B': '1', 'A': '2'}])
    assert [s.key for s in series_from_points(points)] == ['b', 'a']


def test_parse_salaries_filters_and_sorts():
    rows = [
        {'LA_name': 'Camden', 'metric': 'salary', '2022': '£40,100', '2024': '£43,250'},
        {'LA_name': 'Hackney', 'metric': 'Salary ', '2022': '£35,500', '2024': '£38,900'},
        {'LA_name': 'Westminster', 'metric': 'salary', '2022': '£46,000', '2024': '£49,200'},
        {'LA_name': 'Camden', 'metric': 'jobs', '2022': '120,000', '2024': '125,000'},
        {'LA_name': 'Lambeth', 'metric': 'salary', '2022': '', '2024': '£37,900'},
    ]
    result = DataIngestor().parse_salaries(rows, 2022, 2024)
    assert [r.name for r in result] == ['Westminster', 'Camden', 'Hackney']
    assert result[1].diff == pytest.approx(3150.0)


def test_parse_salaries_without_matching_rows_raises():
    rows = [{'LA_name': 'Camden', 'metric': 'salary', '2022': '£40,100'}]
    with pytest.raises(ParseError):
        DataIngestor().parse_salaries(rows, 2022, 2024)


def test_parse_region_metrics():
    ingestor = DataIngestor({'median_price': 'house_price'})
    rows = [
        {'Year': '2023', 'Code': 'E09000007', 'Name': 'Camden',
         'affordability': '18.6', 'Median price': '£830,000'},
        {'Year': '', 'Code': 'E09000001', 'Name': 'City', 'affordability': '1'},
    ]
    metrics = ingestor.parse_region_metrics(rows, ('affordability', 'house_price'))
    assert len(metrics) == 1
    m = metrics[0]
    assert (m.year, m.code, m.name) == (2023, 'E09000007', 'Camden')
    assert m.get('house_price') == 830000.0
    assert math.isnan(m.get('workplace'))
