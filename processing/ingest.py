"""
Data Ingestion - Raw CSV rows -> typed, normalized records.

Handles the "messy spreadsheet" realities of the source files:
- Header spellings vary ("Date", " date ", "East ", "LA_name")
- Numbers carry currency signs, thousands commas or decimal commas
- Some cells are blank; a blank is missing data, never zero
- Some rows carry dates nobody can parse; those rows are dropped
"""

import logging
import math
import re
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .records import (
    MISSING, RawRecord, RegionMetric, SalaryComparison, Series, TypedPoint, is_missing,
)
from .temporal import parse_date

logger = logging.getLogger(__name__)


class ParseError(Exception):
    """Raised when a dataset yields no usable rows (or could not be fetched)."""


# Canonical keys for header spellings shared by every dataset
DEFAULT_ALIASES: Dict[str, str] = {
    'month': 'date',
    'period': 'date',
    'la_name': 'name',
    'borough': 'name',
    'la_code': 'code',
    'gss_code': 'code',
}

DATE_KEY = 'date'

_CURRENCY = re.compile(r'[£$€%\s\u00a0\u200b]')
_THOUSANDS = re.compile(r'^[+-]?\d{1,3}(,\d{3})+$')


def normalize_column(name: str, aliases: Optional[Mapping[str, str]] = None) -> str:
    """
    Normalize a header: trim, lower-case, collapse whitespace to "_", map aliases.

    Args:
        name: Raw column header
        aliases: Extra alias spellings (already normalized) -> canonical key

    Returns:
        Canonical column key
    """
    key = re.sub(r'\s+', '_', str(name).strip().lower())
    if aliases and key in aliases:
        return aliases[key]
    return DEFAULT_ALIASES.get(key, key)


def parse_number(raw: Optional[str]) -> float:
    """
    Parse a numeric cell. Anything unusable becomes MISSING, never an error.

    "£1,339" -> 1339.0, "81,3" -> 81.3, "1.234,5" -> 1234.5, "" -> nan
    """
    if raw is None:
        return MISSING
    s = _CURRENCY.sub('', str(raw))
    if not s:
        return MISSING

    if ',' in s and '.' in s:
        # Whichever separator comes last is the decimal mark
        if s.rfind(',') > s.rfind('.'):
            s = s.replace('.', '').replace(',', '.')
        else:
            s = s.replace(',', '')
    elif ',' in s:
        s = s.replace(',', '') if _THOUSANDS.match(s) else s.replace(',', '.')

    try:
        value = float(s)
    except ValueError:
        return MISSING
    return value if math.isfinite(value) else MISSING


class DataIngestor:
    """Turns RawRecords into typed points and series."""

    def __init__(self, aliases: Optional[Mapping[str, str]] = None):
        self._aliases = dict(aliases or {})

    def normalize_row(self, row: RawRecord) -> Dict[str, str]:
        """Map every header to its canonical key (first spelling wins)."""
        out: Dict[str, str] = {}
        for raw_key, raw_value in row.items():
            key = normalize_column(raw_key, self._aliases)
            if key and key not in out:
                out[key] = raw_value
        return out

    def parse_points(self, raw_rows: Iterable[RawRecord]) -> List[TypedPoint]:
        """
        Parse rows into TypedPoints sorted ascending by timestamp.

        Raises:
            ParseError: if no row has a parseable date
        """
        points: List[TypedPoint] = []
        dropped = 0
        for row in raw_rows:
            cells = self.normalize_row(row)
            timestamp = parse_date(cells.get(DATE_KEY))
            if timestamp is None:
                dropped += 1
                continue
            fields = {k: parse_number(v) for k, v in cells.items() if k != DATE_KEY}
            points.append(TypedPoint(timestamp=timestamp, fields=fields))

        if dropped:
            logger.warning(f"Dropped {dropped} row(s) with unparseable dates")
        if not points:
            raise ParseError("No valid rows after date parsing (check CSV).")

        # sorted() is stable, so duplicate timestamps keep source order
        return sorted(points, key=lambda p: p.timestamp)

    def parse(self, raw_rows: Iterable[RawRecord]) -> List[Series]:
        """
        Parse rows into one Series per numeric column.

        Raises:
            ParseError: if no row has a parseable date
        """
        points = self.parse_points(raw_rows)
        return series_from_points(points)

    def parse_salaries(
        self,
        raw_rows: Iterable[RawRecord],
        from_year: int,
        to_year: int,
    ) -> List[SalaryComparison]:
        """
        Parse the salary file into start/end comparisons.

        Only rows whose metric column reads "salary" are used. Rows missing
        a name or either year's value are dropped. Sorted by end-year salary,
        highest first.
        """
        start_col, end_col = str(from_year), str(to_year)
        rows: List[SalaryComparison] = []
        for row in raw_rows:
            cells = self.normalize_row(row)
            if str(cells.get('metric', '')).strip().lower() != 'salary':
                continue
            name = str(cells.get('name', '') or '').strip()
            start = parse_number(cells.get(start_col))
            end = parse_number(cells.get(end_col))
            if not name or is_missing(start) or is_missing(end):
                continue
            rows.append(SalaryComparison(name=name, start=start, end=end))

        if not rows:
            raise ParseError(f"No salary rows with values for {from_year} and {to_year}.")

        rows.sort(key=lambda r: r.end, reverse=True)
        return rows

    def parse_region_metrics(
        self,
        raw_rows: Iterable[RawRecord],
        fields: Sequence[str],
    ) -> List[RegionMetric]:
        """
        Parse the regional metrics file (year, code, name, numeric fields).

        Rows without a valid year are dropped.
        """
        metrics: List[RegionMetric] = []
        for row in raw_rows:
            cells = self.normalize_row(row)
            year = parse_number(cells.get('year'))
            if is_missing(year):
                continue
            metrics.append(RegionMetric(
                year=int(year),
                code=str(cells.get('code', '') or '').strip(),
                name=str(cells.get('name', '') or '').strip(),
                fields={f: parse_number(cells.get(f)) for f in fields},
            ))

        if not metrics:
            raise ParseError("No regional metric rows with a valid year.")
        return metrics


def series_from_points(points: Sequence[TypedPoint]) -> List[Series]:
    """Split row-wise points into one Series per field (first-seen order)."""
    keys: List[str] = []
    for point in points:
        for key in point.fields:
            if key not in keys:
                keys.append(key)

    return [
        Series(
            key=key,
            values=tuple(TypedPoint(p.timestamp, {key: p.get(key)}) for p in points),
        )
        for key in keys
    ]
