"""
CSV Data Source - Tabular files (time series, salaries, regional metrics).

Every cell is kept as a raw string; typing is the ingestor's job, so a
blank cell stays blank instead of becoming a pandas NaN or zero.
"""

import io
import logging
from typing import Optional
from urllib.parse import urlparse

import httpx
import pandas as pd

from .base import DataSource, FetchResult
from .http import fetch_bytes

logger = logging.getLogger(__name__)


def read_csv_records(content: bytes) -> list:
    """Decode CSV bytes into a list of {column: raw string} records."""
    text = content.decode('utf-8-sig', errors='replace')
    df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False)
    return df.to_dict(orient='records')


class CSVSource(DataSource):
    """Data source for comma-separated files."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client

    @property
    def name(self) -> str:
        return "CSV"

    def supports(self, url: str) -> bool:
        return urlparse(url).path.lower().endswith('.csv')

    async def fetch(self, url: str) -> FetchResult:
        """Fetch a CSV file and decode it into raw records."""
        content, error = await fetch_bytes(url, self._client)
        if error:
            return FetchResult(url=url, error=error)

        try:
            rows = read_csv_records(content)
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            logger.warning(f"Could not parse CSV {url}: {e}")
            return FetchResult(url=url, error=f"Could not parse {url}: {e}")

        if not rows:
            return FetchResult(url=url, error=f"No rows in {url}")

        logger.info(f"Loaded {len(rows)} rows from {url}")
        return FetchResult(url=url, rows=rows, info={'columns': list(rows[0].keys())})
