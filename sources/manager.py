"""
Data Source Manager - Routes data files to the appropriate source.

Provides a unified interface for fetching any supported file format.
"""

import asyncio
import logging
from typing import List, Optional

import httpx

from config import config
from .base import DataSource, FetchResult
from .csv_source import CSVSource
from .geojson_source import GeoJSONSource
from .http import close_async_client

logger = logging.getLogger(__name__)


class DataSourceManager:
    """
    Routes data files to the matching source and fetches them.

    Every call goes to the network: chart views reload their data fresh
    on each mount, nothing is cached between loads.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, base_url: Optional[str] = None):
        self._client = client
        self._base_url = base_url
        self._sources: List[DataSource] = [
            CSVSource(client),
            GeoJSONSource(client),
        ]

    def resolve(self, file_name: str) -> str:
        """Turn a data file name into an absolute URL."""
        if self._base_url is None:
            return config.data_url(file_name)
        if file_name.startswith(('http://', 'https://')):
            return file_name
        return self._base_url.rstrip('/') + '/' + file_name.lstrip('/')

    def get_source(self, url: str) -> Optional[DataSource]:
        """Find the data source that handles a URL."""
        for source in self._sources:
            if source.supports(url):
                return source
        return None

    async def fetch(self, file_name: str) -> FetchResult:
        """
        Fetch one data file.

        Args:
            file_name: File name (resolved against the base URL) or absolute URL

        Returns:
            FetchResult with rows/features, or an error
        """
        url = self.resolve(file_name)
        source = self.get_source(url)
        if not source:
            return FetchResult(url=url, error=f"No data source found for {url}")
        return await source.fetch(url)

    async def fetch_many(self, file_names: List[str]) -> List[FetchResult]:
        """
        Fetch several files concurrently.

        Returns:
            List of FetchResult in same order as input
        """
        tasks = [self.fetch(name) for name in file_names]
        return await asyncio.gather(*tasks)

    async def close(self) -> None:
        """Close the HTTP client: the injected one, or else the shared pool."""
        if self._client is not None:
            await self._client.aclose()
        else:
            await close_async_client()

    async def __aenter__(self) -> 'DataSourceManager':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def available_sources(self) -> List[str]:
        """Names of all registered data sources."""
        return [source.name for source in self._sources]
