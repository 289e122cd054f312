"""
Abstract interface for all data sources.

Makes it trivial to add new file formats - just implement the DataSource protocol.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from processing.records import RegionFeature


@dataclass
class FetchResult:
    """Result from fetching one data file."""

    url: str
    rows: List[Dict[str, str]] = field(default_factory=list)
    features: List[RegionFeature] = field(default_factory=list)
    info: dict = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        """Check if data was fetched successfully."""
        return self.error is None and (len(self.rows) > 0 or len(self.features) > 0)


class DataSource(ABC):
    """Abstract base class for data sources."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name of this data source."""
        pass

    @abstractmethod
    async def fetch(self, url: str) -> FetchResult:
        """
        Fetch and decode one data file.

        Args:
            url: Absolute URL of the file

        Returns:
            FetchResult with rows or features, or an error message
        """
        pass

    @abstractmethod
    def supports(self, url: str) -> bool:
        """
        Check if this source handles the given URL.

        Args:
            url: The URL to check

        Returns:
            True if this source can decode the file
        """
        pass
