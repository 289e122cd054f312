"""
Shared HTTP client for all data sources.

A module-level connection pool avoids a TCP/TLS handshake per file when a
page mounts several charts at once.
"""

import logging
from typing import Optional

import httpx

from config import config

logger = logging.getLogger(__name__)

_async_client: Optional[httpx.AsyncClient] = None


def get_async_client() -> httpx.AsyncClient:
    """Get or create the shared async HTTP client with connection pooling."""
    global _async_client
    if _async_client is None or _async_client.is_closed:
        _async_client = httpx.AsyncClient(
            timeout=config.http_timeout,
            follow_redirects=True,
            limits=httpx.Limits(
                max_keepalive_connections=10,
                max_connections=20,
                keepalive_expiry=30.0
            )
        )
    return _async_client


async def close_async_client() -> None:
    """Close the shared client (e.g. on shutdown)."""
    global _async_client
    if _async_client is not None and not _async_client.is_closed:
        await _async_client.aclose()
    _async_client = None


def describe_status(url: str, status_code: int) -> Optional[str]:
    """Human-readable error for a failed HTTP status, or None if OK."""
    if status_code == 404:
        return f"Data file not found: {url}"
    if status_code == 429:
        return f"Rate limit exceeded fetching {url}. Please wait and retry."
    if status_code >= 500:
        return f"Server error ({status_code}) fetching {url}."
    if status_code >= 400:
        return f"Request for {url} failed with HTTP {status_code}."
    return None


async def fetch_bytes(url: str, client: Optional[httpx.AsyncClient] = None) -> tuple:
    """
    Fetch raw bytes from a URL.

    Returns:
        (content, error) - exactly one of them is None
    """
    client = client or get_async_client()
    try:
        resp = await client.get(url)
    except httpx.HTTPError as e:
        logger.warning(f"Fetch failed for {url}: {e}")
        return None, f"Could not fetch {url}: {e}"

    error = describe_status(url, resp.status_code)
    if error:
        logger.warning(error)
        return None, error
    return resp.content, None
