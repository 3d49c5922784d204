"""
Fetching of the port list page and its revision history.

Uses an ``httpx.AsyncClient``; every failure is mapped onto the ``FetchError``
family so callers never need to know about httpx exceptions.
"""

import logging
from typing import Optional

import httpx

from ..config import Settings
from ..errors import WhatportError

logger = logging.getLogger(__name__)


class FetchError(WhatportError):
    """The document could not be fetched."""


class FetchTimeout(FetchError):
    """The fetch did not complete within the configured timeout."""


class FetchNetworkError(FetchError):
    """Connection-level failure (DNS, refused, reset, TLS...)."""


class FetchHttpStatus(FetchError):
    """The server answered with a non-success status code."""

    def __init__(self, status_code: int, url: str):
        super().__init__(f"{url} returned HTTP {status_code}")
        self.status_code = status_code
        self.url = url


def page_url(config: Settings, revision: Optional[int] = None) -> str:
    """URL of the current page, or of a pinned revision."""
    if revision is None:
        return config.SOURCE_URL
    return f"{config.REVISION_URL}&oldid={revision}"


def _client(timeout: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=timeout, follow_redirects=True)


async def _get(
    url: str,
    timeout: float,
    client: Optional[httpx.AsyncClient],
    user_agent: Optional[str],
) -> httpx.Response:
    owns_client = client is None
    client = client or _client(timeout)
    headers = {"User-Agent": user_agent} if user_agent else None
    try:
        response = await client.get(url, timeout=timeout, headers=headers)
        response.raise_for_status()
        return response
    except httpx.TimeoutException as e:
        logger.error(f"Timed out after {timeout}s fetching {url}: {e}")
        raise FetchTimeout(f"Timed out after {timeout:g}s fetching {url}") from e
    except httpx.HTTPStatusError as e:
        logger.error(f"{url} returned status {e.response.status_code}")
        raise FetchHttpStatus(e.response.status_code, url) from e
    except httpx.RequestError as e:
        logger.error(f"HTTP request error fetching {url}: {e}")
        raise FetchNetworkError(f"Could not fetch {url}: {e}") from e
    finally:
        if owns_client:
            await client.aclose()


async def fetch(
    url: str,
    timeout: float,
    *,
    client: Optional[httpx.AsyncClient] = None,
    user_agent: Optional[str] = None,
) -> bytes:
    """
    Download a document.

    Args:
        url: Document URL
        timeout: Seconds before the request fails with FetchTimeout
        client: Optional shared client (tests pass one with a mock transport)
        user_agent: User-Agent header sent with the request

    Returns:
        Raw response body

    Raises:
        FetchTimeout, FetchNetworkError, FetchHttpStatus
    """
    logger.info(f"Fetching {url}")
    response = await _get(url, timeout, client, user_agent)
    logger.debug(f"Fetched {len(response.content)} bytes from {url}")
    return response.content


async def latest_revision(
    history_url: str,
    timeout: float,
    *,
    client: Optional[httpx.AsyncClient] = None,
    user_agent: Optional[str] = None,
) -> int:
    """
    Ask the Wikimedia history API for the newest revision id of the page.

    Raises:
        FetchError: on network failure or an unexpected response shape
    """
    response = await _get(history_url, timeout, client, user_agent)
    try:
        revisions = response.json()["revisions"]
        latest = int(revisions[0]["id"])
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise FetchError(f"Unexpected revision history response from {history_url}: {e}") from e
    logger.debug(f"Latest page revision: {latest}")
    return latest
