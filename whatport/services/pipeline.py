"""
Registry acquisition pipeline.

Handles:
- Reusing a fresh cached registry
- Fetching, parsing and building a new one on a miss
- Persisting it (failures become advisories, not errors)
- Falling back to a stale cache when the fetch fails
"""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

import httpx

from ..config import Settings
from ..errors import WhatportError
from ..parsers import ParseError, ParseWarning, get_parser
from ..utils.logging_utils import LogTimer
from .cache_store import CacheMiss, CacheStore, CacheWriteError, registry_age
from .fetcher import FetchError, fetch, latest_revision, page_url
from .registry import PortRegistry, build_registry

logger = logging.getLogger(__name__)

ORIGIN_CACHE = "cache"
ORIGIN_NETWORK = "network"
ORIGIN_STALE_CACHE = "stale-cache"


class PipelineError(WhatportError):
    """No registry could be obtained; the lookup cannot be answered."""


@dataclass
class PipelineResult:
    """A registry plus everything the user should be told about how it was obtained."""

    registry: PortRegistry
    origin: str
    parse_warnings: List[ParseWarning] = field(default_factory=list)
    advisories: List[str] = field(default_factory=list)


def fingerprint(document: bytes, revision: Optional[int] = None) -> str:
    """Revision marker when known, content hash otherwise."""
    if revision is not None:
        return f"rev:{revision}"
    return f"sha256:{hashlib.sha256(document).hexdigest()}"


def _format_age(age: timedelta) -> str:
    hours = age.total_seconds() / 3600
    if hours < 48:
        return f"{hours:.0f}h"
    return f"{age.days}d"


def _cache_matches_revision(registry: PortRegistry, revision: Optional[int]) -> bool:
    return revision is None or registry.source_fingerprint == f"rev:{revision}"


async def build_from_network(
    config: Settings,
    *,
    revision: Optional[int] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> PipelineResult:
    """
    Fetch the page, parse it and build a registry (no cache involved).

    Raises:
        FetchError: if the page cannot be downloaded
        ParseError: if the page has no recognisable port table
    """
    timeout = config.FETCH_TIMEOUT_SECONDS

    if revision is None:
        # Unpinned fetch of the live page if the history API is unavailable
        try:
            revision = await latest_revision(
                config.HISTORY_API_URL, timeout, client=client, user_agent=config.USER_AGENT
            )
        except FetchError as e:
            logger.warning(f"Failed to query the latest revision, fetching the live page: {e}")

    url = page_url(config, revision)
    with LogTimer(logger, "Fetching port list page"):
        document = await fetch(url, timeout, client=client, user_agent=config.USER_AGENT)

    with LogTimer(logger, "Parsing port tables") as timer:
        result = get_parser("wikipedia").parse(document, base_url=config.SOURCE_URL)
        timer.set_record_count(len(result.assignments))

    if result.warnings:
        logger.warning(f"{len(result.warnings)} row(s) could not be parsed and were skipped")

    registry = build_registry(
        result.assignments,
        source_fingerprint=fingerprint(document, revision),
        source_url=url,
    )
    return PipelineResult(
        registry=registry,
        origin=ORIGIN_NETWORK,
        parse_warnings=list(result.warnings),
    )


async def obtain_registry(
    config: Settings,
    store: CacheStore,
    *,
    refresh: bool = False,
    offline: bool = False,
    revision: Optional[int] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> PipelineResult:
    """
    Get a registry for this invocation: cache hit, fresh build, or stale fallback.

    Args:
        config: Settings (freshness window, timeouts, stale fallback switch)
        store: Cache store at the path resolved at startup
        refresh: Ignore a fresh cache and rebuild from the network
        offline: Never touch the network; any loadable cache is used
        revision: Pin a page revision; a cache built from another revision is a miss
        client: Optional shared httpx client

    Raises:
        PipelineError: when no registry can be obtained
    """
    max_age = timedelta(days=config.CACHE_MAX_AGE_DAYS)
    cached = store.load()

    if isinstance(cached, CacheMiss):
        logger.info(f"Cache miss ({cached})")
    elif not _cache_matches_revision(cached, revision):
        logger.info(f"Cached registry is {cached.source_fingerprint}, revision {revision} requested")
    elif offline:
        result = PipelineResult(registry=cached, origin=ORIGIN_CACHE)
        if not store.is_fresh(cached, max_age):
            result.origin = ORIGIN_STALE_CACHE
            result.advisories.append(
                f"Offline mode: using cached data that is {_format_age(registry_age(cached))} old"
            )
        return result
    elif refresh:
        logger.info("Refresh requested, ignoring cached registry")
    elif store.is_fresh(cached, max_age):
        logger.info(f"Using cached registry ({cached.source_fingerprint}, age {_format_age(registry_age(cached))})")
        return PipelineResult(registry=cached, origin=ORIGIN_CACHE)
    else:
        logger.info(f"Cached registry is stale (age {_format_age(registry_age(cached))})")

    if offline:
        raise PipelineError(
            f"Offline mode and no usable cache at {store.path} ({cached if isinstance(cached, CacheMiss) else 'different revision'})"
        )

    try:
        result = await build_from_network(config, revision=revision, client=client)
    except FetchError as e:
        usable = not isinstance(cached, CacheMiss) and _cache_matches_revision(cached, revision)
        if usable and config.ALLOW_STALE_FALLBACK:
            logger.warning(f"Fetch failed, falling back to cached registry: {e}")
            return PipelineResult(
                registry=cached,
                origin=ORIGIN_STALE_CACHE,
                advisories=[
                    f"Could not refresh port data ({e}); using cached data that is "
                    f"{_format_age(registry_age(cached))} old"
                ],
            )
        raise PipelineError(f"Could not determine port usage: {e}") from e
    except ParseError as e:
        raise PipelineError(f"Could not read the port list page: {e}") from e

    try:
        store.save(result.registry)
    except CacheWriteError as e:
        logger.warning(str(e))
        result.advisories.append(f"{e}; results were not cached")

    return result
