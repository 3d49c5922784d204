"""Services package for whatport."""

from .registry import PortRegistry, build_registry
from .cache_store import CacheMiss, CacheStore, CacheWriteError
from .fetcher import FetchError, FetchHttpStatus, FetchNetworkError, FetchTimeout, fetch
from .query import (
    KeywordMatch,
    KeywordQuery,
    LookupResult,
    MatchRank,
    PortQuery,
    QueryEngine,
    parse_query,
)
from .pipeline import PipelineError, PipelineResult, obtain_registry

__all__ = [
    "PortRegistry",
    "build_registry",
    "CacheMiss",
    "CacheStore",
    "CacheWriteError",
    "FetchError",
    "FetchHttpStatus",
    "FetchNetworkError",
    "FetchTimeout",
    "fetch",
    "KeywordMatch",
    "KeywordQuery",
    "LookupResult",
    "MatchRank",
    "PortQuery",
    "QueryEngine",
    "parse_query",
    "PipelineError",
    "PipelineResult",
    "obtain_registry",
]
