"""
Pytest configuration and fixtures for whatport tests.

Provides:
- The captured port list sample and its parse result
- A registry built from the sample with a fixed build time
- Settings pointing the cache at a temporary directory
- A cache store pre-filled with the sample registry
"""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from whatport.config import Settings, resolve_cache_path
from whatport.parsers import WikipediaTableParser
from whatport.parsers.base import PortAssignment, PortRange, Protocol, ProtocolUsage
from whatport.services.cache_store import CacheStore
from whatport.services.registry import build_registry

REPO_ROOT = Path(__file__).resolve().parents[1]
SAMPLE_HTML = (REPO_ROOT / "samples" / "wikipedia_ports_excerpt.html").read_bytes()
SOURCE_URL = "https://en.wikipedia.org/wiki/List_of_TCP_and_UDP_port_numbers"
BUILT_AT = datetime(2026, 1, 15, 12, 30, 0, tzinfo=timezone.utc)


def make_assignment(
    start,
    end=None,
    protocols=None,
    names=("Test Service",),
    description="",
    row_index=-1,
) -> PortAssignment:
    """Build a PortAssignment with sensible defaults."""
    return PortAssignment(
        ports=PortRange(start, start if end is None else end),
        protocols=protocols or {Protocol.TCP: ProtocolUsage.YES},
        service_names=tuple(names),
        description=description,
        row_index=row_index,
    )


@pytest.fixture
def sample_html() -> bytes:
    return SAMPLE_HTML


@pytest.fixture
def parsed():
    """Parse result of the sample page."""
    return WikipediaTableParser().parse(SAMPLE_HTML, base_url=SOURCE_URL)


@pytest.fixture
def registry(parsed):
    return build_registry(
        parsed.assignments,
        source_fingerprint="rev:1200000000",
        source_url=SOURCE_URL,
        built_at=BUILT_AT,
    )


@pytest.fixture
def fresh_registry(parsed):
    """Sample registry built just now, so it is inside the freshness window."""
    return build_registry(
        parsed.assignments,
        source_fingerprint="rev:1200000000",
        source_url=SOURCE_URL,
    )


@pytest.fixture
def stale_registry(parsed):
    return build_registry(
        parsed.assignments,
        source_fingerprint="rev:1100000000",
        source_url=SOURCE_URL,
        built_at=datetime.now(timezone.utc) - timedelta(days=30),
    )


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(CACHE_DIR=str(tmp_path / "cache"), FETCH_TIMEOUT_SECONDS=5.0)


@pytest.fixture
def store(test_settings) -> CacheStore:
    return CacheStore(resolve_cache_path(test_settings))


@pytest.fixture
def restore_logging():
    """Undo setup_logging() so handlers bound to captured streams do not leak."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
