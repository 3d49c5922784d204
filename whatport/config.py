import os
import sys
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


def _load_version() -> str:
    version_path = Path(__file__).resolve().parent / "VERSION"
    try:
        return version_path.read_text().strip()
    except FileNotFoundError:
        return "0.1.0"


class Settings(BaseSettings):
    """Application configuration using Pydantic settings."""

    # Application
    APP_NAME: str = "whatport"
    APP_VERSION: str = _load_version()
    LOG_LEVEL: str = "WARNING"

    # ── Source document ───────────────────────────────────────────────
    SOURCE_URL: str = "https://en.wikipedia.org/wiki/List_of_TCP_and_UDP_port_numbers"
    # Revision-pinned fetches go through index.php (?oldid=<revision>)
    REVISION_URL: str = "https://en.wikipedia.org/w/index.php?title=List_of_TCP_and_UDP_port_numbers"
    HISTORY_API_URL: str = (
        "https://api.wikimedia.org/core/v1/wikipedia/en/page/"
        "List_of_TCP_and_UDP_port_numbers/history"
    )
    USER_AGENT: str = f"whatport/{_load_version()} (port lookup CLI)"
    FETCH_TIMEOUT_SECONDS: float = 30.0

    # ── Cache ─────────────────────────────────────────────────────────
    CACHE_DIR: Optional[str] = None  # None = platform user cache directory
    CACHE_FILENAME: str = "registry.json"
    CACHE_MAX_AGE_DAYS: float = 7.0
    # Serve a stale cache when the fetch fails instead of aborting
    ALLOW_STALE_FALLBACK: bool = True

    class Config:
        env_file = ".env"
        env_prefix = "WHATPORT_"
        case_sensitive = True


def default_cache_dir(app_name: str = "whatport") -> Path:
    """Return the per-user cache directory for this platform."""
    if sys.platform.startswith("win"):
        base = os.environ.get("LOCALAPPDATA") or str(Path.home() / "AppData" / "Local")
        return Path(base) / app_name / "Cache"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Caches" / app_name
    return Path(os.environ.get("XDG_CACHE_HOME", Path.home() / ".cache")) / app_name


def resolve_cache_path(config: Settings) -> Path:
    """Resolve the cache file location once, at startup."""
    cache_dir = Path(config.CACHE_DIR).expanduser() if config.CACHE_DIR else default_cache_dir(config.APP_NAME)
    return cache_dir / config.CACHE_FILENAME


settings = Settings()
