"""
Durable cache for the built port registry.

The registry is stored as one JSON envelope (see ``schemas.CacheEnvelope``).
Only the parsed assignments are persisted; the port and keyword indexes are
rebuilt on load, which keeps save -> load -> save byte-identical.

Reading never raises: missing, unreadable, corrupt or version-mismatched
files all come back as a ``CacheMiss``.  Writing raises ``CacheWriteError``,
which the pipeline downgrades to a user-visible advisory.
"""

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from ..errors import WhatportError
from ..schemas import CACHE_SCHEMA_VERSION, AssignmentRecord, CachedRegistry, CacheEnvelope
from ..utils.logging_utils import LogTimer
from .registry import PortRegistry, build_registry

logger = logging.getLogger(__name__)


class CacheWriteError(WhatportError):
    """The registry could not be persisted, or the cache file could not be removed."""


@dataclass(frozen=True)
class CacheMiss:
    """Why a cache load produced no registry."""

    reason: str  # "missing" | "unreadable" | "corrupt" | "schema"
    detail: str = ""

    def __bool__(self) -> bool:
        return False

    def __str__(self) -> str:
        return f"{self.reason}: {self.detail}" if self.detail else self.reason


def registry_age(registry: PortRegistry, now: Optional[datetime] = None) -> timedelta:
    now = now or datetime.now(timezone.utc)
    built_at = registry.built_at
    if built_at.tzinfo is None:
        built_at = built_at.replace(tzinfo=timezone.utc)
    return now - built_at


class CacheStore:
    """Single-file registry cache at an explicitly resolved path."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    @property
    def _tmp_path(self) -> Path:
        return self.path.with_name(f"{self.path.name}.{os.getpid()}.tmp")

    def load(self) -> Union[PortRegistry, CacheMiss]:
        """Load the cached registry, or explain why there is none."""
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            logger.debug(f"No cache file at {self.path}")
            return CacheMiss("missing", str(self.path))
        except OSError as e:
            logger.warning(f"Could not read cache file {self.path}: {e}")
            return CacheMiss("unreadable", str(e))

        try:
            document = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Cache file {self.path} is not valid JSON: {e}")
            return CacheMiss("corrupt", str(e))

        version = document.get("schema_version") if isinstance(document, dict) else None
        if version != CACHE_SCHEMA_VERSION:
            logger.info(f"Cache schema version {version!r} != {CACHE_SCHEMA_VERSION}, ignoring cache")
            return CacheMiss("schema", f"found {version!r}, expected {CACHE_SCHEMA_VERSION}")

        try:
            envelope = CacheEnvelope.model_validate(document)
        except ValidationError as e:
            logger.warning(f"Cache file {self.path} failed validation: {e.error_count()} error(s)")
            return CacheMiss("corrupt", str(e).splitlines()[0])

        with LogTimer(logger, f"Loading registry from {self.path}", level=logging.DEBUG) as timer:
            try:
                assignments = [record.to_assignment() for record in envelope.registry.assignments]
            except ValueError as e:
                return CacheMiss("corrupt", str(e))
            timer.set_record_count(len(assignments))

        return build_registry(
            assignments,
            source_fingerprint=envelope.source_fingerprint,
            source_url=envelope.source_url,
            built_at=envelope.built_at,
        )

    def dumps(self, registry: PortRegistry) -> str:
        """Serialize a registry to the on-disk envelope format."""
        envelope = CacheEnvelope(
            schema_version=CACHE_SCHEMA_VERSION,
            built_at=registry.built_at,
            source_fingerprint=registry.source_fingerprint,
            source_url=registry.source_url,
            registry=CachedRegistry(
                assignments=[AssignmentRecord.from_assignment(a) for a in registry.assignments]
            ),
        )
        return envelope.model_dump_json()

    def save(self, registry: PortRegistry) -> None:
        """
        Persist the registry atomically (temp file + rename).

        Raises:
            CacheWriteError: if the directory or file cannot be written
        """
        content = self.dumps(registry)
        tmp_path = self._tmp_path
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as fh:
                fh.write(content)
                fh.flush()
                os.fsync(fh.fileno())
            tmp_path.replace(self.path)
        except OSError as e:
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError:
                logger.debug(f"Could not remove temporary cache file {tmp_path}")
            raise CacheWriteError(f"Could not write cache file {self.path}: {e}") from e
        logger.info(f"Saved registry ({len(registry.assignments)} assignments) to {self.path}")

    def clear(self) -> bool:
        """
        Delete the cache file; returns whether there was one.

        Raises:
            CacheWriteError: if the file exists but cannot be removed
        """
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise CacheWriteError(f"Could not remove cache file {self.path}: {e}") from e
        logger.info(f"Removed cache file {self.path}")
        return True

    @staticmethod
    def is_fresh(registry: PortRegistry, max_age: timedelta, now: Optional[datetime] = None) -> bool:
        """Whether the registry is younger than max_age."""
        return registry_age(registry, now) < max_age
