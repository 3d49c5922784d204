"""
Port registry: the queryable index built from parsed port assignments.

Building is deterministic. Assignments keep the order they were parsed in,
each covered port gets the assignments in first-seen order, and nothing is
merged or dropped; the query engine decides how results are presented.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple

from ..parsers.base import PortAssignment
from ..utils.logging_utils import LogTimer
from ..utils.tokens import unique_tokens

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PortRegistry:
    """Immutable index of all port assignments plus a keyword index."""

    assignments: Tuple[PortAssignment, ...]
    by_port: Mapping[int, Tuple[PortAssignment, ...]]
    keywords: Mapping[str, FrozenSet[int]]
    built_at: datetime
    source_fingerprint: str
    source_url: str = ""
    assignment_tokens: Mapping[int, Tuple[str, ...]] = field(default_factory=dict, repr=False)

    def covering(self, port: int) -> Tuple[PortAssignment, ...]:
        """All assignments whose range covers the port, first-seen first."""
        return self.by_port.get(port, ())

    def ports_for_token(self, token: str) -> FrozenSet[int]:
        return self.keywords.get(token, frozenset())

    def tokens_of(self, assignment: PortAssignment) -> Tuple[str, ...]:
        """Keyword tokens of one assignment (service names first, then description)."""
        return self.assignment_tokens.get(id(assignment), ())

    def stats(self) -> Dict[str, int]:
        return {
            "assignments": len(self.assignments),
            "ports": len(self.by_port),
            "keywords": len(self.keywords),
        }


def build_registry(
    assignments: Iterable[PortAssignment],
    *,
    source_fingerprint: str,
    source_url: str = "",
    built_at: Optional[datetime] = None,
) -> PortRegistry:
    """
    Build the port and keyword indexes.

    Args:
        assignments: Parsed assignments, in document order
        source_fingerprint: Revision marker or content hash of the source
        source_url: Where the document came from
        built_at: Build timestamp (defaults to now, UTC); cache loads pass the
            persisted value so a reload reproduces the saved registry

    Returns:
        PortRegistry
    """
    ordered = tuple(assignments)
    by_port: Dict[int, List[PortAssignment]] = {}
    keywords: Dict[str, Set[int]] = {}
    assignment_tokens: Dict[int, Tuple[str, ...]] = {}

    with LogTimer(logger, "Building port registry") as timer:
        for assignment in ordered:
            tokens = tuple(unique_tokens([*assignment.service_names, assignment.description]))
            assignment_tokens[id(assignment)] = tokens
            covered = range(assignment.ports.start, assignment.ports.end + 1)

            for port in covered:
                by_port.setdefault(port, []).append(assignment)
            for token in tokens:
                keywords.setdefault(token, set()).update(covered)

        timer.set_record_count(len(ordered))

    if built_at is None:
        built_at = datetime.now(timezone.utc)

    registry = PortRegistry(
        assignments=ordered,
        by_port=MappingProxyType({port: tuple(bucket) for port, bucket in sorted(by_port.items())}),
        keywords=MappingProxyType({token: frozenset(ports) for token, ports in sorted(keywords.items())}),
        built_at=built_at,
        source_fingerprint=source_fingerprint,
        source_url=source_url,
        assignment_tokens=MappingProxyType(assignment_tokens),
    )
    logger.debug(f"Registry stats: {registry.stats()}")
    return registry
