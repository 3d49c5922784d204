"""Helpers shared by the text and JSON renderers."""

from dataclasses import dataclass
from typing import Dict, List

from ..parsers.base import PortAssignment
from ..services.query import KeywordMatch, MatchRank


@dataclass
class GroupedMatch:
    """All ports at which one assignment matched a keyword search."""

    assignment: PortAssignment
    ports: List[int]
    rank: MatchRank

    @property
    def port_ranges(self) -> str:
        return collapse_ports(self.ports)


def collapse_ports(ports: List[int]) -> str:
    """``[80, 81, 82, 443]`` -> ``"80-82, 443"``."""
    spans = []
    for port in sorted(set(ports)):
        if spans and port == spans[-1][1] + 1:
            spans[-1][1] = port
        else:
            spans.append([port, port])
    return ", ".join(str(a) if a == b else f"{a}-{b}" for a, b in spans)


def group_matches(matches: List[KeywordMatch]) -> List[GroupedMatch]:
    """Fold per-port keyword matches back into one entry per assignment, best first."""
    groups: Dict[int, GroupedMatch] = {}
    for match in matches:
        key = id(match.assignment)
        group = groups.get(key)
        if group is None:
            groups[key] = GroupedMatch(match.assignment, [match.port], match.rank)
        else:
            group.ports.append(match.port)
    return list(groups.values())
