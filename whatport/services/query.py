"""
Lookups against a built port registry.

Two kinds of questions are answered:

* ``by_port``: every assignment whose range covers a port, in the order the
  source lists them, optionally narrowed to one protocol.
* ``by_keyword``: (port, assignment) pairs whose service names or
  description match a search term, best matches first.

An empty answer is a normal result; failures to obtain a registry are
reported by the pipeline, never from here.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, NamedTuple, Optional, Set, Union

from ..parsers.base import MAX_PORT, PortAssignment, PortCategory, Protocol
from ..utils.tokens import normalize_phrase, tokenize
from .registry import PortRegistry

logger = logging.getLogger(__name__)

_PORT_QUERY_RE = re.compile(r"^\s*(\d+)\s*(?:/\s*([A-Za-z]+))?\s*$")


class MatchRank(IntEnum):
    """Keyword match quality; lower sorts first."""

    SERVICE_NAME = 0  # term equals a whole service name
    SERVICE_TOKEN = 1  # every term word is a token of a service name
    DESCRIPTION_TOKEN = 2  # every term word is a token somewhere
    PARTIAL = 3  # some term word only matches inside a longer token


@dataclass(frozen=True)
class PortQuery:
    port: int
    protocol: Optional[Protocol] = None

    @property
    def category(self) -> PortCategory:
        return PortCategory.of(self.port)

    def __str__(self) -> str:
        if self.protocol is None:
            return str(self.port)
        return f"{self.port}/{self.protocol.value}"


@dataclass(frozen=True)
class KeywordQuery:
    term: str

    def __str__(self) -> str:
        return self.term


Query = Union[PortQuery, KeywordQuery]


def parse_query(text: str, force_keyword: bool = False) -> Query:
    """
    Interpret user input: ``80`` and ``443/udp`` are port lookups, anything
    else is a keyword search.

    Raises:
        ValueError: for an empty query, a port above 65535 or an unknown
            protocol suffix
    """
    text = (text or "").strip()
    if not text:
        raise ValueError("Empty query")
    match = None if force_keyword else _PORT_QUERY_RE.match(text)
    if match is None:
        return KeywordQuery(text)

    port = int(match.group(1))
    if port > MAX_PORT:
        raise ValueError(f'"{match.group(1)}" is not a valid port number')
    protocol = None
    if match.group(2):
        try:
            protocol = Protocol(match.group(2).lower())
        except ValueError:
            raise ValueError(f'Unknown protocol: "{match.group(2)}"') from None
        if protocol is Protocol.UNKNOWN:
            raise ValueError(f'Unknown protocol: "{match.group(2)}"')
    return PortQuery(port, protocol)


class KeywordMatch(NamedTuple):
    port: int
    assignment: PortAssignment
    rank: MatchRank


@dataclass
class LookupResult:
    """Answer to one query; ``found`` is False for a valid empty answer."""

    query: Query
    assignments: List[PortAssignment] = field(default_factory=list)
    matches: List[KeywordMatch] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return bool(self.assignments or self.matches)


class QueryEngine:
    """Answers port and keyword lookups against one registry."""

    def __init__(self, registry: PortRegistry):
        self.registry = registry
        self._partial_cache: Dict[str, Set[str]] = {}

    def by_port(self, number: int, protocol: Optional[Protocol] = None) -> List[PortAssignment]:
        """All assignments covering the port, first-seen first."""
        if not 0 <= number <= MAX_PORT:
            raise ValueError(f"Port out of range: {number}")
        assignments = list(self.registry.covering(number))
        if protocol is not None:
            assignments = [a for a in assignments if a.uses(protocol)]
        logger.debug(f"by_port({number}, {protocol}): {len(assignments)} assignment(s)")
        return assignments

    def by_keyword(self, term: str) -> List[KeywordMatch]:
        """
        Search service names and descriptions.

        Every word of the term must match, either as a whole token or inside
        a longer one. Results are ordered by MatchRank, then ascending port,
        then source order.
        """
        words = tokenize(term)
        if not words:
            return []
        phrase = " ".join(words)

        candidates: Optional[Set[int]] = None
        for word in words:
            ports = set(self.registry.ports_for_token(word))
            for token in self._partial_tokens(word):
                ports |= self.registry.ports_for_token(token)
            candidates = ports if candidates is None else candidates & ports
            if not candidates:
                return []

        matches: List[KeywordMatch] = []
        ranks: Dict[int, Optional[MatchRank]] = {}
        for port in sorted(candidates):
            for assignment in self.registry.covering(port):
                key = id(assignment)
                if key not in ranks:
                    ranks[key] = self._rank(assignment, words, phrase)
                if ranks[key] is not None:
                    matches.append(KeywordMatch(port, assignment, ranks[key]))

        matches.sort(key=lambda m: (m.rank, m.port))
        logger.debug(f"by_keyword({term!r}): {len(matches)} match(es)")
        return matches

    def lookup(self, query: Query) -> LookupResult:
        if isinstance(query, PortQuery):
            return LookupResult(query, assignments=self.by_port(query.port, query.protocol))
        return LookupResult(query, matches=self.by_keyword(query.term))

    def _partial_tokens(self, word: str) -> Set[str]:
        if word not in self._partial_cache:
            self._partial_cache[word] = {
                token for token in self.registry.keywords if word in token and token != word
            }
        return self._partial_cache[word]

    def _rank(self, assignment: PortAssignment, words: List[str], phrase: str) -> Optional[MatchRank]:
        if any(normalize_phrase(name) == phrase for name in assignment.service_names):
            return MatchRank.SERVICE_NAME

        name_tokens = set(tokenize(" ".join(assignment.service_names)))
        all_tokens = self.registry.tokens_of(assignment)
        worst = MatchRank.SERVICE_TOKEN
        for word in words:
            if word in name_tokens:
                rank = MatchRank.SERVICE_TOKEN
            elif word in all_tokens:
                rank = MatchRank.DESCRIPTION_TOKEN
            elif any(word in token for token in all_tokens):
                rank = MatchRank.PARTIAL
            else:
                return None
            worst = max(worst, rank)
        return worst
