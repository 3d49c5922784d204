"""Base classes and data structures for port table parsing."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Iterator, List, Mapping, Optional, Tuple, Union

from ..errors import WhatportError

MAX_PORT = 65535


class Protocol(str, Enum):
    """Transport protocols a port table can mention."""

    TCP = "tcp"
    UDP = "udp"
    SCTP = "sctp"
    DCCP = "dccp"
    UNKNOWN = "unknown"

    @property
    def label(self) -> str:
        return "Unknown" if self is Protocol.UNKNOWN else self.value.upper()


class ProtocolUsage(str, Enum):
    """How the source marks a protocol for one row (see the page legend)."""

    YES = "yes"  # assigned by IANA and standardized/widely used
    UNOFFICIAL = "unofficial"  # widely used but not IANA-assigned
    ASSIGNED = "assigned"  # IANA-assigned but not widely used
    NO = "no"  # explicitly not used
    RESERVED = "reserved"  # reserved by IANA
    UNKNOWN = "unknown"  # cell present but unreadable


class AssignmentStatus(str, Enum):
    """How authoritatively the source marks a whole row."""

    OFFICIAL = "official"
    UNOFFICIAL = "unofficial"
    ASSIGNED = "assigned"
    RESERVED = "reserved"
    CONFLICTING = "conflicting"
    UNKNOWN = "unknown"

    @classmethod
    def from_usages(cls, usages) -> "AssignmentStatus":
        """Derive a row status from its protocol usages, ignoring NO."""
        levels = []
        for usage in usages:
            status = _USAGE_STATUS.get(usage)
            if status is not None and status not in levels:
                levels.append(status)
        if not levels:
            return cls.UNKNOWN
        if len(levels) > 1:
            return cls.CONFLICTING
        return levels[0]


_USAGE_STATUS = {
    ProtocolUsage.YES: AssignmentStatus.OFFICIAL,
    ProtocolUsage.UNOFFICIAL: AssignmentStatus.UNOFFICIAL,
    ProtocolUsage.ASSIGNED: AssignmentStatus.ASSIGNED,
    ProtocolUsage.RESERVED: AssignmentStatus.RESERVED,
}


class PortCategory(str, Enum):
    """IANA port number ranges."""

    WELL_KNOWN = "well-known"  # 0 to 1023
    REGISTERED = "registered"  # 1024 to 49151
    DYNAMIC = "dynamic"  # 49152 to 65535

    @classmethod
    def of(cls, port: int) -> "PortCategory":
        if port <= 1023:
            return cls.WELL_KNOWN
        if port <= 49151:
            return cls.REGISTERED
        return cls.DYNAMIC


@dataclass(frozen=True)
class PortRange:
    """Inclusive range of port numbers; a single port has start == end."""

    start: int
    end: int

    def __post_init__(self):
        if not 0 <= self.start <= self.end <= MAX_PORT:
            raise ValueError(f"Invalid port range: {self.start}-{self.end}")

    @classmethod
    def single(cls, port: int) -> "PortRange":
        return cls(port, port)

    @property
    def is_single(self) -> bool:
        return self.start == self.end

    def contains(self, port: int) -> bool:
        return self.start <= port <= self.end

    def ports(self) -> Iterator[int]:
        return iter(range(self.start, self.end + 1))

    def __len__(self) -> int:
        return self.end - self.start + 1

    def __str__(self) -> str:
        return str(self.start) if self.is_single else f"{self.start}-{self.end}"


@dataclass(frozen=True)
class PortAssignment:
    """One usage record for a port or port range."""

    ports: PortRange
    protocols: Mapping[Protocol, ProtocolUsage]
    service_names: Tuple[str, ...]
    description: str = ""
    status: AssignmentStatus = AssignmentStatus.UNKNOWN
    source_refs: Tuple[str, ...] = ()
    links: Tuple[Tuple[str, str], ...] = ()  # (text, url)
    row_index: int = -1

    def __post_init__(self):
        if not self.protocols:
            raise ValueError("A port assignment needs at least one protocol")
        if not self.service_names:
            raise ValueError("A port assignment needs at least one service name")
        object.__setattr__(self, "protocols", MappingProxyType(dict(self.protocols)))

    # mappingproxy is unhashable; hash its items instead
    def __hash__(self) -> int:
        return hash((self.ports, tuple(self.protocols.items()), self.service_names,
                     self.description, self.row_index))

    def usage_for(self, protocol: Protocol) -> Optional[ProtocolUsage]:
        return self.protocols.get(protocol)

    def uses(self, protocol: Protocol) -> bool:
        """Whether the row claims the protocol in any way other than NO."""
        usage = self.protocols.get(protocol)
        return usage is not None and usage is not ProtocolUsage.NO


@dataclass
class ParseWarning:
    """Non-fatal anomaly found while walking a table."""

    row_index: int
    reason: str
    raw_snippet: str = ""

    def __str__(self) -> str:
        snippet = f" ({self.raw_snippet!r})" if self.raw_snippet else ""
        return f"row {self.row_index}: {self.reason}{snippet}"


@dataclass
class ParseResult:
    """Result of parsing operation."""

    success: bool
    source_type: str
    assignments: List[PortAssignment] = field(default_factory=list)
    warnings: List[ParseWarning] = field(default_factory=list)
    tables_found: int = 0
    parsed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ParseError(WhatportError):
    """The document no longer has the table structure the parser expects."""


class BaseParser(ABC):
    """Abstract base class for port table parsers."""

    source_type: str = "unknown"

    @abstractmethod
    def parse(self, data: Union[str, bytes], **kwargs) -> ParseResult:
        """Parse input data and return structured result."""
        pass
