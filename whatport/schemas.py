"""
Pydantic v2 schemas for everything whatport writes out.

Architecture:
  - Cache*/AssignmentRecord: the on-disk cache envelope.  Strict
    (``extra="forbid"``) so that a file written by a different layout fails
    validation and is treated as a cache miss instead of half-loading.
  - *Response classes: the ``--json`` output of a lookup.

Conversion to and from the parser dataclasses lives here too, so the
dataclasses stay free of serialization concerns.
"""

from datetime import datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .parsers.base import (
    AssignmentStatus,
    PortAssignment,
    PortRange,
    Protocol,
    ProtocolUsage,
)

# Bump whenever the envelope or AssignmentRecord layout changes
CACHE_SCHEMA_VERSION = 2


# ── Cache envelope ────────────────────────────────────────────────────

class AssignmentRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    start: int = Field(ge=0, le=65535)
    end: int = Field(ge=0, le=65535)
    protocols: Dict[Protocol, ProtocolUsage] = Field(min_length=1)
    service_names: List[str] = Field(min_length=1)
    description: str = ""
    status: AssignmentStatus = AssignmentStatus.UNKNOWN
    source_refs: List[str] = Field(default_factory=list)
    links: List[List[str]] = Field(default_factory=list)
    row_index: int = -1

    @field_validator("end")
    @classmethod
    def validate_range(cls, v: int, info) -> int:
        start = info.data.get("start")
        if start is not None and v < start:
            raise ValueError(f"Range end {v} is below start {start}")
        return v

    @field_validator("links")
    @classmethod
    def validate_links(cls, v: List[List[str]]) -> List[List[str]]:
        for link in v:
            if len(link) != 2:
                raise ValueError("Each link must be a [text, url] pair")
        return v

    @classmethod
    def from_assignment(cls, assignment: PortAssignment) -> "AssignmentRecord":
        return cls(
            start=assignment.ports.start,
            end=assignment.ports.end,
            protocols=dict(assignment.protocols),
            service_names=list(assignment.service_names),
            description=assignment.description,
            status=assignment.status,
            source_refs=list(assignment.source_refs),
            links=[[text, url] for text, url in assignment.links],
            row_index=assignment.row_index,
        )

    def to_assignment(self) -> PortAssignment:
        return PortAssignment(
            ports=PortRange(self.start, self.end),
            protocols=dict(self.protocols),
            service_names=tuple(self.service_names),
            description=self.description,
            status=self.status,
            source_refs=tuple(self.source_refs),
            links=tuple((text, url) for text, url in self.links),
            row_index=self.row_index,
        )


class CachedRegistry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    assignments: List[AssignmentRecord]


class CacheEnvelope(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schema_version: int
    built_at: datetime
    source_fingerprint: str
    source_url: str = ""
    registry: CachedRegistry


# ── Lookup output (--json) ────────────────────────────────────────────

class UseCaseResponse(BaseModel):
    ports: str
    protocols: Dict[str, str]
    service_names: List[str]
    description: str
    status: str
    links: List[List[str]] = Field(default_factory=list)
    references: List[str] = Field(default_factory=list)


class PortLookupResponse(BaseModel):
    query: str
    port: int
    protocol: Optional[str] = None
    category: str
    found: bool
    use_cases: List[UseCaseResponse]


class KeywordMatchResponse(BaseModel):
    ports: str
    rank: int
    use_case: UseCaseResponse


class KeywordLookupResponse(BaseModel):
    query: str
    found: bool
    matches: List[KeywordMatchResponse]


class LookupEnvelope(BaseModel):
    """Top-level ``--json`` document."""

    source_fingerprint: str
    source_url: str
    built_at: datetime
    origin: str
    result: Union[PortLookupResponse, KeywordLookupResponse]
    warnings: List[str] = Field(default_factory=list)
