"""
JSON output for ``--json``.

The document shape is defined by the ``LookupEnvelope`` schema; this module
only maps lookup results onto it.
"""

from typing import List, Union

from ..parsers.base import PortAssignment
from ..schemas import (
    KeywordLookupResponse,
    KeywordMatchResponse,
    LookupEnvelope,
    PortLookupResponse,
    UseCaseResponse,
)
from ..services.pipeline import PipelineResult
from ..services.query import LookupResult, PortQuery
from .common import group_matches


def use_case_response(assignment: PortAssignment) -> UseCaseResponse:
    return UseCaseResponse(
        ports=str(assignment.ports),
        protocols={p.value: u.value for p, u in assignment.protocols.items()},
        service_names=list(assignment.service_names),
        description=assignment.description,
        status=assignment.status.value,
        links=[[text, url] for text, url in assignment.links],
        references=list(assignment.source_refs),
    )


def lookup_response(lookup: LookupResult) -> Union[PortLookupResponse, KeywordLookupResponse]:
    query = lookup.query
    if isinstance(query, PortQuery):
        return PortLookupResponse(
            query=str(query),
            port=query.port,
            protocol=query.protocol.value if query.protocol else None,
            category=query.category.value,
            found=lookup.found,
            use_cases=[use_case_response(a) for a in lookup.assignments],
        )
    return KeywordLookupResponse(
        query=str(query),
        found=lookup.found,
        matches=[
            KeywordMatchResponse(
                ports=group.port_ranges,
                rank=int(group.rank),
                use_case=use_case_response(group.assignment),
            )
            for group in group_matches(lookup.matches)
        ],
    )


def build_envelope(lookup: LookupResult, pipeline: PipelineResult) -> LookupEnvelope:
    registry = pipeline.registry
    warnings: List[str] = list(pipeline.advisories)
    warnings.extend(str(w) for w in pipeline.parse_warnings)
    return LookupEnvelope(
        source_fingerprint=registry.source_fingerprint,
        source_url=registry.source_url,
        built_at=registry.built_at,
        origin=pipeline.origin,
        result=lookup_response(lookup),
        warnings=warnings,
    )


def render_json(lookup: LookupResult, pipeline: PipelineResult, indent: int = 2) -> str:
    """Serialize a lookup and its provenance as a JSON document."""
    return build_envelope(lookup, pipeline).model_dump_json(indent=indent)
