"""Parser package for the port reference document.

This package turns the port list page into typed PortAssignment records.
"""

from .base import (
    AssignmentStatus,
    BaseParser,
    ParseError,
    ParseResult,
    ParseWarning,
    PortAssignment,
    PortCategory,
    PortRange,
    Protocol,
    ProtocolUsage,
)
from .wikipedia import WikipediaTableParser

# Parser registry mapping source names to parser classes
PARSERS = {
    "wikipedia": WikipediaTableParser,
}


def get_parser(source_name: str = "wikipedia") -> BaseParser:
    """Get a parser instance by source name.

    Args:
        source_name: Name of the source document format (e.g., 'wikipedia')

    Returns:
        Parser instance

    Raises:
        ValueError: If source_name is not registered
    """
    parser_class = PARSERS.get(source_name.lower())
    if parser_class is None:
        raise ValueError(
            f"Unknown parser: {source_name}. Available: {', '.join(PARSERS.keys())}"
        )
    return parser_class()


__all__ = [
    "AssignmentStatus",
    "BaseParser",
    "ParseError",
    "ParseResult",
    "ParseWarning",
    "PortAssignment",
    "PortCategory",
    "PortRange",
    "Protocol",
    "ProtocolUsage",
    "WikipediaTableParser",
    "PARSERS",
    "get_parser",
]
