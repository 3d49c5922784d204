"""Cell-level helpers for the port table parser.

Everything here works on a single table cell (or its text) and never raises
for unreadable content except ``parse_port_spec``, whose ``ValueError`` is
how the table walker learns that a row has to be dropped.
"""

import copy
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from urllib.parse import urljoin

from bs4 import Tag

from .base import MAX_PORT, PortRange, Protocol, ProtocolUsage

# Inline footnote markers that survive as plain text: [12], [a], [note 3],
# [citation needed] ...
_MARKER_RE = re.compile(
    r"\[(?:\d{1,4}|[a-z]{1,2}|(?:note|ref|nb)\s*\d{1,3}|[a-z][a-z ]{2,30} needed|"
    r"failed verification|dubious[^\]]{0,30}|clarification needed)\]",
    re.IGNORECASE,
)

_PORT_RE = re.compile(r"^\s*(\d{1,7})(?:\s*[-‐-―−]\s*(\d{1,7}))?(?!\d)")

_USAGE_MARKERS = {
    "yes": ProtocolUsage.YES,
    "official": ProtocolUsage.YES,
    "unofficial": ProtocolUsage.UNOFFICIAL,
    "assigned": ProtocolUsage.ASSIGNED,
    "no": ProtocolUsage.NO,
    "reserved": ProtocolUsage.RESERVED,
}

_PROTOCOL_TOKENS = {
    "tcp": (Protocol.TCP,),
    "udp": (Protocol.UDP,),
    "sctp": (Protocol.SCTP,),
    "dccp": (Protocol.DCCP,),
    "both": (Protocol.TCP, Protocol.UDP),
}

_PROTOCOL_SPLIT_RE = re.compile(r"[/,;&+|\s]+|\band\b|\bor\b", re.IGNORECASE)
_VALUE_SPLIT_RE = re.compile(r"\s*(?:[,;\n]|\s/\s)\s*")

_LEAD_SPLIT_RE = re.compile(r"(?<=[\w)])[.;:](?:\s|$)|\s[–—-]\s|—|,\s")
_NAME_WITH_ABBR_RE = re.compile(r"^(?P<name>[^()]+?)\s*\((?P<abbr>[^()]{1,40})\)")
_ABBR_SPLIT_RE = re.compile(r"\s*(?:,|/|\bor\b)\s*")
_MAX_DERIVED_WORDS = 8

UNKNOWN_SERVICE = "Unknown service"


@dataclass
class CellText:
    """Cleaned text of one cell plus the references and links pulled out of it."""

    value: str = ""
    refs: List[str] = field(default_factory=list)
    links: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def flat(self) -> str:
        """The value with all whitespace (line breaks included) collapsed."""
        return " ".join(self.value.split())


def _absolute(href: str, base_url: Optional[str]) -> str:
    return urljoin(base_url, href) if base_url else href


def _is_reference(sup: Tag, marker: str) -> bool:
    classes = sup.get("class") or []
    if "reference" in classes or "noprint" in classes or "Inline-Template" in classes:
        return True
    return bool(_MARKER_RE.fullmatch(marker))


def cell_text(cell: Optional[Tag], base_url: Optional[str] = None) -> CellText:
    """Extract text from a cell, moving footnotes into ``refs`` and anchors into ``links``."""
    if cell is None:
        return CellText()

    fragment = copy.copy(cell)
    result = CellText()

    for sup in fragment.find_all("sup"):
        marker = sup.get_text(" ", strip=True)
        if not _is_reference(sup, marker):
            continue
        anchor = sup.find("a", href=True)
        ref = _absolute(anchor["href"], base_url) if anchor else marker
        if ref and ref not in result.refs:
            result.refs.append(ref)
        sup.decompose()

    for tag in fragment.find_all(["style", "script"]):
        tag.decompose()
    for br in fragment.find_all("br"):
        br.replace_with("\n")

    for anchor in fragment.find_all("a", href=True):
        text = anchor.get_text(" ", strip=True)
        if text:
            result.links.append((text, _absolute(anchor["href"], base_url)))

    raw = fragment.get_text()
    for marker in _MARKER_RE.findall(raw):
        if marker not in result.refs:
            result.refs.append(marker)
    raw = _MARKER_RE.sub("", raw)

    lines = (" ".join(line.split()) for line in raw.splitlines())
    result.value = "\n".join(line for line in lines if line)
    return result


def looks_like_port(text: str) -> bool:
    return bool(_PORT_RE.match(text or ""))


def parse_port_spec(text: str) -> PortRange:
    """
    Parse a port cell: ``80``, ``6000-6063`` or ``6000–6063``.

    Trailing commentary after the number or range is ignored.

    Raises:
        ValueError: if the cell holds no usable port number or range
    """
    match = _PORT_RE.match(text or "")
    if not match:
        raise ValueError("non-numeric port")
    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) else start
    if start > MAX_PORT or end > MAX_PORT:
        raise ValueError(f"port out of range (max {MAX_PORT})")
    if start > end:
        raise ValueError(f"reversed port range {start}-{end}")
    return PortRange(start, end)


def parse_usage_marker(text: str) -> Optional[ProtocolUsage]:
    """
    Map a per-protocol cell (``Yes``, ``Unofficial``...) to a usage.

    Returns None for an empty cell (protocol not used by the row) and
    ProtocolUsage.UNKNOWN for text that is not a known marker.
    """
    words = re.findall(r"[a-z]+", (text or "").lower())
    if not words:
        return None
    for word in words:
        usage = _USAGE_MARKERS.get(word)
        if usage is not None:
            return usage
    return ProtocolUsage.UNKNOWN


def parse_protocol_list(text: str) -> Dict[Protocol, ProtocolUsage]:
    """
    Map a single protocol column (``TCP/UDP``, ``tcp, sctp``) to protocols.

    Every recognised protocol is marked YES; unrecognised tokens add an
    UNKNOWN entry instead of failing the row.
    """
    protocols: Dict[Protocol, ProtocolUsage] = {}
    unknown = False
    for token in _PROTOCOL_SPLIT_RE.split((text or "").lower()):
        token = token.strip(" .:()[]")
        if not token:
            continue
        matched = _PROTOCOL_TOKENS.get(token)
        if matched is None:
            unknown = True
            continue
        for protocol in matched:
            protocols.setdefault(protocol, ProtocolUsage.YES)
    if unknown or not protocols:
        protocols.setdefault(Protocol.UNKNOWN, ProtocolUsage.UNKNOWN)
    return protocols


def split_values(text: str) -> List[str]:
    """Split a multi-valued cell on ``,``, ``;``, `` / `` and line breaks."""
    values = []
    for value in _VALUE_SPLIT_RE.split(text or ""):
        value = value.strip()
        if value and value not in values:
            values.append(value)
    return values


def service_names_from_description(description: str, links: List[Tuple[str, str]]) -> List[str]:
    """
    Derive service names for tables without a service column.

    Uses the description's leading clause: ``Secure Shell (SSH), secure
    logins...`` gives ``["Secure Shell", "SSH"]``; a leading link gives its
    text; otherwise the first few words of the clause.
    """
    description = " ".join((description or "").split())
    if not description:
        return []
    lead = _LEAD_SPLIT_RE.split(description, maxsplit=1)[0].strip()

    # Matched against the whole description so "(FTP, data)" survives the
    # comma split, but the name itself has to sit inside the lead clause
    match = _NAME_WITH_ABBR_RE.match(description)
    if match and len(match.group("name").strip()) <= len(lead):
        names = [match.group("name").strip()]
        for abbr in _ABBR_SPLIT_RE.split(match.group("abbr")):
            abbr = abbr.strip()
            if abbr and len(abbr.split()) <= 3 and abbr not in names:
                names.append(abbr)
        if len(names[0].split()) <= _MAX_DERIVED_WORDS:
            return names

    for text, _url in links:
        if lead.startswith(text):
            return [text]

    words = lead.split()
    if not words:
        return []
    return [" ".join(words[:_MAX_DERIVED_WORDS])]
