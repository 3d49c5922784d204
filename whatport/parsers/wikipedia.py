"""Parser for the port tables of Wikipedia's "List of TCP and UDP port numbers"."""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from bs4 import BeautifulSoup, Tag

from .base import (
    AssignmentStatus,
    BaseParser,
    ParseError,
    ParseResult,
    ParseWarning,
    PortAssignment,
    Protocol,
    ProtocolUsage,
)
from .cells import (
    UNKNOWN_SERVICE,
    CellText,
    cell_text,
    looks_like_port,
    parse_port_spec,
    parse_protocol_list,
    parse_usage_marker,
    service_names_from_description,
    split_values,
)

logger = logging.getLogger(__name__)

_SNIPPET_LEN = 80

# Header names, compared after lower-casing and stripping punctuation
_PORT_HEADERS = {"port", "ports", "port s", "port number", "port numbers", "port range", "number"}
_PROTOCOL_HEADERS = {
    "tcp": Protocol.TCP,
    "udp": Protocol.UDP,
    "sctp": Protocol.SCTP,
    "dccp": Protocol.DCCP,
}
_PROTOCOL_LIST_HEADERS = {"protocol", "protocols", "transport", "transport protocol", "transport protocols"}
_SERVICE_HEADERS = {"service", "services", "service name", "service names", "name", "application"}
_DESCRIPTION_HEADERS = {"description", "descriptions", "purpose", "usage", "use", "notes"}


@dataclass
class _TableLayout:
    """Column positions of one port table, found from its header row."""

    width: int
    port_col: int
    protocol_cols: Dict[int, Protocol] = field(default_factory=dict)
    protocol_list_col: Optional[int] = None
    service_col: Optional[int] = None
    description_col: Optional[int] = None


class _SpanCarry:
    """
    Row-walk accumulator for merged cells.

    Holds the cells that a ``rowspan`` carries into later rows, and the last
    port cell seen so that a short row with no port cell can inherit it.
    Columns still filled by a carried cell do not make a row short.
    One instance per table; dropped when the table is done.
    """

    def __init__(self, layout: _TableLayout):
        self.layout = layout
        self.pending: Dict[int, List] = {}  # column -> [rows left, cell]
        self.last_port: Optional[Tag] = None

    def _take(self, col: int) -> Optional[Tag]:
        carried = self.pending.get(col)
        if carried is None:
            return None
        carried[0] -= 1
        if carried[0] <= 0:
            del self.pending[col]
        return carried[1]

    def expand(self, cells: List[Tag], row_index: int) -> List[Optional[Tag]]:
        """Lay a row's cells out on the table grid, filling carried columns."""
        queue = list(cells)
        port_col = self.layout.port_col
        inherited = None
        # Own cells plus columns carried down from rows above
        filled = sum(_span(c, "colspan", row_index) for c in queue) + len(self.pending)

        if (
            self.last_port is not None
            and port_col not in self.pending
            and queue
            and filled == self.layout.width - 1
            and not looks_like_port(cell_text(queue[min(port_col, len(queue) - 1)]).flat)
        ):
            logger.debug(f"Row {row_index}: short row, inheriting port cell from previous row")
            inherited = self.last_port
            queue.insert(min(port_col, len(queue)), inherited)

        slots: List[Optional[Tag]] = []
        col = 0
        while queue or any(c >= col for c in self.pending):
            carried = self._take(col)
            if carried is not None:
                slots.append(carried)
                col += 1
                continue
            if not queue:
                slots.append(None)
                col += 1
                continue
            cell = queue.pop(0)
            colspan = _span(cell, "colspan", row_index)
            rowspan = 1 if cell is inherited else _span(cell, "rowspan", row_index)
            for _ in range(colspan):
                slots.append(cell)
                if rowspan > 1:
                    self.pending[col] = [rowspan - 1, cell]
                col += 1

        if len(slots) > self.layout.width:
            logger.debug(f"Row {row_index}: {len(slots)} cells for {self.layout.width} columns, extra ignored")
            del slots[self.layout.width:]
        if port_col < len(slots) and slots[port_col] is not None:
            self.last_port = slots[port_col]
        return slots


def _span(cell: Tag, attr: str, row_index: int) -> int:
    raw = cell.get(attr)
    if raw is None:
        return 1
    try:
        value = int(str(raw).strip().rstrip(";"))
    except ValueError:
        logger.debug(f"Row {row_index}: malformed {attr}={raw!r}, treating as 1")
        return 1
    return max(value, 1)


def _normalize_header(text: str) -> str:
    return " ".join(re.findall(r"[a-z0-9]+", text.lower()))


def _own_rows(table: Tag) -> List[Tag]:
    """Rows of this table, excluding rows of nested tables."""
    return [tr for tr in table.find_all("tr") if tr.find_parent("table") is table]


def _row_cells(row: Tag) -> List[Tag]:
    return row.find_all(["td", "th"], recursive=False)


def _snippet(cells: List[Optional[Tag]]) -> str:
    seen: List[Tag] = []
    for cell in cells:
        # Tag equality compares content; dedupe spanned cells by identity
        if cell is not None and all(cell is not s for s in seen):
            seen.append(cell)
    text = " | ".join(cell.get_text(" ", strip=True) for cell in seen)
    return text[:_SNIPPET_LEN]


class WikipediaTableParser(BaseParser):
    """Parser for the port tables of the Wikipedia port list page (HTML)."""

    source_type: str = "wikipedia"

    def parse(self, data: Union[str, bytes], base_url: Optional[str] = None, **kwargs) -> ParseResult:
        """
        Parse the port list page.

        Args:
            data: Raw HTML of the page
            base_url: URL the page was fetched from, used to absolutise links
            **kwargs: Additional arguments (unused)

        Returns:
            ParseResult with one PortAssignment per usable row and a
            ParseWarning per dropped row

        Raises:
            ParseError: if the document contains no table that looks like a
                port table
        """
        if isinstance(data, bytes):
            data = data.decode("utf-8", errors="replace")
        if not data or not data.strip():
            raise ParseError("Empty document")

        soup = BeautifulSoup(data, "html.parser")
        tables: List[Tuple[Tag, _TableLayout]] = []
        for table in soup.find_all("table"):
            layout = self._detect_layout(table)
            if layout is not None:
                tables.append((table, layout))

        logger.info(f"Found {len(tables)} port table(s) in document")
        if not tables:
            raise ParseError(
                "No port table found (expected a header with a 'Port' column); "
                "the page layout has probably changed"
            )

        result = ParseResult(success=True, source_type=self.source_type, tables_found=len(tables))
        row_index = 0
        for table, layout in tables:
            row_index = self._parse_table(table, layout, result, row_index, base_url)

        logger.info(
            f"Parsed {len(result.assignments)} assignment(s) from {row_index} row(s), "
            f"{len(result.warnings)} warning(s)"
        )
        return result

    def _detect_layout(self, table: Tag) -> Optional[_TableLayout]:
        """Map header names to column positions; None if this is not a port table."""
        header = None
        for row in _own_rows(table):
            cells = _row_cells(row)
            if cells and all(c.name == "th" for c in cells):
                header = cells
                break
            if cells:
                # Header must come before the first data row
                break
        if header is None:
            return None

        names: List[str] = []
        for cell in header:
            names.extend([_normalize_header(cell_text(cell).flat)] * _span(cell, "colspan", -1))

        port_col = None
        protocol_cols: Dict[int, Protocol] = {}
        protocol_list_col = service_col = description_col = None
        for col, name in enumerate(names):
            if port_col is None and name in _PORT_HEADERS:
                port_col = col
            elif name in _PROTOCOL_HEADERS:
                protocol_cols[col] = _PROTOCOL_HEADERS[name]
            elif protocol_list_col is None and name in _PROTOCOL_LIST_HEADERS:
                protocol_list_col = col
            elif service_col is None and name in _SERVICE_HEADERS:
                service_col = col
            elif description_col is None and name in _DESCRIPTION_HEADERS:
                description_col = col

        if port_col is None:
            return None
        if not (protocol_cols or protocol_list_col is not None or service_col is not None
                or description_col is not None):
            return None

        # Description is the last column by convention when no header names it
        last = len(names) - 1
        if (description_col is None and last not in (port_col, protocol_list_col, service_col)
                and last not in protocol_cols):
            logger.debug(f"No description header, using last column {names[last]!r}")
            description_col = last

        logger.debug(f"Port table columns: {names}")
        return _TableLayout(
            width=len(names),
            port_col=port_col,
            protocol_cols=protocol_cols,
            protocol_list_col=protocol_list_col,
            service_col=service_col,
            description_col=description_col,
        )

    def _parse_table(
        self,
        table: Tag,
        layout: _TableLayout,
        result: ParseResult,
        row_index: int,
        base_url: Optional[str],
    ) -> int:
        """Walk the rows of one table; returns the next global row index."""
        carry = _SpanCarry(layout)
        for row in _own_rows(table):
            cells = _row_cells(row)
            if not cells or all(c.name == "th" for c in cells):
                continue  # header (or repeated header) row
            try:
                slots = carry.expand(cells, row_index)
                assignment = self._parse_row(slots, layout, row_index, base_url, result)
                if assignment is not None:
                    result.assignments.append(assignment)
            except Exception as e:
                logger.exception(f"Error parsing row {row_index}: {e}")
                result.warnings.append(
                    ParseWarning(row_index, f"unexpected error: {e}", _snippet(cells))
                )
            row_index += 1
        return row_index

    def _parse_row(
        self,
        slots: List[Optional[Tag]],
        layout: _TableLayout,
        row_index: int,
        base_url: Optional[str],
        result: ParseResult,
    ) -> Optional[PortAssignment]:
        """Turn one grid row into an assignment, or None (with a warning) if the port is unusable."""
        texts: Dict[int, CellText] = {}

        def text_at(col: Optional[int]) -> CellText:
            if col is None or col >= len(slots) or slots[col] is None:
                return CellText()
            cell = slots[col]
            if id(cell) not in texts:
                texts[id(cell)] = cell_text(cell, base_url)
            return texts[id(cell)]

        port_text = text_at(layout.port_col).flat
        if layout.port_col >= len(slots) or slots[layout.port_col] is None:
            result.warnings.append(ParseWarning(row_index, "row has no port cell", _snippet(slots)))
            return None
        try:
            ports = parse_port_spec(port_text)
        except ValueError as e:
            logger.debug(f"Row {row_index}: dropping row, {e}: {port_text!r}")
            result.warnings.append(ParseWarning(row_index, str(e), _snippet(slots)))
            return None

        protocols: Dict[Protocol, ProtocolUsage] = {}
        for col, protocol in layout.protocol_cols.items():
            usage = parse_usage_marker(text_at(col).flat)
            if usage is not None:
                protocols[protocol] = usage
        if layout.protocol_list_col is not None:
            for protocol, usage in parse_protocol_list(text_at(layout.protocol_list_col).flat).items():
                protocols.setdefault(protocol, usage)
        if ProtocolUsage.UNKNOWN in protocols.values() or not protocols:
            logger.debug(f"Row {row_index}: unreadable protocol cell(s) for port {ports}")
        if not protocols:
            protocols = {Protocol.UNKNOWN: ProtocolUsage.UNKNOWN}

        description = text_at(layout.description_col)
        service = text_at(layout.service_col)
        if layout.service_col is not None:
            service_names = split_values(service.value)
        else:
            service_names = service_names_from_description(description.flat, description.links)
        if not service_names:
            service_names = [UNKNOWN_SERVICE]

        refs: List[str] = []
        links: List[Tuple[str, str]] = []
        for cell in texts.values():
            refs.extend(r for r in cell.refs if r not in refs)
        for cell in (service, description):
            links.extend(link for link in cell.links if link not in links)

        return PortAssignment(
            ports=ports,
            protocols=protocols,
            service_names=tuple(service_names),
            description=description.flat,
            status=AssignmentStatus.from_usages(protocols.values()),
            source_refs=tuple(refs),
            links=tuple(links),
            row_index=row_index,
        )
