"""Tests for the Wikipedia port table parser."""

import pytest

from whatport.parsers import ParseError, WikipediaTableParser, get_parser
from whatport.parsers.base import AssignmentStatus, Protocol, ProtocolUsage

from conftest import SOURCE_URL


def _table(header, *rows):
    head = "".join(f"<th>{h}</th>" for h in header)
    body = "".join(f"<tr>{row}</tr>" for row in rows)
    return f"<html><body><table><tr>{head}</tr>{body}</table></body></html>"


PROTOCOL_LIST_HEADER = ("Port", "Protocol", "Service", "Description")
PER_PROTOCOL_HEADER = ("Port", "TCP", "UDP", "SCTP", "DCCP", "Description")


class TestParserRegistry:
    """Test parser lookup by source name."""

    def test_get_wikipedia_parser(self):
        assert isinstance(get_parser("wikipedia"), WikipediaTableParser)

    def test_get_parser_is_case_insensitive(self):
        assert isinstance(get_parser("Wikipedia"), WikipediaTableParser)

    def test_unknown_parser(self):
        with pytest.raises(ValueError, match="Unknown parser"):
            get_parser("iana-csv")


class TestSamplePage:
    """Test parsing the captured page excerpt."""

    def test_tables_and_counts(self, parsed):
        assert parsed.success is True
        assert parsed.source_type == "wikipedia"
        assert parsed.tables_found == 2
        assert len(parsed.assignments) == 15
        assert len(parsed.warnings) == 2

    def test_legend_and_navbox_tables_ignored(self, parsed):
        assert all(a.description != "Yes" for a in parsed.assignments)

    def test_row_order_is_document_order(self, parsed):
        starts = [a.ports.start for a in parsed.assignments]
        assert starts == [0, 4, 7, 20, 21, 22, 80, 80, 80, 443, 1024, 3389, 6000, 8080, 8080]

    def test_row_indexes_are_global(self, parsed):
        indexes = [a.row_index for a in parsed.assignments]
        assert indexes == sorted(indexes)
        assert parsed.assignments[-1].row_index == 15

    def test_reserved_colspan_row(self, parsed):
        port_zero = parsed.assignments[0]
        assert port_zero.protocols == {
            Protocol.TCP: ProtocolUsage.RESERVED,
            Protocol.UDP: ProtocolUsage.RESERVED,
        }
        assert port_zero.status == AssignmentStatus.RESERVED
        assert port_zero.source_refs == (f"{SOURCE_URL}#cite_note-1",)
        assert "[1]" not in port_zero.description

    def test_unreadable_usage_marker_kept(self, parsed):
        port_four = parsed.assignments[1]
        assert port_four.ports.start == 4
        assert set(port_four.protocols.values()) == {ProtocolUsage.UNKNOWN}
        assert port_four.status == AssignmentStatus.UNKNOWN
        assert port_four.service_names == ("Unknown service",)

    def test_service_name_from_link(self, parsed):
        echo = parsed.assignments[2]
        assert echo.service_names == ("Echo Protocol",)
        assert echo.links == (("Echo Protocol", "https://en.wikipedia.org/wiki/Echo_Protocol"),)

    def test_service_name_with_abbreviation(self, parsed):
        ssh = parsed.assignments[5]
        assert ssh.service_names == ("Secure Shell", "SSH")
        assert ssh.description.startswith("Secure Shell (SSH), secure logins")

    def test_mixed_usage_is_conflicting(self, parsed):
        ftp_data = parsed.assignments[3]
        assert ftp_data.protocols[Protocol.TCP] == ProtocolUsage.YES
        assert ftp_data.protocols[Protocol.UDP] == ProtocolUsage.ASSIGNED
        assert ftp_data.protocols[Protocol.SCTP] == ProtocolUsage.YES
        assert Protocol.DCCP not in ftp_data.protocols
        assert ftp_data.status == AssignmentStatus.CONFLICTING

    def test_rowspan_port_carried(self, parsed):
        http, quic, routers = parsed.assignments[6:9]
        assert {http.ports.start, quic.ports.start, routers.ports.start} == {80}
        assert http.service_names == ("Hypertext Transfer Protocol", "HTTP")
        assert quic.service_names == ("QUIC",)
        assert quic.protocols == {Protocol.UDP: ProtocolUsage.YES}
        assert routers.protocols == {Protocol.TCP: ProtocolUsage.UNOFFICIAL}
        assert routers.status == AssignmentStatus.UNOFFICIAL

    def test_en_dash_range(self, parsed):
        x11 = parsed.assignments[12]
        assert (x11.ports.start, x11.ports.end) == (6000, 6063)
        assert x11.service_names == ("X Window System",)

    def test_short_row_inherits_port(self, parsed):
        tomcat = parsed.assignments[14]
        assert tomcat.ports.start == 8080
        assert tomcat.service_names == ("Apache Tomcat",)
        assert tomcat.protocols == {Protocol.TCP: ProtocolUsage.UNOFFICIAL}

    def test_bad_port_rows_become_warnings(self, parsed):
        first, second = parsed.warnings
        assert first.row_index == 10
        assert first.reason == "non-numeric port"
        assert "N/A" in first.raw_snippet
        assert second.row_index == 16
        assert "out of range" in second.reason

    def test_bytes_and_str_input_agree(self, sample_html):
        parser = WikipediaTableParser()
        from_bytes = parser.parse(sample_html)
        from_str = parser.parse(sample_html.decode("utf-8"))
        assert from_bytes.assignments == from_str.assignments

    def test_links_relative_without_base_url(self, sample_html):
        result = WikipediaTableParser().parse(sample_html)
        assert result.assignments[2].links == (("Echo Protocol", "/wiki/Echo_Protocol"),)


class TestProtocolListTables:
    """Test tables with a single protocol column and a service column."""

    def test_unparseable_protocol_degrades_to_unknown(self):
        html = _table(
            PROTOCOL_LIST_HEADER,
            "<td>8080</td><td>xyz</td><td>Custom Service</td><td></td>",
        )
        result = WikipediaTableParser().parse(html)
        assert len(result.assignments) == 1
        assignment = result.assignments[0]
        assert (assignment.ports.start, assignment.ports.end) == (8080, 8080)
        assert assignment.protocols == {Protocol.UNKNOWN: ProtocolUsage.UNKNOWN}
        assert assignment.service_names == ("Custom Service",)
        assert result.warnings == []

    def test_unparseable_port_is_dropped_with_warning(self):
        html = _table(
            PROTOCOL_LIST_HEADER,
            "<td>N/A</td><td>TCP</td><td>Reserved</td><td></td>",
        )
        result = WikipediaTableParser().parse(html)
        assert result.assignments == []
        assert len(result.warnings) == 1
        assert result.warnings[0].row_index == 0

    def test_protocol_list_values(self):
        html = _table(
            PROTOCOL_LIST_HEADER,
            "<td>53</td><td>TCP/UDP</td><td>domain</td><td>Domain Name System</td>",
            "<td>2905</td><td>sctp</td><td>m3ua</td><td>SS7 MTP3 user adaptation</td>",
        )
        result = WikipediaTableParser().parse(html)
        dns, m3ua = result.assignments
        assert dns.protocols == {Protocol.TCP: ProtocolUsage.YES, Protocol.UDP: ProtocolUsage.YES}
        assert dns.status == AssignmentStatus.OFFICIAL
        assert m3ua.protocols == {Protocol.SCTP: ProtocolUsage.YES}

    def test_multi_valued_service_cell(self):
        html = _table(
            PROTOCOL_LIST_HEADER,
            "<td>5060</td><td>TCP, UDP</td><td>sip<br/>sip-tls</td><td>Session Initiation Protocol</td>",
        )
        result = WikipediaTableParser().parse(html)
        assert result.assignments[0].service_names == ("sip", "sip-tls")


class TestMergedCells:
    """Test rowspan/colspan handling."""

    def test_rowspan_description_shared(self):
        html = _table(
            PER_PROTOCOL_HEADER,
            "<td>5000</td><td>Yes</td><td></td><td></td><td></td><td rowspan=\"2\">Shared description</td>",
            "<td>5001</td><td>Unofficial</td><td></td><td></td><td></td>",
        )
        result = WikipediaTableParser().parse(html)
        first, second = result.assignments
        assert first.description == second.description == "Shared description"
        assert second.ports.start == 5001
        assert second.protocols == {Protocol.TCP: ProtocolUsage.UNOFFICIAL}

    def test_carried_cell_does_not_make_row_short(self):
        html = _table(
            PER_PROTOCOL_HEADER,
            "<td>5000</td><td>Yes</td><td></td><td></td><td></td><td rowspan=\"2\">Shared</td>",
            "<td>N/A</td><td>Yes</td><td></td><td></td><td></td>",
        )
        result = WikipediaTableParser().parse(html)
        assert [a.ports.start for a in result.assignments] == [5000]
        assert len(result.warnings) == 1
        assert result.warnings[0].row_index == 1

    def test_colspan_marks_every_covered_protocol(self):
        html = _table(
            PER_PROTOCOL_HEADER,
            "<td>9</td><td colspan=\"4\">Yes</td><td>Discard Protocol</td>",
        )
        result = WikipediaTableParser().parse(html)
        assert set(result.assignments[0].protocols) == {
            Protocol.TCP, Protocol.UDP, Protocol.SCTP, Protocol.DCCP,
        }

    def test_malformed_span_treated_as_one(self):
        html = _table(
            PER_PROTOCOL_HEADER,
            "<td rowspan=\"x\">9</td><td>Yes</td><td></td><td></td><td></td><td>Discard</td>",
            "<td>13</td><td>Yes</td><td></td><td></td><td></td><td>Daytime</td>",
        )
        result = WikipediaTableParser().parse(html)
        assert [a.ports.start for a in result.assignments] == [9, 13]

    def test_repeated_header_rows_skipped(self):
        html = _table(
            PER_PROTOCOL_HEADER,
            "<td>9</td><td>Yes</td><td></td><td></td><td></td><td>Discard</td>",
            "<th>Port</th><th>TCP</th><th>UDP</th><th>SCTP</th><th>DCCP</th><th>Description</th>",
            "<td>13</td><td>Yes</td><td></td><td></td><td></td><td>Daytime</td>",
        )
        result = WikipediaTableParser().parse(html)
        assert [a.row_index for a in result.assignments] == [0, 1]
        assert result.warnings == []


class TestHeaderFallbacks:
    """Test tables whose headers only partly match the known names."""

    def test_last_column_is_description(self):
        html = _table(
            ("Port", "TCP", "UDP", "Details"),
            "<td>22</td><td>Yes</td><td></td><td>Secure Shell (SSH), secure logins</td>",
        )
        assignment = WikipediaTableParser().parse(html).assignments[0]
        assert assignment.description == "Secure Shell (SSH), secure logins"
        assert assignment.service_names == ("Secure Shell", "SSH")

    def test_last_protocol_column_is_not_a_description(self):
        html = _table(
            ("Port", "Service", "TCP"),
            "<td>22</td><td>ssh</td><td>Yes</td>",
        )
        assignment = WikipediaTableParser().parse(html).assignments[0]
        assert assignment.description == ""
        assert assignment.service_names == ("ssh",)
        assert assignment.protocols == {Protocol.TCP: ProtocolUsage.YES}


class TestStructuralFailures:
    """Test documents the parser cannot use at all."""

    def test_no_port_tables(self):
        html = "<html><body><p>This page has moved.</p><table><tr><th>Name</th></tr></table></body></html>"
        with pytest.raises(ParseError, match="No port table"):
            WikipediaTableParser().parse(html)

    def test_empty_document(self):
        with pytest.raises(ParseError):
            WikipediaTableParser().parse(b"   ")
