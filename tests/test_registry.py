"""Tests for registry building."""

import pytest

from whatport.parsers.base import (
    AssignmentStatus,
    PortAssignment,
    PortCategory,
    PortRange,
    Protocol,
    ProtocolUsage,
)
from whatport.services.registry import build_registry

from conftest import BUILT_AT, make_assignment


class TestPortTypes:
    """Test the value types the registry is built from."""

    def test_port_range_str(self):
        assert str(PortRange.single(80)) == "80"
        assert str(PortRange(6000, 6063)) == "6000-6063"
        assert len(PortRange(6000, 6063)) == 64

    @pytest.mark.parametrize("start,end", [(-1, 5), (10, 5), (0, 65536)])
    def test_port_range_invalid(self, start, end):
        with pytest.raises(ValueError):
            PortRange(start, end)

    @pytest.mark.parametrize("port,category", [
        (0, PortCategory.WELL_KNOWN),
        (1023, PortCategory.WELL_KNOWN),
        (1024, PortCategory.REGISTERED),
        (49151, PortCategory.REGISTERED),
        (49152, PortCategory.DYNAMIC),
        (65535, PortCategory.DYNAMIC),
    ])
    def test_port_category(self, port, category):
        assert PortCategory.of(port) == category

    def test_assignment_requires_protocol_and_name(self):
        with pytest.raises(ValueError):
            PortAssignment(ports=PortRange.single(80), protocols={}, service_names=("HTTP",))
        with pytest.raises(ValueError):
            make_assignment(80, names=())

    def test_uses_ignores_no(self):
        assignment = make_assignment(
            80, protocols={Protocol.TCP: ProtocolUsage.YES, Protocol.UDP: ProtocolUsage.NO}
        )
        assert assignment.uses(Protocol.TCP)
        assert not assignment.uses(Protocol.UDP)
        assert not assignment.uses(Protocol.SCTP)

    def test_assignment_protocols_are_read_only(self, registry):
        source = {Protocol.TCP: ProtocolUsage.YES}
        assignment = make_assignment(80, protocols=source)
        source[Protocol.UDP] = ProtocolUsage.YES
        assert assignment.protocols == {Protocol.TCP: ProtocolUsage.YES}

        built = registry.covering(80)[0]
        with pytest.raises(TypeError):
            built.protocols[Protocol.TCP] = ProtocolUsage.NO
        assert built.protocols[Protocol.TCP] == ProtocolUsage.YES
        assert hash(built) == hash(registry.covering(80)[0])

    @pytest.mark.parametrize("usages,status", [
        ([ProtocolUsage.YES, ProtocolUsage.YES], AssignmentStatus.OFFICIAL),
        ([ProtocolUsage.YES, ProtocolUsage.NO], AssignmentStatus.OFFICIAL),
        ([ProtocolUsage.UNOFFICIAL], AssignmentStatus.UNOFFICIAL),
        ([ProtocolUsage.YES, ProtocolUsage.UNOFFICIAL], AssignmentStatus.CONFLICTING),
        ([ProtocolUsage.NO], AssignmentStatus.UNKNOWN),
        ([ProtocolUsage.UNKNOWN], AssignmentStatus.UNKNOWN),
    ])
    def test_status_from_usages(self, usages, status):
        assert AssignmentStatus.from_usages(usages) == status


class TestBuildRegistry:
    """Test the port and keyword indexes."""

    def test_range_covers_every_port(self, registry):
        for port in (6000, 6031, 6063):
            names = [a.service_names[0] for a in registry.covering(port)]
            assert names == ["X Window System"]
        assert registry.covering(6064) == ()
        assert registry.covering(5999) == ()

    def test_bucket_keeps_first_seen_order(self, registry):
        names = [a.service_names[0] for a in registry.covering(80)]
        assert names == [
            "Hypertext Transfer Protocol",
            "QUIC",
            "Web-based administration interface of many routers",
        ]

    def test_duplicates_are_not_merged(self):
        a = make_assignment(25, names=("SMTP",), row_index=0)
        b = make_assignment(25, names=("SMTP",), row_index=1)
        registry = build_registry([a, b], source_fingerprint="sha256:x")
        assert len(registry.covering(25)) == 2

    def test_keyword_index_uses_set_semantics(self, registry):
        ports = registry.ports_for_token("http")
        assert {80, 443, 8080} <= ports
        assert registry.ports_for_token("window") == frozenset(range(6000, 6064))

    def test_tokens_of_assignment(self, registry):
        ssh = registry.covering(22)[0]
        tokens = registry.tokens_of(ssh)
        assert tokens[:2] == ("secure", "shell")
        assert "forwarding" in tokens

    def test_metadata(self, registry):
        assert registry.built_at == BUILT_AT
        assert registry.source_fingerprint == "rev:1200000000"
        assert registry.stats()["assignments"] == 15

    def test_build_is_deterministic(self, parsed):
        first = build_registry(parsed.assignments, source_fingerprint="rev:1", built_at=BUILT_AT)
        second = build_registry(parsed.assignments, source_fingerprint="rev:1", built_at=BUILT_AT)
        assert list(first.by_port) == list(second.by_port)
        assert list(first.keywords) == list(second.keywords)
        assert first.assignments == second.assignments

    def test_empty_registry(self):
        registry = build_registry([], source_fingerprint="sha256:x")
        assert registry.covering(80) == ()
        assert registry.stats() == {"assignments": 0, "ports": 0, "keywords": 0}
