"""
Terminal renderer for lookup results.

Features
--------
* Port lookups list every known use case, numbered, in source order, with
  one protocol line colored by how the source marks each protocol.
* Keyword lookups show one entry per matching use case with its ports
  collapsed back to ranges, best matches first.
* Optional ``Links:`` and ``Notes and References:`` sections per use case.
* Service names become OSC 8 hyperlinks when the terminal supports them.
* Parse warnings and pipeline advisories go to a separate ``Warnings``
  section on the error console, never mixed into the answer.
"""

from typing import List, Optional

from rich.console import Console
from rich.style import Style
from rich.text import Text

from ..parsers.base import ParseWarning, PortAssignment, PortCategory, ProtocolUsage
from ..services.pipeline import PipelineResult
from ..services.query import KeywordQuery, LookupResult, PortQuery
from .common import group_matches

# ProtocolUsage → rich color
_USAGE_STYLES = {
    ProtocolUsage.YES: "green",
    ProtocolUsage.UNOFFICIAL: "cyan",
    ProtocolUsage.ASSIGNED: "yellow",
    ProtocolUsage.NO: "red",
    ProtocolUsage.RESERVED: "bright_black",
    ProtocolUsage.UNKNOWN: "magenta",
}

_MAX_LISTED_WARNINGS = 5
_INDENT = "    "


class TextRenderer:
    """Human-readable output on a rich console."""

    def __init__(
        self,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
        show_links: bool = False,
        show_references: bool = False,
        verbose: bool = False,
    ) -> None:
        self.console = console or Console(highlight=False)
        self.err_console = err_console or Console(stderr=True, highlight=False)
        self.show_links = show_links
        self.show_references = show_references
        self.verbose = verbose

    def render(self, lookup: LookupResult, pipeline: PipelineResult) -> None:
        if isinstance(lookup.query, PortQuery):
            self.render_port(lookup.query, lookup.assignments)
        else:
            self.render_keyword(lookup)
        self.render_warnings(pipeline.parse_warnings, pipeline.advisories)

    def render_port(self, query: PortQuery, assignments: List[PortAssignment]) -> None:
        header = Text("Port ")
        header.append(str(query), style="green" if assignments else "red")
        header.append(" is a ")
        header.append(query.category.value, style="blue")
        if not assignments:
            header.append(" port with no known use cases")
            self.console.print(header)
            return

        count = len(assignments)
        header.append(f" port with {count} known use {'case' if count == 1 else 'cases'}")
        self.console.print(header)
        for number, assignment in enumerate(assignments, start=1):
            self.console.print()
            self._print_use_case(f"{number}: ", assignment)

    def render_keyword(self, lookup: LookupResult) -> None:
        query: KeywordQuery = lookup.query
        groups = group_matches(lookup.matches)
        if not groups:
            line = Text("No port usage found for ")
            line.append(f'"{query.term}"', style="red")
            self.console.print(line)
            return

        count = len(groups)
        header = Text(f"Found {count} use {'case' if count == 1 else 'cases'} matching ")
        header.append(f'"{query.term}"', style="green")
        self.console.print(header)
        for group in groups:
            self.console.print()
            ports = group.port_ranges
            category = PortCategory.of(group.ports[0]).value
            label = Text()
            label.append(ports, style="bold green")
            label.append(f" ({category})", style="blue")
            label.append(": ")
            self._print_use_case(label, group.assignment)

    def render_warnings(self, parse_warnings: List[ParseWarning], advisories: List[str]) -> None:
        if not parse_warnings and not advisories:
            return
        self.err_console.print()
        self.err_console.print(Text("Warnings:", style="bold yellow"))
        for advisory in advisories:
            self.err_console.print(Text(f"{_INDENT}! {advisory}", style="yellow"))
        if parse_warnings:
            self.err_console.print(
                Text(f"{_INDENT}! {len(parse_warnings)} row(s) of the source page could not be parsed "
                     "and were skipped", style="yellow")
            )
            listed = parse_warnings if self.verbose else parse_warnings[:_MAX_LISTED_WARNINGS]
            for warning in listed:
                self.err_console.print(Text(f"{_INDENT}{_INDENT}{warning}", style="dim"))
            hidden = len(parse_warnings) - len(listed)
            if hidden:
                self.err_console.print(Text(f"{_INDENT}{_INDENT}... and {hidden} more (use -v to list all)", style="dim"))

    # ── Use case blocks ───────────────────────────────────────────────

    def _print_use_case(self, label, assignment: PortAssignment) -> None:
        title = Text(_INDENT)
        title.append(label)
        for i, name in enumerate(assignment.service_names):
            if i:
                title.append(", ")
            url = self._link_for(name, assignment)
            style = Style(bold=True, link=url) if url else Style(bold=True)
            title.append(name, style=style)
        self.console.print(title)

        if assignment.description and assignment.description not in assignment.service_names:
            self.console.print(Text(f"{_INDENT}{_INDENT}{assignment.description}"))

        self.console.print(self._protocol_line(assignment))

        if self.show_links and assignment.links:
            self.console.print(Text(f"{_INDENT}{_INDENT}Links:", style="bold"))
            for i, (text, url) in enumerate(assignment.links, start=1):
                line = Text(f"{_INDENT}{_INDENT}{_INDENT}")
                line.append(f"[{i}]", style="cyan")
                line.append(f" {text}: {url}")
                self.console.print(line)

        if self.show_references and assignment.source_refs:
            self.console.print(Text(f"{_INDENT}{_INDENT}Notes and References:", style="bold"))
            for i, ref in enumerate(assignment.source_refs, start=1):
                line = Text(f"{_INDENT}{_INDENT}{_INDENT}")
                line.append(f"[ref {i}]", style="yellow")
                line.append(f" {ref}")
                self.console.print(line)

    def _protocol_line(self, assignment: PortAssignment) -> Text:
        line = Text(f"{_INDENT}{_INDENT}")
        for i, (protocol, usage) in enumerate(assignment.protocols.items()):
            if i:
                line.append(", ")
            line.append(f"{protocol.label}: ")
            line.append(usage.value.capitalize(), style=_USAGE_STYLES[usage])
        line.append(f"  [{assignment.status.value}]", style="dim")
        return line

    @staticmethod
    def _link_for(name: str, assignment: PortAssignment) -> Optional[str]:
        for text, url in assignment.links:
            if text == name:
                return url
        return None
