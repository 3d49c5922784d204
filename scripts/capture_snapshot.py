#!/usr/bin/env python3
"""
whatport page snapshot capture
==============================

Downloads the port list page (or a pinned revision) into samples/ and prints
how the parser reads it, so parser drift can be checked against real
captured pages.

Usage:
    python scripts/capture_snapshot.py                     # newest revision
    python scripts/capture_snapshot.py --revision 1200000000
    python scripts/capture_snapshot.py --parse samples/wikipedia_ports_rev1200000000.html

Requirements:
    whatport installed (pip install -e .)
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape

from whatport.config import settings
from whatport.parsers import ParseError, ParseResult, get_parser
from whatport.services.fetcher import FetchError, fetch, latest_revision, page_url
from whatport.utils.logging_utils import setup_logging

ROOT = Path(__file__).resolve().parents[1]
SAMPLES_DIR = ROOT / "samples"

console = Console(highlight=False)


async def download(revision: Optional[int]) -> tuple:
    timeout = settings.FETCH_TIMEOUT_SECONDS
    if revision is None:
        revision = await latest_revision(settings.HISTORY_API_URL, timeout, user_agent=settings.USER_AGENT)
    document = await fetch(page_url(settings, revision), timeout, user_agent=settings.USER_AGENT)
    return revision, document


def print_summary(result: ParseResult, show_warnings: int) -> None:
    status_counts = {}
    for assignment in result.assignments:
        status_counts[assignment.status.value] = status_counts.get(assignment.status.value, 0) + 1

    console.print(f"[bold]Tables:[/bold]      {result.tables_found}")
    console.print(f"[bold]Assignments:[/bold] {len(result.assignments)}")
    for status, count in sorted(status_counts.items()):
        console.print(f"  {status:12} {count}")
    style = "yellow" if result.warnings else "green"
    console.print(f"[bold]Warnings:[/bold]    [{style}]{len(result.warnings)}[/{style}]")
    for warning in result.warnings[:show_warnings]:
        console.print(f"  {warning}", markup=False)
    if len(result.warnings) > show_warnings:
        console.print(f"  ... and {len(result.warnings) - show_warnings} more")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Capture the port list page into samples/ and report how it parses",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/capture_snapshot.py                          # Capture the newest revision
  python scripts/capture_snapshot.py --revision 1200000000    # Capture a pinned revision
  python scripts/capture_snapshot.py --parse page.html        # Re-parse a saved page only
        """,
    )
    parser.add_argument(
        "--revision", type=int, metavar="ID",
        help="Page revision to capture (default: newest)",
    )
    parser.add_argument(
        "--output", type=str, metavar="FILE",
        help="Output file (default: samples/wikipedia_ports_rev<ID>.html)",
    )
    parser.add_argument(
        "--parse", type=str, metavar="FILE",
        help="Parse an already captured page instead of downloading",
    )
    parser.add_argument(
        "--warnings", type=int, default=20,
        help="Number of parse warnings to list (default: 20)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Log fetch and parse progress",
    )
    args = parser.parse_args()
    setup_logging(level="INFO" if args.verbose else "WARNING")

    if args.parse:
        path = Path(args.parse)
        document = path.read_bytes()
        console.print(f"Parsing {path}")
    else:
        try:
            revision, document = asyncio.run(download(args.revision))
        except FetchError as e:
            console.print(f"[red]Download failed:[/red] {escape(str(e))}")
            return 1
        path = Path(args.output) if args.output else SAMPLES_DIR / f"wikipedia_ports_rev{revision}.html"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(document)
        console.print(f"Saved revision {revision} ({len(document)} bytes) to {path}")

    try:
        result = get_parser("wikipedia").parse(document, base_url=settings.SOURCE_URL)
    except ParseError as e:
        console.print(f"[red]Parse failed:[/red] {escape(str(e))}")
        return 1

    print_summary(result, args.warnings)
    return 0


if __name__ == "__main__":
    sys.exit(main())
