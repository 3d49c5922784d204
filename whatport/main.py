"""whatport command line."""

import argparse
import asyncio
import sys
from typing import List, Optional

from rich.console import Console
from rich.text import Text

from .config import Settings, resolve_cache_path, settings
from .errors import WhatportError
from .renderers import TextRenderer, render_json
from .services import CacheStore, QueryEngine, obtain_registry, parse_query
from .utils.logging_utils import get_logger, setup_logging

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1

_EXAMPLES = """
Examples:
  whatport 80                     What is port 80 used for?
  whatport 443/udp                Only use cases that run over UDP
  whatport -k ssh                 Which ports does SSH use?
  whatport --refresh --json 5432  Re-fetch the list, print JSON
  whatport --offline -l -r 22     Cached data only, with links and references
"""


def build_parser(config: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="whatport",
        description="Look up what a TCP/UDP port is used for, or which ports a service uses",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=_EXAMPLES,
    )
    parser.add_argument(
        "query", metavar="QUERY", nargs="?",
        help="Port number (80, 443/udp) or keyword (ssh, \"remote desktop\")",
    )
    parser.add_argument(
        "-k", "--keyword", action="store_true",
        help="Treat QUERY as a keyword even if it looks like a port number",
    )
    parser.add_argument(
        "--refresh", action="store_true",
        help="Re-fetch the port list even if the cache is fresh",
    )
    parser.add_argument(
        "--offline", action="store_true",
        help="Never touch the network; use the cache however old it is",
    )
    parser.add_argument(
        "--revision", type=int, metavar="ID",
        help="Use a specific revision of the port list page",
    )
    parser.add_argument(
        "--clear-cache", action="store_true",
        help="Delete the cached port list (QUERY is optional with this flag)",
    )
    parser.add_argument(
        "-l", "--links", action="store_true",
        help="Show the links attached to each use case",
    )
    parser.add_argument(
        "-r", "--references", action="store_true",
        help="Show the notes and references attached to each use case",
    )
    parser.add_argument(
        "-j", "--json", action="store_true",
        help="Print the result as JSON",
    )
    parser.add_argument(
        "--no-color", action="store_true",
        help="Disable colored output",
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="More log output (-v info, -vv debug)",
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true",
        help="Only log errors",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {config.APP_VERSION}",
    )
    return parser


def _log_level(args: argparse.Namespace, config: Settings) -> str:
    if args.quiet:
        return "ERROR"
    if args.verbose >= 2:
        return "DEBUG"
    if args.verbose == 1:
        return "INFO"
    return config.LOG_LEVEL


def main(argv: Optional[List[str]] = None, config: Optional[Settings] = None) -> int:
    config = config or settings
    parser = build_parser(config)
    args = parser.parse_args(argv)

    if args.refresh and args.offline:
        parser.error("--refresh and --offline cannot be combined")
    if args.revision is not None and args.revision <= 0:
        parser.error("--revision must be a positive revision id")

    setup_logging(level=_log_level(args, config), use_color=False if args.no_color else None)

    if args.query is None and not args.clear_cache:
        parser.error("the following arguments are required: QUERY")

    query = None
    if args.query is not None:
        try:
            query = parse_query(args.query, force_keyword=args.keyword)
        except ValueError as e:
            parser.error(str(e))

    color_system = None if args.no_color else "auto"
    console = Console(highlight=False, color_system=color_system)
    err_console = Console(stderr=True, highlight=False, color_system=color_system)

    cache_path = resolve_cache_path(config)
    logger.debug(f"Cache file: {cache_path}")
    store = CacheStore(cache_path)

    if args.clear_cache:
        try:
            removed = store.clear()
        except WhatportError as e:
            err_console.print(Text(f"error: {e}", style="bold red"))
            return EXIT_FAILURE
        err_console.print(f"{'Removed' if removed else 'No'} cache file {cache_path}", markup=False)
        if query is None:
            return EXIT_OK

    try:
        pipeline = asyncio.run(
            obtain_registry(
                config,
                store,
                refresh=args.refresh,
                offline=args.offline,
                revision=args.revision,
            )
        )
    except WhatportError as e:
        logger.debug("Pipeline failed", exc_info=True)
        err_console.print(Text(f"error: {e}", style="bold red"))
        return EXIT_FAILURE

    lookup = QueryEngine(pipeline.registry).lookup(query)

    if args.json:
        print(render_json(lookup, pipeline))
        return EXIT_OK

    renderer = TextRenderer(
        console,
        err_console,
        show_links=args.links,
        show_references=args.references,
        verbose=args.verbose > 0,
    )
    renderer.render(lookup, pipeline)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
