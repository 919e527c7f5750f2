# main.py

"""Entry point for the shopmate headless CLI."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

from shopmate.config.logging_config import setup_logging
from shopmate.config.settings import Settings

logger = logging.getLogger("shopmate.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="shopmate",
        description=(
            "Aggregate, rank and summarise product listings from "
            "direct scrapers and Google Shopping."
        ),
    )
    parser.add_argument("query", help="Search query.")
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )
    parser.add_argument(
        "--direct",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Scrape Amazon & Flipkart directly (default: from .env).",
    )
    parser.add_argument(
        "--serpapi",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Query SerpAPI for other stores (default: from .env).",
    )
    parser.add_argument(
        "-t",
        "--timeout",
        type=float,
        default=None,
        help="Per-source timeout in seconds (default: 6).",
    )
    parser.add_argument(
        "--save",
        action="store_true",
        default=False,
        help="Save the JSON result and a CSV export.",
    )
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        dest="output_dir",
        help="Custom output directory for --save (default: results/).",
    )
    return parser


def build_settings(args: argparse.Namespace) -> Settings:
    """Turn CLI flags into Settings overrides."""
    overrides: dict[str, Any] = {}
    if args.direct is not None:
        overrides["USE_AMAZON_FLIPKART_DIRECT"] = args.direct
    if args.serpapi is not None:
        overrides["USE_SERPAPI"] = args.serpapi
    if args.timeout is not None:
        overrides["SOURCE_TIMEOUT"] = args.timeout
    if args.output_dir is not None:
        overrides["RESULTS_DIR"] = Path(args.output_dir)
    return Settings(**overrides)


def main() -> None:
    """Parse arguments, run one aggregation and exit with its status."""
    log_file = setup_logging()
    logger.info("shopmate starting, log file: %s", log_file)

    args = _build_parser().parse_args()

    from shopmate.cli.runner import cli_search

    try:
        exit_code = asyncio.run(
            cli_search(
                query=args.query,
                settings=build_settings(args),
                output_format=args.output_format,
                save=args.save,
            )
        )
    except Exception:
        logger.critical("Fatal error during CLI run", exc_info=True)
        raise
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
