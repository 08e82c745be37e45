#!/usr/bin/env python3
"""
Run one source (or all sources) once and print a summary.

Usage:
    python run_scraper.py [source] [--dry-run] [--config PATH]
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

# Add project root to PYTHONPATH so imports work when running this script directly
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from core.config import load_config, setup_logging
from core.errors import UnknownSourceError
from core.models import ScraperRunResult
from core.orchestrator import summarize
from core.plugin_loader import list_available
from core.runtime import Platform

EXIT_UNKNOWN_SOURCE = 2

logger = logging.getLogger("run_scraper")


def print_results(results: List[ScraperRunResult]) -> None:
    print()
    for result in results:
        if result.ok:
            print(
                f"  ✅ {result.name}: {result.total} events "
                f"({result.created} created, {result.updated} updated, {result.failed} failed)"
            )
        else:
            print(f"  ❌ {result.name}: {result.error}")

    summary = summarize(results)
    print()
    print(
        f"Summary: {summary['total']} sources, {summary['succeeded']} succeeded, "
        f"{summary['failed']} failed | {summary['events']} events, "
        f"{summary['created']} created, {summary['updated']} updated"
    )


async def run(source: Optional[str], dry_run: bool, config_path: Optional[str]) -> int:
    cfg = load_config(config_path)
    setup_logging(cfg.logging)

    if source is not None and source not in list_available():
        error = UnknownSourceError(source, list_available())
        print(f"Error: {error}", file=sys.stderr)
        return EXIT_UNKNOWN_SOURCE

    async with Platform(cfg, dry_run=dry_run) as platform:
        if dry_run:
            logger.info("Dry run: events are reconciled in memory only")
        names = [source] if source else None
        results = await platform.orchestrator.run_all(names)

    print_results(results)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run event scrapers once.")
    parser.add_argument("source", nargs="?", help="source name (default: all sources)")
    parser.add_argument("--dry-run", action="store_true", help="do not write to the events database")
    parser.add_argument("--config", default=None, help="path to config.yaml")
    args = parser.parse_args(argv)
    return asyncio.run(run(args.source, args.dry_run, args.config))


if __name__ == "__main__":
    sys.exit(main())
